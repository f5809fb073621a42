"""Utilities for working with LSP positions in settings documents."""

from typing import Optional

from lsprotocol.types import Position

from cmakelite.substitution import Placeholder, find_placeholders


def _get_line(text: str, position: Position) -> Optional[str]:
    lines = text.split("\n")
    if position.line >= len(lines):
        return None
    return lines[position.line]


def get_prefix_at_position(text: str, position: Position) -> str:
    """Get the text prefix up to the cursor position.

    Args:
        text: The full document text
        position: The cursor position

    Returns:
        The text from the start of the line up to the cursor position
    """
    line = _get_line(text, position)
    if line is None:
        return ""
    return line[: position.character]


def get_open_placeholder(prefix: str) -> Optional[str]:
    """Return what has been typed inside an unclosed ``${`` before the cursor.

    Args:
        prefix: Text from the start of the line up to the cursor

    Returns:
        The text after the last ``${`` (e.g. "env:PA" for "x ${env:PA"), or
        None if the cursor is not inside a placeholder.

    Example:
        >>> get_open_placeholder("path: ${workspaceFolder:")
        'workspaceFolder:'
        >>> get_open_placeholder("path: ${env:HOME}/x") is None
        True
    """
    start = prefix.rfind("${")
    if start == -1:
        return None
    content = prefix[start + 2:]
    if "}" in content:
        return None
    return content


def get_placeholder_at_position(text: str, position: Position) -> Optional[Placeholder]:
    """Find the placeholder under the cursor.

    The returned placeholder's start/end are character offsets within the
    cursor's line.
    """
    line = _get_line(text, position)
    if line is None:
        return None
    for placeholder in find_placeholders(line):
        if placeholder.start <= position.character < placeholder.end:
            return placeholder
    return None
