"""I/O helper functions for tests."""

import re
from pathlib import Path

import yaml

_ANSI_ESCAPE = re.compile(r"\x1b\[[0-9;]*m")


def strip_ansi_codes(text: str) -> str:
    """Remove ANSI escape sequences from CLI output."""
    return _ANSI_ESCAPE.sub("", text)


def write_settings(path: Path, settings: dict) -> Path:
    """Write settings as a YAML file, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(settings, sort_keys=False))
    return path
