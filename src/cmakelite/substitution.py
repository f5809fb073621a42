"""Placeholder substitution for environment, configuration and workspace-folder variables.

This module resolves ${env:NAME}, ${config:key} and ${workspaceFolder:name}
placeholders (a "." separator works too) in configuration strings. A bare
${NAME} is an environment variable, for compatibility with older settings
files.

Substitution is repeated until a pass changes nothing or produces a string
that was already seen, so values may refer to other placeholders but a
self-referencing configuration cannot loop forever. Unknown variables are
left in place rather than treated as errors.
"""

from __future__ import annotations

import enum
import os
import re
import sys
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Iterator, Mapping, NamedTuple, Optional, Protocol, Sequence, Union

from cmakelite.values import is_array_of_string, is_string

if TYPE_CHECKING:
    from cmakelite.workspace import WorkspaceFolder

__all__ = [
    "PLACEHOLDER_PATTERN",
    "DEFAULT_MAX_PASSES",
    "Namespace",
    "OverrideEnv",
    "Placeholder",
    "ResolutionContext",
    "find_placeholders",
    "lookup_variable",
    "iter_passes",
    "resolve",
]


# Pattern matches: ${namespace:name}, ${namespace.name} or ${name}
# Groups: (1) namespace (optional), (2) separator (optional), (3) name
PLACEHOLDER_PATTERN = re.compile(r"\$\{(env|config|workspaceFolder)?(\.|:)?(.*?)\}")

DEFAULT_MAX_PASSES = 32

OverrideEnv = Mapping[str, Union[str, Sequence[str]]]


class Namespace(str, enum.Enum):
    """Source a placeholder's value is drawn from."""
    ENV = "env"
    CONFIG = "config"
    WORKSPACE_FOLDER = "workspaceFolder"


class ConfigurationLookup(Protocol):
    def get(self, key: str, default: Any = None) -> Any:
        ...


class _NoConfiguration:
    def get(self, key: str, default: Any = None) -> Any:
        return default


@dataclass(frozen=True)
class ResolutionContext:
    """Snapshot of everything a placeholder can refer to.

    Attributes:
        environ: Process environment
        configuration: User/workspace configuration store
        folders: Workspace roots, in order; the first one is the default
        platform: sys.platform value deciding where the home directory comes from
    """

    environ: Mapping[str, str] = field(default_factory=dict)
    configuration: ConfigurationLookup = field(default_factory=_NoConfiguration)
    folders: Sequence["WorkspaceFolder"] = ()
    platform: str = sys.platform

    @classmethod
    def from_process(cls) -> "ResolutionContext":
        """Context with the live process environment and nothing else."""
        return cls(environ=os.environ)

    def home_directory(self) -> Optional[str]:
        name = "USERPROFILE" if self.platform == "win32" else "HOME"
        return self.environ.get(name) or None


class Placeholder(NamedTuple):
    start: int
    end: int
    namespace: Namespace
    name: str


def find_placeholders(text: str) -> list[Placeholder]:
    """List the placeholders in text, left to right.

    Positions are character offsets into text; end is exclusive.
    """
    return [
        Placeholder(m.start(), m.end(), Namespace(m.group(1) or Namespace.ENV.value), m.group(3))
        for m in PLACEHOLDER_PATTERN.finditer(text)
    ]


def lookup_variable(
    namespace: str,
    name: str,
    context: ResolutionContext,
    override_env: Optional[OverrideEnv] = None,
    whole_input: bool = False,
) -> Optional[str]:
    """Look up the replacement for a single placeholder.

    Args:
        namespace: "env", "config" or "workspaceFolder"
        name: Variable name (may be empty)
        context: Environment, configuration and folders to look in
        override_env: Values taking precedence over context.environ
        whole_input: True when the placeholder is the entire template, which
                     allows list values from override_env (joined with ";")

    Returns:
        The replacement text, or None if the variable is undefined

    Raises:
        AssertionError: If namespace is not one of the three known tags
    """
    if namespace == Namespace.ENV:
        value = None
        if override_env is not None:
            override = override_env.get(name)
            if is_string(override):
                value = override
            elif whole_input and is_array_of_string(override):
                value = ";".join(override)
        if value is None:
            value = context.environ.get(name)
        return value

    if namespace == Namespace.CONFIG:
        value = context.configuration.get(name)
        # Sections, lists and numbers are not substitutable
        return value if is_string(value) else None

    if namespace == Namespace.WORKSPACE_FOLDER:
        if name:
            wanted = name.lower()
            folder = next((f for f in context.folders if f.name.lower() == wanted), None)
        else:
            folder = context.folders[0] if context.folders else None
        return str(folder.path) if folder is not None else None

    raise AssertionError(f"unknown namespace matched: {namespace!r}")


def iter_passes(
    text: str,
    override_env: Optional[OverrideEnv] = None,
    *,
    context: Optional[ResolutionContext] = None,
    max_passes: int = DEFAULT_MAX_PASSES,
) -> Iterator[str]:
    """Yield the result of each substitution pass over text.

    Iteration stops after the first pass whose result was already seen
    (either text itself, meaning a fixed point, or an earlier pass, meaning
    a cycle), or after max_passes passes.

    Raises:
        ValueError: If max_passes is less than 1
    """
    if max_passes < 1:
        raise ValueError(f"max_passes must be at least 1, got {max_passes}")
    if context is None:
        context = ResolutionContext.from_process()

    def replace_match(match: re.Match) -> str:
        # Historically, a placeholder without a namespace is an environment variable
        namespace = match.group(1) or Namespace.ENV.value
        value = lookup_variable(
            namespace,
            match.group(3),
            context,
            override_env,
            whole_input=match.group(0) == text,
        )
        return value if value is not None else match.group(0)

    seen = {text}
    current = text
    for _ in range(max_passes):
        current = PLACEHOLDER_PATTERN.sub(replace_match, current)
        yield current
        if current in seen:
            return
        seen.add(current)


def resolve(
    text: Optional[str],
    override_env: Optional[OverrideEnv] = None,
    *,
    context: Optional[ResolutionContext] = None,
    max_passes: int = DEFAULT_MAX_PASSES,
) -> Optional[str]:
    """Expand every placeholder in text, then a leading "~".

    Args:
        text: Template string, or None for "not set"
        override_env: Variables taking precedence over the process environment
                      for the env namespace. A list value is only used (joined
                      with ";") when the template is exactly that placeholder.
        context: Environment, configuration and workspace folders to resolve
                 against. Defaults to the process environment only.
        max_passes: Upper bound on substitution passes

    Returns:
        The resolved string, or None if text is None. An empty string is
        returned unchanged.

    Example:
        >>> resolve("${env:CXX}", {"CXX": "/usr/bin/g++"})
        '/usr/bin/g++'
    """
    if text is None:
        return None
    if not text:
        return text
    if context is None:
        context = ResolutionContext.from_process()

    result = text
    for result in iter_passes(text, override_env, context=context, max_passes=max_passes):
        pass

    if result.startswith("~"):
        home = context.home_directory()
        if home:
            result = home + result[1:]

    return result
