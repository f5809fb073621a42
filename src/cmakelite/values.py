"""Narrowing of loosely-typed configuration values.

The configuration store hands back whatever the settings files contain. Every
value is classified into one of four shapes before use, and the narrowing
functions turn a shape into a typed result or raise ConfigValueError.
"""

from __future__ import annotations

import enum
from typing import Any, Optional, Type, TypeVar

from cmakelite.config import ConfigError

E = TypeVar("E", bound=enum.Enum)

__all__ = [
    "ValueShape",
    "ConfigValueError",
    "classify",
    "is_string",
    "is_array_of_string",
    "narrow_optional_string",
    "narrow_enum",
]


class ValueShape(enum.Enum):
    ABSENT = "absent"
    STRING = "string"
    STRING_LIST = "list of strings"
    OTHER = "other"


class ConfigValueError(ConfigError):
    """Raised when a configuration value has the wrong shape."""

    def __init__(self, key: str, expected: str, value: Any) -> None:
        self.key = key
        self.expected = expected
        self.value = value
        super().__init__(
            f"Setting '{key}' must be {expected}, got {_describe(value)}"
        )


def _describe(value: Any) -> str:
    shape = classify(value)
    if shape is ValueShape.OTHER:
        return f"{type(value).__name__} {value!r}"
    return f"{shape.value} {value!r}"


def is_string(value: Any) -> bool:
    return isinstance(value, str)


def is_array_of_string(value: Any) -> bool:
    return isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value)


def classify(value: Any) -> ValueShape:
    """Classify a raw configuration value.

    Note that an empty list counts as a list of strings.
    """
    if value is None:
        return ValueShape.ABSENT
    if is_string(value):
        return ValueShape.STRING
    if is_array_of_string(value):
        return ValueShape.STRING_LIST
    return ValueShape.OTHER


def narrow_optional_string(key: str, value: Any) -> Optional[str]:
    """Return value as a string, or None if absent.

    Raises:
        ConfigValueError: If value is present but not a string
    """
    shape = classify(value)
    if shape is ValueShape.ABSENT:
        return None
    if shape is ValueShape.STRING:
        return value
    raise ConfigValueError(key, "a string", value)


def narrow_enum(key: str, value: Any, enum_type: Type[E]) -> Optional[E]:
    """Return the enum member whose value equals value, or None if absent.

    Raises:
        ConfigValueError: If value is not a string or names no member
    """
    text = narrow_optional_string(key, value)
    if text is None:
        return None
    try:
        return enum_type(text)
    except ValueError:
        allowed = ", ".join(repr(member.value) for member in enum_type)
        raise ConfigValueError(key, f"one of {allowed}", value) from None
