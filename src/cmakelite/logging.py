"""Logging infrastructure for CMake Lite.

Components accept an optional Logger and emit diagnostics through it; the CLI
supplies a ConsoleLogger, tests supply a stub.
"""

from __future__ import annotations

import enum
from abc import ABC, abstractmethod


class LogLevel(enum.Enum):
    """Log verbosity levels for cmakelite diagnostic messages.

    Lower numeric values represent higher severity / less verbosity.
    """
    FATAL = 0  # Only unrecoverable errors
    ERROR = 1  # Fatal errors plus configuration errors (bad filter patterns)
    WARN = 2   # Errors plus ignored settings values
    INFO = 3   # Warnings plus settings updates (default)
    DEBUG = 4  # Info plus resolved values and full override records
    TRACE = 5  # Debug plus individual resolution passes


class Logger(ABC):
    """Abstract leveled logger."""

    @abstractmethod
    def log(self, level: LogLevel = LogLevel.INFO, *args, **kwargs) -> None:
        """Log a message at the given level."""

    @abstractmethod
    def push_level(self, level: LogLevel) -> None:
        """Temporarily switch to a new log level."""

    @abstractmethod
    def pop_level(self) -> LogLevel:
        """Return to the previous log level."""

    def fatal(self, *args, **kwargs) -> None:
        self.log(LogLevel.FATAL, *args, **kwargs)

    def error(self, *args, **kwargs) -> None:
        self.log(LogLevel.ERROR, *args, **kwargs)

    def warn(self, *args, **kwargs) -> None:
        self.log(LogLevel.WARN, *args, **kwargs)

    def info(self, *args, **kwargs) -> None:
        self.log(LogLevel.INFO, *args, **kwargs)

    def debug(self, *args, **kwargs) -> None:
        self.log(LogLevel.DEBUG, *args, **kwargs)

    def trace(self, *args, **kwargs) -> None:
        self.log(LogLevel.TRACE, *args, **kwargs)


def parse_log_level(name: str) -> LogLevel:
    """Convert a CLI level name (e.g. "debug") to a LogLevel.

    Raises:
        ValueError: If the name is not a known level
    """
    try:
        return LogLevel[name.upper()]
    except KeyError:
        valid = ", ".join(level.name.lower() for level in LogLevel)
        raise ValueError(f"Invalid log level '{name}'. Valid levels: {valid}") from None
