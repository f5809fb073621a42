"""Override settings handed to the C/C++ tooling.

Settings reads the ``CMakeLite.override`` configuration section, validates
and resolves it into an immutable OverrideSettings record, and notifies
subscribers each time it rebuilds that record.
"""

from __future__ import annotations

import enum
import json
import re
from dataclasses import dataclass
from typing import Any, Callable, Optional, Type, TypeVar

from rich.markup import escape

from cmakelite.config import ConfigError
from cmakelite.events import EventEmitter, Subscription
from cmakelite.logging import Logger
from cmakelite.substitution import resolve
from cmakelite.values import ConfigValueError, narrow_enum, narrow_optional_string
from cmakelite.workspace import ConfigurationChangeEvent, ConfigurationSection, Workspace

__all__ = [
    "SECTION",
    "OVERRIDE_SECTION",
    "IntelliSenseMode",
    "CppStandard",
    "CStandard",
    "OverrideSettings",
    "FilterPatternError",
    "Settings",
]

SECTION = "CMakeLite"
OVERRIDE_SECTION = f"{SECTION}.override"

E = TypeVar("E", bound=enum.Enum)


class IntelliSenseMode(str, enum.Enum):
    MSVC_X86 = "msvc-x86"
    MSVC_X64 = "msvc-x64"
    GCC_X86 = "gcc-x86"
    GCC_X64 = "gcc-x64"
    CLANG_X86 = "clang-x86"
    CLANG_X64 = "clang-x64"


class CppStandard(str, enum.Enum):
    CPP98 = "c++98"
    CPP03 = "c++03"
    CPP11 = "c++11"
    CPP14 = "c++14"
    CPP17 = "c++17"
    CPP20 = "c++20"


class CStandard(str, enum.Enum):
    C89 = "c89"
    C99 = "c99"
    C11 = "c11"


@dataclass(frozen=True)
class OverrideSettings:
    """Validated override values. None means "not overridden"."""

    intelli_sense_mode: Optional[IntelliSenseMode] = None
    cpp_standard: Optional[CppStandard] = None
    c_standard: Optional[CStandard] = None
    compiler_path: Optional[str] = None
    filter_compiler_args: Optional[re.Pattern] = None

    def to_dict(self) -> dict[str, Optional[str]]:
        """Render the record with the setting names used in settings files."""
        return {
            "intelliSenseMode": _enum_value(self.intelli_sense_mode),
            "cppStandard": _enum_value(self.cpp_standard),
            "cStandard": _enum_value(self.c_standard),
            "compilerPath": self.compiler_path,
            "filterCompilerArgs": (
                self.filter_compiler_args.pattern if self.filter_compiler_args is not None else None
            ),
        }


def _enum_value(member: Optional[enum.Enum]) -> Optional[str]:
    return member.value if member is not None else None


class FilterPatternError(ConfigError):
    """Raised when filterCompilerArgs is not a valid regular expression."""

    def __init__(self, pattern: str, error: re.error) -> None:
        self.pattern = pattern
        self.error = error
        super().__init__(
            f"Setting '{OVERRIDE_SECTION}.filterCompilerArgs' is not a valid "
            f"regular expression: {pattern!r}: {error}"
        )


class Settings:
    """Live override settings for a workspace.

    The record is rebuilt by update(), which runs once on construction and
    again whenever a configuration change touches the ``CMakeLite`` section.

    Example:
        >>> with Settings(workspace) as settings:
        ...     subscription = settings.on_change(lambda override: print(override.cpp_standard.value))
        ...     workspace.configuration.update("CMakeLite.override.cppStandard", "c++17")
        c++17
    """

    def __init__(self, workspace: Workspace, logger: Optional[Logger] = None) -> None:
        """Initialize settings and read the current configuration.

        Args:
            workspace: Workspace whose configuration is read and watched
            logger: Optional logger for diagnostic output

        Raises:
            FilterPatternError: If the configured filter pattern is invalid.
                                Nothing stays subscribed in that case.
        """
        self._workspace = workspace
        self.logger = logger
        self._override = OverrideSettings()
        self._on_change: EventEmitter[OverrideSettings] = EventEmitter()
        self._on_error: EventEmitter[ConfigError] = EventEmitter()
        self._updating = False
        self._update_pending = False
        self._disposed = False
        self._configuration_subscription = workspace.on_did_change_configuration(
            self._on_did_change_configuration
        )

        try:
            self.update()
        except BaseException:
            self.dispose()
            raise

    @property
    def current(self) -> OverrideSettings:
        return self._override

    @property
    def on_change(self) -> Callable[[Callable[[OverrideSettings], None]], Subscription]:
        """Subscribe to new records, e.g. ``settings.on_change(handler)``."""
        return self._on_change.event

    @property
    def on_error(self) -> Callable[[Callable[[ConfigError], None]], Subscription]:
        """Subscribe to failed updates triggered by configuration changes.

        Also receives failures of updates queued while subscribers were being
        notified. Failures of an explicit update() call are raised to the
        caller instead.
        """
        return self._on_error.event

    @property
    def disposed(self) -> bool:
        return self._disposed

    def update(self) -> None:
        """Rebuild the override record and notify subscribers.

        The new record replaces the old one before any subscriber runs. An
        update() requested by a subscriber runs once the current one has
        finished notifying; if that queued read fails, the error goes to the
        logger and on_error subscribers. After dispose() this does nothing.

        Raises:
            FilterPatternError: If filterCompilerArgs does not compile. The
                                previous record stays current and no
                                notification fires.
        """
        if self._disposed:
            return
        if self._updating:
            self._update_pending = True
            return

        self._updating = True
        self._update_pending = True
        queued = False
        try:
            while self._update_pending and not self._disposed:
                self._update_pending = False
                try:
                    override = self._read_override()
                except ConfigError as e:
                    # A queued request has no caller left to raise to
                    if not queued:
                        raise
                    self._report_error(e)
                    continue
                finally:
                    queued = True
                self._override = override
                if self.logger:
                    self.logger.debug(json.dumps(override.to_dict(), indent=4), markup=False)
                    self.logger.debug(
                        f"Notifying {self._on_change.subscriber_count()} settings subscriber(s)"
                    )
                self._on_change.fire(override)
        finally:
            self._updating = False
            self._update_pending = False

    def dispose(self) -> None:
        """Stop watching the configuration and drop all subscribers."""
        if self._disposed:
            return
        self._disposed = True
        self._configuration_subscription.dispose()
        self._on_change.dispose()
        self._on_error.dispose()

    def __enter__(self) -> "Settings":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.dispose()

    def _read_override(self) -> OverrideSettings:
        if self.logger:
            self.logger.info("Updating settings")
        section = self._workspace.configuration.section(OVERRIDE_SECTION)
        return OverrideSettings(
            intelli_sense_mode=self._read_enum(section, "intelliSenseMode", IntelliSenseMode),
            cpp_standard=self._read_enum(section, "cppStandard", CppStandard),
            c_standard=self._read_enum(section, "cStandard", CStandard),
            compiler_path=self._read_compiler_path(section),
            filter_compiler_args=self._read_filter_compiler_args(section),
        )

    def _read_string(self, section: ConfigurationSection, key: str) -> Optional[str]:
        try:
            return narrow_optional_string(f"{section.prefix}.{key}", section.get(key))
        except ConfigValueError as e:
            self._warn_ignored(e)
            return None

    def _read_enum(self, section: ConfigurationSection, key: str, enum_type: Type[E]) -> Optional[E]:
        try:
            return narrow_enum(f"{section.prefix}.{key}", section.get(key), enum_type)
        except ConfigValueError as e:
            self._warn_ignored(e)
            return None

    def _read_compiler_path(self, section: ConfigurationSection) -> Optional[str]:
        raw = self._read_string(section, "compilerPath")
        resolved = resolve(raw, context=self._workspace.resolution_context())
        if self.logger and raw is not None and resolved != raw:
            self.logger.debug(f"Resolved compilerPath '{raw}' to '{resolved}'", markup=False)
        return resolved

    def _read_filter_compiler_args(self, section: ConfigurationSection) -> Optional[re.Pattern]:
        raw = self._read_string(section, "filterCompilerArgs")
        if raw is None:
            return None
        try:
            return re.compile(raw)
        except re.error as e:
            raise FilterPatternError(raw, e) from e

    def _warn_ignored(self, error: ConfigValueError) -> None:
        if self.logger:
            self.logger.warn(f"Ignoring invalid setting: {escape(str(error))}")

    def _on_did_change_configuration(self, event: ConfigurationChangeEvent) -> None:
        if self._disposed or not event.affects_configuration(SECTION):
            return
        try:
            self.update()
        except ConfigError as e:
            self._report_error(e)

    def _report_error(self, error: ConfigError) -> None:
        if self.logger:
            self.logger.error(escape(str(error)))
        self._on_error.fire(error)
