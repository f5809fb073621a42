"""CMake Lite - variable resolution and override settings for C/C++ editor tooling."""

__version__ = "0.1.0"

from cmakelite.config import ConfigError
from cmakelite.events import EventEmitter, Subscription
from cmakelite.settings import (
    CppStandard,
    CStandard,
    FilterPatternError,
    IntelliSenseMode,
    OverrideSettings,
    Settings,
)
from cmakelite.substitution import Namespace, ResolutionContext, iter_passes, resolve
from cmakelite.workspace import Configuration, ConfigurationChangeEvent, Workspace, WorkspaceFolder

__all__ = [
    "__version__",
    "ConfigError",
    "EventEmitter",
    "Subscription",
    "CppStandard",
    "CStandard",
    "FilterPatternError",
    "IntelliSenseMode",
    "OverrideSettings",
    "Settings",
    "Namespace",
    "ResolutionContext",
    "iter_passes",
    "resolve",
    "Configuration",
    "ConfigurationChangeEvent",
    "Workspace",
    "WorkspaceFolder",
]
