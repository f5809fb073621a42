"""Host model: workspace folders, layered configuration and change notification.

Configuration values come from layers, lowest precedence first: machine,
user, project (the three settings files) and memory (values set at runtime
through Configuration.update()). Nested mappings are flattened to dotted keys,
so ``{"CMakeLite": {"override": {"cStandard": "c11"}}}`` and
``{"CMakeLite.override.cStandard": "c11"}`` are the same setting.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence

from cmakelite.config import load_config_layers
from cmakelite.events import EventEmitter, Subscription
from cmakelite.substitution import ResolutionContext

__all__ = [
    "LAYERS",
    "WorkspaceFolder",
    "ConfigurationChangeEvent",
    "Configuration",
    "ConfigurationSection",
    "Workspace",
    "flatten_settings",
    "lookup_flat",
]

LAYERS = ("machine", "user", "project", "memory")

_MISSING = object()


def flatten_settings(data: Mapping[str, Any], prefix: str = "") -> dict[str, Any]:
    """Flatten nested mappings into dotted keys.

    None values are dropped, so an empty YAML entry does not hide a value
    from a lower layer.
    """
    flat: dict[str, Any] = {}
    for key, value in data.items():
        full_key = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, Mapping):
            flat.update(flatten_settings(value, full_key))
        elif value is not None:
            flat[full_key] = value
    return flat


def _unflatten(flat: Mapping[str, Any]) -> dict[str, Any]:
    nested: dict[str, Any] = {}
    for key, value in flat.items():
        node = nested
        *parents, leaf = key.split(".")
        for part in parents:
            child = node.get(part)
            if not isinstance(child, dict):
                child = node[part] = {}
            node = child
        node[leaf] = value
    return nested


def lookup_flat(flat: Mapping[str, Any], key: str, default: Any = None) -> Any:
    """Look up key in a flattened mapping.

    Returns the leaf value if key names a setting, a nested dict of its
    children if key names a section, otherwise default.
    """
    if key in flat:
        return flat[key]
    if not key:
        return _unflatten(flat) if flat else default
    section_prefix = key + "."
    children = {k[len(section_prefix):]: v for k, v in flat.items() if k.startswith(section_prefix)}
    return _unflatten(children) if children else default


@dataclass(frozen=True)
class WorkspaceFolder:
    """A named top-level folder of the workspace."""

    name: str
    path: Path

    @classmethod
    def from_path(cls, path: Path) -> "WorkspaceFolder":
        resolved = Path(path).resolve()
        return cls(name=resolved.name or str(resolved), path=resolved)


@dataclass(frozen=True)
class ConfigurationChangeEvent:
    """Describes which settings changed."""

    affected_keys: frozenset[str]

    def affects_configuration(self, section: str) -> bool:
        """Check whether a change touches section.

        True if an affected key is the section itself, lies inside it, or is
        one of its parent sections.
        """
        for key in self.affected_keys:
            if key == section or key.startswith(section + ".") or section.startswith(key + "."):
                return True
        return False


class ConfigurationSection:
    """Read-only view of the settings under a dotted prefix."""

    def __init__(self, configuration: "Configuration", prefix: str) -> None:
        self._configuration = configuration
        self.prefix = prefix

    def get(self, key: str, default: Any = None) -> Any:
        return self._configuration.get(f"{self.prefix}.{key}", default)


class Configuration:
    """Layered key/value settings store."""

    def __init__(self, layers: Optional[Mapping[str, Mapping[str, Any]]] = None) -> None:
        self._layers: dict[str, dict[str, Any]] = {name: {} for name in LAYERS}
        self._effective: dict[str, Any] = {}
        self._on_did_change: EventEmitter[ConfigurationChangeEvent] = EventEmitter()
        if layers:
            self.set_layers(layers)

    @property
    def on_did_change(self) -> Callable[[Callable[[ConfigurationChangeEvent], None]], Subscription]:
        return self._on_did_change.event

    def get(self, key: str, default: Any = None) -> Any:
        return lookup_flat(self._effective, key, default)

    def section(self, prefix: str) -> ConfigurationSection:
        return ConfigurationSection(self, prefix)

    def keys(self) -> list[str]:
        """Sorted dotted keys of every setting that has a value."""
        return sorted(self._effective)

    def layer(self, name: str) -> dict[str, Any]:
        """Flattened copy of a single layer."""
        self._check_layer(name)
        return dict(self._layers[name])

    def set_layer(self, name: str, data: Mapping[str, Any]) -> None:
        self.set_layers({name: data})

    def set_layers(self, layers: Mapping[str, Mapping[str, Any]]) -> None:
        """Replace one or more layers, firing a single change event.

        No event fires if no effective value changed.

        Raises:
            KeyError: If a layer name is unknown
        """
        for name in layers:
            self._check_layer(name)
        for name, data in layers.items():
            self._layers[name] = flatten_settings(data)
        self._recompute()

    def update(self, key: str, value: Any) -> None:
        """Set key in the memory layer. A value of None removes it."""
        memory = {
            k: v for k, v in self._layers["memory"].items()
            if k != key and not k.startswith(key + ".")
        }
        if isinstance(value, Mapping):
            memory.update(flatten_settings(value, key))
        elif value is not None:
            memory[key] = value
        self._layers["memory"] = memory
        self._recompute()

    def dispose(self) -> None:
        self._on_did_change.dispose()

    def _check_layer(self, name: str) -> None:
        if name not in self._layers:
            raise KeyError(f"Unknown configuration layer '{name}'. Valid layers: {', '.join(LAYERS)}")

    def _recompute(self) -> None:
        previous = self._effective
        effective: dict[str, Any] = {}
        for name in LAYERS:
            effective.update(self._layers[name])
        self._effective = effective

        changed = frozenset(
            key for key in previous.keys() | effective.keys()
            if previous.get(key, _MISSING) != effective.get(key, _MISSING)
        )
        if changed:
            self._on_did_change.fire(ConfigurationChangeEvent(changed))


class Workspace:
    """Workspace folders, settings and environment seen by the resolver."""

    def __init__(
        self,
        folders: Iterable[WorkspaceFolder] = (),
        configuration: Optional[Configuration] = None,
        environ: Optional[Mapping[str, str]] = None,
        platform: Optional[str] = None,
    ) -> None:
        self.folders: tuple[WorkspaceFolder, ...] = tuple(folders)
        self.configuration = configuration if configuration is not None else Configuration()
        self.environ = environ if environ is not None else os.environ
        self.platform = platform or sys.platform

    @classmethod
    def load(
        cls,
        roots: Sequence[Path],
        environ: Optional[Mapping[str, str]] = None,
    ) -> "Workspace":
        """Create a workspace for roots and read its settings files.

        The project settings file is searched for from the first root.

        Raises:
            ConfigError: If a settings file is invalid
        """
        workspace = cls([WorkspaceFolder.from_path(root) for root in roots], environ=environ)
        workspace.reload()
        return workspace

    @property
    def on_did_change_configuration(self) -> Callable[[Callable[[ConfigurationChangeEvent], None]], Subscription]:
        return self.configuration.on_did_change

    @property
    def project_dir(self) -> Optional[Path]:
        return self.folders[0].path if self.folders else None

    def reload(self) -> None:
        """Re-read the settings files, firing one change event for whatever differs.

        Raises:
            ConfigError: If a settings file is invalid. The loaded settings are
                         left as they were.
        """
        self.configuration.set_layers(load_config_layers(self.project_dir))

    def resolution_context(self) -> ResolutionContext:
        return ResolutionContext(
            environ=self.environ,
            configuration=self.configuration,
            folders=self.folders,
            platform=self.platform,
        )

    def dispose(self) -> None:
        self.configuration.dispose()
