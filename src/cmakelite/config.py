"""
Settings file discovery and parsing.

Settings are read from up to three YAML files, lowest precedence first:
machine (site config dir), user (user config dir) and project
(.cmakelite.yml found by walking up from the project directory).
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import platformdirs
import yaml

__all__ = [
    "PROJECT_CONFIG_NAME",
    "get_user_config_path",
    "get_machine_config_path",
    "find_project_config",
    "parse_config_file",
    "load_config_layers",
    "ConfigError",
]

PROJECT_CONFIG_NAME = ".cmakelite.yml"


def get_machine_config_path() -> Path:
    """
    Get the path to the machine-level (system-wide) settings file.

    Uses platformdirs to determine the appropriate site config directory
    for the current platform, then appends 'cmakelite/settings.yml'.

    Returns:
        Path to the machine settings file (may not exist)
    """
    config_dir = Path(platformdirs.site_config_dir("cmakelite"))
    return config_dir / "settings.yml"


def get_user_config_path() -> Path:
    """
    Get the path to the user-level settings file.

    Returns:
        Path to the user settings file (may not exist)

    Example:
        >>> user_config = get_user_config_path()
        >>> if user_config.exists():
        ...     data = parse_config_file(user_config)
    """
    config_dir: Path = Path(platformdirs.user_config_dir("cmakelite"))
    return config_dir / "settings.yml"


def find_project_config(start_dir: Path) -> Optional[Path]:
    """
    Walk up the directory tree from start_dir to find .cmakelite.yml.

    Args:
        start_dir: Directory to start searching from

    Returns:
        Path to .cmakelite.yml if found, None otherwise
    """
    try:
        current = start_dir.resolve()
    except (OSError, RuntimeError):
        # resolve() raises OSError on invalid paths, RuntimeError on symlink loops
        return None

    max_depth = 100
    for _ in range(max_depth):
        try:
            config_path = current / PROJECT_CONFIG_NAME
            if config_path.exists():
                return config_path
        except OSError:
            # Unreadable directory, keep walking up
            pass

        parent = current.parent
        if parent == current:
            break
        current = parent

    return None


class ConfigError(Exception):
    """
    Raised when settings are invalid.
    """

    pass


def parse_config_file(path: Path) -> dict[str, Any]:
    """
    Parse a cmakelite settings file.

    Keys may be nested mappings or dotted paths; both forms address the
    same setting:

        ```yaml
        CMakeLite:
          override:
            cppStandard: c++17
        CMakeLite.override.compilerPath: ${env:CXX}
        ```

    Args:
        path: Path to the settings file

    Returns:
        The top-level mapping. Empty if the file is missing or empty.

    Raises:
        ConfigError: If the file cannot be read, is malformed YAML, or its
                     top level is not a mapping
    """
    if not path.exists():
        return {}

    try:
        with open(path, "r") as f:
            content = f.read()
    except OSError as e:
        raise ConfigError(f"Error reading settings file '{path}': {e}") from e

    if not content.strip():
        return {}

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(f"Error parsing YAML in settings file '{path}': {e}") from e

    if data is None:
        return {}

    if not isinstance(data, dict):
        raise ConfigError(
            f"Error in settings file '{path}': top level must be a mapping"
        )

    for key in data:
        if not isinstance(key, str):
            raise ConfigError(
                f"Error in settings file '{path}': keys must be strings, found {key!r}"
            )

    return data


def load_config_layers(project_dir: Optional[Path]) -> dict[str, dict[str, Any]]:
    """
    Read every settings file that applies to project_dir.

    Args:
        project_dir: Directory to search for a project settings file, or
                     None to skip the project layer

    Returns:
        Mapping of layer name ("machine", "user", "project") to file contents

    Raises:
        ConfigError: If any of the files is invalid
    """
    project_config = find_project_config(project_dir) if project_dir is not None else None
    return {
        "machine": parse_config_file(get_machine_config_path()),
        "user": parse_config_file(get_user_config_path()),
        "project": parse_config_file(project_config) if project_config else {},
    }
