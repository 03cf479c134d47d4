"""YAML configuration loading for cfgsync.

Provides safe YAML file loading using ``yaml.safe_load`` to prevent
arbitrary code execution from untrusted YAML content. Used by
[SyncCoordinator.from_yaml()][cfgsync.sync.coordinator.SyncCoordinator.from_yaml]
and the command-line runner.

Examples:
    ```python
    from cfgsync.core.yaml import load_yaml

    config = load_yaml("config/cfgsync.yaml")
    ```
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigurationError


def load_yaml(config_path: str | Path) -> dict[str, Any]:
    """Load and parse a YAML configuration file.

    Uses ``yaml.safe_load`` which only supports standard YAML types
    (strings, numbers, lists, dicts) and prevents arbitrary Python
    object instantiation from YAML tags.

    Args:
        config_path: Path to the YAML file (absolute or relative).

    Returns:
        Parsed configuration as a nested dictionary. Returns an empty dict
        if the file exists but contains no data.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigurationError: If the file is not valid YAML or its top level
            is not a mapping.

    Warning:
        This function does not validate the structure of the returned
        dictionary. Callers pass the result to
        [SyncConfig][cfgsync.sync.configs.SyncConfig] for schema validation.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with path.open(encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Config file {config_path} must contain a mapping, got {type(data).__name__}"
        )
    return data
