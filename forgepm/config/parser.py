"""Configuration file parsing utilities."""

import json
import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from forgepm.config.schemas import Addon, ProjectConfig

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "forgepm.yaml"


class ConfigError(Exception):
    """Error loading or parsing configuration."""

    def __init__(self, message: str, path: Path | None = None):
        self.path = path
        super().__init__(message)


def load_json(path: Path) -> Any:
    """Load and parse a JSON file.

    Args:
        path: Path to the JSON file

    Returns:
        Parsed JSON document

    Raises:
        ConfigError: If the file cannot be read or parsed
    """
    if not path.exists():
        raise ConfigError(f"File not found: {path}", path)

    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {path}: {e}", path) from e
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}", path) from e


def load_yaml(path: Path) -> Any:
    """Load and parse a YAML file.

    Args:
        path: Path to the YAML file

    Returns:
        Parsed YAML document, or an empty dict for an empty file

    Raises:
        ConfigError: If the file cannot be read or parsed
    """
    if not path.exists():
        raise ConfigError(f"File not found: {path}", path)

    try:
        with open(path, encoding="utf-8") as f:
            result = yaml.safe_load(f)
            if result is None:
                return {}
            return result
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}", path) from e
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}", path) from e


def save_yaml(path: Path, data: dict[str, Any]) -> None:
    """Save data to a YAML file.

    Args:
        path: Path to write to
        data: Data to serialize
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False, allow_unicode=True)


def load_project_config(project_root: Path) -> ProjectConfig:
    """Load project configuration from forgepm.yaml.

    Args:
        project_root: Path to the project root directory

    Returns:
        Parsed ProjectConfig

    Raises:
        ConfigError: If the file is missing or invalid
    """
    config_path = project_root / CONFIG_FILE_NAME
    data = load_yaml(config_path)
    if not isinstance(data, dict):
        raise ConfigError(f"YAML file must contain a mapping: {config_path}", config_path)

    try:
        return ProjectConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid project config: {e}", config_path) from e


def save_project_config(project_root: Path, config: ProjectConfig) -> None:
    """Save project configuration to forgepm.yaml."""
    config_path = project_root / CONFIG_FILE_NAME
    save_yaml(config_path, config.model_dump(exclude_none=True))


def load_addon_manifest(path: Path) -> list[Addon]:
    """Load addons from a catalog manifest.

    The manifest is JSON or YAML (picked by suffix) and holds either a bare
    list of addons or a mapping with an ``addons`` list. Entries that fail
    validation are skipped with a warning.

    Args:
        path: Path to the manifest file

    Returns:
        Addons in manifest order

    Raises:
        ConfigError: If the file cannot be read or has no addon list
    """
    data = load_yaml(path) if path.suffix in (".yaml", ".yml") else load_json(path)

    entries = data.get("addons") if isinstance(data, dict) else data
    if not isinstance(entries, list):
        raise ConfigError(f"Manifest does not contain an addons list: {path}", path)

    addons: list[Addon] = []
    for entry in entries:
        try:
            addons.append(Addon.model_validate(entry))
        except ValidationError as e:
            entry_id = entry.get("id") if isinstance(entry, dict) else None
            logger.warning("Skipping invalid addon %s in %s: %s", entry_id, path, e)
    return addons


def find_project_root(start_path: Path | None = None) -> Path | None:
    """Find the project root by looking for forgepm.yaml.

    Args:
        start_path: Directory to start searching from (defaults to cwd)

    Returns:
        Path to project root, or None if not found
    """
    if start_path is None:
        start_path = Path.cwd()

    current = start_path.resolve()
    while current != current.parent:
        if (current / CONFIG_FILE_NAME).exists():
            return current
        current = current.parent

    if (current / CONFIG_FILE_NAME).exists():
        return current

    return None
