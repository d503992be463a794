"""Configuration file parsing utilities."""

import json
from pathlib import Path
from typing import Any

import yaml
from pydantic import TypeAdapter, ValidationError

from extsync.config.schemas import ExtensionManifest, ExtensionRecord, SyncConfig
from extsync.utils.filesystem import ensure_directory

CONFIG_FILENAME = "extsync.yaml"

_extension_list = TypeAdapter(list[ExtensionRecord])


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


def save_json(path: Path, data: Any, indent: int | None = 2) -> None:
    """Save data to a JSON file.

    Args:
        path: Path to write to
        data: Data to serialize
        indent: JSON indentation level, or None for compact output
    """
    ensure_directory(path.parent)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=indent, default=str)
        if indent is not None:
            f.write("\n")


def load_yaml(path: Path) -> dict[str, Any]:
    """Load and parse a YAML file.

    Args:
        path: Path to the YAML file

    Returns:
        Parsed YAML as a dictionary

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
            if not isinstance(result, dict):
                raise ConfigError(f"YAML file must contain a mapping: {path}", path)
            return result
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}", path) from e
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}", path) from e


def load_sync_config(config_path: Path | None = None) -> SyncConfig:
    """Load sync configuration.

    Uses ``config_path`` when given, otherwise ``extsync.yaml`` in the current
    directory. Falls back to defaults when no file is found.

    Args:
        config_path: Explicit configuration file

    Returns:
        Parsed SyncConfig

    Raises:
        ConfigError: If an explicit file is missing, or any file is invalid
    """
    if config_path is None:
        candidate = Path.cwd() / CONFIG_FILENAME
        if not candidate.exists():
            return SyncConfig()
        config_path = candidate

    data = load_yaml(config_path)

    try:
        return SyncConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid sync config: {e}", config_path) from e


def load_desired_extensions(path: Path) -> list[ExtensionRecord]:
    """Load a desired extension list from a JSON file.

    Args:
        path: Path to a JSON array of extension objects

    Returns:
        Parsed extension records, in file order

    Raises:
        ConfigError: If the file is missing or invalid
    """
    data = load_json(path)
    if not isinstance(data, list):
        raise ConfigError(f"Extension list must be a JSON array: {path}", path)

    try:
        return _extension_list.validate_python(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid extension list: {e}", path) from e


def save_extension_list(path: Path, extensions: list[ExtensionRecord]) -> None:
    """Save extension records as a desired-list JSON file.

    Args:
        path: Path to write to
        extensions: Records to save
    """
    data = [ext.model_dump(by_alias=True, exclude_none=True) for ext in extensions]
    save_json(path, data)


def load_extension_manifest(extension_dir: Path) -> ExtensionManifest:
    """Load an installed extension's package.json.

    Args:
        extension_dir: Path to the extension's install directory

    Returns:
        Parsed ExtensionManifest

    Raises:
        ConfigError: If the file is missing or invalid
    """
    manifest_path = extension_dir / "package.json"
    data = load_json(manifest_path)
    if not isinstance(data, dict):
        raise ConfigError(f"Extension manifest must be a JSON object: {manifest_path}", manifest_path)

    try:
        return ExtensionManifest.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid extension manifest: {e}", manifest_path) from e
