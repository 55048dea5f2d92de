#!/usr/bin/env python3

import json
import os
import tomllib
from typing import Any, Dict, Optional

from ..errors import ConfigurationError


JSONFILE_PREFIX = "jsonfile,"


def _load_jsonfile_data(jsonfile_path: Optional[str]) -> Optional[Dict[str, Any]]:
    """Load JSON secrets file data once for ``jsonfile,`` placeholders.

    Args:
        jsonfile_path: Path to the JSON file.

    Returns:
        Optional[Dict[str, Any]]: Parsed JSON dictionary, or ``None`` when the
            file does not exist, parse fails, or JSON root is not an object.
    """
    if not jsonfile_path or not os.path.exists(jsonfile_path):
        return None

    try:
        with open(jsonfile_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, FileNotFoundError):
        return None

    return data if isinstance(data, dict) else None


def _lookup(data: Optional[Dict[str, Any]], dotted_key: str) -> Any:
    value: Any = data
    for key_part in dotted_key.split("."):
        if isinstance(value, dict) and key_part in value:
            value = value[key_part]
        else:
            return None
    return value


def _replace_values(data: Any, jsonfile_data: Optional[Dict[str, Any]] = None) -> Any:
    """Recursively resolve ``jsonfile,<dotted.key>`` placeholders.

    The key is looked up in the JSON secrets file first, then in the
    environment (under the full dotted key). Unresolved placeholders are
    left as-is.

    Args:
        data: Config value to resolve.
        jsonfile_data: Preloaded JSON data for lookup reuse.

    Returns:
        Any: Resolved value.
    """
    if isinstance(data, dict):
        return {k: _replace_values(v, jsonfile_data) for k, v in data.items()}
    if isinstance(data, list):
        return [_replace_values(item, jsonfile_data) for item in data]
    if isinstance(data, str) and data.startswith(JSONFILE_PREFIX):
        key = data[len(JSONFILE_PREFIX):]
        value = _lookup(jsonfile_data, key)
        if value is not None:
            return value
        env_value = os.getenv(key)
        if env_value is not None:
            return env_value
    return data


def load_config_by_file(path: str, jsonfile: Optional[str] = None) -> Dict[str, Any]:
    """Load CPI options from TOML/JSON and resolve placeholders.

    Args:
        path: Config file path; ``.toml`` is parsed as TOML, anything else as JSON.
        jsonfile: JSON secrets file for ``jsonfile,`` lookups.

    Returns:
        Dict[str, Any]: Loaded and resolved options.

    Raises:
        ConfigurationError: If the file cannot be read or parsed.
    """
    try:
        if path.endswith(".toml"):
            # tomllib needs a binary file
            with open(path, "rb") as f:
                config = tomllib.load(f)
        else:
            with open(path, "r", encoding="utf-8") as f:
                config = json.load(f)
    except (OSError, ValueError) as exc:
        raise ConfigurationError(f"Unable to load config file '{path}': {exc}") from exc

    if not isinstance(config, dict):
        raise ConfigurationError(f"Invalid config file '{path}': object expected")

    return _replace_values(config, _load_jsonfile_data(jsonfile))
