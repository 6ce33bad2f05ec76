import json
import os
from typing import Any, Dict, Optional

from .exceptions import ConfigError

CONFIG_PATH = "config.json"

# Default configuration values
DEFAULT_CONFIG = {
    # Spotify Web API (client credentials)
    "spotify_client_id": "",
    "spotify_client_secret": "",
    "spotify_api_base_url": "https://api.spotify.com/v1",
    "spotify_accounts_base_url": "https://accounts.spotify.com",

    # Tokens are issued for 3600s; this margin is an assumption about the
    # upstream contract, not something the API guarantees.
    "spotify_token_refresh_interval": 3300,
    "spotify_request_timeout": 30,

    # Logging
    "log_level": "INFO",
    "log_file": None,
}

# Validation rules for config fields
CONFIG_SCHEMA = {
    "spotify_client_id": {"type": str, "required": True},
    "spotify_client_secret": {"type": str, "required": True},
    "spotify_api_base_url": {"type": str, "required": False},
    "spotify_accounts_base_url": {"type": str, "required": False},
    "spotify_token_refresh_interval": {"type": int, "required": False, "min": 60, "max": 3600},
    "spotify_request_timeout": {"type": (int, float), "required": False, "min": 1, "max": 300},
    "log_level": {"type": str, "required": False, "choices": ["DEBUG", "INFO", "WARNING", "ERROR"]},
    "log_file": {"type": (str, type(None)), "required": False},
}


def load_config(path: str = CONFIG_PATH) -> Dict[str, Any]:
    """Load configuration from file, applying defaults for missing fields."""
    if not os.path.exists(path):
        raise ConfigError(f"Config file {path} not found.", details={"path": path})

    try:
        with open(path, "r", encoding="utf-8") as f:
            config = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Config file {path} contains invalid JSON: {e}", details={"path": path}) from e

    if not isinstance(config, dict):
        raise ConfigError(f"Config file {path} must contain a JSON object.", details={"path": path})

    # Apply defaults for missing fields
    for key, value in DEFAULT_CONFIG.items():
        if key not in config:
            config[key] = value

    return config


def validate_config(config: Dict[str, Any]) -> tuple[bool, list[str]]:
    """
    Validate configuration against schema.
    Returns (is_valid, list_of_errors).
    """
    errors = []

    for key, rules in CONFIG_SCHEMA.items():
        # Check required fields
        if rules.get("required", False) and key not in config:
            errors.append(f"Missing required field: {key}")
            continue

        if key not in config:
            continue

        value = config[key]

        # Type check (bool is an int subclass; never accept it for numeric fields)
        expected_type = rules.get("type")
        if expected_type and (not isinstance(value, expected_type) or (isinstance(value, bool) and "min" in rules)):
            type_names = expected_type.__name__ if not isinstance(expected_type, tuple) else "/".join(t.__name__ for t in expected_type)
            errors.append(f"Field '{key}' must be {type_names}, got {type(value).__name__}")
            continue

        # Choices check
        if "choices" in rules and value not in rules["choices"]:
            errors.append(f"Field '{key}' must be one of {rules['choices']}, got '{value}'")

        # Range check for numeric values
        if isinstance(value, (int, float)):
            if "min" in rules and value < rules["min"]:
                errors.append(f"Field '{key}' must be >= {rules['min']}, got {value}")
            if "max" in rules and value > rules["max"]:
                errors.append(f"Field '{key}' must be <= {rules['max']}, got {value}")

    return len(errors) == 0, errors


def with_defaults(config: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Return a copy of config with DEFAULT_CONFIG filled in for missing keys."""
    merged = DEFAULT_CONFIG.copy()
    merged.update(config or {})
    return merged
