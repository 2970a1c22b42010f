"""Configuration management for electrolux2mqtt."""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Optional

import yaml

from electrolux_api.config import DEFAULT_API_URL, DEFAULT_SESSION_FILENAME, DEFAULT_TIMEOUT

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 30
MIN_POLL_INTERVAL = 5

DEFAULT_CONFIG = {
    "mqtt": {
        "host": None,  # Required
        "port": 1883,
        "username": None,
        "password": None,
        "client_id": "electrolux2mqtt",
        "topic_prefix": "electrolux2mqtt",
        "keepalive": 60,
    },
    "api": {
        "url": DEFAULT_API_URL,
        "api_key": None,  # Required
        "refresh_token": None,  # Required unless a session file exists
        "timeout": DEFAULT_TIMEOUT,
        "max_workers": None,
    },
    "home_assistant": {
        "enabled": False,
        "discovery_prefix": "homeassistant",
        "node_id": "electrolux2mqtt",
    },
    "options": {
        "poll_interval": DEFAULT_POLL_INTERVAL,
        "session_file": DEFAULT_SESSION_FILENAME,
        "reconnect_interval": 5,
        "connect_attempts": 5,
        "log_level": "INFO",
    },
}

CONFIG_SEARCH_PATHS = [
    Path("config.yaml"),
    Path("/app/config.yaml"),
    Path.home() / ".config" / "electrolux2mqtt" / "config.yaml",
    Path("/etc/electrolux2mqtt/config.yaml"),
]


def _to_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


# Format: "ENV_VAR": ("section", "key", optional_converter)
ENV_MAPPINGS = {
    "MQTT_HOST": ("mqtt", "host"),
    "MQTT_PORT": ("mqtt", "port", int),
    "MQTT_USERNAME": ("mqtt", "username"),
    "MQTT_PASSWORD": ("mqtt", "password"),
    "MQTT_CLIENT_ID": ("mqtt", "client_id"),
    "MQTT_TOPIC_PREFIX": ("mqtt", "topic_prefix"),
    "ELECTROLUX_API_URL": ("api", "url"),
    "ELECTROLUX_API_KEY": ("api", "api_key"),
    "ELECTROLUX_REFRESH_TOKEN": ("api", "refresh_token"),
    "API_TIMEOUT": ("api", "timeout", float),
    "HOME_ASSISTANT_ENABLED": ("home_assistant", "enabled", _to_bool),
    "HOME_ASSISTANT_DISCOVERY_PREFIX": ("home_assistant", "discovery_prefix"),
    "HOME_ASSISTANT_NODE_ID": ("home_assistant", "node_id"),
    "POLLING_INTERVAL_SECONDS": ("options", "poll_interval"),
    "SESSION_FILE": ("options", "session_file"),
    "RECONNECT_INTERVAL": ("options", "reconnect_interval", int),
    "LOG_LEVEL": ("options", "log_level"),
}


def deep_merge(base: dict, override: dict) -> dict:
    """Deep merge two dictionaries."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_config(config_path: Optional[str] = None) -> dict:
    """Load configuration from YAML file.

    Args:
        config_path: Path to config file. If None, searches default locations.

    Returns:
        Merged configuration dict
    """
    search_paths = []
    if config_path:
        search_paths.append(Path(config_path))
    search_paths.extend(CONFIG_SEARCH_PATHS)

    config = copy.deepcopy(DEFAULT_CONFIG)

    for path in search_paths:
        if path.exists():
            with open(path) as f:
                user_config = yaml.safe_load(f) or {}
            config = deep_merge(config, user_config)
            config["_config_path"] = str(path)
            break

    # Environment variable overrides
    for env_var, mapping in ENV_MAPPINGS.items():
        value = os.environ.get(env_var)
        if value is None:
            continue
        section, key = mapping[0], mapping[1]
        converter = mapping[2] if len(mapping) > 2 else str
        try:
            config[section][key] = converter(value)
        except ValueError as e:
            logger.warning(f"Invalid env var {env_var}={value}: {e}")

    return config


def validate_config(config: dict) -> list[str]:
    """Validate configuration and return list of errors."""
    errors = []

    if not config.get("mqtt", {}).get("host"):
        errors.append("mqtt.host is required")

    api = config.get("api", {})
    if not api.get("url"):
        errors.append("api.url is required")
    if not api.get("api_key"):
        errors.append("api.api_key is required")
    if not api.get("refresh_token"):
        session_file = config.get("options", {}).get("session_file")
        if not session_file or not Path(session_file).exists():
            errors.append("api.refresh_token is required (no stored session found)")

    return errors


def resolve_poll_interval(value: Any) -> int:
    """Parse the poll interval, falling back to the default when implausible."""
    try:
        interval = int(value)
    except (TypeError, ValueError):
        interval = None

    if interval is None or interval < MIN_POLL_INTERVAL:
        logger.warning(
            f"Invalid polling interval: {value!r}. Using default of {DEFAULT_POLL_INTERVAL} seconds."
        )
        return DEFAULT_POLL_INTERVAL
    return interval
