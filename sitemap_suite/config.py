import json
import logging
import os
from typing import Dict, Optional, Any

logger = logging.getLogger(__name__)

CONFIG_FILE_PATH = os.environ.get("SITEMAP_SUITE_CONFIG", "config.json")

DEFAULT_USER_AGENT = "SitemapToolsSuite/1.0"

DEFAULT_CONFIG: Dict[str, Any] = {
    "user_agent": DEFAULT_USER_AGENT,
    "timeout": 15,
    "max_redirects": 5,
    "max_bytes": 50 * 1024 * 1024,
    "max_retries": 0,
    "max_workers": 1,
    "host": "127.0.0.1",
    "port": 8000,
    "log_level": "INFO",
    "log_file": None,
}

# key -> (accepted types, minimum value for numbers)
_NUMERIC_KEYS = {
    "timeout": ((int, float), 0.001),
    "max_redirects": ((int,), 0),
    "max_bytes": ((int,), 1),
    "max_retries": ((int,), 0),
    "max_workers": ((int,), 1),
    "port": ((int,), 1),
}

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def load_config(path: Optional[str] = None) -> Optional[Dict[str, Any]]:
    """
    Loads the configuration file and merges it over DEFAULT_CONFIG.

    A missing file is not an error: the defaults are returned. Returns None
    when the file exists but cannot be decoded or fails validation.
    """
    path = path or CONFIG_FILE_PATH
    if not os.path.exists(path):
        logger.warning(f"Configuration file not found: {path}. Using defaults.")
        return dict(DEFAULT_CONFIG)
    try:
        with open(path, 'r', encoding='utf-8') as f:
            config_data = json.load(f)
    except json.JSONDecodeError as e:
        logger.error(f"Error decoding JSON from {path}: {e}")
        return None
    except OSError as e:
        logger.error(f"Could not read configuration file {path}: {e}")
        return None

    logger.info(f"Successfully loaded configuration from {path}")
    if not validate_config(config_data):
        return None
    merged = dict(DEFAULT_CONFIG)
    merged.update(config_data)
    return merged


def validate_config(config: Dict[str, Any]) -> bool:
    """Validates the structure and content of the configuration."""
    if not isinstance(config, dict):
        logger.error("Configuration must be a dictionary.")
        return False

    unknown = sorted(set(config) - set(DEFAULT_CONFIG))
    if unknown:
        # Not fatal, most likely a typo worth surfacing.
        logger.warning(f"Ignoring unknown configuration keys: {unknown}")

    for key, (types, minimum) in _NUMERIC_KEYS.items():
        if key not in config:
            continue
        value = config[key]
        if isinstance(value, bool) or not isinstance(value, types):
            logger.error(f"Value for '{key}' must be a number, got {value!r}.")
            return False
        if value < minimum:
            logger.error(f"Value for '{key}' must be >= {minimum}, got {value!r}.")
            return False

    if "user_agent" in config:
        user_agent = config["user_agent"]
        if not isinstance(user_agent, str) or not user_agent.strip():
            logger.error("'user_agent' must be a non-empty string.")
            return False

    if "host" in config and (not isinstance(config["host"], str) or not config["host"].strip()):
        logger.error("'host' must be a non-empty string.")
        return False

    if "log_level" in config:
        level = config["log_level"]
        if not isinstance(level, str) or level.upper() not in _LOG_LEVELS:
            logger.error(f"'log_level' must be one of {_LOG_LEVELS}, got {level!r}.")
            return False

    if config.get("log_file") is not None and not isinstance(config["log_file"], str):
        logger.error("'log_file' must be a string path or null.")
        return False

    logger.info("Configuration validation successful.")
    return True
