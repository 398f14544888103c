"""Provides functions for loading and accessing configuration settings.

Supports loading from a YAML file (~/.timedcache/config.yaml), a .env file and
environment variables. Keys are dotted (``cache.ttl_seconds``); the matching
environment variable is ``TIMEDCACHE_CACHE_TTL_SECONDS``.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# --- Configuration Constants ---
DEFAULT_CONFIG_DIR = Path.home() / ".timedcache"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
ENV_FILE_NAME = ".env"
ENV_PREFIX = "TIMEDCACHE_"

DEFAULTS: Dict[str, Any] = {
    "cache.ttl_seconds": 5.0,
    "cache.fetch_under_lock": True,
    "sources.latency_seconds": 0.0,
    "logging.level": "INFO",
    "logging.file": None,
    "logging.format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
}

# --- Global Configuration Store ---
_config: Dict[str, Any] = {}
_overrides: Dict[str, Any] = {}
_loaded = False


def _flatten(data: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
    """Turns nested YAML mappings into dotted keys."""
    flat: Dict[str, Any] = {}
    for key, value in data.items():
        dotted = f"{prefix}{key}"
        if isinstance(value, dict):
            flat.update(_flatten(value, f"{dotted}."))
        else:
            flat[dotted] = value
    return flat


def env_var_name(key: str) -> str:
    return f"{ENV_PREFIX}{key.upper().replace('.', '_')}"


def _coerce(value: str) -> Any:
    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False
    try:
        return float(value) if "." in value else int(value)
    except ValueError:
        return value


def load_configuration(config_file: Optional[Path] = None, env_file: Optional[Path] = None) -> None:
    """Loads configuration from the YAML file and the .env file.

    Priority order (highest to lowest):
    1. Values set with ``set_config``
    2. Environment Variables (including those loaded from .env)
    3. YAML configuration file
    4. ``DEFAULTS``

    Args:
        config_file: Path to the YAML configuration file (``DEFAULT_CONFIG_FILE`` if None).
        env_file: Path to the .env file (searches upwards from cwd if None).
    """
    global _config, _loaded
    if _loaded:
        logger.debug("Configuration already loaded.")
        return

    _config = {}
    config_file = config_file or DEFAULT_CONFIG_FILE

    if config_file.exists():
        try:
            with open(config_file, "r", encoding="utf-8") as f:
                yaml_config = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load or parse YAML config {config_file}: {e}")
        else:
            if isinstance(yaml_config, dict):
                _config.update(_flatten(yaml_config))
                logger.info(f"Loaded configuration from YAML: {config_file}")
            elif yaml_config is not None:
                logger.warning(f"YAML config file {config_file} did not contain a mapping.")
    else:
        logger.debug(f"YAML config file not found: {config_file}")

    dotenv_path = env_file or find_dotenv_path()
    if dotenv_path:
        # override=False: real environment variables take precedence
        if load_dotenv(dotenv_path=dotenv_path, override=False):
            logger.info(f"Loaded environment variables from: {dotenv_path}")
    else:
        logger.debug("No .env file found at or above the current directory.")

    _loaded = True
    logger.debug("Configuration loading process completed.")


def find_dotenv_path() -> Optional[Path]:
    """Searches for the .env file upwards from the current directory."""
    cwd = Path.cwd()
    for path in [cwd] + list(cwd.parents):
        env_path = path / ENV_FILE_NAME
        if env_path.is_file():
            return env_path
    return None


def get_config(key: str, default: Any = None) -> Any:
    """Gets a configuration value by dotted key.

    Args:
        key: The configuration key, e.g. ``cache.ttl_seconds``.
        default: Returned when the key is set nowhere; falls back to ``DEFAULTS``.
    """
    if key in _overrides:
        return _overrides[key]
    env_value = os.environ.get(env_var_name(key))
    if env_value is not None:
        return _coerce(env_value)
    if key in _config:
        return _config[key]
    if default is not None:
        return default
    return DEFAULTS.get(key)


def set_config(key: str, value: Any) -> None:
    """Overrides a configuration value for the rest of the process."""
    logger.debug(f"Setting config: {key} = {value!r}")
    _overrides[key] = value


def reset_configuration() -> None:
    """Forgets loaded values and overrides. Used by tests."""
    global _config, _loaded
    _config = {}
    _overrides.clear()
    _loaded = False


# --- Convenience Functions ---

def get_ttl_seconds() -> float:
    return float(get_config("cache.ttl_seconds"))


def get_fetch_under_lock() -> bool:
    flag = get_config("cache.fetch_under_lock")
    if isinstance(flag, str):
        return flag.lower() in ("1", "true", "yes", "on")
    return bool(flag)


def get_source_latency() -> float:
    return float(get_config("sources.latency_seconds"))
