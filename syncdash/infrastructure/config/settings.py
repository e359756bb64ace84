"""Provides functions for loading and accessing configuration settings.

Supports loading from .env files, environment variables, and a dedicated
configuration file (~/.syncdash/config.yaml). Also resolves the current
tenant, which every controller looks up fresh on each operation.
"""

import logging
import os
from pathlib import Path
from typing import Any, Optional, Dict

import yaml
from dotenv import load_dotenv

from syncdash.domain.models.common import DEFAULT_TENANT_ID, TenantId
from syncdash.domain.models.jobs import PollPolicy
from syncdash.domain.models.search import SearchTiming

logger = logging.getLogger(__name__)

# --- Configuration Constants ---
DEFAULT_CONFIG_DIR = Path.home() / ".syncdash"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
ENV_FILE_NAME = ".env"
DEFAULT_BACKEND_URL = "http://localhost:8080"

TENANT_CONFIG_KEY = "tenant.id"
TENANT_ENV_VAR = "SYNCDASH_TENANT_ID"
BACKEND_CONFIG_KEY = "backend.url"
BACKEND_ENV_VAR = "SYNCDASH_BACKEND_URL"

# --- Global Configuration Store ---
_config: Dict[str, Any] = {}
_test_config: Dict[str, Any] = {}  # For testing purposes
# Values from set_config (CLI options); survive load_configuration()
_runtime_config: Dict[str, Any] = {}
_loaded = False

def load_configuration(config_file: Path = DEFAULT_CONFIG_FILE, env_file: Optional[Path] = None) -> None:
    """Loads configuration from environment, .env file, and YAML file.

    Priority order (highest to lowest):
    1. Environment Variables
    2. .env file
    3. YAML configuration file
    4. Default values passed to get_config

    Values already set through set_config() are kept.

    Args:
        config_file: Path to the YAML configuration file.
        env_file: Path to the .env file (searches upwards from cwd if None).
    """
    global _config, _loaded
    if _loaded:
        logger.debug("Configuration already loaded.")
        return

    _config = {}

    # 1. Load from YAML file (Lowest priority)
    if config_file.exists():
        try:
            with open(config_file, 'r') as f:
                yaml_config = yaml.safe_load(f)
            if isinstance(yaml_config, dict):
                _config.update(_flatten(yaml_config))
                logger.info(f"Loaded configuration from YAML: {config_file}")
            elif yaml_config is not None:
                logger.warning(f"YAML config file {config_file} did not contain a dictionary.")
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load or parse YAML config {config_file}: {e}")
    else:
        logger.debug(f"YAML config file not found: {config_file}")

    # 2. Load from .env file (Medium priority)
    dotenv_path = env_file or find_dotenv_path()
    if dotenv_path:
        # override=False: real environment variables take precedence
        if load_dotenv(dotenv_path=dotenv_path, override=False):
            logger.info(f"Loaded environment variables from: {dotenv_path}")
    else:
        logger.debug("Skipping .env file loading (no .env found).")

    _loaded = True
    logger.info("Configuration loading process completed.")

def _flatten(data: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
    """Flattens nested YAML sections into dotted keys ('poll.max_attempts')."""
    flat: Dict[str, Any] = {}
    for key, value in data.items():
        dotted = f"{prefix}{key}"
        if isinstance(value, dict):
            flat.update(_flatten(value, prefix=f"{dotted}."))
        else:
            flat[dotted] = value
    return flat

def _coerce(value: str) -> Any:
    if value.lower() == 'true':
        return True
    if value.lower() == 'false':
        return False
    try:
        if '.' in value:
            return float(value)
        return int(value)
    except (ValueError, TypeError):
        return value

def get_config(key: str, default: Any = None) -> Any:
    """
    Get a configuration value by key.

    Priority:
    1. Test configuration (if in testing mode)
    2. Environment variable (SYNCDASH_<KEY>, dots become underscores)
    3. Runtime values from set_config, then YAML config
    4. Default value

    Args:
        key: The configuration key
        default: Default value if the key is not found

    Returns:
        The configuration value
    """
    if key in _test_config:
        return _test_config[key]

    env_key = f"SYNCDASH_{key.upper().replace('.', '_')}"
    if env_key in os.environ:
        return _coerce(os.environ[env_key])

    if key in _runtime_config:
        return _runtime_config[key]

    if key in _config:
        return _config[key]

    logger.debug(f"Config key '{key}' not found in environment or loaded config. Returning default: {default}")
    return default

def set_config(key: str, value: Any) -> None:
    """Sets a runtime configuration value by key.

    Args:
        key: Configuration key (e.g., 'tenant.id')
        value: Value to set
    """
    logger.debug(f"Setting config: {key} = {value}")
    _runtime_config[key] = value

def find_dotenv_path() -> Optional[Path]:
    """Searches for the .env file upwards from the current directory."""
    cwd = Path.cwd()
    for path in [cwd] + list(cwd.parents):
        env_path = path / ENV_FILE_NAME
        if env_path.is_file():
            return env_path
    return None

# --- Convenience Functions ---

def get_tenant_id() -> TenantId:
    """Resolves the current tenant.

    Order: runtime configuration ('tenant.id') -> environment default
    (SYNCDASH_TENANT_ID) -> literal "default". Never cached.
    """
    runtime = (
        _test_config.get(TENANT_CONFIG_KEY)
        or _runtime_config.get(TENANT_CONFIG_KEY)
        or _config.get(TENANT_CONFIG_KEY)
    )
    if runtime:
        return TenantId(str(runtime))
    env_value = os.environ.get(TENANT_ENV_VAR)
    if env_value:
        return TenantId(env_value)
    return DEFAULT_TENANT_ID

def set_tenant_id(tenant_id: str) -> None:
    """Switches the runtime tenant; picked up by the next store access."""
    logger.info(f"Switching runtime tenant to '{tenant_id}'")
    set_config(TENANT_CONFIG_KEY, tenant_id)

def get_backend_url() -> str:
    """Gets the backend base URL."""
    url = get_config(BACKEND_CONFIG_KEY)
    return str(url) if url else DEFAULT_BACKEND_URL

def get_poll_policy() -> PollPolicy:
    """Builds the job poll policy, applying any 'poll.*' overrides."""
    defaults = PollPolicy()
    return PollPolicy(
        initial_delay=float(get_config('poll.initial_delay_seconds', defaults.initial_delay)),
        backoff_factor=float(get_config('poll.backoff_factor', defaults.backoff_factor)),
        max_delay=float(get_config('poll.max_delay_seconds', defaults.max_delay)),
        max_attempts=int(get_config('poll.max_attempts', defaults.max_attempts)),
        max_duration=float(get_config('poll.max_duration_seconds', defaults.max_duration)),
        max_consecutive_errors=int(get_config('poll.max_consecutive_errors', defaults.max_consecutive_errors)),
        freshness_window=float(get_config('poll.freshness_seconds', defaults.freshness_window)),
    )

def get_search_timing() -> SearchTiming:
    """Builds the discovery debounce/throttle timing, applying 'search.*' overrides."""
    defaults = SearchTiming()
    return SearchTiming(
        debounce=float(get_config('search.debounce_seconds', defaults.debounce)),
        throttle=float(get_config('search.throttle_seconds', defaults.throttle)),
    )

def set_config_for_testing(config_dict: Dict[str, Any]) -> None:
    """
    Set configuration values for testing purposes.
    These values will override any existing configuration.

    Args:
        config_dict: Dictionary of configuration values to set
    """
    _test_config.update(config_dict)
    logger.debug(f"Set testing configuration: {config_dict}")

def clear_test_config() -> None:
    """Clear all testing configuration values."""
    _test_config.clear()
    logger.debug("Cleared testing configuration")
