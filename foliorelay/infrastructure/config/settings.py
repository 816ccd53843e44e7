"""Provides functions for loading and accessing configuration settings.

Supports loading from .env files, environment variables, and a dedicated
YAML configuration file (~/.foliorelay/config.yaml). Dotted keys such as
`dispatch.max_attempts` are looked up in the environment as
`DISPATCH_MAX_ATTEMPTS` and in the YAML file either flat or nested.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv

from foliorelay.domain.models.batch import BatchOptions

logger = logging.getLogger(__name__)

# --- Configuration Constants ---
DEFAULT_CONFIG_DIR = Path.home() / ".foliorelay"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
ENV_FILE_NAME = ".env"

DEFAULT_PROVIDER_ORDER = ["openrouter", "gemini", "openai"]

# Limits of the three batch call sites
BATCH_PROFILES: Dict[str, Dict[str, Any]] = {
    "review": {"batch_size": 3, "max_items": 15, "inter_batch_delay_ms": 800, "timeout_s": 30.0},
    "productivity": {"batch_size": 3, "max_items": 10, "inter_batch_delay_ms": 300},
    "collaborators": {"batch_size": 3, "max_items": 10, "inter_batch_delay_ms": 1000},
}

# --- Global Configuration Store ---
_config: Dict[str, Any] = {}
_test_config: Dict[str, Any] = {}
_loaded = False


def load_configuration(config_file: Path = DEFAULT_CONFIG_FILE, env_file: Optional[Path] = None) -> None:
    """Reads the YAML file and the .env file once per process.

    Real environment variables beat .env entries, which beat the YAML file;
    defaults passed to get_config apply last.

    Args:
        config_file: YAML file with provider keys, dispatch and batch tuning.
        env_file: Explicit .env path; found by walking up from cwd when None.
    """
    global _config, _loaded
    if _loaded:
        logger.debug("Configuration already loaded.")
        return

    _config = {}

    # 1. YAML file (lowest priority)
    if config_file.exists():
        try:
            with open(config_file, "r") as f:
                yaml_config = yaml.safe_load(f)
            if isinstance(yaml_config, dict):
                _config.update(yaml_config)
                logger.info(f"Loaded configuration from YAML: {config_file}")
            elif yaml_config is not None:
                logger.warning(f"YAML config file {config_file} did not contain a dictionary.")
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load or parse YAML config {config_file}: {e}")
    else:
        logger.debug(f"YAML config file not found: {config_file}")

    # 2. .env file; override=False so real environment variables win
    dotenv_path = env_file or find_dotenv_path()
    if dotenv_path:
        if load_dotenv(dotenv_path=dotenv_path, override=False):
            logger.info(f"Loaded environment variables from: {dotenv_path}")
    else:
        logger.debug(".env file not found at or above current directory.")

    # 3. Environment variables are read on every get_config call
    _loaded = True
    logger.debug("Configuration loading process completed.")


def reload_configuration(config_file: Path = DEFAULT_CONFIG_FILE, env_file: Optional[Path] = None) -> None:
    """Forgets the loaded configuration and loads it again."""
    global _loaded
    _loaded = False
    load_configuration(config_file, env_file)


def _coerce(value: str) -> Any:
    lowered = value.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    try:
        return float(value) if "." in value else int(value)
    except ValueError:
        return value


def _lookup_yaml(key: str) -> Any:
    if key in _config:
        return _config[key]
    node: Any = _config
    for part in key.split("."):
        if not isinstance(node, dict) or part not in node:
            return None
        node = node[part]
    return node


def get_config(key: str, default: Any = None) -> Any:
    """Looks up a dotted configuration key.

    Test overrides win, then the environment variable named after the key
    (`dispatch.max_attempts` -> `DISPATCH_MAX_ATTEMPTS`, coerced to bool or
    number where it parses), then the YAML file, then `default`.
    """
    if key in _test_config:
        return _test_config[key]

    env_key = key.upper().replace(".", "_")
    if env_key in os.environ:
        return _coerce(os.environ[env_key])

    value = _lookup_yaml(key)
    if value is not None:
        return value

    logger.debug(f"Config key '{key}' not found in environment or loaded config. Returning default: {default}")
    return default


def find_dotenv_path() -> Optional[Path]:
    """Searches for the .env file upwards from the current directory."""
    cwd = Path.cwd()
    for path in [cwd] + list(cwd.parents):
        env_path = path / ENV_FILE_NAME
        if env_path.is_file():
            return env_path
    return None


# --- Convenience Functions ---

def _optional_str(*keys: str) -> Optional[str]:
    for key in keys:
        value = get_config(key)
        if value not in (None, ""):
            return str(value)
    return None


def get_openrouter_api_key() -> Optional[str]:
    return _optional_str("OPENROUTER_API_KEY", "openrouter.api_key")


def get_gemini_api_key() -> Optional[str]:
    return _optional_str("GEMINI_API_KEY", "gemini.api_key")


def get_openai_api_key() -> Optional[str]:
    return _optional_str("OPENAI_API_KEY", "openai.api_key")


def get_github_token() -> Optional[str]:
    """GitHub token; the NEXT_PUBLIC_ variant is accepted for existing deployments."""
    return _optional_str("GITHUB_ACCESS_TOKEN", "NEXT_PUBLIC_GITHUB_ACCESS_TOKEN", "github.token")


def get_default_provider() -> Optional[str]:
    """Preferred initial primary provider, if one is configured."""
    return _optional_str("ai.default_provider")


def get_default_model(provider: str) -> Optional[str]:
    return _optional_str(f"ai.{provider}.model")


def get_provider_order() -> List[str]:
    """Declaration order of the providers; accepts a list or a comma separated string."""
    order = get_config("ai.provider_order", DEFAULT_PROVIDER_ORDER)
    if isinstance(order, str):
        order = [name.strip() for name in order.split(",") if name.strip()]
    unknown = [name for name in order if name not in DEFAULT_PROVIDER_ORDER]
    if unknown:
        logger.warning(f"Ignoring unknown providers in ai.provider_order: {unknown}")
    return [name for name in order if name in DEFAULT_PROVIDER_ORDER]


def load_dispatch_settings() -> Dict[str, Any]:
    """Tuning knobs for the fallback dispatcher and its backoff policy."""
    deadline = get_config("dispatch.deadline_s")
    return {
        "max_attempts": int(get_config("dispatch.max_attempts", 3)),
        "initial_wait_ms": int(get_config("dispatch.initial_wait_ms", 800)),
        "factor": float(get_config("dispatch.backoff_factor", 1.0)),
        "ceiling_ms": int(get_config("dispatch.ceiling_ms", 60000)),
        "deadline_s": float(deadline) if deadline is not None else None,
        "use_static_fallback": bool(get_config("dispatch.use_static_fallback", True)),
        "request_timeout_s": float(get_config("dispatch.request_timeout_s", 30.0)),
        "rate_limit_requests": int(get_config("dispatch.rate_limit_requests", 20)),
        "rate_limit_window_s": float(get_config("dispatch.rate_limit_window_s", 60.0)),
    }


def load_batch_options(profile: str, **overrides: Any) -> BatchOptions:
    """BatchOptions for a call site, with `batch.<profile>.<field>` config and explicit overrides applied."""
    if profile not in BATCH_PROFILES:
        raise ValueError(f"Unknown batch profile '{profile}'. Expected one of {sorted(BATCH_PROFILES)}")
    values = dict(BATCH_PROFILES[profile])
    for field_name in (
        "batch_size", "max_items", "inter_batch_delay_ms", "timeout_s", "max_attempts", "retry_wait_ms", "ceiling_ms",
    ):
        configured = get_config(f"batch.{profile}.{field_name}")
        if configured is not None:
            values[field_name] = configured
    values.update({k: v for k, v in overrides.items() if v is not None})
    logger.debug(f"Batch options for '{profile}': {values}")
    return BatchOptions(**values)


def get_logging_settings() -> Dict[str, Any]:
    return {
        "level": str(get_config("logging.level", "WARNING")).upper(),
        "format": get_config("logging.format", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"),
        "file": get_config("logging.file"),
    }


def set_config_for_testing(config_dict: Dict[str, Any]) -> None:
    """Overrides keys for the current test; cleared by clear_test_config."""
    _test_config.update(config_dict)
    logger.debug(f"Set testing configuration: {config_dict}")


def clear_test_config() -> None:
    """Clear all testing configuration values."""
    _test_config.clear()
    logger.debug("Cleared testing configuration")


# Load configuration when the module is imported
load_configuration()
