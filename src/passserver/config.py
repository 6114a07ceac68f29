"""Server configuration loader.

Loads settings from an optional YAML file, then applies environment overrides.
Missing or invalid files fall back to safe defaults.
"""

import logging
import os
from dataclasses import dataclass, fields, replace
from typing import Any

import yaml

logger = logging.getLogger(__name__)

VALID_ENVIRONMENTS = ("development", "test", "production")

# Environment variable for each config key. Environment always wins over the file.
ENV_OVERRIDES = {
    "store": "PASSWORD_STORE",
    "env": "PASS_SERVER_ENV",
    "gpg_binary": "PASS_SERVER_GPG_BINARY",
    "gpg_homedir": "PASS_SERVER_GPG_HOMEDIR",
    "gpg_timeout_seconds": "PASS_SERVER_GPG_TIMEOUT_SECONDS",
    "encryptor": "PASS_SERVER_ENCRYPTOR",
    "sort_index": "PASS_SERVER_SORT_INDEX",
    "enable_metrics": "PASS_SERVER_ENABLE_METRICS",
    "host": "PASS_SERVER_HOST",
    "port": "PASS_SERVER_PORT",
}


@dataclass(frozen=True)
class ServerConfig:
    """Runtime configuration for the pass server."""

    store: str = "."
    env: str = "development"
    gpg_binary: str = "gpg"
    gpg_homedir: str | None = None
    gpg_timeout_seconds: float = 30.0
    encryptor: str = "gpg"
    sort_index: bool = True
    enable_metrics: bool = False
    host: str = "0.0.0.0"
    port: int = 8080

    @property
    def is_production(self) -> bool:
        return self.env == "production"

    @property
    def is_development(self) -> bool:
        return self.env == "development"


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "1", "yes")


def _coerce_value(key: str, value: Any) -> Any:
    """Coerce a raw file or environment value to the type of ``key``.

    Raises:
        ValueError: If the value cannot be converted or is out of range.
    """
    if key in ("sort_index", "enable_metrics"):
        return _parse_bool(value)
    if key == "gpg_timeout_seconds":
        timeout = float(value)
        if timeout <= 0:
            raise ValueError("Field 'gpg_timeout_seconds' must be positive")
        return timeout
    if key == "port":
        port = int(value)
        if not 0 < port < 65536:
            raise ValueError("Field 'port' must be a valid TCP port")
        return port
    if key == "env":
        env = str(value).strip().lower()
        if env not in VALID_ENVIRONMENTS:
            raise ValueError(f"Field 'env' must be one of {', '.join(VALID_ENVIRONMENTS)}")
        return env
    if key == "gpg_homedir":
        return str(value) if value else None
    return str(value)


def _parse_server_config(data: dict[str, Any]) -> dict[str, Any]:
    """Validate a YAML mapping and return the recognised, coerced keys.

    Raises:
        ValueError: If a field is unknown or invalid.
    """
    known = {f.name for f in fields(ServerConfig)}
    parsed: dict[str, Any] = {}
    for key, value in data.items():
        if key not in known:
            raise ValueError(f"Unknown config field: {key}")
        parsed[key] = _coerce_value(key, value)
    return parsed


def _apply_env_overrides(config: ServerConfig) -> ServerConfig:
    overrides: dict[str, Any] = {}
    for key, env_var in ENV_OVERRIDES.items():
        raw = os.getenv(env_var)
        if raw is None or raw == "":
            continue
        try:
            overrides[key] = _coerce_value(key, raw)
        except ValueError as e:
            logger.warning("Ignoring invalid %s=%r: %s", env_var, raw, e)
    return replace(config, **overrides)


def load_config(config_path: str | None = None) -> ServerConfig:
    """Load server configuration.

    Args:
        config_path: Path to a YAML config file. If None, uses the
                    PASS_SERVER_CONFIG environment variable when set.

    Returns:
        ServerConfig with file values and environment overrides applied.
        If the file is missing or invalid, defaults plus environment are used.
    """
    if config_path is None:
        config_path = os.getenv("PASS_SERVER_CONFIG")

    config = ServerConfig()

    if config_path and os.path.exists(config_path):
        try:
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}

            if not isinstance(data, dict):
                raise ValueError("Config file must contain a YAML dictionary")

            config = replace(config, **_parse_server_config(data))

        except (yaml.YAMLError, ValueError, OSError) as e:
            logger.warning("Failed to load server config from %s: %s", config_path, e)
            logger.warning("Using default server configuration")
            config = ServerConfig()
    elif config_path:
        logger.warning("Server config file not found: %s", config_path)

    return _apply_env_overrides(config)


# Cache the loaded configuration
_cached_config: ServerConfig | None = None


def get_config(config_path: str | None = None) -> ServerConfig:
    """Get the server configuration (cached)."""
    global _cached_config
    if _cached_config is None:
        _cached_config = load_config(config_path)
    return _cached_config


def clear_config_cache() -> None:
    """Clear the cached configuration.

    Used primarily for testing to ensure clean state between tests.
    """
    global _cached_config
    _cached_config = None
