"""Bridge configuration management.

Settings come from ~/.switchboard/config.yaml (or an explicit path) with
SWITCHBOARD_* environment variable overrides. The source of every value is
tracked so ``switchboard config show`` can explain where it came from.
"""

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from .bridge.errors import EndpointConfigError
from .bridge.registry import DEFAULT_ENDPOINTS, Endpoint, endpoints_from_config
from .shared.paths import SWITCHBOARD_DIR

# Default values
DEFAULT_HEARTBEAT_INTERVAL = 30.0
DEFAULT_STATS_INTERVAL = 10.0
DEFAULT_CALL_TIMEOUT = 30.0
DEFAULT_CONNECT_TIMEOUT = 10.0
DEFAULT_DRAIN_TIMEOUT = 5.0
DEFAULT_EVENT_QUEUE_SIZE = 100
DEFAULT_STATUS_HOST = "127.0.0.1"
DEFAULT_STATUS_PORT = 9877

# Environment variable mappings
ENV_VARS = {
    "heartbeat_interval": "SWITCHBOARD_HEARTBEAT_INTERVAL",
    "stats_interval": "SWITCHBOARD_STATS_INTERVAL",
    "call_timeout": "SWITCHBOARD_CALL_TIMEOUT",
    "connect_timeout": "SWITCHBOARD_CONNECT_TIMEOUT",
    "drain_timeout": "SWITCHBOARD_DRAIN_TIMEOUT",
    "auto_reconnect": "SWITCHBOARD_AUTO_RECONNECT",
    "event_queue_size": "SWITCHBOARD_EVENT_QUEUE_SIZE",
    "status_host": "SWITCHBOARD_STATUS_HOST",
    "status_port": "SWITCHBOARD_STATUS_PORT",
}

_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off")


class ConfigError(ValueError):
    """Raised when configuration cannot be loaded."""


@dataclass
class BridgeConfig:
    """Bridge configuration."""

    heartbeat_interval: float = DEFAULT_HEARTBEAT_INTERVAL
    stats_interval: float = DEFAULT_STATS_INTERVAL
    call_timeout: float = DEFAULT_CALL_TIMEOUT
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
    drain_timeout: float = DEFAULT_DRAIN_TIMEOUT
    auto_reconnect: bool = True
    event_queue_size: int = DEFAULT_EVENT_QUEUE_SIZE
    status_host: str = DEFAULT_STATUS_HOST
    status_port: int = DEFAULT_STATUS_PORT
    endpoints: dict[str, dict[str, Any]] = field(default_factory=dict)

    # Track where each value came from
    _sources: dict[str, str] = field(default_factory=dict, repr=False)

    def get_source(self, key: str) -> str:
        """Get the source of a config value."""
        return self._sources.get(key, "default")

    def endpoint_settings(self) -> dict[str, dict[str, Any]]:
        """Configured endpoints, or the demo endpoints when none are set."""
        return self.endpoints or DEFAULT_ENDPOINTS

    def build_endpoints(self) -> list[Endpoint]:
        """Validated endpoints in configuration order.

        Raises:
            EndpointConfigError: If any endpoint entry is malformed
        """
        return endpoints_from_config(self.endpoint_settings())

    def to_dict(self) -> dict[str, Any]:
        """Settings as a plain mapping, endpoints included."""
        data = {f.name: getattr(self, f.name) for f in fields(self) if not f.name.startswith("_")}
        data["endpoints"] = self.endpoint_settings()
        return data


def get_config_path() -> Path:
    """Get the default config file path.

    Returns:
        Path to ~/.switchboard/config.yaml
    """
    return SWITCHBOARD_DIR / "config.yaml"


def _coerce(key: str, value: Any) -> Any:
    """Convert a raw value to the type of ``key``.

    Raises:
        ValueError: If the value has the wrong type or is out of range
    """
    if key == "auto_reconnect":
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in _TRUE:
            return True
        if text in _FALSE:
            return False
        raise ValueError(f"{key}: expected a boolean, got {value!r}")

    if key == "status_host":
        return str(value)

    if isinstance(value, bool):
        raise ValueError(f"{key}: expected a number, got {value!r}")
    if key in ("event_queue_size", "status_port"):
        number: Any = int(value)
        if key == "status_port" and not 0 <= number <= 65535:
            raise ValueError(f"{key}: {number} is not a valid port")
        if key == "event_queue_size" and number < 1:
            raise ValueError(f"{key}: must be at least 1")
        return number

    number = float(value)
    if number <= 0:
        raise ValueError(f"{key}: must be positive")
    return number


def load_config(path: str | Path | None = None) -> BridgeConfig:
    """Load bridge configuration.

    Precedence (highest to lowest):
    1. Environment variables
    2. Config file (``path`` or ~/.switchboard/config.yaml)
    3. Defaults

    Args:
        path: Explicit config file; must exist when given

    Returns:
        BridgeConfig with values and sources

    Raises:
        ConfigError: If the file is missing (explicit path only), is not
            valid YAML, or holds invalid values or endpoints
    """
    config = BridgeConfig()
    sources: dict[str, str] = {key: "default" for key in [*ENV_VARS, "endpoints"]}

    config_path = Path(path) if path else get_config_path()
    if path and not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    # Load from config file
    if config_path.exists():
        try:
            with open(config_path) as f:
                file_config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Cannot read {config_path}: {e}") from e
        if not isinstance(file_config, dict):
            raise ConfigError(f"{config_path}: expected a mapping at the top level")

        for key in ENV_VARS:
            if key in file_config:
                try:
                    setattr(config, key, _coerce(key, file_config[key]))
                except (TypeError, ValueError) as e:
                    raise ConfigError(f"{config_path}: {e}") from e
                sources[key] = "config file"

        if file_config.get("endpoints"):
            config.endpoints = file_config["endpoints"]
            sources["endpoints"] = "config file"

    # Override with environment variables
    for key, env_var in ENV_VARS.items():
        raw = os.environ.get(env_var)
        if not raw:
            continue
        try:
            setattr(config, key, _coerce(key, raw))
            sources[key] = "environment"
        except (TypeError, ValueError):
            pass

    # Validate endpoints up front so bad config fails at startup
    try:
        config.build_endpoints()
    except EndpointConfigError as e:
        raise ConfigError(str(e)) from e

    config._sources = sources
    return config
