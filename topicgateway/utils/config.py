"""
Configuration management for TopicGateway.

Values are layered, lowest precedence first:

1. the packaged ``default.yaml``
2. an optional user YAML file
3. environment variables (see ``ENV_OVERRIDES``)
4. command-line flags, applied by the entry point through ``set()``
"""

import os
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple

import yaml

from topicgateway.core.log.format import MAX_PAYLOAD_BYTES

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "default.yaml"

STORE_BACKENDS = ("disk", "memory")

# Environment variable -> (dotted key, converter)
ENV_OVERRIDES: Dict[str, Tuple[str, Callable[[str], Any]]] = {
    "GATEWAY_HOST": ("server.host", str),
    "GATEWAY_PORT": ("server.port", int),
    "STORE_BACKEND": ("store.backend", str),
    "DATA_DIR": ("store.data_dir", str),
    "MAX_POLL_DURATION": ("gateway.max_poll_duration", str),
    "LOG_LEVEL": ("logging.level", str),
    "LOG_FORMAT": ("logging.format", str),
}

_POSITIVE_INT_KEYS = (
    "server.port",
    "store.max_segment_bytes",
    "store.max_segment_age_ms",
    "store.index_interval_bytes",
    "store.max_entry_bytes",
    "store.disk_io_threads",
)


class ConfigError(ValueError):
    """Raised when a configuration value is missing or out of range."""
    pass


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(merged.get(key), dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _read_yaml(path: Path) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


class Config:
    """Layered configuration read with dotted keys such as ``server.port``."""

    def __init__(self, config_file: Optional[str] = None):
        """
        Load defaults, then the optional file, then environment overrides.

        Args:
            config_file: Optional YAML file layered over the defaults

        Raises:
            ConfigError: If a file is not a YAML mapping or an env value
                cannot be converted
        """
        self._config: Dict[str, Any] = {}

        if DEFAULT_CONFIG_PATH.exists():
            self._config = _read_yaml(DEFAULT_CONFIG_PATH)
        if config_file:
            self._config = _deep_merge(self._config, _read_yaml(Path(config_file)))

        self._apply_env_overrides()

    def _apply_env_overrides(self) -> None:
        for env_var, (key, convert) in ENV_OVERRIDES.items():
            raw = os.getenv(env_var)
            if not raw:
                continue
            try:
                self.set(key, convert(raw))
            except ValueError as e:
                raise ConfigError(f"{env_var}={raw!r} is not valid for {key}") from e

    def get(self, key: str, default: Any = None) -> Any:
        node: Any = self._config
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    def set(self, key: str, value: Any) -> None:
        *parents, leaf = key.split(".")
        node = self._config
        for part in parents:
            node = node.setdefault(part, {})
        node[leaf] = value

    def validate(self) -> "Config":
        """
        Check the values the gateway depends on.

        Returns:
            self, for chaining

        Raises:
            ConfigError: On an unknown backend, a non-positive size or count, or an
                entry limit above what a record frame can hold
        """
        backend = self.get("store.backend")
        if backend not in STORE_BACKENDS:
            raise ConfigError(f"store.backend must be one of {STORE_BACKENDS}, got {backend!r}")

        for key in _POSITIVE_INT_KEYS:
            value = self.get(key)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ConfigError(f"{key} must be a positive integer, got {value!r}")

        max_entry_bytes = self.get("store.max_entry_bytes")
        if max_entry_bytes > MAX_PAYLOAD_BYTES:
            raise ConfigError(
                f"store.max_entry_bytes must be at most {MAX_PAYLOAD_BYTES}, got {max_entry_bytes}"
            )

        interval = self.get("gateway.disconnect_check_interval_ms")
        if not isinstance(interval, (int, float)) or interval < 0:
            raise ConfigError(
                f"gateway.disconnect_check_interval_ms must be >= 0, got {interval!r}"
            )

        return self

    def to_dict(self) -> Dict[str, Any]:
        return self._config.copy()


# Process-wide instance
_config: Optional[Config] = None


def get_config(config_file: Optional[str] = None) -> Config:
    """
    Return the process-wide configuration, loading it on first use.

    Args:
        config_file: YAML file to layer over the defaults on first load

    Returns:
        Configuration instance
    """
    global _config
    if _config is None:
        _config = Config(config_file)
    return _config


def reset_config() -> None:
    """Drop the process-wide configuration (used by tests)."""
    global _config
    _config = None
