"""Configuration system for gsbt.

This module provides TOML-based configuration loading, validation,
and schema definitions for gameserver backups.
"""

from .envsubst import expand_env_vars
from .loader import ConfigError, find_config_file, load_config
from .schema import (
    CONNECTOR_TYPES,
    Config,
    ConnectionConfig,
    DefaultsConfig,
    ServerConfig,
)

__all__ = [
    "CONNECTOR_TYPES",
    "Config",
    "ConnectionConfig",
    "DefaultsConfig",
    "ServerConfig",
    "load_config",
    "find_config_file",
    "expand_env_vars",
    "ConfigError",
]
