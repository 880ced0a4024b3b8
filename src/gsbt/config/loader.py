"""TOML configuration loading and validation.

Handles config file discovery, parsing, environment interpolation and
validation with helpful error messages.
"""

import logging
import os
import tomllib
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from .envsubst import expand_env_vars, expand_env_vars_in
from .schema import (
    CONNECTOR_TYPES,
    Config,
    ConnectionConfig,
    DefaultsConfig,
    ServerConfig,
)

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "GSBT_CONFIG"
LOCAL_CONFIG_NAME = ".gsbt-config.toml"


class ConfigError(Exception):
    """Configuration loading or validation error."""

    pass


def user_config_path() -> Path:
    """Per-user config location."""
    return Path.home() / ".config" / "gsbt" / "config.toml"


def find_config_file(explicit_path: str | None = None) -> Path:
    """Find configuration file.

    Discovery order: explicit path, $GSBT_CONFIG, ./.gsbt-config.toml,
    ~/.config/gsbt/config.toml.

    Args:
        explicit_path: Explicitly specified config path (highest priority)

    Returns:
        Path to config file

    Raises:
        ConfigError: If the explicit path is missing or nothing is found
    """
    if explicit_path:
        path = Path(explicit_path)
        if path.exists():
            return path
        raise ConfigError(f"Config file not found: {explicit_path}")

    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path and Path(env_path).exists():
        return Path(env_path)

    local_path = Path(LOCAL_CONFIG_NAME)
    if local_path.exists():
        return local_path.resolve()

    if user_config_path().exists():
        return user_config_path()

    raise ConfigError("No config file found")


def _as_list(value: Any, field_name: str) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list):
        raise ConfigError(f"'{field_name}' must be a list of strings")
    return [str(v) for v in value]


def _parse_defaults(data: dict[str, Any]) -> DefaultsConfig:
    """Parse defaults configuration from dict."""
    return DefaultsConfig(
        backup_location=data.get("backup_location", "./backups"),
        temp_dir=data.get("temp_dir", ""),
        prune_age=data.get("prune_age", 0) or 30,
        retry_attempts=data.get("retry_attempts", 0) or 3,
        retry_delay=data.get("retry_delay", 0) or 5,
        retry_backoff=data.get("retry_backoff", False),
        env_file=data.get("env_file", ""),
        nitrado_api_key=data.get("nitrado_api_key", ""),
    )


def _parse_connection(data: dict[str, Any]) -> ConnectionConfig:
    """Parse connection configuration from dict."""
    try:
        port = int(data.get("port", 0))
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid port: {data.get('port')!r}")

    return ConnectionConfig(
        type=str(data.get("type", "")).lower(),
        host=data.get("host", ""),
        port=port,
        username=data.get("username", ""),
        password=data.get("password", ""),
        key_file=data.get("key_file", ""),
        passive=data.get("passive", True),
        tls=data.get("tls", False),
        verify_host_key=data.get("verify_host_key", False),
        api_key=data.get("api_key", ""),
        service_id=str(data.get("service_id", "")),
        remote_path=data.get("remote_path", ""),
        include=_as_list(data.get("include"), "include"),
        exclude=_as_list(data.get("exclude"), "exclude"),
    )


def _parse_server(data: dict[str, Any]) -> ServerConfig:
    """Parse server configuration from dict."""
    if "name" not in data:
        raise ConfigError("Server missing required 'name' field")

    return ServerConfig(
        name=str(data["name"]),
        description=data.get("description", ""),
        backup_location=data.get("backup_location", ""),
        prune_age=data.get("prune_age", 0),
        connection=_parse_connection(data.get("connection", {})),
    )


def _validate_config(config: Config) -> list[str]:
    """Validate configuration and return list of warnings."""
    warnings = []

    if not config.servers:
        warnings.append("No servers configured")

    names = [s.name for s in config.servers]
    if len(names) != len(set(names)):
        warnings.append("Duplicate server names detected")

    for server in config.servers:
        conn = server.connection
        if conn.type not in CONNECTOR_TYPES:
            warnings.append(
                f"Server '{server.name}' has unsupported connection type '{conn.type}'"
            )
        if not conn.remote_path:
            warnings.append(f"Server '{server.name}' has no connection.remote_path")
        if conn.type == "sftp" and not (conn.password or conn.key_file):
            warnings.append(f"Server '{server.name}' has no password or key_file")

    return warnings


def load_config(path: Path | str) -> tuple[Config, list[str]]:
    """Load and validate configuration from TOML file.

    Args:
        path: Path to configuration file

    Returns:
        Tuple of (Config object, list of warnings)

    Raises:
        ConfigError: If config is invalid or cannot be parsed
    """
    path = Path(path)

    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML syntax: {e}")
    except OSError as e:
        raise ConfigError(f"Cannot read config file: {e}")

    defaults = _parse_defaults(data.get("defaults", {}))

    # The env file has to be loaded before anything else is interpolated
    if defaults.env_file:
        env_path = Path(expand_env_vars(defaults.env_file)).expanduser()
        if not env_path.is_absolute():
            env_path = path.parent / env_path
        if not load_dotenv(env_path):
            logger.debug("Env file not loaded: %s", env_path)

    servers = [_parse_server(s) for s in data.get("servers", [])]

    config = Config(defaults=defaults, servers=servers)
    expand_env_vars_in(config)

    warnings = _validate_config(config)

    return config, warnings


def generate_example_config() -> str:
    """Generate example configuration file content."""
    return """# gsbt configuration
# Values may reference environment variables: ${VAR}, ${VAR:-default}, $VAR

[defaults]
backup_location = "./backups"
# temp_dir = "./.tmp"
prune_age = 30
retry_attempts = 3
retry_delay = 5
retry_backoff = true
# env_file = ".env"
# nitrado_api_key = "${NITRADO_API_KEY}"

[[servers]]
name = "example-ftp-server"
description = "An example FTP server backup"

[servers.connection]
type = "ftp"
host = "ftp.example.com"
port = 21
username = "user"
password = "${FTP_PASSWORD}"
remote_path = "/game/saves"
include = ["*"]
exclude = ["*.log", "Logs/"]

# [[servers]]
# name = "example-sftp-server"
#
# [servers.connection]
# type = "sftp"
# host = "sftp.example.com"
# username = "backup"
# key_file = "~/.ssh/id_ed25519"
# remote_path = "/srv/game"

# [[servers]]
# name = "example-nitrado-server"
#
# [servers.connection]
# type = "nitrado"
# service_id = "1234567"
# remote_path = "/games/ark/saves"
"""
