"""Configuration schema definitions using dataclasses.

Defines the structure for TOML configuration with sensible defaults.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

CONNECTOR_TYPES = ("ftp", "sftp", "nitrado")


@dataclass
class DefaultsConfig:
    """Default settings shared by all servers.

    Attributes:
        backup_location: Root directory for archives (one subdirectory per server)
        temp_dir: Staging root for downloads (defaults to <backup_location>/.tmp)
        prune_age: Days to keep archives before prune deletes them
        retry_attempts: Retry attempts (parsed, not used by the backup flow)
        retry_delay: Seconds between retries (parsed, not used by the backup flow)
        retry_backoff: Exponential backoff (parsed, not used by the backup flow)
        env_file: Optional dotenv file loaded before interpolation
        nitrado_api_key: API key used by nitrado servers without their own key
    """

    backup_location: str = "./backups"
    temp_dir: str = ""
    prune_age: int = 30
    retry_attempts: int = 3
    retry_delay: int = 5
    retry_backoff: bool = False
    env_file: str = ""
    nitrado_api_key: str = ""


@dataclass
class ConnectionConfig:
    """Connection settings for one server.

    Attributes:
        type: Connector type (ftp, sftp, nitrado)
        host: Remote hostname
        port: Remote port (0 picks the connector default)
        username: Login name
        password: Login password
        key_file: SSH private key (sftp only)
        passive: FTP passive mode
        tls: FTP explicit TLS
        verify_host_key: Reject unknown SSH host keys (sftp only)
        api_key: Nitrado API key
        service_id: Nitrado service id
        remote_path: Remote directory to back up
        include: Glob patterns to include
        exclude: Glob patterns to exclude (trailing '/' excludes a directory)
    """

    type: str = ""
    host: str = ""
    port: int = 0
    username: str = ""
    password: str = ""
    key_file: str = ""
    passive: bool = True
    tls: bool = False
    verify_host_key: bool = False
    api_key: str = ""
    service_id: str = ""
    remote_path: str = ""
    include: list[str] = field(default_factory=list)
    exclude: list[str] = field(default_factory=list)

    def get_include(self) -> list[str]:
        """Include patterns, or ["*"] when none are configured."""
        return list(self.include) if self.include else ["*"]


@dataclass
class ServerConfig:
    """A single gameserver.

    Attributes:
        name: Unique server name
        description: Free text
        backup_location: Server-specific archive directory
        prune_age: Server-specific prune age in days
        connection: Connection settings
    """

    name: str
    description: str = ""
    backup_location: str = ""
    prune_age: int = 0
    connection: ConnectionConfig = field(default_factory=ConnectionConfig)

    def get_backup_location(self, defaults: DefaultsConfig) -> Path:
        """Server-specific location, or a per-server directory under the default."""
        if self.backup_location:
            return Path(self.backup_location).expanduser()
        return Path(defaults.backup_location).expanduser() / self.name

    def get_prune_age(self, defaults: DefaultsConfig) -> int:
        """Server-specific prune age, or the default one."""
        if self.prune_age > 0:
            return self.prune_age
        return defaults.prune_age


@dataclass
class Config:
    """Root configuration object.

    Attributes:
        defaults: Settings that apply to all servers
        servers: List of server configurations
    """

    defaults: DefaultsConfig = field(default_factory=DefaultsConfig)
    servers: list[ServerConfig] = field(default_factory=list)

    def get_server(self, name: str) -> Optional[ServerConfig]:
        """Look up a server by name."""
        for server in self.servers:
            if server.name == name:
                return server
        return None
