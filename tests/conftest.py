"""Pytest configuration and shared fixtures."""

import time
from datetime import datetime, timezone

import pytest

from gsbt.connector import (
    Connector,
    ConnectorConfig,
    DownloadError,
    RemoteFile,
)
from gsbt.connector.common import require_connection


class FakeConnector(Connector):
    """In-memory connector serving a dict of relative path -> bytes."""

    scheme = "fake"

    def __init__(
        self,
        files=None,
        config=None,
        fail_download=None,
        connect_error=None,
        delay=0.0,
        chunk_size=4,
    ):
        super().__init__(config or ConnectorConfig(type="fake", host="fake", remote_path="/data"))
        self.files = dict(files or {})
        self.fail_download = set(fail_download or [])
        self.connect_error = connect_error
        self.delay = delay
        self.chunk_size = chunk_size
        self.connected = False
        self.connect_calls = 0
        self.close_calls = 0
        self.downloaded = []
        self.uploaded = {}

    @property
    def is_connected(self):
        return self.connected

    def connect(self):
        self.connect_calls += 1
        if self.connect_error is not None:
            raise self.connect_error
        if self.delay:
            time.sleep(self.delay)
        self.connected = True

    @require_connection
    def list_files(self):
        entries = []
        dirs = set()
        for path, data in self.files.items():
            parts = path.split("/")
            for i in range(1, len(parts)):
                dirs.add("/".join(parts[:i]))
            entries.append(
                RemoteFile(
                    path=path,
                    size=len(data),
                    mod_time=datetime(2024, 1, 1, tzinfo=timezone.utc),
                )
            )
        entries.extend(RemoteFile(path=d, is_dir=True) for d in sorted(dirs))
        return self.filter_files(entries)

    @require_connection
    def download(self, remote_path, sink):
        if remote_path in self.fail_download:
            raise DownloadError(f"failed to download {remote_path}: boom")
        data = self.files[remote_path]
        for i in range(0, len(data), self.chunk_size):
            sink.write(data[i : i + self.chunk_size])
        self.downloaded.append(remote_path)

    @require_connection
    def upload(self, source, remote_path):
        self.uploaded[remote_path] = source.read()

    def close(self):
        self.close_calls += 1
        self.connected = False


@pytest.fixture
def fake_connector_class():
    """The in-memory connector class."""
    return FakeConnector


@pytest.fixture
def sample_config_toml():
    """Return a sample valid TOML configuration string."""
    return """
[defaults]
backup_location = "/var/backups/gsbt"
prune_age = 14
retry_attempts = 5
retry_delay = 10
retry_backoff = true
nitrado_api_key = "default-key"

[[servers]]
name = "ark"
description = "ARK cluster"

[servers.connection]
type = "ftp"
host = "ftp.example.com"
port = 2121
username = "ark"
password = "secret"
remote_path = "/ShooterGame/Saved"
include = ["*.ark", "*.arkprofile"]
exclude = ["Logs/", "*.bak"]

[[servers]]
name = "valheim"
backup_location = "/srv/valheim-backups"
prune_age = 60

[servers.connection]
type = "sftp"
host = "sftp.example.com"
username = "steam"
key_file = "~/.ssh/id_ed25519"
remote_path = "/home/steam/.config/unity3d/IronGate/Valheim"

[[servers]]
name = "nitrado-ark"

[servers.connection]
type = "nitrado"
service_id = "12345"
remote_path = "/games/ark/saves"
"""


@pytest.fixture
def minimal_config_toml():
    """Return a minimal valid TOML configuration string."""
    return """
[[servers]]
name = "minecraft"

[servers.connection]
type = "ftp"
host = "localhost"
remote_path = "/world"
"""


@pytest.fixture
def config_file(tmp_path, sample_config_toml):
    """Create a temporary config file with sample content."""
    config_path = tmp_path / "config.toml"
    config_path.write_text(sample_config_toml)
    return config_path


@pytest.fixture
def minimal_config_file(tmp_path, minimal_config_toml):
    """Create a temporary config file with minimal content."""
    config_path = tmp_path / "minimal.toml"
    config_path.write_text(minimal_config_toml)
    return config_path
