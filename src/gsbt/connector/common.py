# pyright: standard

"""gsbt: gsbt/connector/common.py
Common functionality among connectors.
"""

import functools
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import BinaryIO, Optional

from .matcher import matches_patterns

logger = logging.getLogger(__name__)


class ConnectorError(Exception):
    """Base class for remote connector failures."""

    pass


class NotConnectedError(ConnectorError):
    """An operation was attempted before connect() succeeded."""

    def __init__(self, message: str = "not connected") -> None:
        super().__init__(message)


class ConnectError(ConnectorError):
    """Dialing, authenticating or resolving credentials failed."""

    pass


class RateLimitedError(ConnectError):
    """The vendor API answered HTTP 429."""

    def __init__(self, message: str, retry_after: Optional[str] = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class ListError(ConnectorError):
    """Listing the remote tree failed."""

    pass


class DownloadError(ConnectorError):
    """Downloading a remote file failed."""

    pass


class UploadError(ConnectorError):
    """Uploading a file failed."""

    pass


@dataclass
class RemoteFile:
    """A remote entry, with its path relative to the remote root."""

    path: str
    size: int = 0
    mod_time: Optional[datetime] = None
    is_dir: bool = False


@dataclass
class ConnectorConfig:
    """Fully resolved settings for one connector instance.

    The retry fields are carried through from the configuration but no
    connector or the backup manager consults them.
    """

    type: str
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
    include: list[str] = field(default_factory=lambda: ["*"])
    exclude: list[str] = field(default_factory=list)

    retry_attempts: int = 0
    retry_delay: int = 0
    retry_backoff: bool = False


def require_connection(method):
    """Decorator to ensure the connector has an open session."""

    @functools.wraps(method)
    def wrapped(self, *args, **kwargs):
        if not self.is_connected:
            raise NotConnectedError()
        return method(self, *args, **kwargs)

    return wrapped


def relative_to_root(full_path: str, root: str) -> str:
    """Trim the remote root prefix (and a leading '/') from ``full_path``."""
    rel = full_path
    if root and full_path.startswith(root):
        rel = full_path[len(root) :]
    return rel.lstrip("/")


class Connector:
    """Generic structure of a remote file connector.

    Subclasses implement connect, close, list_files, download and upload
    against one backend. Connectors are used once per server per run and
    are never shared between threads.
    """

    default_port = 0
    scheme = "unknown"

    def __init__(self, config: ConnectorConfig) -> None:
        self.config = config
        if not self.config.port:
            self.config.port = self.default_port

    @property
    def name(self) -> str:
        """Human readable identity for logs."""
        return f"{self.scheme}://{self.config.host}:{self.config.port}"

    @property
    def is_connected(self) -> bool:
        raise NotImplementedError

    def connect(self) -> None:
        """Open the transport session."""
        raise NotImplementedError

    def list_files(self) -> list[RemoteFile]:
        """Return every matching file below the remote root."""
        raise NotImplementedError

    def download(self, remote_path: str, sink: BinaryIO) -> None:
        """Stream ``remote_path`` (relative to the root) into ``sink``."""
        raise NotImplementedError

    def upload(self, source: BinaryIO, remote_path: str) -> None:
        """Stream ``source`` to ``remote_path`` (relative to the root)."""
        raise NotImplementedError

    def close(self) -> None:
        """Release the session. Safe to call more than once."""
        raise NotImplementedError

    def filter_files(self, entries: list[RemoteFile]) -> list[RemoteFile]:
        """Drop directories and entries rejected by include/exclude."""
        files = [
            entry
            for entry in entries
            if not entry.is_dir
            and matches_patterns(entry.path, self.config.include, self.config.exclude)
        ]
        logger.debug(
            "%s: %d of %d entries matched patterns", self.name, len(files), len(entries)
        )
        return files

    def __enter__(self):
        """Connect; a failed connect still closes whatever was opened."""
        try:
            self.connect()
        except BaseException:
            self.close()
            raise
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return self.name
