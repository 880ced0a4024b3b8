# pyright: standard

"""gsbt: gsbt/connector/sftp.py
SFTP connector on top of paramiko.
"""

import logging
import posixpath
import stat
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO, Optional

import paramiko

from ..config import ConfigError
from .common import (
    ConnectError,
    Connector,
    ConnectorConfig,
    DownloadError,
    ListError,
    RemoteFile,
    UploadError,
    require_connection,
)

logger = logging.getLogger(__name__)

DIAL_TIMEOUT = 30


class SFTPConnector(Connector):
    """Connector for SSH servers exposing the SFTP subsystem.

    Host keys are only checked when ``verify_host_key`` is set. Otherwise
    unknown keys are accepted, which leaves the connection open to
    man-in-the-middle attacks.
    """

    default_port = 22
    scheme = "sftp"

    def __init__(self, config: ConnectorConfig) -> None:
        super().__init__(config)
        self._ssh: Optional[paramiko.SSHClient] = None
        self._sftp: Optional[paramiko.SFTPClient] = None

    @property
    def is_connected(self) -> bool:
        return self._sftp is not None

    def _auth_kwargs(self) -> dict:
        cfg = self.config
        kwargs: dict = {"look_for_keys": False, "allow_agent": False}

        # Key file is tried first, password is the fallback
        if cfg.key_file:
            key_path = Path(cfg.key_file).expanduser()
            if not key_path.is_file():
                raise ConnectError(f"failed to read key file: {cfg.key_file}")
            kwargs["key_filename"] = str(key_path)
        if cfg.password:
            kwargs["password"] = cfg.password

        if "key_filename" not in kwargs and "password" not in kwargs:
            raise ConfigError(
                "no authentication method provided (need password or key_file)"
            )
        return kwargs

    def connect(self) -> None:
        """Open the SSH transport and the SFTP channel."""
        if self._sftp is not None:
            return

        cfg = self.config
        auth = self._auth_kwargs()

        ssh = paramiko.SSHClient()
        if cfg.verify_host_key:
            ssh.load_system_host_keys()
            ssh.set_missing_host_key_policy(paramiko.RejectPolicy())
        else:
            logger.warning(
                "%s: host key verification is disabled (set verify_host_key = true)",
                self.name,
            )
            ssh.set_missing_host_key_policy(paramiko.AutoAddPolicy())

        logger.debug("Dialing %s as %s", self.name, cfg.username)
        try:
            ssh.connect(
                hostname=cfg.host,
                port=cfg.port,
                username=cfg.username,
                timeout=DIAL_TIMEOUT,
                **auth,
            )
        except paramiko.AuthenticationException as e:
            ssh.close()
            raise ConnectError(f"SSH authentication failed: {e}") from e
        except (paramiko.SSHException, OSError) as e:
            ssh.close()
            raise ConnectError(f"failed to connect to SSH {cfg.host}:{cfg.port}: {e}") from e

        try:
            sftp = ssh.open_sftp()
        except (paramiko.SSHException, OSError) as e:
            ssh.close()
            raise ConnectError(f"failed to create SFTP client: {e}") from e

        self._ssh = ssh
        self._sftp = sftp
        logger.debug("Connected to %s", self.name)

    @require_connection
    def list_files(self) -> list[RemoteFile]:
        """Walk the remote root and return the matching files."""
        entries: list[RemoteFile] = []
        self._walk(self.config.remote_path or ".", entries)
        return self.filter_files(entries)

    def _walk(self, directory: str, entries: list[RemoteFile]) -> None:
        assert self._sftp is not None
        try:
            attrs = self._sftp.listdir_attr(directory)
        except (OSError, paramiko.SSHException) as e:
            raise ListError(f"failed to list {directory}: {e}") from e

        root = self.config.remote_path or "."
        for attr in attrs:
            if attr.filename in (".", ".."):
                continue
            full_path = posixpath.join(directory, attr.filename)
            is_dir = stat.S_ISDIR(attr.st_mode or 0)
            mtime = (
                datetime.fromtimestamp(attr.st_mtime, timezone.utc)
                if attr.st_mtime is not None
                else None
            )
            entries.append(
                RemoteFile(
                    path=posixpath.relpath(full_path, root),
                    size=attr.st_size or 0,
                    mod_time=mtime,
                    is_dir=is_dir,
                )
            )
            if is_dir:
                self._walk(full_path, entries)

    @require_connection
    def download(self, remote_path: str, sink: BinaryIO) -> None:
        """Stream a remote file into ``sink``."""
        assert self._sftp is not None
        full_path = posixpath.join(self.config.remote_path, remote_path)
        try:
            self._sftp.getfo(full_path, sink)
        except (OSError, paramiko.SSHException) as e:
            raise DownloadError(f"failed to download {remote_path}: {e}") from e

    @require_connection
    def upload(self, source: BinaryIO, remote_path: str) -> None:
        """Stream ``source`` to the server, creating parent directories."""
        assert self._sftp is not None
        full_path = posixpath.join(self.config.remote_path, remote_path)
        self._make_dirs(posixpath.dirname(full_path))
        try:
            self._sftp.putfo(source, full_path)
        except (OSError, paramiko.SSHException) as e:
            raise UploadError(f"failed to upload {remote_path}: {e}") from e

    def _make_dirs(self, directory: str) -> None:
        assert self._sftp is not None
        current = "/" if directory.startswith("/") else ""
        for part in [p for p in directory.split("/") if p]:
            current = posixpath.join(current, part)
            try:
                self._sftp.stat(current)
            except FileNotFoundError:
                try:
                    self._sftp.mkdir(current)
                except OSError as e:
                    logger.debug("mkdir %s failed: %s", current, e)

    def close(self) -> None:
        """Close the SFTP channel and the SSH transport."""
        if self._sftp is not None:
            self._sftp.close()
            self._sftp = None
        if self._ssh is not None:
            self._ssh.close()
            self._ssh = None
