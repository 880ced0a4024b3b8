# pyright: standard

"""gsbt: gsbt/connector/ftp.py
Plain and explicit-TLS FTP connector.
"""

import ftplib
import logging
import posixpath
import re
from datetime import datetime, timedelta, timezone
from typing import BinaryIO, Optional

from .common import (
    ConnectError,
    Connector,
    ConnectorConfig,
    DownloadError,
    ListError,
    RemoteFile,
    UploadError,
    relative_to_root,
    require_connection,
)

logger = logging.getLogger(__name__)

DIAL_TIMEOUT = 30

MONTHS = {
    name: number
    for number, name in enumerate(
        ["jan", "feb", "mar", "apr", "may", "jun",
         "jul", "aug", "sep", "oct", "nov", "dec"],
        start=1,
    )
}

DOS_LINE = re.compile(
    r"^(\d{2})-(\d{2})-(\d{2,4})\s+(\d{1,2}):(\d{2})(AM|PM)\s+(<DIR>|\d+)\s+(.+)$",
    re.IGNORECASE,
)

# MLSD replies that mean "command not supported", anything else is a real error.
# (501 from servers such as vsftpd)
MLSD_UNSUPPORTED = ("500", "501", "502", "504")


def _parse_unix_time(month: str, day: str, year_or_time: str, now: datetime) -> Optional[datetime]:
    month_number = MONTHS.get(month[:3].lower())
    if month_number is None:
        return None
    try:
        if ":" in year_or_time:
            hour, minute = (int(v) for v in year_or_time.split(":", 1))
            stamp = datetime(now.year, month_number, int(day), hour, minute, tzinfo=timezone.utc)
            # ls omits the year for entries from the last six months
            if stamp > now + timedelta(days=1):
                stamp = stamp.replace(year=now.year - 1)
            return stamp
        return datetime(int(year_or_time), month_number, int(day), tzinfo=timezone.utc)
    except ValueError:
        return None


def parse_list_line(line: str, now: Optional[datetime] = None) -> Optional[tuple[str, int, Optional[datetime], bool]]:
    """Parse one line of Unix or DOS style LIST output.

    Returns (name, size, mtime, is_dir), or None for lines that are not
    entries (e.g. "total 12").
    """
    now = now or datetime.now(timezone.utc)
    line = line.rstrip("\r\n")
    if not line or line.lower().startswith("total"):
        return None

    dos = DOS_LINE.match(line)
    if dos:
        month, day, year, hour, minute, ampm, size_or_dir, name = dos.groups()
        year_value = int(year)
        if year_value < 100:
            year_value += 2000 if year_value < 70 else 1900
        hour_value = int(hour) % 12 + (12 if ampm.upper() == "PM" else 0)
        try:
            mtime = datetime(year_value, int(month), int(day), hour_value, int(minute), tzinfo=timezone.utc)
        except ValueError:
            mtime = None
        is_dir = size_or_dir.upper() == "<DIR>"
        return name, 0 if is_dir else int(size_or_dir), mtime, is_dir

    parts = line.split(None, 8)
    if len(parts) < 9:
        return None
    perms, _, _, _, size, month, day, year_or_time, name = parts
    kind = perms[0]
    if kind == "l" and " -> " in name:
        name = name.split(" -> ", 1)[0]
    try:
        size_value = int(size)
    except ValueError:
        size_value = 0
    return name, size_value, _parse_unix_time(month, day, year_or_time, now), kind == "d"


def _parse_mlsd_time(value: str) -> Optional[datetime]:
    try:
        return datetime.strptime(value[:14], "%Y%m%d%H%M%S").replace(tzinfo=timezone.utc)
    except ValueError:
        return None


class FTPConnector(Connector):
    """Connector for FTP servers, optionally using explicit TLS."""

    default_port = 21
    scheme = "ftp"

    def __init__(self, config: ConnectorConfig) -> None:
        super().__init__(config)
        self._ftp: Optional[ftplib.FTP] = None
        self._use_mlsd: Optional[bool] = None

    @property
    def is_connected(self) -> bool:
        return self._ftp is not None

    def connect(self) -> None:
        """Dial, log in and switch to passive (or active) mode."""
        if self._ftp is not None:
            return

        cfg = self.config
        ftp = ftplib.FTP_TLS(timeout=DIAL_TIMEOUT) if cfg.tls else ftplib.FTP(timeout=DIAL_TIMEOUT)

        logger.debug("Dialing %s (tls=%s, passive=%s)", self.name, cfg.tls, cfg.passive)
        try:
            ftp.connect(cfg.host, cfg.port)
        except ftplib.all_errors as e:
            raise ConnectError(f"failed to connect to FTP {cfg.host}:{cfg.port}: {e}") from e

        try:
            ftp.login(cfg.username, cfg.password)
            if cfg.tls:
                ftp.prot_p()
            ftp.set_pasv(cfg.passive)
        except ftplib.all_errors as e:
            self._quit(ftp)
            raise ConnectError(f"FTP login failed: {e}") from e

        self._ftp = ftp
        logger.debug("Connected to %s", self.name)

    @require_connection
    def list_files(self) -> list[RemoteFile]:
        """Walk the remote root and return the matching files."""
        entries: list[RemoteFile] = []
        self._walk(self.config.remote_path, entries)
        return self.filter_files(entries)

    def _walk(self, directory: str, entries: list[RemoteFile]) -> None:
        try:
            listing = self._list_dir(directory)
        except ftplib.all_errors as e:
            raise ListError(f"failed to list {directory}: {e}") from e

        for name, size, mtime, is_dir in listing:
            if name in (".", ".."):
                continue
            full_path = posixpath.join(directory, name)
            entries.append(
                RemoteFile(
                    path=relative_to_root(full_path, self.config.remote_path),
                    size=size,
                    mod_time=mtime,
                    is_dir=is_dir,
                )
            )
            if is_dir:
                self._walk(full_path, entries)

    def _list_dir(self, directory: str) -> list[tuple[str, int, Optional[datetime], bool]]:
        assert self._ftp is not None
        if self._use_mlsd is not False:
            try:
                result = []
                # Without facts, so no OPTS MLST precedes the listing
                for name, facts in self._ftp.mlsd(directory):
                    kind = facts.get("type", "").lower()
                    if kind in ("cdir", "pdir"):
                        continue
                    result.append(
                        (
                            name,
                            int(facts.get("size", 0) or 0),
                            _parse_mlsd_time(facts.get("modify", "")),
                            kind == "dir",
                        )
                    )
                self._use_mlsd = True
                return result
            except ftplib.error_perm as e:
                if self._use_mlsd is None and str(e)[:3] in MLSD_UNSUPPORTED:
                    logger.debug("%s does not support MLSD, using LIST", self.name)
                    self._use_mlsd = False
                else:
                    raise

        lines: list[str] = []
        command = f"LIST {directory}" if directory else "LIST"
        self._ftp.retrlines(command, lines.append)
        return [entry for entry in map(parse_list_line, lines) if entry is not None]

    @require_connection
    def download(self, remote_path: str, sink: BinaryIO) -> None:
        """Stream a remote file into ``sink``."""
        assert self._ftp is not None
        full_path = posixpath.join(self.config.remote_path, remote_path)
        try:
            self._ftp.retrbinary(f"RETR {full_path}", sink.write)
        except ftplib.all_errors as e:
            raise DownloadError(f"failed to download {remote_path}: {e}") from e

    @require_connection
    def upload(self, source: BinaryIO, remote_path: str) -> None:
        """Stream ``source`` to the server, creating parent directories."""
        assert self._ftp is not None
        full_path = posixpath.join(self.config.remote_path, remote_path)
        self._make_dirs(posixpath.dirname(full_path))
        try:
            self._ftp.storbinary(f"STOR {full_path}", source)
        except ftplib.all_errors as e:
            raise UploadError(f"failed to upload {remote_path}: {e}") from e

    def _make_dirs(self, directory: str) -> None:
        assert self._ftp is not None
        current = "/" if directory.startswith("/") else ""
        for part in [p for p in directory.split("/") if p]:
            current = posixpath.join(current, part)
            try:
                self._ftp.mkd(current)
            except ftplib.error_perm:
                # Most likely the directory already exists
                pass

    def close(self) -> None:
        """Send QUIT and drop the session."""
        if self._ftp is not None:
            ftp, self._ftp = self._ftp, None
            self._quit(ftp)

    @staticmethod
    def _quit(ftp: ftplib.FTP) -> None:
        try:
            ftp.quit()
        except ftplib.all_errors as e:
            logger.debug("FTP QUIT failed, closing socket: %s", e)
            ftp.close()
