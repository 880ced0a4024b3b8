"""Core backup operation: pull one server's files and archive them.

A run walks Idle -> Connected -> Listed -> Downloading -> Archiving -> Done.
Any failure aborts the run before an archive is written, so there is never
a partial archive for a partial download.
"""

import logging
import shutil
import tempfile
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Callable, Optional

from filelock import FileLock

from .. import ARCHIVE_SUFFIX, timestamped_filename
from ..connector import Connector
from .archive import ArchiveError, create_archive
from .progress import NullReporter, ProgressReporter

logger = logging.getLogger(__name__)

STAGING_DIR_NAME = ".tmp"
LOCK_FILE_NAME = ".gsbt.lock"


class BackupError(Exception):
    """Error during a backup run."""

    pass


class BackupCancelled(BackupError):
    """The run was cancelled while in flight."""

    pass


@dataclass
class BackupStats:
    """Summary of a backup run."""

    files: int = 0
    bytes: int = 0
    duration: float = 0.0


class ProgressWriter:
    """Wrap a writable sink, counting bytes and reporting them on every write."""

    def __init__(
        self,
        sink: BinaryIO,
        callback: Optional[Callable[[int], None]] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        self.sink = sink
        self.callback = callback
        self.cancel_event = cancel_event
        self.written = 0

    def write(self, data: bytes) -> int:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise BackupCancelled("backup cancelled")
        n = self.sink.write(data)
        n = len(data) if n is None else n
        self.written += n
        if self.callback is not None:
            self.callback(self.written)
        return n


class BackupManager:
    """Coordinates a backup of a single server.

    Attributes:
        backup_location: Directory the archive is written to
        temp_dir: Staging root (defaults to <backup_location>/.tmp)
        progress: Reporter receiving progress callbacks
        cancel_event: Set to abort the run at the next write
    """

    def __init__(
        self,
        backup_location: Path | str,
        temp_dir: Path | str | None = None,
        progress: Optional[ProgressReporter] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        if not backup_location:
            raise BackupError("backup location is required")
        self.backup_location = Path(backup_location)
        self.temp_dir = Path(temp_dir) if temp_dir else None
        self.progress = progress or NullReporter()
        self.cancel_event = cancel_event

    def _check_cancelled(self) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise BackupCancelled("backup cancelled")

    def _staging_root(self) -> Path:
        return self.temp_dir or self.backup_location / STAGING_DIR_NAME

    def backup(self, connector: Connector) -> tuple[Path, BackupStats]:
        """Pull files via ``connector``, archive them and return (path, stats).

        Raises:
            ConnectorError: connect, list or download failures
            BackupError: staging, archive or cancellation failures
        """
        if connector is None:
            raise BackupError("connector is required")

        start = time.monotonic()
        stats = BackupStats()

        staging_root = self._staging_root()
        try:
            staging_root.mkdir(parents=True, exist_ok=True)
            staging = Path(tempfile.mkdtemp(prefix="run-", dir=staging_root))
        except OSError as e:
            raise BackupError(f"create temp dir: {e}") from e

        try:
            self._check_cancelled()
            with connector:
                self._download_all(connector, staging, stats)

            archive_path = self._write_archive(staging)
        finally:
            shutil.rmtree(staging, ignore_errors=True)

        stats.duration = time.monotonic() - start
        return archive_path, stats

    def _download_all(self, connector: Connector, staging: Path, stats: BackupStats) -> None:
        files = connector.list_files()
        files = [f for f in files if not f.is_dir]

        total_size = sum(f.size for f in files)
        self.progress.start(total_size, len(files))
        logger.debug("%s: %d files, %d bytes to download", connector.name, len(files), total_size)

        try:
            for remote in files:
                self._check_cancelled()
                parts = remote.path.split("/")
                if ".." in parts or remote.path.startswith("/"):
                    raise BackupError(f"refusing unsafe remote path: {remote.path}")
                local_path = staging.joinpath(*parts)
                try:
                    local_path.parent.mkdir(parents=True, exist_ok=True)
                    sink = open(local_path, "wb")
                except OSError as e:
                    raise BackupError(f"create {remote.path}: {e}") from e

                self.progress.file_start(remote.path, remote.size)
                writer = ProgressWriter(
                    sink,
                    callback=lambda written, f=remote: self.progress.file_progress(
                        f.path, written, f.size
                    ),
                    cancel_event=self.cancel_event,
                )
                with sink:
                    connector.download(remote.path, writer)

                stats.files += 1
                stats.bytes += writer.written
                self.progress.file_done(remote.path)
        finally:
            self.progress.close()

    def _write_archive(self, staging: Path) -> Path:
        try:
            self.backup_location.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise BackupError(f"create backup dir: {e}") from e

        with FileLock(self.backup_location / LOCK_FILE_NAME):
            filename = timestamped_filename()
            archive_path = self.backup_location / filename
            suffix = 1
            # Two runs within the same second must not overwrite each other
            while archive_path.exists():
                stem = filename.removesuffix(ARCHIVE_SUFFIX)
                archive_path = self.backup_location / f"{stem}_{suffix}{ARCHIVE_SUFFIX}"
                suffix += 1
            try:
                return create_archive(staging, archive_path)
            except ArchiveError as e:
                raise BackupError(f"create archive: {e}") from e
