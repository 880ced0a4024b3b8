"""Core backup operations for gsbt.

Single-server backup orchestration, archive handling, progress reporting,
retention and the multi-server runner.
"""

from .archive import ArchiveError, create_archive, extract_archive, list_archive
from .backup import BackupCancelled, BackupError, BackupManager, BackupStats
from .progress import (
    JsonReporter,
    LogReporter,
    NullReporter,
    ProgressReporter,
    RichReporter,
    create_reporter,
)
from .retention import ArchiveInfo, find_archives, prune_archives
from .runner import (
    BackupRunner,
    RunOptions,
    RunSummary,
    ServerResult,
    run_backups,
    to_connector_config,
)

__all__ = [
    "ArchiveError",
    "create_archive",
    "extract_archive",
    "list_archive",
    "BackupCancelled",
    "BackupError",
    "BackupManager",
    "BackupStats",
    "JsonReporter",
    "LogReporter",
    "NullReporter",
    "ProgressReporter",
    "RichReporter",
    "create_reporter",
    "ArchiveInfo",
    "find_archives",
    "prune_archives",
    "BackupRunner",
    "RunOptions",
    "RunSummary",
    "ServerResult",
    "run_backups",
    "to_connector_config",
]
