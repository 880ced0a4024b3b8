"""gsbt: gsbt/__init__.py."""

from datetime import datetime, timezone


__version__ = "0.3.0"

ARCHIVE_TIMESTAMP_FORMAT = "%Y-%m-%d_%H%M%S"
ARCHIVE_SUFFIX = ".tar.gz"


def timestamped_filename(now: datetime | None = None) -> str:
    """Return the UTC timestamped archive name, e.g. 2024-05-01_120000.tar.gz"""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).strftime(ARCHIVE_TIMESTAMP_FORMAT) + ARCHIVE_SUFFIX
