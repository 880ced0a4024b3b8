"""Archive discovery and age based pruning."""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path

from .. import ARCHIVE_TIMESTAMP_FORMAT

logger = logging.getLogger(__name__)

ARCHIVE_NAME = re.compile(r"^(\d{4}-\d{2}-\d{2}_\d{6})(?:_\d+)?\.tar\.gz$")


@dataclass
class ArchiveInfo:
    """An archive found in a backup location."""

    path: Path
    created: datetime
    size: int

    @property
    def name(self) -> str:
        return self.path.name


def parse_archive_time(name: str) -> datetime | None:
    """Return the UTC time encoded in an archive name, or None."""
    match = ARCHIVE_NAME.match(name)
    if not match:
        return None
    try:
        return datetime.strptime(match.group(1), ARCHIVE_TIMESTAMP_FORMAT).replace(
            tzinfo=timezone.utc
        )
    except ValueError:
        return None


def find_archives(location: Path | str) -> list[ArchiveInfo]:
    """List archives in ``location``, newest first. Other files are ignored."""
    location = Path(location)
    if not location.is_dir():
        return []

    archives = []
    for path in location.iterdir():
        if not path.is_file():
            continue
        created = parse_archive_time(path.name)
        if created is None:
            continue
        archives.append(ArchiveInfo(path=path, created=created, size=path.stat().st_size))

    archives.sort(key=lambda a: (a.created, a.name), reverse=True)
    return archives


def prune_archives(
    location: Path | str,
    max_age_days: int,
    now: datetime | None = None,
    dry_run: bool = False,
) -> list[ArchiveInfo]:
    """Delete archives older than ``max_age_days`` and return them.

    A non-positive age disables pruning.
    """
    if max_age_days <= 0:
        return []

    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(days=max_age_days)
    expired = [a for a in find_archives(location) if a.created < cutoff]

    for archive in expired:
        if dry_run:
            logger.info("Would delete %s", archive.path)
            continue
        logger.info("Deleting %s", archive.path)
        archive.path.unlink()

    return expired
