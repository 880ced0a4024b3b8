"""Restore command: Extract a backup archive."""

import argparse
import logging
from pathlib import Path

from ..core.archive import ArchiveError, extract_archive, list_archive
from .common import setup_logging

logger = logging.getLogger(__name__)


def execute_restore(args: argparse.Namespace) -> int:
    """Execute the restore command.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code
    """
    setup_logging(args)

    archive = Path(args.archive)
    if not archive.is_file():
        logger.error("Archive not found: %s", archive)
        return 1

    if getattr(args, "server", None):
        logger.error(
            "Restoring to a remote server is not supported; use --local DIR "
            "and upload the files yourself"
        )
        return 1

    dest = Path(args.local).expanduser()

    try:
        if getattr(args, "dry_run", False):
            names = list_archive(archive)
            logger.info("Would restore %d file(s) to %s", len(names), dest)
            for name in names:
                print(name)
            return 0

        if dest.is_dir() and any(dest.iterdir()) and not getattr(args, "force", False):
            logger.error("Directory is not empty: %s (use --force to restore anyway)", dest)
            return 1

        names = extract_archive(archive, dest)
    except (ArchiveError, OSError) as e:
        logger.error("Restore failed: %s", e)
        return 1

    logger.info("Restored %d file(s) to %s", len(names), dest)
    return 0
