"""Archive building and extraction.

Archives are gzip compressed tarballs whose member names are the
forward-slash relative paths of the files below the staging directory.
"""

import logging
import os
import tarfile
from pathlib import Path

logger = logging.getLogger(__name__)

PARTIAL_SUFFIX = ".partial"


class ArchiveError(Exception):
    """Error while creating or reading an archive."""

    pass


def create_archive(src_dir: Path | str, dest_path: Path | str) -> Path:
    """Compress the contents of ``src_dir`` into a .tar.gz at ``dest_path``.

    The archive is written under a temporary name and renamed into place,
    so ``dest_path`` either holds a complete archive or does not exist.

    Args:
        src_dir: Directory whose contents are archived (the directory itself
            is not an entry)
        dest_path: Final archive path

    Returns:
        The archive path

    Raises:
        ArchiveError: If the archive cannot be written
    """
    if not src_dir:
        raise ArchiveError("source directory is required")
    if not dest_path:
        raise ArchiveError("destination path is required")

    src_dir = Path(src_dir)
    dest_path = Path(dest_path)
    partial_path = dest_path.with_name(dest_path.name + PARTIAL_SUFFIX)

    try:
        dest_path.parent.mkdir(parents=True, exist_ok=True)
        with tarfile.open(partial_path, "w:gz") as tar:
            for root, dirs, files in os.walk(src_dir):
                dirs.sort()
                for name in dirs + sorted(files):
                    path = Path(root) / name
                    arcname = path.relative_to(src_dir).as_posix()
                    tar.add(path, arcname=arcname, recursive=False)
        os.replace(partial_path, dest_path)
    except (OSError, tarfile.TarError) as e:
        try:
            partial_path.unlink(missing_ok=True)
        except OSError as cleanup_error:
            logger.debug("Could not remove %s: %s", partial_path, cleanup_error)
        raise ArchiveError(f"failed to create archive {dest_path}: {e}") from e

    logger.debug("Archive written: %s", dest_path)
    return dest_path


def list_archive(archive_path: Path | str) -> list[str]:
    """Return the names of the regular files stored in an archive."""
    try:
        with tarfile.open(archive_path, "r:gz") as tar:
            return [m.name for m in tar.getmembers() if m.isfile()]
    except (OSError, tarfile.TarError) as e:
        raise ArchiveError(f"cannot read archive {archive_path}: {e}") from e


def extract_archive(archive_path: Path | str, dest_dir: Path | str) -> list[str]:
    """Extract an archive below ``dest_dir`` and return the extracted file names.

    Members that would escape ``dest_dir`` are rejected by the tarfile
    data filter.
    """
    dest_dir = Path(dest_dir)
    dest_dir.mkdir(parents=True, exist_ok=True)
    try:
        with tarfile.open(archive_path, "r:gz") as tar:
            names = [m.name for m in tar.getmembers() if m.isfile()]
            tar.extractall(dest_dir, filter="data")
    except (OSError, tarfile.TarError) as e:
        raise ArchiveError(f"failed to extract {archive_path}: {e}") from e
    return names
