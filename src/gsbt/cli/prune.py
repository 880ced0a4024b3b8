"""Prune command: Delete archives past their prune age."""

import argparse
import logging

from ..config import ConfigError
from ..core.retention import prune_archives
from ..core.runner import select_servers
from .common import load_cli_config, report_config_error, setup_logging

logger = logging.getLogger(__name__)


def execute_prune(args: argparse.Namespace) -> int:
    """Execute the prune command.

    Applies the age based retention to every selected server's archives.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code
    """
    setup_logging(args)

    try:
        config = load_cli_config(args)
        servers = select_servers(config, getattr(args, "server", None))
    except ConfigError as e:
        return report_config_error(e)

    dry_run = getattr(args, "dry_run", False)
    if dry_run:
        logger.info("Dry run mode - showing what would be deleted")

    total_deleted = 0
    errors = 0

    for server in servers:
        location = server.get_backup_location(config.defaults)
        max_age = server.get_prune_age(config.defaults)
        logger.info("Server: %s (prune age: %d days)", server.name, max_age)

        try:
            expired = prune_archives(location, max_age, dry_run=dry_run)
        except OSError as e:
            logger.error("Failed to prune %s: %s", location, e)
            errors += 1
            continue

        total_deleted += len(expired)
        if not expired:
            logger.info("  Nothing to prune")

    verb = "Would delete" if dry_run else "Deleted"
    logger.info("%s %d archive(s)", verb, total_deleted)

    return 1 if errors else 0
