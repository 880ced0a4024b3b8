"""List command: Show servers and their archives."""

import argparse
import json
import logging

from ..config import ConfigError
from ..core.retention import find_archives
from ..core.runner import select_servers
from .common import get_output_format, load_cli_config, report_config_error, setup_logging

logger = logging.getLogger(__name__)


def execute_list(args: argparse.Namespace) -> int:
    """Execute the list command.

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

    listing = []
    for server in servers:
        location = server.get_backup_location(config.defaults)
        listing.append((server, location, find_archives(location)))

    if get_output_format(args) == "json":
        print(
            json.dumps(
                [
                    {
                        "server": server.name,
                        "type": server.connection.type,
                        "backup_location": str(location),
                        "archives": [
                            {
                                "name": a.name,
                                "created": a.created.isoformat(),
                                "size": a.size,
                            }
                            for a in archives
                        ],
                    }
                    for server, location, archives in listing
                ],
                indent=2,
            )
        )
        return 0

    for server, location, archives in listing:
        print(f"{server.name} ({server.connection.type or 'unknown'})")
        print(f"  Location: {location}")
        if not archives:
            print("  Archives: (none)")
        else:
            print(f"  Archives: {len(archives)}")
            for archive in archives:
                created = archive.created.strftime("%Y-%m-%d %H:%M:%S UTC")
                print(f"    {archive.name}  {created}  {archive.size / 1e6:.1f} MB")
        print("")

    return 0
