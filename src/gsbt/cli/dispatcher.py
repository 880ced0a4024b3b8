"""CLI dispatcher.

Builds the argument parser and routes each subcommand to the module that
implements it.
"""

import argparse
import sys
from typing import Callable

from .common import add_output_args, add_verbosity_args


def create_subcommand_parser() -> argparse.ArgumentParser:
    """Create the main argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="gsbt",
        description="Back up gameserver files over FTP, SFTP or the Nitrado API",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    add_verbosity_args(parser)
    add_output_args(parser)

    parser.add_argument(
        "-V",
        "--version",
        action="store_true",
        help="Show version and exit",
    )

    parser.add_argument(
        "-c",
        "--config",
        metavar="FILE",
        help="Path to configuration file",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        title="commands",
        description="Available commands (use 'command --help' for details)",
    )

    # backup command
    backup_parser = subparsers.add_parser(
        "backup",
        help="Back up configured servers",
        description="Download each server's files and store them as a timestamped archive",
    )
    backup_parser.add_argument(
        "-s",
        "--server",
        metavar="NAME",
        help="Only back up the named server",
    )
    backup_parser.add_argument(
        "--sequential",
        action="store_true",
        help="Back up servers one after another instead of in parallel",
    )
    backup_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be backed up without connecting",
    )

    # list command
    list_parser = subparsers.add_parser(
        "list",
        help="Show servers and their archives",
        description="List configured servers and the archives stored for each",
    )
    list_parser.add_argument(
        "-s",
        "--server",
        metavar="NAME",
        help="Only list the named server",
    )

    # prune command
    prune_parser = subparsers.add_parser(
        "prune",
        help="Delete old archives",
        description="Delete archives older than the configured prune age",
    )
    prune_parser.add_argument(
        "-s",
        "--server",
        metavar="NAME",
        help="Only prune the named server",
    )
    prune_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be deleted without making changes",
    )

    # restore command
    restore_parser = subparsers.add_parser(
        "restore",
        help="Restore an archive",
        description="Extract a backup archive into a local directory",
    )
    restore_parser.add_argument(
        "archive",
        metavar="ARCHIVE",
        help="Path to the archive to restore",
    )
    target = restore_parser.add_mutually_exclusive_group(required=True)
    target.add_argument(
        "--local",
        metavar="DIR",
        help="Extract into this local directory",
    )
    target.add_argument(
        "--server",
        metavar="NAME",
        help="Upload to the named server (not supported)",
    )
    restore_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List the archive contents without extracting",
    )
    restore_parser.add_argument(
        "--force",
        action="store_true",
        help="Extract into a non-empty directory",
    )

    # config command with subcommands
    config_parser = subparsers.add_parser(
        "config",
        help="Configuration management",
        description="Initialize or validate configuration",
    )
    config_subs = config_parser.add_subparsers(dest="config_action")

    config_subs.add_parser(
        "validate",
        help="Validate configuration file",
    )

    init_parser = config_subs.add_parser(
        "init",
        help="Generate example configuration",
    )
    init_parser.add_argument(
        "-o",
        "--output",
        dest="output_file",
        metavar="FILE",
        help="Output file (default: ./.gsbt-config.toml, '-' for stdout)",
    )
    init_parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite an existing file",
    )

    # version command
    subparsers.add_parser(
        "version",
        help="Show version information",
    )

    return parser


def run_subcommand(args: argparse.Namespace) -> int:
    """Run the specified subcommand.

    Args:
        args: Parsed arguments

    Returns:
        Exit code
    """
    if args.version:
        return cmd_version(args)

    if not args.command:
        print("No command specified. Use --help for usage information.")
        return 1

    handlers: dict[str, Callable] = {
        "backup": cmd_backup,
        "list": cmd_list,
        "prune": cmd_prune,
        "restore": cmd_restore,
        "config": cmd_config,
        "version": cmd_version,
    }

    handler = handlers.get(args.command)
    if handler:
        return handler(args)
    else:
        print(f"Unknown command: {args.command}")
        return 1


def cmd_backup(args: argparse.Namespace) -> int:
    """Execute backup command."""
    from .backup import execute_backup

    return execute_backup(args)


def cmd_list(args: argparse.Namespace) -> int:
    """Execute list command."""
    from .list_cmd import execute_list

    return execute_list(args)


def cmd_prune(args: argparse.Namespace) -> int:
    """Execute prune command."""
    from .prune import execute_prune

    return execute_prune(args)


def cmd_restore(args: argparse.Namespace) -> int:
    """Execute restore command."""
    from .restore import execute_restore

    return execute_restore(args)


def cmd_config(args: argparse.Namespace) -> int:
    """Execute config command."""
    from .config_cmd import execute_config

    return execute_config(args)


def cmd_version(args: argparse.Namespace) -> int:
    """Execute version command."""
    from .version import execute_version

    return execute_version(args)


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the gsbt CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    if argv is None:
        argv = sys.argv[1:]

    parser = create_subcommand_parser()
    args = parser.parse_args(argv)

    if args.verbose and args.quiet:
        parser.error("--verbose and --quiet cannot be used together")

    try:
        return run_subcommand(args)
    except KeyboardInterrupt:
        print("Interrupted", file=sys.stderr)
        return 130
