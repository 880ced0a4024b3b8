"""Backup command: Back up all configured servers."""

import argparse
import json
import logging

from .. import __logger__
from ..config import ConfigError
from ..core.progress import RichReporter, create_rich_progress
from ..core.runner import BackupRunner, RunOptions, RunSummary
from .common import get_output_format, load_cli_config, report_config_error, setup_logging

logger = logging.getLogger(__name__)


def execute_backup(args: argparse.Namespace) -> int:
    """Execute the backup command.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code (0 when every server succeeded, 1 otherwise)
    """
    setup_logging(args)
    output_format = get_output_format(args)

    try:
        config = load_cli_config(args)
    except ConfigError as e:
        return report_config_error(e)

    options = RunOptions(
        server=getattr(args, "server", None),
        sequential=getattr(args, "sequential", False),
        output_format=output_format,
        quiet=getattr(args, "quiet", False),
        dry_run=getattr(args, "dry_run", False),
    )
    runner = BackupRunner(config, options)

    try:
        if options.dry_run:
            return _dry_run(runner, output_format)

        if output_format == "rich" and not options.quiet and __logger__.cons.is_terminal:
            with create_rich_progress() as progress:
                runner.reporter_factory = lambda server, log: RichReporter(
                    progress, server.name
                )
                summary = runner.run()
        else:
            summary = runner.run()
    except ConfigError as e:
        return report_config_error(e)

    return _report_summary(summary, output_format)


def _dry_run(runner: BackupRunner, output_format: str) -> int:
    """Show what would be backed up without connecting."""
    planned = runner.plan()

    if output_format == "json":
        entries = []
        for plan in planned:
            entry = {
                "server": plan.server.name,
                "destination": str(plan.destination),
            }
            if plan.connector_config is not None:
                entry.update(
                    {
                        "type": plan.connector_config.type,
                        "remote_path": plan.connector_config.remote_path,
                        "include": plan.connector_config.include,
                        "exclude": plan.connector_config.exclude,
                    }
                )
            if plan.error:
                entry["error"] = plan.error
            entries.append(entry)
        print(json.dumps(entries, indent=2))
        return 1 if any(p.error for p in planned) else 0

    print("Dry run mode - showing what would be backed up:")
    print("")

    for plan in planned:
        print(f"Server: {plan.server.name}")
        if plan.server.description:
            print(f"  Description: {plan.server.description}")
        print(f"  Destination: {plan.destination}")
        if plan.error:
            print(f"  Error: {plan.error}")
            print("")
            continue

        conn = plan.connector_config
        print(f"  Type: {conn.type}")
        if conn.type == "nitrado":
            print(f"  Service: {conn.service_id}")
        else:
            print(f"  Host: {conn.host}:{conn.port or 'default'}")
        print(f"  Remote path: {conn.remote_path}")
        print(f"  Include: {', '.join(conn.include)}")
        if conn.exclude:
            print(f"  Exclude: {', '.join(conn.exclude)}")
        print("")

    return 1 if any(p.error for p in planned) else 0


def _report_summary(summary: RunSummary, output_format: str) -> int:
    """Log the run outcome and pick the exit code."""
    if output_format == "json":
        print(
            json.dumps(
                {
                    "success": summary.successes,
                    "failed": summary.failures,
                    "duration_sec": round(summary.duration, 3),
                    "results": [
                        {
                            "server": r.name,
                            "success": r.success,
                            "archive_path": str(r.archive_path) if r.archive_path else None,
                            "files": r.stats.files if r.stats else 0,
                            "bytes": r.stats.bytes if r.stats else 0,
                            "error": r.error or None,
                        }
                        for r in summary.results
                    ],
                },
                indent=2,
            )
        )

    if summary.failures == 0:
        logger.info("All %d server(s) backed up successfully", summary.successes)
        return 0

    for result in summary.results:
        if not result.success:
            logger.error("  %s: %s", result.name, result.error)

    if summary.partial_failure:
        logger.warning(
            "backup complete with failures: %d success, %d failed",
            summary.successes,
            summary.failures,
        )
    else:
        logger.error("backup failed for all %d server(s)", summary.failures)
    return 1
