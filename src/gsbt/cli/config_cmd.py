"""Config command: Configuration management."""

import argparse
import logging
from pathlib import Path

from ..config import ConfigError, find_config_file, load_config
from ..config.loader import LOCAL_CONFIG_NAME, generate_example_config
from .common import setup_logging

logger = logging.getLogger(__name__)


def execute_config(args: argparse.Namespace) -> int:
    """Execute the config command.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code
    """
    setup_logging(args)

    action = getattr(args, "config_action", None)

    if action == "validate":
        return _validate_config(args)
    elif action == "init":
        return _init_config(args)
    else:
        print("Usage: gsbt config <validate|init>")
        return 1


def _validate_config(args: argparse.Namespace) -> int:
    """Validate configuration file."""
    try:
        config_path = find_config_file(getattr(args, "config", None))

        print(f"Validating: {config_path}")
        config, warnings = load_config(config_path)

        if warnings:
            print("")
            print("Warnings:")
            for warning in warnings:
                print(f"  - {warning}")

        print("")
        print("Configuration is valid.")
        print(f"  Servers: {len(config.servers)}")
        for server in config.servers:
            location = server.get_backup_location(config.defaults)
            print(f"    {server.name} ({server.connection.type}) -> {location}")

        return 0

    except ConfigError as e:
        print(f"Configuration error: {e}")
        return 1


def _init_config(args: argparse.Namespace) -> int:
    """Generate example configuration."""
    content = generate_example_config()

    output = getattr(args, "output_file", None) or LOCAL_CONFIG_NAME
    if output == "-":
        print(content)
        return 0

    path = Path(output)
    if path.exists() and not getattr(args, "force", False):
        print(f"File already exists: {path} (use --force to overwrite)")
        return 1

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            f.write(content)
        print(f"Example configuration written to: {path}")
    except OSError as e:
        print(f"Error writing file: {e}")
        return 1

    return 0
