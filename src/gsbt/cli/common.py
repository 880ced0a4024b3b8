"""Shared CLI utilities and argument parsers."""

import argparse
import logging

from ..__logger__ import OUTPUT_FORMATS, create_logger
from ..config import Config, ConfigError, find_config_file, load_config

logger = logging.getLogger(__name__)


def add_verbosity_args(parser: argparse.ArgumentParser) -> None:
    """Add verbosity-related arguments to a parser."""
    group = parser.add_argument_group("Output options")
    group.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose output",
    )
    group.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Suppress non-essential output",
    )
    group.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug output",
    )


def add_output_args(parser: argparse.ArgumentParser) -> None:
    """Add the output format option to a parser."""
    parser.add_argument(
        "-o",
        "--output",
        choices=OUTPUT_FORMATS,
        default="text",
        help="Output format (default: text)",
    )


def get_log_level(args: argparse.Namespace) -> str:
    """Determine log level from parsed arguments.

    Args:
        args: Parsed command line arguments

    Returns:
        Log level string (DEBUG, INFO, WARNING, ERROR)
    """
    if getattr(args, "debug", False):
        return "DEBUG"
    elif getattr(args, "quiet", False):
        return "WARNING"
    elif getattr(args, "verbose", False):
        return "DEBUG"
    else:
        return "INFO"


def get_output_format(args: argparse.Namespace) -> str:
    """Output format from parsed arguments, text if unset."""
    return getattr(args, "output", None) or "text"


def setup_logging(args: argparse.Namespace) -> None:
    """Configure logging for a command from its parsed arguments."""
    create_logger(get_output_format(args), level=get_log_level(args))


def load_cli_config(args: argparse.Namespace) -> Config:
    """Find and load the configuration named by the arguments.

    Warnings are logged; errors propagate to the command.

    Raises:
        ConfigError: If no config is found or it is invalid
    """
    config_path = find_config_file(getattr(args, "config", None))
    logger.debug("Loading configuration from: %s", config_path)
    config, warnings = load_config(config_path)

    for warning in warnings:
        logger.warning("Config: %s", warning)

    return config


def report_config_error(error: ConfigError) -> int:
    """Log a configuration error and return the failure exit code."""
    logger.error("Configuration error: %s", error)
    if "No config file found" in str(error):
        logger.info("Create one with: gsbt config init")
    return 1
