"""Shared CLI utilities and argument parsers."""

import argparse
import logging
import sys

from ..__logger__ import create_logger
from ..config import ConfigError, find_config_file, load_config

logger = logging.getLogger(__name__)


def create_global_parser() -> argparse.ArgumentParser:
    """Create a parser with global options that can be used as a parent."""
    parser = argparse.ArgumentParser(add_help=False)
    add_verbosity_args(parser)
    return parser


def add_verbosity_args(parser: argparse.ArgumentParser) -> None:
    """Add verbosity-related arguments to a parser."""
    group = parser.add_argument_group("Output options")
    group.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Print the btrfs commands being run",
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


def add_dry_run_arg(parser: argparse.ArgumentParser) -> None:
    """Add the --dry-run flag to a subcommand parser."""
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the btrfs commands that would be run, without running them",
    )


def add_profile_arg(parser: argparse.ArgumentParser) -> None:
    """Add the positional profile name to a subcommand parser."""
    parser.add_argument("profile", metavar="PROFILE", help="Profile name")


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
    else:
        return "INFO"


def setup_logging(args: argparse.Namespace) -> None:
    """Initialize logging for a command run.

    Timestamps are only shown on a terminal, the journal adds its own.
    """
    create_logger(get_log_level(args), show_time=sys.stderr.isatty())


def load_profile(args: argparse.Namespace):
    """Load the configuration and look up the profile named on the command line.

    Returns:
        Tuple of (Config, ProfileConfig)

    Raises:
        ConfigError: If no config is found, it is invalid, or the profile is unknown
    """
    config_path = find_config_file(getattr(args, "config", None))
    if config_path is None:
        raise ConfigError(
            "No configuration file found. Create one with: btrfs-snap config init"
        )

    logger.debug("Loading configuration from: %s", config_path)
    config, warnings = load_config(config_path)
    for warning in warnings:
        logger.warning("Config: %s", warning)

    try:
        profile = config.get_profile(args.profile)
    except KeyError as e:
        raise ConfigError(f"{e.args[0]} (loaded from {config_path.resolve()})") from None
    return config, profile


def endpoint_options(args: argparse.Namespace, config) -> dict:
    """Settings shared by all endpoints of one command run."""
    return {
        "btrfs_bin": getattr(args, "btrfs_bin", None) or config.global_config.btrfs_bin,
        "dry_run": getattr(args, "dry_run", False),
        "verbose": getattr(args, "verbose", False),
    }
