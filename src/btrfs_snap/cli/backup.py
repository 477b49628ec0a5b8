"""Backup command: Copy a profile's snapshots into a backup profile."""

import argparse
import logging
import time

from .. import __util__, endpoint
from ..config import ConfigError
from ..core.operations import sync_snapshots
from .common import endpoint_options, load_profile, setup_logging

logger = logging.getLogger(__name__)


def execute_backup(args: argparse.Namespace) -> int:
    """Execute the backup command.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code
    """
    setup_logging(args)

    try:
        config, profile = load_profile(args)
        logger.info(__util__.log_heading(f"Backup started at {time.ctime()}"))
        run_backup(config, profile, endpoint_options(args, config))
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        return 1
    except (__util__.AbortError, __util__.BackendError) as e:
        logger.error("%s: cannot back up profile: %s", args.profile, e)
        return 1

    logger.info(__util__.log_heading(f"Finished at {time.ctime()}"))
    return 0


def run_backup(config, profile, options):
    """Back up the source profile of ``profile`` into its storage."""
    if not profile.is_backup:
        raise ConfigError(f"profile {profile.name!r} is not a backup profile")
    source_profile = config.get_source_profile(profile)

    source_endpoint = endpoint.choose_endpoint(source_profile, options)
    destination_endpoint = endpoint.choose_endpoint(profile, options)
    return sync_snapshots(source_endpoint, destination_endpoint, profile.tiers)
