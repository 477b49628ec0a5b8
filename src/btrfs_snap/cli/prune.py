"""Prune command: Apply a profile's retention tiers."""

import argparse
import logging
import time

from .. import __util__, endpoint
from ..config import ConfigError
from ..core.prune import prune_snapshots
from ..retention import format_retention_summary
from .common import endpoint_options, load_profile, setup_logging

logger = logging.getLogger(__name__)


def execute_prune(args: argparse.Namespace) -> int:
    """Execute the prune command.

    Deletes the snapshots that fall out of the profile's retention tiers.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code
    """
    setup_logging(args)

    try:
        config, profile = load_profile(args)
        options = endpoint_options(args, config)
        if options["dry_run"]:
            logger.info("Dry run mode - showing what would be deleted")
        logger.info(__util__.log_heading(f"Pruning snapshots at {time.ctime()}"))
        run_prune(config, profile, options)
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        return 1
    except (__util__.AbortError, __util__.BackendError) as e:
        logger.error("%s: cannot prune snapshots: %s", args.profile, e)
        return 1

    logger.info(__util__.log_heading(f"Finished at {time.ctime()}"))
    return 0


def run_prune(config, profile, options):
    """Prune ``profile``'s storage with a freshly built cascade."""
    logger.info("Profile %s: %s", profile.name, format_retention_summary(profile.tiers))
    profile_endpoint = endpoint.choose_endpoint(profile, options)
    result = prune_snapshots(profile_endpoint, profile.tiers)
    if options.get("dry_run"):
        logger.info("Dry run: would delete %d, keep %d", len(result.deleted), len(result.kept))
    else:
        logger.info("Deleted %d snapshot(s), kept %d", len(result.deleted), len(result.kept))
    return result
