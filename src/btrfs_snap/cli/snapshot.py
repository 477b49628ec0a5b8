"""Snapshot command: Create a snapshot of a profile's subvolume."""

import argparse
import logging

from .. import __util__, endpoint
from ..config import ConfigError
from ..core.snapshots import create_snapshot
from .common import endpoint_options, load_profile, setup_logging

logger = logging.getLogger(__name__)


def execute_snapshot(args: argparse.Namespace) -> int:
    """Execute the snapshot command.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code
    """
    setup_logging(args)

    try:
        config, profile = load_profile(args)
        run_snapshot(config, profile, endpoint_options(args, config))
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        return 1
    except (__util__.AbortError, __util__.BackendError) as e:
        logger.error("%s: cannot create snapshot: %s", args.profile, e)
        return 1

    return 0


def run_snapshot(config, profile, options):
    """Take a snapshot for ``profile``, which must be a snapshot profile."""
    if profile.is_backup:
        raise ConfigError(f"profile {profile.name!r} is a backup profile")
    source_endpoint = endpoint.choose_endpoint(profile, options, source=True)
    return create_snapshot(source_endpoint)
