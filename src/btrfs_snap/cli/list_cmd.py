"""List command: Show snapshots, or the versions of a file across them."""

import argparse
import logging

from .. import __util__, endpoint
from ..config import ConfigError
from ..core.snapshots import (
    find_file_versions,
    format_file_versions,
    format_snapshot_list,
)
from .common import endpoint_options, load_profile, setup_logging

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
        config, profile = load_profile(args)
        # Listing never changes anything, so don't let prepare() create storage
        options = dict(endpoint_options(args, config), dry_run=True)
        snapshots = endpoint.choose_endpoint(profile, options).list_snapshots()

        files = getattr(args, "files", None)
        if files:
            lines = format_file_versions(find_file_versions(snapshots, files))
        else:
            lines = format_snapshot_list(snapshots)
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        return 1
    except __util__.AbortError as e:
        logger.error("%s: cannot list snapshots: %s", args.profile, e)
        return 1

    for line in lines:
        print(line)

    return 0
