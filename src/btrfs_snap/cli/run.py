"""Run command: Snapshot or back up a profile, then prune it."""

import argparse
import logging
import time

from .. import __util__
from ..config import ConfigError
from .backup import run_backup
from .common import endpoint_options, load_profile, setup_logging
from .prune import run_prune
from .snapshot import run_snapshot

logger = logging.getLogger(__name__)


def execute_run(args: argparse.Namespace) -> int:
    """Execute the run command.

    Snapshot profiles take a new snapshot, backup profiles copy their
    source's snapshots. Both are pruned afterwards unless --no-prune is
    given. This is the command meant to be started by a timer.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    setup_logging(args)

    try:
        config, profile = load_profile(args)
        options = endpoint_options(args, config)
        logger.info(__util__.log_heading(f"Started at {time.ctime()}"))

        if profile.is_backup:
            run_backup(config, profile, options)
        else:
            run_snapshot(config, profile, options)

        if not getattr(args, "no_prune", False):
            run_prune(config, profile, options)
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        return 1
    except (__util__.AbortError, __util__.BackendError) as e:
        logger.error("%s: %s", args.profile, e)
        return 1

    logger.info(__util__.log_heading(f"Finished at {time.ctime()}"))
    return 0
