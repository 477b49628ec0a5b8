# pyright: standard

"""btrfs-snap: btrfs_snap/endpoint/local.py
Create commands with local endpoints.
"""

import logging

from btrfs_snap import __util__

from .common import Endpoint

logger = logging.getLogger(__name__)


class LocalEndpoint(Endpoint):
    """Snapshot storage on a locally mounted btrfs filesystem."""

    def _prepare(self) -> None:
        """Create the storage directory and check the source subvolume."""
        source = self.config["source"]
        if source is not None and not source.is_dir():
            logger.error("Source subvolume %s does not exist", source)
            raise __util__.AbortError(f"source subvolume {source} does not exist")

        path = self.config["path"]
        if path.is_dir() or self.config["dry_run"]:
            return
        logger.info("Creating directory: %s", path)
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error("Error creating new location %s: %s", path, e)
            raise __util__.AbortError(f"cannot create {path}: {e}") from e
