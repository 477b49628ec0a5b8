# pyright: standard

"""btrfs-snap: btrfs_snap/endpoint/__init__.py."""

import logging

from .common import Endpoint, scan_snapshots
from .local import LocalEndpoint

logger = logging.getLogger(__name__)

__all__ = ["Endpoint", "LocalEndpoint", "choose_endpoint", "scan_snapshots"]


def choose_endpoint(profile, common_config=None, source=False):
    """
    Create the endpoint for a profile's snapshot storage.

    Args:
        profile (ProfileConfig): The profile whose storage is accessed.
        common_config (dict): Settings shared by all endpoints of a run
            (btrfs_bin, dry_run, verbose).
        source (bool): If True, the profile's subvolume is set as the
            endpoint source so snapshots can be taken.

    Returns:
        Endpoint: A prepared endpoint for the profile's storage.
    """
    config = dict(common_config or {})
    config["path"] = profile.storage
    if source and profile.subvolume is not None:
        config["source"] = profile.subvolume

    endpoint = LocalEndpoint(config=config)
    logger.debug("Endpoint for profile %s: %r", profile.name, endpoint)
    endpoint.prepare()
    return endpoint
