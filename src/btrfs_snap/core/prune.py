"""Prune snapshots according to a profile's retention tiers."""

import logging
from dataclasses import dataclass, field

from .. import __util__
from ..retention import Cascade

logger = logging.getLogger(__name__)


@dataclass
class PruneResult:
    """Snapshots kept and deleted by a prune run."""

    kept: list = field(default_factory=list)
    deleted: list = field(default_factory=list)


def prune_snapshots(endpoint, tiers) -> PruneResult:
    """Delete every snapshot of ``endpoint`` that falls out of ``tiers``.

    Deletions are not retried. The first failure aborts the remaining
    deletions; snapshots deleted before it stay deleted.

    Args:
        endpoint: Endpoint whose storage is pruned
        tiers: ``TierConfig`` list of the profile

    Returns:
        PruneResult

    Raises:
        SnapshotDeletionError: If a snapshot cannot be deleted
    """
    snapshots = endpoint.list_snapshots()
    cascade = Cascade.from_config(tiers)
    evicted = cascade.insert(snapshots)
    result = PruneResult(kept=cascade.kept)
    cascade.reset()

    logger.info("Keeping %d, deleting %d", len(result.kept), len(evicted))

    for snapshot in evicted:
        try:
            endpoint.delete_snapshot(snapshot)
        except (__util__.BackendError, OSError) as e:
            raise __util__.SnapshotDeletionError(
                f"cannot delete {snapshot}: {e}"
            ) from e
        result.deleted.append(snapshot)

    return result
