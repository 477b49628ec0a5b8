"""Backup planning: decide which snapshots to send and which bases to use."""

import logging
from dataclasses import dataclass, field

from ..__util__ import Snapshot
from ..retention import Cascade

logger = logging.getLogger(__name__)


@dataclass
class BackupPlan:
    """Which source snapshots a backup run transfers.

    Attributes:
        need: Source snapshots missing at the destination, oldest first
        have: Source snapshots already at the destination, oldest first
        unwanted: Needed snapshots the destination's retention policy
            would evict right after the transfer
        to_send: ``need`` without ``unwanted``, oldest first
    """

    need: list[Snapshot] = field(default_factory=list)
    have: list[Snapshot] = field(default_factory=list)
    unwanted: list[Snapshot] = field(default_factory=list)
    to_send: list[Snapshot] = field(default_factory=list)

    @property
    def bases(self) -> list[Snapshot]:
        """Initial delta bases: snapshots present at both ends."""
        return list(self.have)


def plan_backup(source_snapshots, destination_snapshots, destination_tiers) -> BackupPlan:
    """Compare source and destination snapshots and plan the transfers.

    A snapshot is identified by its creation time. The destination's
    retention policy is simulated over the destination snapshots plus
    everything that would be sent; needed snapshots it would evict are
    not worth transferring.

    Args:
        source_snapshots: Snapshots of the source profile
        destination_snapshots: Snapshots already at the destination
        destination_tiers: ``TierConfig`` list of the destination profile

    Returns:
        The BackupPlan
    """
    destination_times = {s.created for s in destination_snapshots}
    need = sorted(s for s in source_snapshots if s.created not in destination_times)
    have = sorted(s for s in source_snapshots if s.created in destination_times)

    simulation = Cascade.from_config(destination_tiers)
    try:
        evicted = simulation.insert(list(destination_snapshots) + need)
    finally:
        simulation.reset()
    evicted_times = {s.created for s in evicted}

    unwanted = [s for s in need if s.created in evicted_times]
    to_send = [s for s in need if s.created not in evicted_times]

    logger.debug(
        "Backup plan: need %d, have %d, unwanted %d, sending %d",
        len(need),
        len(have),
        len(unwanted),
        len(to_send),
    )
    return BackupPlan(need=need, have=have, unwanted=unwanted, to_send=to_send)
