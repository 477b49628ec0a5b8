"""Core operations for btrfs-snap.

Backup planning, the send/receive transfer pipeline, pruning and
snapshot creation, each taking the endpoints and tiers they work on.
"""

from .operations import send_snapshot, sync_snapshots
from .planning import BackupPlan, plan_backup
from .prune import PruneResult, prune_snapshots
from .snapshots import create_snapshot, find_file_versions

__all__ = [
    "send_snapshot",
    "sync_snapshots",
    "plan_backup",
    "BackupPlan",
    "prune_snapshots",
    "PruneResult",
    "create_snapshot",
    "find_file_versions",
]
