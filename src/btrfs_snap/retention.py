"""Tiered retention: classify snapshots into kept and evicted ones.

A cascade is an ordered list of tiers, finest interval first. Every tier
keeps at most ``size`` snapshots that are at least ``interval`` apart. A
snapshot that is too close to the previously kept one is handed on to the
next tier unchanged; a full tier displaces its oldest occupant into the
next tier. Whatever falls out of the last tier is evicted.

Example:
    tiers = [Tier(timedelta(hours=1), 24), Tier(timedelta(days=1), 7)]
    result = classify(tiers, snapshots)
    result.evicted  # snapshots to delete
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from .__util__ import Snapshot, format_duration

logger = logging.getLogger(__name__)


class DuplicateSnapshotError(ValueError):
    """Two snapshots with the same creation time were inserted together."""


class Tier:
    """A retention tier: a ring of ``size`` slots with a minimum interval."""

    def __init__(self, interval: timedelta, size: int) -> None:
        if size <= 0:
            raise ValueError(f"tier size must be positive, got {size}")
        self.interval = interval
        self.size = size
        self.slots: list[Optional[Snapshot]] = [None] * size
        self.cursor = 0
        self.last_kept: Optional[datetime] = None

    def insert(self, snapshots: list[Snapshot]) -> list[Snapshot]:
        """Offer ``snapshots`` (sorted ascending) to this tier.

        Returns the snapshots passed on to the next tier: those rejected for
        being too close to the previously kept one and those displaced from
        a full ring, in ascending order.
        """
        passed_on = []
        for snapshot in snapshots:
            if (
                self.last_kept is not None
                and snapshot.created - self.last_kept < self.interval
            ):
                passed_on.append(snapshot)
                continue
            displaced = self.slots[self.cursor]
            if displaced is not None:
                passed_on.append(displaced)
            self.slots[self.cursor] = snapshot
            self.cursor = (self.cursor + 1) % self.size
            self.last_kept = snapshot.created
        passed_on.sort()
        return passed_on

    @property
    def kept(self) -> list[Snapshot]:
        """Snapshots currently held by this tier, oldest first."""
        return sorted(s for s in self.slots if s is not None)

    def reset(self) -> None:
        """Empty the tier."""
        self.slots = [None] * self.size
        self.cursor = 0
        self.last_kept = None

    def __repr__(self) -> str:
        return f"Tier({format_duration(self.interval).strip()}, {self.size})"


class Cascade:
    """An ordered list of tiers, finest first.

    The tiers keep state between calls to :meth:`insert`, so a cascade must
    be reset before classifying another set of snapshots.
    """

    def __init__(self, tiers: Optional[list[Tier]] = None) -> None:
        self.tiers: list[Tier] = list(tiers or [])

    @classmethod
    def from_config(cls, tier_configs) -> "Cascade":
        """Build a fresh cascade from ``TierConfig`` entries."""
        return cls([Tier(t.interval, t.size) for t in tier_configs])

    def insert(self, snapshots) -> list[Snapshot]:
        """Classify ``snapshots`` and return the evicted ones, oldest first."""
        pending = sorted(snapshots)
        for older, newer in zip(pending, pending[1:]):
            if older.created == newer.created:
                raise DuplicateSnapshotError(
                    f"duplicate snapshot timestamp {older.created.isoformat()}: "
                    f"{older} and {newer}"
                )
        for tier in self.tiers:
            pending = tier.insert(pending)
            logger.debug("%r keeps %d, passes on %d", tier, len(tier.kept), len(pending))
        return pending

    @property
    def kept(self) -> list[Snapshot]:
        """All snapshots held by any tier, oldest first."""
        return sorted(s for tier in self.tiers for s in tier.kept)

    def reset(self) -> None:
        """Empty every tier."""
        for tier in self.tiers:
            tier.reset()

    def __repr__(self) -> str:
        return f"Cascade({self.tiers!r})"


@dataclass
class RetentionResult:
    """Outcome of a classification pass."""

    kept_per_tier: list[list[Snapshot]] = field(default_factory=list)
    evicted: list[Snapshot] = field(default_factory=list)

    @property
    def kept(self) -> list[Snapshot]:
        return sorted(s for tier in self.kept_per_tier for s in tier)


def classify(tiers: list[Tier], snapshots) -> RetentionResult:
    """Run one classification pass over ``tiers`` and reset them afterwards."""
    cascade = Cascade(tiers)
    cascade.reset()
    try:
        evicted = cascade.insert(snapshots)
        return RetentionResult(
            kept_per_tier=[tier.kept for tier in cascade.tiers],
            evicted=evicted,
        )
    finally:
        cascade.reset()


def format_retention_summary(tiers) -> str:
    """One-line description of a tier list, e.g. ``"1h x 24, 1d x 7"``.

    Intervals are shown as written in the config file where known.
    """
    if not tiers:
        return "no tiers (everything is evicted)"
    return ", ".join(
        f"{getattr(t, 'source', '') or format_duration(t.interval).strip()} x {t.size}"
        for t in tiers
    )
