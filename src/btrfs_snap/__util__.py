# pyright: standard

"""btrfs-snap: btrfs_snap/__util__.py
Common utility code shared between modules.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Snapshot directories are named by their creation time (UTC) in this format.
SNAPSHOT_DATE_FORMAT = "%Y-%m-%d_%H:%M:%S"
# Name of the nested directory holding the actual subvolume.
SUBVOLUME_NAME = "snapshot"

DAY = timedelta(days=1)
WEEK = 7 * DAY
MONTH = 30 * DAY
YEAR = 365 * DAY

INTERVAL_UNITS = {
    "s": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
    "d": DAY,
    "w": WEEK,
    "M": MONTH,
    "y": YEAR,
}

_SAFE_ARG = re.compile(r"^[-./@_0-9A-Za-z]*$")


class AbortError(Exception):
    """Exception where btrfs-snap should abort."""


class SnapshotExistsError(AbortError):
    """A snapshot with the same timestamp already exists."""


class BackendError(Exception):
    """A btrfs command exited with a non-zero status."""

    def __init__(self, name, returncode, stderr=""):
        self.name = name
        self.returncode = returncode
        self.stderr = stderr
        if returncode is None:
            message = f"{name}: could not be started"
        else:
            message = f"{name}: failed with exit code {returncode}"
        sample = summarize_stderr(stderr)
        if sample:
            message += f" (stderr: {sample!r})"
        super().__init__(message)


class SnapshotTransferError(AbortError):
    """Error when transferring a snapshot."""


class SnapshotDeletionError(AbortError):
    """Error when deleting a snapshot during pruning."""


@dataclass(frozen=True, order=True)
class Snapshot:
    """A snapshot as found in a storage directory.

    The creation time is the identity of a snapshot within a profile, so
    comparison and hashing only look at ``created``.
    """

    created: datetime
    path: Path = field(compare=False)
    subvolume_path: Path = field(compare=False)

    @classmethod
    def at(cls, storage, created):
        """Build the record for a snapshot created at ``created`` below ``storage``."""
        path = Path(storage) / date_to_str(created)
        return cls(created=created, path=path, subvolume_path=path / SUBVOLUME_NAME)

    def get_name(self) -> str:
        """Return the directory name of this snapshot."""
        return self.path.name

    def find_parent(self, candidates):
        """Return the newest snapshot of ``candidates`` older than this one."""
        parent = None
        for candidate in candidates:
            if candidate < self and (parent is None or parent < candidate):
                parent = candidate
        return parent

    def __str__(self) -> str:
        return str(self.path)


def date_to_str(created: datetime) -> str:
    """Format a creation time as a snapshot directory name."""
    return created.astimezone(timezone.utc).strftime(SNAPSHOT_DATE_FORMAT)


def str_to_date(name: str) -> datetime:
    """Parse a snapshot directory name, raising ValueError if it is none."""
    return datetime.strptime(name, SNAPSHOT_DATE_FORMAT).replace(tzinfo=timezone.utc)


def now() -> datetime:
    """Current time in UTC, truncated to the resolution of snapshot names."""
    return datetime.now(timezone.utc).replace(microsecond=0)


def parse_interval(text: str) -> timedelta:
    """Parse an interval literal such as ``30m``, ``2h`` or ``6M``.

    Units are s, m (minutes), h, d, w, M (30 days) and y (365 days).
    """
    if not text:
        raise ValueError("invalid interval '': cannot be blank")
    number, unit = text[:-1], text[-1]
    if not number.isdigit():
        raise ValueError(f"invalid interval {text!r}: {number!r} is not a number")
    if unit not in INTERVAL_UNITS:
        raise ValueError(f"invalid interval {text!r}: invalid unit {unit!r}")
    return int(number) * INTERVAL_UNITS[unit]


_AGO_RANGES = (
    (timedelta(minutes=1), timedelta(seconds=1), "s"),
    (timedelta(hours=1), timedelta(minutes=1), "m"),
    (2 * DAY, timedelta(hours=1), "h"),
    (MONTH, DAY, "d"),
    (3 * MONTH, WEEK, "w"),
    (2 * YEAR, MONTH, "mo"),
)


def format_duration(delta: timedelta, precision: int = 2) -> str:
    """Render a positive duration with up to ``precision`` units, e.g. ``" 3h20m"``."""
    if precision <= 0:
        return ""
    div, unit = YEAR, "y"
    for limit, range_div, range_unit in _AGO_RANGES:
        if delta < limit:
            div, unit = range_div, range_unit
            break
    value = int(delta.total_seconds() // div.total_seconds())
    rest = timedelta(seconds=int(delta.total_seconds() - value * div.total_seconds()))
    tail = ""
    if rest > timedelta(seconds=1):
        tail = format_duration(rest, precision - 1)
    return f"{value:2d}{unit:<2s}{tail}"


def format_ago(delta: timedelta, precision: int = 2) -> str:
    """Render how long ago something happened, e.g. ``" 3h20m ago"``."""
    if delta > timedelta(0):
        return format_duration(delta, precision) + " ago"
    return "in " + format_duration(-delta, precision)


def summarize_stderr(stderr) -> str:
    """Return the first line of ``stderr`` and a count of the remaining ones."""
    if isinstance(stderr, bytes):
        stderr = stderr.decode("utf-8", errors="replace")
    lines = (stderr or "").strip().splitlines()
    if not lines:
        return ""
    sample = lines[0]
    if len(lines) > 1:
        sample += f" [{len(lines) - 1} more lines...]"
    return sample


def escaped_args(args, max_args=0):
    """Quote arguments for display, optionally shortening long argument lists."""
    args = [str(arg) for arg in args]
    if max_args > 0 and len(args) > max_args:
        args = [args[0], "..."] + args[-max_args:]
    return [arg if _SAFE_ARG.match(arg) else f'"{arg}"' for arg in args]


def log_heading(caption):
    """Formatted heading for logging output sections."""
    return f"{'-' * 10} {caption} {'-' * 10}"
