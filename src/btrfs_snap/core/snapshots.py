"""Snapshot creation and listing."""

import logging
import os
import stat
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from .. import __util__

logger = logging.getLogger(__name__)


def create_snapshot(endpoint, created=None):
    """Take a new read-only snapshot of the endpoint's source subvolume.

    Raises:
        SnapshotExistsError: If a snapshot with the same timestamp exists
        BackendError: If btrfs fails
    """
    snapshot = endpoint.snapshot(created=created)
    logger.info("Created snapshot %s", snapshot.get_name())
    return snapshot


def format_snapshot_list(snapshots, now=None) -> list[str]:
    """One line per snapshot: index, age and storage path."""
    now = now or datetime.now(timezone.utc)
    return [
        f"{i:8d}\t{__util__.format_ago(now - s.created):>10s}\t{s.path}"
        for i, s in enumerate(snapshots, start=1)
    ]


@dataclass(frozen=True)
class FileVersion:
    """A distinct version of a file as seen inside a snapshot."""

    name: str
    size: int
    mtime: float
    mode: int

    def sort_key(self):
        return (self.name, self.mtime)


def find_file_versions(snapshots, path) -> dict:
    """Find every distinct version of ``path`` across ``snapshots``.

    ``path`` is resolved against the current directory. If it names a
    directory in a snapshot, the files directly inside it are considered;
    sub-directories are skipped.

    Snapshots in which ``path`` does not exist, or crosses a regular
    file, are skipped.

    Returns:
        Dict mapping each FileVersion to the newest snapshot holding it

    Raises:
        AbortError: If a snapshot cannot be read, e.g. for lack of permission
    """
    path = Path(os.path.abspath(path))
    relative = path.relative_to(path.anchor)

    versions = {}
    for snapshot in sorted(snapshots):
        backup_path = snapshot.subvolume_path / relative
        try:
            st = backup_path.stat()
            if stat.S_ISDIR(st.st_mode):
                directory = path
                entries = [(entry.name, entry.lstat()) for entry in backup_path.iterdir()]
            else:
                directory = path.parent
                entries = [(path.name, st)]
        except (FileNotFoundError, NotADirectoryError):
            continue
        except OSError as e:
            raise __util__.AbortError(f"cannot read {backup_path}: {e}") from e

        for name, entry_stat in entries:
            if stat.S_ISDIR(entry_stat.st_mode):
                continue
            version = FileVersion(
                name=str(directory / name),
                size=entry_stat.st_size,
                mtime=entry_stat.st_mtime,
                mode=entry_stat.st_mode,
            )
            versions[version] = snapshot
    return versions


def format_file_versions(versions, now=None) -> list[str]:
    """One line per file version: mode, size, age and path inside its snapshot."""
    now = now or datetime.now(timezone.utc)
    lines = []
    for version in sorted(versions, key=FileVersion.sort_key):
        snapshot = versions[version]
        full_path = snapshot.subvolume_path / Path(version.name).relative_to(
            Path(version.name).anchor
        )
        age = now - datetime.fromtimestamp(version.mtime, timezone.utc)
        lines.append(
            f"{stat.filemode(version.mode):>11s}\t{version.size:10d}\t"
            f"{__util__.format_duration(age):<8s}\t{full_path}"
        )
    return lines
