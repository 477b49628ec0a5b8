# pyright: standard

"""btrfs-snap: btrfs_snap/endpoint/common.py
Common functionality among endpoints: scanning storage and running btrfs.
"""

import logging
import os
import subprocess
from pathlib import Path

from filelock import FileLock

from btrfs_snap import __util__

logger = logging.getLogger(__name__)


def scan_snapshots(directory):
    """Return the snapshots stored directly below ``directory``, oldest first.

    A missing directory holds no snapshots. Entries whose name is not a
    snapshot timestamp, or that lack the nested subvolume directory, are
    skipped.

    Raises:
        AbortError: If ``directory`` exists but cannot be read
    """
    directory = Path(directory)
    try:
        entries = list(directory.iterdir())
    except FileNotFoundError:
        return []
    except OSError as e:
        logger.error("Cannot read snapshot storage %s: %s", directory, e)
        raise __util__.AbortError(f"cannot read snapshot storage {directory}: {e}") from e

    snapshots = []
    for entry in entries:
        try:
            created = __util__.str_to_date(entry.name)
        except ValueError:
            logger.debug("Skipping %s: not a snapshot name", entry)
            continue
        subvolume_path = entry / __util__.SUBVOLUME_NAME
        if subvolume_path.is_symlink() or not subvolume_path.is_dir():
            logger.debug("Skipping %s: no %s directory", entry, __util__.SUBVOLUME_NAME)
            continue
        snapshots.append(
            __util__.Snapshot(created=created, path=entry, subvolume_path=subvolume_path)
        )
    snapshots.sort()
    return snapshots


class Endpoint:
    """Generic structure of a snapshot storage endpoint."""

    def __init__(self, config=None, **kwargs) -> None:
        """
        Initialize the Endpoint with a configuration dictionary.

        Args:
            config (dict): Configuration dictionary containing endpoint settings.
            kwargs: Additional settings overriding ``config``.
        """
        config = config or {}
        self.config = {}

        self.config["path"] = self._normalize_path(config.get("path"))
        self.config["source"] = self._normalize_path(config.get("source"))
        self.config["btrfs_bin"] = config.get("btrfs_bin", "btrfs")
        self.config["dry_run"] = config.get("dry_run", False)
        self.config["verbose"] = config.get("verbose", False)
        self.config["lock_file_name"] = config.get("lock_file_name", ".btrfs-snap.lock")

        for key, value in kwargs.items():
            self.config[key] = value

    def _normalize_path(self, val):
        if val is None:
            return None
        path = Path(val).expanduser()
        return path.resolve() if not path.is_absolute() else path

    def prepare(self):
        """Public access to _prepare, which is called after creating an endpoint."""
        logger.debug("Preparing endpoint %r ...", self)
        return self._prepare()

    def list_snapshots(self):
        """Return all snapshots found in this endpoint's storage, oldest first."""
        snapshots = scan_snapshots(self.config["path"])
        logger.debug("Found %d snapshots in %s", len(snapshots), self.config["path"])
        return snapshots

    def snapshot(self, created=None):
        """Take a read-only snapshot of the source subvolume and return it.

        Raises:
            SnapshotExistsError: If a snapshot with the same timestamp exists
            BackendError: If btrfs fails
        """
        if self.config["source"] is None:
            raise ValueError("source hasn't been set")
        snapshot = __util__.Snapshot.at(self.config["path"], created or __util__.now())
        logger.info("%s -> %s", self.config["source"], snapshot.subvolume_path)

        if self.config["dry_run"]:
            self._exec_command(
                self._build_snapshot_cmd(self.config["source"], snapshot.subvolume_path)
            )
            return snapshot

        self.config["path"].mkdir(parents=True, exist_ok=True)
        with FileLock(self.config["path"] / self.config["lock_file_name"]):
            try:
                snapshot.path.mkdir(mode=0o755)
            except FileExistsError:
                raise __util__.SnapshotExistsError(
                    f"snapshot {snapshot.get_name()} already exists in {self.config['path']}"
                ) from None
            try:
                self._exec_command(
                    self._build_snapshot_cmd(
                        self.config["source"], snapshot.subvolume_path
                    )
                )
            except __util__.BackendError:
                # btrfs snapshots are atomic, only the empty directory is left over
                snapshot.path.rmdir()
                raise
        return snapshot

    def send(self, snapshot, parent=None, clones=None):
        """Call 'btrfs send' for the given snapshot and return its Popen object."""
        cmd = self._build_send_command(snapshot, parent=parent, clones=clones)
        return subprocess.Popen(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE)

    def receive(self, stdin, directory):
        """Call 'btrfs receive' into ``directory``, reading the stream from ``stdin``."""
        cmd = self._build_receive_command(directory)
        return subprocess.Popen(
            cmd, stdin=stdin, stdout=subprocess.DEVNULL, stderr=subprocess.PIPE
        )

    def delete_subvolume(self, subvolume_path) -> None:
        """Delete a subvolume via 'btrfs subvolume delete'."""
        self._exec_command(self._build_deletion_command(subvolume_path))

    def delete_snapshot(self, snapshot) -> None:
        """Delete a snapshot: its subvolume first, then its storage directory."""
        if snapshot.subvolume_path.exists():
            self.delete_subvolume(snapshot.subvolume_path)
        if self.config["dry_run"]:
            return
        snapshot.path.rmdir()
        logger.info("Deleted snapshot %s", snapshot.get_name())

    def format_pipeline(self, send_cmd, receive_cmd) -> str:
        """Shell-like rendering of a send | receive pipeline."""
        return " ".join(
            [
                send_cmd[0],
                *__util__.escaped_args(send_cmd[1:], 3),
                "|",
                receive_cmd[0],
                *__util__.escaped_args(receive_cmd[1:], 3),
            ]
        )

    # The following methods may be implemented by endpoints unless the
    # default behaviour is wanted.

    def __repr__(self) -> str:
        return f"{self.config['path']}"

    def _prepare(self) -> None:
        """Called after endpoint creation for additional checks."""
        pass

    def _build_snapshot_cmd(self, source, destination):
        cmd = [self.config["btrfs_bin"], "subvolume", "snapshot", "-r"]
        cmd += [str(source), str(destination)]
        logger.debug("Snapshot command: %s", cmd)
        return cmd

    def _build_send_command(self, snapshot, parent=None, clones=None):
        cmd = [self.config["btrfs_bin"], "send"]
        for clone in clones or []:
            cmd += ["-c", str(clone.subvolume_path)]
        if parent:
            cmd += ["-p", str(parent.subvolume_path)]
        cmd += [str(snapshot.subvolume_path)]
        return cmd

    def _build_receive_command(self, destination):
        return [self.config["btrfs_bin"], "receive", str(destination)]

    def _build_deletion_command(self, subvolume_path):
        return [self.config["btrfs_bin"], "subvolume", "delete", str(subvolume_path)]

    def _exec_command(self, command):
        """Run ``command``, raising BackendError with its stderr on failure.

        In dry-run mode the command is only logged. In verbose mode it is
        logged and run.
        """
        if self.config["dry_run"] or self.config["verbose"]:
            logger.info("exec: %s", " ".join(__util__.escaped_args(command, 10)))
        if self.config["dry_run"]:
            return None

        name = " ".join(os.path.basename(arg) for arg in command[:2])
        try:
            result = subprocess.run(command, capture_output=True, check=False)
        except OSError as e:
            raise __util__.BackendError(name, None, str(e)) from e
        if result.returncode != 0:
            raise __util__.BackendError(name, result.returncode, result.stderr)
        return result
