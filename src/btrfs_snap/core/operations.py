"""Core backup operations: send_snapshot, sync_snapshots.

A transfer runs ``btrfs send`` and ``btrfs receive`` as two processes joined
by a pipe. The receiving side writes into a uniquely named staging
directory which is renamed to the snapshot's final name only after both
processes succeeded.
"""

import contextlib
import logging
import os
import shutil
import signal
import subprocess
import tempfile
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path

from .. import __util__
from .planning import plan_backup

logger = logging.getLogger(__name__)


class CancelScope:
    """Shared cancellation for the processes of one pipeline.

    Once cancelled, every process of the scope that is still running is
    killed, so no process stays blocked on a half-open pipe.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._processes: list[subprocess.Popen] = []
        self._killed: set[int] = set()
        self.cancelled = False

    def add(self, process: subprocess.Popen) -> subprocess.Popen:
        with self._lock:
            self._processes.append(process)
            if self.cancelled:
                self._kill(process)
        return process

    def cancel(self) -> None:
        with self._lock:
            self.cancelled = True
            for process in self._processes:
                self._kill(process)

    def was_killed(self, process: subprocess.Popen) -> bool:
        """Whether ``process`` was terminated by this scope."""
        with self._lock:
            return process.pid in self._killed

    def _kill(self, process: subprocess.Popen) -> None:
        if process.poll() is None:
            logger.debug("Killing process %d", process.pid)
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            self._killed.add(process.pid)


def _wait_for(process: subprocess.Popen) -> tuple[int, bytes]:
    """Wait for ``process`` and return its return code and stderr output."""
    stderr = process.stderr.read() if process.stderr else b""
    return process.wait(), stderr


def run_pipeline(stages, scope: CancelScope) -> None:
    """Wait for all ``(name, process)`` stages, cancelling the rest on failure.

    Raises:
        BackendError: For the stage that failed first. A stage that only
            failed because it was killed by the scope, or because its reader
            went away (SIGPIPE), is reported only if no other stage failed.
    """
    failures = []
    with ThreadPoolExecutor(max_workers=len(stages)) as executor:
        futures = {
            executor.submit(_wait_for, process): (name, process)
            for name, process in stages
        }
        for future in as_completed(futures):
            name, process = futures[future]
            returncode, stderr = future.result()
            logger.debug("%s exited with return code %d", name, returncode)
            if returncode == 0:
                continue
            secondary = scope.was_killed(process) or returncode == -signal.SIGPIPE
            failures.append((secondary, __util__.BackendError(name, returncode, stderr)))
            scope.cancel()

    if failures:
        # stable sort keeps completion order among equals
        failures.sort(key=lambda failure: failure[0])
        raise failures[0][1]


def send_snapshot(snapshot, source_endpoint, destination_endpoint, bases) -> None:
    """Transfer ``snapshot`` to the destination, incrementally where possible.

    Args:
        snapshot: Source snapshot to send
        source_endpoint: Endpoint holding ``snapshot`` and ``bases``
        destination_endpoint: Endpoint to receive the snapshot
        bases: Snapshots present at both ends. The newest one older than
            ``snapshot`` is the parent; all of them are offered as clone
            sources.

    Raises:
        SnapshotTransferError: If the transfer failed. Nothing is published
            at the destination in that case.
    """
    parent = snapshot.find_parent(bases)
    storage = Path(destination_endpoint.config["path"])
    final = __util__.Snapshot.at(storage, snapshot.created)
    name = snapshot.get_name()

    logger.info("Sending %s ...", snapshot)
    if parent:
        logger.info("  Using parent: %s", parent)
    else:
        logger.info("  No parent snapshot available, sending in full mode.")
    if bases:
        logger.debug("  Using clones: %r", [str(b) for b in bases])

    send_cmd = source_endpoint._build_send_command(snapshot, parent=parent, clones=bases)

    if destination_endpoint.config["dry_run"]:
        staging_placeholder = storage / f"{name}.recv.XXXXXXXX"
        receive_cmd = destination_endpoint._build_receive_command(staging_placeholder)
        logger.info("exec: %s", destination_endpoint.format_pipeline(send_cmd, receive_cmd))
        return

    try:
        staging = Path(tempfile.mkdtemp(prefix=f"{name}.recv.", dir=storage))
    except OSError as e:
        raise __util__.SnapshotTransferError(
            f"cannot back up {snapshot}: cannot create staging directory: {e}"
        ) from e

    if destination_endpoint.config["verbose"]:
        receive_cmd = destination_endpoint._build_receive_command(staging)
        logger.info("exec: %s", destination_endpoint.format_pipeline(send_cmd, receive_cmd))

    transfer_start = time.monotonic()
    published = False
    try:
        os.chmod(staging, 0o755)
        _transfer(snapshot, parent, bases, source_endpoint, destination_endpoint, staging)
        # Only an empty leftover from an earlier run can be removed here
        with contextlib.suppress(OSError):
            final.path.rmdir()
        os.rename(staging, final.path)
        published = True
    except (__util__.BackendError, OSError) as e:
        raise __util__.SnapshotTransferError(f"cannot back up {snapshot}: {e}") from e
    finally:
        if not published:
            _remove_staging(destination_endpoint, staging)

    logger.info(
        "Transfer of %s completed in %.1fs", name, time.monotonic() - transfer_start
    )


def _transfer(snapshot, parent, bases, source_endpoint, destination_endpoint, staging):
    """Run send and receive concurrently and wait for both."""
    scope = CancelScope()
    send_process = None
    receive_process = None
    try:
        send_process = scope.add(
            source_endpoint.send(snapshot, parent=parent, clones=bases)
        )
        receive_process = scope.add(
            destination_endpoint.receive(send_process.stdout, staging)
        )
        # The receiving process owns the read end now; closing our copy lets
        # the sender see a broken pipe if the receiver dies.
        send_process.stdout.close()
        run_pipeline(
            [("btrfs send", send_process), ("btrfs receive", receive_process)],
            scope,
        )
    except BaseException:
        scope.cancel()
        raise
    finally:
        _cleanup_processes(send_process, receive_process)


def _cleanup_processes(*processes) -> None:
    """Reap processes and close their pipes."""
    for process in processes:
        if process is None:
            continue
        for pipe in (process.stdout, process.stdin, process.stderr):
            if pipe:
                with contextlib.suppress(OSError):
                    pipe.close()
        process.wait()


def _remove_staging(destination_endpoint, staging: Path) -> None:
    """Remove a staging directory after a failed transfer, as far as possible."""
    received = staging / __util__.SUBVOLUME_NAME
    if received.exists():
        try:
            destination_endpoint.delete_subvolume(received)
        except __util__.BackendError as e:
            logger.warning("Could not delete partial subvolume %s: %s", received, e)
    try:
        shutil.rmtree(staging)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("Could not remove staging directory %s: %s", staging, e)


def sync_snapshots(source_endpoint, destination_endpoint, destination_tiers):
    """Back up the source's snapshots to the destination.

    Snapshots are sent oldest first, one at a time. Each successfully sent
    snapshot becomes a base for the following ones. The first failed
    transfer aborts the run.

    Args:
        source_endpoint: Endpoint of the source profile
        destination_endpoint: Endpoint of the backup profile
        destination_tiers: Retention tiers of the backup profile

    Returns:
        List of snapshots sent

    Raises:
        SnapshotTransferError: If a transfer fails
    """
    logger.info(__util__.log_heading(f"To {destination_endpoint} ..."))

    source_snapshots = source_endpoint.list_snapshots()
    destination_snapshots = destination_endpoint.list_snapshots()
    logger.debug("Source snapshots found: %d", len(source_snapshots))
    logger.debug("Destination snapshots found: %d", len(destination_snapshots))

    plan = plan_backup(source_snapshots, destination_snapshots, destination_tiers)
    for snapshot in plan.unwanted:
        logger.info("Skipping %s, the destination would prune it", snapshot.get_name())

    if not plan.to_send:
        logger.info("No snapshots need to be transferred.")
        return []

    logger.info("Going to transfer %d snapshot(s):", len(plan.to_send))
    for snapshot in plan.to_send:
        logger.info("  %s", snapshot)

    bases = plan.bases
    sent = []
    for snapshot in plan.to_send:
        send_snapshot(snapshot, source_endpoint, destination_endpoint, bases)
        bases.append(snapshot)
        sent.append(snapshot)
        logger.debug("%d snapshots left to transfer", len(plan.to_send) - len(sent))

    logger.info(__util__.log_heading(f"Transfers to {destination_endpoint} complete!"))
    return sent
