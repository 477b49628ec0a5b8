"""Pytest configuration and shared fixtures."""

import json
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from btrfs_snap import __util__
from btrfs_snap.config.schema import TierConfig
from btrfs_snap.endpoint import LocalEndpoint

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)

# Stand-in for the btrfs binary working on plain directories. "send" writes
# the files of a subvolume as JSON, "receive" recreates them below the
# target directory. Failures are switched on through FAKE_BTRFS_* variables.
FAKE_BTRFS = '''#!{python}
import json
import os
import shutil
import signal
import sys

signal.signal(signal.SIGPIPE, signal.SIG_DFL)
args = sys.argv[1:]

log = os.environ.get("FAKE_BTRFS_LOG")
if log:
    with open(log, "a") as f:
        f.write(json.dumps(args) + "\\n")


def fail(message):
    sys.stderr.write(message + "\\n")
    sys.exit(1)


if args[:2] == ["subvolume", "snapshot"]:
    if os.environ.get("FAKE_BTRFS_FAIL_SNAPSHOT"):
        fail("ERROR: cannot snapshot")
    shutil.copytree(args[-2], args[-1], symlinks=True)
elif args[:2] == ["subvolume", "delete"]:
    marker = os.environ.get("FAKE_BTRFS_FAIL_DELETE")
    if marker and marker in args[-1]:
        fail("ERROR: cannot delete " + args[-1])
    shutil.rmtree(args[-1])
elif args[0] == "send":
    if os.environ.get("FAKE_BTRFS_FAIL_SEND"):
        fail("ERROR: send failed")
    if os.environ.get("FAKE_BTRFS_ENDLESS_SEND"):
        chunk = b"x" * 65536
        while True:
            sys.stdout.buffer.write(chunk)
            sys.stdout.buffer.flush()
    subvolume = args[-1]
    files = {{}}
    for root, _dirs, names in os.walk(subvolume):
        for name in names:
            path = os.path.join(root, name)
            with open(path) as f:
                files[os.path.relpath(path, subvolume)] = f.read()
    json.dump(files, sys.stdout)
elif args[0] == "receive":
    target = os.path.join(args[-1], "snapshot")
    if os.environ.get("FAKE_BTRFS_FAIL_RECEIVE"):
        os.makedirs(target)
        fail("ERROR: receive failed\\nERROR: stream is garbage")
    data = sys.stdin.read()
    if not data:
        fail("ERROR: empty stream")
    os.makedirs(target)
    for name, content in json.loads(data).items():
        path = os.path.join(target, name)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "w") as f:
            f.write(content)
else:
    fail("ERROR: unknown command " + " ".join(args))
'''


def at(minutes):
    """Creation time ``minutes`` after the test epoch."""
    return T0 + timedelta(minutes=minutes)


def make_record(minutes, storage="/snapshots"):
    """Snapshot record that does not exist on disk."""
    return __util__.Snapshot.at(Path(storage), at(minutes))


@pytest.fixture
def fake_btrfs(tmp_path, monkeypatch):
    """Path of an executable fake btrfs binary."""
    script = tmp_path / "bin" / "btrfs"
    script.parent.mkdir()
    script.write_text(FAKE_BTRFS.format(python=sys.executable))
    script.chmod(0o755)
    for name in (
        "FAKE_BTRFS_FAIL_SNAPSHOT",
        "FAKE_BTRFS_FAIL_DELETE",
        "FAKE_BTRFS_FAIL_SEND",
        "FAKE_BTRFS_ENDLESS_SEND",
        "FAKE_BTRFS_FAIL_RECEIVE",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("FAKE_BTRFS_LOG", str(tmp_path / "btrfs.log"))
    return script


@pytest.fixture
def btrfs_calls(tmp_path):
    """Return a function reading the argument lists the fake btrfs was run with."""

    def read():
        log = tmp_path / "btrfs.log"
        if not log.exists():
            return []
        return [json.loads(line) for line in log.read_text().splitlines()]

    return read


@pytest.fixture
def make_snapshot():
    """Create a snapshot directory with some files below ``storage``."""

    def create(storage, minutes, files=None):
        snapshot = __util__.Snapshot.at(Path(storage), at(minutes))
        snapshot.subvolume_path.mkdir(parents=True)
        for name, content in (files or {"data.txt": f"state at {minutes}"}).items():
            path = snapshot.subvolume_path / name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content)
        return snapshot

    return create


@pytest.fixture
def source_storage(tmp_path):
    storage = tmp_path / "source"
    storage.mkdir()
    return storage


@pytest.fixture
def destination_storage(tmp_path):
    storage = tmp_path / "destination"
    storage.mkdir()
    return storage


@pytest.fixture
def source_endpoint(source_storage, fake_btrfs):
    return LocalEndpoint(config={"path": source_storage, "btrfs_bin": str(fake_btrfs)})


@pytest.fixture
def destination_endpoint(destination_storage, fake_btrfs):
    return LocalEndpoint(
        config={"path": destination_storage, "btrfs_bin": str(fake_btrfs)}
    )


@pytest.fixture
def hourly_tiers():
    """One tier keeping 24 hourly snapshots."""
    return [TierConfig(interval=timedelta(hours=1), size=24, source="1h")]


@pytest.fixture
def tmp_config_dir(tmp_path):
    """Create a temporary config directory."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def sample_config_toml():
    """Return a sample valid TOML configuration string."""
    return """
[global]
btrfs_bin = "/usr/local/sbin/btrfs"

[profiles.home]
subvolume = "/home"
storage = "/.snapshots/home"

[[profiles.home.tiers]]
interval = "15m"
size = 8

[[profiles.home.tiers]]
interval = "1h"
size = 24

[[profiles.home.tiers]]
interval = "1d"
size = 7

[profiles.home-usb]
backup = "home"
storage = "/mnt/usb/home"

[[profiles.home-usb.tiers]]
interval = "1w"
size = 8

[[profiles.home-usb.tiers]]
interval = "6M"
size = 4
"""


@pytest.fixture
def minimal_config_toml():
    """Return a minimal valid TOML configuration string."""
    return """
[profiles.root]
subvolume = "/"
storage = "/.snapshots/root"

[[profiles.root.tiers]]
interval = "1d"
size = 7
"""


@pytest.fixture
def config_file(tmp_config_dir, sample_config_toml):
    """Create a temporary config file with sample content."""
    config_path = tmp_config_dir / "config.toml"
    config_path.write_text(sample_config_toml)
    return config_path


@pytest.fixture
def minimal_config_file(tmp_config_dir, minimal_config_toml):
    """Create a temporary config file with minimal content."""
    config_path = tmp_config_dir / "minimal.toml"
    config_path.write_text(minimal_config_toml)
    return config_path


@pytest.fixture
def working_config_file(tmp_path, tmp_config_dir, fake_btrfs):
    """Config with a real source directory, driving the fake btrfs binary."""
    subvolume = tmp_path / "subvolume"
    subvolume.mkdir()
    (subvolume / "notes.txt").write_text("hello")
    config_path = tmp_config_dir / "working.toml"
    config_path.write_text(
        f"""
[global]
btrfs_bin = "{fake_btrfs}"

[profiles.data]
subvolume = "{subvolume}"
storage = "{tmp_path / 'snapshots'}"

[[profiles.data.tiers]]
interval = "1m"
size = 3

[profiles.data-backup]
backup = "data"
storage = "{tmp_path / 'backup'}"

[[profiles.data-backup.tiers]]
interval = "1m"
size = 5
"""
    )
    return config_path

