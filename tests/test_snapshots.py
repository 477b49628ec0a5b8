"""Tests for snapshot creation and listing."""

import os
from datetime import timedelta
from pathlib import Path
from unittest import mock

import pytest
from conftest import at

from btrfs_snap import __util__
from btrfs_snap.core.snapshots import (
    FileVersion,
    create_snapshot,
    find_file_versions,
    format_file_versions,
    format_snapshot_list,
)
from btrfs_snap.endpoint import LocalEndpoint


def set_mtime(path, minutes):
    timestamp = at(minutes).timestamp()
    os.utime(path, (timestamp, timestamp))


class TestCreateSnapshot:
    """Tests for create_snapshot function."""

    def test_creates_snapshot(self, tmp_path, fake_btrfs):
        """Test taking a snapshot through an endpoint."""
        subvolume = tmp_path / "subvolume"
        subvolume.mkdir()
        endpoint = LocalEndpoint(
            config={
                "path": tmp_path / "snapshots",
                "source": subvolume,
                "btrfs_bin": str(fake_btrfs),
            }
        )
        snapshot = create_snapshot(endpoint, created=at(5))
        assert snapshot.subvolume_path.is_dir()
        assert endpoint.list_snapshots() == [snapshot]


class TestFormatSnapshotList:
    """Tests for format_snapshot_list function."""

    def test_lines(self, tmp_path, make_snapshot):
        """Test that every snapshot gets a numbered line with its age and path."""
        snapshots = [make_snapshot(tmp_path, 0), make_snapshot(tmp_path, 60)]
        lines = format_snapshot_list(snapshots, now=at(120))
        assert len(lines) == 2
        index, age, path = lines[0].split("\t")
        assert index.strip() == "1"
        assert age.split() == ["2h", "ago"]
        assert path == str(snapshots[0].path)
        assert lines[1].split("\t")[1].split() == ["1h", "ago"]

    def test_empty(self):
        """Test that no snapshots give no lines."""
        assert format_snapshot_list([]) == []


class TestFindFileVersions:
    """Tests for find_file_versions function."""

    def test_distinct_versions(self, tmp_path, make_snapshot):
        """Test that unchanged files collapse into one version."""
        first = make_snapshot(tmp_path, 0, {"etc/app.conf": "v1"})
        second = make_snapshot(tmp_path, 60, {"etc/app.conf": "v1"})
        third = make_snapshot(tmp_path, 120, {"etc/app.conf": "version 2"})
        set_mtime(first.subvolume_path / "etc/app.conf", 0)
        set_mtime(second.subvolume_path / "etc/app.conf", 0)
        set_mtime(third.subvolume_path / "etc/app.conf", 100)

        versions = find_file_versions([first, second, third], "/etc/app.conf")

        assert len(versions) == 2
        by_size = {version.size: snapshot for version, snapshot in versions.items()}
        # the newest snapshot holding a version is reported
        assert by_size[2] == second
        assert by_size[9] == third
        assert {version.name for version in versions} == {"/etc/app.conf"}

    def test_missing_in_some_snapshots(self, tmp_path, make_snapshot):
        """Test that snapshots without the file are skipped."""
        first = make_snapshot(tmp_path, 0, {"other.txt": "x"})
        second = make_snapshot(tmp_path, 60, {"notes.txt": "x"})
        versions = find_file_versions([first, second], "/notes.txt")
        assert list(versions.values()) == [second]

    def test_directory_lists_files(self, tmp_path, make_snapshot):
        """Test that a directory expands to the files directly inside it."""
        snapshot = make_snapshot(
            tmp_path, 0, {"etc/a.conf": "a", "etc/b.conf": "bb", "etc/sub/c.conf": "c"}
        )
        versions = find_file_versions([snapshot], "/etc")
        assert sorted(v.name for v in versions) == ["/etc/a.conf", "/etc/b.conf"]

    def test_not_found_anywhere(self, tmp_path, make_snapshot):
        """Test that an unknown path has no versions."""
        snapshot = make_snapshot(tmp_path, 0)
        assert find_file_versions([snapshot], "/does/not/exist") == {}

    def test_path_below_a_file_is_skipped(self, tmp_path, make_snapshot):
        """Test that a path crossing a regular file counts as missing."""
        first = make_snapshot(tmp_path, 0, {"etc/passwd": "root"})
        second = make_snapshot(tmp_path, 60, {"etc/passwd/foo": "x"})
        versions = find_file_versions([first, second], "/etc/passwd/foo")
        assert list(versions.values()) == [second]

    def test_unreadable_snapshot_aborts(self, tmp_path, make_snapshot):
        """Test that a permission error is reported as AbortError."""
        snapshot = make_snapshot(tmp_path, 0, {"etc/a.conf": "a"})
        denied = PermissionError(13, "Permission denied")
        with mock.patch.object(Path, "iterdir", side_effect=denied):
            with pytest.raises(__util__.AbortError, match="Permission denied"):
                find_file_versions([snapshot], "/etc")


class TestFormatFileVersions:
    """Tests for format_file_versions function."""

    def test_lines(self, tmp_path, make_snapshot):
        """Test that each version is shown with mode, size, age and full path."""
        snapshot = make_snapshot(tmp_path, 0, {"notes.txt": "hello"})
        version = FileVersion(
            name="/notes.txt", size=5, mtime=at(0).timestamp(), mode=0o100644
        )
        (line,) = format_file_versions({version: snapshot}, now=at(0) + timedelta(hours=3))
        mode, size, age, path = line.split("\t")
        assert mode.strip() == "-rw-r--r--"
        assert size.strip() == "5"
        assert age.strip() == "3h"
        assert path == str(snapshot.subvolume_path / "notes.txt")
