"""Tests for the DirectoryScanner class."""

import os
from pathlib import Path

import pytest

from bunnysync.exceptions import (
    AuthenticationError,
    LocalDirectoryError,
    NotFoundError,
    RemoteUnavailable,
)
from bunnysync.models import StorageObject
from bunnysync.sync.scanner import (
    DirectoryScanner,
    LocalFile,
    TraversalError,
    build_inventory,
)
from bunnysync.utils import checksum_bytes


def _entry(key: str, zone: str = "zone", is_dir: bool = False) -> StorageObject:
    directory, _, name = key.rpartition("/")
    return StorageObject(
        guid="",
        storage_zone_name=zone,
        path=f"/{zone}/{directory}/" if directory else f"/{zone}/",
        object_name=name,
        length=1,
        last_changed=None,
        is_directory=is_dir,
        checksum=None if is_dir else "AB" * 32,
    )


class TestLocalFile:
    """Tests for LocalFile."""

    def test_from_path(self, tmp_path):
        file_path = tmp_path / "sub" / "test.txt"
        file_path.parent.mkdir()
        file_path.write_bytes(b"hello")

        local_file = LocalFile.from_path(file_path, tmp_path)

        assert local_file.relative_path == "sub/test.txt"
        assert local_file.size == 5
        assert local_file.checksum == checksum_bytes(b"hello")
        assert local_file.fingerprint == local_file.checksum

    def test_from_path_missing_file(self, tmp_path):
        with pytest.raises(OSError):
            LocalFile.from_path(tmp_path / "missing.txt", tmp_path)


class TestShouldIgnore:
    """Tests for the exclusion rules."""

    def test_config_file_always_ignored(self):
        scanner = DirectoryScanner()
        assert scanner.should_ignore(".bunnysync", ".bunnysync")
        assert scanner.should_ignore(".bunnysync", "sub/.bunnysync")

    def test_config_named_directory_not_ignored(self):
        scanner = DirectoryScanner()
        assert not scanner.should_ignore(".bunnysync", ".bunnysync", is_dir=True)

    def test_dot_files_included_by_default(self):
        assert not DirectoryScanner().should_ignore(".htaccess", ".htaccess")

    def test_dot_files_excluded_when_requested(self):
        scanner = DirectoryScanner(exclude_dot_files=True)
        assert scanner.should_ignore(".htaccess", ".htaccess")
        assert scanner.should_ignore(".git", ".git", is_dir=True)

    def test_pattern_matches_name(self):
        scanner = DirectoryScanner(exclude=["*.log"])
        assert scanner.should_ignore("debug.log", "logs/debug.log")
        assert not scanner.should_ignore("debug.txt", "logs/debug.txt")

    def test_pattern_matches_relative_path(self):
        scanner = DirectoryScanner(exclude=["build/*.map"])
        assert scanner.should_ignore("app.js.map", "build/app.js.map")
        assert not scanner.should_ignore("app.js.map", "src/app.js.map")

    def test_patterns_are_case_sensitive(self):
        scanner = DirectoryScanner(exclude=["*.LOG"])
        assert not scanner.should_ignore("debug.log", "debug.log")

    def test_is_excluded_path_checks_parent_directories(self):
        scanner = DirectoryScanner(exclude=["node_modules"])
        assert scanner.is_excluded_path("node_modules/pkg/index.js")
        assert not scanner.is_excluded_path("src/index.js")


class TestScanLocal:
    """Tests for the local walk."""

    def test_nested_tree(self, local_dir, write_files):
        write_files(
            local_dir,
            {"index.html": "<html>", "css/site.css": "body{}", "a/b/c/d.txt": "deep"},
        )

        files = DirectoryScanner().scan_local(local_dir)

        assert sorted(f.relative_path for f in files) == [
            "a/b/c/d.txt",
            "css/site.css",
            "index.html",
        ]

    def test_empty_directory(self, local_dir):
        (local_dir / "empty").mkdir()
        assert DirectoryScanner().scan_local(local_dir) == []

    def test_dot_files_and_config_file(self, local_dir, write_files):
        write_files(
            local_dir,
            {".htaccess": "deny", ".bunnysync": "api_key = 'x'", "a.txt": "a"},
        )

        default = DirectoryScanner().scan_local(local_dir)
        no_dots = DirectoryScanner(exclude_dot_files=True).scan_local(local_dir)

        assert sorted(f.relative_path for f in default) == [".htaccess", "a.txt"]
        assert [f.relative_path for f in no_dots] == ["a.txt"]

    def test_excluded_directory_is_not_descended(self, local_dir, write_files):
        write_files(local_dir, {"keep.txt": "k", "cache/a.bin": "a", "cache/b/c": "c"})

        files = DirectoryScanner(exclude=["cache"]).scan_local(local_dir)

        assert [f.relative_path for f in files] == ["keep.txt"]

    def test_symlinks_skipped_by_default(self, local_dir, tmp_path, write_files):
        outside = tmp_path / "outside"
        write_files(outside, {"shared.txt": "shared"})
        write_files(local_dir, {"real.txt": "real"})
        os.symlink(outside / "shared.txt", local_dir / "link.txt")
        os.symlink(outside, local_dir / "linkdir")

        files = DirectoryScanner().scan_local(local_dir)

        assert [f.relative_path for f in files] == ["real.txt"]

    def test_symlinks_followed_when_requested(self, local_dir, tmp_path, write_files):
        outside = tmp_path / "outside"
        write_files(outside, {"shared.txt": "shared"})
        os.symlink(outside, local_dir / "linkdir")

        files = DirectoryScanner(follow_symlinks=True).scan_local(local_dir)

        assert [f.relative_path for f in files] == ["linkdir/shared.txt"]

    def test_symlink_loop_visited_once(self, local_dir, write_files):
        write_files(local_dir, {"sub/file.txt": "x"})
        os.symlink(local_dir, local_dir / "sub" / "loop")

        files = DirectoryScanner(follow_symlinks=True).scan_local(local_dir)

        assert [f.relative_path for f in files] == ["sub/file.txt"]

    def test_missing_root(self, tmp_path):
        with pytest.raises(LocalDirectoryError, match="does not exist"):
            DirectoryScanner().scan_local(tmp_path / "missing")

    def test_root_is_a_file(self, tmp_path):
        file_path = tmp_path / "file.txt"
        file_path.write_text("x")

        with pytest.raises(LocalDirectoryError, match="not a directory"):
            DirectoryScanner().scan_local(file_path)

    def test_unreadable_root(self, local_dir, monkeypatch):
        def fake_iterdir(self):
            raise PermissionError(13, "Permission denied")

        monkeypatch.setattr(Path, "iterdir", fake_iterdir)

        with pytest.raises(LocalDirectoryError, match="Cannot read local directory"):
            DirectoryScanner().scan_local(local_dir)

    def test_unreadable_subdirectory_recorded(
        self, local_dir, write_files, monkeypatch
    ):
        write_files(local_dir, {"a.txt": "a", "private/b.txt": "b", "z.txt": "z"})
        private = local_dir / "private"
        original_iterdir = Path.iterdir

        def fake_iterdir(self):
            if self == private:
                raise PermissionError(13, "Permission denied")
            return original_iterdir(self)

        monkeypatch.setattr(Path, "iterdir", fake_iterdir)
        scanner = DirectoryScanner()

        files = scanner.scan_local(local_dir)

        assert [f.relative_path for f in files] == ["a.txt", "z.txt"]
        assert len(scanner.errors) == 1
        assert scanner.errors[0].path == "private"
        assert "Permission denied" in str(scanner.errors[0])

    def test_errors_reset_between_scans(self, local_dir):
        scanner = DirectoryScanner()
        scanner.errors.append(TraversalError("old", "stale"))

        scanner.scan_local(local_dir)

        assert scanner.errors == []

    def test_build_inventory_is_sorted(self, local_dir, write_files):
        write_files(local_dir, {"b.txt": "b", "a/z.txt": "z", "a.txt": "a"})

        inventory = build_inventory(DirectoryScanner().scan_local(local_dir))

        assert list(inventory) == ["a.txt", "a/z.txt", "b.txt"]


class TestScanRemote:
    """Tests for processing remote listings."""

    def test_directories_skipped(self):
        objects = [_entry("a.txt"), _entry("css", is_dir=True), _entry("css/s.css")]

        files = DirectoryScanner().scan_remote(objects)

        assert [f.relative_path for f in files] == ["a.txt", "css/s.css"]

    def test_prefix_stripped(self):
        objects = [_entry("www/index.html"), _entry("www/css/s.css")]

        files = DirectoryScanner().scan_remote(objects, prefix="/www/")

        assert [f.relative_path for f in files] == ["index.html", "css/s.css"]
        assert files[0].key == "www/index.html"

    def test_objects_outside_prefix_ignored(self):
        objects = [_entry("www/a.txt"), _entry("wwwx/b.txt"), _entry("c.txt")]

        files = DirectoryScanner().scan_remote(objects, prefix="www")

        assert [f.relative_path for f in files] == ["a.txt"]

    def test_exclusions_applied(self):
        objects = [
            _entry("a.txt"),
            _entry("debug.log"),
            _entry("cache/x"),
            _entry(".bunnysync"),
        ]

        files = DirectoryScanner(exclude=["*.log", "cache"]).scan_remote(objects)

        assert [f.relative_path for f in files] == ["a.txt"]

    def test_remote_file_properties(self):
        remote_file = DirectoryScanner().scan_remote([_entry("a.txt")])[0]

        assert remote_file.size == 1
        assert remote_file.checksum == "AB" * 32
        assert remote_file.fingerprint == remote_file.checksum
        assert remote_file.mtime is None


class TestFetchRemote:
    """Tests for listing a zone through a storage client."""

    def test_recurses_through_directories(self, storage):
        storage.objects = {"a.txt": b"a", "css/s.css": b"s", "img/x/y.png": b"y"}

        files = DirectoryScanner().fetch_remote(storage)

        assert sorted(f.relative_path for f in files) == [
            "a.txt",
            "css/s.css",
            "img/x/y.png",
        ]

    def test_missing_prefix_is_empty(self, storage):
        storage.list_error = NotFoundError("Not found", 404)

        assert DirectoryScanner().fetch_remote(storage, "site") == []

    def test_missing_zone_root_is_unavailable(self, storage):
        storage.list_error = NotFoundError("Not found", 404)

        with pytest.raises(RemoteUnavailable):
            DirectoryScanner().fetch_remote(storage, "")

    def test_api_error_is_unavailable(self, storage):
        storage.list_error = AuthenticationError("Remote unauthorized", 401)

        with pytest.raises(RemoteUnavailable, match="Remote unauthorized"):
            DirectoryScanner().fetch_remote(storage)

    def test_error_on_later_page_is_unavailable(self):
        class FailingClient:
            def iter_objects(self, prefix=""):
                yield [_entry("site/a.txt"), _entry("site/sub", is_dir=True)]
                raise NotFoundError("Not found: site/sub/", 404)

        with pytest.raises(RemoteUnavailable):
            DirectoryScanner().fetch_remote(FailingClient(), "site")
