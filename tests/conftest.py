"""Shared fixtures: an in-memory storage zone and local tree helpers."""

import threading
from pathlib import Path
from typing import Optional
from unittest.mock import Mock

import pytest

from bunnysync.models import StorageObject
from bunnysync.output import OutputFormatter
from bunnysync.utils import checksum_bytes


class InMemoryStorage:
    """Storage client fake that keeps a zone in a dict.

    Listing pages mimic the real API: one page per directory, with
    directory records for subdirectories.
    """

    def __init__(self, zone: str = "test-zone", objects: Optional[dict] = None):
        self.zone = zone
        self.objects: dict[str, bytes] = dict(objects or {})
        self.put_calls: list[str] = []
        self.delete_calls: list[str] = []
        self.list_calls: list[str] = []
        self.put_errors: dict[str, Exception] = {}
        self.delete_errors: dict[str, Exception] = {}
        self.list_error: Optional[Exception] = None
        self.omit_checksums = False
        self.closed = False
        self._lock = threading.Lock()

    def _record(self, key: str, data: bytes, is_dir: bool = False) -> StorageObject:
        directory, _, name = key.rpartition("/")
        path = f"/{self.zone}/{directory}/" if directory else f"/{self.zone}/"
        return StorageObject(
            guid="",
            storage_zone_name=self.zone,
            path=path,
            object_name=name,
            length=len(data),
            last_changed="2025-02-03T21:26:21.866",
            is_directory=is_dir,
            checksum=None if is_dir or self.omit_checksums else checksum_bytes(data),
        )

    def iter_objects(self, prefix: str = ""):
        self.list_calls.append(prefix)
        if self.list_error is not None:
            raise self.list_error

        pending = [prefix.strip("/")]
        while pending:
            directory = pending.pop()
            base = f"{directory}/" if directory else ""
            page = []
            subdirs = set()
            for key in sorted(self.objects):
                if not key.startswith(base):
                    continue
                rest = key[len(base) :]
                if "/" in rest:
                    subdirs.add(rest.split("/", 1)[0])
                else:
                    page.append(self._record(key, self.objects[key]))
            for sub in sorted(subdirs):
                page.append(self._record(base + sub, b"", is_dir=True))
                pending.append(base + sub)
            yield page

    def put_object(self, path: str, data: bytes, checksum: Optional[str] = None):
        with self._lock:
            self.put_calls.append(path)
        if path in self.put_errors:
            raise self.put_errors[path]
        assert checksum is None or checksum == checksum_bytes(data)
        with self._lock:
            self.objects[path] = data

    def delete_object(self, path: str) -> bool:
        with self._lock:
            self.delete_calls.append(path)
        if path in self.delete_errors:
            raise self.delete_errors[path]
        with self._lock:
            return self.objects.pop(path, None) is not None

    def close(self) -> None:
        self.closed = True

    def checksums(self) -> dict[str, str]:
        """Current zone content as path -> checksum."""
        return {key: checksum_bytes(data) for key, data in self.objects.items()}


def make_tree(root: Path, files: dict[str, str]) -> Path:
    """Create files below root from a relative-path -> content mapping."""
    for relative_path, content in files.items():
        file_path = root / relative_path
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(content)
    return root


@pytest.fixture
def storage():
    """Provide an empty in-memory storage zone."""
    return InMemoryStorage()


@pytest.fixture
def local_dir(tmp_path):
    """Provide an empty local source directory."""
    directory = tmp_path / "site"
    directory.mkdir()
    return directory


@pytest.fixture
def mock_output():
    """Create a mock output formatter."""
    output = Mock(spec=OutputFormatter)
    output.quiet = True  # Suppress output during tests
    output.json_output = False
    return output


@pytest.fixture
def write_files():
    """Provide the make_tree helper to tests."""
    return make_tree
