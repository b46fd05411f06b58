"""Directory scanning utilities for sync operations.

Builds the two inventories a sync compares: local files found by walking
the source directory, and remote objects listed from the storage zone.
Both sides are keyed by the same relative, slash-separated path.
"""

import logging
import os
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import datetime
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Optional, TypeVar

from ..api import StorageClientProtocol
from ..exceptions import (
    LocalDirectoryError,
    NotFoundError,
    RemoteUnavailable,
    StorageAPIError,
)
from ..models import StorageObject
from ..utils import CONFIG_FILE_NAME, calculate_checksum

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LocalFile:
    """Represents a local file with metadata."""

    path: Path
    """Absolute path to the file"""

    relative_path: str
    """Relative path (using forward slashes for cross-platform compatibility)"""

    size: int
    """File size in bytes"""

    mtime: float
    """Last modification time (Unix timestamp)"""

    checksum: str
    """Uppercase hex SHA-256 of the content"""

    @property
    def fingerprint(self) -> str:
        return self.checksum

    @classmethod
    def from_path(cls, file_path: Path, base_path: Path) -> "LocalFile":
        """Create LocalFile from a path.

        Args:
            file_path: Absolute path to the file
            base_path: Base path for calculating relative paths

        Returns:
            LocalFile instance

        Raises:
            OSError: If the file cannot be read
        """
        stat = file_path.stat()
        # Use as_posix() to ensure forward slashes on all platforms
        relative_path = file_path.relative_to(base_path).as_posix()

        return cls(
            path=file_path,
            relative_path=relative_path,
            size=stat.st_size,
            mtime=stat.st_mtime,
            checksum=calculate_checksum(file_path),
        )


@dataclass(frozen=True)
class RemoteFile:
    """Represents a remote object with metadata."""

    entry: StorageObject
    """Listing record from the storage API"""

    relative_path: str
    """Path relative to the sync prefix"""

    @property
    def size(self) -> int:
        """File size in bytes."""
        return self.entry.length

    @property
    def checksum(self) -> Optional[str]:
        """SHA-256 reported by the storage API, if any."""
        return self.entry.checksum

    @property
    def fingerprint(self) -> Optional[str]:
        return self.checksum

    @property
    def mtime(self) -> Optional[datetime]:
        """Last change time reported by the storage API."""
        return self.entry.last_changed_at

    @property
    def key(self) -> str:
        """Zone-relative object path."""
        return self.entry.key


@dataclass(frozen=True)
class TraversalError:
    """A local file or subtree that could not be read during a scan."""

    path: str
    """Relative path of the unreadable entry"""

    message: str

    def __str__(self) -> str:
        return f"{self.path}: {self.message}"


FileT = TypeVar("FileT", LocalFile, RemoteFile)


def build_inventory(files: Iterable[FileT]) -> dict[str, FileT]:
    """Key files by relative path, ordered by path.

    Args:
        files: Local or remote files

    Returns:
        Dictionary mapping relative_path to file, in sorted path order
    """
    by_path = {f.relative_path: f for f in files}
    return {path: by_path[path] for path in sorted(by_path)}


class DirectoryScanner:
    """Scans local directories and remote listings into file lists.

    The same exclusion rules apply to both sides, so an excluded path is
    never uploaded and never deleted.

    Examples:
        >>> scanner = DirectoryScanner(exclude=["*.tmp", "cache"])
        >>> files = scanner.scan_local(Path("/site"))
        >>> for error in scanner.errors:
        ...     print(f"skipped {error}")
    """

    def __init__(
        self,
        exclude: Optional[list[str]] = None,
        exclude_dot_files: bool = False,
        follow_symlinks: bool = False,
    ):
        """Initialize directory scanner.

        Args:
            exclude: Glob patterns matched against names and relative paths
                (e.g., ["*.log", "build/*"])
            exclude_dot_files: Whether to exclude files/folders starting with dot
            follow_symlinks: Whether to follow symbolic links
        """
        self.exclude = list(exclude or [])
        self.exclude_dot_files = exclude_dot_files
        self.follow_symlinks = follow_symlinks
        self.errors: list[TraversalError] = []

    def should_ignore(self, name: str, relative_path: str, is_dir: bool = False) -> bool:
        """Check if a single entry should be ignored.

        Args:
            name: Entry name (last path component)
            relative_path: Slash-separated path relative to the sync root
            is_dir: Whether the entry is a directory

        Returns:
            True if the entry should be ignored
        """
        # May contain the access key
        if name == CONFIG_FILE_NAME and not is_dir:
            return True

        if self.exclude_dot_files and name.startswith("."):
            return True

        for pattern in self.exclude:
            if fnmatchcase(name, pattern) or fnmatchcase(relative_path, pattern):
                logger.debug(f"Ignoring {relative_path} (matches {pattern!r})")
                return True

        return False

    def is_excluded_path(self, relative_path: str) -> bool:
        """Check a file path and every directory above it against the rules."""
        parts = relative_path.split("/")
        for index, name in enumerate(parts):
            is_dir = index < len(parts) - 1
            if self.should_ignore(name, "/".join(parts[: index + 1]), is_dir=is_dir):
                return True
        return False

    # =========================
    # Local inventory
    # =========================

    def iter_local(self, directory: Path) -> Iterator[LocalFile]:
        """Lazily walk a local directory tree.

        Unreadable subdirectories and files are recorded in ``self.errors``
        and skipped; the walk continues with everything else.

        Args:
            directory: Root directory to scan

        Yields:
            LocalFile for every regular file below the root

        Raises:
            LocalDirectoryError: If the root is missing, not a directory,
                or cannot be listed
        """
        self.errors = []
        root = Path(directory)

        if not root.exists():
            raise LocalDirectoryError(f"Local directory does not exist: {root}")
        if not root.is_dir():
            raise LocalDirectoryError(f"Local path is not a directory: {root}")
        try:
            entries = sorted(root.iterdir())
        except OSError as e:
            raise LocalDirectoryError(f"Cannot read local directory {root}: {e}") from e

        visited = {self._real_path(root)}
        yield from self._walk(entries, root, visited)

    def _real_path(self, path: Path) -> str:
        return os.path.realpath(path)

    def _walk(
        self, entries: list[Path], base_path: Path, visited: set[str]
    ) -> Iterator[LocalFile]:
        for item in entries:
            relative_path = item.relative_to(base_path).as_posix()

            if item.is_symlink() and not self.follow_symlinks:
                logger.debug(f"Skipping symlink: {relative_path}")
                continue

            try:
                is_dir = item.is_dir()
                is_file = item.is_file()
            except OSError as e:
                self.errors.append(TraversalError(relative_path, str(e)))
                continue

            if self.should_ignore(item.name, relative_path, is_dir=is_dir):
                continue

            if is_file:
                try:
                    yield LocalFile.from_path(item, base_path)
                except OSError as e:
                    logger.warning(f"Cannot read {relative_path}: {e}")
                    self.errors.append(TraversalError(relative_path, str(e)))
            elif is_dir:
                real = self._real_path(item)
                if real in visited:
                    logger.debug(f"Skipping already visited directory: {relative_path}")
                    continue
                visited.add(real)
                try:
                    children = sorted(item.iterdir())
                except OSError as e:
                    logger.warning(f"Cannot read directory {relative_path}: {e}")
                    self.errors.append(TraversalError(relative_path, str(e)))
                    continue
                yield from self._walk(children, base_path, visited)
            # Sockets, FIFOs and device files are not synced

    def scan_local(self, directory: Path) -> list[LocalFile]:
        """Recursively scan a local directory.

        Args:
            directory: Directory to scan

        Returns:
            List of LocalFile objects

        Examples:
            >>> scanner = DirectoryScanner()
            >>> files = scanner.scan_local(Path("/home/user/site"))
            >>> for f in files:
            ...     print(f.relative_path)
        """
        return list(self.iter_local(directory))

    # =========================
    # Remote inventory
    # =========================

    def scan_remote(
        self, objects: Iterable[StorageObject], prefix: str = ""
    ) -> list[RemoteFile]:
        """Process listing records into RemoteFile objects.

        Args:
            objects: Records from one or more listing pages
            prefix: Zone-relative sync prefix to strip from object keys

        Returns:
            List of RemoteFile objects (directories and excluded paths removed)
        """
        prefix = prefix.strip("/")
        remote_files: list[RemoteFile] = []

        for entry in objects:
            # Only include files, not folders
            if entry.is_directory:
                continue

            key = entry.key
            if prefix:
                if not key.startswith(f"{prefix}/"):
                    logger.debug(f"Ignoring object outside prefix: {key}")
                    continue
                relative_path = key[len(prefix) + 1 :]
            else:
                relative_path = key

            if self.is_excluded_path(relative_path):
                continue
            remote_files.append(RemoteFile(entry=entry, relative_path=relative_path))

        return remote_files

    def iter_remote(
        self, client: StorageClientProtocol, prefix: str = ""
    ) -> Iterator[RemoteFile]:
        """Lazily list every remote file below a prefix.

        Args:
            client: Storage client
            prefix: Zone-relative directory to list

        Yields:
            RemoteFile for every object below the prefix

        Raises:
            RemoteUnavailable: If any listing request fails
        """
        first_page = True
        pages = client.iter_objects(prefix)
        while True:
            try:
                page = next(pages)
            except StopIteration:
                return
            except NotFoundError as e:
                if first_page and prefix.strip("/"):
                    logger.debug(f"Remote prefix {prefix} does not exist yet")
                    return
                raise RemoteUnavailable(f"Remote listing failed: {e}") from e
            except StorageAPIError as e:
                raise RemoteUnavailable(f"Remote listing failed: {e}") from e
            first_page = False
            yield from self.scan_remote(page, prefix)

    def fetch_remote(
        self, client: StorageClientProtocol, prefix: str = ""
    ) -> list[RemoteFile]:
        """List every remote file below a prefix.

        Raises:
            RemoteUnavailable: If the listing is incomplete for any reason
        """
        return list(self.iter_remote(client, prefix))
