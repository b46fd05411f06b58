"""File comparison logic for sync operations."""

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..utils import checksums_match
from .scanner import LocalFile, RemoteFile


class SyncAction(str, Enum):
    """Actions that can be taken during sync."""

    UPLOAD = "upload"
    """Upload local file to remote"""

    DELETE = "delete"
    """Delete remote file"""

    SKIP = "skip"
    """Skip file (no action needed)"""


@dataclass(frozen=True)
class SyncDecision:
    """Represents a decision about how to sync a file."""

    action: SyncAction
    """Action to take"""

    reason: str
    """Human-readable reason for this decision"""

    relative_path: str
    """Relative path of the file"""

    remote_path: str
    """Zone-relative path the action targets"""

    local_file: Optional[LocalFile] = None
    """Local file (if exists)"""

    remote_file: Optional[RemoteFile] = None
    """Remote file (if exists)"""

    @property
    def is_actionable(self) -> bool:
        """Whether executing this decision touches the storage zone."""
        return self.action != SyncAction.SKIP

    @property
    def size(self) -> int:
        """Bytes transferred by this decision."""
        if self.action == SyncAction.UPLOAD and self.local_file is not None:
            return self.local_file.size
        return 0


@dataclass(frozen=True)
class SyncPlan:
    """Ordered, immutable list of sync decisions.

    Decisions are sorted by relative path and no two of them target the
    same remote path.
    """

    decisions: tuple[SyncDecision, ...] = ()

    def __iter__(self) -> Iterator[SyncDecision]:
        return iter(self.decisions)

    def __len__(self) -> int:
        return len(self.decisions)

    def _with_action(self, action: SyncAction) -> list[SyncDecision]:
        return [d for d in self.decisions if d.action == action]

    @property
    def uploads(self) -> list[SyncDecision]:
        return self._with_action(SyncAction.UPLOAD)

    @property
    def deletes(self) -> list[SyncDecision]:
        return self._with_action(SyncAction.DELETE)

    @property
    def skips(self) -> list[SyncDecision]:
        return self._with_action(SyncAction.SKIP)

    @property
    def actionable(self) -> list[SyncDecision]:
        """Decisions that upload or delete."""
        return [d for d in self.decisions if d.is_actionable]

    @property
    def upload_bytes(self) -> int:
        """Total size of all uploads."""
        return sum(d.size for d in self.decisions)

    def counts(self) -> dict[str, int]:
        """Number of decisions per action."""
        return {
            "uploads": len(self.uploads),
            "deletes": len(self.deletes),
            "skips": len(self.skips),
        }


class FileComparator:
    """Compares local and remote files to determine sync actions.

    The local side is the source of truth: anything new or changed locally
    is uploaded and anything missing locally is deleted remotely.
    """

    def __init__(self, remote_prefix: str = ""):
        """Initialize file comparator.

        Args:
            remote_prefix: Zone-relative directory the local root maps to
        """
        self.remote_prefix = remote_prefix.strip("/")

    def remote_path(self, relative_path: str) -> str:
        if self.remote_prefix:
            return f"{self.remote_prefix}/{relative_path}"
        return relative_path

    def compare_files(
        self,
        local_files: Mapping[str, LocalFile],
        remote_files: Mapping[str, RemoteFile],
        unreadable: Iterable[str] = (),
    ) -> SyncPlan:
        """Compare local and remote files and determine sync actions.

        Remote files at or below a local path that could not be read are
        skipped, never deleted: their local state is unknown.

        Args:
            local_files: Dictionary mapping relative_path to LocalFile
            remote_files: Dictionary mapping relative_path to RemoteFile
            unreadable: Relative paths of unreadable local files or directories

        Returns:
            SyncPlan with exactly one decision per path

        Examples:
            >>> plan = FileComparator().compare_files({}, {})
            >>> len(plan)
            0
        """
        decisions: list[SyncDecision] = []
        unreadable_roots = [path.strip("/") for path in unreadable]

        # Get all unique paths
        all_paths = set(local_files) | set(remote_files)

        for path in sorted(all_paths):
            remote_file = remote_files.get(path)
            if (
                path not in local_files
                and remote_file is not None
                and _is_below_any(path, unreadable_roots)
            ):
                decisions.append(
                    self._decision(
                        SyncAction.SKIP,
                        "Local path unreadable",
                        path,
                        remote_file=remote_file,
                    )
                )
                continue
            decisions.append(
                self._compare_single_file(path, local_files.get(path), remote_file)
            )

        return SyncPlan(tuple(decisions))

    def _compare_single_file(
        self,
        path: str,
        local_file: Optional[LocalFile],
        remote_file: Optional[RemoteFile],
    ) -> SyncDecision:
        """Compare a single file and determine action.

        Args:
            path: Relative path of the file
            local_file: Local file (if exists)
            remote_file: Remote file (if exists)

        Returns:
            SyncDecision for this file
        """
        if local_file is not None and remote_file is not None:
            return self._compare_existing_files(path, local_file, remote_file)

        if local_file is not None:
            return self._decision(SyncAction.UPLOAD, "New local file", path, local_file)

        if remote_file is not None:
            return self._decision(
                SyncAction.DELETE, "Deleted locally", path, remote_file=remote_file
            )

        raise ValueError(f"No local or remote file for {path}")

    def _compare_existing_files(
        self, path: str, local_file: LocalFile, remote_file: RemoteFile
    ) -> SyncDecision:
        """Compare files that exist in both locations."""
        if local_file.size != remote_file.size:
            reason = f"Size changed ({remote_file.size} -> {local_file.size} bytes)"
            return self._decision(
                SyncAction.UPLOAD, reason, path, local_file, remote_file
            )

        if not remote_file.checksum:
            return self._decision(
                SyncAction.UPLOAD,
                "Remote checksum unavailable",
                path,
                local_file,
                remote_file,
            )

        if not checksums_match(local_file.checksum, remote_file.checksum):
            return self._decision(
                SyncAction.UPLOAD, "Content changed", path, local_file, remote_file
            )

        return self._decision(
            SyncAction.SKIP, "Unchanged", path, local_file, remote_file
        )

    def _decision(
        self,
        action: SyncAction,
        reason: str,
        path: str,
        local_file: Optional[LocalFile] = None,
        remote_file: Optional[RemoteFile] = None,
    ) -> SyncDecision:
        return SyncDecision(
            action=action,
            reason=reason,
            relative_path=path,
            remote_path=self.remote_path(path),
            local_file=local_file,
            remote_file=remote_file,
        )


def _is_below_any(path: str, roots: list[str]) -> bool:
    return any(path == root or path.startswith(f"{root}/") for root in roots)


def diff(
    local_files: Mapping[str, LocalFile],
    remote_files: Mapping[str, RemoteFile],
    remote_prefix: str = "",
    unreadable: Iterable[str] = (),
) -> SyncPlan:
    """Build the plan that makes the remote inventory match the local one."""
    return FileComparator(remote_prefix).compare_files(
        local_files, remote_files, unreadable
    )
