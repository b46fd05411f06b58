"""Outcome tracking for executed sync plans."""

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from .comparator import SyncAction, SyncDecision
from .scanner import TraversalError


class ActionOutcome(str, Enum):
    """What happened to a single decision."""

    APPLIED = "applied"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class ActionResult:
    """Outcome of one decision."""

    decision: SyncDecision
    outcome: ActionOutcome
    reason: str = ""
    """Skip reason or error message"""

    elapsed: float = 0.0
    """Seconds spent executing the action"""


class ExecutionResult:
    """Thread-safe aggregate of action results for one run.

    Workers call :meth:`record` concurrently; everything else reads a
    snapshot taken under the lock.
    """

    def __init__(self, dry_run: bool = False):
        self.dry_run = dry_run
        self.traversal_errors: list[TraversalError] = []
        self.interrupted = False
        self._results: list[ActionResult] = []
        self._lock = threading.Lock()

    def record(self, result: ActionResult) -> None:
        with self._lock:
            self._results.append(result)

    @property
    def results(self) -> list[ActionResult]:
        """Recorded results ordered by relative path."""
        with self._lock:
            snapshot = list(self._results)
        return sorted(snapshot, key=lambda r: r.decision.relative_path)

    def _count(self, outcome: ActionOutcome, action: Optional[SyncAction] = None) -> int:
        return sum(
            1
            for r in self.results
            if r.outcome == outcome and (action is None or r.decision.action == action)
        )

    @property
    def uploaded(self) -> int:
        return self._count(ActionOutcome.APPLIED, SyncAction.UPLOAD)

    @property
    def deleted(self) -> int:
        return self._count(ActionOutcome.APPLIED, SyncAction.DELETE)

    @property
    def skipped(self) -> int:
        return self._count(ActionOutcome.SKIPPED)

    @property
    def failed(self) -> int:
        return self._count(ActionOutcome.FAILED)

    @property
    def bytes_uploaded(self) -> int:
        return sum(
            r.decision.size
            for r in self.results
            if r.outcome == ActionOutcome.APPLIED
            and r.decision.action == SyncAction.UPLOAD
        )

    @property
    def failures(self) -> list[ActionResult]:
        return [r for r in self.results if r.outcome == ActionOutcome.FAILED]

    @property
    def success(self) -> bool:
        """True when no action failed and the run was not interrupted."""
        return self.failed == 0 and not self.interrupted

    def counts(self) -> dict[str, int]:
        return {
            "uploaded": self.uploaded,
            "deleted": self.deleted,
            "skipped": self.skipped,
            "failed": self.failed,
        }

    def to_dict(self) -> dict[str, Any]:
        """Serializable summary for JSON output."""
        return {
            "dry_run": self.dry_run,
            "success": self.success,
            **self.counts(),
            "bytes_uploaded": self.bytes_uploaded,
            "actions": [
                {
                    "path": r.decision.relative_path,
                    "remote_path": r.decision.remote_path,
                    "action": r.decision.action.value,
                    "outcome": r.outcome.value,
                    "reason": r.reason,
                }
                for r in self.results
            ],
            "traversal_errors": [
                {"path": e.path, "error": e.message} for e in self.traversal_errors
            ],
        }
