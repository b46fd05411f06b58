"""Sync engine for bunnysync - mirror a local directory onto a storage zone."""

from .comparator import FileComparator, SyncAction, SyncDecision, SyncPlan, diff
from .engine import SyncEngine
from .operations import SyncOperations
from .pair import SyncPair, is_zone, parse_zone_url
from .results import ActionOutcome, ActionResult, ExecutionResult
from .scanner import (
    DirectoryScanner,
    LocalFile,
    RemoteFile,
    TraversalError,
    build_inventory,
)

__all__ = [
    "SyncEngine",
    "SyncPair",
    "SyncOperations",
    "is_zone",
    "parse_zone_url",
    "DirectoryScanner",
    "LocalFile",
    "RemoteFile",
    "TraversalError",
    "build_inventory",
    "FileComparator",
    "SyncAction",
    "SyncDecision",
    "SyncPlan",
    "diff",
    "ActionOutcome",
    "ActionResult",
    "ExecutionResult",
]
