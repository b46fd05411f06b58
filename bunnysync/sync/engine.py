"""Core sync engine for executing sync operations."""

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import Callable, Optional

from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn

from ..api import StorageClientProtocol
from ..exceptions import LocalDirectoryError, StorageAPIError, TransferError
from ..output import OutputFormatter
from ..utils import DEFAULT_WORKERS, format_size
from .comparator import FileComparator, SyncAction, SyncDecision, SyncPlan
from .operations import SyncOperations
from .pair import SyncPair
from .results import ActionOutcome, ActionResult, ExecutionResult
from .scanner import DirectoryScanner, TraversalError, build_inventory

logger = logging.getLogger(__name__)

DRY_RUN_REASON = "dry run"


class SyncEngine:
    """Core sync engine that mirrors a local directory onto a storage zone."""

    def __init__(
        self,
        client: StorageClientProtocol,
        output: Optional[OutputFormatter] = None,
        max_workers: int = DEFAULT_WORKERS,
    ):
        """Initialize sync engine.

        Args:
            client: Storage client for the target zone
            output: Output formatter for displaying progress/status
            max_workers: Default number of parallel upload/delete workers
        """
        self.client = client
        self.output = output or OutputFormatter()
        self.operations = SyncOperations(client)
        self.max_workers = max(1, max_workers)

    @property
    def _show_progress(self) -> bool:
        return not (self.output.quiet or self.output.json_output)

    def sync_pair(
        self,
        pair: SyncPair,
        dry_run: bool = False,
        max_workers: Optional[int] = None,
    ) -> ExecutionResult:
        """Mirror a sync pair.

        Args:
            pair: Sync pair to synchronize
            dry_run: If True, only show what would be done without changing the zone
            max_workers: Number of parallel workers (defaults to the engine setting)

        Returns:
            ExecutionResult with per-action outcomes and counts

        Raises:
            LocalDirectoryError: If the local root is missing or unreadable
            RemoteUnavailable: If the remote listing fails; nothing is applied

        Examples:
            >>> engine = SyncEngine(client)
            >>> pair = SyncPair(Path("./site"), "my-zone", "www")
            >>> result = engine.sync_pair(pair, dry_run=True)
            >>> print(f"Would upload {len(result.results)} files")
        """
        if not pair.local.exists():
            raise LocalDirectoryError(f"Local directory does not exist: {pair.local}")
        if not pair.local.is_dir():
            raise LocalDirectoryError(f"Local path is not a directory: {pair.local}")

        self.output.info(f"Syncing: {pair.local} -> {pair.remote_url}")
        if dry_run:
            self.output.info("Dry run: No changes will be made")
        self.output.print("")

        # Step 1-2: Build both inventories and compare them
        plan, traversal_errors = self.build_plan(pair)

        # Step 3: Display plan
        self._display_sync_plan(plan, dry_run)

        # Step 4: Execute (or classify, in dry-run mode)
        result = self.execute(plan, dry_run=dry_run, max_workers=max_workers)
        result.traversal_errors = list(traversal_errors)

        # Step 5: Display outcome
        if not dry_run:
            self._display_results(result)
        self.display_summary(result)

        return result

    def build_plan(self, pair: SyncPair) -> tuple[SyncPlan, list[TraversalError]]:
        """Scan both sides and compute the sync plan.

        The local walk and the remote listing run concurrently; the plan is
        only computed once both are complete.

        Args:
            pair: Sync pair configuration

        Returns:
            Tuple of (plan, local traversal errors)

        Raises:
            LocalDirectoryError: If the local root cannot be read
            RemoteUnavailable: If the remote listing fails
        """
        local_scanner = self._create_scanner(pair)
        remote_scanner = self._create_scanner(pair)

        scan_start = time.time()
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            transient=True,
            disable=not self._show_progress,
        ) as progress:
            task = progress.add_task("Scanning local and remote files...", total=None)
            with ThreadPoolExecutor(max_workers=2) as executor:
                local_future = executor.submit(local_scanner.scan_local, pair.local)
                remote_future = executor.submit(
                    remote_scanner.fetch_remote, self.client, pair.prefix
                )
                remote_files = remote_future.result()
                local_files = local_future.result()
            progress.update(
                task,
                description=(
                    f"Found {len(local_files)} local and "
                    f"{len(remote_files)} remote file(s)"
                ),
            )

        logger.debug(
            f"Scan took {time.time() - scan_start:.2f}s: "
            f"{len(local_files)} local, {len(remote_files)} remote file(s)"
        )
        for error in local_scanner.errors:
            self.output.warning(f"Skipped unreadable path: {error}")

        comparator = FileComparator(pair.prefix)
        plan = comparator.compare_files(
            build_inventory(local_files),
            build_inventory(remote_files),
            unreadable=[error.path for error in local_scanner.errors],
        )
        logger.debug(f"Plan: {plan.counts()}")
        return plan, local_scanner.errors

    def _create_scanner(self, pair: SyncPair) -> DirectoryScanner:
        return DirectoryScanner(
            exclude=pair.exclude,
            exclude_dot_files=pair.exclude_dot_files,
            follow_symlinks=pair.follow_symlinks,
        )

    # =========================
    # Execution
    # =========================

    def execute(
        self,
        plan: SyncPlan,
        dry_run: bool = False,
        max_workers: Optional[int] = None,
    ) -> ExecutionResult:
        """Apply a plan to the storage zone.

        In dry-run mode every decision is recorded as skipped and the
        storage client is never called. In live mode uploads and deletes
        run on up to ``max_workers`` threads; a failed action is recorded
        and does not stop the others. Ctrl+C cancels pending actions and
        marks the result as interrupted.

        Args:
            plan: Plan computed by the comparator
            dry_run: Classify and report without touching the zone
            max_workers: Number of parallel workers (defaults to the engine setting)

        Returns:
            ExecutionResult with one ActionResult per executed or skipped decision
        """
        result = ExecutionResult(dry_run=dry_run)
        workers = max(1, max_workers or self.max_workers)

        for decision in plan:
            if not decision.is_actionable:
                result.record(
                    ActionResult(decision, ActionOutcome.SKIPPED, decision.reason)
                )
            elif dry_run:
                result.record(
                    ActionResult(decision, ActionOutcome.SKIPPED, DRY_RUN_REASON)
                )

        actionable = plan.actionable
        if dry_run or not actionable:
            return result

        logger.debug(f"Executing {len(actionable)} actions with {workers} workers")

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("{task.completed}/{task.total}"),
            disable=not self._show_progress,
        ) as progress:
            task = progress.add_task("Syncing files...", total=len(actionable))

            def advance() -> None:
                progress.update(task, advance=1)

            try:
                if workers > 1 and len(actionable) > 1:
                    self._execute_decisions_parallel(
                        actionable, result, workers, advance
                    )
                else:
                    for decision in actionable:
                        try:
                            result.record(self._execute_single_decision(decision))
                        except Exception as e:
                            self._record_unexpected_failure(result, decision, e)
                        advance()
            except KeyboardInterrupt:
                result.interrupted = True
                self.output.warning("\nSync cancelled by user")

        return result

    def _execute_single_decision(self, decision: SyncDecision) -> ActionResult:
        """Execute a single sync decision.

        Args:
            decision: Upload or delete decision

        Returns:
            ActionResult (applied or failed)
        """
        action_start = time.time()
        try:
            if decision.action == SyncAction.UPLOAD:
                if decision.local_file is None:
                    raise ValueError("Upload decision without a local file")
                logger.debug(f"Uploading {decision.relative_path}...")
                self.operations.upload_file(decision.local_file, decision.remote_path)
                reason = decision.reason
            elif decision.action == SyncAction.DELETE:
                logger.debug(f"Deleting {decision.remote_path}...")
                existed = self.operations.delete_remote(decision.remote_path)
                reason = decision.reason if existed else "Already absent"
            else:
                return ActionResult(decision, ActionOutcome.SKIPPED, decision.reason)
        except (StorageAPIError, OSError, ValueError) as e:
            error = TransferError(decision.remote_path, str(e))
            elapsed = time.time() - action_start
            logger.debug(f"Failed {decision.relative_path} in {elapsed:.2f}s: {e}")
            self.output.error(f"Error syncing {decision.relative_path}: {e}")
            return ActionResult(decision, ActionOutcome.FAILED, str(error), elapsed)

        elapsed = time.time() - action_start
        logger.debug(
            f"{decision.action.value.capitalize()} of {decision.relative_path} "
            f"took {elapsed:.2f}s"
        )
        return ActionResult(decision, ActionOutcome.APPLIED, reason, elapsed)

    def _execute_decisions_parallel(
        self,
        decisions: list[SyncDecision],
        result: ExecutionResult,
        max_workers: int,
        on_complete: Callable[[], None],
    ) -> None:
        """Execute sync decisions in parallel using ThreadPoolExecutor.

        Decisions target distinct remote paths, so they can complete in any
        order.

        Args:
            decisions: Upload/delete decisions to execute
            result: Aggregator the outcomes are recorded into
            max_workers: Number of parallel workers
            on_complete: Called once per finished decision
        """
        executor = ThreadPoolExecutor(max_workers=max_workers)
        futures: dict[Future, SyncDecision] = {}
        try:
            futures = {
                executor.submit(self._execute_single_decision, decision): decision
                for decision in decisions
            }

            for future in as_completed(futures):
                try:
                    result.record(future.result())
                except Exception as e:
                    self._record_unexpected_failure(result, futures[future], e)
                on_complete()
        except KeyboardInterrupt:
            executor.shutdown(wait=False, cancel_futures=True)
            raise
        executor.shutdown()

    def _record_unexpected_failure(
        self, result: ExecutionResult, decision: SyncDecision, error: Exception
    ) -> None:
        """Record an error that escaped the per-action handling as a failure."""
        logger.debug(f"Unexpected error for {decision.relative_path}", exc_info=True)
        self.output.error(
            f"Unexpected error syncing {decision.relative_path}: {error}"
        )
        result.record(
            ActionResult(
                decision,
                ActionOutcome.FAILED,
                str(TransferError(decision.remote_path, str(error))),
            )
        )

    # =========================
    # Reporting
    # =========================

    def _display_sync_plan(self, plan: SyncPlan, dry_run: bool) -> None:
        """Display sync plan to user.

        In dry-run mode the plan is the only output, so every decision is
        listed.

        Args:
            plan: Computed sync plan
            dry_run: Whether this is a dry run
        """
        counts = plan.counts()
        self.output.info("Sync plan:")
        if counts["uploads"] > 0:
            self.output.info(
                f"  ↑ Upload: {counts['uploads']} file(s) "
                f"({format_size(plan.upload_bytes)})"
            )
        if counts["deletes"] > 0:
            self.output.info(f"  ✗ Delete remote: {counts['deletes']} file(s)")
        if counts["skips"] > 0:
            self.output.info(f"  = Skip: {counts['skips']} file(s)")
        if not plan.decisions:
            self.output.info("  (no files)")

        if dry_run:
            self.output.print("")
            for decision in plan:
                self.output.print(self.format_decision(decision, dry_run=True))

        self.output.print("")

    @staticmethod
    def format_decision(decision: SyncDecision, dry_run: bool = False) -> str:
        """Single report line for a decision.

        Examples:
            >>> SyncEngine.format_decision(decision, dry_run=True)
            'Would upload: b/c.txt'
        """
        if decision.action == SyncAction.UPLOAD:
            verb = "Would upload" if dry_run else "Uploaded"
        elif decision.action == SyncAction.DELETE:
            verb = "Would delete" if dry_run else "Deleted"
        else:
            verb = "Unchanged"
        return f"{verb}: {decision.relative_path}"

    def _display_results(self, result: ExecutionResult) -> None:
        """List the actions that were applied in a live run."""
        for action_result in result.results:
            if action_result.outcome == ActionOutcome.APPLIED:
                self.output.print(self.format_decision(action_result.decision))

    def display_summary(self, result: ExecutionResult) -> None:
        """Display the run summary.

        Args:
            result: Execution result of the run
        """
        self.output.print("")
        if result.interrupted:
            self.output.warning("Sync interrupted - rerun to finish mirroring")
        elif result.failed:
            self.output.error(f"Sync finished with {result.failed} failure(s)")
        elif result.dry_run:
            self.output.success("Dry run complete!")
        else:
            self.output.success("Sync complete!")

        self.print_counts(result)

        for failure in result.failures:
            self.output.error(f"  Failed: {failure.reason}")

    def print_counts(self, result: ExecutionResult) -> None:
        """Print the summary table of a run."""
        items = [
            ("Uploaded", f"{result.uploaded} ({format_size(result.bytes_uploaded)})"),
            ("Deleted", str(result.deleted)),
            ("Skipped", str(result.skipped)),
            ("Failed", str(result.failed)),
        ]
        if result.traversal_errors:
            items.append(("Unreadable local paths", str(len(result.traversal_errors))))
        self.output.print_summary("Summary", items)
