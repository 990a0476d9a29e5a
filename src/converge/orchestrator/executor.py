"""Reconciliation executor with parallel waves and progress tracking."""

import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, List, Optional

from converge.orchestrator.graph import DeclarationGraph
from converge.resources.base import Lifecycle, ResourceDescriptor
from converge.resources.diff import ChangeSet, compute_changes
from converge.targets import ReconcileContext
from converge.utils.errors import (
    ErrorCategory,
    LifecycleError,
    ProviderCallError,
    ReconcileError,
    error_handler,
)
from converge.utils.logging import get_logger

logger = get_logger(__name__)


class ExecutionStatus(Enum):
    """Outcome of reconciling one resource."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    SUCCESS = "success"
    NO_CHANGE = "no_change"
    PLANNED = "planned"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class ResourceResult:
    """Result of reconciling a single resource."""

    key: str
    status: ExecutionStatus
    changes: Optional[ChangeSet] = None
    error: Optional[ReconcileError] = None
    warnings: List[str] = field(default_factory=list)
    duration: float = 0.0  # seconds

    def is_success(self) -> bool:
        return self.status in (
            ExecutionStatus.SUCCESS,
            ExecutionStatus.NO_CHANGE,
            ExecutionStatus.PLANNED,
        )

    def is_failed(self) -> bool:
        return self.status == ExecutionStatus.FAILED


@dataclass
class WaveResult:
    """Result of reconciling one wave of independent resources."""

    wave_number: int
    results: Dict[str, ResourceResult] = field(default_factory=dict)
    duration: float = 0.0

    def get_failed_count(self) -> int:
        return sum(1 for r in self.results.values() if r.is_failed())


@dataclass
class RunResult:
    """Complete result of reconciling a declaration graph."""

    waves: List[WaveResult] = field(default_factory=list)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration: float = 0.0

    @property
    def results(self) -> Dict[str, ResourceResult]:
        merged = {}
        for wave in self.waves:
            merged.update(wave.results)
        return merged

    def count(self, status: ExecutionStatus) -> int:
        return sum(1 for r in self.results.values() if r.status == status)

    def has_failures(self) -> bool:
        return any(r.is_failed() for r in self.results.values())

    def is_success(self) -> bool:
        return not self.has_failures()

    def get_failed_keys(self) -> List[str]:
        return sorted(k for k, r in self.results.items() if r.is_failed())


# Type alias for progress callback: (resource key, status, message)
ProgressCallback = Callable[[str, ExecutionStatus, Optional[str]], None]


class ReconcileExecutor:
    """Runs observe, diff, validate and render for resources of a graph."""

    def __init__(
        self,
        context: ReconcileContext,
        max_workers: int = 10,
        progress_callback: Optional[ProgressCallback] = None
    ):
        """Initialize executor.

        Args:
            context: Target and provider handle shared by every reconciliation
            max_workers: Maximum number of resources reconciled concurrently
            progress_callback: Optional callback for progress updates
        """
        self.context = context
        self.max_workers = max_workers
        self.progress_callback = progress_callback

    def _notify(self, key: str, status: ExecutionStatus, message: Optional[str] = None) -> None:
        if self.progress_callback:
            self.progress_callback(key, status, message)

    def reconcile(self, resource: ResourceDescriptor, dry_run: bool = False) -> ResourceResult:
        """Reconcile one resource.

        Args:
            resource: Desired descriptor
            dry_run: Stop after validation; nothing is rendered

        Returns:
            ResourceResult

        Raises:
            ReconcileError: If any step fails
        """
        key = resource.key
        extra = {'resource_id': key, 'resource_type': resource.resource_type}

        if resource.lifecycle == Lifecycle.IGNORE:
            logger.debug("Lifecycle is Ignore; skipping", extra=extra)
            return ResourceResult(key=key, status=ExecutionStatus.SKIPPED)

        target = self.context.target
        actual = resource.find(self.context) if target.check_existing else None
        changes = compute_changes(actual, resource)
        result = ResourceResult(key=key, status=ExecutionStatus.SUCCESS, changes=changes)

        if self.context.is_live:
            resource.check_exists(actual)

            if changes.is_empty():
                logger.debug("No changes", extra=extra)
                result.status = ExecutionStatus.NO_CHANGE
                return result

            if resource.lifecycle == Lifecycle.EXISTS_AND_VALIDATES:
                what = "was not found" if actual is None else f"has changes: {', '.join(changes.field_names())}"
                raise LifecycleError(
                    f"Lifecycle set to ExistsAndValidates, but {key} {what}",
                    context=resource.error_context('lifecycle')
                )

            if resource.lifecycle == Lifecycle.EXISTS_AND_WARN_IF_CHANGES:
                if actual is None:
                    raise LifecycleError(
                        f"Lifecycle set to ExistsAndWarnIfChanges, but {key} was not found",
                        context=resource.error_context('lifecycle')
                    )
                warning = (
                    f"Lifecycle set to ExistsAndWarnIfChanges and {key} has changes: "
                    f"{', '.join(changes.field_names())}; not changing it"
                )
                logger.warning(warning, extra=extra)
                result.warnings.append(warning)
                result.status = ExecutionStatus.SKIPPED
                return result

        resource.check_changes(actual, changes)

        if dry_run:
            result.status = ExecutionStatus.PLANNED
            return result

        try:
            resource.render(self.context, actual, changes)
        except ProviderCallError as e:
            if (resource.lifecycle == Lifecycle.WARN_IF_INSUFFICIENT_ACCESS
                    and e.category == ErrorCategory.PERMISSION):
                warning = f"Insufficient access to change {key}: {e.message}"
                logger.warning(warning, extra=extra)
                result.warnings.append(warning)
                result.status = ExecutionStatus.SKIPPED
                return result
            raise

        logger.info(
            f"Reconciled {key} via {target.name}"
            + (f" ({', '.join(changes.field_names())})" if changes.fields and not changes.create else ""),
            extra=extra
        )
        return result

    def _reconcile_safely(self, resource: ResourceDescriptor, dry_run: bool) -> ResourceResult:
        key = resource.key
        self._notify(key, ExecutionStatus.IN_PROGRESS)
        start = time.monotonic()

        try:
            result = self.reconcile(resource, dry_run=dry_run)
        except ReconcileError as e:
            e.context.resource_id = e.context.resource_id or key
            error_handler.log_error(e)
            result = ResourceResult(key=key, status=ExecutionStatus.FAILED, error=e)
        except Exception as e:
            error = ReconcileError(f"Reconciliation of {key} failed: {e}", cause=e)
            logger.exception(f"Unexpected failure reconciling {key}")
            result = ResourceResult(key=key, status=ExecutionStatus.FAILED, error=error)

        result.duration = time.monotonic() - start
        self._notify(key, result.status, result.error.message if result.error else None)
        return result

    def run(self, graph: DeclarationGraph, dry_run: bool = False, parallel: bool = True) -> RunResult:
        """Reconcile every resource in the graph.

        A failed resource causes everything that references it, directly or
        not, to be skipped; independent resources carry on.

        Args:
            graph: Declaration graph
            dry_run: Observe, diff and validate only
            parallel: Reconcile resources of a wave concurrently

        Returns:
            RunResult

        Raises:
            DependencyError: If the graph has cycles or unknown references
            ConfigurationError: If a declaration is invalid
        """
        graph.validate()
        waves = graph.waves()

        run_result = RunResult(start_time=datetime.now(timezone.utc))
        blocked: Dict[str, str] = {}

        logger.info(f"Reconciling {len(graph)} resources in {len(waves)} waves "
                    f"(target={self.context.target.name}, dry_run={dry_run})")

        for number, wave in enumerate(waves, 1):
            wave_start = time.monotonic()
            wave_result = WaveResult(wave_number=number)

            runnable = []
            for key in wave:
                if key in blocked:
                    message = f"skipped: depends on failed resource {blocked[key]}"
                    logger.warning(f"{key} {message}", extra={'resource_id': key})
                    wave_result.results[key] = ResourceResult(
                        key=key, status=ExecutionStatus.SKIPPED, warnings=[message]
                    )
                    self._notify(key, ExecutionStatus.SKIPPED, message)
                else:
                    runnable.append(graph.get(key))

            if parallel and len(runnable) > 1:
                with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                    futures = {pool.submit(self._reconcile_safely, r, dry_run): r.key for r in runnable}
                    for future in as_completed(futures):
                        wave_result.results[futures[future]] = future.result()
            else:
                for resource in runnable:
                    wave_result.results[resource.key] = self._reconcile_safely(resource, dry_run)

            for key, result in wave_result.results.items():
                if result.is_failed():
                    for dependent in graph.all_dependents(key):
                        blocked.setdefault(dependent, key)

            wave_result.duration = time.monotonic() - wave_start
            run_result.waves.append(wave_result)

            if wave_result.get_failed_count():
                logger.error(f"Wave {number} completed with {wave_result.get_failed_count()} failures")
            else:
                logger.debug(f"Wave {number} completed in {wave_result.duration:.1f}s")

        run_result.end_time = datetime.now(timezone.utc)
        run_result.duration = (run_result.end_time - run_result.start_time).total_seconds()

        if run_result.has_failures():
            logger.error(f"Reconciliation finished with failures: {', '.join(run_result.get_failed_keys())}")
        else:
            logger.info(f"Reconciliation finished in {run_result.duration:.1f}s")

        return run_result
