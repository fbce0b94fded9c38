"""
Execution Engine for reclaim.

Runs the enabled subset of the registry with one error contract for every
task:

- a package purge that fails is re-checked against dpkg; a package that is
  not installed is "already absent", an installed one is a failure
- a path that does not exist is "already absent", any other OSError is a
  failure
- a failing task never stops the tasks after it

Large path removals may be handed to a thread pool so they overlap with the
next tasks' purges. Every future is joined before the report is built.
"""

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from reclaim.apt import AptPackageManager
from reclaim.exceptions import ProtectedPathError, ReclaimError
from reclaim.filesystem import (
    disk_free,
    estimate_size,
    expand_path,
    is_protected,
    path_exists,
    remove_path,
)
from reclaim.registry import Configuration, Registry, Task

logger = logging.getLogger(__name__)


class TaskStatus(Enum):
    """Outcome of running one task."""

    REMOVED = "removed"
    SKIPPED_KEPT = "kept"
    ALREADY_ABSENT = "already absent"
    FAILED_UNEXPECTED = "failed"
    PLANNED = "planned"


@dataclass(frozen=True)
class TargetFailure:
    """A single package or path that could not be removed."""

    target: str
    error: str


@dataclass(frozen=True)
class TaskResult:
    """Immutable outcome of one task, produced once the task has finished."""

    task: Task
    status: TaskStatus
    bytes_freed: Optional[int] = None
    removed: tuple[str, ...] = ()
    absent: tuple[str, ...] = ()
    failures: tuple[TargetFailure, ...] = ()
    duration: float = 0.0
    background: bool = False

    @property
    def name(self) -> str:
        return self.task.name

    @property
    def failed(self) -> bool:
        return self.status is TaskStatus.FAILED_UNEXPECTED

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.task.name,
            "status": self.status.name,
            "bytes_freed": self.bytes_freed,
            "removed": list(self.removed),
            "absent": list(self.absent),
            "failures": [asdict(f) for f in self.failures],
            "duration": round(self.duration, 3),
            "background": self.background,
        }


@dataclass
class RunReport:
    """Aggregate of every task result for one invocation."""

    results: list[TaskResult] = field(default_factory=list)
    dry_run: bool = False
    disk_free_before: Optional[int] = None
    disk_free_after: Optional[int] = None

    @property
    def failed(self) -> list[TaskResult]:
        return [r for r in self.results if r.failed]

    @property
    def skipped(self) -> list[TaskResult]:
        return [r for r in self.results if r.status is TaskStatus.SKIPPED_KEPT]

    @property
    def ran(self) -> list[TaskResult]:
        return [r for r in self.results if r.status is not TaskStatus.SKIPPED_KEPT]

    @property
    def succeeded(self) -> bool:
        return not self.failed

    @property
    def exit_code(self) -> int:
        return 0 if self.succeeded else 1

    @property
    def total_bytes_freed(self) -> Optional[int]:
        sizes = [r.bytes_freed for r in self.results if r.bytes_freed is not None]
        return sum(sizes) if sizes else None

    @property
    def disk_freed(self) -> Optional[int]:
        if self.disk_free_before is None or self.disk_free_after is None:
            return None
        return self.disk_free_after - self.disk_free_before

    def get(self, name: str) -> Optional[TaskResult]:
        for result in self.results:
            if result.name == name:
                return result
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.succeeded,
            "dry_run": self.dry_run,
            "ran": len(self.ran),
            "skipped": len(self.skipped),
            "failed": [r.name for r in self.failed],
            "bytes_freed_estimate": self.total_bytes_freed,
            "disk_free_before": self.disk_free_before,
            "disk_free_after": self.disk_free_after,
            "tasks": [r.to_dict() for r in self.results],
        }


@dataclass(frozen=True)
class _PathOutcome:
    path: str
    removed: bool = False
    size: Optional[int] = None
    error: Optional[str] = None


class _TaskRun:
    """Mutable bookkeeping for a task that is still executing."""

    def __init__(self, task: Task):
        self.task = task
        self.started = time.monotonic()
        self.removed: list[str] = []
        self.absent: list[str] = []
        self.failures: list[TargetFailure] = []
        self.sizes: list[int] = []
        self.background = False

    def add_size(self, size: Optional[int]) -> None:
        if size is not None:
            self.sizes.append(size)

    def apply(self, outcome: _PathOutcome) -> None:
        if outcome.error is not None:
            self.failures.append(TargetFailure(target=outcome.path, error=outcome.error))
        elif outcome.removed:
            self.removed.append(outcome.path)
            self.add_size(outcome.size)
        else:
            self.absent.append(outcome.path)

    def finish(self, dry_run: bool = False) -> TaskResult:
        if self.failures:
            status = TaskStatus.FAILED_UNEXPECTED
        elif self.removed:
            status = TaskStatus.PLANNED if dry_run else TaskStatus.REMOVED
        else:
            status = TaskStatus.ALREADY_ABSENT

        return TaskResult(
            task=self.task,
            status=status,
            bytes_freed=sum(self.sizes) if self.sizes else None,
            removed=tuple(self.removed),
            absent=tuple(self.absent),
            failures=tuple(self.failures),
            duration=time.monotonic() - self.started,
            background=self.background,
        )


def _remove_one(path: str, estimate: bool) -> _PathOutcome:
    """Remove a single concrete path. Safe to run on a worker thread."""
    size = estimate_size(path) if estimate else None
    try:
        removed = remove_path(path)
    except (OSError, ReclaimError) as e:
        return _PathOutcome(path=path, error=str(e))
    return _PathOutcome(path=path, removed=removed, size=size if removed else None)


class ExecutionEngine:
    """Runs registry tasks against the host and aggregates their results."""

    def __init__(
        self,
        registry: Registry,
        package_manager: Optional[AptPackageManager] = None,
        on_result: Optional[Callable[[TaskResult], None]] = None,
    ):
        """
        Args:
            registry: Catalog of tasks to consider.
            package_manager: apt adapter; built per run when not supplied so
                it can honour the run's dry-run setting.
            on_result: Called once for every finished task, in completion order.
        """
        self.registry = registry
        self.package_manager = package_manager
        self.on_result = on_result

    def _emit(self, result: TaskResult) -> None:
        if result.failed:
            for failure in result.failures:
                logger.error(f"[{result.name}] {failure.target}: {failure.error}")
        else:
            logger.info(f"[{result.name}] {result.status.value}")
        if self.on_result:
            self.on_result(result)

    def run(self, configuration: Configuration) -> RunReport:
        """Execute every enabled task and return the aggregated report.

        Raises:
            UnknownTaskError: an override names a task not in the registry.
                Raised before anything is removed.
        """
        enabled = self.registry.resolve_enabled(configuration)
        package_manager = self.package_manager or AptPackageManager(dry_run=configuration.dry_run)

        report = RunReport(dry_run=configuration.dry_run, disk_free_before=disk_free())
        finished: dict[str, TaskResult] = {}
        pending: list[tuple[_TaskRun, list[Future]]] = []

        executor = None
        if configuration.background and not configuration.dry_run:
            executor = ThreadPoolExecutor(
                max_workers=max(1, configuration.max_workers),
                thread_name_prefix="reclaim-rm",
            )

        try:
            for task in self.registry:
                if not enabled[task.name]:
                    result = TaskResult(task=task, status=TaskStatus.SKIPPED_KEPT)
                    finished[task.name] = result
                    self._emit(result)
                    continue

                run = _TaskRun(task)
                if configuration.dry_run:
                    self._plan(run, package_manager, configuration)
                elif self._purge_packages(run, package_manager):
                    if executor is not None and task.background_eligible:
                        run.background = True
                        futures = [
                            executor.submit(_remove_one, path, configuration.estimate_sizes)
                            for path in self._expand(run)
                        ]
                        pending.append((run, futures))
                        logger.debug(f"[{task.name}] dispatched {len(futures)} background removals")
                        continue
                    for path in self._expand(run):
                        run.apply(_remove_one(path, configuration.estimate_sizes))

                result = run.finish(dry_run=configuration.dry_run)
                finished[task.name] = result
                self._emit(result)

            for run, futures in pending:
                for future in futures:
                    run.apply(future.result())
                result = run.finish()
                finished[run.task.name] = result
                self._emit(result)
        except KeyboardInterrupt:
            # Queued removals are dropped; a removal already in flight still
            # finishes before the interpreter exits (concurrent.futures joins
            # its workers at exit)
            if executor is not None:
                executor.shutdown(wait=False, cancel_futures=True)
                executor = None
            raise
        finally:
            if executor is not None:
                executor.shutdown(wait=True)

        report.results = [finished[task.name] for task in self.registry]
        report.disk_free_after = disk_free()
        return report

    def _expand(self, run: _TaskRun) -> list[str]:
        """Expand the task's path patterns, recording patterns with no match."""
        paths = []
        for pattern in run.task.paths:
            matches = expand_path(pattern)
            if not matches:
                run.absent.append(pattern)
            paths.extend(matches)
        return paths

    def _purge_packages(self, run: _TaskRun, package_manager: AptPackageManager) -> bool:
        """Purge the task's packages in order.

        Returns:
            False if a purge genuinely failed; the task's remaining packages
            and its paths are then left alone.
        """
        for package in run.task.packages:
            target = f"package:{package}"
            before = package_manager.query(package)
            result = package_manager.purge(package)

            if not result.success:
                # apt exits non-zero for unknown packages too; ask dpkg
                if package_manager.is_installed(package):
                    error = result.output or f"apt-get exited with code {result.return_code}"
                    run.failures.append(TargetFailure(target=target, error=error))
                    return False
                logger.info(f"[{run.task.name}] {package} is not installed")

            if before.installed:
                run.removed.append(target)
                run.add_size(before.size_bytes)
            else:
                run.absent.append(target)
        return True

    def _plan(
        self,
        run: _TaskRun,
        package_manager: AptPackageManager,
        configuration: Configuration,
    ) -> None:
        """Record what the task would remove without touching anything."""
        for package in run.task.packages:
            target = f"package:{package}"
            state = package_manager.query(package)
            if state.installed:
                run.removed.append(target)
                run.add_size(state.size_bytes)
            else:
                run.absent.append(target)

        for path in self._expand(run):
            if is_protected(path):
                run.failures.append(TargetFailure(target=path, error=str(ProtectedPathError(path))))
            elif path_exists(path):
                run.removed.append(path)
                if configuration.estimate_sizes:
                    run.add_size(estimate_size(path))
            else:
                run.absent.append(path)
