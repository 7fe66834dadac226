"""Local parallel execution using concurrent.futures.

This module runs one independent task per work item across a bounded
pool of threads or processes, recording each task's success or failure
instead of stopping at the first error.

Features:
    - Multiple execution backends (serial, threads, processes)
    - Per-task timing and error capture
    - Progress callbacks
    - Automatic worker count (0 = all CPUs)

Example:
    >>> from exoncov.parallel.executor import ParallelExecutor, ExecutorBackend
    >>> executor = ParallelExecutor(n_workers=8, backend=ExecutorBackend.PROCESSES)
    >>> results, stats = executor.map_tasks(counter, tasks)
    >>> print(f"Processed {stats.successful}/{stats.total_tasks} tasks")
"""

from __future__ import annotations

import logging
import os
import time
from concurrent.futures import (
    Executor,
    Future,
    ProcessPoolExecutor,
    ThreadPoolExecutor,
    as_completed,
)
from enum import Enum
from typing import Any, Callable, TypeVar

import attrs

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


# =============================================================================
# Enums
# =============================================================================


class ExecutorBackend(Enum):
    """Available execution backends."""

    SERIAL = "serial"
    THREADS = "threads"
    PROCESSES = "processes"


# =============================================================================
# Data Structures
# =============================================================================


@attrs.define(slots=True)
class TaskResult:
    """Result from a parallel task."""

    task_id: str
    success: bool
    result: Any | None = None
    error: str | None = None
    duration_seconds: float = 0.0


@attrs.define(slots=True)
class ExecutionStats:
    """Statistics from parallel execution."""

    total_tasks: int
    successful: int
    failed: int
    total_duration: float
    mean_task_duration: float
    max_task_duration: float

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "total_tasks": self.total_tasks,
            "successful": self.successful,
            "failed": self.failed,
            "total_duration": round(self.total_duration, 3),
            "mean_task_duration": round(self.mean_task_duration, 3),
            "max_task_duration": round(self.max_task_duration, 3),
        }


# =============================================================================
# Task Wrapper
# =============================================================================


def _timed_call(func: Callable[[T], R], task_id: str, item: T) -> TaskResult:
    """Run one task and capture its outcome.

    Module-level so that it can be sent to worker processes.
    """
    start_time = time.time()
    try:
        result = func(item)
    except Exception as e:
        return TaskResult(
            task_id=task_id,
            success=False,
            error=f"{type(e).__name__}: {e}",
            duration_seconds=time.time() - start_time,
        )
    return TaskResult(
        task_id=task_id,
        success=True,
        result=result,
        duration_seconds=time.time() - start_time,
    )


def _task_id(item: Any, index: int) -> str:
    return getattr(item, "task_id", f"item_{index:06d}")


# =============================================================================
# Parallel Executor
# =============================================================================


class ParallelExecutor:
    """Execute independent tasks in parallel.

    Features:
    - Multiple backends (serial, threads, processes)
    - Progress tracking with callbacks
    - Graceful error handling (continue on failure)

    Items may expose a ``task_id`` attribute used in results and logs.

    Example:
        >>> executor = ParallelExecutor(n_workers=4, backend="threads")
        >>> results, stats = executor.map_tasks(process_func, items)
        >>> failed = [r for r in results if not r.success]
    """

    def __init__(
        self,
        n_workers: int = 0,
        backend: ExecutorBackend | str = ExecutorBackend.PROCESSES,
        progress_callback: Callable[[int, int, str], None] | None = None,
    ) -> None:
        """Initialize executor.

        Args:
            n_workers: Number of parallel workers (0 = CPU count, 1 = serial).
            backend: Execution backend.
            progress_callback: Called with (completed, total, task_id).
        """
        self.n_workers = resolve_workers(n_workers)
        self.backend = (
            ExecutorBackend(backend) if isinstance(backend, str) else backend
        )
        self.progress_callback = progress_callback

        # Auto-select serial if n_workers=1
        if self.n_workers == 1:
            self.backend = ExecutorBackend.SERIAL

    def map_tasks(
        self,
        func: Callable[[T], R],
        items: list[T],
    ) -> tuple[list[TaskResult], ExecutionStats]:
        """Apply function to each item.

        Args:
            func: Function taking one item. Must be picklable for the
                process backend.
            items: Items to process.

        Returns:
            Tuple of (results_list, execution_stats). Results are in
            completion order. A failing task does not stop the others.
        """
        if not items:
            return [], ExecutionStats(
                total_tasks=0,
                successful=0,
                failed=0,
                total_duration=0.0,
                mean_task_duration=0.0,
                max_task_duration=0.0,
            )

        logger.info(
            f"Processing {len(items)} tasks with {self.n_workers} workers "
            f"(backend={self.backend.value})"
        )

        start_time = time.time()

        if self.backend == ExecutorBackend.SERIAL:
            results = self._execute_serial(func, items)
        elif self.backend == ExecutorBackend.THREADS:
            results = self._execute_pool(
                ThreadPoolExecutor(max_workers=self.n_workers),
                func, items,
            )
        else:
            results = self._execute_pool(
                ProcessPoolExecutor(max_workers=self.n_workers),
                func, items,
            )

        # Compute statistics
        total_duration = time.time() - start_time
        successful = sum(1 for r in results if r.success)
        failed = len(results) - successful
        durations = [r.duration_seconds for r in results]

        stats = ExecutionStats(
            total_tasks=len(results),
            successful=successful,
            failed=failed,
            total_duration=total_duration,
            mean_task_duration=sum(durations) / len(durations) if durations else 0,
            max_task_duration=max(durations) if durations else 0,
        )

        logger.info(
            f"Completed: {successful}/{len(items)} tasks, "
            f"duration={total_duration:.1f}s"
        )
        if failed:
            logger.warning(f"{failed} tasks failed")

        return results, stats

    def _record(
        self,
        task_result: TaskResult,
        completed: int,
        total: int,
    ) -> None:
        if not task_result.success:
            logger.warning(f"Task {task_result.task_id} failed: {task_result.error}")

        if self.progress_callback:
            self.progress_callback(completed, total, task_result.task_id)

    def _execute_serial(
        self,
        func: Callable,
        items: list,
    ) -> list[TaskResult]:
        """Serial execution with progress tracking."""
        results = []
        total = len(items)

        for i, item in enumerate(items):
            task_result = _timed_call(func, _task_id(item, i), item)
            results.append(task_result)
            self._record(task_result, i + 1, total)

        return results

    def _execute_pool(
        self,
        pool: Executor,
        func: Callable,
        items: list,
    ) -> list[TaskResult]:
        """Pool execution (threads for I/O-bound, processes for CPU-bound)."""
        results = []
        total = len(items)
        completed = 0

        with pool as executor:
            futures: dict[Future, str] = {}
            for i, item in enumerate(items):
                task_id = _task_id(item, i)
                futures[executor.submit(_timed_call, func, task_id, item)] = task_id

            try:
                for future in as_completed(futures):
                    completed += 1
                    try:
                        task_result = future.result()
                    except Exception as e:
                        # Failures outside the task itself (pickling, dead worker)
                        task_result = TaskResult(
                            task_id=futures[future],
                            success=False,
                            error=f"{type(e).__name__}: {e}",
                        )
                    results.append(task_result)
                    self._record(task_result, completed, total)
            except BaseException:
                executor.shutdown(wait=False, cancel_futures=True)
                raise

        return results


# =============================================================================
# Utility Functions
# =============================================================================


def resolve_workers(n_workers: int) -> int:
    """Resolve a worker count, where 0 (or less) means all CPUs.

    Args:
        n_workers: Requested workers.

    Returns:
        Worker count of at least 1.
    """
    if n_workers <= 0:
        return os.cpu_count() or 1
    return n_workers
