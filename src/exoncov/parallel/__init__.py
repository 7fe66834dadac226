"""Parallelization utilities for exoncov.

Example:
    >>> from exoncov.parallel import ParallelExecutor, ExecutorBackend
    >>> executor = ParallelExecutor(n_workers=0, backend=ExecutorBackend.THREADS)
    >>> results, stats = executor.map_tasks(func, items)
"""

from exoncov.parallel.executor import (
    ExecutionStats,
    ExecutorBackend,
    ParallelExecutor,
    TaskResult,
    resolve_workers,
)

__all__ = [
    "ExecutionStats",
    "ExecutorBackend",
    "ParallelExecutor",
    "TaskResult",
    "resolve_workers",
]
