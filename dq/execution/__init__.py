"""Execution module for work that must run outside the caller's transaction."""

from .pool import (
    PoolRejectedError,
    PoolShutdownError,
    WorkerPool,
    WorkerPoolError,
    default_max_workers,
)

__all__ = [
    "WorkerPool",
    "WorkerPoolError",
    "PoolRejectedError",
    "PoolShutdownError",
    "default_max_workers",
]
