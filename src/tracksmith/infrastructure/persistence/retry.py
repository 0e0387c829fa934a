# Hey future me - this is THE FIX for "database is locked" errors during bulk scans!
#
# SQLite allows ONE writer at a time. When the batch driver reconciles several files in
# parallel, two per-file transactions can collide and one gets "database is locked".
# Those locks are temporary: wait a bit, retry the whole transaction, done.
#
# USAGE:
#   @with_db_retry(max_attempts=3)
#   async def _reconcile(self, ...) -> Song:
#       async with self._db.session_scope() as session:
#           ...
#
# Wrap the function that OPENS the session_scope, not a repository call inside it - after a
# lock error the transaction is rolled back and must be replayed from the start.
"""Database retry utilities for handling SQLite lock errors."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import Any, ParamSpec, TypeVar

from sqlalchemy.exc import OperationalError

from tracksmith.domain.exceptions import DatabaseBusyError

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


class DatabaseLockMetrics:
    """Track database lock events for monitoring.

    Process-wide singleton. The batch driver logs get_stats() after a run so
    lock contention shows up without attaching a debugger.

    Metrics tracked:
    - lock_attempts: Total operations that attempted DB access
    - lock_successes: Operations that succeeded (possibly after retries)
    - lock_failures: Operations that failed after all retries exhausted
    - lock_retries: Total retry attempts made
    - total_wait_time_ms: Cumulative time spent waiting for locks
    - max_wait_time_ms: Longest single wait time recorded
    """

    _instance: DatabaseLockMetrics | None = None

    def __init__(self) -> None:
        """Initialize metrics counters."""
        self.lock_attempts: int = 0
        self.lock_successes: int = 0
        self.lock_failures: int = 0
        self.lock_retries: int = 0
        self.total_wait_time_ms: float = 0.0
        self.max_wait_time_ms: float = 0.0
        self.last_lock_event: float | None = None

    @classmethod
    def get_instance(cls) -> DatabaseLockMetrics:
        """Get singleton instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def record_attempt(self) -> None:
        """Record a database operation attempt."""
        self.lock_attempts += 1

    def record_success(self, wait_time_ms: float = 0.0) -> None:
        """Record a successful operation.

        Args:
            wait_time_ms: Time spent waiting for lock (0 if no wait needed)
        """
        self.lock_successes += 1
        self.total_wait_time_ms += wait_time_ms
        if wait_time_ms > self.max_wait_time_ms:
            self.max_wait_time_ms = wait_time_ms
        if wait_time_ms > 0:
            self.last_lock_event = time.time()

    def record_failure(self) -> None:
        """Record a failed operation (all retries exhausted)."""
        self.lock_failures += 1
        self.last_lock_event = time.time()
        logger.warning(
            "Database lock failure recorded (total failures: %d)", self.lock_failures
        )

    def record_retry(self) -> None:
        """Record a retry attempt."""
        self.lock_retries += 1

    def get_stats(self) -> dict[str, Any]:
        """Get all metrics as a dictionary."""
        return {
            "lock_attempts": self.lock_attempts,
            "lock_successes": self.lock_successes,
            "lock_failures": self.lock_failures,
            "lock_retries": self.lock_retries,
            "total_wait_time_ms": round(self.total_wait_time_ms, 2),
            "max_wait_time_ms": round(self.max_wait_time_ms, 2),
            "last_lock_event_timestamp": self.last_lock_event,
        }

    def reset(self) -> None:
        """Reset all metrics (for testing)."""
        self.lock_attempts = 0
        self.lock_successes = 0
        self.lock_failures = 0
        self.lock_retries = 0
        self.total_wait_time_ms = 0.0
        self.max_wait_time_ms = 0.0
        self.last_lock_event = None


def is_lock_error(exception: BaseException) -> bool:
    """Check if an exception is a retryable SQLite lock error."""
    if not isinstance(exception, OperationalError):
        return False

    error_msg = str(exception).lower()
    return "locked" in error_msg or "busy" in error_msg


def with_db_retry(
    max_attempts: int = 3,
    initial_delay: float = 0.5,
    max_delay: float = 5.0,
    backoff_factor: float = 2.0,
    track_metrics: bool = True,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Decorator for retrying database operations on lock errors.

    The backoff is exponential: 0.5s -> 1s -> 2s (capped at max_delay).

    Args:
        max_attempts: Maximum attempts including the first (default: 3)
        initial_delay: Initial delay in seconds (default: 0.5)
        max_delay: Maximum delay cap in seconds (default: 5.0)
        backoff_factor: Multiply delay by this each retry (default: 2.0)
        track_metrics: Whether to record metrics (default: True)

    Returns:
        Decorated async function with automatic retry logic.

    Raises:
        DatabaseBusyError: If the database is still locked after max_attempts.

    Notes:
        - Only "locked"/"busy" OperationalErrors are retried
        - Other OperationalErrors are raised immediately
    """

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            metrics = DatabaseLockMetrics.get_instance() if track_metrics else None
            last_exception: OperationalError | None = None
            delay = initial_delay
            start_time = time.monotonic()
            total_wait_ms = 0.0

            if metrics:
                metrics.record_attempt()

            for attempt in range(max_attempts):
                try:
                    result = await func(*args, **kwargs)
                except OperationalError as e:
                    if not is_lock_error(e):
                        if metrics:
                            metrics.record_failure()
                        raise

                    last_exception = e
                    if attempt == max_attempts - 1:
                        break

                    if metrics:
                        metrics.record_retry()
                    logger.warning(
                        "Database locked (attempt %d/%d), retrying in %.1fs: %s.%s",
                        attempt + 1,
                        max_attempts,
                        delay,
                        func.__module__,
                        func.__qualname__,
                    )
                    await asyncio.sleep(delay)
                    total_wait_ms += delay * 1000
                    delay = min(delay * backoff_factor, max_delay)
                else:
                    if metrics:
                        metrics.record_success(total_wait_ms)
                    return result

            elapsed = (time.monotonic() - start_time) * 1000
            logger.error(
                "Database locked after %d attempts (%.0fms total), giving up: %s.%s",
                max_attempts,
                elapsed,
                func.__module__,
                func.__qualname__,
            )
            if metrics:
                metrics.record_failure()
            raise DatabaseBusyError(
                f"Database busy after {max_attempts} attempts in '{func.__qualname__}': "
                f"{last_exception}",
                attempts=max_attempts,
                total_wait_time=total_wait_ms / 1000,
            ) from last_exception

        return wrapper

    return decorator
