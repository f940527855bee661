"""Utilities for bounding a long-running harvest by a wall-clock deadline."""

import concurrent.futures
import logging
import math
import threading
import time
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class DeadlineExceeded(Exception):
    """Raised when a deadline-bound call could not finish in time."""


class HarvestDeadline:
    """
    Absolute deadline for one harvest, with a cancellable sleep and a way to
    race blocking collaborator calls against the remaining time.
    """

    def __init__(self, timeout_seconds: float, clock: Callable[[], float] = time.monotonic):
        """
        Initialize the deadline.

        Args:
            timeout_seconds: Seconds from now until the deadline
            clock: Monotonic clock, replaceable in tests

        Raises:
            ValueError: if timeout_seconds is not a finite number
        """
        if not math.isfinite(timeout_seconds):
            raise ValueError(f"timeout_seconds must be finite, got {timeout_seconds}")
        self.timeout_seconds = timeout_seconds
        self._clock = clock
        self.started_at = clock()
        self.expires_at = self.started_at + max(0.0, timeout_seconds)
        self._cancelled = threading.Event()
        self._executor: Optional[concurrent.futures.ThreadPoolExecutor] = None
        # Call still running on the worker after run() gave up on it
        self.abandoned_future: Optional[concurrent.futures.Future] = None

    def remaining(self) -> float:
        """Seconds left before the deadline, never negative."""
        return max(0.0, self.expires_at - self._clock())

    def elapsed(self) -> float:
        return self._clock() - self.started_at

    def expired(self) -> bool:
        return self._cancelled.is_set() or self._clock() >= self.expires_at

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self):
        """Wake any pending wait() immediately and mark the deadline as passed."""
        self._cancelled.set()

    def wait(self, seconds: float) -> bool:
        """
        Sleep for up to `seconds`, returning early when the deadline passes or
        the harvest is cancelled.

        Returns:
            True if the full delay elapsed, False if it was cut short
        """
        remaining = self.remaining()
        if seconds <= remaining:
            return not self._cancelled.wait(seconds)
        self._cancelled.wait(remaining)
        return False

    def run(self, func: Callable[..., Any], *args, **kwargs) -> Any:
        """
        Run a blocking call on the deadline's worker thread and wait for it no
        longer than the remaining time.

        Calls are serialized on a single worker, so at most one collaborator
        call is in flight at a time.

        Raises:
            DeadlineExceeded: if the deadline passes before the call returns
        """
        if self.expired():
            raise DeadlineExceeded(f"Deadline of {self.timeout_seconds}s already passed")

        if self._executor is None:
            self._executor = concurrent.futures.ThreadPoolExecutor(max_workers=1, thread_name_prefix="harvest")

        future = self._executor.submit(func, *args, **kwargs)
        try:
            return future.result(timeout=self.remaining())
        except concurrent.futures.TimeoutError:
            if not future.cancel():
                self.abandoned_future = future
            raise DeadlineExceeded(
                f"{getattr(func, '__name__', 'call')} did not finish within the {self.timeout_seconds}s deadline"
            )

    def close(self):
        """Release the worker thread without waiting for an abandoned call."""
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
