"""
Caller-supplied deadline and cancellation signal.

A CallContext is threaded through every store, statistics and ranking call.
Components call ``check()`` around each boundary call so that a cancelled
request fails instead of returning partially read data.
"""

import threading
import time
from typing import Optional

from .exceptions import DeadlineExceeded, OperationCancelled


class CallContext:
    """
    Deadline and cancellation flag for one inbound request.
    """

    def __init__(self, deadline: Optional[float] = None):
        # deadline is an absolute time.monotonic() value
        self._deadline = deadline
        self._cancelled = threading.Event()

    @classmethod
    def with_timeout(cls, seconds: float) -> 'CallContext':
        return cls(deadline=time.monotonic() + seconds)

    @classmethod
    def background(cls) -> 'CallContext':
        """A context that never expires and is never cancelled by itself."""
        return cls()

    @property
    def deadline(self) -> Optional[float]:
        return self._deadline

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        self._cancelled.set()

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or None when there is no deadline."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def expired(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    def check(self) -> None:
        if self._cancelled.is_set():
            raise OperationCancelled()
        if self.expired():
            raise DeadlineExceeded()


def check(ctx: Optional[CallContext]) -> None:
    """Raise if ``ctx`` is cancelled or past its deadline; no-op for None."""
    if ctx is not None:
        ctx.check()
