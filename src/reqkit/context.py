"""Cancellation and deadline context for a dispatch attempt."""

from __future__ import annotations

import threading
import time
from typing import Callable

from .exceptions import ContextCancelled, DeadlineExceeded


class Context:
    """Thread-safe cancellation token with an optional deadline.

    A context is handed to ``Client.dispatch`` (or set on ``Request.context``).
    Cancelling it from any thread aborts the attempt that is waiting on it;
    once past its deadline it behaves as if it had been cancelled with a
    timeout.

    Example:
        >>> ctx = Context.with_timeout(2.5)
        >>> client.dispatch(request, context=ctx)
        >>> # from another thread
        >>> ctx.cancel()
    """

    def __init__(self, deadline: float | None = None) -> None:
        self.deadline = deadline
        self._cancelled = False
        self._lock = threading.Lock()
        self._callbacks: list[Callable[[], None]] = []

    @classmethod
    def with_timeout(cls, seconds: float) -> "Context":
        return cls(deadline=time.monotonic() + seconds)

    def cancel(self) -> None:
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            callbacks = list(self._callbacks)
        for callback in callbacks:
            callback()

    def cancelled(self) -> bool:
        with self._lock:
            return self._cancelled

    def remaining(self) -> float | None:
        """Seconds left before the deadline, ``None`` without a deadline."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def done(self) -> bool:
        remaining = self.remaining()
        return self.cancelled() or (remaining is not None and remaining <= 0)

    def err(self) -> Exception | None:
        """The reason this context is done, or ``None`` while it is live."""
        if self.cancelled():
            return ContextCancelled("context canceled")
        remaining = self.remaining()
        if remaining is not None and remaining <= 0:
            return DeadlineExceeded("context deadline exceeded")
        return None

    def add_cancel_callback(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if not self._cancelled:
                self._callbacks.append(callback)
                return
        callback()

    def remove_cancel_callback(self, callback: Callable[[], None]) -> None:
        with self._lock:
            try:
                self._callbacks.remove(callback)
            except ValueError:
                pass
