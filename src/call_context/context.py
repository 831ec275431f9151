"""
Call Context Module

Carries caller cancellation and deadlines through every blocking call to a
key backend or resource store.
"""

import threading
import time
from typing import Optional, Type


class ContextDone(Exception):
    """The context was canceled or its deadline passed."""

    def __init__(self, operation: str, reason: str = "context canceled"):
        self.operation = operation
        self.reason = reason
        super().__init__(f"{operation}: {reason}")


class CallContext:
    """Cancellation signal plus an optional absolute deadline (monotonic clock)."""

    def __init__(self, deadline: Optional[float] = None):
        self.deadline = deadline
        self._canceled = threading.Event()

    @classmethod
    def background(cls) -> "CallContext":
        """A context that is never canceled and has no deadline."""
        return cls()

    @classmethod
    def with_timeout(cls, seconds: float) -> "CallContext":
        """A context whose deadline is ``seconds`` from now."""
        return cls(deadline=time.monotonic() + seconds)

    def cancel(self) -> None:
        self._canceled.set()

    @property
    def canceled(self) -> bool:
        return self._canceled.is_set()

    @property
    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    def done(self) -> bool:
        return self.canceled or self.expired

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or None when there is no deadline."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def check(self, operation: str, error: Type[ContextDone] = ContextDone) -> None:
        """
        Raise ``error`` if the context is no longer live.

        Args:
            operation: Name of the operation, used in the error message
            error: ContextDone subclass to raise, so each caller reports
                cancellation in its own error hierarchy
        """
        if self.canceled:
            raise error(operation)
        if self.expired:
            raise error(operation, "deadline exceeded")


def ensure_context(ctx: Optional[CallContext]) -> CallContext:
    return ctx if ctx is not None else CallContext.background()
