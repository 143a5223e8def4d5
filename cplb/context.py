from __future__ import annotations

import time
from threading import Event

from .errors import Cancelled


class Context:
    """Deadline and cancellation carried through every operation.

    Adapters read ``timeout()`` to bound their own I/O; the orchestrator
    calls ``check()`` before each adapter call.
    """

    def __init__(self, deadline: float | None = None) -> None:
        self.deadline = deadline  # time.monotonic() value
        self._cancel = Event()

    @classmethod
    def background(cls) -> "Context":
        return cls()

    @classmethod
    def with_timeout(cls, seconds: float) -> "Context":
        return cls(deadline=time.monotonic() + max(0.0, float(seconds)))

    def cancel(self) -> None:
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    @property
    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    @property
    def done(self) -> bool:
        return self.cancelled or self.expired

    def remaining(self) -> float | None:
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def timeout(self, default: float) -> float:
        """Seconds an adapter call may take: the smaller of default and time left."""
        left = self.remaining()
        if left is None:
            return default
        return min(default, left)

    def check(self, operation: str) -> None:
        if self.done:
            raise Cancelled(operation)
