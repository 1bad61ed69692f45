"""Concurrency limiter: a semaphore with batch permits and inspectable state.

A rate limiter bounds how many operations happen per unit of time.  A
concurrency limiter bounds how many run at the same time.  Permits are taken
with :meth:`ConcurrencyLimiter.acquire` (non-blocking) or
:meth:`ConcurrencyLimiter.wait` (blocking, with optional timeout and cancel
event) and handed back with :meth:`ConcurrencyLimiter.release`.  The capacity
can be changed while the limiter is in use.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Optional

from throttlekit.errors import ValidationError, WaitCancelled

_POLL_INTERVAL = 0.005


@dataclass
class ConcurrencyConfig:
    """Settings for a :class:`ConcurrencyLimiter`.

    ``initial_available`` of ``None``, a negative number or a number above
    ``capacity`` starts with every permit available; otherwise the difference
    is counted as already in use.
    """

    capacity: int
    initial_available: Optional[int] = None


@dataclass
class _Waiter:
    n: int
    ready: threading.Event
    cancel: Optional[threading.Event]
    deadline: Optional[float]

    def abandoned(self, now: float) -> bool:
        if self.cancel is not None and self.cancel.is_set():
            return True
        return self.deadline is not None and now >= self.deadline


class ConcurrencyLimiter:
    """Limits the number of operations running at once to ``capacity``."""

    def __init__(self, capacity: int, *, initial_available: Optional[int] = None) -> None:
        if capacity <= 0:
            raise ValidationError(
                "concurrency",
                "capacity",
                capacity,
                "capacity must be positive",
                "capacity determines how many concurrent operations are allowed",
            )
        if initial_available is None or initial_available < 0 or initial_available > capacity:
            initial_available = capacity
        self._lock = threading.Lock()
        self._capacity = capacity
        self._available = initial_available
        self._in_use = capacity - initial_available
        self._waiters: list[_Waiter] = []

    @classmethod
    def from_config(cls, config: ConcurrencyConfig) -> "ConcurrencyLimiter":
        """Build a limiter from a :class:`ConcurrencyConfig`."""
        return cls(config.capacity, initial_available=config.initial_available)

    def acquire(self, n: int = 1) -> bool:
        """Take ``n`` permits if they are all available now; never blocks."""
        if n <= 0:
            return True
        with self._lock:
            if self._available >= n:
                self._take(n)
                return True
            return False

    def wait(
        self,
        n: int = 1,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        """Block until ``n`` permits have been taken.

        Raises :class:`TimeoutError` if ``timeout`` seconds pass first and
        :class:`WaitCancelled` if ``cancel`` is set first.
        """
        if n <= 0:
            return
        if cancel is not None and cancel.is_set():
            raise WaitCancelled()
        if timeout is not None and timeout <= 0:
            raise TimeoutError("deadline exceeded")

        deadline = None if timeout is None else time.monotonic() + timeout
        with self._lock:
            if self._available >= n:
                self._take(n)
                return
            waiter = _Waiter(n, threading.Event(), cancel, deadline)
            self._waiters.append(waiter)

        cancelled = self._block(waiter)

        with self._lock:
            if waiter.ready.is_set():
                # Permits were granted just as the wait gave up; keep them.
                return
            if waiter in self._waiters:
                self._waiters.remove(waiter)
        if cancelled:
            raise WaitCancelled()
        raise TimeoutError("deadline exceeded")

    def release(self, n: int = 1) -> None:
        """Hand ``n`` permits back and wake waiters that can now proceed.

        Raises :class:`ValueError` if more permits are released than are in use.
        """
        if n <= 0:
            return
        with self._lock:
            if self._in_use < n:
                raise ValueError("released more permits than acquired")
            self._available += n
            self._in_use -= n
            self._notify()

    @property
    def capacity(self) -> int:
        """Maximum number of operations allowed at once."""
        with self._lock:
            return self._capacity

    @capacity.setter
    def capacity(self, new_capacity: int) -> None:
        if new_capacity <= 0:
            raise ValidationError(
                "concurrency", "capacity", new_capacity, "capacity must be positive"
            )
        with self._lock:
            old_capacity = self._capacity
            self._capacity = new_capacity
            if new_capacity > old_capacity:
                self._available += new_capacity - old_capacity
                self._notify()
            elif new_capacity < old_capacity:
                # Permits already in use stay in use; availability cannot go negative.
                self._available = max(0, self._available - (old_capacity - new_capacity))

    @property
    def available(self) -> int:
        """Permits that can be taken right now."""
        with self._lock:
            return self._available

    @property
    def in_use(self) -> int:
        """Permits currently held."""
        with self._lock:
            return self._in_use

    def _take(self, n: int) -> None:
        self._available -= n
        self._in_use += n

    def _notify(self) -> None:
        now = time.monotonic()
        remaining: list[_Waiter] = []
        for waiter in self._waiters:
            if waiter.abandoned(now):
                continue
            if self._available >= waiter.n:
                self._take(waiter.n)
                waiter.ready.set()
            else:
                remaining.append(waiter)
        self._waiters = remaining

    @staticmethod
    def _block(waiter: _Waiter) -> bool:
        """Wait for a grant; return True if the wait ended by cancellation."""
        while True:
            remaining = None
            if waiter.deadline is not None:
                remaining = waiter.deadline - time.monotonic()
                if remaining <= 0:
                    return False
            if waiter.cancel is not None:
                pause = _POLL_INTERVAL if remaining is None else min(_POLL_INTERVAL, remaining)
            else:
                pause = remaining
            if waiter.ready.wait(pause):
                return False
            if waiter.cancel is not None and waiter.cancel.is_set():
                return True