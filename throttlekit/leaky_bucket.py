"""Leaky bucket rate limiter that enforces a smooth, constant output rate.

Unlike a token bucket, which starts full and allows an immediate burst, a
leaky bucket starts empty.  Requests fill it, and it drains ("leaks") at a
fixed rate.  Requests are accepted while there is room left.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Optional

from throttlekit.clock import Clock
from throttlekit.errors import ValidationError
from throttlekit.reservation import Reservation
from throttlekit.token_bucket import _RateLimiter


@dataclass
class LeakyBucketConfig:
    """Settings for a :class:`LeakyBucket`.

    ``initial_level`` of ``None`` or a negative number starts the bucket empty;
    a level above ``capacity`` is clamped to it.
    """

    leak_rate: float
    capacity: int
    clock: Optional[Clock] = None
    initial_level: Optional[int] = None


def _check_capacity(capacity: int) -> None:
    if capacity <= 0:
        raise ValidationError(
            "leakybucket",
            "capacity",
            capacity,
            "capacity must be positive",
            "capacity determines how many requests can be queued",
        )


class LeakyBucket(_RateLimiter):
    """Leaky bucket limiter: drains ``leak_rate`` requests per second, holds ``capacity``."""

    def __init__(
        self,
        leak_rate: float,
        capacity: int,
        *,
        clock: Optional[Clock] = None,
        initial_level: Optional[int] = None,
    ) -> None:
        if not leak_rate >= 0:
            raise ValidationError(
                "leakybucket",
                "leakRate",
                leak_rate,
                "leak rate must not be negative",
                "leak rate determines how fast requests are processed",
            )
        _check_capacity(capacity)
        self._capacity = capacity
        start = 0.0 if initial_level is None or initial_level < 0 else float(initial_level)
        self._level = min(start, float(capacity))
        super().__init__(leak_rate, clock)

    @classmethod
    def from_config(cls, config: LeakyBucketConfig) -> "LeakyBucket":
        """Build a limiter from a :class:`LeakyBucketConfig`."""
        return cls(
            config.leak_rate,
            config.capacity,
            clock=config.clock,
            initial_level=config.initial_level,
        )

    def allow(self, n: int = 1) -> bool:
        """Admit ``n`` requests now if there is room; never blocks."""
        return self._try_now(n)

    def wait(
        self,
        n: int = 1,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        """Block until ``n`` requests can be admitted.

        Raises :class:`TimeoutError` if ``timeout`` seconds pass first or the
        request can never be met, and :class:`WaitCancelled` if ``cancel`` is set.
        """
        self._block(n, timeout, cancel)

    def reserve(self, n: int = 1) -> Reservation:
        """Reserve room for ``n`` requests, letting the level exceed capacity."""
        return self._book(n)

    @property
    def leak_rate(self) -> float:
        """Requests drained per second."""
        return self._rate_value()

    @leak_rate.setter
    def leak_rate(self, new_rate: float) -> None:
        self._change_rate(new_rate)

    @property
    def capacity(self) -> int:
        """Maximum number of requests the bucket holds."""
        with self._lock:
            return self._capacity

    @capacity.setter
    def capacity(self, new_capacity: int) -> None:
        _check_capacity(new_capacity)
        with self._settled():
            self._capacity = new_capacity
            self._level = min(self._level, float(new_capacity))

    @property
    def level(self) -> float:
        """Current fill level; may exceed capacity while reservations are pending."""
        with self._settled():
            return self._level

    @property
    def available(self) -> float:
        """Room left in the bucket."""
        with self._settled():
            return float(self._capacity) - self._level

    def _room(self) -> float:
        return float(self._capacity) - self._level

    def _take(self, n: int) -> None:
        self._level += n

    def _replenish(self, amount: float) -> None:
        self._level = max(0.0, self._level - amount)

    def _saturate(self) -> None:
        self._level = 0.0