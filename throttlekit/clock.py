"""Time sources and rate helpers."""

from __future__ import annotations

import math
import time
from datetime import timedelta
from typing import Protocol, runtime_checkable

INF = math.inf
"""The infinite rate: every event is allowed."""


@runtime_checkable
class Clock(Protocol):
    """A source of the current time, in seconds."""

    def now(self) -> float:
        """Return the current time in seconds."""


class SystemClock:
    """Clock backed by the monotonic system timer."""

    def now(self) -> float:
        return time.monotonic()


def every(interval: float | timedelta) -> float:
    """Convert a minimum interval between events into a rate per second."""
    if isinstance(interval, timedelta):
        interval = interval.total_seconds()
    if interval <= 0:
        return INF
    return 1.0 / interval