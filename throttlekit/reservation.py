"""Reservations handed out by the rate limiters."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Optional

from throttlekit.clock import Clock, SystemClock


@dataclass
class Reservation:
    """A claim on capacity that becomes usable at ``time_to_act``."""

    ok: bool
    time_to_act: float
    tokens: int
    limit: float
    clock: Clock = field(default_factory=SystemClock, repr=False, compare=False)
    on_cancel: Optional[Callable[["Reservation"], None]] = field(
        default=None, repr=False, compare=False
    )

    def delay(self) -> float:
        """Seconds from now until the reservation may act; zero if not ok."""
        return self.delay_from(self.clock.now())

    def delay_from(self, now: float) -> float:
        """Seconds from ``now`` until the reservation may act; zero if not ok."""
        if not self.ok:
            return 0.0
        return max(0.0, self.time_to_act - now)

    def cancel(self) -> None:
        """Give the reserved capacity back to the limiter."""
        if not self.ok or self.on_cancel is None:
            return
        self.on_cancel(self)