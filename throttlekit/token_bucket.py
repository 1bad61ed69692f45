"""Token bucket rate limiter that allows controlled bursts."""

from __future__ import annotations

import math
import threading
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional

from throttlekit.clock import INF, Clock, SystemClock
from throttlekit.errors import ValidationError, WaitCancelled
from throttlekit.reservation import Reservation


class _RateLimiter(ABC):
    """Shared machinery for time-based limiters that hold a fillable amount.

    Subclasses describe how much can be taken right now, how taking changes
    their state and how elapsed time (or a cancelled reservation) gives
    capacity back; this class does locking, reservations and waiting.
    """

    def __init__(self, rate: float, clock: Optional[Clock]) -> None:
        self._clock: Clock = clock if clock is not None else SystemClock()
        self._lock = threading.Lock()
        self._rate = float(rate)
        self._last = self._clock.now()

    @abstractmethod
    def _room(self) -> float:
        """Units that can be taken immediately."""

    @abstractmethod
    def _take(self, n: int) -> None:
        """Record that ``n`` units were taken (may overdraw)."""

    @abstractmethod
    def _replenish(self, amount: float) -> None:
        """Give back ``amount`` units, clamped to the limiter's bounds."""

    @abstractmethod
    def _saturate(self) -> None:
        """Set the state an infinite rate implies."""

    def _try_now(self, n: int) -> bool:
        return self._reserve(self._clock.now(), n, 0.0).ok

    def _block(
        self,
        n: int,
        timeout: Optional[float],
        cancel: Optional[threading.Event],
    ) -> None:
        if n <= 0:
            return
        if cancel is not None and cancel.is_set():
            raise WaitCancelled()
        if timeout is not None and timeout <= 0:
            raise TimeoutError("deadline exceeded")

        now = self._clock.now()
        reservation = self._reserve(now, n, math.inf)
        if not reservation.ok:
            raise TimeoutError("rate limited")

        delay = reservation.delay_from(now)
        if delay <= 0:
            if cancel is not None and cancel.is_set():
                reservation.cancel()
                raise WaitCancelled()
            return

        deadline_first = timeout is not None and timeout < delay
        pause = timeout if deadline_first else delay
        if cancel is not None:
            if cancel.wait(pause):
                reservation.cancel()
                raise WaitCancelled()
        else:
            time.sleep(pause)
        if deadline_first:
            reservation.cancel()
            raise TimeoutError("deadline exceeded")

    def _book(self, n: int) -> Reservation:
        return self._reserve(self._clock.now(), n, math.inf)

    def _rate_value(self) -> float:
        with self._lock:
            return self._rate

    def _change_rate(self, new_rate: float) -> None:
        with self._settled():
            self._rate = float(new_rate)

    @contextmanager
    def _settled(self) -> Iterator[None]:
        with self._lock:
            self._advance(self._clock.now())
            yield

    def _make(self, ok: bool, time_to_act: float, tokens: int) -> Reservation:
        return Reservation(
            ok=ok,
            time_to_act=time_to_act,
            tokens=tokens,
            limit=self._rate,
            clock=self._clock,
            on_cancel=self._give_back,
        )

    def _reserve(self, now: float, n: int, max_wait: float) -> Reservation:
        with self._lock:
            if n <= 0:
                return self._make(True, now, 0)
            if self._rate == INF:
                return self._make(True, now, n)

            self._advance(now)
            room = self._room()
            if n <= room:
                self._take(n)
                return self._make(True, now, n)

            if self._rate <= 0:
                return self._make(False, now, n)

            wait_time = (n - room) / self._rate
            if wait_time > max_wait:
                return self._make(False, now, n)

            self._take(n)
            return self._make(True, now + wait_time, n)

    def _advance(self, now: float) -> None:
        if self._rate == INF:
            self._saturate()
            self._last = now
            return
        if self._rate == 0:
            self._last = now
            return
        elapsed = now - self._last
        if elapsed <= 0:
            return
        self._replenish(elapsed * self._rate)
        self._last = now

    def _give_back(self, reservation: Reservation) -> None:
        if not reservation.ok:
            return
        with self._settled():
            self._replenish(reservation.tokens)


@dataclass
class TokenBucketConfig:
    """Settings for a :class:`TokenBucket`.

    ``initial_tokens`` of ``None`` or a negative number starts the bucket full.
    """

    rate: float
    burst: int
    clock: Optional[Clock] = None
    initial_tokens: Optional[int] = None


def _check_burst(burst: int) -> None:
    if burst <= 0:
        raise ValidationError(
            "bucket",
            "burst",
            burst,
            "burst must be positive",
            "burst determines how many tokens can be consumed instantly",
        )


class TokenBucket(_RateLimiter):
    """Token bucket limiter: ``rate`` tokens per second, up to ``burst`` stored."""

    def __init__(
        self,
        rate: float,
        burst: int,
        *,
        clock: Optional[Clock] = None,
        initial_tokens: Optional[int] = None,
    ) -> None:
        if not rate >= 0:
            raise ValidationError("bucket", "rate", rate, "rate must not be negative")
        _check_burst(burst)
        self._burst = burst
        if initial_tokens is None or initial_tokens < 0:
            self._tokens = float(burst)
        else:
            self._tokens = float(initial_tokens)
        super().__init__(rate, clock)

    @classmethod
    def from_config(cls, config: TokenBucketConfig) -> "TokenBucket":
        """Build a limiter from a :class:`TokenBucketConfig`."""
        return cls(
            config.rate,
            config.burst,
            clock=config.clock,
            initial_tokens=config.initial_tokens,
        )

    def allow(self, n: int = 1) -> bool:
        """Take ``n`` tokens now if possible; never blocks."""
        return self._try_now(n)

    def wait(
        self,
        n: int = 1,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        """Block until ``n`` tokens can be used.

        Raises :class:`TimeoutError` if ``timeout`` seconds pass first or the
        request can never be met, and :class:`WaitCancelled` if ``cancel`` is set.
        """
        self._block(n, timeout, cancel)

    def reserve(self, n: int = 1) -> Reservation:
        """Reserve ``n`` tokens, borrowing from the future if needed."""
        return self._book(n)

    @property
    def limit(self) -> float:
        """Tokens added per second."""
        return self._rate_value()

    @limit.setter
    def limit(self, new_limit: float) -> None:
        self._change_rate(new_limit)

    @property
    def burst(self) -> int:
        """Maximum number of stored tokens."""
        with self._lock:
            return self._burst

    @burst.setter
    def burst(self, new_burst: int) -> None:
        _check_burst(new_burst)
        with self._settled():
            self._burst = new_burst
            self._tokens = min(self._tokens, float(new_burst))

    @property
    def tokens(self) -> float:
        """Tokens available now; negative while reservations are outstanding."""
        with self._settled():
            return self._tokens

    def _room(self) -> float:
        return self._tokens

    def _take(self, n: int) -> None:
        self._tokens -= n

    def _replenish(self, amount: float) -> None:
        self._tokens = min(self._tokens + amount, float(self._burst))

    def _saturate(self) -> None:
        self._tokens = float(self._burst)