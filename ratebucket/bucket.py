"""Token bucket with lazy, clock-driven replenishment."""

from __future__ import annotations

import logging
import math
from typing import NamedTuple

from ratebucket.clock import Clock, get_default_clock
from ratebucket.errors import InvalidConfiguration

logger = logging.getLogger(__name__)


class BucketState(NamedTuple):
    """Flat snapshot of a bucket, in the order accepted by :meth:`TokenBucket.restore`."""

    info_rate: float
    burst_size: float
    tokens: float
    last_check_time: float


class TokenBucket:
    """Rate limiter allowing ``info_rate`` items/s on average and bursts up to ``burst_size``.

    Tokens accrue lazily: every call reconciles the token count against the
    time elapsed since the previous call, so there is no background timer and
    memory use is constant regardless of traffic. A fresh bucket starts empty.

    Instances are not thread-safe; wrap them in
    :class:`ratebucket.throttle.SynchronizedBucket` when sharing across threads.
    """

    __slots__ = ("_info_rate", "_burst_size", "_tokens", "_last_check_time", "_clock")

    def __init__(
        self,
        info_rate: float,
        burst_size: float,
        *,
        clock: Clock | None = None,
    ) -> None:
        self._info_rate = _positive("info_rate", info_rate)
        self._burst_size = _positive("burst_size", burst_size)
        self._clock = clock if clock is not None else get_default_clock()
        self._tokens = 0.0
        self._last_check_time = float(self._clock())

    @classmethod
    def create(cls, info_rate: float, burst_size: float, *, clock: Clock | None = None) -> "TokenBucket":
        return cls(info_rate, burst_size, clock=clock)

    @classmethod
    def restore(
        cls,
        info_rate: float,
        burst_size: float,
        tokens: float,
        last_check_time: float,
        *,
        clock: Clock | None = None,
    ) -> "TokenBucket":
        """Rebuild a bucket from an exported :class:`BucketState`.

        ``last_check_time`` is taken literally, so time that passed between
        export and restore is credited on first use.
        """
        bucket = cls(info_rate, burst_size, clock=clock)
        bucket._tokens = min(max(_finite("tokens", tokens), 0.0), bucket._burst_size)
        bucket._last_check_time = _finite("last_check_time", last_check_time)
        return bucket

    @classmethod
    def from_state(cls, state: BucketState | tuple, *, clock: Clock | None = None) -> "TokenBucket":
        return cls.restore(*state, clock=clock)

    @property
    def info_rate(self) -> float:
        return self._info_rate

    @property
    def burst_size(self) -> float:
        return self._burst_size

    def conforms(self, n: float = 1.0) -> bool:
        """Return True if at least ``n`` tokens are available right now."""
        self._reconcile()
        return self._tokens >= n

    def consume(self, n: float = 1.0) -> None:
        """Remove ``n`` tokens, or all of them if fewer are available."""
        self._reconcile()
        if math.isnan(n):
            return
        self._tokens = min(max(self._tokens - n, 0.0), self._burst_size)

    def time_until(self, n: float = 1.0) -> float:
        """Seconds until ``n`` tokens are available, assuming no other consumption.

        For ``n`` above ``burst_size`` the result is a lower bound that is never
        reached, since tokens stop accruing at the burst ceiling.
        """
        self._reconcile()
        if math.isnan(n):
            return math.inf
        if self._tokens >= n:
            return 0.0
        return (n - self._tokens) / self._info_rate

    def export_state(self) -> BucketState:
        self._reconcile()
        return BucketState(self._info_rate, self._burst_size, self._tokens, self._last_check_time)

    def _reconcile(self) -> None:
        now = self._clock()
        elapsed = now - self._last_check_time
        if elapsed < 0:
            # Clock went backwards; keep the later baseline and accrue nothing.
            logger.debug(
                "Clock regressed by %.6f s; holding last check time at %.6f",
                -elapsed,
                self._last_check_time,
            )
            return
        self._tokens = min(self._tokens + elapsed * self._info_rate, self._burst_size)
        self._last_check_time = now

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(info_rate={self._info_rate!r}, burst_size={self._burst_size!r}, "
            f"tokens={self._tokens!r}, last_check_time={self._last_check_time!r})"
        )


def _positive(name: str, value: float) -> float:
    number = _finite(name, value)
    if number <= 0:
        raise InvalidConfiguration(f"{name} must be positive, got {value!r}")
    return number


def _finite(name: str, value: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise InvalidConfiguration(f"{name} must be a number, got {value!r}") from exc
    if not math.isfinite(number):
        raise InvalidConfiguration(f"{name} must be finite, got {value!r}")
    return number
