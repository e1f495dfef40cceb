"""Helpers layered over :class:`TokenBucket`: combining, locking and blocking."""

from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Protocol, Sequence

from ratebucket.bucket import BucketState
from ratebucket.clock import Clock, get_default_clock
from ratebucket.errors import InvalidConfiguration, ThrottleTimeout
from ratebucket.metrics import THROTTLE_DECISIONS_TOTAL, THROTTLE_WAIT_SECONDS

logger = logging.getLogger(__name__)

_MIN_SLEEP_SECONDS = 0.001


class Limiter(Protocol):
    """Anything that answers the token bucket questions."""

    @property
    def burst_size(self) -> float: ...

    def conforms(self, n: float = 1.0) -> bool: ...

    def consume(self, n: float = 1.0) -> None: ...

    def time_until(self, n: float = 1.0) -> float: ...


class BucketGroup:
    """AND-combination of limiters: items pass only when every member allows them.

    Typical use is pairing a tight short-term bucket with a looser long-term
    one, e.g. 2 mails per minute but no more than 20 per hour.
    """

    def __init__(self, *buckets: Limiter) -> None:
        if not buckets:
            raise InvalidConfiguration("BucketGroup needs at least one bucket")
        self._buckets: tuple[Limiter, ...] = tuple(buckets)

    @property
    def buckets(self) -> Sequence[Limiter]:
        return self._buckets

    @property
    def burst_size(self) -> float:
        return min(bucket.burst_size for bucket in self._buckets)

    def conforms(self, n: float = 1.0) -> bool:
        # Evaluate every member so each one reconciles on the same call.
        results = [bucket.conforms(n) for bucket in self._buckets]
        return all(results)

    def consume(self, n: float = 1.0) -> None:
        for bucket in self._buckets:
            bucket.consume(n)

    def time_until(self, n: float = 1.0) -> float:
        return max(bucket.time_until(n) for bucket in self._buckets)


class AnyBucketGroup:
    """OR-combination of limiters: items pass when any single member allows them.

    Consumption is charged to the first member that conforms. When none does,
    every member is drained, matching a plain bucket's force-drain behaviour.
    """

    def __init__(self, *buckets: Limiter) -> None:
        if not buckets:
            raise InvalidConfiguration("AnyBucketGroup needs at least one bucket")
        self._buckets: tuple[Limiter, ...] = tuple(buckets)

    @property
    def buckets(self) -> Sequence[Limiter]:
        return self._buckets

    @property
    def burst_size(self) -> float:
        return max(bucket.burst_size for bucket in self._buckets)

    def conforms(self, n: float = 1.0) -> bool:
        results = [bucket.conforms(n) for bucket in self._buckets]
        return any(results)

    def consume(self, n: float = 1.0) -> None:
        for bucket in self._buckets:
            if bucket.conforms(n):
                bucket.consume(n)
                return
        for bucket in self._buckets:
            bucket.consume(n)

    def time_until(self, n: float = 1.0) -> float:
        return min(bucket.time_until(n) for bucket in self._buckets)


class SynchronizedBucket:
    """Serializes access to a limiter shared between threads."""

    def __init__(self, bucket: Limiter) -> None:
        self._bucket = bucket
        self._lock = threading.Lock()

    @property
    def burst_size(self) -> float:
        return self._bucket.burst_size

    def conforms(self, n: float = 1.0) -> bool:
        with self._lock:
            return self._bucket.conforms(n)

    def consume(self, n: float = 1.0) -> None:
        with self._lock:
            self._bucket.consume(n)

    def time_until(self, n: float = 1.0) -> float:
        with self._lock:
            return self._bucket.time_until(n)

    def try_consume(self, n: float = 1.0) -> bool:
        """Consume ``n`` tokens only if they are all available; atomic."""
        with self._lock:
            if not self._bucket.conforms(n):
                return False
            self._bucket.consume(n)
            return True

    def export_state(self) -> BucketState:
        with self._lock:
            return self._bucket.export_state()  # type: ignore[attr-defined]


@dataclass
class Throttle:
    """Blocks callers until a limiter admits them, recording the outcome."""

    limiter: Limiter
    name: str = "default"
    sleep: Callable[[float], None] = time.sleep
    clock: Clock | None = None
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.clock is None:
            self.clock = get_default_clock()

    def acquire(self, n: float = 1.0, *, block: bool = True, timeout: float | None = None) -> bool:
        """Take ``n`` tokens, sleeping until they accrue when ``block`` is set.

        Returns False only for non-blocking calls that could not proceed.
        Raises :class:`InvalidConfiguration` for a NaN request and
        :class:`ThrottleTimeout` when ``timeout`` expires or when ``n``
        exceeds the burst size, which can never conform.
        """
        if math.isnan(n):
            raise InvalidConfiguration(f"{self.name}: cannot acquire {n!r} tokens")
        if n > self.limiter.burst_size:
            THROTTLE_DECISIONS_TOTAL.labels(limiter=self.name, outcome="rejected").inc()
            if not block:
                return False
            raise ThrottleTimeout(
                f"{self.name}: request for {n} tokens exceeds burst size {self.limiter.burst_size}"
            )

        assert self.clock is not None
        started = self.clock()
        deadline = None if timeout is None else started + timeout
        while True:
            if self._take(n):
                THROTTLE_DECISIONS_TOTAL.labels(limiter=self.name, outcome="granted").inc()
                THROTTLE_WAIT_SECONDS.labels(limiter=self.name).observe(max(self.clock() - started, 0.0))
                return True
            if not block:
                THROTTLE_DECISIONS_TOTAL.labels(limiter=self.name, outcome="rejected").inc()
                return False
            wait = self.limiter.time_until(n)
            if deadline is not None:
                remaining = deadline - self.clock()
                if remaining <= 0:
                    THROTTLE_DECISIONS_TOTAL.labels(limiter=self.name, outcome="timeout").inc()
                    logger.warning(
                        "Throttle %s timed out after %.3f s waiting for %s tokens.",
                        self.name,
                        self.clock() - started,
                        n,
                    )
                    raise ThrottleTimeout(f"{self.name}: no {n} tokens within {timeout} s")
                wait = min(wait, remaining)
            self.sleep(max(wait, _MIN_SLEEP_SECONDS))

    def _take(self, n: float) -> bool:
        with self._lock:
            if not self.limiter.conforms(n):
                return False
            self.limiter.consume(n)
            return True
