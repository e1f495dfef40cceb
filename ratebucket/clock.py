"""Clock sources consumed by token buckets."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable

from ratebucket.errors import InvalidConfiguration

Clock = Callable[[], float]


def wall_clock() -> float:
    """Highest-resolution wall clock, in seconds since the epoch.

    Wall time (rather than ``time.monotonic``) keeps exported state meaningful
    after a process restart.
    """
    return time.time()


_default_clock: Clock = wall_clock


def get_default_clock() -> Clock:
    return _default_clock


def set_default_clock(clock: Clock | None) -> Clock:
    """Install a process-wide clock; ``None`` restores :func:`wall_clock`.

    Returns the previously installed clock so callers can restore it.
    """
    global _default_clock
    previous = _default_clock
    _default_clock = clock if clock is not None else wall_clock
    return previous


@dataclass
class ManualClock:
    """Deterministic clock that only moves when told to."""

    start: float = 0.0
    _now: float = field(init=False)

    def __post_init__(self) -> None:
        self._now = float(self.start)

    def __call__(self) -> float:
        return self._now

    def now(self) -> float:
        return self._now

    def advance(self, seconds: float) -> float:
        self._now += seconds
        return self._now

    def set(self, timestamp: float) -> None:
        self._now = float(timestamp)

    def sleep(self, seconds: float) -> None:
        """Drop-in for ``time.sleep`` that advances the clock instead of blocking."""
        self.advance(max(0.0, seconds))


@dataclass
class ScaledClock:
    """Clock running ``speed`` times faster than its base from creation onwards."""

    speed: float = 1.0  # 1.0 = real-time; >1 faster in simulations
    base: Clock = wall_clock
    _origin: float = field(init=False)

    def __post_init__(self) -> None:
        if self.speed <= 0:
            raise InvalidConfiguration("speed must be positive")
        self._origin = self.base()

    def __call__(self) -> float:
        return self.now()

    def now(self) -> float:
        return self._origin + (self.base() - self._origin) * self.speed
