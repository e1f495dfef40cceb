"""Bucket configuration parsed from strings and environment variables."""

from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass
from typing import Callable

from ratebucket.bucket import TokenBucket
from ratebucket.clock import Clock
from ratebucket.errors import InvalidConfiguration

logger = logging.getLogger(__name__)

_UNIT_SECONDS = {
    "s": 1.0,
    "sec": 1.0,
    "m": 60.0,
    "min": 60.0,
    "h": 3600.0,
    "hour": 3600.0,
    "d": 86400.0,
    "day": 86400.0,
}

DEFAULT_INFO_RATE = 1.0
DEFAULT_BURST_SIZE = 1.0


def parse_rate(text: str | float) -> float:
    """Parse a rate in items per second.

    Accepts plain numbers (``"25"``), fractions (``"100/3600"``) and unit
    suffixes (``"100/h"``, ``"2/min"``).
    """
    if isinstance(text, (int, float)) and not isinstance(text, bool):
        return float(text)
    raw = str(text).strip()
    numerator, sep, denominator = raw.partition("/")
    try:
        value = float(numerator)
        if sep:
            unit = denominator.strip().lower()
            divisor = _UNIT_SECONDS[unit] if unit in _UNIT_SECONDS else float(unit)
            value /= divisor
    except (ValueError, ZeroDivisionError) as exc:
        raise InvalidConfiguration(f"Cannot parse rate {text!r}") from exc
    if not math.isfinite(value):
        raise InvalidConfiguration(f"Rate must be finite, got {text!r}")
    return value


@dataclass(frozen=True)
class BucketConfig:
    """Rate and burst for one bucket."""

    info_rate: float
    burst_size: float

    def __post_init__(self) -> None:
        if self.info_rate <= 0:
            raise InvalidConfiguration("info_rate must be positive")
        if self.burst_size <= 0:
            raise InvalidConfiguration("burst_size must be positive")

    def build(self, clock: Clock | None = None) -> TokenBucket:
        return TokenBucket(self.info_rate, self.burst_size, clock=clock)


def bucket_config_from_env(
    prefix: str = "RATEBUCKET",
    *,
    default_rate: float = DEFAULT_INFO_RATE,
    default_burst: float = DEFAULT_BURST_SIZE,
) -> BucketConfig:
    """Read ``<PREFIX>_INFO_RATE`` and ``<PREFIX>_BURST_SIZE``."""
    info_rate = _env_value(f"{prefix}_INFO_RATE", default_rate, parse_rate)
    burst_size = _env_value(f"{prefix}_BURST_SIZE", default_burst, float)
    return BucketConfig(info_rate=info_rate, burst_size=burst_size)


def _env_value(name: str, default: float, parser: Callable[[str], float]) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = parser(raw)
    except (InvalidConfiguration, ValueError):
        logger.warning("Ignoring unparsable %s=%r; using %s.", name, raw, default)
        return default
    if value <= 0:
        logger.warning("Ignoring non-positive %s=%r; using %s.", name, raw, default)
        return default
    return value
