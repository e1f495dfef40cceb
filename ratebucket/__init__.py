"""Token bucket rate limiting."""

from __future__ import annotations

from .bucket import BucketState, TokenBucket
from .clock import ManualClock, ScaledClock, get_default_clock, set_default_clock, wall_clock
from .config import BucketConfig, bucket_config_from_env, parse_rate
from .errors import InvalidConfiguration, RateBucketError, StateDecodeError, ThrottleTimeout
from .persistence import dumps_state, load_bucket, loads_state, save_bucket
from .throttle import AnyBucketGroup, BucketGroup, SynchronizedBucket, Throttle

__all__ = [
    "AnyBucketGroup",
    "BucketConfig",
    "BucketGroup",
    "BucketState",
    "InvalidConfiguration",
    "ManualClock",
    "RateBucketError",
    "ScaledClock",
    "StateDecodeError",
    "SynchronizedBucket",
    "Throttle",
    "ThrottleTimeout",
    "TokenBucket",
    "bucket_config_from_env",
    "dumps_state",
    "get_default_clock",
    "load_bucket",
    "loads_state",
    "parse_rate",
    "save_bucket",
    "set_default_clock",
    "wall_clock",
]
