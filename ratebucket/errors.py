"""Exception types raised by ratebucket."""

from __future__ import annotations


class RateBucketError(Exception):
    """Base class for all ratebucket errors."""


class InvalidConfiguration(RateBucketError, ValueError):
    """Raised when a rate, burst size or clock speed is unusable."""


class StateDecodeError(RateBucketError, ValueError):
    """Raised when persisted bucket state cannot be decoded."""


class ThrottleTimeout(RateBucketError, TimeoutError):
    """Raised when a blocking acquire does not conform before its deadline."""
