"""Prometheus metrics for throttled acquisition."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

THROTTLE_DECISIONS_TOTAL = Counter(
    "ratebucket_decisions_total",
    "Acquire outcomes per limiter",
    ["limiter", "outcome"],
)
THROTTLE_WAIT_SECONDS = Histogram(
    "ratebucket_wait_seconds",
    "Time spent blocked waiting for tokens",
    ["limiter"],
    buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 30.0, float("inf")),
)
