"""Storing and reloading bucket state as JSON."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Mapping

import orjson

from ratebucket.bucket import BucketState, TokenBucket
from ratebucket.clock import Clock
from ratebucket.errors import InvalidConfiguration, StateDecodeError

logger = logging.getLogger(__name__)

STATE_VERSION = 1
_FIELDS = BucketState._fields


def state_to_dict(state: BucketState | tuple) -> dict[str, Any]:
    if len(state) != len(_FIELDS):
        raise StateDecodeError(f"Expected {len(_FIELDS)} state fields, got {len(state)}")
    payload: dict[str, Any] = dict(zip(_FIELDS, (float(value) for value in state)))
    payload["version"] = STATE_VERSION
    return payload


def state_from_dict(payload: Mapping[str, Any]) -> BucketState:
    version = payload.get("version", STATE_VERSION)
    if version != STATE_VERSION:
        raise StateDecodeError(f"Unsupported state version {version!r}")
    values: list[float] = []
    for name in _FIELDS:
        if name not in payload:
            raise StateDecodeError(f"State is missing field {name!r}")
        value = payload[name]
        # bool is an int subclass but never a valid state value.
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise StateDecodeError(f"State field {name!r} must be numeric, got {value!r}")
        values.append(float(value))
    return BucketState(*values)


def dumps_state(state: BucketState | tuple) -> bytes:
    return orjson.dumps(state_to_dict(state))


def loads_state(payload: bytes | str) -> BucketState:
    """Decode bytes produced by :func:`dumps_state`."""
    try:
        decoded = orjson.loads(payload)
    except orjson.JSONDecodeError as exc:
        raise StateDecodeError(f"State is not valid JSON: {exc}") from exc
    if not isinstance(decoded, dict):
        raise StateDecodeError(f"State must be a JSON object, got {type(decoded).__name__}")
    return state_from_dict(decoded)


def save_bucket(bucket: TokenBucket, path: Path | str) -> Path:
    """Write the bucket's current state to ``path``, replacing it atomically."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f".{path.name}.tmp")
    tmp_path.write_bytes(dumps_state(bucket.export_state()))
    os.replace(tmp_path, path)
    return path


def load_bucket(path: Path | str, *, clock: Clock | None = None) -> TokenBucket:
    path = Path(path)
    try:
        state = loads_state(path.read_bytes())
        return TokenBucket.from_state(state, clock=clock)
    except StateDecodeError as exc:
        logger.error("Failed to decode bucket state from %s: %s", path, exc)
        raise
    except InvalidConfiguration as exc:
        logger.error("Failed to decode bucket state from %s: %s", path, exc)
        raise StateDecodeError(f"Stored state in {path} is out of range: {exc}") from exc
