from __future__ import annotations

import logging

import pytest

from ratebucket.clock import ManualClock
from ratebucket.config import BucketConfig, bucket_config_from_env, parse_rate
from ratebucket.errors import InvalidConfiguration


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("25", 25.0),
        ("0.5", 0.5),
        (" 100/3600 ", 100 / 3600),
        ("100/h", 100 / 3600),
        ("2/min", 2 / 60),
        ("7/s", 7.0),
        ("86400/d", 1.0),
        (3, 3.0),
    ],
)
def test_parse_rate(text, expected) -> None:
    assert parse_rate(text) == pytest.approx(expected)


@pytest.mark.parametrize("text", ["", "fast", "1/0", "1/fortnight", "nan", "inf/s"])
def test_parse_rate_rejects_garbage(text) -> None:
    with pytest.raises(InvalidConfiguration):
        parse_rate(text)


def test_bucket_config_validates_and_builds() -> None:
    with pytest.raises(InvalidConfiguration):
        BucketConfig(info_rate=0, burst_size=1)
    with pytest.raises(InvalidConfiguration):
        BucketConfig(info_rate=1, burst_size=-1)

    bucket = BucketConfig(info_rate=5, burst_size=2).build(clock=ManualClock())
    assert (bucket.info_rate, bucket.burst_size) == (5, 2)


def test_bucket_config_from_env(monkeypatch) -> None:
    monkeypatch.setenv("MAILER_INFO_RATE", "20/h")
    monkeypatch.setenv("MAILER_BURST_SIZE", "10")
    config = bucket_config_from_env("MAILER")
    assert config.info_rate == pytest.approx(20 / 3600)
    assert config.burst_size == 10


def test_bucket_config_from_env_defaults(monkeypatch) -> None:
    monkeypatch.delenv("RATEBUCKET_INFO_RATE", raising=False)
    monkeypatch.delenv("RATEBUCKET_BURST_SIZE", raising=False)
    config = bucket_config_from_env(default_rate=3, default_burst=6)
    assert config == BucketConfig(info_rate=3, burst_size=6)


def test_bucket_config_from_env_ignores_bad_values(monkeypatch, caplog) -> None:
    monkeypatch.setenv("RATEBUCKET_INFO_RATE", "lots")
    monkeypatch.setenv("RATEBUCKET_BURST_SIZE", "-4")
    with caplog.at_level(logging.WARNING, logger="ratebucket.config"):
        config = bucket_config_from_env(default_rate=2, default_burst=8)
    assert config == BucketConfig(info_rate=2, burst_size=8)
    assert "RATEBUCKET_INFO_RATE" in caplog.text
    assert "RATEBUCKET_BURST_SIZE" in caplog.text
