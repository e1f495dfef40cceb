from __future__ import annotations

import logging
from pathlib import Path

import pytest

import ratebucket.cli as cli
from ratebucket.bucket import TokenBucket
from ratebucket.clock import ManualClock
from ratebucket.errors import InvalidConfiguration
from ratebucket.persistence import load_bucket, save_bucket


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    monkeypatch.delenv("RATEBUCKET_INFO_RATE", raising=False)
    monkeypatch.delenv("RATEBUCKET_BURST_SIZE", raising=False)


def test_run_simulation_paces_to_rate() -> None:
    clock = ManualClock()
    bucket = TokenBucket(25, 4, clock=clock)
    passed = cli.run_simulation(bucket, 2.0, clock=clock, sleep_func=clock.sleep)
    assert 49 <= passed <= 54
    assert clock() >= 2.0


def test_run_simulation_rejects_impossible_batch() -> None:
    clock = ManualClock()
    with pytest.raises(InvalidConfiguration):
        cli.run_simulation(TokenBucket(1, 2, clock=clock), 1.0, batch=3, clock=clock, sleep_func=clock.sleep)


def test_wait_prints_time_until(capsys) -> None:
    assert cli.main(["wait", "--rate", "25", "--burst", "4", "2"]) == 0
    assert float(capsys.readouterr().out) == pytest.approx(0.08, abs=1e-3)


def test_wait_with_tokens_already_available(capsys) -> None:
    assert cli.main(["wait", "--rate", "100/h", "--burst", "5", "--tokens", "3", "2"]) == 0
    assert float(capsys.readouterr().out) == 0.0


def test_simulate_saves_and_inspect_reads_state(tmp_path: Path, capsys, monkeypatch) -> None:
    calls: list[float] = []

    def fake_run(bucket, duration, *, batch=1.0, **kwargs):
        calls.append(duration)
        return 0.0

    monkeypatch.setattr(cli, "run_simulation", fake_run)
    state_file = tmp_path / "bucket.json"

    assert cli.main(["simulate", "--rate", "25", "--burst", "4", "--duration", "0.5", "--state-file", str(state_file)]) == 0
    assert calls == [0.5]
    assert capsys.readouterr().out.strip() == "0"
    restored = load_bucket(state_file)
    assert (restored.info_rate, restored.burst_size) == (25, 4)

    assert cli.main(["inspect", str(state_file)]) == 0
    assert "info_rate=25 burst_size=4" in capsys.readouterr().out


def test_simulate_uses_env_configuration(monkeypatch, capsys) -> None:
    seen: list[TokenBucket] = []

    def fake_run(bucket, duration, *, batch=1.0, **kwargs):
        seen.append(bucket)
        return 3.0

    monkeypatch.setattr(cli, "run_simulation", fake_run)
    monkeypatch.setenv("RATEBUCKET_INFO_RATE", "2/min")
    monkeypatch.setenv("RATEBUCKET_BURST_SIZE", "7")

    assert cli.main(["simulate", "--duration", "1"]) == 0
    assert seen[0].info_rate == pytest.approx(2 / 60)
    assert seen[0].burst_size == 7
    assert capsys.readouterr().out.strip() == "3"


def test_inspect_missing_file_returns_error(tmp_path: Path) -> None:
    assert cli.main(["inspect", str(tmp_path / "nope.json")]) == 2


def test_simulate_reports_impossible_batch() -> None:
    assert cli.main(["simulate", "--rate", "1", "--burst", "2", "--batch", "3", "--duration", "0.01"]) == 2


def test_rejects_unparsable_rate() -> None:
    with pytest.raises(SystemExit):
        cli.main(["wait", "--rate", "fast", "1"])


def test_simulate_warns_when_resumed_state_overrides_flags(tmp_path: Path, monkeypatch, caplog) -> None:
    state_file = tmp_path / "bucket.json"
    save_bucket(TokenBucket(25, 4, clock=ManualClock()), state_file)
    seen: list[TokenBucket] = []

    def fake_run(bucket, duration, *, batch=1.0, **kwargs):
        seen.append(bucket)
        return 0.0

    monkeypatch.setattr(cli, "run_simulation", fake_run)
    argv = ["simulate", "--rate", "10", "--burst", "4", "--duration", "0.1", "--state-file", str(state_file)]
    with caplog.at_level(logging.WARNING, logger="ratebucket.cli"):
        assert cli.main(argv) == 0

    assert seen[0].info_rate == 25
    assert "Ignoring --rate 10.0" in caplog.text
    assert "Ignoring --burst" not in caplog.text
