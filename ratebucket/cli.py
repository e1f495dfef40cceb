"""Command-line entrypoint for ratebucket."""

from __future__ import annotations

import argparse
import logging
import time
from pathlib import Path
from typing import Callable

from ratebucket.bucket import TokenBucket
from ratebucket.clock import Clock, wall_clock
from ratebucket.config import bucket_config_from_env, parse_rate
from ratebucket.errors import InvalidConfiguration, RateBucketError
from ratebucket.persistence import load_bucket, save_bucket

logger = logging.getLogger("ratebucket.cli")

_MIN_SLEEP_SECONDS = 0.001


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ratebucket",
        description="Token bucket rate limiter playground.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    simulate = sub.add_parser("simulate", help="Run a conform/consume loop and report throughput.")
    _add_bucket_args(simulate)
    simulate.add_argument("--duration", type=float, default=2.0, help="Seconds to run the loop.")
    simulate.add_argument("--batch", type=float, default=1.0, help="Items processed per pass.")
    simulate.add_argument(
        "--state-file",
        type=Path,
        default=None,
        help="Resume from and save bucket state to this JSON file.",
    )

    inspect = sub.add_parser("inspect", help="Show a persisted bucket state.")
    inspect.add_argument("state_file", type=Path)

    wait = sub.add_parser("wait", help="Print seconds until N tokens are available.")
    _add_bucket_args(wait)
    wait.add_argument("--tokens", type=float, default=0.0, help="Tokens currently in the bucket.")
    wait.add_argument("n", type=float)
    return parser


def _add_bucket_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--rate",
        type=parse_rate,
        default=None,
        help="Information rate, e.g. 25, 100/3600 or 100/h (env RATEBUCKET_INFO_RATE).",
    )
    parser.add_argument(
        "--burst",
        type=float,
        default=None,
        help="Burst size in items (env RATEBUCKET_BURST_SIZE).",
    )


def _bucket_from_args(args: argparse.Namespace, clock: Clock) -> TokenBucket:
    config = bucket_config_from_env()
    info_rate = args.rate if args.rate is not None else config.info_rate
    burst_size = args.burst if args.burst is not None else config.burst_size
    return TokenBucket(info_rate, burst_size, clock=clock)


def run_simulation(
    bucket: TokenBucket,
    duration: float,
    *,
    batch: float = 1.0,
    clock: Clock = wall_clock,
    sleep_func: Callable[[float], None] = time.sleep,
) -> float:
    """Admit ``batch`` items whenever the bucket conforms, for ``duration`` seconds.

    Returns the number of items that passed.
    """
    if batch > bucket.burst_size:
        raise InvalidConfiguration(
            f"batch {batch} can never conform to burst size {bucket.burst_size}"
        )
    passed = 0.0
    deadline = clock() + duration
    while True:
        remaining = deadline - clock()
        if remaining <= 0:
            break
        if bucket.conforms(batch):
            bucket.consume(batch)
            passed += batch
            continue
        sleep_func(max(min(bucket.time_until(batch), remaining), _MIN_SLEEP_SECONDS))
    return passed


def _warn_on_ignored_args(args: argparse.Namespace, bucket: TokenBucket) -> None:
    for flag, given, stored in (
        ("--rate", args.rate, bucket.info_rate),
        ("--burst", args.burst, bucket.burst_size),
    ):
        if given is not None and given != stored:
            logger.warning(
                "Ignoring %s %s; resumed bucket from %s uses %s.",
                flag,
                given,
                args.state_file,
                stored,
            )


def _cmd_simulate(args: argparse.Namespace) -> int:
    if args.state_file is not None and args.state_file.exists():
        bucket = load_bucket(args.state_file)
        logger.info("Resumed bucket from %s: %s", args.state_file, bucket)
        _warn_on_ignored_args(args, bucket)
    else:
        bucket = _bucket_from_args(args, wall_clock)
    passed = run_simulation(bucket, args.duration, batch=args.batch)
    logger.info(
        "Passed %s items in %.2f s (rate=%s/s, burst=%s).",
        passed,
        args.duration,
        bucket.info_rate,
        bucket.burst_size,
    )
    print(f"{passed:g}")
    if args.state_file is not None:
        save_bucket(bucket, args.state_file)
        logger.info("Saved bucket state to %s.", args.state_file)
    return 0


def _cmd_inspect(args: argparse.Namespace) -> int:
    bucket = load_bucket(args.state_file)
    state = bucket.export_state()
    print(
        f"info_rate={state.info_rate:g} burst_size={state.burst_size:g} "
        f"tokens={state.tokens:.4f} wait_for_one={bucket.time_until(1.0):.4f}s"
    )
    return 0


def _cmd_wait(args: argparse.Namespace) -> int:
    probe = _bucket_from_args(args, wall_clock)
    bucket = TokenBucket.restore(probe.info_rate, probe.burst_size, args.tokens, wall_clock())
    if args.n > bucket.burst_size:
        logger.warning("%s exceeds burst size %s; the bucket will never conform.", args.n, bucket.burst_size)
    print(f"{bucket.time_until(args.n):.6f}")
    return 0


_COMMANDS = {
    "simulate": _cmd_simulate,
    "inspect": _cmd_inspect,
    "wait": _cmd_wait,
}


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    try:
        return _COMMANDS[args.command](args)
    except FileNotFoundError as exc:
        logger.error("State file not found: %s", exc.filename)
        return 2
    except RateBucketError as exc:
        logger.error("%s", exc)
        return 2


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
