#!/usr/bin/env python3
"""Stress test arena generation over randomized sizes and rule counts."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from shiftropolis import config
from shiftropolis.harness import run_stress
from shiftropolis.util import rng


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Stress test arena generation")
    parser.add_argument(
        "--count", type=int, default=100, help="Number of arenas (default: 100)"
    )
    parser.add_argument(
        "--size",
        type=int,
        nargs=2,
        metavar=("MIN", "MAX"),
        default=config.DEFAULT_STRESS_SIZE_RANGE,
        help="Inclusive arena size range",
    )
    parser.add_argument(
        "--rules",
        type=int,
        nargs=2,
        metavar=("MIN", "MAX"),
        default=config.DEFAULT_STRESS_RULES_RANGE,
        help="Inclusive rule count range",
    )
    parser.add_argument(
        "--fail-fast", action="store_true", help="Stop at the first Critical anomaly"
    )
    parser.add_argument("--seed", type=int, help="Base seed (default: random)")
    parser.add_argument(
        "--workers", type=int, default=1, help="Thread pool size (default: 1)"
    )
    parser.add_argument("--save", type=str, help="Save results to JSON")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)
    rng.init(config.RANDOM_SEED)

    result = run_stress(
        args.count,
        tuple(args.size),
        tuple(args.rules),
        args.fail_fast,
        args.seed,
        workers=args.workers,
    )
    print(result)
    for failure in result.failure_records:
        print(f"\n  Run {failure.index} (seed={failure.seed}, size={failure.size}):")
        for reason in failure.reasons:
            print(f"    {reason}")

    if args.save:
        with Path(args.save).open("w") as f:
            json.dump(result.as_dict(), f, indent=2)
        print(f"\nSaved stress results to {args.save}")

    return 1 if result.failures else 0


if __name__ == "__main__":
    sys.exit(main())
