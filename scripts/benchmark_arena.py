#!/usr/bin/env python3
"""Benchmark arena generation throughput."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

from shiftropolis import config
from shiftropolis.harness import BenchmarkResult, run_benchmark
from shiftropolis.util import rng


def compare_with_baseline(result: BenchmarkResult, baseline_file: str) -> None:
    """Compare the current run with a saved baseline JSON file."""
    try:
        with Path(baseline_file).open() as f:
            baseline: dict[str, float] = json.load(f)
    except FileNotFoundError:
        print(f"\nBaseline file not found: {baseline_file}")
        return

    old_rate = baseline.get("rate", 0.0)
    if old_rate <= 0:
        return

    speed_ratio = result.rate / old_rate
    trend = "faster" if speed_ratio > 1.0 else "slower"
    print(f"\nComparison vs baseline: {baseline_file}")
    print("=" * 64)
    print(
        f"{result.rate:8.2f}/s vs {old_rate:8.2f}/s | {speed_ratio:5.2f}x {trend} "
        f"({(speed_ratio - 1.0) * 100.0:+6.1f}%)"
    )


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Benchmark arena generation")
    parser.add_argument(
        "--duration",
        type=float,
        default=5.0,
        help="Seconds to keep generating (default: 5.0)",
    )
    parser.add_argument(
        "--size",
        type=int,
        default=config.DEFAULT_BENCHMARK_SIZE,
        help=f"Arena size (default: {config.DEFAULT_BENCHMARK_SIZE})",
    )
    parser.add_argument(
        "--rules",
        type=int,
        default=config.DEFAULT_BENCHMARK_RULES,
        help=f"Active rule count (default: {config.DEFAULT_BENCHMARK_RULES})",
    )
    parser.add_argument("--seed", type=int, help="Base seed (default: random)")
    parser.add_argument("--save", type=str, help="Save current results to JSON")
    parser.add_argument(
        "--compare",
        type=str,
        help="Compare current results against baseline JSON",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)
    rng.init(config.RANDOM_SEED)

    result = run_benchmark(
        args.duration, size=args.size, rule_count=args.rules, seed=args.seed
    )
    print(result)

    if args.save:
        with Path(args.save).open("w") as f:
            json.dump(result.as_dict(), f, indent=2)
        print(f"\nSaved benchmark results to {args.save}")

    if args.compare:
        compare_with_baseline(result, args.compare)


if __name__ == "__main__":
    main()
