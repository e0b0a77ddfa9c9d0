"""Stress campaigns: many generations over randomized parameters.

Every run derives its own seed from (base seed, run index), so a campaign is
reproducible from its base seed whether it runs sequentially or on a thread
pool, and any single failing run can be replayed from its FailureRecord.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from random import Random

from shiftropolis import config
from shiftropolis.data.context import GameDataContext, default_context
from shiftropolis.errors import ConfigurationError
from shiftropolis.generation.arena import GenerationResult
from shiftropolis.generation.generator import ArenaGenerator
from shiftropolis.monitoring.anomalies import AnomalyCategory, Severity
from shiftropolis.monitoring.monitor import AnomalyMonitor
from shiftropolis.types import IntRange, RandomSeed
from shiftropolis.util.rng import derive_seed, entropy_seed

from .results import FailureRecord, StressTestResult

logger = logging.getLogger(__name__)


def validate_range(name: str, value_range: IntRange, minimum: int) -> None:
    low, high = value_range
    if low > high:
        raise ConfigurationError(f"{name} range min {low} exceeds max {high}")
    if low < minimum:
        raise ConfigurationError(f"{name} range min must be >= {minimum}, got {low}")


@dataclass(frozen=True)
class StressRun:
    """Parameters of one run, all derived from (base seed, index)."""

    index: int
    seed: int
    size: int
    rule_count: int

    @classmethod
    def derive(
        cls,
        base_seed: int | str,
        index: int,
        size_range: IntRange,
        rules_range: IntRange,
    ) -> StressRun:
        seed = derive_seed(base_seed, index)
        rng = Random(seed)
        return cls(
            index=index,
            seed=seed,
            size=rng.randint(*size_range),
            rule_count=rng.randint(*rules_range),
        )


class StressRunner:
    """Runs a stress campaign and folds the results in index order."""

    def __init__(
        self,
        context: GameDataContext | None = None,
        monitor: AnomalyMonitor | None = None,
    ) -> None:
        self.context = context or default_context()
        self.generator = ArenaGenerator(self.context)
        self.monitor = monitor or AnomalyMonitor(self.context)

    def run(
        self,
        count: int,
        size_range: IntRange = config.DEFAULT_STRESS_SIZE_RANGE,
        rules_range: IntRange = config.DEFAULT_STRESS_RULES_RANGE,
        fail_fast: bool = False,
        seed: RandomSeed = None,
        *,
        workers: int = 1,
    ) -> StressTestResult:
        if count < 0:
            raise ConfigurationError(f"Stress count must be >= 0, got {count}")
        if workers < 1:
            raise ConfigurationError(f"Worker count must be >= 1, got {workers}")
        validate_range("Size", size_range, config.MIN_ARENA_SIZE)
        validate_range("Rules", rules_range, 0)

        base_seed = entropy_seed() if seed is None else seed
        runs = [
            StressRun.derive(base_seed, index, size_range, rules_range)
            for index in range(count)
        ]
        logger.info(
            "Stress test: %d runs, size %s, rules %s, seed=%s, workers=%d",
            count,
            size_range,
            rules_range,
            base_seed,
            workers,
        )

        start = time.perf_counter()
        if workers == 1:
            results = self._run_sequential(runs, fail_fast)
        else:
            results = self._run_pooled(runs, fail_fast, workers)
        elapsed = time.perf_counter() - start

        report = self._fold(runs, results, count, elapsed, base_seed, fail_fast)
        logger.info(
            "Stress test finished: %d/%d succeeded in %.2fs",
            report.successes,
            report.attempts,
            elapsed,
        )
        return report

    def _execute(self, run: StressRun) -> GenerationResult:
        result = self.generator.generate(run.size, run.rule_count, run.seed)
        return self.monitor.inspect(result)

    def _run_sequential(
        self, runs: list[StressRun], fail_fast: bool
    ) -> dict[int, GenerationResult]:
        results: dict[int, GenerationResult] = {}
        for run in runs:
            result = self._execute(run)
            results[run.index] = result
            if fail_fast and result.failed:
                break
        return results

    def _run_pooled(
        self, runs: list[StressRun], fail_fast: bool, workers: int
    ) -> dict[int, GenerationResult]:
        """Run on a thread pool, skipping work that fail-fast will discard.

        A run is only skipped when a lower index has already failed, so every
        index up to the first Critical one is always executed.
        """
        results: dict[int, GenerationResult] = {}
        lock = threading.Lock()
        first_failure = len(runs)

        def task(run: StressRun) -> None:
            nonlocal first_failure
            with lock:
                if run.index > first_failure:
                    return
            result = self._execute(run)
            with lock:
                results[run.index] = result
                if fail_fast and result.failed:
                    first_failure = min(first_failure, run.index)

        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [pool.submit(task, run) for run in runs]
            for future in futures:
                # Re-raise anything a worker raised
                future.result()
        return results

    @staticmethod
    def _fold(
        runs: list[StressRun],
        results: dict[int, GenerationResult],
        requested: int,
        elapsed: float,
        base_seed: int | str,
        fail_fast: bool,
    ) -> StressTestResult:
        severities: Counter[Severity] = Counter()
        categories: Counter[AnomalyCategory] = Counter()
        failures: list[FailureRecord] = []
        successes = 0
        first_critical: int | None = None

        for run in runs:
            result = results.get(run.index)
            if result is None:
                break
            for anomaly in result.anomalies:
                severities[anomaly.severity] += 1
                categories[anomaly.category] += 1
            if not result.failed:
                successes += 1
                continue

            failures.append(
                FailureRecord(
                    index=run.index,
                    seed=run.seed,
                    size=run.size,
                    rule_count=run.rule_count,
                    reasons=tuple(result.failure_reasons()),
                )
            )
            if first_critical is None:
                first_critical = run.index
            if fail_fast:
                break

        attempts = successes + len(failures)
        return StressTestResult(
            requested=requested,
            attempts=attempts,
            successes=successes,
            failures=len(failures),
            severity_counts=dict(severities),
            category_counts=dict(categories),
            failure_records=tuple(failures),
            elapsed_s=elapsed,
            seed=base_seed,
            halted_early=attempts < requested,
            first_critical_index=first_critical,
        )


def run_stress(
    count: int,
    size_range: IntRange = config.DEFAULT_STRESS_SIZE_RANGE,
    rules_range: IntRange = config.DEFAULT_STRESS_RULES_RANGE,
    fail_fast: bool = False,
    seed: RandomSeed = None,
    *,
    workers: int = 1,
) -> StressTestResult:
    """Generate and audit ``count`` arenas with the shared registries.

    Args:
        count: Number of runs.
        size_range: Inclusive (min, max) arena size; min must be at least
            MIN_ARENA_SIZE.
        rules_range: Inclusive (min, max) rule count.
        fail_fast: Stop at the first run with a Critical anomaly.
        seed: Base seed. Without one a seed is drawn from system entropy and
            recorded on the result.
        workers: Thread pool size; 1 runs sequentially.

    Raises:
        ConfigurationError: For an invalid count, range or worker count.
    """
    return StressRunner().run(
        count, size_range, rules_range, fail_fast, seed, workers=workers
    )
