"""Throughput benchmark: back-to-back generations for a fixed duration."""

from __future__ import annotations

import logging
import time
import tracemalloc
from collections import Counter

from shiftropolis import config
from shiftropolis.data.context import GameDataContext, default_context
from shiftropolis.errors import ConfigurationError
from shiftropolis.generation.generator import ArenaGenerator, validate_request
from shiftropolis.monitoring.anomalies import Severity
from shiftropolis.monitoring.monitor import AnomalyMonitor
from shiftropolis.types import RandomSeed
from shiftropolis.util.metrics import CumulativeVar
from shiftropolis.util.rng import derive_seed, entropy_seed

from .results import BenchmarkResult

logger = logging.getLogger(__name__)


class BenchmarkRunner:
    def __init__(
        self,
        context: GameDataContext | None = None,
        monitor: AnomalyMonitor | None = None,
        *,
        memory_sample_interval: int = config.MEMORY_SAMPLE_INTERVAL,
    ) -> None:
        self.context = context or default_context()
        self.generator = ArenaGenerator(self.context)
        self.monitor = monitor or AnomalyMonitor(self.context)
        self.memory_sample_interval = memory_sample_interval

    def run(
        self,
        duration: float,
        *,
        size: int = config.DEFAULT_BENCHMARK_SIZE,
        rule_count: int = config.DEFAULT_BENCHMARK_RULES,
        seed: RandomSeed = None,
    ) -> BenchmarkResult:
        """Generate and audit arenas until ``duration`` seconds have elapsed.

        The clock is checked after each completed generation, so the run
        overshoots ``duration`` by at most one generation and always completes
        at least one.
        """
        if duration <= 0:
            raise ConfigurationError(f"Benchmark duration must be > 0, got {duration}")
        validate_request(size, rule_count)

        base_seed = entropy_seed() if seed is None else seed
        timings = CumulativeVar(config.BENCHMARK_TIMING_SAMPLES)
        total_modules = 0
        peak_bytes = 0
        failures = 0
        severities: Counter[Severity] = Counter()

        started_tracing = not tracemalloc.is_tracing()
        if started_tracing:
            tracemalloc.start()
        try:
            tracemalloc.reset_peak()
            count = 0
            start = time.perf_counter()
            while True:
                gen_start = time.perf_counter()
                result = self.generator.generate(
                    size, rule_count, derive_seed(base_seed, count)
                )
                result = self.monitor.inspect(result)
                timings.record((time.perf_counter() - gen_start) * 1000.0)

                count += 1
                total_modules += result.metrics.module_count
                if result.failed:
                    failures += 1
                severities.update(anomaly.severity for anomaly in result.anomalies)
                if count % self.memory_sample_interval == 0:
                    peak_bytes = max(peak_bytes, tracemalloc.get_traced_memory()[1])

                elapsed = time.perf_counter() - start
                if elapsed >= duration:
                    break
            peak_bytes = max(peak_bytes, tracemalloc.get_traced_memory()[1])
        finally:
            if started_tracing:
                tracemalloc.stop()

        report = BenchmarkResult(
            count=count,
            elapsed_s=elapsed,
            rate=count / elapsed,
            average_module_count=total_modules / count,
            peak_memory_mb=peak_bytes / 1024 / 1024,
            size=size,
            rule_count=rule_count,
            seed=base_seed,
            successes=count - failures,
            failures=failures,
            severity_counts=dict(severities),
            percentiles_ms=timings.get_percentiles(),
        )
        logger.info(
            "Benchmark: %d arenas (%d failed) in %.2fs (%.2f/s), %s",
            count,
            failures,
            elapsed,
            report.rate,
            timings.get_percentiles_string(),
        )
        return report


def run_benchmark(
    duration: float,
    *,
    size: int = config.DEFAULT_BENCHMARK_SIZE,
    rule_count: int = config.DEFAULT_BENCHMARK_RULES,
    seed: RandomSeed = None,
) -> BenchmarkResult:
    """Benchmark generation throughput for ``duration`` seconds.

    Raises:
        ConfigurationError: If duration is not positive or the arena
            parameters are invalid.
    """
    return BenchmarkRunner().run(duration, size=size, rule_count=rule_count, seed=seed)
