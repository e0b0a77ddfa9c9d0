"""Tests for the fixed-duration benchmark."""

from __future__ import annotations

import pytest

from shiftropolis.errors import ConfigurationError
from shiftropolis.generation import GenerationResult
from shiftropolis.harness import BenchmarkRunner, run_benchmark
from shiftropolis.monitoring import (
    Anomaly,
    AnomalyCategory,
    AnomalyMonitor,
    MonitorThresholds,
    Severity,
)
from shiftropolis.util.rng import derive_seed


class OddSeedMonitor(AnomalyMonitor):
    """Adds a Critical anomaly to every arena generated from an odd seed."""

    def __init__(self) -> None:
        super().__init__(thresholds=MonitorThresholds(performance_base_s=3600.0))

    def audit(self, result: GenerationResult):
        anomalies, metrics = super().audit(result)
        if result.arena.seed % 2:
            flagged = Anomaly(Severity.CRITICAL, AnomalyCategory.STRUCTURAL, "odd")
            anomalies = (*anomalies, flagged)
        return anomalies, metrics


class TestBenchmark:
    def test_short_run(self) -> None:
        result = run_benchmark(0.2, size=8, rule_count=1, seed=1)

        assert result.count >= 1
        assert result.elapsed_s >= 0.2
        assert result.rate == pytest.approx(result.count / result.elapsed_s)
        assert result.average_module_count == pytest.approx(64.0)
        assert result.peak_memory_mb > 0

        p50, p95, p99 = result.percentiles_ms
        assert 0 < p50 <= p95 <= p99

    def test_at_least_one_generation(self) -> None:
        """Even a tiny duration completes the generation in flight."""
        result = run_benchmark(1e-9, size=6, rule_count=0, seed=1)
        assert result.count == 1

    def test_five_second_run(self) -> None:
        result = run_benchmark(5.0, size=8, rule_count=2, seed=12345)

        assert result.count >= 1
        assert 5.0 <= result.elapsed_s < 5.5
        assert result.rate == pytest.approx(result.count / result.elapsed_s)

    def test_memory_sampling_interval(self) -> None:
        runner = BenchmarkRunner(memory_sample_interval=1)
        result = runner.run(0.1, size=6, rule_count=0, seed=3)
        assert result.peak_memory_mb > 0

    @pytest.mark.parametrize("duration", [0, -1.0])
    def test_non_positive_duration_rejected(self, duration: float) -> None:
        with pytest.raises(ConfigurationError):
            run_benchmark(duration)

    def test_invalid_arena_rejected(self) -> None:
        with pytest.raises(ConfigurationError):
            run_benchmark(0.1, size=2)

    def test_report_text_and_dict(self) -> None:
        result = run_benchmark(0.05, size=6, rule_count=0, seed=1)
        assert "Benchmark Results" in str(result)
        assert result.as_dict()["count"] == result.count


class TestBenchmarkOutcomes:
    def test_outcomes_account_for_every_generation(self) -> None:
        runner = BenchmarkRunner(monitor=OddSeedMonitor())
        result = runner.run(0.3, size=6, rule_count=1, seed=9)

        odd = sum(derive_seed(9, index) % 2 for index in range(result.count))
        assert result.successes + result.failures == result.count
        assert result.failures == odd
        assert result.severity_counts.get(Severity.CRITICAL, 0) == odd

    def test_clean_run_has_no_failures(self) -> None:
        result = run_benchmark(0.1, size=8, rule_count=0, seed=4)
        assert result.failures == 0
        assert result.successes == result.count
        assert Severity.CRITICAL not in result.severity_counts

    def test_outcomes_in_report(self) -> None:
        result = BenchmarkRunner(monitor=OddSeedMonitor()).run(
            0.05, size=6, rule_count=0, seed=2
        )
        data = result.as_dict()
        assert data["successes"] + data["failures"] == data["count"]
        assert "Outcomes:" in str(result)
