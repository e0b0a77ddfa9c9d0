"""Tests for stress campaigns, including fail-fast accounting."""

from __future__ import annotations

import pytest

from shiftropolis.errors import ConfigurationError
from shiftropolis.generation.arena import GenerationResult
from shiftropolis.harness import StressRun, StressRunner, run_stress
from shiftropolis.monitoring import (
    Anomaly,
    AnomalyCategory,
    AnomalyMonitor,
    MonitorThresholds,
    Severity,
)

SIZE_RANGE = (5, 8)
RULES_RANGE = (0, 3)


class FlagSizeMonitor(AnomalyMonitor):
    """Adds a Critical anomaly to every arena of one size."""

    def __init__(self, size: int) -> None:
        # Timing-independent reports: never flag performance
        super().__init__(thresholds=MonitorThresholds(performance_base_s=3600.0))
        self.size = size

    def audit(self, result: GenerationResult):
        anomalies, metrics = super().audit(result)
        if result.arena.size == self.size:
            flagged = Anomaly(Severity.CRITICAL, AnomalyCategory.STRUCTURAL, "flagged")
            anomalies = (*anomalies, flagged)
        return anomalies, metrics


class RecordingMonitor(FlagSizeMonitor):
    """Remembers the seed of every arena it audits."""

    def __init__(self, size: int) -> None:
        super().__init__(size)
        self.seen: list[int] = []

    def audit(self, result: GenerationResult):
        self.seen.append(result.arena.seed)
        return super().audit(result)


def flagged_indices(seed: int, count: int, size: int) -> list[int]:
    return [
        index
        for index in range(count)
        if StressRun.derive(seed, index, SIZE_RANGE, RULES_RANGE).size == size
    ]


def comparable(result) -> dict:
    data = result.as_dict()
    del data["elapsed_s"]
    return data


class TestStressAccounting:
    def test_all_runs_accounted_for(self) -> None:
        result = run_stress(12, SIZE_RANGE, RULES_RANGE, seed=1)

        assert result.requested == 12
        assert result.attempts == 12
        assert result.successes + result.failures == result.attempts
        assert result.failures == 0
        assert result.success_rate == 1.0
        assert not result.halted_early
        assert result.first_critical_index is None

    def test_zero_runs(self) -> None:
        result = run_stress(0, SIZE_RANGE, RULES_RANGE, seed=1)
        assert result.attempts == 0
        assert result.success_rate == 0.0

    def test_same_seed_same_report(self) -> None:
        first = run_stress(8, SIZE_RANGE, RULES_RANGE, seed=99)
        second = run_stress(8, SIZE_RANGE, RULES_RANGE, seed=99)
        assert first.failure_records == second.failure_records
        assert first.successes == second.successes

    def test_entropy_seed_is_recorded(self) -> None:
        result = run_stress(2, SIZE_RANGE, RULES_RANGE)
        assert isinstance(result.seed, int)

    def test_run_parameters_are_derived_per_index(self) -> None:
        runs = [StressRun.derive(5, i, SIZE_RANGE, RULES_RANGE) for i in range(50)]
        assert all(SIZE_RANGE[0] <= run.size <= SIZE_RANGE[1] for run in runs)
        assert all(RULES_RANGE[0] <= run.rule_count <= RULES_RANGE[1] for run in runs)
        assert len({run.seed for run in runs}) == 50
        assert StressRun.derive(5, 7, SIZE_RANGE, RULES_RANGE) == runs[7]

    def test_failures_are_recorded(self) -> None:
        seed, count = 3, 30
        expected = flagged_indices(seed, count, 8)
        runner = StressRunner(monitor=FlagSizeMonitor(8))

        result = runner.run(count, SIZE_RANGE, RULES_RANGE, seed=seed)

        assert [f.index for f in result.failure_records] == expected
        assert result.failures == len(expected)
        assert result.successes == count - len(expected)
        assert all(f.size == 8 for f in result.failure_records)
        assert all(f.reasons for f in result.failure_records)
        assert result.severity_counts[Severity.CRITICAL] == len(expected)
        assert result.category_counts[AnomalyCategory.STRUCTURAL] >= len(expected)


class TestFailFast:
    def test_sequential_halts_at_first_critical(self) -> None:
        seed, count = 3, 40
        expected = flagged_indices(seed, count, 8)
        assert expected, "seed should produce at least one flagged run"
        first = expected[0]
        runner = StressRunner(monitor=FlagSizeMonitor(8))

        result = runner.run(count, SIZE_RANGE, RULES_RANGE, fail_fast=True, seed=seed)

        assert result.first_critical_index == first
        assert result.successes + result.failures == first + 1
        assert result.failures == 1
        assert result.halted_early == (first + 1 < count)

    def test_pooled_matches_sequential(self) -> None:
        seed, count = 3, 40
        runner = StressRunner(monitor=FlagSizeMonitor(8))

        sequential = runner.run(count, SIZE_RANGE, RULES_RANGE, True, seed)
        pooled = runner.run(count, SIZE_RANGE, RULES_RANGE, True, seed, workers=4)

        assert comparable(pooled) == comparable(sequential)
        assert pooled.attempts == pooled.first_critical_index + 1

    def test_pooled_executes_every_run_up_to_first_critical(self) -> None:
        seed, count = 3, 40
        first = flagged_indices(seed, count, 8)[0]
        monitor = RecordingMonitor(8)

        StressRunner(monitor=monitor).run(
            count, SIZE_RANGE, RULES_RANGE, True, seed, workers=4
        )

        required = {
            StressRun.derive(seed, index, SIZE_RANGE, RULES_RANGE).seed
            for index in range(first + 1)
        }
        assert required <= set(monitor.seen)

    def test_pooled_without_fail_fast_runs_everything(self) -> None:
        seed, count = 3, 20
        runner = StressRunner(monitor=FlagSizeMonitor(8))

        sequential = runner.run(count, SIZE_RANGE, RULES_RANGE, seed=seed)
        pooled = runner.run(count, SIZE_RANGE, RULES_RANGE, seed=seed, workers=3)

        assert pooled.attempts == count
        assert comparable(pooled) == comparable(sequential)

    def test_fail_fast_without_failures_runs_everything(self) -> None:
        result = run_stress(6, SIZE_RANGE, RULES_RANGE, fail_fast=True, seed=4)
        assert result.attempts == 6
        assert result.first_critical_index is None


class TestValidation:
    @pytest.mark.parametrize(
        ("count", "size_range", "rules_range"),
        [
            (-1, (8, 10), (0, 2)),
            (5, (10, 8), (0, 2)),
            (5, (3, 8), (0, 2)),
            (5, (8, 10), (3, 1)),
            (5, (8, 10), (-1, 2)),
        ],
    )
    def test_invalid_parameters_rejected(
        self,
        count: int,
        size_range: tuple[int, int],
        rules_range: tuple[int, int],
    ) -> None:
        with pytest.raises(ConfigurationError):
            run_stress(count, size_range, rules_range, seed=1)

    def test_invalid_worker_count(self) -> None:
        with pytest.raises(ConfigurationError):
            run_stress(5, SIZE_RANGE, RULES_RANGE, seed=1, workers=0)


class TestReport:
    def test_report_text_and_dict(self) -> None:
        result = run_stress(3, SIZE_RANGE, RULES_RANGE, seed=2)
        assert "Stress Test Results" in str(result)
        data = result.as_dict()
        assert data["attempts"] == 3
        assert data["seed"] == 2
