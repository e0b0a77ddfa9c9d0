"""Aggregate results of stress and benchmark runs."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

from shiftropolis.monitoring.anomalies import AnomalyCategory, Severity


@dataclass(frozen=True)
class FailureRecord:
    """One failed stress run: enough to replay it and see why it failed."""

    index: int
    seed: int
    size: int
    rule_count: int
    reasons: tuple[str, ...]


@dataclass(frozen=True)
class StressTestResult:
    """Outcome of a stress campaign.

    ``successes + failures == attempts`` always holds. With fail-fast and a
    Critical anomaly, ``attempts == first_critical_index + 1``.
    """

    requested: int
    attempts: int
    successes: int
    failures: int
    severity_counts: Mapping[Severity, int]
    category_counts: Mapping[AnomalyCategory, int]
    failure_records: tuple[FailureRecord, ...]
    elapsed_s: float
    seed: int | str
    halted_early: bool = False
    first_critical_index: int | None = None

    @property
    def success_rate(self) -> float:
        if self.attempts == 0:
            return 0.0
        return self.successes / self.attempts

    @property
    def total_anomalies(self) -> int:
        return sum(self.severity_counts.values())

    def as_dict(self) -> dict:
        return {
            "requested": self.requested,
            "attempts": self.attempts,
            "successes": self.successes,
            "failures": self.failures,
            "success_rate": self.success_rate,
            "severity_counts": {s.name: n for s, n in self.severity_counts.items()},
            "category_counts": {str(c): n for c, n in self.category_counts.items()},
            "failures_detail": [
                {
                    "index": f.index,
                    "seed": f.seed,
                    "size": f.size,
                    "rule_count": f.rule_count,
                    "reasons": list(f.reasons),
                }
                for f in self.failure_records
            ],
            "halted_early": self.halted_early,
            "first_critical_index": self.first_critical_index,
            "elapsed_s": self.elapsed_s,
            "seed": self.seed,
        }

    def __str__(self) -> str:
        lines = [
            "Stress Test Results:",
            f"  Runs: {self.attempts}/{self.requested}",
            f"  Successes: {self.successes} ({self.success_rate * 100:.1f}%)",
            f"  Failures: {self.failures}",
            f"  Elapsed: {self.elapsed_s:.2f}s",
        ]
        if self.halted_early:
            lines.append(f"  Halted at run {self.first_critical_index}")
        for severity in Severity:
            lines.append(f"  {severity.name}: {self.severity_counts.get(severity, 0)}")
        return "\n".join(lines)


@dataclass(frozen=True)
class BenchmarkResult:
    count: int
    elapsed_s: float
    rate: float
    average_module_count: float
    peak_memory_mb: float
    size: int
    rule_count: int
    seed: int | str
    successes: int = 0
    failures: int = 0
    severity_counts: Mapping[Severity, int] = field(default_factory=dict)
    # Generation-time percentiles in milliseconds
    percentiles_ms: tuple[float, float, float] = field(default=(0.0, 0.0, 0.0))

    def as_dict(self) -> dict:
        p50, p95, p99 = self.percentiles_ms
        return {
            "count": self.count,
            "elapsed_s": self.elapsed_s,
            "rate": self.rate,
            "average_module_count": self.average_module_count,
            "peak_memory_mb": self.peak_memory_mb,
            "size": self.size,
            "rule_count": self.rule_count,
            "seed": self.seed,
            "successes": self.successes,
            "failures": self.failures,
            "severity_counts": {s.name: n for s, n in self.severity_counts.items()},
            "p50_ms": p50,
            "p95_ms": p95,
            "p99_ms": p99,
        }

    def __str__(self) -> str:
        p50, p95, p99 = self.percentiles_ms
        return (
            "Benchmark Results:\n"
            f"  Arena: {self.size}x{self.size}, {self.rule_count} rules\n"
            f"  Generated: {self.count} in {self.elapsed_s:.2f}s "
            f"({self.rate:.2f}/s)\n"
            f"  Outcomes: {self.successes} succeeded, {self.failures} failed\n"
            f"  Avg Modules: {self.average_module_count:.1f}\n"
            f"  Peak Memory: {self.peak_memory_mb:.2f} MB\n"
            f"  Generation Time: p50={p50:.2f}ms p95={p95:.2f}ms p99={p99:.2f}ms"
        )
