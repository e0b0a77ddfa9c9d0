"""Drivers that run many generations and aggregate their outcomes.

- stress: StressRunner / run_stress, randomized campaigns with fail-fast
- benchmark: BenchmarkRunner / run_benchmark, fixed-duration throughput
- results: the aggregate result types both produce
"""

from .benchmark import BenchmarkRunner, run_benchmark
from .results import BenchmarkResult, FailureRecord, StressTestResult
from .stress import StressRun, StressRunner, run_stress

__all__ = [
    "BenchmarkResult",
    "BenchmarkRunner",
    "FailureRecord",
    "StressRun",
    "StressRunner",
    "StressTestResult",
    "run_benchmark",
    "run_stress",
]
