"""Shiftropolis arena generation and validation core.

Typical use::

    from shiftropolis import generate, run_stress

    result = generate(size=12, rule_count=3, seed=12345)
    if result.failed:
        print(result.failure_reasons())

    report = run_stress(100, (8, 24), (0, 4), fail_fast=True, seed=1)
"""

from .data import (
    EnvVarsDatabase,
    GameDataContext,
    ModulesDatabase,
    RulesDatabase,
    default_context,
)
from .errors import ConfigurationError, NotFoundError, ShiftropolisError
from .generation import Arena, GenerationMetrics, GenerationResult
from .harness import BenchmarkResult, StressTestResult, run_benchmark, run_stress
from .monitoring import Anomaly, AnomalyCategory, Severity
from .pipeline import generate

__all__ = [
    "Anomaly",
    "AnomalyCategory",
    "Arena",
    "BenchmarkResult",
    "ConfigurationError",
    "EnvVarsDatabase",
    "GameDataContext",
    "GenerationMetrics",
    "GenerationResult",
    "ModulesDatabase",
    "NotFoundError",
    "RulesDatabase",
    "Severity",
    "ShiftropolisError",
    "StressTestResult",
    "default_context",
    "generate",
    "run_benchmark",
    "run_stress",
]
