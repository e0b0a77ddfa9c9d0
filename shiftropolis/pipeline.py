"""One-call arena generation: generator followed by the anomaly monitor."""

from __future__ import annotations

from shiftropolis.data.context import GameDataContext
from shiftropolis.generation.arena import GenerationResult
from shiftropolis.generation.generator import ArenaGenerator
from shiftropolis.monitoring.monitor import AnomalyMonitor
from shiftropolis.types import RandomSeed


def generate(
    size: int,
    rule_count: int,
    seed: RandomSeed = None,
    *,
    context: GameDataContext | None = None,
    monitor: AnomalyMonitor | None = None,
) -> GenerationResult:
    """Generate one arena and audit it.

    The returned result carries the generator's own anomalies (a failed
    generation) followed by everything the monitor found.

    Raises:
        ConfigurationError: If size or rule_count is invalid.
    """
    generator = ArenaGenerator(context)
    monitor = monitor or AnomalyMonitor(generator.context)
    return monitor.inspect(generator.generate(size, rule_count, seed))
