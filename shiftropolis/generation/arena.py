"""Arena value types and generation results.

An Arena is the output of one generation: an N x N grid of module palette
indices plus the rules, environment and key locations that came with it.
Arenas are read-only once the generator returns; the grid array is flagged
non-writeable.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field, replace

import numpy as np

from shiftropolis.data.modules import Module, ModuleID, ModuleTag
from shiftropolis.data.rules import Rule, RuleID
from shiftropolis.monitoring.anomalies import Anomaly, Severity
from shiftropolis.types import GridPos

from .mutations import EnvironmentVariables

UNASSIGNED = -1

# 4-neighbourhood offsets used for movement and reachability
CARDINAL_OFFSETS: tuple[GridPos, ...] = ((0, -1), (1, 0), (0, 1), (-1, 0))


@dataclass(frozen=True)
class ArenaStatistics:
    total_cells: int
    filled_cells: int
    empty_cells: int
    walkable_cells: int
    hazard_cells: int
    blocking_cells: int
    energy_orbs: int
    interactive_elements: int
    fill_ratio: float
    hazard_density: float
    walkable_ratio: float

    def __str__(self) -> str:
        return (
            "Arena Statistics:\n"
            f"  Total Cells: {self.total_cells}\n"
            f"  Filled: {self.filled_cells} ({self.fill_ratio * 100:.1f}%)\n"
            f"  Empty: {self.empty_cells}\n"
            f"  Walkable: {self.walkable_cells} ({self.walkable_ratio * 100:.1f}%)\n"
            f"  Hazards: {self.hazard_cells} ({self.hazard_density * 100:.1f}%)\n"
            f"  Energy Orbs: {self.energy_orbs}\n"
            f"  Interactive: {self.interactive_elements}"
        )


@dataclass(frozen=True, eq=False)
class Arena:
    """A generated playspace.

    Attributes:
        size: Grid dimension N (the grid is N x N).
        grid: int16 array of shape (N, N) indexed ``[x, y]`` holding palette
            indices, UNASSIGNED (-1) for cells a failed generation never decided.
        palette: The module sequence grid values index into.
        active_rules: Rules in effect, in the order they were drawn.
        environment: Gravity and game speed after rule folding.
        spawn: Location of the spawn module, None if there is none.
        orbs: Locations of every collectible energy orb.
        seed: The seed that reproduces this arena.
    """

    size: int
    grid: np.ndarray
    palette: tuple[Module, ...]
    active_rules: tuple[Rule, ...]
    environment: EnvironmentVariables
    spawn: GridPos | None
    orbs: frozenset[GridPos]
    seed: int | str

    def __post_init__(self) -> None:
        self.grid.flags.writeable = False

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Arena):
            return NotImplemented
        return (
            self.size == other.size
            and np.array_equal(self.grid, other.grid)
            and [m.id for m in self.palette] == [m.id for m in other.palette]
            and self.active_rule_ids == other.active_rule_ids
            and self.environment == other.environment
            and self.spawn == other.spawn
            and self.orbs == other.orbs
        )

    __hash__ = None  # type: ignore[assignment]

    @property
    def active_rule_ids(self) -> tuple[RuleID, ...]:
        return tuple(rule.id for rule in self.active_rules)

    @property
    def is_complete(self) -> bool:
        return bool((self.grid != UNASSIGNED).all())

    @property
    def module_count(self) -> int:
        return int((self.grid != UNASSIGNED).sum())

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.size and 0 <= y < self.size

    def module_at(self, x: int, y: int) -> Module | None:
        if not self.in_bounds(x, y):
            return None
        index = int(self.grid[x, y])
        if index == UNASSIGNED:
            return None
        return self.palette[index]

    def cells(self) -> Iterator[tuple[GridPos, Module]]:
        """Assigned cells in row-major order."""
        for y in range(self.size):
            for x in range(self.size):
                module = self.module_at(x, y)
                if module is not None:
                    yield (x, y), module

    def positions_where(self, predicate: Callable[[Module], bool]) -> list[GridPos]:
        return [pos for pos, module in self.cells() if predicate(module)]

    def positions_of(self, module_id: ModuleID) -> list[GridPos]:
        return self.positions_where(lambda module: module.id == module_id)

    def cardinal_neighbors(self, x: int, y: int) -> list[GridPos]:
        return [
            (x + dx, y + dy)
            for dx, dy in CARDINAL_OFFSETS
            if self.in_bounds(x + dx, y + dy)
        ]

    def count_by_id(self) -> Counter[ModuleID]:
        return Counter(module.id for _, module in self.cells())

    def statistics(self) -> ArenaStatistics:
        total = self.size * self.size
        filled = walkable = hazards = blocking = orbs = interactive = 0
        for _, module in self.cells():
            filled += 1
            walkable += module.walkable
            hazards += module.hazard
            blocking += module.blocking
            orbs += ModuleTag.COLLECTIBLE in module.tags
            interactive += ModuleTag.INTERACTIVE in module.tags
        return ArenaStatistics(
            total_cells=total,
            filled_cells=filled,
            empty_cells=total - filled,
            walkable_cells=walkable,
            hazard_cells=hazards,
            blocking_cells=blocking,
            energy_orbs=orbs,
            interactive_elements=interactive,
            fill_ratio=filled / total,
            hazard_density=hazards / total,
            walkable_ratio=walkable / total,
        )


@dataclass(frozen=True)
class GenerationMetrics:
    elapsed_s: float
    module_count: int
    orb_count: int
    collapses: int = 0
    contradictions: int = 0
    backtracks: int = 0


@dataclass(frozen=True)
class GenerationResult:
    """One generation's outcome: the arena, its anomalies and its metrics.

    A result is failed iff it carries at least one Critical anomaly.
    """

    arena: Arena
    anomalies: tuple[Anomaly, ...] = field(default_factory=tuple)
    metrics: GenerationMetrics = field(
        default_factory=lambda: GenerationMetrics(0.0, 0, 0)
    )

    @property
    def failed(self) -> bool:
        return any(anomaly.is_critical for anomaly in self.anomalies)

    @property
    def critical_anomalies(self) -> tuple[Anomaly, ...]:
        return tuple(a for a in self.anomalies if a.is_critical)

    def by_severity(self, severity: Severity) -> tuple[Anomaly, ...]:
        return tuple(a for a in self.anomalies if a.severity is severity)

    def failure_reasons(self) -> list[str]:
        """Human-readable descriptions of every Critical anomaly."""
        return [str(anomaly) for anomaly in self.critical_anomalies]

    def with_anomalies(self, anomalies: tuple[Anomaly, ...]) -> GenerationResult:
        """Return a copy with ``anomalies`` appended after the existing ones."""
        return replace(self, anomalies=self.anomalies + tuple(anomalies))
