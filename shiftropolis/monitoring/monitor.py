"""Post-generation anomaly monitor.

The monitor audits a GenerationResult and reports every defect it finds. All
checks run on every audit, independently of one another, so a broken arena
reports all of its problems at once rather than the first one found.

| Category     | Checks                                                    | Severity |
|--------------|-----------------------------------------------------------|----------|
| STRUCTURAL   | spawn missing or duplicated, unassigned cells,            | Critical |
|              | walkable cells cut off from the spawn                     |          |
| BOUNDS       | recorded positions outside the grid                       | Critical |
| REACHABILITY | orbs and important modules out of reach of the spawn      | Critical |
| BALANCE      | hazard density, walkable/danger ratio, orb density        | Warning  |
| RULES        | clamped or contradictory environment effects              | Warning  |
|              | incompatible rules active together                        | Critical |
| SPATIAL      | clustered hazards, isolated modules                       | Warning  |
| PERFORMANCE  | generation slower than the size budget                    | Info     |
| DISTRIBUTION | module class shares far from the weight expectation       | Info     |
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from shiftropolis import config
from shiftropolis.data.context import GameDataContext, default_context
from shiftropolis.data.modules import ModuleID, ModuleTag
from shiftropolis.data.rules import RuleID
from shiftropolis.generation.mutations import biased_weights

from .anomalies import Anomaly, AnomalyCategory, Severity
from .spatial import (
    average_pairwise_distance,
    count_walkable_neighbors,
    flood_fill_walkable,
    touches,
)

if TYPE_CHECKING:
    from shiftropolis.generation.arena import Arena, GenerationResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MonitorThresholds:
    max_hazard_density: float = config.MAX_HAZARD_DENSITY
    min_walkable_danger_ratio: float = config.MIN_WALKABLE_DANGER_RATIO
    min_orb_density: float = config.MIN_ORB_DENSITY
    min_hazard_spacing: float = config.MIN_HAZARD_SPACING
    moon_gravity_max: float = config.MOON_GRAVITY_MAX
    performance_base_s: float = config.PERFORMANCE_BASE_BUDGET
    performance_per_cell_s: float = config.PERFORMANCE_PER_CELL_BUDGET
    distribution_tolerance: float = config.DISTRIBUTION_TOLERANCE
    distribution_min_samples: int = config.DISTRIBUTION_MIN_SAMPLES

    def performance_budget(self, size: int) -> float:
        return self.performance_base_s + self.performance_per_cell_s * size * size


@dataclass(frozen=True)
class MonitoringSummary:
    total_anomalies: int
    by_severity: dict[Severity, int]
    by_category: dict[AnomalyCategory, int]
    metrics: dict[str, float] = field(default_factory=dict)

    @classmethod
    def from_anomalies(
        cls, anomalies: tuple[Anomaly, ...], metrics: dict[str, float] | None = None
    ) -> MonitoringSummary:
        return cls(
            total_anomalies=len(anomalies),
            by_severity=dict(Counter(a.severity for a in anomalies)),
            by_category=dict(Counter(a.category for a in anomalies)),
            metrics=dict(metrics or {}),
        )


class _Audit:
    """Collects anomalies and metrics for one arena."""

    def __init__(self) -> None:
        self.anomalies: list[Anomaly] = []
        self.metrics: dict[str, float] = {}

    def report(
        self,
        category: AnomalyCategory,
        message: str,
        severity: Severity,
        position: tuple[int, int] | None = None,
    ) -> None:
        self.anomalies.append(Anomaly(severity, category, message, position))

    def record(self, name: str, value: float) -> None:
        self.metrics[name] = value


class AnomalyMonitor:
    """Audits generated arenas for playability and balance defects.

    The monitor is stateless between audits and only reads the shared
    registries, so a single instance can be used from several threads.
    """

    def __init__(
        self,
        context: GameDataContext | None = None,
        thresholds: MonitorThresholds | None = None,
    ) -> None:
        self.context = context or default_context()
        self.thresholds = thresholds or MonitorThresholds()

    def inspect(self, result: GenerationResult) -> GenerationResult:
        """Return ``result`` with every detected anomaly appended."""
        anomalies, _ = self.audit(result)
        return result.with_anomalies(anomalies)

    def summarize(self, result: GenerationResult) -> MonitoringSummary:
        """Summary of a result's anomalies plus the metrics of a fresh audit."""
        _, metrics = self.audit(result)
        return MonitoringSummary.from_anomalies(result.anomalies, metrics)

    def audit(
        self, result: GenerationResult
    ) -> tuple[tuple[Anomaly, ...], dict[str, float]]:
        """Run every check and return (anomalies, recorded metrics)."""
        audit = _Audit()
        arena = result.arena

        reached = self._reachable_from_spawn(arena)
        self._check_structural(arena, reached, audit)
        self._check_bounds(arena, audit)
        self._check_reachability(arena, reached, audit)
        self._check_balance(arena, audit)
        self._check_rules(arena, audit)
        self._check_spatial(arena, audit)
        self._check_performance(arena, result.metrics.elapsed_s, audit)
        self._check_distribution(arena, audit)

        if audit.anomalies:
            logger.debug(
                "Audit of seed=%s found %d anomalies", arena.seed, len(audit.anomalies)
            )
        return tuple(audit.anomalies), audit.metrics

    # -------------------------------------------------------------------------
    # Checks
    # -------------------------------------------------------------------------

    @staticmethod
    def _reachable_from_spawn(arena: Arena) -> set[tuple[int, int]]:
        if arena.spawn is None or not arena.in_bounds(*arena.spawn):
            return set()
        return flood_fill_walkable(arena, arena.spawn)

    def _check_structural(
        self, arena: Arena, reached: set[tuple[int, int]], audit: _Audit
    ) -> None:
        spawns = arena.positions_where(lambda m: ModuleTag.SPAWN in m.tags)
        if arena.spawn is None or not spawns:
            audit.report(
                AnomalyCategory.STRUCTURAL,
                "No player spawn point found",
                Severity.CRITICAL,
            )
        elif len(spawns) > 1:
            audit.report(
                AnomalyCategory.STRUCTURAL,
                f"{len(spawns)} spawn points found (expected exactly one)",
                Severity.CRITICAL,
                spawns[1],
            )

        unassigned = arena.size * arena.size - arena.module_count
        if unassigned:
            audit.report(
                AnomalyCategory.STRUCTURAL,
                f"{unassigned} cells left without a module",
                Severity.CRITICAL,
            )

        if arena.spawn is None:
            return
        walkable = arena.positions_where(lambda m: m.walkable)
        cut_off = [pos for pos in walkable if pos not in reached]
        audit.record("reachable_walkable_ratio", len(reached) / max(len(walkable), 1))
        if cut_off:
            audit.report(
                AnomalyCategory.STRUCTURAL,
                f"{len(cut_off)} walkable cells unreachable from spawn",
                Severity.CRITICAL,
                cut_off[0],
            )

    def _check_bounds(self, arena: Arena, audit: _Audit) -> None:
        if arena.grid.shape != (arena.size, arena.size):
            audit.report(
                AnomalyCategory.BOUNDS,
                f"Grid shape {arena.grid.shape} does not match size {arena.size}",
                Severity.CRITICAL,
            )

        positions = list(arena.orbs)
        if arena.spawn is not None:
            positions.append(arena.spawn)
        for x, y in sorted(positions):
            if not arena.in_bounds(x, y):
                audit.report(
                    AnomalyCategory.BOUNDS,
                    f"Module at ({x}, {y}) outside arena bounds "
                    f"{arena.size}x{arena.size}",
                    Severity.CRITICAL,
                    (x, y),
                )

    def _check_reachability(
        self, arena: Arena, reached: set[tuple[int, int]], audit: _Audit
    ) -> None:
        # A missing spawn is already a structural failure
        if arena.spawn is None:
            return

        for pos in sorted(arena.orbs):
            if arena.in_bounds(*pos) and pos not in reached:
                audit.report(
                    AnomalyCategory.REACHABILITY,
                    "Energy orb unreachable from player spawn",
                    Severity.CRITICAL,
                    pos,
                )

        for pos, module in arena.cells():
            if not module.important or pos in arena.orbs:
                continue
            # Non-walkable targets count as reached from an adjacent cell
            ok = pos in reached if module.walkable else touches(arena, pos, reached)
            if not ok:
                audit.report(
                    AnomalyCategory.REACHABILITY,
                    f"{module.id} unreachable from player spawn",
                    Severity.CRITICAL,
                    pos,
                )

    def _check_balance(self, arena: Arena, audit: _Audit) -> None:
        stats = arena.statistics()
        orb_density = stats.energy_orbs / stats.total_cells
        audit.record("hazard_density", stats.hazard_density)
        audit.record("walkable_ratio", stats.walkable_ratio)
        audit.record("orb_density", orb_density)

        if stats.hazard_density > self.thresholds.max_hazard_density:
            audit.report(
                AnomalyCategory.BALANCE,
                f"Excessive hazard density: {stats.hazard_density:.3f} "
                f"(recommended < {self.thresholds.max_hazard_density})",
                Severity.WARNING,
            )

        if stats.hazard_cells:
            ratio = stats.walkable_cells / stats.hazard_cells
            audit.record("walkable_danger_ratio", ratio)
            if ratio < self.thresholds.min_walkable_danger_ratio:
                audit.report(
                    AnomalyCategory.BALANCE,
                    f"Walkable/danger ratio {ratio:.2f} below "
                    f"{self.thresholds.min_walkable_danger_ratio}",
                    Severity.WARNING,
                )

        if orb_density < self.thresholds.min_orb_density:
            audit.report(
                AnomalyCategory.BALANCE,
                f"Low energy orb density: {orb_density:.3f} "
                f"(recommended > {self.thresholds.min_orb_density})",
                Severity.WARNING,
            )

    def _check_rules(self, arena: Arena, audit: _Audit) -> None:
        rules = arena.active_rules
        for i, first in enumerate(rules):
            for second in rules[i + 1 :]:
                if not first.is_compatible_with(second):
                    audit.report(
                        AnomalyCategory.RULES,
                        f"Incompatible rules active: {first.id} and {second.id}",
                        Severity.CRITICAL,
                    )

        env = arena.environment
        audit.record("gravity", env.gravity)
        audit.record("game_speed", env.game_speed)
        for var_id in sorted(env.clamped):
            audit.report(
                AnomalyCategory.RULES,
                f"{var_id} effect {env.unclamped[var_id]:.2f} clamped to "
                f"{env.value(var_id):.2f}",
                Severity.WARNING,
            )

        active = set(arena.active_rule_ids)
        counts = arena.count_by_id()
        moon_max = self.thresholds.moon_gravity_max
        if RuleID.MOON_GRAVITY in active and env.gravity > moon_max:
            audit.report(
                AnomalyCategory.RULES,
                f"Moon Gravity rule active but gravity is {env.gravity:.2f} "
                f"(expected <= {moon_max})",
                Severity.WARNING,
            )
        if RuleID.LAVA_FLOOR in active and counts[ModuleID.LAVA_PIT] == 0:
            audit.report(
                AnomalyCategory.RULES,
                "Lava Floor rule active but no lava pits found",
                Severity.WARNING,
            )
        if RuleID.ORB_COLLECTION in active and not arena.orbs:
            audit.report(
                AnomalyCategory.RULES,
                "Orb Collection rule active but no energy orbs found",
                Severity.WARNING,
            )

    def _check_spatial(self, arena: Arena, audit: _Audit) -> None:
        hazards: dict[ModuleID, list[tuple[int, int]]] = {}
        for pos, module in arena.cells():
            if module.hazard:
                hazards.setdefault(module.id, []).append(pos)

        for module_id, positions in hazards.items():
            spacing = average_pairwise_distance(positions)
            if spacing < self.thresholds.min_hazard_spacing:
                audit.report(
                    AnomalyCategory.SPATIAL,
                    f"{module_id} modules too clustered (avg distance: {spacing:.1f})",
                    Severity.WARNING,
                    positions[0],
                )

        for (x, y), module in arena.cells():
            if not (module.walkable or module.important):
                continue
            if count_walkable_neighbors(arena, x, y) == 0:
                audit.report(
                    AnomalyCategory.SPATIAL,
                    f"{module.id} is isolated (no adjacent walkable surfaces)",
                    Severity.WARNING,
                    (x, y),
                )

    def _check_performance(self, arena: Arena, elapsed_s: float, audit: _Audit) -> None:
        budget = self.thresholds.performance_budget(arena.size)
        audit.record("generation_time_s", elapsed_s)
        if elapsed_s > budget:
            audit.report(
                AnomalyCategory.PERFORMANCE,
                f"Generation took {elapsed_s:.2f}s (budget {budget:.2f}s "
                f"for {arena.size}x{arena.size})",
                Severity.INFO,
            )

    def _check_distribution(self, arena: Arena, audit: _Audit) -> None:
        """Compare interior class shares with what the biased weights predict.

        Two shares are checked: hazards among blocking cells and collectibles
        among walkable cells. The perimeter and the spawn are placed by rule,
        not by weight, and are left out.
        """
        weights = biased_weights(arena.active_rules, self.context.modules)

        def share(modules, predicate) -> float | None:
            total = sum(weights.get(m.id, 0.0) for m in modules)
            if total <= 0:
                return None
            return sum(weights.get(m.id, 0.0) for m in modules if predicate(m)) / total

        palette = [m for m in arena.palette if weights.get(m.id, 0.0) > 0]
        last = arena.size - 1
        interior = [
            module
            for (x, y), module in arena.cells()
            if 0 < x < last and 0 < y < last and ModuleTag.SPAWN not in module.tags
        ]

        checks = (
            ("hazard_share", lambda m: m.blocking, lambda m: m.hazard),
            (
                "orb_share",
                lambda m: m.walkable,
                lambda m: ModuleTag.COLLECTIBLE in m.tags,
            ),
        )
        for name, in_class, predicate in checks:
            observed_class = [m for m in interior if in_class(m)]
            expected = share([m for m in palette if in_class(m)], predicate)
            samples = len(observed_class)
            if expected is None or samples < self.thresholds.distribution_min_samples:
                continue

            observed = sum(1 for m in observed_class if predicate(m)) / samples
            audit.record(name, observed)
            if abs(observed - expected) > self.thresholds.distribution_tolerance:
                audit.report(
                    AnomalyCategory.DISTRIBUTION,
                    f"{name} {observed:.2f} deviates from expected {expected:.2f}",
                    Severity.INFO,
                )
