"""WFC-based arena generator.

Generation steps:
1. Draw a mutually compatible rule subset.
2. Fold the rules onto the environment variables.
3. Restrict domains: perimeter cells to wall modules, interior cells to
   every module with a positive (rule-biased) weight.
4. Place the spawn on a seeded interior cell and propagate.
5. Collapse the rest by minimum remaining domain, sampling each cell through
   ModulesDatabase.weighted_sample with the rule-biased weights.
6. Backtrack on contradictions within a bounded retry budget.
7. If the budget runs out, return the partial arena with a Critical anomaly.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping

import numpy as np

from shiftropolis import config
from shiftropolis.data.context import GameDataContext, default_context
from shiftropolis.data.modules import Module, ModuleID, ModuleTag
from shiftropolis.errors import ConfigurationError
from shiftropolis.monitoring.anomalies import Anomaly, AnomalyCategory, Severity
from shiftropolis.types import GridPos, RandomSeed
from shiftropolis.util.rng import RNG, RNGProvider, entropy_seed

from .arena import UNASSIGNED, Arena, GenerationMetrics, GenerationResult
from .mutations import biased_weights, fold_environment
from .wfc_solver import (
    DIRECTIONS,
    PatternChooser,
    WFCContradiction,
    WFCPattern,
    WFCSolver,
)

logger = logging.getLogger(__name__)


def validate_request(size: int, rule_count: int) -> None:
    """Raise ConfigurationError for parameters no generation can honour."""
    if size < config.MIN_ARENA_SIZE:
        raise ConfigurationError(
            f"Arena size must be >= {config.MIN_ARENA_SIZE}, got {size}"
        )
    if rule_count < 0:
        raise ConfigurationError(f"Rule count must be >= 0, got {rule_count}")


class ArenaGenerator:
    """Generates arenas from the shared rule and module registries.

    The generator holds no per-generation state; ``generate`` builds a fresh
    solver each call, so one instance can serve several threads.
    """

    def __init__(
        self,
        context: GameDataContext | None = None,
        *,
        backtrack_depth: int = config.BACKTRACK_DEPTH,
        retry_budget: int = config.RETRY_BUDGET,
        fallback_module: ModuleID = ModuleID.FLOOR_STD,
    ) -> None:
        self.context = context or default_context()
        self.backtrack_depth = backtrack_depth
        self.retry_budget = retry_budget
        self.fallback_module = fallback_module

        palette = self.context.modules.all()
        self._spawn_module: Module | None = next(
            (m for m in palette if ModuleTag.SPAWN in m.tags), None
        )
        if self._spawn_module is None:
            logger.warning("Module set has no spawn module; arenas will lack a spawn")

    def generate(
        self, size: int, rule_count: int, seed: RandomSeed = None
    ) -> GenerationResult:
        """Generate one arena.

        Args:
            size: Grid dimension, at least MIN_ARENA_SIZE.
            rule_count: Desired number of active rules; fewer may be active if
                incompatibilities exhaust the pool.
            seed: Optional seed. Without one a seed is drawn from system entropy
                and recorded on the arena.

        Returns:
            A GenerationResult. Exhausted backtracking is reported as a Critical
            GENERATION anomaly with a partial arena, never raised.

        Raises:
            ConfigurationError: If size or rule_count is invalid.
        """
        validate_request(size, rule_count)
        resolved_seed = entropy_seed() if seed is None else seed
        provider = RNGProvider(resolved_seed)
        start = time.perf_counter()

        modules = self.context.modules
        rules = self.context.rules.compatible_subset(
            rule_count, provider.get("generation.rules")
        )
        environment = fold_environment(
            rules, self.context.env_vars, provider.get("generation.environment")
        )
        weights = biased_weights(rules, modules)
        spawn = self._pick_spawn(size, provider.get("generation.spawn"))

        wfc_rng = provider.get("generation.wfc")
        solver = WFCSolver(
            size,
            size,
            self._build_patterns(weights),
            wfc_rng,
            chooser=self._make_chooser(weights, wfc_rng),
            exempt_border_pairs=True,
            backtrack_depth=self.backtrack_depth,
            retry_budget=self.retry_budget,
        )

        anomalies: list[Anomaly] = []
        try:
            solver.constrain_cells(self._initial_domains(size, spawn, weights))
            columns = solver.solve()
        except WFCContradiction as exc:
            logger.warning(
                "Generation failed (size=%d, seed=%s) after %d contradictions: %s",
                size,
                resolved_seed,
                solver.contradictions,
                exc,
            )
            columns = solver.partial_result()
            anomalies.append(
                Anomaly(
                    Severity.CRITICAL,
                    AnomalyCategory.GENERATION,
                    f"Generation failed due to critical anomalies: {exc}",
                )
            )

        grid = np.full((size, size), UNASSIGNED, dtype=np.int16)
        for x, column in enumerate(columns):
            for y, module_id in enumerate(column):
                if module_id is not None:
                    grid[x, y] = modules.index_of(module_id)

        palette = modules.all()
        located_spawn = self._locate_spawn(grid, palette, spawn)
        orbs = frozenset(
            (x, y)
            for x in range(size)
            for y in range(size)
            if grid[x, y] != UNASSIGNED
            and ModuleTag.COLLECTIBLE in palette[grid[x, y]].tags
        )

        arena = Arena(
            size=size,
            grid=grid,
            palette=palette,
            active_rules=rules,
            environment=environment,
            spawn=located_spawn,
            orbs=orbs,
            seed=resolved_seed,
        )
        elapsed = time.perf_counter() - start
        metrics = GenerationMetrics(
            elapsed_s=elapsed,
            module_count=arena.module_count,
            orb_count=len(orbs),
            collapses=solver.collapses,
            contradictions=solver.contradictions,
            backtracks=solver.backtracks,
        )
        logger.debug(
            "Generated %dx%d arena seed=%s rules=%s in %.3fs "
            "(%d collapses, %d backtracks)",
            size,
            size,
            resolved_seed,
            [str(rule.id) for rule in rules],
            elapsed,
            solver.collapses,
            solver.backtracks,
        )
        return GenerationResult(
            arena=arena, anomalies=tuple(anomalies), metrics=metrics
        )

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _build_patterns(
        self, weights: Mapping[ModuleID, float]
    ) -> dict[ModuleID, WFCPattern[ModuleID]]:
        palette = self.context.modules.all()
        patterns: dict[ModuleID, WFCPattern[ModuleID]] = {}
        for module in palette:
            compatible = {other.id for other in palette if module.can_neighbor(other)}
            patterns[module.id] = WFCPattern(
                pattern_id=module.id,
                weight=weights[module.id],
                valid_neighbors={direction: compatible for direction in DIRECTIONS},
            )
        return patterns

    def _make_chooser(
        self, weights: Mapping[ModuleID, float], rng: RNG
    ) -> PatternChooser[ModuleID]:
        modules = self.context.modules
        fallback = self.fallback_module

        def choose(x: int, y: int, candidates: list[ModuleID]) -> ModuleID | None:
            module = modules.weighted_sample(
                (), rng, candidates=candidates, weights=weights
            )
            if module is not None:
                return module.id
            if fallback in candidates:
                return fallback
            return None

        return choose

    def _pick_spawn(self, size: int, rng: RNG) -> GridPos:
        """A seeded interior cell; the perimeter is reserved for walls."""
        return rng.randint(1, size - 2), rng.randint(1, size - 2)

    def _initial_domains(
        self, size: int, spawn: GridPos, weights: Mapping[ModuleID, float]
    ) -> list[tuple[int, int, set[ModuleID]]]:
        palette = self.context.modules.all()
        placeable = {m.id for m in palette if weights[m.id] > 0}
        border = {m.id for m in palette if ModuleTag.WALL in m.tags} & placeable

        domains: list[tuple[int, int, set[ModuleID]]] = []
        for y in range(size):
            for x in range(size):
                if (x, y) == spawn and self._spawn_module is not None:
                    domains.append((x, y, {self._spawn_module.id}))
                elif x in (0, size - 1) or y in (0, size - 1):
                    domains.append((x, y, border))
                else:
                    domains.append((x, y, placeable))
        return domains

    @staticmethod
    def _locate_spawn(
        grid: np.ndarray, palette: tuple[Module, ...], requested: GridPos
    ) -> GridPos | None:
        index = int(grid[requested])
        if index != UNASSIGNED and ModuleTag.SPAWN in palette[index].tags:
            return requested
        size = grid.shape[0]
        for y in range(size):
            for x in range(size):
                index = int(grid[x, y])
                if index != UNASSIGNED and ModuleTag.SPAWN in palette[index].tags:
                    return (x, y)
        return None
