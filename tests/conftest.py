from __future__ import annotations

from collections.abc import Callable, Iterator, Sequence
from types import MappingProxyType

import numpy as np
import pytest

from shiftropolis.data import (
    EnvVarID,
    GameDataContext,
    ModuleID,
    ModuleTag,
    Rule,
    default_context,
)
from shiftropolis.generation.arena import (
    UNASSIGNED,
    Arena,
    GenerationMetrics,
    GenerationResult,
)
from shiftropolis.generation.mutations import EnvironmentVariables
from shiftropolis.types import GridPos
from shiftropolis.util import rng

# One character per cell in hand-drawn arenas; rows are y, columns are x.
LEGEND: dict[str, ModuleID | None] = {
    "#": ModuleID.WALL_LOW,
    ".": ModuleID.FLOOR_STD,
    "P": ModuleID.PLAYER,
    "o": ModuleID.ORB_ENERGY,
    "L": ModuleID.LAVA_PIT,
    "S": ModuleID.LASER_STATIC,
    "T": ModuleID.LASER_TURRET,
    "B": ModuleID.BUTTON_WALL,
    "F": ModuleID.BUTTON_FLOOR,
    "R": ModuleID.LEVER,
    "?": None,
}

type ArenaBuilder = Callable[..., Arena]


def neutral_environment(
    gravity: float = 1.0, game_speed: float = 1.0, **unclamped: float
) -> EnvironmentVariables:
    raw = {EnvVarID.GRAVITY: gravity, EnvVarID.GAME_SPEED: game_speed}
    raw.update({EnvVarID(name): value for name, value in unclamped.items()})
    return EnvironmentVariables(
        gravity=gravity, game_speed=game_speed, unclamped=MappingProxyType(raw)
    )


def build_arena(
    rows: Sequence[str],
    *,
    rules: Sequence[Rule] = (),
    environment: EnvironmentVariables | None = None,
    spawn: GridPos | None | str = "auto",
    orbs: frozenset[GridPos] | None = None,
    context: GameDataContext | None = None,
) -> Arena:
    """Build an Arena from a square ASCII drawing (see LEGEND)."""
    context = context or default_context()
    modules = context.modules
    size = len(rows)
    assert all(len(row) == size for row in rows), "drawing must be square"

    grid = np.full((size, size), UNASSIGNED, dtype=np.int16)
    for y, row in enumerate(rows):
        for x, char in enumerate(row):
            module_id = LEGEND[char]
            if module_id is not None:
                grid[x, y] = modules.index_of(module_id)

    palette = modules.all()

    def positions(tag: str) -> list[GridPos]:
        return [
            (x, y)
            for y in range(size)
            for x in range(size)
            if grid[x, y] != UNASSIGNED and tag in palette[grid[x, y]].tags
        ]

    if spawn == "auto":
        found = positions(ModuleTag.SPAWN)
        spawn = found[0] if found else None
    if orbs is None:
        orbs = frozenset(positions(ModuleTag.COLLECTIBLE))

    return Arena(
        size=size,
        grid=grid,
        palette=palette,
        active_rules=tuple(rules),
        environment=environment or neutral_environment(),
        spawn=spawn,
        orbs=orbs,
        seed=0,
    )


def wrap_result(arena: Arena, elapsed_s: float = 0.0) -> GenerationResult:
    return GenerationResult(
        arena=arena,
        metrics=GenerationMetrics(
            elapsed_s=elapsed_s,
            module_count=arena.module_count,
            orb_count=len(arena.orbs),
        ),
    )


@pytest.fixture(autouse=True)
def seeded_process_rng() -> Iterator[None]:
    """Make reservoir sampling in util.metrics reproducible across tests."""
    rng.init(12345)
    yield


@pytest.fixture
def context() -> GameDataContext:
    return default_context()


@pytest.fixture
def arena_builder() -> ArenaBuilder:
    return build_arena


@pytest.fixture
def result_builder() -> Callable[..., GenerationResult]:
    return wrap_result


@pytest.fixture
def environment_builder() -> Callable[..., EnvironmentVariables]:
    return neutral_environment
