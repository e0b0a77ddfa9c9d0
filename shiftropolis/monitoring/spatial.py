"""Grid analysis helpers used by the anomaly monitor."""

from __future__ import annotations

import itertools
import math
from collections import deque
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from shiftropolis.generation.arena import Arena
    from shiftropolis.types import GridPos


def flood_fill_walkable(arena: Arena, start: GridPos) -> set[GridPos]:
    """Return every walkable cell 4-connected to ``start`` (inclusive).

    Movement only passes through walkable modules. An out-of-bounds or
    non-walkable start yields an empty set.
    """
    start_module = arena.module_at(*start)
    if start_module is None or not start_module.walkable:
        return set()

    visited = {start}
    queue = deque([start])
    while queue:
        x, y = queue.popleft()
        for nx, ny in arena.cardinal_neighbors(x, y):
            if (nx, ny) in visited:
                continue
            module = arena.module_at(nx, ny)
            if module is not None and module.walkable:
                visited.add((nx, ny))
                queue.append((nx, ny))
    return visited


def touches(arena: Arena, pos: GridPos, region: set[GridPos]) -> bool:
    """True if ``pos`` is in ``region`` or 4-adjacent to a cell of it."""
    if pos in region:
        return True
    return any(neighbor in region for neighbor in arena.cardinal_neighbors(*pos))


def count_walkable_neighbors(arena: Arena, x: int, y: int) -> int:
    count = 0
    for nx, ny in arena.cardinal_neighbors(x, y):
        module = arena.module_at(nx, ny)
        if module is not None and module.walkable:
            count += 1
    return count


def average_pairwise_distance(positions: list[GridPos]) -> float:
    """Mean Euclidean distance over all pairs, infinity for fewer than two points."""
    if len(positions) < 2:
        return math.inf

    total = 0.0
    count = 0
    for (ax, ay), (bx, by) in itertools.combinations(positions, 2):
        total += math.hypot(ax - bx, ay - by)
        count += 1
    return total / count
