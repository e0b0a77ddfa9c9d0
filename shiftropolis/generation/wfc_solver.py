"""Generic Wave Function Collapse solver with bounded backtracking.

This module provides a reusable WFC solver that can be used with any pattern set.
The solver is pattern-agnostic - it takes any dict[PatternType, WFCPattern] and
solves the constraint satisfaction problem.

Usage:
    from shiftropolis.generation.wfc_solver import WFCSolver, WFCPattern

    # Define patterns with adjacency rules
    patterns = {
        PatternA: WFCPattern(PatternA, weight=3.0, valid_neighbors={...}),
        PatternB: WFCPattern(PatternB, weight=1.0, valid_neighbors={...}),
    }

    # Create and run solver
    solver = WFCSolver(width, height, patterns, rng)
    result = solver.solve()  # Returns grid of pattern IDs, indexed [x][y]

Implementation notes:
    1. Bitset representation: each cell's possibilities are a uint64 bitmask in
       a numpy array (bit i = pattern i), so up to 64 patterns are supported.
       Intersection is a bitwise AND and the domain size is a popcount.

    2. Cached propagation masks: for each direction and each bit we precompute
       the mask of patterns allowed on that side. The mask for a whole domain
       is the OR of its bits and is memoised per (direction, domain).

    3. Minimum remaining domain: the next cell to collapse is the undecided cell
       with the fewest candidates, ties going to the lowest row-major index
       (y * width + x). Together with a seeded RNG this makes the solve
       reproducible.

    4. Backtracking: every collapse pushes a frame (cell, chosen pattern, wave
       snapshot). A contradiction reverts up to ``backtrack_depth`` frames,
       removing the failed choice from each reverted cell, and costs one unit
       of ``retry_budget``. When the budget is spent the solver raises
       WFCExhausted and the partially collapsed wave stays inspectable.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

import numpy as np

from shiftropolis import config
from shiftropolis.errors import ShiftropolisError
from shiftropolis.util.rng import RNG


class WFCContradiction(ShiftropolisError):
    """Raised when WFC reaches an unsolvable state.

    This occurs when constraint propagation eliminates all possibilities
    for a cell, meaning no valid solution exists with the current constraints.
    """

    pass


class WFCExhausted(WFCContradiction):
    """Raised when contradictions keep recurring after the retry budget is spent,
    or when there is no earlier collapse left to revert."""

    pass


@dataclass
class WFCPattern[PatternType]:
    """A single WFC pattern with adjacency rules.

    Attributes:
        pattern_id: Unique identifier for this pattern.
        weight: Relative probability weight for selection (higher = more common).
        valid_neighbors: Dict mapping direction ("N", "NE", "E", ...) to sets of
            pattern IDs that can be adjacent in that direction. A direction that
            is missing allows no neighbours at all.
    """

    pattern_id: PatternType
    weight: float = 1.0
    valid_neighbors: dict[str, set[PatternType]] = field(default_factory=dict)


# Direction utilities
CARDINAL_DIRECTIONS = ["N", "E", "S", "W"]
DIRECTIONS = ["N", "NE", "E", "SE", "S", "SW", "W", "NW"]
OPPOSITE_DIR = {
    "N": "S",
    "NE": "SW",
    "E": "W",
    "SE": "NW",
    "S": "N",
    "SW": "NE",
    "W": "E",
    "NW": "SE",
}
DIR_OFFSETS = {
    "N": (0, -1),
    "NE": (1, -1),
    "E": (1, 0),
    "SE": (1, 1),
    "S": (0, 1),
    "SW": (-1, 1),
    "W": (-1, 0),
    "NW": (-1, -1),
}

MAX_PATTERNS = 64

# Chooser callback: (x, y, candidates in bit order) -> chosen pattern or None
type PatternChooser[PatternType] = Callable[
    [int, int, list[PatternType]], PatternType | None
]


@dataclass
class _Frame:
    """One collapse decision on the backtracking stack."""

    x: int
    y: int
    bit: int
    snapshot: np.ndarray


class WFCSolver[PatternType]:
    """Core Wave Function Collapse solver with bitset domains and backtracking.

    This solver implements the WFC algorithm for constraint propagation:
    1. Initialize all cells with all possible patterns (as bitmasks)
    2. Find the undecided cell with the smallest domain
    3. Collapse that cell to a single pattern (weighted random choice)
    4. Propagate constraints to neighbors using bitwise operations
    5. On contradiction, revert recent collapses and try other candidates
    6. Repeat until all cells are decided or the retry budget runs out

    The solver is generic over the pattern type, allowing it to work with
    any pattern set.
    """

    def __init__(
        self,
        width: int,
        height: int,
        patterns: dict[PatternType, WFCPattern[PatternType]],
        rng: RNG,
        *,
        directions: Sequence[str] = DIRECTIONS,
        chooser: PatternChooser[PatternType] | None = None,
        exempt_border_pairs: bool = False,
        backtrack_depth: int = config.BACKTRACK_DEPTH,
        retry_budget: int = config.RETRY_BUDGET,
    ):
        """Initialize the WFC solver.

        Args:
            width: Grid width in cells.
            height: Grid height in cells.
            patterns: Dict mapping pattern IDs to WFCPattern definitions.
            rng: Random number generator for deterministic results.
            directions: Neighbourhood used for propagation. Defaults to all
                eight directions; pass CARDINAL_DIRECTIONS for 4-neighbour rules.
            chooser: Optional callback picking the pattern for a cell from its
                remaining candidates. Defaults to a weighted draw using each
                pattern's weight.
            exempt_border_pairs: If True, two cells that both lie on the grid
                edge never constrain each other.
            backtrack_depth: Most recent collapses reverted per contradiction.
            retry_budget: Contradictions tolerated before giving up.
        """
        self.width = width
        self.height = height
        self.patterns = patterns
        self.rng = rng
        self.directions = tuple(directions)
        self.exempt_border_pairs = exempt_border_pairs
        self.backtrack_depth = backtrack_depth
        self.retry_budget = retry_budget
        self._chooser = chooser

        # Build mapping from pattern IDs to bit indices (0, 1, 2, ...)
        self.pattern_ids = list(patterns.keys())
        self.num_patterns = len(self.pattern_ids)

        if self.num_patterns == 0:
            raise ValueError("WFCSolver needs at least one pattern")
        if self.num_patterns > MAX_PATTERNS:
            raise ValueError(
                f"WFCSolver supports at most {MAX_PATTERNS} patterns, "
                f"got {self.num_patterns}."
            )

        self.pattern_to_bit: dict[PatternType, int] = {
            pid: i for i, pid in enumerate(self.pattern_ids)
        }
        self.bit_to_pattern: dict[int, PatternType] = dict(enumerate(self.pattern_ids))

        self.pattern_weights = np.array(
            [patterns[pid].weight for pid in self.pattern_ids], dtype=np.float64
        )

        self.all_patterns_mask = (1 << self.num_patterns) - 1

        # Wave: uint64 bitmask per cell. Shape is (width, height).
        self.wave = np.full((width, height), self.all_patterns_mask, dtype=np.uint64)

        # Counters exposed as generation metrics
        self.collapses = 0
        self.contradictions = 0
        self.backtracks = 0

        self._frames: list[_Frame] = []
        self._precompute_propagation_masks()

    # -------------------------------------------------------------------------
    # Setup
    # -------------------------------------------------------------------------

    def _precompute_propagation_masks(self) -> None:
        """Precompute, per direction and per bit, the mask of allowed neighbours."""
        self._bit_masks: dict[str, list[int]] = {}
        for direction in self.directions:
            per_bit: list[int] = []
            for bit_idx in range(self.num_patterns):
                pattern = self.patterns[self.bit_to_pattern[bit_idx]]
                valid = 0
                for neighbor_pid in pattern.valid_neighbors.get(direction, ()):
                    if neighbor_pid in self.pattern_to_bit:
                        valid |= 1 << self.pattern_to_bit[neighbor_pid]
                per_bit.append(valid)
            self._bit_masks[direction] = per_bit
        self._mask_cache: dict[tuple[str, int], int] = {}

    def _allowed_neighbors(self, direction: str, mask: int) -> int:
        key = (direction, mask)
        cached = self._mask_cache.get(key)
        if cached is not None:
            return cached

        per_bit = self._bit_masks[direction]
        valid = 0
        remaining = mask
        while remaining:
            low = remaining & -remaining
            valid |= per_bit[low.bit_length() - 1]
            remaining ^= low
        self._mask_cache[key] = valid
        return valid

    def _to_mask(self, allowed: set[PatternType] | frozenset[PatternType]) -> int:
        mask = 0
        for pid in allowed:
            if pid in self.pattern_to_bit:
                mask |= 1 << self.pattern_to_bit[pid]
        return mask

    def _on_border(self, x: int, y: int) -> bool:
        return x == 0 or y == 0 or x == self.width - 1 or y == self.height - 1

    # -------------------------------------------------------------------------
    # Constraints
    # -------------------------------------------------------------------------

    def constrain_cell(self, x: int, y: int, allowed: set[PatternType]) -> None:
        """Constrain a cell to only allow specific patterns.

        This is useful for applying boundary conditions or seeding specific
        patterns before solving. The constraint is immediately propagated
        to neighboring cells.

        Raises:
            WFCContradiction: If the cell or a neighbour runs out of candidates.
        """
        self.constrain_cells([(x, y, allowed)])

    def constrain_cells(self, cells: list[tuple[int, int, set[PatternType]]]) -> None:
        """Constrain multiple cells and propagate constraints once.

        Args:
            cells: List of (x, y, allowed_patterns) tuples.

        Raises:
            WFCContradiction: If any cell runs out of candidates.
        """
        changed_cells: list[tuple[int, int]] = []

        for x, y, allowed in cells:
            old_mask = int(self.wave[x, y])
            new_mask = old_mask & self._to_mask(allowed)

            if new_mask == 0:
                raise WFCContradiction(
                    f"No valid patterns at ({x}, {y}) after constraint"
                )

            if new_mask != old_mask:
                self.wave[x, y] = new_mask
                changed_cells.append((x, y))

        self._propagate(changed_cells)

    def _propagate(self, cells: list[tuple[int, int]]) -> None:
        """Propagate constraints outward from the given cells."""
        if not cells:
            return

        stack = list(cells)
        in_stack = set(cells)

        iterations = 0
        max_iterations = self.width * self.height * (self.num_patterns + 1) * 2

        while stack:
            iterations += 1
            if iterations > max_iterations:
                raise WFCContradiction("Propagation exceeded maximum iterations")

            x, y = stack.pop()
            in_stack.discard((x, y))

            current_mask = int(self.wave[x, y])
            on_border = self.exempt_border_pairs and self._on_border(x, y)

            for direction in self.directions:
                dx, dy = DIR_OFFSETS[direction]
                nx, ny = x + dx, y + dy

                if not (0 <= nx < self.width and 0 <= ny < self.height):
                    continue
                if on_border and self._on_border(nx, ny):
                    continue

                neighbor_mask = int(self.wave[nx, ny])
                new_mask = neighbor_mask & self._allowed_neighbors(
                    direction, current_mask
                )

                if new_mask != neighbor_mask:
                    if new_mask == 0:
                        raise WFCContradiction(
                            f"No valid patterns at ({nx}, {ny}) after propagation"
                        )

                    self.wave[nx, ny] = new_mask

                    if (nx, ny) not in in_stack:
                        stack.append((nx, ny))
                        in_stack.add((nx, ny))

    # -------------------------------------------------------------------------
    # Solve loop
    # -------------------------------------------------------------------------

    def _domain_sizes(self) -> np.ndarray:
        return np.bitwise_count(self.wave)

    def _select_cell(self) -> tuple[int, int] | None:
        """Undecided cell with the smallest domain, lowest row-major index first."""
        sizes = self._domain_sizes().astype(np.int64)
        if not sizes.all():
            x, y = np.argwhere(sizes == 0)[0]
            raise WFCContradiction(f"No valid patterns at ({x}, {y})")
        undecided = sizes > 1
        if not undecided.any():
            return None

        ranked = np.where(undecided, sizes, MAX_PATTERNS + 1)
        # Transposed view is (height, width), so its flat order is y * width + x
        flat = int(np.argmin(ranked.T))
        return flat % self.width, flat // self.width

    def _candidates(self, x: int, y: int) -> list[PatternType]:
        mask = int(self.wave[x, y])
        return [
            self.bit_to_pattern[bit]
            for bit in range(self.num_patterns)
            if mask & (1 << bit)
        ]

    def _weighted_choice(
        self, x: int, y: int, candidates: list[PatternType]
    ) -> PatternType | None:
        weights = [self.pattern_weights[self.pattern_to_bit[pid]] for pid in candidates]
        total = float(sum(weights))
        if total <= 0:
            return None

        target = self.rng.random() * total
        cumulative = 0.0
        for pid, weight in zip(candidates, weights, strict=True):
            cumulative += weight
            if target < cumulative:
                return pid
        return candidates[-1]

    def _collapse(self, x: int, y: int) -> None:
        candidates = self._candidates(x, y)
        chooser = self._chooser or self._weighted_choice
        chosen = chooser(x, y, candidates)
        if chosen is None:
            raise WFCContradiction(f"No selectable pattern at ({x}, {y})")

        bit = self.pattern_to_bit[chosen]
        self._frames.append(_Frame(x, y, bit, self.wave.copy()))
        self.wave[x, y] = 1 << bit
        self.collapses += 1
        self._propagate([(x, y)])

    def _backtrack(self) -> None:
        """Revert up to ``backtrack_depth`` collapses until one has an alternative.

        Each reverted cell loses the candidate that led to the contradiction.

        Raises:
            WFCExhausted: If there is no collapse left to revert.
            WFCContradiction: If no reverted cell within the depth had a
                consistent alternative.
        """
        for _ in range(self.backtrack_depth):
            if not self._frames:
                raise WFCExhausted("Contradiction with no collapse left to revert")

            frame = self._frames.pop()
            self.backtracks += 1
            self.wave = frame.snapshot

            remaining = int(self.wave[frame.x, frame.y]) & ~(1 << frame.bit)
            if remaining == 0:
                continue

            self.wave[frame.x, frame.y] = remaining
            try:
                self._propagate([(frame.x, frame.y)])
            except WFCContradiction:
                continue
            return

        raise WFCContradiction(
            f"No alternative within the last {self.backtrack_depth} collapses"
        )

    def _recover(self, error: WFCContradiction) -> None:
        """Spend retry budget backtracking until the wave is consistent again."""
        while True:
            self.contradictions += 1
            if self.contradictions > self.retry_budget:
                raise WFCExhausted(
                    f"Retry budget of {self.retry_budget} exhausted: {error}"
                ) from error
            try:
                self._backtrack()
            except WFCExhausted:
                raise
            except WFCContradiction as again:
                error = again
                continue
            return

    def solve(self) -> list[list[PatternType]]:
        """Run the WFC algorithm to completion.

        Returns:
            Grid of pattern IDs indexed ``[x][y]``.

        Raises:
            WFCExhausted: If the retry budget runs out. ``partial_result()``
                still reports every cell decided at that point.
        """
        while True:
            cell = self._select_cell()
            if cell is None:
                break
            try:
                self._collapse(*cell)
            except WFCExhausted:
                raise
            except WFCContradiction as exc:
                self._recover(exc)

        return [
            [
                self.bit_to_pattern[int(self.wave[x, y]).bit_length() - 1]
                for y in range(self.height)
            ]
            for x in range(self.width)
        ]

    def partial_result(self) -> list[list[PatternType | None]]:
        """Decided pattern per cell, None where a cell still has 0 or >1 candidates."""
        result: list[list[PatternType | None]] = []
        for x in range(self.width):
            column: list[PatternType | None] = []
            for y in range(self.height):
                mask = int(self.wave[x, y])
                if mask and not mask & (mask - 1):
                    column.append(self.bit_to_pattern[mask.bit_length() - 1])
                else:
                    column.append(None)
            result.append(column)
        return result

    @property
    def wave_as_sets(self) -> list[list[set[PatternType]]]:
        """Convert the internal bitmask wave to sets for debugging/testing."""
        result: list[list[set[PatternType]]] = []
        for x in range(self.width):
            column: list[set[PatternType]] = []
            for y in range(self.height):
                mask = int(self.wave[x, y])
                column.append(
                    {
                        self.bit_to_pattern[bit]
                        for bit in range(self.num_patterns)
                        if mask & (1 << bit)
                    }
                )
            result.append(column)
        return result
