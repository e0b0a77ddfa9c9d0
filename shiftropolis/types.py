from __future__ import annotations

# =============================================================================
# SPATIAL TYPES
# =============================================================================

type GridCoord = int  # Always integer cell position

# Grid coordinates - absolute positions inside an arena
type GridPos = tuple[GridCoord, GridCoord]  # Example: (5, 3) = column 5, row 3

# =============================================================================
# GENERATION TYPES
# =============================================================================

# Seeds accepted by the generator and the runners. None means system entropy.
type RandomSeed = int | str | None

# Inclusive (min, max) ranges used by the stress runner
type IntRange = tuple[int, int]
type FloatRange = tuple[float, float]
