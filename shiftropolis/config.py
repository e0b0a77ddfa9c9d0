"""
Configuration constants.

Centralizes all magic numbers and configuration values used by the generator,
the anomaly monitor and the stress/benchmark runners.
Organized by functional area for easy maintenance.
"""

from shiftropolis.types import IntRange

# =============================================================================
# GENERAL
# =============================================================================

# Seed for process-level streams (stat reservoirs); None draws from entropy
# RANDOM_SEED = None
RANDOM_SEED = 12345

# =============================================================================
# ARENA GENERATION
# =============================================================================

# Smallest arena that still has an interior once the perimeter is walled off
MIN_ARENA_SIZE = 4

# Number of most recent collapses reverted for one contradiction
BACKTRACK_DEPTH = 5

# Contradictions tolerated per generation before giving up
RETRY_BUDGET = 50

# Jitter applied to environment variables no active rule touches,
# as a fraction of the variable's valid range (total width, centred on default)
ENV_VARIANCE_FRACTION = 0.1

# Rule-driven environment effects
MOON_GRAVITY_JITTER = 0.2  # gravity = gravityMultiplier + [0, jitter)
SPEED_UP_FACTOR_RANGE = (1.2, 1.5)

# Rule selection bias: a movement or hazard rule is halved once more than
# RULE_DIVERSITY_LIMIT rules of that kind are chosen; difficulty tags scale any rule
RULE_DIVERSITY_TAGS = ("movement", "hazard")
RULE_DIVERSITY_LIMIT = 1
RULE_DIVERSITY_PENALTY = 0.5
RULE_DIFFICULTY_BIAS = {"difficulty_easy": 1.2, "difficulty_hard": 0.8}

# =============================================================================
# ANOMALY MONITOR THRESHOLDS
# =============================================================================

MAX_HAZARD_DENSITY = 0.4  # hazards / total cells
MIN_WALKABLE_DANGER_RATIO = 2.0  # walkable cells / hazard cells
MIN_ORB_DENSITY = 0.02  # orbs / total cells
MIN_HAZARD_SPACING = 2.0  # mean pairwise distance between same-kind hazards
MOON_GRAVITY_MAX = 0.5

# Performance budget: base + per-cell cost, in seconds
PERFORMANCE_BASE_BUDGET = 0.25
PERFORMANCE_PER_CELL_BUDGET = 0.002

# Distribution check: absolute share tolerance and minimum class size
DISTRIBUTION_TOLERANCE = 0.25
DISTRIBUTION_MIN_SAMPLES = 10

# =============================================================================
# STRESS & BENCHMARK
# =============================================================================

DEFAULT_STRESS_SIZE_RANGE: IntRange = (8, 24)
DEFAULT_STRESS_RULES_RANGE: IntRange = (0, 4)

DEFAULT_BENCHMARK_SIZE = 20
DEFAULT_BENCHMARK_RULES = 3

# Sample tracemalloc's peak every N benchmark generations
MEMORY_SAMPLE_INTERVAL = 10

# Reservoir size for benchmark generation-time percentiles
BENCHMARK_TIMING_SAMPLES = 1000
