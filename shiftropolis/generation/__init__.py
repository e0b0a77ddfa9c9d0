"""Arena generation.

- wfc_solver: generic bitset Wave Function Collapse with bounded backtracking
- mutations: folds active rules into environment values and module weights
- arena: Arena, GenerationResult and related value types
- generator: ArenaGenerator, which ties the above to the game data registries
"""

from .arena import Arena, ArenaStatistics, GenerationMetrics, GenerationResult
from .generator import ArenaGenerator, validate_request
from .mutations import EnvironmentVariables, biased_weights, fold_environment
from .wfc_solver import WFCContradiction, WFCExhausted, WFCPattern, WFCSolver

__all__ = [
    "Arena",
    "ArenaGenerator",
    "ArenaStatistics",
    "EnvironmentVariables",
    "GenerationMetrics",
    "GenerationResult",
    "WFCContradiction",
    "WFCExhausted",
    "WFCPattern",
    "WFCSolver",
    "biased_weights",
    "fold_environment",
    "validate_request",
]
