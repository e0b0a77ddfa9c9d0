"""Immutable game data registries.

- RulesDatabase: gameplay rules and their pairwise incompatibilities
- ModulesDatabase: placeable grid-cell modules and their placement weights
- EnvVarsDatabase: environment variable definitions and valid ranges
- GameDataContext: the three registries bundled for shared read-only use
"""

from .context import GameDataContext, default_context
from .env_vars import EnvironmentVariable, EnvVarID, EnvVarsDatabase
from .modules import Module, ModuleID, ModulesDatabase, ModuleTag
from .rules import Rule, RuleID, RulesDatabase

__all__ = [
    "EnvVarID",
    "EnvVarsDatabase",
    "EnvironmentVariable",
    "GameDataContext",
    "Module",
    "ModuleID",
    "ModuleTag",
    "ModulesDatabase",
    "Rule",
    "RuleID",
    "RulesDatabase",
    "default_context",
]
