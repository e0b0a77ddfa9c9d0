"""Process-wide read-only game data.

The registries are built once and then only read, so a single context can be
shared by every generator, monitor and worker thread without locking.
"""

from __future__ import annotations

import functools
from dataclasses import dataclass, field

from .env_vars import EnvVarsDatabase
from .modules import ModulesDatabase
from .rules import RulesDatabase


@dataclass(frozen=True)
class GameDataContext:
    rules: RulesDatabase = field(default_factory=RulesDatabase)
    modules: ModulesDatabase = field(default_factory=ModulesDatabase)
    env_vars: EnvVarsDatabase = field(default_factory=EnvVarsDatabase)


@functools.cache
def default_context() -> GameDataContext:
    """The built-in registries, constructed on first use."""
    return GameDataContext()
