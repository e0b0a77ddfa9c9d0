"""Environment variable definitions.

Environment variables are the global physics modifiers of an arena. Rules
fold onto their defaults during generation (see generation.mutations); the
definitions here only describe names, defaults and valid ranges.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import StrEnum

from shiftropolis.errors import ConfigurationError, NotFoundError
from shiftropolis.types import FloatRange


class EnvVarID(StrEnum):
    GRAVITY = "GRAVITY"
    GAME_SPEED = "GAME_SPEED"


@dataclass(frozen=True)
class EnvironmentVariable:
    id: EnvVarID
    name: str
    description: str
    default: float
    range: FloatRange

    def clamp(self, value: float) -> float:
        low, high = self.range
        return min(max(value, low), high)

    def contains(self, value: float) -> bool:
        low, high = self.range
        return low <= value <= high


def create_default_env_vars() -> list[EnvironmentVariable]:
    return [
        EnvironmentVariable(
            EnvVarID.GRAVITY,
            "Global Gravity",
            "Modifies global attraction.",
            1.0,
            (0.2, 3.0),
        ),
        EnvironmentVariable(
            EnvVarID.GAME_SPEED,
            "Game Speed",
            "Modifies global game speed.",
            1.0,
            (0.5, 2.0),
        ),
    ]


class EnvVarsDatabase:
    """Immutable registry of environment variable definitions."""

    def __init__(self, variables: Iterable[EnvironmentVariable] | None = None) -> None:
        variables = list(create_default_env_vars() if variables is None else variables)
        self._variables: dict[EnvVarID, EnvironmentVariable] = {}
        for var in variables:
            low, high = var.range
            if low > high:
                raise ConfigurationError(f"{var.id} has an inverted range {var.range}")
            if not var.contains(var.default):
                raise ConfigurationError(
                    f"{var.id} default {var.default} lies outside {var.range}"
                )
            self._variables[var.id] = var

        missing = set(EnvVarID) - set(self._variables)
        if missing:
            raise ConfigurationError(
                f"Missing environment variables: {', '.join(sorted(missing))}"
            )

    def lookup(self, var_id: EnvVarID | str) -> EnvironmentVariable:
        try:
            return self._variables[EnvVarID(var_id)]
        except (KeyError, ValueError):
            raise NotFoundError(f"Unknown environment variable: {var_id!r}") from None

    def all(self) -> tuple[EnvironmentVariable, ...]:
        return tuple(self._variables.values())
