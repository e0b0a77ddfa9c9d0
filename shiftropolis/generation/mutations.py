"""The mutation machine: composes active rules into environment and weights.

Two things come out of a rule set:

- EnvironmentVariables: gravity and game speed after every active rule has
  been folded onto the registry defaults, clamped to their valid ranges.
- Biased module weights: each rule's ``module_weight_multipliers`` applied to
  the registry weights. The generator samples with these weights, so a rule
  such as LAVA_FLOOR makes lava more likely everywhere it is allowed instead
  of forcing lava into cells after the fact.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING

from shiftropolis import config
from shiftropolis.data.env_vars import EnvVarID, EnvVarsDatabase
from shiftropolis.data.modules import ModuleID, ModulesDatabase

if TYPE_CHECKING:
    from shiftropolis.data.rules import Rule
    from shiftropolis.util.rng import RNG


@dataclass(frozen=True)
class EnvironmentVariables:
    """Derived global modifiers of one arena.

    Attributes:
        gravity: Clamped to [0.2, 3.0].
        game_speed: Clamped to [0.5, 2.0].
        unclamped: Value of each variable before clamping.
        rule_driven: Variables at least one active rule changed.
    """

    gravity: float
    game_speed: float
    unclamped: Mapping[EnvVarID, float]
    rule_driven: frozenset[EnvVarID] = frozenset()

    def value(self, var_id: EnvVarID) -> float:
        match var_id:
            case EnvVarID.GRAVITY:
                return self.gravity
            case EnvVarID.GAME_SPEED:
                return self.game_speed
        raise KeyError(var_id)

    def was_clamped(self, var_id: EnvVarID) -> bool:
        return self.unclamped[var_id] != self.value(var_id)

    @property
    def clamped(self) -> frozenset[EnvVarID]:
        return frozenset(v for v in self.unclamped if self.was_clamped(v))

    def as_dict(self) -> dict[str, float]:
        return {EnvVarID.GRAVITY: self.gravity, EnvVarID.GAME_SPEED: self.game_speed}


# Rule parameter -> (environment variable, effect). Effects receive the current
# value, the parameter value and the rng, and return the new unclamped value.
type EnvEffect = Callable[[float, float, RNG], float]


def _gravity_effect(value: float, multiplier: float, rng: RNG) -> float:
    # Moon gravity lands in [m, m + jitter) of the default
    return value * multiplier + rng.random() * config.MOON_GRAVITY_JITTER


def _speed_effect(value: float, multiplier: float, rng: RNG) -> float:
    low, _ = config.SPEED_UP_FACTOR_RANGE
    return value * rng.uniform(min(low, multiplier), multiplier)


ENV_EFFECTS: dict[str, tuple[EnvVarID, EnvEffect]] = {
    "gravityMultiplier": (EnvVarID.GRAVITY, _gravity_effect),
    "speedMultiplier": (EnvVarID.GAME_SPEED, _speed_effect),
}


def fold_environment(
    rules: Sequence[Rule], env_vars: EnvVarsDatabase, rng: RNG
) -> EnvironmentVariables:
    """Fold every active rule's parameters onto the environment defaults.

    Variables no rule touches get a small random variance around their
    default instead. Every value is clamped to its variable's range.
    """
    unclamped: dict[EnvVarID, float] = {}
    clamped: dict[EnvVarID, float] = {}
    rule_driven: set[EnvVarID] = set()

    for var in env_vars.all():
        value = var.default
        for rule in rules:
            for parameter, amount in rule.parameters.items():
                effect = ENV_EFFECTS.get(parameter)
                if effect is None or effect[0] != var.id:
                    continue
                value = effect[1](value, amount, rng)
                rule_driven.add(var.id)

        if var.id not in rule_driven:
            low, high = var.range
            variance = (high - low) * config.ENV_VARIANCE_FRACTION
            value += (rng.random() - 0.5) * variance

        unclamped[var.id] = value
        clamped[var.id] = var.clamp(value)

    return EnvironmentVariables(
        gravity=clamped[EnvVarID.GRAVITY],
        game_speed=clamped[EnvVarID.GAME_SPEED],
        unclamped=MappingProxyType(unclamped),
        rule_driven=frozenset(rule_driven),
    )


def biased_weights(
    rules: Sequence[Rule], modules: ModulesDatabase
) -> Mapping[ModuleID, float]:
    """Registry weights with every active rule's multipliers applied."""
    weights = {module.id: float(module.weight) for module in modules.all()}
    for rule in rules:
        for module_id, factor in rule.module_weight_multipliers.items():
            if module_id in weights:
                weights[module_id] *= factor
    return MappingProxyType(weights)
