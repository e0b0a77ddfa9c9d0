"""Rule definitions and the immutable rules registry.

Rules are the "mutations" of the game: named modifiers that change movement,
combat, hazards, resources or physics for one arena. Some rules cannot be
active together (NO_JUMP with any jump modifier, for example); the registry
stores that relation and keeps it symmetric.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from enum import StrEnum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from shiftropolis import config
from shiftropolis.errors import ConfigurationError, NotFoundError

from .modules import ModuleID

if TYPE_CHECKING:
    from shiftropolis.util.rng import RNG


class RuleID(StrEnum):
    NO_JUMP = "NO_JUMP"
    LOW_JUMP = "LOW_JUMP"
    HIGH_JUMP = "HIGH_JUMP"
    SPEED_UP = "SPEED_UP"
    NO_ATTACK = "NO_ATTACK"
    LAVA_FLOOR = "LAVA_FLOOR"
    PROJECTILE_RAIN = "PROJECTILE_RAIN"
    ORB_COLLECTION = "ORB_COLLECTION"
    MOON_GRAVITY = "MOON_GRAVITY"


@dataclass(frozen=True)
class Rule:
    """A named gameplay modifier.

    Attributes:
        id: Stable identifier.
        name: Display name.
        description: One-line player-facing description.
        tags: Classification tags ("movement", "hazard", "difficulty_easy", ...).
        parameters: Numeric parameters read by the environment folding step.
        incompatible_with: Rules that may never be active alongside this one.
        module_weight_multipliers: Placement bias this rule applies to module
            weights before sampling (LAVA_FLOOR triples lava pits, ...).
    """

    id: RuleID
    name: str
    description: str = ""
    tags: frozenset[str] = frozenset()
    parameters: Mapping[str, float] = field(
        default_factory=lambda: MappingProxyType({})
    )
    incompatible_with: frozenset[RuleID] = frozenset()
    module_weight_multipliers: Mapping[ModuleID, float] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def is_compatible_with(self, other: Rule) -> bool:
        return other.id not in self.incompatible_with and (
            self.id not in other.incompatible_with
        )

    def has_tag(self, tag: str) -> bool:
        return tag in self.tags


def _rule(
    rule_id: RuleID,
    name: str,
    description: str,
    tags: Iterable[str],
    parameters: dict[str, Any] | None = None,
    incompatible_with: Iterable[RuleID] = (),
    weights: dict[ModuleID, float] | None = None,
) -> Rule:
    return Rule(
        id=rule_id,
        name=name,
        description=description,
        tags=frozenset(tags),
        parameters=MappingProxyType(dict(parameters or {})),
        incompatible_with=frozenset(incompatible_with),
        module_weight_multipliers=MappingProxyType(dict(weights or {})),
    )


def create_default_rules() -> list[Rule]:
    """The built-in rule set, in registration order."""
    return [
        _rule(
            RuleID.NO_JUMP,
            "No Jump",
            "The jump is deactivated.",
            ("movement", "restriction", "difficulty_medium"),
            incompatible_with=(
                RuleID.LOW_JUMP,
                RuleID.HIGH_JUMP,
                RuleID.MOON_GRAVITY,
            ),
            weights={ModuleID.RAMP_STEEP: 2.0, ModuleID.FLOOR_LARGE: 0.5},
        ),
        _rule(
            RuleID.LOW_JUMP,
            "Low Jump",
            "The jump height is reduced.",
            ("movement", "modifier", "difficulty_easy"),
            {"jumpHeightMultiplier": 0.5},
            incompatible_with=(RuleID.NO_JUMP, RuleID.HIGH_JUMP),
        ),
        _rule(
            RuleID.HIGH_JUMP,
            "High Jump",
            "The jump height is increased.",
            ("movement", "modifier", "difficulty_easy"),
            {"jumpHeightMultiplier": 1.5},
            incompatible_with=(RuleID.NO_JUMP, RuleID.LOW_JUMP),
        ),
        _rule(
            RuleID.SPEED_UP,
            "Speed Up",
            "Your movement speed is increased.",
            ("movement", "modifier", "difficulty_easy"),
            {"speedMultiplier": 1.5},
        ),
        _rule(
            RuleID.NO_ATTACK,
            "No Attack",
            "Attack is disabled.",
            ("combat", "restriction", "difficulty_hard"),
        ),
        _rule(
            RuleID.LAVA_FLOOR,
            "Lava Floor",
            "Dangerous lava pits appear throughout the arena.",
            ("hazard", "environment", "difficulty_medium"),
            weights={ModuleID.LAVA_PIT: 3.0},
        ),
        _rule(
            RuleID.PROJECTILE_RAIN,
            "Projectile Rain",
            "Projectiles rain from above.",
            ("hazard", "dynamic", "difficulty_hard"),
            {"intensity": 1.0, "frequency": 2.0},
            weights={ModuleID.LASER_TURRET: 3.0},
        ),
        _rule(
            RuleID.ORB_COLLECTION,
            "Orb Collection",
            "More energy orbs spawn in the arena.",
            ("resource", "collection", "difficulty_easy"),
            {"orbMultiplier": 2.0},
            weights={ModuleID.ORB_ENERGY: 2.0},
        ),
        _rule(
            RuleID.MOON_GRAVITY,
            "Moon Gravity",
            "Gravity is significantly reduced.",
            ("physics", "environment", "difficulty_medium"),
            {"gravityMultiplier": 0.3},
            incompatible_with=(RuleID.NO_JUMP,),
        ),
    ]


class RulesDatabase:
    """Immutable registry of rules keyed by RuleID.

    Incompatibilities are closed under symmetry at construction: if A lists B,
    B is rebuilt to list A as well. Registration order is preserved and is the
    fixed ordering every random draw works from.
    """

    def __init__(self, rules: Iterable[Rule] | None = None) -> None:
        rules = list(create_default_rules() if rules is None else rules)

        seen: set[RuleID] = set()
        for rule in rules:
            if rule.id in seen:
                raise ConfigurationError(f"Duplicate rule id {rule.id}")
            seen.add(rule.id)

        for rule in rules:
            unknown = rule.incompatible_with - seen
            if unknown:
                names = ", ".join(sorted(unknown))
                raise ConfigurationError(
                    f"Rule {rule.id} is incompatible with unregistered rules: {names}"
                )
            if rule.id in rule.incompatible_with:
                raise ConfigurationError(f"Rule {rule.id} is incompatible with itself")

        # Symmetric closure
        partners: dict[RuleID, set[RuleID]] = {
            r.id: set(r.incompatible_with) for r in rules
        }
        for rule in rules:
            for other in rule.incompatible_with:
                partners[other].add(rule.id)

        self._rules: dict[RuleID, Rule] = {
            rule.id: replace(rule, incompatible_with=frozenset(partners[rule.id]))
            for rule in rules
        }
        self._ordered: tuple[Rule, ...] = tuple(self._rules.values())

    def __len__(self) -> int:
        return len(self._ordered)

    def __contains__(self, rule_id: object) -> bool:
        return rule_id in self._rules

    def lookup(self, rule_id: RuleID | str) -> Rule:
        """Return the rule registered under ``rule_id``.

        Raises:
            NotFoundError: If no such rule is registered.
        """
        try:
            return self._rules[RuleID(rule_id)]
        except (KeyError, ValueError):
            raise NotFoundError(f"Unknown rule: {rule_id!r}") from None

    def all(self) -> tuple[Rule, ...]:
        """All rules in registration order."""
        return self._ordered

    def compatible_subset(self, count: int, rng: RNG) -> tuple[Rule, ...]:
        """Draw up to ``count`` mutually compatible rules.

        Repeatedly picks a rule from the remaining pool in proportion to its
        selection_weight, then drops from the pool the chosen rule and
        everything incompatible with it. Running out of candidates before
        ``count`` is reached is not an error; fewer rules are returned.

        Args:
            count: Desired number of rules.
            rng: Random stream; an identical stream gives an identical pick.

        Returns:
            The chosen rules, in the order they were drawn.
        """
        if count < 0:
            raise ConfigurationError(f"Rule count must be >= 0, got {count}")

        pool = list(self._ordered)
        chosen: list[Rule] = []
        while pool and len(chosen) < count:
            weights = [self.selection_weight(rule, chosen) for rule in pool]
            target = rng.random() * sum(weights)
            rule = pool[-1]
            cumulative = 0.0
            for candidate, weight in zip(pool, weights, strict=True):
                cumulative += weight
                if target < cumulative:
                    rule = candidate
                    break
            chosen.append(rule)
            pool = [
                candidate
                for candidate in pool
                if candidate.id != rule.id
                and candidate.id not in rule.incompatible_with
            ]
        return tuple(chosen)

    @staticmethod
    def selection_weight(rule: Rule, chosen: Iterable[Rule]) -> float:
        """Relative chance of drawing ``rule`` next, given the rules already chosen.

        Favours a spread of rule kinds and leans towards easier rule sets.
        """
        chosen = list(chosen)
        weight = 1.0
        for tag in config.RULE_DIVERSITY_TAGS:
            if not rule.has_tag(tag):
                continue
            same_kind = sum(1 for other in chosen if other.has_tag(tag))
            if same_kind > config.RULE_DIVERSITY_LIMIT:
                weight *= config.RULE_DIVERSITY_PENALTY
        for tag, bias in config.RULE_DIFFICULTY_BIAS.items():
            if rule.has_tag(tag):
                weight *= bias
        return weight
