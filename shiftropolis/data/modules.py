"""Module definitions and the immutable modules registry.

A module is the content of one arena cell: a floor tile, a wall, a hazard, an
interactive element, a collectible. Every module is either ``walkable`` or
``blocking``; the generator and the monitor work from those tags rather than
from specific module ids, so custom module sets behave the same way.

Adjacency is expressed per module with ``avoid_tags``: a module may not have a
neighbour (8-neighbourhood) carrying any of those tags. Blocking modules avoid
each other, which keeps the walkable part of an arena in one piece.
"""

from __future__ import annotations

from collections.abc import Collection, Iterable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from shiftropolis.errors import ConfigurationError, NotFoundError

if TYPE_CHECKING:
    from shiftropolis.util.rng import RNG


class ModuleID(StrEnum):
    PLAYER = "PLAYER"
    ORB_ENERGY = "ORB_ENERGY"
    FLOOR_STD = "FLOOR_STD"
    FLOOR_LARGE = "FLOOR_LARGE"
    WALL_LOW = "WALL_LOW"
    WALL_HIGH = "WALL_HIGH"
    PANEL_GLASS = "PANEL_GLASS"
    RAMP_LOW = "RAMP_LOW"
    RAMP_STEEP = "RAMP_STEEP"
    TELEPORTER_IN = "TELEPORTER_IN"
    TELEPORTER_OUT = "TELEPORTER_OUT"
    CLIMB_SURFACE = "CLIMB_SURFACE"
    LAVA_PIT = "LAVA_PIT"
    LASER_STATIC = "LASER_STATIC"
    LASER_TURRET = "LASER_TURRET"
    BUTTON_FLOOR = "BUTTON_FLOOR"
    BUTTON_WALL = "BUTTON_WALL"
    LEVER = "LEVER"
    ENEMY_SPAWNER = "ENEMY_SPAWNER"
    ENERGY_BARRIER = "ENERGY_BARRIER"
    DECOR_ARCH_METALLIC = "DECOR_ARCH_METALLIC"


class ModuleTag(StrEnum):
    """Tags the generator and monitor give meaning to."""

    WALKABLE = "walkable"
    BLOCKING = "blocking"
    HAZARD = "hazard"
    INTERACTIVE = "interactive"
    IMPORTANT = "important"  # must be reachable from spawn
    WALL = "wall"  # allowed on the arena perimeter
    SPAWN = "spawn"
    COLLECTIBLE = "collectible"


@dataclass(frozen=True)
class Module:
    """A placeable grid-cell content type.

    Attributes:
        id: Stable identifier.
        name: Display name.
        description: One-line description.
        tags: Classification tags, see ModuleTag for the meaningful ones.
        weight: Relative placement weight. Zero means never sampled.
        avoid_tags: Tags that may not appear on any of the 8 neighbours.
        parameters: Gameplay parameters consumed by the host engine.
    """

    id: ModuleID
    name: str
    description: str = ""
    tags: frozenset[str] = frozenset()
    weight: float = 1.0
    avoid_tags: frozenset[str] = frozenset()
    parameters: Mapping[str, Any] = field(
        default_factory=lambda: MappingProxyType({})
    )

    @property
    def walkable(self) -> bool:
        return ModuleTag.WALKABLE in self.tags

    @property
    def blocking(self) -> bool:
        return ModuleTag.BLOCKING in self.tags

    @property
    def hazard(self) -> bool:
        return ModuleTag.HAZARD in self.tags

    @property
    def important(self) -> bool:
        return ModuleTag.IMPORTANT in self.tags

    def has_tags(self, required: Collection[str]) -> bool:
        return all(tag in self.tags for tag in required)

    def can_neighbor(self, other: Module) -> bool:
        """True if the two modules may occupy adjacent cells (symmetric)."""
        return not (self.avoid_tags & other.tags) and not (other.avoid_tags & self.tags)


_BLOCKING_AVOID = frozenset({ModuleTag.BLOCKING})


def _module(
    module_id: ModuleID,
    name: str,
    description: str,
    tags: Iterable[str],
    weight: float,
    parameters: dict[str, Any] | None = None,
    avoid: Iterable[str] | None = None,
) -> Module:
    tag_set = frozenset(tags)
    if avoid is None:
        avoid_tags = _BLOCKING_AVOID if ModuleTag.BLOCKING in tag_set else frozenset()
    else:
        avoid_tags = frozenset(avoid)
    return Module(
        id=module_id,
        name=name,
        description=description,
        tags=tag_set,
        weight=weight,
        avoid_tags=avoid_tags,
        parameters=MappingProxyType(dict(parameters or {})),
    )


def create_default_modules() -> list[Module]:
    """The built-in module set, in registration order."""
    return [
        _module(
            ModuleID.PLAYER,
            "Player",
            "Player spawn point.",
            ("player", "spawn", "unique", "walkable"),
            0,  # placed explicitly by the generator, never sampled
            {"health": 100, "speed": 5.0, "jumpForce": 10.0},
            avoid=(ModuleTag.BLOCKING,),
        ),
        _module(
            ModuleID.ORB_ENERGY,
            "Energy Orb",
            "Collecting this orb adds time to survival countdown.",
            ("collectible", "resource", "energy", "walkable", "important"),
            15,
            {"timeValue": 5.0},
            avoid=(ModuleTag.HAZARD,),
        ),
        _module(
            ModuleID.FLOOR_STD,
            "Standard Floor",
            "A solid basic platform.",
            ("structure", "walkable", "basic"),
            30,
        ),
        _module(
            ModuleID.FLOOR_LARGE,
            "Large Floor Tile",
            "A larger solid platform.",
            ("structure", "walkable", "basic"),
            20,
            {"sizeX": 2, "sizeZ": 2},
        ),
        _module(
            ModuleID.WALL_LOW,
            "Wall low",
            "A small obstacle.",
            ("structure", "obstacle", "cover", "blocking", "wall", "static"),
            15,
        ),
        _module(
            ModuleID.WALL_HIGH,
            "Wall high",
            "A tall obstacle that blocks vision.",
            ("structure", "obstacle", "blocks_vision", "blocking", "wall", "static"),
            10,
        ),
        _module(
            ModuleID.PANEL_GLASS,
            "Panel glass",
            "Solid but transparent.",
            ("structure", "obstacle", "transparent", "blocking", "wall", "static"),
            7,
            {"breakable": False},
        ),
        _module(
            ModuleID.RAMP_LOW,
            "Ramp low",
            "Allows you to change elevation smoothly.",
            ("structure", "walkable", "ramp", "basic", "static"),
            12,
            {"angle": 30},
        ),
        _module(
            ModuleID.RAMP_STEEP,
            "Steep Ramp",
            "Allows quick elevation change.",
            ("structure", "walkable", "ramp"),
            10,
            {"angle": 45},
        ),
        _module(
            ModuleID.TELEPORTER_IN,
            "Teleporter Entry",
            "Entry point for teleportation.",
            ("movement_aid", "interactive", "teleporter", "walkable", "important"),
            5,
            {"linkId": None},
        ),
        _module(
            ModuleID.TELEPORTER_OUT,
            "Teleporter Exit",
            "Exit point for teleportation.",
            ("movement_aid", "teleporter", "destination", "walkable", "important"),
            5,
            {"linkId": None},
        ),
        _module(
            ModuleID.CLIMB_SURFACE,
            "Climbing Surface",
            "Allows climbing.",
            ("movement_aid", "climbable", "vertical", "walkable"),
            8,
            {"climbSpeed": 3},
        ),
        _module(
            ModuleID.LAVA_PIT,
            "Lava Pit",
            "Continuous damage hazard.",
            ("hazard", "damage", "environmental", "blocking"),
            5,
            {"damagePerSecond": 25},
        ),
        _module(
            ModuleID.LASER_STATIC,
            "Static Laser Emitter",
            "Continuous laser beam.",
            ("hazard", "damage", "beam", "static", "blocking"),
            3,
            {"damagePerSecond": 30, "beamLength": 20},
        ),
        _module(
            ModuleID.LASER_TURRET,
            "Rotating Laser Turret",
            "Sweeping laser beam.",
            ("hazard", "damage", "beam", "dynamic", "blocking"),
            2,
            {"damagePerSecond": 40, "rotationSpeed": 45, "arc": 180, "beamLength": 20},
        ),
        _module(
            ModuleID.BUTTON_FLOOR,
            "Floor Button",
            "Activated by walking on it.",
            ("interactive", "trigger", "walkable", "important"),
            7,
            {"triggerId": None, "oneTime": False, "resetDelay": 0.5},
        ),
        _module(
            ModuleID.BUTTON_WALL,
            "Wall Button",
            "Activated by interaction or shooting.",
            ("interactive", "trigger", "wall_mount", "blocking", "important"),
            6,
            {"triggerId": None, "shootable": True},
        ),
        _module(
            ModuleID.LEVER,
            "Lever",
            "Manual interaction toggle.",
            ("interactive", "trigger", "toggle", "blocking", "important"),
            6,
            {"triggerId": None, "startsOn": False},
        ),
        _module(
            ModuleID.ENEMY_SPAWNER,
            "Enemy Spawner",
            "Spawns enemies.",
            ("interactive", "spawner", "enemy", "blocking"),
            4,
            {
                "enemyType": "ENEMY_TYPE_BASIC_ROBOT",
                "spawnLimit": 3,
                "triggerId": None,
                "spawnRadius": 2,
                "activationDelay": 0.5,
            },
        ),
        _module(
            ModuleID.ENERGY_BARRIER,
            "Energy Barrier",
            "Blocks passage and projectiles.",
            ("interactive", "obstacle", "toggleable", "blocking"),
            5,
            {
                "health": 100,
                "disableOnTriggerId": None,
                "disableDuration": 5.0,
                "startActive": True,
            },
        ),
        _module(
            ModuleID.DECOR_ARCH_METALLIC,
            "Metal Arch",
            "Large arch in stylish metal to give visual structure to the arena.",
            (
                "decor",
                "structure",
                "static",
                "metallic",
                "connect_all_sides",
                "walkable",
            ),
            4,
            {"colorVariant": 3},
        ),
    ]


class ModulesDatabase:
    """Immutable registry of modules keyed by ModuleID.

    Registration order doubles as the module palette: an arena grid stores
    palette indices (see ``index_of``) instead of module objects.
    """

    def __init__(self, modules: Iterable[Module] | None = None) -> None:
        modules = list(create_default_modules() if modules is None else modules)
        if not modules:
            raise ConfigurationError("ModulesDatabase needs at least one module")

        self._modules: dict[ModuleID, Module] = {}
        for module in modules:
            if module.id in self._modules:
                raise ConfigurationError(f"Duplicate module id {module.id}")
            if module.weight < 0:
                raise ConfigurationError(
                    f"Module {module.id} has negative weight {module.weight}"
                )
            self._modules[module.id] = module

        self._ordered: tuple[Module, ...] = tuple(self._modules.values())
        self._index: dict[ModuleID, int] = {
            module.id: i for i, module in enumerate(self._ordered)
        }

    def __len__(self) -> int:
        return len(self._ordered)

    def __contains__(self, module_id: object) -> bool:
        return module_id in self._modules

    def lookup(self, module_id: ModuleID | str) -> Module:
        """Return the module registered under ``module_id``.

        Raises:
            NotFoundError: If no such module is registered.
        """
        try:
            return self._modules[ModuleID(module_id)]
        except (KeyError, ValueError):
            raise NotFoundError(f"Unknown module: {module_id!r}") from None

    def all(self) -> tuple[Module, ...]:
        """All modules in registration order (the palette)."""
        return self._ordered

    def index_of(self, module_id: ModuleID) -> int:
        try:
            return self._index[module_id]
        except KeyError:
            raise NotFoundError(f"Unknown module: {module_id!r}") from None

    def with_tag(self, tag: str) -> tuple[Module, ...]:
        return tuple(module for module in self._ordered if tag in module.tags)

    def weighted_sample(
        self,
        required_tags: Collection[str],
        rng: RNG,
        *,
        candidates: Collection[ModuleID] | None = None,
        weights: Mapping[ModuleID, float] | None = None,
    ) -> Module | None:
        """Draw one module proportionally to its weight.

        Only modules carrying every tag in ``required_tags`` (and, if given,
        listed in ``candidates``) take part. Candidates are walked in
        registration order, so equal weights always resolve the same way for
        the same random draw.

        Args:
            required_tags: Tags a module must carry to be eligible.
            rng: Random stream.
            candidates: Optional restriction to these module ids.
            weights: Optional per-module weight overrides (rule-biased weights).

        Returns:
            The sampled module, or None when nothing eligible has a positive
            weight. Callers supply their own fallback.
        """
        pool: list[tuple[Module, float]] = []
        for module in self._ordered:
            if candidates is not None and module.id not in candidates:
                continue
            if not module.has_tags(required_tags):
                continue
            weight = module.weight
            if weights is not None:
                weight = weights.get(module.id, weight)
            if weight > 0:
                pool.append((module, weight))

        if not pool:
            return None

        total = sum(weight for _, weight in pool)
        target = rng.random() * total
        cumulative = 0.0
        for module, weight in pool:
            cumulative += weight
            if target < cumulative:
                return module
        # Floating point slack on the last bucket
        return pool[-1][0]
