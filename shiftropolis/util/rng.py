"""Deterministic random number generation with isolated streams.

Each generation step (rule selection, environment folding, spawn placement,
WFC collapse) gets its own independent random stream derived from one master
seed. This ensures that:

1. A generation is fully reproducible from (size, rule count, seed)
2. Changes to one step's random consumption don't cascade to the others
3. Runs scheduled on a worker pool derive their seeds from (base seed, index)
   and stay reproducible regardless of completion order

Usage:
    provider = RNGProvider(seed)
    rules_rng = provider.get("generation.rules")
    wfc_rng = provider.get("generation.wfc")

    # Per-run seeds for a stress campaign
    run_seed = derive_seed(master_seed, index)

Domain naming convention (hierarchical):
    - "generation.rules", "generation.environment"
    - "generation.spawn", "generation.wfc"
    - "harness.stress"
    - "util.metrics"
"""

from __future__ import annotations

import zlib
from collections.abc import Sequence
from random import Random
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from shiftropolis.types import RandomSeed

T = TypeVar("T")


def derive_seed(master_seed: RandomSeed, key: object) -> int:
    """Derive a stable 32-bit seed from a master seed and a key.

    Uses crc32 instead of hash() - hash() is randomized per Python session via
    PYTHONHASHSEED, which would break cross-session determinism.
    """
    return zlib.crc32(f"{master_seed}:{key}".encode())


def entropy_seed() -> int:
    """Draw a fresh seed from system entropy.

    Used when the caller gives no seed, so the run is non-reproducible up
    front but the drawn seed can still be recorded and replayed.
    """
    return Random().getrandbits(32)


class RNGStream:
    """Proxy that delegates to the current RNG for a domain.

    This wrapper allows callers to cache a reference that survives reset().
    All method calls are forwarded to the underlying Random instance,
    which is looked up fresh each time from the provider.
    """

    def __init__(self, provider: RNGProvider, domain: str) -> None:
        self._provider = provider
        self._domain = domain

    def _rng(self) -> Random:
        """Get the current underlying RNG."""
        return self._provider._get_raw(self._domain)

    # -------------------------------------------------------------------------
    # Random method proxies
    # -------------------------------------------------------------------------

    def random(self) -> float:
        """Return random float in [0.0, 1.0)."""
        return self._rng().random()

    def randint(self, a: int, b: int) -> int:
        """Return random integer N such that a <= N <= b."""
        return self._rng().randint(a, b)

    def randrange(self, start: int, stop: int | None = None, step: int = 1) -> int:
        """Return randomly selected element from range(start, stop, step)."""
        return self._rng().randrange(start, stop, step)

    def choice(self, seq: Sequence[T]) -> T:
        """Return random element from non-empty sequence."""
        return self._rng().choice(seq)

    def shuffle(self, x: list) -> None:
        """Shuffle list x in place."""
        self._rng().shuffle(x)

    def uniform(self, a: float, b: float) -> float:
        """Return random float N such that a <= N <= b."""
        return self._rng().uniform(a, b)

    def getrandbits(self, k: int) -> int:
        """Return an integer with k random bits."""
        return self._rng().getrandbits(k)


# Type alias for functions that accept either Random or RNGStream.
# Use this in type hints: `def foo(rng: RNG) -> int:`
type RNG = Random | RNGStream


class RNGProvider:
    """Provides isolated RNG streams for the steps of one generation.

    Each domain gets its own Random instance derived deterministically
    from the master seed. Domains are identified by string names.
    """

    def __init__(self, master_seed: RandomSeed = None) -> None:
        self._master_seed = master_seed
        self._streams: dict[str, Random] = {}
        self._proxies: dict[str, RNGStream] = {}

    @property
    def master_seed(self) -> RandomSeed:
        return self._master_seed

    def get(self, domain: str) -> RNGStream:
        """Get an RNG stream for the named domain.

        Returns a proxy object that can be cached. The proxy automatically
        uses the current underlying RNG, even after reset().

        Args:
            domain: Hierarchical name like "generation.wfc"

        Returns:
            An RNGStream proxy with the same interface as Random
        """
        if domain not in self._proxies:
            self._proxies[domain] = RNGStream(self, domain)
        return self._proxies[domain]

    def _get_raw(self, domain: str) -> Random:
        """Get the raw Random instance for a domain (internal use)."""
        if domain not in self._streams:
            if self._master_seed is None:
                # No seed: use system entropy for non-deterministic behavior
                self._streams[domain] = Random()
            else:
                self._streams[domain] = Random(derive_seed(self._master_seed, domain))
        return self._streams[domain]

    def reset(self, master_seed: RandomSeed = None) -> None:
        """Reset all streams with a new master seed.

        Existing RNGStream proxies remain valid and will use the new streams.
        """
        self._master_seed = master_seed
        self._streams.clear()


# =============================================================================
# Module-level API
# =============================================================================

_provider: RNGProvider | None = None


def init(master_seed: RandomSeed = None) -> None:
    """Initialize the process-wide RNG provider with a master seed.

    If a provider already exists, resets it instead of creating a new one.
    This ensures cached RNGStream proxies continue to work after init().
    Generations never use this provider; it only feeds process-level
    utilities such as reservoir sampling in util.metrics.
    """
    global _provider
    if _provider is not None:
        _provider.reset(master_seed)
    else:
        _provider = RNGProvider(master_seed)


def get(domain: str) -> RNGStream:
    """Get a stream from the process-wide provider.

    If the provider hasn't been initialized yet, it is auto-initialized with
    no seed (non-deterministic behavior).
    """
    global _provider
    if _provider is None:
        _provider = RNGProvider(None)
    return _provider.get(domain)
