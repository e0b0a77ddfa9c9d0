"""Exception types raised by the arena core.

Only configuration problems and registry misses are raised to callers. A
generation that runs out of backtracking budget is reported as a Critical
anomaly on its GenerationResult instead.
"""


class ShiftropolisError(Exception):
    """Base class for all errors raised by this package."""


class ConfigurationError(ShiftropolisError, ValueError):
    """Raised for invalid input before any generation is attempted.

    Examples are an arena size below the minimum, a negative rule count,
    or an inclusive range whose minimum exceeds its maximum.
    """


class NotFoundError(ShiftropolisError, KeyError):
    """Raised when a registry lookup names an unknown rule or module."""
