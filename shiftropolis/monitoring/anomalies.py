"""Anomaly records produced by the generator and the monitor."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, StrEnum

from shiftropolis.types import GridPos


class Severity(Enum):
    CRITICAL = "critical"  # Arena unplayable/broken
    WARNING = "warning"  # Suboptimal but playable
    INFO = "info"  # Unusual but not problematic


class AnomalyCategory(StrEnum):
    STRUCTURAL = "STRUCTURAL"
    BOUNDS = "BOUNDS"
    REACHABILITY = "REACHABILITY"
    BALANCE = "BALANCE"
    RULES = "RULES"
    SPATIAL = "SPATIAL"
    PERFORMANCE = "PERFORMANCE"
    DISTRIBUTION = "DISTRIBUTION"
    GENERATION = "GENERATION"


@dataclass(frozen=True)
class Anomaly:
    """A detected defect. Immutable once recorded."""

    severity: Severity
    category: AnomalyCategory
    message: str
    position: GridPos | None = None

    @property
    def is_critical(self) -> bool:
        return self.severity is Severity.CRITICAL

    def __str__(self) -> str:
        where = f" at {self.position}" if self.position is not None else ""
        return f"[{self.severity.name}] {self.category}: {self.message}{where}"
