"""Post-generation auditing.

- anomalies: Severity, AnomalyCategory and the immutable Anomaly record
- spatial: flood fill and distance helpers over arena grids
- monitor: AnomalyMonitor, the table of checks run on every arena
"""

from .anomalies import Anomaly, AnomalyCategory, Severity
from .monitor import AnomalyMonitor, MonitoringSummary, MonitorThresholds

__all__ = [
    "Anomaly",
    "AnomalyCategory",
    "AnomalyMonitor",
    "MonitorThresholds",
    "MonitoringSummary",
    "Severity",
]
