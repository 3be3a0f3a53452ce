"""
Experiment-related Enumerations
===============================
"""

from enum import Enum


class ExperimentStatus(str, Enum):
    """Lifecycle status of an experiment."""

    DRAFT = "draft"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    ARCHIVED = "archived"

    def __str__(self):
        return self.value


class TimeSource(str, Enum):
    """Where the node's notion of "now" currently comes from."""

    NTP = "NTP"
    SYSTEM = "system"

    def __str__(self):
        return self.value
