"""
Enums Module
============

This module provides enumeration types for the chamber edge node.
Enums ensure type safety and consistency across the codebase.
"""

from app.enums.chamber import (
    ChamberStatus,
    ControlCategory,
    DayPeriod,
    RegistrationState,
    WateringRole,
)
from app.enums.common import HealthLevel
from app.enums.experiment import ExperimentStatus, TimeSource

__all__ = [
    "ChamberStatus",
    "ControlCategory",
    "DayPeriod",
    "ExperimentStatus",
    "HealthLevel",
    "RegistrationState",
    "TimeSource",
    "WateringRole",
]
