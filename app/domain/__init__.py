"""
Domain Package
==============
Entities and value objects for chambers and experiments, plus the pure
schedule resolution logic that operates on them.
"""

from .chambers import Chamber, ChamberEntities, ClimateInput, Lamp, RawEntity, WateringZone, WateringZoneMember
from .experiments import Experiment, Phase, ScheduleItem

__all__ = [
    # Chambers
    "Chamber",
    "ChamberEntities",
    "ClimateInput",
    "Lamp",
    "RawEntity",
    "WateringZone",
    "WateringZoneMember",
    # Experiments
    "Experiment",
    "Phase",
    "ScheduleItem",
]
