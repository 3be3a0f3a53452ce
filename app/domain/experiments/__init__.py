"""
Experiment Domain Module
========================

This module provides:
- Experiment, Phase, ScheduleItem and the day-indexed value tables
- resolve(): pure (experiment, now) -> (phase_index, day_index) resolution
- ExperimentRepository: Protocol for the local experiment store
"""
from app.domain.experiments.experiment_entity import (
    PARAMETER_SCHEDULE_FIELDS,
    Experiment,
    FixedSetpoint,
    ParameterSchedule,
    Phase,
    ScheduleItem,
    Setpoint,
    WateringZoneSchedule,
)
from app.domain.experiments.repository import ExperimentRepository
from app.domain.experiments.resolver import (
    ResolvedDay,
    find_schedule_item,
    is_schedule_elapsed,
    progress,
    resolve,
)

__all__ = [
    "PARAMETER_SCHEDULE_FIELDS",
    "Experiment",
    "ExperimentRepository",
    "FixedSetpoint",
    "ParameterSchedule",
    "Phase",
    "ResolvedDay",
    "ScheduleItem",
    "Setpoint",
    "WateringZoneSchedule",
    "find_schedule_item",
    "is_schedule_elapsed",
    "progress",
    "resolve",
]
