"""
Chamber Domain Module
=====================

This module provides:
- Control point value objects produced by the entity classifier
- Chamber: a room group of control points with coordinator identity
- ChamberRepository: Protocol for chamber persistence
"""
from app.domain.chambers.control_points import (
    ChamberEntities,
    ClimateInput,
    ControlPoint,
    Lamp,
    RawEntity,
    WateringZone,
    WateringZoneMember,
)
from app.domain.chambers.chamber_entity import (
    DEFAULT_ROOM_TAG,
    Chamber,
    chamber_display_name,
)
from app.domain.chambers.repository import ChamberRepository

__all__ = [
    "DEFAULT_ROOM_TAG",
    "Chamber",
    "ChamberEntities",
    "ChamberRepository",
    "ClimateInput",
    "ControlPoint",
    "Lamp",
    "RawEntity",
    "WateringZone",
    "WateringZoneMember",
    "chamber_display_name",
]
