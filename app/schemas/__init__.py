"""
Schemas Module
==============

Pydantic models for the coordinator's wire format. Payloads are validated
here and converted to domain objects before anything else sees them.
"""

from app.schemas.coordinator import (
    ChamberConfigPayload,
    ConfigCheckResponse,
    ControlInputPayload,
    CoordinatorEnvelope,
    HeartbeatRequest,
    PhasePayload,
    RegisterChamberRequest,
    RegisteredChamber,
    RemoteExperimentPayload,
    ScheduleItemPayload,
    StatusUpdateRequest,
    WateringZonePayload,
)

__all__ = [
    # Envelope
    "CoordinatorEnvelope",
    # Chamber configuration
    "ChamberConfigPayload",
    "ControlInputPayload",
    "WateringZonePayload",
    # Registration and heartbeat
    "RegisterChamberRequest",
    "RegisteredChamber",
    "HeartbeatRequest",
    "ConfigCheckResponse",
    "StatusUpdateRequest",
    # Experiments
    "RemoteExperimentPayload",
    "PhasePayload",
    "ScheduleItemPayload",
]
