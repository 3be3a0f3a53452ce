"""
Coordinator Schemas
===================

Pydantic models for the payloads exchanged with the remote coordinator:
the response envelope, chamber registration and configuration, heartbeats
and experiments. Conversion helpers map them onto domain objects.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from app.domain.chambers import (
    ChamberEntities,
    ClimateInput,
    Lamp,
    RawEntity,
    WateringZoneMember,
)
from app.domain.experiments import (
    Experiment,
    FixedSetpoint,
    ParameterSchedule,
    Phase,
    ScheduleItem,
    WateringZoneSchedule,
)
from app.enums import ControlCategory, DayPeriod, ExperimentStatus, WateringRole


class CoordinatorModel(BaseModel):
    """
    Base for payloads received from the coordinator.

    The coordinator serialises empty maps and lists as ``null``; such values
    fall back to the field's default factory.
    """

    model_config = ConfigDict(extra="ignore")

    @field_validator("*", mode="before")
    @classmethod
    def _null_as_empty(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None and info.field_name is not None:
            default_factory = cls.model_fields[info.field_name].default_factory
            if default_factory is not None:
                return default_factory()
        return value


class CoordinatorEnvelope(CoordinatorModel):
    """Every coordinator response is wrapped as ``{success, data, error}``."""

    success: bool = False
    data: Any | None = None
    error: str | None = None


# ============================================================================
# Chamber configuration
# ============================================================================


class ControlInputPayload(CoordinatorModel):
    """One gateway entity as described to the coordinator."""

    entity_id: str
    name: str = ""
    type: str = ""
    min: float = 0.0
    max: float = 100.0
    step: float = 1.0
    value: float = 0.0
    unit: str = ""


class WateringZonePayload(CoordinatorModel):
    name: str
    start_time_entity_id: dict[str, ControlInputPayload] = Field(default_factory=dict)
    period_entity_id: dict[str, ControlInputPayload] = Field(default_factory=dict)
    pause_between_entity_id: dict[str, ControlInputPayload] = Field(default_factory=dict)
    duration_entity_id: dict[str, ControlInputPayload] = Field(default_factory=dict)


class DayNightPayload(CoordinatorModel):
    day: dict[str, ControlInputPayload] = Field(default_factory=dict)
    night: dict[str, ControlInputPayload] = Field(default_factory=dict)


# Watering role -> WateringZonePayload attribute
_WATERING_SLOTS = {
    WateringRole.START: "start_time_entity_id",
    WateringRole.PERIOD: "period_entity_id",
    WateringRole.PAUSE: "pause_between_entity_id",
    WateringRole.DURATION: "duration_entity_id",
}

# Day/night categories -> ChamberConfigPayload attribute
_DAY_NIGHT_SLOTS = {
    ControlCategory.TEMPERATURE: "temperature",
    ControlCategory.HUMIDITY: "humidity",
    ControlCategory.CO2: "co2",
}


class ChamberConfigPayload(CoordinatorModel):
    """Chamber configuration as stored by the coordinator."""

    lamps: dict[str, ControlInputPayload] = Field(default_factory=dict)
    watering_zones: list[WateringZonePayload] = Field(default_factory=list)
    unrecognised_entities: dict[str, ControlInputPayload] = Field(default_factory=dict)
    day_duration: dict[str, ControlInputPayload] = Field(default_factory=dict)
    day_start: dict[str, ControlInputPayload] = Field(default_factory=dict)
    temperature: DayNightPayload = Field(default_factory=DayNightPayload)
    humidity: DayNightPayload = Field(default_factory=DayNightPayload)
    co2: DayNightPayload = Field(default_factory=DayNightPayload)
    updated_at: datetime | None = None

    @classmethod
    def from_entities(cls, entities: ChamberEntities) -> "ChamberConfigPayload":
        config = cls()

        for lamp in entities.lamps:
            config.lamps[lamp.entity_id] = ControlInputPayload(
                entity_id=lamp.entity_id,
                name=lamp.name,
                type="lamp",
                min=lamp.intensity_min,
                max=lamp.intensity_max,
                value=lamp.value,
            )

        for item in entities.climate_inputs:
            payload = ControlInputPayload(
                entity_id=item.entity_id,
                name=item.name,
                type=item.input_type,
                min=item.min,
                max=item.max,
                step=item.step,
                value=item.value,
                unit=item.unit,
            )
            if item.category == ControlCategory.DAY_START:
                config.day_start[item.entity_id] = payload
            elif item.category == ControlCategory.DAY_DURATION:
                config.day_duration[item.entity_id] = payload
            else:
                bucket: DayNightPayload = getattr(config, _DAY_NIGHT_SLOTS[item.category])
                getattr(bucket, item.day_or_night.value)[item.entity_id] = payload

        zones: dict[str, WateringZonePayload] = {}
        for member in entities.watering_members:
            zone = zones.setdefault(member.zone_name, WateringZonePayload(name=member.zone_name))
            getattr(zone, _WATERING_SLOTS[member.role])[member.entity_id] = ControlInputPayload(
                entity_id=member.entity_id,
                name=member.name,
                type=f"watering_{member.role.value}",
                min=member.min,
                max=member.max,
                step=member.step,
                value=member.value,
                unit=member.unit,
            )
        config.watering_zones = list(zones.values())

        for raw in entities.unrecognised:
            config.unrecognised_entities[raw.entity_id] = ControlInputPayload(
                entity_id=raw.entity_id,
                name=raw.friendly_name,
                type="unknown",
                min=raw.min,
                max=raw.max,
                step=raw.step,
                value=raw.value,
                unit=raw.unit,
            )
        return config

    def to_entities(self) -> ChamberEntities:
        """Rebuild local control points from the coordinator's view."""
        entities = ChamberEntities()

        def climate(category: ControlCategory, period: DayPeriod | None, item: ControlInputPayload) -> ClimateInput:
            return ClimateInput(
                category=category,
                day_or_night=period,
                entity_id=item.entity_id,
                value=item.value,
                name=item.name,
                min=item.min,
                max=item.max,
                step=item.step,
                unit=item.unit,
            )

        for item in self.day_start.values():
            entities.climate_inputs.append(climate(ControlCategory.DAY_START, None, item))
        for item in self.day_duration.values():
            entities.climate_inputs.append(climate(ControlCategory.DAY_DURATION, None, item))
        for category, attr in _DAY_NIGHT_SLOTS.items():
            bucket: DayNightPayload = getattr(self, attr)
            for item in bucket.day.values():
                entities.climate_inputs.append(climate(category, DayPeriod.DAY, item))
            for item in bucket.night.values():
                entities.climate_inputs.append(climate(category, DayPeriod.NIGHT, item))

        for item in self.lamps.values():
            entities.lamps.append(
                Lamp(
                    name=item.name or "Lamp",
                    entity_id=item.entity_id,
                    intensity_min=item.min,
                    intensity_max=item.max,
                    value=item.value,
                )
            )

        for zone in self.watering_zones:
            for role, attr in _WATERING_SLOTS.items():
                for item in getattr(zone, attr).values():
                    entities.watering_members.append(
                        WateringZoneMember(
                            zone_name=zone.name,
                            role=role,
                            entity_id=item.entity_id,
                            name=item.name,
                            value=item.value,
                            min=item.min,
                            max=item.max,
                            step=item.step,
                            unit=item.unit,
                        )
                    )

        for item in self.unrecognised_entities.values():
            entities.unrecognised.append(
                RawEntity(
                    entity_id=item.entity_id,
                    friendly_name=item.name,
                    value=item.value,
                    min=item.min,
                    max=item.max,
                    step=item.step,
                    unit=item.unit,
                )
            )
        return entities


# ============================================================================
# Registration / heartbeat
# ============================================================================


class RegisterChamberRequest(BaseModel):
    name: str
    room_suffix: str
    location: str
    ha_url: str
    access_token: str = ""
    local_ip: str = ""
    config: ChamberConfigPayload
    current_time: str
    ntp_enabled: bool = False
    ntp_connected: bool = False


class RegisteredChamber(CoordinatorModel):
    id: str


class HeartbeatRequest(BaseModel):
    timestamp: str
    ntp_enabled: bool = False
    ntp_connected: bool = False
    ntp_offset: float = 0.0


class ConfigCheckResponse(CoordinatorModel):
    needs_update: bool = False
    updated_at: datetime | None = None


class StatusUpdateRequest(BaseModel):
    status: ExperimentStatus


# ============================================================================
# Experiments
# ============================================================================


class FixedSetpointPayload(CoordinatorModel):
    entity_id: str
    value: float = 0.0


class ParameterSchedulePayload(CoordinatorModel):
    entity_id: str
    # JSON keys arrive as strings; pydantic coerces them to day indexes
    schedule: dict[int, float] = Field(default_factory=dict)


class WateringZoneSchedulePayload(CoordinatorModel):
    name: str = ""
    start_time_entity_id: str = ""
    period_entity_id: str = ""
    pause_between_entity_id: str = ""
    duration_entity_id: str = ""
    start_time_schedule: dict[int, float] = Field(default_factory=dict)
    period_schedule: dict[int, float] = Field(default_factory=dict)
    pause_between_schedule: dict[int, float] = Field(default_factory=dict)
    duration_schedule: dict[int, float] = Field(default_factory=dict)


class PhasePayload(CoordinatorModel):
    title: str = ""
    description: str = ""
    duration_days: int
    start_day: dict[str, FixedSetpointPayload] = Field(default_factory=dict)
    work_day_schedule: dict[str, ParameterSchedulePayload] = Field(default_factory=dict)
    temperature_day_schedule: dict[str, ParameterSchedulePayload] = Field(default_factory=dict)
    temperature_night_schedule: dict[str, ParameterSchedulePayload] = Field(default_factory=dict)
    humidity_day_schedule: dict[str, ParameterSchedulePayload] = Field(default_factory=dict)
    humidity_night_schedule: dict[str, ParameterSchedulePayload] = Field(default_factory=dict)
    co2_day_schedule: dict[str, ParameterSchedulePayload] = Field(default_factory=dict)
    co2_night_schedule: dict[str, ParameterSchedulePayload] = Field(default_factory=dict)
    light_intensity_schedule: dict[str, ParameterSchedulePayload] = Field(default_factory=dict)
    watering_zones: dict[str, WateringZoneSchedulePayload] = Field(default_factory=dict)
    last_executed: datetime | None = None

    def to_domain(self) -> Phase:
        def tables(field_name: str) -> dict[str, ParameterSchedule]:
            return {
                key: ParameterSchedule(entity_id=item.entity_id, schedule=dict(item.schedule))
                for key, item in getattr(self, field_name).items()
            }

        return Phase(
            title=self.title,
            description=self.description,
            duration_days=self.duration_days,
            start_day={k: FixedSetpoint(entity_id=v.entity_id, value=v.value) for k, v in self.start_day.items()},
            work_day_schedule=tables("work_day_schedule"),
            temperature_day_schedule=tables("temperature_day_schedule"),
            temperature_night_schedule=tables("temperature_night_schedule"),
            humidity_day_schedule=tables("humidity_day_schedule"),
            humidity_night_schedule=tables("humidity_night_schedule"),
            co2_day_schedule=tables("co2_day_schedule"),
            co2_night_schedule=tables("co2_night_schedule"),
            light_intensity_schedule=tables("light_intensity_schedule"),
            watering_zones={k: WateringZoneSchedule(**v.model_dump()) for k, v in self.watering_zones.items()},
            last_executed=self.last_executed,
        )


class ScheduleItemPayload(CoordinatorModel):
    phase_index: int
    start_timestamp: int
    end_timestamp: int


class RemoteExperimentPayload(CoordinatorModel):
    """Experiment as returned by ``GET /experiments``."""

    id: str
    title: str = ""
    description: str = ""
    status: ExperimentStatus = ExperimentStatus.DRAFT
    chamber_id: str | None = None
    chamber_name: str = ""
    phases: list[PhasePayload] = Field(default_factory=list)
    schedule: list[ScheduleItemPayload] = Field(default_factory=list)
    active_phase_index: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_domain(self, chamber_id: int) -> Experiment:
        """Map onto a local experiment owned by ``chamber_id`` (not yet validated)."""
        return Experiment(
            title=self.title,
            chamber_id=chamber_id,
            phases=[phase.to_domain() for phase in self.phases],
            schedule=[
                ScheduleItem(
                    phase_index=item.phase_index,
                    start_timestamp=item.start_timestamp,
                    end_timestamp=item.end_timestamp,
                )
                for item in self.schedule
            ],
            status=self.status,
            remote_id=self.id,
            remote_chamber_id=self.chamber_id,
            chamber_name=self.chamber_name,
            description=self.description,
            active_phase_index=self.active_phase_index,
        )
