"""
Experiment Domain Entity
========================

Multi-day experiments mirrored from the coordinator:

- Experiment: ordered phases plus the calendar schedule placing them in time
- Phase: fixed duration in days with per-entity, day-indexed value tables
- ScheduleItem: one contiguous calendar occurrence of a phase
- ParameterSchedule / WateringZoneSchedule / FixedSetpoint: the value tables

Only the active-phase index, the status and the phases' "last executed"
markers are changed locally; everything else is replaced on every pull.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterator, NamedTuple

from app.domain.exceptions import ScheduleConfigurationError
from app.enums.experiment import ExperimentStatus
from app.utils.time import coerce_datetime, isoformat_or_none


class Setpoint(NamedTuple):
    """A single value to push to one gateway entity."""

    entity_id: str
    value: float
    source: str


def _day_table(raw: dict[Any, Any] | None) -> dict[int, float]:
    # JSON object keys arrive as strings
    return {int(day): float(value) for day, value in (raw or {}).items()}


@dataclass
class ScheduleItem:
    """Absolute [start, end) window during which a phase runs (epoch seconds)."""

    phase_index: int
    start_timestamp: int
    end_timestamp: int

    def contains(self, now: float) -> bool:
        return self.start_timestamp <= now < self.end_timestamp

    @property
    def duration_seconds(self) -> int:
        return self.end_timestamp - self.start_timestamp

    def to_dict(self) -> dict[str, Any]:
        return {
            "phase_index": self.phase_index,
            "start_timestamp": self.start_timestamp,
            "end_timestamp": self.end_timestamp,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "ScheduleItem":
        return ScheduleItem(
            phase_index=int(data["phase_index"]),
            start_timestamp=int(data["start_timestamp"]),
            end_timestamp=int(data["end_timestamp"]),
        )


@dataclass
class FixedSetpoint:
    """Value applied on every tick of a phase regardless of the day."""

    entity_id: str
    value: float

    def to_dict(self) -> dict[str, Any]:
        return {"entity_id": self.entity_id, "value": self.value}

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "FixedSetpoint":
        return FixedSetpoint(entity_id=data["entity_id"], value=float(data.get("value", 0.0)))


@dataclass
class ParameterSchedule:
    """Day index -> value table for one entity."""

    entity_id: str
    schedule: dict[int, float] = field(default_factory=dict)

    def value_for_day(self, day_index: int) -> float | None:
        return self.schedule.get(day_index)

    def to_dict(self) -> dict[str, Any]:
        return {"entity_id": self.entity_id, "schedule": {str(k): v for k, v in self.schedule.items()}}

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "ParameterSchedule":
        return ParameterSchedule(entity_id=data["entity_id"], schedule=_day_table(data.get("schedule")))


@dataclass
class WateringZoneSchedule:
    """Day-indexed tables for the four parameters of a watering zone."""

    name: str
    start_time_entity_id: str = ""
    period_entity_id: str = ""
    pause_between_entity_id: str = ""
    duration_entity_id: str = ""
    start_time_schedule: dict[int, float] = field(default_factory=dict)
    period_schedule: dict[int, float] = field(default_factory=dict)
    pause_between_schedule: dict[int, float] = field(default_factory=dict)
    duration_schedule: dict[int, float] = field(default_factory=dict)

    def tables(self) -> list[tuple[str, dict[int, float]]]:
        """(entity_id, table) pairs in start, period, pause, duration order."""
        return [
            (self.start_time_entity_id, self.start_time_schedule),
            (self.period_entity_id, self.period_schedule),
            (self.pause_between_entity_id, self.pause_between_schedule),
            (self.duration_entity_id, self.duration_schedule),
        ]

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "start_time_entity_id": self.start_time_entity_id,
            "period_entity_id": self.period_entity_id,
            "pause_between_entity_id": self.pause_between_entity_id,
            "duration_entity_id": self.duration_entity_id,
            "start_time_schedule": {str(k): v for k, v in self.start_time_schedule.items()},
            "period_schedule": {str(k): v for k, v in self.period_schedule.items()},
            "pause_between_schedule": {str(k): v for k, v in self.pause_between_schedule.items()},
            "duration_schedule": {str(k): v for k, v in self.duration_schedule.items()},
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "WateringZoneSchedule":
        return WateringZoneSchedule(
            name=data.get("name") or "",
            start_time_entity_id=data.get("start_time_entity_id") or "",
            period_entity_id=data.get("period_entity_id") or "",
            pause_between_entity_id=data.get("pause_between_entity_id") or "",
            duration_entity_id=data.get("duration_entity_id") or "",
            start_time_schedule=_day_table(data.get("start_time_schedule")),
            period_schedule=_day_table(data.get("period_schedule")),
            pause_between_schedule=_day_table(data.get("pause_between_schedule")),
            duration_schedule=_day_table(data.get("duration_schedule")),
        )


# Order in which per-category tables are pushed on each tick.
PARAMETER_SCHEDULE_FIELDS = (
    "work_day_schedule",
    "temperature_day_schedule",
    "temperature_night_schedule",
    "humidity_day_schedule",
    "humidity_night_schedule",
    "co2_day_schedule",
    "co2_night_schedule",
    "light_intensity_schedule",
)


@dataclass
class Phase:
    """A named stage of an experiment with day-indexed setpoint tables."""

    title: str
    duration_days: int
    description: str = ""
    start_day: dict[str, FixedSetpoint] = field(default_factory=dict)
    work_day_schedule: dict[str, ParameterSchedule] = field(default_factory=dict)
    temperature_day_schedule: dict[str, ParameterSchedule] = field(default_factory=dict)
    temperature_night_schedule: dict[str, ParameterSchedule] = field(default_factory=dict)
    humidity_day_schedule: dict[str, ParameterSchedule] = field(default_factory=dict)
    humidity_night_schedule: dict[str, ParameterSchedule] = field(default_factory=dict)
    co2_day_schedule: dict[str, ParameterSchedule] = field(default_factory=dict)
    co2_night_schedule: dict[str, ParameterSchedule] = field(default_factory=dict)
    light_intensity_schedule: dict[str, ParameterSchedule] = field(default_factory=dict)
    watering_zones: dict[str, WateringZoneSchedule] = field(default_factory=dict)
    last_executed: datetime | None = None

    def setpoints_for_day(self, day_index: int) -> list[Setpoint]:
        """Every entity/value pair to push for ``day_index``.

        Start-day values first, then climate, light and watering tables.
        Entities whose table has no entry for the day are skipped.
        """
        setpoints = [Setpoint(fixed.entity_id, fixed.value, "start_day") for fixed in self.start_day.values()]

        for field_name in PARAMETER_SCHEDULE_FIELDS:
            for config in getattr(self, field_name).values():
                value = config.value_for_day(day_index)
                if value is not None:
                    setpoints.append(Setpoint(config.entity_id, value, field_name))

        for zone in self.watering_zones.values():
            for entity_id, table in zone.tables():
                if entity_id and day_index in table:
                    setpoints.append(Setpoint(entity_id, table[day_index], "watering_zones"))

        return setpoints

    def _day_tables(self) -> Iterator[tuple[str, dict[int, float]]]:
        for field_name in PARAMETER_SCHEDULE_FIELDS:
            for key, config in getattr(self, field_name).items():
                yield f"{field_name}.{key}", config.schedule
        for key, zone in self.watering_zones.items():
            for entity_id, table in zone.tables():
                yield f"watering_zones.{key}.{entity_id}", table

    def validate(self, index: int) -> None:
        """Raise ScheduleConfigurationError on a bad duration or day index."""
        if self.duration_days <= 0:
            raise ScheduleConfigurationError(
                f"Phase {index} ({self.title!r}) must last at least one day",
                detail={"phase_index": index, "duration_days": self.duration_days},
            )
        for label, table in self._day_tables():
            for day in table:
                if not 0 <= day < self.duration_days:
                    raise ScheduleConfigurationError(
                        f"Phase {index} ({self.title!r}) references day {day} in {label}, "
                        f"outside [0, {self.duration_days})",
                        detail={"phase_index": index, "table": label, "day": day},
                    )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "title": self.title,
            "description": self.description,
            "duration_days": self.duration_days,
            "start_day": {k: v.to_dict() for k, v in self.start_day.items()},
            "watering_zones": {k: v.to_dict() for k, v in self.watering_zones.items()},
            "last_executed": isoformat_or_none(self.last_executed),
        }
        for field_name in PARAMETER_SCHEDULE_FIELDS:
            data[field_name] = {k: v.to_dict() for k, v in getattr(self, field_name).items()}
        return data

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "Phase":
        tables = {
            field_name: {k: ParameterSchedule.from_dict(v) for k, v in (data.get(field_name) or {}).items()}
            for field_name in PARAMETER_SCHEDULE_FIELDS
        }
        return Phase(
            title=data.get("title") or "",
            description=data.get("description") or "",
            duration_days=int(data.get("duration_days", 0)),
            start_day={k: FixedSetpoint.from_dict(v) for k, v in (data.get("start_day") or {}).items()},
            watering_zones={
                k: WateringZoneSchedule.from_dict(v) for k, v in (data.get("watering_zones") or {}).items()
            },
            last_executed=coerce_datetime(data.get("last_executed")),
            **tables,
        )


@dataclass
class Experiment:
    """
    Experiment mirrored from the coordinator.

    Attributes:
        title: Human readable title
        chamber_id: Local id of the owning chamber
        phases: Ordered phases
        schedule: Calendar placement of phases, sorted by start
        status: Lifecycle status
        remote_id: Coordinator id
        experiment_id: Local database id
        active_phase_index: Last phase index resolved by the execution loop
    """

    title: str
    chamber_id: int | None
    phases: list[Phase] = field(default_factory=list)
    schedule: list[ScheduleItem] = field(default_factory=list)
    status: ExperimentStatus = ExperimentStatus.DRAFT
    remote_id: str | None = None
    experiment_id: int | None = None
    remote_chamber_id: str | None = None
    chamber_name: str = ""
    description: str = ""
    active_phase_index: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    synced_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status == ExperimentStatus.ACTIVE

    @property
    def start_timestamp(self) -> int | None:
        return min((item.start_timestamp for item in self.schedule), default=None)

    @property
    def end_timestamp(self) -> int | None:
        return max((item.end_timestamp for item in self.schedule), default=None)

    def validate(self) -> None:
        """
        Check phase and schedule invariants.

        Raises:
            ScheduleConfigurationError: no phases/items, a bad phase index,
                an empty or inverted item, overlapping or gapped items, or a
                day index outside a phase's duration.
        """
        if not self.phases:
            raise ScheduleConfigurationError(f"Experiment {self.title!r} has no phases")
        if not self.schedule:
            raise ScheduleConfigurationError(f"Experiment {self.title!r} has no schedule items")

        for index, phase in enumerate(self.phases):
            phase.validate(index)

        previous: ScheduleItem | None = None
        for item in self.schedule:
            if not 0 <= item.phase_index < len(self.phases):
                raise ScheduleConfigurationError(
                    f"Schedule item references phase {item.phase_index}, experiment has {len(self.phases)}",
                    detail=item.to_dict(),
                )
            if item.end_timestamp <= item.start_timestamp:
                raise ScheduleConfigurationError("Schedule item ends before it starts", detail=item.to_dict())
            if previous is not None and item.start_timestamp != previous.end_timestamp:
                raise ScheduleConfigurationError(
                    "Schedule items must be contiguous (each starts where the previous ends)",
                    detail={"previous": previous.to_dict(), "item": item.to_dict()},
                )
            previous = item

    def sort_schedule(self) -> None:
        self.schedule.sort(key=lambda item: (item.start_timestamp, item.end_timestamp))

    def to_dict(self) -> dict[str, Any]:
        return {
            "experiment_id": self.experiment_id,
            "remote_id": self.remote_id,
            "chamber_id": self.chamber_id,
            "remote_chamber_id": self.remote_chamber_id,
            "chamber_name": self.chamber_name,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "phases": [phase.to_dict() for phase in self.phases],
            "schedule": [item.to_dict() for item in self.schedule],
            "active_phase_index": self.active_phase_index,
            "created_at": isoformat_or_none(self.created_at),
            "updated_at": isoformat_or_none(self.updated_at),
            "synced_at": isoformat_or_none(self.synced_at),
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "Experiment":
        return Experiment(
            experiment_id=data.get("experiment_id"),
            remote_id=data.get("remote_id"),
            chamber_id=data.get("chamber_id"),
            remote_chamber_id=data.get("remote_chamber_id"),
            chamber_name=data.get("chamber_name") or "",
            title=data.get("title") or "",
            description=data.get("description") or "",
            status=ExperimentStatus(data.get("status", ExperimentStatus.DRAFT.value)),
            phases=[Phase.from_dict(p) for p in data.get("phases") or []],
            schedule=[ScheduleItem.from_dict(s) for s in data.get("schedule") or []],
            active_phase_index=data.get("active_phase_index"),
            created_at=coerce_datetime(data.get("created_at")),
            updated_at=coerce_datetime(data.get("updated_at")),
            synced_at=coerce_datetime(data.get("synced_at")),
        )
