"""
Control Point Value Objects
===========================

Typed views over gateway entities produced by the entity classifier:

- RawEntity: immutable snapshot of one ``input_number`` entity
- ClimateInput: day start / day length / temperature / humidity / CO2 input
- Lamp: dimmable light channel
- WateringZoneMember: one role (start, period, pause, duration) of a zone

Control points are never mutated; a discovery pass or config pull replaces a
chamber's ``ChamberEntities`` wholesale.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

from app.enums.chamber import ControlCategory, DayPeriod, WateringRole


@dataclass(frozen=True)
class RawEntity:
    """Snapshot of a gateway entity as returned by ``list_states``."""

    entity_id: str
    friendly_name: str = ""
    value: float = 0.0
    min: float = 0.0
    max: float = 100.0
    step: float = 1.0
    unit: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "entity_id": self.entity_id,
            "friendly_name": self.friendly_name,
            "value": self.value,
            "min": self.min,
            "max": self.max,
            "step": self.step,
            "unit": self.unit,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "RawEntity":
        return RawEntity(
            entity_id=data["entity_id"],
            friendly_name=data.get("friendly_name") or "",
            value=float(data.get("value") or 0.0),
            min=float(data.get("min", 0.0)),
            max=float(data.get("max", 100.0)),
            step=float(data.get("step", 1.0)),
            unit=data.get("unit") or "",
        )


@dataclass(frozen=True)
class ClimateInput:
    """A climate setpoint input.

    ``day_or_night`` is ``None`` for DAY_START and DAY_DURATION inputs.
    """

    category: ControlCategory
    day_or_night: DayPeriod | None
    entity_id: str
    value: float = 0.0
    name: str = ""
    min: float = 0.0
    max: float = 100.0
    step: float = 1.0
    unit: str = ""

    @property
    def input_type(self) -> str:
        """Coordinator type key, e.g. ``temp_day`` or ``day_start``."""
        if self.day_or_night is None:
            return self.category.value
        prefix = {
            ControlCategory.TEMPERATURE: "temp",
            ControlCategory.HUMIDITY: "humidity",
            ControlCategory.CO2: "co2",
        }[self.category]
        return f"{prefix}_{self.day_or_night.value}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": "climate",
            "category": self.category.value,
            "day_or_night": self.day_or_night.value if self.day_or_night else None,
            "entity_id": self.entity_id,
            "value": self.value,
            "name": self.name,
            "min": self.min,
            "max": self.max,
            "step": self.step,
            "unit": self.unit,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "ClimateInput":
        period = data.get("day_or_night")
        return ClimateInput(
            category=ControlCategory(data["category"]),
            day_or_night=DayPeriod(period) if period else None,
            entity_id=data["entity_id"],
            value=float(data.get("value") or 0.0),
            name=data.get("name") or "",
            min=float(data.get("min", 0.0)),
            max=float(data.get("max", 100.0)),
            step=float(data.get("step", 1.0)),
            unit=data.get("unit") or "",
        )


@dataclass(frozen=True)
class Lamp:
    """A dimmable light channel."""

    name: str
    entity_id: str
    intensity_min: float = 0.0
    intensity_max: float = 100.0
    value: float = 0.0

    @property
    def intensity_range(self) -> tuple[float, float]:
        return (self.intensity_min, self.intensity_max)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": "lamp",
            "name": self.name,
            "entity_id": self.entity_id,
            "intensity_min": self.intensity_min,
            "intensity_max": self.intensity_max,
            "value": self.value,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "Lamp":
        return Lamp(
            name=data.get("name") or "Lamp",
            entity_id=data["entity_id"],
            intensity_min=float(data.get("intensity_min", 0.0)),
            intensity_max=float(data.get("intensity_max", 100.0)),
            value=float(data.get("value") or 0.0),
        )


@dataclass(frozen=True)
class WateringZoneMember:
    """One watering parameter entity belonging to a named zone."""

    zone_name: str
    role: WateringRole
    entity_id: str
    name: str = ""
    value: float = 0.0
    min: float = 0.0
    max: float = 100.0
    step: float = 1.0
    unit: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": "watering",
            "zone_name": self.zone_name,
            "role": self.role.value,
            "entity_id": self.entity_id,
            "name": self.name,
            "value": self.value,
            "min": self.min,
            "max": self.max,
            "step": self.step,
            "unit": self.unit,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "WateringZoneMember":
        return WateringZoneMember(
            zone_name=data["zone_name"],
            role=WateringRole(data["role"]),
            entity_id=data["entity_id"],
            name=data.get("name") or "",
            value=float(data.get("value") or 0.0),
            min=float(data.get("min", 0.0)),
            max=float(data.get("max", 100.0)),
            step=float(data.get("step", 1.0)),
            unit=data.get("unit") or "",
        )


ControlPoint = Union[ClimateInput, Lamp, WateringZoneMember]


@dataclass(frozen=True)
class WateringZone:
    """Grouped view of the members sharing a zone name."""

    name: str
    start_entity_id: str | None = None
    period_entity_id: str | None = None
    pause_entity_id: str | None = None
    duration_entity_id: str | None = None


@dataclass
class ChamberEntities:
    """Classified control points of one room, plus what could not be classified."""

    climate_inputs: list[ClimateInput] = field(default_factory=list)
    lamps: list[Lamp] = field(default_factory=list)
    watering_members: list[WateringZoneMember] = field(default_factory=list)
    unrecognised: list[RawEntity] = field(default_factory=list)

    def control_points(self) -> list[ControlPoint]:
        """All classified control points in a stable order."""
        return [*self.climate_inputs, *self.lamps, *self.watering_members]

    def watering_zones(self) -> list[WateringZone]:
        """Group watering members by zone name, in first-seen order.

        A later member with the same role overwrites the earlier entity id.
        """
        slots: dict[str, dict[str, str]] = {}
        for member in self.watering_members:
            slots.setdefault(member.zone_name, {})[member.role.value] = member.entity_id
        return [
            WateringZone(
                name=name,
                start_entity_id=roles.get(WateringRole.START.value),
                period_entity_id=roles.get(WateringRole.PERIOD.value),
                pause_entity_id=roles.get(WateringRole.PAUSE.value),
                duration_entity_id=roles.get(WateringRole.DURATION.value),
            )
            for name, roles in slots.items()
        ]

    def entity_ids(self) -> set[str]:
        ids = {point.entity_id for point in self.control_points()}
        ids.update(raw.entity_id for raw in self.unrecognised)
        return ids

    def counts(self) -> dict[str, int]:
        return {
            "climate_inputs": len(self.climate_inputs),
            "lamps": len(self.lamps),
            "watering_zones": len(self.watering_zones()),
            "watering_members": len(self.watering_members),
            "unrecognised": len(self.unrecognised),
        }

    def is_empty(self) -> bool:
        return not (self.climate_inputs or self.lamps or self.watering_members or self.unrecognised)

    def to_dict(self) -> dict[str, Any]:
        return {
            "climate_inputs": [c.to_dict() for c in self.climate_inputs],
            "lamps": [lamp.to_dict() for lamp in self.lamps],
            "watering_members": [m.to_dict() for m in self.watering_members],
            "unrecognised": [raw.to_dict() for raw in self.unrecognised],
        }

    @staticmethod
    def from_dict(data: dict[str, Any] | None) -> "ChamberEntities":
        if not data:
            return ChamberEntities()
        return ChamberEntities(
            climate_inputs=[ClimateInput.from_dict(c) for c in data.get("climate_inputs", [])],
            lamps=[Lamp.from_dict(lamp) for lamp in data.get("lamps", [])],
            watering_members=[WateringZoneMember.from_dict(m) for m in data.get("watering_members", [])],
            unrecognised=[RawEntity.from_dict(raw) for raw in data.get("unrecognised", [])],
        )
