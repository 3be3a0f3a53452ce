"""
Entity Classifier
=================

Turns the gateway's flat list of loosely named ``input_number`` entities into
typed control points grouped by room tag.

Classification is driven by ordered keyword tables; for every entity the
first matching rule wins:

1. denylist (``prog``, ``test`` in the id): dropped entirely
2. lamp keywords
3. watering roles: start, period, pause, duration (a zone name is extracted)
4. climate categories: day start, day length, temperature/humidity/CO2
   for day and night
5. anything else lands in the room's ``unrecognised`` list

Keywords are matched as substrings of the lowercased entity id and the
lowercased friendly name. The classifier is pure: the same input always
yields the same output.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from app.domain.chambers import (
    DEFAULT_ROOM_TAG,
    ChamberEntities,
    ClimateInput,
    Lamp,
    RawEntity,
    WateringZoneMember,
)
from app.enums import ControlCategory, DayPeriod, WateringRole

logger = logging.getLogger(__name__)


DENYLIST = ("prog", "test")

LAMP_KEYWORDS = ("lamp", "light", "led", "лампа", "свет", "света", "лампы", "ppfd")

WATERING_RULES: tuple[tuple[WateringRole, tuple[str, ...]], ...] = (
    (WateringRole.START, ("day_watering", "watering_start", "start_watering")),
    (WateringRole.PERIOD, ("work_watering", "watering_period", "period_watering")),
    (WateringRole.PAUSE, ("wait_watering", "pause_between", "pause_between_watering")),
    (WateringRole.DURATION, ("time_watering", "watering_seconds", "duration_watering")),
)


@dataclass(frozen=True)
class ClimateRule:
    category: ControlCategory
    day_or_night: DayPeriod | None
    keywords: tuple[str, ...]


CLIMATE_RULES: tuple[ClimateRule, ...] = (
    ClimateRule(ControlCategory.DAY_START, None, ("hours_day", "hour_day", "day_start")),
    ClimateRule(ControlCategory.DAY_DURATION, None, ("hours_work", "hour_work", "day_duration")),
    ClimateRule(ControlCategory.TEMPERATURE, DayPeriod.DAY, ("temp_day", "temp_set_day", "temp_day_set")),
    ClimateRule(ControlCategory.TEMPERATURE, DayPeriod.NIGHT, ("temp_night", "temp_set_night", "temp_night_set")),
    ClimateRule(ControlCategory.HUMIDITY, DayPeriod.DAY, ("hum_day", "hum_set_day", "hum_day_set")),
    ClimateRule(ControlCategory.HUMIDITY, DayPeriod.NIGHT, ("hum_night", "hum_set_night", "hum_night_set")),
    ClimateRule(ControlCategory.CO2, DayPeriod.DAY, ("co2_day", "co2_set_day", "co2_day_set")),
    ClimateRule(ControlCategory.CO2, DayPeriod.NIGHT, ("co2_night", "co2_set_night", "co2_night_set")),
)

ZONE_KEYWORDS = ("zone", "зона", "area", "участок")
DEFAULT_ZONE_NAME = "Zone 1"
DEFAULT_LAMP_NAME = "Lamp"

_LAMP_PREFIXES = ("Lamp ", "Light ")
_LAMP_SUFFIXES = (" Intensity", " Brightness", " Света", " Лампа")
_TAG_SEPARATORS = ("_", ".", "-")


def _matches(keywords: Iterable[str], lower_id: str, lower_name: str) -> bool:
    return any(keyword in lower_id or keyword in lower_name for keyword in keywords)


def is_denylisted(entity_id: str) -> bool:
    lower_id = entity_id.lower()
    return any(word in lower_id for word in DENYLIST)


def extract_room_tag(entity_id: str, room_tags: Iterable[str]) -> str:
    """First configured tag found in the id, else ``"default"``.

    A tag matches as a ``_tag`` suffix, a bare suffix preceded by a
    separator, or an interior ``tag_`` / ``_tag_`` segment.
    """
    lower_id = entity_id.lower()
    for tag in room_tags:
        tag = tag.lower()
        if not tag:
            continue
        if lower_id.endswith(f"_{tag}"):
            return tag
        if lower_id.endswith(tag):
            head = lower_id[: -len(tag)]
            if head and head[-1] in _TAG_SEPARATORS:
                return tag
        if f"{tag}_" in lower_id or f"_{tag}_" in lower_id:
            return tag
    return DEFAULT_ROOM_TAG


def _title_words(text: str) -> str:
    # Upper-cases the first letter of every word, leaves the rest untouched
    return " ".join(word[:1].upper() + word[1:] for word in text.split(" "))


def extract_lamp_name(entity_id: str, friendly_name: str) -> str:
    if friendly_name and friendly_name != entity_id:
        name = friendly_name
        for prefix in _LAMP_PREFIXES:
            if name.startswith(prefix):
                name = name[len(prefix):]
        for suffix in _LAMP_SUFFIXES:
            if name.endswith(suffix):
                name = name[: -len(suffix)]
        return name

    parts = entity_id.split(".")
    if len(parts) > 1:
        return _title_words(parts[1].replace("_", " "))
    return DEFAULT_LAMP_NAME


def extract_zone_name(entity_id: str, friendly_name: str) -> str:
    if friendly_name:
        lower_name = friendly_name.lower()
        for keyword in ZONE_KEYWORDS:
            idx = lower_name.find(keyword)
            if idx != -1:
                tokens = friendly_name[idx:].split()
                if len(tokens) > 1:
                    return f"Zone {tokens[1]}"

    parts = entity_id.lower().split("_")
    for i, part in enumerate(parts):
        for keyword in ZONE_KEYWORDS:
            if keyword in part and i + 1 < len(parts):
                return f"Zone {parts[i + 1]}"

    return DEFAULT_ZONE_NAME


def classify_entity(raw: RawEntity) -> Lamp | WateringZoneMember | ClimateInput | None:
    """Apply the rule tables to one entity; ``None`` when no rule matches."""
    lower_id = raw.entity_id.lower()
    lower_name = raw.friendly_name.lower()

    if _matches(LAMP_KEYWORDS, lower_id, lower_name):
        return Lamp(
            name=extract_lamp_name(raw.entity_id, raw.friendly_name),
            entity_id=raw.entity_id,
            intensity_min=raw.min,
            intensity_max=raw.max,
            value=raw.value,
        )

    for role, keywords in WATERING_RULES:
        if _matches(keywords, lower_id, lower_name):
            return WateringZoneMember(
                zone_name=extract_zone_name(raw.entity_id, raw.friendly_name),
                role=role,
                entity_id=raw.entity_id,
                name=raw.friendly_name,
                value=raw.value,
                min=raw.min,
                max=raw.max,
                step=raw.step,
                unit=raw.unit,
            )

    for rule in CLIMATE_RULES:
        if _matches(rule.keywords, lower_id, lower_name):
            return ClimateInput(
                category=rule.category,
                day_or_night=rule.day_or_night,
                entity_id=raw.entity_id,
                value=raw.value,
                name=raw.friendly_name,
                min=raw.min,
                max=raw.max,
                step=raw.step,
                unit=raw.unit,
            )

    return None


def classify(raw_entities: Iterable[RawEntity], known_room_tags: Iterable[str]) -> dict[str, ChamberEntities]:
    """
    Group and classify raw gateway entities.

    Args:
        raw_entities: Snapshot from the gateway
        known_room_tags: Configured room tags, in priority order

    Returns:
        room tag -> classified entities, in first-seen room order
    """
    room_tags = [tag.lower() for tag in known_room_tags]
    rooms: dict[str, ChamberEntities] = {}

    for raw in raw_entities:
        if is_denylisted(raw.entity_id):
            continue

        room = rooms.setdefault(extract_room_tag(raw.entity_id, room_tags), ChamberEntities())
        point = classify_entity(raw)
        if isinstance(point, Lamp):
            room.lamps.append(point)
        elif isinstance(point, WateringZoneMember):
            room.watering_members.append(point)
        elif isinstance(point, ClimateInput):
            room.climate_inputs.append(point)
        else:
            room.unrecognised.append(raw)

    return rooms


class EntityClassifier:
    """Classifier bound to the node's configured room tags."""

    def __init__(self, room_tags: Iterable[str]) -> None:
        self.room_tags = [tag.lower() for tag in room_tags]

    def classify(self, raw_entities: Iterable[RawEntity]) -> dict[str, ChamberEntities]:
        rooms = classify(raw_entities, self.room_tags)
        for tag, entities in rooms.items():
            counts = entities.counts()
            logger.info(
                "Room '%s': %d climate inputs, %d lamps, %d watering zones, %d unrecognised",
                tag,
                counts["climate_inputs"],
                counts["lamps"],
                counts["watering_zones"],
                counts["unrecognised"],
            )
        return rooms
