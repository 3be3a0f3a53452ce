"""Tests for the coordinator payload models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from app.domain.chambers import ChamberEntities, ClimateInput, RawEntity, WateringZoneMember
from app.enums import ControlCategory, DayPeriod, ExperimentStatus, WateringRole
from app.schemas.coordinator import ChamberConfigPayload, CoordinatorEnvelope, RemoteExperimentPayload
from tests.conftest import remote_experiment_payload, sample_entities


def _entities() -> ChamberEntities:
    entities = sample_entities()
    entities.climate_inputs.append(
        ClimateInput(ControlCategory.DAY_START, None, "input_number.hours_day_galo", value=6.0, name="Day Start")
    )
    entities.watering_members.extend(
        [
            WateringZoneMember("Zone 1", WateringRole.START, "input_number.day_watering_zone_1", name="Start"),
            WateringZoneMember("Zone 1", WateringRole.DURATION, "input_number.time_watering_zone_1", name="Sec"),
        ]
    )
    entities.unrecognised.append(RawEntity("input_number.mystery", "Mystery"))
    return entities


class TestChamberConfigPayload:
    def test_entities_are_bucketed_by_kind(self):
        config = ChamberConfigPayload.from_entities(_entities())

        assert config.lamps["input_number.lamp_red_galo"].type == "lamp"
        assert config.temperature.day["input_number.temp_day_galo"].type == "temp_day"
        assert config.day_start["input_number.hours_day_galo"].type == "day_start"
        [zone] = config.watering_zones
        assert zone.name == "Zone 1"
        assert list(zone.start_time_entity_id) == ["input_number.day_watering_zone_1"]
        assert zone.duration_entity_id["input_number.time_watering_zone_1"].type == "watering_duration"
        assert config.unrecognised_entities["input_number.mystery"].type == "unknown"

    def test_entities_survive_the_coordinator_view(self):
        entities = _entities()
        rebuilt = ChamberConfigPayload.from_entities(entities).to_entities()

        assert rebuilt.lamps[0].entity_id == "input_number.lamp_red_galo"
        assert {c.entity_id for c in rebuilt.climate_inputs} == {c.entity_id for c in entities.climate_inputs}
        temp = next(c for c in rebuilt.climate_inputs if c.category == ControlCategory.TEMPERATURE)
        assert temp.day_or_night == DayPeriod.DAY
        assert temp.unit == "°C"
        assert {(m.zone_name, m.role) for m in rebuilt.watering_members} == {
            ("Zone 1", WateringRole.START),
            ("Zone 1", WateringRole.DURATION),
        }

    def test_null_sections_read_as_empty(self):
        config = ChamberConfigPayload.model_validate(
            {
                "lamps": None,
                "watering_zones": None,
                "unrecognised_entities": None,
                "day_duration": None,
                "day_start": None,
                "temperature": {"day": None, "night": None},
                "humidity": None,
                "co2": None,
                "updated_at": None,
            }
        )

        assert config.lamps == {}
        assert config.watering_zones == []
        assert config.temperature.day == {}
        assert config.humidity.night == {}
        assert sum(config.to_entities().counts().values()) == 0

    def test_null_watering_zone_members(self):
        config = ChamberConfigPayload.model_validate(
            {"watering_zones": [{"name": "Zone 1", "start_time_entity_id": None, "duration_entity_id": None}]}
        )

        assert config.watering_zones[0].start_time_entity_id == {}
        assert config.to_entities().watering_members == []

    def test_unknown_fields_are_ignored(self):
        config = ChamberConfigPayload.model_validate({"lamps": {}, "extra_section": {"x": 1}})
        assert config.to_entities().counts()["lamps"] == 0


class TestRemoteExperimentPayload:
    def test_string_day_keys_become_indexes(self):
        experiment = RemoteExperimentPayload.model_validate(remote_experiment_payload()).to_domain(7)

        assert experiment.chamber_id == 7
        assert experiment.remote_id == "exp-1"
        assert experiment.remote_chamber_id == "remote-1"
        assert experiment.status == ExperimentStatus.ACTIVE
        assert experiment.phases[0].temperature_day_schedule["temp"].schedule == {0: 22.0, 1: 23.0}

    def test_null_tables_read_as_empty(self):
        raw = remote_experiment_payload()
        phase = raw["phases"][0]
        phase["humidity_day_schedule"] = None
        phase["co2_night_schedule"] = None
        phase["watering_zones"] = {
            "zone": {
                "name": "Zone 1",
                "start_time_entity_id": "input_number.day_watering_zone_1",
                "start_time_schedule": {"0": 6},
                "period_schedule": None,
                "pause_between_schedule": None,
                "duration_schedule": None,
            }
        }

        experiment = RemoteExperimentPayload.model_validate(raw).to_domain(7)

        converted = experiment.phases[0]
        assert converted.humidity_day_schedule == {}
        assert converted.watering_zones["zone"].period_schedule == {}
        assert converted.watering_zones["zone"].start_time_schedule == {0: 6.0}

    def test_required_fields_still_rejected_when_null(self):
        raw = remote_experiment_payload()
        raw["phases"][0]["duration_days"] = None
        with pytest.raises(ValidationError):
            RemoteExperimentPayload.model_validate(raw)

    def test_unknown_status_is_rejected(self):
        with pytest.raises(ValidationError):
            RemoteExperimentPayload.model_validate(remote_experiment_payload(status="exploded"))


def test_envelope_defaults_to_failure():
    envelope = CoordinatorEnvelope.model_validate({})
    assert envelope.success is False
    assert envelope.data is None
