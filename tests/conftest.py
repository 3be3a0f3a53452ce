"""
Shared test fixtures for the chamber edge test suite.

Provides:
- In-memory SQLite database with all tables created
- Repository instances wired to the test database
- Fakes for the clock, the device gateway and the coordinator transport
- Factories for experiments and seeded chambers

Usage:
    def test_example(registry, experiment_factory):
        chamber = registry.upsert("galo", ChamberEntities())
        ...
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any
from zoneinfo import ZoneInfo

import pytest

from app.domain.chambers import ChamberEntities, ClimateInput, Lamp, RawEntity
from app.domain.exceptions import ActuatorError, CoordinatorError
from app.domain.experiments import Experiment, ParameterSchedule, Phase, ScheduleItem
from app.enums import ControlCategory, DayPeriod, ExperimentStatus
from app.schemas.coordinator import ChamberConfigPayload, ConfigCheckResponse
from app.services.application.chamber_registry import ChamberRegistry
from app.utils.time import SECONDS_PER_DAY, from_timestamp
from infrastructure.database.repositories.chambers import ChamberRepository
from infrastructure.database.repositories.experiments import ExperimentRepository
from infrastructure.database.sqlite_handler import SQLiteDatabaseHandler

# ---------------------------------------------------------------------------
# Logging: keep test output quiet
# ---------------------------------------------------------------------------
logging.getLogger("infrastructure").setLevel(logging.WARNING)
logging.getLogger("app").setLevel(logging.WARNING)

# 2023-11-14T22:13:20Z, used as "now" throughout the suite
T0 = 1_700_000_000


# ============================== Fakes ======================================


class FakeClock:
    """Settable clock satisfying the Clock protocol."""

    def __init__(self, start: float = T0, *, connected: bool = True, timezone: str = "Europe/Moscow") -> None:
        self.current = float(start)
        self.connected = connected
        self.offset = 0.0
        self._tz = ZoneInfo(timezone)

    @property
    def ntp_enabled(self) -> bool:
        return True

    def now(self) -> float:
        return self.current

    def now_local(self) -> datetime:
        return datetime.fromtimestamp(self.current, tz=self._tz)

    def is_connected(self) -> bool:
        return self.connected

    def offset_seconds(self) -> float:
        return self.offset

    def advance(self, seconds: float) -> None:
        self.current += seconds

    def set(self, ts: float) -> None:
        self.current = float(ts)


class FakeActuator:
    """In-memory gateway; entity ids in ``failing`` raise ActuatorError on write."""

    def __init__(self, states: list[RawEntity] | None = None) -> None:
        self.states = list(states or [])
        self.writes: list[tuple[str, float]] = []
        self.failing: set[str] = set()
        self.reachable = True
        self.probes = 0

    def list_states(self) -> list[RawEntity]:
        return list(self.states)

    def set_value(self, entity_id: str, value: float) -> None:
        if entity_id in self.failing:
            raise ActuatorError(f"Failed to set {entity_id}", detail={"entity_id": entity_id})
        self.writes.append((entity_id, value))

    def get_state(self, entity_id: str) -> RawEntity | None:
        return next((s for s in self.states if s.entity_id == entity_id), None)

    def probe(self) -> bool:
        self.probes += 1
        return self.reachable


class FakeTransport:
    """Coordinator stand-in with server-side conditional config semantics."""

    def __init__(self) -> None:
        self.next_id = 100
        self.fail_register = False
        self.fail_heartbeat = False
        self.fail_status = False
        self.registrations: list[Any] = []
        self.heartbeats: list[tuple[str, Any]] = []
        self.config_checks: list[tuple[str, datetime | None]] = []
        self.config_fetches: list[str] = []
        self.status_updates: list[dict[str, Any]] = []
        self.experiment_headers: list[dict[str, str]] = []
        self.experiments: dict[str, list[dict[str, Any]]] = {}
        self.config = ChamberConfigPayload()
        self.config_updated_at: datetime | None = None

    def register_chamber(self, request) -> str:
        if self.fail_register:
            raise CoordinatorError("POST /chambers failed: connection refused")
        self.registrations.append(request)
        self.next_id += 1
        return f"remote-{self.next_id}"

    def send_heartbeat(self, remote_id: str, heartbeat) -> None:
        if self.fail_heartbeat:
            raise CoordinatorError(f"POST /chambers/{remote_id}/heartbeat failed")
        self.heartbeats.append((remote_id, heartbeat))

    def check_config(self, remote_id: str, since: datetime | None) -> ConfigCheckResponse | None:
        self.config_checks.append((remote_id, since))
        if since is not None and self.config_updated_at is not None and since >= self.config_updated_at:
            return None
        return ConfigCheckResponse(needs_update=True, updated_at=self.config_updated_at)

    def fetch_config(self, remote_id: str) -> ChamberConfigPayload:
        self.config_fetches.append(remote_id)
        return self.config.model_copy(update={"updated_at": self.config_updated_at})

    def list_experiments(self, remote_id: str, headers: dict[str, str]) -> list[dict[str, Any]]:
        self.experiment_headers.append(dict(headers))
        return list(self.experiments.get(remote_id, []))

    def update_experiment_status(self, remote_id: str, status, *, local_time: str, chamber_name: str) -> None:
        if self.fail_status:
            raise CoordinatorError(f"PATCH /experiments/{remote_id}/status failed")
        self.status_updates.append(
            {"remote_id": remote_id, "status": status, "local_time": local_time, "chamber_name": chamber_name}
        )


# ========================== Database Fixtures ==============================


@pytest.fixture()
def db_handler():
    """In-memory SQLite database with all tables created.

    Each test gets a fresh database.
    """
    handler = SQLiteDatabaseHandler(":memory:")
    handler.create_tables()
    yield handler
    handler.close_db()


@pytest.fixture()
def chamber_repo(db_handler):
    return ChamberRepository(db_handler)


@pytest.fixture()
def experiment_repo(db_handler):
    return ExperimentRepository(db_handler)


# ============================ Fake Fixtures ================================


@pytest.fixture()
def fake_clock():
    return FakeClock()


@pytest.fixture()
def fake_actuator():
    return FakeActuator()


@pytest.fixture()
def fake_transport():
    return FakeTransport()


@pytest.fixture()
def registry(chamber_repo, fake_clock):
    registry = ChamberRegistry(chamber_repo, base_name="Climate Chamber", clock=fake_clock.now)
    registry.load()
    return registry


# ============================ Data Factories ===============================


def sample_entities() -> ChamberEntities:
    return ChamberEntities(
        climate_inputs=[
            ClimateInput(
                category=ControlCategory.TEMPERATURE,
                day_or_night=DayPeriod.DAY,
                entity_id="input_number.temp_day_galo",
                value=24.0,
                name="Temp Day Galo",
                min=10.0,
                max=40.0,
                step=0.5,
                unit="°C",
            ),
        ],
        lamps=[Lamp(name="Red", entity_id="input_number.lamp_red_galo", value=50.0)],
    )


@pytest.fixture()
def seeded_chamber(registry):
    """A discovered chamber for room ``galo``."""
    return registry.upsert("galo", sample_entities())


@pytest.fixture()
def registered_chamber(registry, seeded_chamber):
    """A chamber already registered with the coordinator as ``remote-1``."""
    return registry.set_remote_id(seeded_chamber.chamber_id, "remote-1")


def make_experiment(
    chamber_id: int | None,
    *,
    start: int = T0,
    days: int = 3,
    remote_id: str | None = "exp-1",
    status: ExperimentStatus = ExperimentStatus.ACTIVE,
    temperatures: list[float] | None = None,
) -> Experiment:
    """Single-phase experiment lasting ``days`` whole days from ``start``."""
    temperatures = temperatures or [20.0 + day for day in range(days)]
    phase = Phase(
        title="Vegetation",
        duration_days=days,
        temperature_day_schedule={
            "temp": ParameterSchedule(
                entity_id="input_number.temp_day_galo",
                schedule={day: value for day, value in enumerate(temperatures)},
            )
        },
    )
    return Experiment(
        title="Basil trial",
        chamber_id=chamber_id,
        phases=[phase],
        schedule=[ScheduleItem(phase_index=0, start_timestamp=start, end_timestamp=start + days * SECONDS_PER_DAY)],
        status=status,
        remote_id=remote_id,
    )


@pytest.fixture()
def experiment_factory():
    return make_experiment


def remote_experiment_payload(
    remote_id: str = "exp-1",
    *,
    start: int = T0,
    days: int = 2,
    status: str = "active",
) -> dict[str, Any]:
    """Experiment as the coordinator serves it (string day keys)."""
    return {
        "id": remote_id,
        "title": "Remote trial",
        "description": "pulled",
        "status": status,
        "chamber_id": "remote-1",
        "chamber_name": "Climate Chamber_Galo",
        "phases": [
            {
                "title": "Growth",
                "duration_days": days,
                "start_day": {"lamp": {"entity_id": "input_number.lamp_red_galo", "value": 80}},
                "temperature_day_schedule": {
                    "temp": {
                        "entity_id": "input_number.temp_day_galo",
                        "schedule": {str(day): 22 + day for day in range(days)},
                    }
                },
            }
        ],
        "schedule": [
            {"phase_index": 0, "start_timestamp": start, "end_timestamp": start + days * SECONDS_PER_DAY}
        ],
        "created_at": from_timestamp(start - SECONDS_PER_DAY).isoformat(),
    }


@pytest.fixture()
def remote_payload_factory():
    return remote_experiment_payload
