"""Tests for CoordinatorClient with a mocked requests session."""

from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest
import requests

from app.domain.exceptions import CoordinatorError
from app.enums import ExperimentStatus
from app.schemas.coordinator import ChamberConfigPayload, HeartbeatRequest, RegisterChamberRequest
from app.services.utilities.coordinator_client import CoordinatorClient
from app.utils.time import from_timestamp
from tests.conftest import T0


def _response(status: int, payload=None) -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response._content = json.dumps(payload).encode() if payload is not None else b""
    return response


def _ok(data=None) -> requests.Response:
    return _response(200, {"success": True, "data": data, "error": None})


@pytest.fixture()
def session():
    return MagicMock(spec=requests.Session, headers={})


@pytest.fixture()
def client(session):
    return CoordinatorClient("https://coordinator.example/api/", "key-1", timeout=7, session=session)


def _register_request() -> RegisterChamberRequest:
    return RegisterChamberRequest(
        name="Climate Chamber_Galo",
        room_suffix="galo",
        location="Room: galo",
        ha_url="http://ha.local:8123",
        config=ChamberConfigPayload(),
        current_time="2023-11-15T01:13:20+03:00",
    )


class TestRegistration:
    def test_returns_remote_id(self, client, session):
        session.request.return_value = _response(201, {"success": True, "data": {"id": "ch-9"}})

        assert client.register_chamber(_register_request()) == "ch-9"

        method, url = session.request.call_args.args
        assert (method, url) == ("POST", "https://coordinator.example/api/chambers")
        assert session.request.call_args.kwargs["json"]["room_suffix"] == "galo"
        assert session.request.call_args.kwargs["timeout"] == 7
        assert session.headers["Authorization"] == "Bearer key-1"

    def test_rejected_envelope_raises(self, client, session):
        session.request.return_value = _response(200, {"success": False, "error": "duplicate chamber"})

        with pytest.raises(CoordinatorError, match="duplicate chamber"):
            client.register_chamber(_register_request())

    def test_missing_id_raises(self, client, session):
        session.request.return_value = _ok({})
        with pytest.raises(CoordinatorError, match="no chamber id"):
            client.register_chamber(_register_request())

    def test_network_error_names_endpoint(self, client, session):
        session.request.side_effect = requests.exceptions.ConnectionError("refused")

        with pytest.raises(CoordinatorError, match="POST /chambers failed") as exc_info:
            client.register_chamber(_register_request())

        assert exc_info.value.detail == {"endpoint": "/chambers"}


class TestConfig:
    def test_not_modified_is_none(self, client, session):
        session.request.return_value = _response(304)

        since = from_timestamp(T0)
        assert client.check_config("ch-9", since) is None

        headers = session.request.call_args.kwargs["headers"]
        assert headers == {"If-Modified-Since": "Tue, 14 Nov 2023 22:13:20 GMT"}

    def test_first_check_sends_no_condition(self, client, session):
        session.request.return_value = _ok({"needs_update": True, "updated_at": "2023-11-14T22:13:20Z"})

        check = client.check_config("ch-9", None)

        assert check.needs_update is True
        assert check.updated_at == from_timestamp(T0)
        assert session.request.call_args.kwargs["headers"] is None

    def test_fetch_config(self, client, session):
        session.request.return_value = _ok(
            {"lamps": {"input_number.lamp_red_galo": {"entity_id": "input_number.lamp_red_galo", "name": "Red"}}}
        )

        config = client.fetch_config("ch-9")

        assert [lamp.name for lamp in config.to_entities().lamps] == ["Red"]

    def test_fetch_config_with_null_sections(self, client, session):
        session.request.return_value = _ok(
            {
                "lamps": {"input_number.lamp_red_galo": {"entity_id": "input_number.lamp_red_galo", "name": "Red"}},
                "watering_zones": None,
                "unrecognised_entities": None,
                "temperature": {"day": None, "night": None},
                "humidity": None,
            }
        )

        config = client.fetch_config("ch-9")

        assert config.watering_zones == []
        assert config.humidity.day == {}
        assert config.to_entities().counts()["lamps"] == 1

    def test_unexpected_status_raises(self, client, session):
        session.request.return_value = _response(500, {"success": False})
        with pytest.raises(CoordinatorError, match="answered 500"):
            client.fetch_config("ch-9")


class TestExperiments:
    def test_list_passes_chamber_and_headers(self, client, session):
        session.request.return_value = _ok([{"id": "exp-1"}])
        headers = {"X-Local-Time": "2023-11-15T01:13:20+03:00", "X-NTP-Enabled": "true", "X-NTP-Connected": "true"}

        assert client.list_experiments("ch-9", headers) == [{"id": "exp-1"}]

        kwargs = session.request.call_args.kwargs
        assert kwargs["params"] == {"chamber_id": "ch-9"}
        assert kwargs["headers"] == headers

    def test_null_data_is_empty_list(self, client, session):
        session.request.return_value = _ok(None)
        assert client.list_experiments("ch-9", {}) == []

    def test_non_list_data_raises(self, client, session):
        session.request.return_value = _ok({"id": "exp-1"})
        with pytest.raises(CoordinatorError, match="list of experiments"):
            client.list_experiments("ch-9", {})

    def test_status_update(self, client, session):
        session.request.return_value = _ok()

        client.update_experiment_status(
            "exp-1", ExperimentStatus.COMPLETED, local_time="2023-11-15T01:13:20+03:00", chamber_name="Galo"
        )

        method, url = session.request.call_args.args
        assert (method, url) == ("PATCH", "https://coordinator.example/api/experiments/exp-1/status")
        assert session.request.call_args.kwargs["json"] == {"status": "completed"}
        assert session.request.call_args.kwargs["headers"]["X-Chamber-Name"] == "Galo"


def test_heartbeat_body(client, session):
    session.request.return_value = _ok()

    client.send_heartbeat("ch-9", HeartbeatRequest(timestamp="t", ntp_enabled=True, ntp_connected=False, ntp_offset=0.5))

    assert session.request.call_args.kwargs["json"] == {
        "timestamp": "t",
        "ntp_enabled": True,
        "ntp_connected": False,
        "ntp_offset": 0.5,
    }
