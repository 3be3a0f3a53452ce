"""Tests for HomeAssistantClient with a mocked requests session."""

from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest
import requests

from app.domain.exceptions import ActuatorError
from app.hardware.home_assistant import HomeAssistantClient, state_to_raw_entity


def _response(status: int, payload=None) -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response._content = json.dumps(payload).encode() if payload is not None else b""
    return response


@pytest.fixture()
def session():
    return MagicMock(spec=requests.Session, headers={})


@pytest.fixture()
def client(session):
    return HomeAssistantClient("http://ha.local:8123/", "token-1", timeout=3, session=session)


def test_token_is_sent_as_bearer(client, session):
    assert session.headers["Authorization"] == "Bearer token-1"
    assert client.base_url == "http://ha.local:8123"


class TestListStates:
    def test_only_input_numbers_are_returned(self, client, session):
        session.get.return_value = _response(
            200,
            [
                {
                    "entity_id": "input_number.temp_day_galo",
                    "state": "24.5",
                    "attributes": {"friendly_name": "Temp Day Galo", "min": 10, "max": 40, "step": 0.5,
                                   "unit_of_measurement": "°C"},
                },
                {"entity_id": "sensor.temperature", "state": "21", "attributes": {}},
            ],
        )

        [entity] = client.list_states()

        assert entity.entity_id == "input_number.temp_day_galo"
        assert entity.value == 24.5
        assert entity.max == 40.0
        assert entity.unit == "°C"
        session.get.assert_called_once_with("http://ha.local:8123/api/states", timeout=3)

    def test_http_error_raises(self, client, session):
        session.get.return_value = _response(500, {"message": "boom"})
        with pytest.raises(ActuatorError, match="list gateway states"):
            client.list_states()

    def test_unavailable_state_defaults_to_zero(self):
        entity = state_to_raw_entity({"entity_id": "input_number.x", "state": "unavailable"})
        assert entity.value == 0.0
        assert entity.max == 100.0


class TestSetValue:
    def test_posts_set_value_service(self, client, session):
        session.post.return_value = _response(200, [])

        client.set_value("input_number.lamp_red_galo", 80.0)

        session.post.assert_called_once_with(
            "http://ha.local:8123/api/services/input_number/set_value",
            json={"entity_id": "input_number.lamp_red_galo", "value": 80.0},
            timeout=3,
        )

    def test_failure_names_entity(self, client, session):
        session.post.side_effect = requests.exceptions.ConnectionError("refused")

        with pytest.raises(ActuatorError) as exc_info:
            client.set_value("input_number.lamp_red_galo", 80.0)

        assert exc_info.value.detail == {"entity_id": "input_number.lamp_red_galo", "value": 80.0}


class TestGetState:
    def test_missing_entity_is_none(self, client, session):
        session.get.return_value = _response(404, {"message": "Entity not found."})
        assert client.get_state("input_number.ghost") is None

    def test_existing_entity(self, client, session):
        session.get.return_value = _response(200, {"entity_id": "input_number.a", "state": "3"})
        assert client.get_state("input_number.a").value == 3.0


class TestProbe:
    @pytest.mark.parametrize("status, expected", [(200, True), (204, True), (401, False), (503, False)])
    def test_status_codes(self, client, session, status, expected):
        session.get.return_value = _response(status, {"message": "API running."})
        assert client.probe() is expected

    @pytest.mark.parametrize(
        "error",
        [requests.exceptions.Timeout(), requests.exceptions.ConnectionError(), requests.exceptions.TooManyRedirects()],
    )
    def test_transport_errors_mean_unreachable(self, client, session, error):
        session.get.side_effect = error
        assert client.probe() is False
