"""
Home Assistant Gateway Client
=============================

REST client for the local Home Assistant instance exposing the chambers'
``input_number`` entities.

Endpoints used:
- GET  /api/states                          list every entity state
- GET  /api/states/<entity_id>              read one entity
- POST /api/services/input_number/set_value write one value
- GET  /api/                                connectivity probe
"""

from __future__ import annotations

import logging
from typing import Any

import requests

from app.domain.chambers import RawEntity
from app.domain.exceptions import ActuatorError

logger = logging.getLogger(__name__)

CONTROLLABLE_DOMAIN = "input_number."
_PROBE_OK = {200, 201, 202, 204}


def _as_float(value: Any, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def state_to_raw_entity(state: dict[str, Any]) -> RawEntity:
    """Map one ``/api/states`` item to a RawEntity snapshot."""
    attributes = state.get("attributes") or {}
    return RawEntity(
        entity_id=state["entity_id"],
        friendly_name=attributes.get("friendly_name") or "",
        value=_as_float(state.get("state"), 0.0),
        min=_as_float(attributes.get("min"), 0.0),
        max=_as_float(attributes.get("max"), 100.0),
        step=_as_float(attributes.get("step"), 1.0),
        unit=attributes.get("unit_of_measurement") or "",
    )


class HomeAssistantClient:
    """
    Thin requests-based client for the Home Assistant REST API.

    Every call carries its own timeout; transport failures and non-2xx
    answers are raised as ActuatorError naming the entity or endpoint.
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        *,
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update({"Content-Type": "application/json"})
        if token:
            self._session.headers["Authorization"] = f"Bearer {token}"

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def list_states(self) -> list[RawEntity]:
        """Return every ``input_number`` entity currently exposed."""
        try:
            response = self._session.get(self._url("/api/states"), timeout=self.timeout)
            response.raise_for_status()
            states = response.json()
        except requests.exceptions.RequestException as e:
            raise ActuatorError(f"Failed to list gateway states: {e}") from e
        except ValueError as e:
            raise ActuatorError(f"Gateway returned invalid JSON for /api/states: {e}") from e

        entities = [
            state_to_raw_entity(state)
            for state in states
            if str(state.get("entity_id", "")).startswith(CONTROLLABLE_DOMAIN)
        ]
        logger.debug("Gateway exposes %d input_number entities", len(entities))
        return entities

    def set_value(self, entity_id: str, value: float) -> None:
        payload = {"entity_id": entity_id, "value": value}
        try:
            response = self._session.post(
                self._url("/api/services/input_number/set_value"),
                json=payload,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise ActuatorError(
                f"Failed to set {entity_id} to {value}: {e}",
                detail={"entity_id": entity_id, "value": value},
            ) from e
        logger.debug("Set %s = %s", entity_id, value)

    def get_state(self, entity_id: str) -> RawEntity | None:
        try:
            response = self._session.get(self._url(f"/api/states/{entity_id}"), timeout=self.timeout)
            if response.status_code == 404:
                return None
            response.raise_for_status()
            return state_to_raw_entity(response.json())
        except requests.exceptions.RequestException as e:
            raise ActuatorError(f"Failed to read {entity_id}: {e}", detail={"entity_id": entity_id}) from e
        except (KeyError, ValueError) as e:
            raise ActuatorError(f"Unexpected state payload for {entity_id}: {e}") from e

    def probe(self) -> bool:
        """Check connectivity; never raises."""
        try:
            response = self._session.get(self._url("/api/"), timeout=self.timeout)
        except requests.exceptions.Timeout:
            logger.warning("Gateway probe timed out: %s", self.base_url)
            return False
        except requests.exceptions.ConnectionError:
            logger.warning("Gateway unreachable: %s", self.base_url)
            return False
        except requests.exceptions.RequestException as e:
            logger.error("Gateway probe failed for %s: %s", self.base_url, e)
            return False

        if response.status_code in _PROBE_OK:
            return True
        logger.warning("Gateway probe answered %d: %s", response.status_code, self.base_url)
        return False

    def close(self) -> None:
        self._session.close()
