"""
Coordinator Client
==================

requests-based transport for the remote coordinator API. Responses are
wrapped as ``{success, data, error}``; every call has its own timeout and
failures surface as CoordinatorError naming the endpoint.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

import requests
from pydantic import ValidationError as PydanticValidationError

from app.domain.exceptions import CoordinatorError
from app.enums import ExperimentStatus
from app.schemas.coordinator import (
    ChamberConfigPayload,
    ConfigCheckResponse,
    CoordinatorEnvelope,
    HeartbeatRequest,
    RegisterChamberRequest,
    RegisteredChamber,
    StatusUpdateRequest,
)
from app.utils.time import http_date

logger = logging.getLogger(__name__)


class CoordinatorClient:
    """HTTP client for the coordinator's chamber and experiment endpoints."""

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        *,
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update({"Content-Type": "application/json"})
        if api_key:
            self._session.headers["Authorization"] = f"Bearer {api_key}"

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        ok_statuses: tuple[int, ...] = (200,),
    ) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            response = self._session.request(
                method,
                url,
                json=json,
                params=params,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise CoordinatorError(f"{method} {path} failed: {e}", detail={"endpoint": path}) from e

        if response.status_code not in ok_statuses:
            raise CoordinatorError(
                f"{method} {path} answered {response.status_code}: {response.text[:200]}",
                detail={"endpoint": path, "status": response.status_code},
            )
        return response

    @staticmethod
    def _unwrap(response: requests.Response, path: str) -> Any:
        try:
            envelope = CoordinatorEnvelope.model_validate(response.json())
        except (ValueError, PydanticValidationError) as e:
            raise CoordinatorError(f"Invalid response envelope from {path}: {e}") from e
        if not envelope.success:
            raise CoordinatorError(
                f"Coordinator rejected {path}: {envelope.error or 'unknown error'}",
                detail={"endpoint": path},
            )
        return envelope.data

    # ------------------------------------------------------------------
    # Chambers
    # ------------------------------------------------------------------

    def register_chamber(self, request: RegisterChamberRequest) -> str:
        path = "/chambers"
        response = self._request("POST", path, json=request.model_dump(mode="json"), ok_statuses=(200, 201))
        data = self._unwrap(response, path)
        try:
            registered = RegisteredChamber.model_validate(data)
        except PydanticValidationError as e:
            raise CoordinatorError(f"Registration response carries no chamber id: {e}") from e
        logger.info(f"Chamber '{request.name}' registered with coordinator id {registered.id}")
        return registered.id

    def send_heartbeat(self, remote_id: str, heartbeat: HeartbeatRequest) -> None:
        path = f"/chambers/{remote_id}/heartbeat"
        response = self._request("POST", path, json=heartbeat.model_dump(mode="json"))
        self._unwrap(response, path)

    def check_config(self, remote_id: str, since: datetime | None) -> ConfigCheckResponse | None:
        """Conditional config check; ``None`` when the coordinator answers 304."""
        path = f"/chambers/{remote_id}/config/check"
        headers = {"If-Modified-Since": http_date(since)} if since else None
        response = self._request("GET", path, headers=headers, ok_statuses=(200, 304))
        if response.status_code == 304:
            return None
        data = self._unwrap(response, path)
        try:
            return ConfigCheckResponse.model_validate(data or {})
        except PydanticValidationError as e:
            raise CoordinatorError(f"Invalid config check payload: {e}") from e

    def fetch_config(self, remote_id: str) -> ChamberConfigPayload:
        path = f"/chambers/{remote_id}/config"
        data = self._unwrap(self._request("GET", path), path)
        try:
            return ChamberConfigPayload.model_validate(data or {})
        except PydanticValidationError as e:
            raise CoordinatorError(f"Invalid chamber config payload: {e}") from e

    # ------------------------------------------------------------------
    # Experiments
    # ------------------------------------------------------------------

    def list_experiments(self, remote_id: str, headers: dict[str, str]) -> list[dict[str, Any]]:
        """Raw experiment dicts; each one is validated separately by the caller."""
        path = "/experiments"
        response = self._request("GET", path, params={"chamber_id": remote_id}, headers=headers)
        data = self._unwrap(response, path)
        if data is None:
            return []
        if not isinstance(data, list):
            raise CoordinatorError(f"Expected a list of experiments, got {type(data).__name__}")
        return data

    def update_experiment_status(
        self,
        remote_id: str,
        status: ExperimentStatus,
        *,
        local_time: str,
        chamber_name: str,
    ) -> None:
        path = f"/experiments/{remote_id}/status"
        headers = {"X-Local-Time": local_time, "X-Chamber-Name": chamber_name}
        body = StatusUpdateRequest(status=status).model_dump(mode="json")
        response = self._request("PATCH", path, json=body, headers=headers)
        self._unwrap(response, path)
        logger.info(f"Pushed status '{status.value}' for experiment {remote_id}")

    def close(self) -> None:
        self._session.close()
