"""
Sync Coordinator
================

Keeps edge state eventually consistent with the remote coordinator:

- registration: ``unregistered -> registering -> registered`` per chamber
- heartbeats: always stamped locally, sent only for registered chambers
- config pull: conditional check, full fetch only when modified
- experiment pull: validated upsert keyed on (remote_id, chamber_id)
- status push: best effort, never reverts the local status

Network failures are logged per chamber/endpoint and retried on the next
periodic run; nothing here retries inline.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError as PydanticValidationError

from app.domain.chambers import Chamber
from app.domain.exceptions import (
    CoordinatorError,
    NotFoundError,
    ScheduleConfigurationError,
    UnregisteredChamberError,
)
from app.domain.experiments import Experiment
from app.enums import ExperimentStatus, RegistrationState
from app.schemas.coordinator import (
    ChamberConfigPayload,
    HeartbeatRequest,
    RegisterChamberRequest,
    RemoteExperimentPayload,
)
from app.utils.time import from_timestamp, isoformat_or_none

if TYPE_CHECKING:
    from app.domain.experiments import ExperimentRepository
    from app.services.application.chamber_registry import ChamberRegistry
    from app.services.protocols import Clock, CoordinatorTransport

logger = logging.getLogger(__name__)


class SyncCoordinator:
    def __init__(
        self,
        transport: "CoordinatorTransport",
        registry: "ChamberRegistry",
        experiments: "ExperimentRepository",
        clock: "Clock",
        *,
        ha_url: str,
        ha_token: str = "",
        local_ip: str = "",
    ) -> None:
        self._transport = transport
        self._registry = registry
        self._experiments = experiments
        self._clock = clock
        self.ha_url = ha_url
        self.ha_token = ha_token
        self.local_ip = local_ip
        self._lock = threading.Lock()
        self._state: dict[int, dict[str, Any]] = {}

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _local_time(self) -> str:
        return self._clock.now_local().isoformat(timespec="seconds")

    def _record(self, chamber_id: int, **values: Any) -> None:
        with self._lock:
            self._state.setdefault(chamber_id, {}).update(values)

    def _require_remote_id(self, chamber: Chamber) -> str:
        if not chamber.remote_id:
            raise UnregisteredChamberError(
                f"Chamber '{chamber.name}' has no coordinator id yet",
                detail={"chamber_id": chamber.chamber_id},
            )
        return chamber.remote_id

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, chamber_id: int) -> bool:
        """Register one chamber; on failure it returns to ``unregistered``."""
        chamber = self._registry.get_by_id(chamber_id)
        if chamber is None:
            raise NotFoundError(f"Chamber {chamber_id} not found")
        if chamber.is_registered:
            return True

        self._registry.set_registration_state(chamber_id, RegistrationState.REGISTERING)
        request = RegisterChamberRequest(
            name=chamber.name,
            room_suffix=chamber.room_tag,
            location=chamber.location_label,
            ha_url=self.ha_url,
            access_token=self.ha_token,
            local_ip=self.local_ip,
            config=ChamberConfigPayload.from_entities(chamber.entities),
            current_time=self._local_time(),
            ntp_enabled=self._clock.ntp_enabled,
            ntp_connected=self._clock.is_connected(),
        )
        try:
            remote_id = self._transport.register_chamber(request)
        except CoordinatorError as e:
            self._registry.set_registration_state(chamber_id, RegistrationState.UNREGISTERED)
            self._record(chamber_id, last_error=str(e))
            logger.warning(f"Registration of chamber '{chamber.name}' failed: {e}")
            return False

        self._registry.set_remote_id(chamber_id, remote_id)
        self._record(chamber_id, last_error=None, registered_at=self._local_time())
        return True

    def register_pending(self) -> int:
        """Attempt registration of every unregistered chamber; returns successes."""
        registered = 0
        for chamber in self._registry.all():
            if chamber.is_registered or chamber.chamber_id is None:
                continue
            if self.register(chamber.chamber_id):
                registered += 1
        return registered

    # ------------------------------------------------------------------
    # Heartbeat
    # ------------------------------------------------------------------

    def heartbeat(self, chamber_id: int) -> bool:
        """Stamp the local heartbeat, then notify the coordinator if registered."""
        chamber = self._registry.touch_heartbeat(chamber_id)
        try:
            remote_id = self._require_remote_id(chamber)
        except UnregisteredChamberError as e:
            logger.debug(f"Heartbeat not sent: {e}")
            return False

        body = HeartbeatRequest(
            timestamp=self._local_time(),
            ntp_enabled=self._clock.ntp_enabled,
            ntp_connected=self._clock.is_connected(),
            ntp_offset=self._clock.offset_seconds(),
        )
        try:
            self._transport.send_heartbeat(remote_id, body)
        except CoordinatorError as e:
            self._record(chamber_id, last_error=str(e))
            logger.warning(f"Heartbeat for chamber '{chamber.name}' failed: {e}")
            return False
        self._record(chamber_id, last_heartbeat_sent=body.timestamp)
        return True

    def heartbeat_all(self) -> int:
        return sum(1 for chamber_id in self._registry.chamber_ids() if self.heartbeat(chamber_id))

    # ------------------------------------------------------------------
    # Config pull
    # ------------------------------------------------------------------

    def pull_config(self, chamber: Chamber) -> bool:
        """
        Conditional config pull.

        Returns:
            True when control points were replaced, False when not modified
        """
        remote_id = self._require_remote_id(chamber)
        check = self._transport.check_config(remote_id, chamber.config_synced_at)
        if check is None or not check.needs_update:
            logger.debug(f"Config of chamber '{chamber.name}' not modified")
            return False

        config = self._transport.fetch_config(remote_id)
        synced_at = config.updated_at or check.updated_at or from_timestamp(self._clock.now())
        self._registry.apply_remote_config(chamber.chamber_id, config.to_entities(), synced_at)
        logger.info(f"Configuration of chamber '{chamber.name}' synced from coordinator")
        return True

    # ------------------------------------------------------------------
    # Experiment pull
    # ------------------------------------------------------------------

    def pull_experiments(self, chamber: Chamber) -> int:
        """Fetch and upsert the chamber's experiments; returns how many were stored."""
        remote_id = self._require_remote_id(chamber)
        headers = {
            "X-Local-Time": self._local_time(),
            "X-NTP-Enabled": str(self._clock.ntp_enabled).lower(),
            "X-NTP-Connected": str(self._clock.is_connected()).lower(),
        }
        raw_experiments = self._transport.list_experiments(remote_id, headers)
        now = from_timestamp(self._clock.now())

        stored = 0
        for raw in raw_experiments:
            try:
                experiment = RemoteExperimentPayload.model_validate(raw).to_domain(chamber.chamber_id)
                experiment.sort_schedule()
                experiment.validate()
            except (PydanticValidationError, ScheduleConfigurationError) as e:
                title = raw.get("title") if isinstance(raw, dict) else None
                logger.warning(f"Rejected experiment {title!r} for chamber '{chamber.name}': {e}")
                continue

            result = self._experiments.upsert_remote(experiment, now)
            if result is None:
                continue
            stored += 1
            if result[1]:
                logger.info(f"New experiment '{experiment.title}' for chamber '{chamber.name}'")
            if experiment.is_active:
                logger.debug(f"Active experiment: {experiment.title}")

        self._record(chamber.chamber_id, last_experiment_pull=isoformat_or_none(now), experiments_synced=stored)
        logger.info(f"Synced {stored} experiment(s) for chamber '{chamber.name}'")
        return stored

    def sync_all(self) -> None:
        """Config and experiment pull for every registered chamber."""
        for chamber in self._registry.all():
            if not chamber.is_registered:
                logger.debug(f"Sync skipped: chamber '{chamber.name}' not registered yet")
                continue
            try:
                self.pull_config(chamber)
            except CoordinatorError as e:
                self._record(chamber.chamber_id, last_error=str(e))
                logger.warning(f"Config pull for chamber '{chamber.name}' failed: {e}")
            # Re-read: the config pull may have replaced the chamber's record
            chamber = self._registry.get_by_id(chamber.chamber_id) or chamber
            try:
                self.pull_experiments(chamber)
            except CoordinatorError as e:
                self._record(chamber.chamber_id, last_error=str(e))
                logger.warning(f"Experiment pull for chamber '{chamber.name}' failed: {e}")

    # ------------------------------------------------------------------
    # Status push
    # ------------------------------------------------------------------

    def push_status(self, experiment: Experiment, status: ExperimentStatus) -> bool:
        """Best-effort PATCH of an experiment status."""
        if not experiment.remote_id:
            logger.debug(f"Status of local-only experiment '{experiment.title}' not pushed")
            return False

        chamber = self._registry.get_by_id(experiment.chamber_id) if experiment.chamber_id is not None else None
        chamber_name = chamber.name if chamber else experiment.chamber_name
        try:
            self._transport.update_experiment_status(
                experiment.remote_id,
                status,
                local_time=self._local_time(),
                chamber_name=chamber_name,
            )
        except CoordinatorError as e:
            logger.error(f"Failed to push status '{status.value}' for experiment '{experiment.title}': {e}")
            return False
        return True

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def get_sync_status(self) -> list[dict[str, Any]]:
        with self._lock:
            state = {chamber_id: dict(values) for chamber_id, values in self._state.items()}

        report = []
        for chamber in self._registry.all():
            entry = {
                "chamber_id": chamber.chamber_id,
                "name": chamber.name,
                "registration_state": chamber.registration_state.value,
                "remote_id": chamber.remote_id,
                "last_config_sync": isoformat_or_none(chamber.config_synced_at),
                "last_experiment_pull": None,
                "experiments_synced": 0,
                "last_error": None,
            }
            entry.update(state.get(chamber.chamber_id, {}))
            report.append(entry)
        return report
