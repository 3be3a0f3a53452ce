"""
Service protocols (structural typing interfaces).

Protocols let consumer services declare the *minimal* surface they depend on
without importing the concrete class, breaking circular imports and making
tests trivially mockable.

Usage
-----
In a consumer service::

    from __future__ import annotations
    from typing import TYPE_CHECKING
    if TYPE_CHECKING:
        from app.services.protocols import ActuatorClient

    class ExecutionService:
        def __init__(self, actuator: "ActuatorClient", ...): ...

At runtime ``HomeAssistantClient`` already satisfies the protocol via
structural subtyping; tests pass small fakes instead.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from app.domain.chambers import RawEntity
from app.enums import ExperimentStatus
from app.schemas.coordinator import (
    ChamberConfigPayload,
    ConfigCheckResponse,
    HeartbeatRequest,
    RegisterChamberRequest,
)


@runtime_checkable
class Clock(Protocol):
    """Source of "now" for every scheduling decision."""

    @property
    def ntp_enabled(self) -> bool: ...

    def now(self) -> float:
        """Current epoch seconds, network-corrected when available."""
        ...

    def now_local(self) -> datetime:
        """Current time as an aware datetime in the node's civil timezone."""
        ...

    def is_connected(self) -> bool: ...

    def offset_seconds(self) -> float: ...


@runtime_checkable
class ActuatorClient(Protocol):
    """The device gateway the node reads entities from and writes values to."""

    def list_states(self) -> list[RawEntity]:
        """Every controllable numeric entity currently exposed."""
        ...

    def set_value(self, entity_id: str, value: float) -> None:
        """Write one value; raises ActuatorError on failure."""
        ...

    def get_state(self, entity_id: str) -> RawEntity | None:
        """Read one entity, ``None`` when the gateway does not know it."""
        ...

    def probe(self) -> bool:
        """True when the gateway answers."""
        ...


@runtime_checkable
class CoordinatorTransport(Protocol):
    """Remote coordinator endpoints. Every method raises CoordinatorError on failure."""

    def register_chamber(self, request: RegisterChamberRequest) -> str:
        """Register a chamber and return its remote id."""
        ...

    def send_heartbeat(self, remote_id: str, heartbeat: HeartbeatRequest) -> None: ...

    def check_config(self, remote_id: str, since: datetime | None) -> ConfigCheckResponse | None:
        """``None`` means "not modified"."""
        ...

    def fetch_config(self, remote_id: str) -> ChamberConfigPayload: ...

    def list_experiments(self, remote_id: str, headers: dict[str, str]) -> list[dict[str, Any]]: ...

    def update_experiment_status(
        self,
        remote_id: str,
        status: ExperimentStatus,
        *,
        local_time: str,
        chamber_name: str,
    ) -> None: ...
