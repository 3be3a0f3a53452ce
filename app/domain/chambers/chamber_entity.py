"""
Chamber Domain Entity
=====================

A chamber is the group of gateway entities sharing one room tag. It carries
its classified control points, its identity at the coordinator and its
liveness.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from app.domain.chambers.control_points import ChamberEntities
from app.enums.chamber import ChamberStatus, RegistrationState
from app.utils.time import coerce_datetime, isoformat_or_none

DEFAULT_ROOM_TAG = "default"

# Display labels for well-known rooms; anything else is upper-cased.
ROOM_LABELS = {
    "galo": "Galo",
    "sb4": "SB4",
    "oreol": "Oreol",
    "sb1": "SB1",
}


def chamber_display_name(base_name: str, room_tag: str) -> str:
    """Name a chamber after the node and its room tag.

    ``"default"`` keeps the base name; ``galo`` becomes ``<base>_Galo``.
    """
    if room_tag == DEFAULT_ROOM_TAG:
        return base_name
    label = ROOM_LABELS.get(room_tag, room_tag.upper())
    return f"{base_name}_{label}"


@dataclass
class Chamber:
    """
    Locally known chamber.

    Attributes:
        name: Display name sent to the coordinator
        room_tag: Room discriminator extracted from entity names
        entities: Classified control points (replaced wholesale)
        chamber_id: Local database id (None until persisted)
        remote_id: Coordinator id (None until registered)
        status: ONLINE/OFFLINE based on heartbeats
        registration_state: Coordinator relationship
        last_heartbeat: Last local heartbeat
        config_synced_at: Coordinator config timestamp last applied
    """

    name: str
    room_tag: str = DEFAULT_ROOM_TAG
    entities: ChamberEntities = field(default_factory=ChamberEntities)
    chamber_id: int | None = None
    remote_id: str | None = None
    status: ChamberStatus = ChamberStatus.ONLINE
    registration_state: RegistrationState = RegistrationState.UNREGISTERED
    last_heartbeat: datetime | None = None
    config_synced_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_registered(self) -> bool:
        return bool(self.remote_id) and self.registration_state == RegistrationState.REGISTERED

    @property
    def location_label(self) -> str:
        return f"Room: {self.room_tag}"

    def is_stale(self, now: datetime, timeout_seconds: int) -> bool:
        """True when no heartbeat (or creation) happened within the timeout."""
        reference = self.last_heartbeat or self.created_at
        if reference is None:
            return False
        return now - reference > timedelta(seconds=timeout_seconds)

    def to_dict(self) -> dict[str, Any]:
        return {
            "chamber_id": self.chamber_id,
            "name": self.name,
            "room_tag": self.room_tag,
            "remote_id": self.remote_id,
            "status": self.status.value,
            "registration_state": self.registration_state.value,
            "last_heartbeat": isoformat_or_none(self.last_heartbeat),
            "config_synced_at": isoformat_or_none(self.config_synced_at),
            "created_at": isoformat_or_none(self.created_at),
            "updated_at": isoformat_or_none(self.updated_at),
            "counts": self.entities.counts(),
            "entities": self.entities.to_dict(),
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "Chamber":
        return Chamber(
            name=data["name"],
            room_tag=data.get("room_tag") or DEFAULT_ROOM_TAG,
            entities=ChamberEntities.from_dict(data.get("entities")),
            chamber_id=data.get("chamber_id"),
            remote_id=data.get("remote_id"),
            status=ChamberStatus(data.get("status", ChamberStatus.ONLINE.value)),
            registration_state=RegistrationState(
                data.get("registration_state", RegistrationState.UNREGISTERED.value)
            ),
            last_heartbeat=coerce_datetime(data.get("last_heartbeat")),
            config_synced_at=coerce_datetime(data.get("config_synced_at")),
            created_at=coerce_datetime(data.get("created_at")),
            updated_at=coerce_datetime(data.get("updated_at")),
        )
