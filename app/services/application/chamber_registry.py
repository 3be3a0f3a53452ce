"""
Chamber Registry
================

Owns the locally known chambers (one per room tag). The registry keeps an
in-memory index over the persisted records, loaded from the store on start
and refreshed by every discovery pass and config pull.

Every accessor returns a deep copy; callers change chambers only through
the registry's methods, which write through to the repository.
"""

from __future__ import annotations

import copy
import logging
import threading
from datetime import datetime
from typing import TYPE_CHECKING, Callable

from app.domain.chambers import Chamber, ChamberEntities, chamber_display_name
from app.domain.exceptions import NotFoundError, RepositoryError
from app.enums import ChamberStatus, RegistrationState
from app.utils.concurrency import synchronized
from app.utils.time import from_timestamp

if TYPE_CHECKING:
    from app.domain.chambers import ChamberRepository

logger = logging.getLogger(__name__)


class ChamberRegistry:
    """Keyed store of chambers behind a lock."""

    def __init__(
        self,
        repository: "ChamberRepository",
        *,
        base_name: str,
        clock: Callable[[], float],
    ) -> None:
        self._repo = repository
        self.base_name = base_name
        self._clock = clock
        self._lock = threading.RLock()
        self._by_tag: dict[str, Chamber] = {}

    def _now(self) -> datetime:
        return from_timestamp(self._clock())

    def _persist(self, chamber: Chamber) -> None:
        if not self._repo.update(chamber):
            logger.warning(f"Failed to persist chamber {chamber.chamber_id} ({chamber.name}); kept in memory")

    def _require(self, chamber_id: int) -> Chamber:
        for chamber in self._by_tag.values():
            if chamber.chamber_id == chamber_id:
                return chamber
        raise NotFoundError(f"Chamber {chamber_id} not found", detail={"chamber_id": chamber_id})

    # ------------------------------------------------------------------
    # Loading and discovery
    # ------------------------------------------------------------------

    @synchronized
    def load(self) -> int:
        """Rebuild the index from the store; returns the number of chambers."""
        self._by_tag = {chamber.room_tag: chamber for chamber in self._repo.list_all()}
        logger.info(f"Loaded {len(self._by_tag)} chambers from the store")
        return len(self._by_tag)

    @synchronized
    def upsert(self, room_tag: str, entities: ChamberEntities) -> Chamber:
        """Create the room's chamber or replace its control points (same local id)."""
        now = self._now()
        chamber = self._by_tag.get(room_tag)

        if chamber is None:
            chamber = Chamber(
                name=chamber_display_name(self.base_name, room_tag),
                room_tag=room_tag,
                entities=copy.deepcopy(entities),
                created_at=now,
            )
            stored = self._repo.create(chamber)
            if stored is None:
                raise RepositoryError(f"Could not store chamber for room '{room_tag}'")
            self._by_tag[room_tag] = stored
            logger.info(f"New chamber '{stored.name}' for room '{room_tag}' (id {stored.chamber_id})")
            return copy.deepcopy(stored)

        chamber.entities = copy.deepcopy(entities)
        chamber.updated_at = now
        self._persist(chamber)
        logger.debug(f"Refreshed control points of chamber '{chamber.name}'")
        return copy.deepcopy(chamber)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @synchronized
    def get(self, room_tag: str) -> Chamber | None:
        chamber = self._by_tag.get(room_tag)
        return copy.deepcopy(chamber) if chamber else None

    @synchronized
    def get_by_id(self, chamber_id: int) -> Chamber | None:
        for chamber in self._by_tag.values():
            if chamber.chamber_id == chamber_id:
                return copy.deepcopy(chamber)
        return None

    @synchronized
    def all(self) -> list[Chamber]:
        return [copy.deepcopy(c) for c in sorted(self._by_tag.values(), key=lambda c: c.chamber_id or 0)]

    @synchronized
    def chamber_ids(self) -> list[int]:
        return sorted(c.chamber_id for c in self._by_tag.values() if c.chamber_id is not None)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    @synchronized
    def touch_heartbeat(self, chamber_id: int) -> Chamber:
        """Stamp a local heartbeat and mark the chamber online."""
        chamber = self._require(chamber_id)
        now = self._now()
        if chamber.status != ChamberStatus.ONLINE:
            logger.info(f"Chamber '{chamber.name}' is back online")
        chamber.last_heartbeat = now
        chamber.status = ChamberStatus.ONLINE
        chamber.updated_at = now
        self._persist(chamber)
        return copy.deepcopy(chamber)

    @synchronized
    def set_registration_state(self, chamber_id: int, state: RegistrationState) -> Chamber:
        chamber = self._require(chamber_id)
        chamber.registration_state = state
        chamber.updated_at = self._now()
        self._persist(chamber)
        return copy.deepcopy(chamber)

    @synchronized
    def set_remote_id(self, chamber_id: int, remote_id: str) -> Chamber:
        """Record the coordinator id; the chamber becomes registered."""
        chamber = self._require(chamber_id)
        chamber.remote_id = remote_id
        chamber.registration_state = RegistrationState.REGISTERED
        chamber.updated_at = self._now()
        self._persist(chamber)
        return copy.deepcopy(chamber)

    @synchronized
    def apply_remote_config(self, chamber_id: int, entities: ChamberEntities, synced_at: datetime) -> Chamber:
        """Overwrite control points with the coordinator's config."""
        chamber = self._require(chamber_id)
        chamber.entities = copy.deepcopy(entities)
        chamber.config_synced_at = synced_at
        chamber.updated_at = self._now()
        self._persist(chamber)
        return copy.deepcopy(chamber)

    @synchronized
    def refresh_statuses(self, timeout_seconds: int) -> list[Chamber]:
        """Flip chambers without a recent heartbeat offline; returns the ones that changed."""
        now = self._now()
        changed: list[Chamber] = []
        for chamber in self._by_tag.values():
            if chamber.status == ChamberStatus.ONLINE and chamber.is_stale(now, timeout_seconds):
                chamber.status = ChamberStatus.OFFLINE
                chamber.updated_at = now
                self._persist(chamber)
                logger.warning(f"Chamber '{chamber.name}' marked offline (no heartbeat for {timeout_seconds}s)")
                changed.append(copy.deepcopy(chamber))
        return changed
