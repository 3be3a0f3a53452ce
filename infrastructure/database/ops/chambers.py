"""
Chamber Database Operations
===========================

Database operations for the Chambers table.
Implements the ChamberRepository protocol through ChamberRepository.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from typing import TYPE_CHECKING, Any

from app.domain.chambers import Chamber, ChamberEntities
from app.enums import ChamberStatus, RegistrationState
from app.utils.time import coerce_datetime, isoformat_or_none, utc_now

if TYPE_CHECKING:
    from sqlite3 import Connection

logger = logging.getLogger(__name__)


class ChamberOperations:
    """Chamber-related CRUD helpers for database handlers."""

    def get_db(self) -> "Connection":
        """Get database connection. Must be implemented by mixing class."""
        raise NotImplementedError("Subclass must implement get_db()")

    def create_chamber(self, chamber: Chamber) -> Chamber | None:
        """
        Insert a chamber.

        Returns:
            The chamber with chamber_id and timestamps set, or None on error
        """
        db = self.get_db()
        now = utc_now()
        created_at = chamber.created_at or now

        try:
            cursor = db.execute(
                """
                INSERT INTO Chambers (
                    name, room_tag, remote_id, status, registration_state,
                    control_points, last_heartbeat, config_synced_at,
                    created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    chamber.name,
                    chamber.room_tag,
                    chamber.remote_id,
                    chamber.status.value,
                    chamber.registration_state.value,
                    json.dumps(chamber.entities.to_dict(), ensure_ascii=False),
                    isoformat_or_none(chamber.last_heartbeat),
                    isoformat_or_none(chamber.config_synced_at),
                    created_at.isoformat(),
                    now.isoformat(),
                ),
            )
            db.commit()

            chamber.chamber_id = cursor.lastrowid
            chamber.created_at = created_at
            chamber.updated_at = now
            logger.info(f"Created chamber {chamber.chamber_id} ({chamber.name}, room '{chamber.room_tag}')")
            return chamber

        except sqlite3.Error as e:
            logger.error(f"Error creating chamber {chamber.name}: {e}")
            return None

    def update_chamber(self, chamber: Chamber) -> bool:
        """Overwrite a chamber row; ``updated_at`` is taken from the entity."""
        if chamber.chamber_id is None:
            logger.error("Cannot update chamber without chamber_id")
            return False

        db = self.get_db()
        try:
            cursor = db.execute(
                """
                UPDATE Chambers SET
                    name = ?, room_tag = ?, remote_id = ?, status = ?,
                    registration_state = ?, control_points = ?,
                    last_heartbeat = ?, config_synced_at = ?, updated_at = ?
                WHERE chamber_id = ?
                """,
                (
                    chamber.name,
                    chamber.room_tag,
                    chamber.remote_id,
                    chamber.status.value,
                    chamber.registration_state.value,
                    json.dumps(chamber.entities.to_dict(), ensure_ascii=False),
                    isoformat_or_none(chamber.last_heartbeat),
                    isoformat_or_none(chamber.config_synced_at),
                    isoformat_or_none(chamber.updated_at or utc_now()),
                    chamber.chamber_id,
                ),
            )
            db.commit()
            return cursor.rowcount > 0

        except sqlite3.Error as e:
            logger.error(f"Error updating chamber {chamber.chamber_id}: {e}")
            return False

    def get_chamber_by_id(self, chamber_id: int) -> Chamber | None:
        return self._fetch_chamber("SELECT * FROM Chambers WHERE chamber_id = ?", (chamber_id,))

    def get_chamber_by_room_tag(self, room_tag: str) -> Chamber | None:
        return self._fetch_chamber("SELECT * FROM Chambers WHERE room_tag = ?", (room_tag,))

    def list_chambers(self) -> list[Chamber]:
        db = self.get_db()
        try:
            rows = db.execute("SELECT * FROM Chambers ORDER BY chamber_id").fetchall()
            return [self._row_to_chamber(dict(row)) for row in rows]
        except sqlite3.Error as e:
            logger.error(f"Error listing chambers: {e}")
            return []

    def _fetch_chamber(self, query: str, params: tuple) -> Chamber | None:
        db = self.get_db()
        try:
            row = db.execute(query, params).fetchone()
            if row:
                return self._row_to_chamber(dict(row))
            return None
        except sqlite3.Error as e:
            logger.error(f"Error fetching chamber: {e}")
            return None

    def _row_to_chamber(self, row: dict[str, Any]) -> Chamber:
        raw_points = row.get("control_points")
        return Chamber(
            chamber_id=row["chamber_id"],
            name=row["name"],
            room_tag=row["room_tag"],
            remote_id=row.get("remote_id"),
            status=ChamberStatus(row.get("status") or ChamberStatus.ONLINE.value),
            registration_state=RegistrationState(
                row.get("registration_state") or RegistrationState.UNREGISTERED.value
            ),
            entities=ChamberEntities.from_dict(json.loads(raw_points) if raw_points else None),
            last_heartbeat=coerce_datetime(row.get("last_heartbeat")),
            config_synced_at=coerce_datetime(row.get("config_synced_at")),
            created_at=coerce_datetime(row.get("created_at")),
            updated_at=coerce_datetime(row.get("updated_at")),
        )
