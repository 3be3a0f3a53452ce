"""
Experiment Database Operations
==============================

Database operations for the Experiments table. Phases and schedule items are
stored as JSON columns; the (remote_id, chamber_id) pair identifies an
experiment pulled from the coordinator.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime
from typing import TYPE_CHECKING, Any

from app.domain.experiments import Experiment, Phase, ScheduleItem
from app.enums.experiment import ExperimentStatus

if TYPE_CHECKING:
    from sqlite3 import Connection

logger = logging.getLogger(__name__)


def _dump_phases(phases: list[Phase]) -> str:
    return json.dumps([phase.to_dict() for phase in phases], ensure_ascii=False)


def _dump_schedule(schedule: list[ScheduleItem]) -> str:
    return json.dumps([item.to_dict() for item in schedule])


class ExperimentOperations:
    """Experiment persistence helpers for database handlers."""

    def get_db(self) -> "Connection":
        """Get database connection. Must be implemented by mixing class."""
        raise NotImplementedError("Subclass must implement get_db()")

    def upsert_remote_experiment(self, experiment: Experiment, now: datetime) -> tuple[Experiment, bool] | None:
        """
        Insert or replace an experiment keyed on (remote_id, chamber_id).

        An existing row keeps its experiment_id and created_at; the phases'
        ``last_executed`` markers and a locally resolved active phase survive
        the replacement when the incoming payload carries none.

        Returns:
            (stored experiment, created flag), or None on error
        """
        if not experiment.remote_id or experiment.chamber_id is None:
            logger.error("Cannot upsert experiment without remote_id and chamber_id")
            return None

        db = self.get_db()
        try:
            row = db.execute(
                "SELECT * FROM Experiments WHERE remote_id = ? AND chamber_id = ?",
                (experiment.remote_id, experiment.chamber_id),
            ).fetchone()

            if row is None:
                cursor = db.execute(
                    """
                    INSERT INTO Experiments (
                        remote_id, chamber_id, remote_chamber_id, chamber_name,
                        title, description, status, phases, schedule,
                        active_phase_index, created_at, updated_at, synced_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        experiment.remote_id,
                        experiment.chamber_id,
                        experiment.remote_chamber_id,
                        experiment.chamber_name,
                        experiment.title,
                        experiment.description,
                        experiment.status.value,
                        _dump_phases(experiment.phases),
                        _dump_schedule(experiment.schedule),
                        experiment.active_phase_index,
                        now.isoformat(),
                        now.isoformat(),
                        now.isoformat(),
                    ),
                )
                db.commit()
                experiment.experiment_id = cursor.lastrowid
                experiment.created_at = now
                experiment.updated_at = now
                experiment.synced_at = now
                logger.info(
                    f"Inserted experiment {experiment.experiment_id} "
                    f"(remote {experiment.remote_id}) for chamber {experiment.chamber_id}"
                )
                return experiment, True

            existing = self._row_to_experiment(dict(row))
            for index, phase in enumerate(experiment.phases):
                if phase.last_executed is None and index < len(existing.phases):
                    phase.last_executed = existing.phases[index].last_executed
            if experiment.active_phase_index is None:
                experiment.active_phase_index = existing.active_phase_index

            db.execute(
                """
                UPDATE Experiments SET
                    remote_chamber_id = ?, chamber_name = ?, title = ?,
                    description = ?, status = ?, phases = ?, schedule = ?,
                    active_phase_index = ?, updated_at = ?, synced_at = ?
                WHERE experiment_id = ?
                """,
                (
                    experiment.remote_chamber_id,
                    experiment.chamber_name,
                    experiment.title,
                    experiment.description,
                    experiment.status.value,
                    _dump_phases(experiment.phases),
                    _dump_schedule(experiment.schedule),
                    experiment.active_phase_index,
                    now.isoformat(),
                    now.isoformat(),
                    existing.experiment_id,
                ),
            )
            db.commit()
            experiment.experiment_id = existing.experiment_id
            experiment.created_at = existing.created_at
            experiment.updated_at = now
            experiment.synced_at = now
            return experiment, False

        except sqlite3.Error as e:
            logger.error(f"Error upserting experiment {experiment.remote_id}: {e}")
            return None

    def get_experiment_by_id(self, experiment_id: int) -> Experiment | None:
        return self._fetch_experiment("SELECT * FROM Experiments WHERE experiment_id = ?", (experiment_id,))

    def get_experiment_by_remote_id(self, remote_id: str, chamber_id: int) -> Experiment | None:
        return self._fetch_experiment(
            "SELECT * FROM Experiments WHERE remote_id = ? AND chamber_id = ?",
            (remote_id, chamber_id),
        )

    def list_experiments_by_status(
        self, status: ExperimentStatus, chamber_ids: list[int] | None = None
    ) -> list[Experiment]:
        """List experiments with ``status``, optionally restricted to some chambers."""
        query = "SELECT * FROM Experiments WHERE status = ?"
        params: list[Any] = [status.value]
        if chamber_ids is not None:
            if not chamber_ids:
                return []
            placeholders = ", ".join("?" for _ in chamber_ids)
            query += f" AND chamber_id IN ({placeholders})"
            params.extend(chamber_ids)
        query += " ORDER BY experiment_id"
        return self._fetch_experiments(query, tuple(params))

    def list_experiments_by_chamber(self, chamber_id: int) -> list[Experiment]:
        return self._fetch_experiments(
            "SELECT * FROM Experiments WHERE chamber_id = ? ORDER BY experiment_id",
            (chamber_id,),
        )

    def update_experiment_status(self, experiment_id: int, status: ExperimentStatus, now: datetime) -> bool:
        return self._execute_update(
            "UPDATE Experiments SET status = ?, updated_at = ? WHERE experiment_id = ?",
            (status.value, now.isoformat(), experiment_id),
        )

    def update_experiment_active_phase(self, experiment_id: int, phase_index: int, now: datetime) -> bool:
        return self._execute_update(
            "UPDATE Experiments SET active_phase_index = ?, updated_at = ? WHERE experiment_id = ?",
            (phase_index, now.isoformat(), experiment_id),
        )

    def mark_experiment_phase_executed(self, experiment_id: int, phase_index: int, executed_at: datetime) -> bool:
        """
        Stamp ``last_executed`` on one phase inside the stored JSON.

        Only that key is patched, so phase tables replaced by a concurrent
        pull are kept. updated_at is left alone: this is bookkeeping, not a
        change.
        """
        return self._execute_update(
            """
            UPDATE Experiments
            SET phases = json_set(phases, '$[' || ? || '].last_executed', ?)
            WHERE experiment_id = ? AND json_array_length(phases) > ?
            """,
            (phase_index, executed_at.isoformat(), experiment_id, phase_index),
        )

    def _execute_update(self, query: str, params: tuple) -> bool:
        db = self.get_db()
        try:
            cursor = db.execute(query, params)
            db.commit()
            return cursor.rowcount > 0
        except sqlite3.Error as e:
            logger.error(f"Error updating experiment: {e}")
            return False

    def _fetch_experiment(self, query: str, params: tuple) -> Experiment | None:
        db = self.get_db()
        try:
            row = db.execute(query, params).fetchone()
            if row:
                return self._row_to_experiment(dict(row))
            return None
        except sqlite3.Error as e:
            logger.error(f"Error fetching experiment: {e}")
            return None

    def _fetch_experiments(self, query: str, params: tuple) -> list[Experiment]:
        db = self.get_db()
        try:
            rows = db.execute(query, params).fetchall()
            return [self._row_to_experiment(dict(row)) for row in rows]
        except sqlite3.Error as e:
            logger.error(f"Error listing experiments: {e}")
            return []

    def _row_to_experiment(self, row: dict[str, Any]) -> Experiment:
        row["phases"] = json.loads(row.get("phases") or "[]")
        row["schedule"] = json.loads(row.get("schedule") or "[]")
        return Experiment.from_dict(row)
