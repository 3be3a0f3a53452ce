"""
Experiment Repository
=====================

Concrete implementation of the ExperimentRepository protocol using SQLite.
Wraps the ExperimentOperations mixin from the infrastructure layer.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from app.domain.experiments import Experiment
from app.enums.experiment import ExperimentStatus

if TYPE_CHECKING:
    from infrastructure.database.ops.experiments import ExperimentOperations


class ExperimentRepository:
    """Concrete implementation of the ExperimentRepository protocol."""

    def __init__(self, backend: "ExperimentOperations") -> None:
        self._backend = backend

    # ==================== Sync ====================

    def upsert_remote(self, experiment: Experiment, now: datetime) -> tuple[Experiment, bool] | None:
        """Insert or replace an experiment pulled from the coordinator."""
        return self._backend.upsert_remote_experiment(experiment, now)

    # ==================== Queries ====================

    def get_by_id(self, experiment_id: int) -> Experiment | None:
        return self._backend.get_experiment_by_id(experiment_id)

    def get_by_remote_id(self, remote_id: str, chamber_id: int) -> Experiment | None:
        return self._backend.get_experiment_by_remote_id(remote_id, chamber_id)

    def list_active(self, chamber_ids: list[int] | None = None) -> list[Experiment]:
        """Active experiments, optionally restricted to some chambers."""
        return self._backend.list_experiments_by_status(ExperimentStatus.ACTIVE, chamber_ids)

    def list_by_chamber(self, chamber_id: int) -> list[Experiment]:
        return self._backend.list_experiments_by_chamber(chamber_id)

    # ==================== Local updates ====================

    def update_status(self, experiment_id: int, status: ExperimentStatus, now: datetime) -> bool:
        return self._backend.update_experiment_status(experiment_id, status, now)

    def update_active_phase(self, experiment_id: int, phase_index: int, now: datetime) -> bool:
        return self._backend.update_experiment_active_phase(experiment_id, phase_index, now)

    def mark_phase_executed(self, experiment_id: int, phase_index: int, executed_at: datetime) -> bool:
        return self._backend.mark_experiment_phase_executed(experiment_id, phase_index, executed_at)
