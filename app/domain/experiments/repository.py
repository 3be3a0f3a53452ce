"""
Experiment Repository Protocol
==============================

Defines the interface for the local experiment store.
"""

from __future__ import annotations

from abc import abstractmethod
from datetime import datetime
from typing import Protocol

from app.domain.experiments.experiment_entity import Experiment
from app.enums.experiment import ExperimentStatus


class ExperimentRepository(Protocol):
    """Protocol for experiment persistence operations."""

    @abstractmethod
    def upsert_remote(self, experiment: Experiment, now: datetime) -> tuple[Experiment, bool] | None:
        """
        Insert or replace an experiment keyed on (remote_id, chamber_id).

        Args:
            experiment: Experiment carrying remote_id and local chamber_id
            now: Timestamp for created_at/updated_at/synced_at

        Returns:
            (stored experiment, created flag), or None on error
        """
        ...

    @abstractmethod
    def get_by_id(self, experiment_id: int) -> Experiment | None:
        ...

    @abstractmethod
    def get_by_remote_id(self, remote_id: str, chamber_id: int) -> Experiment | None:
        ...

    @abstractmethod
    def list_active(self, chamber_ids: list[int] | None = None) -> list[Experiment]:
        ...

    @abstractmethod
    def list_by_chamber(self, chamber_id: int) -> list[Experiment]:
        ...

    @abstractmethod
    def update_status(self, experiment_id: int, status: ExperimentStatus, now: datetime) -> bool:
        ...

    @abstractmethod
    def update_active_phase(self, experiment_id: int, phase_index: int, now: datetime) -> bool:
        ...

    @abstractmethod
    def mark_phase_executed(self, experiment_id: int, phase_index: int, executed_at: datetime) -> bool:
        """Record when a phase was last applied without touching its tables."""
        ...
