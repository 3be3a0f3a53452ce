"""
Completion Tracker
==================

Detects experiments whose schedule has fully elapsed and drives them from
``active`` to ``completed``: the local status is persisted first, then pushed
to the coordinator on a best-effort basis.

An experiment completes iff ``now > max(item.end) + grace`` (5 minutes).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from app.config import COMPLETION_GRACE_SECONDS
from app.domain.experiments import Experiment, is_schedule_elapsed, progress
from app.enums import ExperimentStatus
from app.utils.time import SECONDS_PER_DAY, from_timestamp, isoformat_or_none

if TYPE_CHECKING:
    from app.domain.experiments import ExperimentRepository
    from app.services.application.chamber_registry import ChamberRegistry
    from app.services.application.sync_coordinator import SyncCoordinator
    from app.services.protocols import Clock

logger = logging.getLogger(__name__)


class CompletionTracker:
    def __init__(
        self,
        experiments: "ExperimentRepository",
        registry: "ChamberRegistry",
        clock: "Clock",
        sync: "SyncCoordinator | None" = None,
        *,
        grace_seconds: int = COMPLETION_GRACE_SECONDS,
    ) -> None:
        self._experiments = experiments
        self._registry = registry
        self._clock = clock
        self._sync = sync
        self.grace_seconds = grace_seconds
        self._last_check: float | None = None
        self._completed_total = 0

    def check_experiments(self) -> list[Experiment]:
        """Complete every elapsed active experiment; returns the completed ones."""
        now = self._clock.now()
        self._last_check = now
        active = self._experiments.list_active(self._registry.chamber_ids())
        if not active:
            return []

        logger.debug("Checking %d active experiment(s) for completion", len(active))
        completed = []
        for experiment in active:
            if not is_schedule_elapsed(experiment, now, self.grace_seconds):
                continue
            if self.complete(experiment, now):
                completed.append(experiment)

        if completed:
            logger.info(f"Completed {len(completed)} experiment(s)")
        return completed

    def complete(self, experiment: Experiment, now: float) -> bool:
        """Persist ``completed`` locally, then push it."""
        if not self._experiments.update_status(experiment.experiment_id, ExperimentStatus.COMPLETED, from_timestamp(now)):
            logger.error(f"Failed to mark experiment {experiment.experiment_id} ({experiment.title}) completed")
            return False

        experiment.status = ExperimentStatus.COMPLETED
        self._completed_total += 1
        logger.info(f"Experiment completed: {experiment.title}")

        if self._sync is not None:
            self._sync.push_status(experiment, ExperimentStatus.COMPLETED)
        return True

    def active_with_progress(self) -> list[dict[str, Any]]:
        now = self._clock.now()
        return [
            {"experiment": experiment.to_dict(), "progress": progress(experiment, now, self.grace_seconds)}
            for experiment in self._experiments.list_active(self._registry.chamber_ids())
        ]

    def get_tracking_status(self) -> dict[str, Any]:
        active = self.active_with_progress()
        completing_soon = sum(
            1 for item in active if 0 < item["progress"]["time_remaining_seconds"] < SECONDS_PER_DAY
        )
        return {
            "active_experiments": len(active),
            "completing_soon_24h": completing_soon,
            "last_check_time": isoformat_or_none(from_timestamp(self._last_check)) if self._last_check else None,
            "tracking_enabled": True,
            "backend_sync_enabled": self._sync is not None,
            "completed_total": self._completed_total,
        }
