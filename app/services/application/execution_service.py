"""
Execution Service
=================

Periodic actuation of active experiments.

Each tick loads the active experiments of this node's chambers, resolves the
current (phase, day) from the clock and pushes every entity value of that day
to the gateway. Pushes are independent: a failed entity is logged and
retried on the next tick while the rest are still applied. Ticks never
overlap; a tick requested while one is running is skipped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from app.domain.exceptions import ActuatorError, EdgeError
from app.domain.experiments import Experiment, Phase, resolve
from app.utils.concurrency import single_flight
from app.utils.time import from_timestamp, isoformat_or_none

if TYPE_CHECKING:
    from app.domain.experiments import ExperimentRepository
    from app.services.application.chamber_registry import ChamberRegistry
    from app.services.protocols import ActuatorClient, Clock

logger = logging.getLogger(__name__)


@dataclass
class ActuationReport:
    """Outcome of applying one phase-day; failures do not un-apply the phase."""

    experiment_id: int | None
    phase_index: int
    day_index: int
    applied: list[str] = field(default_factory=list)
    failed: list[dict[str, Any]] = field(default_factory=list)
    executed_at: datetime | None = None

    @property
    def partial_failure(self) -> bool:
        return bool(self.failed)

    def to_dict(self) -> dict[str, Any]:
        return {
            "experiment_id": self.experiment_id,
            "phase_index": self.phase_index,
            "day_index": self.day_index,
            "applied": list(self.applied),
            "failed": list(self.failed),
            "executed_at": isoformat_or_none(self.executed_at),
        }


class ExecutionService:
    def __init__(
        self,
        actuator: "ActuatorClient",
        experiments: "ExperimentRepository",
        registry: "ChamberRegistry",
        clock: "Clock",
    ) -> None:
        self._actuator = actuator
        self._experiments = experiments
        self._registry = registry
        self._clock = clock
        self._skipped_runs = 0
        self._ticks = 0
        self._last_tick_at: datetime | None = None
        self._last_reports: list[ActuationReport] = []

    @single_flight
    def execute_tick(self) -> list[ActuationReport]:
        """Apply the current day of every active experiment."""
        now = self._clock.now()
        experiments = self._experiments.list_active(self._registry.chamber_ids())
        logger.debug("Execution tick: %d active experiment(s)", len(experiments))

        reports: list[ActuationReport] = []
        for experiment in experiments:
            try:
                report = self.execute_experiment(experiment, now)
            except EdgeError as e:
                logger.error(f"Failed to execute experiment {experiment.experiment_id} ({experiment.title}): {e}")
                continue
            if report is not None:
                reports.append(report)

        self._ticks += 1
        self._last_tick_at = from_timestamp(now)
        self._last_reports = reports
        return reports

    def execute_experiment(self, experiment: Experiment, now: float) -> ActuationReport | None:
        resolved = resolve(experiment, now)
        if resolved is None:
            logger.info(f"No active phase for experiment '{experiment.title}' at {now:.0f}")
            return None

        phase = experiment.phases[resolved.phase_index]
        logger.info(
            f"Executing phase {resolved.phase_index} ({phase.title}) of '{experiment.title}', "
            f"day {resolved.day_index}"
        )

        if experiment.active_phase_index != resolved.phase_index:
            self._experiments.update_active_phase(
                experiment.experiment_id, resolved.phase_index, from_timestamp(now)
            )
            experiment.active_phase_index = resolved.phase_index

        report = self.apply_phase(phase, resolved.day_index)
        report.experiment_id = experiment.experiment_id
        report.phase_index = resolved.phase_index

        phase.last_executed = report.executed_at
        if not self._experiments.mark_phase_executed(
            experiment.experiment_id, resolved.phase_index, report.executed_at
        ):
            logger.warning(f"Could not record last execution of experiment {experiment.experiment_id}")
        return report

    def apply_phase(self, phase: Phase, day_index: int) -> ActuationReport:
        """Push every value of ``day_index``; each push is independent."""
        report = ActuationReport(experiment_id=None, phase_index=-1, day_index=day_index)
        for setpoint in phase.setpoints_for_day(day_index):
            try:
                self._actuator.set_value(setpoint.entity_id, setpoint.value)
            except ActuatorError as e:
                logger.warning(f"Failed to set {setpoint.entity_id} = {setpoint.value}: {e}")
                report.failed.append({"entity_id": setpoint.entity_id, "value": setpoint.value, "error": str(e)})
                continue
            report.applied.append(setpoint.entity_id)

        report.executed_at = from_timestamp(self._clock.now())
        if report.partial_failure:
            logger.warning(
                f"Phase '{phase.title}' day {day_index}: {len(report.applied)} applied, "
                f"{len(report.failed)} failed (retried next tick)"
            )
        return report

    def get_status(self) -> dict[str, Any]:
        return {
            "ticks": self._ticks,
            "skipped_ticks": self._skipped_runs,
            "last_tick_at": isoformat_or_none(self._last_tick_at),
            "last_reports": [report.to_dict() for report in self._last_reports],
        }
