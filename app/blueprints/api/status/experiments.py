"""
Experiment Status
=================

Active experiments with their current phase, day and remaining time, plus
the completion tracker's report.
"""

from __future__ import annotations

from app.blueprints.api._common import get_container, success
from app.domain.exceptions import NotFoundError
from app.domain.experiments import progress
from app.utils.http import safe_route

from . import status_api


@status_api.get("/experiments/active")
@safe_route("Failed to list active experiments")
def list_active_experiments():
    return success(get_container().completion_tracker.active_with_progress())


@status_api.get("/experiments/tracking/status")
@safe_route("Failed to get tracking status")
def get_tracking_status():
    return success(get_container().completion_tracker.get_tracking_status())


@status_api.get("/experiments/<int:experiment_id>")
@safe_route("Failed to get experiment")
def get_experiment(experiment_id: int):
    container = get_container()
    experiment = container.experiment_repo.get_by_id(experiment_id)
    if experiment is None:
        raise NotFoundError(f"Experiment {experiment_id} not found")
    now = container.clock.now()
    return success(
        {
            "experiment": experiment.to_dict(),
            "progress": progress(experiment, now, container.completion_tracker.grace_seconds),
        }
    )
