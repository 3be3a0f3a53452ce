"""
Scheduled Tasks: background task definitions for the UnifiedScheduler.

Task functions are organized by namespace:
- clock.*: network time re-sync
- chamber.*: heartbeat, registration retry, offline detection
- sync.*: coordinator config and experiment pull, and the first pull-then-execute pass
- experiment.*: execution tick and completion tracking

Usage:
    from app.workers.scheduled_tasks import configure_scheduler

    configure_scheduler(container.scheduler, container)
"""

from __future__ import annotations

import logging
from functools import wraps
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from app.services.container import ServiceContainer
    from app.workers.unified_scheduler import UnifiedScheduler

logger = logging.getLogger(__name__)


# ==================== Clock Namespace ====================


def clock_sync_task(container: "ServiceContainer") -> dict[str, Any]:
    """Re-sync the network time reference."""
    connected = container.clock.sync()
    return {"connected": connected, "offset_seconds": container.clock.offset_seconds()}


# ==================== Chamber Namespace ====================


def chamber_heartbeat_task(container: "ServiceContainer") -> dict[str, Any]:
    """Stamp and send a heartbeat for every chamber."""
    sent = container.sync_coordinator.heartbeat_all()
    return {"chambers": len(container.registry.chamber_ids()), "sent": sent}


def chamber_register_task(container: "ServiceContainer") -> dict[str, Any]:
    """Retry registration of chambers still unregistered."""
    return {"registered": container.sync_coordinator.register_pending()}


def chamber_status_refresh_task(container: "ServiceContainer") -> dict[str, Any]:
    """Flip chambers with a stale heartbeat to offline."""
    changed = container.registry.refresh_statuses(container.config.heartbeat_timeout)
    for chamber in changed:
        logger.warning(f"Chamber '{chamber.name}' is now {chamber.status.value}")
    return {"changed": len(changed)}


# ==================== Sync Namespace ====================


def sync_pull_task(container: "ServiceContainer") -> dict[str, Any]:
    """Config and experiment pull for every registered chamber."""
    container.sync_coordinator.sync_all()
    return {"chambers": len(container.registry.chamber_ids())}


def sync_initial_pass_task(container: "ServiceContainer") -> dict[str, Any]:
    """First pull followed by the first execution tick, in that order."""
    pulled = sync_pull_task(container)
    return {**pulled, "execution": experiment_execute_task(container)}


# ==================== Experiment Namespace ====================


def experiment_execute_task(container: "ServiceContainer") -> dict[str, Any]:
    reports = container.execution_service.execute_tick()
    if reports is None:
        return {"skipped": True}
    return {
        "experiments": len(reports),
        "failed_entities": sum(len(report.failed) for report in reports),
    }


def experiment_track_task(container: "ServiceContainer") -> dict[str, Any]:
    completed = container.completion_tracker.check_experiments()
    return {"completed": [experiment.experiment_id for experiment in completed]}


# ==================== Task Registration ====================

TASKS = {
    "clock.sync": clock_sync_task,
    "chamber.heartbeat": chamber_heartbeat_task,
    "chamber.register": chamber_register_task,
    "chamber.status_refresh": chamber_status_refresh_task,
    "sync.pull": sync_pull_task,
    "sync.initial_pass": sync_initial_pass_task,
    "experiment.execute": experiment_execute_task,
    "experiment.track": experiment_track_task,
}


def register_all_tasks(
    scheduler: "UnifiedScheduler",
    container: "ServiceContainer",
) -> None:
    """
    Register all tasks with the unified scheduler.

    Args:
        scheduler: UnifiedScheduler instance
        container: ServiceContainer with all services
    """

    def bind_noargs(task_fn):
        @wraps(task_fn)
        def bound_task():
            try:
                return task_fn(container)
            # Logged with the task name; the scheduler records the failure
            except Exception as e:
                logger.exception("Scheduled task %s raised: %s", task_fn.__name__, e)
                raise

        return bound_task

    for name, task_fn in TASKS.items():
        scheduler.register_task(name, bind_noargs(task_fn))
    logger.info("Registered %s tasks", len(TASKS))


def schedule_default_jobs(scheduler: "UnifiedScheduler", container: "ServiceContainer") -> None:
    """Schedule every periodic driver at its configured interval."""
    config = container.config

    if config.ntp_enabled:
        scheduler.schedule_interval("clock.sync", config.ntp_sync_interval, job_id="clock_sync")

    scheduler.schedule_interval(
        "chamber.heartbeat",
        config.heartbeat_interval,
        job_id="chamber_heartbeat",
        start_immediately=True,
    )
    scheduler.schedule_interval(
        "chamber.status_refresh",
        config.heartbeat_interval,
        job_id="chamber_status_refresh",
    )
    scheduler.schedule_interval(
        "chamber.register",
        config.registration_retry_interval,
        job_id="chamber_register_retry",
    )

    # One job, so the first tick sees the first pull
    scheduler.schedule_once("sync.initial_pass", job_id="sync_initial_pass")
    scheduler.schedule_interval("sync.pull", config.sync_interval, job_id="sync_pull")
    scheduler.schedule_interval("experiment.execute", config.execution_interval, job_id="experiment_execute")
    scheduler.schedule_interval("experiment.track", config.tracker_interval, job_id="experiment_track")

    jobs = scheduler.get_jobs()
    logger.info("Scheduled %s default jobs", len(jobs))
    for job in jobs:
        logger.debug("  - %s: every %ss (%s)", job.job_id, job.interval_seconds, job.namespace)


def configure_scheduler(
    scheduler: "UnifiedScheduler",
    container: "ServiceContainer",
    *,
    reset_jobs: bool = True,
    start: bool = True,
) -> None:
    """Register tasks, apply default schedules, and optionally start the scheduler."""
    if reset_jobs:
        scheduler.clear_jobs()

    register_all_tasks(scheduler, container)
    schedule_default_jobs(scheduler, container)

    if start:
        scheduler.start()
