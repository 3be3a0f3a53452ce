"""
Schedule Resolver
=================

Pure functions mapping an experiment and a point in time to the phase and
day that should currently be applied.

Items are half-open ``[start, end)`` windows: the instant ``end`` belongs to
the next item. The day index counts 86,400-second epoch-day boundaries
crossed since the item started (not local calendar days) and is clamped to
the phase's duration.
"""

from __future__ import annotations

from typing import Any, NamedTuple

from app.domain.experiments.experiment_entity import Experiment, ScheduleItem
from app.utils.time import SECONDS_PER_DAY, epoch_day


class ResolvedDay(NamedTuple):
    phase_index: int
    day_index: int
    item: ScheduleItem


def find_schedule_item(experiment: Experiment, now: float) -> ScheduleItem | None:
    """Return the schedule item whose window contains ``now``."""
    for item in experiment.schedule:
        if item.contains(now) and item.phase_index < len(experiment.phases):
            return item
    return None


def day_index_for(item: ScheduleItem, duration_days: int, now: float) -> int:
    elapsed_days = epoch_day(now) - epoch_day(item.start_timestamp)
    return max(0, min(elapsed_days, duration_days - 1))


def resolve(experiment: Experiment, now: float) -> ResolvedDay | None:
    """
    Resolve the active (phase_index, day_index) for ``now``.

    Returns:
        ResolvedDay, or None before the first item starts and once the last
        item has ended.
    """
    item = find_schedule_item(experiment, now)
    if item is None:
        return None
    phase = experiment.phases[item.phase_index]
    return ResolvedDay(item.phase_index, day_index_for(item, phase.duration_days, now), item)


def is_schedule_elapsed(experiment: Experiment, now: float, grace_seconds: int) -> bool:
    """True iff ``now`` is strictly past the last scheduled end plus the grace period."""
    end = experiment.end_timestamp
    if end is None:
        return False
    return now > end + grace_seconds


def progress(experiment: Experiment, now: float, grace_seconds: int = 0) -> dict[str, Any]:
    """Progress summary used by the tracker and the status API."""
    start = experiment.start_timestamp
    end = experiment.end_timestamp
    resolved = resolve(experiment, now)

    if start is None or end is None:
        percent = 0.0
        remaining = 0
    elif now <= start:
        percent = 0.0
        remaining = end - start
    elif now >= end:
        percent = 100.0
        remaining = 0
    else:
        percent = round((now - start) / (end - start) * 100.0, 2)
        remaining = int(end - now)

    phase_title = None
    if resolved is not None:
        phase_title = experiment.phases[resolved.phase_index].title

    return {
        "experiment_id": experiment.experiment_id,
        "title": experiment.title,
        "status": experiment.status.value,
        "current_phase": resolved.phase_index if resolved else None,
        "phase_title": phase_title,
        "day_index": resolved.day_index if resolved else None,
        "progress_percent": percent,
        "time_remaining_seconds": remaining,
        "time_remaining_days": round(remaining / SECONDS_PER_DAY, 2),
        "is_completed": is_schedule_elapsed(experiment, now, grace_seconds),
        "started_at": start,
        "ends_at": end,
    }
