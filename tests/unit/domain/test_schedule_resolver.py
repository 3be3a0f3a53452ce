"""
Tests for the schedule resolver.

Covers:
- Phase/day resolution inside a schedule item
- Half-open item boundaries
- Day index clamping and monotonicity
- Completion law and progress summary
"""

from __future__ import annotations

from app.domain.experiments import (
    Experiment,
    ParameterSchedule,
    Phase,
    ScheduleItem,
    is_schedule_elapsed,
    progress,
    resolve,
)
from app.enums import ExperimentStatus
from app.utils.time import SECONDS_PER_DAY

DAY = SECONDS_PER_DAY


def _two_phase_experiment(start: int = 1_700_000_000) -> Experiment:
    """Phase 0 lasts 2 days, phase 1 lasts 3 days, back to back."""
    return Experiment(
        title="Two phases",
        chamber_id=1,
        phases=[Phase(title="Seedling", duration_days=2), Phase(title="Vegetation", duration_days=3)],
        schedule=[
            ScheduleItem(0, start, start + 2 * DAY),
            ScheduleItem(1, start + 2 * DAY, start + 5 * DAY),
        ],
        status=ExperimentStatus.ACTIVE,
    )


class TestResolve:
    def test_single_day_item_resolves_halfway(self):
        experiment = Experiment(
            title="One day",
            chamber_id=1,
            phases=[Phase(title="Only", duration_days=1)],
            schedule=[ScheduleItem(phase_index=0, start_timestamp=1_700_000_000, end_timestamp=1_700_086_400)],
            status=ExperimentStatus.ACTIVE,
        )

        resolved = resolve(experiment, 1_700_043_200)

        assert resolved is not None
        assert resolved.phase_index == 0
        assert resolved.day_index == 0

    def test_before_first_item_is_none(self):
        experiment = _two_phase_experiment()
        assert resolve(experiment, experiment.start_timestamp - 1) is None

    def test_after_last_item_is_none(self):
        experiment = _two_phase_experiment()
        assert resolve(experiment, experiment.end_timestamp) is None
        assert resolve(experiment, experiment.end_timestamp + DAY) is None

    def test_item_start_is_inclusive(self):
        experiment = _two_phase_experiment()
        resolved = resolve(experiment, experiment.start_timestamp)
        assert resolved.phase_index == 0

    def test_item_end_belongs_to_next_item(self):
        experiment = _two_phase_experiment()
        boundary = experiment.schedule[0].end_timestamp

        assert resolve(experiment, boundary - 1).phase_index == 0
        resolved = resolve(experiment, boundary)
        assert resolved.phase_index == 1
        assert resolved.item is experiment.schedule[1]

    def test_day_index_counts_epoch_day_boundaries(self):
        # Item starts exactly at midnight UTC
        start = 19_700 * DAY
        experiment = _two_phase_experiment(start)

        assert resolve(experiment, start + DAY - 1).day_index == 0
        assert resolve(experiment, start + DAY).day_index == 1
        assert resolve(experiment, start + 2 * DAY + 5).day_index == 0  # phase 1, first day

    def test_day_index_clamped_to_phase_duration(self):
        # Starting late in an epoch day makes the item span duration+1 epoch days
        start = 19_700 * DAY + 20 * 3600
        experiment = _two_phase_experiment(start)
        near_end_of_phase_0 = experiment.schedule[0].end_timestamp - 1

        assert resolve(experiment, near_end_of_phase_0).day_index == 1

    def test_resolution_is_monotonic_over_time(self):
        experiment = _two_phase_experiment(1_700_000_123)
        previous = (-1, -1)
        for now in range(experiment.start_timestamp, experiment.end_timestamp, 3600):
            resolved = resolve(experiment, now)
            assert resolved is not None
            current = (resolved.phase_index, resolved.day_index)
            assert current >= previous
            assert 0 <= resolved.day_index < experiment.phases[resolved.phase_index].duration_days
            previous = current


class TestCompletionLaw:
    def test_not_elapsed_until_grace_has_passed(self):
        experiment = _two_phase_experiment()
        end = experiment.end_timestamp

        assert not is_schedule_elapsed(experiment, end, 300)
        assert not is_schedule_elapsed(experiment, end + 300, 300)
        assert is_schedule_elapsed(experiment, end + 301, 300)

    def test_experiment_without_schedule_never_elapses(self):
        experiment = Experiment(title="Empty", chamber_id=1, phases=[Phase(title="p", duration_days=1)])
        assert not is_schedule_elapsed(experiment, 10**12, 300)


class TestProgress:
    def test_progress_midway(self):
        experiment = _two_phase_experiment()
        now = experiment.start_timestamp + int(2.5 * DAY)

        report = progress(experiment, now, 300)

        assert report["current_phase"] == 1
        assert report["phase_title"] == "Vegetation"
        assert report["progress_percent"] == 50.0
        assert report["time_remaining_seconds"] == int(2.5 * DAY)
        assert report["is_completed"] is False
        assert report["started_at"] == experiment.start_timestamp
        assert report["ends_at"] == experiment.end_timestamp

    def test_progress_before_start_and_after_end(self):
        experiment = _two_phase_experiment()

        before = progress(experiment, experiment.start_timestamp - 10)
        after = progress(experiment, experiment.end_timestamp + 600, 300)

        assert before["progress_percent"] == 0.0
        assert before["current_phase"] is None
        assert after["progress_percent"] == 100.0
        assert after["time_remaining_seconds"] == 0
        assert after["is_completed"] is True


class TestSetpointsForDay:
    def test_days_without_entries_are_skipped(self):
        phase = Phase(
            title="Sparse",
            duration_days=3,
            temperature_day_schedule={"t": ParameterSchedule("input_number.temp_day", {0: 20.0, 2: 22.0})},
        )

        assert [s.value for s in phase.setpoints_for_day(0)] == [20.0]
        assert phase.setpoints_for_day(1) == []
        assert [s.entity_id for s in phase.setpoints_for_day(2)] == ["input_number.temp_day"]
