"""
Tests for UnifiedScheduler driven by a fake clock.

Jobs are run with ``run_pending`` so no background thread is involved.
"""

from __future__ import annotations

import pytest

from app.enums import HealthLevel
from app.workers.unified_scheduler import ScheduleType, UnifiedScheduler
from tests.conftest import T0, FakeClock


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def scheduler(clock):
    return UnifiedScheduler(clock=clock.now, max_workers=1)


def _counter(scheduler, name):
    calls = []
    scheduler.register_task(name, lambda: calls.append(1) or len(calls))
    return calls


class TestIntervalJobs:
    def test_runs_only_when_due(self, scheduler, clock):
        calls = _counter(scheduler, "sync.pull")
        job = scheduler.schedule_interval("sync.pull", 60)

        assert scheduler.run_pending() == []
        clock.advance(59)
        assert scheduler.run_pending() == []
        clock.advance(1)
        [result] = scheduler.run_pending()

        assert result.success
        assert result.result == 1
        assert calls == [1]
        assert job.next_run == T0 + 120

    def test_start_immediately(self, scheduler):
        calls = _counter(scheduler, "chamber.heartbeat")
        scheduler.schedule_interval("chamber.heartbeat", 30, start_immediately=True)

        scheduler.run_pending()

        assert calls == [1]

    def test_fixed_rate_skips_missed_slots(self, scheduler, clock):
        calls = _counter(scheduler, "experiment.execute")
        job = scheduler.schedule_interval("experiment.execute", 60)

        clock.advance(60 * 5 + 10)
        scheduler.run_pending()

        assert calls == [1]
        assert job.next_run == T0 + 360

    def test_due_jobs_run_in_schedule_order(self, scheduler):
        order = []
        for name in ("chamber.heartbeat", "sync.pull", "experiment.execute"):
            scheduler.register_task(name, lambda name=name: order.append(name))
            scheduler.schedule_interval(name, 60, start_immediately=True)

        scheduler.run_pending()

        assert order == ["chamber.heartbeat", "sync.pull", "experiment.execute"]

    def test_non_positive_interval_rejected(self, scheduler):
        with pytest.raises(ValueError):
            scheduler.schedule_interval("sync.pull", 0)

    def test_namespace_comes_from_task_name(self, scheduler):
        job = scheduler.schedule_interval("experiment.track", 120, job_id="experiment_track")
        assert job.namespace == "experiment"
        assert scheduler.get_namespaces() == {"experiment"}


class TestSingleFlight:
    def test_run_while_previous_in_flight_is_skipped(self, scheduler, clock):
        calls = _counter(scheduler, "experiment.execute")
        job = scheduler.schedule_interval("experiment.execute", 60, start_immediately=True)
        job.running = True

        assert scheduler.run_pending() == []
        assert job.skipped_count == 1
        assert calls == []

        job.running = False
        clock.advance(60)
        scheduler.run_pending()
        assert calls == [1]
        assert scheduler.health_check()["statistics"]["skipped_runs"] == 1


class TestFailures:
    def test_exception_is_recorded(self, scheduler):
        def boom():
            raise RuntimeError("gateway down")

        scheduler.register_task("sync.pull", boom)
        job = scheduler.schedule_interval("sync.pull", 60, start_immediately=True)

        [result] = scheduler.run_pending()

        assert not result.success
        assert result.error == "gateway down"
        assert job.failure_count == 1
        assert job.last_error == "gateway down"
        assert job.running is False

    def test_unknown_task_fails_cleanly(self, scheduler):
        scheduler.schedule_interval("missing.task", 60, start_immediately=True)
        [result] = scheduler.run_pending()
        assert "Task function not found" in result.error


class TestOnceJobs:
    def test_once_job_runs_once(self, scheduler, clock):
        calls = _counter(scheduler, "clock.sync")
        job = scheduler.schedule_once("clock.sync", T0 + 5)

        clock.advance(10)
        scheduler.run_pending()
        clock.advance(100)
        scheduler.run_pending()

        assert calls == [1]
        assert job.schedule_type == ScheduleType.ONCE
        assert job.enabled is False

    def test_once_job_defaults_to_now(self, scheduler):
        calls = _counter(scheduler, "sync.initial_pass")
        job = scheduler.schedule_once("sync.initial_pass", job_id="sync_initial_pass")

        [result] = scheduler.run_pending()

        assert result.job_id == "sync_initial_pass"
        assert calls == [1]
        assert job.next_run is None


class TestHealth:
    def test_not_running_is_unhealthy(self, scheduler):
        assert scheduler.health_check()["health"] == HealthLevel.UNHEALTHY.value

    def test_started_scheduler_is_healthy(self, scheduler):
        scheduler.start()
        try:
            report = scheduler.health_check()
            assert report["health"] == HealthLevel.HEALTHY.value
            assert report["timestamp"] == "2023-11-14T22:13:20+00:00"
        finally:
            scheduler.shutdown()
        assert scheduler.health_check()["scheduler_running"] is False

    def test_history_feeds_status(self, scheduler, clock):
        _counter(scheduler, "sync.pull")
        scheduler.schedule_interval("sync.pull", 60)
        for _ in range(3):
            clock.advance(60)
            scheduler.run_pending()

        assert scheduler.get_status()["history_size"] == 3
        assert scheduler.health_check()["statistics"]["recent_executions"] == 3
