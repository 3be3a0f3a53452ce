"""
Tests for ExperimentRepository against the in-memory database.

Covers:
- Idempotent upsert keyed on (remote_id, chamber_id)
- Local markers surviving a re-pull
- Status filtering restricted to chambers
"""

from __future__ import annotations

from datetime import timedelta

from app.enums import ExperimentStatus
from app.utils.time import from_timestamp
from tests.conftest import T0, make_experiment


class TestUpsertRemote:
    def test_first_upsert_inserts(self, experiment_repo, seeded_chamber):
        now = from_timestamp(T0)

        stored, created = experiment_repo.upsert_remote(make_experiment(seeded_chamber.chamber_id), now)

        assert created is True
        assert stored.experiment_id is not None
        assert stored.created_at == now
        fetched = experiment_repo.get_by_id(stored.experiment_id)
        assert fetched.title == "Basil trial"
        assert fetched.phases[0].temperature_day_schedule["temp"].schedule == {0: 20.0, 1: 21.0, 2: 22.0}
        assert fetched.schedule[0].start_timestamp == T0

    def test_repeated_upsert_is_idempotent(self, experiment_repo, seeded_chamber):
        first, _ = experiment_repo.upsert_remote(make_experiment(seeded_chamber.chamber_id), from_timestamp(T0))
        second, created = experiment_repo.upsert_remote(
            make_experiment(seeded_chamber.chamber_id), from_timestamp(T0 + 60)
        )

        assert created is False
        assert second.experiment_id == first.experiment_id
        assert len(experiment_repo.list_by_chamber(seeded_chamber.chamber_id)) == 1

        fetched = experiment_repo.get_by_id(first.experiment_id)
        assert fetched.created_at == from_timestamp(T0)
        assert fetched.synced_at == from_timestamp(T0 + 60)

    def test_remote_fields_replace_local(self, experiment_repo, seeded_chamber):
        stored, _ = experiment_repo.upsert_remote(make_experiment(seeded_chamber.chamber_id), from_timestamp(T0))

        changed = make_experiment(seeded_chamber.chamber_id, days=2, status=ExperimentStatus.PAUSED)
        changed.title = "Renamed"
        experiment_repo.upsert_remote(changed, from_timestamp(T0 + 60))

        fetched = experiment_repo.get_by_id(stored.experiment_id)
        assert fetched.title == "Renamed"
        assert fetched.status == ExperimentStatus.PAUSED
        assert fetched.phases[0].duration_days == 2

    def test_local_markers_survive_repull(self, experiment_repo, seeded_chamber):
        stored, _ = experiment_repo.upsert_remote(make_experiment(seeded_chamber.chamber_id), from_timestamp(T0))
        executed_at = from_timestamp(T0 + 30)
        experiment_repo.mark_phase_executed(stored.experiment_id, 0, executed_at)
        experiment_repo.update_active_phase(stored.experiment_id, 0, from_timestamp(T0 + 30))

        experiment_repo.upsert_remote(make_experiment(seeded_chamber.chamber_id), from_timestamp(T0 + 60))

        fetched = experiment_repo.get_by_id(stored.experiment_id)
        assert fetched.phases[0].last_executed == executed_at
        assert fetched.active_phase_index == 0

    def test_upsert_requires_remote_id(self, experiment_repo, seeded_chamber):
        experiment = make_experiment(seeded_chamber.chamber_id, remote_id=None)
        assert experiment_repo.upsert_remote(experiment, from_timestamp(T0)) is None

    def test_same_remote_id_in_two_chambers_is_two_rows(self, experiment_repo, registry, seeded_chamber):
        other = registry.upsert("sb4", seeded_chamber.entities)

        experiment_repo.upsert_remote(make_experiment(seeded_chamber.chamber_id), from_timestamp(T0))
        experiment_repo.upsert_remote(make_experiment(other.chamber_id), from_timestamp(T0))

        in_galo = experiment_repo.get_by_remote_id("exp-1", seeded_chamber.chamber_id)
        in_sb4 = experiment_repo.get_by_remote_id("exp-1", other.chamber_id)
        assert in_galo is not None
        assert in_sb4 is not None
        assert in_galo.experiment_id != in_sb4.experiment_id


class TestQueries:
    def test_list_active_filters_status_and_chambers(self, experiment_repo, registry, seeded_chamber):
        other = registry.upsert("sb4", seeded_chamber.entities)
        now = from_timestamp(T0)
        experiment_repo.upsert_remote(make_experiment(seeded_chamber.chamber_id, remote_id="a"), now)
        experiment_repo.upsert_remote(
            make_experiment(seeded_chamber.chamber_id, remote_id="b", status=ExperimentStatus.DRAFT), now
        )
        experiment_repo.upsert_remote(make_experiment(other.chamber_id, remote_id="c"), now)

        assert [e.remote_id for e in experiment_repo.list_active()] == ["a", "c"]
        assert [e.remote_id for e in experiment_repo.list_active([seeded_chamber.chamber_id])] == ["a"]
        assert experiment_repo.list_active([]) == []

    def test_update_status(self, experiment_repo, seeded_chamber):
        stored, _ = experiment_repo.upsert_remote(make_experiment(seeded_chamber.chamber_id), from_timestamp(T0))
        later = from_timestamp(T0) + timedelta(days=4)

        assert experiment_repo.update_status(stored.experiment_id, ExperimentStatus.COMPLETED, later)

        fetched = experiment_repo.get_by_id(stored.experiment_id)
        assert fetched.status == ExperimentStatus.COMPLETED
        assert fetched.updated_at == later
        assert experiment_repo.list_active() == []

    def test_update_missing_experiment_returns_false(self, experiment_repo):
        assert experiment_repo.update_status(999, ExperimentStatus.COMPLETED, from_timestamp(T0)) is False


class TestMarkPhaseExecuted:
    def test_only_last_executed_changes(self, experiment_repo, seeded_chamber):
        stored, _ = experiment_repo.upsert_remote(make_experiment(seeded_chamber.chamber_id), from_timestamp(T0))
        executed_at = from_timestamp(T0 + 90)

        assert experiment_repo.mark_phase_executed(stored.experiment_id, 0, executed_at) is True

        fetched = experiment_repo.get_by_id(stored.experiment_id)
        assert fetched.phases[0].last_executed == executed_at
        assert fetched.phases[0].temperature_day_schedule["temp"].schedule == {0: 20.0, 1: 21.0, 2: 22.0}
        assert fetched.updated_at == from_timestamp(T0)

    def test_pulled_tables_are_not_reverted(self, experiment_repo, seeded_chamber):
        stored, _ = experiment_repo.upsert_remote(make_experiment(seeded_chamber.chamber_id), from_timestamp(T0))
        snapshot = experiment_repo.get_by_id(stored.experiment_id)

        repulled = make_experiment(seeded_chamber.chamber_id)
        repulled.phases[0].temperature_day_schedule["temp"].schedule[0] = 99.0
        experiment_repo.upsert_remote(repulled, from_timestamp(T0 + 30))
        experiment_repo.mark_phase_executed(snapshot.experiment_id, 0, from_timestamp(T0 + 60))

        fetched = experiment_repo.get_by_id(stored.experiment_id)
        assert fetched.phases[0].temperature_day_schedule["temp"].schedule[0] == 99.0
        assert fetched.phases[0].last_executed == from_timestamp(T0 + 60)

    def test_phase_index_out_of_range(self, experiment_repo, seeded_chamber):
        stored, _ = experiment_repo.upsert_remote(make_experiment(seeded_chamber.chamber_id), from_timestamp(T0))

        assert experiment_repo.mark_phase_executed(stored.experiment_id, 5, from_timestamp(T0)) is False
