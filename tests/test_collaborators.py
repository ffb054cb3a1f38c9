import logging

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from collaborators import LoggingAlerts, LoggingLiveStatus, NullStore, SaveResult, SqlStore
from models import WorkoutPlan, WorkoutSession


@pytest.mark.unit
class TestSaveResult:
    def test_truthiness(self):
        assert SaveResult(ok=True)
        assert not SaveResult(ok=False, error=IOError("nope"))


@pytest.mark.unit
class TestNullStore:
    def test_insert_and_delete(self):
        store = NullStore()
        sess = WorkoutSession()
        store.insert(sess)
        store.insert(sess)
        assert store.entities == [sess]
        store.delete(sess)
        assert store.entities == []
        assert store.save().ok


@pytest.mark.integration
class TestSqlStore:
    def test_insert_and_save(self, db):
        store = SqlStore(db)
        store.insert(WorkoutPlan(name="Basics"))
        assert store.save()
        assert db.scalars(select(WorkoutPlan.name)).all() == ["Basics"]

    def test_failed_commit_is_reported_and_rolled_back(self, db, caplog):
        store = SqlStore(db)
        store.insert(WorkoutPlan(name="Basics"))
        store.save()

        store.insert(WorkoutPlan(name="Basics"))
        with caplog.at_level(logging.WARNING, logger="collaborators"):
            result = store.save()

        assert not result.ok
        assert isinstance(result.error, IntegrityError)
        assert "save failed" in caplog.text
        assert len(db.scalars(select(WorkoutPlan)).all()) == 1

    def test_delete_pending_entity_forgets_it(self, db):
        store = SqlStore(db)
        sess = WorkoutSession()
        store.insert(sess)
        store.delete(sess)
        store.save()
        assert db.scalars(select(WorkoutSession)).all() == []

    def test_delete_persisted_entity(self, db):
        store = SqlStore(db)
        sess = WorkoutSession()
        store.insert(sess)
        store.save()
        store.delete(sess)
        store.save()
        assert db.scalars(select(WorkoutSession)).all() == []

    def test_delete_transient_entity_is_a_noop(self, db):
        SqlStore(db).delete(WorkoutSession())


@pytest.mark.unit
class TestLoggingCollaborators:
    def test_alert_logging(self, caplog):
        alerts = LoggingAlerts()
        with caplog.at_level(logging.INFO, logger="collaborators"):
            alerts.schedule_rest_end_alert(90, "Bench Press")
            alerts.schedule_rest_end_alert(0)
            alerts.cancel_rest_end_alert()
        assert [r.getMessage() for r in caplog.records] == [
            "rest alert in 90s (back to Bench Press)",
            "rest alert cancelled",
        ]

    def test_live_status_accepts_the_timer_calls(self, caplog):
        live = LoggingLiveStatus()
        with caplog.at_level(logging.DEBUG, logger="collaborators"):
            live.start_workout(exercise_name="Row", label="A", elapsed=0, sets_completed=0, sets_planned=3)
            live.update_workout_info(exercise_name="Row", label="A", elapsed=30, sets_completed=1, sets_planned=3)
            live.start_rest(90, exercise_name="Row", label="A")
            live.update_remaining(45)
            live.end_rest()
            live.finish_workout()
        assert len(caplog.records) == 6
