import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from models import Base, Exercise, Settings, WorkoutPlan
from tests.fakes import CountingStore, FakeClock, RecordingAlerts, RecordingLiveStatus


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def alerts():
    return RecordingAlerts()


@pytest.fixture
def live():
    return RecordingLiveStatus()


@pytest.fixture
def store():
    return CountingStore()


@pytest.fixture
def abc_plan():
    plan = WorkoutPlan(name="Split", plan_type="ABC", schedule=[(2, "A"), (4, "B"), (6, "C")])
    plan.exercises.extend([
        Exercise(name="Bench Press", label="A", planned_sets=3, planned_reps=5, order_index=1),
        Exercise(name="Incline DB Press", label="A", planned_sets=3, planned_reps=10,
                 equipment="Dumbbells", order_index=2),
        Exercise(name="Back Squat", label="B", planned_sets=3, planned_reps=5, order_index=1),
        Exercise(name="Deadlift", label="C", planned_sets=1, planned_reps=5, order_index=1),
    ])
    return plan


@pytest.fixture
def full_plan():
    plan = WorkoutPlan(name="Basics", plan_type="Full Body", schedule=[(1, "Full"), (3, "Full")])
    plan.exercises.extend([
        Exercise(name="Squat", planned_sets=3, planned_reps=8),
        Exercise(name="Row", planned_sets=3, planned_reps=8),
    ])
    return plan


@pytest.fixture
def db():
    engine = create_engine("sqlite:///:memory:", future=True)
    Base.metadata.create_all(engine)
    with Session(engine) as s:
        yield s
    engine.dispose()
