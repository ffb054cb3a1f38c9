from datetime import datetime, timezone

from models import ExerciseSession, SetLog, WorkoutSession


def when(day: int, hour: int = 18) -> datetime:
    return datetime(2026, 10, day, hour, 0, tzinfo=timezone.utc)


def make_session(day, plan_name=None, label=None, completed=True, exercises=None):
    """
    exercises: {"Bench Press": [(reps, kg), (reps, kg, True)]} where a third
    item marks a warmup.
    """
    sess = WorkoutSession(date=when(day), plan_name=plan_name, workout_label=label,
                          is_completed=completed)
    for name, sets in (exercises or {}).items():
        es = ExerciseSession(exercise_name=name)
        for item in sets:
            reps, kg = item[0], item[1]
            warm = item[2] if len(item) > 2 else False
            es.set_logs.append(SetLog(reps=reps, weight=kg, is_warmup=warm))
        sess.exercise_sessions.append(es)
    return sess
