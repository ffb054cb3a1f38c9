from typing import Iterable, List, Optional, Tuple
import logging
import math

from models import (
    Exercise, ExerciseSession, ProgressionMode, SetLog, Settings,
    WorkoutPlan, WorkoutSession, to_display, to_kg,
)
from schedule import exercises_for_label, session_sort_key

logger = logging.getLogger(__name__)

DEFAULT_REPS = 8
HISTORY_SESSIONS = 3
BACKOFF_FACTOR = 0.975

WARMUP_PERCENTS = [0.40, 0.55, 0.70, 0.80, 0.90]
WARMUP_REPS = [8, 5, 3, 2, 1]

# Starter plan used when the database is empty:
# (name, sets, reps, label, equipment, order)
SAMPLE_PLAN = ("Basic Full Body", "Full Body", [(1, "Full"), (3, "Full"), (5, "Full")], [
    ("Back Squat", 3, 10, "Full", "barbell", 1),
    ("Flat Barbell Bench Press", 3, 8, "Full", "barbell", 2),
    ("One-Arm DB Row", 3, 10, "Full", "dumbbells", 3),
    ("Seated DB Overhead Press", 3, 10, "Full", "dumbbells", 4),
])


def round_to_increment(weight_kg: float, settings: Settings, is_dumbbell: bool = False) -> float:
    """
    Round a kg weight to something you can actually load: convert to the
    display unit, snap to the nearest plate/dumbbell step, convert back.
    round_to_increment(round_to_increment(x)) == round_to_increment(x).
    """
    if weight_kg is None:
        return None
    inc = settings.increment_for(is_dumbbell)
    if not inc or inc <= 0:
        return float(weight_kg)
    unit = settings.unit
    display = to_display(float(weight_kg), unit)
    # ties round up (6.25kg on a 2.5 step loads 7.5)
    return to_kg(math.floor(display / inc + 0.5) * inc, unit)


def rep_band(planned_reps: Optional[int]) -> Tuple[int, int]:
    reps = planned_reps or DEFAULT_REPS
    return max(1, reps - 2), reps + 2


def _matching(session: WorkoutSession, name: str) -> Optional[ExerciseSession]:
    key = name.casefold()
    for es in session.exercise_sessions:
        if es.exercise_name.casefold() == key:
            return es
    return None


def recent_history(plan: WorkoutPlan, label: str, history: Iterable[WorkoutSession],
                   limit: int = HISTORY_SESSIONS) -> List[WorkoutSession]:
    matching = [s for s in history if s.plan_name == plan.name and s.workout_label == label]
    matching.sort(key=session_sort_key, reverse=True)
    return matching[:limit]


def find_top_set(sets: Iterable[SetLog], planned_reps: Optional[int]) -> Optional[SetLog]:
    """Heaviest working set inside the rep band; the first one found wins ties."""
    lo, hi = rep_band(planned_reps)
    top = None
    for s in sets:
        if not s.is_working or not (lo <= s.reps <= hi):
            continue
        if top is None or s.weight > top.weight:
            top = s
    return top


def compute_next_top_set(top: SetLog, exercise: Exercise, settings: Settings) -> SetLog:
    is_db = exercise.is_dumbbell
    rest = settings.default_rest_seconds

    if settings.mode is ProgressionMode.REP_CYCLE:
        lo, hi = rep_band(exercise.planned_reps)
        if top.reps < hi:
            return SetLog(reps=min(hi, top.reps + 1),
                          weight=round_to_increment(top.weight, settings, is_db),
                          rpe=top.rpe, rest_seconds=rest, is_warmup=False)
        # top of the band: add one loadable step and drop back to the bottom
        unit = settings.unit
        bumped = to_kg(to_display(top.weight, unit) + settings.increment_for(is_db), unit)
        return SetLog(reps=lo, weight=round_to_increment(bumped, settings, is_db),
                      rpe=top.rpe, rest_seconds=rest, is_warmup=False)

    progressed = top.weight * (1.0 + settings.auto_progression_percent / 100.0)
    return SetLog(reps=top.reps, weight=round_to_increment(progressed, settings, is_db),
                  rpe=top.rpe, rest_seconds=rest, is_warmup=False)


def suggest_sets(exercise: Exercise, recent_sets: List[SetLog], settings: Settings) -> List[SetLog]:
    target_sets = max(1, exercise.planned_sets or 1)
    rest = settings.default_rest_seconds
    top = find_top_set(recent_sets, exercise.planned_reps)

    if top is None:
        # weight 0 = "fill me in", not a guess
        reps = exercise.planned_reps or DEFAULT_REPS
        return [SetLog(reps=reps, weight=0.0, rest_seconds=rest, is_warmup=False)
                for _ in range(target_sets)]

    nxt = compute_next_top_set(top, exercise, settings)
    backoff = round_to_increment(max(0.0, nxt.weight * BACKOFF_FACTOR), settings, exercise.is_dumbbell)
    return [nxt] + [SetLog(reps=nxt.reps, weight=backoff, rest_seconds=rest, is_warmup=False)
                    for _ in range(target_sets - 1)]


def autofill(plan: WorkoutPlan, label: str, history: Iterable[WorkoutSession],
             settings: Settings) -> List[ExerciseSession]:
    """Proposed sets for every exercise of `label`, built from the last few matching sessions."""
    sessions = recent_history(plan, label, history)
    result = []
    for ex in exercises_for_label(plan, label):
        recent_sets = []
        for s in sessions:
            es = _matching(s, ex.name)
            if es is not None:
                recent_sets.extend(es.set_logs)
        result.append(ExerciseSession(exercise_name=ex.name,
                                      set_logs=suggest_sets(ex, recent_sets, settings)))
    logger.debug("autofill %s/%s: %d exercises from %d sessions",
                 plan.name, label, len(result), len(sessions))
    return result


def warmup_ramp(target_kg: float, settings: Settings, is_dumbbell: bool = False) -> List[SetLog]:
    rest = max(45, min(60, settings.default_rest_seconds))
    return [
        SetLog(reps=r, weight=round_to_increment(target_kg * p, settings, is_dumbbell),
               rest_seconds=rest, is_warmup=True)
        for p, r in zip(WARMUP_PERCENTS, WARMUP_REPS)
    ]


def add_warmup_ramp(session: WorkoutSession, plan: WorkoutPlan, settings: Settings) -> int:
    """
    Prepend a warmup ramp to each exercise that has a loaded working set.
    Exercises that already carry warmups are left alone. Returns how many
    exercises got a ramp.
    """
    added = 0
    for es in session.exercise_sessions:
        exercise = plan.find_exercise(es.exercise_name)
        if exercise is None or es.has_warmup:
            continue
        first_work = next((s for s in es.set_logs if s.is_working and s.weight > 0), None)
        if first_work is None:
            continue
        for i, w in enumerate(warmup_ramp(first_work.weight, settings, exercise.is_dumbbell)):
            es.set_logs.insert(i, w)
        added += 1
    return added


def seed_defaults(exercise: Exercise, session: Optional[WorkoutSession],
                  history: Iterable[WorkoutSession]) -> Tuple[int, float]:
    """
    Starting (reps, weight) for an exercise: the last working set already
    logged this session, else the last set in completed history, else the
    planned reps at zero weight.
    """
    if session is not None:
        es = _matching(session, exercise.name)
        if es is not None and es.working_sets:
            last = es.working_sets[-1]
            return last.reps, last.weight

    completed = sorted((s for s in history if s.is_completed and s is not session),
                       key=session_sort_key, reverse=True)
    for s in completed:
        es = _matching(s, exercise.name)
        if es is not None and es.set_logs:
            last = es.set_logs[-1]
            return last.reps, last.weight

    return exercise.planned_reps or DEFAULT_REPS, 0.0
