"""
Schedule resolution: which workout comes next.

The label cycle is derived from completed-session history on every call;
no cycle position is stored anywhere.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Iterable, List, Optional, Union

from models import Exercise, PlanType, WorkoutPlan, WorkoutSession

logger = logging.getLogger(__name__)

# 1=Sunday ... 7=Saturday
WEEKDAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]


@dataclass
class NextWorkout:
    plan: WorkoutPlan
    label: str
    exercises: List[Exercise] = field(default_factory=list)
    day_name: str = ""


def weekday_of(d: Union[date, datetime]) -> int:
    """Python's isoweekday (Mon=1..Sun=7) -> Sunday-first numbering (Sun=1..Sat=7)."""
    return d.isoweekday() % 7 + 1


def day_name(weekday: int) -> str:
    return WEEKDAY_NAMES[max(1, min(7, weekday)) - 1]


def _sort_key(ex: Exercise):
    return (ex.order_index or 0, ex.name)


def exercises_for_label(plan: WorkoutPlan, label: str) -> List[Exercise]:
    """
    Exercises assigned to `label`, ordered by (order_index, name).
    Falls back to the whole plan when nothing matches, so a resolved workout
    is never empty because of stale label metadata.
    """
    matching = [ex for ex in plan.exercises if ex.effective_label(plan) == label]
    if not matching and plan.exercises:
        logger.debug("No exercises labelled %r in plan %r; using all exercises", label, plan.name)
        matching = list(plan.exercises)
    return sorted(matching, key=_sort_key)


def label_of_session(session: WorkoutSession, plan: WorkoutPlan) -> str:
    labels = plan.labels
    if session.workout_label in labels:
        return session.workout_label

    # Heuristic: the current label of the session's first exercise.
    # Misattributes if the plan's labels were edited after the session was logged.
    if session.exercise_sessions:
        first_name = session.exercise_sessions[0].exercise_name
        for ex in plan.exercises:
            if ex.name == first_name:
                if ex.label in labels:
                    return ex.label
                break

    return labels[0]


def session_sort_key(s: WorkoutSession):
    d = s.date
    if d is None:
        return 0.0
    if isinstance(d, datetime):
        # naive and aware datetimes can't be compared directly; epoch seconds can
        return d.timestamp()
    return datetime(d.year, d.month, d.day).timestamp()


def last_completed_session(plan: WorkoutPlan, sessions: Iterable[WorkoutSession]) -> Optional[WorkoutSession]:
    completed = [s for s in sessions if s.is_completed and s.plan_name == plan.name]
    if not completed:
        return None
    return max(completed, key=session_sort_key)


def next_label_for(plan: WorkoutPlan, sessions: Iterable[WorkoutSession]) -> str:
    labels = plan.labels
    if plan.plan_type is PlanType.FULL_BODY:
        return labels[0]

    last = last_completed_session(plan, sessions)
    if last is None:
        return labels[0]

    last_label = label_of_session(last, plan)
    if last_label not in labels:
        return labels[0]
    return labels[(labels.index(last_label) + 1) % len(labels)]


def next_workout(plans: Iterable[WorkoutPlan],
                 sessions: Iterable[WorkoutSession],
                 today: Union[date, datetime, int]) -> Optional[NextWorkout]:
    """
    Day-then-plan priority: anything scheduled today (across all plans)
    beats anything tomorrow, and so on for a week. Ties on the same day go
    to the plan whose name sorts first.
    """
    today_wd = today if isinstance(today, int) else weekday_of(today)
    ordered = sorted(plans, key=lambda p: p.name)
    sessions = list(sessions)

    for day_offset in range(7):
        target = ((today_wd - 1 + day_offset) % 7) + 1
        for plan in ordered:
            if plan.label_for_weekday(target) is None:
                continue
            label = next_label_for(plan, sessions)
            return NextWorkout(
                plan=plan,
                label=label,
                exercises=exercises_for_label(plan, label),
                day_name=day_name(target),
            )
    return None
