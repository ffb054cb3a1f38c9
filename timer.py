"""
Active-session timer state machine.

    IDLE -> RUNNING <-> RESTING -> COMPLETED | ABANDONED

The workout clock and the rest countdown are both anchored to absolute
timestamps (start_timestamp, rest_ends_at). Ticks only refresh the displayed
counters, so a suspended process loses nothing: go_foreground() recomputes
everything from the clock.

The machine owns no threads. The host calls tick() about once a second
while the app is in the foreground, and forwards background/foreground
transitions.
"""
import logging
import math
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Iterable, List, Optional

from collaborators import NullAlerts, NullLiveStatus, NullStore, SaveResult
from logic import seed_defaults
from models import Exercise, ExerciseSession, SetLog, Settings, WorkoutSession
from records import RecordBook
from schedule import NextWorkout

logger = logging.getLogger(__name__)

WARMUP_REST_SECONDS = 60
EXTRA_REST_SECONDS = 60


class TimerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    RESTING = "resting"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


ACTIVE_STATES = (TimerState.RUNNING, TimerState.RESTING)


class SessionTimer:
    def __init__(self, workout: Optional[NextWorkout], settings: Settings,
                 store=None, alerts=None, live_status=None,
                 history: Iterable[WorkoutSession] = (),
                 record_book: Optional[RecordBook] = None,
                 clock: Callable[[], float] = time.time):
        self.workout = workout
        self.settings = settings
        self.store = store if store is not None else NullStore()
        self.alerts = alerts if alerts is not None else NullAlerts()
        self.live_status = live_status if live_status is not None else NullLiveStatus()
        self.history: List[WorkoutSession] = list(history)
        self.record_book = record_book
        self.clock = clock

        self.state = TimerState.IDLE
        self.session: Optional[WorkoutSession] = None
        self.discarded = False

        self.start_timestamp: Optional[float] = None
        self.elapsed_seconds = 0
        self.rest_ends_at: Optional[float] = None
        self.rest_remaining = 0
        self.foreground = True

        self.exercise_index = 0
        self.current_reps = 0
        self.current_weight = 0.0

    # ------------------------------------------------------------------
    # read-only views
    # ------------------------------------------------------------------

    @property
    def exercises(self) -> List[Exercise]:
        return self.workout.exercises if self.workout is not None else []

    @property
    def current_exercise(self) -> Optional[Exercise]:
        if 0 <= self.exercise_index < len(self.exercises):
            return self.exercises[self.exercise_index]
        return None

    @property
    def label(self) -> Optional[str]:
        return self.workout.label if self.workout is not None else None

    @property
    def is_active(self) -> bool:
        return self.state in ACTIVE_STATES

    @property
    def is_resting(self) -> bool:
        return self.state is TimerState.RESTING

    @property
    def is_ticking(self) -> bool:
        return self.foreground and self.is_active

    def sets_completed(self, exercise: Optional[Exercise] = None) -> int:
        exercise = exercise or self.current_exercise
        if self.session is None or exercise is None:
            return 0
        es = self.session.exercise_session(exercise.name)
        return len(es.set_logs) if es is not None else 0

    @property
    def total_sets_completed(self) -> int:
        return self.session.total_sets if self.session is not None else 0

    # ------------------------------------------------------------------
    # collaborator plumbing
    # ------------------------------------------------------------------

    def _notify(self, target, method: str, *args, **kwargs) -> None:
        try:
            getattr(target, method)(*args, **kwargs)
        except Exception:
            logger.warning("%s.%s failed", type(target).__name__, method, exc_info=True)

    def _save(self) -> SaveResult:
        try:
            result = self.store.save()
        except Exception as e:
            result = SaveResult(ok=False, error=e)
        if not result.ok:
            logger.warning("Could not persist workout session: %s", result.error)
        return result

    def _workout_info(self) -> dict:
        ex = self.current_exercise
        return dict(
            exercise_name=ex.name if ex else None,
            label=self.label,
            elapsed=self.elapsed_seconds,
            sets_completed=self.sets_completed(),
            sets_planned=ex.planned_sets if ex else 0,
        )

    def _ignored(self, action: str):
        logger.debug("%s ignored in state %s", action, self.state.value)

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------

    def start(self) -> Optional[WorkoutSession]:
        if self.state is not TimerState.IDLE:
            self._ignored("start")
            return None

        now = self.clock()
        self.session = WorkoutSession(
            date=datetime.fromtimestamp(now, timezone.utc),
            plan_name=self.workout.plan.name if self.workout is not None else None,
            workout_label=self.label,
        )
        self.store.insert(self.session)

        self.start_timestamp = now
        self.elapsed_seconds = 0
        self.foreground = True
        self.exercise_index = 0
        self.state = TimerState.RUNNING
        self._seed_current()

        logger.info("Workout started: %s %s",
                    self.session.plan_name or "(no plan)", self.label or "")
        self._notify(self.live_status, "start_workout", **self._workout_info())
        return self.session

    def tick(self) -> None:
        if not self.is_ticking:
            return
        self.elapsed_seconds += 1
        if self.is_resting:
            self._refresh_rest(self.clock())

    def complete(self) -> Optional[WorkoutSession]:
        if not self.is_active:
            self._ignored("complete")
            return None
        if self.is_resting:
            self._end_rest(cancel_alert=True)

        self._sync_elapsed(self.clock())
        self.session.is_completed = True
        self.session.duration_seconds = self.elapsed_seconds
        self.state = TimerState.COMPLETED
        self._save()

        logger.info("Workout completed in %ss with %d sets",
                    self.elapsed_seconds, self.total_sets_completed)
        self._notify(self.live_status, "finish_workout")
        return self.session

    def abandon(self) -> bool:
        """
        Leave the workout without completing it. An attempt with no sets is
        discarded outright; otherwise the session is kept as incomplete.
        Returns True when something was persisted.
        """
        if not self.is_active:
            self._ignored("abandon")
            return False
        if self.is_resting:
            self._end_rest(cancel_alert=True)

        self._sync_elapsed(self.clock())
        self.state = TimerState.ABANDONED
        persisted = self.total_sets_completed > 0
        if persisted:
            self._save()
            logger.info("Workout left incomplete with %d sets", self.total_sets_completed)
        else:
            self.store.delete(self.session)
            self._save()
            self.discarded = True
            logger.info("Empty workout discarded")

        self._notify(self.live_status, "finish_workout")
        return persisted

    # ------------------------------------------------------------------
    # sets
    # ------------------------------------------------------------------

    def add_set(self, reps: Optional[int] = None, weight: Optional[float] = None,
                rpe: Optional[float] = None, is_warmup: bool = False,
                notes: Optional[str] = None) -> Optional[SetLog]:
        exercise = self.current_exercise
        if not self.is_active or exercise is None:
            self._ignored("add_set")
            return None

        reps = self.current_reps if reps is None else reps
        weight = self.current_weight if weight is None else weight
        if reps < 1:
            self._ignored("add_set")
            return None
        if self.is_resting:
            self._end_rest(cancel_alert=True)

        rest = WARMUP_REST_SECONDS if is_warmup else self.settings.default_rest_seconds

        es = self.session.exercise_session(exercise.name)
        if es is None:
            es = ExerciseSession(exercise_name=exercise.name)
            self.session.exercise_sessions.append(es)

        set_log = SetLog(reps=reps, weight=weight, rpe=rpe, is_warmup=bool(is_warmup),
                         rest_seconds=rest, notes=notes)
        es.set_logs.append(set_log)

        # the plan never shows fewer sets than were actually done
        working = len(es.working_sets)
        if working > exercise.planned_sets:
            exercise.planned_sets = working

        if not is_warmup:
            self.current_reps, self.current_weight = reps, weight

        if self.record_book is not None:
            try:
                self.record_book.check(set_log, exercise.name,
                                       datetime.fromtimestamp(self.clock(), timezone.utc))
            except Exception:
                logger.warning("PR check failed for %s", exercise.name, exc_info=True)

        self._save()
        self._notify(self.live_status, "update_workout_info", **self._workout_info())
        self.start_rest(rest)
        return set_log

    def adjust_weight(self, delta_kg: float) -> float:
        self.current_weight = max(0.0, self.current_weight + delta_kg)
        return self.current_weight

    def adjust_reps(self, delta: int) -> int:
        self.current_reps = max(0, self.current_reps + delta)
        return self.current_reps

    # ------------------------------------------------------------------
    # rest countdown
    # ------------------------------------------------------------------

    @property
    def remaining(self) -> int:
        if self.rest_ends_at is None:
            return 0
        return int(math.ceil(self.rest_ends_at - self.clock()))

    def start_rest(self, duration: Optional[int] = None) -> bool:
        if self.state is not TimerState.RUNNING:
            self._ignored("start_rest")
            return False
        duration = self.settings.default_rest_seconds if duration is None else int(duration)
        if duration <= 0:
            return False

        self.rest_ends_at = self.clock() + duration
        self.rest_remaining = duration
        self.state = TimerState.RESTING

        name = self.current_exercise.name if self.current_exercise else None
        self._notify(self.alerts, "schedule_rest_end_alert", duration, name)
        self._notify(self.live_status, "start_rest", duration, exercise_name=name, label=self.label)
        return True

    def skip_rest(self) -> bool:
        if not self.is_resting:
            self._ignored("skip_rest")
            return False
        self._end_rest(cancel_alert=True)
        return True

    def stop_rest(self) -> bool:
        return self.skip_rest()

    def add_minute(self) -> bool:
        if not self.is_resting:
            self._ignored("add_minute")
            return False
        self.rest_ends_at += EXTRA_REST_SECONDS
        self.rest_remaining = self.remaining

        name = self.current_exercise.name if self.current_exercise else None
        self._notify(self.alerts, "cancel_rest_end_alert")
        self._notify(self.alerts, "schedule_rest_end_alert", self.rest_remaining, name)
        self._notify(self.live_status, "update_remaining", self.rest_remaining)
        return True

    def _refresh_rest(self, now: float) -> None:
        self.rest_remaining = int(math.ceil(self.rest_ends_at - now))
        if self.rest_remaining <= 0:
            # the alert scheduled at rest start fires by itself
            self._end_rest(cancel_alert=False)
        else:
            self._notify(self.live_status, "update_remaining", self.rest_remaining)

    def _end_rest(self, cancel_alert: bool) -> None:
        self.rest_ends_at = None
        self.rest_remaining = 0
        self.state = TimerState.RUNNING
        if cancel_alert:
            self._notify(self.alerts, "cancel_rest_end_alert")
        self._notify(self.live_status, "end_rest")

    # ------------------------------------------------------------------
    # navigation
    # ------------------------------------------------------------------

    def next_exercise(self) -> bool:
        if not self.is_active or self.exercise_index >= len(self.exercises) - 1:
            return False
        self.exercise_index += 1
        self._seed_current()
        self._notify(self.live_status, "update_workout_info", **self._workout_info())
        return True

    def previous_exercise(self) -> bool:
        if not self.is_active or self.exercise_index <= 0:
            return False
        self.exercise_index -= 1
        self._seed_current()
        self._notify(self.live_status, "update_workout_info", **self._workout_info())
        return True

    def _seed_current(self) -> None:
        exercise = self.current_exercise
        if exercise is None:
            self.current_reps, self.current_weight = 0, 0.0
            return
        self.current_reps, self.current_weight = seed_defaults(exercise, self.session, self.history)

    # ------------------------------------------------------------------
    # host environment
    # ------------------------------------------------------------------

    def go_background(self) -> None:
        self.foreground = False
        if self.is_active and not self.is_resting:
            self._notify(self.live_status, "update_workout_info", **self._workout_info())

    def go_foreground(self) -> None:
        self.foreground = True
        if not self.is_active:
            return
        now = self.clock()
        self._sync_elapsed(now)
        if self.is_resting:
            self._refresh_rest(now)

    def _sync_elapsed(self, now: float) -> None:
        if self.start_timestamp is not None:
            self.elapsed_seconds = max(0, int(now - self.start_timestamp))
