"""
Boundaries the engine talks to but does not own.

- persistence: insert / delete / save
- local alerting: the "rest is over" notification
- live status: lock-screen / ambient workout display

Every call here is best-effort. Persistence failures come back as a
SaveResult and get logged; alert and live-status calls return nothing the
engine depends on.
"""
import logging
from dataclasses import dataclass
from typing import Any, List, Optional

from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


@dataclass
class SaveResult:
    ok: bool
    error: Optional[Exception] = None

    def __bool__(self):
        return self.ok


# =============================================================================
# Persistence
# =============================================================================


class SqlStore:
    """Persistence collaborator backed by a SQLAlchemy Session."""

    def __init__(self, session: Session):
        self.session = session

    def insert(self, entity: Any) -> None:
        self.session.add(entity)

    def delete(self, entity: Any) -> None:
        state = inspect(entity)
        if state.transient:
            return
        if state.pending:
            # never flushed: just forget it
            self.session.expunge(entity)
        else:
            self.session.delete(entity)

    def save(self) -> SaveResult:
        try:
            self.session.commit()
            return SaveResult(ok=True)
        except SQLAlchemyError as e:
            logger.warning("save failed: %s", e)
            self.session.rollback()
            return SaveResult(ok=False, error=e)


class NullStore:
    """Keeps inserted entities in a list; nothing is written anywhere."""

    def __init__(self):
        self.entities: List[Any] = []

    def insert(self, entity: Any) -> None:
        if entity not in self.entities:
            self.entities.append(entity)

    def delete(self, entity: Any) -> None:
        if entity in self.entities:
            self.entities.remove(entity)

    def save(self) -> SaveResult:
        return SaveResult(ok=True)


# =============================================================================
# Local alerting
# =============================================================================


class NullAlerts:
    def schedule_rest_end_alert(self, after_seconds: int, exercise_name: Optional[str] = None) -> None:
        pass

    def cancel_rest_end_alert(self) -> None:
        pass


class LoggingAlerts(NullAlerts):
    """Writes alert requests to the log; handy for the CLI host."""

    def schedule_rest_end_alert(self, after_seconds, exercise_name=None):
        if after_seconds <= 0:
            return
        logger.info("rest alert in %ss%s", after_seconds,
                    f" (back to {exercise_name})" if exercise_name else "")

    def cancel_rest_end_alert(self):
        logger.info("rest alert cancelled")


# =============================================================================
# Live / ambient status
# =============================================================================


class NullLiveStatus:
    def start_workout(self, exercise_name=None, label=None, elapsed=0,
                      sets_completed=0, sets_planned=0) -> None:
        pass

    def update_workout_info(self, exercise_name=None, label=None, elapsed=0,
                            sets_completed=0, sets_planned=0) -> None:
        pass

    def start_rest(self, duration: int, exercise_name=None, label=None) -> None:
        pass

    def update_remaining(self, seconds: int) -> None:
        pass

    def end_rest(self) -> None:
        pass

    def finish_workout(self) -> None:
        pass


class LoggingLiveStatus(NullLiveStatus):
    def start_workout(self, exercise_name=None, label=None, elapsed=0,
                      sets_completed=0, sets_planned=0):
        logger.info("workout %s started on %s", label or "-", exercise_name or "-")

    def update_workout_info(self, exercise_name=None, label=None, elapsed=0,
                            sets_completed=0, sets_planned=0):
        logger.debug("%s: %d/%d sets, %ss elapsed", exercise_name, sets_completed, sets_planned, elapsed)

    def start_rest(self, duration, exercise_name=None, label=None):
        logger.info("resting %ss", duration)

    def update_remaining(self, seconds):
        logger.debug("rest remaining %ss", seconds)

    def end_rest(self):
        logger.debug("rest over")

    def finish_workout(self):
        logger.info("workout finished")
