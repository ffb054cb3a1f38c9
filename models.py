from enum import Enum
from typing import List, Optional

from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.ext.orderinglist import ordering_list
from sqlalchemy import String, Integer, Float, Text, JSON, Boolean, DateTime, ForeignKey
from datetime import datetime, timezone

LB_PER_KG = 2.20462262185

# Equipment text that marks an exercise as dumbbell-loaded (English + Hebrew "dumbbells")
DUMBBELL_KEYWORDS = ("dumbbell", "דאמ")


class Base(DeclarativeBase):
    pass


class PlanType(str, Enum):
    FULL_BODY = "Full Body"
    AB = "AB"
    ABC = "ABC"

    @property
    def labels(self) -> List[str]:
        if self is PlanType.AB:
            return ["A", "B"]
        if self is PlanType.ABC:
            return ["A", "B", "C"]
        return ["Full"]


class WeightUnit(str, Enum):
    KG = "kg"
    LB = "lb"


class ProgressionMode(str, Enum):
    PERCENT = "percent"
    REP_CYCLE = "repCycle"


def to_display(weight_kg, unit="kg"):
    """kg -> user's display unit. Storage always stays kg."""
    if weight_kg is None:
        return None
    return weight_kg * LB_PER_KG if unit == WeightUnit.LB else weight_kg


def to_kg(value, unit="kg"):
    if value is None:
        return None
    return value / LB_PER_KG if unit == WeightUnit.LB else value


class WorkoutPlan(Base):
    __tablename__ = "workout_plan"
    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    plan_type_raw: Mapped[str] = mapped_column(String(20), default=PlanType.FULL_BODY.value)

    # [{"weekday": 1..7 (1=Sunday), "label": "A"}, ...]
    schedule: Mapped[list] = mapped_column(JSON, default=list)

    exercises: Mapped[List["Exercise"]] = relationship(
        back_populates="plan",
        cascade="all, delete-orphan",
        order_by="Exercise.position",
        collection_class=ordering_list("position"),
    )

    def __init__(self, **kw):
        plan_type = kw.pop("plan_type", None)
        schedule = kw.pop("schedule", None)
        kw.setdefault("plan_type_raw", PlanType(plan_type).value if plan_type else PlanType.FULL_BODY.value)
        kw.setdefault("schedule", [])
        super().__init__(**kw)
        if schedule:
            self.set_schedule(schedule)

    @property
    def plan_type(self) -> PlanType:
        try:
            return PlanType(self.plan_type_raw)
        except ValueError:
            return PlanType.FULL_BODY

    @plan_type.setter
    def plan_type(self, value):
        self.plan_type_raw = PlanType(value).value

    @property
    def labels(self) -> List[str]:
        return self.plan_type.labels

    @property
    def default_label(self) -> str:
        return self.labels[0]

    def set_schedule(self, entries):
        """
        Replace the weekday schedule. Accepts dicts or (weekday, label) pairs.
        A weekday maps to one label: later entries win. Entries with a weekday
        outside 1..7 or a label foreign to the plan type are dropped.
        """
        by_day = {}
        for entry in entries:
            if isinstance(entry, dict):
                weekday, label = entry.get("weekday"), entry.get("label")
            else:
                weekday, label = entry
            if not isinstance(weekday, int) or not 1 <= weekday <= 7:
                continue
            if label not in self.labels:
                continue
            by_day[weekday] = label
        # reassign (not mutate) so the JSON column is flagged dirty
        self.schedule = [{"weekday": d, "label": by_day[d]} for d in sorted(by_day)]

    def label_for_weekday(self, weekday: int) -> Optional[str]:
        for entry in self.schedule or []:
            if entry.get("weekday") == weekday:
                return entry.get("label")
        return None

    def find_exercise(self, name: str) -> Optional["Exercise"]:
        if not name:
            return None
        for ex in self.exercises:
            if ex.name.casefold() == name.casefold():
                return ex
        return None

    def __repr__(self):
        return f"WorkoutPlan(name={self.name!r}, type={self.plan_type_raw!r})"


class Exercise(Base):
    __tablename__ = "exercise"
    id: Mapped[int] = mapped_column(primary_key=True)
    plan_id: Mapped[Optional[int]] = mapped_column(ForeignKey("workout_plan.id"), index=True)
    position: Mapped[Optional[int]] = mapped_column(Integer)

    name: Mapped[str] = mapped_column(String(80), index=True)
    label: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    planned_sets: Mapped[int] = mapped_column(Integer, default=3)
    planned_reps: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    order_index: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    equipment: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)
    is_bodyweight: Mapped[bool] = mapped_column(Boolean, default=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    plan: Mapped[Optional[WorkoutPlan]] = relationship(back_populates="exercises")

    def __init__(self, **kw):
        kw.setdefault("planned_sets", 3)
        kw.setdefault("is_bodyweight", False)
        kw["planned_sets"] = max(1, int(kw["planned_sets"]))
        super().__init__(**kw)

    def effective_label(self, plan: Optional[WorkoutPlan] = None) -> str:
        plan = plan or self.plan
        if plan is None:
            return self.label or PlanType.FULL_BODY.labels[0]
        # a label foreign to the plan type reads as the default one
        if self.label in plan.labels:
            return self.label
        return plan.default_label

    @property
    def is_dumbbell(self) -> bool:
        text = (self.equipment or "").casefold()
        return any(k in text for k in DUMBBELL_KEYWORDS)

    def __repr__(self):
        return f"Exercise(name={self.name!r}, label={self.label!r}, sets={self.planned_sets})"


class WorkoutSession(Base):
    __tablename__ = "workout_session"
    id: Mapped[int] = mapped_column(primary_key=True)
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    # weak reference by name: sessions outlive plan renames/deletes
    plan_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    workout_label: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    is_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    duration_seconds: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    exercise_sessions: Mapped[List["ExerciseSession"]] = relationship(
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="ExerciseSession.position",
        collection_class=ordering_list("position"),
    )

    def __init__(self, **kw):
        kw.setdefault("date", datetime.now(timezone.utc))
        kw.setdefault("is_completed", False)
        super().__init__(**kw)

    def exercise_session(self, name: str) -> Optional["ExerciseSession"]:
        for es in self.exercise_sessions:
            if es.exercise_name == name:
                return es
        return None

    @property
    def total_sets(self) -> int:
        return sum(len(es.set_logs) for es in self.exercise_sessions)

    def __repr__(self):
        return (f"WorkoutSession(date={self.date!r}, plan={self.plan_name!r}, "
                f"label={self.workout_label!r}, completed={self.is_completed})")


class ExerciseSession(Base):
    __tablename__ = "exercise_session"
    id: Mapped[int] = mapped_column(primary_key=True)
    session_id: Mapped[Optional[int]] = mapped_column(ForeignKey("workout_session.id"), index=True)
    position: Mapped[Optional[int]] = mapped_column(Integer)
    exercise_name: Mapped[str] = mapped_column(String(80), index=True)

    session: Mapped[Optional[WorkoutSession]] = relationship(back_populates="exercise_sessions")
    set_logs: Mapped[List["SetLog"]] = relationship(
        back_populates="exercise_session",
        cascade="all, delete-orphan",
        order_by="SetLog.position",
        collection_class=ordering_list("position"),
    )

    @property
    def working_sets(self) -> List["SetLog"]:
        return [s for s in self.set_logs if s.is_working]

    @property
    def has_warmup(self) -> bool:
        return any(not s.is_working for s in self.set_logs)

    def __repr__(self):
        return f"ExerciseSession(exercise={self.exercise_name!r}, sets={len(self.set_logs)})"


class SetLog(Base):
    __tablename__ = "set_log"
    id: Mapped[int] = mapped_column(primary_key=True)
    exercise_session_id: Mapped[Optional[int]] = mapped_column(ForeignKey("exercise_session.id"), index=True)
    position: Mapped[Optional[int]] = mapped_column(Integer)

    reps: Mapped[int] = mapped_column(Integer, default=0)
    weight: Mapped[float] = mapped_column(Float, default=0.0)   # kg
    rpe: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    is_warmup: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    rest_seconds: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    exercise_session: Mapped[Optional[ExerciseSession]] = relationship(back_populates="set_logs")

    def __init__(self, **kw):
        kw.setdefault("reps", 0)
        kw.setdefault("weight", 0.0)
        super().__init__(**kw)

    @property
    def is_working(self) -> bool:
        return not self.is_warmup

    def __repr__(self):
        tag = " warmup" if self.is_warmup else ""
        return f"SetLog({self.reps}x{self.weight:g}kg{tag})"


class Settings(Base):
    __tablename__ = "settings"
    id = mapped_column(Integer, primary_key=True)

    weight_unit: Mapped[str] = mapped_column(String(4), default=WeightUnit.KG.value)
    default_rest_seconds: Mapped[int] = mapped_column(Integer, default=90)
    auto_progression_mode: Mapped[str] = mapped_column(String(12), default=ProgressionMode.PERCENT.value)
    auto_progression_percent: Mapped[float] = mapped_column(Float, default=2.5)

    # Increments are in their own unit (plates you can actually load)
    weight_increment_kg: Mapped[float] = mapped_column(Float, default=2.5)
    weight_increment_lb: Mapped[float] = mapped_column(Float, default=5.0)
    dumbbell_increment_kg: Mapped[float] = mapped_column(Float, default=2.0)
    dumbbell_increment_lb: Mapped[float] = mapped_column(Float, default=5.0)

    DEFAULTS = {
        "weight_unit": WeightUnit.KG.value,
        "default_rest_seconds": 90,
        "auto_progression_mode": ProgressionMode.PERCENT.value,
        "auto_progression_percent": 2.5,
        "weight_increment_kg": 2.5,
        "weight_increment_lb": 5.0,
        "dumbbell_increment_kg": 2.0,
        "dumbbell_increment_lb": 5.0,
    }

    def __init__(self, **kw):
        for key, value in self.DEFAULTS.items():
            kw.setdefault(key, value)
        kw["weight_unit"] = WeightUnit(kw["weight_unit"]).value
        kw["auto_progression_mode"] = ProgressionMode(kw["auto_progression_mode"]).value
        super().__init__(**kw)

    @property
    def unit(self) -> WeightUnit:
        try:
            return WeightUnit(self.weight_unit)
        except ValueError:
            return WeightUnit.KG

    @property
    def mode(self) -> ProgressionMode:
        try:
            return ProgressionMode(self.auto_progression_mode)
        except ValueError:
            return ProgressionMode.PERCENT

    def increment_for(self, is_dumbbell: bool = False) -> float:
        """Loadable step in the active display unit."""
        if self.unit == WeightUnit.LB:
            return self.dumbbell_increment_lb if is_dumbbell else self.weight_increment_lb
        return self.dumbbell_increment_kg if is_dumbbell else self.weight_increment_kg


class PersonalRecord(Base):
    __tablename__ = "personal_record"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    exercise_name: Mapped[str] = mapped_column(String(80), index=True)
    weight: Mapped[float] = mapped_column(Float)   # kg
    reps: Mapped[int] = mapped_column(Integer, index=True)
    is_warmup: Mapped[bool] = mapped_column(Boolean, default=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc)
    )

    def __init__(self, **kw):
        kw.setdefault("date", datetime.now(timezone.utc))
        kw.setdefault("is_warmup", False)
        super().__init__(**kw)

    def __repr__(self):
        return f"PersonalRecord({self.exercise_name!r}, {self.reps}x{self.weight:g}kg)"
