import io
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional

import pandas as pd
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt

from models import WorkoutSession, to_display
from schedule import session_sort_key

logger = logging.getLogger(__name__)


@dataclass
class ExerciseSummary:
    total_sets: int = 0
    max_weight: float = 0.0      # kg
    total_volume: float = 0.0    # kg * reps


def session_total_sets(session: WorkoutSession) -> int:
    return sum(len(es.working_sets) for es in session.exercise_sessions)


def session_volume_kg(session: WorkoutSession) -> float:
    return sum(s.weight * s.reps for es in session.exercise_sessions for s in es.working_sets)


def sessions_in_month(sessions: Iterable[WorkoutSession], year: int, month: int) -> List[WorkoutSession]:
    picked = [s for s in sessions if s.date is not None and s.date.year == year and s.date.month == month]
    return sorted(picked, key=session_sort_key)


def exercise_summary(sessions: Iterable[WorkoutSession]) -> Dict[str, ExerciseSummary]:
    summary: Dict[str, ExerciseSummary] = {}
    for sess in sessions:
        for es in sess.exercise_sessions:
            working = es.working_sets
            if not working:
                continue
            item = summary.setdefault(es.exercise_name, ExerciseSummary())
            item.total_sets += len(working)
            item.max_weight = max(item.max_weight, max(s.weight for s in working))
            item.total_volume += sum(s.weight * s.reps for s in working)
    return summary


def _w(x, unit):
    return None if x is None else round(to_display(x, unit), 2)


def month_frame(sessions: Iterable[WorkoutSession], unit: str = "kg") -> pd.DataFrame:
    rows = []
    for sess in sessions:
        for es in sess.exercise_sessions:
            working = es.working_sets
            if not working:
                continue
            rows.append({
                "date": sess.date.date() if isinstance(sess.date, datetime) else sess.date,
                "plan": sess.plan_name,
                "label": sess.workout_label,
                "exercise": es.exercise_name,
                "sets": len(working),
                "reps": " / ".join(str(s.reps) for s in working),
                f"max_weight_{unit}": _w(max(s.weight for s in working), unit),
                f"volume_{unit}": _w(sum(s.weight * s.reps for s in working), unit),
                "completed": bool(sess.is_completed),
            })
    return pd.DataFrame(rows)


def summary_frame(summary: Dict[str, ExerciseSummary], unit: str = "kg") -> pd.DataFrame:
    return pd.DataFrame([{
        "exercise": name,
        "total_sets": item.total_sets,
        f"max_weight_{unit}": _w(item.max_weight, unit),
        f"total_volume_{unit}": _w(item.total_volume, unit),
    } for name, item in sorted(summary.items())])


def export_month_xlsx(sessions: Iterable[WorkoutSession], year: int, month: int, unit: str = "kg") -> bytes:
    picked = sessions_in_month(sessions, year, month)
    df_log = month_frame(picked, unit)
    df_sum = summary_frame(exercise_summary(picked), unit)
    bio = io.BytesIO()
    with pd.ExcelWriter(bio, engine="openpyxl") as w:
        (df_log if not df_log.empty else pd.DataFrame()).to_excel(w, sheet_name="log", index=False)
        (df_sum if not df_sum.empty else pd.DataFrame()).to_excel(w, sheet_name="summary", index=False)
    bio.seek(0)
    logger.info("Exported %d sessions for %04d-%02d", len(picked), year, month)
    return bio.read()


def top_weight_series(sessions: Iterable[WorkoutSession], exercise_name: str):
    """(date, heaviest working kg) per session that trained the exercise, oldest first."""
    points = []
    for sess in sorted(sessions, key=session_sort_key):
        es = sess.exercise_session(exercise_name)
        if es is None or not es.working_sets:
            continue
        points.append((sess.date, max(s.weight for s in es.working_sets)))
    return points


def progress_chart_png(sessions: Iterable[WorkoutSession], exercise_name: str, unit: str = "kg") -> Optional[bytes]:
    series = top_weight_series(sessions, exercise_name)
    if not series:
        return None
    x = [d for (d, _) in series]
    y = [to_display(w, unit) for (_, w) in series]
    fig, ax = plt.subplots(figsize=(7, 3))
    ax.plot(x, y, marker="o")
    ax.set_xlabel("Date"); ax.set_ylabel(f"{exercise_name} ({unit})")
    ax.grid(True, alpha=0.3)
    fig.autofmt_xdate()
    bio = io.BytesIO(); fig.tight_layout(); fig.savefig(bio, format="png", dpi=110); plt.close(fig); bio.seek(0)
    return bio.read()
