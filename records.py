"""
Personal records and 1RM estimates.

A PR is kept per (exercise, rep count): 100kg x 5 and 90kg x 8 are both
records. Warmup sets never count.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from models import PersonalRecord, SetLog

logger = logging.getLogger(__name__)


# ------------ 1RM estimation ------------
def estimate_1rm_epley(weight_kg: float, reps: int) -> float:
    """
    Epley: 1RM ≈ w * (1 + reps/30). Returns kg.
    """
    if not weight_kg or weight_kg <= 0 or not reps or reps < 1:
        return 0.0
    if reps == 1:
        return float(weight_kg)
    return weight_kg * (1.0 + reps / 30.0)


def estimate_1rm_brzycki(weight_kg: float, reps: int) -> float:
    """
    Brzycki: 1RM ≈ w * 36 / (37 - reps). Most trustworthy up to ~10 reps.
    """
    if not weight_kg or weight_kg <= 0 or not reps or reps < 1:
        return 0.0
    if reps == 1:
        return float(weight_kg)
    if reps >= 37:
        # formula divides by zero at 37; cap it
        return float(weight_kg) * 2.5
    return weight_kg * 36.0 / (37.0 - reps)


@dataclass
class PRStats:
    exercise_name: str
    max_weight: float
    total_prs: int
    recent_pr: Optional[PersonalRecord]
    first_pr: Optional[PersonalRecord]
    all_prs: List[PersonalRecord] = field(default_factory=list)


@dataclass
class OverallPRStats:
    total_prs: int
    unique_exercises: int
    recent_prs: List[PersonalRecord]
    total_weight: float


class RecordBook:
    """In-memory view of all PRs, optionally writing new ones through a store."""

    def __init__(self, records: Iterable[PersonalRecord] = (), store=None):
        self.records: List[PersonalRecord] = list(records)
        self.store = store

    def current_pr(self, exercise_name: str, reps: int) -> Optional[PersonalRecord]:
        best = None
        for pr in self.records:
            if pr.exercise_name == exercise_name and pr.reps == reps:
                if best is None or pr.weight > best.weight:
                    best = pr
        return best

    def check(self, set_log: SetLog, exercise_name: str,
              when: Optional[datetime] = None) -> Optional[PersonalRecord]:
        """Record `set_log` as a PR if it beats the best at its rep count."""
        if not set_log.is_working or set_log.reps < 1 or set_log.weight <= 0:
            return None

        existing = self.current_pr(exercise_name, set_log.reps)
        if existing is not None and set_log.weight <= existing.weight:
            return None

        pr = PersonalRecord(
            exercise_name=exercise_name,
            weight=set_log.weight,
            reps=set_log.reps,
            date=when or datetime.now(timezone.utc),
            is_warmup=False,
            notes=set_log.notes,
        )
        self.records.append(pr)
        if self.store is not None:
            self.store.insert(pr)
        logger.info("New PR: %s %gkg x %d", exercise_name, pr.weight, pr.reps)
        return pr

    def all_for(self, exercise_name: str) -> List[PersonalRecord]:
        # reps ascending, heaviest first within a rep count
        prs = [pr for pr in self.records if pr.exercise_name == exercise_name]
        return sorted(prs, key=lambda pr: (pr.reps, -pr.weight))

    def by_date(self) -> List[PersonalRecord]:
        return sorted(self.records, key=lambda pr: pr.date.timestamp() if pr.date else 0.0, reverse=True)

    def stats_for(self, exercise_name: str) -> Optional[PRStats]:
        prs = [pr for pr in self.by_date() if pr.exercise_name == exercise_name]
        if not prs:
            return None
        return PRStats(
            exercise_name=exercise_name,
            max_weight=max(pr.weight for pr in prs),
            total_prs=len(prs),
            recent_pr=prs[0],
            first_pr=prs[-1],
            all_prs=self.all_for(exercise_name),
        )

    def overall(self) -> OverallPRStats:
        prs = self.by_date()
        return OverallPRStats(
            total_prs=len(prs),
            unique_exercises=len({pr.exercise_name for pr in prs}),
            recent_prs=prs[:5],
            total_weight=sum(pr.weight * pr.reps for pr in prs),
        )

    def best_estimated_1rm(self) -> Dict[str, float]:
        """Best Epley estimate per exercise across all PRs."""
        best: Dict[str, float] = {}
        for pr in self.records:
            est = estimate_1rm_epley(pr.weight, pr.reps)
            if est > best.get(pr.exercise_name, 0.0):
                best[pr.exercise_name] = est
        return best
