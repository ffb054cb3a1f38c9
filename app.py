import os, sys, argparse, logging
from datetime import date

from sqlalchemy import create_engine, select, text
from sqlalchemy.orm import Session

from models import Base, Exercise, PersonalRecord, Settings, WorkoutPlan, WorkoutSession, to_display, to_kg
from logic import SAMPLE_PLAN, add_warmup_ramp, autofill
from schedule import next_workout
from records import RecordBook, estimate_1rm_epley
from collaborators import LoggingAlerts, LoggingLiveStatus, SqlStore
from timer import SessionTimer
from export import export_month_xlsx, progress_chart_png

logger = logging.getLogger(__name__)

DATABASE_URL = os.environ.get("DATABASE_URL", "sqlite:///local.db")
engine = create_engine(
    DATABASE_URL,
    future=True,
    pool_pre_ping=True,
    pool_recycle=1800
)

_db_ready = False
def ensure_db():
    """Connect once and create tables lazily."""
    global _db_ready
    if _db_ready:
        return
    with engine.connect() as conn:
        conn.execute(text("select 1"))
    Base.metadata.create_all(engine)
    _db_ready = True


def get_or_create_settings(s: Session) -> Settings:
    st = s.get(Settings, 1)
    if st is None:
        st = Settings(id=1)
        s.add(st); s.commit(); s.refresh(st)
    return st


def seed_sample_plan(s: Session) -> WorkoutPlan:
    """Create the starter plan if there are no plans at all."""
    existing = s.scalars(select(WorkoutPlan)).first()
    if existing:
        return existing
    name, plan_type, schedule, exercises = SAMPLE_PLAN
    plan = WorkoutPlan(name=name, plan_type=plan_type, schedule=schedule)
    for ex_name, sets, reps, label, equipment, order in exercises:
        plan.exercises.append(Exercise(name=ex_name, planned_sets=sets, planned_reps=reps,
                                       label=label, equipment=equipment, order_index=order))
    s.add(plan); s.commit()
    logger.info("Seeded sample plan %r", name)
    return plan


def load_all(s: Session):
    plans = s.scalars(select(WorkoutPlan)).all()
    sessions = s.scalars(select(WorkoutSession).order_by(WorkoutSession.date.desc())).all()
    return plans, sessions


def fmt_w(x, unit):
    unit = getattr(unit, "value", unit)
    return f"{to_display(x, unit):g}{unit}"


# ------------ commands ------------
def cmd_next(args):
    with Session(engine) as s:
        st = get_or_create_settings(s)
        plans, sessions = load_all(s)
        today = date.fromisoformat(args.date) if args.date else date.today()
        nw = next_workout(plans, sessions, today)
        if nw is None:
            print("No workout scheduled in the next 7 days.")
            return 0
        print(f"{nw.day_name}: {nw.plan.name} - workout {nw.label}")
        for es in autofill(nw.plan, nw.label, sessions, st):
            sets = ", ".join(f"{x.reps}x{fmt_w(x.weight, st.unit)}" for x in es.set_logs)
            print(f"  {es.exercise_name}: {sets}")
    return 0


def cmd_seed(args):
    with Session(engine) as s:
        plan = seed_sample_plan(s)
        print(f"Plan: {plan.name} ({len(plan.exercises)} exercises)")
    return 0


def cmd_export(args):
    y, m = (int(p) for p in args.month.split("-"))
    with Session(engine) as s:
        st = get_or_create_settings(s)
        _, sessions = load_all(s)
        data = export_month_xlsx(sessions, y, m, st.unit.value)
    with open(args.output, "wb") as f:
        f.write(data)
    print(f"Wrote {args.output}")
    return 0


def cmd_chart(args):
    with Session(engine) as s:
        st = get_or_create_settings(s)
        _, sessions = load_all(s)
        png = progress_chart_png(sessions, args.exercise, st.unit.value)
    if png is None:
        print(f"No working sets logged for {args.exercise}.")
        return 1
    with open(args.output, "wb") as f:
        f.write(png)
    print(f"Wrote {args.output}")
    return 0


def cmd_records(args):
    with Session(engine) as s:
        st = get_or_create_settings(s)
        book = RecordBook(s.scalars(select(PersonalRecord)).all())
        if args.exercise:
            stats = book.stats_for(args.exercise)
            if stats is None:
                print(f"No records for {args.exercise}.")
                return 0
            print(f"{stats.exercise_name}: {stats.total_prs} PRs, best {fmt_w(stats.max_weight, st.unit)}")
            for pr in stats.all_prs:
                est = estimate_1rm_epley(pr.weight, pr.reps)
                print(f"  {pr.reps:>2} reps  {fmt_w(pr.weight, st.unit):>10}  (e1RM {fmt_w(est, st.unit)})")
        else:
            ov = book.overall()
            print(f"{ov.total_prs} PRs across {ov.unique_exercises} exercises")
            for pr in ov.recent_prs:
                print(f"  {pr.date:%Y-%m-%d}  {pr.exercise_name}: {pr.reps}x{fmt_w(pr.weight, st.unit)}")
    return 0


WORKOUT_HELP = """commands:
  s REPS WEIGHT   log a working set     w REPS WEIGHT   log a warmup set
  s               log the suggested set warmups         add warmup ramps
  n / p           next / previous exercise
  skip            end rest now          +               add a minute of rest
  done            finish workout        quit            leave without finishing"""


def cmd_workout(args):
    """Line-based active session. Each command resyncs the clocks first."""
    with Session(engine) as s:
        st = get_or_create_settings(s)
        plans, sessions = load_all(s)
        nw = next_workout(plans, sessions, date.today())
        if nw is None:
            print("No workout scheduled in the next 7 days.")
            return 1
        store = SqlStore(s)
        book = RecordBook(s.scalars(select(PersonalRecord)).all(), store=store)
        t = SessionTimer(nw, st, store=store, alerts=LoggingAlerts(), live_status=LoggingLiveStatus(),
                         history=sessions, record_book=book)
        t.start()
        print(f"{nw.plan.name} - workout {nw.label}\n{WORKOUT_HELP}")
        while t.is_active:
            t.go_foreground()
            ex = t.current_exercise
            status = f"rest {t.remaining}s | " if t.is_resting else ""
            prompt = (f"[{t.elapsed_seconds // 60}:{t.elapsed_seconds % 60:02d}] {status}"
                      f"{ex.name if ex else '-'} {t.sets_completed()}/{ex.planned_sets if ex else 0}"
                      f" next {t.current_reps}x{fmt_w(t.current_weight, st.unit)} > ")
            try:
                line = input(prompt).split()
            except EOFError:
                line = ["quit"]
            if not line:
                continue
            cmd, rest = line[0], line[1:]
            try:
                if cmd in ("s", "w"):
                    reps = int(rest[0]) if rest else None
                    weight = to_kg(float(rest[1]), st.unit) if len(rest) > 1 else None
                    t.add_set(reps=reps, weight=weight, is_warmup=(cmd == "w"))
                elif cmd == "warmups":
                    if add_warmup_ramp(t.session, nw.plan, st):
                        store.save()
                elif cmd == "n":
                    t.next_exercise()
                elif cmd == "p":
                    t.previous_exercise()
                elif cmd == "skip":
                    t.skip_rest()
                elif cmd == "+":
                    t.add_minute()
                elif cmd == "done":
                    t.complete()
                elif cmd == "quit":
                    t.abandon()
                else:
                    print(WORKOUT_HELP)
            except (ValueError, IndexError):
                print(WORKOUT_HELP)
        print(f"Session {t.state.value} after {t.elapsed_seconds}s, {t.total_sets_completed} sets.")
    return 0


def build_parser():
    parser = argparse.ArgumentParser(description="Workout scheduling and progression")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("next", help="Show the next scheduled workout with suggested sets")
    p.add_argument("--date", help="Resolve as if today were YYYY-MM-DD")
    p.set_defaults(func=cmd_next)

    p = sub.add_parser("seed", help="Create a starter plan if none exists")
    p.set_defaults(func=cmd_seed)

    p = sub.add_parser("workout", help="Run the next workout interactively")
    p.set_defaults(func=cmd_workout)

    p = sub.add_parser("export", help="Export a month of training to .xlsx")
    p.add_argument("month", help="YYYY-MM")
    p.add_argument("-o", "--output", default="gym_export.xlsx")
    p.set_defaults(func=cmd_export)

    p = sub.add_parser("chart", help="Plot top working weight over time for an exercise")
    p.add_argument("exercise")
    p.add_argument("-o", "--output", default="progress.png")
    p.set_defaults(func=cmd_chart)

    p = sub.add_parser("records", help="Show personal records")
    p.add_argument("exercise", nargs="?")
    p.set_defaults(func=cmd_records)
    return parser


def main(argv=None):
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    args = build_parser().parse_args(argv)
    try:
        ensure_db()
        return args.func(args)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
