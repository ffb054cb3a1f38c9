"""
Tests for the progression engine.

Tests cover:
- the rounding rule (kg/lb, dumbbell increments, idempotence)
- top-set detection inside the rep band
- percent and rep-cycle progression
- autofill (history window, back-off sets, no-history fallback)
- warmup ramp generation and idempotence
- default value seeding priority
"""
import pytest

from logic import (
    add_warmup_ramp,
    autofill,
    compute_next_top_set,
    find_top_set,
    rep_band,
    round_to_increment,
    seed_defaults,
    warmup_ramp,
)
from models import Exercise, ExerciseSession, SetLog, Settings, WorkoutSession, to_display
from tests.factories import make_session, when


def weights(sets):
    return [s.weight for s in sets]


def reps(sets):
    return [s.reps for s in sets]


# =============================================================================
# Rounding
# =============================================================================


@pytest.mark.unit
class TestRounding:
    def test_rounds_to_nearest_plate_step(self, settings):
        assert round_to_increment(41.3, settings) == pytest.approx(42.5)
        assert round_to_increment(40.9, settings) == pytest.approx(40.0)

    def test_dumbbell_uses_dumbbell_increment(self, settings):
        assert round_to_increment(23.1, settings, is_dumbbell=True) == pytest.approx(24.0)

    def test_pounds_round_in_pounds(self):
        st = Settings(weight_unit="lb")
        rounded = round_to_increment(100.0, st)
        assert to_display(rounded, "lb") == pytest.approx(220.0)

    def test_half_steps_round_up(self, settings):
        assert round_to_increment(6.25, settings) == pytest.approx(7.5)
        assert round_to_increment(8.75, settings) == pytest.approx(10.0)
        assert round_to_increment(11.25, settings) == pytest.approx(12.5)
        assert round_to_increment(25.0, settings, is_dumbbell=True) == pytest.approx(26.0)

    def test_ramp_top_set_rounds_up_on_a_tie(self, settings):
        assert warmup_ramp(62.5, settings)[-1].weight == pytest.approx(57.5)

    def test_zero_increment_leaves_weight_alone(self):
        st = Settings(weight_increment_kg=0.0)
        assert round_to_increment(41.3, st) == 41.3

    @pytest.mark.parametrize("kg", [0.0, 1.1, 17.3, 42.49, 99.99, 143.7, 251.0])
    @pytest.mark.parametrize("overrides,dumbbell", [
        ({}, False),
        ({}, True),
        ({"weight_increment_kg": 1.25}, False),
        ({"weight_unit": "lb"}, False),
        ({"weight_unit": "lb", "weight_increment_lb": 2.5}, True),
    ])
    def test_rounding_is_idempotent(self, kg, overrides, dumbbell):
        st = Settings(**overrides)
        once = round_to_increment(kg, st, dumbbell)
        assert round_to_increment(once, st, dumbbell) == once


# =============================================================================
# Top set
# =============================================================================


@pytest.mark.unit
class TestTopSet:
    def test_rep_band(self):
        assert rep_band(8) == (6, 10)
        assert rep_band(2) == (1, 4)
        assert rep_band(None) == (6, 10)

    def test_heaviest_working_set_in_band(self):
        sets = [SetLog(reps=8, weight=60), SetLog(reps=7, weight=65), SetLog(reps=12, weight=50)]
        assert find_top_set(sets, 8).weight == 65

    def test_out_of_band_sets_are_ignored(self):
        sets = [SetLog(reps=8, weight=60), SetLog(reps=2, weight=90)]
        assert find_top_set(sets, 8).weight == 60

    def test_warmups_are_ignored(self):
        sets = [SetLog(reps=8, weight=90, is_warmup=True), SetLog(reps=8, weight=60)]
        assert find_top_set(sets, 8).weight == 60

    def test_first_found_wins_a_tie(self):
        first, second = SetLog(reps=8, weight=60), SetLog(reps=9, weight=60)
        assert find_top_set([first, second], 8) is first

    def test_nothing_qualifies(self):
        assert find_top_set([SetLog(reps=20, weight=40)], 8) is None
        assert find_top_set([], 8) is None


# =============================================================================
# Next top set
# =============================================================================


@pytest.mark.unit
class TestProgression:
    def test_rep_cycle_adds_a_rep(self):
        st = Settings(auto_progression_mode="repCycle")
        nxt = compute_next_top_set(SetLog(reps=8, weight=40), Exercise(name="Row", planned_reps=8), st)
        assert (nxt.reps, nxt.weight) == (9, pytest.approx(40.0))

    def test_rep_cycle_resets_reps_and_adds_weight_at_band_top(self):
        st = Settings(auto_progression_mode="repCycle")
        nxt = compute_next_top_set(SetLog(reps=10, weight=40), Exercise(name="Row", planned_reps=8), st)
        assert (nxt.reps, nxt.weight) == (6, pytest.approx(42.5))

    def test_rep_cycle_dumbbell_step(self):
        st = Settings(auto_progression_mode="repCycle")
        ex = Exercise(name="DB Press", planned_reps=8, equipment="dumbbell")
        nxt = compute_next_top_set(SetLog(reps=10, weight=20), ex, st)
        assert (nxt.reps, nxt.weight) == (6, pytest.approx(22.0))

    def test_rep_cycle_step_in_pounds(self):
        st = Settings(auto_progression_mode="repCycle", weight_unit="lb")
        start = 100 / 2.20462262185  # 100 lb
        nxt = compute_next_top_set(SetLog(reps=10, weight=start), Exercise(name="Row", planned_reps=8), st)
        assert to_display(nxt.weight, "lb") == pytest.approx(105.0)

    def test_percent_progression(self, settings):
        nxt = compute_next_top_set(SetLog(reps=5, weight=100), Exercise(name="Bench", planned_reps=5), settings)
        assert nxt.reps == 5
        assert nxt.weight == pytest.approx(102.5)

    def test_percent_progression_rounds_to_increment(self):
        st = Settings(auto_progression_percent=5.0)
        nxt = compute_next_top_set(SetLog(reps=5, weight=61), Exercise(name="Bench", planned_reps=5), st)
        assert nxt.weight == pytest.approx(65.0)  # 64.05 -> 65.0

    def test_generated_sets_carry_default_rest(self, settings):
        nxt = compute_next_top_set(SetLog(reps=5, weight=100), Exercise(name="Bench", planned_reps=5), settings)
        assert nxt.rest_seconds == settings.default_rest_seconds
        assert not nxt.is_warmup


# =============================================================================
# Autofill
# =============================================================================


@pytest.mark.unit
class TestAutofill:
    def test_top_set_then_backoffs(self, abc_plan, settings):
        history = [make_session(12, "Split", "A", exercises={
            "Bench Press": [(5, 100), (1, 120), (5, 95)],
            "Incline DB Press": [(10, 30)],
        })]
        result = autofill(abc_plan, "A", history, settings)

        assert [es.exercise_name for es in result] == ["Bench Press", "Incline DB Press"]
        bench, incline = result
        assert reps(bench.set_logs) == [5, 5, 5]
        assert weights(bench.set_logs) == pytest.approx([102.5, 100.0, 100.0])
        assert weights(incline.set_logs) == pytest.approx([30.0, 30.0, 30.0])

    def test_no_history_gives_zero_weight_placeholders(self, abc_plan, settings):
        result = autofill(abc_plan, "B", [], settings)
        (squat,) = result
        assert reps(squat.set_logs) == [5, 5, 5]
        assert weights(squat.set_logs) == [0.0, 0.0, 0.0]

    def test_only_last_three_matching_sessions_count(self, abc_plan, settings):
        history = [
            make_session(1, "Split", "A", exercises={"Bench Press": [(5, 200)]}),
            make_session(3, "Split", "A", exercises={"Bench Press": [(5, 100)]}),
            make_session(5, "Split", "A", exercises={"Bench Press": [(5, 100)]}),
            make_session(7, "Split", "A", exercises={"Bench Press": [(5, 100)]}),
        ]
        bench = autofill(abc_plan, "A", history, settings)[0]
        assert bench.set_logs[0].weight == pytest.approx(102.5)

    def test_other_labels_and_plans_are_ignored(self, abc_plan, settings):
        history = [
            make_session(3, "Split", "B", exercises={"Bench Press": [(5, 150)]}),
            make_session(4, "Other", "A", exercises={"Bench Press": [(5, 150)]}),
            make_session(5, "Split", "A", exercises={"Bench Press": [(5, 80)]}),
        ]
        bench = autofill(abc_plan, "A", history, settings)[0]
        assert bench.set_logs[0].weight == pytest.approx(82.5)

    def test_exercise_names_match_case_insensitively(self, abc_plan, settings):
        history = [make_session(5, "Split", "A", exercises={"bench press": [(5, 80)]})]
        bench = autofill(abc_plan, "A", history, settings)[0]
        assert bench.set_logs[0].weight == pytest.approx(82.5)

    def test_single_planned_set_has_no_backoffs(self, abc_plan, settings):
        history = [make_session(5, "Split", "C", exercises={"Deadlift": [(5, 180)]})]
        (deadlift,) = autofill(abc_plan, "C", history, settings)
        assert len(deadlift.set_logs) == 1

    def test_results_are_new_transient_sessions(self, abc_plan, settings):
        result = autofill(abc_plan, "A", [], settings)
        assert all(isinstance(es, ExerciseSession) and es.session is None for es in result)


# =============================================================================
# Warmups
# =============================================================================


@pytest.mark.unit
class TestWarmups:
    def test_ramp_shape(self, settings):
        ramp = warmup_ramp(100.0, settings)
        assert reps(ramp) == [8, 5, 3, 2, 1]
        assert weights(ramp) == pytest.approx([40.0, 55.0, 70.0, 80.0, 90.0])
        assert all(s.is_warmup for s in ramp)

    def test_ramp_rest_is_clamped(self):
        assert warmup_ramp(100.0, Settings(default_rest_seconds=180))[0].rest_seconds == 60
        assert warmup_ramp(100.0, Settings(default_rest_seconds=30))[0].rest_seconds == 45

    def test_prepends_and_is_idempotent(self, abc_plan, settings):
        sess = make_session(19, "Split", "A", completed=False,
                            exercises={"Bench Press": [(5, 100), (5, 97.5)]})

        assert add_warmup_ramp(sess, abc_plan, settings) == 1
        sets = sess.exercise_sessions[0].set_logs
        assert len(sets) == 7
        assert [s.is_warmup for s in sets[:5]] == [True] * 5
        assert sets[5].weight == 100

        assert add_warmup_ramp(sess, abc_plan, settings) == 0
        assert len(sess.exercise_sessions[0].set_logs) == 7

    def test_skips_unloaded_and_unknown_exercises(self, abc_plan, settings):
        sess = make_session(19, "Split", "A", completed=False, exercises={
            "Bench Press": [(5, 0)],
            "Cable Fly": [(12, 20)],
        })
        assert add_warmup_ramp(sess, abc_plan, settings) == 0
        assert [len(es.set_logs) for es in sess.exercise_sessions] == [1, 1]


# =============================================================================
# Default seeding
# =============================================================================


@pytest.mark.unit
class TestSeedDefaults:
    def test_current_session_wins(self):
        ex = Exercise(name="Bench", planned_reps=5)
        current = make_session(19, completed=False, exercises={"Bench": [(5, 80), (3, 40, True)]})
        history = [make_session(12, exercises={"Bench": [(5, 100)]})]
        assert seed_defaults(ex, current, history) == (5, 80)

    def test_falls_back_to_completed_history(self):
        ex = Exercise(name="Bench", planned_reps=5)
        history = [
            make_session(5, exercises={"Bench": [(5, 90)]}),
            make_session(12, exercises={"Bench": [(6, 95), (4, 100)]}),
            make_session(14, completed=False, exercises={"Bench": [(5, 200)]}),
        ]
        current = WorkoutSession(date=when(19))
        assert seed_defaults(ex, current, history) == (4, 100)

    def test_planned_reps_at_zero_weight(self):
        assert seed_defaults(Exercise(name="Dips", planned_reps=12), None, []) == (12, 0.0)
        assert seed_defaults(Exercise(name="Dips"), None, []) == (8, 0.0)
