"""
Formula-focused unit tests for the core planning engine.

Values are hand-computed from the rules in core/config.py so the tests
double as a worked example of each formula.
"""

import pytest

from season_scheduler.core.adaptation import (
    adapt_plan,
    aggregate_feedback,
    apply_adaptation,
    decide_adaptation,
)
from season_scheduler.core.classifier import (
    assess_aerobic_deficiency,
    calculate_readiness,
    classify_athlete,
)
from season_scheduler.core.config import (
    RECOVERY_DEPTH_BASE,
    RECOVERY_DEPTH_MAX,
    STANDARD_INCREASE,
)
from season_scheduler.core.metrics import (
    acwr_status,
    compute_acwr,
    count_build_weeks,
    percent_change,
)
from season_scheduler.core.microcycle import taper_volume_scale
from season_scheduler.core.models import (
    WEEKDAYS,
    AthleteProfile,
    Classification,
    DailyFeedback,
    DayPlan,
    InvalidInputError,
    ProgressionConstraints,
    ProgressionContext,
    Session,
    WeekLoad,
    WeeklyPlan,
    shift_date,
)
from season_scheduler.core.progression import (
    build_progression_context,
    calculate_progression_constraints,
    calculate_recovery_target,
    recovery_depth,
)
from season_scheduler.core.safety import (
    check_weekly_plan,
    enforce_safety,
    session_distance_cap,
)

# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------

WEEK_START = "2026-03-02"  # a Monday


def _profile(**overrides) -> AthleteProfile:
    data = dict(
        age=35,
        years_training=6,
        average_weekly_load=360.0,
        longest_completed_distance_km=42.2,
    )
    data.update(overrides)
    return AthleteProfile(**data)


def _ctx(**overrides) -> ProgressionContext:
    """Typical build week: 300 min after 270 and 245, first build week, ACWR 1.1."""
    data = dict(
        current_week_load=300.0,
        previous_week_load=270.0,
        two_weeks_ago_load=245.0,
        weeks_in_build_cycle=1,
        recovery_ratio="3:1",
        current_acwr=1.1,
    )
    data.update(overrides)
    return ProgressionContext(**data)


def _session(kind: str, minutes: float = 0, km: float = 0.0, vert: float = 0.0) -> Session:
    return Session(type=kind, duration_min=minutes, distance_km=km, vertical_gain_m=vert)


def _week(kinds: list[str], minutes: float = 50, km: float = 8.0, **kwargs) -> WeeklyPlan:
    """A week with one session per day; rest days carry no load."""
    days = []
    for i, kind in enumerate(kinds):
        if kind == "rest":
            session = _session("rest")
        else:
            session = _session(kind, minutes, km)
        days.append(DayPlan(date=shift_date(WEEK_START, i), weekday=WEEKDAYS[i], sessions=[session]))
    return WeeklyPlan(
        week_number=1,
        phase=kwargs.pop("phase", "base_building"),
        start_date=WEEK_START,
        days=days,
        target_load_min=kwargs.pop("target_load_min", 300.0),
        target_vertical_m=0.0,
        **kwargs,
    )


# ---------------------------------------------------------------------------
# Athlete classification
# ---------------------------------------------------------------------------


class TestClassifyAthlete:
    def test_experienced_athlete(self):
        profile = _profile(
            years_training=8,
            average_weekly_load=420.0,
            longest_completed_distance_km=100.0,
            training_consistency=85.0,
        )
        c = classify_athlete(profile)
        assert c.category == "experienced"
        assert c.recovery_ratio == "3:1"
        assert c.quality_days_per_week == 2
        assert c.confidence == 100
        # 420 * 0.90, inside the experienced range
        assert c.starting_load == 378
        assert c.build_cycle_length == 3

    def test_developing_veteran(self):
        profile = _profile(
            age=52,
            years_training=1,
            average_weekly_load=180.0,
            longest_completed_distance_km=21.1,
        )
        c = classify_athlete(profile)
        assert c.category == "developing"
        assert c.recovery_ratio == "2:1"
        assert c.quality_days_per_week == 1
        assert c.starting_load == 144
        assert any("Veteran" in w for w in c.warnings)

    def test_tie_goes_to_developing(self):
        profile = _profile(years_training=3, average_weekly_load=300.0, longest_completed_distance_km=42.2)
        c = classify_athlete(profile)
        assert c.category == "developing"
        assert c.confidence == 50

    def test_starting_load_clamped_to_range(self):
        c = classify_athlete(_profile(years_training=1, average_weekly_load=100.0, longest_completed_distance_km=10))
        assert c.starting_load == 120

    def test_reasoning_covers_each_factor(self):
        c = classify_athlete(_profile())
        assert len(c.reasoning) >= 3

    def test_invalid_profile_raises(self):
        with pytest.raises(InvalidInputError):
            _profile(age=5)
        with pytest.raises(InvalidInputError):
            _profile(average_weekly_load=-1)


class TestAerobicDeficiency:
    def test_missing_paces_not_assessed(self):
        result = assess_aerobic_deficiency(None, 4.5)
        assert not result.has_deficiency
        assert result.gap_percent is None

    def test_small_gap_is_fine(self):
        result = assess_aerobic_deficiency(5.0, 4.6)
        assert not result.has_deficiency
        assert result.extend_base_weeks == 0

    def test_gap_extends_base(self):
        # gap 20% -> 10% over threshold -> 2 steps of 5% -> 4 weeks
        result = assess_aerobic_deficiency(5.0, 4.0)
        assert result.has_deficiency
        assert result.gap_percent == pytest.approx(20.0)
        assert result.extend_base_weeks == 4

    def test_extension_capped(self):
        assert assess_aerobic_deficiency(10.0, 5.0).extend_base_weeks == 8

    def test_classification_carries_extra_base_weeks(self):
        c = classify_athlete(_profile(aerobic_threshold_pace=5.0, lactate_threshold_pace=4.0))
        assert c.aerobic_deficiency
        assert c.extra_base_weeks == 4


class TestReadiness:
    def test_defaults_without_data_block_intensity(self):
        profile = _profile()
        r = calculate_readiness(profile, classify_athlete(profile), [])
        assert r.overall == 65
        assert not r.can_progress_to_intensity

    def test_ready_athlete(self):
        profile = _profile(aerobic_threshold_pace=5.0, lactate_threshold_pace=4.6, training_consistency=90)
        c = classify_athlete(profile)
        r = calculate_readiness(profile, c, [c.starting_load] * 4, [2.0, 2.0])
        assert r.overall >= 70
        assert r.can_progress_to_intensity
        assert r.blockers == []

    def test_high_fatigue_blocks(self):
        profile = _profile(training_consistency=100)
        c = classify_athlete(profile)
        r = calculate_readiness(profile, c, [c.starting_load] * 4, [8.0, 8.0])
        assert not r.can_progress_to_intensity
        assert any("fatigue" in b for b in r.blockers)

    def test_aerobic_deficiency_blocks(self):
        profile = _profile(aerobic_threshold_pace=5.0, lactate_threshold_pace=4.0, training_consistency=100)
        c = classify_athlete(profile)
        r = calculate_readiness(profile, c, [c.starting_load] * 4)
        assert not r.can_progress_to_intensity


# ---------------------------------------------------------------------------
# Load metrics
# ---------------------------------------------------------------------------


class TestMetrics:
    def test_percent_change(self):
        assert percent_change(110, 100) == pytest.approx(0.10)
        assert percent_change(100, None) is None
        assert percent_change(100, 0) is None

    def test_acwr_needs_four_weeks(self):
        assert compute_acwr([100, 100, 100]) is None

    def test_acwr_steady_load(self):
        assert compute_acwr([100, 100, 100, 100]) == 1.0

    def test_acwr_spike(self):
        # 160 / mean(100, 100, 100, 160)
        assert compute_acwr([100, 100, 100, 160]) == 1.39

    def test_acwr_zero_chronic(self):
        assert compute_acwr([0, 0, 0, 0]) is None

    def test_acwr_status_bands(self):
        assert acwr_status(None) == "safe"
        assert acwr_status(1.29) == "safe"
        assert acwr_status(1.3) == "caution"
        assert acwr_status(1.49) == "caution"
        assert acwr_status(1.5) == "danger"

    def test_build_weeks_stop_at_recovery_week(self):
        history = [
            WeekLoad(shift_date(WEEK_START, 7 * i), load)
            for i, load in enumerate([300, 180, 200, 220])
        ]
        assert count_build_weeks(history) == 2

    def test_build_weeks_without_recovery(self):
        history = [
            WeekLoad(shift_date(WEEK_START, 7 * i), load)
            for i, load in enumerate([200, 220, 240])
        ]
        assert count_build_weeks(history) == 3
        assert count_build_weeks([]) == 0


# ---------------------------------------------------------------------------
# Progression rules
# ---------------------------------------------------------------------------


class TestProgressionWeeks:
    def test_standard_progression_week(self):
        c = calculate_progression_constraints(_ctx())
        assert not c.must_recover
        assert c.max_load_increase == pytest.approx(330.0)
        assert any("Standard 10% progression" in r for r in c.reasoning)
        assert c.acwr_status == "safe"

    def test_completed_build_cycle_forces_recovery(self):
        c = calculate_progression_constraints(_ctx(weeks_in_build_cycle=3))
        assert c.must_recover
        assert c.min_load_decrease == pytest.approx(120.0)
        assert c.max_load_increase == pytest.approx(180.0)
        assert c.recovery_depth == RECOVERY_DEPTH_BASE
        assert any("Recovery week mandatory" in r for r in c.reasoning)

    def test_acwr_danger_forces_recovery(self):
        c = calculate_progression_constraints(_ctx(current_acwr=1.6, weeks_in_build_cycle=0))
        assert c.must_recover
        assert any("danger zone" in r for r in c.reasoning)
        assert c.recovery_depth == RECOVERY_DEPTH_MAX
        assert c.acwr_status == "danger"
        assert c.fired_rules[0] == "acwr_danger"

    def test_compound_triggers_use_deepest_recovery(self):
        c = calculate_progression_constraints(_ctx(current_acwr=1.6, weeks_in_build_cycle=3))
        assert c.recovery_depth == RECOVERY_DEPTH_MAX
        assert any("Also triggered: build_cycle_complete" in r for r in c.reasoning)

    def test_high_fatigue_deepens_scheduled_recovery(self):
        c = calculate_progression_constraints(_ctx(weeks_in_build_cycle=3, perceived_fatigue=9))
        assert c.recovery_depth == RECOVERY_DEPTH_MAX
        assert c.max_load_increase == pytest.approx(120.0)


class TestProgressionRules:
    def test_rise_in_current_week_alone_does_not_force_recovery(self):
        # 310 -> 360 is the week being built on; 300 -> 310 is the transition checked
        c = calculate_progression_constraints(
            _ctx(current_week_load=360.0, previous_week_load=310.0, two_weeks_ago_load=300.0)
        )
        assert not c.must_recover
        assert "large_jump" not in c.fired_rules
        assert c.max_load_increase == pytest.approx(396.0)

    def test_large_jump_in_previous_week(self):
        c = calculate_progression_constraints(
            _ctx(current_week_load=300.0, previous_week_load=300.0, two_weeks_ago_load=250.0)
        )
        assert c.must_recover
        assert "large_jump" in c.fired_rules
        assert any("20% load jump" in r for r in c.reasoning)

    def test_large_vertical_jump(self):
        c = calculate_progression_constraints(
            _ctx(previous_week_vertical=1200.0, two_weeks_ago_vertical=1000.0)
        )
        assert c.must_recover
        assert any("vertical" in w.lower() for w in c.warnings)

    def test_current_week_vertical_rise_does_not_force_recovery(self):
        c = calculate_progression_constraints(
            _ctx(
                current_week_vertical=1200.0,
                previous_week_vertical=1000.0,
                two_weeks_ago_vertical=1000.0,
            )
        )
        assert not c.must_recover

    def test_consecutive_rises_cap(self):
        ctx = _ctx(
            current_week_load=251.0,
            previous_week_load=251.0,
            two_weeks_ago_load=224.0,
            three_weeks_ago_load=200.0,
            current_acwr=None,
        )
        c = calculate_progression_constraints(ctx)
        assert not c.must_recover
        assert "consecutive_rises" in c.fired_rules
        assert c.max_load_increase == pytest.approx(251.0 * 1.05, abs=0.1)

    def test_single_dimension_increase(self):
        ctx = _ctx(
            previous_week_load=290.0,
            two_weeks_ago_load=280.0,
            current_week_vertical=1000.0,
            previous_week_vertical=950.0,
        )
        c = calculate_progression_constraints(ctx)
        assert c.exclusive_increase
        assert c.max_vertical_increase == pytest.approx(1100.0)

    def test_acwr_caution_slows_progression(self):
        c = calculate_progression_constraints(_ctx(current_acwr=1.4))
        assert not c.must_recover
        assert c.acwr_status == "caution"
        assert c.max_load_increase == pytest.approx(315.0)

    def test_intensity_week_cap(self):
        c = calculate_progression_constraints(_ctx(is_intensity_week=True))
        assert c.max_load_increase == pytest.approx(315.0)

    def test_hold_steady_only_after_recovery(self):
        assert calculate_progression_constraints(_ctx(weeks_in_build_cycle=0)).can_hold_steady
        assert not calculate_progression_constraints(_ctx(weeks_in_build_cycle=1)).can_hold_steady

    def test_missing_acwr_treated_as_safe_with_warning(self):
        c = calculate_progression_constraints(_ctx(current_acwr=None))
        assert not c.must_recover
        assert c.acwr_status == "safe"
        assert c.warnings


class TestProgressionBounds:
    @pytest.mark.parametrize(
        "overrides",
        [
            {},
            {"current_acwr": 0.7},
            {"current_acwr": None, "previous_week_load": None, "two_weeks_ago_load": None},
            {"current_week_vertical": 800.0, "previous_week_vertical": 780.0},
            {"is_intensity_week": True, "weeks_in_build_cycle": 0},
        ],
    )
    def test_never_more_than_ten_percent(self, overrides):
        ctx = _ctx(**overrides)
        c = calculate_progression_constraints(ctx)
        assert c.max_load_increase <= ctx.current_week_load * (1 + STANDARD_INCREASE) + 0.05

    @pytest.mark.parametrize("acwr", [None, 0.9, 1.3, 1.45, 1.5, 2.0])
    @pytest.mark.parametrize("fatigue", [None, 5.0, 8.0, 10.0])
    def test_recovery_depth_bounds(self, acwr, fatigue):
        assert RECOVERY_DEPTH_BASE <= recovery_depth(acwr, fatigue) <= RECOVERY_DEPTH_MAX

    def test_higher_acwr_never_allows_more_load(self):
        ceilings = [
            calculate_progression_constraints(_ctx(current_acwr=a)).max_load_increase
            for a in [0.8, 1.0, 1.2, 1.3, 1.4, 1.5, 1.8]
        ]
        assert ceilings == sorted(ceilings, reverse=True)

    def test_idempotent(self):
        assert calculate_progression_constraints(_ctx()) == calculate_progression_constraints(_ctx())

    @pytest.mark.parametrize("ratio, cycle", [("2:1", 2), ("3:1", 3)])
    def test_build_cycle_cap(self, ratio, cycle):
        assert calculate_progression_constraints(
            _ctx(recovery_ratio=ratio, weeks_in_build_cycle=cycle)
        ).must_recover
        assert not calculate_progression_constraints(
            _ctx(recovery_ratio=ratio, weeks_in_build_cycle=cycle - 1)
        ).must_recover

    def test_jump_at_threshold_forces_recovery(self):
        # 300 -> 345 the week before is exactly the 15% limit
        assert calculate_progression_constraints(
            _ctx(current_week_load=340.0, previous_week_load=345.0, two_weeks_ago_load=300.0)
        ).must_recover
        assert not calculate_progression_constraints(
            _ctx(current_week_load=340.0, previous_week_load=344.0, two_weeks_ago_load=300.0)
        ).must_recover


class TestRecoveryTarget:
    def test_scheduled_recovery(self):
        assert calculate_recovery_target(300, 1.1) == (180.0, 0.40)

    def test_caution_recovery(self):
        target, depth = calculate_recovery_target(300, 1.4)
        assert depth == 0.55
        assert target == pytest.approx(135.0)

    def test_fatigue_recovery(self):
        assert calculate_recovery_target(300, None, 8.0)[1] == 0.60


class TestBuildProgressionContext:
    def _classification(self) -> Classification:
        return Classification(category="experienced", recovery_ratio="3:1", quality_days_per_week=2, starting_load=300)

    def test_no_history_uses_starting_load(self):
        ctx, warnings = build_progression_context([], self._classification())
        assert ctx.current_week_load == 300
        assert ctx.current_acwr is None
        assert any("starting load" in w for w in warnings)
        assert any("ACWR unavailable" in w for w in warnings)

    def test_history_fills_context(self):
        history = [
            WeekLoad(shift_date(WEEK_START, 7 * i), load)
            for i, load in enumerate([280, 300, 310, 320])
        ]
        ctx, warnings = build_progression_context(history, self._classification())
        assert ctx.current_week_load == 320
        assert ctx.previous_week_load == 310
        assert ctx.three_weeks_ago_load == 280
        assert ctx.current_week_vertical is None
        assert ctx.current_acwr == compute_acwr([280, 300, 310, 320])
        assert ctx.weeks_in_build_cycle == 4
        assert warnings == []

    def test_reported_acwr_wins(self):
        history = [WeekLoad(WEEK_START, 300, 500, acwr=1.45)]
        ctx, _ = build_progression_context(history, self._classification())
        assert ctx.current_acwr == 1.45
        assert ctx.current_week_vertical == 500


# ---------------------------------------------------------------------------
# Taper curve
# ---------------------------------------------------------------------------


class TestTaperScale:
    def test_a_marathon_curve(self):
        assert taper_volume_scale(1, "A", 42.2) == 0.40
        assert taper_volume_scale(10, "A", 42.2) == 0.90
        assert taper_volume_scale(20, "A", 42.2) == 0.90

    def test_race_day_unscaled(self):
        assert taper_volume_scale(0, "A", 42.2) == 1.0

    def test_b_and_c_races(self):
        assert taper_volume_scale(2, "B", 20.0) == 0.80
        assert taper_volume_scale(1, "C", 5.0) == 0.90


# ---------------------------------------------------------------------------
# Safety checker
# ---------------------------------------------------------------------------


class TestSafety:
    BUILD = ["rest", "tempo", "easy", "easy", "rest", "long", "easy"]

    def test_session_cap(self):
        assert session_distance_cap(_profile(longest_completed_distance_km=40)) == 50.0
        assert session_distance_cap(_profile(longest_completed_distance_km=0)) == 10.0

    def test_valid_week_passes(self):
        plan = _week(self.BUILD)
        result = check_weekly_plan(plan, ProgressionConstraints(max_load_increase=300), _profile())
        assert result.passed
        assert result.violations == []

    def test_load_over_limit_is_clamped(self):
        plan = _week(self.BUILD, minutes=80)  # 400 min
        constraints = ProgressionConstraints(max_load_increase=300)
        result = enforce_safety(plan, constraints, _profile())
        assert any(v.rule == "weekly_load" for v in result.violations)
        assert result.clamped_plan is not None
        assert result.clamped_plan.training_load_min <= 300
        assert result.passed
        # the input week is left as generated
        assert plan.training_load_min == 400

    def test_race_sessions_do_not_count(self):
        kinds = ["rest", "easy", "easy", "rest", "easy", "race", "rest"]
        plan = _week(kinds, minutes=60)
        plan.days[5].sessions = [_session("race", 240, 42.2)]
        result = check_weekly_plan(plan, ProgressionConstraints(max_load_increase=200), _profile())
        assert plan.training_load_min == 180
        assert result.passed

    def test_consecutive_hard_days(self):
        plan = _week(["rest", "tempo", "hills", "long", "easy", "rest", "easy"])
        result = enforce_safety(plan, ProgressionConstraints(max_load_increase=500), _profile())
        assert any(v.rule == "consecutive_hard_days" for v in result.violations)
        assert result.passed
        assert result.clamped_plan.days[3].sessions[0].type == "easy"

    def test_outlier_session(self):
        plan = _week(self.BUILD)
        plan.days[5].sessions = [_session("long", 200, 30.0)]
        profile = _profile(longest_completed_distance_km=20)
        result = enforce_safety(plan, ProgressionConstraints(max_load_increase=1000), profile)
        assert any(v.rule == "session_distance" for v in result.violations)
        assert result.clamped_plan.days[5].sessions[0].distance_km <= 25.0

    def test_no_rest_day(self):
        plan = _week(["easy"] * 7, minutes=30)
        result = enforce_safety(plan, ProgressionConstraints(max_load_increase=500), _profile())
        assert any(v.rule == "rest_days" for v in result.violations)
        assert result.clamped_plan.rest_day_count >= 1

    def test_quality_in_recovery_week(self):
        plan = _week(self.BUILD, is_recovery_week=True)
        constraints = ProgressionConstraints(max_load_increase=500, must_recover=True)
        result = enforce_safety(plan, constraints, _profile())
        assert any(v.rule == "recovery_week_quality" for v in result.violations)
        assert result.clamped_plan.quality_session_count == 0

    def test_back_to_back_quality_is_only_a_warning(self):
        plan = _week(["rest", "tempo", "intervals", "easy", "rest", "easy", "easy"])
        result = check_weekly_plan(plan, ProgressionConstraints(max_load_increase=500), _profile())
        assert result.passed
        assert [v.severity for v in result.violations] == ["warning"]


# ---------------------------------------------------------------------------
# Adaptive feedback
# ---------------------------------------------------------------------------


def _feedback(day: int, **values) -> DailyFeedback:
    return DailyFeedback(date=shift_date(WEEK_START, day), **values)


class TestAggregateFeedback:
    def test_empty(self):
        s = aggregate_feedback([])
        assert s.days == 0
        assert s.avg_fatigue is None
        assert s.missed_session_rate == 0.0

    def test_streak_and_averages(self):
        s = aggregate_feedback([_feedback(i, perceived_fatigue=f) for i, f in enumerate([7, 7, 8])])
        assert s.consecutive_high_fatigue_days == 3
        assert s.avg_fatigue == pytest.approx(7.33)

    def test_rising_trend(self):
        s = aggregate_feedback([_feedback(i, soreness=v) for i, v in enumerate([2, 2, 3, 5, 6, 6])])
        assert s.soreness_trend == "rising"
        assert s.max_soreness == 6

    def test_missed_rate(self):
        fb = [_feedback(i, missed_session=i < 2) for i in range(5)]
        assert aggregate_feedback(fb).missed_session_rate == 0.4


class TestDecideAdaptation:
    def _decide(self, feedback, classification=None):
        return decide_adaptation(aggregate_feedback(feedback), classification).action

    def test_no_feedback(self):
        assert self._decide([]) == "no_change"

    def test_normal_feedback(self):
        fb = [_feedback(i, rpe=5, perceived_fatigue=4, sleep_hours=8) for i in range(3)]
        assert self._decide(fb) == "no_change"

    def test_escalate(self):
        assert self._decide([_feedback(0, perceived_fatigue=9), _feedback(1, perceived_fatigue=8.5)]) == (
            "escalate_to_recovery_week"
        )
        assert self._decide([_feedback(0, soreness=9)]) == "escalate_to_recovery_week"

    def test_insert_rest_day(self):
        fb = [_feedback(i, perceived_fatigue=f) for i, f in enumerate([7, 7, 8])]
        assert self._decide(fb) == "insert_rest_day"

    def test_reduce_volume(self):
        fb = [_feedback(i, missed_session=i < 2) for i in range(5)]
        assert self._decide(fb) == "reduce_volume"

    def test_reduce_intensity(self):
        assert self._decide([_feedback(0, rpe=9), _feedback(1, rpe=8)]) == "reduce_intensity"

    def test_developing_athletes_react_sooner(self):
        developing = Classification(
            category="developing", recovery_ratio="2:1", quality_days_per_week=1, starting_load=150
        )
        fb = [_feedback(0, perceived_fatigue=7.6)]
        assert self._decide(fb) == "reduce_intensity"
        assert self._decide(fb, developing) == "escalate_to_recovery_week"


class TestApplyAdaptation:
    KINDS = ["rest", "tempo", "easy", "intervals", "rest", "long", "easy"]
    TODAY = shift_date(WEEK_START, 2)  # Wednesday

    def test_reduce_intensity_only_touches_future_days(self):
        plan = _week(self.KINDS, minutes=60)
        fb = [_feedback(0, rpe=9), _feedback(1, rpe=9)]
        adjusted, decision = adapt_plan(plan, fb, self.TODAY)
        assert decision.action == "reduce_intensity"
        assert adjusted.days[1].sessions[0].type == "tempo"
        assert adjusted.days[3].sessions[0].type == "easy"
        assert decision.affected_dates == [adjusted.days[3].date]
        # original plan unchanged
        assert plan.days[3].sessions[0].type == "intervals"

    def test_insert_rest_day_picks_lightest_easy_day(self):
        plan = _week(self.KINDS, minutes=60)
        plan.days[6].sessions[0].duration_min = 30
        fb = [_feedback(i, perceived_fatigue=7.5) for i in range(3)]
        adjusted, decision = adapt_plan(plan, fb, self.TODAY)
        assert decision.action == "insert_rest_day"
        assert adjusted.days[6].is_rest
        assert adjusted.rest_day_count == plan.rest_day_count + 1

    def test_escalate_leaves_no_quality_and_keeps_race(self):
        plan = _week(self.KINDS, minutes=60)
        plan.days[6].sessions = [_session("race", 120, 21.1)]
        fb = [_feedback(0, perceived_fatigue=9)]
        adjusted, decision = adapt_plan(plan, fb, self.TODAY)
        assert decision.action == "escalate_to_recovery_week"
        assert adjusted.is_recovery_week
        remaining = [s for d in adjusted.days[2:] for s in d.sessions]
        assert not any(s.is_quality for s in remaining)
        assert adjusted.days[6].sessions[0].type == "race"
        assert adjusted.days[6].sessions[0].duration_min == 120

    def test_reduce_volume_scales_remaining(self):
        plan = _week(self.KINDS, minutes=60)
        decision = decide_adaptation(aggregate_feedback([_feedback(i, missed_session=True) for i in range(2)]))
        adjusted = apply_adaptation(plan, decision, self.TODAY)
        assert adjusted.days[1].load_min == 60
        assert adjusted.days[2].load_min == 48

    def test_feedback_for_today_marks_today_done(self):
        kinds = ["rest", "easy", "tempo", "intervals", "rest", "long", "easy"]
        plan = _week(kinds, minutes=60)
        fb = [_feedback(1, rpe=9), _feedback(2, rpe=9)]
        adjusted, decision = adapt_plan(plan, fb, self.TODAY)
        assert decision.action == "reduce_intensity"
        assert adjusted.days[2].sessions[0].type == "tempo"
        assert adjusted.days[3].sessions[0].type == "easy"
        assert decision.affected_dates == [adjusted.days[3].date]

    def test_today_still_open_without_its_feedback(self):
        kinds = ["rest", "easy", "tempo", "intervals", "rest", "long", "easy"]
        plan = _week(kinds, minutes=60)
        fb = [_feedback(0, rpe=9), _feedback(1, rpe=9)]
        adjusted, decision = adapt_plan(plan, fb, self.TODAY)
        assert adjusted.days[2].sessions[0].type == "easy"
        assert decision.affected_dates == [adjusted.days[2].date, adjusted.days[3].date]

    def test_apply_can_skip_today(self):
        plan = _week(self.KINDS, minutes=60)
        decision = decide_adaptation(aggregate_feedback([_feedback(i, missed_session=True) for i in range(2)]))
        adjusted = apply_adaptation(plan, decision, self.TODAY, include_today=False)
        assert adjusted.days[2].load_min == 60
        assert adjusted.days[3].load_min == 48
