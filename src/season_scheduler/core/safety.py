"""
Safety validation for generated weeks.

A week is checked against the bounds that produced it and against a few
structural limits. A failing week is clamped to the nearest safe version,
never thrown away.
"""

import copy
import logging
import math

from .config import (
    INTENSITY_ZONES,
    LOAD_TOLERANCE_MIN,
    MAX_CONSECUTIVE_HARD_DAYS,
    MIN_REST_DAYS,
    MIN_SESSION_CAP_KM,
    SESSION_OUTLIER_MARGIN,
    VERTICAL_TOLERANCE_M,
)
from .models import (
    AthleteProfile,
    ProgressionConstraints,
    SafetyCheckResult,
    SafetyViolation,
    Session,
    WeeklyPlan,
)

logger = logging.getLogger(__name__)


def session_distance_cap(profile: AthleteProfile) -> float:
    """Longest single training session allowed, in km."""
    return max(profile.longest_completed_distance_km * SESSION_OUTLIER_MARGIN, MIN_SESSION_CAP_KM)


def _hard_streaks(plan: WeeklyPlan) -> list[tuple[int, int]]:
    """(start index, length) of every run of consecutive hard days."""
    streaks = []
    start = None
    for i, day in enumerate(plan.days + [None]):
        hard = day is not None and day.is_hard
        if hard and start is None:
            start = i
        elif not hard and start is not None:
            streaks.append((start, i - start))
            start = None
    return streaks


def check_weekly_plan(
    plan: WeeklyPlan,
    constraints: ProgressionConstraints,
    profile: AthleteProfile,
) -> SafetyCheckResult:
    """
    Validate a week against its constraints.

    Rules:
        - training load <= max_load_increase (race sessions excluded)
        - training vertical <= max_vertical_increase, when bounded
        - no training session longer than the longest completed distance
          x SESSION_OUTLIER_MARGIN
        - at most MAX_CONSECUTIVE_HARD_DAYS hard days in a row
        - at least MIN_REST_DAYS rest days
        - no quality sessions in a recovery week
        - back-to-back quality days (warning only)

    Returns:
        SafetyCheckResult; passed is False when any error-level rule fails
    """
    violations: list[SafetyViolation] = []

    load = plan.training_load_min
    if load > constraints.max_load_increase + LOAD_TOLERANCE_MIN:
        violations.append(
            SafetyViolation(
                rule="weekly_load",
                message=f"Weekly load {load:.0f} min exceeds limit {constraints.max_load_increase:.0f} min",
                severity="error",
            )
        )

    vertical = plan.training_vertical_m
    if (
        constraints.max_vertical_increase is not None
        and vertical > constraints.max_vertical_increase + VERTICAL_TOLERANCE_M
    ):
        violations.append(
            SafetyViolation(
                rule="weekly_vertical",
                message=(
                    f"Weekly vertical {vertical:.0f} m exceeds limit "
                    f"{constraints.max_vertical_increase:.0f} m"
                ),
                severity="error",
            )
        )

    cap = session_distance_cap(profile)
    for day in plan.days:
        for session in day.sessions:
            if session.type != "race" and session.distance_km > cap:
                violations.append(
                    SafetyViolation(
                        rule="session_distance",
                        message=(
                            f"{session.type} session of {session.distance_km:.1f} km exceeds "
                            f"{cap:.1f} km (longest completed x {SESSION_OUTLIER_MARGIN})"
                        ),
                        severity="error",
                        day=day.date,
                    )
                )

    for start, length in _hard_streaks(plan):
        if length > MAX_CONSECUTIVE_HARD_DAYS:
            violations.append(
                SafetyViolation(
                    rule="consecutive_hard_days",
                    message=f"{length} consecutive hard days (max {MAX_CONSECUTIVE_HARD_DAYS})",
                    severity="error",
                    day=plan.days[start].date,
                )
            )

    for prev, day in zip(plan.days, plan.days[1:]):
        if any(s.is_quality for s in prev.sessions) and any(s.is_quality for s in day.sessions):
            violations.append(
                SafetyViolation(
                    rule="back_to_back_quality",
                    message=f"Quality sessions on consecutive days ({prev.weekday}, {day.weekday})",
                    severity="warning",
                    day=day.date,
                )
            )

    if plan.rest_day_count < MIN_REST_DAYS:
        violations.append(
            SafetyViolation(
                rule="rest_days",
                message=f"{plan.rest_day_count} rest days (minimum {MIN_REST_DAYS})",
                severity="error",
            )
        )

    if (plan.is_recovery_week or constraints.must_recover) and plan.quality_session_count:
        violations.append(
            SafetyViolation(
                rule="recovery_week_quality",
                message=f"{plan.quality_session_count} quality sessions in a recovery week",
                severity="error",
            )
        )

    passed = not any(v.severity in ("error", "critical") for v in violations)
    return SafetyCheckResult(passed=passed, violations=violations)


def _scale_session(session: Session, load_factor: float = 1.0, vertical_factor: float = 1.0) -> None:
    session.duration_min = math.floor(session.duration_min * load_factor)
    session.distance_km = math.floor(session.distance_km * load_factor * 10) / 10
    session.vertical_gain_m = math.floor(session.vertical_gain_m * vertical_factor)


def _make_easy(session: Session) -> None:
    session.type = "easy"
    session.intensity_zones = list(INTENSITY_ZONES["easy"])
    session.notes = "Easy aerobic run (converted for safety)"


def clamp_plan(
    plan: WeeklyPlan,
    constraints: ProgressionConstraints,
    profile: AthleteProfile,
) -> WeeklyPlan:
    """
    Return a copy of *plan* moved to the nearest version that satisfies the
    safety rules. Race sessions are never changed.
    """
    clamped = copy.deepcopy(plan)
    training = [
        s for d in clamped.days for s in d.sessions if s.type not in ("rest", "race")
    ]

    cap = session_distance_cap(profile)
    for session in training:
        if session.distance_km > cap:
            factor = cap / session.distance_km
            _scale_session(session, factor, factor)
            clamped.warnings.append(f"{session.type} session shortened to {cap:.1f} km")

    if constraints.must_recover or clamped.is_recovery_week:
        for session in training:
            if session.is_quality:
                _make_easy(session)

    streak = 0
    for day in clamped.days:
        if day.is_hard and streak >= MAX_CONSECUTIVE_HARD_DAYS:
            for session in day.sessions:
                if session.is_hard and session.type != "race":
                    _make_easy(session)
            clamped.warnings.append(f"{day.weekday} changed to an easy day to break a hard streak")
        streak = streak + 1 if day.is_hard else 0

    if clamped.rest_day_count < MIN_REST_DAYS:
        candidates = [d for d in clamped.days if not any(s.type == "race" for s in d.sessions)]
        if candidates:
            lightest = min(candidates, key=lambda d: d.load_min)
            lightest.sessions = [Session(type="rest", duration_min=0, notes="Rest day")]
            clamped.warnings.append(f"{lightest.weekday} changed to a rest day")

    load = clamped.training_load_min
    if load > constraints.max_load_increase:
        factor = constraints.max_load_increase / load
        for session in training:
            _scale_session(session, factor, 1.0)
        clamped.warnings.append(
            f"Weekly load scaled to {constraints.max_load_increase:.0f} min ({factor:.0%})"
        )

    vertical = clamped.training_vertical_m
    if constraints.max_vertical_increase is not None and vertical > constraints.max_vertical_increase:
        factor = constraints.max_vertical_increase / vertical
        for session in training:
            _scale_session(session, 1.0, factor)
        clamped.warnings.append(
            f"Weekly vertical scaled to {constraints.max_vertical_increase:.0f} m ({factor:.0%})"
        )
    return clamped


def enforce_safety(
    plan: WeeklyPlan,
    constraints: ProgressionConstraints,
    profile: AthleteProfile,
) -> SafetyCheckResult:
    """
    Check a week and clamp it when it fails.

    Returns:
        SafetyCheckResult with the original violations; ``clamped_plan`` is
        set when clamping happened and ``passed`` reflects the plan to issue
    """
    result = check_weekly_plan(plan, constraints, profile)
    if result.passed:
        return result

    for v in result.violations:
        logger.warning("Week %d safety violation [%s]: %s", plan.week_number, v.rule, v.message)
    clamped = clamp_plan(plan, constraints, profile)
    recheck = check_weekly_plan(clamped, constraints, profile)
    return SafetyCheckResult(
        passed=recheck.passed,
        violations=result.violations,
        clamped_plan=clamped,
    )
