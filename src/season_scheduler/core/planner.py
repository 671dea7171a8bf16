"""
Plan generation for season-scheduler.

Wires the engine together: classification and macrocycle for the season,
then progression bounds -> microcycle -> safety check for each week. The
planning date is always passed in, so equal inputs give equal plans.
"""

import logging
from dataclasses import dataclass

from .classifier import calculate_readiness, classify_athlete
from .config import LONG_RUN_DAY, SEASON_HORIZON_WEEKS, TaperTemplate
from .macrocycle import PhaseTiers, generate_season_plan, segment_for_date
from .microcycle import generate_microcycle
from .models import (
    AthleteProfile,
    Classification,
    InvalidInputError,
    ProgressionConstraints,
    ProgressionContext,
    RaceEvent,
    ReadinessScore,
    SafetyCheckResult,
    SeasonPlan,
    WeekLoad,
    WeeklyPlan,
    days_between,
)
from .metrics import weekly_totals
from .progression import build_progression_context, calculate_progression_constraints
from .safety import enforce_safety

logger = logging.getLogger(__name__)


@dataclass
class WeekPlanningResult:
    """Everything computed while planning one week."""

    plan: WeeklyPlan
    context: ProgressionContext
    constraints: ProgressionConstraints
    safety: SafetyCheckResult
    readiness: ReadinessScore


def plan_season(
    profile: AthleteProfile,
    races: list[RaceEvent],
    now: str,
    horizon_weeks: int = SEASON_HORIZON_WEEKS,
    tiers: PhaseTiers | None = None,
) -> tuple[Classification, SeasonPlan]:
    """
    Classify the athlete and lay out the season.

    Args:
        profile: Athlete background
        races: Race calendar
        now: Planning date (YYYY-MM-DD)
        horizon_weeks: Planning horizon
        tiers: Phase-duration tiers, e.g. from the YAML config

    Returns:
        (classification, season plan)
    """
    classification = classify_athlete(profile)
    season = generate_season_plan(races, now, classification, horizon_weeks, tiers)
    season.warnings = classification.warnings + season.warnings
    return classification, season


def plan_week(
    profile: AthleteProfile,
    classification: Classification,
    season: SeasonPlan,
    races: list[RaceEvent],
    history: list[WeekLoad],
    week_start: str,
    week_number: int | None = None,
    prior_week: WeeklyPlan | None = None,
    weeks_in_build_cycle: int | None = None,
    perceived_fatigue: float | None = None,
    recent_fatigue: list[float] | None = None,
    long_run_day: int = LONG_RUN_DAY,
    taper_templates: list[TaperTemplate] | None = None,
) -> WeekPlanningResult:
    """
    Plan one week: progression bounds, session layout, safety check.

    Sharpening weeks count as intensity weeks for the progression rules.
    A week that fails the safety check is clamped; the clamped plan is the
    one returned in ``plan``.

    Args:
        profile: Athlete background
        classification: Result of classify_athlete
        season: Season plan containing *week_start*
        races: Race calendar
        history: Realized weeks before *week_start*
        week_start: First day of the week to plan
        week_number: 1-based index; derived from the season start when None
        prior_week: Previously issued plan
        weeks_in_build_cycle: Override; derived from history when None
        perceived_fatigue: Latest fatigue self-report (0-10)
        recent_fatigue: Recent fatigue readings for readiness
        long_run_day: Weekday index of the long run (Mon=0)
        taper_templates: Taper curves, e.g. from the YAML config

    Returns:
        WeekPlanningResult
    """
    if any(w.week_start >= week_start for w in history):
        raise InvalidInputError("history must only contain weeks before week_start")
    if week_number is None:
        week_number = max(1, days_between(season.season_start, week_start) // 7 + 1)

    segment = segment_for_date(season, week_start)
    is_intensity_week = segment is not None and segment.phase == "sharpening"

    context, context_warnings = build_progression_context(
        history,
        classification,
        weeks_in_build_cycle=weeks_in_build_cycle,
        is_intensity_week=is_intensity_week,
        perceived_fatigue=perceived_fatigue,
    )
    constraints = calculate_progression_constraints(context)
    constraints.warnings = context_warnings + constraints.warnings

    loads, _ = weekly_totals(history)
    readiness = calculate_readiness(profile, classification, loads, recent_fatigue)

    plan = generate_microcycle(
        week_number,
        week_start,
        season,
        classification,
        context,
        constraints,
        races=races,
        prior_week=prior_week,
        readiness=readiness,
        long_run_day=long_run_day,
        taper_templates=taper_templates,
    )
    safety = enforce_safety(plan, constraints, profile)
    final = safety.clamped_plan or plan
    final.reasoning = constraints.reasoning + final.reasoning
    final.warnings = constraints.warnings + final.warnings + [
        v.message for v in safety.violations if v.severity != "info"
    ]

    logger.info(
        "Planned week %d (%s): %.0f/%.0f min, recovery=%s, safety=%s",
        week_number,
        final.phase,
        final.training_load_min,
        constraints.max_load_increase,
        final.is_recovery_week,
        "ok" if safety.passed else "clamped",
    )
    return WeekPlanningResult(
        plan=final,
        context=context,
        constraints=constraints,
        safety=safety,
        readiness=readiness,
    )


def explain_week(result: WeekPlanningResult) -> str:
    """
    Step-by-step explanation of how a week was planned.

    Lists the realized inputs, every progression rule that fired, the
    targets chosen and any safety corrections.
    """
    ctx = result.context
    c = result.constraints
    plan = result.plan
    lines = [
        f"Week {plan.week_number} starting {plan.start_date} ({plan.phase})",
        "",
        "Inputs:",
        f"  realized load: {ctx.current_week_load:.0f} min"
        + (f" (prev {ctx.previous_week_load:.0f})" if ctx.previous_week_load is not None else ""),
        f"  realized vertical: "
        + (f"{ctx.current_week_vertical:.0f} m" if ctx.current_week_vertical is not None else "unknown"),
        f"  ACWR: " + (f"{ctx.current_acwr:.2f}" if ctx.current_acwr is not None else "unknown")
        + f" ({c.acwr_status})",
        f"  build weeks: {ctx.weeks_in_build_cycle} ({ctx.recovery_ratio})",
        "",
        "Progression rules:",
    ]
    lines += [f"  - {r}" for r in c.reasoning]
    lines += [
        "",
        "Bounds:",
        f"  load <= {c.max_load_increase:.0f} min"
        + (f" (floor {c.min_load_decrease:.0f})" if c.min_load_decrease is not None else ""),
        f"  vertical <= "
        + (f"{c.max_vertical_increase:.0f} m" if c.max_vertical_increase is not None else "unbounded"),
        "",
        "Plan:",
        f"  target {plan.target_load_min:.0f} min / {plan.target_vertical_m:.0f} m, "
        f"planned {plan.training_load_min:.0f} min / {plan.training_vertical_m:.0f} m",
        f"  readiness {result.readiness.overall}/100",
    ]
    if result.safety.violations:
        lines += ["", "Safety corrections:"]
        lines += [f"  - [{v.severity}] {v.message}" for v in result.safety.violations]
    return "\n".join(lines)
