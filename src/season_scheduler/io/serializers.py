"""
JSON serialization for planning data models.

Handles conversion between dataclasses and JSON-compatible dicts.
"""

import re
from dataclasses import asdict
from datetime import datetime
from typing import Any

from ..core.models import (
    AdaptationDecision,
    AthleteProfile,
    Classification,
    DailyFeedback,
    DayPlan,
    InvalidInputError,
    MacrocycleSegment,
    ProgressionConstraints,
    RaceEvent,
    RaceResult,
    SafetyCheckResult,
    SeasonPlan,
    Session,
    WeekLoad,
    WeeklyPlan,
)


class ValidationError(InvalidInputError):
    """Raised when data validation fails."""

    pass


def validate_date(date_str: str) -> str:
    """
    Validate and normalize date string to ISO format.

    Args:
        date_str: Date string to validate

    Returns:
        Normalized YYYY-MM-DD string

    Raises:
        ValidationError: If date format is invalid
    """
    if not isinstance(date_str, str) or not re.match(r"^\d{4}-\d{2}-\d{2}$", date_str):
        raise ValidationError(f"Invalid date format: {date_str}. Expected YYYY-MM-DD")

    try:
        datetime.strptime(date_str, "%Y-%m-%d")
    except ValueError as e:
        raise ValidationError(f"Invalid date: {date_str}") from e

    return date_str


def _build(kind: str, factory, **kwargs):
    """Call a model constructor, turning field errors into ValidationError."""
    try:
        return factory(**kwargs)
    except (InvalidInputError, TypeError, ValueError) as e:
        raise ValidationError(f"Invalid {kind}: {e}") from e


def _require(data: dict[str, Any], key: str, kind: str) -> Any:
    if not isinstance(data, dict):
        raise ValidationError(f"Invalid {kind}: expected an object, got {type(data).__name__}")
    if key not in data:
        raise ValidationError(f"Invalid {kind}: missing field '{key}'")
    return data[key]


def _float(data: dict[str, Any], key: str, kind: str, default: float | None = None) -> float:
    """Read a numeric field; a missing key falls back to *default* when given."""
    value = _require(data, key, kind) if default is None else data.get(key, default)
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid {kind}: field '{key}' must be a number, got {value!r}") from e


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


def dict_to_race_result(data: dict[str, Any]) -> RaceResult:
    return _build(
        "race result",
        RaceResult,
        name=_require(data, "name", "race result"),
        distance_km=_float(data, "distance_km", "race result"),
        date=validate_date(_require(data, "date", "race result")),
        finish_time_hours=data.get("finish_time_hours"),
        elevation_gain_m=_float(data, "elevation_gain_m", "race result", 0.0),
    )


def dict_to_athlete_profile(data: dict[str, Any]) -> AthleteProfile:
    """
    Convert dictionary to AthleteProfile.

    Raises:
        ValidationError: If a field is missing or out of range
    """
    return _build(
        "profile",
        AthleteProfile,
        age=int(_float(data, "age", "profile")),
        years_training=_float(data, "years_training", "profile"),
        average_weekly_load=_float(data, "average_weekly_load", "profile"),
        average_weekly_vertical=_float(data, "average_weekly_vertical", "profile", 0.0),
        longest_completed_distance_km=_float(data, "longest_completed_distance_km", "profile", 0.0),
        recent_races=tuple(dict_to_race_result(r) for r in data.get("recent_races", [])),
        training_consistency=data.get("training_consistency"),
        injury_history=tuple(data.get("injury_history", [])),
        aerobic_threshold_pace=data.get("aerobic_threshold_pace"),
        lactate_threshold_pace=data.get("lactate_threshold_pace"),
    )


def athlete_profile_to_dict(profile: AthleteProfile) -> dict[str, Any]:
    data = asdict(profile)
    data["recent_races"] = [asdict(r) for r in profile.recent_races]
    data["injury_history"] = list(profile.injury_history)
    return data


def dict_to_race_event(data: dict[str, Any]) -> RaceEvent:
    """
    Convert dictionary to RaceEvent.

    Raises:
        ValidationError: If a field is missing or invalid
    """
    return _build(
        "race",
        RaceEvent,
        id=str(_require(data, "id", "race")),
        name=_require(data, "name", "race"),
        date=validate_date(_require(data, "date", "race")),
        distance_km=_float(data, "distance_km", "race"),
        elevation_gain_m=_float(data, "elevation_gain_m", "race", 0.0),
        priority=data.get("priority", "A"),
        expected_time_min=data.get("expected_time_min"),
    )


def race_event_to_dict(race: RaceEvent) -> dict[str, Any]:
    return asdict(race)


def dict_to_week_load(data: dict[str, Any]) -> WeekLoad:
    return _build(
        "week",
        WeekLoad,
        week_start=validate_date(_require(data, "week_start", "week")),
        total_load_min=_float(data, "total_load_min", "week"),
        total_vertical_m=_float(data, "total_vertical_m", "week", 0.0),
        acwr=data.get("acwr"),
    )


def week_load_to_dict(week: WeekLoad) -> dict[str, Any]:
    return asdict(week)


def dict_to_daily_feedback(data: dict[str, Any]) -> DailyFeedback:
    return _build(
        "feedback",
        DailyFeedback,
        date=validate_date(_require(data, "date", "feedback")),
        rpe=data.get("rpe"),
        soreness=data.get("soreness"),
        sleep_hours=data.get("sleep_hours"),
        perceived_fatigue=data.get("perceived_fatigue"),
        missed_session=bool(data.get("missed_session", False)),
    )


def daily_feedback_to_dict(feedback: DailyFeedback) -> dict[str, Any]:
    return asdict(feedback)


# ---------------------------------------------------------------------------
# Outputs
# ---------------------------------------------------------------------------


def classification_to_dict(classification: Classification) -> dict[str, Any]:
    data = asdict(classification)
    data["build_cycle_length"] = classification.build_cycle_length
    return data


def segment_to_dict(segment: MacrocycleSegment) -> dict[str, Any]:
    data = asdict(segment)
    data["duration_weeks"] = round(segment.duration_weeks, 2)
    return data


def season_plan_to_dict(plan: SeasonPlan) -> dict[str, Any]:
    """Convert SeasonPlan to dictionary, with derived week counts."""
    return {
        "season_start": plan.season_start,
        "season_end": plan.season_end,
        "total_weeks": round(plan.total_weeks, 2),
        "segments": [segment_to_dict(s) for s in plan.segments],
        "groups": [
            {
                "race_id": g.race_id,
                "race_name": g.race_name,
                "race_date": g.race_date,
                "priority": g.priority,
                "segments": [segment_to_dict(s) for s in g.segments],
                "tune_up_race_ids": list(g.tune_up_race_ids),
            }
            for g in plan.groups
        ],
        "conflicts": [asdict(c) for c in plan.conflicts],
        "warnings": list(plan.warnings),
        "phase_overrides": {k: dict(v) for k, v in plan.phase_overrides.items()},
    }


def constraints_to_dict(constraints: ProgressionConstraints) -> dict[str, Any]:
    return asdict(constraints)


def weekly_plan_to_dict(plan: WeeklyPlan) -> dict[str, Any]:
    """Convert WeeklyPlan to dictionary, with derived totals."""
    data = asdict(plan)
    data["total_load_min"] = plan.total_load_min
    data["total_vertical_m"] = plan.total_vertical_m
    data["target_distance_km"] = plan.target_distance_km
    return data


def dict_to_session(data: dict[str, Any]) -> Session:
    return _build(
        "session",
        Session,
        type=_require(data, "type", "session"),
        duration_min=_float(data, "duration_min", "session"),
        distance_km=_float(data, "distance_km", "session", 0.0),
        vertical_gain_m=_float(data, "vertical_gain_m", "session", 0.0),
        intensity_zones=list(data.get("intensity_zones", [])),
        notes=data.get("notes", ""),
    )


def dict_to_weekly_plan(data: dict[str, Any]) -> WeeklyPlan:
    """
    Convert dictionary back to WeeklyPlan (e.g. a previously issued week).

    Raises:
        ValidationError: If the structure is invalid
    """
    days = [
        DayPlan(
            date=validate_date(_require(d, "date", "day")),
            weekday=_require(d, "weekday", "day"),
            sessions=[dict_to_session(s) for s in d.get("sessions", [])],
            notes=d.get("notes", ""),
        )
        for d in _require(data, "days", "weekly plan")
    ]
    return _build(
        "weekly plan",
        WeeklyPlan,
        week_number=int(_float(data, "week_number", "weekly plan")),
        phase=_require(data, "phase", "weekly plan"),
        start_date=validate_date(_require(data, "start_date", "weekly plan")),
        days=days,
        target_load_min=_float(data, "target_load_min", "weekly plan", 0.0),
        target_vertical_m=_float(data, "target_vertical_m", "weekly plan", 0.0),
        is_recovery_week=bool(data.get("is_recovery_week", False)),
        race_id=data.get("race_id"),
        actual_distance_km=data.get("actual_distance_km"),
        actual_vertical_m=data.get("actual_vertical_m"),
        reasoning=list(data.get("reasoning", [])),
        warnings=list(data.get("warnings", [])),
    )


def safety_result_to_dict(result: SafetyCheckResult) -> dict[str, Any]:
    return {
        "passed": result.passed,
        "violations": [asdict(v) for v in result.violations],
        "clamped": result.clamped_plan is not None,
    }


def adaptation_decision_to_dict(decision: AdaptationDecision) -> dict[str, Any]:
    return asdict(decision)
