"""Planning commands: season, progression, week."""

import json
from dataclasses import asdict
from typing import Annotated, Optional

import typer

from ...core.classifier import classify_athlete
from ...core.config import LONG_RUN_DAY, SEASON_HORIZON_WEEKS
from ...core.macrocycle import adjust_segment_duration
from ...core.models import InvalidInputError, days_between, shift_date
from ...core.planner import explain_week, plan_season, plan_week
from ...core.progression import build_progression_context, calculate_progression_constraints
from ...io.serializers import (
    ValidationError,
    constraints_to_dict,
    safety_result_to_dict,
    season_plan_to_dict,
    weekly_plan_to_dict,
)
from .. import views
from ..app import (
    ConfigOption,
    DataDirOption,
    JsonOption,
    TodayOption,
    app,
    get_store,
    load_tables,
    resolve_today,
    week_start_for,
)

HorizonOption = Annotated[
    int,
    typer.Option("--horizon", help="Planning horizon in weeks"),
]


def _parse_adjustment(raw: str) -> tuple[int, int]:
    """Parse an INDEX:WEEKS segment adjustment."""
    try:
        index, weeks = raw.split(":")
        return int(index), int(weeks)
    except ValueError:
        views.print_error(f"Invalid adjustment {raw!r}. Expected INDEX:WEEKS, e.g. 2:4")
        raise typer.Exit(1)


@app.command()
def season(
    data_dir: DataDirOption = None,
    today: TodayOption = None,
    horizon: HorizonOption = SEASON_HORIZON_WEEKS,
    adjust: Annotated[
        Optional[list[str]],
        typer.Option(
            "--adjust",
            "-a",
            help="Set a race-chain segment length, INDEX:WEEKS (repeatable, applied in order)",
        ),
    ] = None,
    config: ConfigOption = None,
    json_out: JsonOption = False,
) -> None:
    """
    Lay out the season's phases from the race calendar.
    """
    store = get_store(data_dir)
    now = resolve_today(today)
    tiers, _ = load_tables(config)
    try:
        profile = store.load_profile()
        races = store.load_races()
        classification, plan = plan_season(profile, races, now, horizon, tiers)
        for raw in adjust or []:
            index, weeks = _parse_adjustment(raw)
            plan = adjust_segment_duration(
                plan, index, weeks, races, now, classification, horizon, tiers
            )
    except (FileNotFoundError, ValidationError, InvalidInputError) as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    if json_out:
        print(json.dumps(season_plan_to_dict(plan), indent=2))
        return

    views.print_season(plan)


@app.command()
def progression(
    data_dir: DataDirOption = None,
    today: TodayOption = None,
    fatigue: Annotated[
        Optional[float],
        typer.Option("--fatigue", help="Current perceived fatigue 0-10"),
    ] = None,
    build_weeks: Annotated[
        Optional[int],
        typer.Option("--build-weeks", help="Build weeks since the last recovery week"),
    ] = None,
    intensity_week: Annotated[
        bool,
        typer.Option("--intensity-week", help="Next week is an intensity week"),
    ] = False,
    json_out: JsonOption = False,
) -> None:
    """
    Show the load and vertical bounds for the next week.
    """
    store = get_store(data_dir)
    week_start = week_start_for(resolve_today(today))
    try:
        profile = store.load_profile()
        history = store.load_weeks(before=week_start)
        classification = classify_athlete(profile)
        context, warnings = build_progression_context(
            history,
            classification,
            weeks_in_build_cycle=build_weeks,
            is_intensity_week=intensity_week,
            perceived_fatigue=fatigue,
        )
    except (FileNotFoundError, ValidationError, InvalidInputError) as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    constraints = calculate_progression_constraints(context)
    constraints.warnings = warnings + constraints.warnings

    if json_out:
        data = constraints_to_dict(constraints)
        data["context"] = asdict(context)
        print(json.dumps(data, indent=2))
        return

    views.print_constraints(constraints)


@app.command()
def week(
    data_dir: DataDirOption = None,
    week_start: Annotated[
        Optional[str],
        typer.Option("--week-start", "-w", help="First day of the week YYYY-MM-DD"),
    ] = None,
    today: TodayOption = None,
    horizon: HorizonOption = SEASON_HORIZON_WEEKS,
    long_run_day: Annotated[
        int,
        typer.Option("--long-run-day", help="Weekday of the long run (Mon=0 ... Sun=6)"),
    ] = LONG_RUN_DAY,
    config: ConfigOption = None,
    explain: Annotated[
        bool,
        typer.Option("--explain", "-x", help="Show how the week was derived"),
    ] = False,
    json_out: JsonOption = False,
) -> None:
    """
    Generate, check and save the plan for one week.

    The season is laid out from the week's first day, and weeks are
    numbered from the earliest saved plan. Realized weeks and the last
    seven days of feedback before it feed the progression rules.
    """
    store = get_store(data_dir)
    start = resolve_today(week_start) if week_start else week_start_for(resolve_today(today))
    tiers, tapers = load_tables(config)
    try:
        profile = store.load_profile()
        races = store.load_races()
        history = store.load_weeks(before=start)
        feedback = store.load_feedback(shift_date(start, -7), start)
        prior_week = store.load_week_plan(shift_date(start, -7))
        first_planned = store.first_plan_start()
        anchor = min(first_planned, start) if first_planned else start

        classification, season_plan = plan_season(profile, races, start, horizon, tiers)
        fatigue = [f.perceived_fatigue for f in feedback if f.perceived_fatigue is not None]
        result = plan_week(
            profile,
            classification,
            season_plan,
            races,
            history,
            start,
            week_number=days_between(anchor, start) // 7 + 1,
            prior_week=prior_week,
            perceived_fatigue=fatigue[-1] if fatigue else None,
            recent_fatigue=fatigue or None,
            long_run_day=long_run_day,
            taper_templates=tapers,
        )
    except (FileNotFoundError, ValidationError, InvalidInputError) as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    path = store.save_week_plan(result.plan)

    if json_out:
        data = weekly_plan_to_dict(result.plan)
        data["safety"] = safety_result_to_dict(result.safety)
        print(json.dumps(data, indent=2))
        return

    views.print_week(result.plan, result.safety)
    if explain:
        views.console.print()
        views.console.print(explain_week(result))
    views.print_info(f"Saved to {path}")
