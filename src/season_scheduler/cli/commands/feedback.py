"""Logging and adaptation commands: log-week, log-feedback, adapt."""

import json
from typing import Annotated, Optional

import typer

from ...core.adaptation import adapt_plan
from ...core.classifier import classify_athlete
from ...core.models import DailyFeedback, InvalidInputError, WeekLoad, shift_date
from ...io.serializers import (
    ValidationError,
    adaptation_decision_to_dict,
    weekly_plan_to_dict,
)
from .. import views
from ..app import DataDirOption, JsonOption, TodayOption, app, get_store, resolve_today, week_start_for


@app.command("log-week")
def log_week(
    week_start: Annotated[str, typer.Argument(help="First day of the week YYYY-MM-DD")],
    load_min: Annotated[float, typer.Option("--load", "-l", help="Training time in minutes")],
    data_dir: DataDirOption = None,
    vertical_m: Annotated[
        float,
        typer.Option("--vertical", "-v", help="Elevation gain in meters"),
    ] = 0.0,
    acwr: Annotated[
        Optional[float],
        typer.Option("--acwr", help="ACWR from an external platform (computed when omitted)"),
    ] = None,
) -> None:
    """
    Record a realized training week.
    """
    store = get_store(data_dir)
    try:
        entry = WeekLoad(
            week_start=week_start,
            total_load_min=load_min,
            total_vertical_m=vertical_m,
            acwr=acwr,
        )
        store.append_week(entry)
    except (InvalidInputError, ValidationError) as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    views.print_success(f"Logged week {week_start}: {load_min:.0f} min, {vertical_m:.0f} m")


@app.command("log-feedback")
def log_feedback(
    data_dir: DataDirOption = None,
    day: Annotated[
        Optional[str],
        typer.Option("--date", help="Date YYYY-MM-DD (default: today)"),
    ] = None,
    rpe: Annotated[Optional[float], typer.Option("--rpe", help="Session RPE 1-10")] = None,
    soreness: Annotated[Optional[float], typer.Option("--soreness", help="Soreness 0-10")] = None,
    sleep: Annotated[Optional[float], typer.Option("--sleep", help="Hours slept")] = None,
    fatigue: Annotated[Optional[float], typer.Option("--fatigue", help="Perceived fatigue 0-10")] = None,
    missed: Annotated[
        bool,
        typer.Option("--missed", help="The planned session was missed"),
    ] = False,
) -> None:
    """
    Record an end-of-day feedback report.
    """
    store = get_store(data_dir)
    try:
        report = DailyFeedback(
            date=resolve_today(day),
            rpe=rpe,
            soreness=soreness,
            sleep_hours=sleep,
            perceived_fatigue=fatigue,
            missed_session=missed,
        )
        store.append_feedback(report)
    except (InvalidInputError, ValidationError) as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    views.print_success(f"Logged feedback for {report.date}")


@app.command()
def adapt(
    data_dir: DataDirOption = None,
    today: TodayOption = None,
    window_days: Annotated[
        int,
        typer.Option("--window", help="Days of feedback to consider"),
    ] = 7,
    json_out: JsonOption = False,
) -> None:
    """
    Adjust the remaining days of this week's saved plan from recent feedback.
    """
    store = get_store(data_dir)
    now = resolve_today(today)
    start = week_start_for(now)
    try:
        profile = store.load_profile()
        plan = store.load_week_plan(start)
        feedback = store.load_feedback(shift_date(now, -window_days), shift_date(now, 1))
    except (FileNotFoundError, ValidationError) as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    if plan is None:
        views.print_error(f"No saved plan for the week of {start}. Run 'week' first.")
        raise typer.Exit(1)

    adjusted, decision = adapt_plan(plan, feedback, now, classify_athlete(profile))
    if decision.action != "no_change":
        store.save_week_plan(adjusted)

    if json_out:
        data = adaptation_decision_to_dict(decision)
        data["plan"] = weekly_plan_to_dict(adjusted)
        print(json.dumps(data, indent=2))
        return

    views.print_adaptation(decision)
    if decision.action != "no_change":
        views.print_week(adjusted)
