"""
CLI view formatters using Rich for pretty console output.

Handles table formatting and display of classifications, season plans,
progression bounds and weekly plans.
"""

from rich.console import Console
from rich.table import Table

from ..core.models import (
    AdaptationDecision,
    Classification,
    ProgressionConstraints,
    ReadinessScore,
    SafetyCheckResult,
    SeasonPlan,
    WeeklyPlan,
)

console = Console()
err_console = Console(stderr=True)

PHASE_STYLES: dict[str, str] = {
    "base_building": "green",
    "sharpening": "yellow",
    "taper": "cyan",
    "race": "bold red",
    "recovery": "blue",
}
ACWR_STYLES: dict[str, str] = {"safe": "green", "caution": "yellow", "danger": "bold red"}


def _bullets(items: list[str], style: str = "") -> None:
    for item in items:
        console.print(f"  • {item}", style=style or None)


def print_classification(
    classification: Classification,
    readiness: ReadinessScore | None = None,
) -> None:
    """Print category, cycle settings and the reasoning trail."""
    table = Table(title="Athlete Classification", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Category", f"[bold]{classification.category}[/bold]")
    table.add_row("Confidence", f"{classification.confidence}%")
    table.add_row("Recovery ratio", classification.recovery_ratio)
    table.add_row("Quality days / week", str(classification.quality_days_per_week))
    table.add_row("Starting load", f"{classification.starting_load:.0f} min/week")
    if classification.aerobic_deficiency:
        table.add_row("Aerobic deficiency", f"yes (+{classification.extra_base_weeks} base weeks)")
    if readiness is not None:
        table.add_row(
            "Readiness",
            f"{readiness.overall}/100 "
            + ("[green](intensity ok)[/green]" if readiness.can_progress_to_intensity else "[yellow](base only)[/yellow]"),
        )
    console.print(table)
    console.print("[bold]Reasoning[/bold]")
    _bullets(classification.reasoning)
    for w in classification.warnings:
        print_warning(w)
    if readiness is not None:
        for b in readiness.blockers:
            print_warning(b)


def print_season(plan: SeasonPlan) -> None:
    """Print the season's segments, conflicts and warnings."""
    table = Table(title=f"Season {plan.season_start} → {plan.season_end} ({plan.total_weeks:.1f} weeks)")
    table.add_column("#", justify="right", style="dim", width=3)
    table.add_column("Phase")
    table.add_column("Name")
    table.add_column("Start", style="cyan")
    table.add_column("End (excl.)", style="cyan")
    table.add_column("Weeks", justify="right")
    table.add_column("Int.", justify="right")
    table.add_column("Race", style="dim")

    for i, seg in enumerate(plan.segments):
        style = PHASE_STYLES.get(seg.phase, "")
        name = seg.display_name + (" *" if seg.manual_override else "")
        table.add_row(
            str(i),
            f"[{style}]{seg.phase}[/{style}]" if style else seg.phase,
            name,
            seg.start_date,
            seg.end_date,
            f"{seg.duration_weeks:.1f}",
            f"{seg.intensity:.2f}",
            seg.race_id or "",
        )
    console.print(table)
    if plan.has_manual_edits:
        console.print("[dim]* manually adjusted[/dim]")

    for conflict in plan.conflicts:
        color = "red" if conflict.severity == "critical" else "yellow"
        console.print(f"[{color}]{conflict.message}[/{color}]")
        console.print(f"  → {conflict.recommendation}")
    for w in plan.warnings:
        print_warning(w)


def print_constraints(constraints: ProgressionConstraints) -> None:
    """Print progression bounds and the rule trail."""
    status_style = ACWR_STYLES[constraints.acwr_status]
    table = Table(title="Progression Bounds", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row(
        "Must recover",
        "[bold red]yes[/bold red]" if constraints.must_recover else "no",
    )
    table.add_row("ACWR status", f"[{status_style}]{constraints.acwr_status}[/{status_style}]")
    table.add_row("Max load", f"{constraints.max_load_increase:.0f} min")
    if constraints.min_load_decrease is not None:
        table.add_row("Recovery floor", f"{constraints.min_load_decrease:.0f} min")
    if constraints.max_vertical_increase is not None:
        table.add_row("Max vertical", f"{constraints.max_vertical_increase:.0f} m")
    table.add_row("Can hold steady", "yes" if constraints.can_hold_steady else "no")
    if constraints.exclusive_increase:
        table.add_row("Increase", "load OR vertical, not both")
    console.print(table)
    console.print("[bold]Rules[/bold]")
    _bullets(constraints.reasoning)
    for w in constraints.warnings:
        print_warning(w)


def print_week(plan: WeeklyPlan, safety: SafetyCheckResult | None = None) -> None:
    """Print a weekly plan day by day."""
    title = f"Week {plan.week_number} · {plan.start_date} · {plan.phase}"
    if plan.is_recovery_week:
        title += " · recovery"
    table = Table(title=title)
    table.add_column("Day", style="cyan", no_wrap=True)
    table.add_column("Date", style="dim")
    table.add_column("Session", style="magenta")
    table.add_column("Min", justify="right")
    table.add_column("Km", justify="right")
    table.add_column("Vert", justify="right")
    table.add_column("Zones")
    table.add_column("Notes", style="dim")

    for day in plan.days:
        for session in day.sessions:
            if session.type == "rest":
                table.add_row(day.weekday, day.date, "rest", "", "", "", "", session.notes)
                continue
            table.add_row(
                day.weekday,
                day.date,
                session.type,
                f"{session.duration_min:.0f}",
                f"{session.distance_km:.1f}",
                f"{session.vertical_gain_m:.0f}",
                "/".join(session.intensity_zones),
                session.notes,
            )
    console.print(table)
    console.print(
        f"Planned [bold]{plan.training_load_min:.0f} min[/bold], "
        f"{plan.training_vertical_m:.0f} m, ~{plan.target_distance_km:.1f} km "
        f"(target {plan.target_load_min:.0f} min / {plan.target_vertical_m:.0f} m)"
    )
    if safety is not None and safety.clamped_plan is not None:
        print_warning("Plan was adjusted to satisfy safety limits")
    for w in plan.warnings:
        print_warning(w)


def print_adaptation(decision: AdaptationDecision) -> None:
    """Print an adaptation decision."""
    style = "green" if decision.action == "no_change" else "yellow"
    console.print(f"Decision: [{style}]{decision.action}[/{style}]")
    _bullets(decision.reasoning)
    _bullets(decision.adaptations, style="dim")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]{message}[/green]")


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[red]Error: {message}[/red]")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow]Warning: {message}[/yellow]")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[blue]{message}[/blue]")
