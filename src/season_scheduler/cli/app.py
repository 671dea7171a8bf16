"""Shared Typer app object, shared option types, and store utility."""

import logging
from datetime import date, timedelta
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.logging import RichHandler

from ..core.config import TaperTemplate
from ..core.engine.config_loader import load_model_config, phase_tiers, taper_templates
from ..core.macrocycle import PhaseTiers
from ..io.history_store import HistoryStore, get_default_data_dir
from . import views

# Shared --data-dir option type used across all commands
DataDirOption = Annotated[
    Optional[Path],
    typer.Option("--data-dir", "-d", help="Athlete data directory (default ~/.season-scheduler)"),
]

JsonOption = Annotated[
    bool,
    typer.Option("--json", "-j", help="Output as JSON"),
]

TodayOption = Annotated[
    Optional[str],
    typer.Option("--today", help="Planning date YYYY-MM-DD (default: today)"),
]

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Extra periodization YAML merged over the defaults"),
]

app = typer.Typer(
    name="season-scheduler",
    help="Adaptive season planner for endurance and trail runners.",
    no_args_is_help=True,
)


@app.callback()
def main_callback(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log engine decisions to stderr"),
    ] = False,
) -> None:
    """
    Season planning, weekly progression and feedback adaptation.
    """
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            datefmt="[%X]",
            handlers=[RichHandler(console=views.err_console, show_path=False)],
            force=True,
        )


def get_store(data_dir: Path | None) -> HistoryStore:
    """Get the store for a data directory, or the default location."""
    if data_dir is None:
        data_dir = get_default_data_dir()
    return HistoryStore(data_dir)


def load_tables(config_path: Path | None) -> tuple[PhaseTiers, list[TaperTemplate]]:
    """Load phase-duration tiers and taper templates from the YAML config."""
    if config_path is not None and not config_path.exists():
        views.print_error(f"Config file not found: {config_path}")
        raise typer.Exit(1)
    config = load_model_config(config_path)
    return phase_tiers(config), taper_templates(config)


def resolve_today(today: str | None) -> str:
    """Return *today* validated, or the current date."""
    if today is None:
        return date.today().isoformat()
    try:
        date.fromisoformat(today)
    except ValueError:
        views.print_error(f"Invalid date: {today}. Expected YYYY-MM-DD")
        raise typer.Exit(1)
    return today


def week_start_for(day: str) -> str:
    """Monday of the week containing *day*."""
    d = date.fromisoformat(day)
    return (d - timedelta(days=d.weekday())).isoformat()
