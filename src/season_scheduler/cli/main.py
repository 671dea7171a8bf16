"""
CLI entry point using Typer.

Provides commands for season planning:
- init: Store the athlete profile
- add-race: Add a race to the calendar
- log-week / log-feedback: Record realized training and daily reports
- classify: Show athlete category and readiness
- season: Lay out the season's phases
- progression: Show next week's load bounds
- week: Generate and save a weekly plan
- adapt: Adjust this week's plan from feedback
"""

from . import commands  # noqa: F401  registers commands on app
from .app import app

__all__ = ["app"]


if __name__ == "__main__":
    app()
