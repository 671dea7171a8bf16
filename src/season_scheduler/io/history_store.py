"""
File-based storage for an athlete's planning data.

The engine itself does no I/O; this store is used by the CLI. One data
directory holds:

- profile.json    athlete profile
- races.json      race calendar (list of races)
- weeks.jsonl     realized weekly load history, one week per line
- feedback.jsonl  daily feedback, one day per line
- plans/          issued weekly plans, one JSON file per week start
"""

import json
import logging
from pathlib import Path
from typing import Any, Callable, TypeVar

from ..core.models import AthleteProfile, DailyFeedback, RaceEvent, WeekLoad, WeeklyPlan
from .serializers import (
    ValidationError,
    athlete_profile_to_dict,
    daily_feedback_to_dict,
    dict_to_athlete_profile,
    dict_to_daily_feedback,
    dict_to_race_event,
    dict_to_week_load,
    dict_to_weekly_plan,
    race_event_to_dict,
    week_load_to_dict,
    weekly_plan_to_dict,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class HistoryStore:
    """
    Manages an athlete's data directory.

    JSONL files contain one JSON object per line; blank lines are skipped.
    """

    def __init__(self, data_dir: str | Path):
        """
        Initialize the store.

        Args:
            data_dir: Directory holding the athlete's files
        """
        self.data_dir = Path(data_dir)
        self.profile_path = self.data_dir / "profile.json"
        self.races_path = self.data_dir / "races.json"
        self.weeks_path = self.data_dir / "weeks.jsonl"
        self.feedback_path = self.data_dir / "feedback.jsonl"
        self.plans_dir = self.data_dir / "plans"

    def exists(self) -> bool:
        """Check if a profile has been stored."""
        return self.profile_path.exists()

    def init(self) -> None:
        """
        Create the data directory and empty history files if missing.
        """
        self.data_dir.mkdir(parents=True, exist_ok=True)
        for path in (self.weeks_path, self.feedback_path):
            if not path.exists():
                path.touch()
        if not self.races_path.exists():
            self.races_path.write_text("[]\n")

    # ------------------------------------------------------------------
    # JSON helpers
    # ------------------------------------------------------------------

    def _read_json(self, path: Path) -> Any:
        if not path.exists():
            raise FileNotFoundError(f"File not found: {path}. Run 'init' first.")
        try:
            with open(path, "r") as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Error parsing {path}: {e}") from e

    def _write_json(self, path: Path, data: Any) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(data, f, indent=2)

    def _read_jsonl(self, path: Path, parse: Callable[[dict], T]) -> list[T]:
        if not path.exists():
            return []
        records: list[T] = []
        with open(path, "r") as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    records.append(parse(json.loads(line)))
                except (json.JSONDecodeError, ValidationError) as e:
                    raise ValidationError(f"Error parsing line {line_num} in {path}: {e}") from e
        return records

    def _append_jsonl(self, path: Path, data: dict) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "a") as f:
            f.write(json.dumps(data, separators=(",", ":")) + "\n")

    # ------------------------------------------------------------------
    # Profile and races
    # ------------------------------------------------------------------

    def load_profile(self) -> AthleteProfile:
        """
        Load the athlete profile.

        Raises:
            FileNotFoundError: If profile.json doesn't exist
            ValidationError: If the profile is malformed
        """
        return dict_to_athlete_profile(self._read_json(self.profile_path))

    def save_profile(self, profile: AthleteProfile) -> None:
        self._write_json(self.profile_path, athlete_profile_to_dict(profile))

    def load_races(self) -> list[RaceEvent]:
        """Load the race calendar sorted by date; empty when races.json is missing."""
        if not self.races_path.exists():
            return []
        data = self._read_json(self.races_path)
        if not isinstance(data, list):
            raise ValidationError(f"{self.races_path} must contain a list of races")
        return sorted((dict_to_race_event(r) for r in data), key=lambda r: r.date)

    def save_races(self, races: list[RaceEvent]) -> None:
        self._write_json(self.races_path, [race_event_to_dict(r) for r in races])

    def add_race(self, race: RaceEvent) -> None:
        """
        Add a race, replacing any race with the same id.
        """
        races = [r for r in self.load_races() if r.id != race.id]
        races.append(race)
        self.save_races(sorted(races, key=lambda r: r.date))

    # ------------------------------------------------------------------
    # Weekly history and feedback
    # ------------------------------------------------------------------

    def load_weeks(self, before: str | None = None) -> list[WeekLoad]:
        """
        Load realized weeks sorted by start date.

        Args:
            before: Only weeks starting before this date, when given
        """
        weeks = self._read_jsonl(self.weeks_path, dict_to_week_load)
        if before is not None:
            weeks = [w for w in weeks if w.week_start < before]
        return sorted(weeks, key=lambda w: w.week_start)

    def append_week(self, week: WeekLoad) -> None:
        """
        Record a realized week, replacing an existing entry for the same start.
        """
        existing = self.load_weeks()
        weeks = [w for w in existing if w.week_start != week.week_start]
        if len(weeks) == len(existing):
            self._append_jsonl(self.weeks_path, week_load_to_dict(week))
            return
        logger.info("Replacing logged week %s", week.week_start)
        weeks.append(week)
        with open(self.weeks_path, "w") as f:
            for w in sorted(weeks, key=lambda w: w.week_start):
                f.write(json.dumps(week_load_to_dict(w), separators=(",", ":")) + "\n")

    def load_feedback(self, start: str | None = None, end: str | None = None) -> list[DailyFeedback]:
        """Load daily feedback in [start, end), sorted by date."""
        feedback = self._read_jsonl(self.feedback_path, dict_to_daily_feedback)
        if start is not None:
            feedback = [f for f in feedback if f.date >= start]
        if end is not None:
            feedback = [f for f in feedback if f.date < end]
        return sorted(feedback, key=lambda f: f.date)

    def append_feedback(self, feedback: DailyFeedback) -> None:
        self._append_jsonl(self.feedback_path, daily_feedback_to_dict(feedback))

    # ------------------------------------------------------------------
    # Issued plans
    # ------------------------------------------------------------------

    def plan_path(self, week_start: str) -> Path:
        return self.plans_dir / f"week-{week_start}.json"

    def save_week_plan(self, plan: WeeklyPlan) -> Path:
        path = self.plan_path(plan.start_date)
        self._write_json(path, weekly_plan_to_dict(plan))
        return path

    def load_week_plan(self, week_start: str) -> WeeklyPlan | None:
        """Load the plan issued for *week_start*, or None if none was saved."""
        path = self.plan_path(week_start)
        if not path.exists():
            return None
        return dict_to_weekly_plan(self._read_json(path))

    def first_plan_start(self) -> str | None:
        """Start date of the earliest saved week plan, or None if none was saved."""
        if not self.plans_dir.exists():
            return None
        starts = sorted(p.stem[len("week-"):] for p in self.plans_dir.glob("week-*.json"))
        return starts[0] if starts else None


def get_default_data_dir() -> Path:
    """
    Get the default data directory (~/.season-scheduler).
    """
    return Path.home() / ".season-scheduler"
