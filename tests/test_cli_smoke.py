"""
Smoke tests for the season-scheduler CLI.

Tests basic functionality:
- App runs and shows help
- Profile, races and realized weeks are stored
- Season, progression and week plans are generated
- Feedback is logged and adapts the saved week
"""

import json
import tempfile
from pathlib import Path

import pytest
from typer.testing import CliRunner

from season_scheduler.cli.main import app


runner = CliRunner()

TODAY = "2026-03-04"


@pytest.fixture
def temp_data_dir():
    """Create a temporary data directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "athlete"


def _invoke(data_dir: Path, *args: str):
    return runner.invoke(app, [args[0], "--data-dir", str(data_dir), *args[1:]])


@pytest.fixture
def athlete_dir(temp_data_dir):
    """Data directory with a profile, one A race and four logged weeks."""
    result = _invoke(
        temp_data_dir,
        "init",
        "--age", "35",
        "--years-training", "6",
        "--weekly-load", "360",
        "--longest-km", "42.2",
        "--consistency", "90",
    )
    assert result.exit_code == 0, result.output

    result = _invoke(
        temp_data_dir,
        "add-race", "mar",
        "--name", "City Marathon",
        "--date", "2026-06-07",
        "--distance", "42.2",
        "--elevation", "800",
    )
    assert result.exit_code == 0, result.output

    for week_start, load in [
        ("2026-02-02", "300"),
        ("2026-02-09", "300"),
        ("2026-02-16", "300"),
        ("2026-02-23", "310"),
    ]:
        result = _invoke(temp_data_dir, "log-week", week_start, "--load", load)
        assert result.exit_code == 0, result.output

    return temp_data_dir


class TestCLISmoke:
    """Basic smoke tests for CLI commands."""

    def test_app_help(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "season" in result.output.lower()

    def test_init_creates_files(self, temp_data_dir):
        result = _invoke(temp_data_dir, "init")
        assert result.exit_code == 0
        assert (temp_data_dir / "profile.json").exists()
        assert (temp_data_dir / "races.json").exists()
        assert (temp_data_dir / "weeks.jsonl").exists()

    def test_init_refuses_to_overwrite(self, athlete_dir):
        result = _invoke(athlete_dir, "init")
        assert result.exit_code == 1
        assert "--force" in result.output

        result = _invoke(athlete_dir, "init", "--force", "--age", "41")
        assert result.exit_code == 0
        profile = json.loads((athlete_dir / "profile.json").read_text())
        assert profile["age"] == 41

    def test_add_race_and_log_week_persist(self, athlete_dir):
        races = json.loads((athlete_dir / "races.json").read_text())
        assert [r["id"] for r in races] == ["mar"]
        lines = (athlete_dir / "weeks.jsonl").read_text().strip().splitlines()
        assert len(lines) == 4

        result = _invoke(athlete_dir, "log-week", "2026-02-23", "--load", "320")
        assert result.exit_code == 0
        lines = (athlete_dir / "weeks.jsonl").read_text().strip().splitlines()
        assert len(lines) == 4
        assert json.loads(lines[-1])["total_load_min"] == 320.0

    def test_classify_json(self, athlete_dir):
        result = _invoke(athlete_dir, "classify", "--json")
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["category"] == "experienced"
        assert data["recovery_ratio"] == "3:1"
        assert "overall" in data["readiness"]

    def test_season_json(self, athlete_dir):
        result = _invoke(athlete_dir, "season", "--today", "2026-01-18", "--json")
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        phases = [s["phase"] for s in data["segments"]]
        assert phases[:5] == ["base_building", "sharpening", "taper", "race", "recovery"]
        assert data["groups"][0]["race_id"] == "mar"

    def test_season_adjust(self, athlete_dir):
        result = _invoke(
            athlete_dir, "season", "--today", "2026-01-18", "--adjust", "2:2", "--json"
        )
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["phase_overrides"] == {"mar": {"taper": 2}}
        assert data["segments"][2]["start_date"] == "2026-05-18"

    def test_season_bad_adjustment(self, athlete_dir):
        result = _invoke(athlete_dir, "season", "--today", "2026-01-18", "--adjust", "two")
        assert result.exit_code == 1

    def test_season_table(self, athlete_dir):
        result = _invoke(athlete_dir, "season", "--today", "2026-01-18")
        assert result.exit_code == 0, result.output
        assert "Taper" in result.output

    def test_progression_json(self, athlete_dir):
        result = _invoke(athlete_dir, "progression", "--today", TODAY, "--build-weeks", "1", "--json")
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["max_load_increase"] == pytest.approx(341.0)
        assert data["must_recover"] is False
        assert data["context"]["current_week_load"] == 310.0

    def test_week_json_saves_plan(self, athlete_dir):
        result = _invoke(athlete_dir, "week", "--today", TODAY, "--json")
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["start_date"] == "2026-03-02"
        assert data["phase"] == "base_building"
        assert len(data["days"]) == 7
        assert "passed" in data["safety"]
        assert (athlete_dir / "plans" / "week-2026-03-02.json").exists()

    def test_consecutive_weeks_are_numbered(self, athlete_dir):
        numbers = []
        for week_start in ("2026-03-02", "2026-03-09"):
            result = _invoke(athlete_dir, "week", "--week-start", week_start, "--json")
            assert result.exit_code == 0, result.output
            numbers.append(json.loads(result.stdout)["week_number"])
        assert numbers == [1, 2]

        saved = json.loads((athlete_dir / "plans" / "week-2026-03-09.json").read_text())
        assert saved["week_number"] == 2

    def test_week_explain(self, athlete_dir):
        result = _invoke(athlete_dir, "week", "--today", TODAY, "--explain")
        assert result.exit_code == 0, result.output
        assert "Progression rules" in result.output

    def test_week_invalid_date(self, athlete_dir):
        result = _invoke(athlete_dir, "week", "--week-start", "2026-13-01")
        assert result.exit_code == 1

    def test_feedback_and_adapt(self, athlete_dir):
        result = _invoke(athlete_dir, "week", "--today", TODAY, "--json")
        assert result.exit_code == 0, result.output

        for day in ("2026-03-02", "2026-03-03"):
            result = _invoke(
                athlete_dir,
                "log-feedback",
                "--date", day,
                "--rpe", "9",
                "--soreness", "8",
                "--sleep", "5",
                "--fatigue", "9",
            )
            assert result.exit_code == 0, result.output

        result = _invoke(athlete_dir, "adapt", "--today", TODAY, "--json")
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["action"] != "no_change"
        assert data["plan"]["start_date"] == "2026-03-02"

    def test_adapt_without_saved_plan(self, athlete_dir):
        result = _invoke(athlete_dir, "adapt", "--today", TODAY)
        assert result.exit_code == 1
        assert "Run 'week' first" in result.output

    def test_commands_need_init(self, temp_data_dir):
        for command in ("classify", "season", "week"):
            result = _invoke(temp_data_dir, command)
            assert result.exit_code == 1, command
            assert "init" in result.output

    def test_missing_config_file(self, athlete_dir):
        result = _invoke(athlete_dir, "season", "--config", str(athlete_dir / "nope.yaml"))
        assert result.exit_code == 1
