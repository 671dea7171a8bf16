"""Profile and calendar commands: init, add-race, classify."""

import json
from dataclasses import asdict
from typing import Annotated, Optional

import typer

from ...core.classifier import calculate_readiness, classify_athlete
from ...core.models import AthleteProfile, InvalidInputError, RaceEvent
from ...core.metrics import weekly_totals
from ...io.serializers import ValidationError, classification_to_dict
from .. import views
from ..app import DataDirOption, JsonOption, app, get_store


@app.command()
def init(
    data_dir: DataDirOption = None,
    age: Annotated[
        int,
        typer.Option("--age", "-a", help="Age in years"),
    ] = 35,
    years_training: Annotated[
        float,
        typer.Option("--years-training", "-y", help="Years of structured training"),
    ] = 3.0,
    weekly_load: Annotated[
        float,
        typer.Option("--weekly-load", "-l", help="Average weekly training time in minutes"),
    ] = 240.0,
    weekly_vertical: Annotated[
        float,
        typer.Option("--weekly-vertical", help="Average weekly elevation gain in meters"),
    ] = 0.0,
    longest_km: Annotated[
        float,
        typer.Option("--longest-km", help="Longest distance completed in km"),
    ] = 0.0,
    consistency: Annotated[
        Optional[float],
        typer.Option("--consistency", help="Percent of planned sessions completed"),
    ] = None,
    aet_pace: Annotated[
        Optional[float],
        typer.Option("--aet-pace", help="Aerobic threshold pace in min/km"),
    ] = None,
    lt_pace: Annotated[
        Optional[float],
        typer.Option("--lt-pace", help="Lactate threshold pace in min/km"),
    ] = None,
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Overwrite an existing profile"),
    ] = False,
) -> None:
    """
    Create the data directory and store the athlete profile.
    """
    store = get_store(data_dir)
    if store.exists() and not force:
        views.print_error(f"Profile already exists in {store.data_dir}. Use --force to overwrite.")
        raise typer.Exit(1)

    try:
        profile = AthleteProfile(
            age=age,
            years_training=years_training,
            average_weekly_load=weekly_load,
            average_weekly_vertical=weekly_vertical,
            longest_completed_distance_km=longest_km,
            training_consistency=consistency,
            aerobic_threshold_pace=aet_pace,
            lactate_threshold_pace=lt_pace,
        )
    except InvalidInputError as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    store.init()
    store.save_profile(profile)
    views.print_success(f"Initialized profile in {store.data_dir}")


@app.command("add-race")
def add_race(
    race_id: Annotated[str, typer.Argument(help="Unique race id")],
    name: Annotated[str, typer.Option("--name", "-n", help="Race name")],
    race_date: Annotated[str, typer.Option("--date", help="Race date YYYY-MM-DD")],
    distance_km: Annotated[float, typer.Option("--distance", help="Distance in km")],
    data_dir: DataDirOption = None,
    elevation_m: Annotated[
        float,
        typer.Option("--elevation", "-e", help="Elevation gain in meters"),
    ] = 0.0,
    priority: Annotated[
        str,
        typer.Option("--priority", "-P", help="A (goal), B (tune-up) or C (training race)"),
    ] = "A",
    expected_min: Annotated[
        Optional[float],
        typer.Option("--expected-min", help="Expected finish time in minutes"),
    ] = None,
) -> None:
    """
    Add a race to the calendar, replacing a race with the same id.
    """
    store = get_store(data_dir)
    try:
        race = RaceEvent(
            id=race_id,
            name=name,
            date=race_date,
            distance_km=distance_km,
            elevation_gain_m=elevation_m,
            priority=priority.upper(),
            expected_time_min=expected_min,
        )
        store.add_race(race)
    except (InvalidInputError, ValidationError) as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    views.print_success(f"Added {race.priority} race {race.name} on {race.date}")


@app.command()
def classify(
    data_dir: DataDirOption = None,
    json_out: JsonOption = False,
) -> None:
    """
    Classify the athlete and score readiness for intensity work.
    """
    store = get_store(data_dir)
    try:
        profile = store.load_profile()
        weeks = store.load_weeks()
    except (FileNotFoundError, ValidationError) as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    classification = classify_athlete(profile)
    loads, _ = weekly_totals(weeks)
    readiness = calculate_readiness(profile, classification, loads)

    if json_out:
        data = classification_to_dict(classification)
        data["readiness"] = asdict(readiness)
        print(json.dumps(data, indent=2))
        return

    views.print_classification(classification, readiness)
