"""
Microcycle generation.

Expands one week's progression bounds and season phase into a concrete
7-day session plan: pick load and vertical targets inside the bounds, lay
out a phase-specific day template, scale taper days, and drop race days in.
"""

import logging
import math
from datetime import timedelta

from .config import (
    B_RACE_RECOVERY_DAYS,
    DAY_TEMPLATES,
    DEFAULT_VERTICAL_DENSITY,
    INTENSITY_ZONES,
    LOAD_WEIGHTS,
    LONG_RUN_DAY,
    MAX_CONSECUTIVE_HARD_DAYS,
    MAX_RECOVERY_REST_DAYS,
    MIN_QUALITY_INTENSITY,
    MIN_RECOVERY_EXTRA_REST_DAYS,
    PACE_MIN_PER_KM,
    PEAK_LOAD_FACTORS,
    PHASE_PROGRESSION_SHARE,
    POST_RACE_LOAD_FACTOR,
    QUALITY_SESSIONS,
    RACE_MIN_PER_100M_VERT,
    RACE_PACE_MIN_PER_KM,
    TAPER_TEMPLATES,
    VERTICAL_WEIGHTS,
    TaperTemplate,
)
from .macrocycle import segment_for_date
from .models import (
    WEEKDAYS,
    Classification,
    DayPlan,
    InvalidInputError,
    MacrocycleSegment,
    ProgressionConstraints,
    ProgressionContext,
    RaceEvent,
    ReadinessScore,
    SeasonPlan,
    Session,
    WeeklyPlan,
    format_date,
    parse_date,
)

logger = logging.getLogger(__name__)

SESSION_NOTES: dict[str, str] = {
    "easy": "Easy aerobic run",
    "long": "Long run at conversational effort",
    "recovery": "Recovery jog, keep it very easy",
    "hills": "Hill repeats with easy jog down",
    "intervals": "Intervals: 5 x 4 min hard, 3 min jog",
    "tempo": "Tempo: 20-30 min comfortably hard",
    "strides": "Easy run with 6 x 20 s strides",
    "rest": "Rest day",
}
_REST_ORDER = (0, 4, 2, 6, 3, 1, 5)  # Mon, Fri, Wed, Sun, ...


def select_taper_template(
    priority: str,
    distance_km: float,
    templates: list[TaperTemplate] | None = None,
) -> TaperTemplate | None:
    """Return the first taper template matching the race priority and distance."""
    for template in templates or TAPER_TEMPLATES:
        if template.matches(priority, distance_km):
            return template
    return None


def taper_volume_scale(
    days_to_race: int,
    priority: str,
    distance_km: float,
    templates: list[TaperTemplate] | None = None,
) -> float:
    """
    Share of normal daily volume *days_to_race* days before a race.

    Days beyond the template window get its first (mildest) value; race day
    and later get 1.0.

    Example (A marathon, 10-day curve 0.90 ... 0.40):
        taper_volume_scale(1, "A", 42.2)  -> 0.40
        taper_volume_scale(10, "A", 42.2) -> 0.90
        taper_volume_scale(20, "A", 42.2) -> 0.90
    """
    template = select_taper_template(priority, distance_km, templates)
    if template is None or days_to_race <= 0:
        return 1.0
    if days_to_race > template.duration_days:
        return template.volume_curve[0]
    return template.volume_curve[template.duration_days - days_to_race]


def race_session(race: RaceEvent) -> Session:
    """A race-day session sized to the race distance and vertical."""
    duration = race.expected_time_min or (
        race.distance_km * RACE_PACE_MIN_PER_KM
        + race.elevation_gain_m / 100 * RACE_MIN_PER_100M_VERT
    )
    return Session(
        type="race",
        duration_min=round(duration),
        distance_km=race.distance_km,
        vertical_gain_m=race.elevation_gain_m,
        intensity_zones=list(INTENSITY_ZONES["race"]),
        notes=f"{race.name} ({race.priority} race)",
    )


def peak_targets(classification: Classification, race: RaceEvent | None) -> tuple[float, float]:
    """
    Peak weekly load (min) and vertical (m) a build aims for.

    Load peaks at a distance-dependent multiple of the starting load;
    vertical follows the race's m/km applied to the easy-pace distance of
    that load.
    """
    factor = PEAK_LOAD_FACTORS[-1][1]
    if race is not None:
        for bound, candidate in PEAK_LOAD_FACTORS:
            if bound is None or race.distance_km <= bound:
                factor = candidate
                break
    else:
        factor = PEAK_LOAD_FACTORS[0][1]
    peak_load = classification.starting_load * factor
    density = race.vertical_density if race is not None else DEFAULT_VERTICAL_DENSITY
    return peak_load, peak_load / PACE_MIN_PER_KM["easy"] * density


def _target_race(
    segment: MacrocycleSegment, week_start: str, races: list[RaceEvent]
) -> RaceEvent | None:
    by_id = {r.id: r for r in races}
    if segment.race_id in by_id:
        return by_id[segment.race_id]
    upcoming = sorted((r for r in races if r.date >= week_start and r.priority == "A"), key=lambda r: r.date)
    return upcoming[0] if upcoming else None


def _weekly_targets(
    phase: str,
    classification: Classification,
    context: ProgressionContext,
    constraints: ProgressionConstraints,
    race: RaceEvent | None,
    reasoning: list[str],
) -> tuple[float, float]:
    """Pick load and vertical targets for the week inside the constraint bounds."""
    current = context.current_week_load
    ceiling = constraints.max_load_increase

    if constraints.must_recover:
        reasoning.append(f"Recovery week: load target {ceiling:.0f} min")
        load = ceiling
    elif phase == "recovery":
        load = min(current * POST_RACE_LOAD_FACTOR, ceiling)
        reasoning.append(f"Post-race recovery: load reduced to {load:.0f} min")
    else:
        share = PHASE_PROGRESSION_SHARE[phase]
        load = min(current, ceiling) + share * max(0.0, ceiling - current)

    density = race.vertical_density if race is not None else DEFAULT_VERTICAL_DENSITY
    current_vertical = context.current_week_vertical
    vertical_ceiling = constraints.max_vertical_increase
    if current_vertical is None:
        vertical = load / PACE_MIN_PER_KM["easy"] * density
        reasoning.append(f"No vertical history: {density:.0f} m/km applied to planned volume")
    elif constraints.must_recover:
        vertical = vertical_ceiling if vertical_ceiling is not None else current_vertical
    elif phase == "recovery":
        vertical = current_vertical * POST_RACE_LOAD_FACTOR
    else:
        share = PHASE_PROGRESSION_SHARE[phase]
        top = vertical_ceiling if vertical_ceiling is not None else current_vertical
        vertical = min(current_vertical, top) + share * max(0.0, top - current_vertical)

    rising_load = load > current
    rising_vertical = current_vertical is not None and vertical > current_vertical
    if constraints.exclusive_increase and rising_load and rising_vertical:
        peak_load, peak_vertical = peak_targets(classification, race)
        load_ratio = current / peak_load if peak_load else 1.0
        vertical_ratio = current_vertical / peak_vertical if peak_vertical else math.inf
        if load_ratio <= vertical_ratio:
            vertical = current_vertical
            reasoning.append(
                f"Only one dimension may rise: load is further below its peak "
                f"({load_ratio:.0%} vs {vertical_ratio:.0%}), vertical held"
            )
        else:
            load = min(current, ceiling)
            reasoning.append(
                f"Only one dimension may rise: vertical is further below its peak "
                f"({vertical_ratio:.0%} vs {load_ratio:.0%}), load held"
            )

    if vertical_ceiling is not None:
        vertical = min(vertical, vertical_ceiling)
    return round(min(load, ceiling), 1), round(max(0.0, vertical), 1)


def _day_slots(
    phase: str,
    recovery_week: bool,
    prior_week: WeeklyPlan | None,
    long_run_day: int,
) -> list[str]:
    slots = list(DAY_TEMPLATES[phase])
    if recovery_week:
        build_rest = (
            prior_week.rest_day_count
            if prior_week is not None
            else sum(1 for s in DAY_TEMPLATES[phase] if s == "rest")
        )
        rest_days = min(build_rest + MIN_RECOVERY_EXTRA_REST_DAYS, MAX_RECOVERY_REST_DAYS)
        rest_positions = set(_REST_ORDER[:rest_days])
        return ["rest" if i in rest_positions else "easy" for i in range(7)]

    if "long" in slots and slots.index("long") != long_run_day:
        current = slots.index("long")
        slots[current], slots[long_run_day] = slots[long_run_day], slots[current]
    return slots


def _fill_quality(
    slots: list[str],
    phase: str,
    intensity: float,
    classification: Classification,
    readiness: ReadinessScore | None,
    reasoning: list[str],
) -> list[str]:
    """Replace quality slots with workouts, or easy runs when not allowed."""
    workouts = list(QUALITY_SESSIONS.get(phase, ()))
    allowed = intensity >= MIN_QUALITY_INTENSITY and bool(workouts)
    if allowed and readiness is not None and not readiness.can_progress_to_intensity:
        workouts = [w for w in workouts if w == "strides"]
        reasoning.append(f"Readiness {readiness.overall}/100: hard quality sessions deferred")

    filled = []
    used = 0
    for slot in slots:
        if slot != "quality":
            filled.append(slot)
        elif allowed and used < classification.quality_days_per_week and used < len(workouts):
            filled.append(workouts[used])
            used += 1
        else:
            filled.append("easy")
    return filled


def _limit_hard_streaks(types: list[str]) -> list[str]:
    """Turn the day that would make a hard streak too long into an easy day."""
    result = list(types)
    streak = 0
    for i, t in enumerate(result):
        hard = t in ("long", "hills", "intervals", "tempo", "race")
        if hard and streak >= MAX_CONSECUTIVE_HARD_DAYS and t != "race":
            result[i] = "easy"
            hard = False
        streak = streak + 1 if hard else 0
    return result


def generate_microcycle(
    week_number: int,
    week_start: str,
    season: SeasonPlan,
    classification: Classification,
    context: ProgressionContext,
    constraints: ProgressionConstraints,
    races: list[RaceEvent] | None = None,
    prior_week: WeeklyPlan | None = None,
    readiness: ReadinessScore | None = None,
    long_run_day: int = LONG_RUN_DAY,
    taper_templates: list[TaperTemplate] | None = None,
) -> WeeklyPlan:
    """
    Build the 7-day plan for one week.

    Steps:
        1. Phase from the segment covering the week's first day
        2. Load and vertical targets inside the constraint bounds
        3. Phase day template, long run on *long_run_day*, quality sessions
           only when phase intensity and readiness allow
        4. Recovery weeks: easy only, one more rest day than the prior week
        5. Taper and race-week days scaled by the taper curve
        6. Race days get a single race session; after an A race the week
           rests

    Args:
        week_number: 1-based week index within the season
        week_start: First day of the week (YYYY-MM-DD)
        season: Season plan the week belongs to
        classification: Athlete classification
        context: Realized state the constraints were computed from
        constraints: Bounds from the progression rules
        races: Race calendar
        prior_week: Previously issued plan, for rest-day comparison
        readiness: Intensity readiness, when known
        long_run_day: Weekday index for the long run (Mon=0)
        taper_templates: Taper curves (config defaults when None)

    Returns:
        WeeklyPlan whose totals stay within the constraint bounds
    """
    if not 0 <= long_run_day <= 6:
        raise InvalidInputError("long_run_day must be a weekday index 0-6")
    races = races or []
    start = parse_date(week_start)
    dates = [format_date(start + timedelta(days=i)) for i in range(7)]
    reasoning: list[str] = []
    warnings: list[str] = []

    segment = segment_for_date(season, week_start)
    if segment is None:
        warnings.append(f"{week_start} is outside the season plan; planning as base building")
        phase = "base_building"
        intensity = 0.6
        target_race = None
    else:
        phase = segment.phase
        intensity = segment.intensity
        target_race = _target_race(segment, week_start, races)

    recovery_week = constraints.must_recover or phase == "recovery"
    load_target, vertical_target = _weekly_targets(
        phase, classification, context, constraints, target_race, reasoning
    )

    slots = _day_slots(phase, recovery_week, prior_week, long_run_day)
    if recovery_week:
        reasoning.append("Easy sessions only this week")
        if (
            prior_week is not None
            and prior_week.rest_day_count + MIN_RECOVERY_EXTRA_REST_DAYS > MAX_RECOVERY_REST_DAYS
        ):
            warnings.append(
                f"Recovery week capped at {MAX_RECOVERY_REST_DAYS} rest days "
                f"(previous week had {prior_week.rest_day_count}); no extra rest day added"
            )
    else:
        slots = _fill_quality(slots, phase, intensity, classification, readiness, reasoning)

    # Race days and what follows them
    races_by_date = {r.date: r for r in races}
    rest_after_a_race = False
    recovery_days_left = 0
    for i, day in enumerate(dates):
        race = races_by_date.get(day)
        if race is not None:
            slots[i] = "race"
            rest_after_a_race = rest_after_a_race or race.priority == "A"
            recovery_days_left = B_RACE_RECOVERY_DAYS if race.priority == "B" else 0
            if i > 0 and slots[i - 1] not in ("rest", "race"):
                slots[i - 1] = "easy"
            if i > 1 and slots[i - 2] in ("long", "intervals", "tempo", "hills"):
                slots[i - 2] = "easy"
        elif rest_after_a_race:
            slots[i] = "rest"
        elif recovery_days_left > 0:
            if slots[i] != "rest":
                slots[i] = "recovery"
            recovery_days_left -= 1
    slots = _limit_hard_streaks(slots)

    # Per-day taper scaling
    scales = []
    for day in dates:
        seg = segment_for_date(season, day)
        scale = 1.0
        if seg is not None and seg.phase in ("taper", "race") and not constraints.must_recover:
            race = next((r for r in races if r.id == seg.race_id and r.date > day), None)
            if race is not None:
                days_to_race = (parse_date(race.date) - parse_date(day)).days
                scale = taper_volume_scale(days_to_race, race.priority, race.distance_km, taper_templates)
        scales.append(scale)
    if any(s < 1.0 for s in scales):
        reasoning.append(f"Taper curve applied (lowest day {min(scales):.0%} of normal volume)")

    training = [(i, t) for i, t in enumerate(slots) if t not in ("rest", "race")]
    load_weight = sum(LOAD_WEIGHTS[t] for _, t in training) or 1.0
    vertical_weight = sum(VERTICAL_WEIGHTS[t] for _, t in training) or 1.0

    days: list[DayPlan] = []
    for i, (day, slot) in enumerate(zip(dates, slots)):
        if slot == "race":
            sessions = [race_session(races_by_date[day])]
        elif slot == "rest":
            sessions = [Session(type="rest", duration_min=0, notes=SESSION_NOTES["rest"])]
        else:
            duration = math.floor(load_target * LOAD_WEIGHTS[slot] / load_weight * scales[i])
            vertical = math.floor(vertical_target * VERTICAL_WEIGHTS[slot] / vertical_weight * scales[i])
            sessions = [
                Session(
                    type=slot,
                    duration_min=duration,
                    distance_km=round(duration / PACE_MIN_PER_KM[slot], 1),
                    vertical_gain_m=vertical,
                    intensity_zones=list(INTENSITY_ZONES[slot]),
                    notes=SESSION_NOTES[slot],
                )
            ]
        days.append(DayPlan(date=day, weekday=WEEKDAYS[i], sessions=sessions))

    plan = WeeklyPlan(
        week_number=week_number,
        phase=phase,
        start_date=week_start,
        days=days,
        target_load_min=load_target,
        target_vertical_m=vertical_target,
        is_recovery_week=recovery_week,
        race_id=target_race.id if target_race is not None else None,
        reasoning=reasoning,
        warnings=warnings,
    )
    logger.debug(
        "Week %d (%s): %.0f min, %.0f m, %d quality, %d rest days",
        week_number,
        phase,
        plan.total_load_min,
        plan.total_vertical_m,
        plan.quality_session_count,
        plan.rest_day_count,
    )
    return plan
