"""
Macrocycle planning.

Backward-schedules season phases from each A race, chains several races
into one season, splices B/C tune-up races into their host phases and flags
races that sit too close together.

Segments use exclusive end dates. The race day is the last day of the race
segment, so for a race on date D:

    race_end      = D + 1 day
    race_start    = race_end - race weeks
    taper_start   = race_start - taper weeks
    sharpen_start = taper_start - sharpen weeks
    base_start    = sharpen_start - base weeks
    recovery_end  = race_end + recovery weeks
"""

import logging
import math
from dataclasses import replace
from datetime import date, timedelta

from .config import (
    A_RACE_MIN_GAP_WEEKS,
    B_RACE_RECOVERY_DAYS,
    B_RACE_TAPER_DAYS,
    BRIDGE_MIN_GAP_WEEKS,
    MAINTENANCE_MIN_WEEKS,
    MOUNTAIN_EXTRA_BASE_WEEKS,
    MOUNTAIN_VERTICAL_DENSITY,
    NON_A_MIN_GAP_WEEKS,
    PHASE_DURATION_TIERS,
    PHASE_INTENSITY,
    PHASE_WEEK_LIMITS,
    PROXIMITY_WINDOW_WEEKS,
    SEASON_HORIZON_WEEKS,
    SIGNIFICANT_RACE_KM,
    PhaseDurations,
)
from .models import (
    Classification,
    InvalidInputError,
    MacrocycleGroup,
    MacrocycleSegment,
    RaceEvent,
    ScheduleConflict,
    SeasonPlan,
    format_date,
    parse_date,
)

logger = logging.getLogger(__name__)

PhaseTiers = list[tuple[float | None, PhaseDurations]]
PhaseOverrides = dict[str, dict[str, int]]

# Phase name -> PhaseDurations field
_DURATION_FIELDS: dict[str, str] = {
    "base_building": "base",
    "sharpening": "sharpen",
    "taper": "taper",
    "race": "race",
    "recovery": "recovery",
}
_HOSTLESS_PHASES = ("race", "recovery")


def _weeks(n: float) -> timedelta:
    return timedelta(days=round(n * 7))


def _segment(
    phase: str,
    start: date,
    end: date,
    race_id: str | None = None,
    display_name: str = "",
    original_weeks: float | None = None,
    manual_override: bool = False,
    open_ended: bool = False,
) -> MacrocycleSegment:
    return MacrocycleSegment(
        phase=phase,
        start_date=format_date(start),
        end_date=format_date(end),
        intensity=PHASE_INTENSITY[phase],
        race_id=race_id,
        manual_override=manual_override,
        display_name=display_name,
        original_weeks=original_weeks,
        open_ended=open_ended,
    )


def phase_durations_for_race(
    race: RaceEvent,
    tiers: PhaseTiers | None = None,
    extra_base_weeks: int = 0,
    overrides: dict[str, int] | None = None,
) -> PhaseDurations:
    """
    Look up phase lengths for a race.

    The distance tier gives the base table; mountainous races (more than
    MOUNTAIN_VERTICAL_DENSITY m/km) and aerobic deficiency add base weeks.
    Manual overrides replace individual phases last.

    Args:
        race: Target race
        tiers: (max_km, durations) pairs; defaults to config tiers
        extra_base_weeks: Additional base weeks (e.g. from classification)
        overrides: {phase: weeks} manual adjustments

    Returns:
        PhaseDurations in weeks
    """
    tiers = tiers or PHASE_DURATION_TIERS
    durations = tiers[-1][1]
    for bound, candidate in tiers:
        if bound is None or race.distance_km <= bound:
            durations = candidate
            break

    extra = extra_base_weeks
    if race.vertical_density > MOUNTAIN_VERTICAL_DENSITY:
        extra += MOUNTAIN_EXTRA_BASE_WEEKS
    if extra:
        durations = replace(durations, base=durations.base + extra)

    if overrides:
        durations = replace(
            durations, **{_DURATION_FIELDS[phase]: weeks for phase, weeks in overrides.items()}
        )
    return durations


def generate_race_chain(
    race: RaceEvent,
    durations: PhaseDurations,
    manual_phases: tuple[str, ...] = (),
) -> list[MacrocycleSegment]:
    """
    Backward-schedule base -> sharpen -> taper -> race -> recovery for one race.

    Phases with zero weeks are omitted.
    """
    race_end = parse_date(race.date) + timedelta(days=1)
    race_start = race_end - _weeks(durations.race)
    taper_start = race_start - _weeks(durations.taper)
    sharpen_start = taper_start - _weeks(durations.sharpen)
    base_start = sharpen_start - _weeks(durations.base)
    recovery_end = race_end + _weeks(durations.recovery)

    bounds = [
        ("base_building", base_start, sharpen_start, durations.base, "Base Building"),
        ("sharpening", sharpen_start, taper_start, durations.sharpen, "Sharpening"),
        ("taper", taper_start, race_start, durations.taper, "Taper"),
        ("race", race_start, race_end, durations.race, race.name),
        ("recovery", race_end, recovery_end, durations.recovery, "Recovery"),
    ]
    return [
        _segment(
            phase,
            start,
            end,
            race_id=race.id,
            display_name=name,
            original_weeks=weeks,
            manual_override=phase in manual_phases,
        )
        for phase, start, end, weeks, name in bounds
        if end > start
    ]


def _truncate_head(segments: list[MacrocycleSegment], cursor: date) -> list[MacrocycleSegment]:
    """Drop segments ending on/before *cursor*; start the straddling one at *cursor*."""
    kept = []
    for seg in segments:
        start, end = parse_date(seg.start_date), parse_date(seg.end_date)
        if end <= cursor:
            continue
        if start < cursor:
            seg = replace(seg, start_date=format_date(cursor))
        kept.append(seg)
    return kept


def _trim_tail(segments: list[MacrocycleSegment], new_end: date) -> list[MacrocycleSegment]:
    """Drop segments starting on/after *new_end*; end the straddling one at *new_end*."""
    kept = []
    for seg in segments:
        start, end = parse_date(seg.start_date), parse_date(seg.end_date)
        if start >= new_end:
            continue
        if end > new_end:
            seg = replace(seg, end_date=format_date(new_end))
        kept.append(seg)
    return kept


def _chain_start(chain: list[MacrocycleSegment], phase: str) -> date | None:
    for seg in chain:
        if seg.phase == phase:
            return parse_date(seg.start_date)
    return None


def splice_tune_up_races(
    segments: list[MacrocycleSegment],
    tune_ups: list[RaceEvent],
) -> tuple[list[MacrocycleSegment], list[str], list[str]]:
    """
    Splice B/C races into the segment that contains their race day.

    B race: taper (3 days) + race day + recovery (2 days).
    C race: race day only.
    The host is split around the inserted block and clipped to it. Race and
    recovery segments, and blocks from other tune-ups, are never hosts.

    Returns:
        (segments, ids of spliced races, warnings)
    """
    result = list(segments)
    spliced: list[str] = []
    warnings: list[str] = []

    for race in sorted(tune_ups, key=lambda r: r.date):
        index = next((i for i, s in enumerate(result) if s.contains(race.date)), None)
        if index is None:
            warnings.append(f"{race.name} ({race.priority}) on {race.date} is outside the season plan")
            continue
        host = result[index]
        if host.phase in _HOSTLESS_PHASES or host.race_id in spliced:
            warnings.append(
                f"{race.name} ({race.priority}) on {race.date} falls in "
                f"{host.display_name}; no tune-up block inserted"
            )
            continue

        day = parse_date(race.date)
        if race.priority == "B":
            pieces = [
                ("taper", day - timedelta(days=B_RACE_TAPER_DAYS), day, f"{race.name} Taper"),
                ("race", day, day + timedelta(days=1), race.name),
                ("recovery", day + timedelta(days=1), day + timedelta(days=1 + B_RACE_RECOVERY_DAYS),
                 f"{race.name} Recovery"),
            ]
        else:
            pieces = [("race", day, day + timedelta(days=1), race.name)]

        host_start, host_end = parse_date(host.start_date), parse_date(host.end_date)
        clipped = [
            (phase, max(start, host_start), min(end, host_end), name)
            for phase, start, end, name in pieces
        ]
        clipped = [p for p in clipped if p[2] > p[1]]

        block: list[MacrocycleSegment] = []
        if clipped[0][1] > host_start:
            block.append(replace(host, end_date=format_date(clipped[0][1])))
        block.extend(_segment(phase, start, end, race.id, name) for phase, start, end, name in clipped)
        if clipped[-1][2] < host_end:
            block.append(replace(host, start_date=format_date(clipped[-1][2])))

        result[index : index + 1] = block
        spliced.append(race.id)
        logger.debug("Spliced %s race %s into %s", race.priority, race.id, host.display_name)

    return result, spliced, warnings


def _weeks_between(earlier: RaceEvent, later: RaceEvent) -> int:
    return math.ceil((parse_date(later.date) - parse_date(earlier.date)).days / 7)


def check_race_proximity(
    races: list[RaceEvent],
    tiers: PhaseTiers | None = None,
) -> list[ScheduleConflict]:
    """
    Flag races scheduled too close together to periodize independently.

    - Consecutive A races closer than max(A_RACE_MIN_GAP_WEEKS, recovery of
      the first + taper and race of the second) are critical.
    - Consecutive A races closer than a full build for the second race get
      a warning (compressed build).
    - A tune-up inside an A race's recovery, and significant non-A races
      (> SIGNIFICANT_RACE_KM) within NON_A_MIN_GAP_WEEKS, get a warning.

    Args:
        races: Race calendar, any order

    Returns:
        Conflicts ordered by the earlier race's date
    """
    ordered = sorted(races, key=lambda r: r.date)
    conflicts: list[ScheduleConflict] = []

    a_races = [r for r in ordered if r.priority == "A"]
    for earlier, later in zip(a_races, a_races[1:]):
        weeks = _weeks_between(earlier, later)
        first = phase_durations_for_race(earlier, tiers)
        second = phase_durations_for_race(later, tiers)
        min_independent = max(A_RACE_MIN_GAP_WEEKS, first.recovery + second.taper + second.race)
        if weeks < min_independent:
            conflicts.append(
                ScheduleConflict(
                    race_ids=(earlier.id, later.id),
                    weeks_between=weeks,
                    severity="critical",
                    message=(
                        f"Critical: only {weeks} weeks between A priority races "
                        f"{earlier.name} and {later.name}; recovery and taper overlap."
                    ),
                    recommendation=f"Consider treating {earlier.name} as a B race.",
                    strategy="prioritize_later_race",
                )
            )
        elif weeks < first.recovery + second.build_weeks:
            conflicts.append(
                ScheduleConflict(
                    race_ids=(earlier.id, later.id),
                    weeks_between=weeks,
                    severity="warning",
                    message=(
                        f"{weeks} weeks between {earlier.name} and {later.name} is shorter "
                        f"than a full build ({first.recovery + second.build_weeks} weeks)."
                    ),
                    recommendation=f"Expect shortened base and sharpening before {later.name}.",
                    strategy="compressed_build",
                )
            )

    for i, earlier in enumerate(ordered):
        for later in ordered[i + 1 :]:
            if earlier.priority == "A" and later.priority == "A":
                continue
            weeks = _weeks_between(earlier, later)
            if weeks > PROXIMITY_WINDOW_WEEKS:
                break
            if earlier.priority == "A":
                recovery = phase_durations_for_race(earlier, tiers).recovery
                if (parse_date(later.date) - parse_date(earlier.date)).days <= recovery * 7:
                    conflicts.append(
                        ScheduleConflict(
                            race_ids=(earlier.id, later.id),
                            weeks_between=weeks,
                            severity="warning",
                            message=f"{later.name} falls inside the recovery after {earlier.name}.",
                            recommendation=f"Run {later.name} as an easy effort or move it later.",
                            strategy="prioritize_earlier_race",
                        )
                    )
            elif (
                weeks < NON_A_MIN_GAP_WEEKS
                and max(earlier.distance_km, later.distance_km) > SIGNIFICANT_RACE_KM
            ):
                conflicts.append(
                    ScheduleConflict(
                        race_ids=(earlier.id, later.id),
                        weeks_between=weeks,
                        severity="warning",
                        message=(
                            f"Caution: only {weeks} weeks between {earlier.name} and "
                            f"{later.name}; recovery may be incomplete."
                        ),
                        recommendation="Keep one of the two races at training effort.",
                    )
                )

    race_dates = {r.id: r.date for r in ordered}
    conflicts.sort(key=lambda c: race_dates[c.race_ids[0]])
    return conflicts


def generate_season_plan(
    races: list[RaceEvent],
    now: str,
    classification: Classification | None = None,
    horizon_weeks: int = SEASON_HORIZON_WEEKS,
    tiers: PhaseTiers | None = None,
    phase_overrides: PhaseOverrides | None = None,
) -> SeasonPlan:
    """
    Build the season from the race calendar.

    A races are chained chronologically. Segments entirely in the past are
    dropped and the first straddling one starts at *now*. Gaps larger than
    BRIDGE_MIN_GAP_WEEKS before a chain get a bridging base phase; smaller
    gaps extend the next base phase. Overlapping chains trim the previous
    recovery, never the previous race. After the last chain a maintenance
    base phase fills the horizon; with no A race the whole horizon is one
    open-ended base phase. B/C races are spliced in last.

    Args:
        races: Race calendar
        now: Planning date (YYYY-MM-DD)
        classification: Adds aerobic-deficiency base weeks when given
        horizon_weeks: Planning horizon from *now*
        tiers: Phase-duration tiers (config defaults when None)
        phase_overrides: {race_id: {phase: weeks}} manual adjustments

    Returns:
        SeasonPlan with contiguous, non-overlapping segments
    """
    if horizon_weeks < 1:
        raise InvalidInputError("horizon_weeks must be at least 1")
    ids = [r.id for r in races]
    if len(ids) != len(set(ids)):
        raise InvalidInputError("race ids must be unique")
    today = parse_date(now)
    horizon_end = today + timedelta(weeks=horizon_weeks)
    overrides = phase_overrides or {}
    extra_base = classification.extra_base_weeks if classification else 0

    warnings: list[str] = []
    upcoming: list[RaceEvent] = []
    for race in sorted(races, key=lambda r: r.date):
        day = parse_date(race.date)
        if day < today:
            logger.debug("Ignoring past race %s (%s)", race.id, race.date)
        elif day >= horizon_end:
            warnings.append(f"{race.name} on {race.date} is beyond the {horizon_weeks}-week horizon")
        else:
            upcoming.append(race)

    a_races = [r for r in upcoming if r.priority == "A"]
    tune_ups = [r for r in upcoming if r.priority != "A"]

    segments: list[MacrocycleSegment] = []
    spans: list[tuple[RaceEvent, date, date]] = []
    cursor = today
    previous_race_end: date | None = None

    for race in a_races:
        race_overrides = overrides.get(race.id, {})
        durations = phase_durations_for_race(race, tiers, extra_base, race_overrides)
        chain = generate_race_chain(race, durations, tuple(race_overrides))
        span_start = cursor
        natural_start = parse_date(chain[0].start_date)

        if natural_start > cursor:
            if (natural_start - cursor).days > BRIDGE_MIN_GAP_WEEKS * 7:
                segments.append(
                    _segment("base_building", cursor, natural_start, race.id, "Base Building (bridge)")
                )
            else:
                chain[0] = replace(chain[0], start_date=format_date(cursor))
        elif natural_start < cursor:
            protected = _chain_start(chain, "taper") or _chain_start(chain, "race")
            if previous_race_end is not None and protected is not None and protected < cursor:
                new_cursor = max(previous_race_end, protected)
                segments = _trim_tail(segments, new_cursor)
                warnings.append(
                    f"Recovery before {race.name} shortened to fit its taper"
                )
                cursor = new_cursor
                span_start = cursor
            chain = _truncate_head(chain, cursor)

        if not any(seg.phase == "race" for seg in chain):
            warnings.append(f"{race.name} overlaps the previous race and is not periodized separately")
            continue

        segments.extend(chain)
        cursor = parse_date(chain[-1].end_date)
        previous_race_end = parse_date(race.date) + timedelta(days=1)
        spans.append((race, span_start, cursor))

    if (horizon_end - cursor).days > MAINTENANCE_MIN_WEEKS * 7 or not segments:
        end = max(horizon_end, cursor + timedelta(days=1))
        segments.append(
            _segment(
                "base_building",
                cursor,
                end,
                display_name="Maintenance Base" if spans else "Base Building",
                open_ended=not spans,
            )
        )

    segments, spliced, splice_warnings = splice_tune_up_races(segments, tune_ups)
    warnings.extend(splice_warnings)

    groups = []
    for race, start, end in spans:
        members = [s for s in segments if start <= parse_date(s.start_date) < end]
        groups.append(
            MacrocycleGroup(
                race_id=race.id,
                race_name=race.name,
                race_date=race.date,
                priority=race.priority,
                segments=members,
                tune_up_race_ids=[r.id for r in tune_ups if r.id in spliced and start <= parse_date(r.date) < end],
            )
        )

    plan = SeasonPlan(
        segments=segments,
        season_start=segments[0].start_date,
        season_end=segments[-1].end_date,
        groups=groups,
        conflicts=check_race_proximity(upcoming, tiers),
        warnings=warnings,
        phase_overrides={race_id: dict(p) for race_id, p in overrides.items()},
    )
    logger.info(
        "Season plan: %d segments over %.1f weeks, %d A races, %d conflicts",
        len(plan.segments),
        plan.total_weeks,
        len(spans),
        len(plan.conflicts),
    )
    return plan


def segment_for_date(plan: SeasonPlan, day: str) -> MacrocycleSegment | None:
    """Return the segment covering *day*, or None outside the season."""
    for seg in plan.segments:
        if seg.contains(day):
            return seg
    return None


def adjust_segment_duration(
    plan: SeasonPlan,
    index: int,
    weeks: int,
    races: list[RaceEvent],
    now: str,
    classification: Classification | None = None,
    horizon_weeks: int = SEASON_HORIZON_WEEKS,
    tiers: PhaseTiers | None = None,
) -> SeasonPlan:
    """
    Manually change one phase of an A race chain and re-chain its dates.

    The requested length is clamped to PHASE_WEEK_LIMITS. Dates are
    recalculated backward from the race, so lengthening a phase moves the
    phases before it earlier. The edit is recorded in ``phase_overrides``.

    Raises:
        InvalidInputError: If *index* is out of range or the segment is not
            a phase of an A race chain
    """
    if not 0 <= index < len(plan.segments):
        raise InvalidInputError(f"No segment at index {index}")
    segment = plan.segments[index]
    chain_ids = {g.race_id for g in plan.groups}
    if segment.race_id not in chain_ids or segment.display_name.endswith("(bridge)"):
        raise InvalidInputError(
            f"{segment.display_name} is not part of an A race chain and cannot be adjusted"
        )

    low, high = PHASE_WEEK_LIMITS[segment.phase]
    clamped = max(low, min(high, weeks))
    overrides = {race_id: dict(p) for race_id, p in plan.phase_overrides.items()}
    overrides.setdefault(segment.race_id, {})[segment.phase] = clamped

    adjusted = generate_season_plan(
        races, now, classification, horizon_weeks, tiers, phase_overrides=overrides
    )
    if clamped != weeks:
        adjusted.warnings.append(
            f"{segment.display_name} length {weeks} weeks clamped to {clamped} ({low}-{high})"
        )
    return adjusted


def detect_plan_conflict(plan: SeasonPlan, races: list[RaceEvent]) -> list[str]:
    """
    Find manual edits invalidated by a changed race calendar.

    Returns:
        One message per manually adjusted race that was removed or moved
    """
    by_id = {r.id: r for r in races}
    planned_dates = {g.race_id: g.race_date for g in plan.groups}
    messages = []
    for race_id in plan.phase_overrides:
        race = by_id.get(race_id)
        if race is None or race.priority != "A":
            messages.append(f"Manually adjusted race {race_id} is no longer an A race on the calendar")
        elif planned_dates.get(race_id) not in (None, race.date):
            messages.append(
                f"{race.name} moved from {planned_dates[race_id]} to {race.date}; "
                f"manual phase lengths may no longer fit"
            )
    return messages


def reconcile_season_plan(
    existing: SeasonPlan,
    races: list[RaceEvent],
    now: str,
    classification: Classification | None = None,
    horizon_weeks: int = SEASON_HORIZON_WEEKS,
    tiers: PhaseTiers | None = None,
    force: bool = False,
) -> tuple[SeasonPlan, list[str]]:
    """
    Regenerate a season plan after the race calendar changed.

    Manual edits are carried into the new plan. When an edited race was
    moved or removed the existing plan is returned unchanged together with
    the conflicts, unless *force* is set, in which case the plan is rebuilt
    from scratch and the edits are dropped.

    Returns:
        (plan, conflict messages)
    """
    conflicts = detect_plan_conflict(existing, races)
    if force:
        if existing.has_manual_edits:
            logger.info("Forced regeneration discards manual edits for %s", list(existing.phase_overrides))
        return generate_season_plan(races, now, classification, horizon_weeks, tiers), conflicts
    if conflicts:
        for message in conflicts:
            logger.warning(message)
        return existing, conflicts
    return (
        generate_season_plan(
            races, now, classification, horizon_weeks, tiers,
            phase_overrides=existing.phase_overrides,
        ),
        [],
    )
