"""
Data models for season-scheduler.

All core dataclasses representing athletes, races, season phases, weekly
plans and feedback. Dates are ISO ``YYYY-MM-DD`` strings; loads are training
time in minutes and vertical gain in meters.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Literal

AthleteCategory = Literal["developing", "experienced"]
RecoveryRatio = Literal["2:1", "3:1"]
RacePriority = Literal["A", "B", "C"]
Phase = Literal["base_building", "sharpening", "taper", "race", "recovery"]
AcwrStatus = Literal["safe", "caution", "danger"]
SessionType = Literal[
    "easy", "long", "recovery", "tempo", "intervals", "hills", "strides", "race", "rest"
]
Severity = Literal["info", "warning", "error", "critical"]
ConflictSeverity = Literal["critical", "warning"]
AdaptationAction = Literal[
    "no_change",
    "reduce_intensity",
    "reduce_volume",
    "insert_rest_day",
    "escalate_to_recovery_week",
]

RECOVERY_RATIOS: tuple[str, ...] = ("2:1", "3:1")
RACE_PRIORITIES: tuple[str, ...] = ("A", "B", "C")
PHASES: tuple[str, ...] = ("base_building", "sharpening", "taper", "race", "recovery")
WEEKDAYS: tuple[str, ...] = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")


class InvalidInputError(ValueError):
    """Raised when a profile, race, context or feedback field is malformed."""


def parse_date(value: str) -> date:
    """
    Parse an ISO date string.

    Raises:
        InvalidInputError: If the string is not a valid YYYY-MM-DD date
    """
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except (TypeError, ValueError) as e:
        raise InvalidInputError(f"Invalid date: {value!r}. Expected YYYY-MM-DD") from e


def format_date(value: date) -> str:
    return value.strftime("%Y-%m-%d")


def shift_date(value: str, days: int) -> str:
    """Return *value* moved by *days* calendar days."""
    return format_date(parse_date(value) + timedelta(days=days))


def days_between(start: str, end: str) -> int:
    """Signed number of days from *start* to *end*."""
    return (parse_date(end) - parse_date(start)).days


@dataclass(frozen=True)
class RaceResult:
    """A race the athlete has already finished."""

    name: str
    distance_km: float
    date: str
    finish_time_hours: float | None = None
    elevation_gain_m: float = 0.0

    def __post_init__(self) -> None:
        if self.distance_km <= 0:
            raise InvalidInputError("race result distance_km must be positive")
        if self.elevation_gain_m < 0:
            raise InvalidInputError("race result elevation_gain_m must be non-negative")
        if self.finish_time_hours is not None and self.finish_time_hours <= 0:
            raise InvalidInputError("finish_time_hours must be positive")
        parse_date(self.date)


@dataclass(frozen=True)
class AthleteProfile:
    """
    Training background of one athlete.

    Immutable for the duration of a plan generation. Weekly load is training
    time in minutes; weekly vertical is elevation gain in meters.
    """

    age: int
    years_training: float
    average_weekly_load: float
    average_weekly_vertical: float = 0.0
    longest_completed_distance_km: float = 0.0
    recent_races: tuple[RaceResult, ...] = ()
    training_consistency: float | None = None  # % of planned sessions completed
    injury_history: tuple[str, ...] = ()
    aerobic_threshold_pace: float | None = None  # min/km
    lactate_threshold_pace: float | None = None  # min/km

    def __post_init__(self) -> None:
        """Validate profile data."""
        if not 10 <= self.age <= 100:
            raise InvalidInputError("age must be between 10 and 100")
        if self.years_training < 0:
            raise InvalidInputError("years_training must be non-negative")
        if self.average_weekly_load < 0:
            raise InvalidInputError("average_weekly_load must be non-negative")
        if self.average_weekly_vertical < 0:
            raise InvalidInputError("average_weekly_vertical must be non-negative")
        if self.longest_completed_distance_km < 0:
            raise InvalidInputError("longest_completed_distance_km must be non-negative")
        if self.training_consistency is not None and not 0 <= self.training_consistency <= 100:
            raise InvalidInputError("training_consistency must be between 0 and 100")
        for pace in (self.aerobic_threshold_pace, self.lactate_threshold_pace):
            if pace is not None and pace <= 0:
                raise InvalidInputError("threshold paces must be positive")


@dataclass
class AerobicAssessment:
    """Aerobic deficiency check from the AeT/LT pace gap."""

    has_deficiency: bool
    gap_percent: float | None
    extend_base_weeks: int
    recommendation: str


@dataclass
class Classification:
    """
    Result of athlete classification.

    Carries no cap on maximum volume; progression is bounded
    by the progression rules alone.
    """

    category: AthleteCategory
    recovery_ratio: RecoveryRatio
    quality_days_per_week: int
    starting_load: float  # minutes per week
    reasoning: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    confidence: int = 100
    aerobic_deficiency: bool = False
    extra_base_weeks: int = 0

    def __post_init__(self) -> None:
        if self.recovery_ratio not in RECOVERY_RATIOS:
            raise InvalidInputError(f"Invalid recovery ratio: {self.recovery_ratio}")
        if self.starting_load < 0:
            raise InvalidInputError("starting_load must be non-negative")

    @property
    def build_cycle_length(self) -> int:
        """Build weeks before a mandatory recovery week (2 for 2:1, 3 for 3:1)."""
        return build_cycle_length(self.recovery_ratio)


def build_cycle_length(recovery_ratio: str) -> int:
    return 2 if recovery_ratio == "2:1" else 3


@dataclass
class ReadinessScore:
    """Blended readiness for intensity work (0-100)."""

    overall: int
    can_progress_to_intensity: bool
    factors: dict[str, int] = field(default_factory=dict)
    blockers: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class RaceEvent:
    """A race on the athlete's calendar."""

    id: str
    name: str
    date: str
    distance_km: float
    elevation_gain_m: float = 0.0
    priority: RacePriority = "A"
    expected_time_min: float | None = None

    def __post_init__(self) -> None:
        """Validate race data."""
        if not self.id:
            raise InvalidInputError("race id must be non-empty")
        if not self.name:
            raise InvalidInputError("race name must be non-empty")
        parse_date(self.date)
        if self.distance_km <= 0:
            raise InvalidInputError(f"race {self.id}: distance_km must be positive")
        if self.elevation_gain_m < 0:
            raise InvalidInputError(f"race {self.id}: elevation_gain_m must be non-negative")
        if self.priority not in RACE_PRIORITIES:
            raise InvalidInputError(f"race {self.id}: invalid priority {self.priority!r}")
        if self.expected_time_min is not None and self.expected_time_min <= 0:
            raise InvalidInputError(f"race {self.id}: expected_time_min must be positive")

    @property
    def vertical_density(self) -> float:
        """Elevation gain per kilometer (m/km)."""
        return self.elevation_gain_m / self.distance_km


@dataclass
class MacrocycleSegment:
    """
    One phase of the season.

    ``end_date`` is exclusive: the segment covers [start_date, end_date).
    """

    phase: Phase
    start_date: str
    end_date: str
    intensity: float
    race_id: str | None = None
    manual_override: bool = False
    display_name: str = ""
    original_weeks: float | None = None
    open_ended: bool = False

    def __post_init__(self) -> None:
        if self.phase not in PHASES:
            raise InvalidInputError(f"Invalid phase: {self.phase}")
        if days_between(self.start_date, self.end_date) <= 0:
            raise InvalidInputError(
                f"segment {self.phase} must end after it starts "
                f"({self.start_date} -> {self.end_date})"
            )
        if not 0.0 <= self.intensity <= 1.0:
            raise InvalidInputError("segment intensity must be within [0, 1]")
        if not self.display_name:
            self.display_name = self.phase.replace("_", " ").title()

    @property
    def duration_days(self) -> int:
        return days_between(self.start_date, self.end_date)

    @property
    def duration_weeks(self) -> float:
        return self.duration_days / 7

    def contains(self, day: str) -> bool:
        return self.start_date <= day < self.end_date


@dataclass
class MacrocycleGroup:
    """Segments that belong to one A race chain, plus its tune-up races."""

    race_id: str
    race_name: str
    race_date: str
    priority: RacePriority
    segments: list[MacrocycleSegment] = field(default_factory=list)
    tune_up_race_ids: list[str] = field(default_factory=list)


@dataclass
class ScheduleConflict:
    """Two races too close together to periodize independently."""

    race_ids: tuple[str, str]
    weeks_between: int
    severity: ConflictSeverity
    message: str
    recommendation: str
    strategy: str = "independent"


@dataclass
class SeasonPlan:
    """Ordered, contiguous phase segments spanning the planning horizon."""

    segments: list[MacrocycleSegment]
    season_start: str
    season_end: str
    groups: list[MacrocycleGroup] = field(default_factory=list)
    conflicts: list[ScheduleConflict] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    # race id -> {phase: weeks} set by manual adjustment
    phase_overrides: dict[str, dict[str, int]] = field(default_factory=dict)

    @property
    def total_weeks(self) -> float:
        return days_between(self.season_start, self.season_end) / 7

    @property
    def has_manual_edits(self) -> bool:
        return bool(self.phase_overrides)


@dataclass(frozen=True)
class WeekLoad:
    """One realized week of trailing history."""

    week_start: str
    total_load_min: float
    total_vertical_m: float = 0.0
    acwr: float | None = None

    def __post_init__(self) -> None:
        parse_date(self.week_start)
        if self.total_load_min < 0:
            raise InvalidInputError("total_load_min must be non-negative")
        if self.total_vertical_m < 0:
            raise InvalidInputError("total_vertical_m must be non-negative")
        if self.acwr is not None and self.acwr < 0:
            raise InvalidInputError("acwr must be non-negative")


@dataclass(frozen=True)
class ProgressionContext:
    """
    Realized training state fed to the progression rules.

    "Current week" is the most recently completed week; the constraints
    returned describe the week about to be planned.
    """

    current_week_load: float
    previous_week_load: float | None = None
    two_weeks_ago_load: float | None = None
    current_week_vertical: float | None = None
    previous_week_vertical: float | None = None
    two_weeks_ago_vertical: float | None = None
    weeks_in_build_cycle: int = 0
    recovery_ratio: RecoveryRatio = "3:1"
    is_intensity_week: bool = False
    current_acwr: float | None = None
    three_weeks_ago_load: float | None = None
    perceived_fatigue: float | None = None  # 0-10 self-report

    def __post_init__(self) -> None:
        """Validate context data."""
        loads = (
            self.current_week_load,
            self.previous_week_load,
            self.two_weeks_ago_load,
            self.three_weeks_ago_load,
            self.current_week_vertical,
            self.previous_week_vertical,
            self.two_weeks_ago_vertical,
        )
        if any(v is not None and v < 0 for v in loads):
            raise InvalidInputError("loads and vertical must be non-negative")
        if self.weeks_in_build_cycle < 0:
            raise InvalidInputError("weeks_in_build_cycle must be non-negative")
        if self.recovery_ratio not in RECOVERY_RATIOS:
            raise InvalidInputError(f"Invalid recovery ratio: {self.recovery_ratio}")
        if self.current_acwr is not None and self.current_acwr < 0:
            raise InvalidInputError("current_acwr must be non-negative")
        if self.perceived_fatigue is not None and not 0 <= self.perceived_fatigue <= 10:
            raise InvalidInputError("perceived_fatigue must be between 0 and 10")


@dataclass
class ProgressionConstraints:
    """
    Bounds for the coming week.

    ``max_load_increase`` is the absolute weekly load ceiling in minutes.
    When recovery is mandatory, ``min_load_decrease`` is the floor of the
    recovery window so the week lands in [min_load_decrease, max_load_increase].
    """

    max_load_increase: float
    min_load_decrease: float | None = None
    max_vertical_increase: float | None = None
    min_vertical_decrease: float | None = None
    must_recover: bool = False
    can_hold_steady: bool = False
    can_increase_load: bool = True
    can_increase_vertical: bool = True
    reasoning: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    acwr_status: AcwrStatus = "safe"
    exclusive_increase: bool = False
    recovery_depth: float | None = None
    fired_rules: list[str] = field(default_factory=list)


@dataclass
class Session:
    """A single planned workout."""

    type: SessionType
    duration_min: float
    distance_km: float = 0.0
    vertical_gain_m: float = 0.0
    intensity_zones: list[str] = field(default_factory=list)
    notes: str = ""

    def __post_init__(self) -> None:
        if self.duration_min < 0 or self.distance_km < 0 or self.vertical_gain_m < 0:
            raise InvalidInputError("session duration, distance and vertical must be non-negative")

    @property
    def is_hard(self) -> bool:
        return self.type in ("tempo", "intervals", "hills", "long", "race")

    @property
    def is_quality(self) -> bool:
        return self.type in ("tempo", "intervals", "hills")


@dataclass
class DayPlan:
    """One calendar day of a weekly plan."""

    date: str
    weekday: str
    sessions: list[Session] = field(default_factory=list)
    notes: str = ""

    @property
    def is_rest(self) -> bool:
        return all(s.type == "rest" for s in self.sessions)

    @property
    def is_hard(self) -> bool:
        return any(s.is_hard for s in self.sessions)

    @property
    def load_min(self) -> float:
        return sum(s.duration_min for s in self.sessions if s.type != "rest")

    @property
    def vertical_m(self) -> float:
        return sum(s.vertical_gain_m for s in self.sessions)

    @property
    def distance_km(self) -> float:
        return sum(s.distance_km for s in self.sessions)


@dataclass
class WeeklyPlan:
    """
    Concrete 7-day session plan for one week of the season.

    Totals are derived from the sessions; targets are what the generator
    aimed for within its constraints.
    """

    week_number: int
    phase: Phase
    start_date: str
    days: list[DayPlan]
    target_load_min: float
    target_vertical_m: float
    is_recovery_week: bool = False
    race_id: str | None = None
    actual_distance_km: float | None = None
    actual_vertical_m: float | None = None
    reasoning: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if len(self.days) != 7:
            raise InvalidInputError("a weekly plan must contain exactly 7 days")

    @property
    def total_load_min(self) -> float:
        return sum(d.load_min for d in self.days)

    @property
    def total_vertical_m(self) -> float:
        return sum(d.vertical_m for d in self.days)

    @property
    def training_load_min(self) -> float:
        """Load excluding race sessions, which are fixed by the calendar."""
        return sum(
            s.duration_min for d in self.days for s in d.sessions if s.type not in ("rest", "race")
        )

    @property
    def training_vertical_m(self) -> float:
        return sum(s.vertical_gain_m for d in self.days for s in d.sessions if s.type != "race")

    @property
    def target_distance_km(self) -> float:
        return round(sum(d.distance_km for d in self.days), 1)

    @property
    def rest_day_count(self) -> int:
        return sum(1 for d in self.days if d.is_rest)

    @property
    def quality_session_count(self) -> int:
        return sum(1 for d in self.days for s in d.sessions if s.is_quality)


@dataclass
class SafetyViolation:
    """A single failed safety rule."""

    rule: str
    message: str
    severity: Severity
    day: str | None = None


@dataclass
class SafetyCheckResult:
    """Outcome of validating a weekly plan."""

    passed: bool
    violations: list[SafetyViolation] = field(default_factory=list)
    clamped_plan: WeeklyPlan | None = None  # set only when clamping happened


@dataclass(frozen=True)
class DailyFeedback:
    """Athlete's end-of-day report."""

    date: str
    rpe: float | None = None  # 1-10
    soreness: float | None = None  # 0-10
    sleep_hours: float | None = None
    perceived_fatigue: float | None = None  # 1-10
    missed_session: bool = False

    def __post_init__(self) -> None:
        """Validate feedback ranges."""
        parse_date(self.date)
        if self.rpe is not None and not 1 <= self.rpe <= 10:
            raise InvalidInputError("rpe must be between 1 and 10")
        if self.soreness is not None and not 0 <= self.soreness <= 10:
            raise InvalidInputError("soreness must be between 0 and 10")
        if self.perceived_fatigue is not None and not 0 <= self.perceived_fatigue <= 10:
            raise InvalidInputError("perceived_fatigue must be between 0 and 10")
        if self.sleep_hours is not None and not 0 <= self.sleep_hours <= 24:
            raise InvalidInputError("sleep_hours must be between 0 and 24")


Trend = Literal["rising", "stable", "falling"]


@dataclass
class FeedbackSignals:
    """Aggregated feedback over a window of days."""

    days: int
    avg_rpe: float | None = None
    avg_fatigue: float | None = None
    fatigue_trend: Trend = "stable"
    avg_soreness: float | None = None
    max_soreness: float | None = None
    soreness_trend: Trend = "stable"
    avg_sleep_hours: float | None = None
    missed_session_rate: float = 0.0
    consecutive_high_fatigue_days: int = 0


@dataclass
class AdaptationDecision:
    """What the feedback controller decided for the rest of the week."""

    action: AdaptationAction
    signals: FeedbackSignals
    reasoning: list[str] = field(default_factory=list)
    adaptations: list[str] = field(default_factory=list)
    affected_dates: list[str] = field(default_factory=list)
