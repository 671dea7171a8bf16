"""
Configuration constants for the periodization model.

All adjustable parameters are centralized here for easy tuning. Phase
duration tiers and taper templates can be overridden from YAML, see
core/engine/config_loader.py.
"""

from dataclasses import dataclass
from typing import Final

# =============================================================================
# ATHLETE CLASSIFICATION
# =============================================================================

YEARS_DEVELOPING_MAX: Final[float] = 2.0  # Fewer years -> developing points
YEARS_EXPERIENCED_MIN: Final[float] = 5.0  # At least this many -> experienced points
LONG_ULTRA_KM: Final[float] = 100.0
ULTRA_KM: Final[float] = 50.0
MARATHON_KM: Final[float] = 42.2
EXPERIENCED_WEEKLY_LOAD_MIN: Final[float] = 360.0  # minutes/week (~6 h)
DEVELOPING_WEEKLY_LOAD_MAX: Final[float] = 240.0  # minutes/week (~4 h)
AGE_MASTERS: Final[int] = 40
AGE_VETERAN: Final[int] = 50
CONSISTENCY_HIGH: Final[float] = 70.0  # % of planned sessions completed

# Score weights (points added to the developing / experienced side)
W_YEARS: Final[int] = 3
W_LONGEST_RACE: Final[int] = 3
W_VOLUME: Final[int] = 3
W_AGE: Final[int] = 2
W_CONSISTENCY: Final[int] = 1
W_INJURY: Final[int] = 1
W_AEROBIC: Final[int] = 2

STARTING_LOAD_FACTOR: Final[dict[str, float]] = {
    "developing": 0.80,
    "experienced": 0.90,
}
STARTING_LOAD_RANGE: Final[dict[str, tuple[float, float]]] = {
    "developing": (120.0, 240.0),
    "experienced": (240.0, 480.0),
}
QUALITY_DAYS: Final[dict[str, int]] = {
    "developing": 1,
    "experienced": 2,
}
RECOVERY_RATIO_BY_CATEGORY: Final[dict[str, str]] = {
    "developing": "2:1",
    "experienced": "3:1",
}

# =============================================================================
# AEROBIC DEFICIENCY (AeT/LT pace gap)
# =============================================================================

AEROBIC_GAP_THRESHOLD_PCT: Final[float] = 10.0  # Gap above this -> deficiency
AEROBIC_STEP_PCT: Final[float] = 5.0  # Every 5% over threshold...
AEROBIC_WEEKS_PER_STEP: Final[int] = 2  # ...adds 2 base weeks
AEROBIC_MAX_EXTENSION_WEEKS: Final[int] = 8

# =============================================================================
# READINESS
# =============================================================================

READINESS_WEIGHTS: Final[dict[str, float]] = {
    "aerobic_base": 0.35,
    "consistency": 0.25,
    "recent_load": 0.25,
    "recovery": 0.15,
}
READINESS_INTENSITY_THRESHOLD: Final[int] = 70
READINESS_MIN_HISTORY_WEEKS: Final[int] = 3
READINESS_DEFAULT_CONSISTENCY: Final[int] = 70
READINESS_DEFAULT_RECOVERY: Final[int] = 70

# =============================================================================
# PROGRESSION RULES
# =============================================================================

STANDARD_INCREASE: Final[float] = 0.10  # Max week-over-week rise
CAUTION_INCREASE: Final[float] = 0.05  # ACWR caution clamp
INTENSITY_WEEK_INCREASE: Final[float] = 0.05  # Volume clamp in intensity weeks
CONSECUTIVE_RISE_INCREASE: Final[float] = 0.05  # Cap after two rises in a row
CONSECUTIVE_RISE_THRESHOLD: Final[float] = 0.10
LARGE_JUMP_THRESHOLD: Final[float] = 0.15  # Prior-week rise forcing recovery

ACWR_LOW: Final[float] = 0.8
ACWR_CAUTION: Final[float] = 1.3
ACWR_DANGER: Final[float] = 1.5
ACWR_CHRONIC_WEEKS: Final[int] = 4  # Chronic window (acute window is one week)

RECOVERY_DEPTH_BASE: Final[float] = 0.40  # Scheduled recovery
RECOVERY_DEPTH_CAUTION: Final[float] = 0.55  # ACWR in caution band
RECOVERY_DEPTH_MAX: Final[float] = 0.60  # ACWR danger or high fatigue
HIGH_FATIGUE: Final[float] = 8.0  # Perceived fatigue forcing max depth

BUILD_RESET_DROP: Final[float] = 0.20  # Drop that counts as a recovery week in history

# =============================================================================
# MACROCYCLE
# =============================================================================


@dataclass(frozen=True)
class PhaseDurations:
    """Phase lengths in weeks for one race-distance tier."""

    base: int
    sharpen: int
    taper: int
    race: int
    recovery: int

    @property
    def build_weeks(self) -> int:
        """Weeks from base start to the end of race week."""
        return self.base + self.sharpen + self.taper + self.race


# (upper distance bound in km, durations); the last tier has no bound.
PHASE_DURATION_TIERS: Final[list[tuple[float | None, PhaseDurations]]] = [
    (21.1, PhaseDurations(base=8, sharpen=4, taper=2, race=1, recovery=1)),
    (50.0, PhaseDurations(base=12, sharpen=6, taper=3, race=1, recovery=2)),
    (99.9, PhaseDurations(base=16, sharpen=8, taper=4, race=1, recovery=3)),
    (None, PhaseDurations(base=18, sharpen=10, taper=4, race=1, recovery=4)),
]

MOUNTAIN_VERTICAL_DENSITY: Final[float] = 40.0  # m/km above which a race is mountainous
MOUNTAIN_EXTRA_BASE_WEEKS: Final[int] = 2

PHASE_INTENSITY: Final[dict[str, float]] = {
    "base_building": 0.6,
    "sharpening": 0.85,
    "taper": 0.5,
    "race": 1.0,
    "recovery": 0.3,
}

# Manual adjustment limits (weeks)
PHASE_WEEK_LIMITS: Final[dict[str, tuple[int, int]]] = {
    "base_building": (4, 24),
    "sharpening": (3, 12),
    "taper": (2, 4),
    "race": (1, 1),
    "recovery": (1, 6),
}

SEASON_HORIZON_WEEKS: Final[int] = 52
BRIDGE_MIN_GAP_WEEKS: Final[int] = 2  # Gaps larger than this get their own base phase
MAINTENANCE_MIN_WEEKS: Final[int] = 2

B_RACE_TAPER_DAYS: Final[int] = 3
B_RACE_RECOVERY_DAYS: Final[int] = 2

# Race proximity
A_RACE_MIN_GAP_WEEKS: Final[int] = 6
SIGNIFICANT_RACE_KM: Final[float] = 30.0
NON_A_MIN_GAP_WEEKS: Final[int] = 3
PROXIMITY_WINDOW_WEEKS: Final[int] = 26  # Pairs further apart are not compared

# =============================================================================
# MICROCYCLE
# =============================================================================

LONG_RUN_DAY: Final[int] = 5  # Saturday (Mon=0)

# Day templates by phase, Monday first. "quality" slots are filled only when
# intensity and readiness allow; otherwise they become easy days.
DAY_TEMPLATES: Final[dict[str, tuple[str, ...]]] = {
    "base_building": ("rest", "quality", "easy", "quality", "rest", "long", "easy"),
    "sharpening": ("rest", "quality", "easy", "quality", "rest", "long", "easy"),
    "taper": ("rest", "quality", "easy", "easy", "rest", "long", "easy"),
    "race": ("rest", "easy", "quality", "easy", "rest", "easy", "easy"),
    "recovery": ("rest", "easy", "rest", "easy", "rest", "easy", "easy"),
}

# Quality workout per phase, in order of slot use
QUALITY_SESSIONS: Final[dict[str, tuple[str, ...]]] = {
    "base_building": ("hills", "strides"),
    "sharpening": ("intervals", "tempo"),
    "taper": ("strides", "strides"),
    "race": ("strides", "strides"),
    "recovery": (),
}
MIN_QUALITY_INTENSITY: Final[float] = 0.5  # Phase intensity needed for quality work

# Share of a week's load each slot receives (relative weights)
LOAD_WEIGHTS: Final[dict[str, float]] = {
    "long": 2.0,
    "hills": 1.1,
    "intervals": 1.1,
    "tempo": 1.2,
    "strides": 0.9,
    "easy": 1.0,
    "recovery": 0.7,
}
VERTICAL_WEIGHTS: Final[dict[str, float]] = {
    "long": 2.5,
    "hills": 1.5,
    "intervals": 0.3,
    "tempo": 0.5,
    "strides": 0.5,
    "easy": 1.0,
    "recovery": 0.5,
}
PACE_MIN_PER_KM: Final[dict[str, float]] = {
    "long": 6.5,
    "easy": 6.2,
    "recovery": 6.8,
    "hills": 6.0,
    "intervals": 5.2,
    "tempo": 5.0,
    "strides": 5.8,
}
INTENSITY_ZONES: Final[dict[str, tuple[str, ...]]] = {
    "easy": ("Z1", "Z2"),
    "long": ("Z1", "Z2"),
    "recovery": ("Z1",),
    "hills": ("Z2", "Z4", "Z5"),
    "intervals": ("Z2", "Z4", "Z5"),
    "tempo": ("Z2", "Z3"),
    "strides": ("Z2", "Z5"),
    "race": ("Z3", "Z4"),
    "rest": (),
}

# Share of the (max - current) headroom a phase takes
PHASE_PROGRESSION_SHARE: Final[dict[str, float]] = {
    "base_building": 1.0,
    "sharpening": 0.75,
    "taper": 0.0,
    "race": 0.0,
    "recovery": 0.0,
}
POST_RACE_LOAD_FACTOR: Final[float] = 0.5  # Recovery-phase weeks after a race

# Peak weekly load targets relative to starting load, by race distance tier
PEAK_LOAD_FACTORS: Final[list[tuple[float | None, float]]] = [
    (21.1, 1.3),
    (50.0, 1.5),
    (99.9, 1.8),
    (None, 2.0),
]
DEFAULT_VERTICAL_DENSITY: Final[float] = 10.0  # m/km when no race is targeted
RACE_PACE_MIN_PER_KM: Final[float] = 6.0
RACE_MIN_PER_100M_VERT: Final[float] = 10.0
MIN_RECOVERY_EXTRA_REST_DAYS: Final[int] = 1
MAX_RECOVERY_REST_DAYS: Final[int] = 5  # Recovery weeks keep at least two easy runs


@dataclass(frozen=True)
class TaperTemplate:
    """
    Daily volume curve for the final days before a race.

    ``volume_curve[i]`` is the share of normal daily volume on the day
    ``len(volume_curve) - i`` days before the race.
    """

    priority: str
    min_km: float
    max_km: float | None
    volume_curve: tuple[float, ...]

    @property
    def duration_days(self) -> int:
        return len(self.volume_curve)

    def matches(self, priority: str, distance_km: float) -> bool:
        if priority != self.priority or distance_km < self.min_km:
            return False
        return self.max_km is None or distance_km <= self.max_km


TAPER_TEMPLATES: Final[list[TaperTemplate]] = [
    TaperTemplate("A", 0.0, 10.0, (0.85, 0.75, 0.65, 0.55, 0.50)),
    TaperTemplate("A", 10.0, 25.0, (0.85, 0.80, 0.70, 0.65, 0.55, 0.50, 0.45)),
    TaperTemplate(
        "A", 25.0, 50.0, (0.90, 0.85, 0.80, 0.75, 0.70, 0.65, 0.55, 0.50, 0.45, 0.40)
    ),
    TaperTemplate(
        "A",
        50.0,
        100.0,
        (0.90, 0.85, 0.80, 0.75, 0.70, 0.65, 0.60, 0.55, 0.50, 0.45, 0.40, 0.35),
    ),
    TaperTemplate(
        "A",
        100.0,
        None,
        (0.90, 0.85, 0.80, 0.75, 0.70, 0.65, 0.60, 0.55, 0.50, 0.45, 0.40, 0.35, 0.30, 0.25),
    ),
    TaperTemplate("B", 0.0, 30.0, (0.90, 0.80, 0.70)),
    TaperTemplate("B", 30.0, 60.0, (0.90, 0.85, 0.80, 0.70, 0.60)),
    TaperTemplate("B", 60.0, None, (0.90, 0.85, 0.80, 0.75, 0.70, 0.60, 0.55)),
    TaperTemplate("C", 0.0, None, (0.90,)),
]

# =============================================================================
# SAFETY
# =============================================================================

SESSION_OUTLIER_MARGIN: Final[float] = 1.25  # x longest completed distance
MIN_SESSION_CAP_KM: Final[float] = 10.0  # Floor when the athlete has no long runs
MAX_CONSECUTIVE_HARD_DAYS: Final[int] = 2
MIN_REST_DAYS: Final[int] = 1
LOAD_TOLERANCE_MIN: Final[float] = 0.5  # Rounding slack on weekly bounds
VERTICAL_TOLERANCE_M: Final[float] = 1.0

# =============================================================================
# ADAPTIVE FEEDBACK
# =============================================================================

FATIGUE_ESCALATE: Final[float] = 8.0  # Avg fatigue -> recovery week
SORENESS_ESCALATE: Final[float] = 8.0  # Any day this sore -> recovery week
FATIGUE_HIGH_DAY: Final[float] = 7.0  # A "high fatigue" day
CONSECUTIVE_HIGH_FATIGUE_DAYS: Final[int] = 3  # -> insert rest day
FATIGUE_ELEVATED: Final[float] = 6.0
SORENESS_ELEVATED: Final[float] = 6.0
MISSED_SESSION_RATE_HIGH: Final[float] = 0.3
RPE_HIGH: Final[float] = 8.0
SLEEP_LOW_HOURS: Final[float] = 6.0
TREND_DELTA: Final[float] = 1.0  # Mean change that counts as a trend
DEVELOPING_THRESHOLD_OFFSET: Final[float] = 0.5  # Developing athletes react sooner

ADAPT_VOLUME_FACTOR: Final[float] = 0.80
ADAPT_EASY_FACTOR: Final[float] = 0.90  # Quality session converted to easy
ADAPT_RECOVERY_FACTOR: Final[float] = 0.50
