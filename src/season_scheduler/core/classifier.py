"""
Athlete classification.

Scores an athlete's background into a training category, which sets the
recovery ratio, quality-session allowance and conservative starting load.
Also hosts the aerobic-deficiency check and the intensity-readiness score.
"""

import logging
import math

from .config import (
    AEROBIC_GAP_THRESHOLD_PCT,
    AEROBIC_MAX_EXTENSION_WEEKS,
    AEROBIC_STEP_PCT,
    AEROBIC_WEEKS_PER_STEP,
    AGE_MASTERS,
    AGE_VETERAN,
    CONSISTENCY_HIGH,
    DEVELOPING_WEEKLY_LOAD_MAX,
    EXPERIENCED_WEEKLY_LOAD_MIN,
    LONG_ULTRA_KM,
    MARATHON_KM,
    QUALITY_DAYS,
    READINESS_DEFAULT_CONSISTENCY,
    READINESS_DEFAULT_RECOVERY,
    READINESS_INTENSITY_THRESHOLD,
    READINESS_MIN_HISTORY_WEEKS,
    READINESS_WEIGHTS,
    RECOVERY_RATIO_BY_CATEGORY,
    STARTING_LOAD_FACTOR,
    STARTING_LOAD_RANGE,
    ULTRA_KM,
    W_AEROBIC,
    W_AGE,
    W_CONSISTENCY,
    W_INJURY,
    W_LONGEST_RACE,
    W_VOLUME,
    W_YEARS,
    YEARS_DEVELOPING_MAX,
    YEARS_EXPERIENCED_MIN,
)
from .models import AerobicAssessment, AthleteProfile, Classification, ReadinessScore

logger = logging.getLogger(__name__)


def assess_aerobic_deficiency(
    aerobic_threshold_pace: float | None,
    lactate_threshold_pace: float | None,
) -> AerobicAssessment:
    """
    Check the gap between aerobic and lactate threshold paces.

    gap = (AeT pace - LT pace) / AeT pace, paces in min/km. A gap above
    AEROBIC_GAP_THRESHOLD_PCT means the aerobic base lags the top end; base
    phase is extended by AEROBIC_WEEKS_PER_STEP weeks for every
    AEROBIC_STEP_PCT over the threshold, capped at AEROBIC_MAX_EXTENSION_WEEKS.

    Args:
        aerobic_threshold_pace: AeT pace in min/km, or None
        lactate_threshold_pace: LT pace in min/km, or None

    Returns:
        AerobicAssessment (no deficiency when either pace is missing)
    """
    if aerobic_threshold_pace is None or lactate_threshold_pace is None:
        return AerobicAssessment(
            has_deficiency=False,
            gap_percent=None,
            extend_base_weeks=0,
            recommendation="Threshold test data missing; aerobic base not assessed.",
        )

    gap = (aerobic_threshold_pace - lactate_threshold_pace) / aerobic_threshold_pace * 100
    gap = round(gap, 1)
    if gap <= AEROBIC_GAP_THRESHOLD_PCT:
        return AerobicAssessment(
            has_deficiency=False,
            gap_percent=gap,
            extend_base_weeks=0,
            recommendation=f"AeT/LT gap {gap:.1f}% is within {AEROBIC_GAP_THRESHOLD_PCT:.0f}%.",
        )

    excess = gap - AEROBIC_GAP_THRESHOLD_PCT
    weeks = min(
        math.ceil(excess / AEROBIC_STEP_PCT) * AEROBIC_WEEKS_PER_STEP,
        AEROBIC_MAX_EXTENSION_WEEKS,
    )
    return AerobicAssessment(
        has_deficiency=True,
        gap_percent=gap,
        extend_base_weeks=weeks,
        recommendation=(
            f"AeT/LT gap {gap:.1f}% exceeds {AEROBIC_GAP_THRESHOLD_PCT:.0f}%: "
            f"extend base building by {weeks} weeks of easy aerobic volume."
        ),
    )


def _starting_load(category: str, average_weekly_load: float) -> float:
    low, high = STARTING_LOAD_RANGE[category]
    load = average_weekly_load * STARTING_LOAD_FACTOR[category]
    return round(max(low, min(high, load)))


def classify_athlete(profile: AthleteProfile) -> Classification:
    """
    Classify an athlete as developing or experienced.

    Each factor adds weighted points to one side; the larger side wins and
    ties go to developing. Confidence is the winning share of all points.

    Factors:
        - training years (< 2 developing, >= 5 experienced, otherwise both)
        - longest race (ultra experience favors experienced)
        - average weekly volume in minutes
        - age (masters and veterans favor developing)
        - optional: consistency, injury history, aerobic deficiency

    Args:
        profile: Athlete background

    Returns:
        Classification with reasoning for each factor
    """
    developing = 0
    experienced = 0
    reasoning: list[str] = []
    warnings: list[str] = []

    if profile.years_training < YEARS_DEVELOPING_MAX:
        developing += W_YEARS
        reasoning.append(f"{profile.years_training:g} years of training: still developing")
    elif profile.years_training >= YEARS_EXPERIENCED_MIN:
        experienced += W_YEARS
        reasoning.append(f"{profile.years_training:g} years of training: established base")
    else:
        developing += 1
        experienced += 1
        reasoning.append(f"{profile.years_training:g} years of training: intermediate")

    longest = max(
        [profile.longest_completed_distance_km] + [r.distance_km for r in profile.recent_races]
    )
    if longest >= LONG_ULTRA_KM:
        experienced += W_LONGEST_RACE + 1
        reasoning.append(f"Completed {longest:g} km: long-ultra experience")
    elif longest >= ULTRA_KM:
        experienced += W_LONGEST_RACE
        reasoning.append(f"Completed {longest:g} km: ultra experience")
    elif longest >= MARATHON_KM:
        experienced += 1
        developing += 1
        reasoning.append(f"Completed {longest:g} km: marathon experience")
    else:
        developing += W_LONGEST_RACE - 1
        reasoning.append(
            f"Longest distance {longest:g} km: no marathon-distance experience"
            if longest > 0
            else "No completed race distance on record"
        )

    load = profile.average_weekly_load
    if load >= EXPERIENCED_WEEKLY_LOAD_MIN:
        experienced += W_VOLUME
        reasoning.append(f"{load:.0f} min/week: high training volume")
    elif load < DEVELOPING_WEEKLY_LOAD_MAX:
        developing += W_VOLUME - 1
        reasoning.append(f"{load:.0f} min/week: building training volume")
    else:
        developing += 1
        experienced += 1
        reasoning.append(f"{load:.0f} min/week: moderate training volume")

    if profile.age >= AGE_VETERAN:
        developing += W_AGE
        reasoning.append(f"Age {profile.age}: veteran athlete, longer recovery needed")
        warnings.append("Veteran athlete: extra recovery and strength work recommended")
    elif profile.age >= AGE_MASTERS:
        developing += W_AGE - 1
        reasoning.append(f"Age {profile.age}: masters athlete")

    if profile.training_consistency is not None and profile.training_consistency >= CONSISTENCY_HIGH:
        experienced += W_CONSISTENCY
        reasoning.append(f"Consistency {profile.training_consistency:.0f}%: reliable training")

    if profile.injury_history:
        developing += W_INJURY
        reasoning.append(f"{len(profile.injury_history)} past injuries: conservative progression")
        if len(profile.injury_history) >= 2:
            warnings.append("Multiple past injuries: monitor load closely")

    aerobic = assess_aerobic_deficiency(
        profile.aerobic_threshold_pace, profile.lactate_threshold_pace
    )
    if aerobic.has_deficiency:
        developing += W_AEROBIC
        reasoning.append(aerobic.recommendation)

    category = "experienced" if experienced > developing else "developing"
    total = developing + experienced
    confidence = round(max(developing, experienced) / total * 100) if total else 50

    classification = Classification(
        category=category,
        recovery_ratio=RECOVERY_RATIO_BY_CATEGORY[category],
        quality_days_per_week=QUALITY_DAYS[category],
        starting_load=_starting_load(category, profile.average_weekly_load),
        reasoning=reasoning,
        warnings=warnings,
        confidence=confidence,
        aerobic_deficiency=aerobic.has_deficiency,
        extra_base_weeks=aerobic.extend_base_weeks,
    )
    logger.info(
        "Classified athlete as %s (%d vs %d points, confidence=%d%%)",
        category,
        experienced,
        developing,
        confidence,
    )
    return classification


def calculate_readiness(
    profile: AthleteProfile,
    classification: Classification,
    recent_weekly_loads: list[float],
    recent_fatigue: list[float] | None = None,
) -> ReadinessScore:
    """
    Blend aerobic base, consistency, recent load and recovery into 0-100.

    Intensity work is unlocked when the score reaches
    READINESS_INTENSITY_THRESHOLD and nothing blocks it.

    Args:
        profile: Athlete background
        classification: Result of classify_athlete
        recent_weekly_loads: Realized weekly loads (minutes), oldest first
        recent_fatigue: Recent perceived fatigue readings (0-10)
    """
    blockers: list[str] = []
    recommendations: list[str] = []

    aerobic = assess_aerobic_deficiency(
        profile.aerobic_threshold_pace, profile.lactate_threshold_pace
    )
    if aerobic.gap_percent is None:
        aerobic_score = 70
    elif aerobic.has_deficiency:
        aerobic_score = 50
        blockers.append("Aerobic deficiency: finish base building before intensity work")
        recommendations.append(aerobic.recommendation)
    else:
        aerobic_score = 100

    consistency_score = round(
        profile.training_consistency
        if profile.training_consistency is not None
        else READINESS_DEFAULT_CONSISTENCY
    )

    if len(recent_weekly_loads) < READINESS_MIN_HISTORY_WEEKS:
        load_score = 50
        recommendations.append("Log a few more weeks of training before adding intensity")
    else:
        window = recent_weekly_loads[-4:]
        avg = sum(window) / len(window)
        ratio = avg / classification.starting_load if classification.starting_load else 1.0
        if ratio >= 0.8:
            load_score = 100
        elif ratio >= 0.6:
            load_score = 70
        else:
            load_score = 40
            recommendations.append("Recent volume is well below the starting load")

    if recent_fatigue:
        avg_fatigue = sum(recent_fatigue) / len(recent_fatigue)
        recovery_score = max(0, round(100 - avg_fatigue * 10))
        if avg_fatigue >= 7:
            blockers.append(f"High recent fatigue ({avg_fatigue:.1f}/10)")
    else:
        recovery_score = READINESS_DEFAULT_RECOVERY

    factors = {
        "aerobic_base": aerobic_score,
        "consistency": consistency_score,
        "recent_load": load_score,
        "recovery": recovery_score,
    }
    overall = round(sum(factors[k] * w for k, w in READINESS_WEIGHTS.items()))
    return ReadinessScore(
        overall=overall,
        can_progress_to_intensity=overall >= READINESS_INTENSITY_THRESHOLD and not blockers,
        factors=factors,
        blockers=blockers,
        recommendations=recommendations,
    )
