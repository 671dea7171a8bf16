"""
Adaptation rules: feedback aggregation and in-week plan adjustment.

Turns a window of daily feedback (RPE, soreness, sleep, fatigue, missed
sessions) into one adjustment of the days of an issued week that have not
happened yet.
"""

import copy
import logging
from dataclasses import dataclass
from typing import Callable

from .config import (
    ADAPT_EASY_FACTOR,
    ADAPT_RECOVERY_FACTOR,
    ADAPT_VOLUME_FACTOR,
    CONSECUTIVE_HIGH_FATIGUE_DAYS,
    DEVELOPING_THRESHOLD_OFFSET,
    FATIGUE_ELEVATED,
    FATIGUE_ESCALATE,
    FATIGUE_HIGH_DAY,
    INTENSITY_ZONES,
    MISSED_SESSION_RATE_HIGH,
    RPE_HIGH,
    SLEEP_LOW_HOURS,
    SORENESS_ELEVATED,
    SORENESS_ESCALATE,
    TREND_DELTA,
)
from .models import (
    AdaptationAction,
    AdaptationDecision,
    Classification,
    DailyFeedback,
    FeedbackSignals,
    Session,
    Trend,
    WeeklyPlan,
)

logger = logging.getLogger(__name__)


def _mean(values: list[float]) -> float | None:
    return round(sum(values) / len(values), 2) if values else None


def _trend(values: list[float]) -> Trend:
    """
    Compare the mean of the last three readings with the first three.

    Needs at least four readings; a change above TREND_DELTA is a trend.
    """
    if len(values) < 4:
        return "stable"
    window = min(3, len(values) // 2)
    delta = sum(values[-window:]) / window - sum(values[:window]) / window
    if delta > TREND_DELTA:
        return "rising"
    if delta < -TREND_DELTA:
        return "falling"
    return "stable"


def aggregate_feedback(feedback: list[DailyFeedback]) -> FeedbackSignals:
    """
    Summarize daily feedback into signals.

    Args:
        feedback: Daily reports, any order

    Returns:
        FeedbackSignals; averages are None when no day reported the value
    """
    ordered = sorted(feedback, key=lambda f: f.date)
    rpe = [f.rpe for f in ordered if f.rpe is not None]
    fatigue = [f.perceived_fatigue for f in ordered if f.perceived_fatigue is not None]
    soreness = [f.soreness for f in ordered if f.soreness is not None]
    sleep = [f.sleep_hours for f in ordered if f.sleep_hours is not None]

    longest = streak = 0
    for value in fatigue:
        streak = streak + 1 if value >= FATIGUE_HIGH_DAY else 0
        longest = max(longest, streak)

    return FeedbackSignals(
        days=len(ordered),
        avg_rpe=_mean(rpe),
        avg_fatigue=_mean(fatigue),
        fatigue_trend=_trend(fatigue),
        avg_soreness=_mean(soreness),
        max_soreness=max(soreness) if soreness else None,
        soreness_trend=_trend(soreness),
        avg_sleep_hours=_mean(sleep),
        missed_session_rate=(
            round(sum(1 for f in ordered if f.missed_session) / len(ordered), 2) if ordered else 0.0
        ),
        consecutive_high_fatigue_days=longest,
    )


@dataclass(frozen=True)
class _DecisionRow:
    action: AdaptationAction
    applies: Callable[[FeedbackSignals, float], bool]
    reason: Callable[[FeedbackSignals], str]


def _at_least(value: float | None, threshold: float) -> bool:
    return value is not None and value >= threshold


# Ordered: the first row that applies decides. The float argument lowers
# thresholds for developing athletes.
DECISION_TABLE: tuple[_DecisionRow, ...] = (
    _DecisionRow(
        "escalate_to_recovery_week",
        lambda s, off: _at_least(s.avg_fatigue, FATIGUE_ESCALATE - off)
        or _at_least(s.max_soreness, SORENESS_ESCALATE - off)
        or (s.fatigue_trend == "rising" and s.soreness_trend == "rising"
            and _at_least(s.avg_fatigue, FATIGUE_ELEVATED - off)),
        lambda s: (
            f"Fatigue {s.avg_fatigue}/10, soreness up to {s.max_soreness}/10: "
            f"switching to a recovery week"
        ),
    ),
    _DecisionRow(
        "insert_rest_day",
        lambda s, off: s.consecutive_high_fatigue_days >= CONSECUTIVE_HIGH_FATIGUE_DAYS
        or (_at_least(s.avg_fatigue, FATIGUE_ELEVATED - off)
            and s.avg_sleep_hours is not None and s.avg_sleep_hours < SLEEP_LOW_HOURS),
        lambda s: (
            f"{s.consecutive_high_fatigue_days} consecutive high-fatigue days "
            f"(sleep {s.avg_sleep_hours} h): adding a rest day"
        ),
    ),
    _DecisionRow(
        "reduce_volume",
        lambda s, off: s.missed_session_rate >= MISSED_SESSION_RATE_HIGH
        or _at_least(s.avg_soreness, SORENESS_ELEVATED - off)
        or (s.fatigue_trend == "rising" and _at_least(s.avg_fatigue, FATIGUE_ELEVATED - off)),
        lambda s: (
            f"Missed {s.missed_session_rate:.0%} of sessions, soreness {s.avg_soreness}/10, "
            f"fatigue {s.fatigue_trend}: reducing remaining volume"
        ),
    ),
    _DecisionRow(
        "reduce_intensity",
        lambda s, off: _at_least(s.avg_rpe, RPE_HIGH - off)
        or _at_least(s.avg_fatigue, FATIGUE_ELEVATED - off)
        or (s.avg_sleep_hours is not None and s.avg_sleep_hours < SLEEP_LOW_HOURS),
        lambda s: (
            f"RPE {s.avg_rpe}/10, fatigue {s.avg_fatigue}/10, sleep {s.avg_sleep_hours} h: "
            f"replacing hard sessions with easy running"
        ),
    ),
)


def decide_adaptation(
    signals: FeedbackSignals,
    classification: Classification | None = None,
) -> AdaptationDecision:
    """
    Pick one adjustment from the decision table.

    Rows, first match wins:
        escalate_to_recovery_week > insert_rest_day > reduce_volume >
        reduce_intensity > no_change

    Developing athletes use thresholds lowered by DEVELOPING_THRESHOLD_OFFSET.
    """
    offset = (
        DEVELOPING_THRESHOLD_OFFSET
        if classification is not None and classification.category == "developing"
        else 0.0
    )
    if signals.days == 0:
        return AdaptationDecision(
            action="no_change", signals=signals, reasoning=["No feedback reported"]
        )
    for row in DECISION_TABLE:
        if row.applies(signals, offset):
            return AdaptationDecision(action=row.action, signals=signals, reasoning=[row.reason(signals)])
    return AdaptationDecision(
        action="no_change",
        signals=signals,
        reasoning=["Feedback within normal ranges: plan unchanged"],
    )


def _easy(session: Session, factor: float, note: str) -> None:
    session.type = "easy"
    session.duration_min = round(session.duration_min * factor)
    session.distance_km = round(session.distance_km * factor, 1)
    session.vertical_gain_m = round(session.vertical_gain_m * factor)
    session.intensity_zones = list(INTENSITY_ZONES["easy"])
    session.notes = note


def _scale(session: Session, factor: float) -> None:
    session.duration_min = round(session.duration_min * factor)
    session.distance_km = round(session.distance_km * factor, 1)
    session.vertical_gain_m = round(session.vertical_gain_m * factor)


def apply_adaptation(
    plan: WeeklyPlan,
    decision: AdaptationDecision,
    today: str,
    include_today: bool = True,
) -> WeeklyPlan:
    """
    Apply a decision to the days of *plan* from *today* on.

    Returns a new plan; completed days and race sessions are left exactly
    as issued. Fills ``decision.adaptations`` and ``decision.affected_dates``.

    Args:
        plan: Issued week plan
        decision: Output of decide_adaptation
        today: Current date (ISO)
        include_today: False when today's session is already done, so
            only later days change
    """
    adjusted = copy.deepcopy(plan)
    if decision.action == "no_change":
        return adjusted

    remaining = [
        d for d in adjusted.days if d.date > today or (include_today and d.date == today)
    ]
    adaptations: list[str] = []
    affected: list[str] = []

    if decision.action == "reduce_intensity":
        for day in remaining:
            for session in day.sessions:
                if session.is_quality:
                    _easy(session, ADAPT_EASY_FACTOR, "Easy run (intensity reduced from feedback)")
                    adaptations.append(f"{day.weekday}: quality session replaced with easy run")
                    affected.append(day.date)

    elif decision.action == "reduce_volume":
        for day in remaining:
            changed = False
            for session in day.sessions:
                if session.type not in ("rest", "race") and session.duration_min > 0:
                    _scale(session, ADAPT_VOLUME_FACTOR)
                    changed = True
            if changed:
                affected.append(day.date)
        if affected:
            adaptations.append(
                f"Remaining sessions reduced to {ADAPT_VOLUME_FACTOR:.0%} volume"
            )

    elif decision.action == "insert_rest_day":
        candidates = [
            d for d in remaining
            if not d.is_rest and not any(s.type == "race" for s in d.sessions)
        ]
        easy_days = [d for d in candidates if not d.is_hard]
        target = min(easy_days or candidates, key=lambda d: d.load_min, default=None)
        if target is not None:
            target.sessions = [Session(type="rest", duration_min=0, notes="Rest day (added from feedback)")]
            adaptations.append(f"{target.weekday}: changed to a rest day")
            affected.append(target.date)

    elif decision.action == "escalate_to_recovery_week":
        adjusted.is_recovery_week = True
        for i, day in enumerate(remaining):
            if any(s.type == "race" for s in day.sessions) or day.is_rest:
                continue
            if i % 2 == 0:
                day.sessions = [Session(type="rest", duration_min=0, notes="Rest day (recovery week)")]
            else:
                for session in day.sessions:
                    _easy(session, ADAPT_RECOVERY_FACTOR, "Recovery jog (recovery week from feedback)")
                    session.type = "recovery"
                    session.intensity_zones = list(INTENSITY_ZONES["recovery"])
            affected.append(day.date)
        if affected:
            adaptations.append("Rest of the week switched to recovery: rest and easy jogs only")

    decision.adaptations = adaptations
    decision.affected_dates = affected
    adjusted.reasoning.extend(decision.reasoning)
    adjusted.warnings.extend(adaptations)
    logger.info("Adaptation %s applied to %d days", decision.action, len(affected))
    return adjusted


def adapt_plan(
    plan: WeeklyPlan,
    feedback: list[DailyFeedback],
    today: str,
    classification: Classification | None = None,
) -> tuple[WeeklyPlan, AdaptationDecision]:
    """
    Aggregate feedback, decide and apply in one call.

    The caller chooses the feedback window, typically the last 7 days.
    Feedback logged for *today* means today's session is done, so only
    the days after it are adapted; otherwise today is still open.
    """
    signals = aggregate_feedback(feedback)
    decision = decide_adaptation(signals, classification)
    today_done = any(f.date == today for f in feedback)
    return apply_adaptation(plan, decision, today, include_today=not today_done), decision
