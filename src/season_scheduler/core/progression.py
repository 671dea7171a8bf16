"""
Progression rule engine.

Turns the realized state of the last few weeks into hard bounds for the
coming week. Rules are evaluated in a fixed order; a terminal rule that
fires (mandatory recovery) ends the cascade, non-terminal rules tighten the
bounds by taking the minimum.

Load is training time in minutes, vertical is elevation gain in meters, and
all percentages apply to realized values.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Callable

from .config import (
    ACWR_CAUTION,
    ACWR_DANGER,
    ACWR_LOW,
    CAUTION_INCREASE,
    CONSECUTIVE_RISE_INCREASE,
    CONSECUTIVE_RISE_THRESHOLD,
    HIGH_FATIGUE,
    INTENSITY_WEEK_INCREASE,
    LARGE_JUMP_THRESHOLD,
    RECOVERY_DEPTH_BASE,
    RECOVERY_DEPTH_CAUTION,
    RECOVERY_DEPTH_MAX,
    STANDARD_INCREASE,
)
from .metrics import acwr_status, compute_acwr, count_build_weeks, percent_change, weekly_totals
from .models import (
    Classification,
    ProgressionConstraints,
    ProgressionContext,
    WeekLoad,
    build_cycle_length,
)

logger = logging.getLogger(__name__)


@dataclass
class _RuleState:
    """Bounds and notes accumulated while walking the rule list."""

    load_cap: float = math.inf
    vertical_cap: float = math.inf
    exclusive_increase: bool = False
    can_hold_steady: bool = False
    recovery_reason: str | None = None
    reasoning: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    fired: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ProgressionRule:
    """One entry of the ordered rule list."""

    name: str
    applies: Callable[[ProgressionContext], bool]
    apply: Callable[[ProgressionContext, _RuleState], None]
    terminal: bool = False


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------


def _acwr_danger(ctx: ProgressionContext) -> bool:
    return ctx.current_acwr is not None and ctx.current_acwr >= ACWR_DANGER


def _acwr_caution(ctx: ProgressionContext) -> bool:
    return ctx.current_acwr is not None and ACWR_CAUTION <= ctx.current_acwr < ACWR_DANGER


def _build_cycle_complete(ctx: ProgressionContext) -> bool:
    return ctx.weeks_in_build_cycle >= build_cycle_length(ctx.recovery_ratio)


def _largest_recent_jump(ctx: ProgressionContext) -> tuple[float, str] | None:
    """Rise of the previous week over the week before, load or vertical, whichever is larger.

    The current week is not compared: its rise is what the coming week's
    bounds are computed from.
    """
    candidates = [
        (percent_change(ctx.previous_week_load or 0.0, ctx.two_weeks_ago_load), "load"),
    ]
    if ctx.previous_week_vertical is not None:
        candidates.append(
            (percent_change(ctx.previous_week_vertical, ctx.two_weeks_ago_vertical), "vertical")
        )
    known = [(c, kind) for c, kind in candidates if c is not None]
    if not known:
        return None
    return max(known, key=lambda item: item[0])


def _large_jump(ctx: ProgressionContext) -> bool:
    jump = _largest_recent_jump(ctx)
    return jump is not None and jump[0] >= LARGE_JUMP_THRESHOLD


def _consecutive_rises(ctx: ProgressionContext) -> bool:
    """The two weeks before the current one each rose by more than 10%."""
    if ctx.previous_week_load is None:
        return False
    first = percent_change(ctx.two_weeks_ago_load or 0.0, ctx.three_weeks_ago_load)
    second = percent_change(ctx.previous_week_load, ctx.two_weeks_ago_load)
    if first is None or second is None:
        return False
    return first > CONSECUTIVE_RISE_THRESHOLD and second > CONSECUTIVE_RISE_THRESHOLD


def _both_dimensions_rose(ctx: ProgressionContext) -> bool:
    if ctx.previous_week_load is None:
        return False
    if ctx.current_week_vertical is None or ctx.previous_week_vertical is None:
        return False
    return (
        ctx.current_week_load > ctx.previous_week_load
        and ctx.current_week_vertical > ctx.previous_week_vertical
    )


def _always(ctx: ProgressionContext) -> bool:
    return True


# ---------------------------------------------------------------------------
# Effects
# ---------------------------------------------------------------------------


def _recover_acwr(ctx: ProgressionContext, state: _RuleState) -> None:
    state.recovery_reason = (
        f"ACWR {ctx.current_acwr:.2f} in danger zone (≥{ACWR_DANGER}) - mandatory recovery"
    )
    state.warnings.append(
        f"Injury risk: ACWR {ctx.current_acwr:.2f}. This week must be a recovery week."
    )


def _recover_build_cycle(ctx: ProgressionContext, state: _RuleState) -> None:
    state.recovery_reason = (
        f"Recovery week mandatory ({ctx.weeks_in_build_cycle} build weeks completed, "
        f"{ctx.recovery_ratio} cycle)"
    )


def _recover_large_jump(ctx: ProgressionContext, state: _RuleState) -> None:
    jump, kind = _largest_recent_jump(ctx)
    state.recovery_reason = f"Recovery required after {jump:.0%} {kind} jump"
    state.warnings.append(
        f"{kind.capitalize()} rose {jump:.0%} in one week (limit {LARGE_JUMP_THRESHOLD:.0%})."
    )


def _cap_consecutive(ctx: ProgressionContext, state: _RuleState) -> None:
    state.load_cap = min(state.load_cap, ctx.current_week_load * (1 + CONSECUTIVE_RISE_INCREASE))
    state.reasoning.append(
        f"Limited to {CONSECUTIVE_RISE_INCREASE:.0%} after two consecutive increases"
    )
    state.warnings.append("Two large increases in a row: progression slowed this week.")


def _standard(ctx: ProgressionContext, state: _RuleState) -> None:
    load_cap = ctx.current_week_load * (1 + STANDARD_INCREASE)
    state.load_cap = min(state.load_cap, load_cap)
    state.reasoning.append(
        f"Standard {STANDARD_INCREASE:.0%} progression: "
        f"{ctx.current_week_load:.0f} → {load_cap:.0f} min"
    )
    if ctx.current_week_vertical is not None:
        vertical_cap = ctx.current_week_vertical * (1 + STANDARD_INCREASE)
        state.vertical_cap = min(state.vertical_cap, vertical_cap)
        state.reasoning.append(
            f"Vertical {STANDARD_INCREASE:.0%} progression: "
            f"{ctx.current_week_vertical:.0f} → {vertical_cap:.0f} m"
        )


def _exclusive(ctx: ProgressionContext, state: _RuleState) -> None:
    state.exclusive_increase = True
    state.reasoning.append(
        "Multi-dimensional constraint: load and vertical both rose, increase only one this week"
    )


def _cap_caution(ctx: ProgressionContext, state: _RuleState) -> None:
    state.load_cap = min(state.load_cap, ctx.current_week_load * (1 + CAUTION_INCREASE))
    if ctx.current_week_vertical is not None:
        state.vertical_cap = min(
            state.vertical_cap, ctx.current_week_vertical * (1 + CAUTION_INCREASE)
        )
    state.reasoning.append(
        f"ACWR {ctx.current_acwr:.2f} in caution zone: progression limited to "
        f"{CAUTION_INCREASE:.0%}"
    )
    state.warnings.append(f"ACWR {ctx.current_acwr:.2f} is elevated; progression slowed.")


def _cap_intensity_week(ctx: ProgressionContext, state: _RuleState) -> None:
    state.load_cap = min(state.load_cap, ctx.current_week_load * (1 + INTENSITY_WEEK_INCREASE))
    state.reasoning.append(
        f"Intensity week - volume limited to {INTENSITY_WEEK_INCREASE:.0%} increase"
    )


def _anti_plateau(ctx: ProgressionContext, state: _RuleState) -> None:
    state.can_hold_steady = ctx.weeks_in_build_cycle == 0
    if state.can_hold_steady:
        state.reasoning.append("First week after recovery: holding load steady is allowed")
    else:
        state.reasoning.append("Cannot hold load constant - must increase or recover")


PROGRESSION_RULES: tuple[ProgressionRule, ...] = (
    ProgressionRule("acwr_danger", _acwr_danger, _recover_acwr, terminal=True),
    ProgressionRule("build_cycle_complete", _build_cycle_complete, _recover_build_cycle, terminal=True),
    ProgressionRule("large_jump", _large_jump, _recover_large_jump, terminal=True),
    ProgressionRule("consecutive_rises", _consecutive_rises, _cap_consecutive),
    ProgressionRule("standard_progression", _always, _standard),
    ProgressionRule("single_dimension_increase", _both_dimensions_rose, _exclusive),
    ProgressionRule("acwr_caution", _acwr_caution, _cap_caution),
    ProgressionRule("intensity_week", lambda ctx: ctx.is_intensity_week, _cap_intensity_week),
    ProgressionRule("anti_plateau", _always, _anti_plateau),
)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def recovery_depth(current_acwr: float | None, perceived_fatigue: float | None = None) -> float:
    """
    Fractional load reduction for a recovery week.

    Depth is the deepest of all triggers present: 0.60 for ACWR in the
    danger zone or fatigue >= HIGH_FATIGUE, 0.55 for ACWR in the caution
    zone, otherwise 0.40.
    """
    depth = RECOVERY_DEPTH_BASE
    if current_acwr is not None:
        if current_acwr >= ACWR_DANGER:
            depth = RECOVERY_DEPTH_MAX
        elif current_acwr >= ACWR_CAUTION:
            depth = RECOVERY_DEPTH_CAUTION
    if perceived_fatigue is not None and perceived_fatigue >= HIGH_FATIGUE:
        depth = max(depth, RECOVERY_DEPTH_MAX)
    return depth


def calculate_recovery_target(
    current_load: float,
    current_acwr: float | None = None,
    perceived_fatigue: float | None = None,
) -> tuple[float, float]:
    """
    Recovery-week load target.

    Returns:
        (target load in minutes, depth) where target = load * (1 - depth)
    """
    depth = recovery_depth(current_acwr, perceived_fatigue)
    return round(current_load * (1 - depth), 1), depth


def _acwr_note(ctx: ProgressionContext, state: _RuleState) -> None:
    acwr = ctx.current_acwr
    if acwr is None:
        state.reasoning.append("ACWR unavailable - treated as safe")
        state.warnings.append("Not enough history to compute ACWR; load spikes are not detected.")
    elif acwr < ACWR_LOW:
        state.reasoning.append(
            f"ACWR {acwr:.2f} below {ACWR_LOW}: load is low relative to recent training"
        )
    elif acwr < ACWR_CAUTION:
        state.reasoning.append(f"ACWR {acwr:.2f} in safe zone ({ACWR_LOW}-{ACWR_CAUTION})")


def _recovery_constraints(ctx: ProgressionContext, state: _RuleState) -> ProgressionConstraints:
    depth = recovery_depth(ctx.current_acwr, ctx.perceived_fatigue)
    ceiling = round(ctx.current_week_load * (1 - depth), 1)
    floor = round(ctx.current_week_load * (1 - RECOVERY_DEPTH_MAX), 1)
    vertical_ceiling = vertical_floor = None
    if ctx.current_week_vertical is not None:
        vertical_ceiling = round(ctx.current_week_vertical * (1 - depth), 1)
        vertical_floor = round(ctx.current_week_vertical * (1 - RECOVERY_DEPTH_MAX), 1)

    state.reasoning.append(state.recovery_reason)
    state.reasoning.append(
        f"Recovery target: {floor:.0f}-{ceiling:.0f} min ({depth:.0%} reduction)"
    )
    return ProgressionConstraints(
        max_load_increase=ceiling,
        min_load_decrease=floor,
        max_vertical_increase=vertical_ceiling,
        min_vertical_decrease=vertical_floor,
        must_recover=True,
        can_hold_steady=False,
        can_increase_load=False,
        can_increase_vertical=False,
        reasoning=state.reasoning,
        warnings=state.warnings,
        acwr_status=acwr_status(ctx.current_acwr),
        recovery_depth=depth,
        fired_rules=state.fired,
    )


def calculate_progression_constraints(ctx: ProgressionContext) -> ProgressionConstraints:
    """
    Compute the bounds for the coming week.

    Rule order:
        1. ACWR >= 1.5                 -> mandatory recovery (terminal)
        2. build cycle complete         -> mandatory recovery (terminal)
        3. previous week rose >= 15%    -> mandatory recovery (terminal);
           two prior rises > 10%        -> cap at +5%
        4. standard progression         -> +10% load, +10% vertical
        5. load and vertical both rose  -> only one may rise
        6. 1.3 <= ACWR < 1.5            -> cap at +5%
        7. intensity week               -> load cap at +5%
        8. anti-plateau                 -> holding steady only right after recovery

    The function is pure: equal contexts give equal constraints.

    Args:
        ctx: Realized training state

    Returns:
        ProgressionConstraints with reasoning for every fired rule
    """
    state = _RuleState()
    _acwr_note(ctx, state)

    for index, rule in enumerate(PROGRESSION_RULES):
        if not rule.applies(ctx):
            continue
        state.fired.append(rule.name)
        rule.apply(ctx, state)
        if rule.terminal:
            also = [
                r.name
                for r in PROGRESSION_RULES[index + 1 :]
                if r.terminal and r.applies(ctx)
            ]
            if also:
                state.reasoning.append(f"Also triggered: {', '.join(also)}")
            logger.info("Mandatory recovery week (%s)", rule.name)
            return _recovery_constraints(ctx, state)

    max_load = round(state.load_cap, 1)
    max_vertical = None
    if ctx.current_week_vertical is not None:
        max_vertical = round(state.vertical_cap, 1)

    constraints = ProgressionConstraints(
        max_load_increase=max_load,
        max_vertical_increase=max_vertical,
        must_recover=False,
        can_hold_steady=state.can_hold_steady,
        can_increase_load=max_load > ctx.current_week_load,
        can_increase_vertical=(
            max_vertical is None or max_vertical > (ctx.current_week_vertical or 0.0)
        ),
        reasoning=state.reasoning,
        warnings=state.warnings,
        acwr_status=acwr_status(ctx.current_acwr),
        exclusive_increase=state.exclusive_increase,
        fired_rules=state.fired,
    )
    logger.debug(
        "Progression bounds: load <= %.1f min, vertical <= %s m (rules: %s)",
        max_load,
        max_vertical,
        ", ".join(state.fired),
    )
    return constraints


def build_progression_context(
    history: list[WeekLoad],
    classification: Classification,
    weeks_in_build_cycle: int | None = None,
    is_intensity_week: bool = False,
    perceived_fatigue: float | None = None,
) -> tuple[ProgressionContext, list[str]]:
    """
    Derive a ProgressionContext from trailing weekly history.

    Missing data never raises: without history the classification's
    starting load stands in for the current week, and without four weeks
    ACWR is left unknown. Each substitution adds a warning.

    Args:
        history: Realized weeks, any order
        classification: Supplies recovery ratio and starting load
        weeks_in_build_cycle: Override for the build-week count; derived
            from history when None
        is_intensity_week: Whether the coming week is an intensity week
        perceived_fatigue: Latest perceived fatigue (0-10), if known

    Returns:
        (context, warnings)
    """
    warnings: list[str] = []
    loads, verticals = weekly_totals(history)

    if not loads or loads[-1] <= 0:
        warnings.append(
            f"No realized training load: using starting load of "
            f"{classification.starting_load:.0f} min"
        )
        loads = loads[:-1] + [classification.starting_load] if loads else [classification.starting_load]
        verticals = verticals if verticals else [0.0]

    def back(series: list[float], n: int) -> float | None:
        return series[-1 - n] if len(series) > n else None

    ordered = sorted(history, key=lambda w: w.week_start)
    acwr = ordered[-1].acwr if ordered and ordered[-1].acwr is not None else compute_acwr(loads)
    if acwr is None:
        warnings.append("Fewer than 4 weeks of history: ACWR unavailable")

    has_vertical = any(v > 0 for v in verticals)
    if weeks_in_build_cycle is None:
        weeks_in_build_cycle = count_build_weeks(ordered) if ordered else 0

    ctx = ProgressionContext(
        current_week_load=loads[-1],
        previous_week_load=back(loads, 1),
        two_weeks_ago_load=back(loads, 2),
        three_weeks_ago_load=back(loads, 3),
        current_week_vertical=back(verticals, 0) if has_vertical else None,
        previous_week_vertical=back(verticals, 1) if has_vertical else None,
        two_weeks_ago_vertical=back(verticals, 2) if has_vertical else None,
        weeks_in_build_cycle=weeks_in_build_cycle,
        recovery_ratio=classification.recovery_ratio,
        is_intensity_week=is_intensity_week,
        current_acwr=acwr,
        perceived_fatigue=perceived_fatigue,
    )
    for w in warnings:
        logger.warning(w)
    return ctx, warnings
