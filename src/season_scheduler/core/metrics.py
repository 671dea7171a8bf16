"""
Training load metrics.

Pure functions over realized weekly history: acute:chronic workload ratio,
week-over-week change and build-cycle counting.
"""

from .config import ACWR_CAUTION, ACWR_CHRONIC_WEEKS, ACWR_DANGER, BUILD_RESET_DROP
from .models import AcwrStatus, WeekLoad


def percent_change(current: float, previous: float | None) -> float | None:
    """
    Fractional change from *previous* to *current*.

    Returns None when there is no usable baseline (missing or zero).
    """
    if previous is None or previous <= 0:
        return None
    return (current - previous) / previous


def compute_acwr(weekly_loads: list[float]) -> float | None:
    """
    Acute:chronic workload ratio.

    acute = last week's load
    chronic = mean load of the last ACWR_CHRONIC_WEEKS weeks (including the last)

    Args:
        weekly_loads: Weekly loads in chronological order

    Returns:
        Ratio rounded to 2 decimals, or None with fewer than
        ACWR_CHRONIC_WEEKS weeks or a zero chronic load
    """
    if len(weekly_loads) < ACWR_CHRONIC_WEEKS:
        return None
    window = weekly_loads[-ACWR_CHRONIC_WEEKS:]
    chronic = sum(window) / len(window)
    if chronic <= 0:
        return None
    return round(weekly_loads[-1] / chronic, 2)


def acwr_status(acwr: float | None) -> AcwrStatus:
    """Map an ACWR value to its risk band. Unknown ACWR is treated as safe."""
    if acwr is None or acwr < ACWR_CAUTION:
        return "safe"
    if acwr < ACWR_DANGER:
        return "caution"
    return "danger"


def count_build_weeks(history: list[WeekLoad]) -> int:
    """
    Count consecutive build weeks at the end of *history*.

    Walks backwards from the latest week; a week whose load dropped by at
    least BUILD_RESET_DROP versus the week before is a recovery week and
    ends the count (it is not counted itself).
    """
    count = 0
    for i in range(len(history) - 1, 0, -1):
        change = percent_change(history[i].total_load_min, history[i - 1].total_load_min)
        if change is not None and change <= -BUILD_RESET_DROP:
            return count
        count += 1
    return count + 1 if history else 0


def weekly_totals(history: list[WeekLoad]) -> tuple[list[float], list[float]]:
    """Split history into chronological load and vertical series."""
    ordered = sorted(history, key=lambda w: w.week_start)
    return (
        [w.total_load_min for w in ordered],
        [w.total_vertical_m for w in ordered],
    )
