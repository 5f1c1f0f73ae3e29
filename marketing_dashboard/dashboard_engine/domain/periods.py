"""Period resolution: comparison periods, quarter stepping and trailing windows."""

from __future__ import annotations

from dashboard_engine.domain.models import COMPARE_MODES, QUARTERS, ComparisonPeriod, Period, period_label


def _validate_quarter(quarter: str | None) -> None:
    if quarter is not None and quarter not in QUARTERS:
        raise ValueError(f"Unknown quarter: {quarter!r} (expected one of {QUARTERS} or None)")


def previous_quarter(year: int, quarter: str) -> tuple[int, str]:
    """Step one quarter back; Q1 wraps to Q4 of the previous year."""
    _validate_quarter(quarter)
    index = QUARTERS.index(quarter)
    if index == 0:
        return year - 1, QUARTERS[-1]
    return year, QUARTERS[index - 1]


def resolve_comparison_period(current: Period, mode: str) -> ComparisonPeriod:
    """Map a selected period and comparison mode to the concrete period to compare against.

    ``prev_year`` keeps the quarter (or whole-year view) and steps the year back.
    ``prev_quarter`` steps one quarter back. A whole-year selection has no
    previous quarter, so ``prev_quarter`` falls back to the previous whole year.
    """
    if mode not in COMPARE_MODES:
        raise ValueError(f"Unknown comparison mode: {mode!r} (expected one of {COMPARE_MODES})")
    _validate_quarter(current.quarter)

    if mode == "prev_year" or current.quarter is None:
        return ComparisonPeriod(year=current.year - 1, quarter=current.quarter)

    year, quarter = previous_quarter(current.year, current.quarter)
    return ComparisonPeriod(year=year, quarter=quarter)


def trailing_quarters(period: Period, count: int) -> list[Period]:
    """Return ``count`` consecutive quarters ending at the selected one, oldest first.

    For a whole-year selection the window ends at Q4 of that year.
    """
    if count < 1:
        return []
    _validate_quarter(period.quarter)
    year = period.year
    quarter = period.quarter or QUARTERS[-1]
    window = [Period(year=year, quarter=quarter)]
    for _ in range(count - 1):
        year, quarter = previous_quarter(year, quarter)
        window.append(Period(year=year, quarter=quarter))
    window.reverse()
    return window


__all__ = [
    "period_label",
    "previous_quarter",
    "resolve_comparison_period",
    "trailing_quarters",
]
