"""Shared numeric, trend and formatting utilities for dashboard reporting."""

from __future__ import annotations

from typing import Any

import polars as pl

from dashboard_engine.domain.models import Direction, Trend

FLAT_EPS = 1e-9


def to_float(value: Any, default: float = 0.0) -> float:
    if value is None:
        return default
    return float(value)


def safe_ratio(num: float | None, den: float | None) -> float | None:
    if num is None or den is None or den <= 0:
        return None
    return num / den


def safe_pct(num: float | None, den: float | None) -> float:
    """``num / den × 100``; a zero or missing denominator yields 0."""
    ratio = safe_ratio(num, den)
    if ratio is None:
        return 0.0
    return ratio * 100


def safe_ratio_expr(num: pl.Expr, den: pl.Expr) -> pl.Expr:
    safe_den = pl.when(den > 0).then(den).otherwise(None)
    return num / safe_den


def direction(value: float, eps: float = FLAT_EPS) -> Direction:
    if value > eps:
        return "up"
    if value < -eps:
        return "down"
    return "flat"


def percent_trend(current: float | None, previous: float | None) -> Trend:
    """Percent change of a volume metric.

    With a zero previous value no ratio exists: change is reported as 0 and
    ``is_new`` is set when the current value is non-zero.
    """
    if current is None or previous is None:
        return Trend(current=current, previous=previous, change=0.0, direction="flat", comparable=False)
    if previous == 0:
        return Trend(
            current=current,
            previous=previous,
            change=0.0,
            direction=direction(current),
            is_new=current != 0,
        )
    change = (current - previous) / previous * 100
    return Trend(current=current, previous=previous, change=change, direction=direction(change))


def rate_trend(current: float | None, previous: float | None) -> Trend:
    """Percentage-point difference of a rate metric."""
    if current is None or previous is None:
        return Trend(
            current=current,
            previous=previous,
            change=0.0,
            direction="flat",
            is_rate=True,
            comparable=False,
        )
    change = current - previous
    return Trend(current=current, previous=previous, change=change, direction=direction(change), is_rate=True)


def fmt_number(value: float | None) -> str:
    if value is None:
        return "N/A"
    abs_value = abs(value)
    sign = "-" if value < 0 else ""
    if abs_value >= 1_000_000:
        return f"{sign}{abs_value / 1_000_000:.1f}M"
    if abs_value >= 1_000:
        return f"{sign}{abs_value / 1_000:.1f}K"
    return f"{sign}{abs_value:.0f}"


def fmt_money(value: float | None) -> str:
    if value is None:
        return "N/A"
    return f"${fmt_number(value)}"


def fmt_pct(value: float | None, digits: int = 1) -> str:
    if value is None:
        return "N/A"
    return f"{value:.{digits}f}%"


def fmt_pp(value: float | None) -> str:
    if value is None:
        return "N/A"
    return f"{value:+.1f}pp"


def fmt_trend(trend: Trend) -> str:
    if not trend.comparable:
        return "N/A"
    if trend.is_new:
        return "new"
    if trend.is_rate:
        return fmt_pp(trend.change)
    return f"{trend.change:+.1f}%"
