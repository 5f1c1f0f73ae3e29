"""Marketing dashboard period aggregation and insight engine."""

from .application import (
    DashboardSession,
    DashboardSnapshot,
    FactStore,
    LatestRequestGate,
    build_analysis_payload,
    build_dashboard_snapshot,
    generate_insights,
)
from .domain import DataUnavailableError, Period, previous_quarter, resolve_comparison_period

__all__ = [
    "FactStore",
    "DashboardSession",
    "DashboardSnapshot",
    "LatestRequestGate",
    "build_dashboard_snapshot",
    "build_analysis_payload",
    "generate_insights",
    "Period",
    "DataUnavailableError",
    "previous_quarter",
    "resolve_comparison_period",
]
