"""Application layer package."""

from .dashboard_service import (
    DashboardSession,
    DashboardSnapshot,
    LatestRequestGate,
    analysis_payload_for,
    build_analysis_payload,
    build_dashboard_snapshot,
)
from .fact_store import FactStore
from .insight_service import generate_insights

__all__ = [
    "FactStore",
    "generate_insights",
    "DashboardSession",
    "DashboardSnapshot",
    "LatestRequestGate",
    "build_dashboard_snapshot",
    "build_analysis_payload",
    "analysis_payload_for",
]
