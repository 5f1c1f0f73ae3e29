"""Application service composing dashboard snapshots for a selected period."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Generic, Mapping, TypeVar

from dashboard_engine.application.fact_store import FactStore
from dashboard_engine.application.insight_service import generate_insights
from dashboard_engine.application.reporting.aggregator import (
    EmailSummary,
    EventsSummary,
    LeadsSummary,
    SearchSummary,
    ShareOfVoiceSummary,
    SocialSummary,
    Summary,
    TrafficSummary,
    WebsiteSummary,
    summarize_email,
    summarize_events,
    summarize_leads,
    summarize_search,
    summarize_share_of_voice,
    summarize_social,
    summarize_traffic,
    summarize_website,
)
from dashboard_engine.application.reporting.composites import (
    LeadFunnel,
    digital_reach,
    events_funnel,
    lead_funnel,
    share_of_voice_for,
    stage_conversion,
)
from dashboard_engine.application.reporting.metrics import fmt_money, fmt_number, fmt_pct, fmt_trend, percent_trend, rate_trend
from dashboard_engine.domain.errors import DataQualityWarning, DataUnavailableError
from dashboard_engine.domain.models import ComparisonPeriod, DashboardConfig, Insight, Note, Period, Target, Trend
from dashboard_engine.domain.periods import resolve_comparison_period, trailing_quarters

logger = logging.getLogger(__name__)

R = TypeVar("R")

DEFAULT_TRAILING_QUARTERS = 5

# (trend key, summary attribute on PeriodSummaries, field, is_rate)
TREND_SPECS: tuple[tuple[str, str, str, bool], ...] = (
    ("website.sessions", "website", "sessions", False),
    ("website.pageviews", "website", "pageviews", False),
    ("website.unique_visitors", "website", "unique_visitors", False),
    ("website.bounce_rate", "website", "bounce_rate", True),
    ("website.avg_session_duration", "website", "avg_session_duration", False),
    ("search.impressions", "search", "impressions", False),
    ("search.clicks", "search", "clicks", False),
    ("search.ctr", "search", "ctr", True),
    ("search.avg_position", "search", "avg_position", True),
    ("social.impressions", "social", "impressions", False),
    ("social.engagements", "social", "engagements", False),
    ("social.engagement_rate", "social", "engagement_rate", True),
    ("email.emails_sent", "email", "emails_sent", False),
    ("email.open_rate", "email", "open_rate", True),
    ("email.click_rate", "email", "click_rate", True),
    ("leads.new_marketing_prospects", "leads", "new_marketing_prospects", False),
    ("leads.marketing_qualified", "leads", "marketing_qualified", False),
    ("leads.sales_accepted", "leads", "sales_accepted", False),
    ("leads.opportunities", "leads", "opportunities", False),
    ("leads.pipeline_value", "leads", "pipeline_value", False),
    ("share_of_voice.media_reach_impressions", "share_of_voice", "media_reach_impressions", False),
    ("events.registered", "events", "registered", False),
    ("events.attended", "events", "attended", False),
    ("events.mql", "events", "mql", False),
    ("events.attendance_rate", "events", "attendance_rate", True),
)

ANALYSIS_TABS: dict[str, tuple[str, ...]] = {
    "overview": ("website", "traffic", "search", "social", "email", "leads", "share_of_voice", "events"),
    "website": ("website",),
    "traffic": ("traffic", "search"),
    "social": ("social", "share_of_voice"),
    "email": ("email",),
    "leads": ("leads", "events"),
}


@dataclass(frozen=True)
class PeriodSummaries:
    period: Period
    website: WebsiteSummary
    traffic: TrafficSummary
    search: SearchSummary
    social: SocialSummary
    email: EmailSummary
    leads: LeadsSummary
    share_of_voice: ShareOfVoiceSummary
    events: EventsSummary

    @property
    def funnel(self) -> LeadFunnel:
        return lead_funnel(self.leads)

    @property
    def events_funnel(self) -> LeadFunnel:
        return events_funnel(self.events)

    @property
    def share_of_voice_pct(self) -> float:
        return share_of_voice_for(self.share_of_voice)

    @property
    def digital_reach(self) -> float:
        return digital_reach(self.website, self.social)

    def to_dict(self, datasets: tuple[str, ...] | None = None) -> dict[str, Any]:
        names = datasets or ANALYSIS_TABS["overview"]
        payload: dict[str, Any] = {"period": self.period.to_dict()}
        for name in names:
            payload[name] = getattr(self, name).to_dict()
        if "leads" in names:
            payload["funnel"] = self.funnel.to_dict()
        if "events" in names:
            payload["events_funnel"] = self.events_funnel.to_dict()
        if "share_of_voice" in names:
            payload["share_of_voice_pct"] = self.share_of_voice_pct
        if "website" in names and "social" in names:
            payload["digital_reach"] = self.digital_reach
        return payload


def summarize_period(store: FactStore, period: Period) -> PeriodSummaries:
    return PeriodSummaries(
        period=period,
        website=summarize_website(store, period),
        traffic=summarize_traffic(store, period),
        search=summarize_search(store, period),
        social=summarize_social(store, period),
        email=summarize_email(store, period),
        leads=summarize_leads(store, period),
        share_of_voice=summarize_share_of_voice(store, period),
        events=summarize_events(store, period),
    )


def _signal(summary: Summary, name: str) -> float | None:
    """Field value, or None when a rate only holds its no-data placeholder."""
    return getattr(summary, name) if summary.observed(name) else None


def _share_of_voice_signal(summaries: PeriodSummaries) -> float | None:
    if summaries.share_of_voice.total_mentions <= 0:
        return None
    return summaries.share_of_voice_pct


def period_trends(current: PeriodSummaries, previous: PeriodSummaries) -> dict[str, Trend]:
    trends: dict[str, Trend] = {}
    for key, dataset, name, is_rate in TREND_SPECS:
        curr_value = _signal(getattr(current, dataset), name)
        prev_value = _signal(getattr(previous, dataset), name)
        trends[key] = rate_trend(curr_value, prev_value) if is_rate else percent_trend(curr_value, prev_value)
    trends["share_of_voice.share"] = rate_trend(_share_of_voice_signal(current), _share_of_voice_signal(previous))
    trends["digital_reach"] = percent_trend(current.digital_reach, previous.digital_reach)
    return trends


@dataclass(frozen=True)
class KpiValue:
    key: str
    label: str
    value: float | None
    previous_value: float | None
    formatted: str
    trend: Trend
    trend_text: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "label": self.label,
            "value": self.value,
            "previous_value": self.previous_value,
            "formatted": self.formatted,
            "trend": self.trend.to_dict(),
            "trend_text": self.trend_text,
        }


def _kpi(key: str, label: str, trend: Trend, formatted: str) -> KpiValue:
    return KpiValue(
        key=key,
        label=label,
        value=trend.current,
        previous_value=trend.previous,
        formatted=formatted,
        trend=trend,
        trend_text=fmt_trend(trend),
    )


def executive_kpis(current: PeriodSummaries, previous: PeriodSummaries) -> tuple[KpiValue, ...]:
    """Headline KPI block: volumes as percent change, rates as percentage points.

    A rate with nothing behind it (no impressions, no emails sent) shows as N/A.
    """
    reach = percent_trend(current.digital_reach, previous.digital_reach)
    sessions = percent_trend(current.website.sessions, previous.website.sessions)
    engagement = rate_trend(_signal(current.social, "engagement_rate"), _signal(previous.social, "engagement_rate"))
    open_rate = rate_trend(_signal(current.email, "open_rate"), _signal(previous.email, "open_rate"))
    leads = percent_trend(current.leads.new_marketing_prospects, previous.leads.new_marketing_prospects)
    pipeline = percent_trend(current.leads.pipeline_value, previous.leads.pipeline_value)
    sov = rate_trend(_share_of_voice_signal(current), _share_of_voice_signal(previous))
    return (
        _kpi("digital_reach", "Digital Reach", reach, fmt_number(reach.current)),
        _kpi("sessions", "Website Sessions", sessions, fmt_number(sessions.current)),
        _kpi("social_engagement_rate", "Social Engagement Rate", engagement, fmt_pct(engagement.current, digits=2)),
        _kpi("email_open_rate", "Email Open Rate", open_rate, fmt_pct(open_rate.current)),
        _kpi("new_leads", "New Marketing Prospects", leads, fmt_number(leads.current)),
        _kpi("pipeline_value", "Pipeline Value", pipeline, fmt_money(pipeline.current)),
        _kpi("share_of_voice", "Share of Voice", sov, fmt_pct(sov.current)),
    )


@dataclass(frozen=True)
class QuarterPoint:
    period: Period
    sessions: float | None
    social_impressions: float | None
    emails_sent: float | None
    new_prospects: float | None
    prospect_to_mql_rate: float
    digital_reach: float
    reach_change: float | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "period": self.period.label,
            "sessions": self.sessions,
            "social_impressions": self.social_impressions,
            "emails_sent": self.emails_sent,
            "new_prospects": self.new_prospects,
            "prospect_to_mql_rate": self.prospect_to_mql_rate,
            "digital_reach": self.digital_reach,
            "reach_change": self.reach_change,
        }


def quarterly_series(store: FactStore, period: Period, count: int = DEFAULT_TRAILING_QUARTERS) -> tuple[QuarterPoint, ...]:
    """Trailing quarters ending at the selected period, oldest first."""
    points: list[QuarterPoint] = []
    previous_reach: float | None = None
    for quarter in trailing_quarters(period, count):
        website = summarize_website(store, quarter)
        social = summarize_social(store, quarter)
        email = summarize_email(store, quarter)
        leads = summarize_leads(store, quarter)
        reach = digital_reach(website, social)
        reach_change = None
        if previous_reach is not None and previous_reach > 0:
            reach_change = percent_trend(reach, previous_reach).change
        points.append(
            QuarterPoint(
                period=quarter,
                sessions=website.sessions,
                social_impressions=social.impressions,
                emails_sent=email.emails_sent,
                new_prospects=leads.new_marketing_prospects,
                prospect_to_mql_rate=stage_conversion(leads.marketing_qualified, leads.new_marketing_prospects),
                digital_reach=reach,
                reach_change=reach_change,
            )
        )
        previous_reach = reach
    return tuple(points)


@dataclass(frozen=True)
class DashboardSnapshot:
    period: Period
    comparison: ComparisonPeriod
    compare_mode: str
    current: PeriodSummaries
    previous: PeriodSummaries
    trends: Mapping[str, Trend]
    kpis: tuple[KpiValue, ...]
    quarterly: tuple[QuarterPoint, ...]
    insights: tuple[Insight, ...]
    warnings: tuple[DataQualityWarning, ...] = ()
    config: DashboardConfig = field(default_factory=DashboardConfig)
    notes: tuple[Note, ...] = ()
    targets: tuple[Target, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "period": self.period.to_dict(),
            "comparison": self.comparison.to_dict(),
            "compare_mode": self.compare_mode,
            "current": self.current.to_dict(),
            "previous": self.previous.to_dict(),
            "trends": {key: trend.to_dict() for key, trend in self.trends.items()},
            "kpis": [kpi.to_dict() for kpi in self.kpis],
            "quarterly": [point.to_dict() for point in self.quarterly],
            "insights": [insight.to_dict() for insight in self.insights],
            "warnings": [warning.to_dict() for warning in self.warnings],
            "config": self.config.to_dict(),
            "notes": [note.to_dict() for note in self.notes],
            "targets": [target.to_dict() for target in self.targets],
        }


def build_dashboard_snapshot(
    store: FactStore,
    period: Period,
    compare_mode: str = "prev_quarter",
    trailing: int = DEFAULT_TRAILING_QUARTERS,
) -> DashboardSnapshot:
    """Recompute everything the dashboard shows for one period selection."""
    if store.is_empty():
        raise DataUnavailableError("No marketing data available: every dataset sheet is empty or missing.")

    comparison = resolve_comparison_period(period, compare_mode)
    current = summarize_period(store, period)
    previous = summarize_period(store, comparison)
    snapshot = DashboardSnapshot(
        period=period,
        comparison=comparison,
        compare_mode=compare_mode,
        current=current,
        previous=previous,
        trends=period_trends(current, previous),
        kpis=executive_kpis(current, previous),
        quarterly=quarterly_series(store, period, trailing),
        insights=tuple(generate_insights(store, period)),
        warnings=store.warnings,
        config=store.config,
        notes=store.notes,
        targets=store.targets,
    )
    logger.info("Snapshot built for %s vs %s (%s)", period.label, comparison.label, compare_mode)
    return snapshot


def build_analysis_payload(
    tab_type: str,
    aggregated_data: Mapping[str, Any],
    period: Period,
    targets: list[dict[str, Any]] | None = None,
    comparison_data: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """JSON payload handed to the narrative-analysis collaborator."""
    if tab_type not in ANALYSIS_TABS:
        raise ValueError(f"Unknown analysis tab: {tab_type!r} (expected one of {sorted(ANALYSIS_TABS)})")
    payload: dict[str, Any] = {
        "tabType": tab_type,
        "aggregatedData": dict(aggregated_data),
        "period": period.to_dict(),
    }
    if targets:
        payload["targets"] = targets
    if comparison_data is not None:
        payload["comparisonData"] = dict(comparison_data)
    return payload


def analysis_payload_for(snapshot: DashboardSnapshot, tab_type: str, include_comparison: bool = True) -> dict[str, Any]:
    if tab_type not in ANALYSIS_TABS:
        raise ValueError(f"Unknown analysis tab: {tab_type!r} (expected one of {sorted(ANALYSIS_TABS)})")
    datasets = ANALYSIS_TABS[tab_type]
    categories = set(datasets)
    targets = [
        target.to_dict()
        for target in snapshot.targets
        if tab_type == "overview" or str(target.metric_category or "").strip().lower() in categories
    ]
    return build_analysis_payload(
        tab_type,
        snapshot.current.to_dict(datasets),
        snapshot.period,
        targets=targets or None,
        comparison_data=snapshot.previous.to_dict(datasets) if include_comparison else None,
    )


class LatestRequestGate(Generic[R]):
    """Hands out increasing tokens; only the most recently started token may publish."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._latest = 0
        self._result: R | None = None

    @property
    def result(self) -> R | None:
        return self._result

    def begin(self) -> int:
        with self._lock:
            self._latest += 1
            return self._latest

    def is_current(self, token: int) -> bool:
        with self._lock:
            return token == self._latest

    def publish(self, token: int, result: R) -> bool:
        """Store ``result`` if ``token`` is still the latest request; report whether it was accepted."""
        with self._lock:
            if token != self._latest:
                return False
            self._result = result
            return True


class DashboardSession:
    """Holds the current fact store and the last published snapshot.

    Replacing facts swaps the store reference; a computation keeps the store
    it started with. When selections change quickly, only the result of the
    most recent ``recompute`` call is published.
    """

    def __init__(self, store: FactStore | None = None, trailing: int = DEFAULT_TRAILING_QUARTERS) -> None:
        self._store = store or FactStore()
        self._trailing = trailing
        self._gate: LatestRequestGate[DashboardSnapshot] = LatestRequestGate()

    @property
    def store(self) -> FactStore:
        return self._store

    @property
    def snapshot(self) -> DashboardSnapshot | None:
        return self._gate.result

    def replace_facts(self, store: FactStore) -> None:
        self._store = store
        logger.info("Fact store replaced (%d facts)", sum(len(facts) for facts in store.facts.values()))

    def recompute(self, period: Period, compare_mode: str = "prev_quarter") -> DashboardSnapshot | None:
        """Compute a snapshot for the selection; return None if a newer request superseded it."""
        token = self._gate.begin()
        snapshot = build_dashboard_snapshot(self._store, period, compare_mode, self._trailing)
        if not self._gate.publish(token, snapshot):
            logger.debug("Discarding stale snapshot for %s (request %d)", period.label, token)
            return None
        return snapshot
