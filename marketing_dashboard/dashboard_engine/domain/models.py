"""Domain models for marketing dashboard facts, periods and insights."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from typing import Any, Literal

QUARTERS: tuple[str, ...] = ("Q1", "Q2", "Q3", "Q4")
QUARTER_MONTHS: dict[str, tuple[int, int, int]] = {
    "Q1": (1, 2, 3),
    "Q2": (4, 5, 6),
    "Q3": (7, 8, 9),
    "Q4": (10, 11, 12),
}

DatasetKind = Literal["website", "traffic", "search", "social", "email", "leads", "share_of_voice", "events"]
CompareMode = Literal["prev_quarter", "prev_year"]
InsightType = Literal["performance", "trend", "comparison", "prediction", "opportunity", "risk"]
Level = Literal["high", "medium", "low"]
Direction = Literal["up", "down", "flat"]

DATASET_KINDS: tuple[str, ...] = ("website", "traffic", "search", "social", "email", "leads", "share_of_voice", "events")
COMPARE_MODES: tuple[str, ...] = ("prev_quarter", "prev_year")


def quarter_for_month(month: int) -> str:
    return QUARTERS[(month - 1) // 3]


@dataclass(frozen=True)
class Period:
    """Selected reporting period; ``quarter=None`` means the whole year."""

    year: int
    quarter: str | None = None

    @property
    def label(self) -> str:
        return period_label(self.year, self.quarter)

    def to_dict(self) -> dict[str, Any]:
        return {"year": self.year, "quarter": self.quarter, "label": self.label}


@dataclass(frozen=True)
class ComparisonPeriod(Period):
    """Resolved comparison target for a selected period."""


def period_label(year: int, quarter: str | None) -> str:
    if quarter is None:
        return f"{year}"
    return f"{quarter} {year}"


@dataclass(frozen=True)
class Fact:
    """Temporal key shared by every time-series fact."""

    year: int
    quarter: str
    month: int
    month_name: str | None

    def in_period(self, year: int, quarter: str | None) -> bool:
        if self.year != year:
            return False
        return quarter is None or self.quarter == quarter

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class WebsiteFact(Fact):
    sessions: float | None = None
    pageviews: float | None = None
    unique_visitors: float | None = None
    returning_visitors: float | None = None
    bounce_rate: float | None = None
    avg_session_duration: float | None = None
    downloads_pdfs: float | None = None
    video_views: float | None = None
    source_quality: str | None = None


@dataclass(frozen=True)
class TrafficSourceFact(Fact):
    """Channel shares in percent of the month's website sessions."""

    direct: float | None = None
    search_engines: float | None = None
    social_media: float | None = None
    internal_referrers: float | None = None
    external_referrers: float | None = None


@dataclass(frozen=True)
class SearchFact(Fact):
    impressions: float | None = None
    clicks: float | None = None
    ctr: float | None = None
    avg_position: float | None = None
    source: str | None = None


@dataclass(frozen=True)
class SocialFact(Fact):
    channel: str | None = None
    type: str | None = None
    impressions: float | None = None
    views: float | None = None
    reactions: float | None = None
    comments: float | None = None
    shares: float | None = None
    clicks: float | None = None
    budget: float | None = None


@dataclass(frozen=True)
class EmailFact(Fact):
    campaign_type: str | None = None
    emails_sent: float | None = None
    emails_delivered: float | None = None
    unique_opens: float | None = None
    unique_clicks: float | None = None
    hard_bounces: float | None = None
    soft_bounces: float | None = None
    unsubscribes: float | None = None


@dataclass(frozen=True)
class LeadsFact(Fact):
    new_marketing_prospects: float | None = None
    assigned_prospects: float | None = None
    active_prospects: float | None = None
    unsubscribed_prospects: float | None = None
    marketing_qualified: float | None = None
    sales_accepted: float | None = None
    opportunities: float | None = None
    pipeline_value: float | None = None


@dataclass(frozen=True)
class ShareOfVoiceFact(Fact):
    media_mention_volume: float | None = None
    competitor1_mentions: float | None = None
    competitor2_mentions: float | None = None
    media_reach_impressions: float | None = None
    social_mentions: float | None = None


@dataclass(frozen=True)
class EventsFact(Fact):
    """One event line; several events may share a month."""

    number_events: float | None = None
    registered: float | None = None
    attended: float | None = None
    mql: float | None = None
    sal: float | None = None
    opportunity: float | None = None
    source: str | None = None


FACT_TYPES: dict[str, type[Fact]] = {
    "website": WebsiteFact,
    "traffic": TrafficSourceFact,
    "search": SearchFact,
    "social": SocialFact,
    "email": EmailFact,
    "leads": LeadsFact,
    "share_of_voice": ShareOfVoiceFact,
    "events": EventsFact,
}
TEMPORAL_FIELDS: tuple[str, ...] = ("year", "quarter", "month", "month_name")


def metric_fields(kind: str) -> list[str]:
    """Numeric (optional float) fields of a dataset's fact type, in declaration order."""
    fact_type = FACT_TYPES[kind]
    return [
        item.name
        for item in fields(fact_type)
        if item.name not in TEMPORAL_FIELDS and "float" in str(item.type)
    ]


def text_fields(kind: str) -> list[str]:
    fact_type = FACT_TYPES[kind]
    return [
        item.name
        for item in fields(fact_type)
        if item.name not in TEMPORAL_FIELDS and "float" not in str(item.type)
    ]


@dataclass(frozen=True)
class Target:
    metric_category: str | None
    metric_name: str | None
    q1_target: float | None = None
    q2_target: float | None = None
    q3_target: float | None = None
    q4_target: float | None = None
    annual_target: float | None = None
    notes: str | None = None

    def target_for(self, quarter: str | None) -> float | None:
        if quarter is None:
            return self.annual_target
        return getattr(self, f"{quarter.lower()}_target")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Note:
    date: str | None
    category: str | None
    note: str | None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class DashboardConfig:
    last_updated: str | None = None
    current_quarter: str | None = None
    current_year: int | None = None

    def default_period(self) -> Period | None:
        if self.current_year is None:
            return None
        quarter = self.current_quarter if self.current_quarter in QUARTERS else None
        return Period(year=self.current_year, quarter=quarter)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Trend:
    """Period-over-period delta.

    ``change`` is a percent change when ``is_rate`` is False and a
    percentage-point difference when ``is_rate`` is True. ``is_new`` marks
    growth from a zero base, where a percent change cannot be expressed and
    ``change`` is reported as 0. ``comparable`` is False when either side was
    never reported.
    """

    current: float | None
    previous: float | None
    change: float
    direction: Direction
    is_rate: bool = False
    is_new: bool = False
    comparable: bool = True

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Insight:
    id: str
    type: InsightType
    title: str
    description: str
    confidence: Level
    priority: Level
    metric: str | None = None
    value: float | None = None
    change: float | None = None
    actions: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["actions"] = list(self.actions)
        return payload
