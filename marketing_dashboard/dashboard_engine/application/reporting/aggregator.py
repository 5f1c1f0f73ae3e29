"""Period aggregation over the fact store (volume sums, rate means, ratio-of-sums)."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from types import MappingProxyType
from typing import Any, Callable, ClassVar, Mapping, Sequence, TypeVar

import polars as pl

from dashboard_engine.application.fact_store import FactStore
from dashboard_engine.application.reporting.metrics import safe_pct, safe_ratio, safe_ratio_expr, to_float
from dashboard_engine.domain.models import Fact, Period, metric_fields, text_fields

T = TypeVar("T")

TRAFFIC_CHANNELS: tuple[str, ...] = (
    "direct",
    "search_engines",
    "social_media",
    "internal_referrers",
    "external_referrers",
)
UNKNOWN_CHANNEL = "Unknown"


def frame_schema(kind: str) -> dict[str, pl.DataType]:
    schema: dict[str, Any] = {
        "year": pl.Int64,
        "quarter": pl.Utf8,
        "month": pl.Int64,
        "month_name": pl.Utf8,
    }
    for name in text_fields(kind):
        schema[name] = pl.Utf8
    for name in metric_fields(kind):
        schema[name] = pl.Float64
    return schema


def facts_frame(kind: str, facts: Sequence[Fact]) -> pl.DataFrame:
    """Polars view of facts; absent metrics stay null."""
    schema = frame_schema(kind)
    if not facts:
        return pl.DataFrame(schema=schema)
    metrics = set(metric_fields(kind))
    records: list[dict[str, Any]] = []
    for fact in facts:
        record = fact.to_dict()
        for name in metrics:
            if record[name] is not None:
                record[name] = float(record[name])
        records.append(record)
    return pl.DataFrame(records, schema=schema)


def aggregate(store: FactStore, kind: str, year: int, quarter: str | None, reducer: Callable[[pl.DataFrame], T]) -> T:
    """Filter ``kind`` through the store and reduce the period frame."""
    return reducer(facts_frame(kind, store.filter(kind, year, quarter)))


def volume_totals(frame: pl.DataFrame, columns: Sequence[str]) -> dict[str, float | None]:
    """Sum of reported values per column.

    An empty frame sums to 0 (no activity). A non-empty frame where no row
    reported the column gives None (never reported, not zero).
    """
    if frame.is_empty():
        return {column: 0.0 for column in columns}
    exprs: list[pl.Expr] = []
    for column in columns:
        exprs.append(pl.col(column).sum().alias(f"{column}__sum"))
        exprs.append(pl.col(column).is_not_null().sum().alias(f"{column}__n"))
    row = frame.select(exprs).row(0, named=True)
    totals: dict[str, float | None] = {}
    for column in columns:
        reported = int(row[f"{column}__n"] or 0)
        totals[column] = float(row[f"{column}__sum"] or 0.0) if reported > 0 else None
    return totals


def rate_means(frame: pl.DataFrame, columns: Sequence[str]) -> dict[str, tuple[float, int]]:
    """Arithmetic mean over reported values and the number of observations.

    With no observations the mean is 0 and the count is 0; callers must read
    that as "no signal".
    """
    if frame.is_empty():
        return {column: (0.0, 0) for column in columns}
    exprs: list[pl.Expr] = []
    for column in columns:
        exprs.append(pl.col(column).mean().alias(f"{column}__mean"))
        exprs.append(pl.col(column).is_not_null().sum().alias(f"{column}__n"))
    row = frame.select(exprs).row(0, named=True)
    means: dict[str, tuple[float, int]] = {}
    for column in columns:
        observed = int(row[f"{column}__n"] or 0)
        mean = row[f"{column}__mean"]
        means[column] = (float(mean) if observed > 0 and mean is not None else 0.0, observed)
    return means


def _add(*values: float | None) -> float | None:
    reported = [value for value in values if value is not None]
    if not reported:
        return None
    return float(sum(reported))


@dataclass(frozen=True)
class Summary:
    """Base period summary.

    Rates fall back to 0 when there is nothing to compute them from.
    ``RATE_SIGNALS`` maps each such rate to the field that must be positive
    (an observation count or a denominator) and the numerators that must have
    been reported; ``observed`` tells a real 0% from that placeholder.
    """

    RATE_SIGNALS: ClassVar[dict[str, tuple[str, tuple[str, ...]]]] = {}

    period: Period
    rows: int

    @property
    def is_empty(self) -> bool:
        return self.rows == 0

    def observed(self, name: str) -> bool:
        signal = self.RATE_SIGNALS.get(name)
        if signal is None:
            return True
        base, numerators = signal
        return to_float(getattr(self, base)) > 0 and all(getattr(self, numerator) is not None for numerator in numerators)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        for item in fields(self):
            value = getattr(self, item.name)
            if isinstance(value, Mapping):
                value = dict(value)
            elif isinstance(value, tuple):
                value = [entry.to_dict() for entry in value]
            payload[item.name] = value
        payload["period"] = self.period.to_dict()
        payload["is_empty"] = self.is_empty
        return payload


@dataclass(frozen=True)
class WebsiteSummary(Summary):
    RATE_SIGNALS: ClassVar[dict[str, tuple[str, tuple[str, ...]]]] = {
        "bounce_rate": ("bounce_rate_observations", ()),
        "avg_session_duration": ("avg_session_duration_observations", ()),
        "pages_per_session": ("sessions", ("pageviews",)),
        "new_visitor_share": ("unique_visitors", ("returning_visitors",)),
    }

    sessions: float | None = 0.0
    pageviews: float | None = 0.0
    unique_visitors: float | None = 0.0
    returning_visitors: float | None = 0.0
    downloads_pdfs: float | None = 0.0
    video_views: float | None = 0.0
    bounce_rate: float = 0.0
    bounce_rate_observations: int = 0
    avg_session_duration: float = 0.0
    avg_session_duration_observations: int = 0
    missing_session_months: int = 0
    pages_per_session: float = 0.0
    new_visitor_share: float = 0.0


@dataclass(frozen=True)
class TrafficSummary(Summary):
    """Volume-weighted channel shares.

    ``weighted_sessions`` is the total website sessions of the months that had
    both a traffic row and a reported session count. Each channel's share is
    taken over the sessions of the months that reported that channel, so a
    blank percentage does not dilute it.
    """

    weighted_sessions: float = 0.0
    sessions_by_channel: Mapping[str, float] = field(default_factory=lambda: MappingProxyType({}))
    shares: Mapping[str, float] = field(default_factory=lambda: MappingProxyType({}))

    def __hash__(self) -> int:
        return hash((self.period, self.rows, self.weighted_sessions, tuple(self.shares.items())))

    @property
    def has_signal(self) -> bool:
        return self.weighted_sessions > 0


@dataclass(frozen=True)
class SearchSummary(Summary):
    RATE_SIGNALS: ClassVar[dict[str, tuple[str, tuple[str, ...]]]] = {
        "ctr": ("ctr_observations", ()),
        "avg_position": ("avg_position_observations", ()),
    }

    impressions: float | None = 0.0
    clicks: float | None = 0.0
    ctr: float = 0.0
    ctr_observations: int = 0
    avg_position: float = 0.0
    avg_position_observations: int = 0


@dataclass(frozen=True)
class SocialChannelSummary:
    channel: str
    impressions: float
    engagements: float
    clicks: float
    engagement_rate: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class SocialSummary(Summary):
    RATE_SIGNALS: ClassVar[dict[str, tuple[str, tuple[str, ...]]]] = {
        "engagement_rate": ("impressions", ("engagements",)),
        "click_through_rate": ("impressions", ("clicks",)),
    }

    impressions: float | None = 0.0
    views: float | None = 0.0
    reactions: float | None = 0.0
    comments: float | None = 0.0
    shares: float | None = 0.0
    clicks: float | None = 0.0
    budget: float | None = 0.0
    engagements: float | None = 0.0
    engagement_rate: float = 0.0
    click_through_rate: float = 0.0
    channels: tuple[SocialChannelSummary, ...] = ()


@dataclass(frozen=True)
class EmailSummary(Summary):
    RATE_SIGNALS: ClassVar[dict[str, tuple[str, tuple[str, ...]]]] = {
        "open_rate": ("emails_sent", ("unique_opens",)),
        "click_rate": ("emails_sent", ("unique_clicks",)),
        "click_to_open_rate": ("unique_opens", ("unique_clicks",)),
        "delivery_rate": ("emails_sent", ("emails_delivered",)),
    }

    emails_sent: float | None = 0.0
    emails_delivered: float | None = 0.0
    unique_opens: float | None = 0.0
    unique_clicks: float | None = 0.0
    hard_bounces: float | None = 0.0
    soft_bounces: float | None = 0.0
    unsubscribes: float | None = 0.0
    open_rate: float = 0.0
    click_rate: float = 0.0
    click_to_open_rate: float = 0.0
    delivery_rate: float = 0.0


@dataclass(frozen=True)
class LeadsSummary(Summary):
    new_marketing_prospects: float | None = 0.0
    assigned_prospects: float | None = 0.0
    active_prospects: float | None = 0.0
    unsubscribed_prospects: float | None = 0.0
    marketing_qualified: float | None = 0.0
    sales_accepted: float | None = 0.0
    opportunities: float | None = 0.0
    pipeline_value: float | None = 0.0


@dataclass(frozen=True)
class ShareOfVoiceSummary(Summary):
    media_mention_volume: float | None = 0.0
    competitor1_mentions: float | None = 0.0
    competitor2_mentions: float | None = 0.0
    media_reach_impressions: float | None = 0.0
    social_mentions: float | None = 0.0

    @property
    def total_mentions(self) -> float:
        return to_float(self.media_mention_volume) + to_float(self.competitor1_mentions) + to_float(self.competitor2_mentions)


@dataclass(frozen=True)
class EventsMonth:
    month: int
    month_name: str | None
    events: float
    registered: float
    attended: float
    mql: float
    sal: float
    opportunity: float
    attendance_rate: float
    conversion_rate: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class EventsSummary(Summary):
    """Event volumes; ``months`` holds one entry per month, events of the same month added up."""

    RATE_SIGNALS: ClassVar[dict[str, tuple[str, tuple[str, ...]]]] = {
        "attendance_rate": ("registered", ("attended",)),
        "attendee_to_mql_rate": ("attended", ("mql",)),
    }

    number_events: float | None = 0.0
    registered: float | None = 0.0
    attended: float | None = 0.0
    mql: float | None = 0.0
    sal: float | None = 0.0
    opportunity: float | None = 0.0
    attendance_rate: float = 0.0
    attendee_to_mql_rate: float = 0.0
    months: tuple[EventsMonth, ...] = ()



def summarize_website(store: FactStore, period: Period) -> WebsiteSummary:
    def _reduce(frame: pl.DataFrame) -> WebsiteSummary:
        totals = volume_totals(
            frame,
            ["sessions", "pageviews", "unique_visitors", "returning_visitors", "downloads_pdfs", "video_views"],
        )
        means = rate_means(frame, ["bounce_rate", "avg_session_duration"])
        missing = int(frame.select(pl.col("sessions").is_null().sum()).item()) if not frame.is_empty() else 0
        unique = totals["unique_visitors"]
        returning = totals["returning_visitors"]
        new_visitors = unique - returning if unique is not None and returning is not None else None
        return WebsiteSummary(
            period=period,
            rows=frame.height,
            **totals,
            bounce_rate=means["bounce_rate"][0],
            bounce_rate_observations=means["bounce_rate"][1],
            avg_session_duration=means["avg_session_duration"][0],
            avg_session_duration_observations=means["avg_session_duration"][1],
            missing_session_months=missing,
            pages_per_session=safe_ratio(totals["pageviews"], totals["sessions"]) or 0.0,
            new_visitor_share=safe_pct(new_visitors, unique),
        )

    return aggregate(store, "website", period.year, period.quarter, _reduce)


def _monthly_sessions(store: FactStore, period: Period) -> pl.DataFrame:
    website = facts_frame("website", store.filter("website", period.year, period.quarter))
    return (
        website.filter(pl.col("sessions").is_not_null())
        .group_by(["year", "month"])
        .agg(pl.col("sessions").sum())
    )


def summarize_traffic(store: FactStore, period: Period) -> TrafficSummary:
    """Channel shares weighted by each month's website sessions."""

    def _reduce(frame: pl.DataFrame) -> TrafficSummary:
        empty = MappingProxyType({channel: 0.0 for channel in TRAFFIC_CHANNELS})
        if frame.is_empty():
            return TrafficSummary(period=period, rows=0, sessions_by_channel=empty, shares=empty)
        joined = frame.join(_monthly_sessions(store, period), on=["year", "month"], how="inner")
        if joined.is_empty():
            return TrafficSummary(period=period, rows=frame.height, sessions_by_channel=empty, shares=empty)
        exprs = [pl.col("sessions").sum().alias("__sessions")]
        for channel in TRAFFIC_CHANNELS:
            exprs.append((pl.col(channel) / 100 * pl.col("sessions")).sum().alias(channel))
            exprs.append(pl.col("sessions").filter(pl.col(channel).is_not_null()).sum().alias(f"{channel}__base"))
        row = joined.select(exprs).row(0, named=True)
        counts = {channel: float(row[channel] or 0.0) for channel in TRAFFIC_CHANNELS}
        return TrafficSummary(
            period=period,
            rows=frame.height,
            weighted_sessions=float(row["__sessions"] or 0.0),
            sessions_by_channel=MappingProxyType(counts),
            shares=MappingProxyType(
                {channel: safe_pct(counts[channel], row[f"{channel}__base"]) for channel in TRAFFIC_CHANNELS}
            ),
        )

    return aggregate(store, "traffic", period.year, period.quarter, _reduce)



def summarize_search(store: FactStore, period: Period) -> SearchSummary:
    def _reduce(frame: pl.DataFrame) -> SearchSummary:
        totals = volume_totals(frame, ["impressions", "clicks"])
        means = rate_means(frame, ["ctr", "avg_position"])
        return SearchSummary(
            period=period,
            rows=frame.height,
            **totals,
            ctr=means["ctr"][0],
            ctr_observations=means["ctr"][1],
            avg_position=means["avg_position"][0],
            avg_position_observations=means["avg_position"][1],
        )

    return aggregate(store, "search", period.year, period.quarter, _reduce)


def _social_channels(frame: pl.DataFrame) -> tuple[SocialChannelSummary, ...]:
    if frame.is_empty():
        return ()
    engagements = pl.sum_horizontal(
        pl.col("reactions").sum(),
        pl.col("comments").sum(),
        pl.col("shares").sum(),
    )
    grouped = (
        frame.with_columns(pl.col("channel").fill_null(UNKNOWN_CHANNEL))
        .group_by("channel")
        .agg(
            pl.col("impressions").sum().alias("impressions"),
            engagements.alias("engagements"),
            pl.col("clicks").sum().alias("clicks"),
        )
        .with_columns((safe_ratio_expr(pl.col("engagements"), pl.col("impressions")) * 100).fill_null(0.0).alias("engagement_rate"))
        .sort(["impressions", "channel"], descending=[True, False])
    )
    return tuple(
        SocialChannelSummary(
            channel=str(item["channel"]),
            impressions=float(item["impressions"] or 0.0),
            engagements=float(item["engagements"] or 0.0),
            clicks=float(item["clicks"] or 0.0),
            engagement_rate=float(item["engagement_rate"] or 0.0),
        )
        for item in grouped.iter_rows(named=True)
    )


def summarize_social(store: FactStore, period: Period) -> SocialSummary:
    def _reduce(frame: pl.DataFrame) -> SocialSummary:
        totals = volume_totals(frame, ["impressions", "views", "reactions", "comments", "shares", "clicks", "budget"])
        engagements = _add(totals["reactions"], totals["comments"], totals["shares"])
        if frame.is_empty():
            engagements = 0.0
        return SocialSummary(
            period=period,
            rows=frame.height,
            **totals,
            engagements=engagements,
            engagement_rate=safe_pct(engagements, totals["impressions"]),
            click_through_rate=safe_pct(totals["clicks"], totals["impressions"]),
            channels=_social_channels(frame),
        )

    return aggregate(store, "social", period.year, period.quarter, _reduce)


def summarize_email(store: FactStore, period: Period) -> EmailSummary:
    """Email volumes; all rates derive from sums, never from source rate columns."""

    def _reduce(frame: pl.DataFrame) -> EmailSummary:
        totals = volume_totals(
            frame,
            [
                "emails_sent",
                "emails_delivered",
                "unique_opens",
                "unique_clicks",
                "hard_bounces",
                "soft_bounces",
                "unsubscribes",
            ],
        )
        return EmailSummary(
            period=period,
            rows=frame.height,
            **totals,
            open_rate=safe_pct(totals["unique_opens"], totals["emails_sent"]),
            click_rate=safe_pct(totals["unique_clicks"], totals["emails_sent"]),
            click_to_open_rate=safe_pct(totals["unique_clicks"], totals["unique_opens"]),
            delivery_rate=safe_pct(totals["emails_delivered"], totals["emails_sent"]),
        )

    return aggregate(store, "email", period.year, period.quarter, _reduce)


def summarize_leads(store: FactStore, period: Period) -> LeadsSummary:
    def _reduce(frame: pl.DataFrame) -> LeadsSummary:
        return LeadsSummary(period=period, rows=frame.height, **volume_totals(frame, metric_fields("leads")))

    return aggregate(store, "leads", period.year, period.quarter, _reduce)


def summarize_share_of_voice(store: FactStore, period: Period) -> ShareOfVoiceSummary:
    def _reduce(frame: pl.DataFrame) -> ShareOfVoiceSummary:
        return ShareOfVoiceSummary(period=period, rows=frame.height, **volume_totals(frame, metric_fields("share_of_voice")))

    return aggregate(store, "share_of_voice", period.year, period.quarter, _reduce)


def _event_months(frame: pl.DataFrame) -> tuple[EventsMonth, ...]:
    if frame.is_empty():
        return ()
    volumes = ["number_events", "registered", "attended", "mql", "sal", "opportunity"]
    grouped = (
        frame.group_by("month")
        .agg([pl.col("month_name").first()] + [pl.col(column).fill_null(0.0).sum() for column in volumes])
        .with_columns(
            (safe_ratio_expr(pl.col("attended"), pl.col("registered")) * 100).fill_null(0.0).alias("attendance_rate"),
            (safe_ratio_expr(pl.col("mql"), pl.col("attended")) * 100).fill_null(0.0).alias("conversion_rate"),
        )
        .sort("month")
    )
    return tuple(
        EventsMonth(
            month=int(item["month"]),
            month_name=item["month_name"],
            events=float(item["number_events"]),
            registered=float(item["registered"]),
            attended=float(item["attended"]),
            mql=float(item["mql"]),
            sal=float(item["sal"]),
            opportunity=float(item["opportunity"]),
            attendance_rate=float(item["attendance_rate"]),
            conversion_rate=float(item["conversion_rate"]),
        )
        for item in grouped.iter_rows(named=True)
    )


def summarize_events(store: FactStore, period: Period) -> EventsSummary:
    def _reduce(frame: pl.DataFrame) -> EventsSummary:
        totals = volume_totals(frame, metric_fields("events"))
        return EventsSummary(
            period=period,
            rows=frame.height,
            **totals,
            attendance_rate=safe_pct(totals["attended"], totals["registered"]),
            attendee_to_mql_rate=safe_pct(totals["mql"], totals["attended"]),
            months=_event_months(frame),
        )

    return aggregate(store, "events", period.year, period.quarter, _reduce)


SUMMARIZERS: dict[str, Callable[[FactStore, Period], Summary]] = {
    "website": summarize_website,
    "traffic": summarize_traffic,
    "search": summarize_search,
    "social": summarize_social,
    "email": summarize_email,
    "leads": summarize_leads,
    "share_of_voice": summarize_share_of_voice,
    "events": summarize_events,
}
