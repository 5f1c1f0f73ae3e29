"""Declarative insight rules evaluated over period aggregates."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Mapping, Sequence

from dashboard_engine.domain.models import ComparisonPeriod, Insight, Period

SESSION_CHANGE_THRESHOLD = 10.0
SESSION_CHANGE_HIGH_THRESHOLD = 20.0
BOUNCE_RATE_THRESHOLD = 50.0
DIRECT_SHARE_THRESHOLD = 60.0
SEARCH_SHARE_THRESHOLD = 15.0
SOCIAL_SHARE_THRESHOLD = 5.0
TARGET_UNDER_RATIO = 80.0
TARGET_UNDER_HIGH_RATIO = 60.0
TARGET_OVER_RATIO = 120.0

PRIORITY_ORDER: dict[str, int] = {"high": 0, "medium": 1, "low": 2}

BOUNCE_RATE_ACTIONS: tuple[str, ...] = (
    "Improve page load speed",
    "Enhance content relevance",
    "Optimize mobile experience",
    "Review landing page design",
)


@dataclass(frozen=True)
class TargetCheck:
    metric_name: str
    actual: float
    target: float

    @property
    def attainment(self) -> float:
        return self.actual / self.target * 100


@dataclass(frozen=True)
class InsightContext:
    """Plain numbers the rules read; built once per computation."""

    period: Period
    comparison: ComparisonPeriod
    available: frozenset[str] = frozenset()
    sessions: float | None = None
    session_change: float | None = None
    bounce_rate: float = 0.0
    bounce_rate_observations: int = 0
    missing_session_months: int = 0
    traffic_shares: Mapping[str, float] = field(default_factory=dict)
    target_checks: tuple[TargetCheck, ...] = ()


@dataclass(frozen=True)
class InsightRule:
    name: str
    requires: frozenset[str]
    predicate: Callable[[InsightContext], bool]
    factory: Callable[[InsightContext], Sequence[Insight]]

    def can_evaluate(self, context: InsightContext) -> bool:
        return self.requires.issubset(context.available)


def _session_change_insight(context: InsightContext) -> list[Insight]:
    change = context.session_change or 0.0
    growing = change > 0
    return [
        Insight(
            id="website-session-change",
            type="performance" if growing else "risk",
            title="Strong Traffic Growth" if growing else "Traffic Decline Alert",
            description=(
                f"Website sessions {'increased' if growing else 'decreased'} by {abs(change):.1f}% "
                f"compared to {context.comparison.label}."
            ),
            metric="Sessions",
            value=context.sessions,
            change=change,
            confidence="high",
            priority="high" if abs(change) > SESSION_CHANGE_HIGH_THRESHOLD else "medium",
            actions=(
                ("Continue current marketing strategies", "Analyze successful content for patterns")
                if growing
                else ("Review content strategy", "Increase marketing efforts", "Check for technical issues")
            ),
        )
    ]


def _bounce_rate_insight(context: InsightContext) -> list[Insight]:
    return [
        Insight(
            id="high-bounce-rate",
            type="risk",
            title="High Bounce Rate Detected",
            description=f"Average bounce rate of {context.bounce_rate:.1f}% is above industry standard (40-50%).",
            metric="Bounce Rate",
            value=context.bounce_rate,
            confidence="high",
            priority="medium",
            actions=BOUNCE_RATE_ACTIONS,
        )
    ]


def _missing_data_insight(context: InsightContext) -> list[Insight]:
    return [
        Insight(
            id="missing-data",
            type="risk",
            title="Incomplete Data Warning",
            description=(
                f"{context.missing_session_months} month(s) have missing website data for {context.period.label}."
            ),
            confidence="high",
            priority="low",
            actions=("Update Excel file with complete data", "Check data collection processes"),
        )
    ]


def _direct_traffic_insight(context: InsightContext) -> list[Insight]:
    share = context.traffic_shares["direct"]
    return [
        Insight(
            id="high-direct-traffic",
            type="opportunity",
            title="High Direct Traffic Indicates Strong Brand Recognition",
            description=f"{share:.1f}% of traffic comes directly to your site, showing strong brand awareness.",
            metric="Direct Traffic",
            value=share,
            confidence="high",
            priority="low",
            actions=("Leverage brand strength in marketing", "Consider brand expansion opportunities"),
        )
    ]


def _search_traffic_insight(context: InsightContext) -> list[Insight]:
    share = context.traffic_shares["search_engines"]
    return [
        Insight(
            id="low-search-traffic",
            type="opportunity",
            title="SEO Improvement Opportunity",
            description=f"Only {share:.1f}% of traffic comes from search engines. Industry average is 20-30%.",
            metric="Search Traffic",
            value=share,
            confidence="medium",
            priority="medium",
            actions=(
                "Invest in SEO optimization",
                "Create more search-friendly content",
                "Improve meta descriptions and titles",
                "Build quality backlinks",
            ),
        )
    ]


def _social_traffic_insight(context: InsightContext) -> list[Insight]:
    share = context.traffic_shares["social_media"]
    return [
        Insight(
            id="underutilized-social",
            type="opportunity",
            title="Social Media Traffic Can Be Improved",
            description=f"Social media drives only {share:.1f}% of traffic. There's room for growth.",
            metric="Social Traffic",
            value=share,
            confidence="medium",
            priority="low",
            actions=(
                "Increase social media posting frequency",
                "Engage more with followers",
                "Use paid social advertising",
                "Create shareable content",
            ),
        )
    ]


def _target_insights(context: InsightContext) -> list[Insight]:
    insights: list[Insight] = []
    for check in context.target_checks:
        attainment = check.attainment
        if attainment < TARGET_UNDER_RATIO:
            insights.append(
                Insight(
                    id=f"target-{check.metric_name}-underperform",
                    type="risk",
                    title=f"{check.metric_name} Below Target",
                    description=(
                        f"{check.metric_name} is at {attainment:.1f}% of target for {context.period.label} "
                        f"({check.actual:,.0f} / {check.target:,.0f})."
                    ),
                    metric=check.metric_name,
                    value=check.actual,
                    change=attainment,
                    confidence="high",
                    priority="high" if attainment < TARGET_UNDER_HIGH_RATIO else "medium",
                    actions=(
                        "Review and adjust marketing strategies",
                        "Increase promotional activities",
                        "Analyze competitor activities",
                    ),
                )
            )
        elif attainment > TARGET_OVER_RATIO:
            insights.append(
                Insight(
                    id=f"target-{check.metric_name}-exceed",
                    type="performance",
                    title=f"{check.metric_name} Exceeding Target",
                    description=(
                        f"{check.metric_name} is at {attainment:.1f}% of target for {context.period.label}. "
                        "Great performance!"
                    ),
                    metric=check.metric_name,
                    value=check.actual,
                    change=attainment,
                    confidence="high",
                    priority="low",
                    actions=("Document successful strategies", "Consider raising targets for next quarter"),
                )
            )
    return insights


INSIGHT_RULES: tuple[InsightRule, ...] = (
    InsightRule(
        name="session_change",
        requires=frozenset({"website", "previous_website"}),
        predicate=lambda ctx: ctx.session_change is not None and abs(ctx.session_change) > SESSION_CHANGE_THRESHOLD,
        factory=_session_change_insight,
    ),
    InsightRule(
        name="high_bounce_rate",
        requires=frozenset({"website"}),
        predicate=lambda ctx: ctx.bounce_rate_observations > 0 and ctx.bounce_rate > BOUNCE_RATE_THRESHOLD,
        factory=_bounce_rate_insight,
    ),
    InsightRule(
        name="missing_sessions",
        requires=frozenset({"website"}),
        predicate=lambda ctx: ctx.missing_session_months > 0,
        factory=_missing_data_insight,
    ),
    InsightRule(
        name="high_direct_traffic",
        requires=frozenset({"traffic"}),
        predicate=lambda ctx: ctx.traffic_shares["direct"] > DIRECT_SHARE_THRESHOLD,
        factory=_direct_traffic_insight,
    ),
    InsightRule(
        name="low_search_traffic",
        requires=frozenset({"traffic"}),
        predicate=lambda ctx: ctx.traffic_shares["search_engines"] < SEARCH_SHARE_THRESHOLD,
        factory=_search_traffic_insight,
    ),
    InsightRule(
        name="underutilized_social",
        # 0% means the channel is unused, which is not treated as an opportunity.
        requires=frozenset({"traffic"}),
        predicate=lambda ctx: 0 < ctx.traffic_shares["social_media"] < SOCIAL_SHARE_THRESHOLD,
        factory=_social_traffic_insight,
    ),
    InsightRule(
        name="website_targets",
        requires=frozenset({"website", "targets"}),
        predicate=lambda ctx: bool(ctx.target_checks),
        factory=_target_insights,
    ),
)


def sort_by_priority(insights: Sequence[Insight]) -> list[Insight]:
    """Stable sort: high before medium before low, ties keep rule order."""
    return sorted(insights, key=lambda insight: PRIORITY_ORDER[insight.priority])
