"""Application service for rule-based insight generation."""

from __future__ import annotations

import logging

from dashboard_engine.application.fact_store import FactStore
from dashboard_engine.application.reporting.aggregator import summarize_traffic, summarize_website
from dashboard_engine.application.reporting.metrics import percent_trend
from dashboard_engine.domain.insight_rules import INSIGHT_RULES, InsightContext, InsightRule, TargetCheck, sort_by_priority
from dashboard_engine.domain.models import Insight, Period, Target
from dashboard_engine.domain.periods import resolve_comparison_period

logger = logging.getLogger(__name__)

WEBSITE_TARGET_CATEGORY = "website"
WEBSITE_TARGET_METRICS: dict[str, str] = {
    "sessions": "sessions",
    "pageviews": "pageviews",
    "unique_visitors": "unique_visitors",
}


def _metric_key(name: str | None) -> str:
    return str(name or "").strip().lower().replace(" ", "_")


def _website_targets(targets: tuple[Target, ...]) -> list[Target]:
    return [target for target in targets if _metric_key(target.metric_category) == WEBSITE_TARGET_CATEGORY]


def build_insight_context(store: FactStore, period: Period) -> InsightContext:
    """Collect the aggregates the rules read.

    Insights always compare against the previous quarter (previous year for a
    whole-year view), independent of the dashboard's comparison mode.
    """
    comparison = resolve_comparison_period(period, "prev_quarter")
    website = summarize_website(store, period)
    previous_website = summarize_website(store, comparison)
    traffic = summarize_traffic(store, period)

    available: set[str] = set()
    if not website.is_empty:
        available.add("website")
    if not previous_website.is_empty:
        available.add("previous_website")
    if traffic.has_signal:
        available.add("traffic")

    session_change = None
    trend = percent_trend(website.sessions, previous_website.sessions)
    if trend.comparable and not previous_website.is_empty:
        session_change = trend.change

    target_checks: list[TargetCheck] = []
    website_targets = _website_targets(store.targets)
    if website_targets:
        available.add("targets")
    for target in website_targets:
        column = WEBSITE_TARGET_METRICS.get(_metric_key(target.metric_name))
        if column is None:
            continue
        actual = getattr(website, column)
        target_value = target.target_for(period.quarter)
        if actual is None or target_value is None or actual <= 0 or target_value <= 0:
            continue
        target_checks.append(TargetCheck(metric_name=str(target.metric_name), actual=actual, target=target_value))

    return InsightContext(
        period=period,
        comparison=comparison,
        available=frozenset(available),
        sessions=website.sessions,
        session_change=session_change,
        bounce_rate=website.bounce_rate,
        bounce_rate_observations=website.bounce_rate_observations,
        missing_session_months=website.missing_session_months,
        traffic_shares=dict(traffic.shares),
        target_checks=tuple(target_checks),
    )


def evaluate_rules(context: InsightContext, rules: tuple[InsightRule, ...] = INSIGHT_RULES) -> list[Insight]:
    insights: list[Insight] = []
    for rule in rules:
        if not rule.can_evaluate(context):
            logger.debug("Insight rule %s skipped: missing %s", rule.name, sorted(rule.requires - context.available))
            continue
        try:
            if rule.predicate(context):
                insights.extend(rule.factory(context))
        except (KeyError, TypeError, ValueError, ZeroDivisionError) as exc:
            logger.warning("Insight rule %s failed and was skipped: %s", rule.name, exc)
    return sort_by_priority(insights)


def generate_insights(store: FactStore, period: Period) -> list[Insight]:
    """Evaluate every insight rule for the period and return them by priority."""
    insights = evaluate_rules(build_insight_context(store, period))
    logger.info("Generated %d insights for %s", len(insights), period.label)
    return insights
