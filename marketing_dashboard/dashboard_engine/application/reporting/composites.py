"""Composite metrics: lead and event funnel conversions, share of voice, digital reach."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Sequence

from dashboard_engine.application.reporting.aggregator import (
    EventsSummary,
    LeadsSummary,
    ShareOfVoiceSummary,
    SocialSummary,
    Summary,
    WebsiteSummary,
)
from dashboard_engine.application.reporting.metrics import safe_pct, to_float

FUNNEL_STAGES: tuple[tuple[str, str], ...] = (
    ("new_marketing_prospects", "New Prospects"),
    ("marketing_qualified", "Marketing Qualified"),
    ("sales_accepted", "Sales Accepted"),
    ("opportunities", "Opportunities"),
)
EVENT_FUNNEL_STAGES: tuple[tuple[str, str], ...] = (
    ("registered", "Registered"),
    ("attended", "Attended"),
    ("mql", "MQL"),
    ("sal", "SAL"),
    ("opportunity", "Opportunity"),
)


def stage_conversion(value: float | None, previous_value: float | None) -> float:
    """Stage-to-stage conversion in percent.

    Zero (or unreported) predecessors convert at 0. Not clamped at 100, so a
    stage larger than its predecessor stays visible.
    """
    return safe_pct(to_float(value), to_float(previous_value))


@dataclass(frozen=True)
class FunnelStage:
    key: str
    label: str
    value: float | None
    conversion_rate: float | None

    @property
    def display_rate(self) -> int | None:
        if self.conversion_rate is None:
            return None
        return round(self.conversion_rate)

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["display_rate"] = self.display_rate
        return payload


@dataclass(frozen=True)
class LeadFunnel:
    stages: tuple[FunnelStage, ...]
    overall_conversion: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "stages": [stage.to_dict() for stage in self.stages],
            "overall_conversion": self.overall_conversion,
        }


def build_funnel(summary: Summary, stages: Sequence[tuple[str, str]]) -> LeadFunnel:
    """Walk ``stages`` in order; the first stage has no conversion rate."""
    built: list[FunnelStage] = []
    previous: float | None = None
    for index, (key, label) in enumerate(stages):
        value = getattr(summary, key)
        rate = None if index == 0 else stage_conversion(value, previous)
        built.append(FunnelStage(key=key, label=label, value=value, conversion_rate=rate))
        previous = value
    overall = stage_conversion(built[-1].value, built[0].value)
    return LeadFunnel(stages=tuple(built), overall_conversion=overall)


def lead_funnel(summary: LeadsSummary) -> LeadFunnel:
    return build_funnel(summary, FUNNEL_STAGES)


def events_funnel(summary: EventsSummary) -> LeadFunnel:
    """Registered -> attended -> MQL -> SAL -> opportunity; overall is opportunities per registration."""
    return build_funnel(summary, EVENT_FUNNEL_STAGES)


def share_of_voice(ours: float | None, competitor1: float | None, competitor2: float | None) -> float:
    """Our mentions as a percent of all tracked mentions; 0 when nobody was mentioned."""
    total = to_float(ours) + to_float(competitor1) + to_float(competitor2)
    return safe_pct(to_float(ours), total)


def share_of_voice_for(summary: ShareOfVoiceSummary) -> float:
    return share_of_voice(
        summary.media_mention_volume,
        summary.competitor1_mentions,
        summary.competitor2_mentions,
    )


def digital_reach(website: WebsiteSummary, social: SocialSummary) -> float:
    """Unique visitors plus social impressions.

    People reached through both channels are counted twice; the composite is a
    reach indicator, not a deduplicated audience size.
    """
    return to_float(website.unique_visitors) + to_float(social.impressions)
