"""
Composite metric tests: lead and event funnels, share of voice and digital reach.
"""

from __future__ import annotations

import pytest

from dashboard_engine.application.fact_store import FactStore
from dashboard_engine.application.reporting.aggregator import (
    LeadsSummary,
    SocialSummary,
    WebsiteSummary,
    summarize_events,
    summarize_leads,
    summarize_share_of_voice,
    summarize_social,
    summarize_website,
)
from dashboard_engine.application.reporting.composites import (
    digital_reach,
    events_funnel,
    lead_funnel,
    share_of_voice,
    share_of_voice_for,
    stage_conversion,
)
from dashboard_engine.domain.models import Period


class TestStageConversion:
    def test_conversion(self):
        assert stage_conversion(30, 100) == pytest.approx(30.0)

    def test_zero_predecessor_converts_at_zero(self):
        assert stage_conversion(10, 0) == 0.0

    def test_unreported_predecessor_converts_at_zero(self):
        assert stage_conversion(10, None) == 0.0

    def test_not_clamped(self):
        assert stage_conversion(120, 100) == pytest.approx(120.0)


class TestLeadFunnel:
    def test_quarter_funnel(self, store):
        funnel = lead_funnel(summarize_leads(store, Period(2024, "Q2")))

        assert [stage.value for stage in funnel.stages] == [300.0, 90.0, 45.0, 15.0]
        assert funnel.stages[0].conversion_rate is None
        assert [stage.display_rate for stage in funnel.stages[1:]] == [30, 50, 33]
        assert funnel.overall_conversion == pytest.approx(5.0)

    def test_no_new_prospects(self, make_row):
        store = FactStore.from_sheets(
            {"Leads_Data": [make_row(2024, "Q3", 7, New_Marketing_Prospects=0, Marketing_Qualified=4)]}
        )

        funnel = lead_funnel(summarize_leads(store, Period(2024, "Q3")))

        assert funnel.stages[1].conversion_rate == 0.0
        assert funnel.overall_conversion == 0.0

    def test_larger_stage_than_predecessor_is_visible(self):
        summary = LeadsSummary(
            period=Period(2024, "Q1"),
            rows=1,
            new_marketing_prospects=100.0,
            marketing_qualified=120.0,
            sales_accepted=60.0,
            opportunities=30.0,
        )

        funnel = lead_funnel(summary)

        assert funnel.stages[1].conversion_rate == pytest.approx(120.0)
        assert funnel.to_dict()["stages"][1]["display_rate"] == 120


class TestEventsFunnel:
    def test_quarter_funnel(self, store):
        funnel = events_funnel(summarize_events(store, Period(2024, "Q2")))

        assert [stage.key for stage in funnel.stages] == ["registered", "attended", "mql", "sal", "opportunity"]
        assert [stage.value for stage in funnel.stages] == [200.0, 120.0, 36.0, 15.0, 7.0]
        assert funnel.stages[0].conversion_rate is None
        assert [stage.display_rate for stage in funnel.stages[1:]] == [60, 30, 42, 47]
        assert funnel.overall_conversion == pytest.approx(3.5)

    def test_no_registrations(self, store):
        funnel = events_funnel(summarize_events(store, Period(2030, "Q1")))

        assert all(stage.conversion_rate in (None, 0.0) for stage in funnel.stages)
        assert funnel.overall_conversion == 0.0


class TestShareOfVoice:
    def test_share(self, store):
        assert share_of_voice_for(summarize_share_of_voice(store, Period(2024, "Q2"))) == pytest.approx(60.0)

    def test_nobody_mentioned(self, store):
        assert share_of_voice_for(summarize_share_of_voice(store, Period(2024, "Q1"))) == 0.0

    def test_unreported_competitors_count_as_zero(self):
        assert share_of_voice(10, None, None) == pytest.approx(100.0)

    def test_empty_period(self, store):
        assert share_of_voice_for(summarize_share_of_voice(store, Period(2030, "Q1"))) == 0.0


class TestDigitalReach:
    def test_sum_of_visitors_and_impressions(self, store):
        period = Period(2024, "Q2")

        assert digital_reach(summarize_website(store, period), summarize_social(store, period)) == 8900.0

    def test_unreported_parts_count_as_zero(self):
        website = WebsiteSummary(period=Period(2024, "Q1"), rows=1, unique_visitors=None)
        social = SocialSummary(period=Period(2024, "Q1"), rows=1, impressions=500.0)

        assert digital_reach(website, social) == 500.0
