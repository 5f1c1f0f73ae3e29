"""
Aggregator tests.

Volume metrics sum, rate metrics average over reported values, and every
derived rate is a ratio of sums. Empty periods aggregate to zeros instead of
raising, and unreported metrics stay distinguishable from reported zeros.
"""

from __future__ import annotations

import math

import pytest

from dashboard_engine.application.fact_store import FactStore
from dashboard_engine.application.reporting.aggregator import (
    SUMMARIZERS,
    TrafficSummary,
    facts_frame,
    rate_means,
    summarize_email,
    summarize_events,
    summarize_leads,
    summarize_search,
    summarize_social,
    summarize_traffic,
    summarize_website,
    volume_totals,
)
from dashboard_engine.domain.models import Period


def _finite_numbers(payload):
    if isinstance(payload, dict):
        for value in payload.values():
            yield from _finite_numbers(value)
    elif isinstance(payload, (list, tuple)):
        for value in payload:
            yield from _finite_numbers(value)
    elif isinstance(payload, float):
        yield payload


# ---------------------------------------------------------------------------
# Reducers
# ---------------------------------------------------------------------------


class TestReducers:
    def test_empty_frame(self):
        frame = facts_frame("website", [])

        assert volume_totals(frame, ["sessions"]) == {"sessions": 0.0}
        assert rate_means(frame, ["bounce_rate"]) == {"bounce_rate": (0.0, 0)}

    def test_unreported_column_is_absent_not_zero(self, make_row):
        store = FactStore.from_sheets({"Website_Data": [make_row(2024, "Q1", 1, Pageviews=10)]})
        frame = facts_frame("website", store.get_all("website"))

        totals = volume_totals(frame, ["sessions", "pageviews"])

        assert totals["sessions"] is None
        assert totals["pageviews"] == 10.0

    def test_rate_mean_ignores_unreported_months(self, make_row):
        store = FactStore.from_sheets(
            {
                "Website_Data": [
                    make_row(2024, "Q1", 1, Bounce_Rate=40),
                    make_row(2024, "Q1", 2, Bounce_Rate=None),
                    make_row(2024, "Q1", 3, Bounce_Rate=60),
                ]
            }
        )
        frame = facts_frame("website", store.get_all("website"))

        assert rate_means(frame, ["bounce_rate"])["bounce_rate"] == (50.0, 2)


# ---------------------------------------------------------------------------
# Website
# ---------------------------------------------------------------------------


class TestWebsiteSummary:
    def test_quarter_totals(self, store):
        summary = summarize_website(store, Period(2024, "Q1"))

        assert summary.rows == 3
        assert summary.sessions == 1000.0
        assert summary.pageviews == 3000.0
        assert summary.unique_visitors == 700.0
        assert summary.bounce_rate == pytest.approx(45.0)
        assert summary.bounce_rate_observations == 3
        assert summary.pages_per_session == pytest.approx(3.0)
        assert summary.new_visitor_share == pytest.approx(500 / 700 * 100)
        assert summary.missing_session_months == 0

    def test_quarters_add_up_to_the_year(self, store):
        annual = summarize_website(store, Period(2024))
        quarters = [summarize_website(store, Period(2024, quarter)) for quarter in ("Q1", "Q2", "Q3", "Q4")]

        assert annual.sessions == sum(summary.sessions for summary in quarters)
        assert annual.pageviews == sum(summary.pageviews for summary in quarters)

    def test_empty_period(self, store):
        summary = summarize_website(store, Period(2030, "Q3"))

        assert summary.is_empty
        assert summary.sessions == 0.0
        assert summary.bounce_rate == 0.0
        assert summary.bounce_rate_observations == 0
        assert summary.pages_per_session == 0.0

    def test_missing_session_months(self, make_row):
        store = FactStore.from_sheets(
            {
                "Website_Data": [
                    make_row(2024, "Q1", 1, Sessions=100),
                    make_row(2024, "Q1", 2, Pageviews=50),
                ]
            }
        )

        summary = summarize_website(store, Period(2024, "Q1"))

        assert summary.sessions == 100.0
        assert summary.missing_session_months == 1


# ---------------------------------------------------------------------------
# Traffic sources
# ---------------------------------------------------------------------------


class TestTrafficSummary:
    def test_shares_match_uniform_months(self, store):
        summary = summarize_traffic(store, Period(2024, "Q2"))

        assert summary.weighted_sessions == 1200.0
        assert summary.shares["direct"] == pytest.approx(65.0)
        assert summary.shares["search_engines"] == pytest.approx(10.0)
        assert summary.shares["social_media"] == pytest.approx(3.0)
        assert summary.has_signal

    def test_shares_are_weighted_by_sessions(self, make_row):
        store = FactStore.from_sheets(
            {
                "Website_Data": [
                    make_row(2024, "Q1", 1, Sessions=100),
                    make_row(2024, "Q1", 2, Sessions=300),
                ],
                "Traffic_Sources": [
                    make_row(2024, "Q1", 1, Direct_Traffic=50),
                    make_row(2024, "Q1", 2, Direct_Traffic=10),
                ],
            }
        )

        summary = summarize_traffic(store, Period(2024, "Q1"))

        assert summary.sessions_by_channel["direct"] == pytest.approx(80.0)
        assert summary.shares["direct"] == pytest.approx(20.0)

    def test_months_without_sessions_carry_no_weight(self, make_row):
        store = FactStore.from_sheets(
            {
                "Website_Data": [make_row(2024, "Q1", 1, Sessions=None)],
                "Traffic_Sources": [make_row(2024, "Q1", 1, Direct_Traffic=70)],
            }
        )

        summary = summarize_traffic(store, Period(2024, "Q1"))

        assert summary.rows == 1
        assert summary.weighted_sessions == 0.0
        assert summary.shares["direct"] == 0.0
        assert not summary.has_signal

    def test_blank_channel_month_does_not_dilute_share(self, make_row):
        store = FactStore.from_sheets(
            {
                "Website_Data": [
                    make_row(2024, "Q1", 1, Sessions=100),
                    make_row(2024, "Q1", 2, Sessions=300),
                ],
                "Traffic_Sources": [
                    make_row(2024, "Q1", 1, Direct_Traffic=50, Search_Engines=20),
                    make_row(2024, "Q1", 2, Direct_Traffic=40),
                ],
            }
        )

        summary = summarize_traffic(store, Period(2024, "Q1"))

        assert summary.weighted_sessions == 400.0
        assert summary.shares["search_engines"] == pytest.approx(20.0)
        assert summary.shares["direct"] == pytest.approx(42.5)

    def test_summary_is_hashable_and_read_only(self, store):
        summary = summarize_traffic(store, Period(2024, "Q2"))

        assert hash(summary) == hash(summarize_traffic(store, Period(2024, "Q2")))
        assert summary == summarize_traffic(store, Period(2024, "Q2"))
        with pytest.raises(TypeError):
            summary.shares["direct"] = 0.0  # type: ignore[index]
        assert isinstance(summary.to_dict()["shares"], dict)

    def test_default_summary_is_hashable(self):
        assert isinstance(hash(TrafficSummary(period=Period(2024, "Q1"), rows=0)), int)

    def test_empty_period(self, store):
        summary = summarize_traffic(store, Period(2030, "Q1"))

        assert summary.is_empty
        assert all(share == 0.0 for share in summary.shares.values())


# ---------------------------------------------------------------------------
# Other datasets
# ---------------------------------------------------------------------------


class TestChannelSummaries:
    def test_search(self, store):
        summary = summarize_search(store, Period(2024, "Q2"))

        assert summary.impressions == 30000.0
        assert summary.clicks == 900.0
        assert summary.ctr == pytest.approx(3.0)
        assert summary.avg_position == pytest.approx(8.0)

    def test_social_engagement_is_ratio_of_sums(self, store):
        summary = summarize_social(store, Period(2024, "Q2"))

        assert summary.impressions == 8000.0
        assert summary.engagements == 200.0
        assert summary.engagement_rate == pytest.approx(2.5)
        assert summary.click_through_rate == pytest.approx(1.0)
        assert [channel.channel for channel in summary.channels] == ["LinkedIn", "Twitter"]
        assert summary.channels[0].engagement_rate == pytest.approx(3.0)

    def test_social_empty_period(self, store):
        summary = summarize_social(store, Period(2030, "Q1"))

        assert summary.engagements == 0.0
        assert summary.engagement_rate == 0.0
        assert summary.channels == ()

    def test_email_rates_from_sums(self, store):
        summary = summarize_email(store, Period(2024, "Q2"))

        assert summary.open_rate == pytest.approx(25.0)
        assert summary.click_rate == pytest.approx(5.0)
        assert summary.click_to_open_rate == pytest.approx(20.0)
        assert summary.delivery_rate == pytest.approx(98.0)

    def test_email_with_nothing_sent(self, make_row):
        store = FactStore.from_sheets({"Email_Data": [make_row(2024, "Q1", 1, Emails_Sent=0, Unique_Opens=0)]})

        summary = summarize_email(store, Period(2024, "Q1"))

        assert summary.open_rate == 0.0
        assert summary.click_to_open_rate == 0.0

    def test_leads(self, store):
        summary = summarize_leads(store, Period(2024, "Q2"))

        assert summary.new_marketing_prospects == 300.0
        assert summary.pipeline_value == 30000.0
        assert summary.assigned_prospects is None


class TestEventsSummary:
    def test_quarter_totals(self, store):
        summary = summarize_events(store, Period(2024, "Q2"))

        assert summary.number_events == 3.0
        assert summary.registered == 200.0
        assert summary.attended == 120.0
        assert summary.opportunity == 7.0
        assert summary.attendance_rate == pytest.approx(60.0)
        assert summary.attendee_to_mql_rate == pytest.approx(30.0)

    def test_events_in_the_same_month_are_added_up(self, store):
        months = summarize_events(store, Period(2024, "Q2")).months

        assert [month.month_name for month in months] == ["April", "May"]
        assert months[0].events == 2.0
        assert months[0].registered == 150.0
        assert months[0].attendance_rate == pytest.approx(60.0)
        assert months[0].conversion_rate == pytest.approx(100 / 3)
        assert months[1].conversion_rate == pytest.approx(20.0)

    def test_empty_period(self, store):
        summary = summarize_events(store, Period(2030, "Q1"))

        assert summary.is_empty
        assert summary.registered == 0.0
        assert summary.months == ()
        assert not summary.observed("attendance_rate")


# ---------------------------------------------------------------------------
# Rate signals
# ---------------------------------------------------------------------------


class TestObservedRates:
    def test_rates_with_data_are_observed(self, store):
        period = Period(2024, "Q2")

        assert summarize_website(store, period).observed("bounce_rate")
        assert summarize_search(store, period).observed("ctr")
        assert summarize_social(store, period).observed("engagement_rate")
        assert summarize_email(store, period).observed("open_rate")

    def test_empty_period_rates_are_placeholders(self, store):
        period = Period(2030, "Q1")

        website = summarize_website(store, period)
        assert website.bounce_rate == 0.0
        assert not website.observed("bounce_rate")
        assert not summarize_search(store, period).observed("avg_position")
        assert not summarize_social(store, period).observed("engagement_rate")
        assert not summarize_email(store, period).observed("open_rate")

    def test_volume_fields_are_always_observed(self, store):
        assert summarize_website(store, Period(2030, "Q1")).observed("sessions")

    def test_unreported_numerator_is_not_observed(self, make_row):
        store = FactStore.from_sheets({"Email_Data": [make_row(2024, "Q1", 1, Emails_Sent=500)]})

        summary = summarize_email(store, Period(2024, "Q1"))

        assert summary.open_rate == 0.0
        assert not summary.observed("open_rate")

    def test_reported_zero_rate_is_observed(self, make_row):
        store = FactStore.from_sheets({"Email_Data": [make_row(2024, "Q1", 1, Emails_Sent=500, Unique_Opens=0)]})

        summary = summarize_email(store, Period(2024, "Q1"))

        assert summary.open_rate == 0.0
        assert summary.observed("open_rate")



class TestNoNonFiniteValues:
    @pytest.mark.parametrize("kind", sorted(SUMMARIZERS))
    @pytest.mark.parametrize("period", [Period(2024, "Q1"), Period(2024, "Q2"), Period(2024), Period(2030, "Q4")])
    def test_summaries_are_finite(self, store, kind, period):
        payload = SUMMARIZERS[kind](store, period).to_dict()

        assert all(math.isfinite(value) for value in _finite_numbers(payload))
