"""
Shared fixtures for the dashboard engine tests.

The ``raw_sheets`` fixture mirrors the workbook layout: one list of
header-keyed rows per sheet, with the same column labels the marketing team
uses in the spreadsheet. Numbers are chosen so expected aggregates are easy to
derive by hand:

- Website: Q4 2023 = 750 sessions, Q1 2024 = 1000, Q2 2024 = 1200
- Bounce rate: Q1 2024 mean 45%, Q2 2024 mean 70%
- Traffic Q2 2024: direct 65%, search 10%, social 3% every month
- Social Q2 2024: 8000 impressions, 200 engagements (2.5%)
- Email Q2 2024: 1000 sent, 250 opens (25%); Q1 2024: 800 sent, 160 opens (20%)
- Leads Q2 2024: 300 -> 90 -> 45 -> 15, pipeline 30000
- Share of voice Q2 2024: 60 / 30 / 10 mentions (60%)
- Events Q2 2024: two events in April, one in May; 200 registered -> 120
  attended -> 36 MQL -> 15 SAL -> 7 opportunities
"""

from __future__ import annotations

from typing import Any, Callable

import pytest

from dashboard_engine.application.fact_store import FactStore

MONTH_NAMES = {
    1: "January",
    2: "February",
    3: "March",
    4: "April",
    5: "May",
    6: "June",
    7: "July",
    8: "August",
    9: "September",
    10: "October",
    11: "November",
    12: "December",
}


def _row(year: int, quarter: str, month: int, **metrics: Any) -> dict[str, Any]:
    row: dict[str, Any] = {"Year": year, "Quarter": quarter, "Month": month, "Month_Name": MONTH_NAMES[month]}
    row.update(metrics)
    return row


def _website_rows() -> list[dict[str, Any]]:
    rows = [
        _row(2023, "Q4", month, Sessions=250, Pageviews=600, Unique_Visitors=200, Returning_Visitors=50, Bounce_Rate=40)
        for month in (10, 11, 12)
    ]
    rows += [
        _row(2024, "Q1", 1, Sessions=300, Pageviews=900, Unique_Visitors=200, Returning_Visitors=50, Bounce_Rate=40),
        _row(2024, "Q1", 2, Sessions=300, Pageviews=900, Unique_Visitors=200, Returning_Visitors=50, Bounce_Rate=45),
        _row(2024, "Q1", 3, Sessions=400, Pageviews=1200, Unique_Visitors=300, Returning_Visitors=100, Bounce_Rate=50),
    ]
    rows += [
        _row(2024, "Q2", month, Sessions=400, Pageviews=1000, Unique_Visitors=300, Returning_Visitors=100, Bounce_Rate=70)
        for month in (4, 5, 6)
    ]
    return rows


def _traffic_rows() -> list[dict[str, Any]]:
    rows = [
        _row(
            2024,
            "Q1",
            month,
            Direct_Traffic=50,
            Search_Engines=25,
            Social_Media=10,
            Internal_Referrers=10,
            External_Referrers=5,
        )
        for month in (1, 2, 3)
    ]
    rows += [
        _row(
            2024,
            "Q2",
            month,
            Direct_Traffic=65,
            Search_Engines=10,
            Social_Media=3,
            Internal_Referrers=12,
            External_Referrers=10,
        )
        for month in (4, 5, 6)
    ]
    return rows


def _search_rows() -> list[dict[str, Any]]:
    rows = [_row(2024, "Q1", month, Impressions=8000, Clicks=200, CTR=2.5, Avg_Position=10) for month in (1, 2, 3)]
    rows += [_row(2024, "Q2", month, Impressions=10000, Clicks=300, CTR=3.0, Avg_Position=8) for month in (4, 5, 6)]
    return rows


def _social_rows() -> list[dict[str, Any]]:
    return [
        _row(2024, "Q1", 1, Channel="LinkedIn", Type="Organic", Impressions=4000, Reactions=60, Comments=10, Shares=10, Clicks=40),
        _row(2024, "Q2", 4, Channel="LinkedIn", Type="Organic", Impressions=5000, Reactions=100, Comments=20, Shares=30, Clicks=50),
        _row(2024, "Q2", 5, Channel="Twitter", Type="Organic", Impressions=3000, Reactions=40, Comments=5, Shares=5, Clicks=30),
    ]


def _email_rows() -> list[dict[str, Any]]:
    return [
        _row(2024, "Q1", 2, Campaign_Type="Newsletter", Emails_Sent=800, Emails_Delivered=790, Unique_Opens=160, Unique_Clicks=40),
        _row(2024, "Q2", 5, Campaign_Type="Newsletter", Emails_Sent=1000, Emails_Delivered=980, Unique_Opens=250, Unique_Clicks=50),
    ]


def _leads_rows() -> list[dict[str, Any]]:
    rows = [
        _row(
            2024,
            "Q1",
            1,
            New_Marketing_Prospects=200,
            Marketing_Qualified=40,
            Sales_Accepted=20,
            Opportunities=10,
            Pipeline_Value=20000,
        )
    ]
    rows += [
        _row(
            2024,
            "Q2",
            month,
            New_Marketing_Prospects=100,
            Marketing_Qualified=30,
            Sales_Accepted=15,
            Opportunities=5,
            Pipeline_Value=10000,
        )
        for month in (4, 5, 6)
    ]
    return rows


def _share_of_voice_rows() -> list[dict[str, Any]]:
    return [
        _row(2024, "Q1", 3, Media_Mention_Volume=0, Competitor1_Mentions=0, Competitor2_Mentions=0),
        _row(2024, "Q2", 6, Media_Mention_Volume=60, Competitor1_Mentions=30, Competitor2_Mentions=10, Media_Reach_Impressions=50000),
    ]



def _events_rows() -> list[dict[str, Any]]:
    return [
        _row(2024, "Q1", 2, Number_Events=1, Registered=80, Attended=40, MQL=10, SAL=5, Opportunity=2, Source="Webinar"),
        _row(2024, "Q2", 4, Number_Events=1, Registered=100, Attended=60, MQL=18, SAL=8, Opportunity=4, Source="Webinar"),
        _row(2024, "Q2", 4, Number_Events=1, Registered=50, Attended=30, MQL=12, SAL=4, Opportunity=2, Source="Trade Show"),
        _row(2024, "Q2", 5, Number_Events=1, Registered=50, Attended=30, MQL=6, SAL=3, Opportunity=1, Source="Webinar"),
    ]

@pytest.fixture
def raw_sheets() -> dict[str, list[dict[str, Any]]]:
    return {
        "Config": [
            {"Setting": "Last_Updated", "Value": "2024-06-30"},
            {"Setting": "Current_Quarter", "Value": "Q2"},
            {"Setting": "Current_Year", "Value": 2024},
        ],
        "Website_Data": _website_rows(),
        "Traffic_Sources": _traffic_rows(),
        "Search_Data": _search_rows(),
        "Social_Data": _social_rows(),
        "Email_Data": _email_rows(),
        "Leads_Data": _leads_rows(),
        "Share_of_Voice": _share_of_voice_rows(),
        "Events_Data": _events_rows(),
        "Targets": [
            {"Metric_Category": "Website", "Metric_Name": "Sessions", "Q2_Target": 900, "Annual_Target": 5000},
            {"Metric_Category": "Website", "Metric_Name": "Pageviews", "Q2_Target": 6000, "Annual_Target": 20000},
            {"Metric_Category": "Leads", "Metric_Name": "New_Marketing_Prospects", "Q2_Target": 250},
        ],
        "Notes": [{"Date": "2024-05-01", "Category": "Website", "Note": "Site redesign launched"}],
    }


@pytest.fixture
def store(raw_sheets: dict[str, list[dict[str, Any]]]) -> FactStore:
    return FactStore.from_sheets(raw_sheets)


@pytest.fixture
def make_row() -> Callable[..., dict[str, Any]]:
    """Build a raw sheet row with the temporal columns filled in."""
    return _row
