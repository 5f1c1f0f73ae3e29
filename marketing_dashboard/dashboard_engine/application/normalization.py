"""Record normalizer: raw spreadsheet rows -> typed, immutable facts."""

from __future__ import annotations

import math
import re
from datetime import date, datetime
from typing import Any, Mapping

from dashboard_engine.domain.errors import MalformedRowError
from dashboard_engine.domain.models import (
    FACT_TYPES,
    QUARTERS,
    DashboardConfig,
    Fact,
    Note,
    Target,
    metric_fields,
    quarter_for_month,
)

YEAR_COLUMN = "Year"
QUARTER_COLUMN = "Quarter"
MONTH_COLUMN = "Month"
MONTH_NAME_COLUMN = "Month_Name"

COLUMN_MAP: dict[str, dict[str, str]] = {
    "website": {
        "Sessions": "sessions",
        "Pageviews": "pageviews",
        "Unique_Visitors": "unique_visitors",
        "Returning_Visitors": "returning_visitors",
        "Bounce_Rate": "bounce_rate",
        "Avg_Session_Duration": "avg_session_duration",
        "Downloads_PDFs": "downloads_pdfs",
        "Video_Views": "video_views",
        "Source_Quality": "source_quality",
    },
    "traffic": {
        "Direct_Traffic": "direct",
        "Search_Engines": "search_engines",
        "Social_Media": "social_media",
        "Internal_Referrers": "internal_referrers",
        "External_Referrers": "external_referrers",
    },
    "search": {
        "Impressions": "impressions",
        "Clicks": "clicks",
        "CTR": "ctr",
        "Avg_Position": "avg_position",
        "Source": "source",
    },
    "social": {
        "Channel": "channel",
        "Type": "type",
        "Impressions": "impressions",
        "Views": "views",
        "Reactions": "reactions",
        "Comments": "comments",
        "Shares": "shares",
        "Clicks": "clicks",
        "Budget": "budget",
    },
    "email": {
        "Campaign_Type": "campaign_type",
        "Emails_Sent": "emails_sent",
        "Emails_Delivered": "emails_delivered",
        "Unique_Opens": "unique_opens",
        "Unique_Clicks": "unique_clicks",
        "Hard_Bounces": "hard_bounces",
        "Soft_Bounces": "soft_bounces",
        "Unsubscribes": "unsubscribes",
    },
    "leads": {
        "New_Marketing_Prospects": "new_marketing_prospects",
        "Assigned_Prospects": "assigned_prospects",
        "Active_Prospects": "active_prospects",
        "Unsubscribed_Prospects": "unsubscribed_prospects",
        "Marketing_Qualified": "marketing_qualified",
        "Sales_Accepted": "sales_accepted",
        "Opportunities": "opportunities",
        "Pipeline_Value": "pipeline_value",
    },
    "share_of_voice": {
        "Media_Mention_Volume": "media_mention_volume",
        "Competitor1_Mentions": "competitor1_mentions",
        "Competitor2_Mentions": "competitor2_mentions",
        "Media_Reach_Impressions": "media_reach_impressions",
        "SM_Mentions": "social_mentions",
    },
    "events": {
        "Number_Events": "number_events",
        "Registered": "registered",
        "Attended": "attended",
        "MQL": "mql",
        "SAL": "sal",
        "Opportunity": "opportunity",
        "Source": "source",
    },
}
TARGET_COLUMNS: dict[str, str] = {
    "Metric_Category": "metric_category",
    "Metric_Name": "metric_name",
    "Q1_Target": "q1_target",
    "Q2_Target": "q2_target",
    "Q3_Target": "q3_target",
    "Q4_Target": "q4_target",
    "Annual_Target": "annual_target",
    "Notes": "notes",
}
TARGET_NUMERIC: frozenset[str] = frozenset({"q1_target", "q2_target", "q3_target", "q4_target", "annual_target"})
NOTE_COLUMNS: dict[str, str] = {"Date": "date", "Category": "category", "Note": "note"}

_YEAR_PATTERN = re.compile(r"(\d{4})")


def _key(label: Any) -> str:
    return str(label).strip().lower().replace(" ", "_")


def _keyed(row: Mapping[str, Any]) -> dict[str, Any]:
    return {_key(label): value for label, value in row.items()}


def parse_number(value: Any) -> float | None:
    """Parse a raw cell into a float; blanks and unparseable cells become ``None``."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip().replace(",", "")
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    if not math.isfinite(number):
        return None
    return number


def parse_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return str(value).strip()


def _integral(value: Any) -> int | None:
    number = parse_number(value)
    if number is None or not number.is_integer():
        return None
    return int(number)


def parse_year(value: Any) -> int:
    year = _integral(value)
    if year is None and isinstance(value, str):
        match = _YEAR_PATTERN.search(value)
        if match:
            year = int(match.group(1))
    if year is None:
        raise MalformedRowError(YEAR_COLUMN, value, "missing value" if value in (None, "") else "unparseable value")
    return year


def parse_month(value: Any) -> int:
    month = _integral(value)
    if month is None or not 1 <= month <= 12:
        raise MalformedRowError(MONTH_COLUMN, value, "missing value" if value in (None, "") else "invalid month")
    return month


def coerce_quarter(value: Any) -> str | None:
    """Normalize ``Q1``/``q1``/``1``/``1.0`` style labels; anything else is ``None``."""
    if value is None or isinstance(value, bool):
        return None
    number = _integral(value)
    if number is not None:
        text = f"Q{number}"
    else:
        text = str(value).strip().upper()
    return text if text in QUARTERS else None


def parse_quarter(value: Any) -> str:
    quarter = coerce_quarter(value)
    if quarter is None:
        raise MalformedRowError(QUARTER_COLUMN, value, "missing value" if value in (None, "") else "invalid quarter")
    return quarter


def normalize_row(kind: str, row: Mapping[str, Any]) -> Fact:
    """Convert one raw row of a dataset into its typed fact.

    Raises MalformedRowError when the temporal key cannot be parsed. Metric
    cells that are blank or unparseable become ``None``, never 0.
    """
    if kind not in FACT_TYPES:
        raise ValueError(f"Unknown dataset kind: {kind!r}")
    keyed = _keyed(row)
    values: dict[str, Any] = {
        "year": parse_year(keyed.get(_key(YEAR_COLUMN))),
        "quarter": parse_quarter(keyed.get(_key(QUARTER_COLUMN))),
        "month": parse_month(keyed.get(_key(MONTH_COLUMN))),
        "month_name": parse_text(keyed.get(_key(MONTH_NAME_COLUMN))),
    }
    numeric = set(metric_fields(kind))
    for label, name in COLUMN_MAP[kind].items():
        raw = keyed.get(_key(label))
        values[name] = parse_number(raw) if name in numeric else parse_text(raw)
    return FACT_TYPES[kind](**values)


def quarter_month_mismatch(fact: Fact) -> str | None:
    """Describe a quarter/month disagreement, or return None when they agree."""
    expected = quarter_for_month(fact.month)
    if fact.quarter == expected:
        return None
    return f"month {fact.month} belongs to {expected} but row is labelled {fact.quarter}"


def normalize_target(row: Mapping[str, Any]) -> Target:
    keyed = _keyed(row)
    values: dict[str, Any] = {}
    for label, name in TARGET_COLUMNS.items():
        raw = keyed.get(_key(label))
        values[name] = parse_number(raw) if name in TARGET_NUMERIC else parse_text(raw)
    return Target(**values)


def normalize_note(row: Mapping[str, Any]) -> Note:
    keyed = _keyed(row)
    return Note(**{name: parse_text(keyed.get(_key(label))) for label, name in NOTE_COLUMNS.items()})


def parse_config(rows: list[Mapping[str, Any]]) -> DashboardConfig:
    """Read ``Setting``/``Value`` pairs; unknown settings are ignored."""
    last_updated = None
    current_quarter = None
    current_year = None
    for row in rows:
        keyed = _keyed(row)
        setting = parse_text(keyed.get("setting"))
        value = keyed.get("value")
        if setting == "Last_Updated":
            last_updated = parse_text(value)
        elif setting == "Current_Quarter":
            current_quarter = coerce_quarter(value)
        elif setting == "Current_Year":
            current_year = _integral(value)
    return DashboardConfig(last_updated=last_updated, current_quarter=current_quarter, current_year=current_year)
