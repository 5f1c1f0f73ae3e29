"""Domain layer package."""

from .errors import DataUnavailableError, MalformedRowError
from .models import ComparisonPeriod, Insight, Period, Trend
from .periods import previous_quarter, resolve_comparison_period, trailing_quarters

__all__ = [
    "Period",
    "ComparisonPeriod",
    "Trend",
    "Insight",
    "MalformedRowError",
    "DataUnavailableError",
    "previous_quarter",
    "resolve_comparison_period",
    "trailing_quarters",
]
