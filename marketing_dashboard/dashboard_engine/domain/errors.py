"""Error and data-quality warning types for dashboard ingestion."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any


class MalformedRowError(ValueError):
    """A row's temporal key (year/quarter/month) could not be parsed."""

    def __init__(self, column: str, value: Any, reason: str = "unparseable value") -> None:
        self.column = column
        self.value = value
        self.reason = reason
        super().__init__(f"Malformed row: column {column!r} has {reason} ({value!r})")


class DataUnavailableError(RuntimeError):
    """No time-series facts are available at all, so nothing can be rendered."""


@dataclass(frozen=True)
class DataQualityWarning:
    sheet: str
    row_index: int
    column: str | None
    message: str

    @property
    def kind(self) -> str:
        return "data_quality"

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["kind"] = self.kind
        return payload


@dataclass(frozen=True)
class MalformedRowWarning(DataQualityWarning):
    """Row dropped because its temporal key was unusable."""

    @property
    def kind(self) -> str:
        return "malformed_row"


@dataclass(frozen=True)
class QuarterMonthMismatchWarning(DataQualityWarning):
    """Row kept; its explicit quarter disagrees with its month."""

    @property
    def kind(self) -> str:
        return "quarter_month_mismatch"
