"""In-memory fact store: one immutable fact sequence per dataset."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from dashboard_engine.application.normalization import (
    normalize_note,
    normalize_row,
    normalize_target,
    parse_config,
    quarter_month_mismatch,
)
from dashboard_engine.domain.errors import DataQualityWarning, MalformedRowError, MalformedRowWarning, QuarterMonthMismatchWarning
from dashboard_engine.domain.models import DATASET_KINDS, DashboardConfig, Fact, Note, Target

logger = logging.getLogger(__name__)

SHEET_NAMES: dict[str, tuple[str, ...]] = {
    "website": ("Website_Data",),
    "traffic": ("Traffic_Sources",),
    "search": ("Search_Data",),
    "social": ("Social_Data",),
    "email": ("Email_Data",),
    "leads": ("Leads_Data",),
    "share_of_voice": ("Share_of_Voice", "Share_of_voice"),
    "events": ("Events_Data",),
}
CONFIG_SHEET = "Config"
TARGETS_SHEET = "Targets"
NOTES_SHEET = "Notes"

RawSheets = Mapping[str, Sequence[Mapping[str, Any]]]


def _sheet_rows(sheets: RawSheets, names: Sequence[str]) -> tuple[str, Sequence[Mapping[str, Any]]]:
    for name in names:
        if name in sheets:
            return name, sheets[name] or []
    lowered = {str(key).strip().lower(): key for key in sheets}
    for name in names:
        key = lowered.get(name.lower())
        if key is not None:
            return str(key), sheets[key] or []
    return names[0], []


def _is_blank(row: Mapping[str, Any]) -> bool:
    return all(value is None or (isinstance(value, str) and not value.strip()) for value in row.values())


@dataclass(frozen=True)
class FactStore:
    """Immutable snapshot of normalized facts.

    A refresh builds a new store; an existing store is never mutated, so a
    computation that holds a reference always reads a consistent snapshot.
    """

    facts: Mapping[str, tuple[Fact, ...]] = field(default_factory=dict)
    targets: tuple[Target, ...] = ()
    notes: tuple[Note, ...] = ()
    config: DashboardConfig = field(default_factory=DashboardConfig)
    warnings: tuple[DataQualityWarning, ...] = ()

    def get_all(self, kind: str) -> tuple[Fact, ...]:
        if kind not in DATASET_KINDS:
            raise ValueError(f"Unknown dataset kind: {kind!r}")
        return self.facts.get(kind, ())

    def filter(self, kind: str, year: int, quarter: str | None = None) -> list[Fact]:
        """Facts of ``kind`` in the given year, and quarter when one is given."""
        return [fact for fact in self.get_all(kind) if fact.in_period(year, quarter)]

    def has_kind(self, kind: str) -> bool:
        return bool(self.get_all(kind))

    def is_empty(self) -> bool:
        return not any(self.facts.get(kind) for kind in DATASET_KINDS)

    def years(self) -> list[int]:
        return sorted({fact.year for kind in DATASET_KINDS for fact in self.facts.get(kind, ())})

    @classmethod
    def from_sheets(cls, sheets: RawSheets) -> "FactStore":
        """Normalize every dataset sheet; bad rows are dropped and recorded as warnings."""
        facts: dict[str, tuple[Fact, ...]] = {}
        warnings: list[DataQualityWarning] = []

        for kind in DATASET_KINDS:
            sheet_name, rows = _sheet_rows(sheets, SHEET_NAMES[kind])
            normalized: list[Fact] = []
            for index, row in enumerate(rows):
                if _is_blank(row):
                    continue
                try:
                    fact = normalize_row(kind, row)
                except MalformedRowError as exc:
                    warnings.append(
                        MalformedRowWarning(sheet=sheet_name, row_index=index, column=exc.column, message=str(exc))
                    )
                    logger.warning("Dropped row %d of %s: %s", index, sheet_name, exc)
                    continue
                mismatch = quarter_month_mismatch(fact)
                if mismatch is not None:
                    warnings.append(
                        QuarterMonthMismatchWarning(sheet=sheet_name, row_index=index, column="Quarter", message=mismatch)
                    )
                    logger.warning("Row %d of %s: %s", index, sheet_name, mismatch)
                normalized.append(fact)
            facts[kind] = tuple(normalized)
            logger.debug("Normalized %d/%d rows from %s", len(normalized), len(rows), sheet_name)

        _, target_rows = _sheet_rows(sheets, (TARGETS_SHEET,))
        _, note_rows = _sheet_rows(sheets, (NOTES_SHEET,))
        _, config_rows = _sheet_rows(sheets, (CONFIG_SHEET,))

        store = cls(
            facts=facts,
            targets=tuple(normalize_target(row) for row in target_rows if not _is_blank(row)),
            notes=tuple(normalize_note(row) for row in note_rows if not _is_blank(row)),
            config=parse_config(list(config_rows)),
            warnings=tuple(warnings),
        )
        logger.info(
            "Fact store built: %s; %d targets, %d warnings",
            ", ".join(f"{kind}={len(facts[kind])}" for kind in DATASET_KINDS),
            len(store.targets),
            len(store.warnings),
        )
        return store
