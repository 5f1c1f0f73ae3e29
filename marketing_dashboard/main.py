"""Marketing dashboard entrypoint."""

from __future__ import annotations

import logging
import sys

from dashboard_engine.application.dashboard_service import DashboardSession
from dashboard_engine.application.fact_store import FactStore
from dashboard_engine.config import Settings, load_settings
from dashboard_engine.domain.errors import DataUnavailableError
from dashboard_engine.domain.models import Period
from dashboard_engine.infrastructure.excel_repository import read_workbook_rows, workbook_status
from dashboard_engine.infrastructure.report_exporter import build_summary_document, save_summary_json

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

logger = logging.getLogger("dashboard_engine.main")


def _configure_logging(level: int) -> None:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level)


def select_period(settings: Settings, store: FactStore) -> Period:
    """Environment overrides first, then the workbook's Config sheet, then the latest year on file."""
    default = store.config.default_period()
    year = settings.year
    if year is None:
        if default is not None:
            year = default.year
        elif store.years():
            year = store.years()[-1]
        else:
            raise DataUnavailableError("No year available to select: the workbook has no dated rows.")

    if settings.whole_year:
        return Period(year=year)
    if settings.quarter is not None:
        return Period(year=year, quarter=settings.quarter)
    if default is not None and default.year == year:
        return default
    return Period(year=year)


def main() -> None:
    settings = load_settings()
    _configure_logging(settings.log_level)

    sheets, last_modified = read_workbook_rows(settings.input_path)
    store = FactStore.from_sheets(sheets)

    period = select_period(settings, store)
    session = DashboardSession(store, trailing=settings.trailing_quarters)
    snapshot = session.recompute(period, settings.compare_mode)
    if snapshot is None:
        raise RuntimeError(f"Snapshot for {period.label} was superseded before it was published.")

    source = workbook_status(settings.input_path)
    source["last_modified"] = last_modified.isoformat()
    summary = build_summary_document(snapshot, source)
    save_summary_json(settings.output_path, summary)

    for kpi in snapshot.kpis:
        print(f"{kpi.label}: {kpi.formatted} ({kpi.trend_text} vs {snapshot.comparison.label})")
    print(f"Insights: {len(snapshot.insights)}, data warnings: {len(snapshot.warnings)}")
    print(f"Saved JSON: {settings.output_path}")


if __name__ == "__main__":
    main()
