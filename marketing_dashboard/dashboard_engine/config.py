"""Environment-driven settings for the dashboard entrypoint."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dashboard_engine.domain.models import COMPARE_MODES, QUARTERS

PROJECT_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_INPUT_PATH = PROJECT_ROOT / "data" / "raw" / "dashboard.xlsx"
DEFAULT_OUTPUT_PATH = PROJECT_ROOT / "output" / "summary.json"
DEFAULT_COMPARE_MODE = "prev_quarter"
DEFAULT_TRAILING_QUARTERS = 5
MAX_TRAILING_QUARTERS = 20
WHOLE_YEAR = "YEAR"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class Settings:
    input_path: Path
    output_path: Path
    year: int | None
    quarter: str | None
    # True when DASHBOARD_QUARTER=YEAR selects the whole year explicitly.
    whole_year: bool
    compare_mode: str
    trailing_quarters: int
    log_level: int


def _parse_year(raw: str | None) -> int | None:
    if raw is None or not raw.strip():
        return None
    try:
        year = int(raw.strip())
    except ValueError as exc:
        raise ValueError(f"Invalid DASHBOARD_YEAR: {raw}") from exc
    if year < 1900 or year > 9999:
        raise ValueError(f"DASHBOARD_YEAR must be in [1900, 9999], got {year}")
    return year


def _parse_quarter(raw: str | None) -> tuple[str | None, bool]:
    if raw is None or not raw.strip():
        return None, False
    value = raw.strip().upper()
    if value == WHOLE_YEAR:
        return None, True
    if value not in QUARTERS:
        raise ValueError(f"Invalid DASHBOARD_QUARTER: {raw} (expected Q1..Q4 or {WHOLE_YEAR})")
    return value, False


def _parse_compare_mode(raw: str) -> str:
    value = raw.strip().lower()
    if value not in COMPARE_MODES:
        raise ValueError(f"Invalid DASHBOARD_COMPARE_MODE: {raw} (expected one of {', '.join(COMPARE_MODES)})")
    return value


def _parse_trailing_quarters(raw: str) -> int:
    try:
        count = int(raw)
    except ValueError as exc:
        raise ValueError(f"Invalid DASHBOARD_TRAILING_QUARTERS: {raw}") from exc
    if count < 1 or count > MAX_TRAILING_QUARTERS:
        raise ValueError(f"DASHBOARD_TRAILING_QUARTERS must be in [1, {MAX_TRAILING_QUARTERS}], got {count}")
    return count


def _parse_log_level(raw: str) -> int:
    value = raw.strip().upper()
    if value not in LOG_LEVELS:
        raise ValueError(f"Invalid DASHBOARD_LOG_LEVEL: {raw}")
    return getattr(logging, value)


def load_settings() -> Settings:
    """Read and validate DASHBOARD_* environment variables."""
    quarter, whole_year = _parse_quarter(os.getenv("DASHBOARD_QUARTER"))
    return Settings(
        input_path=Path(os.getenv("DASHBOARD_INPUT_PATH") or DEFAULT_INPUT_PATH),
        output_path=Path(os.getenv("DASHBOARD_OUTPUT_PATH") or DEFAULT_OUTPUT_PATH),
        year=_parse_year(os.getenv("DASHBOARD_YEAR")),
        quarter=quarter,
        whole_year=whole_year,
        compare_mode=_parse_compare_mode(os.getenv("DASHBOARD_COMPARE_MODE", DEFAULT_COMPARE_MODE)),
        trailing_quarters=_parse_trailing_quarters(
            os.getenv("DASHBOARD_TRAILING_QUARTERS", str(DEFAULT_TRAILING_QUARTERS))
        ),
        log_level=_parse_log_level(os.getenv("DASHBOARD_LOG_LEVEL", "INFO")),
    )
