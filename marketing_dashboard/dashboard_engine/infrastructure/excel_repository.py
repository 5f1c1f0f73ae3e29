"""Infrastructure adapter turning the dashboard workbook into raw sheet rows."""

from __future__ import annotations

import logging
import math
from datetime import datetime
from pathlib import Path
from typing import Any, Sequence

import polars as pl

logger = logging.getLogger(__name__)

RawRows = list[dict[str, Any]]


def _import_openpyxl() -> Any:
    try:
        from openpyxl import load_workbook
    except Exception as exc:  # pragma: no cover
        raise RuntimeError("openpyxl is required for Excel fallback I/O.") from exc
    return load_workbook


def _normalize_headers(raw_headers: Sequence[Any]) -> list[str]:
    headers: list[str] = []
    seen: dict[str, int] = {}
    for idx, value in enumerate(raw_headers):
        base = str(value).strip() if value not in (None, "") else f"column_{idx + 1}"
        count = seen.get(base, 0)
        name = base if count == 0 else f"{base}_{count + 1}"
        seen[base] = count + 1
        headers.append(name)
    return headers


def _cell_value(value: Any) -> Any:
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _read_excel_polars(path: Path, **kwargs: Any) -> Any:
    """Use larger schema sampling when supported to avoid dtype inference warnings."""
    try:
        return pl.read_excel(path, infer_schema_length=10000, **kwargs)  # type: ignore[arg-type]
    except TypeError:
        return pl.read_excel(path, **kwargs)  # type: ignore[arg-type]


def _read_with_polars(path: Path) -> dict[str, RawRows]:
    frames = _read_excel_polars(path, sheet_id=0)
    if isinstance(frames, pl.DataFrame):
        frames = {"Sheet1": frames}
    sheets: dict[str, RawRows] = {}
    for name, frame in frames.items():
        sheets[str(name)] = [
            {key: _cell_value(value) for key, value in row.items()}
            for row in frame.iter_rows(named=True)
        ]
    return sheets


def _read_with_openpyxl(path: Path) -> dict[str, RawRows]:
    load_workbook = _import_openpyxl()
    workbook = load_workbook(path, read_only=True, data_only=True)
    sheets: dict[str, RawRows] = {}
    try:
        for worksheet in workbook.worksheets:
            row_iter = worksheet.iter_rows(values_only=True)
            header_row = next(row_iter, None)
            if header_row is None:
                sheets[worksheet.title] = []
                continue
            headers = _normalize_headers(header_row)
            records: RawRows = []
            for values in row_iter:
                if values is None or all(value is None for value in values):
                    continue
                records.append(
                    {name: _cell_value(values[idx]) if idx < len(values) else None for idx, name in enumerate(headers)}
                )
            sheets[worksheet.title] = records
    finally:
        workbook.close()
    return sheets


def read_workbook_rows(path: str | Path) -> tuple[dict[str, RawRows], datetime]:
    """Read every sheet as a list of header-keyed rows, plus the file's modification time."""
    excel_path = Path(path)
    if not excel_path.exists():
        raise FileNotFoundError(f"Input Excel file not found: {excel_path}")

    try:
        sheets = _read_with_polars(excel_path)
    except Exception as exc:
        logger.warning("polars could not read %s (%s); falling back to openpyxl", excel_path.name, exc)
        sheets = _read_with_openpyxl(excel_path)

    last_modified = datetime.fromtimestamp(excel_path.stat().st_mtime)
    logger.info(
        "Loaded %s: %s",
        excel_path.name,
        ", ".join(f"{name}={len(rows)}" for name, rows in sheets.items()),
    )
    return sheets, last_modified


def workbook_status(path: str | Path) -> dict[str, Any]:
    excel_path = Path(path)
    if not excel_path.exists():
        return {"path": str(excel_path), "exists": False, "last_modified": None}
    modified = datetime.fromtimestamp(excel_path.stat().st_mtime)
    return {"path": str(excel_path), "exists": True, "last_modified": modified.isoformat()}
