"""Infrastructure adapter for summary export targets."""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any

from dashboard_engine.application.dashboard_service import ANALYSIS_TABS, DashboardSnapshot, analysis_payload_for


def build_summary_document(
    snapshot: DashboardSnapshot,
    source: dict[str, Any],
    generated_at: datetime | None = None,
) -> dict[str, Any]:
    """Snapshot plus source metadata and one narrative payload per analysis tab."""
    return {
        "generated_at": (generated_at or datetime.now()).isoformat(timespec="seconds"),
        "source": source,
        "snapshot": snapshot.to_dict(),
        "analysis_payloads": {tab: analysis_payload_for(snapshot, tab) for tab in ANALYSIS_TABS},
    }


def save_summary_json(path: Path, summary: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(summary, indent=2, ensure_ascii=False, allow_nan=False), encoding="utf-8")
