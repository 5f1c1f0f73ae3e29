"""Infrastructure layer package."""

from .excel_repository import read_workbook_rows, workbook_status
from .report_exporter import build_summary_document, save_summary_json

__all__ = ["read_workbook_rows", "workbook_status", "build_summary_document", "save_summary_json"]
