"""Export module: JSON envelopes for verification and retrieval reports."""

from groundcheck.export.json_export import export_report, export_reports

__all__ = [
    "export_report",
    "export_reports",
]
