"""Result reporting."""

from .report import HostReport, Report, ResultReporter, format_report

__all__ = [
    "HostReport",
    "Report",
    "ResultReporter",
    "format_report",
]
