"""Result aggregation and report export."""

from browserqa.reporting.aggregator import ErrorCategory, ResultAggregator, categorize_error
from browserqa.reporting.exporters import (
    build_json_report,
    escape_xml,
    render_html_report,
    render_junit_xml,
    write_report,
)

__all__ = [
    "ErrorCategory",
    "ResultAggregator",
    "build_json_report",
    "categorize_error",
    "escape_xml",
    "render_html_report",
    "render_junit_xml",
    "write_report",
]
