"""Aggregation and report formatting package."""

from src.reports.aggregator import (
    MONTH_NAMES,
    AggregationError,
    available_years,
    month_bounds,
    recent_transactions,
    sort_for_display,
    summarize_month,
    summarize_year,
)
from src.reports.formatter import (
    UNCATEGORIZED_LABEL,
    ReportHeader,
    ReportTable,
    annual_report_filename,
    annual_report_tables,
    annual_report_title,
    build_report_header,
    format_date_id,
    format_rupiah,
    monthly_report_filename,
    monthly_report_tables,
    monthly_report_title,
)
from src.reports.pdf import render_report_pdf

__all__ = [
    "MONTH_NAMES",
    "UNCATEGORIZED_LABEL",
    "AggregationError",
    "ReportHeader",
    "ReportTable",
    "annual_report_filename",
    "annual_report_tables",
    "annual_report_title",
    "available_years",
    "build_report_header",
    "format_date_id",
    "format_rupiah",
    "month_bounds",
    "monthly_report_filename",
    "monthly_report_tables",
    "monthly_report_title",
    "recent_transactions",
    "render_report_pdf",
    "sort_for_display",
    "summarize_month",
    "summarize_year",
]
