"""Aggregation, formatting and report export."""

from household_ledger.reports.aggregation import (
    available_months,
    available_years,
    dashboard_summary,
    filter_bills,
    filter_debts,
    ledger_totals,
    month_rollup,
    monthly_status,
    overdue,
    person_rollup,
    recurring_projection,
    yearly_series,
)
from household_ledger.reports.export import (
    ReportDocument,
    ReportRenderer,
    ReportSection,
    build_bills_report,
    build_debts_report,
    describe_filter,
    person_label,
    recurrence_label,
    report_filename,
    slugify,
)
from household_ledger.reports.formatting import (
    format_currency,
    format_date,
    format_month_label,
)

__all__ = [
    # Aggregation
    "available_months",
    "available_years",
    "dashboard_summary",
    "filter_bills",
    "filter_debts",
    "ledger_totals",
    "month_rollup",
    "monthly_status",
    "overdue",
    "person_rollup",
    "recurring_projection",
    "yearly_series",
    # Export
    "ReportDocument",
    "ReportRenderer",
    "ReportSection",
    "build_bills_report",
    "build_debts_report",
    "describe_filter",
    "person_label",
    "recurrence_label",
    "report_filename",
    "slugify",
    # Formatting
    "format_currency",
    "format_date",
    "format_month_label",
]
