"""
Report Export

The ledger builds report rows; turning them into a PDF is the host
application's job. A ReportRenderer receives a ReportDocument (title,
filter summary, sections of header + string rows) and returns bytes.
"""

import re
import unicodedata
from abc import ABC, abstractmethod
from datetime import date
from typing import Optional

from pydantic import BaseModel, Field

from household_ledger.config import AppSettings, get_settings
from household_ledger.models.ledger import Bill, LedgerSnapshot
from household_ledger.models.reports import PeriodFilter
from household_ledger.periods import today_utc
from household_ledger.reports.aggregation import (
    filter_bills,
    filter_debts,
    person_rollup,
    recurring_projection,
)
from household_ledger.reports.formatting import (
    format_currency,
    format_date,
    format_month_label,
)


class ReportSection(BaseModel):
    """One table of the report."""

    title: str
    header: list[str]
    rows: list[list[str]] = Field(default_factory=list)


class ReportDocument(BaseModel):
    """Everything a renderer needs to lay out a report."""

    kind: str = Field(..., pattern="^(debts|bills)$")
    title: str
    subtitle: str = ""
    filter_summary: str = ""
    generated_on: date = Field(default_factory=today_utc)
    sections: list[ReportSection] = Field(default_factory=list)


class ReportRenderer(ABC):
    """Turns a ReportDocument into a file (PDF in the web app)."""

    @abstractmethod
    def render(self, document: ReportDocument) -> bytes:
        pass


def slugify(text: str) -> str:
    """ "João Silva" -> "joao-silva"; empty input -> "all"."""
    normalized = unicodedata.normalize("NFKD", text or "")
    ascii_text = normalized.encode("ascii", "ignore").decode("ascii")
    slug = re.sub(r"[^a-z0-9]+", "-", ascii_text.lower()).strip("-")
    return slug or "all"


def report_filename(kind: str, person_label: str, today: Optional[date] = None) -> str:
    """report-{kind}-{slug}-{YYYY-MM-DD}.pdf"""
    today = today or today_utc()
    return f"report-{kind}-{slugify(person_label)}-{today.isoformat()}.pdf"


def person_label(
    snapshot: LedgerSnapshot,
    period: Optional[PeriodFilter],
    settings: Optional[AppSettings] = None,
) -> str:
    """Who the report is about, for titles and file names."""
    settings = settings or get_settings().app
    if period is None or not period.person_id:
        return "All people"
    return snapshot.person_name(period.person_id, settings.unknown_person_label)


def describe_filter(
    snapshot: LedgerSnapshot,
    period: Optional[PeriodFilter],
    settings: Optional[AppSettings] = None,
) -> str:
    """ "Person: Ana | Period: Jan 2024" """
    period = period or PeriodFilter()
    if period.month:
        when = format_month_label(period.month)
    elif period.year:
        when = period.year
    else:
        when = "All periods"
    return f"Person: {person_label(snapshot, period, settings)} | Period: {when}"


def recurrence_label(bill: Bill) -> str:
    if not bill.recurring:
        return "One-off"
    if not bill.recurring_active:
        return "Stopped"
    if bill.recurring_end_date is not None:
        return f"Until {format_date(bill.recurring_end_date)}"
    return "Recurring"


def build_debts_report(
    snapshot: LedgerSnapshot,
    period: Optional[PeriodFilter] = None,
    detailed: bool = False,
    settings: Optional[AppSettings] = None,
) -> ReportDocument:
    """
    Debts report: totals by person and, when detailed, every installment.
    """
    settings = settings or get_settings().app
    debts = filter_debts(snapshot.debts, period)

    def money(value) -> str:
        return format_currency(value, settings)

    def name(person_id: Optional[str]) -> str:
        return snapshot.person_name(person_id, settings.unknown_person_label)

    sections = [
        ReportSection(
            title="By person",
            header=["Person", "Total", "Open", "Received"],
            rows=[
                [name(row.person_id), money(row.debts_total), money(row.debts_open), money(row.debts_paid)]
                for row in person_rollup(debts)
            ],
        )
    ]

    if detailed:
        ordered = sorted(
            debts,
            key=lambda debt: (
                debt.due_date or date.max,
                name(debt.person_id),
                debt.installment_number,
            ),
        )
        sections.append(
            ReportSection(
                title="Installments",
                header=["Person", "Description", "Installment", "Due", "Amount", "Paid", "Balance"],
                rows=[
                    [
                        name(debt.person_id),
                        debt.description,
                        debt.label,
                        format_date(debt.due_date),
                        money(debt.amount),
                        money(debt.paid_amount),
                        money(debt.remaining),
                    ]
                    for debt in ordered
                ],
            )
        )

    return ReportDocument(
        kind="debts",
        title="Debts report",
        subtitle=person_label(snapshot, period, settings),
        filter_summary=describe_filter(snapshot, period, settings),
        sections=sections,
    )


def build_bills_report(
    snapshot: LedgerSnapshot,
    period: Optional[PeriodFilter] = None,
    detailed: bool = False,
    start: Optional[date] = None,
    settings: Optional[AppSettings] = None,
) -> ReportDocument:
    """
    Bills report: recurring projection and, when detailed, every bill.

    The projection looks forward from `start`; a month or year filter only
    limits which projected months are shown.
    """
    settings = settings or get_settings().app
    period = period or PeriodFilter()

    def money(value) -> str:
        return format_currency(value, settings)

    person_bills = filter_bills(snapshot.bills, PeriodFilter(person_id=period.person_id))
    projection = recurring_projection(
        person_bills, start or today_utc(), settings.projection_months
    )
    if period.month:
        projection = [item for item in projection if item.month == period.month]
    elif period.year:
        projection = [item for item in projection if item.month.startswith(period.year)]

    sections = [
        ReportSection(
            title="Recurring projection",
            header=["Month", "Projected total"],
            rows=[[format_month_label(item.month), money(item.total)] for item in projection],
        )
    ]

    if detailed:
        bills = sorted(
            filter_bills(snapshot.bills, period),
            key=lambda bill: (bill.due_date or date.max, bill.title),
        )
        sections.append(
            ReportSection(
                title="Bills",
                header=["Bill", "Category", "Person", "Due", "Amount", "Recurrence", "Status"],
                rows=[
                    [
                        bill.title,
                        snapshot.category_name(bill.category_id, settings.uncategorized_label),
                        (
                            snapshot.person_name(bill.person_id, settings.unknown_person_label)
                            if bill.person_id
                            else "-"
                        ),
                        format_date(bill.due_date),
                        money(bill.amount),
                        recurrence_label(bill),
                        "Paid" if bill.is_paid else "Open",
                    ]
                    for bill in bills
                ],
            )
        )

    return ReportDocument(
        kind="bills",
        title="Bills report",
        subtitle=person_label(snapshot, period, settings),
        filter_summary=describe_filter(snapshot, period, settings),
        sections=sections,
    )
