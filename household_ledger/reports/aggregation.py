"""
Aggregation Engine

DESIGN DECISION: Aggregation is DETERMINISTIC and PURE.
Every function takes items from a LedgerSnapshot and returns derived
totals; nothing reads the store and nothing is cached. The dashboard is
recomputed from scratch on every snapshot.

Money stays Decimal throughout so totals are cent-exact.
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional, TypeVar, Union

from household_ledger.models.ledger import ZERO, Bill, DebtInstallment, LedgerSnapshot
from household_ledger.models.reports import (
    DashboardSummary,
    LedgerTotals,
    MonthlyStatus,
    MonthTotal,
    PeriodFilter,
    PersonSummary,
)
from household_ledger.periods import month_key, month_keys, year_key

LedgerItem = Union[DebtInstallment, Bill]
ItemT = TypeVar("ItemT", DebtInstallment, Bill)


# =============================================================================
# FILTERING
# =============================================================================

def _due_key(item: LedgerItem) -> str:
    return month_key(item.due_date) if item.due_date else ""


def matches_period(item: LedgerItem, period: PeriodFilter) -> bool:
    """A month wins over a year; with neither, every item matches."""
    key = _due_key(item)
    if period.month:
        return key == period.month
    if period.year:
        return key[:4] == period.year
    return True


def _filter(items: Iterable[ItemT], period: Optional[PeriodFilter]) -> list[ItemT]:
    if period is None:
        return list(items)
    return [
        item
        for item in items
        if matches_period(item, period)
        and (not period.person_id or item.person_id == period.person_id)
    ]


def filter_debts(
    debts: Iterable[DebtInstallment],
    period: Optional[PeriodFilter] = None,
) -> list[DebtInstallment]:
    return _filter(debts, period)


def filter_bills(
    bills: Iterable[Bill],
    period: Optional[PeriodFilter] = None,
) -> list[Bill]:
    return _filter(bills, period)


# =============================================================================
# TOTALS
# =============================================================================

def ledger_totals(items: Iterable[LedgerItem]) -> LedgerTotals:
    """
    Open versus paid.

    Paid items count with their full amount; open and partial items with
    what is still owed.
    """
    totals = LedgerTotals()
    for item in items:
        if item.is_paid:
            totals.paid += item.amount
            totals.paid_count += 1
        else:
            totals.open += item.remaining
            totals.open_count += 1
    return totals


def person_rollup(
    debts: Iterable[DebtInstallment],
    bills: Iterable[Bill] = (),
) -> list[PersonSummary]:
    """
    Per-person totals, largest volume first (ties by person id).

    For debts, paid is what was actually paid so open + paid == total.
    Bills without a person are left out.
    """
    people: dict[str, PersonSummary] = {}

    def summary(person_id: str) -> PersonSummary:
        if person_id not in people:
            people[person_id] = PersonSummary(person_id=person_id)
        return people[person_id]

    for debt in debts:
        row = summary(debt.person_id)
        row.debts_paid += debt.paid_amount
        row.debts_open += debt.remaining
        row.debts_total += debt.amount

    for bill in bills:
        if not bill.person_id:
            continue
        row = summary(bill.person_id)
        row.bills_paid += bill.paid_amount
        row.bills_open += bill.remaining
        row.bills_total += bill.amount

    return sorted(people.values(), key=lambda row: (-row.volume, row.person_id))


def month_rollup(debts: Iterable[DebtInstallment]) -> list[MonthTotal]:
    """Open remaining per due month, oldest month first."""
    totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for debt in debts:
        key = _due_key(debt)
        if key and debt.remaining > 0:
            totals[key] += debt.remaining
    return [MonthTotal(month=key, total=totals[key]) for key in sorted(totals)]


def overdue(items: Iterable[ItemT], today: date) -> list[ItemT]:
    """Items still owing something whose due date has passed."""
    return [
        item
        for item in items
        if item.remaining > 0 and item.due_date is not None and item.due_date < today
    ]


def monthly_status(items: Iterable[LedgerItem], month: str) -> MonthlyStatus:
    """Due, paid and outstanding amounts for items due in `month`."""
    status = MonthlyStatus()
    for item in items:
        if _due_key(item) != month:
            continue
        status.due += item.amount
        status.due_count += 1
        status.paid += item.paid_amount
        if item.is_paid:
            status.paid_count += 1
    return status


# =============================================================================
# SERIES AND PROJECTION
# =============================================================================

def latest_active_occurrences(bills: Iterable[Bill]) -> list[Bill]:
    """The most recent occurrence of every active recurring series."""
    latest: dict[str, Bill] = {}
    for bill in bills:
        if not (bill.recurring and bill.recurring_active):
            continue
        current = latest.get(bill.series_key)
        if current is None or (bill.due_date or date.min) >= (current.due_date or date.min):
            latest[bill.series_key] = bill
    return list(latest.values())


def recurring_projection(
    bills: Iterable[Bill],
    start: date,
    months: int = 6,
) -> list[MonthTotal]:
    """
    Projected recurring spend for `months` months starting at `start`.

    Each active series contributes the amount of its latest occurrence to
    every month up to and including the month of its end date.
    """
    series = latest_active_occurrences(bills)
    projection = []
    for key in month_keys(start, months):
        total = ZERO
        for bill in series:
            if bill.recurring_end_date is not None and key > month_key(bill.recurring_end_date):
                continue
            total += bill.amount
        projection.append(MonthTotal(month=key, total=total))
    return projection


def yearly_series(items: Iterable[LedgerItem], year: Union[int, str]) -> list[Decimal]:
    """Twelve monthly sums of what is still open, January first."""
    year = str(year)
    totals = [ZERO] * 12
    for item in items:
        key = _due_key(item)
        if key[:4] != year or item.is_paid:
            continue
        totals[int(key[5:7]) - 1] += item.remaining
    return totals


def available_months(snapshot: LedgerSnapshot) -> list[str]:
    """Distinct due months across debts and bills, newest first."""
    keys = {_due_key(item) for item in [*snapshot.debts, *snapshot.bills]}
    keys.discard("")
    return sorted(keys, reverse=True)


def available_years(snapshot: LedgerSnapshot) -> list[str]:
    return sorted({key[:4] for key in available_months(snapshot)}, reverse=True)


# =============================================================================
# DASHBOARD
# =============================================================================

def dashboard_summary(
    snapshot: LedgerSnapshot,
    today: date,
    projection_months: int = 6,
) -> DashboardSummary:
    """Everything the dashboard shows, derived from one snapshot."""
    month = month_key(today)
    year = year_key(today)
    return DashboardSummary(
        month=month,
        year=today.year,
        debts=ledger_totals(snapshot.debts),
        bills=ledger_totals(snapshot.bills),
        month_debts=monthly_status(snapshot.debts, month),
        month_bills=monthly_status(snapshot.bills, month),
        overdue_debts=ledger_totals(overdue(snapshot.debts, today)),
        overdue_bills=ledger_totals(overdue(snapshot.bills, today)),
        yearly_debts=yearly_series(snapshot.debts, year),
        yearly_bills=yearly_series(snapshot.bills, year),
        projection=recurring_projection(snapshot.bills, today, projection_months),
    )

