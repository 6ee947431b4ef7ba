"""
Report Models

Derived, read-only views produced by the aggregation engine and the
report builders. None of these are ever written to the store.
"""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from household_ledger.models.ledger import ZERO


class PeriodFilter(BaseModel):
    """
    Which slice of the ledger a view covers.

    A month ("YYYY-MM") wins over a year ("YYYY"); with neither,
    everything is included.
    """

    month: Optional[str] = Field(default=None, pattern=r"^\d{4}-\d{2}$")
    year: Optional[str] = Field(default=None, pattern=r"^\d{4}$")
    person_id: Optional[str] = None


class LedgerTotals(BaseModel):
    """Open versus paid totals for a set of items."""

    open: Decimal = ZERO
    paid: Decimal = ZERO
    open_count: int = 0
    paid_count: int = 0

    @property
    def total(self) -> Decimal:
        return self.open + self.paid


class PersonSummary(BaseModel):
    """Per-person rollup of debts and bills."""

    person_id: str
    debts_open: Decimal = ZERO
    debts_paid: Decimal = ZERO
    debts_total: Decimal = ZERO
    bills_open: Decimal = ZERO
    bills_paid: Decimal = ZERO
    bills_total: Decimal = ZERO

    @property
    def balance(self) -> Decimal:
        """Net figure owed to the household."""
        return self.debts_open - self.bills_open

    @property
    def volume(self) -> Decimal:
        return self.debts_total + self.bills_total


class MonthTotal(BaseModel):
    """A total attached to one month key."""

    month: str
    total: Decimal = ZERO


class MonthlyStatus(BaseModel):
    """Due, paid and outstanding amounts for one month."""

    due: Decimal = ZERO
    paid: Decimal = ZERO
    due_count: int = 0
    paid_count: int = 0

    @property
    def outstanding(self) -> Decimal:
        return self.due - self.paid


class DashboardSummary(BaseModel):
    """Everything the dashboard shows, recomputed on every snapshot."""

    month: str
    year: int
    debts: LedgerTotals
    bills: LedgerTotals
    month_debts: MonthlyStatus
    month_bills: MonthlyStatus
    overdue_debts: LedgerTotals
    overdue_bills: LedgerTotals
    yearly_debts: list[Decimal] = Field(default_factory=list)
    yearly_bills: list[Decimal] = Field(default_factory=list)
    projection: list[MonthTotal] = Field(default_factory=list)
