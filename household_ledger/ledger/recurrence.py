"""
Recurring Bill Roller

A recurring bill is a chain of occurrences sharing a series id. The next
occurrence is created lazily, only when the current one is marked paid,
so an unpaid bill never grows a future tail.

The duplicate check (query the series, then insert) is read-then-write
with no transaction. Two clients paying the same occurrence at the same
moment can both insert a successor; last write wins everywhere else in
the ledger, and this race is accepted.
"""

from typing import Optional
from uuid import uuid4

import structlog

from household_ledger.models.ledger import Bill, BillInput, BillStatus, BulkResult
from household_ledger.periods import add_months
from household_ledger.services.ledger_store import HouseholdLedgerStore, fan_out
from household_ledger.validation import LedgerValidator, ensure_valid

logger = structlog.get_logger(__name__)


def can_roll_forward(bill: Bill) -> bool:
    """Only active recurring occurrences that belong to a series roll."""
    return bool(
        bill.recurring
        and bill.recurring_active
        and bill.series_id
        and bill.due_date is not None
    )


def successor_of(bill: Bill) -> Optional[Bill]:
    """
    The occurrence that follows `bill`, or None when the series ends.

    Pure: does not check whether the successor already exists.
    """
    if not can_roll_forward(bill):
        return None
    next_due = add_months(bill.due_date, 1)
    if bill.recurring_end_date is not None and next_due > bill.recurring_end_date:
        return None
    return Bill(
        title=bill.title,
        amount=bill.amount,
        due_date=next_due,
        recurring=True,
        recurring_active=True,
        series_id=bill.series_id,
        recurring_end_date=bill.recurring_end_date,
        category_id=bill.category_id,
        person_id=bill.person_id,
        status=BillStatus.OPEN,
    )


class RecurringBillRoller:
    """Creates the next occurrence of a series and stops series."""

    def __init__(self, store: HouseholdLedgerStore):
        self._store = store

    async def roll_forward(self, bill: Bill) -> Optional[Bill]:
        """
        Create the next occurrence after `bill` was paid.

        Returns:
            The new occurrence, or None if the bill does not roll, the
            series ended, or the next occurrence already exists
        """
        successor = successor_of(bill)
        if successor is None:
            logger.debug("roll_forward_skipped", bill_id=bill.id, series_id=bill.series_id)
            return None

        existing = await self._store.list_series(bill.series_id)
        if any(occurrence.due_date == successor.due_date for occurrence in existing):
            logger.debug(
                "roll_forward_exists",
                series_id=bill.series_id,
                due_date=successor.due_date.isoformat(),
            )
            return None

        created = await self._store.insert_bill(successor)
        logger.info(
            "bill_rolled_forward",
            series_id=bill.series_id,
            bill_id=created.id,
            due_date=created.due_date.isoformat(),
        )
        return created

    async def stop_recurrence(self, series_id: str) -> BulkResult:
        """
        Deactivate every occurrence of a series.

        Best effort: each occurrence is updated independently.
        """
        if not series_id:
            return BulkResult()
        occurrences = await self._store.list_series(series_id)
        result = await fan_out(
            {
                occurrence.id: self._store.update_bill(
                    occurrence.id, {"recurringActive": False}
                )
                for occurrence in occurrences
            }
        )
        logger.info(
            "recurrence_stopped",
            series_id=series_id,
            updated=len(result.succeeded),
            failed=len(result.failed),
        )
        return result


class BillService:
    """Creates, edits and deletes bills in one household."""

    def __init__(
        self,
        store: HouseholdLedgerStore,
        validator: Optional[LedgerValidator] = None,
    ):
        self._store = store
        self._validator = validator or LedgerValidator()

    async def create_bill(self, data: BillInput) -> Bill:
        """Insert a bill; a recurring bill starts a new series."""
        ensure_valid(self._validator.validate_bill_input(data))
        bill = Bill(
            title=data.title,
            amount=data.amount,
            due_date=data.due_date,
            recurring=data.recurring,
            recurring_active=data.recurring,
            series_id=uuid4().hex if data.recurring else "",
            recurring_end_date=data.recurring_end_date,
            category_id=data.category_id,
            person_id=data.person_id,
            status=BillStatus.OPEN,
        )
        return await self._store.insert_bill(bill)

    async def update_bill(self, bill: Bill, data: BillInput) -> Bill:
        """
        Edit one occurrence.

        A bill that stays recurring keeps its series and activity flag; a
        bill that becomes recurring starts a series; a bill that becomes
        one-off leaves its series. The payment status is kept.
        """
        ensure_valid(self._validator.validate_bill_input(data))
        if data.recurring:
            series_id = bill.series_id or uuid4().hex
            active = bill.recurring_active if bill.recurring else True
        else:
            series_id = ""
            active = False

        updated = bill.model_copy(
            update={
                "title": data.title,
                "amount": data.amount,
                "due_date": data.due_date,
                "recurring": data.recurring,
                "recurring_active": active,
                "series_id": series_id,
                "recurring_end_date": data.recurring_end_date if data.recurring else None,
                "category_id": data.category_id or None,
                "person_id": data.person_id or None,
            }
        )
        # model_copy skips validation; rebuild so amounts are quantized
        updated = Bill.model_validate(updated.model_dump())
        await self._store.update_bill(bill.id, updated.to_document())
        return updated

    async def delete_bill(self, bill_id: str) -> bool:
        return await self._store.delete_bill(bill_id)
