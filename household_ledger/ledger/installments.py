"""
Installment Expander

Turns one purchase into N dated installments.

RULES:
- Every installment but the last is floor(total / N) to the cent.
- The last installment absorbs the remainder, so the amounts always
  sum to exactly the total.
- Installment i (0-based) is due add_months(first_due_date, i).
- All installments share one group id; editing a purchase deletes the
  group and recreates it under the same id.
"""

from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Optional
from uuid import uuid4

import structlog

from household_ledger.errors import LedgerValidationError
from household_ledger.models.ledger import (
    BulkResult,
    DebtInput,
    DebtInstallment,
    DebtStatus,
    ZERO,
    floor_cents,
    to_cents,
)
from household_ledger.periods import add_months, parse_date
from household_ledger.services.ledger_store import HouseholdLedgerStore
from household_ledger.services.storage.interface import StorageError
from household_ledger.validation import LedgerValidator, ensure_valid

logger = structlog.get_logger(__name__)


def _whole_count(value: Any) -> int:
    if value is None or value == "":
        return 1
    if isinstance(value, bool):
        raise LedgerValidationError("Number of installments must be a whole number.")
    try:
        count = Decimal(str(value))
    except InvalidOperation:
        raise LedgerValidationError("Number of installments must be a whole number.")
    if not count.is_finite() or count != count.to_integral_value():
        raise LedgerValidationError("Number of installments must be a whole number.")
    if count < 1:
        raise LedgerValidationError("Number of installments must be at least 1.")
    return int(count)


def split_amount(total: Decimal, count: int) -> list[Decimal]:
    """Split `total` into `count` cent amounts, remainder on the last one."""
    base = floor_cents(total / count)
    remainder = total - base * count
    return [base] * (count - 1) + [base + remainder]


def expand_installments(
    person_id: str,
    description: str,
    total_amount: Any,
    installments_count: Any,
    purchase_date: Any,
    first_due_date: Any,
    group_id: Optional[str] = None,
) -> list[DebtInstallment]:
    """
    Build the installments of one purchase (nothing is written).

    Raises:
        LedgerValidationError: On a non-positive total, a count that is
            not a whole number >= 1, or missing person/description/dates
    """
    if not person_id:
        raise LedgerValidationError("Choose who owes this debt.")
    if not description or not description.strip():
        raise LedgerValidationError("Description is required.")
    try:
        total = to_cents(total_amount)
    except ValueError:
        raise LedgerValidationError("Total amount must be a number.")
    if total <= ZERO:
        raise LedgerValidationError("Total amount must be greater than zero.")
    count = _whole_count(installments_count)

    purchased = parse_date(purchase_date)
    first_due = parse_date(first_due_date)
    if purchased is None or first_due is None:
        raise LedgerValidationError("Purchase date and first due date are required.")

    group_id = group_id or uuid4().hex
    return [
        DebtInstallment(
            person_id=person_id,
            description=description.strip(),
            amount=amount,
            total_amount=total,
            group_id=group_id,
            installment_number=index + 1,
            installments_count=count,
            purchase_date=purchased,
            due_date=add_months(first_due, index),
            paid_amount=ZERO,
            status=DebtStatus.OPEN,
        )
        for index, amount in enumerate(split_amount(total, count))
    ]


def first_due_date_of(installment: DebtInstallment) -> Optional[date]:
    """Recover the group's first due date from any of its installments."""
    if installment.due_date is None:
        return None
    return add_months(installment.due_date, -(installment.installment_number - 1))


def debt_input_from(installment: DebtInstallment) -> DebtInput:
    """Pre-fill the edit form from one installment of the group."""
    return DebtInput(
        person_id=installment.person_id,
        description=installment.description,
        total_amount=installment.total_amount,
        installments_count=installment.installments_count,
        purchase_date=installment.purchase_date,
        first_due_date=first_due_date_of(installment),
    )


class InstallmentService:
    """Creates, amends and deletes installment groups in one household."""

    def __init__(
        self,
        store: HouseholdLedgerStore,
        validator: Optional[LedgerValidator] = None,
    ):
        self._store = store
        self._validator = validator or LedgerValidator()

    def _expand(self, data: DebtInput, group_id: Optional[str] = None) -> list[DebtInstallment]:
        ensure_valid(self._validator.validate_debt_input(data))
        return expand_installments(
            person_id=data.person_id,
            description=data.description,
            total_amount=data.total_amount,
            installments_count=data.installments_count,
            purchase_date=data.purchase_date,
            first_due_date=data.first_due_date,
            group_id=group_id,
        )

    async def create_debt(self, data: DebtInput) -> list[DebtInstallment]:
        """Expand and insert a new purchase."""
        installments = self._expand(data)
        created = await self._store.insert_installments(installments)
        logger.info(
            "debt_group_created",
            group_id=installments[0].group_id,
            installments=len(created),
        )
        return created

    async def amend_debt(self, group_id: str, data: DebtInput) -> list[DebtInstallment]:
        """
        Replace a purchase with new parameters, keeping its group id.

        Payment progress on the old installments is discarded. The input
        is validated before anything is deleted.
        """
        installments = self._expand(data, group_id=group_id)
        deleted = await self._store.delete_group(group_id)
        if deleted.failed:
            # Recreating now would leave old and new installments side by side
            logger.warning(
                "debt_group_delete_incomplete",
                group_id=group_id,
                failed=deleted.failed,
            )
            first_error = next(iter(deleted.failed.values()))
            raise StorageError(
                f"Could not delete {len(deleted.failed)} installment(s) of "
                f"group {group_id}: {first_error}"
            )
        created = await self._store.insert_installments(installments)
        logger.info(
            "debt_group_amended",
            group_id=group_id,
            deleted=len(deleted.succeeded),
            installments=len(created),
        )
        return created

    async def delete_installment(self, installment_id: str) -> bool:
        return await self._store.delete_debt(installment_id)

    async def delete_group(self, group_id: str) -> BulkResult:
        return await self._store.delete_group(group_id)

    @staticmethod
    def first_due_date_of(installment: DebtInstallment) -> Optional[date]:
        return first_due_date_of(installment)
