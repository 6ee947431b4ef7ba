"""
Payment State Machine

Installments move between open, partial and paid; bills between open
and paid. The transitions are pure functions so the session can apply
them to its local snapshot before the write is confirmed, then the same
result is written to the store.

    installment:  open --partial--> partial --partial--> paid
                  open/partial --toggle--> paid --toggle--> open (paid_amount reset)
    bill:         open <--toggle--> paid (paid triggers the roller)
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Sequence

import structlog
from pydantic import BaseModel

from household_ledger.errors import LedgerValidationError
from household_ledger.ledger.recurrence import RecurringBillRoller
from household_ledger.models.ledger import (
    Bill,
    BillStatus,
    BulkResult,
    DebtInstallment,
    ZERO,
    status_for,
    to_cents,
)
from household_ledger.services.ledger_store import (
    HouseholdLedgerStore,
    describe_failure,
    fan_out,
)
from household_ledger.validation import LedgerValidator, ensure_valid

logger = structlog.get_logger(__name__)


# =============================================================================
# PURE TRANSITIONS
# =============================================================================

def payment_value(value: Any) -> Optional[Decimal]:
    """Read a typed-in payment value. Blank means no value."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if isinstance(value, bool):
        raise LedgerValidationError("Payment must be a number.")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except InvalidOperation:
        raise LedgerValidationError("Payment must be a number.")
    if not amount.is_finite():
        raise LedgerValidationError("Payment must be a number.")
    return amount


def _with_paid_amount(installment: DebtInstallment, paid_amount: Decimal) -> DebtInstallment:
    return installment.model_copy(
        update={
            "paid_amount": paid_amount,
            "status": status_for(paid_amount, installment.amount),
        }
    )


def mark_installment_paid(installment: DebtInstallment) -> DebtInstallment:
    """Paid in full, whatever was paid before."""
    return _with_paid_amount(installment, installment.amount)


def toggle_installment_state(installment: DebtInstallment) -> DebtInstallment:
    """Paid goes back to open with nothing paid; anything else becomes paid."""
    if installment.is_paid:
        return _with_paid_amount(installment, ZERO)
    return mark_installment_paid(installment)


def apply_partial_payment(installment: DebtInstallment, value: Any) -> DebtInstallment:
    """
    Add a payment to an installment.

    Raises:
        LedgerValidationError: Unless 0.01 <= value <= remaining once
            rounded to cents. The installment is left untouched.
    """
    amount = payment_value(value)
    if amount is None:
        raise LedgerValidationError("Enter the amount paid.")
    if amount <= 0:
        raise LedgerValidationError("Payment must be greater than zero.")
    cents = to_cents(amount)
    if cents <= 0:
        raise LedgerValidationError("Payment must be at least 0.01.")
    if cents > installment.remaining:
        raise LedgerValidationError(
            f"Payment cannot exceed the remaining {installment.remaining}."
        )
    return _with_paid_amount(installment, installment.paid_amount + cents)


def toggle_bill_state(bill: Bill) -> Bill:
    status = BillStatus.OPEN if bill.is_paid else BillStatus.PAID
    return bill.model_copy(update={"status": status})


def installment_payment_fields(installment: DebtInstallment) -> dict[str, Any]:
    """The document fields a payment transition changes."""
    return {
        "paidAmount": float(installment.paid_amount),
        "status": installment.status.value,
    }


# =============================================================================
# WRITES
# =============================================================================

class BillToggleOutcome(BaseModel):
    """Result of toggling a bill: the new state and any new occurrence."""

    bill: Bill
    successor: Optional[Bill] = None
    roll_forward_error: Optional[str] = None


class PaymentStateMachine:
    """Applies payment transitions and writes them to the household store."""

    def __init__(
        self,
        store: HouseholdLedgerStore,
        roller: Optional[RecurringBillRoller] = None,
        validator: Optional[LedgerValidator] = None,
    ):
        self._store = store
        self._roller = roller or RecurringBillRoller(store)
        self._validator = validator or LedgerValidator()

    async def _write_installment(self, installment: DebtInstallment) -> DebtInstallment:
        await self._store.update_debt(installment.id, installment_payment_fields(installment))
        return installment

    async def toggle_installment(self, installment: DebtInstallment) -> DebtInstallment:
        return await self._write_installment(toggle_installment_state(installment))

    async def record_partial_payment(
        self,
        installment: DebtInstallment,
        value: Any,
    ) -> DebtInstallment:
        ensure_valid(
            self._validator.validate_partial_payment(installment, payment_value(value))
        )
        return await self._write_installment(apply_partial_payment(installment, value))

    async def mark_all_paid(self, installments: Sequence[DebtInstallment]) -> BulkResult:
        """
        Pay every installment in the (already filtered) view that is not paid.

        The writes are independent; failures are reported, not rolled back.
        """
        pending = [item for item in installments if not item.is_paid]
        result = await fan_out(
            {item.id: self._write_installment(mark_installment_paid(item)) for item in pending}
        )
        if result.failed:
            logger.warning(
                "mark_all_paid_incomplete",
                succeeded=len(result.succeeded),
                failed=result.failed,
            )
        return result

    async def toggle_bill(self, bill: Bill) -> BillToggleOutcome:
        """
        Flip a bill between open and paid.

        On the transition to paid, the next occurrence of a recurring
        series is created. A failure there is reported in the outcome; the
        status change itself stays written.
        """
        updated = toggle_bill_state(bill)
        await self._store.update_bill(bill.id, {"status": updated.status.value})
        outcome = BillToggleOutcome(bill=updated)
        if updated.is_paid:
            try:
                outcome.successor = await self._roller.roll_forward(updated)
            except Exception as e:
                logger.error(
                    "roll_forward_failed",
                    bill_id=bill.id,
                    series_id=bill.series_id,
                    error=str(e),
                )
                outcome.roll_forward_error = describe_failure(e)
        return outcome
