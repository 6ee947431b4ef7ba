"""Ledger engine: installments, recurring bills and payments."""

from household_ledger.ledger.installments import (
    InstallmentService,
    debt_input_from,
    expand_installments,
    first_due_date_of,
    split_amount,
)
from household_ledger.ledger.payments import (
    BillToggleOutcome,
    PaymentStateMachine,
    apply_partial_payment,
    mark_installment_paid,
    toggle_bill_state,
    toggle_installment_state,
)
from household_ledger.ledger.recurrence import (
    BillService,
    RecurringBillRoller,
    successor_of,
)

__all__ = [
    "BillService",
    "BillToggleOutcome",
    "InstallmentService",
    "PaymentStateMachine",
    "RecurringBillRoller",
    "apply_partial_payment",
    "debt_input_from",
    "expand_installments",
    "first_due_date_of",
    "mark_installment_paid",
    "split_amount",
    "successor_of",
    "toggle_bill_state",
    "toggle_installment_state",
]
