"""
Two-Stage Input Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Required field presence
- Positive amounts, whole installment counts
- This catches empty or half-filled forms

STAGE 2 - SEMANTIC VALIDATION:
- Limits from settings (installment count)
- Date consistency
- Absurd amount detection
- This catches logically impossible or suspicious input

WHY TWO STAGES:
1. Separation of concerns (structural vs logical)
2. Better error messages (know exactly what kind of issue)
3. Can skip stage 2 if stage 1 fails

IMPORTANT: Validation NEVER silently fixes issues and never writes.
Errors block the action; warnings are shown but do not block.
"""

from decimal import Decimal
from typing import Optional

from household_ledger.config import AppSettings, get_settings
from household_ledger.errors import LedgerValidationError
from household_ledger.models.ledger import (
    CENT,
    BillInput,
    DebtInput,
    DebtInstallment,
    ValidationIssue,
    ValidationResult,
    to_cents,
)


def _has_sub_cent_digits(value: Decimal) -> bool:
    return value != value.quantize(CENT)


class LedgerValidator:
    """
    Validates user input for debts, bills and partial payments.

    Stage 1: Schema validation
    Stage 2: Semantic validation (only when stage 1 passes)
    """

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app

    # -------------------------------------------------------------------------
    # Debts
    # -------------------------------------------------------------------------

    def _validate_debt_schema(self, data: DebtInput) -> list[ValidationIssue]:
        issues = []

        if not data.person_id:
            issues.append(ValidationIssue(
                field="person_id",
                issue_type="missing",
                message="Choose who owes this debt",
                severity="error",
            ))

        if not data.description:
            issues.append(ValidationIssue(
                field="description",
                issue_type="missing",
                message="Description is required",
                severity="error",
            ))

        if data.total_amount is None:
            issues.append(ValidationIssue(
                field="total_amount",
                issue_type="missing",
                message="Total amount is required",
                severity="error",
            ))
        elif not data.total_amount.is_finite() or data.total_amount <= 0:
            issues.append(ValidationIssue(
                field="total_amount",
                issue_type="invalid_value",
                message="Total amount must be greater than zero",
                severity="error",
            ))

        # A missing count means a single payment
        if data.installments_count is not None and data.installments_count < 1:
            issues.append(ValidationIssue(
                field="installments_count",
                issue_type="invalid_value",
                message="Number of installments must be at least 1",
                severity="error",
            ))

        if data.purchase_date is None:
            issues.append(ValidationIssue(
                field="purchase_date",
                issue_type="missing",
                message="Purchase date is required",
                severity="error",
            ))

        if data.first_due_date is None:
            issues.append(ValidationIssue(
                field="first_due_date",
                issue_type="missing",
                message="First due date is required",
                severity="error",
            ))

        return issues

    def _validate_debt_semantic(self, data: DebtInput) -> list[ValidationIssue]:
        issues = []
        count = data.installments_count or 1

        if count > self._settings.max_installments:
            issues.append(ValidationIssue(
                field="installments_count",
                issue_type="out_of_range",
                message=(
                    f"At most {self._settings.max_installments} installments "
                    "are allowed"
                ),
                severity="error",
            ))

        if data.total_amount / count < CENT:
            issues.append(ValidationIssue(
                field="installments_count",
                issue_type="out_of_range",
                message="Each installment must be at least 0.01",
                severity="error",
            ))

        if _has_sub_cent_digits(data.total_amount):
            issues.append(ValidationIssue(
                field="total_amount",
                issue_type="rounded",
                message="Total amount will be rounded to cents",
                severity="warning",
            ))

        if data.total_amount > Decimal(str(self._settings.max_amount)):
            issues.append(ValidationIssue(
                field="total_amount",
                issue_type="suspicious_value",
                message="Total amount seems unusually high",
                severity="warning",
            ))

        if data.first_due_date < data.purchase_date:
            issues.append(ValidationIssue(
                field="first_due_date",
                issue_type="inconsistent",
                message="First due date is before the purchase date",
                severity="warning",
            ))

        return issues

    def validate_debt_input(self, data: DebtInput) -> ValidationResult:
        """Validate the debt form before expanding it into installments."""
        issues = self._validate_debt_schema(data)
        if not any(issue.severity == "error" for issue in issues):
            issues.extend(self._validate_debt_semantic(data))
        return ValidationResult(subject="debt", issues=issues)

    # -------------------------------------------------------------------------
    # Bills
    # -------------------------------------------------------------------------

    def validate_bill_input(self, data: BillInput) -> ValidationResult:
        """Validate the bill form."""
        issues = []

        if not data.title:
            issues.append(ValidationIssue(
                field="title",
                issue_type="missing",
                message="Title is required",
                severity="error",
            ))

        if data.amount is None:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="missing",
                message="Amount is required",
                severity="error",
            ))
        elif not data.amount.is_finite() or data.amount <= 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount must be greater than zero",
                severity="error",
            ))

        if data.due_date is None:
            issues.append(ValidationIssue(
                field="due_date",
                issue_type="missing",
                message="Due date is required",
                severity="error",
            ))

        if any(issue.severity == "error" for issue in issues):
            return ValidationResult(subject="bill", issues=issues)

        # Semantic stage
        if (
            data.recurring
            and data.recurring_end_date is not None
            and data.recurring_end_date < data.due_date
        ):
            issues.append(ValidationIssue(
                field="recurring_end_date",
                issue_type="inconsistent",
                message="End date cannot be before the due date",
                severity="error",
            ))

        if _has_sub_cent_digits(data.amount):
            issues.append(ValidationIssue(
                field="amount",
                issue_type="rounded",
                message="Amount will be rounded to cents",
                severity="warning",
            ))

        if data.amount > Decimal(str(self._settings.max_amount)):
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message="Amount seems unusually high",
                severity="warning",
            ))

        return ValidationResult(subject="bill", issues=issues)

    # -------------------------------------------------------------------------
    # Payments
    # -------------------------------------------------------------------------

    def validate_partial_payment(
        self,
        installment: DebtInstallment,
        value: Optional[Decimal],
    ) -> ValidationResult:
        """A partial payment must satisfy 0.01 <= value <= remaining once rounded to cents."""
        issues = []

        if value is None:
            issues.append(ValidationIssue(
                field="value",
                issue_type="missing",
                message="Enter the amount paid",
                severity="error",
            ))
        elif not value.is_finite() or value <= 0:
            issues.append(ValidationIssue(
                field="value",
                issue_type="invalid_value",
                message="Payment must be greater than zero",
                severity="error",
            ))
        elif to_cents(value) <= 0:
            issues.append(ValidationIssue(
                field="value",
                issue_type="invalid_value",
                message="Payment must be at least 0.01",
                severity="error",
            ))
        elif installment.remaining <= 0:
            issues.append(ValidationIssue(
                field="value",
                issue_type="out_of_range",
                message="This installment is already paid",
                severity="error",
            ))
        elif to_cents(value) > installment.remaining:
            issues.append(ValidationIssue(
                field="value",
                issue_type="out_of_range",
                message=f"Payment cannot exceed the remaining {installment.remaining}",
                severity="error",
            ))

        return ValidationResult(subject="partial_payment", issues=issues)


def ensure_valid(result: ValidationResult) -> ValidationResult:
    """
    Raise LedgerValidationError if the result holds any error.

    Returns the result unchanged otherwise, so warnings can be shown.
    """
    if result.has_errors:
        errors = [issue for issue in result.issues if issue.severity == "error"]
        raise LedgerValidationError(
            " ".join(
                issue.message if issue.message.endswith(".") else f"{issue.message}."
                for issue in errors
            ),
            issues=errors,
        )
    return result
