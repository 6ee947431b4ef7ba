"""
Core Data Models for Household Ledger

These models define the strict schemas for everything stored in a
household's document collections. They are designed to:
1. Be the ONE place where raw documents become typed entities
2. Resolve missing fields and legacy values in a single spot
3. Keep money cent-exact (Decimal, quantized to 0.01)
4. Enforce the payment-status invariants on every read

DESIGN DECISION: Documents use camelCase field names (personId, dueDate...).
The models carry a camelCase alias generator, so `from_document()` and
`to_document()` are the only translation points between the store and
the rest of the code.
"""

from datetime import date
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Annotated, Any, Mapping, Optional, TypeVar

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
    model_validator,
)
from pydantic.alias_generators import to_camel

from household_ledger.periods import parse_date

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_cents(value: Any) -> Decimal:
    """Quantize a number to cents (half-up). Blank values count as zero."""
    if value is None or value == "":
        return ZERO
    if isinstance(value, bool):
        raise ValueError("Boolean is not a valid amount")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
        if not amount.is_finite():
            raise ValueError(f"Invalid amount: {value!r}")
        return amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {value!r}")


def floor_cents(value: Decimal) -> Decimal:
    """Round down to cents."""
    return value.quantize(CENT, rounding=ROUND_DOWN)


def _blank_to_none(value: Any) -> Any:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return value


def _optional_date(value: Any) -> Optional[date]:
    value = _blank_to_none(value)
    if value is None:
        return None
    parsed = parse_date(value)
    if parsed is None:
        raise ValueError(f"Invalid date: {value!r}")
    return parsed


def _count(value: Any) -> Any:
    return value or 1


Money = Annotated[
    Decimal,
    BeforeValidator(to_cents),
    PlainSerializer(float, return_type=float, when_used="json"),
]
OptionalDate = Annotated[Optional[date], BeforeValidator(_optional_date)]
OptionalId = Annotated[Optional[str], BeforeValidator(_blank_to_none)]
Count = Annotated[int, BeforeValidator(_count), Field(ge=1)]


def _key(data: Mapping[str, Any], name: str) -> str:
    """Return whichever spelling (camelCase alias or field name) is present."""
    alias = to_camel(name)
    return alias if alias in data or name not in data else name


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class DebtStatus(str, Enum):
    """
    Payment status of one installment.

    Always derived from paid_amount versus amount; never trusted as stored.
    """
    OPEN = "open"
    PARTIAL = "partial"
    PAID = "paid"


class BillStatus(str, Enum):
    """Payment status of one bill occurrence."""
    OPEN = "open"
    PAID = "paid"


# Older documents were written with Portuguese status values.
LEGACY_STATUS = {
    "aberta": "open",
    "parcial": "partial",
    "paga": "paid",
}


def _normalize_status(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip().lower()
        return LEGACY_STATUS.get(value, value)
    return value


def status_for(paid_amount: Decimal, amount: Decimal) -> DebtStatus:
    """Derive an installment status from what has been paid."""
    if paid_amount >= amount:
        return DebtStatus.PAID
    if paid_amount > 0:
        return DebtStatus.PARTIAL
    return DebtStatus.OPEN


# =============================================================================
# DOCUMENT BASE
# =============================================================================

DocumentT = TypeVar("DocumentT", bound="LedgerDocument")


class LedgerDocument(BaseModel):
    """
    Base class for every entity stored in a household collection.

    `id` is the document id; it is not part of the stored field mapping.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    id: str = ""

    @classmethod
    def from_document(
        cls: type[DocumentT],
        doc_id: str,
        data: Mapping[str, Any],
    ) -> DocumentT:
        """Build the typed entity from a raw store document."""
        return cls.model_validate({**data, "id": doc_id})

    def to_document(self) -> dict[str, Any]:
        """Flat field mapping suitable for the document store."""
        return self.model_dump(mode="json", by_alias=True, exclude={"id"})


# =============================================================================
# HOUSEHOLD ENTITIES
# =============================================================================

class Person(LedgerDocument):
    """Somebody who owes the household money or is responsible for a bill."""

    name: str = ""
    phone: OptionalId = None
    note: OptionalId = None


class Category(LedgerDocument):
    """Bill category (water, power, internet...)."""

    name: str = ""


class Household(LedgerDocument):
    """The sharing boundary. All ledger data belongs to exactly one household."""

    name: str = ""
    created_by: OptionalId = None


class UserProfile(LedgerDocument):
    """
    Per-user profile. `id` is the opaque user id from the identity provider.

    A user belongs to at most one household at a time.
    """

    email: str = ""
    display_name: str = ""
    household_id: OptionalId = None


class DebtInstallment(LedgerDocument):
    """
    One dated fragment of an installment purchase.

    INVARIANTS (enforced on every validation):
    - paid_amount <= amount
    - status == PAID    <=> paid_amount >= amount
    - status == PARTIAL <=> 0 < paid_amount < amount
    - otherwise OPEN
    """

    person_id: str = ""
    description: str = ""
    amount: Money = ZERO
    total_amount: Money = ZERO
    group_id: str = ""
    installment_number: Count = 1
    installments_count: Count = 1
    purchase_date: OptionalDate = None
    due_date: OptionalDate = None
    paid_amount: Money = ZERO
    status: DebtStatus = DebtStatus.OPEN

    @model_validator(mode="before")
    @classmethod
    def _resolve_document_defaults(cls, data: Any) -> Any:
        """Fill the gaps old or hand-edited documents leave behind."""
        if not isinstance(data, Mapping):
            return data
        data = dict(data)

        group_key = _key(data, "group_id")
        if not data.get(group_key):
            data[group_key] = data.get("id") or ""

        status_key = _key(data, "status")
        status = _normalize_status(data.get(status_key))
        if status not in {item.value for item in DebtStatus}:
            status = DebtStatus.OPEN.value
        data[status_key] = status

        # A document marked paid without a paid amount was paid in full.
        paid_key = _key(data, "paid_amount")
        if status == DebtStatus.PAID.value and not data.get(paid_key):
            data[paid_key] = data.get(_key(data, "amount"))
        return data

    @model_validator(mode="after")
    def _enforce_payment_invariants(self) -> "DebtInstallment":
        if self.paid_amount < 0:
            self.paid_amount = ZERO
        if self.paid_amount > self.amount:
            self.paid_amount = self.amount
        self.status = status_for(self.paid_amount, self.amount)
        return self

    @property
    def remaining(self) -> Decimal:
        """What is still owed on this installment."""
        return max(ZERO, self.amount - self.paid_amount)

    @property
    def is_paid(self) -> bool:
        return self.status == DebtStatus.PAID

    @property
    def label(self) -> str:
        """e.g. "2/10"."""
        return f"{self.installment_number}/{self.installments_count}"


class Bill(LedgerDocument):
    """
    One occurrence of a household bill.

    Recurring bills share a series_id across occurrences; the next
    occurrence is created only when the current one is paid.

    INVARIANT: a non-recurring bill is never active and has no series.
    """

    title: str = ""
    amount: Money = ZERO
    due_date: OptionalDate = None
    recurring: bool = False
    recurring_active: bool = False
    series_id: str = ""
    recurring_end_date: OptionalDate = None
    category_id: OptionalId = None
    person_id: OptionalId = None
    status: BillStatus = BillStatus.OPEN

    @model_validator(mode="before")
    @classmethod
    def _resolve_document_defaults(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        data = dict(data)

        recurring = bool(data.get(_key(data, "recurring")))
        data[_key(data, "recurring")] = recurring

        active_key = _key(data, "recurring_active")
        if data.get(active_key) is None:
            data[active_key] = recurring
        else:
            data[active_key] = bool(data[active_key])

        series_key = _key(data, "series_id")
        data[series_key] = data.get(series_key) or ""

        status_key = _key(data, "status")
        status = _normalize_status(data.get(status_key))
        if status not in {item.value for item in BillStatus}:
            status = BillStatus.OPEN.value
        data[status_key] = status
        return data

    @model_validator(mode="after")
    def _enforce_recurrence_invariants(self) -> "Bill":
        if not self.recurring:
            self.recurring_active = False
            self.series_id = ""
            self.recurring_end_date = None
        return self

    @property
    def is_paid(self) -> bool:
        return self.status == BillStatus.PAID

    @property
    def paid_amount(self) -> Decimal:
        return self.amount if self.is_paid else ZERO

    @property
    def remaining(self) -> Decimal:
        return ZERO if self.is_paid else self.amount

    @property
    def series_key(self) -> str:
        """Series identifier, falling back to the document id for strays."""
        return self.series_id or self.id


# =============================================================================
# USER INPUT MODELS
# =============================================================================

class DebtInput(BaseModel):
    """
    What the user typed into the debt form.

    Loosely typed on purpose: LedgerValidator reports the problems,
    the model does not reject them at construction time.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    person_id: str = ""
    description: str = ""
    total_amount: Optional[Decimal] = None
    installments_count: Optional[int] = 1
    purchase_date: Optional[date] = None
    first_due_date: Optional[date] = None


class BillInput(BaseModel):
    """What the user typed into the bill form."""
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = ""
    amount: Optional[Decimal] = None
    due_date: Optional[date] = None
    recurring: bool = True
    recurring_end_date: Optional[date] = None
    category_id: Optional[str] = None
    person_id: Optional[str] = None


# =============================================================================
# SNAPSHOT
# =============================================================================

class LedgerSnapshot(BaseModel):
    """
    Full in-memory picture of one household at one moment.

    Aggregations are pure functions of a snapshot.
    """

    people: list[Person] = Field(default_factory=list)
    categories: list[Category] = Field(default_factory=list)
    debts: list[DebtInstallment] = Field(default_factory=list)
    bills: list[Bill] = Field(default_factory=list)

    def person_name(self, person_id: Optional[str], default: str = "Unknown person") -> str:
        for person in self.people:
            if person.id == person_id:
                return person.name
        return default

    def category_name(self, category_id: Optional[str], default: str = "Uncategorized") -> str:
        for category in self.categories:
            if category.id == category_id:
                return category.name
        return default

    def group(self, group_id: str) -> list[DebtInstallment]:
        """Installments of one purchase, ordered by installment number."""
        return sorted(
            (debt for debt in self.debts if debt.group_id == group_id),
            key=lambda debt: debt.installment_number,
        )

    def with_debt(self, updated: DebtInstallment) -> "LedgerSnapshot":
        """Copy with one installment replaced (optimistic local update)."""
        debts = [updated if debt.id == updated.id else debt for debt in self.debts]
        return self.model_copy(update={"debts": debts})

    def with_bill(self, updated: Bill) -> "LedgerSnapshot":
        bills = [updated if bill.id == updated.id else bill for bill in self.bills]
        return self.model_copy(update={"bills": bills})


# =============================================================================
# OPERATION RESULTS
# =============================================================================

class BulkResult(BaseModel):
    """
    Outcome of a fan-out operation (mark all paid, stop recurrence...).

    Writes are independent: failures never roll back successes.
    """

    succeeded: list[str] = Field(default_factory=list)
    failed: dict[str, str] = Field(default_factory=dict)

    @property
    def attempted(self) -> int:
        return len(self.succeeded) + len(self.failed)

    @property
    def all_succeeded(self) -> bool:
        return not self.failed


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'out_of_range')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """Result of validating one user input before any write."""

    subject: str = Field(
        ...,
        description="What was validated (debt, bill, partial_payment)"
    )
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def warnings(self) -> list[str]:
        return [issue.message for issue in self.issues if issue.severity == "warning"]
