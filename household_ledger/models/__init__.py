"""
Data Models Package

This package contains all Pydantic models used in the Household Ledger.
Everything read from the document store goes through these schemas.
"""

from household_ledger.models.ledger import (
    Bill,
    BillInput,
    BillStatus,
    BulkResult,
    Category,
    DebtInput,
    DebtInstallment,
    DebtStatus,
    Household,
    LedgerDocument,
    LedgerSnapshot,
    Person,
    UserProfile,
    ValidationIssue,
    ValidationResult,
    to_cents,
)
from household_ledger.models.reports import (
    DashboardSummary,
    LedgerTotals,
    MonthlyStatus,
    MonthTotal,
    PeriodFilter,
    PersonSummary,
)
from household_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "Bill",
    "BillInput",
    "BillStatus",
    "BulkResult",
    "Category",
    "DebtInput",
    "DebtInstallment",
    "DebtStatus",
    "Household",
    "LedgerDocument",
    "LedgerSnapshot",
    "Person",
    "UserProfile",
    "ValidationIssue",
    "ValidationResult",
    "to_cents",
    # Report models
    "DashboardSummary",
    "LedgerTotals",
    "MonthlyStatus",
    "MonthTotal",
    "PeriodFilter",
    "PersonSummary",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
