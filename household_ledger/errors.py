"""
Ledger Errors and User Messages

Three kinds of failure reach the user:
- LedgerValidationError: bad input, rejected before any write
- PermissionDeniedError: the store refused the write
- anything else (TransientStoreError included): generic "could not" message

describe_error() is the single translation point from exception to the
message shown in the UI. Nothing here retries.
"""

from typing import Optional

from household_ledger.models.ledger import BulkResult, ValidationIssue
from household_ledger.services.storage.interface import PermissionDeniedError


class LedgerError(Exception):
    """Base exception for ledger operations."""
    pass


class LedgerValidationError(LedgerError):
    """User input rejected locally. No state was changed."""

    def __init__(self, message: str, issues: Optional[list[ValidationIssue]] = None):
        super().__init__(message)
        self.message = message
        self.issues = issues or []


def is_permission_error(exc: BaseException) -> bool:
    """
    Recognise a permission denial.

    Store clients raise PermissionDeniedError; some transports only tell
    us through the message text.
    """
    if isinstance(exc, (PermissionDeniedError, PermissionError)):
        return True
    return "permission" in str(exc).lower()


def describe_error(
    exc: BaseException,
    subject: str = "this item",
    action: str = "update",
) -> str:
    """Translate an exception into the message shown to the user."""
    if isinstance(exc, LedgerValidationError):
        return exc.message
    if is_permission_error(exc):
        return f"You do not have permission to {action} {subject}."
    return f"Could not {action} {subject}."


def describe_bulk_result(
    result: BulkResult,
    subject: str = "items",
    action: str = "update",
) -> str:
    """One summary line for a fan-out operation ("Updated 3 of 5 installments.")."""
    done = "Deleted" if action == "delete" else "Updated"
    if result.attempted == 0:
        return f"No {subject} to {action}."
    if result.all_succeeded:
        return f"{done} {len(result.succeeded)} {subject}."
    if not result.succeeded:
        if all("permission" in error.lower() for error in result.failed.values()):
            return f"You do not have permission to {action} the {subject}."
        return f"Could not {action} the {subject}."
    return f"{done} {len(result.succeeded)} of {result.attempted} {subject}."
