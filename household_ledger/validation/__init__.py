"""Input validation package."""

from household_ledger.validation.validator import LedgerValidator, ensure_valid

__all__ = ["LedgerValidator", "ensure_valid"]
