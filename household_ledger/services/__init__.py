"""Services package."""

from household_ledger.services.households import HouseholdDirectory
from household_ledger.services.ledger_store import (
    HouseholdLedgerStore,
    LedgerSubscription,
    fan_out,
)
from household_ledger.services.storage import (
    DocumentStore,
    DuplicateError,
    GoogleSheetsClient,
    GoogleSheetsDocumentStore,
    InMemoryDocumentStore,
    NotFoundError,
    PermissionDeniedError,
    StorageError,
    TransientStoreError,
)

__all__ = [
    # Household services
    "HouseholdDirectory",
    "HouseholdLedgerStore",
    "LedgerSubscription",
    "fan_out",
    # Storage services
    "DocumentStore",
    "DuplicateError",
    "GoogleSheetsClient",
    "GoogleSheetsDocumentStore",
    "InMemoryDocumentStore",
    "NotFoundError",
    "PermissionDeniedError",
    "StorageError",
    "TransientStoreError",
]
