"""
Storage Services Package

Provides the abstract document-store interface and concrete implementations.
An in-memory store serves tests and local runs; Google Sheets is the
persistent backend. Both are swappable behind DocumentStore.
"""

from household_ledger.services.storage.interface import (
    DocumentStore,
    DuplicateError,
    FieldFilter,
    NotFoundError,
    PermissionDeniedError,
    SnapshotEvent,
    StorageError,
    StoredDocument,
    Subscription,
    TransientStoreError,
    collection_path,
)
from household_ledger.services.storage.memory import InMemoryDocumentStore
from household_ledger.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsDocumentStore,
)

__all__ = [
    # Interfaces
    "DocumentStore",
    "FieldFilter",
    "SnapshotEvent",
    "StoredDocument",
    "Subscription",
    "collection_path",
    # Exceptions
    "DuplicateError",
    "NotFoundError",
    "PermissionDeniedError",
    "StorageError",
    "TransientStoreError",
    # Implementations
    "InMemoryDocumentStore",
    "GoogleSheetsClient",
    "GoogleSheetsDocumentStore",
]
