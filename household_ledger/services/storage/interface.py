"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for the document store.
This allows us to:
1. Swap Google Sheets for a real document database later
2. Use in-memory storage for testing
3. Keep ledger logic decoupled from storage implementation

The store is a plain document database: named collections of flat
documents (field name -> primitive value), with create, merge-update,
delete, point read, filtered/ordered query and live subscriptions that
push the FULL matching result set on every change.

There are no transactions. Every document write is atomic on its own
and the last write wins.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional, Sequence, Union

from pydantic import BaseModel, Field


class StoredDocument(BaseModel):
    """A document as it lives in the store: id plus flat field mapping."""

    id: str
    data: dict[str, Any] = Field(default_factory=dict)


class FieldFilter(BaseModel):
    """Equality filter on one document field."""

    field: str
    value: Any

    def matches(self, data: dict[str, Any]) -> bool:
        return data.get(self.field) == self.value


class SnapshotEvent(BaseModel):
    """Full result set of a subscribed query, pushed after every change."""

    collection: str
    documents: list[StoredDocument] = Field(default_factory=list)
    received_at: datetime = Field(default_factory=datetime.utcnow)


SnapshotCallback = Callable[[SnapshotEvent], Union[None, Awaitable[None]]]


class Subscription(ABC):
    """Handle returned by DocumentStore.subscribe()."""

    @abstractmethod
    def unsubscribe(self) -> None:
        """Stop receiving snapshots. Safe to call more than once."""
        pass

    @property
    @abstractmethod
    def active(self) -> bool:
        pass


def collection_path(household_id: str, name: str) -> str:
    """Path of a household-scoped collection, e.g. households/abc/debts."""
    return f"households/{household_id}/{name}"


def apply_query(
    documents: Sequence[StoredDocument],
    filters: Sequence[FieldFilter] = (),
    order_by: Optional[str] = None,
) -> list[StoredDocument]:
    """Filter and order documents in Python (shared by the simple backends)."""
    matched = [
        document
        for document in documents
        if all(item.matches(document.data) for item in filters)
    ]
    if order_by:
        # Documents missing the field sort first, like most document stores.
        matched.sort(
            key=lambda document: (
                document.data.get(order_by) is not None,
                document.data.get(order_by) if document.data.get(order_by) is not None else "",
            )
        )
    return matched


class DocumentStore(ABC):
    """
    Abstract interface for document storage operations.

    Any storage implementation (Google Sheets, Firestore, in-memory...)
    must implement these methods.
    """

    @abstractmethod
    async def create(
        self,
        collection: str,
        data: dict[str, Any],
        doc_id: Optional[str] = None,
    ) -> str:
        """
        Insert a new document.

        Args:
            collection: Collection path
            data: Flat field mapping
            doc_id: Use this id instead of generating one

        Returns:
            The id of the new document

        Raises:
            DuplicateError: If doc_id is already taken
            PermissionDeniedError, TransientStoreError
        """
        pass

    @abstractmethod
    async def update(
        self,
        collection: str,
        doc_id: str,
        changes: dict[str, Any],
    ) -> None:
        """
        Merge `changes` into an existing document.

        Raises:
            NotFoundError: If the document doesn't exist
        """
        pass

    @abstractmethod
    async def set(
        self,
        collection: str,
        doc_id: str,
        data: dict[str, Any],
        merge: bool = True,
    ) -> None:
        """Create or overwrite (merge=False) / merge (merge=True) a document."""
        pass

    @abstractmethod
    async def delete(self, collection: str, doc_id: str) -> bool:
        """
        Delete a document.

        Returns:
            True if a document was deleted, False if it did not exist
        """
        pass

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Optional[StoredDocument]:
        """Point read. Returns None if the document doesn't exist."""
        pass

    @abstractmethod
    async def query(
        self,
        collection: str,
        filters: Sequence[FieldFilter] = (),
        order_by: Optional[str] = None,
    ) -> list[StoredDocument]:
        """
        List documents matching every filter.

        Args:
            collection: Collection path
            filters: Equality filters (all must match)
            order_by: Field to sort ascending by

        Returns:
            Matching documents
        """
        pass

    @abstractmethod
    async def subscribe(
        self,
        collection: str,
        callback: SnapshotCallback,
        filters: Sequence[FieldFilter] = (),
        order_by: Optional[str] = None,
    ) -> Subscription:
        """
        Subscribe to a live query.

        The callback receives the current result set before this coroutine
        returns, then again after every change to a matching
        document. Callbacks may be plain functions or coroutines.
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class PermissionDeniedError(StorageError):
    """The store refused the operation (security rules, sharing...)."""

    def __init__(self, message: str = "permission denied"):
        super().__init__(message)


class TransientStoreError(StorageError):
    """Network or availability problem. The user may try again."""
    pass
