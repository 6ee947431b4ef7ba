"""
In-Memory Document Store

Used by the test suite and for local runs without credentials
(storage_backend = "memory"). Behaves like the real store: per-document
atomic writes, last write wins, live subscriptions pushing full
snapshots after every change.
"""

import copy
from typing import Any, Optional, Sequence
from uuid import uuid4

from household_ledger.services.storage.interface import (
    DocumentStore,
    DuplicateError,
    FieldFilter,
    NotFoundError,
    SnapshotCallback,
    StoredDocument,
    Subscription,
    apply_query,
)
from household_ledger.services.storage.subscriptions import SubscriptionHub


class InMemoryDocumentStore(DocumentStore):
    """Dictionary-backed document store."""

    def __init__(self):
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._hub = SubscriptionHub(self._load)

    async def _load(self, collection: str) -> list[StoredDocument]:
        documents = self._collections.get(collection, {})
        return [
            StoredDocument(id=doc_id, data=copy.deepcopy(data))
            for doc_id, data in documents.items()
        ]

    def _collection(self, collection: str) -> dict[str, dict[str, Any]]:
        return self._collections.setdefault(collection, {})

    async def create(
        self,
        collection: str,
        data: dict[str, Any],
        doc_id: Optional[str] = None,
    ) -> str:
        documents = self._collection(collection)
        doc_id = doc_id or uuid4().hex
        if doc_id in documents:
            raise DuplicateError(f"Document already exists: {collection}/{doc_id}")
        documents[doc_id] = copy.deepcopy(data)
        await self._hub.notify(collection)
        return doc_id

    async def update(
        self,
        collection: str,
        doc_id: str,
        changes: dict[str, Any],
    ) -> None:
        documents = self._collection(collection)
        if doc_id not in documents:
            raise NotFoundError(f"Document not found: {collection}/{doc_id}")
        documents[doc_id].update(copy.deepcopy(changes))
        await self._hub.notify(collection)

    async def set(
        self,
        collection: str,
        doc_id: str,
        data: dict[str, Any],
        merge: bool = True,
    ) -> None:
        documents = self._collection(collection)
        if merge and doc_id in documents:
            documents[doc_id].update(copy.deepcopy(data))
        else:
            documents[doc_id] = copy.deepcopy(data)
        await self._hub.notify(collection)

    async def delete(self, collection: str, doc_id: str) -> bool:
        documents = self._collection(collection)
        if documents.pop(doc_id, None) is None:
            return False
        await self._hub.notify(collection)
        return True

    async def get(self, collection: str, doc_id: str) -> Optional[StoredDocument]:
        data = self._collections.get(collection, {}).get(doc_id)
        if data is None:
            return None
        return StoredDocument(id=doc_id, data=copy.deepcopy(data))

    async def query(
        self,
        collection: str,
        filters: Sequence[FieldFilter] = (),
        order_by: Optional[str] = None,
    ) -> list[StoredDocument]:
        return apply_query(await self._load(collection), filters, order_by)

    async def subscribe(
        self,
        collection: str,
        callback: SnapshotCallback,
        filters: Sequence[FieldFilter] = (),
        order_by: Optional[str] = None,
    ) -> Subscription:
        return await self._hub.add(collection, callback, filters, order_by)
