"""
Live Query Fan-out

Backends without native change streams (in-memory, Google Sheets) use
this hub: after every write through the client, each subscription on the
touched collection re-runs its query and receives the full result set.
"""

import inspect
from typing import Awaitable, Callable, Optional, Sequence

import structlog

from household_ledger.services.storage.interface import (
    FieldFilter,
    SnapshotCallback,
    SnapshotEvent,
    StoredDocument,
    Subscription,
    apply_query,
)

logger = structlog.get_logger(__name__)

CollectionLoader = Callable[[str], Awaitable[list[StoredDocument]]]


class HubSubscription(Subscription):
    """One registered live query."""

    def __init__(
        self,
        hub: "SubscriptionHub",
        collection: str,
        callback: SnapshotCallback,
        filters: Sequence[FieldFilter],
        order_by: Optional[str],
    ):
        self._hub = hub
        self.collection = collection
        self.callback = callback
        self.filters = list(filters)
        self.order_by = order_by
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if self._active:
            self._active = False
            self._hub.remove(self)

    async def deliver(self, documents: list[StoredDocument]) -> None:
        if not self._active:
            return
        event = SnapshotEvent(
            collection=self.collection,
            documents=apply_query(documents, self.filters, self.order_by),
        )
        result = self.callback(event)
        if inspect.isawaitable(result):
            await result


class SubscriptionHub:
    """Keeps subscriptions per collection and pushes snapshots to them."""

    def __init__(self, loader: CollectionLoader):
        self._loader = loader
        self._subscriptions: list[HubSubscription] = []

    async def add(
        self,
        collection: str,
        callback: SnapshotCallback,
        filters: Sequence[FieldFilter] = (),
        order_by: Optional[str] = None,
    ) -> HubSubscription:
        subscription = HubSubscription(self, collection, callback, filters, order_by)
        self._subscriptions.append(subscription)
        await subscription.deliver(await self._loader(collection))
        return subscription

    def remove(self, subscription: HubSubscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    async def notify(self, collection: str) -> None:
        """Push the current state of `collection` to its subscribers."""
        targets = [item for item in self._subscriptions if item.collection == collection]
        if not targets:
            return
        documents = await self._loader(collection)
        for subscription in targets:
            try:
                await subscription.deliver(documents)
            except Exception as e:
                # A broken subscriber must not fail the write that triggered it
                logger.error(
                    "snapshot_callback_failed",
                    collection=collection,
                    error=str(e),
                )
