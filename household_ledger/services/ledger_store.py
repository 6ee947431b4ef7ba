"""
Household Ledger Store

Typed access to one household's collections:
households/{household_id}/{people|categories|debts|bills}.

This is the boundary where raw documents become models. A document that
fails to deserialize is skipped with a warning instead of breaking the
whole snapshot.
"""

import asyncio
import functools
import inspect
from typing import Any, Awaitable, Callable, Optional, Sequence, TypeVar, Union

import structlog

from household_ledger.models.ledger import (
    Bill,
    BulkResult,
    Category,
    DebtInstallment,
    LedgerDocument,
    LedgerSnapshot,
    Person,
)
from household_ledger.services.storage.interface import (
    DocumentStore,
    FieldFilter,
    SnapshotEvent,
    StoredDocument,
    Subscription,
    collection_path,
)

logger = structlog.get_logger(__name__)

PEOPLE = "people"
CATEGORIES = "categories"
DEBTS = "debts"
BILLS = "bills"

# collection -> (model, default ordering)
LEDGER_COLLECTIONS: dict[str, tuple[type[LedgerDocument], str]] = {
    PEOPLE: (Person, "name"),
    CATEGORIES: (Category, "name"),
    DEBTS: (DebtInstallment, "dueDate"),
    BILLS: (Bill, "dueDate"),
}

ModelT = TypeVar("ModelT", bound=LedgerDocument)
SnapshotListener = Callable[[LedgerSnapshot], Union[None, Awaitable[None]]]


def describe_failure(exc: BaseException) -> str:
    return f"{type(exc).__name__}: {exc}"


async def fan_out(operations: dict[str, Awaitable[Any]]) -> BulkResult:
    """
    Run independent writes concurrently and collect per-id outcomes.

    Nothing is rolled back: whatever succeeded stays written.
    """
    ids = list(operations)
    outcomes = await asyncio.gather(*operations.values(), return_exceptions=True)
    result = BulkResult()
    for doc_id, outcome in zip(ids, outcomes):
        if isinstance(outcome, BaseException):
            result.failed[doc_id] = describe_failure(outcome)
        else:
            result.succeeded.append(doc_id)
    return result


class LedgerSubscription(Subscription):
    """Groups the per-collection subscriptions behind one handle."""

    def __init__(self):
        self._subscriptions: list[Subscription] = []
        self._active = True

    def add(self, subscription: Subscription) -> None:
        self._subscriptions.append(subscription)

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        self._active = False
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions.clear()


class HouseholdLedgerStore:
    """Typed CRUD and live snapshots for one household."""

    def __init__(self, store: DocumentStore, household_id: str):
        if not household_id:
            raise ValueError("household_id is required")
        self._store = store
        self._household_id = household_id

    @property
    def household_id(self) -> str:
        return self._household_id

    @property
    def store(self) -> DocumentStore:
        return self._store

    def path(self, name: str) -> str:
        return collection_path(self._household_id, name)

    # -------------------------------------------------------------------------
    # Deserialization
    # -------------------------------------------------------------------------

    def _parse(self, model: type[ModelT], documents: Sequence[StoredDocument]) -> list[ModelT]:
        parsed = []
        for document in documents:
            try:
                parsed.append(model.from_document(document.id, document.data))
            except ValueError as e:
                logger.warning(
                    "malformed_document_skipped",
                    household_id=self._household_id,
                    model=model.__name__,
                    document_id=document.id,
                    error=str(e),
                )
        return parsed

    async def _list(
        self,
        name: str,
        filters: Sequence[FieldFilter] = (),
        order_by: Optional[str] = None,
    ) -> list:
        model, default_order = LEDGER_COLLECTIONS[name]
        documents = await self._store.query(
            self.path(name), filters, order_by or default_order
        )
        return self._parse(model, documents)

    async def _get(self, name: str, doc_id: str) -> Optional[Any]:
        model, _ = LEDGER_COLLECTIONS[name]
        document = await self._store.get(self.path(name), doc_id)
        if document is None:
            return None
        parsed = self._parse(model, [document])
        return parsed[0] if parsed else None

    async def _insert(self, name: str, entity: ModelT) -> ModelT:
        doc_id = await self._store.create(
            self.path(name), entity.to_document(), doc_id=entity.id or None
        )
        return entity.model_copy(update={"id": doc_id})

    async def _save(self, name: str, entity: ModelT) -> ModelT:
        if not entity.id:
            return await self._insert(name, entity)
        await self._store.set(self.path(name), entity.id, entity.to_document(), merge=False)
        return entity

    # -------------------------------------------------------------------------
    # People and categories
    # -------------------------------------------------------------------------

    async def list_people(self) -> list[Person]:
        return await self._list(PEOPLE)

    async def save_person(self, person: Person) -> Person:
        """Insert (no id) or overwrite a person."""
        return await self._save(PEOPLE, person)

    async def delete_person(self, person_id: str) -> bool:
        # Never cascades: debts keep pointing at the id
        return await self._store.delete(self.path(PEOPLE), person_id)

    async def list_categories(self) -> list[Category]:
        return await self._list(CATEGORIES)

    async def save_category(self, category: Category) -> Category:
        return await self._save(CATEGORIES, category)

    async def delete_category(self, category_id: str) -> bool:
        return await self._store.delete(self.path(CATEGORIES), category_id)

    # -------------------------------------------------------------------------
    # Debts
    # -------------------------------------------------------------------------

    async def list_debts(self) -> list[DebtInstallment]:
        return await self._list(DEBTS)

    async def get_debt(self, debt_id: str) -> Optional[DebtInstallment]:
        return await self._get(DEBTS, debt_id)

    async def list_group(self, group_id: str) -> list[DebtInstallment]:
        """Installments of one purchase, ordered by installment number."""
        return await self._list(
            DEBTS,
            [FieldFilter(field="groupId", value=group_id)],
            order_by="installmentNumber",
        )

    async def insert_installments(
        self,
        installments: Sequence[DebtInstallment],
    ) -> list[DebtInstallment]:
        """Insert a whole group concurrently. Any failure propagates."""
        return list(
            await asyncio.gather(
                *(self._insert(DEBTS, installment) for installment in installments)
            )
        )

    async def update_debt(self, debt_id: str, changes: dict[str, Any]) -> None:
        await self._store.update(self.path(DEBTS), debt_id, changes)

    async def delete_debt(self, debt_id: str) -> bool:
        return await self._store.delete(self.path(DEBTS), debt_id)

    async def delete_group(self, group_id: str) -> BulkResult:
        """Delete every installment of a purchase (independent deletes)."""
        members = await self.list_group(group_id)
        return await fan_out(
            {member.id: self.delete_debt(member.id) for member in members}
        )

    # -------------------------------------------------------------------------
    # Bills
    # -------------------------------------------------------------------------

    async def list_bills(self) -> list[Bill]:
        return await self._list(BILLS)

    async def get_bill(self, bill_id: str) -> Optional[Bill]:
        return await self._get(BILLS, bill_id)

    async def list_series(self, series_id: str) -> list[Bill]:
        """All occurrences of a recurring series, oldest first."""
        return await self._list(
            BILLS,
            [FieldFilter(field="seriesId", value=series_id)],
            order_by="dueDate",
        )

    async def insert_bill(self, bill: Bill) -> Bill:
        return await self._insert(BILLS, bill)

    async def update_bill(self, bill_id: str, changes: dict[str, Any]) -> None:
        await self._store.update(self.path(BILLS), bill_id, changes)

    async def delete_bill(self, bill_id: str) -> bool:
        return await self._store.delete(self.path(BILLS), bill_id)

    # -------------------------------------------------------------------------
    # Snapshots
    # -------------------------------------------------------------------------

    async def snapshot(self) -> LedgerSnapshot:
        """One-off read of the whole household."""
        people, categories, debts, bills = await asyncio.gather(
            self.list_people(),
            self.list_categories(),
            self.list_debts(),
            self.list_bills(),
        )
        return LedgerSnapshot(
            people=people,
            categories=categories,
            debts=debts,
            bills=bills,
        )

    async def subscribe(self, listener: SnapshotListener) -> LedgerSubscription:
        """
        Live LedgerSnapshot of the household.

        The listener is first called once all four collections have
        delivered their initial result, then after every change.
        """
        handle = LedgerSubscription()
        latest: dict[str, list] = {}

        async def on_event(name: str, event: SnapshotEvent) -> None:
            model, _ = LEDGER_COLLECTIONS[name]
            latest[name] = self._parse(model, event.documents)
            if len(latest) < len(LEDGER_COLLECTIONS) or not handle.active:
                return
            snapshot = LedgerSnapshot(
                people=latest[PEOPLE],
                categories=latest[CATEGORIES],
                debts=latest[DEBTS],
                bills=latest[BILLS],
            )
            result = listener(snapshot)
            if inspect.isawaitable(result):
                await result

        for name, (_, order_by) in LEDGER_COLLECTIONS.items():
            subscription = await self._store.subscribe(
                self.path(name),
                functools.partial(on_event, name),
                order_by=order_by,
            )
            handle.add(subscription)
        return handle
