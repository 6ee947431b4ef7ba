"""Tests for the document store, the household ledger store and the directory."""

from datetime import date
from decimal import Decimal

import pytest

from conftest import HOUSEHOLD_ID, run
from household_ledger.models.ledger import Bill, DebtInstallment, Person
from household_ledger.services import HouseholdDirectory, HouseholdLedgerStore, fan_out
from household_ledger.services.storage.interface import (
    DuplicateError,
    FieldFilter,
    NotFoundError,
    PermissionDeniedError,
    collection_path,
)


class TestInMemoryDocumentStore:
    """Tests for the in-memory backend."""

    def test_create_get_update_delete(self, document_store):
        async def scenario():
            doc_id = await document_store.create("things", {"name": "a", "n": 1})
            await document_store.update("things", doc_id, {"n": 2})
            stored = await document_store.get("things", doc_id)
            deleted = await document_store.delete("things", doc_id)
            missing = await document_store.get("things", doc_id)
            return stored, deleted, missing

        stored, deleted, missing = run(scenario())

        assert stored.data == {"name": "a", "n": 2}
        assert deleted is True
        assert missing is None

    def test_create_with_taken_id_is_rejected(self, document_store):
        run(document_store.create("things", {"name": "a"}, doc_id="x"))
        with pytest.raises(DuplicateError):
            run(document_store.create("things", {"name": "b"}, doc_id="x"))

    def test_update_missing_document(self, document_store):
        with pytest.raises(NotFoundError):
            run(document_store.update("things", "nope", {"n": 1}))

    def test_delete_missing_document_returns_false(self, document_store):
        assert run(document_store.delete("things", "nope")) is False

    def test_set_merge_and_overwrite(self, document_store):
        run(document_store.set("things", "x", {"a": 1, "b": 2}))
        run(document_store.set("things", "x", {"b": 3}, merge=True))
        assert run(document_store.get("things", "x")).data == {"a": 1, "b": 3}

        run(document_store.set("things", "x", {"c": 4}, merge=False))
        assert run(document_store.get("things", "x")).data == {"c": 4}

    def test_query_filters_and_orders(self, document_store):
        async def scenario():
            await document_store.create("things", {"kind": "a", "due": "2024-03-01"})
            await document_store.create("things", {"kind": "b", "due": "2024-01-01"})
            await document_store.create("things", {"kind": "a", "due": "2024-02-01"})
            await document_store.create("things", {"kind": "a"})
            return await document_store.query(
                "things", [FieldFilter(field="kind", value="a")], order_by="due"
            )

        documents = run(scenario())
        assert [doc.data.get("due") for doc in documents] == [None, "2024-02-01", "2024-03-01"]

    def test_returned_documents_are_copies(self, document_store):
        run(document_store.set("things", "x", {"a": 1}))
        run(document_store.get("things", "x")).data["a"] = 99
        assert run(document_store.get("things", "x")).data == {"a": 1}

    def test_subscription_gets_initial_and_later_snapshots(self, document_store):
        received = []

        async def scenario():
            await document_store.create("things", {"kind": "a"}, doc_id="1")
            subscription = await document_store.subscribe(
                "things",
                lambda event: received.append([doc.id for doc in event.documents]),
                filters=[FieldFilter(field="kind", value="a")],
            )
            await document_store.create("things", {"kind": "b"}, doc_id="2")
            await document_store.create("things", {"kind": "a"}, doc_id="3")
            subscription.unsubscribe()
            subscription.unsubscribe()
            await document_store.delete("things", "1")
            return subscription

        subscription = run(scenario())

        assert received == [["1"], ["1"], ["1", "3"]]
        assert subscription.active is False

    def test_failing_subscriber_does_not_fail_the_write(self, document_store):
        def broken(event):
            if event.documents:
                raise RuntimeError("listener bug")

        async def scenario():
            await document_store.subscribe("things", broken)
            return await document_store.create("things", {"a": 1})

        assert run(scenario())

    def test_collection_path(self):
        assert collection_path("h1", "debts") == "households/h1/debts"


class TestHouseholdLedgerStore:
    """Tests for typed access to one household."""

    def test_requires_household(self, document_store):
        with pytest.raises(ValueError):
            HouseholdLedgerStore(document_store, "")

    def test_people_are_listed_by_name(self, ledger_store):
        run(ledger_store.save_person(Person(name="Zoe")))
        saved = run(ledger_store.save_person(Person(name="Ana")))

        assert saved.id
        assert [person.name for person in run(ledger_store.list_people())] == ["Ana", "Zoe"]

    def test_save_person_overwrites(self, ledger_store):
        saved = run(ledger_store.save_person(Person(name="Ana", phone="123")))
        run(ledger_store.save_person(saved.model_copy(update={"name": "Ana Maria", "phone": None})))

        people = run(ledger_store.list_people())
        assert len(people) == 1
        assert people[0].name == "Ana Maria"
        assert people[0].phone is None

    def test_deleting_person_keeps_their_debts(self, ledger_store):
        person = run(ledger_store.save_person(Person(name="Ana")))
        run(ledger_store.insert_installments([
            DebtInstallment(person_id=person.id, amount=Decimal("10"), due_date=date(2024, 1, 1)),
        ]))

        assert run(ledger_store.delete_person(person.id)) is True
        assert run(ledger_store.list_debts())[0].person_id == person.id

    def test_writes_are_scoped_to_the_household(self, document_store, ledger_store):
        run(ledger_store.insert_bill(Bill(title="Water", amount=Decimal("40"))))
        other = HouseholdLedgerStore(document_store, "house-2")

        assert run(other.list_bills()) == []
        assert len(run(document_store.query(f"households/{HOUSEHOLD_ID}/bills"))) == 1

    def test_malformed_documents_are_skipped(self, document_store, ledger_store):
        path = ledger_store.path("debts")
        run(document_store.create(path, {"amount": 10, "dueDate": "2024-01-01"}, doc_id="good"))
        run(document_store.create(path, {"amount": "lots", "dueDate": "2024-01-02"}, doc_id="bad"))

        assert [debt.id for debt in run(ledger_store.list_debts())] == ["good"]
        assert run(ledger_store.get_debt("bad")) is None

    def test_list_group_orders_by_installment_number(self, ledger_store):
        run(ledger_store.insert_installments([
            DebtInstallment(group_id="g", installment_number=2, installments_count=2, amount=Decimal("5")),
            DebtInstallment(group_id="g", installment_number=1, installments_count=2, amount=Decimal("5")),
            DebtInstallment(group_id="other", amount=Decimal("5")),
        ]))
        assert [item.installment_number for item in run(ledger_store.list_group("g"))] == [1, 2]

    def test_snapshot_reads_every_collection(self, ledger_store):
        run(ledger_store.save_person(Person(name="Ana")))
        run(ledger_store.insert_bill(Bill(title="Water", amount=Decimal("40"))))

        snapshot = run(ledger_store.snapshot())

        assert len(snapshot.people) == 1
        assert len(snapshot.bills) == 1
        assert snapshot.debts == []
        assert snapshot.categories == []

    def test_subscribe_delivers_full_snapshots(self, ledger_store):
        snapshots = []

        async def scenario():
            handle = await ledger_store.subscribe(snapshots.append)
            await ledger_store.save_person(Person(name="Ana"))
            await ledger_store.insert_bill(Bill(title="Water", amount=Decimal("40")))
            handle.unsubscribe()
            await ledger_store.insert_bill(Bill(title="Power", amount=Decimal("60")))

        run(scenario())

        # One initial snapshot once all collections loaded, then one per write
        assert len(snapshots) == 3
        assert snapshots[0].people == []
        assert [person.name for person in snapshots[1].people] == ["Ana"]
        assert [bill.title for bill in snapshots[2].bills] == ["Water"]
        assert [person.name for person in snapshots[2].people] == ["Ana"]


class TestFanOut:
    """Tests for fan_out."""

    def test_failures_do_not_stop_other_writes(self):
        async def ok():
            return None

        async def refused():
            raise PermissionDeniedError("missing or insufficient permissions")

        result = run(fan_out({"a": ok(), "b": refused(), "c": ok()}))

        assert result.succeeded == ["a", "c"]
        assert result.failed == {"b": "PermissionDeniedError: missing or insufficient permissions"}

    def test_empty(self):
        result = run(fan_out({}))
        assert result.attempted == 0


class TestHouseholdDirectory:
    """Tests for households and user profiles."""

    def test_create_household_selects_it(self, document_store):
        directory = HouseholdDirectory(document_store)

        household = run(directory.create_household("user-1", "  Casa  "))
        profile = run(directory.get_profile("user-1"))

        assert household.id
        assert household.name == "Casa"
        assert household.created_by == "user-1"
        assert profile.household_id == household.id

    def test_blank_name_gets_default(self, document_store):
        household = run(HouseholdDirectory(document_store).create_household("user-1", " "))
        assert household.name == "My household"

    def test_unknown_user_has_empty_profile(self, document_store):
        profile = run(HouseholdDirectory(document_store).get_profile("someone"))
        assert profile.id == "someone"
        assert profile.household_id is None

    def test_save_profile_keeps_household(self, document_store):
        directory = HouseholdDirectory(document_store)
        household = run(directory.create_household("user-1", "Casa"))

        profile = run(directory.save_profile("user-1", email="ana@example.com", display_name="Ana"))

        assert profile.email == "ana@example.com"
        assert run(directory.get_profile("user-1")).household_id == household.id

    def test_set_household_requires_existing_household(self, document_store):
        with pytest.raises(NotFoundError):
            run(HouseholdDirectory(document_store).set_household("user-1", "missing"))

    def test_get_household(self, document_store):
        directory = HouseholdDirectory(document_store)
        created = run(directory.create_household("user-1", "Casa"))

        household = run(directory.get_household(created.id))

        assert household.name == "Casa"
        assert household.created_by == "user-1"
        assert run(directory.get_household("missing")) is None

    def test_list_households(self, document_store):
        directory = HouseholdDirectory(document_store)
        run(directory.create_household("u1", "Beta"))
        run(directory.create_household("u2", "Alpha"))
        assert [item.name for item in run(directory.list_households())] == ["Alpha", "Beta"]
