"""
Integration tests for LedgerSession.

Every action goes through the in-memory store and the household's audit
collection; no action is expected to raise.
"""

from datetime import date
from decimal import Decimal

import pytest

from conftest import HOUSEHOLD_ID, run
from household_ledger.models.ledger import BillInput, DebtInput, Person
from household_ledger.models.reports import PeriodFilter
from household_ledger.orchestrator import LedgerSession, open_session
from household_ledger.services import HouseholdLedgerStore
from household_ledger.services.storage.interface import PermissionDeniedError


class RefusingLedgerStore(HouseholdLedgerStore):
    """A household store whose rules refuse updates to some installments."""

    def __init__(self, store, household_id, refuse=None):
        super().__init__(store, household_id)
        self.refuse = set(refuse or [])
        self.refuse_all = refuse is None

    async def update_debt(self, debt_id, changes):
        if self.refuse_all or debt_id in self.refuse:
            raise PermissionDeniedError("Missing or insufficient permissions.")
        await super().update_debt(debt_id, changes)


@pytest.fixture
def session(document_store, settings):
    return open_session(document_store, HOUSEHOLD_ID, settings=settings)


def audit_types(document_store):
    documents = run(document_store.query(f"households/{HOUSEHOLD_ID}/audit"))
    return [document.data["event_type"] for document in documents]


class TestDebtActions:
    """Creating, amending and deleting debts."""

    def test_create_debt(self, session, document_store, debt_input):
        result = run(session.create_debt(debt_input))

        assert result.success
        assert result.message == "Debt saved in 3 installment(s)."
        assert len(result.payload) == 3
        assert audit_types(document_store) == ["debt_created"]

    def test_create_debt_with_warnings(self, session, debt_input):
        result = run(session.create_debt(
            debt_input.model_copy(update={"first_due_date": date(2024, 1, 1)})
        ))
        assert result.success
        assert result.warnings == ["First due date is before the purchase date"]

    def test_invalid_debt_is_rejected_before_any_write(self, session, document_store):
        result = run(session.create_debt(DebtInput(person_id="ana", description="Phone")))

        assert not result.success
        assert result.message == (
            "Total amount is required. Purchase date is required. First due date is required."
        )
        assert run(HouseholdLedgerStore(document_store, HOUSEHOLD_ID).list_debts()) == []
        assert audit_types(document_store) == ["validation_failed"]

    def test_amend_debt(self, session, debt_input):
        created = run(session.create_debt(debt_input)).payload
        form = session.edit_form_for(created[1])

        result = run(session.amend_debt(
            created[0].group_id,
            form.model_copy(update={"total_amount": Decimal("90")}),
        ))

        assert result.success
        assert result.message == "Debt updated."
        assert [item.amount for item in result.payload] == [Decimal("30.00")] * 3

    def test_delete_debt(self, session, debt_input):
        created = run(session.create_debt(debt_input)).payload

        result = run(session.delete_debt(created[0].group_id))

        assert result.success
        assert result.message == "Deleted 3 installments."

    def test_delete_installment_twice(self, session, debt_input):
        created = run(session.create_debt(debt_input)).payload

        assert run(session.delete_installment(created[0].id)).message == "Installment deleted."
        assert run(session.delete_installment(created[0].id)).message == "Installment was already deleted."


class TestPaymentActions:
    """Toggling, partial payments and bulk payment."""

    def test_live_snapshot_follows_writes(self, session, debt_input):
        seen = []
        session.add_listener(lambda snapshot, summary: seen.append(summary.debts.paid))

        async def scenario():
            await session.start()
            result = await session.create_debt(debt_input)
            await session.toggle_installment(result.payload[0])
            session.stop()

        run(scenario())

        assert seen[0] == Decimal("0")
        assert seen[-1] == Decimal("33.33")
        assert session.running is False

    def test_permission_denied_message_and_rollback(self, document_store, settings, debt_input):
        session = LedgerSession(RefusingLedgerStore(document_store, HOUSEHOLD_ID), settings=settings)
        created = run(session.create_debt(debt_input)).payload
        run(session.refresh())

        result = run(session.toggle_installment(created[0]))

        assert not result.success
        assert result.message == "You do not have permission to update this installment."
        assert not any(debt.is_paid for debt in session.snapshot.debts)

    def test_record_partial_payment(self, session, debt_input):
        created = run(session.create_debt(debt_input)).payload

        result = run(session.record_partial_payment(created[0], "10"))

        assert result.success
        assert result.message == "Payment recorded. Remaining: 23.33."

    def test_overpayment_is_rejected(self, session, debt_input):
        created = run(session.create_debt(debt_input)).payload
        run(session.refresh())

        result = run(session.record_partial_payment(created[0], "40"))

        assert not result.success
        assert result.message == "Payment cannot exceed the remaining 33.33."
        assert session.snapshot.debts[0].paid_amount == Decimal("0")

    def test_mark_all_paid(self, session, debt_input):
        run(session.create_debt(debt_input))
        run(session.refresh())

        first = run(session.mark_all_paid())
        run(session.refresh())
        second = run(session.mark_all_paid())

        assert first.message == "Updated 3 installments."
        assert second.message == "No installments to update."
        assert all(debt.is_paid for debt in session.snapshot.debts)

    def test_mark_all_paid_respects_period(self, session, debt_input):
        run(session.create_debt(debt_input))
        run(session.refresh())

        result = run(session.mark_all_paid(PeriodFilter(month="2024-02")))

        assert result.payload.attempted == 1
        run(session.refresh())
        assert [debt.is_paid for debt in session.snapshot.debts] == [False, True, False]

    def test_mark_all_paid_partial_failure(self, document_store, settings, debt_input):
        store = RefusingLedgerStore(document_store, HOUSEHOLD_ID, refuse=[])
        session = LedgerSession(store, settings=settings)
        created = run(session.create_debt(debt_input)).payload
        store.refuse.add(created[1].id)
        run(session.refresh())

        result = run(session.mark_all_paid())

        assert not result.success
        assert result.message == "Updated 2 of 3 installments."
        assert list(result.payload.failed) == [created[1].id]
        local = {debt.id: debt for debt in session.snapshot.debts}
        assert local[created[0].id].is_paid
        assert not local[created[1].id].is_paid

    def test_mark_all_paid_without_permission(self, document_store, settings, debt_input):
        session = LedgerSession(RefusingLedgerStore(document_store, HOUSEHOLD_ID), settings=settings)
        run(session.create_debt(debt_input))
        run(session.refresh())

        result = run(session.mark_all_paid())

        assert result.message == "You do not have permission to update the installments."


class TestBillActions:
    """Bills and recurring series."""

    def test_toggle_bill_rolls_forward(self, session, document_store, bill_input):
        bill = run(session.create_bill(bill_input)).payload

        result = run(session.toggle_bill(bill))

        assert result.success
        assert result.message == "Bill marked paid. Next occurrence due 2024-02-10."
        assert result.warnings == []
        assert audit_types(document_store).count("bill_rolled_forward") == 1
        run(session.refresh())
        assert len(session.snapshot.bills) == 2

    def test_stop_recurrence(self, session, bill_input):
        bill = run(session.create_bill(bill_input)).payload
        run(session.toggle_bill(bill))
        run(session.refresh())

        result = run(session.stop_recurrence(bill))

        assert result.message == "Updated 2 occurrences."
        run(session.refresh())
        assert not any(item.recurring_active for item in session.snapshot.bills)

    def test_stop_recurrence_on_one_off_bill(self, session, bill_input):
        bill = run(session.create_bill(bill_input.model_copy(update={"recurring": False}))).payload
        assert run(session.stop_recurrence(bill)).message == "This bill is not recurring."

    def test_invalid_bill(self, session):
        result = run(session.create_bill(BillInput(title="Water", amount=Decimal("10"))))
        assert not result.success
        assert result.message == "Due date is required."

    def test_update_and_delete_bill(self, session, bill_input):
        bill = run(session.create_bill(bill_input)).payload

        updated = run(session.update_bill(bill, bill_input.model_copy(update={"title": "Fiber"})))
        deleted = run(session.delete_bill(updated.payload))

        assert updated.payload.title == "Fiber"
        assert deleted.message == "Bill deleted."


class TestPeopleActions:
    """People and categories."""

    def test_person_needs_a_name(self, session):
        result = run(session.save_person(Person(name="")))
        assert not result.success
        assert result.message == "Name is required."

    def test_save_and_delete_person(self, session):
        saved = run(session.save_person(Person(name="Ana"))).payload
        assert run(session.delete_person(saved.id)).success
