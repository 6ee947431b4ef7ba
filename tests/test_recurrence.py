"""Tests for the recurring bill roller and the bill service."""

from datetime import date
from decimal import Decimal

import pytest

from conftest import run
from household_ledger.errors import LedgerValidationError
from household_ledger.ledger import BillService, RecurringBillRoller, successor_of
from household_ledger.models.ledger import Bill, BillInput, BillStatus
from household_ledger.validation import LedgerValidator


def recurring_bill(**overrides):
    values = dict(
        id="b-1",
        title="Internet",
        amount=Decimal("120"),
        due_date=date(2024, 1, 31),
        recurring=True,
        recurring_active=True,
        series_id="s-1",
        category_id="net",
        person_id="ana",
        status=BillStatus.PAID,
    )
    values.update(overrides)
    return Bill(**values)


class TestSuccessorOf:
    """Tests for the pure successor computation."""

    def test_successor_is_next_month_clone(self):
        successor = successor_of(recurring_bill())
        assert successor.due_date == date(2024, 2, 29)
        assert successor.title == "Internet"
        assert successor.amount == Decimal("120.00")
        assert successor.series_id == "s-1"
        assert successor.category_id == "net"
        assert successor.person_id == "ana"
        assert successor.status == BillStatus.OPEN
        assert successor.recurring_active is True
        assert successor.id == ""

    def test_no_successor_for_one_off_or_stopped_bills(self):
        assert successor_of(recurring_bill(recurring=False)) is None
        assert successor_of(recurring_bill(recurring_active=False)) is None
        assert successor_of(recurring_bill(series_id="")) is None

    def test_end_date_is_inclusive(self):
        assert successor_of(recurring_bill(recurring_end_date=date(2024, 2, 29))) is not None
        assert successor_of(recurring_bill(recurring_end_date=date(2024, 2, 28))) is None


class TestRecurringBillRoller:
    """Tests for roll_forward and stop_recurrence against the store."""

    def test_roll_forward_is_idempotent(self, ledger_store):
        bill = run(ledger_store.insert_bill(recurring_bill(id="")))
        roller = RecurringBillRoller(ledger_store)

        first = run(roller.roll_forward(bill))
        second = run(roller.roll_forward(bill))

        assert first is not None
        assert second is None
        series = run(ledger_store.list_series("s-1"))
        assert [item.due_date for item in series] == [date(2024, 1, 31), date(2024, 2, 29)]

    def test_roll_forward_stops_after_end_date(self, ledger_store):
        bill = run(ledger_store.insert_bill(
            recurring_bill(id="", due_date=date(2024, 3, 10), recurring_end_date=date(2024, 3, 31))
        ))

        assert run(RecurringBillRoller(ledger_store).roll_forward(bill)) is None
        assert len(run(ledger_store.list_bills())) == 1

    def test_roll_forward_ignores_one_off(self, ledger_store):
        bill = run(ledger_store.insert_bill(recurring_bill(id="", recurring=False)))
        assert run(RecurringBillRoller(ledger_store).roll_forward(bill)) is None

    def test_stop_recurrence_deactivates_every_occurrence(self, ledger_store):
        roller = RecurringBillRoller(ledger_store)
        bill = run(ledger_store.insert_bill(recurring_bill(id="")))
        successor = run(roller.roll_forward(bill))

        result = run(roller.stop_recurrence("s-1"))

        assert sorted(result.succeeded) == sorted([bill.id, successor.id])
        assert all(not item.recurring_active for item in run(ledger_store.list_series("s-1")))
        # A stopped series no longer rolls
        stopped = run(ledger_store.get_bill(successor.id))
        assert run(roller.roll_forward(stopped)) is None

    def test_stop_recurrence_without_series(self, ledger_store):
        result = run(RecurringBillRoller(ledger_store).stop_recurrence(""))
        assert result.attempted == 0


class TestBillService:
    """Tests for creating and editing bills."""

    def test_create_recurring_bill_starts_series(self, ledger_store, bill_input, settings):
        bill = run(BillService(ledger_store, LedgerValidator(settings)).create_bill(bill_input))
        assert bill.id
        assert bill.series_id
        assert bill.recurring_active is True
        assert bill.status == BillStatus.OPEN

    def test_create_one_off_bill(self, ledger_store, bill_input, settings):
        data = bill_input.model_copy(update={"recurring": False, "recurring_end_date": date(2024, 5, 1)})
        bill = run(BillService(ledger_store, LedgerValidator(settings)).create_bill(data))
        assert bill.series_id == ""
        assert bill.recurring_active is False
        assert bill.recurring_end_date is None

    def test_create_rejects_end_date_before_due_date(self, ledger_store, bill_input, settings):
        data = bill_input.model_copy(update={"recurring_end_date": date(2023, 12, 1)})
        with pytest.raises(LedgerValidationError):
            run(BillService(ledger_store, LedgerValidator(settings)).create_bill(data))

    def test_update_keeps_series_and_status(self, ledger_store, bill_input, settings):
        service = BillService(ledger_store, LedgerValidator(settings))
        bill = run(service.create_bill(bill_input))
        run(ledger_store.update_bill(bill.id, {"status": "paid"}))
        bill = run(ledger_store.get_bill(bill.id))

        updated = run(service.update_bill(bill, bill_input.model_copy(update={"amount": Decimal("130")})))

        stored = run(ledger_store.get_bill(bill.id))
        assert updated.series_id == bill.series_id
        assert stored.series_id == bill.series_id
        assert stored.amount == Decimal("130.00")
        assert stored.status == BillStatus.PAID

    def test_update_to_one_off_leaves_series(self, ledger_store, bill_input, settings):
        service = BillService(ledger_store, LedgerValidator(settings))
        bill = run(service.create_bill(bill_input))

        run(service.update_bill(bill, bill_input.model_copy(update={"recurring": False})))

        stored = run(ledger_store.get_bill(bill.id))
        assert stored.recurring is False
        assert stored.series_id == ""
        assert stored.recurring_active is False

    def test_delete_bill(self, ledger_store, bill_input, settings):
        service = BillService(ledger_store, LedgerValidator(settings))
        bill = run(service.create_bill(bill_input))
        assert run(service.delete_bill(bill.id)) is True
        assert run(ledger_store.list_bills()) == []


def test_bill_input_defaults_to_recurring():
    assert BillInput().recurring is True
