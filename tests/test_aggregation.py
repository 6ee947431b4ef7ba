"""Tests for the aggregation engine."""

from datetime import date
from decimal import Decimal

from household_ledger.ledger import (
    apply_partial_payment,
    expand_installments,
    toggle_installment_state,
)
from household_ledger.models.ledger import Bill, BillStatus, DebtInstallment, LedgerSnapshot, Person
from household_ledger.models.reports import PeriodFilter
from household_ledger.reports import (
    available_months,
    available_years,
    dashboard_summary,
    filter_bills,
    filter_debts,
    ledger_totals,
    month_rollup,
    monthly_status,
    overdue,
    person_rollup,
    recurring_projection,
    yearly_series,
)


def phone_debt():
    """100 in 3 installments for Ana, due Jan/Feb/Mar 2024."""
    return expand_installments(
        person_id="ana",
        description="Phone",
        total_amount=Decimal("100"),
        installments_count=3,
        purchase_date=date(2024, 1, 10),
        first_due_date=date(2024, 1, 15),
        group_id="g-1",
    )


def bill(title, amount, due, **overrides):
    values = dict(
        id=title.lower(),
        title=title,
        amount=Decimal(amount),
        due_date=due,
        recurring=True,
        recurring_active=True,
        series_id=f"s-{title.lower()}",
    )
    values.update(overrides)
    return Bill(**values)


class TestTotals:
    """Tests for ledger_totals and person_rollup."""

    def test_person_open_total_after_first_installment_paid(self):
        debts = phone_debt()
        debts[0] = toggle_installment_state(debts[0])

        rows = person_rollup(debts)

        assert len(rows) == 1
        assert rows[0].person_id == "ana"
        assert rows[0].debts_open == Decimal("66.67")
        assert rows[0].debts_paid == Decimal("33.33")
        assert rows[0].debts_total == Decimal("100.00")

    def test_partial_payment_counts_in_person_paid(self):
        debts = phone_debt()
        debts[1] = apply_partial_payment(debts[1], Decimal("10.00"))

        row = person_rollup(debts)[0]

        assert row.debts_paid == Decimal("10.00")
        assert row.debts_open + row.debts_paid == row.debts_total

    def test_ledger_totals_split_open_and_paid(self):
        debts = phone_debt()
        debts[0] = toggle_installment_state(debts[0])
        debts[1] = apply_partial_payment(debts[1], Decimal("3.33"))

        totals = ledger_totals(debts)

        assert totals.paid == Decimal("33.33")
        assert totals.open == Decimal("30.00") + Decimal("33.34")
        assert totals.paid_count == 1
        assert totals.open_count == 2

    def test_person_rollup_sorts_by_volume_then_id(self):
        debts = [
            DebtInstallment(id="1", person_id="zoe", amount=Decimal("10"), due_date=date(2024, 1, 1)),
            DebtInstallment(id="2", person_id="ana", amount=Decimal("10"), due_date=date(2024, 1, 1)),
            DebtInstallment(id="3", person_id="bob", amount=Decimal("50"), due_date=date(2024, 1, 1)),
        ]
        assert [row.person_id for row in person_rollup(debts)] == ["bob", "ana", "zoe"]

    def test_person_rollup_includes_bills_with_person(self):
        bills = [
            bill("Water", "40", date(2024, 1, 5), person_id="ana"),
            bill("Power", "60", date(2024, 1, 5), person_id="ana", status=BillStatus.PAID),
            bill("Rent", "900", date(2024, 1, 5)),
        ]
        rows = person_rollup([], bills)

        assert len(rows) == 1
        assert rows[0].bills_open == Decimal("40.00")
        assert rows[0].bills_paid == Decimal("60.00")
        assert rows[0].bills_total == Decimal("100.00")
        assert rows[0].balance == Decimal("-40.00")


class TestFilters:
    """Tests for period filtering."""

    def test_month_wins_over_year(self):
        debts = phone_debt()
        selected = filter_debts(debts, PeriodFilter(month="2024-02", year="2023"))
        assert [item.installment_number for item in selected] == [2]

    def test_year_filter(self):
        debts = phone_debt()
        assert len(filter_debts(debts, PeriodFilter(year="2024"))) == 3
        assert filter_debts(debts, PeriodFilter(year="2025")) == []

    def test_no_filter_keeps_everything(self):
        assert len(filter_debts(phone_debt(), PeriodFilter())) == 3
        assert len(filter_debts(phone_debt())) == 3

    def test_person_filter_on_bills(self):
        bills = [
            bill("Water", "40", date(2024, 1, 5), person_id="ana"),
            bill("Rent", "900", date(2024, 1, 5)),
        ]
        assert [item.title for item in filter_bills(bills, PeriodFilter(person_id="ana"))] == ["Water"]


class TestRollups:
    """Tests for month rollups, overdue and yearly series."""

    def test_month_rollup_open_remaining(self):
        debts = phone_debt()
        debts[0] = toggle_installment_state(debts[0])

        rollup = month_rollup(debts)

        assert [(item.month, item.total) for item in rollup] == [
            ("2024-02", Decimal("33.33")),
            ("2024-03", Decimal("33.34")),
        ]

    def test_overdue_is_strictly_before_today(self):
        debts = phone_debt()
        late = overdue(debts, date(2024, 2, 15))
        assert [item.installment_number for item in late] == [1]

    def test_paid_items_are_never_overdue(self):
        debts = phone_debt()
        debts[0] = toggle_installment_state(debts[0])
        assert overdue(debts, date(2024, 2, 16)) == [debts[1]]

    def test_yearly_series(self):
        debts = phone_debt()
        series = yearly_series(debts, 2024)
        assert len(series) == 12
        assert series[:4] == [Decimal("33.33"), Decimal("33.33"), Decimal("33.34"), Decimal("0")]

    def test_monthly_status(self):
        bills = [
            bill("Water", "40", date(2024, 1, 5), status=BillStatus.PAID),
            bill("Power", "60", date(2024, 1, 20)),
            bill("Gas", "30", date(2024, 2, 1)),
        ]
        status = monthly_status(bills, "2024-01")
        assert status.due == Decimal("100.00")
        assert status.paid == Decimal("40.00")
        assert status.outstanding == Decimal("60.00")
        assert status.due_count == 2
        assert status.paid_count == 1


class TestProjection:
    """Tests for recurring_projection."""

    def test_projection_respects_end_date_month(self):
        bills = [
            bill("Internet", "100", date(2024, 1, 10)),
            bill("Gym", "50", date(2024, 1, 3), recurring_end_date=date(2024, 2, 3)),
        ]

        projection = recurring_projection(bills, date(2024, 1, 20), months=3)

        assert [(item.month, item.total) for item in projection] == [
            ("2024-01", Decimal("150.00")),
            ("2024-02", Decimal("150.00")),
            ("2024-03", Decimal("100.00")),
        ]

    def test_projection_uses_latest_occurrence_per_series(self):
        bills = [
            bill("Internet", "100", date(2024, 1, 10), id="a", series_id="s"),
            bill("Internet", "110", date(2024, 2, 10), id="b", series_id="s"),
        ]
        projection = recurring_projection(bills, date(2024, 3, 1), months=2)
        assert [item.total for item in projection] == [Decimal("110.00"), Decimal("110.00")]

    def test_projection_skips_stopped_and_one_off(self):
        bills = [
            bill("Internet", "100", date(2024, 1, 10), recurring_active=False),
            bill("Sofa", "800", date(2024, 1, 10), recurring=False),
        ]
        projection = recurring_projection(bills, date(2024, 1, 1))
        assert len(projection) == 6
        assert all(item.total == Decimal("0") for item in projection)


class TestDashboard:
    """Tests for dashboard_summary and the period pickers."""

    def test_dashboard_summary(self):
        debts = phone_debt()
        debts[0] = toggle_installment_state(debts[0])
        snapshot = LedgerSnapshot(
            people=[Person(id="ana", name="Ana")],
            debts=debts,
            bills=[bill("Internet", "100", date(2024, 2, 10))],
        )

        summary = dashboard_summary(snapshot, date(2024, 2, 20), projection_months=2)

        assert summary.month == "2024-02"
        assert summary.year == 2024
        assert summary.debts.open == Decimal("66.67")
        assert summary.debts.paid == Decimal("33.33")
        assert summary.month_debts.due == Decimal("33.33")
        assert summary.overdue_debts.open == Decimal("33.33")
        assert summary.overdue_bills.open == Decimal("100.00")
        assert summary.yearly_debts[1] == Decimal("33.33")
        assert [item.month for item in summary.projection] == ["2024-02", "2024-03"]

    def test_available_periods(self):
        snapshot = LedgerSnapshot(
            debts=phone_debt(),
            bills=[bill("Internet", "100", date(2023, 12, 10))],
        )
        assert available_months(snapshot) == ["2024-03", "2024-02", "2024-01", "2023-12"]
        assert available_years(snapshot) == ["2024", "2023"]
