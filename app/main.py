"""
Streamlit Frontend for Household Ledger

This is the user interface household members use to keep track of who
owes what and which bills are due.

DESIGN PRINCIPLES:
1. Simple, clear interface
2. Every change goes through the LedgerSession (validated and audited)
3. Clear error messages in simple language
4. Visual feedback for all operations
5. Totals always come from a fresh snapshot

The identity provider is external: the sidebar only asks for the user id
it would hand us.
"""

import asyncio
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Optional

import streamlit as st

from household_ledger.config import get_settings, validate_all_settings
from household_ledger.models.ledger import BillInput, Category, DebtInput, Person
from household_ledger.models.reports import PeriodFilter
from household_ledger.orchestrator import (
    ActionResult,
    LedgerSession,
    create_app_components,
    open_session,
)
from household_ledger.periods import today_utc
from household_ledger.reports import (
    available_months,
    available_years,
    build_bills_report,
    build_debts_report,
    filter_bills,
    filter_debts,
    format_currency,
    format_date,
    format_month_label,
    person_label,
    person_rollup,
    recurrence_label,
    report_filename,
)


# Page configuration
st.set_page_config(
    page_title="Household Ledger",
    page_icon="💰",
    layout="wide",
    initial_sidebar_state="expanded",
)


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_components():
    """Get or create application components (cached)."""
    return create_app_components(get_settings())


def money(value) -> str:
    return format_currency(value)


def show_result(result: ActionResult) -> None:
    """Visual feedback for a session action."""
    if result.success:
        st.success(result.message)
    else:
        st.error(result.message)
    for warning in result.warnings:
        st.warning(warning)


def parse_amount(text: str) -> Optional[Decimal]:
    """Accept "1234,56" as well as "1234.56"."""
    cleaned = text.strip().replace(" ", "")
    if not cleaned:
        return None
    if "," in cleaned:
        cleaned = cleaned.replace(".", "").replace(",", ".")
    try:
        return Decimal(cleaned)
    except InvalidOperation:
        return None


def get_session(user_id: str) -> Optional[LedgerSession]:
    """The user's session on their household, created on first use."""
    store, directory, audit_logger = get_components()
    profile = run_async(directory.get_profile(user_id))
    if not profile.household_id:
        return None
    session = st.session_state.get("ledger_session")
    if session is None or session.household_id != profile.household_id:
        session = open_session(store, profile.household_id, audit_logger)
        st.session_state.ledger_session = session
    run_async(session.refresh())
    return session


def period_selector(session: LedgerSession, key: str) -> PeriodFilter:
    """Month/year/person filter shared by the list pages."""
    snapshot = session.snapshot
    col1, col2, col3 = st.columns(3)
    with col1:
        month = st.selectbox(
            "Month",
            options=[None] + available_months(snapshot),
            format_func=lambda x: "All months" if x is None else format_month_label(x),
            key=f"{key}_month",
        )
    with col2:
        year = st.selectbox(
            "Year",
            options=[None] + available_years(snapshot),
            format_func=lambda x: "All years" if x is None else x,
            key=f"{key}_year",
            disabled=month is not None,
        )
    with col3:
        person_id = st.selectbox(
            "Person",
            options=[None] + [person.id for person in snapshot.people],
            format_func=lambda x: "Everyone" if x is None else snapshot.person_name(x),
            key=f"{key}_person",
        )
    return PeriodFilter(month=month, year=None if month else year, person_id=person_id)


def render_household_setup(user_id: str) -> None:
    """First run: create a household or join an existing one."""
    _, directory, _ = get_components()
    st.title("🏠 Choose your household")

    with st.form("create_household"):
        name = st.text_input("New household name")
        if st.form_submit_button("Create household", type="primary"):
            household = run_async(directory.create_household(user_id, name))
            st.success(f"Household '{household.name}' created.")
            st.rerun()

    households = run_async(directory.list_households())
    if households:
        st.markdown("### Or join an existing household")
        chosen = st.selectbox(
            "Household",
            options=households,
            format_func=lambda household: household.name,
        )
        if st.button("Join"):
            run_async(directory.set_household(user_id, chosen.id))
            st.rerun()


def render_dashboard(session: LedgerSession) -> None:
    summary = session.summary
    st.title("📊 Dashboard")
    st.caption(f"Month: {format_month_label(summary.month)}")

    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Debts to receive", money(summary.debts.open))
    col2.metric("Debts received", money(summary.debts.paid))
    col3.metric("Bills open", money(summary.bills.open))
    col4.metric("Bills paid", money(summary.bills.paid))

    st.markdown("### This month")
    col1, col2 = st.columns(2)
    col1.metric(
        "Installments due",
        money(summary.month_debts.due),
        f"{money(summary.month_debts.outstanding)} outstanding",
        delta_color="off",
    )
    col2.metric(
        "Bills due",
        money(summary.month_bills.due),
        f"{money(summary.month_bills.outstanding)} outstanding",
        delta_color="off",
    )

    if summary.overdue_debts.open_count or summary.overdue_bills.open_count:
        st.warning(
            f"Overdue: {summary.overdue_debts.open_count} installment(s) "
            f"({money(summary.overdue_debts.open)}) and "
            f"{summary.overdue_bills.open_count} bill(s) ({money(summary.overdue_bills.open)})."
        )

    st.markdown(f"### Open per month in {summary.year}")
    st.bar_chart(
        {
            "Debts": [float(value) for value in summary.yearly_debts],
            "Bills": [float(value) for value in summary.yearly_bills],
        }
    )

    st.markdown("### Recurring bills projection")
    st.table(
        [
            {"Month": format_month_label(item.month), "Projected": money(item.total)}
            for item in summary.projection
        ]
    )


def render_debts_page(session: LedgerSession) -> None:
    st.title("💳 Debts")
    snapshot = session.snapshot

    with st.expander("➕ New debt"):
        with st.form("new_debt"):
            person_id = st.selectbox(
                "Who owes",
                options=[person.id for person in snapshot.people],
                format_func=snapshot.person_name,
            )
            description = st.text_input("Description")
            total = st.text_input("Total amount")
            count = st.number_input("Installments", min_value=1, value=1, step=1)
            purchase_date = st.date_input("Purchase date", value=today_utc())
            first_due = st.date_input("First due date", value=today_utc())
            if st.form_submit_button("Save debt", type="primary"):
                show_result(run_async(session.create_debt(DebtInput(
                    person_id=person_id or "",
                    description=description,
                    total_amount=parse_amount(total),
                    installments_count=int(count),
                    purchase_date=purchase_date,
                    first_due_date=first_due,
                ))))

    period = period_selector(session, "debts")
    debts = sorted(
        filter_debts(snapshot.debts, period),
        key=lambda debt: (debt.due_date or date.max, debt.installment_number),
    )

    st.markdown("### By person")
    st.table(
        [
            {
                "Person": snapshot.person_name(row.person_id),
                "Total": money(row.debts_total),
                "Open": money(row.debts_open),
                "Received": money(row.debts_paid),
            }
            for row in person_rollup(debts)
        ]
    )

    if debts and st.button("✅ Mark all as paid"):
        show_result(run_async(session.mark_all_paid(period)))
        st.rerun()

    for debt in debts:
        col1, col2, col3, col4 = st.columns([4, 2, 2, 2])
        col1.markdown(
            f"**{debt.description}** ({debt.label}) - {snapshot.person_name(debt.person_id)}  \n"
            f"Due {format_date(debt.due_date)} · {money(debt.amount)} · "
            f"paid {money(debt.paid_amount)} · {debt.status.value}"
        )
        if col2.button("Toggle paid", key=f"toggle_{debt.id}"):
            show_result(run_async(session.toggle_installment(debt)))
            st.rerun()
        if not debt.is_paid:
            value = col3.text_input("Partial", key=f"partial_{debt.id}", label_visibility="collapsed")
            if col3.button("Pay part", key=f"pay_{debt.id}"):
                show_result(run_async(session.record_partial_payment(debt, parse_amount(value))))
                st.rerun()
        if col4.button("Delete purchase", key=f"delete_{debt.id}"):
            show_result(run_async(session.delete_debt(debt.group_id)))
            st.rerun()


def render_bills_page(session: LedgerSession) -> None:
    st.title("🧾 Bills")
    snapshot = session.snapshot

    with st.expander("➕ New bill"):
        with st.form("new_bill"):
            title = st.text_input("Title")
            amount = st.text_input("Amount")
            due_date = st.date_input("Due date", value=today_utc())
            recurring = st.checkbox("Repeats every month", value=True)
            has_end = st.checkbox("Repeats until a date")
            end_date = st.date_input("Last due date", value=today_utc())
            category_id = st.selectbox(
                "Category",
                options=[None] + [category.id for category in snapshot.categories],
                format_func=lambda x: snapshot.category_name(x),
            )
            person_id = st.selectbox(
                "Person",
                options=[None] + [person.id for person in snapshot.people],
                format_func=lambda x: "-" if x is None else snapshot.person_name(x),
            )
            if st.form_submit_button("Save bill", type="primary"):
                show_result(run_async(session.create_bill(BillInput(
                    title=title,
                    amount=parse_amount(amount),
                    due_date=due_date,
                    recurring=recurring,
                    recurring_end_date=end_date if recurring and has_end else None,
                    category_id=category_id,
                    person_id=person_id,
                ))))

    period = period_selector(session, "bills")
    bills = sorted(
        filter_bills(snapshot.bills, period),
        key=lambda bill: (bill.due_date or date.max, bill.title),
    )
    if not bills:
        st.info("No bills for this selection.")

    for bill in bills:
        col1, col2, col3, col4 = st.columns([4, 2, 2, 2])
        col1.markdown(
            f"**{bill.title}** - {snapshot.category_name(bill.category_id)}  \n"
            f"Due {format_date(bill.due_date)} · {money(bill.amount)} · "
            f"{recurrence_label(bill)} · {bill.status.value}"
        )
        if col2.button("Toggle paid", key=f"bill_toggle_{bill.id}"):
            show_result(run_async(session.toggle_bill(bill)))
            st.rerun()
        if bill.recurring and bill.recurring_active:
            if col3.button("Stop repeating", key=f"bill_stop_{bill.id}"):
                show_result(run_async(session.stop_recurrence(bill)))
                st.rerun()
        if col4.button("Delete", key=f"bill_delete_{bill.id}"):
            show_result(run_async(session.delete_bill(bill)))
            st.rerun()


def render_people_page(session: LedgerSession) -> None:
    st.title("👥 People and categories")
    snapshot = session.snapshot

    col1, col2 = st.columns(2)
    with col1:
        st.markdown("### People")
        with st.form("new_person", clear_on_submit=True):
            name = st.text_input("Name")
            phone = st.text_input("Phone")
            if st.form_submit_button("Add person"):
                show_result(run_async(session.save_person(Person(name=name, phone=phone))))
        for person in snapshot.people:
            if st.button(f"🗑️ {person.name}", key=f"person_{person.id}"):
                show_result(run_async(session.delete_person(person.id)))
                st.rerun()

    with col2:
        st.markdown("### Categories")
        with st.form("new_category", clear_on_submit=True):
            name = st.text_input("Category name")
            if st.form_submit_button("Add category"):
                show_result(run_async(session.save_category(Category(name=name))))
        for category in snapshot.categories:
            if st.button(f"🗑️ {category.name}", key=f"category_{category.id}"):
                show_result(run_async(session.delete_category(category.id)))
                st.rerun()


def render_reports_page(session: LedgerSession) -> None:
    st.title("📄 Reports")
    snapshot = session.snapshot
    kind = st.radio("Report", ["debts", "bills"], horizontal=True, format_func=str.title)
    period = period_selector(session, "reports")
    detailed = st.checkbox("Detailed", value=True)

    if kind == "debts":
        document = build_debts_report(snapshot, period, detailed)
    else:
        document = build_bills_report(snapshot, period, detailed)

    st.caption(document.filter_summary)
    for section in document.sections:
        st.markdown(f"### {section.title}")
        st.table([dict(zip(section.header, row)) for row in section.rows])
    st.caption(f"File name: {report_filename(kind, person_label(snapshot, period))}")


def render_settings_page() -> None:
    """Render the settings page."""
    st.title("⚙️ Settings")
    st.markdown("### Connection Status")

    status = validate_all_settings()
    app_settings = get_settings().app
    st.markdown(f"**Storage backend:** {app_settings.storage_backend}")
    for name, key in [("Application settings", "app"), ("Google Sheets (Storage)", "google_sheets")]:
        if key not in status:
            continue
        if status[key]:
            st.success(f"✅ {name} - OK")
        else:
            st.error(f"❌ {name} - {status.get(f'{key}_error', 'Not configured')}")

    st.markdown("---")
    st.markdown(
        "To configure the application, create a `.env` file with "
        "`STORAGE_BACKEND=google_sheets`, `GOOGLE_SHEETS_CREDENTIALS_PATH` "
        "and `GOOGLE_SHEETS_SPREADSHEET_ID`."
    )


def main():
    """Main application entry point."""
    st.sidebar.title("💰 Household Ledger")
    user_id = st.sidebar.text_input("Your user id (email)")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["📊 Dashboard", "💳 Debts", "🧾 Bills", "👥 People", "📄 Reports", "⚙️ Settings"],
        index=0,
    )

    if page == "⚙️ Settings":
        render_settings_page()
        return

    if not user_id:
        st.info("Enter your user id in the sidebar to start.")
        return

    session = get_session(user_id.strip())
    if session is None:
        render_household_setup(user_id.strip())
        return

    _, directory, _ = get_components()
    household = run_async(directory.get_household(session.household_id))
    if household is not None:
        st.sidebar.caption(f"Household: {household.name}")

    # Route to appropriate page
    if page == "📊 Dashboard":
        render_dashboard(session)
    elif page == "💳 Debts":
        render_debts_page(session)
    elif page == "🧾 Bills":
        render_bills_page(session)
    elif page == "👥 People":
        render_people_page(session)
    elif page == "📄 Reports":
        render_reports_page(session)


if __name__ == "__main__":
    main()
