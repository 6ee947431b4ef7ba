"""
Shared fixtures.

Everything runs against the in-memory document store; no network.
Async code is driven with run(), the same way the Streamlit app does.
"""

import asyncio
from datetime import date
from decimal import Decimal

import pytest

from household_ledger.config import AppSettings
from household_ledger.models.ledger import BillInput, DebtInput
from household_ledger.services import HouseholdLedgerStore, InMemoryDocumentStore

HOUSEHOLD_ID = "house-1"


def run(coro):
    """Run a coroutine to completion."""
    return asyncio.run(coro)


@pytest.fixture
def settings():
    return AppSettings(_env_file=None)


@pytest.fixture
def document_store():
    return InMemoryDocumentStore()


@pytest.fixture
def ledger_store(document_store):
    return HouseholdLedgerStore(document_store, HOUSEHOLD_ID)


@pytest.fixture
def debt_input():
    return DebtInput(
        person_id="ana",
        description="Phone",
        total_amount=Decimal("100.00"),
        installments_count=3,
        purchase_date=date(2024, 1, 10),
        first_due_date=date(2024, 1, 15),
    )


@pytest.fixture
def bill_input():
    return BillInput(
        title="Internet",
        amount=Decimal("120.00"),
        due_date=date(2024, 1, 10),
        recurring=True,
        category_id="net",
        person_id="ana",
    )
