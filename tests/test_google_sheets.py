"""Tests for the Google Sheets document store against an in-process worksheet."""

import json

import pytest
from tenacity import wait_none

from conftest import run
from household_ledger.services.storage.google_sheets import (
    DOCUMENT_COLUMNS,
    GoogleSheetsDocumentStore,
    translate_api_error,
    worksheet_title,
)
from household_ledger.services.storage.interface import (
    DuplicateError,
    PermissionDeniedError,
    TransientStoreError,
)


class FakeWorksheet:
    """Keeps rows in memory; can drop the response of the next appends."""

    def __init__(self):
        self.rows = [list(DOCUMENT_COLUMNS)]
        self.lost_responses = 0
        self.append_calls = 0

    def get_all_values(self):
        return [list(row) for row in self.rows]

    def append_row(self, row, value_input_option=None):
        self.append_calls += 1
        self.rows.append(list(row))
        if self.lost_responses:
            self.lost_responses -= 1
            raise ConnectionError("Connection reset by peer")


class FakeClient:
    def __init__(self):
        self.sheets = {}

    def get_worksheet(self, collection):
        return self.sheets.setdefault(worksheet_title(collection), FakeWorksheet())


@pytest.fixture(autouse=True)
def no_retry_wait(monkeypatch):
    for method in (
        GoogleSheetsDocumentStore._append_document,
        GoogleSheetsDocumentStore._document_exists,
    ):
        monkeypatch.setattr(method.retry, "wait", wait_none())


@pytest.fixture
def client():
    return FakeClient()


@pytest.fixture
def sheets_store(client):
    return GoogleSheetsDocumentStore(client)


class TestGoogleSheetsCreate:
    """Tests for appending documents."""

    def test_create_appends_row(self, sheets_store, client):
        doc_id = run(sheets_store.create("households/h1/people", {"name": "Ana"}))

        sheet = client.sheets["households.h1.people"]
        assert sheet.rows[1][0] == doc_id
        assert json.loads(sheet.rows[1][1]) == {"name": "Ana"}
        assert run(sheets_store.get("households/h1/people", doc_id)).data == {"name": "Ana"}

    def test_retry_after_lost_response_writes_once(self, sheets_store, client):
        sheet = client.get_worksheet("things")
        sheet.lost_responses = 1

        doc_id = run(sheets_store.create("things", {"n": 1}, doc_id="x"))

        assert doc_id == "x"
        assert sheet.append_calls == 1
        assert [row[0] for row in sheet.rows[1:]] == ["x"]

    def test_generated_id_survives_retry(self, sheets_store, client):
        sheet = client.get_worksheet("things")
        sheet.lost_responses = 1

        doc_id = run(sheets_store.create("things", {"n": 1}))

        assert [row[0] for row in sheet.rows[1:]] == [doc_id]

    def test_existing_id_is_still_a_duplicate(self, sheets_store):
        run(sheets_store.create("things", {"n": 1}, doc_id="x"))
        with pytest.raises(DuplicateError):
            run(sheets_store.create("things", {"n": 2}, doc_id="x"))

    def test_gives_up_after_repeated_failures(self, sheets_store, client, monkeypatch):
        def always_fails(row, value_input_option=None):
            raise ConnectionError("Connection reset by peer")

        monkeypatch.setattr(client.get_worksheet("things"), "append_row", always_fails)

        with pytest.raises(TransientStoreError):
            run(sheets_store.create("things", {"n": 1}, doc_id="x"))


class TestTranslateApiError:
    """Tests for mapping API failures onto storage errors."""

    def test_permission_errors(self):
        denied = Exception("Forbidden")
        denied.code = 403
        assert isinstance(translate_api_error(denied, "save document"), PermissionDeniedError)
        assert isinstance(
            translate_api_error(Exception("The caller does not have permission"), "read"),
            PermissionDeniedError,
        )

    def test_other_errors_are_transient(self):
        assert isinstance(translate_api_error(ConnectionError("reset"), "read"), TransientStoreError)
