"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets can back the document store because:
1. Household members can look at the data directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (a household ledger is small)
- No transactions (the ledger never needs them: last write wins)
- Limited query capabilities (we filter in Python)
- No change stream: subscribers are notified after writes made through
  this client, and on refresh() for changes made elsewhere

Every collection is a worksheet with one document per row:
[id, data_json, updated_at].
"""

import json
from datetime import datetime
from typing import Any, Optional, Sequence
from uuid import uuid4

import gspread
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from household_ledger.config import get_settings
from household_ledger.services.storage.interface import (
    DocumentStore,
    DuplicateError,
    FieldFilter,
    NotFoundError,
    PermissionDeniedError,
    SnapshotCallback,
    StorageError,
    StoredDocument,
    Subscription,
    TransientStoreError,
    apply_query,
)
from household_ledger.services.storage.subscriptions import SubscriptionHub


DOCUMENT_COLUMNS = [
    "id",
    "data_json",
    "updated_at",
]

TRANSIENT_RETRY = dict(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_exception_type(TransientStoreError),
    reraise=True,
)


def worksheet_title(collection: str) -> str:
    """Sheets titles cannot contain '/', so households/abc/debts -> households.abc.debts."""
    return collection.strip("/").replace("/", ".")[:100]


def translate_api_error(e: Exception, action: str) -> StorageError:
    """Map a gspread failure onto the storage error taxonomy."""
    code = getattr(e, "code", None)
    if code is None:
        response = getattr(e, "response", None)
        code = getattr(response, "status_code", None)
    if code in (401, 403) or "permission" in str(e).lower():
        return PermissionDeniedError(f"Permission denied while trying to {action}: {e}")
    return TransientStoreError(f"Failed to {action}: {e}")


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._worksheets: dict[str, gspread.Worksheet] = {}
        self._settings = get_settings().google_sheets

    @retry(**TRANSIENT_RETRY)
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise StorageError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise translate_api_error(e, "connect to Google Sheets")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise StorageError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(self, collection: str) -> gspread.Worksheet:
        """Get or create the worksheet holding a collection."""
        title = worksheet_title(collection)
        if title in self._worksheets:
            return self._worksheets[title]

        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=1000,
                cols=len(DOCUMENT_COLUMNS),
            )
            sheet.append_row(DOCUMENT_COLUMNS)
        self._worksheets[title] = sheet
        return sheet


class GoogleSheetsDocumentStore(DocumentStore):
    """
    Google Sheets implementation of the document store.

    Documents are stored as rows; the field mapping is JSON-serialized.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._hub = SubscriptionHub(self._load)

    def _document_to_row(self, doc_id: str, data: dict[str, Any]) -> list:
        return [
            doc_id,
            json.dumps(data, default=str),
            datetime.utcnow().isoformat(),
        ]

    def _row_to_document(self, row: list) -> StoredDocument:
        raw = row[1] if len(row) > 1 and row[1] else "{}"
        return StoredDocument(id=row[0], data=json.loads(raw))

    def _rows(self, collection: str) -> list[list]:
        sheet = self._client.get_worksheet(collection)
        # Skip header
        return sheet.get_all_values()[1:]

    def _find_row(self, collection: str, doc_id: str) -> Optional[tuple[int, list]]:
        for idx, row in enumerate(self._rows(collection), start=2):
            if row and row[0] == doc_id:
                return idx, row
        return None

    async def _load(self, collection: str) -> list[StoredDocument]:
        try:
            documents = []
            for row in self._rows(collection):
                if not row or not row[0]:  # Skip empty rows
                    continue
                try:
                    documents.append(self._row_to_document(row))
                except ValueError:
                    continue  # Skip malformed rows
            return documents
        except StorageError:
            raise
        except Exception as e:
            raise translate_api_error(e, f"read {collection}")

    async def create(
        self,
        collection: str,
        data: dict[str, Any],
        doc_id: Optional[str] = None,
    ) -> str:
        """
        Append a new document row.

        The id is fixed before the first attempt. A retried append that
        finds its own row already written counts as a success.
        """
        doc_id = doc_id or uuid4().hex
        if await self._document_exists(collection, doc_id):
            raise DuplicateError(f"Document already exists: {collection}/{doc_id}")
        await self._append_document(collection, doc_id, data)
        await self._hub.notify(collection)
        return doc_id

    @retry(**TRANSIENT_RETRY)
    async def _document_exists(self, collection: str, doc_id: str) -> bool:
        try:
            return self._find_row(collection, doc_id) is not None
        except StorageError:
            raise
        except Exception as e:
            raise translate_api_error(e, "read document")

    @retry(**TRANSIENT_RETRY)
    async def _append_document(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        try:
            # Already written by an attempt whose response was lost
            if self._find_row(collection, doc_id) is not None:
                return
            sheet = self._client.get_worksheet(collection)
            sheet.append_row(self._document_to_row(doc_id, data), value_input_option="RAW")
        except StorageError:
            raise
        except Exception as e:
            raise translate_api_error(e, "save document")

    async def update(
        self,
        collection: str,
        doc_id: str,
        changes: dict[str, Any],
    ) -> None:
        try:
            found = self._find_row(collection, doc_id)
            if found is None:
                raise NotFoundError(f"Document not found: {collection}/{doc_id}")
            idx, row = found
            data = self._row_to_document(row).data
            data.update(changes)
            self._write_row(collection, idx, doc_id, data)
        except StorageError:
            raise
        except Exception as e:
            raise translate_api_error(e, "update document")
        await self._hub.notify(collection)

    async def set(
        self,
        collection: str,
        doc_id: str,
        data: dict[str, Any],
        merge: bool = True,
    ) -> None:
        try:
            found = self._find_row(collection, doc_id)
            if found is None:
                sheet = self._client.get_worksheet(collection)
                sheet.append_row(self._document_to_row(doc_id, data), value_input_option="RAW")
            else:
                idx, row = found
                merged = self._row_to_document(row).data if merge else {}
                merged.update(data)
                self._write_row(collection, idx, doc_id, merged)
        except StorageError:
            raise
        except Exception as e:
            raise translate_api_error(e, "save document")
        await self._hub.notify(collection)

    def _write_row(self, collection: str, idx: int, doc_id: str, data: dict[str, Any]) -> None:
        sheet = self._client.get_worksheet(collection)
        for col_idx, value in enumerate(self._document_to_row(doc_id, data), start=1):
            sheet.update_cell(idx, col_idx, value)

    async def delete(self, collection: str, doc_id: str) -> bool:
        try:
            found = self._find_row(collection, doc_id)
            if found is None:
                return False
            sheet = self._client.get_worksheet(collection)
            sheet.delete_rows(found[0])
        except StorageError:
            raise
        except Exception as e:
            raise translate_api_error(e, "delete document")
        await self._hub.notify(collection)
        return True

    async def get(self, collection: str, doc_id: str) -> Optional[StoredDocument]:
        try:
            found = self._find_row(collection, doc_id)
        except StorageError:
            raise
        except Exception as e:
            raise translate_api_error(e, "read document")
        if found is None:
            return None
        return self._row_to_document(found[1])

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

    async def refresh(self, collection: str) -> None:
        """Re-read a collection and push it to subscribers (picks up outside edits)."""
        await self._hub.notify(collection)
