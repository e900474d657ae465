"""
Google Sheets Remote Implementation

DESIGN DECISION: Google Sheets is used as the production remote because:
1. Users can inspect their own ledger directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

Layout: one worksheet per entity kind, one record per row:

    id | user_id | updated_at | payload_json

The adapter is the id authority (it assigns a UUID on insert), so the
ledger store's temporary ids are always replaced by ids minted here.

TRADEOFFS:
- Not suitable for high-volume data (fine for one person's ledger)
- Filtering happens in Python after reading the whole sheet
- gspread is blocking, so every call runs in a worker thread
"""

import asyncio
import json
import threading
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import uuid4

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from fluxcash.config import GoogleSheetsSettings, get_settings
from fluxcash.models.ledger import EntityKind
from fluxcash.services.remote.interface import (
    Record,
    RecordNotFoundError,
    RemoteConnectionError,
    RemoteSyncAdapter,
    RemoteSyncError,
    SessionInvalidError,
)


SHEET_COLUMNS = ["id", "user_id", "updated_at", "payload_json"]

_AUTH_STATUSES = {401, 403}


def _status_of(error: Exception) -> Optional[int]:
    """HTTP status carried by a gspread APIError, if any."""
    response = getattr(error, "response", None)
    status = getattr(response, "status_code", None)
    if status is None:
        status = getattr(error, "code", None)
    return status if isinstance(status, int) else None


def _translate(error: Exception, action: str) -> RemoteSyncError:
    """Map backend exceptions onto the remote error taxonomy."""
    if isinstance(error, RemoteSyncError):
        return error
    status = _status_of(error)
    if status in _AUTH_STATUSES:
        return SessionInvalidError(f"Google Sheets rejected credentials during {action}: {error}")
    if status is not None and status >= 500:
        return RemoteConnectionError(f"Google Sheets unavailable during {action}: {error}")
    return RemoteSyncError(f"Failed to {action}: {error}")


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for connecting.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._worksheets: dict[str, gspread.Worksheet] = {}
        self._worksheet_lock = threading.Lock()
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(RemoteConnectionError),
        reraise=True,
    )
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
                raise SessionInvalidError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise RemoteConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(self._settings.spreadsheet_id)
            except gspread.SpreadsheetNotFound:
                raise RemoteConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(self, kind: EntityKind) -> gspread.Worksheet:
        """Get or create the worksheet of an entity kind."""
        title = f"{self._settings.worksheet_prefix}{kind.value}"
        with self._worksheet_lock:
            if title not in self._worksheets:
                spreadsheet = self.get_spreadsheet()
                try:
                    sheet = spreadsheet.worksheet(title)
                except gspread.WorksheetNotFound:
                    # Create the sheet with headers
                    sheet = spreadsheet.add_worksheet(
                        title=title,
                        rows=1000,
                        cols=len(SHEET_COLUMNS),
                    )
                    sheet.append_row(SHEET_COLUMNS)
                self._worksheets[title] = sheet
            return self._worksheets[title]


class GoogleSheetsRemoteAdapter(RemoteSyncAdapter):
    """
    Google Sheets implementation of the remote sync contract.

    Records are stored as JSON payloads so new entity fields need no
    column migrations.

    Writes locate rows by index, and a delete shifts every row below it,
    so each find-then-write sequence holds the adapter's write lock.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._write_lock = threading.Lock()

    @staticmethod
    def _record_to_row(record_id: str, user_id: str, payload: Record) -> list:
        body = {k: v for k, v in payload.items() if k not in ("id", "user_id")}
        return [
            record_id,
            user_id,
            datetime.now(timezone.utc).isoformat(),
            json.dumps(body, default=str),
        ]

    @staticmethod
    def _row_to_record(row: list) -> Record:
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        payload: dict[str, Any] = json.loads(safe_get(3) or "{}")
        payload["id"] = safe_get(0)
        payload["user_id"] = safe_get(1)
        return payload

    @staticmethod
    def _find_row(all_rows: list[list], record_id: str) -> Optional[int]:
        """1-based sheet row index of a record (row 1 is the header)."""
        for idx, row in enumerate(all_rows[1:], start=2):
            if row and row[0] == record_id:
                return idx
        return None

    # -------------------------------------------------------------------------
    # Blocking operations (run in a worker thread)
    # -------------------------------------------------------------------------

    def _insert_sync(self, kind: EntityKind, record: Record) -> Record:
        sheet = self._client.get_worksheet(kind)
        record_id = str(uuid4())
        user_id = str(record.get("user_id", ""))
        with self._write_lock:
            sheet.append_row(
                self._record_to_row(record_id, user_id, record),
                value_input_option="RAW",
            )
        return {**record, "id": record_id}

    def _update_sync(self, kind: EntityKind, record_id: str, patch: Record) -> None:
        sheet = self._client.get_worksheet(kind)
        with self._write_lock:
            all_rows = sheet.get_all_values()
            idx = self._find_row(all_rows, record_id)

            if idx is None:
                if kind != EntityKind.PROFILES:
                    raise RecordNotFoundError(f"{kind.value} record not found: {record_id}")
                # Profiles are upserted, keyed by user id
                sheet.append_row(
                    self._record_to_row(record_id, record_id, patch),
                    value_input_option="RAW",
                )
                return

            current = self._row_to_record(all_rows[idx - 1])
            current.update(patch)
            new_row = self._record_to_row(record_id, current["user_id"], current)
            for col_idx, value in enumerate(new_row, start=1):
                sheet.update_cell(idx, col_idx, value)

    def _delete_sync(self, kind: EntityKind, record_id: str) -> None:
        sheet = self._client.get_worksheet(kind)
        with self._write_lock:
            idx = self._find_row(sheet.get_all_values(), record_id)
            if idx is not None:
                sheet.delete_rows(idx)

    def _list_sync(self, kind: EntityKind, user_id: str, limit: Optional[int]) -> list[Record]:
        sheet = self._client.get_worksheet(kind)
        records = []
        for row in sheet.get_all_values()[1:]:
            if not row or not row[0] or len(row) < 2 or row[1] != user_id:
                continue
            try:
                records.append(self._row_to_record(row))
            except ValueError:
                continue  # Skip malformed rows

        if kind == EntityKind.TRANSACTIONS:
            records.sort(key=lambda r: r.get("date_iso") or "", reverse=True)
        return records[:limit] if limit is not None else records

    # -------------------------------------------------------------------------
    # RemoteSyncAdapter
    # -------------------------------------------------------------------------

    async def insert(self, kind: EntityKind, record: Record) -> Record:
        try:
            return await asyncio.to_thread(self._insert_sync, kind, record)
        except Exception as e:
            raise _translate(e, f"insert into {kind.value}")

    async def update(self, kind: EntityKind, record_id: str, patch: Record) -> None:
        try:
            await asyncio.to_thread(self._update_sync, kind, record_id, patch)
        except Exception as e:
            raise _translate(e, f"update {kind.value}")

    async def delete(self, kind: EntityKind, record_id: str) -> None:
        try:
            await asyncio.to_thread(self._delete_sync, kind, record_id)
        except Exception as e:
            raise _translate(e, f"delete from {kind.value}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(RemoteConnectionError),
        reraise=True,
    )
    async def list_by_user(
        self,
        kind: EntityKind,
        user_id: str,
        limit: Optional[int] = None,
    ) -> list[Record]:
        try:
            if kind == EntityKind.PROFILES:
                records = await asyncio.to_thread(self._list_sync, kind, user_id, None)
                return [r for r in records if r["id"] == user_id][:1]
            return await asyncio.to_thread(self._list_sync, kind, user_id, limit)
        except Exception as e:
            raise _translate(e, f"list {kind.value}")
