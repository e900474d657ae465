"""
Tests for the remote adapters

The Google Sheets adapter runs against an in-process fake worksheet;
no test talks to Google.
"""

import asyncio
import time
from concurrent.futures import ThreadPoolExecutor

import gspread
import pytest

from fluxcash.config import GoogleSheetsSettings
from fluxcash.models.ledger import EntityKind
from fluxcash.services.remote import (
    GoogleSheetsRemoteAdapter,
    InMemoryRemoteAdapter,
    RecordNotFoundError,
    RemoteSyncError,
    SessionInvalidError,
)
from fluxcash.services.remote.google_sheets import SHEET_COLUMNS, GoogleSheetsClient

TX = EntityKind.TRANSACTIONS


class FakeWorksheet:
    """Minimal stand-in for gspread.Worksheet."""

    def __init__(self):
        self.rows = [list(SHEET_COLUMNS)]

    def append_row(self, row, value_input_option=None):
        self.rows.append([str(v) for v in row])

    def get_all_values(self):
        return [list(r) for r in self.rows]

    def update_cell(self, row, col, value):
        self.rows[row - 1][col - 1] = str(value)

    def delete_rows(self, index):
        del self.rows[index - 1]


class FakeClient:

    def __init__(self):
        self.sheets = {}

    def get_worksheet(self, kind):
        return self.sheets.setdefault(kind, FakeWorksheet())


class FakeAPIError(Exception):

    def __init__(self, status_code):
        super().__init__(f"HTTP {status_code}")
        self.response = type("Response", (), {"status_code": status_code})()


class RejectingClient:

    def __init__(self, status_code):
        self.status_code = status_code

    def get_worksheet(self, kind):
        raise FakeAPIError(self.status_code)


def tx_record(title, day, user_id="user-1"):
    return {
        "user_id": user_id,
        "title": title,
        "amount": "-10",
        "type": "expense",
        "date_iso": f"2026-01-{day:02d}T10:00:00+00:00",
    }


class TestInMemoryRemote:
    """Tests for the in-memory adapter."""

    @pytest.mark.asyncio
    async def test_insert_assigns_id(self):
        """Test that the remote mints the id."""
        remote = InMemoryRemoteAdapter()
        stored = await remote.insert(TX, tx_record("Uber", 1))
        assert stored["id"]
        assert stored["title"] == "Uber"

    @pytest.mark.asyncio
    async def test_list_filters_and_sorts(self):
        """Test per-user listing, newest first, with a limit."""
        remote = InMemoryRemoteAdapter()
        await remote.insert(TX, tx_record("Old", 1))
        await remote.insert(TX, tx_record("New", 9))
        await remote.insert(TX, tx_record("Other", 5, user_id="user-2"))

        rows = await remote.list_by_user(TX, "user-1")
        assert [r["title"] for r in rows] == ["New", "Old"]
        assert len(await remote.list_by_user(TX, "user-1", limit=1)) == 1

    @pytest.mark.asyncio
    async def test_update_missing_record(self):
        """Test that updating an unknown id raises."""
        remote = InMemoryRemoteAdapter()
        with pytest.raises(RecordNotFoundError):
            await remote.update(TX, "nope", {"title": "X"})

    @pytest.mark.asyncio
    async def test_profile_update_is_upsert(self):
        """Test that profiles are created on first update."""
        remote = InMemoryRemoteAdapter()
        await remote.update(EntityKind.PROFILES, "user-1", {"xp": 20})
        rows = await remote.list_by_user(EntityKind.PROFILES, "user-1")
        assert rows[0]["xp"] == 20

    @pytest.mark.asyncio
    async def test_injected_failure(self):
        """Test failure injection and healing."""
        remote = InMemoryRemoteAdapter()
        remote.fail(TX, "insert")
        with pytest.raises(RemoteSyncError):
            await remote.insert(TX, tx_record("Uber", 1))
        remote.heal()
        await remote.insert(TX, tx_record("Uber", 1))

    @pytest.mark.asyncio
    async def test_invalid_session(self):
        """Test that every call fails once the session is invalid."""
        remote = InMemoryRemoteAdapter()
        remote.session_valid = False
        with pytest.raises(SessionInvalidError):
            await remote.list_by_user(TX, "user-1")


class TestGoogleSheetsRemote:
    """Tests for the Google Sheets adapter over a fake worksheet."""

    def setup_method(self):
        self.client = FakeClient()
        self.remote = GoogleSheetsRemoteAdapter(client=self.client)

    @pytest.mark.asyncio
    async def test_insert_appends_row(self):
        """Test that an insert writes id, owner and JSON payload."""
        stored = await self.remote.insert(TX, tx_record("Uber", 1))

        sheet = self.client.sheets[TX]
        assert len(sheet.rows) == 2
        row = sheet.rows[1]
        assert row[0] == stored["id"]
        assert row[1] == "user-1"
        assert '"title": "Uber"' in row[3]

    @pytest.mark.asyncio
    async def test_list_round_trip(self):
        """Test listing decodes payloads and filters by owner."""
        await self.remote.insert(TX, tx_record("Old", 1))
        await self.remote.insert(TX, tx_record("New", 9))
        await self.remote.insert(TX, tx_record("Other", 5, user_id="user-2"))

        rows = await self.remote.list_by_user(TX, "user-1")
        assert [r["title"] for r in rows] == ["New", "Old"]
        assert all(r["user_id"] == "user-1" for r in rows)

    @pytest.mark.asyncio
    async def test_update_merges_patch(self):
        """Test a partial update."""
        stored = await self.remote.insert(TX, tx_record("Uber", 1))
        await self.remote.update(TX, stored["id"], {"title": "Uber Black"})

        rows = await self.remote.list_by_user(TX, "user-1")
        assert rows[0]["title"] == "Uber Black"
        assert rows[0]["amount"] == "-10"

    @pytest.mark.asyncio
    async def test_update_missing_record(self):
        """Test that updating an unknown id raises RecordNotFoundError."""
        with pytest.raises(RecordNotFoundError):
            await self.remote.update(TX, "missing", {"title": "X"})

    @pytest.mark.asyncio
    async def test_profile_upsert(self):
        """Test that a profile row is keyed by the user id."""
        await self.remote.update(EntityKind.PROFILES, "user-1", {"xp": 30, "level": 1})
        await self.remote.update(EntityKind.PROFILES, "user-1", {"xp": 510, "level": 2})

        rows = await self.remote.list_by_user(EntityKind.PROFILES, "user-1")
        assert len(rows) == 1
        assert rows[0]["xp"] == 510

    @pytest.mark.asyncio
    async def test_delete(self):
        """Test row removal, and that deleting twice is harmless."""
        stored = await self.remote.insert(TX, tx_record("Uber", 1))
        await self.remote.delete(TX, stored["id"])
        await self.remote.delete(TX, stored["id"])
        assert await self.remote.list_by_user(TX, "user-1") == []

    @pytest.mark.asyncio
    async def test_auth_error_becomes_session_invalid(self):
        """Test that 401/403 responses void the session."""
        remote = GoogleSheetsRemoteAdapter(client=RejectingClient(401))
        with pytest.raises(SessionInvalidError):
            await remote.insert(TX, tx_record("Uber", 1))

    @pytest.mark.asyncio
    async def test_other_errors_become_sync_errors(self):
        """Test that client errors map to RemoteSyncError."""
        remote = GoogleSheetsRemoteAdapter(client=RejectingClient(400))
        with pytest.raises(RemoteSyncError) as exc_info:
            await remote.delete(TX, "some-id")
        assert not isinstance(exc_info.value, SessionInvalidError)


class SlowWorksheet(FakeWorksheet):
    """Fake worksheet whose cell writes leave room for other threads."""

    def update_cell(self, row, col, value):
        time.sleep(0.01)
        super().update_cell(row, col, value)


class TestGoogleSheetsConcurrency:
    """Tests for concurrent writes through worker threads."""

    @pytest.mark.asyncio
    async def test_delete_during_update_keeps_neighbours(self):
        """Test that a delete cannot shift the row an update is writing."""
        client = FakeClient()
        client.sheets[TX] = SlowWorksheet()
        remote = GoogleSheetsRemoteAdapter(client=client)
        ids = [(await remote.insert(TX, tx_record(title, 1)))["id"] for title in "ABC"]

        await asyncio.gather(
            remote.delete(TX, ids[0]),
            remote.update(TX, ids[1], {"title": "B-edited"}),
        )

        titles = {r["id"]: r["title"] for r in await remote.list_by_user(TX, "user-1")}
        assert titles == {ids[1]: "B-edited", ids[2]: "C"}

    def test_worksheet_created_once(self):
        """Test that concurrent first use creates a single worksheet."""

        class FakeSpreadsheet:
            def __init__(self):
                self.created = []

            def worksheet(self, title):
                time.sleep(0.01)
                raise gspread.WorksheetNotFound(title)

            def add_worksheet(self, title, rows, cols):
                self.created.append(title)
                return FakeWorksheet()

        spreadsheet = FakeSpreadsheet()
        client = GoogleSheetsClient(
            GoogleSheetsSettings(credentials_path="creds.json", spreadsheet_id="sheet-1")
        )
        client.get_spreadsheet = lambda: spreadsheet

        with ThreadPoolExecutor(max_workers=4) as pool:
            sheets = list(pool.map(lambda _: client.get_worksheet(TX), range(4)))

        assert spreadsheet.created == [TX.value]
        assert all(sheet is sheets[0] for sheet in sheets)
