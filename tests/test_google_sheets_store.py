"""Tests for remindlist.adapters.google_sheets_store — Sheets API calls are mocked."""

import json
from unittest.mock import MagicMock

import pytest
from googleapiclient.errors import HttpError

from remindlist.adapters.google_sheets_store import GoogleSheetsStore
from remindlist.core.errors import StoreUnavailable

SPREADSHEET = "spreadsheet-1"
HEADER = ["channel_id", "message_id", "list_title"]


def _http_error(status: int, message: str) -> HttpError:
    content = json.dumps({"error": {"code": status, "message": message}}).encode()
    return HttpError(resp=MagicMock(status=status, reason="error"), content=content)


@pytest.fixture
def service():
    return MagicMock()


@pytest.fixture
def values(service):
    return service.spreadsheets.return_value.values.return_value


@pytest.fixture
def store(service):
    return GoogleSheetsStore(service, SPREADSHEET, max_retries=2)


class TestGetRows:
    @pytest.mark.asyncio
    async def test_returns_values(self, store, values):
        values.get.return_value.execute.return_value = {"values": [HEADER, ["c1", "m1"]]}

        rows = await store.get_rows("remind_metadata")

        assert rows == [HEADER, ["c1", "m1"]]
        values.get.assert_called_with(spreadsheetId=SPREADSHEET, range="'remind_metadata'")
        values.get.return_value.execute.assert_called_with(num_retries=2)

    @pytest.mark.asyncio
    async def test_empty_sheet(self, store, values):
        values.get.return_value.execute.return_value = {"range": "'t'!A1:Z1000"}
        assert await store.get_rows("t") == []

    @pytest.mark.asyncio
    async def test_missing_sheet_reads_as_empty(self, store, values):
        values.get.return_value.execute.side_effect = _http_error(400, "Unable to parse range: 't'")
        assert await store.get_rows("t") == []

    @pytest.mark.asyncio
    async def test_server_error_raises(self, store, values):
        values.get.return_value.execute.side_effect = _http_error(503, "Backend Error")
        with pytest.raises(StoreUnavailable):
            await store.get_rows("t")

    @pytest.mark.asyncio
    async def test_network_error_raises(self, store, values):
        values.get.return_value.execute.side_effect = ConnectionResetError("reset")
        with pytest.raises(StoreUnavailable):
            await store.get_rows("t")


class TestCreateTable:
    @pytest.mark.asyncio
    async def test_adds_sheet(self, store, service):
        batch = service.spreadsheets.return_value.batchUpdate
        batch.return_value.execute.return_value = {}

        await store.create_table("remind_list_1")

        body = batch.call_args.kwargs["body"]
        assert body["requests"][0]["addSheet"]["properties"]["title"] == "remind_list_1"

    @pytest.mark.asyncio
    async def test_existing_sheet_is_fine(self, store, service):
        batch = service.spreadsheets.return_value.batchUpdate
        batch.return_value.execute.side_effect = _http_error(
            400, 'Invalid requests[0].addSheet: A sheet with the name "t" already exists.',
        )
        await store.create_table("t")

    @pytest.mark.asyncio
    async def test_permission_error_raises(self, store, service):
        batch = service.spreadsheets.return_value.batchUpdate
        batch.return_value.execute.side_effect = _http_error(403, "The caller does not have permission")
        with pytest.raises(StoreUnavailable):
            await store.create_table("t")


class TestAppendIfAbsent:
    @pytest.mark.asyncio
    async def test_existing_key_is_duplicate(self, store, values):
        values.get.return_value.execute.return_value = {"values": [HEADER, ["c1", "m1", "Old"]]}

        result = await store.append_rows_if_absent("remind_metadata", [["c1", "", "New"]], key_column=0)

        assert result.duplicate is True
        assert result.success is False
        values.append.assert_not_called()

    @pytest.mark.asyncio
    async def test_appends_when_absent(self, store, values):
        values.get.return_value.execute.side_effect = [
            {"values": [HEADER]},
            {"values": [HEADER, ["c1", "", "New"]]},
        ]
        values.append.return_value.execute.return_value = {
            "updates": {"updatedRange": "'remind_metadata'!A2:C2"},
        }

        result = await store.append_rows_if_absent("remind_metadata", [["c1", "", "New"]], key_column=0)

        assert result.success is True
        assert result.duplicate is False
        kwargs = values.append.call_args.kwargs
        assert kwargs["range"] == "'remind_metadata'!A1"
        assert kwargs["valueInputOption"] == "RAW"
        assert kwargs["insertDataOption"] == "INSERT_ROWS"
        values.clear.assert_not_called()

    @pytest.mark.asyncio
    async def test_concurrent_writer_wins_and_our_row_is_cleared(self, store, values):
        values.get.return_value.execute.side_effect = [
            {"values": [HEADER]},
            {"values": [HEADER, ["c1", "", "Theirs"], ["c1", "", "Ours"]]},
        ]
        values.append.return_value.execute.return_value = {
            "updates": {"updatedRange": "'remind_metadata'!A3:C3"},
        }
        values.clear.return_value.execute.return_value = {}

        result = await store.append_rows_if_absent("remind_metadata", [["c1", "", "Ours"]], key_column=0)

        assert result.duplicate is True
        values.clear.assert_called_once()
        assert values.clear.call_args.kwargs["range"] == "'remind_metadata'!A3:C3"

    @pytest.mark.asyncio
    async def test_later_duplicate_keeps_our_row(self, store, values):
        values.get.return_value.execute.side_effect = [
            {"values": [HEADER]},
            {"values": [HEADER, ["c1", "", "Ours"], ["c1", "", "Theirs"]]},
        ]
        values.append.return_value.execute.return_value = {
            "updates": {"updatedRange": "'remind_metadata'!A2:C2"},
        }

        result = await store.append_rows_if_absent("remind_metadata", [["c1", "", "Ours"]], key_column=0)

        assert result.success is True
        values.clear.assert_not_called()


class TestUpdateRange:
    @pytest.mark.asyncio
    async def test_writes_raw_values(self, store, values):
        values.update.return_value.execute.return_value = {}

        await store.update_range("remind_list_1", [["a", "b"]], "A5:B5")

        kwargs = values.update.call_args.kwargs
        assert kwargs["range"] == "'remind_list_1'!A5:B5"
        assert kwargs["valueInputOption"] == "RAW"
        assert kwargs["body"] == {"values": [["a", "b"]]}

    @pytest.mark.asyncio
    async def test_quota_error_raises(self, store, values):
        values.update.return_value.execute.side_effect = _http_error(429, "Quota exceeded")
        with pytest.raises(StoreUnavailable):
            await store.update_range("t", [["a"]], "A2:A2")

    def test_sheet_names_with_quotes_are_escaped(self):
        from remindlist.adapters.google_sheets_store import _quote
        assert _quote("it's") == "'it''s'"
