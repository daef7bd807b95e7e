"""Google Sheets adapter — implements TableStorePort on one spreadsheet.

Each table is a sheet (tab) of the spreadsheet. The googleapiclient library is
synchronous, so every request runs in a worker thread via asyncio.to_thread.
All Google-specific logic lives here; core modules depend on TableStorePort.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict

from googleapiclient.errors import HttpError

from remindlist.core.errors import StoreUnavailable
from remindlist.data.a1_notation import column_letter, parse_range
from remindlist.data.row_codec import cell_text
from remindlist.ports.table_store_port import AppendIfAbsentResult, Row

logger = logging.getLogger(__name__)


def _quote(name: str) -> str:
    """Sheet name as used in an A1 range: 'remind_list_123'."""
    return "'" + name.replace("'", "''") + "'"


def _status(exc: HttpError) -> int | None:
    return getattr(exc.resp, "status", None)


class GoogleSheetsStore:
    """Google Sheets implementation of TableStorePort."""

    def __init__(self, service, spreadsheet_id: str, *, max_retries: int = 3) -> None:
        self._service = service
        self._spreadsheet_id = spreadsheet_id
        self._max_retries = max_retries
        self._append_locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def _execute(self, request, action: str) -> dict:
        try:
            return await asyncio.to_thread(request.execute, num_retries=self._max_retries)
        except (HttpError, OSError) as exc:
            logger.error("Google Sheets API error during %s: %s", action, exc)
            raise StoreUnavailable(f"Failed to {action}: {exc}") from exc

    # ------------------------------------------------------------------
    # TableStorePort
    # ------------------------------------------------------------------

    async def create_table(self, name: str) -> None:
        request = self._service.spreadsheets().batchUpdate(
            spreadsheetId=self._spreadsheet_id,
            body={"requests": [{"addSheet": {"properties": {"title": name}}}]},
        )
        try:
            await asyncio.to_thread(request.execute, num_retries=self._max_retries)
        except HttpError as exc:
            if _status(exc) == 400 and "already exists" in str(exc):
                logger.debug("Sheet '%s' already exists", name)
                return
            logger.error("Failed to create sheet '%s': %s", name, exc)
            raise StoreUnavailable(f"Failed to create sheet {name}: {exc}") from exc
        except OSError as exc:
            logger.error("Failed to create sheet '%s': %s", name, exc)
            raise StoreUnavailable(f"Failed to create sheet {name}: {exc}") from exc
        logger.info("Sheet '%s' created", name)

    async def get_rows(self, name: str) -> list[Row]:
        request = self._service.spreadsheets().values().get(
            spreadsheetId=self._spreadsheet_id, range=_quote(name),
        )
        try:
            response = await asyncio.to_thread(request.execute, num_retries=self._max_retries)
        except HttpError as exc:
            if _status(exc) == 400 and "Unable to parse range" in str(exc):
                return []
            logger.error("Failed to read sheet '%s': %s", name, exc)
            raise StoreUnavailable(f"Failed to read sheet {name}: {exc}") from exc
        except OSError as exc:
            logger.error("Failed to read sheet '%s': %s", name, exc)
            raise StoreUnavailable(f"Failed to read sheet {name}: {exc}") from exc
        return response.get("values", [])

    async def append_rows(self, name: str, rows: list[Row]) -> None:
        await self._append(name, rows)

    async def append_rows_if_absent(
        self, name: str, rows: list[Row], key_column: int,
    ) -> AppendIfAbsentResult:
        """Append unless a row with the same key exists.

        Sheets has no conditional append, so this checks, appends, then
        re-reads: if another writer's row with the same key landed above ours,
        our rows are cleared and a duplicate is reported. Whichever row is
        first in the sheet wins.
        """
        keys = {cell_text(row[key_column]) for row in rows if key_column < len(row)}

        def has_key(row: Row) -> bool:
            return key_column < len(row) and cell_text(row[key_column]) in keys

        async with self._append_locks[name]:
            existing = await self.get_rows(name)
            if any(has_key(row) for row in existing[1:]):
                return AppendIfAbsentResult(success=False, duplicate=True)

            response = await self._append(name, rows)
            updated_range = response.get("updates", {}).get("updatedRange", "")
            if not updated_range:
                return AppendIfAbsentResult(success=True)

            first_row, _, last_row, last_col = parse_range(updated_range)
            after = await self.get_rows(name)
            if any(has_key(row) for row in after[1:first_row]):
                clear_ref = f"A{first_row + 1}:{column_letter(last_col)}{last_row + 1}"
                await self._execute(
                    self._service.spreadsheets().values().clear(
                        spreadsheetId=self._spreadsheet_id,
                        range=f"{_quote(name)}!{clear_ref}",
                        body={},
                    ),
                    f"clear duplicate rows in {name}",
                )
                logger.warning("Concurrent append of key %s to '%s' detected, rolled back", keys, name)
                return AppendIfAbsentResult(success=False, duplicate=True)

        return AppendIfAbsentResult(success=True)

    async def update_range(self, name: str, rows: list[Row], range_ref: str) -> None:
        request = self._service.spreadsheets().values().update(
            spreadsheetId=self._spreadsheet_id,
            range=f"{_quote(name)}!{range_ref}",
            valueInputOption="RAW",
            body={"values": rows},
        )
        await self._execute(request, f"update {name}!{range_ref}")

    async def _append(self, name: str, rows: list[Row]) -> dict:
        request = self._service.spreadsheets().values().append(
            spreadsheetId=self._spreadsheet_id,
            range=f"{_quote(name)}!A1",
            valueInputOption="RAW",
            insertDataOption="INSERT_ROWS",
            body={"values": rows},
        )
        return await self._execute(request, f"append to {name}")
