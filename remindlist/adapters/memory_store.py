"""In-memory adapter — implements TableStorePort without a network.

Used with STORE_PROVIDER=memory for local runs and as the backing store in
tests. Behaves like the Sheets adapter: reading a missing table gives [],
writing to one fails, and short rows are not padded.
"""

from __future__ import annotations

import copy
import logging

from remindlist.core.errors import StoreUnavailable
from remindlist.data.a1_notation import parse_range
from remindlist.data.row_codec import cell_text
from remindlist.ports.table_store_port import AppendIfAbsentResult, Row

logger = logging.getLogger(__name__)


class InMemoryTableStore:
    """Process-local implementation of TableStorePort."""

    def __init__(self) -> None:
        self.tables: dict[str, list[Row]] = {}

    def _table(self, name: str) -> list[Row]:
        try:
            return self.tables[name]
        except KeyError:
            raise StoreUnavailable(f"Table {name!r} does not exist") from None

    async def create_table(self, name: str) -> None:
        if name not in self.tables:
            self.tables[name] = []
            logger.debug("Table '%s' created", name)

    async def get_rows(self, name: str) -> list[Row]:
        return copy.deepcopy(self.tables.get(name, []))

    async def append_rows(self, name: str, rows: list[Row]) -> None:
        self._table(name).extend(list(row) for row in rows)

    async def append_rows_if_absent(
        self, name: str, rows: list[Row], key_column: int,
    ) -> AppendIfAbsentResult:
        table = self._table(name)
        keys = {cell_text(row[key_column]) for row in rows if key_column < len(row)}
        for row in table[1:]:
            if key_column < len(row) and cell_text(row[key_column]) in keys:
                return AppendIfAbsentResult(success=False, duplicate=True)
        table.extend(list(row) for row in rows)
        return AppendIfAbsentResult(success=True)

    async def update_range(self, name: str, rows: list[Row], range_ref: str) -> None:
        table = self._table(name)
        first_row, first_col, _, _ = parse_range(range_ref)
        for offset, values in enumerate(rows):
            index = first_row + offset
            while len(table) <= index:
                table.append([])
            target = table[index]
            end = first_col + len(values)
            if len(target) < end:
                target.extend([""] * (end - len(target)))
            target[first_col:end] = list(values)
