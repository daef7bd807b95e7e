"""Table store port — abstract interface over the remote tabular store.

Core modules depend on this protocol, never on a specific backend. A table
is a named grid of rows; the first row is the header. Implementations raise
StoreUnavailable when a request fails.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Union

Cell = Union[str, int, float]
Row = list[Cell]


@dataclass
class AppendIfAbsentResult:
    """Outcome of a keyed append: either appended, or refused as duplicate."""

    success: bool
    duplicate: bool = False


class TableStorePort(Protocol):
    """Abstract tabular store used by the repository and metadata store."""

    async def create_table(self, name: str) -> None: ...

    async def get_rows(self, name: str) -> list[Row]:
        """All rows of the table, header included; [] if the table is missing."""
        ...

    async def append_rows(self, name: str, rows: list[Row]) -> None: ...

    async def append_rows_if_absent(
        self, name: str, rows: list[Row], key_column: int,
    ) -> AppendIfAbsentResult:
        """Append only if no existing row has the same key, in one request."""
        ...

    async def update_range(self, name: str, rows: list[Row], range_ref: str) -> None:
        """Overwrite ``range_ref`` (A1 notation without the table name)."""
        ...
