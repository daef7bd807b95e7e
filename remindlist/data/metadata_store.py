"""
RemindList — Channel Metadata Store.

Single source of truth for per-channel configuration (list title, pinned
message, default category, log/notice threads), kept in one shared table.

Several chat interactions (and several bot processes) may initialise the same
channel at once, and the store has no unique constraint. Creation therefore
goes through one keyed append-if-absent request; when the store reports a
duplicate, the existing row is updated instead. Reads go through a short-lived
cache that is invalidated by every write made from this process.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import fields, replace
from datetime import datetime
from zoneinfo import ZoneInfo

from remindlist.core.errors import DuplicateError, NotFoundError, StoreUnavailable
from remindlist.core.results import (
    ErrorKind,
    MetadataResult,
    OperationResult,
    UpsertOutcome,
    UpsertResult,
)
from remindlist.core.schedule import DEFAULT_TIMEZONE
from remindlist.data.a1_notation import row_range
from remindlist.data.cache import ReadThroughCache
from remindlist.data.models import ChannelMetadata
from remindlist.data.row_codec import (
    METADATA_COLUMNS,
    cell_text,
    header_matches,
    header_names,
    metadata_from_row,
    metadata_to_row,
)
from remindlist.ports.table_store_port import Row, TableStorePort

logger = logging.getLogger(__name__)

METADATA_TABLE = "remind_metadata"

_UPDATABLE_FIELDS = frozenset(
    f.name for f in fields(ChannelMetadata)
) - {"channel_id", "last_sync_time"}


class MetadataStore:
    """Per-channel metadata with a read-through cache and dedup-on-create."""

    def __init__(
        self,
        store: TableStorePort,
        *,
        tz: ZoneInfo = DEFAULT_TIMEZONE,
        cache_ttl_seconds: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._tz = tz
        self._cache: ReadThroughCache[str, list[Row]] = ReadThroughCache(
            self._load_rows, cache_ttl_seconds, clock,
        )
        self._initialized = False
        self._init_lock = asyncio.Lock()

    async def _load_rows(self, name: str) -> list[Row]:
        return await self._store.get_rows(name)

    # ------------------------------------------------------------------
    # Table bootstrap / header self-healing
    # ------------------------------------------------------------------

    async def get_or_create_metadata_sheet(self) -> OperationResult:
        """Make sure the metadata table exists with the current header.

        Runs once per process; concurrent callers wait for the same run.
        """
        if self._initialized:
            return OperationResult.ok()

        async with self._init_lock:
            if self._initialized:
                return OperationResult.ok()
            result = await self._initialize_table()
            self._initialized = result.success
            return result

    async def _initialize_table(self) -> OperationResult:
        try:
            rows = await self._cache.get(METADATA_TABLE, force_refresh=True)
            if not rows:
                await self._store.create_table(METADATA_TABLE)
                await self._store.append_rows(METADATA_TABLE, [list(METADATA_COLUMNS)])
                self._cache.invalidate(METADATA_TABLE)
                logger.info("Metadata table '%s' created", METADATA_TABLE)
                return OperationResult.ok()

            header = rows[0]
            if header_matches(header, METADATA_COLUMNS):
                return OperationResult.ok()

            names = header_names(header)
            if not names or names[0] != METADATA_COLUMNS[0]:
                logger.error("Metadata table has an unrecognized first row: %s", names)
                return OperationResult.fail(
                    ErrorKind.VALIDATION,
                    "The metadata table has an unrecognized header row.",
                )

            # Rewrite only row 1; blank out any leftover trailing header cells.
            width = max(len(names), len(METADATA_COLUMNS))
            new_header = list(METADATA_COLUMNS) + [""] * (width - len(METADATA_COLUMNS))
            await self._store.update_range(METADATA_TABLE, [new_header], row_range(1, width))
            self._cache.invalidate(METADATA_TABLE)
            logger.info(
                "Metadata header repaired in place (%d -> %d columns)",
                len(names), len(METADATA_COLUMNS),
            )
            return OperationResult.ok()
        except StoreUnavailable as exc:
            logger.error("Failed to prepare metadata table: %s", exc)
            return OperationResult.fail(
                ErrorKind.STORE_UNAVAILABLE, f"Could not prepare the metadata table: {exc}",
            )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_channel_metadata(self, channel_id: str) -> MetadataResult:
        """Look up one channel's metadata through the cache."""
        ready = await self.get_or_create_metadata_sheet()
        if not ready.success:
            return MetadataResult(success=False, message=ready.message, error=ready.error)
        return await self._read(channel_id)

    async def _read(self, channel_id: str, *, force_refresh: bool = False) -> MetadataResult:
        try:
            rows = await self._cache.get(METADATA_TABLE, force_refresh=force_refresh)
            _, row = _locate(rows, channel_id)
        except StoreUnavailable as exc:
            logger.error("Metadata read failed for channel %s: %s", channel_id, exc)
            return MetadataResult(
                success=False,
                message=f"Could not read channel metadata: {exc}",
                error=ErrorKind.STORE_UNAVAILABLE,
            )
        except NotFoundError:
            return MetadataResult(
                success=False,
                message=f"No metadata for channel {channel_id}",
                error=ErrorKind.NOT_FOUND,
            )

        return MetadataResult(success=True, metadata=metadata_from_row(row, self._tz))

    async def list_channel_metadata(self) -> list[ChannelMetadata]:
        """All channels with a metadata row; [] when the table cannot be read."""
        ready = await self.get_or_create_metadata_sheet()
        if not ready.success:
            return []
        try:
            rows = await self._cache.get(METADATA_TABLE)
        except StoreUnavailable as exc:
            logger.error("Failed to list channel metadata: %s", exc)
            return []
        return [
            metadata_from_row(row, self._tz)
            for row in rows[1:]
            if row and cell_text(row[0])
        ]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create_channel_metadata(
        self,
        channel_id: str,
        now: datetime,
        *,
        update_existing: bool = True,
        **values: str | None,
    ) -> UpsertResult:
        """Create the channel's metadata row, or update it if one already exists.

        The append and the duplicate check happen in a single store request
        keyed on channel_id. A duplicate (e.g. a concurrent initialisation
        won the race) falls back to updating the existing row with ``values``.
        With ``update_existing=False`` the existing row is returned as read
        and nothing is written.

        Returns:
            UpsertResult tagged CREATED or UPDATED_EXISTING.
        """
        unknown = set(values) - _UPDATABLE_FIELDS
        if unknown:
            return UpsertResult(
                success=False,
                message=f"Unknown metadata fields: {sorted(unknown)}",
                error=ErrorKind.VALIDATION,
            )

        ready = await self.get_or_create_metadata_sheet()
        if not ready.success:
            return UpsertResult(success=False, message=ready.message, error=ready.error)

        metadata = replace(
            ChannelMetadata(channel_id=channel_id, message_id="", list_title="", last_sync_time=now),
            **values,
        )
        try:
            await self._append_new(metadata)
        except DuplicateError:
            if not update_existing:
                logger.info("Metadata for channel %s already exists, leaving it as is", channel_id)
                result = await self._read(channel_id, force_refresh=True)
                return UpsertResult(
                    success=result.success,
                    message=result.message,
                    error=result.error,
                    metadata=result.metadata,
                    outcome=UpsertOutcome.UPDATED_EXISTING if result.success else None,
                )
            logger.warning(
                "Metadata for channel %s already exists, updating the existing row", channel_id,
            )
            result = await self._update_row(channel_id, now, values, force_refresh=True)
            return UpsertResult(
                success=result.success,
                message=result.message,
                error=result.error,
                metadata=result.metadata,
                outcome=UpsertOutcome.UPDATED_EXISTING if result.success else None,
            )
        except StoreUnavailable as exc:
            logger.error("Failed to create metadata for channel %s: %s", channel_id, exc)
            return UpsertResult(
                success=False,
                message=f"Could not create channel metadata: {exc}",
                error=ErrorKind.STORE_UNAVAILABLE,
            )

        logger.info("Metadata created for channel %s", channel_id)
        return UpsertResult(success=True, metadata=metadata, outcome=UpsertOutcome.CREATED)

    async def update_channel_metadata(
        self, channel_id: str, now: datetime, **changes: str | None,
    ) -> MetadataResult:
        """Apply ``changes`` to an existing row; NOT_FOUND when there is none."""
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            return MetadataResult(
                success=False,
                message=f"Unknown metadata fields: {sorted(unknown)}",
                error=ErrorKind.VALIDATION,
            )

        ready = await self.get_or_create_metadata_sheet()
        if not ready.success:
            return MetadataResult(success=False, message=ready.message, error=ready.error)

        return await self._update_row(channel_id, now, changes)

    async def _append_new(self, metadata: ChannelMetadata) -> None:
        row = metadata_to_row(metadata, self._tz)
        result = await self._store.append_rows_if_absent(METADATA_TABLE, [row], key_column=0)
        if result.duplicate:
            raise DuplicateError(metadata.channel_id)
        if not result.success:
            raise StoreUnavailable(f"Append to {METADATA_TABLE} was rejected")
        self._cache.invalidate(METADATA_TABLE)

    async def _update_row(
        self,
        channel_id: str,
        now: datetime,
        changes: dict[str, str | None],
        *,
        force_refresh: bool = False,
    ) -> MetadataResult:
        """Read the current row, apply changes, write back that row only.

        Does not go through get_channel_metadata: one read, one write.
        """
        try:
            rows = await self._cache.get(METADATA_TABLE, force_refresh=force_refresh)
            index, row = _locate(rows, channel_id)
            updated = replace(metadata_from_row(row, self._tz), **changes, last_sync_time=now)
            await self._store.update_range(
                METADATA_TABLE,
                [metadata_to_row(updated, self._tz)],
                row_range(index + 1, len(METADATA_COLUMNS)),
            )
        except NotFoundError:
            return MetadataResult(
                success=False,
                message=f"No metadata for channel {channel_id}",
                error=ErrorKind.NOT_FOUND,
            )
        except StoreUnavailable as exc:
            logger.error("Failed to update metadata for channel %s: %s", channel_id, exc)
            return MetadataResult(
                success=False,
                message=f"Could not update channel metadata: {exc}",
                error=ErrorKind.STORE_UNAVAILABLE,
            )

        self._cache.invalidate(METADATA_TABLE)
        logger.info("Metadata updated for channel %s (%s)", channel_id, ", ".join(sorted(changes)) or "sync")
        return MetadataResult(success=True, metadata=updated)


def _locate(rows: list[Row], channel_id: str) -> tuple[int, Row]:
    """Linear scan below the header; raises NotFoundError."""
    for index, row in enumerate(rows):
        if index == 0 or not row:
            continue
        if cell_text(row[0]) == channel_id:
            return index, row
    raise NotFoundError(channel_id)
