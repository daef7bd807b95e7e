"""Table store factory — creates the right adapter based on config."""

from __future__ import annotations

from typing import TYPE_CHECKING

from remindlist.ports.table_store_port import TableStorePort

if TYPE_CHECKING:
    from remindlist.config import Settings


def create_table_store(settings: Settings) -> TableStorePort:
    """Return the store adapter matching the STORE_PROVIDER setting."""
    provider = settings.STORE_PROVIDER.lower()

    if provider == "sheets":
        from remindlist.adapters.google_sheets_store import GoogleSheetsStore
        from remindlist.integrations.google_auth import get_sheets_service

        service = get_sheets_service(settings.GOOGLE_SERVICE_ACCOUNT_FILE)
        return GoogleSheetsStore(
            service, settings.GOOGLE_SPREADSHEET_ID, max_retries=settings.STORE_MAX_RETRIES,
        )

    if provider == "memory":
        from remindlist.adapters.memory_store import InMemoryTableStore

        return InMemoryTableStore()

    raise ValueError(f"Unknown STORE_PROVIDER: {provider!r}")
