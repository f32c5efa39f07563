"""Append-only ledger store backed by Supabase tables.

Tables used as ledgers have an identity primary key. PostgreSQL assigns
identity values atomically on insert, so the id returned by an insert is a
unique, monotonically increasing row position even under concurrent
appends. Nothing here reads-then-writes.
"""

import asyncio
import logging
from typing import Any, Protocol

from supabase import Client

from src.core.supabase import get_supabase_client

logger = logging.getLogger(__name__)


class LedgerStore(Protocol):
    """Append-only tabular store with atomic row assignment."""

    async def append_row(self, table: str, row: dict[str, Any]) -> int:
        """Append one row and return its assigned position."""
        ...

    async def append_rows(self, table: str, rows: list[dict[str, Any]]) -> int:
        """Append rows in order and return how many were written."""
        ...

    async def update_row(self, table: str, position: int, values: dict[str, Any]) -> None:
        """Update columns of a previously appended row."""
        ...


class LedgerError(Exception):
    """Raised when the ledger store rejects or fails an operation."""


class SupabaseLedgerStore:
    """LedgerStore implementation using Supabase (PostgREST) inserts.

    The Supabase client is synchronous; calls run in a worker thread so
    callers can bound them with asyncio timeouts.
    """

    def __init__(self, client: Client | None = None, position_column: str = "id") -> None:
        """Initialize the ledger store.

        Args:
            client: Optional Supabase client (defaults to the singleton).
            position_column: Identity column holding the row position.
        """
        self.client = client or get_supabase_client()
        self.position_column = position_column

    async def append_row(self, table: str, row: dict[str, Any]) -> int:
        response = await asyncio.to_thread(
            lambda: self.client.table(table).insert(row).execute()
        )
        if not response.data:
            raise LedgerError(f"Insert into {table} returned no row")
        position = response.data[0].get(self.position_column)
        if position is None:
            raise LedgerError(f"Insert into {table} returned no {self.position_column}")
        return int(position)

    async def append_rows(self, table: str, rows: list[dict[str, Any]]) -> int:
        if not rows:
            return 0
        response = await asyncio.to_thread(
            lambda: self.client.table(table).insert(rows).execute()
        )
        written = len(response.data) if response.data else 0
        if written != len(rows):
            logger.warning("Ledger %s acknowledged %d of %d rows", table, written, len(rows))
        return written

    async def update_row(self, table: str, position: int, values: dict[str, Any]) -> None:
        await asyncio.to_thread(
            lambda: self.client.table(table)
            .update(values)
            .eq(self.position_column, position)
            .execute()
        )
