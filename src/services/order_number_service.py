"""Order number allocation.

Format: PREFIX-ENV-STORE-YYYYMMDD-SEQUENCE, e.g. CVL-PROD-PHENOMS-20250126-000042.
The sequence comes from one global ledger shared by every environment and
store; the environment is recorded as metadata only.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from src.core.config import Environment, Settings, get_settings
from src.core.ledger import LedgerError, LedgerStore, SupabaseLedgerStore
from src.models.order import SequenceLedgerRow

logger = logging.getLogger(__name__)

SEQUENCE_DIGITS = 6
FALLBACK_SEQUENCE_MODULUS = 1_000_000
DEFAULT_STORE_SEGMENT = "DEFAULT"

_NON_ALNUM = re.compile(r"[^A-Z0-9]")


@dataclass(frozen=True)
class AllocatedOrderNumber:
    """An order number and how it was obtained."""

    order_number: str
    short_order_number: str
    sequence: int
    degraded: bool = False


def get_short_order_number(full_order_number: str) -> str:
    """Return the customer-facing part of an order number (the sequence).

    Args:
        full_order_number: Full order number.

    Returns:
        str: Last '-' delimited segment, e.g. '000042'.
    """
    return full_order_number.rsplit("-", 1)[-1] or "0" * SEQUENCE_DIGITS


def store_segment(store_slug: str | None) -> str:
    """Upper-case a store slug for use inside an order number."""
    segment = _NON_ALNUM.sub("", (store_slug or "").upper())
    return segment or DEFAULT_STORE_SEGMENT


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderNumberAllocator:
    """Mints globally unique order numbers from an append-only ledger."""

    def __init__(
        self,
        ledger: LedgerStore | None = None,
        settings: Settings | None = None,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize the allocator.

        Args:
            ledger: Ledger store (defaults to Supabase).
            settings: Application settings (defaults to the cached singleton).
            now: Clock returning an aware datetime, injectable for tests.
        """
        self.settings = settings or get_settings()
        self.environment: Environment = self.settings.environment
        self._ledger = ledger
        self._now = now

    @property
    def ledger(self) -> LedgerStore:
        if self._ledger is None:
            self._ledger = SupabaseLedgerStore()
        return self._ledger

    async def allocate(self, store_slug: str | None) -> AllocatedOrderNumber:
        """Allocate the next order number.

        Never raises for ledger problems: an unreachable or slow ledger
        degrades to a timestamp-derived sequence.

        Args:
            store_slug: Store the order belongs to (optional).

        Returns:
            AllocatedOrderNumber: Full and short order number.
        """
        now = self._now()
        store = store_segment(store_slug)

        degraded = False
        if self.environment == Environment.LOCAL:
            sequence = self._fallback_sequence(now)
            logger.info("Local environment, using timestamp sequence %d", sequence)
        else:
            try:
                sequence = await self._next_sequence(now, store)
            except Exception as e:
                sequence = self._fallback_sequence(now)
                degraded = True
                logger.warning(
                    "Order sequence ledger unavailable, using timestamp sequence %d: %s",
                    sequence,
                    str(e) or type(e).__name__,
                    extra={"store": store, "environment": self.environment.value},
                )

        order_number = "-".join(
            [
                self.settings.order_number_prefix,
                self.environment.value,
                store,
                now.strftime("%Y%m%d"),
                str(sequence).zfill(SEQUENCE_DIGITS),
            ]
        )
        return AllocatedOrderNumber(
            order_number=order_number,
            short_order_number=get_short_order_number(order_number),
            sequence=sequence,
            degraded=degraded,
        )

    async def _next_sequence(self, now: datetime, store: str) -> int:
        """Append a placeholder row; its assigned position is the sequence."""
        table = self.settings.sequence_ledger_table
        placeholder: SequenceLedgerRow = {
            "created_at": now.isoformat(),
            "environment": self.environment.value,
            "store": store,
            "sequence_value": None,
        }
        position = await asyncio.wait_for(
            self.ledger.append_row(table, placeholder),
            timeout=self.settings.ledger_timeout_seconds,
        )
        sequence = position - self.settings.sequence_header_rows
        if sequence < 1:
            raise LedgerError(f"Ledger returned position {position} before the first sequence row")

        # The sequence is already fixed by the row position; the readable
        # value is a convenience for operators.
        try:
            await asyncio.wait_for(
                self.ledger.update_row(table, position, {"sequence_value": sequence}),
                timeout=self.settings.ledger_timeout_seconds,
            )
        except Exception as e:
            logger.warning("Could not record sequence value %d on ledger row: %s", sequence, str(e))

        return sequence

    @staticmethod
    def _fallback_sequence(now: datetime) -> int:
        return int(now.timestamp() * 1000) % FALLBACK_SEQUENCE_MODULUS
