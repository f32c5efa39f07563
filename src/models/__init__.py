"""Database model type definitions."""

from src.models.order import OrderLedgerRow, SequenceLedgerRow

__all__ = [
    "OrderLedgerRow",
    "SequenceLedgerRow",
]
