"""Ledger row type definitions for database operations."""

from typing import TypedDict


class OrderLedgerRow(TypedDict):
    """Order ledger table row.

    One row is written per ordered unit, so an item with quantity 3
    produces three rows each with quantity 1. Prices are per unit.
    """

    order_number: str
    order_date: str
    environment: str
    store: str
    email: str
    first_name: str
    last_name: str
    phone: str
    product_name: str
    size: str
    quantity: int
    item_price: float
    design_options: str
    design_options_total: float
    customization_options: str
    customization_details: str
    customization_options_total: float
    item_total: float
    order_total: float
    invoice_filename: str


class SequenceLedgerRow(TypedDict):
    """Order sequence table row.

    The identity column assigned on insert is the order sequence;
    sequence_value is filled in afterwards for readability.
    """

    created_at: str
    environment: str
    store: str
    sequence_value: int | None
