"""Unit tests for order number allocation."""

import asyncio
import re
from datetime import datetime
from typing import Any
from unittest.mock import AsyncMock

import pytest

from src.core.config import Environment
from src.services.order_number_service import (
    OrderNumberAllocator,
    get_short_order_number,
    store_segment,
)


class FakeLedger:
    """In-memory ledger assigning positions like an identity column."""

    def __init__(self, header_rows: int = 0) -> None:
        self.rows: list[dict[str, Any]] = [{} for _ in range(header_rows)]
        self.updates: list[tuple[int, dict[str, Any]]] = []

    async def append_row(self, table: str, row: dict[str, Any]) -> int:
        await asyncio.sleep(0)
        self.rows.append(dict(row))
        return len(self.rows)

    async def append_rows(self, table: str, rows: list[dict[str, Any]]) -> int:
        self.rows.extend(rows)
        return len(rows)

    async def update_row(self, table: str, position: int, values: dict[str, Any]) -> None:
        await asyncio.sleep(0)
        self.updates.append((position, values))
        self.rows[position - 1].update(values)


class TestHelpers:
    """Tests for order number helpers."""

    def test_short_order_number_is_last_segment(self) -> None:
        assert get_short_order_number("CVL-PROD-PHENOMS-20250126-000042") == "000042"

    def test_store_segment(self) -> None:
        assert store_segment("phenoms") == "PHENOMS"
        assert store_segment("north-side 2") == "NORTHSIDE2"
        assert store_segment(None) == "DEFAULT"
        assert store_segment("--") == "DEFAULT"


class TestAllocate:
    """Tests for OrderNumberAllocator.allocate."""

    @pytest.mark.asyncio
    async def test_format(self, make_settings: Any, fixed_now: datetime) -> None:
        ledger = FakeLedger()
        allocator = OrderNumberAllocator(
            ledger=ledger,
            settings=make_settings(deployment_env="production"),
            now=lambda: fixed_now,
        )

        allocated = await allocator.allocate("phenoms")

        assert re.fullmatch(r"CVL-PROD-PHENOMS-\d{8}-\d{6}", allocated.order_number)
        assert allocated.order_number == "CVL-PROD-PHENOMS-20250126-000001"
        assert allocated.short_order_number == "000001"
        assert allocated.degraded is False

    @pytest.mark.asyncio
    async def test_records_sequence_metadata(self, make_settings: Any, fixed_now: datetime) -> None:
        ledger = FakeLedger()
        allocator = OrderNumberAllocator(
            ledger=ledger,
            settings=make_settings(deployment_env="preview"),
            now=lambda: fixed_now,
        )

        await allocator.allocate("phenoms")

        assert ledger.rows[0]["environment"] == "PREVIEW"
        assert ledger.rows[0]["store"] == "PHENOMS"
        assert ledger.rows[0]["sequence_value"] == 1

    @pytest.mark.asyncio
    async def test_header_rows_are_subtracted(self, make_settings: Any, fixed_now: datetime) -> None:
        allocator = OrderNumberAllocator(
            ledger=FakeLedger(header_rows=1),
            settings=make_settings(deployment_env="production", sequence_header_rows=1),
            now=lambda: fixed_now,
        )

        allocated = await allocator.allocate("phenoms")

        assert allocated.sequence == 1

    @pytest.mark.asyncio
    async def test_concurrent_allocations_are_unique(self, make_settings: Any, fixed_now: datetime) -> None:
        allocator = OrderNumberAllocator(
            ledger=FakeLedger(),
            settings=make_settings(deployment_env="production"),
            now=lambda: fixed_now,
        )

        results = await asyncio.gather(*(allocator.allocate("phenoms") for _ in range(25)))

        numbers = [r.order_number for r in results]
        assert len(set(numbers)) == 25
        assert sorted(r.sequence for r in results) == list(range(1, 26))

    @pytest.mark.asyncio
    async def test_environments_share_one_sequence(self, make_settings: Any, fixed_now: datetime) -> None:
        ledger = FakeLedger()
        prod = OrderNumberAllocator(ledger, make_settings(deployment_env="production"), now=lambda: fixed_now)
        preview = OrderNumberAllocator(ledger, make_settings(deployment_env="preview"), now=lambda: fixed_now)

        first = await prod.allocate("phenoms")
        second = await preview.allocate("phenoms")

        assert first.short_order_number == "000001"
        assert second.order_number == "CVL-PREVIEW-PHENOMS-20250126-000002"

    @pytest.mark.asyncio
    async def test_update_failure_is_ignored(self, make_settings: Any, fixed_now: datetime) -> None:
        ledger = FakeLedger()
        ledger.update_row = AsyncMock(side_effect=RuntimeError("update failed"))  # type: ignore[method-assign]
        allocator = OrderNumberAllocator(
            ledger=ledger,
            settings=make_settings(deployment_env="production"),
            now=lambda: fixed_now,
        )

        allocated = await allocator.allocate("phenoms")

        assert allocated.sequence == 1
        assert allocated.degraded is False

    @pytest.mark.asyncio
    async def test_ledger_failure_falls_back_to_timestamp(self, make_settings: Any, fixed_now: datetime) -> None:
        ledger = FakeLedger()
        ledger.append_row = AsyncMock(side_effect=ConnectionError("ledger down"))  # type: ignore[method-assign]
        allocator = OrderNumberAllocator(
            ledger=ledger,
            settings=make_settings(deployment_env="production"),
            now=lambda: fixed_now,
        )

        allocated = await allocator.allocate("phenoms")

        expected = int(fixed_now.timestamp() * 1000) % 1_000_000
        assert allocated.degraded is True
        assert allocated.sequence == expected
        assert allocated.short_order_number == str(expected).zfill(6)
        assert re.fullmatch(r"CVL-PROD-PHENOMS-20250126-\d{6}", allocated.order_number)

    @pytest.mark.asyncio
    async def test_ledger_timeout_falls_back(self, make_settings: Any, fixed_now: datetime) -> None:
        async def slow_append(table: str, row: dict[str, Any]) -> int:
            await asyncio.sleep(1)
            return 1

        ledger = FakeLedger()
        ledger.append_row = slow_append  # type: ignore[method-assign]
        allocator = OrderNumberAllocator(
            ledger=ledger,
            settings=make_settings(deployment_env="production", ledger_timeout_seconds=0.01),
            now=lambda: fixed_now,
        )

        allocated = await allocator.allocate("phenoms")

        assert allocated.degraded is True

    @pytest.mark.asyncio
    async def test_local_environment_skips_ledger(self, make_settings: Any, fixed_now: datetime) -> None:
        ledger = FakeLedger()
        allocator = OrderNumberAllocator(
            ledger=ledger,
            settings=make_settings(app_env="development"),
            now=lambda: fixed_now,
        )

        allocated = await allocator.allocate(None)

        assert allocator.environment == Environment.LOCAL
        assert allocated.order_number.startswith("CVL-DEV-DEFAULT-20250126-")
        assert ledger.rows == []
