"""Unit tests for the fulfillment pipeline."""

import asyncio
from datetime import datetime
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.core.storage import ArchiveNamespace
from src.services.fulfillment_service import (
    STEP_ADMIN_NOTIFICATION,
    STEP_ARCHIVAL_UPLOAD,
    STEP_CUSTOMER_NOTIFICATION,
    STEP_DOCUMENT_GENERATION,
    STEP_LEDGER_WRITE,
    FulfillmentService,
    OrderRecordFailed,
    build_ledger_rows,
)

PDF_BYTES = b"%PDF-1.7 test invoice"
INVOICE_FILENAME = "Invoice_CVL-PROD-PHENOMS-20250126-000042_Smith_2025-01-26_14-03-22-123_PROD.pdf"


@pytest.fixture
def ledger() -> MagicMock:
    mock = MagicMock()
    mock.append_rows = AsyncMock(return_value=2)
    return mock


@pytest.fixture
def archive() -> MagicMock:
    mock = MagicMock()
    mock.ensure_namespace = AsyncMock(return_value=ArchiveNamespace(bucket="invoices", prefix="PROD"))
    mock.upload = AsyncMock(return_value=f"PROD/{INVOICE_FILENAME}")
    return mock


@pytest.fixture
def email_service() -> MagicMock:
    mock = MagicMock()
    mock.send = AsyncMock(return_value={"success": True, "email_id": "email_123"})
    return mock


@pytest.fixture
def renderer() -> MagicMock:
    return MagicMock(return_value=PDF_BYTES)


@pytest.fixture
def make_service(
    ledger: MagicMock,
    archive: MagicMock,
    email_service: MagicMock,
    renderer: MagicMock,
    make_settings: Any,
    fixed_now: datetime,
) -> Any:
    def _make(**settings_overrides: Any) -> FulfillmentService:
        return FulfillmentService(
            ledger=ledger,
            archive=archive,
            email_service=email_service,
            renderer=renderer,
            settings=make_settings(deployment_env="production", **settings_overrides),
            now=lambda: fixed_now,
        )

    return _make


def _sent_to(email_service: MagicMock) -> list[str]:
    return [call.kwargs["to"] for call in email_service.send.call_args_list]


class TestBuildLedgerRows:
    """Tests for build_ledger_rows."""

    def test_one_row_per_unit(self, order: Any) -> None:
        rows = build_ledger_rows(order, INVOICE_FILENAME)

        assert len(rows) == 2
        assert all(row["quantity"] == 1 for row in rows)
        assert rows[0] == rows[1]
        assert rows[0] is not rows[1]

    def test_row_contents(self, order: Any) -> None:
        row = build_ledger_rows(order, INVOICE_FILENAME)[0]

        assert row["order_number"] == "CVL-PROD-PHENOMS-20250126-000042"
        assert row["environment"] == "PROD"
        assert row["store"] == "phenoms"
        assert row["email"] == "jane.smith@example.com"
        assert row["item_price"] == 15.0
        assert row["design_options"] == "Front Logo"
        assert row["design_options_total"] == 5.0
        assert row["customization_details"] == "Name and Number (Name: SMITH, Number: 12)"
        assert row["customization_options_total"] == 3.0
        assert row["item_total"] == 23.0
        assert row["order_total"] == 46.0
        assert row["invoice_filename"] == INVOICE_FILENAME


class TestFulfill:
    """Tests for FulfillmentService.fulfill."""

    @pytest.mark.asyncio
    async def test_runs_every_step(
        self,
        make_service: Any,
        order: Any,
        store_config: Any,
        ledger: MagicMock,
        archive: MagicMock,
        email_service: MagicMock,
    ) -> None:
        report = await make_service().fulfill(order, store_config)

        assert report.failed_steps == []
        assert report.skipped_steps == []
        assert report.document_generated is True
        assert report.invoice_filename == INVOICE_FILENAME
        assert report.archived_file_id == f"PROD/{INVOICE_FILENAME}"
        assert set(report.timings_ms) == {
            STEP_LEDGER_WRITE,
            STEP_DOCUMENT_GENERATION,
            STEP_ARCHIVAL_UPLOAD,
            STEP_CUSTOMER_NOTIFICATION,
            STEP_ADMIN_NOTIFICATION,
        }

        table, rows = ledger.append_rows.call_args.args
        assert table == "order_ledger"
        assert len(rows) == 2
        archive.ensure_namespace.assert_awaited_once_with("invoices/PROD")
        assert _sent_to(email_service) == ["jane.smith@example.com", "admin@example.com"]

        customer_call = email_service.send.call_args_list[0]
        attachment = customer_call.kwargs["attachments"][0]
        assert attachment.filename == INVOICE_FILENAME
        assert attachment.content == PDF_BYTES

    @pytest.mark.asyncio
    async def test_document_failure_still_emails_customer(
        self,
        make_service: Any,
        order: Any,
        store_config: Any,
        renderer: MagicMock,
        archive: MagicMock,
        email_service: MagicMock,
    ) -> None:
        renderer.side_effect = RuntimeError("font missing")

        report = await make_service().fulfill(order, store_config)

        assert report.failed_steps == [STEP_DOCUMENT_GENERATION]
        assert report.document_generated is False
        assert STEP_ARCHIVAL_UPLOAD in report.skipped_steps
        archive.upload.assert_not_called()
        customer_call = email_service.send.call_args_list[0]
        assert customer_call.kwargs["to"] == "jane.smith@example.com"
        assert customer_call.kwargs["attachments"] is None

    @pytest.mark.asyncio
    async def test_archive_failure_is_isolated(
        self,
        make_service: Any,
        order: Any,
        store_config: Any,
        archive: MagicMock,
        email_service: MagicMock,
    ) -> None:
        archive.upload.side_effect = RuntimeError("bucket quota exceeded")

        report = await make_service().fulfill(order, store_config)

        assert report.failed_steps == [STEP_ARCHIVAL_UPLOAD]
        assert report.archived_file_id is None
        assert email_service.send.await_count == 2

    @pytest.mark.asyncio
    async def test_email_delivery_failure_is_recorded(
        self,
        make_service: Any,
        order: Any,
        store_config: Any,
        email_service: MagicMock,
    ) -> None:
        email_service.send.return_value = {"success": False, "error": "domain not verified"}

        report = await make_service().fulfill(order, store_config)

        assert report.failed_steps == [STEP_CUSTOMER_NOTIFICATION, STEP_ADMIN_NOTIFICATION]

    @pytest.mark.asyncio
    async def test_ledger_failure_raises(
        self,
        make_service: Any,
        order: Any,
        store_config: Any,
        ledger: MagicMock,
        email_service: MagicMock,
    ) -> None:
        ledger.append_rows.side_effect = ConnectionError("ledger unreachable")

        with pytest.raises(OrderRecordFailed) as exc_info:
            await make_service().fulfill(order, store_config)

        assert exc_info.value.order_number == order.order_number
        email_service.send.assert_not_called()

    @pytest.mark.asyncio
    async def test_ledger_timeout_is_optimistic(
        self,
        make_service: Any,
        order: Any,
        store_config: Any,
        ledger: MagicMock,
        email_service: MagicMock,
    ) -> None:
        async def slow_append(table: str, rows: list[dict[str, Any]]) -> int:
            await asyncio.sleep(1)
            return len(rows)

        ledger.append_rows = slow_append

        report = await make_service(ledger_timeout_seconds=0.01).fulfill(order, store_config)

        assert report.failed_steps == []
        assert email_service.send.await_count == 2

    @pytest.mark.asyncio
    async def test_admin_step_skipped_without_address(
        self,
        make_service: Any,
        order: Any,
        store_config: Any,
        email_service: MagicMock,
    ) -> None:
        config = store_config.model_copy(update={"admin_email": None})

        report = await make_service().fulfill(order, config)

        assert STEP_ADMIN_NOTIFICATION in report.skipped_steps
        assert report.failed_steps == []
        assert _sent_to(email_service) == ["jane.smith@example.com"]

    @pytest.mark.asyncio
    async def test_feature_flags_disable_steps(
        self,
        make_service: Any,
        order: Any,
        store_config: Any,
        ledger: MagicMock,
        renderer: MagicMock,
        email_service: MagicMock,
    ) -> None:
        service = make_service(
            enable_ledger_write=False,
            enable_invoice_generation=False,
            enable_admin_email=False,
        )

        report = await service.fulfill(order, store_config)

        ledger.append_rows.assert_not_called()
        renderer.assert_not_called()
        assert report.skipped_steps == [
            STEP_LEDGER_WRITE,
            STEP_DOCUMENT_GENERATION,
            STEP_ARCHIVAL_UPLOAD,
            STEP_ADMIN_NOTIFICATION,
        ]
        assert _sent_to(email_service) == ["jane.smith@example.com"]
