"""Unit tests for failure audit logging and escalation."""

import json
from datetime import datetime
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.services.audit_service import AuditLogger, EscalationService, summarize_order


def _raise(error: Exception) -> Exception:
    try:
        raise error
    except Exception as e:
        return e


class TestSummarizeOrder:
    """Tests for summarize_order."""

    def test_summarizes_model(self, order: Any) -> None:
        summary = summarize_order(order)

        assert summary == {
            "orderNumber": "CVL-PROD-PHENOMS-20250126-000042",
            "contactInfo": {
                "email": "jane.smith@example.com",
                "firstName": "Jane",
                "lastName": "Smith",
                "phone": "(555) 123-4567",
            },
            "itemCount": 1,
            "totalAmount": 46.0,
            "storeSlug": "phenoms",
        }

    def test_summarizes_raw_payload(self, order_payload: dict[str, Any]) -> None:
        summary = summarize_order(order_payload)

        assert summary is not None
        assert summary["itemCount"] == 1
        assert summary["orderNumber"] is None

    def test_non_mapping_data(self) -> None:
        assert summarize_order("garbage") is None
        assert summarize_order(None) is None


class TestAuditLogger:
    """Tests for AuditLogger.record."""

    def test_returns_structured_record(self, make_settings: Any, order: Any, fixed_now: datetime) -> None:
        audit = AuditLogger(make_settings(deployment_env="production"), now=lambda: fixed_now)

        record = audit.record("order_fulfillment", _raise(RuntimeError("ledger down")), order)

        assert record is not None
        assert record["context"] == "order_fulfillment"
        assert record["environment"] == "PROD"
        assert record["error"]["type"] == "RuntimeError"
        assert record["error"]["message"] == "ledger down"
        assert "Traceback" in record["error"]["traceback"]
        assert record["order"]["totalAmount"] == 46.0

    def test_writes_daily_jsonl_file(
        self, make_settings: Any, order: Any, fixed_now: datetime, tmp_path: Path
    ) -> None:
        audit = AuditLogger(make_settings(error_log_dir=str(tmp_path / "logs")), now=lambda: fixed_now)

        audit.record("order_submission", ValueError("first"), order)
        audit.record("order_submission", ValueError("second"), order)

        log_file = tmp_path / "logs" / "errors-2025-01-26.jsonl"
        lines = log_file.read_text().splitlines()
        assert [json.loads(line)["error"]["message"] for line in lines] == ["first", "second"]

    def test_never_raises(self, make_settings: Any, fixed_now: datetime, tmp_path: Path) -> None:
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("")
        audit = AuditLogger(make_settings(error_log_dir=str(blocker)), now=lambda: fixed_now)

        record = audit.record("order_submission", ValueError("boom"), object())

        assert record is not None
        assert record["order"] is None

    def test_broken_clock_does_not_raise(self, make_settings: Any) -> None:
        audit = AuditLogger(make_settings(), now=MagicMock(side_effect=RuntimeError("clock")))

        assert audit.record("order_submission", ValueError("boom")) is None


class TestEscalationService:
    """Tests for EscalationService.escalate."""

    @pytest.fixture
    def email_service(self) -> MagicMock:
        mock = MagicMock()
        mock.send = AsyncMock(return_value={"success": True, "email_id": "email_1"})
        return mock

    @pytest.mark.asyncio
    async def test_prefers_store_tech_support_address(
        self, make_settings: Any, email_service: MagicMock, order: Any, store_config: Any
    ) -> None:
        service = EscalationService(email_service, make_settings(tech_support_email="fallback@example.com"))

        sent = await service.escalate(_raise(RuntimeError("ledger down")), order, store_config)

        assert sent is True
        kwargs = email_service.send.call_args.kwargs
        assert kwargs["to"] == "tech@example.com"
        assert "URGENT" in kwargs["subject"]
        assert "CVL-PROD-PHENOMS-20250126-000042" in kwargs["text"]

    @pytest.mark.asyncio
    async def test_falls_back_to_settings_address(
        self, make_settings: Any, email_service: MagicMock, order_payload: dict[str, Any]
    ) -> None:
        service = EscalationService(email_service, make_settings(tech_support_email="fallback@example.com"))

        sent = await service.escalate(ValueError("catalog down"), order_payload, None)

        assert sent is True
        assert email_service.send.call_args.kwargs["to"] == "fallback@example.com"

    @pytest.mark.asyncio
    async def test_no_address_is_swallowed(
        self, make_settings: Any, email_service: MagicMock, order: Any
    ) -> None:
        service = EscalationService(email_service, make_settings(tech_support_email=""))

        assert await service.escalate(ValueError("boom"), order, None) is False
        email_service.send.assert_not_called()

    @pytest.mark.asyncio
    async def test_delivery_failure_is_swallowed(
        self, make_settings: Any, email_service: MagicMock, order: Any, store_config: Any
    ) -> None:
        email_service.send.side_effect = RuntimeError("resend down")
        service = EscalationService(email_service, make_settings())

        assert await service.escalate(ValueError("boom"), order, store_config) is False
