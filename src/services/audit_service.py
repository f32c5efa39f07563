"""Failure audit logging and tech-support escalation.

Neither class raises: they run on error paths where a second failure must
not mask the first one or change the response already owed to the client.
"""

import json
import logging
import sys
import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

from pydantic import BaseModel

from src.core.config import Settings, get_settings
from src.schemas.catalog import StoreConfig
from src.services.email_service import EmailService
from src.services.email_templates import tech_support_alert_email

logger = logging.getLogger(__name__)


class EscalationFailed(Exception):
    """Raised internally when a tech-support alert cannot be delivered."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_payload(data: Any) -> Any:
    """Convert order data (model or raw dict) to JSON-ready camelCase data."""
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json", by_alias=True)
    return data


def summarize_order(data: Any) -> dict[str, Any] | None:
    """Reduce order data to the fields kept in audit records.

    Args:
        data: Order, OrderSubmission, or raw payload dict.

    Returns:
        dict | None: Contact info, item count, total and store, or None.
    """
    payload = to_payload(data)
    if not isinstance(payload, dict):
        return None
    items = payload.get("items")
    return {
        "orderNumber": payload.get("orderNumber"),
        "contactInfo": payload.get("contactInfo"),
        "itemCount": len(items) if isinstance(items, list) else 0,
        "totalAmount": payload.get("totalAmount"),
        "storeSlug": payload.get("storeSlug"),
    }


class AuditLogger:
    """Writes structured failure records to the log and a daily JSON-lines file."""

    def __init__(self, settings: Settings | None = None, now: Callable[[], datetime] = _utcnow) -> None:
        self.settings = settings or get_settings()
        self._now = now

    def record(self, context: str, error: BaseException, relevant_data: Any = None) -> dict[str, Any] | None:
        """Record a failure. Never raises.

        Args:
            context: Where the failure happened, e.g. 'order_submission'.
            error: The exception.
            relevant_data: Order data to summarize in the record.

        Returns:
            dict | None: The record written, or None if building it failed.
        """
        try:
            timestamp = self._now()
            record = {
                "timestamp": timestamp.isoformat(),
                "context": context,
                "environment": self.settings.environment.value,
                "error": {
                    "message": str(error),
                    "type": type(error).__name__,
                    "traceback": "".join(traceback.format_exception(type(error), error, error.__traceback__)),
                },
                "order": summarize_order(relevant_data),
            }
            logger.error(
                "Order failure in %s: %s: %s",
                context,
                type(error).__name__,
                str(error),
                extra={"audit": record},
            )
            self._write(record, timestamp)
            return record
        except Exception as e:
            print(f"Audit logger failed while recording '{context}': {e}", file=sys.stderr)
            return None

    def _write(self, record: dict[str, Any], timestamp: datetime) -> None:
        if not self.settings.error_log_dir:
            return
        try:
            log_dir = Path(self.settings.error_log_dir)
            log_dir.mkdir(parents=True, exist_ok=True)
            log_file = log_dir / f"errors-{timestamp.strftime('%Y-%m-%d')}.jsonl"
            with log_file.open("a", encoding="utf-8") as f:
                f.write(json.dumps(record, default=str) + "\n")
        except OSError as e:
            print(f"Could not write audit record to {self.settings.error_log_dir}: {e}", file=sys.stderr)


class EscalationService:
    """Sends high-priority failure alerts to tech support."""

    def __init__(
        self,
        email_service: EmailService | None = None,
        settings: Settings | None = None,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.settings = settings or get_settings()
        self._email_service = email_service
        self._now = now

    @property
    def email_service(self) -> EmailService:
        if self._email_service is None:
            self._email_service = EmailService(self.settings)
        return self._email_service

    async def escalate(
        self,
        error: BaseException,
        order_payload: Any,
        config: StoreConfig | None = None,
    ) -> bool:
        """Alert tech support about a failed order. Never raises.

        The store's tech-support address wins over the configured default.

        Args:
            error: The exception.
            order_payload: Full order data (model or raw dict).
            config: Store configuration, if it was loaded.

        Returns:
            bool: True if the alert was sent.
        """
        try:
            recipient = (config.tech_support_email if config else None) or self.settings.tech_support_email
            if not recipient:
                raise EscalationFailed("No tech support address configured")

            content = tech_support_alert_email(
                error_message=str(error),
                error_type=type(error).__name__,
                traceback_text="".join(traceback.format_exception(type(error), error, error.__traceback__)),
                order_payload=to_payload(order_payload),
                environment=self.settings.environment.value,
                occurred_at=self._now().isoformat(),
            )
            result = await self.email_service.send(
                to=recipient,
                subject=content.subject,
                html=content.html,
                text=content.text,
            )
            if not result.get("success"):
                raise EscalationFailed(result.get("error") or "Email delivery failed")

            logger.info("Escalated %s to tech support", type(error).__name__)
            return True

        except Exception as e:
            logger.error("Failed to escalate order failure: %s", str(e))
            return False
