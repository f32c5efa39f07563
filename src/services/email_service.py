"""Email service using Resend for transactional emails."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

import resend
from resend.exceptions import ResendError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from src.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
MIN_WAIT_SECONDS = 0.5
MAX_WAIT_SECONDS = 4


@dataclass(frozen=True)
class EmailAttachment:
    """A file attached to an outgoing email."""

    filename: str
    content: bytes


class EmailService:
    """Service for sending transactional emails via Resend."""

    def __init__(self, settings: Settings | None = None) -> None:
        """Initialize email service with Resend API key."""
        settings = settings or get_settings()
        resend.api_key = settings.resend_api_key
        self.from_email = settings.email_from_address

    @retry(
        retry=retry_if_exception_type((ResendError, OSError)),
        stop=stop_after_attempt(MAX_RETRIES),
        wait=wait_exponential(multiplier=1, min=MIN_WAIT_SECONDS, max=MAX_WAIT_SECONDS),
        reraise=True,
    )
    def _send_with_retry(self, params: dict[str, Any]) -> Any:
        """Send through Resend, retrying transient failures."""
        return resend.Emails.send(params)

    async def send(
        self,
        to: str | list[str],
        subject: str,
        html: str,
        text: str | None = None,
        attachments: list[EmailAttachment] | None = None,
    ) -> dict[str, Any]:
        """Send an email.

        Args:
            to: Recipient address or addresses.
            subject: Subject line.
            html: HTML body.
            text: Optional plain-text body.
            attachments: Optional file attachments.

        Returns:
            dict: {"success": True, "email_id": ...} or {"success": False, "error": ...}.
        """
        recipients = [to] if isinstance(to, str) else list(to)
        params: dict[str, Any] = {
            "from": self.from_email,
            "to": recipients,
            "subject": subject,
            "html": html,
        }
        if text:
            params["text"] = text
        if attachments:
            params["attachments"] = [
                {"filename": attachment.filename, "content": list(attachment.content)}
                for attachment in attachments
            ]

        try:
            response = await asyncio.to_thread(self._send_with_retry, params)
            email_id = response.get("id") if isinstance(response, dict) else getattr(response, "id", None)
            logger.info("Email '%s' sent to %s, id: %s", subject, ", ".join(recipients), email_id)
            return {"success": True, "email_id": email_id}

        except Exception as e:
            logger.error("Failed to send email '%s' to %s: %s", subject, ", ".join(recipients), str(e))
            return {"success": False, "error": str(e)}
