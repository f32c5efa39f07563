"""Order fulfillment pipeline.

Steps run in order, each behind its own error boundary:

1. ledger_write            order rows into the order ledger (fatal)
2. document_generation     invoice PDF rendered in memory
3. archival_upload         invoice PDF stored under the environment's namespace
4. customer_notification   confirmation email, invoice attached when available
5. admin_notification      new-order email to the store operator, if configured

Only a ledger write failure propagates. Everything else is logged and
recorded in the returned report.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

from src.core.config import Settings, get_settings
from src.core.ledger import LedgerStore, SupabaseLedgerStore
from src.core.storage import ArchiveStore, SupabaseArchiveStore
from src.models.order import OrderLedgerRow
from src.schemas.catalog import StoreConfig
from src.schemas.order import Order, OrderItem
from src.services.email_service import EmailAttachment, EmailService
from src.services.email_templates import admin_notification_email, customer_confirmation_email
from src.services.invoice_service import build_invoice_filename, render_invoice_pdf

logger = logging.getLogger(__name__)

STEP_LEDGER_WRITE = "ledger_write"
STEP_DOCUMENT_GENERATION = "document_generation"
STEP_ARCHIVAL_UPLOAD = "archival_upload"
STEP_CUSTOMER_NOTIFICATION = "customer_notification"
STEP_ADMIN_NOTIFICATION = "admin_notification"

InvoiceRenderer = Callable[[Order, StoreConfig], bytes]


class FulfillmentStepFailed(Exception):
    """A non-fatal fulfillment step failed."""

    def __init__(self, step: str, message: str) -> None:
        self.step = step
        super().__init__(f"{step}: {message}")


class OrderRecordFailed(Exception):
    """The order could not be written to the order ledger."""

    def __init__(self, order_number: str, message: str) -> None:
        self.order_number = order_number
        super().__init__(f"Failed to record order {order_number}: {message}")


@dataclass
class FulfillmentReport:
    """Outcome of a fulfillment run."""

    invoice_filename: str
    timings_ms: dict[str, float] = field(default_factory=dict)
    failed_steps: list[str] = field(default_factory=list)
    skipped_steps: list[str] = field(default_factory=list)
    document_generated: bool = False
    archived_file_id: str | None = None

    @property
    def total_ms(self) -> float:
        return round(sum(self.timings_ms.values()), 2)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _customization_details(item: OrderItem) -> str:
    details = []
    for option in item.customization_options:
        parts = []
        if option.custom_name:
            parts.append(f"Name: {option.custom_name}")
        if option.custom_number:
            parts.append(f"Number: {option.custom_number}")
        if parts:
            details.append(f"{option.title} ({', '.join(parts)})")
    return "; ".join(details)


def build_ledger_rows(order: Order, invoice_filename: str) -> list[OrderLedgerRow]:
    """Expand an order into one ledger row per ordered unit.

    Args:
        order: The accepted order.
        invoice_filename: Invoice filename recorded on every row.

    Returns:
        list[OrderLedgerRow]: Rows in item order.
    """
    contact = order.contact_info
    rows: list[OrderLedgerRow] = []
    for item in order.items:
        design_total = round(sum(option.price for option in item.design_options), 2)
        customization_total = round(sum(option.price for option in item.customization_options), 2)
        row: OrderLedgerRow = {
            "order_number": order.order_number,
            "order_date": order.order_date.isoformat(),
            "environment": order.environment.value,
            "store": order.store_slug,
            "email": contact.email,
            "first_name": contact.first_name,
            "last_name": contact.last_name,
            "phone": contact.phone,
            "product_name": item.product_name,
            "size": item.size,
            "quantity": 1,
            "item_price": item.item_price,
            "design_options": ", ".join(option.title for option in item.design_options),
            "design_options_total": design_total,
            "customization_options": ", ".join(option.title for option in item.customization_options),
            "customization_details": _customization_details(item),
            "customization_options_total": customization_total,
            "item_total": item.total_price,
            "order_total": order.total_amount,
            "invoice_filename": invoice_filename,
        }
        rows.extend(row.copy() for _ in range(item.quantity))
    return rows


class FulfillmentService:
    """Runs the fulfillment steps for an accepted order."""

    def __init__(
        self,
        ledger: LedgerStore | None = None,
        archive: ArchiveStore | None = None,
        email_service: EmailService | None = None,
        renderer: InvoiceRenderer = render_invoice_pdf,
        settings: Settings | None = None,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize fulfillment with its collaborators.

        Collaborators default to the Supabase and Resend implementations and
        are created on first use.
        """
        self.settings = settings or get_settings()
        self._ledger = ledger
        self._archive = archive
        self._email_service = email_service
        self.renderer = renderer
        self._now = now

    @property
    def ledger(self) -> LedgerStore:
        if self._ledger is None:
            self._ledger = SupabaseLedgerStore()
        return self._ledger

    @property
    def archive(self) -> ArchiveStore:
        if self._archive is None:
            self._archive = SupabaseArchiveStore()
        return self._archive

    @property
    def email_service(self) -> EmailService:
        if self._email_service is None:
            self._email_service = EmailService(self.settings)
        return self._email_service

    async def fulfill(self, order: Order, config: StoreConfig) -> FulfillmentReport:
        """Fulfill an accepted order.

        Args:
            order: Order with its number assigned and totals recomputed.
            config: Store configuration for branding and recipients.

        Returns:
            FulfillmentReport: Timings and per-step outcome.

        Raises:
            OrderRecordFailed: If the order ledger rejects the rows.
        """
        settings = self.settings
        report = FulfillmentReport(invoice_filename=build_invoice_filename(order, self._now()))
        invoice: bytes | None = None

        if settings.enable_ledger_write:
            started = time.perf_counter()
            try:
                await self._write_ledger(order, report.invoice_filename)
            finally:
                report.timings_ms[STEP_LEDGER_WRITE] = round((time.perf_counter() - started) * 1000, 2)
        else:
            report.skipped_steps.append(STEP_LEDGER_WRITE)

        if settings.enable_invoice_generation:
            invoice = await self._run_step(report, order, STEP_DOCUMENT_GENERATION, self._render_invoice(order, config))
            report.document_generated = invoice is not None
        else:
            report.skipped_steps.append(STEP_DOCUMENT_GENERATION)

        if settings.enable_invoice_archive and invoice is not None:
            report.archived_file_id = await self._run_step(
                report,
                order,
                STEP_ARCHIVAL_UPLOAD,
                self._archive_invoice(order, invoice, report.invoice_filename),
            )
        else:
            report.skipped_steps.append(STEP_ARCHIVAL_UPLOAD)

        if settings.enable_customer_email:
            await self._run_step(
                report,
                order,
                STEP_CUSTOMER_NOTIFICATION,
                self._notify_customer(order, config, invoice, report.invoice_filename),
            )
        else:
            report.skipped_steps.append(STEP_CUSTOMER_NOTIFICATION)

        if settings.enable_admin_email and config.admin_email:
            await self._run_step(report, order, STEP_ADMIN_NOTIFICATION, self._notify_admin(order, config))
        else:
            report.skipped_steps.append(STEP_ADMIN_NOTIFICATION)

        logger.info(
            "Fulfilled order %s in %.2fms",
            order.order_number,
            report.total_ms,
            extra={
                "order_number": order.order_number,
                "timings_ms": report.timings_ms,
                "failed_steps": report.failed_steps,
                "skipped_steps": report.skipped_steps,
            },
        )
        return report

    async def _run_step(self, report: FulfillmentReport, order: Order, step: str, work: Awaitable[Any]) -> Any:
        """Run a non-fatal step, timing it and absorbing its failure."""
        started = time.perf_counter()
        try:
            return await work
        except Exception as e:
            report.failed_steps.append(step)
            logger.error(
                "Fulfillment step %s failed for order %s: %s",
                step,
                order.order_number,
                str(e),
                extra={"order_number": order.order_number, "step": step},
            )
            return None
        finally:
            report.timings_ms[step] = round((time.perf_counter() - started) * 1000, 2)

    async def _write_ledger(self, order: Order, invoice_filename: str) -> None:
        rows = build_ledger_rows(order, invoice_filename)
        try:
            await asyncio.wait_for(
                self.ledger.append_rows(self.settings.order_ledger_table, rows),
                timeout=self.settings.ledger_timeout_seconds,
            )
        except asyncio.TimeoutError:
            # The insert may still land; a duplicate write is preferred over a lost order.
            logger.warning(
                "Order ledger write timed out for %s, assuming it completed",
                order.order_number,
                extra={"order_number": order.order_number, "rows": len(rows)},
            )
        except Exception as e:
            logger.error(
                "Order ledger write failed for %s: %s",
                order.order_number,
                str(e),
                extra={
                    "order_number": order.order_number,
                    "email": order.contact_info.email,
                    "total_amount": order.total_amount,
                    "rows": len(rows),
                },
            )
            raise OrderRecordFailed(order.order_number, str(e)) from e

    async def _render_invoice(self, order: Order, config: StoreConfig) -> bytes:
        return await asyncio.to_thread(self.renderer, order, config)

    async def _archive_invoice(self, order: Order, invoice: bytes, filename: str) -> str:
        namespace = await self.archive.ensure_namespace(
            f"{self.settings.invoice_bucket}/{order.environment.value}"
        )
        file_id = await self.archive.upload(namespace, invoice, filename)
        logger.info("Archived invoice for %s as %s", order.order_number, file_id)
        return file_id

    async def _notify_customer(
        self,
        order: Order,
        config: StoreConfig,
        invoice: bytes | None,
        invoice_filename: str,
    ) -> None:
        content = customer_confirmation_email(order, config, invoice_attached=invoice is not None)
        attachments = [EmailAttachment(filename=invoice_filename, content=invoice)] if invoice is not None else None
        result = await self.email_service.send(
            to=order.contact_info.email,
            subject=content.subject,
            html=content.html,
            text=content.text,
            attachments=attachments,
        )
        if not result.get("success"):
            raise FulfillmentStepFailed(STEP_CUSTOMER_NOTIFICATION, result.get("error") or "delivery failed")

    async def _notify_admin(self, order: Order, config: StoreConfig) -> None:
        content = admin_notification_email(order, config)
        result = await self.email_service.send(
            to=config.admin_email,
            subject=content.subject,
            html=content.html,
            text=content.text,
        )
        if not result.get("success"):
            raise FulfillmentStepFailed(STEP_ADMIN_NOTIFICATION, result.get("error") or "delivery failed")
