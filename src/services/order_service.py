"""Order submission pipeline.

validate -> fetch catalog -> verify prices -> re-price -> allocate number -> fulfill

Validation and price errors are raised before any side effect. Once an
order number exists the submission succeeds from the client's point of
view; later failures are audited and escalated to tech support.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable

from src.api.middleware.error_handler import (
    APIError,
    OrderSubmissionError,
    OrderValidationError,
    PriceVerificationError,
)
from src.core.config import Settings, get_settings
from src.schemas.catalog import StoreConfig
from src.schemas.order import Order, OrderSubmission
from src.services.audit_service import AuditLogger, EscalationService
from src.services.catalog_service import CatalogService
from src.services.fulfillment_service import FulfillmentReport, FulfillmentService
from src.services.order_number_service import OrderNumberAllocator
from src.services.pricing_service import price_order, verify_prices
from src.services.validation_service import validate_order_submission

logger = logging.getLogger(__name__)


@dataclass
class SubmissionOutcome:
    """An accepted order and how its fulfillment went."""

    order: Order
    report: FulfillmentReport | None
    degraded_number: bool = False

    @property
    def fulfilled(self) -> bool:
        return self.report is not None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderSubmissionService:
    """Turns a raw checkout payload into a numbered, fulfilled order."""

    def __init__(
        self,
        catalog: CatalogService | None = None,
        allocator: OrderNumberAllocator | None = None,
        fulfillment: FulfillmentService | None = None,
        audit: AuditLogger | None = None,
        escalation: EscalationService | None = None,
        settings: Settings | None = None,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize the pipeline with its collaborators."""
        self.settings = settings or get_settings()
        self.catalog = catalog or CatalogService(settings=self.settings)
        self.allocator = allocator or OrderNumberAllocator(settings=self.settings)
        self.fulfillment = fulfillment or FulfillmentService(settings=self.settings)
        self.audit = audit or AuditLogger(self.settings)
        self.escalation = escalation or EscalationService(settings=self.settings)
        self._now = now

    async def submit(self, payload: Any) -> SubmissionOutcome:
        """Process one order submission.

        Args:
            payload: Decoded JSON request body.

        Returns:
            SubmissionOutcome: The accepted order and fulfillment report.

        Raises:
            OrderValidationError: If the payload is invalid.
            PriceVerificationError: If submitted prices differ from the catalog.
            OrderSubmissionError: If the order failed before it was numbered.
        """
        order_date = self._now()

        validation = validate_order_submission(payload)
        if not validation.success or validation.data is None:
            logger.info("Order submission rejected: %d validation errors", len(validation.errors))
            raise OrderValidationError(
                details=[error.model_dump(by_alias=True) for error in validation.errors],
            )
        submission = validation.data

        config: StoreConfig | None = None
        try:
            config = await self.catalog.get_config(submission.store_slug)
            order, degraded = await self._price_and_number(submission, order_date)
        except APIError:
            raise
        except Exception as e:
            self.audit.record("order_submission", e, submission)
            await self.escalation.escalate(e, submission, config)
            raise OrderSubmissionError() from e

        report: FulfillmentReport | None = None
        try:
            report = await self.fulfillment.fulfill(order, config)
        except Exception as e:
            self.audit.record("order_fulfillment", e, order)
            await self.escalation.escalate(e, order, config)

        logger.info(
            "Order %s accepted (%d items, $%.2f)",
            order.order_number,
            len(order.items),
            order.total_amount,
            extra={"order_number": order.order_number, "store": order.store_slug},
        )
        return SubmissionOutcome(order=order, report=report, degraded_number=degraded)

    async def _price_and_number(self, submission: OrderSubmission, order_date: datetime) -> tuple[Order, bool]:
        # Prices are checked against a fresh catalog on every submission.
        products = await self.catalog.get_products(submission.store_slug)
        design_options = await self.catalog.get_design_options()
        customization_options = await self.catalog.get_customization_options()

        verification = verify_prices(submission.items, products, design_options, customization_options)
        if not verification.valid:
            logger.warning(
                "Potential price tampering from %s: %s",
                submission.contact_info.email,
                "; ".join(verification.discrepancies),
                extra={
                    "discrepancies": verification.discrepancies,
                    "store": submission.store_slug,
                    "client_total": submission.total_amount,
                },
            )
            raise PriceVerificationError()

        priced = price_order(submission.items, products, design_options, customization_options)
        if submission.total_amount is not None and abs(submission.total_amount - priced.total_amount) > 0.01:
            logger.info(
                "Client total %.2f replaced by computed total %.2f",
                submission.total_amount,
                priced.total_amount,
            )

        allocated = await self.allocator.allocate(submission.store_slug)
        order = Order(
            contact_info=submission.contact_info,
            items=priced.items,
            total_amount=priced.total_amount,
            order_date=order_date,
            environment=self.allocator.environment,
            store_slug=submission.store_slug or "",
            order_number=allocated.order_number,
            short_order_number=allocated.short_order_number,
        )
        return order, allocated.degraded
