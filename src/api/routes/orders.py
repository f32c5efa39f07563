"""Order submission API routes."""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Request, Response

from src.api.deps import OrderAdmission, OrderThrottleDep, get_order_submission_service
from src.api.middleware.error_handler import APIError, OrderValidationError
from src.schemas.order import OrderSubmissionResponse
from src.services.order_service import OrderSubmissionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["orders"])


async def _read_json(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError:
        raise OrderValidationError(details=[{"fieldPath": "body", "message": "Request body must be valid JSON"}])


@router.post(
    "/submit",
    response_model=OrderSubmissionResponse,
    responses={
        400: {"description": "Invalid order data or price verification failed"},
        429: {"description": "Too many submissions from this client"},
        500: {"description": "Order could not be placed"},
    },
    summary="Submit an order",
)
async def submit_order(
    request: Request,
    response: Response,
    admission: OrderAdmission,
    throttle: OrderThrottleDep,
    service: OrderSubmissionService = Depends(get_order_submission_service),
) -> OrderSubmissionResponse:
    """Validate, price, number and fulfill an order.

    The body is parsed here rather than by FastAPI so that validation
    failures return 400 with every field error.

    Returns:
        OrderSubmissionResponse: The customer-facing order number.
    """
    rate_limit_headers = admission.headers(throttle.config.max_requests)

    try:
        payload = await _read_json(request)
        outcome = await service.submit(payload)
    except APIError as e:
        e.headers.update(rate_limit_headers)
        raise

    if outcome.report is None or outcome.report.failed_steps:
        logger.warning(
            "Order %s accepted with incomplete fulfillment",
            outcome.order.order_number,
            extra={"failed_steps": outcome.report.failed_steps if outcome.report else None},
        )

    response.headers.update(rate_limit_headers)
    return OrderSubmissionResponse(order_number=outcome.order.short_order_number)
