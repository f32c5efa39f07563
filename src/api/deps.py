"""FastAPI dependency injection functions."""

import ipaddress
from typing import Annotated

from fastapi import Depends, Request

from src.api.middleware.error_handler import RateLimitError
from src.core.rate_limiter import AdmissionResult, OrderThrottle
from src.services.catalog_service import CatalogService
from src.services.order_service import OrderSubmissionService

UNKNOWN_CLIENT = "unknown"

# Proxy headers checked in order; each may hold a comma-separated hop list.
CLIENT_IP_HEADERS = (
    "x-vercel-forwarded-for",
    "x-forwarded-for",
    "x-real-ip",
    "cf-connecting-ip",
)


def _is_ip(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


def get_client_ip(request: Request) -> str:
    """Derive the client's network identity for throttling.

    Uses the first hop of the first proxy header that carries an IP
    address, then the socket peer. Never raises.

    Args:
        request: The incoming request.

    Returns:
        str: IP address, or 'unknown' if none can be determined.
    """
    for header in CLIENT_IP_HEADERS:
        value = request.headers.get(header)
        if not value:
            continue
        first_hop = value.split(",")[0].strip()
        if _is_ip(first_hop):
            return first_hop

    if request.client and request.client.host and _is_ip(request.client.host):
        return request.client.host

    return UNKNOWN_CLIENT


def get_order_throttle(request: Request) -> OrderThrottle:
    """Get the application's order throttle."""
    return request.app.state.order_throttle


async def check_order_rate_limit(
    request: Request,
    throttle: Annotated[OrderThrottle, Depends(get_order_throttle)],
) -> AdmissionResult:
    """Admit or reject an order submission for the calling client.

    Args:
        request: The incoming request.
        throttle: The application's throttle.

    Returns:
        AdmissionResult: The admission, used for rate limit headers.

    Raises:
        RateLimitError: If the client has exceeded the submission limit.
    """
    admission = throttle.admit(get_client_ip(request))
    if not admission.allowed:
        raise RateLimitError(
            retry_after=admission.retry_after_seconds,
            headers=admission.headers(throttle.config.max_requests),
        )
    return admission


def get_order_submission_service() -> OrderSubmissionService:
    """Get the order submission pipeline."""
    return OrderSubmissionService()


def get_catalog_service() -> CatalogService:
    """Get the catalog reader."""
    return CatalogService()


# Type aliases for dependencies
OrderAdmission = Annotated[AdmissionResult, Depends(check_order_rate_limit)]
OrderThrottleDep = Annotated[OrderThrottle, Depends(get_order_throttle)]
