"""In-memory fixed-window throttle for order submissions.

Best effort per process: every server instance keeps its own counters, so
under multiple instances a client can exceed the limit by the instance
count. A shared cache would be required for a global guarantee.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable

logger = logging.getLogger(__name__)


@dataclass
class RateLimitConfig:
    """Configuration for rate limiting."""

    max_requests: int = 3  # Admissions per window
    window_seconds: int = 60
    cleanup_interval_seconds: int = 300  # Sweep expired entries every 5 minutes

    @classmethod
    def from_settings(cls) -> "RateLimitConfig":
        """Create config from application settings."""
        from src.core.config import get_settings
        settings = get_settings()
        return cls(
            max_requests=settings.order_rate_limit_requests,
            window_seconds=settings.order_rate_limit_window_seconds,
            cleanup_interval_seconds=settings.rate_limit_cleanup_interval_seconds,
        )

    @property
    def window_ms(self) -> int:
        return self.window_seconds * 1000


@dataclass
class RateLimitEntry:
    """Admission counter for a single client key."""

    window_start_ms: float
    count: int


@dataclass(frozen=True)
class AdmissionResult:
    """Outcome of a single admission check."""

    allowed: bool
    remaining: int
    reset_in_ms: int
    current_count: int

    @property
    def retry_after_seconds(self) -> int:
        """Seconds the client should wait before retrying."""
        return max(1, math.ceil(self.reset_in_ms / 1000))

    def headers(self, limit: int) -> dict[str, str]:
        """Standard rate limit response headers."""
        return {
            "X-RateLimit-Limit": str(limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(math.ceil(self.reset_in_ms / 1000)),
        }


def _monotonic_ms() -> float:
    return time.monotonic() * 1000


class OrderThrottle:
    """Thread-safe fixed-window admission control with periodic sweeping."""

    def __init__(
        self,
        config: RateLimitConfig | None = None,
        clock: Callable[[], float] = _monotonic_ms,
    ) -> None:
        """Initialize the throttle.

        Args:
            config: Optional rate limit configuration.
            clock: Millisecond clock, injectable for tests.
        """
        self.config = config or RateLimitConfig()
        self._clock = clock
        self._entries: dict[str, RateLimitEntry] = {}
        self._lock = Lock()
        self._cleanup_task: asyncio.Task | None = None

    async def start_cleanup_task(self) -> None:
        """Start background cleanup task."""
        if self._cleanup_task is None:
            self._cleanup_task = asyncio.create_task(self._cleanup_loop())
            logger.info("Order throttle cleanup task started")

    async def stop_cleanup_task(self) -> None:
        """Stop background cleanup task."""
        if self._cleanup_task:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
            self._cleanup_task = None
            logger.info("Order throttle cleanup task stopped")

    async def _cleanup_loop(self) -> None:
        """Background loop to sweep expired entries."""
        while True:
            await asyncio.sleep(self.config.cleanup_interval_seconds)
            count = self.sweep()
            if count > 0:
                logger.debug("Order throttle swept %d expired entries", count)

    def admit(self, client_key: str) -> AdmissionResult:
        """Check and count one request for a client.

        A missing or expired window starts a fresh one with a count of 1.
        Otherwise the count is incremented (denials included) and the
        request is allowed while the count stays within the limit.

        Args:
            client_key: Client network identity.

        Returns:
            AdmissionResult: Whether the request is admitted, plus header data.
        """
        max_requests = self.config.max_requests
        window_ms = self.config.window_ms

        with self._lock:
            now = self._clock()
            entry = self._entries.get(client_key)

            if entry is None or now - entry.window_start_ms >= window_ms:
                self._entries[client_key] = RateLimitEntry(window_start_ms=now, count=1)
                return AdmissionResult(
                    allowed=True,
                    remaining=max(0, max_requests - 1),
                    reset_in_ms=window_ms,
                    current_count=1,
                )

            entry.count += 1
            reset_in_ms = max(0, int(window_ms - (now - entry.window_start_ms)))

            if entry.count > max_requests:
                return AdmissionResult(
                    allowed=False,
                    remaining=0,
                    reset_in_ms=reset_in_ms,
                    current_count=entry.count,
                )

            return AdmissionResult(
                allowed=True,
                remaining=max_requests - entry.count,
                reset_in_ms=reset_in_ms,
                current_count=entry.count,
            )

    def sweep(self) -> int:
        """Remove entries whose window has elapsed.

        Returns:
            int: Number of entries removed.
        """
        window_ms = self.config.window_ms

        with self._lock:
            now = self._clock()
            expired = [
                key
                for key, entry in self._entries.items()
                if now - entry.window_start_ms >= window_ms
            ]
            for key in expired:
                del self._entries[key]

        return len(expired)

    def get_stats(self) -> dict:
        """Get storage statistics for monitoring."""
        with self._lock:
            return {
                "active_clients": len(self._entries),
                "config": {
                    "max_requests": self.config.max_requests,
                    "window_seconds": self.config.window_seconds,
                },
            }
