"""Fixed-window rate limiting for the relay.

Process-local state: each server process keeps its own counters, and a
restart resets them. The client identifier comes from ``X-Forwarded-For`` and
is advisory only; it is trivially spoofable and is not an auth mechanism.
"""

import asyncio
import hashlib
import math
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Optional

from fastapi import Request

from relay.app.core.logging import get_logger

logger = get_logger(__name__)

UNKNOWN_CLIENT = "unknown"


@dataclass
class RateLimitResult:
    """Result of a rate limit check."""
    allowed: bool
    limit: int
    remaining: int
    reset_time: float
    reset_after: int
    retry_after: Optional[int] = None


@dataclass
class RateLimitRecord:
    """Request count for one identifier within its current window."""
    key: str
    count: int
    window_reset_time: float


class FixedWindowRateLimiter:
    """In-memory fixed-window counter keyed by client identifier.

    A record is created (or replaced once its window has passed) with a count
    of one; further requests increment it until ``max_requests`` is reached,
    after which requests are rejected without touching the record.

    Memory is bounded: records live in an OrderedDict capped at
    ``max_entries`` (expired records evicted first, then the least recently
    seen) and ``sweep()`` drops records whose window has passed.
    """

    DEFAULT_MAX_ENTRIES = 10000

    def __init__(
        self,
        max_requests: int = 10,
        window_seconds: float = 60.0,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize rate limiter.

        Args:
            max_requests: Requests admitted per identifier per window
            window_seconds: Window duration in seconds
            max_entries: Maximum number of records kept
            clock: Monotonic time source in seconds
        """
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._records: OrderedDict[str, RateLimitRecord] = OrderedDict()
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._records)

    def get_record(self, key: str) -> Optional[RateLimitRecord]:
        return self._records.get(key)

    def _make_room(self, now: float) -> None:
        """Make room for one record.

        Expired records go first. Otherwise the least recently seen record
        still under its limit is evicted, and only when every record is at
        its limit does the least recently seen one go.
        """
        if len(self._records) < self._max_entries:
            return
        expired = [
            key for key, record in self._records.items()
            if now > record.window_reset_time
        ]
        for key in expired:
            del self._records[key]
        if len(self._records) < self._max_entries:
            return

        # Keep clients that are at their limit so eviction cannot reset them
        victim = next(
            (key for key, record in self._records.items() if record.count < self.max_requests),
            next(iter(self._records)),
        )
        del self._records[victim]
        logger.debug("Rate limit record evicted", extra={"client_key": victim})

    async def is_allowed(self, key: str) -> RateLimitResult:
        """Check and count one request for ``key``."""
        async with self._lock:
            now = self._clock()
            record = self._records.get(key)

            if record is None or now > record.window_reset_time:
                if record is None:
                    self._make_room(now)
                record = RateLimitRecord(
                    key=key, count=1, window_reset_time=now + self.window_seconds
                )
                self._records[key] = record
                self._records.move_to_end(key)
                return RateLimitResult(
                    allowed=True,
                    limit=self.max_requests,
                    remaining=self.max_requests - 1,
                    reset_time=record.window_reset_time,
                    reset_after=math.ceil(self.window_seconds),
                )

            self._records.move_to_end(key)
            reset_after = max(0, math.ceil(record.window_reset_time - now))

            if record.count >= self.max_requests:
                return RateLimitResult(
                    allowed=False,
                    limit=self.max_requests,
                    remaining=0,
                    reset_time=record.window_reset_time,
                    reset_after=reset_after,
                    retry_after=max(1, reset_after),
                )

            record.count += 1
            return RateLimitResult(
                allowed=True,
                limit=self.max_requests,
                remaining=self.max_requests - record.count,
                reset_time=record.window_reset_time,
                reset_after=reset_after,
            )

    async def admit(self, key: str) -> bool:
        """True if the request is admitted."""
        result = await self.is_allowed(key)
        return result.allowed

    async def sweep(self) -> int:
        """Remove records whose window has passed. Returns the number removed."""
        async with self._lock:
            now = self._clock()
            expired = [
                key for key, record in self._records.items()
                if now > record.window_reset_time
            ]
            for key in expired:
                del self._records[key]
        if expired:
            logger.debug(f"Swept {len(expired)} expired rate limit records")
        return len(expired)


class RateLimitSweeper:
    """Background task that periodically sweeps a limiter.

    Started and stopped by the application lifespan.
    """

    def __init__(self, limiter: FixedWindowRateLimiter, interval_seconds: float = 60.0):
        self.limiter = limiter
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None

    async def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await self.limiter.sweep()
            except Exception:
                logger.exception("Rate limit sweep failed")


def get_client_key(request: Request) -> str:
    """Best-effort client identifier for rate limiting.

    Uses the first address in ``X-Forwarded-For``, or ``unknown`` when the
    header is absent. The address is hashed so raw IPs are never held in
    memory or written to logs.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    client_ip = forwarded.split(",")[0].strip() if forwarded else ""
    if not client_ip:
        client_ip = UNKNOWN_CLIENT

    # 32 hex chars (128 bits) for collision resistance
    ip_hash = hashlib.sha256(client_ip.encode()).hexdigest()[:32]
    return f"ratelimit:ip:{ip_hash}"


def get_rate_limiter(request: Request) -> FixedWindowRateLimiter:
    """FastAPI dependency returning the limiter owned by the application."""
    return request.app.state.rate_limiter


def rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    """Informational headers for an admitted request."""
    return {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(result.reset_after),
    }
