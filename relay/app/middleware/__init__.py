"""Middleware package for the relay."""

from relay.app.middleware.rate_limit import FixedWindowRateLimiter, get_client_key
from relay.app.middleware.request_id import RequestIdMiddleware, get_request_id
from relay.app.middleware.request_size import RequestSizeLimitMiddleware

__all__ = [
    "FixedWindowRateLimiter",
    "get_client_key",
    "RequestIdMiddleware",
    "get_request_id",
    "RequestSizeLimitMiddleware",
]
