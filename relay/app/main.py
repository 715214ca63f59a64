from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from relay.app.api.explain import router as explain_router
from relay.app.core.config import settings
from relay.app.core.http_client import init_http_client
from relay.app.core.logging import get_logger, setup_logging
from relay.app.exceptions import RateLimitedError, RelayException
from relay.app.middleware.rate_limit import FixedWindowRateLimiter, RateLimitSweeper
from relay.app.middleware.request_id import RequestIdMiddleware, get_request_id
from relay.app.middleware.request_size import RequestSizeLimitMiddleware


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Each call builds its own rate limiter, so separately created apps never
    share counters.
    """
    setup_logging()
    logger = get_logger(__name__)

    rate_limiter = FixedWindowRateLimiter(
        max_requests=settings.rate_limit_max_requests,
        window_seconds=settings.rate_limit_window_seconds,
        max_entries=settings.rate_limit_max_entries,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan context manager.

        Opens the pooled upstream HTTP client and the limiter sweeper on
        startup and releases both on shutdown.
        """
        sweeper = RateLimitSweeper(
            app.state.rate_limiter,
            interval_seconds=settings.rate_limit_sweep_interval_seconds,
        )
        async with init_http_client():
            await sweeper.start()
            logger.info(
                "Application startup complete",
                extra={
                    "upstream_configured": bool(settings.openai_api_key),
                    "rate_limit_max_requests": settings.rate_limit_max_requests,
                    "rate_limit_window_seconds": settings.rate_limit_window_seconds,
                    "debug_mode": settings.debug,
                },
            )
            try:
                yield
            finally:
                await sweeper.stop()

        logger.info("Application shutdown complete")

    app = FastAPI(
        title="Explain Relay",
        description="Streams plain-language code explanations from a completion provider",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.rate_limiter = rate_limiter

    # Middleware order matters: last added = first executed
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(RequestSizeLimitMiddleware, max_body_size=settings.max_request_size)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["POST", "GET", "OPTIONS"],
        allow_headers=["Content-Type", "X-Request-ID"],
        expose_headers=[
            "X-Request-ID",
            "X-RateLimit-Limit",
            "X-RateLimit-Remaining",
            "X-RateLimit-Reset",
            "Retry-After",
        ],
        max_age=600,
    )

    app.include_router(explain_router)

    @app.get("/health")
    async def health(request: Request) -> dict[str, Any]:
        """Health check with upstream configuration and limiter status."""
        configured = bool(settings.openai_api_key)
        return {
            "status": "ok" if configured else "degraded",
            "components": {
                "upstream": {"configured": configured},
                "rate_limiter": {"tracked_clients": len(request.app.state.rate_limiter)},
            },
        }

    @app.exception_handler(RelayException)
    async def relay_exception_handler(request: Request, exc: RelayException) -> PlainTextResponse:
        """Map classified rejections to plain-text responses."""
        request_id = get_request_id(request)
        log = logger.error if exc.status_code >= 500 else logger.info
        log(
            f"Request rejected: {exc.error_kind}",
            extra={
                "request_id": request_id,
                "status_code": exc.status_code,
                "exception_type": type(exc).__name__,
            },
        )
        headers = {}
        if isinstance(exc, RateLimitedError) and exc.retry_after:
            headers["Retry-After"] = str(exc.retry_after)
        return PlainTextResponse(exc.message, status_code=exc.status_code, headers=headers)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> PlainTextResponse:
        """Global handler for unhandled exceptions.

        The traceback is logged server-side only; the caller gets a generic
        message, even in debug mode.
        """
        request_id = getattr(request.state, "request_id", "unknown")
        logger.error(
            f"Unhandled exception [request_id={request_id}]",
            exc_info=exc,
            extra={
                "request_id": request_id,
                "exception_type": type(exc).__name__,
            },
        )
        return PlainTextResponse("Internal server error", status_code=500)

    return app


# Create the application instance
app = create_app()
