"""Explain endpoint: validates a request and relays the model's SSE stream."""

from typing import AsyncIterator, Optional

import httpx
from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from relay.app.core.config import settings
from relay.app.core.http_client import get_http_client
from relay.app.core.logging import get_log_context, get_logger
from relay.app.exceptions import ConfigurationError, RateLimitedError
from relay.app.middleware.rate_limit import (
    FixedWindowRateLimiter,
    get_client_key,
    get_rate_limiter,
    rate_limit_headers,
)
from relay.app.middleware.request_id import get_request_id
from relay.app.providers.base import BaseStreamingProvider
from relay.app.providers.openai import OpenAIStreamingProvider
from relay.app.services.validation import (
    check_headers,
    validate_body,
)

router = APIRouter()
logger = get_logger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


def get_provider() -> Optional[BaseStreamingProvider]:
    """Provider for the configured credential, or None when there is none."""
    if not settings.openai_api_key:
        return None
    return OpenAIStreamingProvider(
        base_url=settings.openai_base_url,
        api_key=settings.openai_api_key,
        http_client=get_http_client(),
        model=settings.openai_model,
        max_tokens=settings.openai_max_tokens,
    )


async def relay_stream(
    upstream: httpx.Response,
    request_id: str,
) -> AsyncIterator[bytes]:
    """Yield the upstream body verbatim and always close the upstream response.

    Runs after the 200 status has been sent, so an upstream failure here can
    only end the stream early; it is logged and the stream is closed.
    """
    relayed = 0
    try:
        async for chunk in upstream.aiter_bytes():
            relayed += len(chunk)
            yield chunk
    except httpx.HTTPError as e:
        logger.error(
            f"Upstream stream interrupted: {type(e).__name__}",
            extra=get_log_context(request_id=request_id, error=str(e)),
        )
    finally:
        await upstream.aclose()
        logger.info(
            "Relay stream closed",
            extra=get_log_context(request_id=request_id, bytes_relayed=relayed),
        )


@router.post("/api/explain", response_model=None)
async def explain(
    request: Request,
    limiter: FixedWindowRateLimiter = Depends(get_rate_limiter),
    provider: Optional[BaseStreamingProvider] = Depends(get_provider),
) -> StreamingResponse:
    """Explain a block of code, streaming the model's SSE output.

    Checks run in order: credential configured, rate limit, request headers,
    body, then the upstream call. Rejections raise RelayException subclasses
    that the application maps to plain-text responses.
    """
    request_id = get_request_id(request)

    if provider is None:
        logger.error(
            "Upstream API key not configured",
            extra=get_log_context(request_id=request_id),
        )
        raise ConfigurationError()

    client_key = get_client_key(request)
    limit = await limiter.is_allowed(client_key)
    if not limit.allowed:
        logger.warning(
            "Rate limit exceeded",
            extra=get_log_context(request_id=request_id, client_key=client_key),
        )
        raise RateLimitedError(retry_after=limit.retry_after)

    check_headers(
        request.headers.get("content-type"),
        request.headers.get("content-length"),
        settings.max_request_size,
    )
    body = await request.body()
    explain_request = validate_body(
        body,
        max_request_size=settings.max_request_size,
        max_code_length=settings.max_code_length,
    )

    upstream = await provider.open_stream(explain_request, request_id=request_id)

    logger.info(
        "Relaying explanation stream",
        extra=get_log_context(
            request_id=request_id,
            client_key=client_key,
            explain_to_child=explain_request.explain_to_child,
            code_chars=len(explain_request.code),
        ),
    )
    return StreamingResponse(
        relay_stream(upstream, request_id),
        media_type="text/event-stream",
        headers={**SSE_HEADERS, **rate_limit_headers(limit)},
    )
