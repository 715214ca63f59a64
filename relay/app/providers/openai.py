"""OpenAI chat-completion provider.

Compatible with the OpenAI API and other OpenAI-compatible endpoints.
"""

from typing import Any, Dict, Optional

import httpx

from relay.app.core.logging import get_logger
from relay.app.exceptions import UpstreamError
from relay.app.models import ExplainRequest
from relay.app.providers.base import BaseStreamingProvider
from relay.app.services.prompts import build_messages

logger = get_logger(__name__)

# Upstream error bodies are logged, truncated, and never returned to callers
ERROR_PREVIEW_CHARS = 200


class OpenAIStreamingProvider(BaseStreamingProvider):
    """Streams code explanations from an OpenAI-compatible endpoint."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        http_client: httpx.AsyncClient,
        model: str = "gpt-4o-mini",
        max_tokens: int = 2000,
    ):
        super().__init__(base_url, api_key, http_client)
        self.model = model
        self.max_tokens = max_tokens

    def build_payload(self, request: ExplainRequest) -> Dict[str, Any]:
        return {
            "model": self.model,
            "messages": build_messages(request.code, request.explain_to_child),
            "stream": True,
            "max_tokens": self.max_tokens,
        }

    async def open_stream(
        self,
        request: ExplainRequest,
        request_id: Optional[str] = None,
    ) -> httpx.Response:
        url = self._get_endpoint_url("/chat/completions")
        upstream_request = self.http_client.build_request(
            "POST", url, headers=self.headers, json=self.build_payload(request)
        )

        try:
            response = await self.http_client.send(upstream_request, stream=True)
        except httpx.HTTPError as e:
            logger.error(
                f"Upstream request failed: {type(e).__name__}",
                extra={"request_id": request_id, "error": str(e)},
            )
            raise UpstreamError() from e

        if not response.is_success:
            try:
                await response.aread()
                preview = response.text[:ERROR_PREVIEW_CHARS]
            except httpx.HTTPError:
                preview = ""
            finally:
                await response.aclose()
            logger.error(
                f"Upstream HTTP error: {response.status_code}",
                extra={
                    "request_id": request_id,
                    "upstream_status": response.status_code,
                    "response_preview": preview,
                },
            )
            raise UpstreamError(upstream_status=response.status_code)

        logger.info(
            "Upstream stream opened",
            extra={
                "request_id": request_id,
                "upstream_status": response.status_code,
                "model": self.model,
            },
        )
        return response
