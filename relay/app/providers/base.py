from abc import ABC, abstractmethod
from typing import Dict, Optional

import httpx

from relay.app.models import ExplainRequest


class BaseStreamingProvider(ABC):
    """Base class for completion providers that stream their output.

    Providers take the shared httpx.AsyncClient for connection pooling and
    hand back the open upstream response; interpreting the streamed bytes is
    left to whoever consumes them.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        http_client: httpx.AsyncClient,
    ):
        """Initialize the provider.

        Args:
            base_url: The API base URL
            api_key: The API key for authentication
            http_client: Shared HTTP client for connection pooling
        """
        if not api_key:
            raise ValueError("api_key is required")
        self._http_client = http_client
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key
        self.headers = self._build_headers()

    @property
    def http_client(self) -> httpx.AsyncClient:
        return self._http_client

    def _build_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
        }

    def _get_endpoint_url(self, endpoint: str) -> str:
        """Build full URL for an API endpoint (e.g. "/chat/completions")."""
        return f"{self.base_url}{endpoint}"

    @abstractmethod
    async def open_stream(
        self,
        request: ExplainRequest,
        request_id: Optional[str] = None,
    ) -> httpx.Response:
        """Start a streaming completion for ``request``.

        Returns:
            The upstream response with its body not yet read. The caller owns
            it and must close it with ``aclose()``.

        Raises:
            UpstreamError: On a non-success status or transport failure
        """
