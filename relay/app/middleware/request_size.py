"""Request body size limit middleware.

Counts body bytes as they are received, so chunked uploads without a
Content-Length are bounded too. A declared Content-Length is checked by the
endpoint's validator before the body is read.
"""

from starlette.types import Message, Receive, Scope, Send


class SizeLimitedStream:
    """A receive wrapper that enforces a size limit while the body is read."""

    class SizeExceededError(Exception):
        """Raised when request body exceeds size limit."""

    def __init__(self, receive: Receive, max_size: int):
        self._receive = receive
        self._max_size = max_size
        self._bytes_read = 0

    @property
    def bytes_read(self) -> int:
        return self._bytes_read

    async def receive(self) -> Message:
        """Receive the next ASGI message and enforce the size limit.

        Raises:
            SizeExceededError: If body size exceeds max_size
        """
        message = await self._receive()

        if message["type"] == "http.request":
            self._bytes_read += len(message.get("body", b""))
            if self._bytes_read > self._max_size:
                raise self.SizeExceededError(
                    f"Request body exceeded {self._max_size} bytes"
                )

        return message


class RequestSizeLimitMiddleware:
    """ASGI middleware limiting request body size.

    Answers 413 with a plain-text body when the limit is exceeded. Raw ASGI
    so the receive callable is wrapped before Starlette's Request exists.

    Usage:
        app.add_middleware(RequestSizeLimitMiddleware, max_body_size=50_000)
    """

    MESSAGE = b"Request too large"

    def __init__(self, app, max_body_size: int = 50_000):
        self.app = app
        self.max_body_size = max_body_size

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        limited = SizeLimitedStream(receive, self.max_body_size)
        response_started = False

        async def send_wrapper(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, limited.receive, send_wrapper)
        except SizeLimitedStream.SizeExceededError:
            if response_started:
                raise
            await self._send_413_response(send)

    async def _send_413_response(self, send: Send) -> None:
        await send(
            {
                "type": "http.response.start",
                "status": 413,
                "headers": [
                    [b"content-type", b"text/plain; charset=utf-8"],
                    [b"content-length", str(len(self.MESSAGE)).encode()],
                ],
            }
        )
        await send({"type": "http.response.body", "body": self.MESSAGE})
