"""Client-side consumer for the explain relay.

``ExplainStreamConsumer`` posts code to the relay, reads the SSE response
incrementally and accumulates the sanitized text deltas. One session runs at a
time: starting a new explanation cancels the one in flight, and a superseded
session never writes to the consumer's observable state.

Session states::

    IDLE -> STREAMING -> COMPLETED | CANCELLED | FAILED
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

import httpx

from relay.app.core.config import settings
from relay.app.core.logging import get_logger
from relay.app.core.sanitize import sanitize_delta
from relay.app.models import ExplainRequest
from relay.client.cancellation import CancelReason, CancellationController
from relay.client.exceptions import (
    CancelledByUserError,
    NetworkFailureError,
    OversizedResponseError,
    RelayRejectedError,
    StreamError,
    StreamTimeoutError,
)
from relay.client.sse import SSEDeltaParser

logger = get_logger(__name__)

# Relay error bodies are short; anything longer is cut off
MAX_ERROR_BODY_BYTES = 1024

GENERIC_FAILURE_MESSAGE = StreamError.user_message


class StreamState(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class FailureReason(str, Enum):
    INVALID_INPUT = "invalid_input"
    TIMEOUT = "timeout"
    OVERSIZED = "oversized"
    NETWORK = "network"
    REJECTED = "rejected"
    ERROR = "error"


TERMINAL_STATES = {StreamState.COMPLETED, StreamState.CANCELLED, StreamState.FAILED}


class StreamReader:
    """Byte reader over one relay response.

    ``release()`` closes the response, which returns the connection to the
    pool. It acts once; later calls do nothing.
    """

    def __init__(self, response: httpx.Response):
        self._response = response
        self._chunks = response.aiter_bytes()
        self.release_count = 0

    @property
    def released(self) -> bool:
        return self.release_count > 0

    async def read(self) -> Optional[bytes]:
        """Next chunk of bytes, or None once the stream is exhausted."""
        try:
            return await self._chunks.__anext__()
        except StopAsyncIteration:
            return None

    async def release(self) -> None:
        if self.released:
            return
        self.release_count += 1
        await self._response.aclose()


@dataclass
class StreamSession:
    """State of one explanation request, owned by the consumer."""

    controller: CancellationController
    accumulated_output: str = ""
    response_byte_count: int = 0
    state: StreamState = StreamState.IDLE
    failure: Optional[FailureReason] = None
    message: Optional[str] = None
    reader: Optional[StreamReader] = field(default=None, repr=False)

    @property
    def abort_signal(self):
        return self.controller.token

    @property
    def cancel_reason(self) -> Optional[CancelReason]:
        return self.controller.token.reason

    @property
    def finished(self) -> bool:
        return self.state in TERMINAL_STATES

    def cancel(self, reason: CancelReason = CancelReason.USER) -> bool:
        return self.controller.cancel(reason)


async def _close_response(response: httpx.Response) -> None:
    await response.aclose()


class ExplainStreamConsumer:
    """Streams explanations from the relay into an observable text buffer.

    Args:
        http_client: Client used to reach the relay
        relay_url: Explain endpoint URL
        max_code_length: Characters allowed before a request is refused locally
        max_response_size: Bytes allowed in one streamed response
        stream_timeout: Seconds a session may run before it is aborted
        on_update: Called with the current session after every appended
            delta and every terminal transition
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        relay_url: Optional[str] = None,
        *,
        max_code_length: Optional[int] = None,
        max_response_size: Optional[int] = None,
        stream_timeout: Optional[float] = None,
        on_update: Optional[Callable[[StreamSession], None]] = None,
    ):
        self._client = http_client
        self.relay_url = relay_url or settings.relay_url
        self.max_code_length = max_code_length or settings.max_code_length
        self.max_response_size = max_response_size or settings.max_response_size
        self.stream_timeout = stream_timeout or settings.stream_timeout_seconds
        self.on_update = on_update

        self._session: Optional[StreamSession] = None
        self._output = ""
        self._message: Optional[str] = None

    @property
    def output(self) -> str:
        return self._output

    @property
    def message(self) -> Optional[str]:
        """User-facing status message of the latest session, if it failed."""
        return self._message

    @property
    def loading(self) -> bool:
        return self._session is not None and self._session.state is StreamState.STREAMING

    @property
    def session(self) -> Optional[StreamSession]:
        return self._session

    def clear_output(self) -> None:
        self._output = ""
        self._message = None

    def cancel(self) -> bool:
        """Cancel the in-flight session. Returns False if nothing was cancelled."""
        if self._session is None or self._session.finished:
            return False
        return self._session.cancel(CancelReason.USER)

    async def explain(self, code: str, explain_to_child: bool = False) -> StreamSession:
        """Stream an explanation of ``code``.

        Never raises for classified failures: the returned session (and the
        consumer's ``message``) says how the session ended.
        """
        previous = self._session
        if previous is not None and not previous.finished:
            previous.cancel(CancelReason.SUPERSEDED)

        session = StreamSession(controller=CancellationController(self.stream_timeout))
        self._session = session
        self._output = ""
        self._message = None

        local_error = self._check_code(code)
        if local_error is not None:
            self._finish(session, StreamState.FAILED, FailureReason.INVALID_INPUT, local_error)
            return session

        request = ExplainRequest(code=code, explain_to_child=explain_to_child)
        session.state = StreamState.STREAMING
        self._notify(session)
        session.controller.arm()
        try:
            await self._run(session, request)
        except CancelledByUserError:
            self._finish(session, StreamState.CANCELLED, None, CancelledByUserError.user_message)
        except StreamTimeoutError as e:
            self._fail(session, FailureReason.TIMEOUT, e)
        except OversizedResponseError as e:
            self._fail(session, FailureReason.OVERSIZED, e)
        except NetworkFailureError as e:
            self._fail(session, FailureReason.NETWORK, e)
        except RelayRejectedError as e:
            self._fail(session, FailureReason.REJECTED, e)
        except Exception:
            logger.exception("Explanation stream failed unexpectedly")
            self._finish(session, StreamState.FAILED, FailureReason.ERROR, GENERIC_FAILURE_MESSAGE)
        else:
            self._finish(session, StreamState.COMPLETED, None, None)
        finally:
            session.controller.disarm()
            if session.reader is not None:
                await session.reader.release()
        return session

    def _check_code(self, code: str) -> Optional[str]:
        if not code.strip():
            return "Error: Code cannot be empty"
        if len(code) > self.max_code_length:
            return f"Error: Code too long. Maximum {self.max_code_length} characters allowed."
        return None

    async def _run(self, session: StreamSession, request: ExplainRequest) -> None:
        token = session.abort_signal
        http_request = self._client.build_request(
            "POST",
            self.relay_url,
            json=request.to_wire(),
            headers={"Accept": "text/event-stream"},
        )
        try:
            response = await token.guard(
                self._client.send(http_request, stream=True), discard=_close_response
            )
        except httpx.HTTPError as e:
            raise NetworkFailureError(type(e).__name__) from e

        reader = StreamReader(response)
        session.reader = reader
        try:
            if not response.is_success:
                message = await self._read_error_message(session)
                raise RelayRejectedError(response.status_code, message)

            parser = SSEDeltaParser()
            while True:
                token.raise_if_cancelled()
                chunk = await token.guard(reader.read())
                if chunk is None:
                    break
                session.response_byte_count += len(chunk)
                if session.response_byte_count > self.max_response_size:
                    raise OversizedResponseError(self.max_response_size)
                for delta in parser.feed(chunk):
                    self._append(session, delta)
            for delta in parser.flush():
                self._append(session, delta)
        except httpx.HTTPError as e:
            raise NetworkFailureError(type(e).__name__) from e
        finally:
            await reader.release()

    async def _read_error_message(self, session: StreamSession) -> str:
        body = b""
        while len(body) < MAX_ERROR_BODY_BYTES:
            chunk = await session.abort_signal.guard(session.reader.read())
            if chunk is None:
                break
            body += chunk
        return body[:MAX_ERROR_BODY_BYTES].decode("utf-8", errors="replace").strip()

    def _append(self, session: StreamSession, delta: str) -> None:
        clean = sanitize_delta(delta)
        if not clean:
            return
        session.accumulated_output += clean
        if session is self._session:
            self._output = session.accumulated_output
            self._notify(session)

    def _fail(self, session: StreamSession, reason: FailureReason, error: StreamError) -> None:
        logger.warning(
            f"Explanation stream failed: {reason.value}",
            extra={"detail": error.detail, "bytes_received": session.response_byte_count},
        )
        self._finish(session, StreamState.FAILED, reason, error.user_message)

    def _finish(
        self,
        session: StreamSession,
        state: StreamState,
        failure: Optional[FailureReason],
        message: Optional[str],
    ) -> None:
        if session.finished:
            return
        session.state = state
        session.failure = failure
        session.message = message
        if session is self._session:
            self._message = message
            self._notify(session)

    def _notify(self, session: StreamSession) -> None:
        if self.on_update is not None:
            self.on_update(session)
