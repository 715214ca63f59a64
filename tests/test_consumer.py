"""Tests for the client-side explanation stream consumer."""

import asyncio
import json

import httpx
import pytest
import pytest_asyncio

from relay.client.cancellation import CancelReason
from relay.client.consumer import ExplainStreamConsumer, FailureReason, StreamState
from relay.client.exceptions import (
    CancelledByUserError,
    NetworkFailureError,
    OversizedResponseError,
    StreamTimeoutError,
)

from tests.conftest import sse_body, sse_event

RELAY_URL = "http://relay.test/api/explain"


class ScriptedStream(httpx.AsyncByteStream):
    """Response body that yields fixed chunks, then optionally fails or hangs."""

    def __init__(self, chunks, error=None, hang=False):
        self.chunks = chunks
        self.error = error
        self.hang = hang
        self.closed = 0

    async def __aiter__(self):
        for chunk in self.chunks:
            yield chunk
            await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        if self.hang:
            await asyncio.Event().wait()

    async def aclose(self):
        self.closed += 1


class FakeRelay:
    """MockTransport handler that records requests and replays a script."""

    def __init__(self):
        self.requests = []
        self.responses = []

    def stream(self, chunks, status_code=200, **kwargs):
        stream = ScriptedStream(chunks, **kwargs)
        self.responses.append((status_code, stream))
        return stream

    def fail_with(self, error):
        self.responses.append(error)

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        scripted = self.responses.pop(0)
        if isinstance(scripted, Exception):
            raise scripted
        status_code, stream = scripted
        return httpx.Response(status_code, stream=stream)


@pytest.fixture
def relay():
    return FakeRelay()


@pytest_asyncio.fixture
async def http_client(relay):
    async with httpx.AsyncClient(transport=httpx.MockTransport(relay)) as client:
        yield client


@pytest.fixture
def updates():
    return []


@pytest.fixture
def consumer(http_client, updates):
    return ExplainStreamConsumer(
        http_client,
        RELAY_URL,
        max_code_length=100,
        max_response_size=10_000,
        stream_timeout=5,
        on_update=lambda session: updates.append((session.state, session.accumulated_output)),
    )


async def wait_for_output(consumer, text):
    for _ in range(200):
        if consumer.output == text:
            return
        await asyncio.sleep(0.005)
    raise AssertionError(f"output never reached {text!r}: {consumer.output!r}")


class TestCompletedStream:
    @pytest.mark.asyncio
    async def test_accumulates_deltas(self, consumer, relay, updates):
        stream = relay.stream([sse_event("Hel").encode(), sse_event("lo").encode(), b"data: [DONE]\n\n"])

        session = await consumer.explain("print('hi')", explain_to_child=True)

        assert session.state is StreamState.COMPLETED
        assert consumer.output == "Hello"
        assert consumer.message is None
        assert consumer.loading is False
        assert stream.closed == 1
        assert session.reader.release_count == 1
        assert updates[0] == (StreamState.STREAMING, "")
        assert (StreamState.STREAMING, "Hel") in updates
        assert updates[-1] == (StreamState.COMPLETED, "Hello")

    @pytest.mark.asyncio
    async def test_posts_wire_format(self, consumer, relay):
        relay.stream([sse_body("ok")])

        await consumer.explain("x = 1", explain_to_child=True)

        sent = relay.requests[0]
        assert sent.method == "POST"
        assert str(sent.url) == RELAY_URL
        assert json.loads(sent.content) == {"code": "x = 1", "explainToChild": True}

    @pytest.mark.asyncio
    async def test_deltas_are_sanitized(self, consumer, relay):
        relay.stream([sse_body("[link](javascript:alert(1))", "<script>x()</script>done")])

        await consumer.explain("x = 1")

        assert consumer.output == "[link](alert(1))done"

    @pytest.mark.asyncio
    async def test_byte_fragmented_stream(self, consumer, relay):
        body = sse_body("Ünï", "cødé")
        relay.stream([body[i:i + 3] for i in range(0, len(body), 3)])

        await consumer.explain("x = 1")

        assert consumer.output == "Ünïcødé"

    @pytest.mark.asyncio
    async def test_clear_output(self, consumer, relay):
        relay.stream([sse_body("text")])
        await consumer.explain("x = 1")

        consumer.clear_output()

        assert consumer.output == ""
        assert consumer.message is None


class TestLocalValidation:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("code", ["", "  \n\t"])
    async def test_empty_code_never_sent(self, consumer, relay, code):
        session = await consumer.explain(code)

        assert session.state is StreamState.FAILED
        assert session.failure is FailureReason.INVALID_INPUT
        assert consumer.message == "Error: Code cannot be empty"
        assert relay.requests == []

    @pytest.mark.asyncio
    async def test_code_too_long_never_sent(self, consumer, relay):
        session = await consumer.explain("a" * 101)

        assert session.failure is FailureReason.INVALID_INPUT
        assert consumer.message == "Error: Code too long. Maximum 100 characters allowed."
        assert relay.requests == []


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancel_mid_stream(self, consumer, relay):
        stream = relay.stream([sse_event("Hel").encode()], hang=True)

        task = asyncio.create_task(consumer.explain("x = 1"))
        await wait_for_output(consumer, "Hel")
        assert consumer.loading is True

        assert consumer.cancel() is True
        assert consumer.cancel() is False
        session = await asyncio.wait_for(task, timeout=1)

        assert session.state is StreamState.CANCELLED
        assert session.cancel_reason is CancelReason.USER
        assert consumer.message == CancelledByUserError.user_message
        assert consumer.output == "Hel"
        assert session.reader.release_count == 1
        assert stream.closed == 1

    @pytest.mark.asyncio
    async def test_cancel_when_idle(self, consumer):
        assert consumer.cancel() is False

    @pytest.mark.asyncio
    async def test_cancel_from_update_callback(self, http_client, relay):
        relay.stream([sse_event("a").encode(), sse_event("b").encode(), sse_event("c").encode()])
        holder = {}

        def on_update(session):
            if session.accumulated_output == "a":
                holder["consumer"].cancel()

        consumer = ExplainStreamConsumer(http_client, RELAY_URL, on_update=on_update)
        holder["consumer"] = consumer

        session = await consumer.explain("x = 1")

        assert session.state is StreamState.CANCELLED
        assert consumer.output == "a"

    @pytest.mark.asyncio
    async def test_timeout_is_distinct_from_cancel(self, http_client, relay):
        stream = relay.stream([sse_event("partial").encode()], hang=True)
        consumer = ExplainStreamConsumer(http_client, RELAY_URL, stream_timeout=0.05)

        session = await asyncio.wait_for(consumer.explain("x = 1"), timeout=2)

        assert session.state is StreamState.FAILED
        assert session.failure is FailureReason.TIMEOUT
        assert session.cancel_reason is CancelReason.TIMEOUT
        assert consumer.message == StreamTimeoutError.user_message
        assert stream.closed == 1

    @pytest.mark.asyncio
    async def test_new_request_supersedes_previous(self, consumer, relay):
        first_stream = relay.stream([sse_event("first").encode()], hang=True)
        relay.stream([sse_body("second")])

        first_task = asyncio.create_task(consumer.explain("a = 1"))
        await wait_for_output(consumer, "first")

        second = await consumer.explain("b = 2")
        first = await asyncio.wait_for(first_task, timeout=1)

        assert first.state is StreamState.CANCELLED
        assert first.cancel_reason is CancelReason.SUPERSEDED
        assert first_stream.closed == 1
        assert second.state is StreamState.COMPLETED
        assert consumer.session is second
        assert consumer.output == "second"
        assert consumer.message is None


class TestFailures:
    @pytest.mark.asyncio
    async def test_oversized_response(self, http_client, relay):
        stream = relay.stream([sse_event("x" * 40).encode() for _ in range(5)], hang=True)
        consumer = ExplainStreamConsumer(http_client, RELAY_URL, max_response_size=200)

        session = await consumer.explain("x = 1")

        assert session.failure is FailureReason.OVERSIZED
        assert consumer.message == OversizedResponseError.user_message
        assert session.response_byte_count > 200
        assert stream.closed == 1

    @pytest.mark.asyncio
    async def test_relay_rejection_shows_relay_message(self, consumer, relay):
        relay.stream([b"Too many requests. Please try again later."], status_code=429)

        session = await consumer.explain("x = 1")

        assert session.failure is FailureReason.REJECTED
        assert consumer.message == "Request failed: Too many requests. Please try again later."
        assert consumer.output == ""

    @pytest.mark.asyncio
    async def test_connect_failure(self, consumer, relay):
        relay.fail_with(httpx.ConnectError("connection refused"))

        session = await consumer.explain("x = 1")

        assert session.failure is FailureReason.NETWORK
        assert consumer.message == NetworkFailureError.user_message
        assert session.reader is None

    @pytest.mark.asyncio
    async def test_connection_dropped_mid_stream(self, consumer, relay):
        stream = relay.stream([sse_event("par").encode()], error=httpx.ReadError("reset"))

        session = await consumer.explain("x = 1")

        assert session.failure is FailureReason.NETWORK
        assert consumer.output == "par"
        assert stream.closed == 1

    @pytest.mark.asyncio
    async def test_unexpected_error_is_generic(self, consumer, relay):
        relay.fail_with(RuntimeError("internal detail"))

        session = await consumer.explain("x = 1")

        assert session.failure is FailureReason.ERROR
        assert "internal detail" not in consumer.message
        assert consumer.message.startswith("An error occurred")
