"""Client-side consumer for the explain relay."""

from relay.client.cancellation import CancelReason, CancellationController, CancellationToken
from relay.client.consumer import (
    ExplainStreamConsumer,
    FailureReason,
    StreamSession,
    StreamState,
)
from relay.client.exceptions import (
    CancelledByUserError,
    NetworkFailureError,
    OversizedResponseError,
    RelayRejectedError,
    StreamError,
    StreamTimeoutError,
)
from relay.client.sse import SSEDeltaParser, SSELineDecoder

__all__ = [
    "CancelReason",
    "CancellationController",
    "CancellationToken",
    "ExplainStreamConsumer",
    "FailureReason",
    "StreamSession",
    "StreamState",
    "CancelledByUserError",
    "NetworkFailureError",
    "OversizedResponseError",
    "RelayRejectedError",
    "StreamError",
    "StreamTimeoutError",
    "SSEDeltaParser",
    "SSELineDecoder",
]
