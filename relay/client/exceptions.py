"""Exceptions raised while consuming an explanation stream.

Each class carries the fixed user-facing message shown for it; raw exception
text never reaches the user.
"""


class StreamError(Exception):
    """Base class for classified stream failures."""
    user_message: str = "An error occurred while processing your request. Please try again."

    def __init__(self, detail: str | None = None):
        self.detail = detail
        super().__init__(detail or self.user_message)


class CancelledByUserError(StreamError):
    """The session was cancelled explicitly or superseded by a newer one."""
    user_message = "Request was cancelled."

    def __init__(self, reason: str = "user"):
        self.reason = reason
        super().__init__(f"cancelled ({reason})")


class StreamTimeoutError(StreamError):
    """The session did not reach a terminal state within its time limit."""
    user_message = "Request timed out. Please try again with shorter code."


class OversizedResponseError(StreamError):
    """The relay sent more bytes than the response size limit allows."""
    user_message = "Response too large. Please try with shorter code."

    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"response exceeded {limit} bytes")


class NetworkFailureError(StreamError):
    """The connection to the relay failed or dropped."""
    user_message = "Network error. Please check your connection and try again."


class RelayRejectedError(StreamError):
    """The relay answered with a non-success status.

    Relay error bodies are short plain-text messages written for end users,
    so they are shown as-is.
    """

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(f"{status_code}: {message}")

    @property
    def user_message(self) -> str:  # type: ignore[override]
        return f"Request failed: {self.message}"
