"""Custom exceptions for the relay application.

Every exception here is resolved at the HTTP boundary into a plain-text
response carrying ``status_code`` and ``message``. Messages are written for
end users and never include internal detail.
"""


class RelayException(Exception):
    """Base class for relay exceptions with HTTP status code.

    Subclasses define their ``status_code`` and ``error_kind`` for
    consistent response mapping and log classification.
    """
    status_code: int = 500
    error_kind: str = "internal"

    def __init__(self, message: str = "Internal server error"):
        self.message = message
        super().__init__(message)


class ConfigurationError(RelayException):
    """Raised when the upstream credential is not configured.

    Maps to HTTP 503 Service Unavailable.
    """
    status_code = 503
    error_kind = "configuration"

    def __init__(self, message: str = "Service temporarily unavailable"):
        super().__init__(message)


class RateLimitedError(RelayException):
    """Raised when a client exceeds its request allowance for the window.

    Maps to HTTP 429 Too Many Requests.
    """
    status_code = 429
    error_kind = "rate_limited"

    def __init__(
        self,
        retry_after: int | None = None,
        message: str = "Too many requests. Please try again later.",
    ):
        self.retry_after = retry_after
        super().__init__(message)


class MalformedInputError(RelayException):
    """Base class for request bodies that fail validation.

    Maps to HTTP 400 Bad Request.
    """
    status_code = 400
    error_kind = "malformed_input"


class InvalidContentTypeError(MalformedInputError):
    def __init__(self, message: str = "Invalid content type"):
        super().__init__(message)


class InvalidJsonError(MalformedInputError):
    def __init__(self, message: str = "Invalid JSON format"):
        super().__init__(message)


class InvalidShapeError(MalformedInputError):
    def __init__(self, message: str = "Invalid request format"):
        super().__init__(message)


class EmptyCodeError(MalformedInputError):
    def __init__(self, message: str = "Code cannot be empty"):
        super().__init__(message)


class PayloadTooLargeError(RelayException):
    """Base class for oversized requests.

    Maps to HTTP 413 Payload Too Large.
    """
    status_code = 413
    error_kind = "payload_too_large"


class RequestTooLargeError(PayloadTooLargeError):
    def __init__(self, message: str = "Request too large"):
        super().__init__(message)


class CodeTooLongError(PayloadTooLargeError):
    """Raised when the code exceeds the configured character limit."""

    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"Code too long. Maximum {limit} characters allowed.")


class UpstreamError(RelayException):
    """Raised when the completion provider fails or is unreachable.

    The upstream status is kept for server-side logging only; the caller
    sees a generic message. Maps to HTTP 500.
    """
    status_code = 500
    error_kind = "upstream"

    def __init__(
        self,
        upstream_status: int | None = None,
        message: str = "Failed to process request",
    ):
        self.upstream_status = upstream_status
        super().__init__(message)
