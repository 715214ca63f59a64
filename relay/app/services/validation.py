"""Input validation for explanation requests.

Pure functions, applied in order with the first failure winning:

1. content type declares JSON
2. declared content length within the request-size ceiling
3. body parses as JSON (and its actual size is within the ceiling)
4. body has a string ``code`` and a boolean ``explainToChild``
5. code is non-empty after trimming
6. code length within the character limit

The validated request carries a sanitized copy of the code.
"""

import json
from typing import Any, Optional

from pydantic import ValidationError

from relay.app.core.sanitize import sanitize_code
from relay.app.exceptions import (
    CodeTooLongError,
    EmptyCodeError,
    InvalidContentTypeError,
    InvalidJsonError,
    InvalidShapeError,
    RequestTooLargeError,
)
from relay.app.models import ExplainRequest

WIRE_FIELDS = frozenset({"code", "explainToChild"})


def check_content_type(content_type: Optional[str]) -> None:
    if not content_type or "application/json" not in content_type.lower():
        raise InvalidContentTypeError()


def check_declared_length(content_length: Optional[str], max_request_size: int) -> None:
    """Reject a declared Content-Length above the ceiling.

    A missing or unparsable header is left to the body-size check.
    """
    if not content_length:
        return
    try:
        size = int(content_length)
    except ValueError:
        return
    if size > max_request_size:
        raise RequestTooLargeError()


def check_headers(
    content_type: Optional[str],
    content_length: Optional[str],
    max_request_size: int,
) -> None:
    """Header checks that run before the body is read."""
    check_content_type(content_type)
    check_declared_length(content_length, max_request_size)


def parse_json_body(body: bytes, max_request_size: int) -> Any:
    if len(body) > max_request_size:
        raise RequestTooLargeError()
    try:
        return json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise InvalidJsonError()


def validate_payload(payload: Any, max_code_length: int) -> ExplainRequest:
    """Validate a parsed JSON payload into a sanitized ExplainRequest.

    Only the wire names are accepted; ``explain_to_child`` is not an alias
    for ``explainToChild`` on input.
    """
    if not isinstance(payload, dict) or not WIRE_FIELDS.issubset(payload):
        raise InvalidShapeError()
    try:
        request = ExplainRequest.model_validate(payload)
    except ValidationError:
        raise InvalidShapeError()
    if not _is_encodable(request.code):
        raise InvalidShapeError()

    if not request.code.strip():
        raise EmptyCodeError()
    if len(request.code) > max_code_length:
        raise CodeTooLongError(max_code_length)

    return request.model_copy(update={"code": sanitize_code(request.code)})


def _is_encodable(text: str) -> bool:
    # JSON escapes can decode to lone surrogates, which cannot be re-encoded upstream
    try:
        text.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


def validate_body(body: bytes, *, max_request_size: int, max_code_length: int) -> ExplainRequest:
    """Body checks that run once the header checks have passed."""
    payload = parse_json_body(body, max_request_size)
    return validate_payload(payload, max_code_length)


def validate_explain_request(
    content_type: Optional[str],
    content_length: Optional[str],
    body: bytes,
    *,
    max_request_size: int,
    max_code_length: int,
) -> ExplainRequest:
    """Run every check in order and return the sanitized request.

    The endpoint runs the same two stages with the body read in between.

    Raises:
        MalformedInputError: bad content type, JSON, shape, or empty code
        PayloadTooLargeError: request or code over its limit
    """
    check_headers(content_type, content_length, max_request_size)
    return validate_body(
        body, max_request_size=max_request_size, max_code_length=max_code_length
    )
