"""Services package for the relay.

This package provides:
- Request validation and sanitization
- Prompt construction
"""

from relay.app.services.prompts import build_messages, build_system_prompt
from relay.app.services.validation import validate_explain_request

__all__ = [
    "build_messages",
    "build_system_prompt",
    "validate_explain_request",
]
