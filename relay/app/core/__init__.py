"""Core utilities for the relay application."""

from relay.app.core.config import settings
from relay.app.core.logging import get_logger, setup_logging
from relay.app.core.sanitize import sanitize_code, sanitize_delta

__all__ = [
    "settings",
    "get_logger",
    "setup_logging",
    "sanitize_code",
    "sanitize_delta",
]
