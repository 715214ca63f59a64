"""Completion providers for the relay.

This package provides:
- Base streaming provider interface (BaseStreamingProvider)
- OpenAI-compatible implementation (OpenAIStreamingProvider)
"""

from relay.app.providers.base import BaseStreamingProvider
from relay.app.providers.openai import OpenAIStreamingProvider

__all__ = [
    "BaseStreamingProvider",
    "OpenAIStreamingProvider",
]
