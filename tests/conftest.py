"""Shared fixtures and helpers for relay tests."""

import json
from typing import Iterator
from unittest.mock import patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from relay.app.core.config import settings

UPSTREAM_URL = "https://api.openai.com/v1/chat/completions"


def sse_event(content: str) -> str:
    """One OpenAI-style streaming chunk carrying ``content``."""
    payload = {"choices": [{"index": 0, "delta": {"content": content}}]}
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


def sse_body(*contents: str, done: bool = True) -> bytes:
    """A complete SSE body with one event per delta and the end sentinel."""
    body = "".join(sse_event(c) for c in contents)
    if done:
        body += "data: [DONE]\n\n"
    return body.encode("utf-8")


@pytest.fixture
def relay_settings() -> Iterator[None]:
    """Deterministic limits and a configured upstream key."""
    with patch.object(settings, "openai_api_key", "sk-test"), \
         patch.object(settings, "openai_base_url", "https://api.openai.com/v1"), \
         patch.object(settings, "max_code_length", 10_000), \
         patch.object(settings, "max_request_size", 50_000), \
         patch.object(settings, "rate_limit_max_requests", 10), \
         patch.object(settings, "rate_limit_window_seconds", 60.0):
        yield


@pytest.fixture
def app(relay_settings) -> FastAPI:
    from relay.app.main import create_app
    return create_app()


@pytest.fixture
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
