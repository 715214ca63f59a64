import json
import re
from typing import Annotated, Any

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _parse_cors_origins(raw: Any) -> list[str]:
    if raw is None:
        return []
    if isinstance(raw, list):
        items = [str(v).strip() for v in raw]
        return [v for v in items if v]

    raw = str(raw).strip()
    if not raw or raw == "[]":
        return []
    if raw == "*":
        return ["*"]

    # Prefer JSON, but tolerate comma/space separated values so a
    # misconfigured deployment still starts.
    if raw.startswith(("[", '"')):
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, list):
            items = [str(v).strip() for v in parsed]
            return [v for v in items if v]
        if isinstance(parsed, str):
            raw = parsed.strip()
            if raw == "*":
                return ["*"]

    origins: list[str] = []
    for part in re.split(r"[,\s]+", raw):
        if not part:
            continue
        if part == "*":
            return ["*"]
        if part not in origins:
            origins.append(part)
    return origins


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be configured via environment variables or .env file.
    """

    # Debug mode - enables detailed error logging
    debug: bool = False

    # Upstream completion provider. An empty key is not a startup error:
    # the relay answers 503 until one is configured.
    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4o-mini"
    openai_max_tokens: int = 2000

    # HTTP Client connection pool settings
    httpx_connect_timeout: float = 10.0
    httpx_read_timeout: float = 60.0  # Gap allowed between streamed chunks
    httpx_write_timeout: float = 10.0
    httpx_pool_timeout: float = 5.0
    httpx_keepalive_expiry: float = 30.0
    httpx_max_connections: int = 100
    httpx_max_keepalive_connections: int = 20

    # Request limits
    max_code_length: int = 10_000  # characters
    max_request_size: int = 50_000  # bytes

    # Rate limiting settings (fixed window, per client identifier)
    rate_limit_window_seconds: float = 60.0
    rate_limit_max_requests: int = 10
    rate_limit_max_entries: int = 10_000
    rate_limit_sweep_interval_seconds: float = 60.0

    # Client-side stream limits
    max_response_size: int = 1_000_000  # bytes
    stream_timeout_seconds: float = 30.0
    relay_url: str = "http://localhost:8000/api/explain"

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "text"  # text | structured | json

    # Use NoDecode so values like "example.com" don't crash JSON parsing
    cors_origins: Annotated[list[str], NoDecode] = ["*"]

    @field_validator("cors_origins", mode="before")
    @classmethod
    def decode_cors_origins(cls, v: Any) -> list[str]:
        return _parse_cors_origins(v)

    @field_validator(
        "openai_max_tokens",
        "max_code_length",
        "max_request_size",
        "rate_limit_max_requests",
        "rate_limit_max_entries",
        "max_response_size",
    )
    @classmethod
    def validate_limit_positive(cls, v: int) -> int:
        """Validate size and count limits are positive."""
        if v < 1:
            raise ValueError("limit values must be at least 1")
        return v

    @field_validator(
        "httpx_connect_timeout",
        "httpx_read_timeout",
        "httpx_write_timeout",
        "httpx_pool_timeout",
        "rate_limit_window_seconds",
        "rate_limit_sweep_interval_seconds",
        "stream_timeout_seconds",
    )
    @classmethod
    def validate_duration_positive(cls, v: float) -> float:
        """Validate timeouts and windows are positive."""
        if v <= 0:
            raise ValueError("durations must be positive")
        return v

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# Global settings instance
settings = Settings()
