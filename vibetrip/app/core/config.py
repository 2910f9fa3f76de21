import json
import re
from typing import Annotated, Any

from pydantic import Field, field_validator
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

    # Prefer JSON, but tolerate comma/space separated values.
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

    parts = [p for p in re.split(r"[,\s]+", raw) if p]
    origins: list[str] = []
    for part in parts:
        if part == "*":
            return ["*"]
        if "://" in part:
            origins.append(part)
            continue
        origins.append(f"http://{part}")
        origins.append(f"https://{part}")

    seen: set[str] = set()
    result: list[str] = []
    for origin in origins:
        if origin in seen:
            continue
        seen.add(origin)
        result.append(origin)
    return result


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be configured via environment variables or .env file.
    """

    # Debug mode - enables detailed error responses
    debug: bool = False

    # Gemini settings
    gemini_api_key: str = ""
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_models: list[str] = [
        "gemini-2.5-flash",
        "gemini-2.0-flash",
        "gemini-1.5-flash",
    ]
    # Use the deterministic mock provider instead of the real API
    mock_provider: bool = Field(default=False, validation_alias="VIBETRIP_MOCK_PROVIDER")

    # Models used by each pipeline stage
    intent_model: str = "gemini-2.5-flash"
    discovery_model: str = "gemini-2.5-flash"
    optimization_model: str = "gemini-2.5-flash"
    refine_model: str = "gemini-2.0-flash"

    # Admin token for administrative endpoints
    admin_token: str = "change-me-in-production"

    # HTTP client connection pool settings
    httpx_connect_timeout: float = 10.0
    httpx_read_timeout: float = 60.0
    httpx_write_timeout: float = 10.0
    httpx_pool_timeout: float = 5.0
    httpx_keepalive_expiry: float = 30.0
    httpx_max_connections: int = 100
    httpx_max_keepalive_connections: int = 20

    # Request validation
    max_body_size: int = 2 * 1024 * 1024  # 2MB
    max_contents_length: int = 50000  # 50KB of serialized contents

    # Global (edge) rate limiter
    rate_limit_global_max_tokens: float = 100
    rate_limit_global_refill_rate: float = 10  # tokens per second
    rate_limit_global_window_seconds: int = 60

    # Stricter limiter for model calls
    rate_limit_gemini_max_tokens: float = 20
    rate_limit_gemini_refill_rate: float = 1
    rate_limit_gemini_window_seconds: int = 60

    rate_limit_cleanup_interval: float = 300.0  # 5 minutes

    # Circuit breakers
    breaker_gemini_failure_threshold: int = 5
    breaker_gemini_success_threshold: int = 2
    breaker_gemini_timeout: float = 60.0
    breaker_maps_failure_threshold: int = 3
    breaker_maps_success_threshold: int = 2
    breaker_maps_timeout: float = 30.0

    # Caches (max entries, TTL in seconds)
    cache_intent_max_size: int = 100
    cache_intent_ttl: float = 600.0
    cache_discovery_max_size: int = 500
    cache_discovery_ttl: float = 1800.0
    cache_places_max_size: int = 1000
    cache_places_ttl: float = 3600.0
    cache_general_max_size: int = 1000
    cache_general_ttl: float = 300.0
    cache_cleanup_interval: float = 60.0

    # Per-stage timeouts in seconds
    timeout_intent: float = 15.0
    timeout_discovery: float = 20.0
    timeout_optimization: float = 45.0
    timeout_refine: float = 30.0

    # Retry settings
    max_retries: int = 2
    backoff_base_seconds: float = 1.0
    backoff_jitter: float = 0.0  # fraction of the delay, 0 disables jitter

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "text"  # text | structured | json

    # Stage log retention for the debug endpoint
    stage_log_max_entries: int = 200

    # Idle pipeline sessions are dropped after this many seconds
    session_ttl: float = 3600.0

    cors_origins: Annotated[list[str], NoDecode] = ["*"]

    @field_validator("cors_origins", mode="before")
    @classmethod
    def decode_cors_origins(cls, v: Any) -> list[str]:
        return _parse_cors_origins(v)

    @field_validator(
        "rate_limit_global_max_tokens",
        "rate_limit_global_refill_rate",
        "rate_limit_gemini_max_tokens",
        "rate_limit_gemini_refill_rate",
    )
    @classmethod
    def validate_rate_limit_positive(cls, v: float) -> float:
        """Validate rate limit values are positive."""
        if v <= 0:
            raise ValueError("Rate limit values must be positive")
        return v

    @field_validator(
        "timeout_intent",
        "timeout_discovery",
        "timeout_optimization",
        "timeout_refine",
        "httpx_connect_timeout",
        "httpx_read_timeout",
    )
    @classmethod
    def validate_timeout_positive(cls, v: float) -> float:
        """Validate timeout values are positive."""
        if v <= 0:
            raise ValueError("Timeout values must be positive")
        return v

    @field_validator("max_retries")
    @classmethod
    def validate_max_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError("max_retries must be non-negative")
        return v

    @field_validator("backoff_jitter")
    @classmethod
    def validate_jitter(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError("backoff_jitter must be between 0 and 1")
        return v

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# Global settings instance
settings = Settings()
