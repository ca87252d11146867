from typing import Any, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from distlimit.core.utils import parse_duration


class Settings(BaseSettings):
    """Library settings loaded from environment variables.

    All settings can be configured via ``DISTLIMIT_*`` environment variables
    or a .env file. Durations accept milliseconds or strings like "10 s".
    """

    # Redis settings
    redis_url: str = "redis://localhost:6379/0"
    store_timeout_seconds: Optional[float] = 2.0  # Per-operation timeout, None disables

    # Prepended to every limiter prefix built by the factory
    key_prefix: str = "ratelimit"

    # Fixed window defaults
    fixed_window_max_requests: int = 60
    fixed_window_window: int = 60_000

    # Token bucket defaults
    token_bucket_capacity: int = 100
    token_bucket_interval: int = 60_000
    token_bucket_take_rate: int = 1
    token_bucket_refill_rate: Optional[float] = None
    token_bucket_window_type: str = "fixed"  # fixed | sliding

    # Concurrency defaults
    concurrency_max_requests: int = 10
    concurrency_timeout: int = 30_000  # Slot TTL, also the leak-recovery horizon

    # If True, the middleware denies requests when the store is unavailable
    fail_closed: bool = False

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "text"  # text | structured | json

    @field_validator(
        "fixed_window_window",
        "token_bucket_interval",
        "concurrency_timeout",
        mode="before",
    )
    @classmethod
    def normalize_duration(cls, v: Any) -> int:
        """Accept duration strings and convert them to milliseconds."""
        return parse_duration(v)

    @field_validator("fixed_window_window", "token_bucket_interval", "concurrency_timeout")
    @classmethod
    def validate_duration_positive(cls, v: int) -> int:
        """Validate durations are positive."""
        if v <= 0:
            raise ValueError("Durations must be positive")
        return v

    @field_validator(
        "token_bucket_capacity",
        "token_bucket_take_rate",
        "concurrency_max_requests",
    )
    @classmethod
    def validate_limit_positive(cls, v: int) -> int:
        """Validate limit values are positive."""
        if v < 1:
            raise ValueError("Limit values must be at least 1")
        return v

    @field_validator("fixed_window_max_requests")
    @classmethod
    def validate_max_requests(cls, v: int) -> int:
        """Zero is allowed and rejects every request."""
        if v < 0:
            raise ValueError("fixed_window_max_requests must not be negative")
        return v

    @field_validator("store_timeout_seconds")
    @classmethod
    def validate_timeout_positive(cls, v: Optional[float]) -> Optional[float]:
        """Validate the store timeout is positive when set."""
        if v is not None and v <= 0:
            raise ValueError("store_timeout_seconds must be positive")
        return v

    @field_validator("token_bucket_window_type")
    @classmethod
    def validate_window_type(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in ("fixed", "sliding"):
            raise ValueError("token_bucket_window_type must be 'fixed' or 'sliding'")
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in ("text", "structured", "json"):
            raise ValueError("log_format must be one of: text, structured, json")
        return v

    model_config = SettingsConfigDict(
        env_prefix="DISTLIMIT_", env_file=".env", extra="ignore"
    )


# Global settings instance
settings = Settings()
