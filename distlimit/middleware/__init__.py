"""HTTP integration for FastAPI / Starlette applications."""

from distlimit.middleware.rate_limit import RateLimitMiddleware, get_client_identifier

__all__ = [
    "RateLimitMiddleware",
    "get_client_identifier",
]
