"""Rate limiting middleware for FastAPI / Starlette applications.

Applies a composite limiter per client. The identifier is a hash of the
bearer token when present, otherwise a hash of the client IP.
"""

import hashlib
import math
from typing import Callable, Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from distlimit.core.config import settings
from distlimit.core.logging import get_logger
from distlimit.exceptions import StoreError
from distlimit.limiters.composite import Ratelimit
from distlimit.limiters.concurrency import ConcurrencyStrategy
from distlimit.limiters.models import RateLimiterResult

logger = get_logger(__name__)

MAX_API_KEY_LENGTH = 512


def get_client_identifier(request: Request) -> str:
    """Get the rate limit identifier for the request.

    Uses the API key if available, otherwise falls back to the IP address.
    Both are hashed with SHA-256 so raw keys and addresses never reach the
    store.
    """
    auth = request.headers.get("Authorization", "")
    if auth.startswith("Bearer "):
        api_key = auth[7:].strip()[:MAX_API_KEY_LENGTH]
        # 32 hex chars (128 bits) for collision resistance
        key_hash = hashlib.sha256(api_key.encode()).hexdigest()[:32]
        return f"apikey:{key_hash}"

    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        client_ip = forwarded.split(",")[0].strip()
    else:
        client_ip = request.client.host if request.client else "unknown"

    ip_hash = hashlib.sha256(client_ip.encode()).hexdigest()[:32]
    return f"ip:{ip_hash}"


def _rate_limit_headers(results: list[RateLimiterResult]) -> dict[str, str]:
    headers: dict[str, str] = {}
    for result in results:
        headers[f"X-RateLimit-{result.name}-Limit"] = str(result.limit)
        headers[f"X-RateLimit-{result.name}-Remaining"] = str(max(0, result.remaining))
        headers[f"X-RateLimit-{result.name}-Reset"] = str(result.reset)
    return headers


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Middleware to enforce a composite rate limit on requests.

    Outcomes:
    - allowed: the request proceeds and the response carries
      ``X-RateLimit-<limiter>-*`` headers for every evaluated limiter
    - rejected: 429 with ``Retry-After`` taken from the blocking limiter
    - store failure: passes through (fail-open) or 503 (fail-closed)

    Concurrency slots acquired for the request are released once the
    response is produced, and also when a later limiter fails with a store
    error.
    """

    def __init__(
        self,
        app,
        limiter: Ratelimit,
        identifier_func: Optional[Callable[[Request], str]] = None,
        fail_closed: Optional[bool] = None,
    ):
        super().__init__(app)
        self.limiter = limiter
        self.identifier_func = identifier_func or get_client_identifier
        self.fail_closed = settings.fail_closed if fail_closed is None else fail_closed

    async def _release_slots(
        self, identifier: str, results: list[RateLimiterResult]
    ) -> None:
        """Release concurrency slots held by this request."""
        for limiter, result in zip(self.limiter.limiters, results):
            if isinstance(limiter, ConcurrencyStrategy) and result.success:
                try:
                    await limiter.release(identifier)
                except StoreError as e:
                    # The slot expires on its own after the limiter's timeout
                    logger.warning(
                        f"Failed to release concurrency slot: {e}",
                        extra={"identifier": identifier, "limiter": limiter.name},
                    )

    async def _check(self, identifier: str) -> list[RateLimiterResult]:
        """Evaluate the limiters in order, stopping at the first rejection.

        Same decision as ``Ratelimit.is_allowed``, except that a store error
        from a later limiter first gives back any slot already acquired for
        this request.
        """
        results: list[RateLimiterResult] = []
        try:
            for limiter in self.limiter.limiters:
                result = await limiter.is_allowed(identifier)
                results.append(result)
                if not result.success:
                    break
        except StoreError:
            await self._release_slots(identifier, results)
            raise
        return results

    def _handle_store_failure(self, error: StoreError) -> Optional[Response]:
        """Apply the fail-open/fail-closed policy to a store failure."""
        if self.fail_closed:
            logger.warning(
                f"Rate limiting fail-closed triggered due to {type(error).__name__}. "
                "Request denied."
            )
            return JSONResponse(
                status_code=error.status_code,
                content={
                    "error": "rate_limit_unavailable",
                    "message": "Rate limiting is temporarily unavailable.",
                },
            )
        logger.warning(
            f"Rate limiting fail-open triggered due to {type(error).__name__}. "
            "Request allowed without rate limit check."
        )
        return None

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        """Process request with rate limiting."""
        identifier = self.identifier_func(request)

        try:
            results = await self._check(identifier)
        except StoreError as e:
            denied = self._handle_store_failure(e)
            if denied is not None:
                return denied
            return await call_next(request)

        headers = _rate_limit_headers(results)
        blocked = Ratelimit.blocking_result(results)
        if blocked is not None:
            await self._release_slots(identifier, results)
            retry_after_ms = blocked.retry_after_ms
            headers["Retry-After"] = str(math.ceil(retry_after_ms / 1000))
            return JSONResponse(
                status_code=429,
                content={
                    "error": "rate_limit_exceeded",
                    "message": "Rate limit exceeded. Please try again later.",
                    "limiter": blocked.name,
                    "retry_after": retry_after_ms,
                },
                headers=headers,
            )

        try:
            response = await call_next(request)
        finally:
            await self._release_slots(identifier, results)

        for name, value in headers.items():
            response.headers[name] = value
        return response
