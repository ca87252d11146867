"""Redis implementation of the atomic store.

Wraps ``redis.asyncio`` and translates Redis failures into the library's
store errors. Every operation is bounded by an optional timeout so a stalled
connection surfaces as ``StoreTimeout`` instead of hanging the caller.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Mapping, Optional, Sequence, TypeVar

import redis.asyncio as aioredis
from redis.exceptions import NoScriptError, RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from distlimit.core.config import settings
from distlimit.exceptions import StoreTimeout, StoreUnavailable
from distlimit.store.base import AtomicStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

_UNSET: Any = object()

# INCR and set the expiry only when the counter was just created
INCR_WITH_EXPIRY_SCRIPT = """
    local count = redis.call('INCR', KEYS[1])
    if count == 1 then
        redis.call('PEXPIRE', KEYS[1], tonumber(ARGV[1]))
    end
    return count
"""


def _decode(value: Any) -> Any:
    """Decode bytes in a script reply, recursing into nested lists."""
    if isinstance(value, bytes):
        return value.decode("utf-8")
    if isinstance(value, list):
        return [_decode(v) for v in value]
    return value


class RedisStore(AtomicStore):
    """Redis-backed atomic store.

    Example:
        >>> store = RedisStore(redis_url="redis://localhost:6379/0")
        >>> await store.eval_script("return 1", [], [])
        1
    """

    def __init__(
        self,
        redis_client: Optional[Any] = None,
        redis_url: Optional[str] = None,
        operation_timeout: Optional[float] = _UNSET,
    ) -> None:
        """Initialize the Redis store.

        Args:
            redis_client: Optional existing ``redis.asyncio`` client.
            redis_url: Connection URL used when no client is given.
                Defaults to ``settings.redis_url``.
            operation_timeout: Seconds allowed per store operation.
                Defaults to ``settings.store_timeout_seconds``; None disables.
        """
        self._redis = redis_client
        self._redis_url = redis_url or settings.redis_url
        if operation_timeout is _UNSET:
            operation_timeout = settings.store_timeout_seconds
        self._timeout = operation_timeout
        # Script body -> SHA1 for EVALSHA
        self._script_shas: dict[str, str] = {}

    def _get_client(self) -> Any:
        """Get or create the Redis client."""
        if self._redis is None:
            self._redis = aioredis.from_url(self._redis_url)
        return self._redis

    async def _run(
        self,
        operation: str,
        call: Callable[[], Awaitable[T]],
        key: Optional[str] = None,
    ) -> T:
        """Run one store call under the timeout and translate failures."""
        try:
            if self._timeout is None:
                return await call()
            return await asyncio.wait_for(call(), timeout=self._timeout)
        except (RedisTimeoutError, asyncio.TimeoutError) as e:
            logger.warning(
                f"Redis {operation} timed out after {self._timeout}s",
                extra={"key": key},
            )
            raise StoreTimeout(f"Redis {operation} timed out", key=key) from e
        except RedisError as e:
            logger.error(f"Redis {operation} failed: {e}", extra={"key": key})
            raise StoreUnavailable(f"Redis {operation} failed: {e}", key=key) from e

    async def get(self, key: str) -> bytes | None:
        client = self._get_client()
        return await self._run("GET", lambda: client.get(key), key)

    async def set(
        self,
        key: str,
        value: bytes | str | int,
        *,
        px: int | None = None,
        nx: bool = False,
    ) -> bool:
        client = self._get_client()
        result = await self._run(
            "SET", lambda: client.set(key, value, px=px, nx=nx), key
        )
        return bool(result)

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        client = self._get_client()
        return int(await self._run("DEL", lambda: client.delete(*keys), keys[0]))

    async def incr_with_expiry(self, key: str, expiry_ms: int) -> int:
        return int(await self.eval_script(INCR_WITH_EXPIRY_SCRIPT, [key], [expiry_ms]))

    async def hgetall(self, key: str) -> dict[str, str]:
        client = self._get_client()
        raw = await self._run("HGETALL", lambda: client.hgetall(key), key)
        return {_decode(k): _decode(v) for k, v in raw.items()}

    async def hset_with_expiry(
        self, key: str, mapping: Mapping[str, Any], expiry_ms: int
    ) -> None:
        client = self._get_client()

        async def _write() -> None:
            async with client.pipeline(transaction=True) as pipe:
                pipe.hset(key, mapping=dict(mapping))
                pipe.pexpire(key, expiry_ms)
                await pipe.execute()

        await self._run("HSET", _write, key)

    async def eval_script(
        self, script: str, keys: Sequence[str], args: Sequence[Any]
    ) -> Any:
        """Execute a Lua script atomically via EVALSHA.

        The script is loaded on first use. If Redis lost its script cache
        (restart, failover, SCRIPT FLUSH) it is reloaded and retried once.
        """
        client = self._get_client()
        key = keys[0] if keys else None

        async def _call() -> Any:
            sha = self._script_shas.get(script)
            if sha is None:
                sha = await client.script_load(script)
                self._script_shas[script] = _decode(sha)
                sha = self._script_shas[script]
            try:
                return await client.evalsha(sha, len(keys), *keys, *args)
            except NoScriptError:
                logger.debug("Lua script missing from Redis cache, reloading")
                sha = _decode(await client.script_load(script))
                self._script_shas[script] = sha
                return await client.evalsha(sha, len(keys), *keys, *args)

        return _decode(await self._run("EVALSHA", _call, key))

    async def ping(self) -> bool:
        client = self._get_client()
        return bool(await self._run("PING", lambda: client.ping()))

    async def close(self) -> None:
        """Close the Redis connection."""
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
