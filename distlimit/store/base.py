"""Atomic store capability interface.

Every limiter talks to the shared key-value store through this interface.
Implementations must execute ``eval_script`` as one indivisible step: no
other client may observe or interleave with the script's intermediate state.
"""

from abc import ABC, abstractmethod
from typing import Any, Mapping, Sequence


class AtomicStore(ABC):
    """Abstract base class for atomic store backends.

    All methods are coroutines and raise ``StoreError`` subclasses when the
    backend cannot complete the operation.
    """

    @abstractmethod
    async def get(self, key: str) -> bytes | None:
        """Retrieve a raw value.

        Args:
            key: The key to look up.

        Returns:
            The stored value as bytes, or None if the key does not exist.
        """
        pass

    @abstractmethod
    async def set(
        self,
        key: str,
        value: bytes | str | int,
        *,
        px: int | None = None,
        nx: bool = False,
    ) -> bool:
        """Store a value.

        Args:
            key: The key.
            value: The value to store.
            px: Optional expiry in milliseconds.
            nx: Only set the key if it does not already exist.

        Returns:
            True if the value was written.
        """
        pass

    @abstractmethod
    async def delete(self, *keys: str) -> int:
        """Remove keys and return how many existed."""
        pass

    @abstractmethod
    async def incr_with_expiry(self, key: str, expiry_ms: int) -> int:
        """Atomically increment a counter.

        The expiry is applied only when this call created the counter.

        Returns:
            The post-increment value.
        """
        pass

    @abstractmethod
    async def hgetall(self, key: str) -> dict[str, str]:
        """Read every field of a hash. Missing keys read as an empty dict."""
        pass

    @abstractmethod
    async def hset_with_expiry(
        self, key: str, mapping: Mapping[str, Any], expiry_ms: int
    ) -> None:
        """Atomically write hash fields and set the key's expiry."""
        pass

    @abstractmethod
    async def eval_script(
        self, script: str, keys: Sequence[str], args: Sequence[Any]
    ) -> Any:
        """Execute a Lua script atomically.

        Args:
            script: Lua source.
            keys: Values for ``KEYS``.
            args: Values for ``ARGV``.

        Returns:
            The script reply with bytes decoded to str.
        """
        pass

    @abstractmethod
    async def ping(self) -> bool:
        """Check connectivity to the store."""
        pass

    async def close(self) -> None:
        """Release connections held by the store."""
        return None
