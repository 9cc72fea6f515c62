"""
Response Cache - short-lived in-memory cache for upstream API responses

Entries are keyed "<source>:<query>" and expire after a fixed TTL.
The clock is injectable so tests can move time forward without sleeping.
"""

import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class ResponseCache:
    """
    Usage:
        cache = ResponseCache(ttl_seconds=300)
        pools = await cache.get_or_fetch("defillama-yields:pools", fetch_pools)
    """

    def __init__(self, ttl_seconds: float = 300, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, Tuple[float, Any]] = {}

    @staticmethod
    def make_key(source: str, query: str) -> str:
        return f"{source}:{query}"

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, value = entry
        if self._clock() - stored_at >= self.ttl_seconds:
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: Any):
        self._entries[key] = (self._clock(), value)

    def clear(self):
        self._entries.clear()

    async def get_or_fetch(self, key: str, fetcher: Callable[[], Awaitable[Any]]) -> Any:
        """
        Return the cached value for `key`, or await `fetcher` and cache its result.
        None results are not cached so a failed fetch is retried next time.
        """
        cached = self.get(key)
        if cached is not None:
            logger.debug(f"[Cache] hit {key}")
            return cached

        value = await fetcher()
        if value is not None:
            self.set(key, value)
        return value

    def __len__(self) -> int:
        return len(self._entries)
