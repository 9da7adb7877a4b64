"""
In-process TTL cache for read API responses.

Entries expire `ttl_seconds` after they are set, and the cache holds at most
`max_entries` of them (least recently used go first). Anything that triggers a
sync (API route, scheduler job) calls invalidate() after a successful run so
readers see fresh data right away instead of waiting out the TTL.
"""
import logging
import time
from collections import OrderedDict
from typing import Any, Optional, Tuple

from newsdesk.config import get_settings

logger = logging.getLogger(__name__)


def articles_key(topic: Optional[str] = None, offset: int = 0) -> str:
    return f"articles:{topic or 'all'}:{offset or 'first'}"


def article_key(slug: str) -> str:
    return f"article:{slug}"


class ResponseCache:
    def __init__(self, ttl_seconds: float, max_entries: int = 512, clock=time.monotonic):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: "OrderedDict[str, Tuple[float, Any]]" = OrderedDict()

    def _expired(self, stored_at: float) -> bool:
        return self._clock() - stored_at >= self.ttl_seconds

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None if absent or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, value = entry
        if self._expired(stored_at):
            del self._entries[key]
            logger.debug("Cache expired for key: %s", key)
            return None
        self._entries.move_to_end(key)
        return value

    def set(self, key: str, value: Any) -> None:
        self._purge_expired()
        self._entries.pop(key, None)
        self._entries[key] = (self._clock(), value)
        while len(self._entries) > self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("Cache full, evicted key: %s", evicted)

    def _purge_expired(self) -> None:
        for key in [k for k, (stored_at, _) in self._entries.items() if self._expired(stored_at)]:
            del self._entries[key]

    def invalidate(self, key: Optional[str] = None) -> None:
        """Drop one key, or everything when no key is given."""
        if key is None:
            self._entries.clear()
            logger.info("Response cache cleared")
        else:
            self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)


_cache: Optional[ResponseCache] = None


def get_cache() -> ResponseCache:
    global _cache
    if _cache is None:
        settings = get_settings()
        _cache = ResponseCache(
            ttl_seconds=settings.cache_ttl_seconds,
            max_entries=settings.cache_max_entries,
        )
    return _cache
