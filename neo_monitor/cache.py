"""Advisory JSON cache in front of the NeoWs API.

Nothing here raises: a failed read is a miss and a failed write is dropped.
Expiry is left to Redis (``SET ... EX``).
"""
import json
import logging
from typing import Any, Optional

from redis.asyncio import Redis

from .logging_utils import log_event
from .metrics import CACHE_EVENTS
from .outcome import Outcome

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 15 * 60


def feed_cache_key(start_date: str, end_date: str) -> str:
    return f"neo:feed:{start_date}:{end_date}"


def lookup_cache_key(neo_id: str) -> str:
    return f"neo:lookup:{neo_id}"


class NeoCache:
    def __init__(self, client: Optional[Redis], ttl_seconds: int = DEFAULT_TTL_SECONDS):
        self.client = client
        self.ttl_seconds = ttl_seconds

    @classmethod
    def from_url(cls, url: str, *, ttl_seconds: int = DEFAULT_TTL_SECONDS, socket_timeout: float = 1.0) -> "NeoCache":
        client = Redis.from_url(
            url,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
        )
        return cls(client, ttl_seconds=ttl_seconds)

    @classmethod
    def disabled(cls) -> "NeoCache":
        return cls(None)

    async def get_cached(self, key: str) -> Outcome[Optional[Any]]:
        if self.client is None:
            return Outcome.fallback(None, "cache_disabled")
        try:
            raw = await self.client.get(key)
        except Exception as exc:  # any store failure is a miss
            CACHE_EVENTS.labels(event="error").inc()
            log_event(logger, "cache.degraded", "Cache read failed, falling back to upstream",
                      level="warning", key=key, error=type(exc).__name__)
            return Outcome.fallback(None, "cache_unavailable")

        if raw is None:
            CACHE_EVENTS.labels(event="miss").inc()
            log_event(logger, "cache.miss", "Cache miss", level="debug", key=key)
            return Outcome(None)
        try:
            value = json.loads(raw)
        except (TypeError, ValueError):
            CACHE_EVENTS.labels(event="error").inc()
            log_event(logger, "cache.degraded", "Discarding undecodable cache entry",
                      level="warning", key=key)
            return Outcome.fallback(None, "cache_corrupt")

        CACHE_EVENTS.labels(event="hit").inc()
        log_event(logger, "cache.hit", "Cache hit", key=key)
        return Outcome(value)

    async def set_cache(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> Outcome[None]:
        if self.client is None:
            return Outcome.fallback(None, "cache_disabled")
        ttl = ttl_seconds or self.ttl_seconds
        try:
            await self.client.set(key, json.dumps(value), ex=ttl)
        except Exception as exc:  # writes are best-effort
            CACHE_EVENTS.labels(event="store_error").inc()
            log_event(logger, "cache.store_failed", "Cache write dropped",
                      level="warning", key=key, error=type(exc).__name__)
            return Outcome.fallback(None, "cache_unavailable")
        return Outcome(None)

    async def aclose(self) -> None:
        if self.client is not None:
            await self.client.aclose()
