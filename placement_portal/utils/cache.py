"""
Redis-backed memo for read-heavy analytics queries.

Entries live under `analytics:<metric>:<filters>` with a SETEX expiry, so
different filter combinations never share a value and every API process
sees the same cached result. Values are stored as JSON.

If Redis is unreachable the cache is skipped and queries hit the database.
"""

import json
import logging
from functools import lru_cache
from typing import Any, Callable, Optional

import redis

from placement_portal.core.config import get_settings

logger = logging.getLogger(__name__)

_MISSING = object()


class AnalyticsCache:
    """Analytics results in Redis with a fixed TTL."""

    def __init__(self, client: redis.Redis, ttl_seconds: int, prefix: str = "analytics"):
        self.client = client
        self.ttl_seconds = int(ttl_seconds)
        self.prefix = prefix

    def make_key(self, metric: str, filters: Optional[dict] = None) -> str:
        parts = [f"{k}={v}" for k, v in sorted((filters or {}).items())]
        return f"{self.prefix}:{metric}:{'&'.join(parts)}"

    def get(self, metric: str, filters: Optional[dict] = None, default: Any = None) -> Any:
        key = self.make_key(metric, filters)
        try:
            cached = self.client.get(key)
        except redis.RedisError as e:
            logger.warning("Analytics cache read failed for %s: %s", key, e)
            return default
        if cached is None:
            return default
        return json.loads(cached)

    def set(self, metric: str, filters: Optional[dict], value: Any) -> None:
        key = self.make_key(metric, filters)
        try:
            self.client.setex(key, self.ttl_seconds, json.dumps(value, default=str))
        except redis.RedisError as e:
            logger.warning("Analytics cache write failed for %s: %s", key, e)

    def get_or_compute(
        self,
        metric: str,
        filters: Optional[dict],
        compute: Callable[[], Any],
        force: bool = False
    ) -> Any:
        """Return the cached value, or compute and store it (always when `force`)."""
        if not force:
            value = self.get(metric, filters, default=_MISSING)
            if value is not _MISSING:
                return value
        value = compute()
        self.set(metric, filters, value)
        return value


@lru_cache()
def get_analytics_cache() -> AnalyticsCache:
    """FastAPI dependency - process-wide analytics cache."""
    settings = get_settings()
    client = redis.Redis.from_url(
        settings.redis_url,
        decode_responses=True,
        socket_timeout=5,
        socket_connect_timeout=5,
    )
    return AnalyticsCache(client, settings.analytics_cache_ttl_seconds)
