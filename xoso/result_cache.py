"""
Two-tier result cache.

Tier 1 is an in-process TTL map (minutes) that absorbs bursts of identical
queries. Tier 2 is an optional Redis store (30 days) shared across
processes; published results never change, so a long TTL is safe.

Only non-empty ResultSets are written. Any Redis failure behaves as a miss.
"""

import json
from threading import Lock
from typing import Any, Optional

from cachetools import TTLCache
from loguru import logger

from xoso import config
from xoso.models import ResultSet, result_set_from_dict, result_set_to_dict


def cache_key(date: str, region: Optional[str]) -> str:
    return f"lottery:{date}:{region or 'all'}"


class ResultCache:
    """
    Cache for ResultSets keyed by (DD-MM-YYYY date, region or "all").

    Construct once at startup and hand it to the ResultFetcher.
    """

    def __init__(self, memory_ttl: int = config.DEFAULT_MEMORY_CACHE_TTL_SECONDS,
                 durable_store: Any = None,
                 durable_ttl: int = config.DEFAULT_DURABLE_CACHE_TTL_SECONDS,
                 max_entries: int = 512):
        self._memory = TTLCache(maxsize=max_entries, ttl=memory_ttl)
        self._lock = Lock()
        self._store = durable_store
        self.durable_ttl = durable_ttl

    @property
    def has_durable_store(self) -> bool:
        return self._store is not None

    def get(self, date: str, region: Optional[str]) -> Optional[ResultSet]:
        """Cached ResultSet, or None on a miss in both tiers."""
        key = cache_key(date, region)

        with self._lock:
            cached = self._memory.get(key)
        if cached is not None:
            logger.debug(f"Memory cache hit: {key}")
            return cached

        results = self._durable_get(key)
        if results:
            with self._lock:
                self._memory[key] = results
            logger.debug(f"Durable cache hit: {key}")
            return results
        return None

    def put(self, date: str, region: Optional[str], results: ResultSet) -> bool:
        """Store a ResultSet in both tiers. Empty sets are ignored."""
        if not results:
            return False

        key = cache_key(date, region)
        with self._lock:
            self._memory[key] = results
        self._durable_put(key, results)
        return True

    def get_durable(self, date: str, region: Optional[str]) -> Optional[ResultSet]:
        """Durable tier only (used by prefetch to report what is persisted)."""
        return self._durable_get(cache_key(date, region)) or None

    def clear_memory(self) -> None:
        with self._lock:
            self._memory.clear()

    def _durable_get(self, key: str) -> Optional[ResultSet]:
        if self._store is None:
            return None
        try:
            payload = self._store.get(key)
        except Exception as e:
            logger.warning(f"Durable cache read failed for {key}: {e}")
            return None
        if not payload:
            return None
        try:
            if isinstance(payload, bytes):
                payload = payload.decode("utf-8")
            return result_set_from_dict(json.loads(payload))
        except (ValueError, UnicodeDecodeError) as e:
            logger.warning(f"Discarding unreadable cache entry {key}: {e}")
            return None

    def _durable_put(self, key: str, results: ResultSet) -> None:
        if self._store is None:
            return
        try:
            payload = json.dumps(result_set_to_dict(results), ensure_ascii=False)
            self._store.setex(key, self.durable_ttl, payload)
        except Exception as e:
            logger.warning(f"Durable cache write failed for {key}: {e}")


def create_durable_store(redis_url: Optional[str] = None) -> Any:
    """
    Redis client for REDIS_URL, or None when unset/unusable.
    """
    url = redis_url or config.get_redis_url()
    if not url:
        logger.info("REDIS_URL not set - durable result cache disabled")
        return None
    try:
        import redis

        client = redis.Redis.from_url(url, socket_timeout=5, socket_connect_timeout=5)
        logger.info("Durable result cache enabled (Redis)")
        return client
    except Exception as e:
        logger.error(f"Failed to create Redis client, durable cache disabled: {e}")
        return None


def create_result_cache() -> ResultCache:
    return ResultCache(
        memory_ttl=config.get_memory_cache_ttl(),
        durable_store=create_durable_store(),
        durable_ttl=config.get_durable_cache_ttl(),
    )
