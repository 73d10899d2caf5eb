import json
import logging
import threading
from datetime import datetime
from typing import Any, Callable, Dict, Optional, TypeVar

import redis

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RedisCache:
    """
    Namespaced JSON cache in Redis; every operation is a no-op when Redis is unavailable.

    Entries are tagged with the namespace generation they were computed under.
    ``bump_generation`` retires every entry at once, so a value written late by
    a worker that started before the bump is read back as a miss.
    """

    def __init__(self, namespace: str, url: Optional[str] = None, client: Optional[redis.Redis] = None) -> None:
        self.namespace = namespace
        self.client = client
        self.available = False
        if client is None:
            if not url:
                logger.warning("Redis URL missing; shared cache tier disabled")
                return
            try:
                pool = redis.ConnectionPool.from_url(
                    url,
                    max_connections=20,
                    retry_on_timeout=True,
                    socket_keepalive=True,
                    health_check_interval=30,
                )
                self.client = redis.Redis(connection_pool=pool)
            except (redis.RedisError, ValueError) as e:
                logger.error(f"Redis connection failed: {e}")
                self.client = None
                return
        try:
            self.client.ping()
            self.available = True
        except redis.RedisError as e:
            logger.error(f"Redis connection failed: {e}")
            self.client = None

    def _key(self, key: str) -> str:
        return f"sld:{self.namespace}:{key}"

    @property
    def _generation_key(self) -> str:
        # Outside the sld:<namespace>:* pattern so clear_namespace keeps it
        return f"sld:{self.namespace}#generation"

    def generation(self) -> Optional[int]:
        """Current namespace generation, or None when Redis cannot be read."""
        if not self.available:
            return None
        try:
            return int(self.client.get(self._generation_key) or 0)
        except (redis.RedisError, ValueError) as e:
            logger.debug(f"Redis generation read failed for {self.namespace}: {e}")
            return None

    def bump_generation(self) -> None:
        if not self.available:
            return
        try:
            self.client.incr(self._generation_key)
        except redis.RedisError as e:
            logger.warning(f"Redis generation bump failed for {self.namespace}: {e}")

    def get(self, key: str) -> Optional[Any]:
        if not self.available:
            return None
        try:
            raw, current = self.client.mget([self._key(key), self._generation_key])
            if not raw:
                return None
            entry = json.loads(raw)
            current = int(current or 0)
        except (redis.RedisError, ValueError) as e:
            logger.debug(f"Redis get failed for {key}: {e}")
            return None
        if not isinstance(entry, dict) or entry.get("generation") != current:
            return None
        return entry.get("value")

    def set(self, key: str, value: Any, generation: int, ttl: int = 900) -> None:
        if not self.available:
            return
        entry = {"generation": generation, "value": value}
        try:
            self.client.set(self._key(key), json.dumps(entry, default=str), ex=ttl)
        except redis.RedisError as e:
            logger.debug(f"Redis set failed for {key}: {e}")

    def delete(self, key: str) -> None:
        if not self.available:
            return
        try:
            self.client.delete(self._key(key))
        except redis.RedisError as e:
            logger.warning(f"Redis delete failed for {key}: {e}")

    def clear_namespace(self) -> int:
        """Delete every key of this namespace; returns the number removed."""
        if not self.available:
            return 0
        removed = 0
        try:
            for key in self.client.scan_iter(match=self._key("*")):
                removed += self.client.delete(key)
        except redis.RedisError as e:
            logger.warning(f"Redis namespace clear failed for {self.namespace}: {e}")
        return removed


class StatsCache:
    """
    Process-wide cache for derived statistics.

    Values are JSON-compatible (dicts/lists). The in-process slots are guarded
    by a lock; a generation counter makes sure a value computed before an
    invalidation is never stored after it. When a reachable ``RedisCache`` is
    attached, values live there instead so several API workers share them,
    and the generation lives in Redis too so an invalidation by any process
    retires values other processes are still computing.
    """

    def __init__(self, shared: Optional[RedisCache] = None, ttl_seconds: int = 86400) -> None:
        self._lock = threading.Lock()
        self._slots: Dict[str, Any] = {}
        self._generation = 0
        self.shared = shared if shared is not None and shared.available else None
        self.ttl_seconds = ttl_seconds
        self.hits = 0
        self.misses = 0
        self.invalidated_at: Optional[datetime] = None

    @property
    def generation(self) -> int:
        return self._generation

    def get(self, key: str) -> Optional[Any]:
        if self.shared is not None:
            # Redis is the source of truth so an invalidation in another worker is seen here
            return self.shared.get(key)
        with self._lock:
            return self._slots.get(key)

    def get_or_compute(self, key: str, compute: Callable[[], T]) -> T:
        cached = self.get(key)
        if cached is not None:
            self.hits += 1
            return cached

        self.misses += 1
        if self.shared is not None:
            generation = self.shared.generation()
            value = compute()
            if generation is not None:
                self.shared.set(key, value, generation, ttl=self.ttl_seconds)
            return value

        with self._lock:
            generation = self._generation
        value = compute()
        with self._lock:
            if generation != self._generation:
                # An invalidation raced this computation; serve it but do not keep it
                logger.debug(f"Discarding stale computation for {key}")
                return value
            self._slots[key] = value
        return value

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._generation += 1
            self._slots.pop(key, None)
        if self.shared is not None:
            self.shared.bump_generation()
            self.shared.delete(key)

    def invalidate_all(self) -> None:
        with self._lock:
            self._generation += 1
            cleared = len(self._slots)
            self._slots.clear()
            self.invalidated_at = datetime.utcnow()
        if self.shared is not None:
            self.shared.bump_generation()
            self.shared.clear_namespace()
        logger.info(f"Statistics cache invalidated ({cleared} entries)")

    def status(self) -> Dict[str, Any]:
        with self._lock:
            keys = sorted(self._slots)
        return {
            "keys": keys,
            "hits": self.hits,
            "misses": self.misses,
            "generation": self._generation,
            "shared_tier": "redis" if self.shared is not None else "disabled",
            "invalidated_at": self.invalidated_at.isoformat() if self.invalidated_at else None,
        }


_stats_cache: Optional[StatsCache] = None
_stats_cache_lock = threading.Lock()


def get_stats_cache() -> StatsCache:
    """Return the process-wide statistics cache, attaching Redis when configured."""
    global _stats_cache
    with _stats_cache_lock:
        if _stats_cache is None:
            from app.core.config import get_settings
            settings = get_settings()
            shared = RedisCache("stats", url=settings.redis_url) if settings.redis_url else None
            _stats_cache = StatsCache(shared=shared, ttl_seconds=settings.stats_cache_ttl_seconds)
        return _stats_cache
