"""Availability result caching with TTL and prefix invalidation."""

from __future__ import annotations

import json
import time
from datetime import date
from threading import RLock
from typing import Any, Callable, Mapping, Optional, Protocol

import redis
from redis.exceptions import RedisError

from availability_engine.domain.errors import CacheError
from availability_engine.utils.config import Settings, get_settings
from availability_engine.utils.logger import get_logger


logger = get_logger(__name__)

CACHE_NAMESPACE = "availability"


def build_cache_key(
    mode: str,
    params: Mapping[str, Any],
    scope: tuple[str, ...] = (),
) -> str:
    """Deterministic key: namespace, mode, invalidation scope, then sorted params.

    ``scope`` carries the month (and day for daily queries) so that
    ``delete_prefix`` can drop every entry covering an affected date.
    """
    serialized = "|".join(f"{key}={params[key]}" for key in sorted(params))
    return ":".join((CACHE_NAMESPACE, mode, *scope, serialized))


class CacheStore(Protocol):
    def get(self, key: str) -> Optional[Any]: ...

    def set(self, key: str, value: Any, ttl_seconds: int) -> None: ...

    def delete_prefix(self, prefix: str) -> int: ...

    def stats(self) -> dict[str, Any]: ...


class InMemoryCacheStore:
    """Process-local store.

    Expired entries are dropped when read, and every ``sweep_interval_seconds``
    a write also sweeps out every other expired entry.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        sweep_interval_seconds: float = 60.0,
    ) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[float, Any]] = {}
        self._lock = RLock()
        self._sweep_interval = sweep_interval_seconds
        self._next_sweep_at = clock() + sweep_interval_seconds

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        with self._lock:
            now = self._clock()
            if now >= self._next_sweep_at:
                self._sweep(now)
            self._entries[key] = (now + ttl_seconds, value)

    def _sweep(self, now: float) -> None:
        expired = [key for key, (expires_at, _) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]
        self._next_sweep_at = now + self._sweep_interval
        if expired:
            logger.debug("Swept expired cache entries | entries=%s", len(expired))

    def delete_prefix(self, prefix: str) -> int:
        with self._lock:
            doomed = [key for key in self._entries if key.startswith(prefix)]
            for key in doomed:
                del self._entries[key]
            return len(doomed)

    def stats(self) -> dict[str, Any]:
        with self._lock:
            return {"backend": "memory", "entries": len(self._entries)}


class RedisCacheStore:
    """Redis-backed store; values are stored as JSON with ``SETEX``."""

    def __init__(self, client: Optional[redis.Redis] = None, url: Optional[str] = None) -> None:
        if client is None:
            client = redis.Redis.from_url(url or get_settings().redis_url, decode_responses=True)
        self._client = client

    def get(self, key: str) -> Optional[Any]:
        try:
            raw = self._client.get(key)
        except RedisError as exc:
            raise CacheError(f"Cache get failed for {key}: {exc}") from exc
        if raw is None:
            return None
        return json.loads(raw)

    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        try:
            self._client.setex(key, ttl_seconds, json.dumps(value, default=str))
        except RedisError as exc:
            raise CacheError(f"Cache set failed for {key}: {exc}") from exc

    def delete_prefix(self, prefix: str) -> int:
        deleted = 0
        try:
            for key in self._client.scan_iter(match=f"{prefix}*"):
                deleted += int(self._client.delete(key))
        except RedisError as exc:
            raise CacheError(f"Cache prefix delete failed for {prefix}: {exc}") from exc
        return deleted

    def stats(self) -> dict[str, Any]:
        try:
            entries = sum(1 for _ in self._client.scan_iter(match=f"{CACHE_NAMESPACE}:*"))
        except RedisError as exc:
            raise CacheError(f"Cache stats failed: {exc}") from exc
        return {"backend": "redis", "entries": entries}


class AvailabilityCache:
    """Wraps a store so that cache outages degrade to uncached computation.

    Every invalidation advances ``generation``. A caller that read the
    generation before loading its snapshot passes it back to ``set``; the
    write is dropped when an invalidation ran in between, so a result built
    from pre-mutation data never outlives the mutation.
    """

    def __init__(self, store: Optional[CacheStore] = None) -> None:
        self._store: CacheStore = store or InMemoryCacheStore()
        self._lock = RLock()
        self._generation = 0
        self._counters = {
            "hits": 0,
            "misses": 0,
            "sets": 0,
            "stale_sets_skipped": 0,
            "invalidations": 0,
            "errors": 0,
        }

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    def _bump(self, counter: str, amount: int = 1) -> None:
        with self._lock:
            self._counters[counter] += amount

    def get(self, key: str) -> Optional[Any]:
        try:
            value = self._store.get(key)
        except CacheError as exc:
            self._bump("errors")
            logger.warning("Cache unavailable on get; continuing uncached | key=%s | error=%s", key, exc)
            return None
        self._bump("hits" if value is not None else "misses")
        return value

    def set(
        self,
        key: str,
        value: Any,
        ttl_seconds: int,
        generation: Optional[int] = None,
    ) -> bool:
        """Store ``value``; returns False when it was not cached."""
        with self._lock:
            if generation is not None and generation != self._generation:
                self._counters["stale_sets_skipped"] += 1
                logger.info("Skipping stale cache write | key=%s | generation=%s", key, generation)
                return False
            try:
                self._store.set(key, value, ttl_seconds)
            except CacheError as exc:
                self._counters["errors"] += 1
                logger.warning("Cache unavailable on set; result not cached | key=%s | error=%s", key, exc)
                return False
            self._counters["sets"] += 1
        return True

    def invalidate_prefix(self, prefix: str) -> int:
        with self._lock:
            self._generation += 1
        try:
            deleted = self._store.delete_prefix(prefix)
        except CacheError as exc:
            self._bump("errors")
            logger.warning("Cache invalidation failed | prefix=%s | error=%s", prefix, exc)
            return 0
        self._bump("invalidations", deleted)
        if deleted:
            logger.info("Cache invalidated | prefix=%s | entries=%s", prefix, deleted)
        return deleted

    def get_stats(self) -> dict[str, Any]:
        with self._lock:
            stats: dict[str, Any] = dict(self._counters)
        lookups = stats["hits"] + stats["misses"]
        stats["hit_rate"] = stats["hits"] / lookups if lookups else 0.0
        try:
            stats["store"] = self._store.stats()
        except CacheError as exc:
            stats["store"] = {"error": str(exc)}
        return stats


def build_cache_store(settings: Optional[Settings] = None) -> CacheStore:
    settings = settings or get_settings()
    backend = settings.cache_backend.strip().lower()
    if backend == "redis":
        logger.info("Using redis cache store | url=%s", settings.redis_url)
        return RedisCacheStore(url=settings.redis_url)
    if backend != "memory":
        raise ValueError(f"Unsupported CACHE_BACKEND {settings.cache_backend!r}")
    return InMemoryCacheStore()


def month_scope(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def monthly_prefix(year: int, month: int) -> str:
    return f"{CACHE_NAMESPACE}:monthly:{month_scope(year, month)}:"


def daily_prefix(target_date: date) -> str:
    return f"{CACHE_NAMESPACE}:daily:{month_scope(target_date.year, target_date.month)}:{target_date.isoformat()}:"


def namespace_prefix() -> str:
    return f"{CACHE_NAMESPACE}:"
