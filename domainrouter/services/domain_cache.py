"""
Tenant lookup cache
===================

Caches positive hostname → tenant lookups so the per-request resolution
path does not hit the database every time. Backends:

- RedisDomainCache: shared between service instances (default)
- MemoryDomainCache: per-process, TTL, injectable clock (tests control time).
  Invalidations only reach the process that made them, so it is only
  correct for a single-process deployment.
- NullDomainCache: caching disabled

Only successful lookups are cached; every write to a tenant's slug, custom
domain or verification status must invalidate the matching keys.

Each key carries a generation that invalidate() bumps. A reader takes the
generation before it reads the database and passes it to set(); the write
is dropped if an invalidation happened in between, so a lookup that raced
a status change cannot put the old tenant back into the cache.
"""

import json
import logging
import threading
import time
from dataclasses import asdict
from typing import Callable, Dict, Optional, Tuple

import redis

from domainrouter.services.tenant_context import TenantContext

logger = logging.getLogger("domainrouter.cache")

DEFAULT_TTL = 60


def slug_key(slug: str) -> str:
    return f"slug:{slug.lower()}"


def domain_key(domain: str) -> str:
    return f"domain:{domain.lower()}"


class DomainCache:
    """Interface shared by all backends."""

    def get(self, key: str) -> Optional[TenantContext]:
        raise NotImplementedError

    def generation(self, key: str) -> int:
        raise NotImplementedError

    def set(self, key: str, value: TenantContext, generation: Optional[int] = None) -> None:
        """Store value; skipped when generation is given and no longer current."""
        raise NotImplementedError

    def invalidate(self, key: str) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError


class NullDomainCache(DomainCache):
    def get(self, key: str) -> Optional[TenantContext]:
        return None

    def generation(self, key: str) -> int:
        return 0

    def set(self, key: str, value: TenantContext, generation: Optional[int] = None) -> None:
        return None

    def invalidate(self, key: str) -> None:
        return None

    def clear(self) -> None:
        return None


class MemoryDomainCache(DomainCache):
    def __init__(self, ttl: int = DEFAULT_TTL, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[str, Tuple[float, TenantContext]] = {}
        self._generations: Dict[str, int] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[TenantContext]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def generation(self, key: str) -> int:
        with self._lock:
            return self._generations.get(key, 0)

    def set(self, key: str, value: TenantContext, generation: Optional[int] = None) -> None:
        with self._lock:
            if generation is not None and self._generations.get(key, 0) != generation:
                logger.debug("Dropped stale cache write for %s", key)
                return
            self._entries[key] = (self._clock() + self.ttl, value)

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)
            self._generations[key] = self._generations.get(key, 0) + 1

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


class RedisDomainCache(DomainCache):
    """Redis errors are logged and treated as cache misses.

    Generations live in their own counter keys (INCR on invalidate); a
    guarded set WATCHes the counter so it aborts if an invalidate lands
    before the write.
    """

    PREFIX = "tenant-lookup:"
    GENERATION_PREFIX = "tenant-lookup-gen:"
    # returned when the counter cannot be read; never matches a real one
    UNKNOWN_GENERATION = -1

    def __init__(self, client: "redis.Redis", ttl: int = DEFAULT_TTL):
        self.client = client
        self.ttl = ttl

    def get(self, key: str) -> Optional[TenantContext]:
        try:
            data = self.client.get(self.PREFIX + key)
        except redis.RedisError as e:
            logger.warning("Cache get error for %s: %s", key, e)
            return None
        if not data:
            return None
        return TenantContext(**json.loads(data))

    def generation(self, key: str) -> int:
        try:
            return int(self.client.get(self.GENERATION_PREFIX + key) or 0)
        except redis.RedisError as e:
            logger.warning("Cache generation error for %s: %s", key, e)
            return self.UNKNOWN_GENERATION

    def set(self, key: str, value: TenantContext, generation: Optional[int] = None) -> None:
        payload = json.dumps(asdict(value))
        try:
            if generation is None:
                self.client.setex(self.PREFIX + key, self.ttl, payload)
                return
            gen_key = self.GENERATION_PREFIX + key
            with self.client.pipeline() as pipe:
                pipe.watch(gen_key)
                if int(pipe.get(gen_key) or 0) != generation:
                    logger.debug("Dropped stale cache write for %s", key)
                    return
                pipe.multi()
                pipe.setex(self.PREFIX + key, self.ttl, payload)
                pipe.execute()
        except redis.WatchError:
            logger.debug("Dropped stale cache write for %s", key)
        except redis.RedisError as e:
            logger.warning("Cache set error for %s: %s", key, e)

    def invalidate(self, key: str) -> None:
        try:
            with self.client.pipeline() as pipe:
                pipe.delete(self.PREFIX + key)
                pipe.incr(self.GENERATION_PREFIX + key)
                pipe.execute()
        except redis.RedisError as e:
            logger.warning("Cache invalidate error for %s: %s", key, e)

    def clear(self) -> None:
        try:
            keys = list(self.client.scan_iter(match=self.PREFIX + "*"))
            if keys:
                self.client.delete(*keys)
        except redis.RedisError as e:
            logger.warning("Cache clear error: %s", e)


def build_domain_cache(backend: str, *, ttl: int, redis_url: Optional[str] = None) -> DomainCache:
    if backend == "none":
        return NullDomainCache()
    if backend == "memory":
        logger.info("Tenant lookup cache is per-process; use it with a single worker only")
        return MemoryDomainCache(ttl=ttl)
    client = redis.from_url(redis_url, decode_responses=True)
    logger.info("Tenant lookup cache backed by Redis: %s", redis_url)
    return RedisDomainCache(client, ttl=ttl)
