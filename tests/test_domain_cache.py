"""Unit tests for the tenant lookup cache backends."""
import redis

from domainrouter.services.domain_cache import (
    MemoryDomainCache,
    NullDomainCache,
    RedisDomainCache,
    build_domain_cache,
    domain_key,
    slug_key,
)
from domainrouter.services.tenant_context import TenantContext
from tests.conftest import FakePipeline, FakeRedis

CTX = TenantContext(
    id="7b0f6a1e-0000-4000-8000-000000000001",
    slug="sunset",
    custom_domain="book.sunsetlodge.com",
    business_name="Sunset Lodge",
    domain_verification_status="verified",
)


class _Clock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class _BrokenRedis:
    def __getattr__(self, name):
        def _fail(*args, **kwargs):
            raise redis.ConnectionError("connection refused")
        return _fail


def test_keys_are_lowercased():
    assert slug_key("Sunset") == "slug:sunset"
    assert domain_key("Book.Sunset.com") == "domain:book.sunset.com"


def test_memory_cache_hit_then_expiry():
    clock = _Clock()
    cache = MemoryDomainCache(ttl=60, clock=clock)
    cache.set("slug:sunset", CTX)
    assert cache.get("slug:sunset") == CTX

    clock.now += 59
    assert cache.get("slug:sunset") == CTX
    clock.now += 1
    assert cache.get("slug:sunset") is None


def test_memory_cache_invalidate_and_clear():
    cache = MemoryDomainCache(ttl=60)
    cache.set("slug:sunset", CTX)
    cache.set("domain:book.sunsetlodge.com", CTX)

    cache.invalidate("slug:sunset")
    assert cache.get("slug:sunset") is None
    assert cache.get("domain:book.sunsetlodge.com") == CTX

    cache.clear()
    assert cache.get("domain:book.sunsetlodge.com") is None


def test_null_cache_never_hits():
    cache = NullDomainCache()
    cache.set("slug:sunset", CTX)
    assert cache.get("slug:sunset") is None


def test_redis_cache_round_trip_with_ttl():
    client = FakeRedis()
    cache = RedisDomainCache(client, ttl=30)
    cache.set("slug:sunset", CTX)

    assert client.ttls["tenant-lookup:slug:sunset"] == 30
    assert cache.get("slug:sunset") == CTX

    cache.clear()
    assert cache.get("slug:sunset") is None


def test_redis_errors_are_misses():
    cache = RedisDomainCache(_BrokenRedis(), ttl=30)
    cache.set("slug:sunset", CTX)
    cache.invalidate("slug:sunset")
    assert cache.get("slug:sunset") is None


def test_build_domain_cache_backends():
    assert isinstance(build_domain_cache("none", ttl=10), NullDomainCache)
    assert isinstance(build_domain_cache("memory", ttl=10), MemoryDomainCache)
    cache = build_domain_cache("redis", ttl=10, redis_url="redis://localhost:6379/1")
    assert isinstance(cache, RedisDomainCache)


def test_memory_cache_drops_write_older_than_invalidate():
    cache = MemoryDomainCache(ttl=60)
    generation = cache.generation("domain:book.sunsetlodge.com")

    cache.invalidate("domain:book.sunsetlodge.com")
    cache.set("domain:book.sunsetlodge.com", CTX, generation=generation)
    assert cache.get("domain:book.sunsetlodge.com") is None

    cache.set("domain:book.sunsetlodge.com", CTX, generation=cache.generation("domain:book.sunsetlodge.com"))
    assert cache.get("domain:book.sunsetlodge.com") == CTX


def test_redis_cache_drops_write_older_than_invalidate():
    client = FakeRedis()
    cache = RedisDomainCache(client, ttl=30)
    generation = cache.generation("slug:sunset")

    RedisDomainCache(client, ttl=30).invalidate("slug:sunset")
    cache.set("slug:sunset", CTX, generation=generation)
    assert cache.get("slug:sunset") is None

    cache.set("slug:sunset", CTX, generation=cache.generation("slug:sunset"))
    assert cache.get("slug:sunset") == CTX


def test_redis_cache_write_aborts_when_invalidated_during_watch():
    client = FakeRedis()
    cache = RedisDomainCache(client, ttl=30)

    class _RacingPipeline(FakePipeline):
        def multi(self):
            # another instance invalidates between the check and EXEC
            client.incr(RedisDomainCache.GENERATION_PREFIX + "slug:sunset")
            super().multi()

    client.pipeline = lambda: _RacingPipeline(client)
    cache.set("slug:sunset", CTX, generation=cache.generation("slug:sunset"))
    assert cache.get("slug:sunset") is None


def test_redis_invalidate_reaches_every_instance():
    client = FakeRedis()
    worker_a = RedisDomainCache(client, ttl=30)
    worker_b = RedisDomainCache(client, ttl=30)
    worker_b.set("domain:book.sunsetlodge.com", CTX)

    worker_a.invalidate("domain:book.sunsetlodge.com")
    assert worker_b.get("domain:book.sunsetlodge.com") is None


def test_redis_clear_keeps_generations():
    client = FakeRedis()
    cache = RedisDomainCache(client, ttl=30)
    cache.invalidate("slug:sunset")
    cache.clear()
    assert cache.generation("slug:sunset") == 1


def test_unreadable_generation_never_matches():
    cache = RedisDomainCache(_BrokenRedis(), ttl=30)
    assert cache.generation("slug:sunset") == RedisDomainCache.UNKNOWN_GENERATION
