"""Pytest configuration and fixtures.

The suite runs against an in-memory SQLite database (one shared connection)
and never touches real DNS: CNAME answers come from FakeCnameLookup.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DOMAIN_CACHE_BACKEND", "memory")

from datetime import datetime, timezone  # noqa: E402
from typing import Callable, Dict, List, Optional, Union  # noqa: E402

import pytest  # noqa: E402
import redis  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from domainrouter.core.security import create_access_token  # noqa: E402
from domainrouter.crud import crud_tenant  # noqa: E402
from domainrouter.db.session import SessionLocal, engine  # noqa: E402
from domainrouter.models import Base, Tenant  # noqa: E402
from domainrouter.models.tenant import DOMAIN_VERIFIED  # noqa: E402
from domainrouter.services.errors import DnsLookupError  # noqa: E402

CNAME_TARGET = "domains.platform.io"


class FakeCnameLookup:
    """domain -> list of targets, or a DnsLookupError code to raise."""

    def __init__(self, answers: Optional[Dict[str, Union[List[str], str]]] = None):
        self.answers = dict(answers or {})
        self.calls: List[str] = []
        self.on_lookup: Optional[Callable[[str], None]] = None

    def __call__(self, domain: str) -> List[str]:
        self.calls.append(domain)
        if self.on_lookup is not None:
            self.on_lookup(domain)
        answer = self.answers.get(domain, DnsLookupError.NXDOMAIN)
        if isinstance(answer, str):
            raise DnsLookupError(answer, f"{answer} for {domain}")
        return list(answer)


class FakeRedis:
    """In-process stand-in for the few redis-py calls the lookup cache makes.

    One instance plays the Redis server shared by several service instances.
    """

    def __init__(self):
        self.store: Dict[str, str] = {}
        self.ttls: Dict[str, int] = {}

    def get(self, key):
        return self.store.get(key)

    def setex(self, key, ttl, value):
        self.store[key] = value
        self.ttls[key] = ttl

    def delete(self, *keys):
        for key in keys:
            self.store.pop(key, None)

    def incr(self, key):
        value = int(self.store.get(key) or 0) + 1
        self.store[key] = str(value)
        return value

    def scan_iter(self, match=None):
        prefix = match.rstrip("*")
        return [k for k in list(self.store) if k.startswith(prefix)]

    def pipeline(self):
        return FakePipeline(self)


class FakePipeline:
    """Buffers commands until execute(); WATCH switches to immediate mode until multi()."""

    def __init__(self, client: FakeRedis):
        self.client = client
        self.watched: Dict[str, Optional[str]] = {}
        self.immediate = False
        self.queued: list = []

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.watched, self.queued, self.immediate = {}, [], False

    def watch(self, *keys):
        self.watched = {key: self.client.store.get(key) for key in keys}
        self.immediate = True

    def multi(self):
        self.immediate = False

    def __getattr__(self, name):
        command = getattr(self.client, name)

        def _call(*args):
            if self.immediate:
                return command(*args)
            self.queued.append((command, args))
            return self

        return _call

    def execute(self):
        if any(self.client.store.get(key) != value for key, value in self.watched.items()):
            raise redis.WatchError("watched key changed")
        return [command(*args) for command, args in self.queued]


# --- Per-test fixtures ---

@pytest.fixture
def db():
    """Fresh tables and a session for direct setup / assertions."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def fake_dns():
    return FakeCnameLookup()


@pytest.fixture
async def client(db, fake_dns):
    """
    Async HTTP client against the real app.
    Each test gets fresh tables, an empty tenant cache and fake DNS.
    """
    from domainrouter.api.deps import get_cname_lookup
    from domainrouter.main import app as fastapi_app

    fastapi_app.dependency_overrides[get_cname_lookup] = lambda: fake_dns
    fastapi_app.state.tenant_directory.cache.clear()

    transport = ASGITransport(app=fastapi_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    fastapi_app.dependency_overrides.clear()
    fastapi_app.state.tenant_directory.cache.clear()


# --- Helpers ---

def make_tenant(db, name: str = "Sunset Lodge", slug: Optional[str] = "sunset", **fields) -> Tenant:
    """Helper: insert a tenant, optionally with extra column values."""
    tenant = crud_tenant.create(db, name=name, business_name=name, slug=slug)
    if fields:
        tenant = crud_tenant.update_fields(db, db_obj=tenant, fields=fields)
    return tenant


def make_verified_tenant(db, domain: str = "book.sunsetlodge.com", **kwargs) -> Tenant:
    return make_tenant(
        db,
        custom_domain=domain,
        domain_verification_status=DOMAIN_VERIFIED,
        domain_verified_at=datetime.now(timezone.utc),
        **kwargs,
    )


def reload(db, tenant: Tenant) -> Tenant:
    """Re-read a tenant after other sessions changed it."""
    db.expire_all()
    return crud_tenant.get(db, tenant.id)


def auth_headers(tenant: Tenant, role: str = "owner") -> dict:
    token = create_access_token("user-1", tenant_id=str(tenant.id), role=role)
    return {"Authorization": f"Bearer {token}"}
