"""Verification workflow against SQLite with fake DNS."""
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import IntegrityError

from domainrouter.crud import crud_domain_verification, crud_tenant
from domainrouter.db.session import SessionLocal
from domainrouter.models.tenant import (
    DOMAIN_FAILED,
    DOMAIN_PENDING,
    DOMAIN_VERIFIED,
    DOMAIN_VERIFYING,
    SSL_PENDING,
    SSL_PROVISIONING,
)
from domainrouter.config import Settings
from domainrouter.services.domain_cache import MemoryDomainCache, RedisDomainCache
from domainrouter.services.domain_verification import DomainVerificationService
from domainrouter.services.errors import (
    DnsLookupError,
    NoDomainConfigured,
    VerificationInProgress,
    VerificationSuperseded,
)
from domainrouter.services.tenant_directory import TenantDirectory
from tests.conftest import CNAME_TARGET, FakeCnameLookup, FakeRedis, make_tenant, make_verified_tenant, reload

DOMAIN = "book.sunsetlodge.com"


@pytest.fixture
def directory():
    return TenantDirectory(SessionLocal, MemoryDomainCache(ttl=60))


def _service(db, dns, directory=None):
    return DomainVerificationService(
        db, cname_lookup=dns, cname_target=CNAME_TARGET, directory=directory, stale_after=300,
    )


def test_no_domain_configured(db):
    tenant = make_tenant(db)
    with pytest.raises(NoDomainConfigured):
        _service(db, FakeCnameLookup()).request_verification(tenant.id)


def test_unknown_tenant_has_no_domain(db):
    with pytest.raises(NoDomainConfigured):
        _service(db, FakeCnameLookup()).request_verification("00000000-0000-4000-8000-000000000000")


def test_matching_cname_verifies(db, directory):
    tenant = make_tenant(db, custom_domain=DOMAIN)
    dns = FakeCnameLookup({DOMAIN: [CNAME_TARGET]})

    outcome = _service(db, dns, directory).request_verification(tenant.id)

    assert outcome.success and outcome.verified
    assert outcome.message == "Domain verified successfully! SSL certificate is being provisioned."
    assert outcome.domain_url == f"https://{DOMAIN}"
    tenant = reload(db, tenant)
    assert tenant.domain_verification_status == DOMAIN_VERIFIED
    assert tenant.domain_verified_at is not None
    assert tenant.ssl_status == SSL_PROVISIONING
    assert tenant.verification_attempt_id is None

    history = crud_domain_verification.get_history(db, tenant_id=tenant.id)
    assert len(history) == 1
    assert history[0].status == "success"
    assert history[0].expected_value == CNAME_TARGET
    assert history[0].actual_value == [CNAME_TARGET]

    assert directory.is_verified_custom_domain(DOMAIN)


def test_sublabel_of_target_verifies(db):
    tenant = make_tenant(db, custom_domain=DOMAIN)
    dns = FakeCnameLookup({DOMAIN: [f"edge-1.{CNAME_TARGET}"]})
    assert _service(db, dns).request_verification(tenant.id).verified


def test_wrong_cname_fails_with_hint(db):
    tenant = make_tenant(db, custom_domain=DOMAIN)
    dns = FakeCnameLookup({DOMAIN: ["ghs.googlehosted.com"]})

    outcome = _service(db, dns).request_verification(tenant.id)

    assert not outcome.success and not outcome.verified
    assert outcome.message == "CNAME record not found or incorrect"
    assert outcome.expected == CNAME_TARGET
    assert outcome.found == ["ghs.googlehosted.com"]
    assert outcome.hint == f"Make sure your DNS has a CNAME record: {DOMAIN} -> {CNAME_TARGET}"
    tenant = reload(db, tenant)
    assert tenant.domain_verification_status == DOMAIN_FAILED
    assert tenant.ssl_status == SSL_PENDING
    record = crud_domain_verification.get_history(db, tenant_id=tenant.id)[0]
    assert record.status == "failed"
    assert record.actual_value == ["ghs.googlehosted.com"]


@pytest.mark.parametrize(
    "code, message",
    [
        (DnsLookupError.NXDOMAIN, "No CNAME record found for this domain. Please add the DNS record and try again."),
        (DnsLookupError.NODATA, "No CNAME record found for this domain. Please add the DNS record and try again."),
        (DnsLookupError.TIMEOUT, "DNS lookup timed out. Please try again in a few minutes."),
        (DnsLookupError.NO_NAMESERVERS, "Failed to verify domain"),
    ],
)
def test_dns_errors_fail_with_code(db, code, message):
    tenant = make_tenant(db, custom_domain=DOMAIN)
    outcome = _service(db, FakeCnameLookup({DOMAIN: code})).request_verification(tenant.id)

    assert not outcome.verified
    assert outcome.message == message
    assert outcome.error_code == code
    tenant = reload(db, tenant)
    assert tenant.domain_verification_status == DOMAIN_FAILED
    record = crud_domain_verification.get_history(db, tenant_id=tenant.id)[0]
    assert record.actual_value is None
    assert record.error_message == code


def test_failed_reverification_stops_routing(db, directory):
    tenant = make_verified_tenant(db, domain=DOMAIN, ssl_status="active")
    assert directory.is_verified_custom_domain(DOMAIN)

    _service(db, FakeCnameLookup(), directory).request_verification(tenant.id)

    assert not directory.is_verified_custom_domain(DOMAIN)
    tenant = reload(db, tenant)
    assert tenant.ssl_status == SSL_PENDING


def test_live_attempt_blocks_second_claim(db):
    tenant = make_tenant(
        db,
        custom_domain=DOMAIN,
        domain_verification_status=DOMAIN_VERIFYING,
        domain_verification_started_at=datetime.now(timezone.utc),
        verification_attempt_id="other-attempt",
    )
    dns = FakeCnameLookup({DOMAIN: [CNAME_TARGET]})

    with pytest.raises(VerificationInProgress):
        _service(db, dns).request_verification(tenant.id)
    assert dns.calls == []
    assert crud_domain_verification.get_history(db, tenant_id=tenant.id) == []


def test_stale_attempt_can_be_reclaimed(db):
    tenant = make_tenant(
        db,
        custom_domain=DOMAIN,
        domain_verification_status=DOMAIN_VERIFYING,
        domain_verification_started_at=datetime.now(timezone.utc) - timedelta(minutes=10),
        verification_attempt_id="crashed-attempt",
    )
    outcome = _service(db, FakeCnameLookup({DOMAIN: [CNAME_TARGET]})).request_verification(tenant.id)
    assert outcome.verified


def test_domain_change_during_lookup_supersedes(db):
    tenant = make_tenant(db, custom_domain=DOMAIN)
    dns = FakeCnameLookup({DOMAIN: [CNAME_TARGET]})

    def _owner_changes_domain(domain):
        other = SessionLocal()
        try:
            crud_tenant.update_fields(
                other,
                db_obj=crud_tenant.get(other, tenant.id),
                fields={"custom_domain": "stay.sunsetlodge.com", "domain_verification_status": DOMAIN_PENDING},
            )
        finally:
            other.close()

    dns.on_lookup = _owner_changes_domain

    with pytest.raises(VerificationSuperseded):
        _service(db, dns).request_verification(tenant.id)

    tenant = reload(db, tenant)
    assert tenant.custom_domain == "stay.sunsetlodge.com"
    assert tenant.domain_verification_status == DOMAIN_PENDING
    history = crud_domain_verification.get_history(db, tenant_id=tenant.id)
    assert [(r.domain, r.status) for r in history] == [(DOMAIN, "success")]


def test_history_is_newest_first_and_limited(db):
    tenant = make_tenant(db, custom_domain=DOMAIN)
    service = _service(db, FakeCnameLookup({DOMAIN: ["wrong.example.com"]}))
    for _ in range(12):
        service.request_verification(tenant.id)

    history = crud_domain_verification.get_history(db, tenant_id=tenant.id, limit=10)
    assert len(history) == 10
    checked = [r.checked_at for r in history]
    assert checked == sorted(checked, reverse=True)


def test_default_cache_is_shared_between_instances():
    assert Settings.model_fields["DOMAIN_CACHE_BACKEND"].default == "redis"


def test_failed_verification_stops_routing_on_every_instance(db):
    shared_redis = FakeRedis()
    worker_a = TenantDirectory(SessionLocal, RedisDomainCache(shared_redis, ttl=60))
    worker_b = TenantDirectory(SessionLocal, RedisDomainCache(shared_redis, ttl=60))
    tenant = make_verified_tenant(db, domain=DOMAIN)
    assert worker_b.is_verified_custom_domain(DOMAIN)

    outcome = _service(db, FakeCnameLookup(), worker_a).request_verification(tenant.id)

    assert not outcome.verified
    assert not worker_a.is_verified_custom_domain(DOMAIN)
    assert not worker_b.is_verified_custom_domain(DOMAIN)


def test_lookup_racing_verification_does_not_recache_old_status(db, directory, monkeypatch):
    tenant = make_verified_tenant(db, domain=DOMAIN)
    load_verified = crud_tenant.get_by_verified_custom_domain
    raced = []

    def _read_then_verification_runs(session, domain):
        found = load_verified(session, domain)
        if not raced:
            raced.append(domain)
            # the read above already saw "verified"; the attempt now fails
            _service(db, FakeCnameLookup(), directory).request_verification(tenant.id)
        return found

    monkeypatch.setattr(crud_tenant, "get_by_verified_custom_domain", _read_then_verification_runs)

    assert directory.is_verified_custom_domain(DOMAIN)
    assert reload(db, tenant).domain_verification_status == DOMAIN_FAILED
    assert not directory.is_verified_custom_domain(DOMAIN)


@pytest.mark.parametrize(
    "fields",
    [{"domain_verification_status": "approved"}, {"ssl_status": "issued"}],
)
def test_status_columns_reject_unknown_values(db, fields):
    tenant = make_tenant(db, custom_domain=DOMAIN)
    with pytest.raises(IntegrityError):
        crud_tenant.update_fields(db, db_obj=tenant, fields=fields)
    db.rollback()
