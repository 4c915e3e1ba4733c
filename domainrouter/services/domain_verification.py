"""
Custom Domain Verification

State machine for tenants.domain_verification_status:

    pending ──┐
    failed  ──┼──> verifying ──> verified
    verified ─┘               └─> failed

Changing or removing the custom domain puts it back to pending (see the
domains endpoints). Each attempt:

  1. claims the tenant (compare-and-swap to "verifying" with a fresh
     attempt id; a live claim by someone else → VerificationInProgress)
  2. looks up the CNAME of the domain
  3. appends a DomainVerification row and applies the outcome in one
     commit, guarded on the attempt id (lost guard → VerificationSuperseded)

A claim older than stale_after seconds is considered abandoned and can be
re-claimed. There is no automatic retry: callers re-invoke.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from domainrouter.crud import crud_domain_verification, crud_tenant
from domainrouter.middleware.metrics import VERIFICATION_RESULTS
from domainrouter.models.domain_verification import RESULT_FAILED, RESULT_SUCCESS
from domainrouter.models.tenant import DOMAIN_FAILED, DOMAIN_VERIFIED, SSL_PENDING, SSL_PROVISIONING
from domainrouter.services.dns_lookup import cname_matches
from domainrouter.services.errors import (
    DnsLookupError,
    NoDomainConfigured,
    VerificationInProgress,
    VerificationSuperseded,
)
from domainrouter.services.tenant_directory import TenantDirectory

logger = logging.getLogger("domainrouter.verification")

MSG_VERIFIED = "Domain verified successfully! SSL certificate is being provisioned."
MSG_MISMATCH = "CNAME record not found or incorrect"
MSG_NO_RECORD = "No CNAME record found for this domain. Please add the DNS record and try again."
MSG_TIMEOUT = "DNS lookup timed out. Please try again in a few minutes."
MSG_DNS_FAILED = "Failed to verify domain"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class VerificationOutcome:
    success: bool
    verified: bool
    message: str
    domain: str
    domain_url: Optional[str] = None
    expected: Optional[str] = None
    found: Optional[List[str]] = None
    hint: Optional[str] = None
    error_code: Optional[str] = None


def dns_error_message(error: DnsLookupError) -> str:
    if error.record_missing:
        return MSG_NO_RECORD
    if error.code == DnsLookupError.TIMEOUT:
        return MSG_TIMEOUT
    return MSG_DNS_FAILED


class DomainVerificationService:
    def __init__(
        self,
        db: Session,
        *,
        cname_lookup: Callable[[str], List[str]],
        cname_target: str,
        directory: Optional[TenantDirectory] = None,
        stale_after: int = 300,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.db = db
        self.cname_lookup = cname_lookup
        self.cname_target = cname_target
        self.directory = directory
        self.stale_after = stale_after
        self.clock = clock

    def _invalidate(self, slug: Optional[str], domain: Optional[str]) -> None:
        if self.directory is not None:
            self.directory.invalidate(slug=slug, domain=domain)

    def _hint(self, domain: str) -> str:
        return f"Make sure your DNS has a CNAME record: {domain} -> {self.cname_target}"

    def request_verification(self, tenant_id) -> VerificationOutcome:
        tenant = crud_tenant.get(self.db, tenant_id)
        if tenant is None or not tenant.custom_domain:
            raise NoDomainConfigured(str(tenant_id))

        tenant_uuid, domain, slug = tenant.id, tenant.custom_domain, tenant.slug
        now = self.clock()
        attempt_id = str(uuid.uuid4())

        claimed = crud_tenant.claim_verification(
            self.db,
            tenant_id=tenant_uuid,
            domain=domain,
            attempt_id=attempt_id,
            now=now,
            stale_before=now - timedelta(seconds=self.stale_after),
        )
        if not claimed:
            VERIFICATION_RESULTS.labels(result="in_progress").inc()
            logger.info("Verification already running for %s (tenant %s)", domain, tenant_uuid)
            raise VerificationInProgress(str(tenant_uuid))
        # "verifying" must stop routing straight away
        self._invalidate(slug, domain)

        logger.info("Verifying CNAME for %s (tenant %s, attempt %s)", domain, tenant_uuid, attempt_id)
        try:
            records = self.cname_lookup(domain)
        except DnsLookupError as e:
            return self._dns_failure(tenant_uuid, slug, domain, attempt_id, e)

        if cname_matches(records, self.cname_target):
            return self._verified(tenant_uuid, slug, domain, attempt_id, records)
        return self._mismatch(tenant_uuid, slug, domain, attempt_id, records)

    def _finish(
        self,
        tenant_uuid,
        slug: Optional[str],
        domain: str,
        attempt_id: str,
        *,
        tenant_fields: Dict,
        record_status: str,
        actual_value: Optional[List[str]] = None,
        error_message: Optional[str] = None,
    ) -> None:
        checked_at = self.clock()
        crud_domain_verification.add_record(
            self.db,
            tenant_id=tenant_uuid,
            domain=domain,
            expected_value=self.cname_target,
            actual_value=actual_value,
            status=record_status,
            error_message=error_message,
            checked_at=checked_at,
        )
        applied = crud_tenant.complete_verification(
            self.db,
            tenant_id=tenant_uuid,
            domain=domain,
            attempt_id=attempt_id,
            fields=tenant_fields,
        )
        self.db.commit()
        self._invalidate(slug, domain)
        if not applied:
            VERIFICATION_RESULTS.labels(result="superseded").inc()
            logger.warning(
                "Verification of %s for tenant %s superseded; outcome %s kept in audit log only",
                domain, tenant_uuid, record_status,
            )
            raise VerificationSuperseded(str(tenant_uuid), domain)

    def _verified(self, tenant_uuid, slug, domain, attempt_id, records) -> VerificationOutcome:
        self._finish(
            tenant_uuid, slug, domain, attempt_id,
            tenant_fields={
                "domain_verification_status": DOMAIN_VERIFIED,
                "domain_verified_at": self.clock(),
                "ssl_status": SSL_PROVISIONING,
            },
            record_status=RESULT_SUCCESS,
            actual_value=records,
        )
        VERIFICATION_RESULTS.labels(result="verified").inc()
        logger.info("Domain verified: %s (tenant %s)", domain, tenant_uuid)
        return VerificationOutcome(
            success=True,
            verified=True,
            message=MSG_VERIFIED,
            domain=domain,
            domain_url=f"https://{domain}",
        )

    def _mismatch(self, tenant_uuid, slug, domain, attempt_id, records) -> VerificationOutcome:
        self._finish(
            tenant_uuid, slug, domain, attempt_id,
            tenant_fields={"domain_verification_status": DOMAIN_FAILED, "ssl_status": SSL_PENDING},
            record_status=RESULT_FAILED,
            actual_value=records,
        )
        VERIFICATION_RESULTS.labels(result="mismatch").inc()
        logger.info("CNAME mismatch for %s: expected %s, found %s", domain, self.cname_target, records)
        return VerificationOutcome(
            success=False,
            verified=False,
            message=MSG_MISMATCH,
            domain=domain,
            expected=self.cname_target,
            found=records,
            hint=self._hint(domain),
        )

    def _dns_failure(self, tenant_uuid, slug, domain, attempt_id, error: DnsLookupError) -> VerificationOutcome:
        self._finish(
            tenant_uuid, slug, domain, attempt_id,
            tenant_fields={"domain_verification_status": DOMAIN_FAILED, "ssl_status": SSL_PENDING},
            record_status=RESULT_FAILED,
            error_message=error.code,
        )
        VERIFICATION_RESULTS.labels(result="dns_error").inc()
        logger.info("DNS lookup for %s failed: %s (%s)", domain, error.code, error)
        return VerificationOutcome(
            success=False,
            verified=False,
            message=dns_error_message(error),
            domain=domain,
            expected=self.cname_target,
            hint=f"Add a CNAME record: {domain} -> {self.cname_target}",
            error_code=error.code,
        )
