from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID

from sqlalchemy import and_, or_, update
from sqlalchemy.orm import Session

from domainrouter.crud import crud_domain_verification
from domainrouter.models.domain_verification import RESULT_FAILED
from domainrouter.models.tenant import (
    DOMAIN_FAILED,
    DOMAIN_PENDING,
    DOMAIN_VERIFIED,
    DOMAIN_VERIFYING,
    SSL_PENDING,
    Tenant,
)

# audit error_message for claims reset by the sweep
STALE_VERIFICATION = "STALE"


def _as_uuid(tenant_id) -> Optional[UUID]:
    if isinstance(tenant_id, UUID):
        return tenant_id
    try:
        return UUID(str(tenant_id))
    except (TypeError, ValueError):
        return None


def get(db: Session, tenant_id) -> Optional[Tenant]:
    tid = _as_uuid(tenant_id)
    if tid is None:
        return None
    return db.query(Tenant).filter(Tenant.id == tid).first()


def get_by_slug(db: Session, slug: str) -> Optional[Tenant]:
    return db.query(Tenant).filter(Tenant.slug == slug).first()


def get_by_verified_custom_domain(db: Session, domain: str) -> Optional[Tenant]:
    return db.query(Tenant).filter(
        Tenant.custom_domain == domain,
        Tenant.domain_verification_status == DOMAIN_VERIFIED,
    ).first()


def create(db: Session, *, name: str, business_name: Optional[str] = None, slug: Optional[str] = None) -> Tenant:
    db_obj = Tenant(name=name, business_name=business_name, slug=slug)
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj


def slug_taken(db: Session, slug: str, *, exclude_tenant_id=None) -> bool:
    query = db.query(Tenant.id).filter(Tenant.slug == slug)
    if exclude_tenant_id is not None:
        query = query.filter(Tenant.id != _as_uuid(exclude_tenant_id))
    return query.first() is not None


def custom_domain_taken(db: Session, domain: str, *, exclude_tenant_id=None) -> bool:
    query = db.query(Tenant.id).filter(Tenant.custom_domain == domain.lower())
    if exclude_tenant_id is not None:
        query = query.filter(Tenant.id != _as_uuid(exclude_tenant_id))
    return query.first() is not None


def generate_unique_slug(
    db: Session,
    base: str,
    *,
    reserved: Iterable[str] = (),
    exclude_tenant_id=None,
    fallback: str = "property",
) -> str:
    """base, base-1, base-2, ... until one is free and not reserved."""
    reserved = set(reserved)
    if len(base) < 3:
        base = fallback
    candidate, counter = base, 0
    while candidate in reserved or slug_taken(db, candidate, exclude_tenant_id=exclude_tenant_id):
        counter += 1
        candidate = f"{base}-{counter}"
    return candidate


def update_fields(db: Session, *, db_obj: Tenant, fields: Dict[str, Any]) -> Tenant:
    for field, value in fields.items():
        setattr(db_obj, field, value)
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj


def list_directory(
    db: Session,
    *,
    search: Optional[str] = None,
    tags: Optional[Iterable[str]] = None,
    skip: int = 0,
    limit: int = 20,
) -> List[Tenant]:
    query = db.query(Tenant).filter(
        Tenant.is_listed_in_directory.is_(True),
        Tenant.slug.isnot(None),
    )
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(
            Tenant.business_name.ilike(pattern),
            Tenant.name.ilike(pattern),
            Tenant.directory_description.ilike(pattern),
        ))
    rows = query.order_by(Tenant.business_name, Tenant.name).all()
    if tags:
        wanted = {t.lower() for t in tags}
        rows = [t for t in rows if wanted & {tag.lower() for tag in (t.directory_tags or [])}]
    return rows[skip: skip + limit]


# ═══════════════════════════════════════════
#  Verification state transitions (compare-and-swap)
# ═══════════════════════════════════════════

def claim_verification(
    db: Session,
    *,
    tenant_id,
    domain: str,
    attempt_id: str,
    now: datetime,
    stale_before: datetime,
) -> bool:
    """Move the tenant to "verifying" unless another live attempt holds it.

    A "verifying" status older than stale_before is treated as abandoned and
    may be re-claimed. Returns False when the claim was lost.
    """
    result = db.execute(
        update(Tenant)
        .where(
            Tenant.id == _as_uuid(tenant_id),
            Tenant.custom_domain == domain,
            or_(
                Tenant.domain_verification_status.in_((DOMAIN_PENDING, DOMAIN_FAILED, DOMAIN_VERIFIED)),
                and_(
                    Tenant.domain_verification_status == DOMAIN_VERIFYING,
                    or_(
                        Tenant.domain_verification_started_at.is_(None),
                        Tenant.domain_verification_started_at < stale_before,
                    ),
                ),
            ),
        )
        .values(
            domain_verification_status=DOMAIN_VERIFYING,
            domain_verification_started_at=now,
            verification_attempt_id=attempt_id,
        )
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount == 1


def complete_verification(
    db: Session,
    *,
    tenant_id,
    domain: str,
    attempt_id: str,
    fields: Dict[str, Any],
) -> bool:
    """Apply the outcome of an attempt only if it still owns the claim.

    Does not commit: the caller commits together with the audit record.
    """
    result = db.execute(
        update(Tenant)
        .where(
            Tenant.id == _as_uuid(tenant_id),
            Tenant.custom_domain == domain,
            Tenant.domain_verification_status == DOMAIN_VERIFYING,
            Tenant.verification_attempt_id == attempt_id,
        )
        .values(verification_attempt_id=None, **fields)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def fail_stale_verifications(
    db: Session,
    *,
    stale_before: datetime,
    expected_value: str,
    now: datetime,
) -> int:
    """Supervisory sweep: abandoned "verifying" claims become "failed".

    Each reset is guarded on the attempt id that was seen, so an attempt that
    re-claimed the tenant in the meantime is left alone. Every reset tenant
    gets a "failed" audit row with error_message STALE.
    """
    is_stale = and_(
        Tenant.domain_verification_status == DOMAIN_VERIFYING,
        or_(
            Tenant.domain_verification_started_at.is_(None),
            Tenant.domain_verification_started_at < stale_before,
        ),
    )
    candidates = db.query(Tenant.id, Tenant.custom_domain, Tenant.verification_attempt_id).filter(is_stale).all()

    count = 0
    for tenant_id, domain, attempt_id in candidates:
        same_attempt = (
            Tenant.verification_attempt_id.is_(None)
            if attempt_id is None
            else Tenant.verification_attempt_id == attempt_id
        )
        result = db.execute(
            update(Tenant)
            .where(Tenant.id == tenant_id, is_stale, same_attempt)
            .values(
                domain_verification_status=DOMAIN_FAILED,
                verification_attempt_id=None,
                ssl_status=SSL_PENDING,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            continue
        count += 1
        if domain:
            crud_domain_verification.add_record(
                db,
                tenant_id=tenant_id,
                domain=domain,
                expected_value=expected_value,
                status=RESULT_FAILED,
                checked_at=now,
                error_message=STALE_VERIFICATION,
            )
    db.commit()
    return count
