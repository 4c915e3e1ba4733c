from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from domainrouter.models.domain_verification import DomainVerification, VERIFICATION_TYPE_CNAME


def add_record(
    db: Session,
    *,
    tenant_id: UUID,
    domain: str,
    expected_value: str,
    status: str,
    checked_at: datetime,
    actual_value: Optional[List[str]] = None,
    error_message: Optional[str] = None,
    verification_type: str = VERIFICATION_TYPE_CNAME,
) -> DomainVerification:
    """Stage an audit row; committed by the caller with the status transition."""
    db_obj = DomainVerification(
        tenant_id=tenant_id,
        domain=domain,
        verification_type=verification_type,
        expected_value=expected_value,
        actual_value=actual_value,
        status=status,
        error_message=error_message,
        checked_at=checked_at,
    )
    db.add(db_obj)
    return db_obj


def get_history(db: Session, *, tenant_id: UUID, limit: int = 10) -> List[DomainVerification]:
    return (
        db.query(DomainVerification)
        .filter(DomainVerification.tenant_id == tenant_id)
        .order_by(DomainVerification.checked_at.desc())
        .limit(limit)
        .all()
    )
