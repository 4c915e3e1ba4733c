"""
Domain Verification audit trail

One row per verification attempt. Rows are appended by the verification
workflow and never updated or deleted by it.
"""
import uuid
from sqlalchemy import Column, String, DateTime, ForeignKey, Text, JSON, Uuid, func
from sqlalchemy.orm import relationship
from domainrouter.db.base_class import Base

VERIFICATION_TYPE_CNAME = "cname"

RESULT_SUCCESS = "success"
RESULT_FAILED = "failed"


class DomainVerification(Base):
    __tablename__ = "domain_verifications"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    tenant_id = Column(
        Uuid(as_uuid=True), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    domain = Column(String(255), nullable=False, index=True)
    verification_type = Column(String(20), nullable=False, default=VERIFICATION_TYPE_CNAME)
    expected_value = Column(String(500), nullable=False)
    actual_value = Column(JSON, nullable=True)       # observed CNAME targets; null on DNS failure
    status = Column(String(20), nullable=False)      # success / failed
    error_message = Column(Text, nullable=True)      # DNS error code
    checked_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    tenant = relationship("Tenant", back_populates="domain_verifications")
