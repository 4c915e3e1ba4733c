import uuid
from sqlalchemy import Column, String, Boolean, DateTime, Text, JSON, Uuid, CheckConstraint, func
from sqlalchemy.orm import relationship
from domainrouter.db.base_class import Base

# domain_verification_status values
DOMAIN_PENDING = "pending"
DOMAIN_VERIFYING = "verifying"
DOMAIN_VERIFIED = "verified"
DOMAIN_FAILED = "failed"
DOMAIN_STATUSES = (DOMAIN_PENDING, DOMAIN_VERIFYING, DOMAIN_VERIFIED, DOMAIN_FAILED)

# ssl_status values (driven by verification, owned by the certificate issuer)
SSL_PENDING = "pending"
SSL_PROVISIONING = "provisioning"
SSL_ACTIVE = "active"
SSL_EXPIRED = "expired"
SSL_FAILED = "failed"


class Tenant(Base):
    __tablename__ = "tenants"
    __table_args__ = (
        CheckConstraint(
            "domain_verification_status IN ('pending', 'verifying', 'verified', 'failed')",
            name="ck_tenants_domain_verification_status",
        ),
        CheckConstraint(
            "ssl_status IN ('pending', 'provisioning', 'active', 'expired', 'failed')",
            name="ck_tenants_ssl_status",
        ),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    name = Column(String, index=True, nullable=False)
    business_name = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # ── Subdomain / custom domain ──
    slug = Column(String(63), nullable=True, unique=True, index=True)            # slug.{apex}
    custom_domain = Column(String(255), nullable=True, unique=True, index=True)  # stored lowercase

    # ── CNAME verification ──
    domain_verification_status = Column(String(20), nullable=False, default=DOMAIN_PENDING)
    domain_verified_at = Column(DateTime(timezone=True), nullable=True)
    domain_verification_started_at = Column(DateTime(timezone=True), nullable=True)
    verification_attempt_id = Column(String(36), nullable=True)                 # CAS token of the live attempt

    # ── SSL ──
    ssl_status = Column(String(20), nullable=False, default=SSL_PENDING)
    ssl_issued_at = Column(DateTime(timezone=True), nullable=True)
    ssl_expires_at = Column(DateTime(timezone=True), nullable=True)

    # ── Directory listing (opt-in) ──
    is_listed_in_directory = Column(Boolean, nullable=False, default=False)
    directory_description = Column(Text, nullable=True)
    directory_featured_image_url = Column(String(500), nullable=True)
    directory_tags = Column(JSON, nullable=False, default=list)

    # Relationships
    domain_verifications = relationship(
        "DomainVerification",
        back_populates="tenant",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
