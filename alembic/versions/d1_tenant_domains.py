"""Add tenants and domain_verifications tables

Revision ID: d1_tenant_domains
"""
from alembic import op
import sqlalchemy as sa

revision = "d1_tenant_domains"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "tenants",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("business_name", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("slug", sa.String(63), nullable=True),
        sa.Column("custom_domain", sa.String(255), nullable=True),
        sa.Column("domain_verification_status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("domain_verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("domain_verification_started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("verification_attempt_id", sa.String(36), nullable=True),
        sa.Column("ssl_status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("ssl_issued_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ssl_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_listed_in_directory", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("directory_description", sa.Text(), nullable=True),
        sa.Column("directory_featured_image_url", sa.String(500), nullable=True),
        sa.Column("directory_tags", sa.JSON(), nullable=False, server_default="[]"),
        sa.CheckConstraint(
            "domain_verification_status IN ('pending', 'verifying', 'verified', 'failed')",
            name="ck_tenants_domain_verification_status",
        ),
        sa.CheckConstraint(
            "ssl_status IN ('pending', 'provisioning', 'active', 'expired', 'failed')",
            name="ck_tenants_ssl_status",
        ),
    )
    op.create_index("ix_tenants_id", "tenants", ["id"])
    op.create_index("ix_tenants_name", "tenants", ["name"])
    op.create_index("ix_tenants_slug", "tenants", ["slug"], unique=True)
    op.create_index("ix_tenants_custom_domain", "tenants", ["custom_domain"], unique=True)
    op.create_index(
        "idx_tenants_domain_verification_status", "tenants", ["domain_verification_status"]
    )

    op.create_table(
        "domain_verifications",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column(
            "tenant_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("tenants.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("domain", sa.String(255), nullable=False),
        sa.Column("verification_type", sa.String(20), nullable=False, server_default="cname"),
        sa.Column("expected_value", sa.String(500), nullable=False),
        sa.Column("actual_value", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("checked_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_domain_verifications_id", "domain_verifications", ["id"])
    op.create_index("ix_domain_verifications_tenant_id", "domain_verifications", ["tenant_id"])
    op.create_index("ix_domain_verifications_domain", "domain_verifications", ["domain"])


def downgrade() -> None:
    op.drop_table("domain_verifications")
    op.drop_index("idx_tenants_domain_verification_status", table_name="tenants")
    op.drop_table("tenants")
