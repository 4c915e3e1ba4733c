from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from domainrouter.models.tenant import DOMAIN_VERIFIED, Tenant


@dataclass(frozen=True)
class TenantContext:
    id: str
    slug: Optional[str]
    custom_domain: Optional[str]
    business_name: Optional[str]
    domain_verification_status: Optional[str]

    @classmethod
    def from_tenant(cls, tenant: Tenant) -> "TenantContext":
        return cls(
            id=str(tenant.id),
            slug=tenant.slug,
            custom_domain=tenant.custom_domain,
            business_name=tenant.business_name or tenant.name,
            domain_verification_status=tenant.domain_verification_status,
        )

    @property
    def has_verified_domain(self) -> bool:
        return bool(self.custom_domain) and self.domain_verification_status == DOMAIN_VERIFIED


def get_tenant_public_url(ctx: TenantContext, apex_domain: str) -> str:
    """Verified custom domain first, then the platform subdomain."""
    if ctx.has_verified_domain:
        return f"https://{ctx.custom_domain}"
    if ctx.slug:
        return f"https://{ctx.slug}.{apex_domain}"
    return f"https://{apex_domain}?property={ctx.id}"
