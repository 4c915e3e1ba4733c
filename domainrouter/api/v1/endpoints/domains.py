"""
Domain Management API

Lets a property Owner/Admin:
  1. Pick a platform subdomain ({slug}.{apex})
  2. Connect a custom domain and get CNAME instructions
  3. Verify the CNAME (on demand, no automatic retry)
  4. Remove the custom domain
  5. Opt in to the public property directory

/verify-allowed is called by the TLS terminator before it issues a
certificate for a hostname (on-demand TLS) and needs no authentication.
"""
import logging
from dataclasses import asdict
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session

from domainrouter.api import deps
from domainrouter.config import settings
from domainrouter.crud import crud_domain_verification, crud_tenant
from domainrouter.models.tenant import DOMAIN_PENDING, DOMAIN_VERIFIED, SSL_PENDING, Tenant
from domainrouter.schemas.domain import (
    CustomDomainCreate,
    CustomDomainResult,
    DirectoryUpdate,
    DnsInstructions,
    DomainSettings,
    SlugCheck,
    SlugUpdate,
    SlugUpdateResult,
    VerificationRecord,
    VerificationResult,
)
from domainrouter.services.domain_verification import DomainVerificationService
from domainrouter.services.errors import (
    DirectoryConflict,
    NoDomainConfigured,
    VerificationInProgress,
    VerificationSuperseded,
)
from domainrouter.services.tenant_directory import TenantDirectory
from domainrouter.services.validators import (
    is_platform_domain,
    is_reserved_slug,
    is_valid_domain,
    is_valid_slug,
    normalize,
    slugify,
)

router = APIRouter()
logger = logging.getLogger("domainrouter.domains")

MSG_SLUG_INVALID = (
    "Invalid slug format. Use 3-63 lowercase letters, numbers, and hyphens. "
    "Must start and end with alphanumeric."
)
MSG_SLUG_RESERVED = "This subdomain is reserved and cannot be used"
MSG_SLUG_TAKEN = "This subdomain is already in use by another property"
MSG_DOMAIN_INVALID = "Please enter a valid domain name (e.g., book.yourdomain.com)"
MSG_DOMAIN_TAKEN = "This domain is already connected to another property"

HISTORY_LIMIT = 10

# Reset applied whenever the custom domain changes or is removed
_DOMAIN_RESET = {
    "domain_verification_status": DOMAIN_PENDING,
    "domain_verified_at": None,
    "domain_verification_started_at": None,
    "verification_attempt_id": None,
    "ssl_status": SSL_PENDING,
    "ssl_issued_at": None,
    "ssl_expires_at": None,
}


# ── Helpers ──

def _subdomain_url(slug: Optional[str]) -> Optional[str]:
    return f"https://{slug}.{settings.apex_domain}" if slug else None


def _dns_instructions(domain: str) -> DnsInstructions:
    return DnsInstructions(
        name=domain,
        target=settings.cname_target,
        message=f"Add a CNAME record pointing {domain} to {settings.cname_target}",
    )


def _conflict_detail(field: str) -> str:
    return MSG_DOMAIN_TAKEN if field == "custom_domain" else MSG_SLUG_TAKEN


def _write(directory: TenantDirectory, tenant: Tenant, fields: dict):
    try:
        ctx = directory.update(str(tenant.id), fields)
    except DirectoryConflict as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=_conflict_detail(e.field))
    if ctx is None:
        raise HTTPException(status_code=404, detail="Property not found")
    return ctx


# ── Endpoints ──

@router.get("/settings", response_model=DomainSettings)
def get_domain_settings(
    tenant: Tenant = Depends(deps.get_current_tenant),
) -> Any:
    """Current subdomain, custom domain, verification and SSL state."""
    verified = tenant.domain_verification_status == DOMAIN_VERIFIED
    return DomainSettings(
        slug=tenant.slug,
        subdomain=f"{tenant.slug}.{settings.apex_domain}" if tenant.slug else None,
        subdomain_url=_subdomain_url(tenant.slug),
        custom_domain=tenant.custom_domain,
        custom_domain_url=f"https://{tenant.custom_domain}" if tenant.custom_domain and verified else None,
        domain_verification_status=tenant.domain_verification_status,
        domain_verified_at=tenant.domain_verified_at,
        ssl_status=tenant.ssl_status,
        ssl_issued_at=tenant.ssl_issued_at,
        ssl_expires_at=tenant.ssl_expires_at,
        is_listed_in_directory=bool(tenant.is_listed_in_directory),
        directory_description=tenant.directory_description,
        directory_featured_image_url=tenant.directory_featured_image_url,
        directory_tags=tenant.directory_tags or [],
        cname_target=settings.cname_target,
    )


@router.put("/slug", response_model=SlugUpdateResult)
def update_slug(
    body: SlugUpdate,
    db: Session = Depends(deps.get_db),
    tenant: Tenant = Depends(deps.get_current_tenant),
    directory: TenantDirectory = Depends(deps.get_tenant_directory),
) -> Any:
    slug = normalize(body.slug)
    if not slug:
        raise HTTPException(status_code=400, detail="Slug is required")
    if not is_valid_slug(slug):
        raise HTTPException(status_code=400, detail=MSG_SLUG_INVALID)
    if is_reserved_slug(slug, settings.reserved_subdomains):
        raise HTTPException(status_code=400, detail=MSG_SLUG_RESERVED)
    if crud_tenant.slug_taken(db, slug, exclude_tenant_id=tenant.id):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=MSG_SLUG_TAKEN)

    _write(directory, tenant, {"slug": slug})
    logger.info("Slug updated: %s → %s (tenant %s)", tenant.slug, slug, tenant.id)
    return SlugUpdateResult(slug=slug, subdomain_url=_subdomain_url(slug))


@router.get("/slug/check", response_model=SlugCheck)
def check_slug(
    slug: Optional[str] = Query(default=None),
    db: Session = Depends(deps.get_db),
    tenant: Tenant = Depends(deps.get_current_tenant),
) -> Any:
    """Advisory availability check; the write itself re-checks."""
    slug = normalize(slug)
    if not slug:
        raise HTTPException(status_code=400, detail="Slug parameter required")

    reason = None
    if not is_valid_slug(slug):
        reason = "Invalid format"
    elif is_reserved_slug(slug, settings.reserved_subdomains):
        reason = "Reserved"
    elif crud_tenant.slug_taken(db, slug, exclude_tenant_id=tenant.id):
        reason = "Already in use"

    if reason is None:
        return SlugCheck(slug=slug, available=True)

    suggestion = crud_tenant.generate_unique_slug(
        db,
        slugify(tenant.business_name or tenant.name),
        reserved=settings.reserved_subdomains,
        exclude_tenant_id=tenant.id,
    )
    return SlugCheck(slug=slug, available=False, reason=reason, suggestion=suggestion)


@router.post("/custom", response_model=CustomDomainResult)
def add_custom_domain(
    body: CustomDomainCreate,
    db: Session = Depends(deps.get_db),
    tenant: Tenant = Depends(deps.get_current_tenant),
    directory: TenantDirectory = Depends(deps.get_tenant_directory),
) -> Any:
    domain = normalize(body.domain).rstrip(".")
    if not domain:
        raise HTTPException(status_code=400, detail="Domain is required")
    if not is_valid_domain(domain):
        raise HTTPException(status_code=400, detail=MSG_DOMAIN_INVALID)
    if is_platform_domain(domain, apex_domain=settings.apex_domain, main_domains=settings.main_domains):
        raise HTTPException(
            status_code=400,
            detail=f"Cannot use {settings.apex_domain} domains. Use the subdomain feature instead.",
        )

    if domain == tenant.custom_domain:
        return CustomDomainResult(
            domain=domain,
            status=tenant.domain_verification_status,
            dns_instructions=_dns_instructions(domain),
        )

    if crud_tenant.custom_domain_taken(db, domain, exclude_tenant_id=tenant.id):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=MSG_DOMAIN_TAKEN)

    _write(directory, tenant, {"custom_domain": domain, **_DOMAIN_RESET})
    logger.info("Custom domain set: %s (tenant %s, was %s)", domain, tenant.id, tenant.custom_domain)
    return CustomDomainResult(
        domain=domain,
        status=DOMAIN_PENDING,
        dns_instructions=_dns_instructions(domain),
    )


@router.delete("/custom")
def remove_custom_domain(
    tenant: Tenant = Depends(deps.get_current_tenant),
    directory: TenantDirectory = Depends(deps.get_tenant_directory),
) -> Any:
    previous = tenant.custom_domain
    _write(directory, tenant, {"custom_domain": None, **_DOMAIN_RESET})
    logger.info("Custom domain removed: %s (tenant %s)", previous, tenant.id)
    return {"success": True, "message": "Custom domain removed"}


@router.post("/verify", response_model=VerificationResult)
def verify_domain(
    tenant: Tenant = Depends(deps.get_current_tenant),
    service: DomainVerificationService = Depends(deps.get_verification_service),
) -> Any:
    """
    Check that the custom domain has a CNAME to the platform target:

      {custom_domain}  CNAME  {CNAME_TARGET}
    """
    try:
        outcome = service.request_verification(tenant.id)
    except NoDomainConfigured as e:
        raise HTTPException(status_code=400, detail=str(e))
    except (VerificationInProgress, VerificationSuperseded) as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return VerificationResult(**asdict(outcome))


@router.get("/verification-history", response_model=List[VerificationRecord])
def verification_history(
    db: Session = Depends(deps.get_db),
    tenant: Tenant = Depends(deps.get_current_tenant),
) -> Any:
    return crud_domain_verification.get_history(db, tenant_id=tenant.id, limit=HISTORY_LIMIT)


@router.put("/directory")
def update_directory_listing(
    body: DirectoryUpdate,
    tenant: Tenant = Depends(deps.get_current_tenant),
    directory: TenantDirectory = Depends(deps.get_tenant_directory),
) -> Any:
    updates = {}
    provided = body.model_fields_set
    if "is_listed" in provided and body.is_listed is not None:
        updates["is_listed_in_directory"] = body.is_listed
    if "description" in provided:
        updates["directory_description"] = body.description or None
    if "featured_image_url" in provided:
        updates["directory_featured_image_url"] = body.featured_image_url or None
    if "tags" in provided:
        updates["directory_tags"] = body.tags or []

    if not updates:
        raise HTTPException(status_code=400, detail="No valid fields to update")

    _write(directory, tenant, updates)
    return {"success": True, "updated": sorted(updates)}


@router.get("/verify-allowed", response_class=PlainTextResponse)
def verify_allowed(
    domain: Optional[str] = Query(default=None),
    directory: TenantDirectory = Depends(deps.get_tenant_directory),
) -> Any:
    """200 only for verified custom domains."""
    domain = normalize(domain).rstrip(".")
    if not domain:
        return PlainTextResponse("Domain required", status_code=400)
    if directory.is_verified_custom_domain(domain):
        return PlainTextResponse("OK", status_code=200)
    return PlainTextResponse("Domain not found", status_code=404)
