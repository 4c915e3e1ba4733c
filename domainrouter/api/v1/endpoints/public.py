"""
Public tenant lookup (no authentication).

The tenant is taken from, in order: the hostname the request arrived on,
the {tenant_id} path parameter, the X-Tenant-ID header.
"""
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request

from domainrouter.api import deps
from domainrouter.config import settings
from domainrouter.schemas.domain import TenantPublic
from domainrouter.services.tenant_addressing import get_tenant_id
from domainrouter.services.tenant_context import TenantContext, get_tenant_public_url
from domainrouter.services.tenant_directory import TenantDirectory

router = APIRouter()


def _public_view(ctx: TenantContext, request: Request) -> TenantPublic:
    return TenantPublic(
        id=ctx.id,
        slug=ctx.slug,
        business_name=ctx.business_name,
        custom_domain=ctx.custom_domain if ctx.has_verified_domain else None,
        public_url=get_tenant_public_url(ctx, settings.apex_domain),
        resolved_from_hostname=bool(getattr(request.state, "resolved_from_hostname", False)),
    )


def _lookup(request: Request, directory: TenantDirectory) -> TenantPublic:
    ctx = getattr(request.state, "tenant_context", None)
    if ctx is None:
        tenant_id = get_tenant_id(request)
        if not tenant_id:
            raise HTTPException(status_code=400, detail="Property context required")
        ctx = directory.find_by_id(tenant_id)
        if ctx is None:
            raise HTTPException(status_code=404, detail="Property not found")
    return _public_view(ctx, request)


@router.get("/tenant", response_model=TenantPublic)
def current_tenant(
    request: Request,
    directory: TenantDirectory = Depends(deps.get_tenant_directory),
) -> Any:
    return _lookup(request, directory)


@router.get("/tenants/{tenant_id}", response_model=TenantPublic)
def tenant_by_id(
    tenant_id: str,
    request: Request,
    directory: TenantDirectory = Depends(deps.get_tenant_directory),
) -> Any:
    return _lookup(request, directory)
