from typing import Any, List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from domainrouter.api import deps
from domainrouter.config import settings
from domainrouter.crud import crud_tenant
from domainrouter.schemas.domain import DirectoryListing, DirectoryProperty
from domainrouter.services.tenant_context import TenantContext, get_tenant_public_url

router = APIRouter()


@router.get("/properties", response_model=DirectoryListing)
def list_properties(
    search: Optional[str] = Query(default=None, max_length=100),
    tags: Optional[List[str]] = Query(default=None),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(deps.get_db),
) -> Any:
    """Properties that opted in to the public directory."""
    rows = crud_tenant.list_directory(db, search=search, tags=tags, skip=offset, limit=limit)
    properties = [
        DirectoryProperty(
            id=str(t.id),
            business_name=t.business_name or t.name,
            slug=t.slug,
            description=t.directory_description,
            featured_image_url=t.directory_featured_image_url,
            tags=t.directory_tags or [],
            public_url=get_tenant_public_url(TenantContext.from_tenant(t), settings.apex_domain),
        )
        for t in rows
    ]
    return DirectoryListing(properties=properties, count=len(properties), limit=limit, offset=offset)
