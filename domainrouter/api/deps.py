from dataclasses import dataclass
from typing import Callable, List, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from domainrouter.config import settings
from domainrouter.core.security import TokenDecodeError, decode_access_token
from domainrouter.crud import crud_tenant
from domainrouter.db.session import get_db
from domainrouter.models.tenant import Tenant
from domainrouter.services.dns_lookup import CnameLookup
from domainrouter.services.domain_verification import DomainVerificationService
from domainrouter.services.tenant_directory import TenantDirectory

bearer_scheme = HTTPBearer(auto_error=False)

DOMAIN_MANAGER_ROLES = ("owner", "admin")


@dataclass(frozen=True)
class Principal:
    subject: str
    tenant_id: str
    role: str


def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Principal:
    if credentials is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    try:
        payload = decode_access_token(credentials.credentials)
    except TokenDecodeError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid access token") from exc

    tenant_id = payload.get("tenant_id")
    if not tenant_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token has no tenant")
    return Principal(
        subject=str(payload.get("sub", "")),
        tenant_id=str(tenant_id),
        role=str(payload.get("role", "")),
    )


def require_roles(*allowed_roles: str) -> Callable:
    def role_checker(principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Requires one of the roles: {', '.join(allowed_roles)}",
            )
        return principal

    return role_checker


require_domain_manager = require_roles(*DOMAIN_MANAGER_ROLES)


def get_current_tenant(
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_domain_manager),
) -> Tenant:
    tenant = crud_tenant.get(db, principal.tenant_id)
    if tenant is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Property not found")
    return tenant


def get_tenant_directory(request: Request) -> TenantDirectory:
    return request.app.state.tenant_directory


def get_cname_lookup() -> Callable[[str], List[str]]:
    return CnameLookup(timeout=settings.DNS_LOOKUP_TIMEOUT, nameservers=settings.dns_nameservers)


def get_verification_service(
    db: Session = Depends(get_db),
    directory: TenantDirectory = Depends(get_tenant_directory),
    cname_lookup: Callable[[str], List[str]] = Depends(get_cname_lookup),
) -> DomainVerificationService:
    return DomainVerificationService(
        db,
        cname_lookup=cname_lookup,
        cname_target=settings.cname_target,
        directory=directory,
        stale_after=settings.VERIFICATION_STALE_AFTER,
    )
