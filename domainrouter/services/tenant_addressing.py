"""
Tenant addressing fallbacks for downstream handlers.

A handler asks "which tenant is this request about?" and the sources below
are tried in order; the first non-empty answer wins:

  1. hostname resolution (browser page loads on a tenant host)
  2. {tenant_id} path parameter (authenticated API calls)
  3. X-Tenant-ID header (server-to-server calls)
"""
from typing import Callable, Optional, Sequence

from starlette.requests import Request

TENANT_ID_HEADER = "x-tenant-id"

TenantIdSource = Callable[[Request], Optional[str]]


def from_hostname(request: Request) -> Optional[str]:
    ctx = getattr(request.state, "tenant_context", None)
    return ctx.id if ctx else None


def from_path_param(request: Request) -> Optional[str]:
    value = request.path_params.get("tenant_id")
    return str(value) if value else None


def from_header(request: Request) -> Optional[str]:
    value = request.headers.get(TENANT_ID_HEADER, "").strip()
    return value or None


DEFAULT_SOURCES: Sequence[TenantIdSource] = (from_hostname, from_path_param, from_header)


def get_tenant_id(request: Request, sources: Sequence[TenantIdSource] = DEFAULT_SOURCES) -> Optional[str]:
    for source in sources:
        tenant_id = source(request)
        if tenant_id:
            return tenant_id
    return None
