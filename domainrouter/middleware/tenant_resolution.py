"""
Tenant Resolution Middleware

Resolves the tenant from the Host / X-Forwarded-Host header on every
request and exposes it to handlers:

  request.state.tenant_context          TenantContext or None
  request.state.resolved_from_hostname  bool

An unknown tenant subdomain on an API path is answered here with 404;
everything else continues to the route, with or without a tenant.
"""

import logging

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response

from domainrouter.logging_config import host_ctx, tenant_id_ctx
from domainrouter.services.errors import TenantNotFound

logger = logging.getLogger("domainrouter.resolution")


class TenantResolutionMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        resolver = request.app.state.tenant_resolver
        request.state.tenant_context = None
        request.state.resolved_from_hostname = False

        host = resolver.classify(request.headers)
        host_ctx.set(host.hostname or "-")

        try:
            ctx = await resolver.resolve(request.headers, request.url.path)
        except TenantNotFound as e:
            logger.info("Unknown subdomain %s on %s", e.slug, request.url.path)
            return JSONResponse(
                status_code=404,
                content={"error": "Property not found", "message": str(e)},
            )

        if ctx is not None:
            request.state.tenant_context = ctx
            request.state.resolved_from_hostname = True
            tenant_id_ctx.set(ctx.id)

        return await call_next(request)
