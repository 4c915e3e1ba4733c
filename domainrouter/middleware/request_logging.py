"""
Request Logging Middleware

- Assigns a unique request_id to every request
- Sets tenant_id context from the JWT when one is presented
- Logs request start & end with timing
"""

import logging
import time

from jose import JWTError, jwt
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from domainrouter.config import settings
from domainrouter.logging_config import generate_request_id, request_id_ctx, tenant_id_ctx

logger = logging.getLogger("domainrouter.request")


def _extract_tenant_id(request: Request) -> str:
    """Best-effort tenant_id from the bearer token; authorization happens in deps."""
    auth = request.headers.get("authorization", "")
    if not auth.startswith("Bearer "):
        return "-"
    try:
        payload = jwt.decode(
            auth[7:], settings.SECRET_KEY, algorithms=[settings.ALGORITHM],
            options={"verify_exp": False},
        )
    except JWTError:
        return "-"
    return str(payload.get("tenant_id", "-"))


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        rid = generate_request_id()
        request_id_ctx.set(rid)
        tenant_id_ctx.set(_extract_tenant_id(request))

        method = request.method
        path = request.url.path
        client_ip = request.client.host if request.client else "-"

        logger.info("→ %s %s from %s", method, path, client_ip)

        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            elapsed = (time.perf_counter() - start) * 1000
            logger.exception("✗ %s %s (%.1fms, unhandled exception)", method, path, elapsed)
            raise

        elapsed = (time.perf_counter() - start) * 1000
        response.headers["X-Request-ID"] = rid

        logger.info("← %s %s %d %.1fms", method, path, response.status_code, elapsed)
        return response
