from fastapi import FastAPI

from domainrouter.api.v1.api import api_router
from domainrouter.config import settings
from domainrouter.db.session import SessionLocal
from domainrouter.logging_config import setup_logging
from domainrouter.middleware.metrics import PrometheusMiddleware, metrics_endpoint, set_app_info
from domainrouter.middleware.request_logging import RequestLoggingMiddleware
from domainrouter.middleware.tenant_resolution import TenantResolutionMiddleware
from domainrouter.services.domain_cache import build_domain_cache
from domainrouter.services.tenant_directory import TenantDirectory
from domainrouter.services.tenant_resolver import TenantResolver

# ── Initialize structured logging ──
setup_logging()

app = FastAPI(
    title=settings.APP_NAME,
    openapi_url=f"{settings.API_V1_STR}/openapi.json"
)

app.state.tenant_directory = TenantDirectory(
    SessionLocal,
    build_domain_cache(
        settings.DOMAIN_CACHE_BACKEND,
        ttl=settings.DOMAIN_CACHE_TTL,
        redis_url=settings.REDIS_URL,
    ),
)
app.state.tenant_resolver = TenantResolver.from_settings(app.state.tenant_directory, settings)

# Tenant resolution – Host / X-Forwarded-Host → request.state.tenant_context
app.add_middleware(TenantResolutionMiddleware)

# Prometheus metrics middleware – request count, latency
app.add_middleware(PrometheusMiddleware)

# Request logging middleware – request ID, timing, context (outermost)
app.add_middleware(RequestLoggingMiddleware)

app.include_router(api_router, prefix=settings.API_V1_STR)


@app.get("/health")
def health_check():
    return {"status": "ok", "env": settings.APP_ENV}


# Prometheus metrics endpoint
app.add_route("/metrics", metrics_endpoint)
set_app_info(version="1.0.0", env=settings.APP_ENV)
