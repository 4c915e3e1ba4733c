"""
Tenant Directory
================

Point-lookup adapter over the tenants table used by request-time
resolution and the on-demand TLS check. Each call opens and closes its own
session, so it is safe to call from any thread. Positive lookups go through
the injected DomainCache; writes invalidate it.
"""

import logging
from typing import Any, Callable, Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from domainrouter.crud import crud_tenant
from domainrouter.services.domain_cache import DomainCache, NullDomainCache, domain_key, slug_key
from domainrouter.services.errors import DirectoryConflict
from domainrouter.services.tenant_context import TenantContext

logger = logging.getLogger("domainrouter.directory")


class TenantDirectory:
    def __init__(self, session_factory: Callable[[], Session], cache: Optional[DomainCache] = None):
        self.session_factory = session_factory
        self.cache = cache or NullDomainCache()

    def _cached_lookup(self, key: str, loader) -> Optional[TenantContext]:
        cached = self.cache.get(key)
        if cached is not None:
            return cached
        # taken before the read: set() drops the result if a write invalidated meanwhile
        generation = self.cache.generation(key)
        db = self.session_factory()
        try:
            tenant = loader(db)
            ctx = TenantContext.from_tenant(tenant) if tenant else None
        finally:
            db.close()
        if ctx is not None:
            self.cache.set(key, ctx, generation=generation)
        return ctx

    def find_by_slug(self, slug: str) -> Optional[TenantContext]:
        return self._cached_lookup(slug_key(slug), lambda db: crud_tenant.get_by_slug(db, slug))

    def find_by_verified_custom_domain(self, domain: str) -> Optional[TenantContext]:
        return self._cached_lookup(
            domain_key(domain),
            lambda db: crud_tenant.get_by_verified_custom_domain(db, domain.lower()),
        )

    def find_by_id(self, tenant_id: str) -> Optional[TenantContext]:
        db = self.session_factory()
        try:
            tenant = crud_tenant.get(db, tenant_id)
            return TenantContext.from_tenant(tenant) if tenant else None
        finally:
            db.close()

    def is_verified_custom_domain(self, domain: str) -> bool:
        return self.find_by_verified_custom_domain(domain) is not None

    def update(self, tenant_id: str, fields: Dict[str, Any]) -> Optional[TenantContext]:
        """Write tenant fields; slug / custom domain uniqueness is enforced here."""
        db = self.session_factory()
        try:
            tenant = crud_tenant.get(db, tenant_id)
            if tenant is None:
                return None
            old_slug, old_domain = tenant.slug, tenant.custom_domain
            try:
                tenant = crud_tenant.update_fields(db, db_obj=tenant, fields=fields)
            except IntegrityError as e:
                db.rollback()
                field = "custom_domain" if "custom_domain" in fields else "slug"
                logger.info("Uniqueness conflict updating tenant %s (%s): %s", tenant_id, field, e.orig)
                raise DirectoryConflict(field) from e
            self.invalidate(slug=old_slug, domain=old_domain)
            self.invalidate(slug=tenant.slug, domain=tenant.custom_domain)
            return TenantContext.from_tenant(tenant)
        finally:
            db.close()

    def invalidate(self, *, slug: Optional[str] = None, domain: Optional[str] = None) -> None:
        if slug:
            self.cache.invalidate(slug_key(slug))
        if domain:
            self.cache.invalidate(domain_key(domain))
