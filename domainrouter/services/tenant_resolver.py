"""
Tenant resolution from the request hostname.

Resolution order:
  1. Main platform hosts never resolve (no lookup at all)
  2. Reserved subdomains never resolve (no lookup at all)
  3. {slug}.{apex} / {slug}.localhost → tenant by slug
       - unknown slug on an API path → TenantNotFound
       - unknown slug on a page path → continue with step 4
  4. Anything else → tenant by custom domain, verified domains only

Datastore errors and lookups slower than lookup_timeout resolve to None.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Callable, Iterable, Mapping, Optional, Tuple

from starlette.concurrency import run_in_threadpool

from domainrouter.middleware.metrics import RESOLUTION_OUTCOMES
from domainrouter.services.errors import TenantNotFound
from domainrouter.services.hostnames import HostClassification, HostKind, classify_hostname, parse_hostname
from domainrouter.services.tenant_context import TenantContext
from domainrouter.services.tenant_directory import TenantDirectory

logger = logging.getLogger("domainrouter.resolution")


class TenantResolver:
    def __init__(
        self,
        directory: TenantDirectory,
        *,
        main_domains: Iterable[str],
        apex_domain: str,
        reserved: Iterable[str],
        local_suffixes: Iterable[str] = ("localhost", "local"),
        api_prefix: str = "/api/",
        lookup_timeout: float = 2.0,
        trust_forwarded: bool = True,
    ):
        self.directory = directory
        self.main_domains = frozenset(main_domains)
        self.apex_domain = apex_domain
        self.reserved = frozenset(reserved)
        self.local_suffixes = frozenset(local_suffixes)
        self.api_prefix = api_prefix
        self.lookup_timeout = lookup_timeout
        self.trust_forwarded = trust_forwarded

    @classmethod
    def from_settings(cls, directory: TenantDirectory, settings) -> "TenantResolver":
        return cls(
            directory,
            main_domains=settings.main_domains,
            apex_domain=settings.apex_domain,
            reserved=settings.reserved_subdomains,
            local_suffixes=settings.local_dev_suffixes,
            api_prefix=settings.API_PATH_PREFIX,
            lookup_timeout=settings.TENANT_LOOKUP_TIMEOUT,
            trust_forwarded=settings.TRUST_PROXY_HEADERS,
        )

    def classify(self, headers: Mapping[str, str]) -> HostClassification:
        hostname = parse_hostname(headers, trust_forwarded=self.trust_forwarded)
        return classify_hostname(
            hostname,
            main_domains=self.main_domains,
            apex_domain=self.apex_domain,
            reserved=self.reserved,
            local_suffixes=self.local_suffixes,
        )

    def is_api_path(self, path: str) -> bool:
        return path.startswith(self.api_prefix)

    async def _lookup(self, fn: Callable[[str], Optional[TenantContext]], arg: str) -> Tuple[bool, Optional[TenantContext]]:
        """(succeeded, tenant). A failed lookup is never mistaken for "not found"."""
        try:
            # shield: a worker thread cannot be interrupted, so stop waiting instead
            ctx = await asyncio.wait_for(
                asyncio.shield(run_in_threadpool(fn, arg)), timeout=self.lookup_timeout
            )
            return True, ctx
        except asyncio.TimeoutError:
            logger.warning("Tenant lookup timed out after %.1fs for %s", self.lookup_timeout, arg)
        except Exception as e:
            logger.warning("Tenant lookup failed for %s: %s", arg, e)
        RESOLUTION_OUTCOMES.labels(outcome="error").inc()
        return False, None

    async def resolve(self, headers: Mapping[str, str], path: str) -> Optional[TenantContext]:
        host = self.classify(headers)

        if host.kind is HostKind.MAIN:
            RESOLUTION_OUTCOMES.labels(outcome="main").inc()
            return None

        if host.kind is HostKind.RESERVED:
            RESOLUTION_OUTCOMES.labels(outcome="reserved").inc()
            return None

        if host.kind is HostKind.TENANT_SUBDOMAIN:
            ok, tenant = await self._lookup(self.directory.find_by_slug, host.slug)
            if not ok:
                return None
            if tenant:
                RESOLUTION_OUTCOMES.labels(outcome="subdomain").inc()
                logger.debug("Resolved subdomain %s → tenant %s", host.hostname, tenant.id)
                return tenant
            if self.is_api_path(path):
                RESOLUTION_OUTCOMES.labels(outcome="not_found").inc()
                raise TenantNotFound(host.slug)
            # Page requests fall through to the custom domain lookup

        if not host.hostname:
            RESOLUTION_OUTCOMES.labels(outcome="none").inc()
            return None

        ok, tenant = await self._lookup(self.directory.find_by_verified_custom_domain, host.hostname)
        if tenant:
            RESOLUTION_OUTCOMES.labels(outcome="custom_domain").inc()
            logger.debug("Resolved custom domain %s → tenant %s", host.hostname, tenant.id)
            return tenant
        if ok:
            RESOLUTION_OUTCOMES.labels(outcome="none").inc()
        return None
