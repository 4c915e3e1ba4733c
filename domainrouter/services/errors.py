"""Exceptions raised by the resolution and verification services."""
from typing import Optional


class TenantNotFound(Exception):
    """A tenant-subdomain API request named a slug that no tenant owns."""

    def __init__(self, slug: str):
        self.slug = slug
        super().__init__(f"No property found with subdomain: {slug}")


class NoDomainConfigured(Exception):
    def __init__(self, tenant_id: str):
        self.tenant_id = tenant_id
        super().__init__("Please add a custom domain first")


class VerificationInProgress(Exception):
    def __init__(self, tenant_id: str):
        self.tenant_id = tenant_id
        super().__init__("A verification for this domain is already running")


class VerificationSuperseded(Exception):
    """The domain changed, or a newer attempt took over, while DNS was checked."""

    def __init__(self, tenant_id: str, domain: str):
        self.tenant_id = tenant_id
        self.domain = domain
        super().__init__(f"Verification of {domain} was superseded by a newer change")


class DnsLookupError(Exception):
    NXDOMAIN = "NXDOMAIN"
    NODATA = "NODATA"
    TIMEOUT = "TIMEOUT"
    NO_NAMESERVERS = "NONAMESERVERS"
    ERROR = "ERROR"

    def __init__(self, code: str, message: Optional[str] = None):
        self.code = code
        super().__init__(message or code)

    @property
    def record_missing(self) -> bool:
        return self.code in (self.NXDOMAIN, self.NODATA)


class DirectoryConflict(Exception):
    """A write would violate slug or custom-domain uniqueness."""

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"{field} is already in use")
