"""CNAME lookups via dnspython with a bounded lifetime."""
import logging
from typing import List, Optional, Sequence

import dns.exception
import dns.resolver

from domainrouter.services.errors import DnsLookupError

logger = logging.getLogger("domainrouter.dns")


class CnameLookup:
    """Callable: domain -> CNAME targets (lowercase, no trailing dot).

    Raises DnsLookupError with one of the DnsLookupError codes.
    """

    def __init__(self, timeout: float = 5.0, nameservers: Optional[Sequence[str]] = None):
        self.timeout = timeout
        self.nameservers = list(nameservers) if nameservers else None

    def _resolver(self) -> dns.resolver.Resolver:
        resolver = dns.resolver.Resolver(configure=not self.nameservers)
        resolver.lifetime = self.timeout
        resolver.timeout = min(resolver.timeout, self.timeout)
        if self.nameservers:
            resolver.nameservers = self.nameservers
        return resolver

    def __call__(self, domain: str) -> List[str]:
        try:
            answers = self._resolver().resolve(domain, "CNAME")
        except dns.resolver.NXDOMAIN as e:
            raise DnsLookupError(DnsLookupError.NXDOMAIN, str(e)) from e
        except dns.resolver.NoAnswer as e:
            raise DnsLookupError(DnsLookupError.NODATA, str(e)) from e
        except dns.exception.Timeout as e:
            raise DnsLookupError(DnsLookupError.TIMEOUT, str(e)) from e
        except dns.resolver.NoNameservers as e:
            raise DnsLookupError(DnsLookupError.NO_NAMESERVERS, str(e)) from e
        except dns.exception.DNSException as e:
            raise DnsLookupError(DnsLookupError.ERROR, str(e)) from e

        targets = [normalize_target(rdata.target.to_text()) for rdata in answers]
        if not targets:
            raise DnsLookupError(DnsLookupError.NODATA, f"No CNAME records for {domain}")
        logger.debug("CNAME %s → %s", domain, targets)
        return targets


def normalize_target(value: str) -> str:
    return value.strip().lower().rstrip(".")


def cname_matches(records: Sequence[str], expected: str) -> bool:
    """Exact match, or the record is a sub-label of the expected target."""
    expected = normalize_target(expected)
    for record in records:
        record = normalize_target(record)
        if record == expected or record.endswith(f".{expected}"):
            return True
    return False
