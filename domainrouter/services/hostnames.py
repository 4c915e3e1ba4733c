"""Hostname parsing and classification. Pure functions, no I/O."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Mapping, Optional


class HostKind(str, Enum):
    MAIN = "main"
    RESERVED = "reserved"
    TENANT_SUBDOMAIN = "tenant_subdomain"
    OPAQUE = "opaque"


@dataclass(frozen=True)
class HostClassification:
    kind: HostKind
    hostname: str
    slug: Optional[str] = None


def _strip_port(host: str) -> str:
    host = host.strip()
    if host.startswith("["):
        # IPv6 literal: [::1]:8080
        end = host.find("]")
        return host[: end + 1] if end != -1 else host
    return host.split(":", 1)[0]


def parse_hostname(headers: Mapping[str, str], *, trust_forwarded: bool = True) -> str:
    """Effective request hostname, lowercased and without port.

    A reverse proxy's X-Forwarded-Host wins over Host; when proxies chain,
    the first value is the client-facing one.
    """
    host = ""
    if trust_forwarded:
        forwarded = headers.get("x-forwarded-host") or ""
        host = forwarded.split(",")[0].strip()
    if not host:
        host = headers.get("host") or ""
    return _strip_port(host).lower()


def _leftmost_label(hostname: str, suffix: str) -> Optional[str]:
    if not hostname.endswith(f".{suffix}"):
        return None
    label = hostname[: -(len(suffix) + 1)].split(".")[0]
    return label or None


def classify_hostname(
    hostname: str,
    *,
    main_domains: Iterable[str],
    apex_domain: str,
    reserved: Iterable[str],
    local_suffixes: Iterable[str] = ("localhost", "local"),
) -> HostClassification:
    if hostname in set(main_domains):
        return HostClassification(HostKind.MAIN, hostname)

    reserved = set(reserved)
    for suffix in (apex_domain, *sorted(local_suffixes)):
        slug = _leftmost_label(hostname, suffix)
        if slug is None:
            continue
        if slug in reserved:
            return HostClassification(HostKind.RESERVED, hostname, slug=slug)
        return HostClassification(HostKind.TENANT_SUBDOMAIN, hostname, slug=slug)

    return HostClassification(HostKind.OPAQUE, hostname)
