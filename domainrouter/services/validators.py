"""
Slug and custom domain pre-flight checks.

These are advisory: uniqueness is only guaranteed by the unique indexes on
tenants.slug / tenants.custom_domain at write time.
"""
import re
from typing import Iterable, Optional

SLUG_MIN_LENGTH = 3
SLUG_MAX_LENGTH = 63
DOMAIN_MAX_LENGTH = 253

_SLUG_RE = re.compile(r"^[a-z0-9]([a-z0-9-]*[a-z0-9])?$")
_DOMAIN_RE = re.compile(r"^[a-z0-9]([a-z0-9-]*\.)+[a-z]{2,}$", re.IGNORECASE)
_NON_SLUG_CHARS = re.compile(r"[^a-z0-9]+")

SLUG_BASE_MAX_LENGTH = 50  # leaves room for a numeric suffix


def normalize(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def is_valid_slug(slug: str) -> bool:
    return (
        SLUG_MIN_LENGTH <= len(slug) <= SLUG_MAX_LENGTH
        and _SLUG_RE.match(slug) is not None
    )


def is_valid_domain(domain: str) -> bool:
    return len(domain) <= DOMAIN_MAX_LENGTH and _DOMAIN_RE.match(domain) is not None


def is_reserved_slug(slug: str, reserved: Iterable[str]) -> bool:
    return slug.lower() in set(reserved)


def is_platform_domain(domain: str, *, apex_domain: str, main_domains: Iterable[str] = ()) -> bool:
    """True for the apex, any of its subdomains, or any configured main host."""
    domain = domain.lower().rstrip(".")
    return (
        domain == apex_domain
        or domain.endswith(f".{apex_domain}")
        or domain in set(main_domains)
    )


def slugify(text: Optional[str]) -> str:
    """Derive a slug base from a business name: "Sunset Lodge!" -> "sunset-lodge"."""
    result = _NON_SLUG_CHARS.sub("-", (text or "").lower()).strip("-")
    return result[:SLUG_BASE_MAX_LENGTH].strip("-")
