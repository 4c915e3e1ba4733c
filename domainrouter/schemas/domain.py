from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


# ── Requests ──

class SlugUpdate(BaseModel):
    slug: str


class CustomDomainCreate(BaseModel):
    domain: str


class DirectoryUpdate(BaseModel):
    is_listed: Optional[bool] = None
    description: Optional[str] = Field(default=None, max_length=2000)
    featured_image_url: Optional[str] = Field(default=None, max_length=1000)
    tags: Optional[List[str]] = None


# ── Responses ──

class DomainSettings(BaseModel):
    slug: Optional[str] = None
    subdomain: Optional[str] = None
    subdomain_url: Optional[str] = None
    custom_domain: Optional[str] = None
    custom_domain_url: Optional[str] = None
    domain_verification_status: Optional[str] = None
    domain_verified_at: Optional[datetime] = None
    ssl_status: Optional[str] = None
    ssl_issued_at: Optional[datetime] = None
    ssl_expires_at: Optional[datetime] = None
    is_listed_in_directory: bool = False
    directory_description: Optional[str] = None
    directory_featured_image_url: Optional[str] = None
    directory_tags: List[str] = []
    cname_target: str


class SlugUpdateResult(BaseModel):
    success: bool = True
    slug: str
    subdomain_url: str


class SlugCheck(BaseModel):
    slug: str
    available: bool
    reason: Optional[str] = None
    suggestion: Optional[str] = None


class DnsInstructions(BaseModel):
    type: str = "CNAME"
    name: str
    target: str
    ttl: int = 3600
    message: str


class CustomDomainResult(BaseModel):
    success: bool = True
    domain: str
    status: str
    dns_instructions: DnsInstructions


class VerificationResult(BaseModel):
    success: bool
    verified: bool
    message: str
    domain: str
    domain_url: Optional[str] = None
    expected: Optional[str] = None
    found: Optional[List[str]] = None
    hint: Optional[str] = None
    error_code: Optional[str] = None


class VerificationRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    domain: str
    verification_type: str
    expected_value: Optional[str] = None
    actual_value: Optional[List[str]] = None
    status: str
    error_message: Optional[str] = None
    checked_at: Optional[datetime] = None


class TenantPublic(BaseModel):
    id: str
    slug: Optional[str] = None
    business_name: Optional[str] = None
    custom_domain: Optional[str] = None
    public_url: str
    resolved_from_hostname: bool = False


class DirectoryProperty(BaseModel):
    id: str
    business_name: Optional[str] = None
    slug: str
    description: Optional[str] = None
    featured_image_url: Optional[str] = None
    tags: List[str] = []
    public_url: str


class DirectoryListing(BaseModel):
    properties: List[DirectoryProperty]
    count: int
    limit: int
    offset: int
