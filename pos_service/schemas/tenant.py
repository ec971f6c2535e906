"""Tenant management schemas."""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import Field, StrictBool, field_validator

from pos_service.tenancy.urls import validate_slug
from .base import BaseSchema, JSONAPICollectionResponse, JSONAPIResponse


class TenantAttributes(BaseSchema):
    """Attributes for tenant resource; the connection string is never exposed."""

    name: str = Field(description="Shop display name")
    slug: str = Field(description="Unique shop slug")
    db_name: str = Field(description="Tenant database name")
    owner_name: Optional[str] = Field(None, description="Owner display name")
    is_active: bool = Field(description="Whether the shop accepts requests")
    domains: List[str] = Field(default_factory=list, description="Mapped domains")
    created_at: Optional[datetime] = Field(None, description="Creation timestamp")
    updated_at: Optional[datetime] = Field(None, description="Last update timestamp")


class TenantResource(BaseSchema):
    """JSON:API resource for tenant."""

    type: str = Field("tenant", description="Resource type")
    id: UUID = Field(description="Tenant UUID")
    attributes: TenantAttributes


class TenantResponse(JSONAPIResponse):
    """Response schema for single tenant."""

    data: TenantResource = Field(description="Tenant resource")


class TenantCollectionResponse(JSONAPICollectionResponse):
    """Response schema for tenant collection."""

    data: List[TenantResource] = Field(description="Tenant resources")


class TenantCreateRequest(BaseSchema):
    """Request schema for provisioning a shop."""

    name: str = Field(min_length=1, max_length=255, description="Shop display name")
    slug: str = Field(min_length=1, max_length=40, description="Unique shop slug")
    domain: str = Field(min_length=1, max_length=255, description="Primary domain")
    owner_name: Optional[str] = Field(None, max_length=255, description="Owner display name")
    owner_password: Optional[str] = Field(
        None, min_length=6, description="Initial owner password; generated when omitted"
    )

    @field_validator("slug")
    @classmethod
    def validate_slug_format(cls, v: str) -> str:
        return validate_slug(v)

    @field_validator("domain")
    @classmethod
    def validate_domain(cls, v: str) -> str:
        if any(ch.isspace() for ch in v) or "/" in v:
            raise ValueError("Domain must be a bare host name")
        return v.lower()


class TenantProvisionResponse(JSONAPIResponse):
    """Provisioned shop plus its one-time owner credentials in meta."""

    data: TenantResource = Field(description="Tenant resource")
    meta: Dict[str, Any] = Field(description="initial_user credentials and provisioning details")


class TenantStatusUpdate(BaseSchema):
    """Activate or deactivate a shop."""

    is_active: StrictBool = Field(description="New active flag")


class DomainCreateRequest(BaseSchema):
    """Map an additional domain to a shop."""

    domain: str = Field(min_length=1, max_length=255, description="Domain to add")


class RepairUrlsResponse(BaseSchema):
    """Result of a connection URL repair run."""

    repaired: List[UUID] = Field(description="Tenants whose URL was rewritten")
