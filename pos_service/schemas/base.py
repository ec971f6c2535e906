"""Shared schema building blocks for JSON:API documents."""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class BaseSchema(BaseModel):
    """Common model configuration; ORM rows are read through attributes."""

    class Config:
        from_attributes = True
        populate_by_name = True
        str_strip_whitespace = True
        validate_assignment = True


class JSONAPIResponse(BaseSchema):
    """Document wrapping a single resource."""

    data: Optional[Dict[str, Any]] = None
    meta: Optional[Dict[str, Any]] = None


class JSONAPICollectionResponse(BaseSchema):
    """Document wrapping a list of resources; meta carries the total."""

    data: List[Dict[str, Any]] = Field(default_factory=list)
    meta: Optional[Dict[str, Any]] = None


HealthStatus = Literal["healthy", "degraded", "unhealthy"]


class DependencyHealth(BaseSchema):
    status: HealthStatus
    details: Optional[str] = None
    cached_handles: Optional[int] = Field(None, description="Open tenant database handles")


class HealthCheckResponse(BaseSchema):
    """Health of the central database and the tenant handle cache."""

    status: HealthStatus
    timestamp: datetime
    version: str
    environment: str
    dependencies: Dict[str, DependencyHealth]
