"""Pydantic schemas for request/response validation."""

from .base import *
from .tenant import *
from .user import *
from .product import *
from .sale import *

__all__ = [
    # Base schemas
    "BaseSchema",
    "JSONAPIResponse",
    "JSONAPICollectionResponse",
    "DependencyHealth",
    "HealthCheckResponse",

    # Tenant schemas
    "TenantAttributes",
    "TenantResource",
    "TenantResponse",
    "TenantCollectionResponse",
    "TenantCreateRequest",
    "TenantProvisionResponse",
    "TenantStatusUpdate",
    "DomainCreateRequest",
    "RepairUrlsResponse",

    # User schemas
    "LoginRequest",
    "LoginUser",
    "LoginResponse",
    "TenantStatusResponse",
    "CurrentUserResponse",
    "UserAttributes",
    "UserResource",
    "UserResponse",
    "UserCollectionResponse",
    "UserCreateAttributes",
    "UserCreateResource",
    "UserCreateRequest",
    "PasswordChangeRequest",

    # Product schemas
    "ProductAttributes",
    "ProductResource",
    "ProductCreateRequest",
    "ProductResponse",
    "ProductCollectionResponse",
    "CategoryAttributes",
    "CategoryResource",
    "CategoryCollectionResponse",

    # Sale schemas
    "SaleItemInput",
    "SaleCreateAttributes",
    "SaleCreateResource",
    "SaleCreateRequest",
    "SaleItemAttributes",
    "SaleAttributes",
    "SaleResource",
    "SaleResponse",
]
