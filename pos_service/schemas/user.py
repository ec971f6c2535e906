"""Authentication and staff account schemas."""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import Field, field_validator

from pos_service.core.roles import UserRole
from .base import BaseSchema, JSONAPICollectionResponse, JSONAPIResponse


class LoginRequest(BaseSchema):
    """User login request."""

    username: str = Field(..., min_length=1, max_length=150, description="Username")
    password: str = Field(..., min_length=1, description="Password")


class LoginUser(BaseSchema):
    """Identity summary returned with a token."""

    id: UUID
    username: str
    role: str
    tenant_id: Optional[UUID] = None


class LoginResponse(BaseSchema):
    """Token response model."""

    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type")
    expires_in: int = Field(..., description="Token expiration time in seconds")
    user: LoginUser = Field(..., description="Authenticated identity")


class TenantStatusResponse(BaseSchema):
    """Whether the caller's shop is still active."""

    active: bool


class CurrentUserResponse(BaseSchema):
    """The caller's identity and, for shop users, their local profile."""

    id: UUID
    username: str
    role: str
    tenant_id: Optional[UUID] = None
    employee_code: Optional[str] = None
    full_name: Optional[str] = None
    nickname: Optional[str] = None


class UserAttributes(BaseSchema):
    """Attributes for user resource."""

    username: str
    employee_code: str
    full_name: str
    nickname: Optional[str] = None
    phone: Optional[str] = None
    avatar_url: Optional[str] = None
    role: str
    is_active: bool
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class UserResource(BaseSchema):
    """JSON:API resource for user."""

    type: str = Field("user", description="Resource type")
    id: UUID = Field(description="User UUID, identical in central and shop databases")
    attributes: UserAttributes


class UserResponse(JSONAPIResponse):
    data: UserResource


class UserCollectionResponse(JSONAPICollectionResponse):
    data: List[UserResource]


class UserCreateAttributes(BaseSchema):
    """Attributes accepted when creating a staff account."""

    username: str = Field(min_length=3, max_length=150, description="Login name, unique system-wide")
    password: str = Field(min_length=6, description="Initial password")
    full_name: str = Field(min_length=1, max_length=255, description="Full name")
    employee_code: str = Field(min_length=1, max_length=50, description="Employee code, unique in the shop")
    role: UserRole = Field(UserRole.CASHIER, description="Role inside the shop")
    nickname: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=50)
    avatar_url: Optional[str] = Field(None, max_length=500)

    @field_validator("role")
    @classmethod
    def validate_role(cls, v: UserRole) -> UserRole:
        if v == UserRole.SUPER_ADMIN:
            raise ValueError("Shop users cannot be super admins")
        return v


class UserCreateResource(BaseSchema):
    type: str = Field("user", description="Resource type")
    attributes: UserCreateAttributes


class UserCreateRequest(BaseSchema):
    """Request schema for creating a staff account."""

    data: UserCreateResource = Field(description="User data to create")


class PasswordChangeRequest(BaseSchema):
    """Password change request."""

    new_password: str = Field(..., min_length=6, description="New password")
