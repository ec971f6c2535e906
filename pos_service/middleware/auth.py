"""Authentication middleware and dependencies."""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request, status
from jose import JWTError, jwt
from passlib.context import CryptContext
from starlette.middleware.base import BaseHTTPMiddleware

from pos_service.core.responses import error_response
from pos_service.core.roles import UserRole
from pos_service.core.settings import Settings
from pos_service.tenancy.directory import TenantDirectory
from .paths import is_allow_listed

logger = logging.getLogger(__name__)


@lru_cache()
def get_password_context(rounds: int = 12) -> CryptContext:
    """Bcrypt password context with a configurable work factor."""
    return CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)


def create_access_token(
    data: Dict[str, Any],
    settings: Settings,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Create a JWT access token."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.jwt_access_token_expire_minutes)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str, settings: Settings) -> Dict[str, Any]:
    """Verify signature and expiry; raises JWTError."""
    return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])


@dataclass(frozen=True)
class Identity:
    """Verified caller identity attached to the request."""

    user_id: uuid.UUID
    username: str
    role: str
    tenant_id: Optional[uuid.UUID]

    @property
    def is_super_admin(self) -> bool:
        return self.role == UserRole.SUPER_ADMIN.value


def identity_from_claims(payload: Dict[str, Any]) -> Identity:
    """Validate token claims; raises ValueError on malformed content."""
    subject = payload.get("sub")
    role = payload.get("role")
    if not subject or not role:
        raise ValueError("Token must contain 'sub' and 'role' claims")
    tenant_claim = payload.get("tenant_id")
    return Identity(
        user_id=uuid.UUID(str(subject)),
        username=payload.get("username", ""),
        role=role,
        tenant_id=uuid.UUID(str(tenant_claim)) if tenant_claim else None,
    )


class AuthenticationMiddleware(BaseHTTPMiddleware):
    """
    Bearer token gate for every API path outside the allow-list.

    A token that names a tenant is only honoured while that tenant is still
    active in the central directory, checked on every request.
    """

    PUBLIC_API_PATHS = (
        "/auth/login",
        "/auth/tenant-status",
        "/health",
    )

    def __init__(self, app, directory: TenantDirectory, settings: Settings):
        super().__init__(app)
        self.directory = directory
        self.settings = settings

    async def dispatch(self, request: Request, call_next):
        """Process request and validate authentication."""
        path = request.url.path
        if is_allow_listed(path, self.settings.api_prefix, self.PUBLIC_API_PATHS):
            return await call_next(request)

        authorization = request.headers.get("Authorization", "")
        scheme, _, token = authorization.partition(" ")
        token = token.strip()
        if scheme.lower() != "bearer" or not token:
            logger.warning(f"Missing bearer credential for {path}")
            return error_response(
                status.HTTP_401_UNAUTHORIZED,
                "AUTHORIZATION_REQUIRED",
                "Access token required",
                pointer=path,
                headers={"WWW-Authenticate": "Bearer"},
            )

        try:
            identity = identity_from_claims(decode_access_token(token, self.settings))
        except (JWTError, ValueError) as e:
            logger.warning(f"Token validation failed for {path}: {e}")
            return error_response(
                status.HTTP_403_FORBIDDEN,
                "INVALID_TOKEN",
                "Invalid or expired token",
                pointer=path,
            )

        if identity.tenant_id is not None:
            try:
                tenant = await self.directory.find_tenant_by_id(identity.tenant_id)
            except Exception:
                logger.exception(f"Tenant status check failed for {identity.tenant_id}")
                return error_response(
                    status.HTTP_500_INTERNAL_SERVER_ERROR,
                    "INTERNAL_SERVER_ERROR",
                    "Internal server error during authentication",
                )
            if tenant is None:
                logger.warning(
                    f"Rejected token of user {identity.user_id} for inactive tenant {identity.tenant_id}"
                )
                return error_response(
                    status.HTTP_403_FORBIDDEN,
                    "TENANT_INACTIVE",
                    "Shop is inactive. Please contact support.",
                    pointer=path,
                )

        request.state.identity = identity
        request.state.user_id = identity.user_id
        request.state.username = identity.username
        request.state.user_role = identity.role
        request.state.user_tenant_id = identity.tenant_id

        logger.debug(f"Authenticated user {identity.user_id} for {path}")
        return await call_next(request)


def get_current_identity(request: Request) -> Identity:
    """Extract the verified identity from request state."""
    identity = getattr(request.state, "identity", None)
    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "message": "User not authenticated",
                "code": "USER_CONTEXT_ERROR"
            }
        )
    return identity


def require_roles(*roles: UserRole):
    """Dependency to require one of the given roles."""
    allowed = {role.value for role in roles}

    def role_checker(request: Request) -> Identity:
        identity = get_current_identity(request)
        if identity.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "message": "You do not have permission to perform this action",
                    "code": "INSUFFICIENT_PERMISSIONS"
                }
            )
        return identity
    return role_checker
