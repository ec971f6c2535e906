"""Authentication API endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from jose import JWTError

from pos_service.api.dependencies.common import get_app_settings, get_directory, get_identity_bridge
from pos_service.core.settings import Settings
from pos_service.middleware.auth import (
    Identity,
    decode_access_token,
    get_current_identity,
    identity_from_claims,
)
from pos_service.schemas.user import (
    CurrentUserResponse,
    LoginRequest,
    LoginResponse,
    LoginUser,
    TenantStatusResponse,
)
from pos_service.services.identity_service import (
    AccountDisabledError,
    AuthenticationFailedError,
    IdentityBridge,
    InactiveTenantError,
)
from pos_service.tenancy.directory import TenantDirectory
from pos_service.tenancy.errors import TenancyError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/login", response_model=LoginResponse)
async def login(
    request: LoginRequest,
    bridge: IdentityBridge = Depends(get_identity_bridge),
):
    """
    Authenticate against the central directory and return an access token.

    Works for shop users and super admins alike; no tenant header is needed.
    """
    try:
        result = await bridge.authenticate(request.username, request.password)
    except AuthenticationFailedError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "message": "Invalid username or password",
                "code": "INVALID_CREDENTIALS"
            }
        )
    except AccountDisabledError:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "message": "Account is disabled",
                "code": "ACCOUNT_DISABLED"
            }
        )
    except InactiveTenantError:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "message": "Shop is inactive. Please contact support.",
                "code": "TENANT_INACTIVE"
            }
        )

    return LoginResponse(
        access_token=result.access_token,
        expires_in=result.expires_in,
        user=LoginUser.model_validate(result.user),
    )


@router.get("/tenant-status", response_model=TenantStatusResponse)
async def tenant_status(
    request: Request,
    directory: TenantDirectory = Depends(get_directory),
    settings: Settings = Depends(get_app_settings),
):
    """
    Report whether the caller's shop is active.

    Reachable with a token whose shop has been deactivated, so clients can
    show a suspension notice instead of a generic 403.
    """
    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "message": "Access token required",
                "code": "AUTHORIZATION_REQUIRED"
            }
        )
    try:
        identity = identity_from_claims(decode_access_token(token.strip(), settings))
    except (JWTError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "message": "Invalid or expired token",
                "code": "INVALID_TOKEN"
            }
        )

    if identity.tenant_id is None:
        return TenantStatusResponse(active=True)
    tenant = await directory.find_tenant_by_id(identity.tenant_id)
    return TenantStatusResponse(active=tenant is not None)


@router.get("/me", response_model=CurrentUserResponse)
async def get_me(
    identity: Identity = Depends(get_current_identity),
    bridge: IdentityBridge = Depends(get_identity_bridge),
):
    """Current identity, with the shop-local profile for shop users."""
    response = CurrentUserResponse(
        id=identity.user_id,
        username=identity.username,
        role=identity.role,
        tenant_id=identity.tenant_id,
    )
    if identity.tenant_id is None:
        return response

    try:
        profile = await bridge.get_tenant_user(identity.tenant_id, identity.user_id)
    except TenancyError:
        logger.exception(f"Could not load profile of user {identity.user_id}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={
                "message": "Shop database is unavailable",
                "code": "TENANT_UNAVAILABLE"
            }
        )
    if profile is not None:
        response.employee_code = profile.employee_code
        response.full_name = profile.full_name
        response.nickname = profile.nickname
    return response
