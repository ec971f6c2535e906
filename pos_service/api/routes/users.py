"""Staff account endpoints for the resolved shop."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status

from pos_service.api.dependencies.common import get_identity_bridge
from pos_service.core.roles import CATALOG_MANAGER_ROLES, USER_MANAGER_ROLES
from pos_service.middleware.auth import Identity, get_current_identity, require_roles
from pos_service.middleware.tenant import get_tenant_id
from pos_service.models.tenant_user import TenantUser
from pos_service.schemas.user import (
    PasswordChangeRequest,
    UserCollectionResponse,
    UserCreateRequest,
    UserResponse,
)
from pos_service.services.identity_service import (
    DuplicateTenantUserError,
    IdentityBridge,
    TenantUserCreate,
    UserInUseError,
    UsernameTakenError,
    UserNotFoundError,
)

router = APIRouter(prefix="/users", tags=["Users"])

USER_RESOURCE_EXCLUDE = {"id", "password_hash"}


def user_resource(user: TenantUser) -> dict:
    return {
        "type": "user",
        "id": user.id,
        "attributes": {k: v for k, v in user.to_dict().items() if k not in USER_RESOURCE_EXCLUDE}
    }


async def create_user_for_tenant(
    bridge: IdentityBridge,
    tenant_id: UUID,
    data: TenantUserCreate,
) -> TenantUser:
    """Create a mirrored user, translating identity errors to HTTP errors."""
    try:
        return await bridge.create_tenant_user(tenant_id, data)
    except UsernameTakenError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "message": f"Username '{data.username}' is already taken",
                "code": "USERNAME_TAKEN"
            }
        )
    except DuplicateTenantUserError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "message": f"Employee code '{data.employee_code}' is already in use",
                "code": "DUPLICATE_EMPLOYEE"
            }
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": str(e), "code": "INVALID_USER_DATA"}
        )


def _user_not_found(user_id: UUID) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={
            "message": f"User {user_id} not found",
            "code": "USER_NOT_FOUND"
        }
    )


@router.get(
    "",
    response_model=UserCollectionResponse,
    dependencies=[Depends(require_roles(*CATALOG_MANAGER_ROLES))],
)
async def list_users(
    tenant_id: UUID = Depends(get_tenant_id),
    bridge: IdentityBridge = Depends(get_identity_bridge),
):
    """List the staff of the current shop."""
    users = await bridge.list_tenant_users(tenant_id)
    return UserCollectionResponse(
        data=[user_resource(u) for u in users],
        meta={"total": len(users)}
    )


@router.post(
    "",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_roles(*USER_MANAGER_ROLES))],
)
async def create_user(
    payload: UserCreateRequest,
    tenant_id: UUID = Depends(get_tenant_id),
    bridge: IdentityBridge = Depends(get_identity_bridge),
):
    """Create a staff account in the current shop."""
    data = TenantUserCreate(**payload.data.attributes.model_dump())
    profile = await create_user_for_tenant(bridge, tenant_id, data)
    return UserResponse(data=user_resource(profile))


@router.put("/{user_id}/password", status_code=status.HTTP_204_NO_CONTENT)
async def change_password(
    user_id: UUID,
    payload: PasswordChangeRequest,
    tenant_id: UUID = Depends(get_tenant_id),
    identity: Identity = Depends(get_current_identity),
    bridge: IdentityBridge = Depends(get_identity_bridge),
):
    """Change a password; users may change their own, managers anyone's in the shop."""
    allowed_roles = {role.value for role in USER_MANAGER_ROLES}
    if identity.user_id != user_id and identity.role not in allowed_roles:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "message": "You do not have permission to perform this action",
                "code": "INSUFFICIENT_PERMISSIONS"
            }
        )
    try:
        await bridge.change_password(tenant_id, user_id, payload.new_password)
    except UserNotFoundError:
        raise _user_not_found(user_id)
    return None


@router.delete(
    "/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_roles(*USER_MANAGER_ROLES))],
)
async def delete_user(
    user_id: UUID,
    tenant_id: UUID = Depends(get_tenant_id),
    identity: Identity = Depends(get_current_identity),
    bridge: IdentityBridge = Depends(get_identity_bridge),
):
    """Delete a staff account from the shop and the central directory."""
    if identity.user_id == user_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "message": "You cannot delete your own account",
                "code": "CANNOT_DELETE_SELF"
            }
        )
    try:
        await bridge.delete_tenant_user(tenant_id, user_id)
    except UserNotFoundError:
        raise _user_not_found(user_id)
    except UserInUseError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "message": "User is referenced by shop records and cannot be deleted",
                "code": "USER_IN_USE"
            }
        )
    return None
