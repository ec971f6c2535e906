"""Super-admin shop management endpoints.

These routes operate on the central directory and are not tenant-scoped;
the tenant resolver lets them through without a tenant key.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status

from pos_service.api.dependencies.common import (
    get_directory,
    get_identity_bridge,
    get_provisioning_service,
)
from pos_service.core.roles import UserRole
from pos_service.middleware.auth import require_roles
from pos_service.middleware.logging import get_request_logger
from pos_service.schemas.tenant import (
    DomainCreateRequest,
    RepairUrlsResponse,
    TenantCollectionResponse,
    TenantCreateRequest,
    TenantProvisionResponse,
    TenantResponse,
    TenantStatusUpdate,
)
from pos_service.schemas.user import UserCollectionResponse, UserCreateRequest, UserResponse
from pos_service.services.identity_service import IdentityBridge, TenantUserCreate
from pos_service.services.provisioning import ProvisioningError, ProvisioningService, ProvisioningState
from pos_service.tenancy.directory import TenantDirectory, TenantRecord
from pos_service.tenancy.errors import DirectoryIntegrityError, TenantNotFoundError
from .users import create_user_for_tenant, user_resource

router = APIRouter(
    prefix="/management",
    tags=["Management"],
    dependencies=[Depends(require_roles(UserRole.SUPER_ADMIN))],
)


def tenant_resource(record: TenantRecord) -> dict:
    return {
        "type": "tenant",
        "id": record.id,
        "attributes": {
            "name": record.name,
            "slug": record.slug,
            "db_name": record.db_name,
            "owner_name": record.owner_name,
            "is_active": record.is_active,
            "domains": list(record.domains),
            "created_at": record.created_at,
            "updated_at": record.updated_at,
        }
    }


def _tenant_not_found(tenant_id: UUID) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={
            "message": f"Tenant {tenant_id} not found",
            "code": "TENANT_NOT_FOUND"
        }
    )


@router.get("/tenants", response_model=TenantCollectionResponse)
async def list_tenants(directory: TenantDirectory = Depends(get_directory)):
    """List all shops, newest first, inactive ones included."""
    tenants = await directory.list_tenants()
    return TenantCollectionResponse(
        data=[tenant_resource(t) for t in tenants],
        meta={"total": len(tenants)}
    )


@router.post("/tenants", response_model=TenantProvisionResponse, status_code=status.HTTP_201_CREATED)
async def create_tenant(
    request: Request,
    payload: TenantCreateRequest,
    provisioning: ProvisioningService = Depends(get_provisioning_service),
):
    """
    Provision a new shop.

    The owner's initial password is returned once, in meta.
    """
    log = get_request_logger(request).bind(slug=payload.slug)
    try:
        result = await provisioning.provision_tenant(
            name=payload.name,
            slug=payload.slug,
            domain=payload.domain,
            owner_name=payload.owner_name,
            owner_password=payload.owner_password,
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": str(e), "code": "INVALID_TENANT_DATA"}
        )
    except ProvisioningError as e:
        log.error("Provisioning failed", state=e.state.value)
        if e.state == ProvisioningState.DIRECTORY_RECORD_CREATING and isinstance(
            e.__cause__, DirectoryIntegrityError
        ):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail={"message": "Shop slug or domain is already registered", "code": "TENANT_EXISTS"}
            )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"message": f"Provisioning failed at {e.state.value}", "code": "PROVISIONING_FAILED"}
        )

    log.info("Shop provisioned", tenant_id=str(result.tenant.id))
    return TenantProvisionResponse(
        data=tenant_resource(result.tenant),
        meta={
            "initial_user": {
                "username": result.owner_username,
                "password": result.owner_password,
            },
            "database_created": result.database_created,
            "defaults_seeded": result.defaults_seeded,
        }
    )


@router.post("/tenants/repair-urls", response_model=RepairUrlsResponse)
async def repair_connection_urls(
    provisioning: ProvisioningService = Depends(get_provisioning_service),
):
    """Rewrite tenant connection URLs that drifted off the central cluster."""
    repaired = await provisioning.repair_connection_urls()
    return RepairUrlsResponse(repaired=[record.id for record in repaired])


@router.get("/tenants/{tenant_id}", response_model=TenantResponse)
async def get_tenant(tenant_id: UUID, directory: TenantDirectory = Depends(get_directory)):
    """Get a shop, whether active or not."""
    record = await directory.get_tenant(tenant_id)
    if record is None:
        raise _tenant_not_found(tenant_id)
    return TenantResponse(data=tenant_resource(record))


@router.patch("/tenants/{tenant_id}", response_model=TenantResponse)
async def update_tenant_status(
    tenant_id: UUID,
    payload: TenantStatusUpdate,
    directory: TenantDirectory = Depends(get_directory),
):
    """Activate or deactivate a shop; data is never touched."""
    try:
        record = await directory.set_tenant_active(tenant_id, payload.is_active)
    except TenantNotFoundError:
        raise _tenant_not_found(tenant_id)
    return TenantResponse(data=tenant_resource(record))


@router.delete("/tenants/{tenant_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_tenant(
    tenant_id: UUID,
    provisioning: ProvisioningService = Depends(get_provisioning_service),
):
    """Delete a shop's directory record; its database is left for manual cleanup."""
    try:
        await provisioning.deprovision_tenant(tenant_id)
    except TenantNotFoundError:
        raise _tenant_not_found(tenant_id)
    return None


@router.post(
    "/tenants/{tenant_id}/domains",
    response_model=TenantResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_domain(
    tenant_id: UUID,
    payload: DomainCreateRequest,
    directory: TenantDirectory = Depends(get_directory),
):
    """Map another domain to a shop."""
    try:
        record = await directory.add_domain(tenant_id, payload.domain)
    except TenantNotFoundError:
        raise _tenant_not_found(tenant_id)
    except DirectoryIntegrityError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"message": f"Domain '{payload.domain}' is already registered", "code": "DOMAIN_EXISTS"}
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": str(e), "code": "INVALID_DOMAIN"}
        )
    return TenantResponse(data=tenant_resource(record))


@router.get("/tenants/{tenant_id}/users", response_model=UserCollectionResponse)
async def list_tenant_users(
    tenant_id: UUID,
    bridge: IdentityBridge = Depends(get_identity_bridge),
):
    """List the staff of an active shop."""
    try:
        users = await bridge.list_tenant_users(tenant_id)
    except TenantNotFoundError:
        raise _tenant_not_found(tenant_id)
    return UserCollectionResponse(
        data=[user_resource(u) for u in users],
        meta={"total": len(users)}
    )


@router.post(
    "/tenants/{tenant_id}/users",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_tenant_user(
    tenant_id: UUID,
    payload: UserCreateRequest,
    bridge: IdentityBridge = Depends(get_identity_bridge),
):
    """Create a staff account in any active shop."""
    attributes = payload.data.attributes
    try:
        profile = await create_user_for_tenant(
            bridge, tenant_id, TenantUserCreate(**attributes.model_dump())
        )
    except TenantNotFoundError:
        raise _tenant_not_found(tenant_id)
    return UserResponse(data=user_resource(profile))
