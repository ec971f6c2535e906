"""Common FastAPI dependencies."""

from typing import AsyncGenerator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from pos_service.core.settings import Settings
from pos_service.middleware.tenant import get_tenant_handle
from pos_service.services.identity_service import IdentityBridge
from pos_service.services.provisioning import ProvisioningService
from pos_service.tenancy.connection_cache import TenantConnectionCache, TenantHandle
from pos_service.tenancy.directory import TenantDirectory


async def get_tenant_session(
    handle: TenantHandle = Depends(get_tenant_handle),
) -> AsyncGenerator[AsyncSession, None]:
    """Session on the database of the tenant resolved for this request."""
    async with handle.session() as session:
        yield session


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_directory(request: Request) -> TenantDirectory:
    return request.app.state.directory


def get_connection_cache(request: Request) -> TenantConnectionCache:
    return request.app.state.connection_cache


def get_identity_bridge(request: Request) -> IdentityBridge:
    return request.app.state.identity_bridge


def get_provisioning_service(request: Request) -> ProvisioningService:
    return request.app.state.provisioning

