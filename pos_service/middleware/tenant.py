"""Tenant resolution middleware for database-per-tenant isolation."""

import logging
import uuid
from typing import Optional

from fastapi import HTTPException, Request, status
from starlette.middleware.base import BaseHTTPMiddleware

from pos_service.core.responses import error_response
from pos_service.core.settings import Settings
from pos_service.tenancy.connection_cache import TenantConnectionCache, TenantHandle
from pos_service.tenancy.directory import TenantDirectory
from pos_service.tenancy.errors import TenantNotFoundError
from .paths import is_allow_listed

logger = logging.getLogger(__name__)


def host_without_port(host: Optional[str]) -> str:
    """Strip the port from a Host header value, IPv6 literals included."""
    host = (host or "").strip()
    if host.startswith("["):
        return host[1:].split("]", 1)[0]
    return host.rsplit(":", 1)[0] if host.count(":") == 1 else host


class TenantResolverMiddleware(BaseHTTPMiddleware):
    """
    Resolve the acting tenant for every tenant-scoped request.

    The tenant key comes from the tenant header, falling back to the request
    host. Unknown and deactivated tenants receive the same 404 so that callers
    cannot probe which shops exist. On success the tenant's database handle
    is attached to request.state; it is the only handle downstream handlers
    may use.
    """

    TENANT_INDEPENDENT_PATHS = (
        "/health",
        "/auth/login",
        "/auth/tenant-status",
        "/auth/me",
        "/management",
    )

    def __init__(
        self,
        app,
        directory: TenantDirectory,
        connection_cache: TenantConnectionCache,
        settings: Settings,
    ):
        super().__init__(app)
        self.directory = directory
        self.connection_cache = connection_cache
        self.settings = settings

    def extract_tenant_key(self, request: Request) -> str:
        header_value = request.headers.get(self.settings.tenant_header, "").strip()
        if header_value:
            return header_value
        return host_without_port(request.headers.get("host"))

    async def dispatch(self, request: Request, call_next):
        """Resolve the tenant and attach its handle to the request."""
        path = request.url.path
        if is_allow_listed(path, self.settings.api_prefix, self.TENANT_INDEPENDENT_PATHS):
            return await call_next(request)

        tenant_key = self.extract_tenant_key(request)
        if not tenant_key:
            logger.warning(f"No tenant key for {path}")
            return error_response(
                status.HTTP_400_BAD_REQUEST,
                "TENANT_KEY_REQUIRED",
                "Tenant could not be determined",
                detail=f"Send the {self.settings.tenant_header} header or use a shop domain",
                pointer=path,
            )

        try:
            tenant = await self.directory.find_tenant_by_domain(tenant_key)
            if tenant is None:
                return self._not_found(path, tenant_key)

            # A tenant-bound credential may only reach its own shop
            user_tenant_id = getattr(request.state, "user_tenant_id", None)
            if user_tenant_id is not None and user_tenant_id != tenant.id:
                logger.warning(
                    f"User {getattr(request.state, 'user_id', None)} of tenant {user_tenant_id} "
                    f"attempted to reach tenant {tenant.id}"
                )
                return self._not_found(path, tenant_key)

            handle = await self.connection_cache.get_handle(tenant.id)
        except TenantNotFoundError:
            # Deactivated between lookup and handle acquisition
            return self._not_found(path, tenant_key)
        except Exception:
            logger.exception(f"Tenant resolution failed for key '{tenant_key}'")
            return error_response(
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                "TENANT_RESOLUTION_FAILED",
                "Failed to resolve tenant",
            )

        request.state.tenant_id = tenant.id
        request.state.tenant_handle = handle
        logger.debug(f"Resolved tenant {tenant.id} for {path}")

        return await call_next(request)

    @staticmethod
    def _not_found(path: str, tenant_key: str):
        logger.info(f"Tenant key '{tenant_key}' did not resolve")
        return error_response(
            status.HTTP_404_NOT_FOUND,
            "TENANT_NOT_FOUND",
            "Tenant not found or inactive",
            pointer=path,
        )


def get_tenant_id(request: Request) -> uuid.UUID:
    """Extract the resolved tenant id from request state."""
    tenant_id = getattr(request.state, "tenant_id", None)
    if tenant_id is None:
        raise HTTPException(
            status_code=500,
            detail={
                "message": "Tenant context not established",
                "code": "TENANT_CONTEXT_ERROR"
            }
        )
    return tenant_id


def get_tenant_handle(request: Request) -> TenantHandle:
    """Extract the resolved tenant handle from request state."""
    handle = getattr(request.state, "tenant_handle", None)
    if handle is None:
        raise HTTPException(
            status_code=500,
            detail={
                "message": "Tenant context not established",
                "code": "TENANT_CONTEXT_ERROR"
            }
        )
    return handle
