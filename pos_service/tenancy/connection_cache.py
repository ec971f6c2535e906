"""Process-local cache of open tenant database handles."""

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncGenerator, Dict, List, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from pos_service.core.database import create_engine_for_url, create_session_factory, mask_database_url
from pos_service.core.settings import Settings
from .directory import TenantDirectory, TenantRecord
from .errors import TenantConfigurationError, TenantConnectionError, TenantNotFoundError
from .urls import same_cluster

logger = logging.getLogger(__name__)


@dataclass
class TenantHandle:
    """Live, reusable connection pool bound to exactly one tenant database."""

    tenant_id: uuid.UUID
    db_name: str
    engine: AsyncEngine
    session_factory: async_sessionmaker

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Open a session on this tenant's database."""
        async with self.session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    async def dispose(self) -> None:
        await self.engine.dispose()


class TenantConnectionCache:
    """
    At most one live handle per tenant id within the process.

    Handles are created lazily on first use and reused across requests. A
    per-tenant lock serialises first access, so concurrent requests for a
    tenant that has never been seen still produce exactly one handle. Failed
    opens are not cached; the next request retries from scratch.
    """

    def __init__(self, directory: TenantDirectory, settings: Settings):
        self._directory = directory
        self._settings = settings
        self._handles: Dict[uuid.UUID, TenantHandle] = {}
        self._locks: Dict[uuid.UUID, asyncio.Lock] = {}

    def __len__(self) -> int:
        return len(self._handles)

    def __contains__(self, tenant_id: uuid.UUID) -> bool:
        return tenant_id in self._handles

    def cached_tenant_ids(self) -> List[uuid.UUID]:
        return list(self._handles)

    def peek(self, tenant_id: uuid.UUID) -> Optional[TenantHandle]:
        """Return the cached handle without opening one."""
        return self._handles.get(tenant_id)

    async def get_handle(self, tenant_id: uuid.UUID) -> TenantHandle:
        """
        Return the live handle for a tenant, opening it on first use.

        Raises:
            TenantNotFoundError: the tenant is unknown or inactive and no
                handle is cached yet
            TenantConfigurationError: the stored URL drifted off the central cluster
            TenantConnectionError: the tenant database could not be reached
        """
        handle = self._handles.get(tenant_id)
        if handle is not None:
            return handle

        lock = self._locks.setdefault(tenant_id, asyncio.Lock())
        async with lock:
            handle = self._handles.get(tenant_id)
            if handle is not None:
                return handle

            tenant = await self._directory.find_tenant_by_id(tenant_id)
            if tenant is None:
                raise TenantNotFoundError(f"Tenant {tenant_id} not found")

            handle = await self._open(tenant)
            self._handles[tenant_id] = handle
            return handle

    async def _open(self, tenant: TenantRecord) -> TenantHandle:
        if self._settings.enforce_tenant_url_match and not same_cluster(
            tenant.db_url, self._settings.database_url
        ):
            logger.error(
                f"Connection URL for tenant {tenant.id} does not match the central cluster: "
                f"{mask_database_url(tenant.db_url)}"
            )
            raise TenantConfigurationError(f"Connection URL drift for tenant {tenant.id}")

        engine = create_engine_for_url(
            tenant.db_url,
            pool_size=self._settings.tenant_pool_size,
            max_overflow=self._settings.tenant_max_overflow,
            pool_timeout=self._settings.database_pool_timeout,
            pool_recycle=self._settings.database_pool_recycle,
            echo=self._settings.debug,
        )
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except Exception as e:
            await engine.dispose()
            logger.error(
                f"Failed to open database {tenant.db_name} for tenant {tenant.id}: {e}"
            )
            raise TenantConnectionError(f"Could not open database for tenant {tenant.id}") from e

        logger.info(
            f"Opened handle for tenant {tenant.id} at {mask_database_url(tenant.db_url)}"
        )
        return TenantHandle(
            tenant_id=tenant.id,
            db_name=tenant.db_name,
            engine=engine,
            session_factory=create_session_factory(engine),
        )

    async def invalidate(self, tenant_id: uuid.UUID) -> bool:
        """Drop and dispose a tenant's handle; the next access reopens it."""
        handle = self._handles.pop(tenant_id, None)
        lock = self._locks.get(tenant_id)
        if lock is not None and not lock.locked():
            del self._locks[tenant_id]
        if handle is None:
            return False
        await handle.dispose()
        logger.info(f"Invalidated handle for tenant {tenant_id}")
        return True

    async def close_all(self) -> None:
        """Dispose every cached handle (application shutdown)."""
        handles, self._handles = list(self._handles.values()), {}
        self._locks = {key: lock for key, lock in self._locks.items() if lock.locked()}
        for handle in handles:
            await handle.dispose()
        if handles:
            logger.info(f"Closed {len(handles)} tenant database handles")
