"""Tenant directory: authoritative tenant lookups against the central database.

Every read goes to the central database. Nothing here is cached in-process,
so deactivating a tenant affects the very next resolution.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker

from pos_service.models.tenant import Domain, Tenant
from .errors import DirectoryIntegrityError, TenantNotFoundError
from .urls import derive_tenant_database_url, same_cluster

logger = logging.getLogger(__name__)


def normalize_domain(domain: Optional[str]) -> str:
    return (domain or "").strip().lower()


@dataclass(frozen=True)
class TenantRecord:
    """Read-only view of a tenant row, detached from any session."""

    id: uuid.UUID
    name: str
    slug: str
    db_name: str
    db_url: str = field(repr=False)
    owner_name: Optional[str]
    is_active: bool
    created_at: datetime
    updated_at: datetime
    domains: Tuple[str, ...] = ()

    @classmethod
    def from_model(cls, tenant: Tenant) -> "TenantRecord":
        return cls(
            id=tenant.id,
            name=tenant.name,
            slug=tenant.slug,
            db_name=tenant.db_name,
            db_url=tenant.db_url,
            owner_name=tenant.owner_name,
            is_active=tenant.is_active,
            created_at=tenant.created_at,
            updated_at=tenant.updated_at,
            domains=tuple(d.domain for d in tenant.domains),
        )


class TenantDirectory:
    """Tenant and domain lookups backed by the central management database."""

    def __init__(self, session_factory: async_sessionmaker, central_database_url: str):
        self._session_factory = session_factory
        self._central_database_url = central_database_url

    async def find_tenant_by_domain(self, domain: str) -> Optional[TenantRecord]:
        """Resolve a domain to its tenant; inactive tenants are reported as not found."""
        domain = normalize_domain(domain)
        if not domain:
            return None
        async with self._session_factory() as session:
            result = await session.execute(
                select(Tenant)
                .join(Domain, Domain.tenant_id == Tenant.id)
                .where(Domain.domain == domain)
            )
            tenant = result.scalar_one_or_none()
            if tenant is None or not tenant.is_active:
                return None
            return TenantRecord.from_model(tenant)

    async def find_tenant_by_id(self, tenant_id: uuid.UUID) -> Optional[TenantRecord]:
        """Look up an active tenant by id."""
        record = await self.get_tenant(tenant_id)
        if record is None or not record.is_active:
            return None
        return record

    async def get_tenant(self, tenant_id: uuid.UUID) -> Optional[TenantRecord]:
        """Administrative lookup that ignores the active flag."""
        async with self._session_factory() as session:
            tenant = await session.get(Tenant, tenant_id)
            return TenantRecord.from_model(tenant) if tenant else None

    async def list_tenants(self) -> List[TenantRecord]:
        """All tenants, most recently created first."""
        async with self._session_factory() as session:
            result = await session.execute(select(Tenant).order_by(Tenant.created_at.desc()))
            return [TenantRecord.from_model(t) for t in result.scalars().all()]

    async def set_tenant_active(self, tenant_id: uuid.UUID, is_active: bool) -> TenantRecord:
        """
        Activate or deactivate a tenant.

        Takes effect for every new resolution immediately. Handles already
        cached for the tenant are left open.
        """
        async with self._session_factory() as session:
            tenant = await session.get(Tenant, tenant_id)
            if tenant is None:
                raise TenantNotFoundError(f"Tenant {tenant_id} not found")
            tenant.is_active = is_active
            await session.commit()
            await session.refresh(tenant)
            logger.info(f"Tenant {tenant_id} is_active set to {is_active}")
            return TenantRecord.from_model(tenant)

    async def create_tenant_record(
        self,
        name: str,
        slug: str,
        db_name: str,
        db_url: str,
        domain: str,
        owner_name: Optional[str] = None,
    ) -> TenantRecord:
        """Insert a tenant and its primary domain in one central transaction."""
        async with self._session_factory() as session:
            tenant = Tenant(
                id=uuid.uuid4(),
                name=name,
                slug=slug,
                db_name=db_name,
                db_url=db_url,
                owner_name=owner_name,
                is_active=True,
            )
            tenant.domains.append(Domain(domain=normalize_domain(domain), is_primary=True))
            session.add(tenant)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise DirectoryIntegrityError(
                    f"Tenant slug '{slug}' or domain '{domain}' is already registered"
                ) from e
            return TenantRecord.from_model(tenant)

    async def add_domain(self, tenant_id: uuid.UUID, domain: str) -> TenantRecord:
        """Map an additional domain to an existing tenant."""
        domain = normalize_domain(domain)
        if not domain:
            raise ValueError("Domain must not be empty")
        async with self._session_factory() as session:
            tenant = await session.get(Tenant, tenant_id)
            if tenant is None:
                raise TenantNotFoundError(f"Tenant {tenant_id} not found")
            tenant.domains.append(Domain(domain=domain, is_primary=not tenant.domains))
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise DirectoryIntegrityError(f"Domain '{domain}' is already registered") from e
            return TenantRecord.from_model(tenant)

    async def delete_tenant(self, tenant_id: uuid.UUID) -> TenantRecord:
        """
        Delete a tenant with its domains and central users.

        The tenant database itself is left in place for manual cleanup.
        """
        async with self._session_factory() as session:
            tenant = await session.get(Tenant, tenant_id)
            if tenant is None:
                raise TenantNotFoundError(f"Tenant {tenant_id} not found")
            record = TenantRecord.from_model(tenant)
            await session.delete(tenant)
            await session.commit()
            logger.info(f"Deleted tenant {tenant_id}; database {record.db_name} was not dropped")
            return record

    async def find_drifted_tenants(self) -> List[TenantRecord]:
        """Tenants whose stored URL no longer targets the central cluster."""
        return [
            record for record in await self.list_tenants()
            if not same_cluster(record.db_url, self._central_database_url)
        ]

    async def repair_connection_urls(self) -> List[TenantRecord]:
        """Rewrite drifted tenant URLs from the central URL, keeping each database name."""
        repaired = []
        async with self._session_factory() as session:
            result = await session.execute(select(Tenant))
            for tenant in result.scalars().all():
                if same_cluster(tenant.db_url, self._central_database_url):
                    continue
                tenant.db_url = derive_tenant_database_url(
                    self._central_database_url, tenant.db_name
                )
                repaired.append(tenant)
            await session.commit()
            for tenant in repaired:
                logger.warning(f"Repaired connection URL for tenant {tenant.id} ({tenant.slug})")
            return [TenantRecord.from_model(t) for t in repaired]
