"""Tenant provisioning workflow.

Creates a shop's database, migrates and seeds it, registers it in the central
directory and creates the owner account. Each step either completes or raises
ProvisioningError carrying the state it failed in; nothing is retried.
Re-running the workflow for the same slug is the supported recovery path,
which is why database creation treats "already exists" as success.
"""

import re
import secrets
import uuid
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional, Union

import structlog
from alembic import command
from alembic.config import Config
from sqlalchemy import select, text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncEngine

from pos_service.core.database import (
    DatabaseManager,
    create_engine_for_url,
    create_session_factory,
    is_sqlite_url,
    mask_database_url,
)
from pos_service.core.roles import UserRole
from pos_service.core.settings import Settings
from pos_service.models.catalog import Category
from pos_service.models.store import PaymentMethod, SystemSetting
from pos_service.services.identity_service import IdentityBridge, TenantUserCreate
from pos_service.tenancy.connection_cache import TenantConnectionCache
from pos_service.tenancy.directory import TenantDirectory, TenantRecord, normalize_domain
from pos_service.tenancy.errors import DirectoryIntegrityError
from pos_service.tenancy.urls import derive_tenant_database_url, tenant_database_name, validate_slug

logger = structlog.get_logger(__name__)

DEFAULT_TENANT_MIGRATIONS = Path(__file__).resolve().parents[2] / "migrations" / "tenant"

DATABASE_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")
DUPLICATE_DATABASE_SQLSTATE = "42P04"

BASELINE_CATEGORIES = (
    {"name": "Flower", "name_en": "Flower", "slug": "flower",
     "color": "#10B981", "icon": "Flower2", "sort_order": 1},
    {"name": "Extract", "name_en": "Extract", "slug": "extract",
     "color": "#8B5CF6", "icon": "Droplet", "sort_order": 2},
    {"name": "Accessories", "name_en": "Accessories", "slug": "accessories",
     "color": "#6366F1", "icon": "Package", "sort_order": 3},
)

DEFAULT_PAYMENT_METHODS = (
    {"name": "Cash", "name_en": "Cash", "type": "CASH", "icon": "Banknote", "is_default": True},
    {"name": "Transfer", "name_en": "Transfer", "type": "TRANSFER", "icon": "ArrowLeftRight", "is_default": False},
)


class ProvisioningState(str, Enum):
    """Steps of the provisioning workflow, in order."""

    DB_CREATING = "DB_CREATING"
    DB_READY = "DB_READY"
    SCHEMA_MIGRATING = "SCHEMA_MIGRATING"
    SCHEMA_READY = "SCHEMA_READY"
    DIRECTORY_RECORD_CREATING = "DIRECTORY_RECORD_CREATING"
    COMPLETE = "COMPLETE"
    IDENTITY_MIRRORING = "IDENTITY_MIRRORING"
    DEFAULTS_SEEDING = "DEFAULTS_SEEDING"


class ProvisioningError(Exception):
    """Raised when a provisioning step fails; `state` names the step."""

    def __init__(self, state: ProvisioningState, message: str):
        super().__init__(message)
        self.state = state
        self.message = message


@dataclass
class ProvisioningResult:
    tenant: TenantRecord
    owner_username: str
    owner_password: str
    database_created: bool
    defaults_seeded: bool
    state: ProvisioningState = ProvisioningState.COMPLETE


def is_duplicate_database_error(error: DBAPIError) -> bool:
    """Recognise the server's "database already exists" failure."""
    orig = getattr(error, "orig", None)
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code == DUPLICATE_DATABASE_SQLSTATE:
        return True
    return "already exists" in str(error).lower()


class PostgresDatabaseProvisioner:
    """Creates tenant databases on the central PostgreSQL cluster."""

    def __init__(self, engine: AsyncEngine):
        self._engine = engine

    async def create_database(self, db_name: str, db_url: str) -> bool:
        """Create the database; returns False when it already existed."""
        if not DATABASE_NAME_PATTERN.match(db_name):
            raise ValueError(f"Refusing to create database with name '{db_name}'")
        # CREATE DATABASE cannot run inside a transaction block
        async with self._engine.connect() as conn:
            conn = await conn.execution_options(isolation_level="AUTOCOMMIT")
            try:
                await conn.execute(text(f'CREATE DATABASE "{db_name}"'))
            except DBAPIError as e:
                if is_duplicate_database_error(e):
                    return False
                raise
        return True


class SqliteDatabaseProvisioner:
    """Creates tenant database files next to the central SQLite file."""

    async def create_database(self, db_name: str, db_url: str) -> bool:
        path = Path(make_url(db_url).database)
        path.parent.mkdir(parents=True, exist_ok=True)
        try:
            path.touch(exist_ok=False)
        except FileExistsError:
            return False
        return True


class TenantSchemaMigrator:
    """Applies the tenant Alembic migrations to one tenant database."""

    def __init__(self, script_location: Optional[Union[str, Path]] = None):
        self.script_location = Path(script_location or DEFAULT_TENANT_MIGRATIONS)

    def _run_upgrade(self, connection, revision: str) -> None:
        cfg = Config()
        cfg.set_main_option("script_location", str(self.script_location))
        cfg.attributes["connection"] = connection
        command.upgrade(cfg, revision)

    async def upgrade(self, engine: AsyncEngine, revision: str = "head") -> None:
        async with engine.begin() as conn:
            await conn.run_sync(self._run_upgrade, revision)


async def seed_baseline_categories(engine: AsyncEngine) -> int:
    """Insert the baseline categories that are not there yet."""
    session_factory = create_session_factory(engine)
    async with session_factory() as session:
        result = await session.execute(select(Category.slug))
        existing = set(result.scalars().all())
        missing = [data for data in BASELINE_CATEGORIES if data["slug"] not in existing]
        for data in missing:
            session.add(Category(description=f"{data['name']} products", is_active=True, **data))
        await session.commit()
    return len(missing)


class ProvisioningService:
    """Orchestrates tenant creation, deletion and connection URL repair."""

    def __init__(
        self,
        database: DatabaseManager,
        directory: TenantDirectory,
        identity_bridge: IdentityBridge,
        connection_cache: TenantConnectionCache,
        settings: Settings,
        database_provisioner=None,
        migrator: Optional[TenantSchemaMigrator] = None,
    ):
        self._directory = directory
        self._identity = identity_bridge
        self._cache = connection_cache
        self._settings = settings
        if database_provisioner is None:
            if is_sqlite_url(settings.database_url):
                database_provisioner = SqliteDatabaseProvisioner()
            else:
                database_provisioner = PostgresDatabaseProvisioner(database.engine)
        self._provisioner = database_provisioner
        self._migrator = migrator or TenantSchemaMigrator(settings.tenant_migrations_path)

    async def provision_tenant(
        self,
        name: str,
        slug: str,
        domain: str,
        owner_name: Optional[str] = None,
        owner_password: Optional[str] = None,
    ) -> ProvisioningResult:
        """
        Provision a new shop.

        Args:
            name: Display name of the shop
            slug: Unique slug; determines the database name
            domain: Primary domain mapped to the shop
            owner_name: Optional owner display name
            owner_password: Optional initial owner password; falls back to
                the configured default, then to a generated one

        Returns:
            ProvisioningResult with the registered tenant and owner credentials

        Raises:
            ValueError: invalid slug, name or domain
            ProvisioningError: a step failed; `state` names the step
        """
        name = (name or "").strip()
        if not name:
            raise ValueError("Shop name must not be empty")
        slug = validate_slug(slug)
        domain = normalize_domain(domain)
        if not domain:
            raise ValueError("Domain must not be empty")

        db_name = tenant_database_name(slug, self._settings.tenant_database_prefix)
        db_url = derive_tenant_database_url(self._settings.database_url, db_name)
        log = logger.bind(slug=slug, db_name=db_name)
        log.info("Provisioning tenant", name=name, domain=domain, db_url=mask_database_url(db_url))

        state = ProvisioningState.DB_CREATING
        try:
            database_created = await self._provisioner.create_database(db_name, db_url)
        except Exception as e:
            log.error("Database creation failed", state=state.value, error=str(e))
            raise ProvisioningError(state, "Failed to create tenant database") from e
        if database_created:
            log.info("Database created", state=ProvisioningState.DB_READY.value)
        else:
            log.warning("Database already exists, skipping creation", state=ProvisioningState.DB_READY.value)

        state = ProvisioningState.SCHEMA_MIGRATING
        engine = create_engine_for_url(db_url, pool_size=1, max_overflow=0)
        try:
            await self._migrator.upgrade(engine)
            seeded = await seed_baseline_categories(engine)
        except Exception as e:
            log.error("Schema migration failed", state=state.value, error=str(e))
            raise ProvisioningError(state, "Failed to migrate tenant database") from e
        finally:
            await engine.dispose()
        log.info("Schema ready", state=ProvisioningState.SCHEMA_READY.value, categories_seeded=seeded)

        state = ProvisioningState.DIRECTORY_RECORD_CREATING
        try:
            tenant = await self._directory.create_tenant_record(
                name=name,
                slug=slug,
                db_name=db_name,
                db_url=db_url,
                domain=domain,
                owner_name=owner_name,
            )
        except DirectoryIntegrityError as e:
            log.error("Directory record rejected", state=state.value, error=str(e))
            raise ProvisioningError(state, str(e)) from e
        except Exception as e:
            log.error("Directory record creation failed", state=state.value, error=str(e))
            raise ProvisioningError(state, "Failed to register tenant") from e
        log = log.bind(tenant_id=str(tenant.id))
        log.info("Tenant registered", state=ProvisioningState.COMPLETE.value)

        state = ProvisioningState.IDENTITY_MIRRORING
        owner_username = f"admin@{slug}"
        password = owner_password or self._settings.default_owner_password or secrets.token_urlsafe(12)
        try:
            await self._identity.create_tenant_user(
                tenant.id,
                TenantUserCreate(
                    username=owner_username,
                    password=password,
                    full_name=owner_name or f"{name} Owner",
                    nickname="Owner",
                    employee_code=self._settings.default_owner_employee_code,
                    role=UserRole.OWNER,
                ),
            )
        except Exception as e:
            log.error("Owner account creation failed", state=state.value, error=str(e))
            raise ProvisioningError(state, "Failed to create owner account") from e
        log.info("Owner account created", state=state.value, username=owner_username)

        defaults_seeded = await self._seed_defaults(tenant, log)

        return ProvisioningResult(
            tenant=tenant,
            owner_username=owner_username,
            owner_password=password,
            database_created=database_created,
            defaults_seeded=defaults_seeded,
        )

    async def _seed_defaults(self, tenant: TenantRecord, log) -> bool:
        """Payment methods and the store profile; failures are only logged."""
        try:
            handle = await self._cache.get_handle(tenant.id)
            async with handle.session() as session:
                result = await session.execute(select(PaymentMethod.type))
                existing_types = set(result.scalars().all())
                for data in DEFAULT_PAYMENT_METHODS:
                    if data["type"] not in existing_types:
                        session.add(PaymentMethod(is_active=True, **data))

                store = await session.execute(select(SystemSetting).where(SystemSetting.key == "store"))
                if store.scalar_one_or_none() is None:
                    session.add(SystemSetting(key="store", value={"storeName": tenant.name}))
                await session.commit()
        except Exception as e:
            log.warning(
                "Default seeding failed",
                state=ProvisioningState.DEFAULTS_SEEDING.value,
                error=str(e),
                exc_info=True,
            )
            return False
        log.info("Defaults seeded", state=ProvisioningState.DEFAULTS_SEEDING.value)
        return True

    async def deprovision_tenant(self, tenant_id: uuid.UUID) -> TenantRecord:
        """
        Remove a tenant from the directory and close its handle.

        The tenant database is not dropped.
        """
        record = await self._directory.delete_tenant(tenant_id)
        await self._cache.invalidate(tenant_id)
        logger.warning(
            "Tenant deleted; database left in place",
            tenant_id=str(tenant_id),
            db_name=record.db_name,
        )
        return record

    async def repair_connection_urls(self) -> List[TenantRecord]:
        """Rewrite drifted tenant URLs and drop their cached handles."""
        repaired = await self._directory.repair_connection_urls()
        for record in repaired:
            await self._cache.invalidate(record.id)
        return repaired
