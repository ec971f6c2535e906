"""Pytest configuration and fixtures.

Every test gets its own directory of SQLite files: the central database and
one file per provisioned shop, migrated with the real tenant migrations.
"""

from datetime import timedelta
from typing import Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from pos_service.core.roles import UserRole
from pos_service.core.settings import Settings
from pos_service.main import create_app
from pos_service.middleware.auth import create_access_token

OWNER_PASSWORD = "owner-secret"
SUPER_ADMIN_PASSWORD = "root-secret"


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Test settings with file-based SQLite databases."""
    return Settings(
        environment="test",
        log_level="WARNING",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'central.db'}",
        jwt_secret_key="test-secret-key",
        bcrypt_rounds=4,
        default_owner_password=OWNER_PASSWORD,
    )


@pytest_asyncio.fixture
async def app(settings):
    """Application with its central schema created."""
    application = create_app(settings)
    await application.state.database.create_all()
    yield application
    await application.state.connection_cache.close_all()
    await application.state.database.disconnect()


@pytest_asyncio.fixture
async def client(app):
    """HTTP client talking to the application in-process."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def shop_a(app):
    """Provisioned shop 'shop-a'."""
    return await app.state.provisioning.provision_tenant(
        name="Shop A", slug="shop-a", domain="shop-a.example.com", owner_name="Alice"
    )


@pytest_asyncio.fixture
async def shop_b(app):
    """Provisioned shop 'shop-b'."""
    return await app.state.provisioning.provision_tenant(
        name="Shop B", slug="shop-b", domain="shop-b.example.com", owner_name="Bob"
    )


@pytest_asyncio.fixture
async def super_admin(app):
    return await app.state.identity_bridge.create_super_admin("root", SUPER_ADMIN_PASSWORD)


def make_token(
    settings: Settings,
    user_id,
    role: UserRole,
    tenant_id=None,
    username: str = "tester",
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Sign a token the way the login endpoint does."""
    claims = {"sub": str(user_id), "username": username, "role": role.value}
    if tenant_id is not None:
        claims["tenant_id"] = str(tenant_id)
    return create_access_token(claims, settings, expires_delta)


def bearer(token: str, domain: Optional[str] = None) -> dict:
    headers = {"Authorization": f"Bearer {token}"}
    if domain is not None:
        headers["X-Tenant-Domain"] = domain
    return headers


async def login(client: AsyncClient, username: str, password: str) -> str:
    response = await client.post("/api/auth/login", json={"username": username, "password": password})
    assert response.status_code == 200, response.text
    return response.json()["access_token"]


@pytest.fixture
def super_admin_headers(settings, super_admin):
    """Authorization headers for the super admin (no tenant binding)."""
    token = make_token(settings, super_admin.id, UserRole.SUPER_ADMIN, username=super_admin.username)
    return bearer(token)


@pytest_asyncio.fixture
async def owner_a_headers(client, shop_a):
    token = await login(client, shop_a.owner_username, shop_a.owner_password)
    return bearer(token, "shop-a.example.com")


@pytest_asyncio.fixture
async def owner_b_headers(client, shop_b):
    token = await login(client, shop_b.owner_username, shop_b.owner_password)
    return bearer(token, "shop-b.example.com")


@pytest.fixture
def sample_product_data():
    """Sample product data for testing."""
    return {
        "data": {
            "type": "product",
            "attributes": {
                "name": "Test Product",
                "price": "120.00",
                "cost": "80.00",
                "stock": 5,
                "min_stock": 1,
                "stock_unit": "piece",
            }
        }
    }
