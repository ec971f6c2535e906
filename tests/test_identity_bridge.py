"""Tests for the central/tenant identity bridge."""

import uuid
from decimal import Decimal

import pytest
from sqlalchemy import delete, select

from pos_service.core.roles import UserRole
from pos_service.middleware.auth import decode_access_token
from pos_service.models.catalog import Product
from pos_service.models.central_user import CentralUser
from pos_service.models.tenant_user import TenantUser
from pos_service.services.identity_service import (
    AccountDisabledError,
    AuthenticationFailedError,
    DuplicateTenantUserError,
    InactiveTenantError,
    TenantUserCreate,
    UserInUseError,
    UsernameTakenError,
    UserNotFoundError,
)
from pos_service.services.sale_service import SaleLine, SaleService
from pos_service.tenancy.errors import TenantNotFoundError
from .conftest import OWNER_PASSWORD, SUPER_ADMIN_PASSWORD


def cashier(username="cashier@shop-a", employee_code="C001", **kwargs):
    return TenantUserCreate(
        username=username,
        password="cashier-pass",
        full_name="Carol Cashier",
        employee_code=employee_code,
        role=UserRole.CASHIER,
        **kwargs,
    )


async def central_users(app, username=None):
    async with app.state.database.session_factory() as session:
        query = select(CentralUser)
        if username is not None:
            query = query.where(CentralUser.username == username)
        return (await session.execute(query)).scalars().all()


async def tenant_user(app, tenant_id, user_id):
    handle = await app.state.connection_cache.get_handle(tenant_id)
    async with handle.session() as session:
        return await session.get(TenantUser, user_id)


@pytest.fixture
def bridge(app):
    return app.state.identity_bridge


@pytest.mark.asyncio
async def test_user_is_mirrored_with_the_same_id(app, bridge, shop_a):
    created = await bridge.create_tenant_user(shop_a.tenant.id, cashier(nickname="Caz"))

    [central] = await central_users(app, "cashier@shop-a")
    local = await tenant_user(app, shop_a.tenant.id, created.id)

    assert central.id == created.id == local.id
    assert central.tenant_id == shop_a.tenant.id
    assert central.role == local.role == "CASHIER"
    assert central.password_hash == local.password_hash
    assert central.password_hash != "cashier-pass"
    assert local.nickname == "Caz"


@pytest.mark.asyncio
async def test_usernames_are_unique_case_insensitively(app, bridge, shop_a, shop_b):
    await bridge.create_tenant_user(shop_a.tenant.id, cashier())

    with pytest.raises(UsernameTakenError):
        await bridge.create_tenant_user(
            shop_b.tenant.id, cashier(username="Cashier@Shop-A", employee_code="C900")
        )

    assert len(await central_users(app, "cashier@shop-a")) == 1
    assert all(u.username != "cashier@shop-a" for u in await bridge.list_tenant_users(shop_b.tenant.id))


@pytest.mark.asyncio
async def test_tenant_rejection_leaves_no_central_orphan(app, bridge, shop_a):
    """An employee code clash in the shop rolls back the central insert."""
    with pytest.raises(DuplicateTenantUserError):
        await bridge.create_tenant_user(shop_a.tenant.id, cashier(employee_code="OWN001"))

    assert await central_users(app, "cashier@shop-a") == []
    assert not await bridge.username_exists("cashier@shop-a")


@pytest.mark.asyncio
async def test_cached_handle_does_not_reopen_a_deactivated_shop(app, bridge, shop_a):
    await app.state.connection_cache.get_handle(shop_a.tenant.id)
    await app.state.directory.set_tenant_active(shop_a.tenant.id, False)

    assert shop_a.tenant.id in app.state.connection_cache
    with pytest.raises(TenantNotFoundError):
        await bridge.list_tenant_users(shop_a.tenant.id)
    with pytest.raises(TenantNotFoundError):
        await bridge.get_tenant_user(shop_a.tenant.id, uuid.uuid4())


@pytest.mark.asyncio
async def test_unreachable_shop_fails_before_any_write(app, bridge, shop_a):
    await app.state.directory.set_tenant_active(shop_a.tenant.id, False)

    with pytest.raises(TenantNotFoundError):
        await bridge.create_tenant_user(shop_a.tenant.id, cashier())

    assert await central_users(app, "cashier@shop-a") == []


@pytest.mark.asyncio
async def test_super_admin_has_no_tenant(app, bridge):
    admin = await bridge.create_super_admin("Root", SUPER_ADMIN_PASSWORD)

    assert admin.username == "root"
    assert admin.role == "SUPER_ADMIN"
    assert admin.tenant_id is None

    result = await bridge.authenticate("ROOT", SUPER_ADMIN_PASSWORD)
    claims = decode_access_token(result.access_token, app.state.settings)

    assert claims["sub"] == str(admin.id)
    assert claims["role"] == "SUPER_ADMIN"
    assert "tenant_id" not in claims

    with pytest.raises(UsernameTakenError):
        await bridge.create_super_admin("root", "another-pass")


@pytest.mark.asyncio
async def test_authenticate_issues_tenant_bound_token(app, bridge, shop_a):
    result = await bridge.authenticate("Admin@Shop-A", OWNER_PASSWORD)
    claims = decode_access_token(result.access_token, app.state.settings)

    assert claims["tenant_id"] == str(shop_a.tenant.id)
    assert claims["username"] == "admin@shop-a"
    assert claims["role"] == "OWNER"
    assert result.expires_in == app.state.settings.jwt_access_token_expire_minutes * 60

    [central] = await central_users(app, "admin@shop-a")
    assert central.last_login_at is not None


@pytest.mark.asyncio
async def test_authenticate_failures(app, bridge, shop_a):
    with pytest.raises(AuthenticationFailedError):
        await bridge.authenticate("admin@shop-a", "wrong-password")
    with pytest.raises(AuthenticationFailedError):
        await bridge.authenticate("nobody", OWNER_PASSWORD)

    async with app.state.database.session_factory() as session:
        user = (await session.execute(
            select(CentralUser).where(CentralUser.username == "admin@shop-a")
        )).scalar_one()
        user.is_active = False
        await session.commit()

    with pytest.raises(AccountDisabledError):
        await bridge.authenticate("admin@shop-a", OWNER_PASSWORD)


@pytest.mark.asyncio
async def test_authenticate_rejects_inactive_shop(app, bridge, shop_a):
    await app.state.directory.set_tenant_active(shop_a.tenant.id, False)

    with pytest.raises(InactiveTenantError):
        await bridge.authenticate("admin@shop-a", OWNER_PASSWORD)


@pytest.mark.asyncio
async def test_password_change_updates_both_copies(app, bridge, shop_a):
    created = await bridge.create_tenant_user(shop_a.tenant.id, cashier())

    await bridge.change_password(shop_a.tenant.id, created.id, "brand-new-pass")

    [central] = await central_users(app, "cashier@shop-a")
    local = await tenant_user(app, shop_a.tenant.id, created.id)
    assert central.password_hash == local.password_hash
    assert await bridge.verify_password("brand-new-pass", local.password_hash)

    await bridge.authenticate("cashier@shop-a", "brand-new-pass")
    with pytest.raises(AuthenticationFailedError):
        await bridge.authenticate("cashier@shop-a", "cashier-pass")


@pytest.mark.asyncio
async def test_password_change_restores_central_on_tenant_failure(app, bridge, shop_a):
    created = await bridge.create_tenant_user(shop_a.tenant.id, cashier())
    handle = await app.state.connection_cache.get_handle(shop_a.tenant.id)
    async with handle.session() as session:
        await session.execute(delete(TenantUser).where(TenantUser.id == created.id))
        await session.commit()

    with pytest.raises(UserNotFoundError):
        await bridge.change_password(shop_a.tenant.id, created.id, "brand-new-pass")

    # The old password still works; the new one never took effect
    await bridge.authenticate("cashier@shop-a", "cashier-pass")
    with pytest.raises(AuthenticationFailedError):
        await bridge.authenticate("cashier@shop-a", "brand-new-pass")


@pytest.mark.asyncio
async def test_password_change_is_scoped_to_the_shop(bridge, shop_a, shop_b):
    created = await bridge.create_tenant_user(shop_a.tenant.id, cashier())

    with pytest.raises(UserNotFoundError):
        await bridge.change_password(shop_b.tenant.id, created.id, "brand-new-pass")


@pytest.mark.asyncio
async def test_delete_removes_both_copies(app, bridge, shop_a):
    created = await bridge.create_tenant_user(shop_a.tenant.id, cashier())

    await bridge.delete_tenant_user(shop_a.tenant.id, created.id)

    assert await central_users(app, "cashier@shop-a") == []
    assert await tenant_user(app, shop_a.tenant.id, created.id) is None
    with pytest.raises(UserNotFoundError):
        await bridge.delete_tenant_user(shop_a.tenant.id, created.id)


@pytest.mark.asyncio
async def test_user_with_sales_cannot_be_deleted(app, bridge, shop_a):
    created = await bridge.create_tenant_user(shop_a.tenant.id, cashier())
    handle = await app.state.connection_cache.get_handle(shop_a.tenant.id)
    async with handle.session() as session:
        product = Product(name="Lighter", price=Decimal("20.00"), stock=3)
        session.add(product)
        await session.commit()
    async with handle.session() as session:
        await SaleService(session).create_sale(created.id, [SaleLine(product_id=product.id, quantity=1)])

    with pytest.raises(UserInUseError):
        await bridge.delete_tenant_user(shop_a.tenant.id, created.id)

    assert len(await central_users(app, "cashier@shop-a")) == 1
    assert await tenant_user(app, shop_a.tenant.id, created.id) is not None


@pytest.mark.asyncio
async def test_list_tenant_users_is_per_shop(bridge, shop_a, shop_b):
    await bridge.create_tenant_user(shop_a.tenant.id, cashier())

    usernames_a = {u.username for u in await bridge.list_tenant_users(shop_a.tenant.id)}
    usernames_b = {u.username for u in await bridge.list_tenant_users(shop_b.tenant.id)}

    assert usernames_a == {"admin@shop-a", "cashier@shop-a"}
    assert usernames_b == {"admin@shop-b"}
