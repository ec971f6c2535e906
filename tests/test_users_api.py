"""Tests for the shop staff account API."""

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from pos_service.models.central_user import CentralUser
from .conftest import bearer, login


def user_payload(username="cashier@shop-a", employee_code="C001", role="CASHIER", password="cashier-pass"):
    return {
        "data": {
            "type": "user",
            "attributes": {
                "username": username,
                "password": password,
                "full_name": "Carol Cashier",
                "employee_code": employee_code,
                "role": role,
                "phone": "+66 81 234 5678",
            }
        }
    }


async def create_cashier(client, headers, **kwargs):
    response = await client.post("/api/users", json=user_payload(**kwargs), headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


@pytest.mark.asyncio
async def test_owner_creates_a_cashier(client: AsyncClient, owner_a_headers):
    user = await create_cashier(client, owner_a_headers)

    assert user["type"] == "user"
    assert user["attributes"]["username"] == "cashier@shop-a"
    assert user["attributes"]["role"] == "CASHIER"
    assert user["attributes"]["phone"] == "+66 81 234 5678"
    assert "password_hash" not in user["attributes"]

    token = await login(client, "cashier@shop-a", "cashier-pass")
    me = await client.get("/api/auth/me", headers=bearer(token))
    assert me.json()["id"] == user["id"]
    assert me.json()["employee_code"] == "C001"


@pytest.mark.asyncio
async def test_list_users(client: AsyncClient, owner_a_headers):
    await create_cashier(client, owner_a_headers)

    response = await client.get("/api/users", headers=owner_a_headers)

    assert response.status_code == 200
    assert response.json()["meta"]["total"] == 2


@pytest.mark.asyncio
async def test_username_taken_in_another_shop(client: AsyncClient, owner_a_headers, owner_b_headers):
    await create_cashier(client, owner_a_headers)

    response = await client.post(
        "/api/users", json=user_payload(username="CASHIER@shop-a", employee_code="B001"), headers=owner_b_headers
    )

    assert response.status_code == 409
    assert response.json()["errors"][0]["code"] == "USERNAME_TAKEN"


@pytest.mark.asyncio
async def test_duplicate_employee_code(client: AsyncClient, app, owner_a_headers):
    """The shop rejects the duplicate and the central record is rolled back."""
    response = await client.post(
        "/api/users", json=user_payload(username="second@shop-a", employee_code="OWN001"), headers=owner_a_headers
    )

    assert response.status_code == 409
    assert response.json()["errors"][0]["code"] == "DUPLICATE_EMPLOYEE"
    async with app.state.database.session_factory() as session:
        orphan = await session.execute(select(CentralUser).where(CentralUser.username == "second@shop-a"))
        assert orphan.scalar_one_or_none() is None


@pytest.mark.asyncio
@pytest.mark.parametrize("overrides", [
    {"role": "SUPER_ADMIN"},
    {"password": "12345"},
    {"username": "ab"},
    {"role": "JANITOR"},
])
async def test_create_user_validation(client: AsyncClient, owner_a_headers, overrides):
    response = await client.post("/api/users", json=user_payload(**overrides), headers=owner_a_headers)

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_cashier_cannot_manage_users(client: AsyncClient, owner_a_headers):
    await create_cashier(client, owner_a_headers)
    cashier_headers = bearer(await login(client, "cashier@shop-a", "cashier-pass"), "shop-a.example.com")

    creation = await client.post(
        "/api/users", json=user_payload(username="other@shop-a", employee_code="C002"), headers=cashier_headers
    )
    listing = await client.get("/api/users", headers=cashier_headers)

    assert creation.status_code == 403
    assert listing.status_code == 403


@pytest.mark.asyncio
async def test_user_changes_own_password(client: AsyncClient, owner_a_headers):
    user = await create_cashier(client, owner_a_headers)
    cashier_headers = bearer(await login(client, "cashier@shop-a", "cashier-pass"), "shop-a.example.com")

    response = await client.put(
        f"/api/users/{user['id']}/password", json={"new_password": "fresh-pass"}, headers=cashier_headers
    )

    assert response.status_code == 204
    await login(client, "cashier@shop-a", "fresh-pass")
    stale = await client.post("/api/auth/login", json={"username": "cashier@shop-a", "password": "cashier-pass"})
    assert stale.status_code == 401


@pytest.mark.asyncio
async def test_cashier_cannot_change_other_passwords(client: AsyncClient, owner_a_headers):
    await create_cashier(client, owner_a_headers)
    cashier_headers = bearer(await login(client, "cashier@shop-a", "cashier-pass"), "shop-a.example.com")
    owner_id = (await client.get("/api/auth/me", headers=owner_a_headers)).json()["id"]

    response = await client.put(
        f"/api/users/{owner_id}/password", json={"new_password": "hijacked"}, headers=cashier_headers
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_owner_resets_a_password(client: AsyncClient, owner_a_headers):
    user = await create_cashier(client, owner_a_headers)

    response = await client.put(
        f"/api/users/{user['id']}/password", json={"new_password": "reset-pass"}, headers=owner_a_headers
    )

    assert response.status_code == 204
    await login(client, "cashier@shop-a", "reset-pass")


@pytest.mark.asyncio
async def test_delete_user(client: AsyncClient, owner_a_headers):
    user = await create_cashier(client, owner_a_headers)

    response = await client.delete(f"/api/users/{user['id']}", headers=owner_a_headers)

    assert response.status_code == 204
    stale = await client.post("/api/auth/login", json={"username": "cashier@shop-a", "password": "cashier-pass"})
    assert stale.status_code == 401
    again = await client.delete(f"/api/users/{user['id']}", headers=owner_a_headers)
    assert again.status_code == 404


@pytest.mark.asyncio
async def test_cannot_delete_self(client: AsyncClient, owner_a_headers):
    owner_id = (await client.get("/api/auth/me", headers=owner_a_headers)).json()["id"]

    response = await client.delete(f"/api/users/{owner_id}", headers=owner_a_headers)

    assert response.status_code == 400
    assert response.json()["errors"][0]["code"] == "CANNOT_DELETE_SELF"


@pytest.mark.asyncio
async def test_user_of_another_shop_is_not_found(client: AsyncClient, owner_a_headers, owner_b_headers):
    user = await create_cashier(client, owner_a_headers)

    response = await client.delete(f"/api/users/{user['id']}", headers=owner_b_headers)

    assert response.status_code == 404
