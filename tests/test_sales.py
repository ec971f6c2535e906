"""Tests for sale checkout."""

import re
import uuid
from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select

from pos_service.models.catalog import Product
from pos_service.models.sale import Bill, Sale, StockMovement
from .conftest import bearer, login


async def create_product(client, headers, name, price="100.00", stock=5):
    response = await client.post(
        "/api/products",
        json={"data": {"type": "product", "attributes": {"name": name, "price": price, "stock": stock}}},
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]["id"]


def sale_payload(*items, payment_method="cash", discount="0"):
    return {
        "data": {
            "type": "sale",
            "attributes": {
                "items": [{"product_id": pid, "quantity": qty} for pid, qty in items],
                "payment_method": payment_method,
                "discount": discount,
            }
        }
    }


async def count(app, tenant_id, model):
    handle = await app.state.connection_cache.get_handle(tenant_id)
    async with handle.session() as session:
        return (await session.execute(select(func.count()).select_from(model))).scalar()


async def product_row(app, tenant_id, product_id):
    handle = await app.state.connection_cache.get_handle(tenant_id)
    async with handle.session() as session:
        return await session.get(Product, uuid.UUID(product_id))


@pytest.mark.asyncio
async def test_sale_updates_stock_and_issues_bill(client: AsyncClient, app, shop_a, owner_a_headers):
    product_id = await create_product(client, owner_a_headers, "Rolling Papers", price="45.50", stock=5)

    response = await client.post(
        "/api/sales", json=sale_payload((product_id, 2), discount="1.00"), headers=owner_a_headers
    )

    assert response.status_code == 201
    attributes = response.json()["data"]["attributes"]
    assert re.match(r"^POS-\d{8}-[0-9A-F]{8}$", attributes["sale_number"])
    assert re.match(r"^BILL-\d{8}-[0-9A-F]{8}$", attributes["bill_number"])
    assert attributes["payment_method"] == "CASH"
    assert Decimal(attributes["subtotal"]) == Decimal("91.00")
    assert Decimal(attributes["total_amount"]) == Decimal("90.00")
    assert len(attributes["items"]) == 1
    assert attributes["items"][0]["product_name"] == "Rolling Papers"
    assert attributes["items"][0]["quantity"] == 2

    product = await product_row(app, shop_a.tenant.id, product_id)
    assert product.stock == 3
    assert product.total_sold == 2

    handle = await app.state.connection_cache.get_handle(shop_a.tenant.id)
    async with handle.session() as session:
        movement = (await session.execute(select(StockMovement))).scalar_one()
        bill = (await session.execute(select(Bill))).scalar_one()
    assert (movement.previous_quantity, movement.quantity_change, movement.new_quantity) == (5, -2, 3)
    assert movement.movement_type == "SALE"
    assert bill.status == "COMPLETED"
    assert str(bill.sale_id) == response.json()["data"]["id"]


@pytest.mark.asyncio
async def test_insufficient_stock_changes_nothing(client: AsyncClient, app, shop_a, owner_a_headers):
    product_id = await create_product(client, owner_a_headers, "Grinder", stock=1)

    response = await client.post("/api/sales", json=sale_payload((product_id, 2)), headers=owner_a_headers)

    assert response.status_code == 400
    assert response.json()["errors"][0]["code"] == "INSUFFICIENT_STOCK"
    assert (await product_row(app, shop_a.tenant.id, product_id)).stock == 1
    assert await count(app, shop_a.tenant.id, Sale) == 0
    assert await count(app, shop_a.tenant.id, StockMovement) == 0


@pytest.mark.asyncio
async def test_failing_line_rolls_back_the_whole_sale(client: AsyncClient, app, shop_a, owner_a_headers):
    in_stock = await create_product(client, owner_a_headers, "Lighter", stock=5)
    sold_out = await create_product(client, owner_a_headers, "Tray", stock=0)

    response = await client.post(
        "/api/sales", json=sale_payload((in_stock, 1), (sold_out, 1)), headers=owner_a_headers
    )

    assert response.status_code == 400
    assert (await product_row(app, shop_a.tenant.id, in_stock)).stock == 5
    assert await count(app, shop_a.tenant.id, Sale) == 0
    assert await count(app, shop_a.tenant.id, Bill) == 0


@pytest.mark.asyncio
async def test_repeated_lines_are_checked_together(client: AsyncClient, app, shop_a, owner_a_headers):
    product_id = await create_product(client, owner_a_headers, "Filter Tips", stock=3)

    response = await client.post(
        "/api/sales", json=sale_payload((product_id, 2), (product_id, 2)), headers=owner_a_headers
    )

    assert response.status_code == 400
    assert response.json()["errors"][0]["code"] == "INSUFFICIENT_STOCK"
    assert (await product_row(app, shop_a.tenant.id, product_id)).stock == 3


@pytest.mark.asyncio
async def test_unknown_product(client: AsyncClient, owner_a_headers):
    response = await client.post("/api/sales", json=sale_payload((str(uuid.uuid4()), 1)), headers=owner_a_headers)

    assert response.status_code == 400
    assert response.json()["errors"][0]["code"] == "PRODUCT_NOT_FOUND"


@pytest.mark.asyncio
async def test_product_of_another_shop_cannot_be_sold(client: AsyncClient, owner_a_headers, owner_b_headers):
    product_id = await create_product(client, owner_a_headers, "Shop A Only")

    response = await client.post("/api/sales", json=sale_payload((product_id, 1)), headers=owner_b_headers)

    assert response.status_code == 400
    assert response.json()["errors"][0]["code"] == "PRODUCT_NOT_FOUND"


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [
    {"data": {"type": "sale", "attributes": {"items": []}}},
    {"data": {"type": "sale", "attributes": {"items": [{"product_id": str(uuid.uuid4()), "quantity": 0}]}}},
])
async def test_sale_validation(client: AsyncClient, owner_a_headers, payload):
    response = await client.post("/api/sales", json=payload, headers=owner_a_headers)

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_cashier_can_sell_but_viewer_cannot(client: AsyncClient, app, shop_a, owner_a_headers):
    product_id = await create_product(client, owner_a_headers, "Hemp Wick")
    for username, code, role in (("cashier@shop-a", "C001", "CASHIER"), ("viewer@shop-a", "V001", "VIEWER")):
        created = await client.post(
            "/api/users",
            json={"data": {"type": "user", "attributes": {
                "username": username, "password": "staff-pass", "full_name": username,
                "employee_code": code, "role": role,
            }}},
            headers=owner_a_headers,
        )
        assert created.status_code == 201

    cashier = bearer(await login(client, "cashier@shop-a", "staff-pass"), "shop-a.example.com")
    viewer = bearer(await login(client, "viewer@shop-a", "staff-pass"), "shop-a.example.com")

    assert (await client.post("/api/sales", json=sale_payload((product_id, 1)), headers=cashier)).status_code == 201
    assert (await client.post("/api/sales", json=sale_payload((product_id, 1)), headers=viewer)).status_code == 403


@pytest.mark.asyncio
async def test_super_admin_without_shop_profile_cannot_sell(
    client: AsyncClient, owner_a_headers, super_admin_headers
):
    product_id = await create_product(client, owner_a_headers, "Ashtray")

    response = await client.post(
        "/api/sales",
        json=sale_payload((product_id, 1)),
        headers={**super_admin_headers, "X-Tenant-Domain": "shop-a.example.com"},
    )

    assert response.status_code == 400
    assert response.json()["errors"][0]["code"] == "SELLER_NOT_FOUND"


@pytest.mark.asyncio
async def test_line_discount_larger_than_the_line_is_rejected(client: AsyncClient, app, shop_a, owner_a_headers):
    product_id = await create_product(client, owner_a_headers, "Clipper", price="10.00", stock=5)
    payload = sale_payload((product_id, 1))
    payload["data"]["attributes"]["items"][0]["discount"] = "50.00"

    response = await client.post("/api/sales", json=payload, headers=owner_a_headers)

    assert response.status_code == 400
    assert response.json()["errors"][0]["code"] == "INVALID_DISCOUNT"
    assert (await product_row(app, shop_a.tenant.id, product_id)).stock == 5
    assert await count(app, shop_a.tenant.id, Sale) == 0


@pytest.mark.asyncio
async def test_sale_discount_larger_than_the_subtotal_is_rejected(client: AsyncClient, app, shop_a, owner_a_headers):
    product_id = await create_product(client, owner_a_headers, "Scale", price="20.00", stock=5)

    response = await client.post(
        "/api/sales", json=sale_payload((product_id, 2), discount="40.01"), headers=owner_a_headers
    )

    assert response.status_code == 400
    assert response.json()["errors"][0]["code"] == "INVALID_DISCOUNT"
    assert (await product_row(app, shop_a.tenant.id, product_id)).stock == 5
    assert await count(app, shop_a.tenant.id, StockMovement) == 0


@pytest.mark.asyncio
async def test_discount_may_cover_the_whole_subtotal(client: AsyncClient, owner_a_headers):
    product_id = await create_product(client, owner_a_headers, "Sample", price="20.00", stock=5)

    response = await client.post(
        "/api/sales", json=sale_payload((product_id, 2), discount="40.00"), headers=owner_a_headers
    )

    assert response.status_code == 201
    assert Decimal(response.json()["data"]["attributes"]["total_amount"]) == Decimal("0.00")
