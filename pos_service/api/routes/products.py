"""Product catalogue endpoints for the resolved shop."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from pos_service.api.dependencies.common import get_tenant_session
from pos_service.core.roles import CATALOG_MANAGER_ROLES
from pos_service.middleware.auth import require_roles
from pos_service.models.catalog import Product
from pos_service.schemas.product import (
    ProductCollectionResponse,
    ProductCreateRequest,
    ProductResponse,
)
from pos_service.services.catalog_service import (
    CatalogService,
    CategoryNotFoundError,
    ProductNotFoundError,
)

router = APIRouter(prefix="/products", tags=["Products"])

READ_ONLY_FIELDS = {"id", "total_sold", "created_at", "updated_at"}


def product_resource(product: Product) -> dict:
    return {
        "type": "product",
        "id": product.id,
        "attributes": {k: v for k, v in product.to_dict().items() if k != "id"}
    }


@router.get("", response_model=ProductCollectionResponse)
async def list_products(
    category_id: Optional[UUID] = Query(None, description="Filter by category"),
    q: Optional[str] = Query(None, max_length=255, description="Search by name"),
    include_inactive: bool = Query(False, description="Include inactive products"),
    session: AsyncSession = Depends(get_tenant_session),
):
    """List the current shop's products."""
    products = await CatalogService(session).list_products(
        category_id=category_id,
        search=q,
        include_inactive=include_inactive,
    )
    return ProductCollectionResponse(
        data=[product_resource(p) for p in products],
        meta={"total": len(products)}
    )


@router.post(
    "",
    response_model=ProductResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_roles(*CATALOG_MANAGER_ROLES))],
)
async def create_product(
    request: ProductCreateRequest,
    session: AsyncSession = Depends(get_tenant_session),
):
    """Create a product in the current shop."""
    product_data = request.data.attributes.model_dump(exclude=READ_ONLY_FIELDS)
    try:
        product = await CatalogService(session).create_product(product_data)
    except CategoryNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": str(e), "code": "CATEGORY_NOT_FOUND"}
        )
    return ProductResponse(data=product_resource(product))


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: UUID,
    session: AsyncSession = Depends(get_tenant_session),
):
    """Get a product of the current shop."""
    try:
        product = await CatalogService(session).get_product(product_id)
    except ProductNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"message": "Product not found", "code": "PRODUCT_NOT_FOUND"}
        )
    return ProductResponse(data=product_resource(product))
