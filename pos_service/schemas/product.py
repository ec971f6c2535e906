"""Product catalogue schemas."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import Field

from .base import BaseSchema, JSONAPICollectionResponse, JSONAPIResponse


class ProductAttributes(BaseSchema):
    """Attributes for product resource."""

    name: str = Field(min_length=1, max_length=255, description="Product name")
    description: Optional[str] = Field(None, description="Description")
    price: Decimal = Field(ge=0, max_digits=12, decimal_places=2, description="Selling price")
    cost: Decimal = Field(Decimal("0"), ge=0, max_digits=12, decimal_places=2, description="Unit cost")
    stock: int = Field(0, ge=0, description="Units in stock")
    min_stock: int = Field(0, ge=0, description="Low stock threshold")
    stock_unit: str = Field("piece", max_length=20, description="Stock unit")
    category_id: Optional[UUID] = Field(None, description="Category UUID")
    is_active: bool = Field(True, description="Whether the product can be sold")

    # Read-only
    total_sold: Optional[int] = Field(None, description="Units sold so far")
    created_at: Optional[datetime] = Field(None, description="Creation timestamp")
    updated_at: Optional[datetime] = Field(None, description="Last update timestamp")


class ProductResource(BaseSchema):
    """JSON:API resource for product."""

    type: str = Field("product", description="Resource type")
    id: Optional[UUID] = Field(None, description="Product UUID")
    attributes: ProductAttributes


class ProductCreateRequest(BaseSchema):
    """Request schema for creating a product."""

    data: ProductResource = Field(description="Product data to create")


class ProductResponse(JSONAPIResponse):
    data: ProductResource


class ProductCollectionResponse(JSONAPICollectionResponse):
    data: List[ProductResource]


class CategoryAttributes(BaseSchema):
    name: str
    name_en: Optional[str] = None
    slug: str
    description: Optional[str] = None
    color: str
    icon: str
    sort_order: int


class CategoryResource(BaseSchema):
    type: str = Field("category", description="Resource type")
    id: UUID
    attributes: CategoryAttributes


class CategoryCollectionResponse(JSONAPICollectionResponse):
    data: List[CategoryResource]
