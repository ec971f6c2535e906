"""Sale schemas."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import Field, field_validator

from .base import BaseSchema, JSONAPIResponse


class SaleItemInput(BaseSchema):
    """One line of a sale request."""

    product_id: UUID = Field(description="Product UUID")
    quantity: int = Field(ge=1, description="Units sold")
    discount: Decimal = Field(Decimal("0"), ge=0, description="Line discount amount")


class SaleCreateAttributes(BaseSchema):
    items: List[SaleItemInput] = Field(min_length=1, description="Sale lines")
    payment_method: str = Field("CASH", max_length=20, description="Payment method type")
    discount: Decimal = Field(Decimal("0"), ge=0, description="Discount on the whole sale")

    @field_validator("payment_method")
    @classmethod
    def normalize_payment_method(cls, v: str) -> str:
        return v.upper()


class SaleCreateResource(BaseSchema):
    type: str = Field("sale", description="Resource type")
    attributes: SaleCreateAttributes


class SaleCreateRequest(BaseSchema):
    """Request schema for ringing up a sale."""

    data: SaleCreateResource = Field(description="Sale data to create")


class SaleItemAttributes(BaseSchema):
    product_id: UUID
    product_name: str
    quantity: int
    unit_price: Decimal
    discount: Decimal
    total: Decimal


class SaleAttributes(BaseSchema):
    """Attributes for sale resource."""

    sale_number: str
    bill_number: Optional[str] = None
    user_id: UUID
    subtotal: Decimal
    discount: Decimal
    total_amount: Decimal
    payment_method: str
    items: List[SaleItemAttributes]
    created_at: Optional[datetime] = None


class SaleResource(BaseSchema):
    type: str = Field("sale", description="Resource type")
    id: UUID
    attributes: SaleAttributes


class SaleResponse(JSONAPIResponse):
    data: SaleResource
