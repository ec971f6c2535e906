"""Point-of-sale checkout for a single tenant database."""

import logging
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pos_service.models.catalog import Product
from pos_service.models.sale import Bill, Sale, SaleItem, StockMovement
from pos_service.models.tenant_user import TenantUser

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


class SaleServiceError(Exception):
    """Base exception for sale service errors."""
    pass


class ProductNotFoundError(SaleServiceError):
    """Raised when a sale line references an unknown or inactive product."""
    pass


class InsufficientStockError(SaleServiceError):
    """Raised when a product does not have enough stock for the sale."""

    def __init__(self, product_name: str, available: int, requested: int):
        super().__init__(
            f"Insufficient stock for {product_name}: {available} available, {requested} requested"
        )
        self.product_name = product_name
        self.available = available
        self.requested = requested


class SellerNotFoundError(SaleServiceError):
    """Raised when the selling user has no profile in this shop."""
    pass


class InvalidDiscountError(SaleServiceError):
    """Raised when a discount is larger than the amount it applies to."""
    pass


@dataclass
class SaleLine:
    product_id: uuid.UUID
    quantity: int
    discount: Decimal = Decimal("0")
    unit_price: Optional[Decimal] = None


def generate_document_number(prefix: str) -> str:
    """PREFIX-YYYYMMDD-XXXXXXXX document number."""
    date_part = datetime.now(timezone.utc).strftime("%Y%m%d")
    return f"{prefix}-{date_part}-{secrets.token_hex(4).upper()}"


class SaleService:
    """Records sales against the tenant database the session is bound to."""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def create_sale(
        self,
        user_id: uuid.UUID,
        lines: List[SaleLine],
        payment_method: str = "CASH",
        discount: Decimal = Decimal("0"),
    ) -> Sale:
        """
        Record a sale in one transaction.

        Stock decrements, stock movements, the sale with its items and the
        bill are written together; any failure leaves the database untouched.

        Raises:
            ValueError: no lines, or a non-positive quantity
            SellerNotFoundError: the user has no profile in this shop
            ProductNotFoundError: a line references an unknown product
            InsufficientStockError: a product cannot cover its quantity
            InvalidDiscountError: a line discount exceeds its line amount, or
                the sale discount exceeds the subtotal
        """
        if not lines:
            raise ValueError("A sale needs at least one item")

        quantities: Dict[uuid.UUID, int] = {}
        for line in lines:
            if line.quantity <= 0:
                raise ValueError("Quantity must be positive")
            quantities[line.product_id] = quantities.get(line.product_id, 0) + line.quantity

        sale_number = generate_document_number("POS")
        payment_method = (payment_method or "CASH").upper()

        async with self.db.begin():
            if await self.db.get(TenantUser, user_id) is None:
                raise SellerNotFoundError(f"User {user_id} has no profile in this shop")

            result = await self.db.execute(
                select(Product)
                .where(Product.id.in_(list(quantities)))
                .with_for_update()
            )
            products = {product.id: product for product in result.scalars().all()}

            for product_id, quantity in quantities.items():
                product = products.get(product_id)
                if product is None or not product.is_active:
                    raise ProductNotFoundError(f"Product {product_id} not found")
                if product.stock < quantity:
                    raise InsufficientStockError(product.name, product.stock, quantity)

            items = []
            for line in lines:
                product = products[line.product_id]
                unit_price = Decimal(line.unit_price if line.unit_price is not None else product.price)
                line_discount = Decimal(line.discount or 0)
                gross = unit_price * line.quantity
                if line_discount < 0 or line_discount > gross:
                    raise InvalidDiscountError(
                        f"Discount {line_discount} on {product.name} exceeds the line amount {gross.quantize(CENT)}"
                    )
                items.append(SaleItem(
                    product_id=product.id,
                    product_name=product.name,
                    quantity=line.quantity,
                    unit_price=unit_price.quantize(CENT),
                    discount=line_discount.quantize(CENT),
                    total=(gross - line_discount).quantize(CENT),
                ))

            for product_id, quantity in quantities.items():
                product = products[product_id]
                previous = product.stock
                product.stock = previous - quantity
                product.total_sold = (product.total_sold or 0) + quantity
                self.db.add(StockMovement(
                    product_id=product.id,
                    user_id=user_id,
                    movement_type="SALE",
                    quantity_change=-quantity,
                    previous_quantity=previous,
                    new_quantity=product.stock,
                    reason=f"Sale {sale_number}",
                ))

            subtotal = sum((item.total for item in items), Decimal("0"))
            sale_discount = Decimal(discount or 0)
            if sale_discount < 0 or sale_discount > subtotal:
                raise InvalidDiscountError(f"Discount {sale_discount} exceeds the subtotal {subtotal}")
            total_amount = (subtotal - sale_discount).quantize(CENT)
            sale = Sale(
                id=uuid.uuid4(),
                sale_number=sale_number,
                user_id=user_id,
                subtotal=subtotal.quantize(CENT),
                discount=sale_discount.quantize(CENT),
                total_amount=total_amount,
                payment_method=payment_method,
                items=items,
            )
            sale.bill = Bill(
                bill_number=generate_document_number("BILL"),
                user_id=user_id,
                total_amount=total_amount,
                payment_method=payment_method,
                status="COMPLETED",
            )
            self.db.add(sale)

        logger.info(f"Recorded sale {sale_number} with {len(items)} items, total {total_amount}")
        return await self.get_sale(sale.id)

    async def get_sale(self, sale_id: uuid.UUID) -> Optional[Sale]:
        result = await self.db.execute(select(Sale).where(Sale.id == sale_id))
        return result.scalar_one_or_none()
