"""Product catalogue service for a single tenant database."""

import logging
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pos_service.models.catalog import Category, Product

logger = logging.getLogger(__name__)


class CatalogServiceError(Exception):
    """Base exception for catalogue service errors."""
    pass


class ProductNotFoundError(CatalogServiceError):
    """Raised when a product cannot be found."""
    pass


class CategoryNotFoundError(CatalogServiceError):
    """Raised when a referenced category does not exist."""
    pass


class CatalogService:
    """
    Product and category queries.

    The session it is given is already bound to the resolved tenant's
    database, so every query here is implicitly scoped to that shop.
    """

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def list_products(
        self,
        category_id: Optional[uuid.UUID] = None,
        search: Optional[str] = None,
        include_inactive: bool = False,
    ) -> List[Product]:
        query = select(Product).order_by(Product.name)
        if not include_inactive:
            query = query.where(Product.is_active.is_(True))
        if category_id is not None:
            query = query.where(Product.category_id == category_id)
        if search:
            query = query.where(Product.name.ilike(f"%{search.strip()}%"))
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_product(self, product_id: uuid.UUID) -> Product:
        product = await self.db.get(Product, product_id)
        if product is None:
            raise ProductNotFoundError(f"Product {product_id} not found")
        return product

    async def create_product(self, product_data: Dict[str, Any]) -> Product:
        """
        Create a product.

        Raises:
            CategoryNotFoundError: category_id does not exist in this shop
        """
        category_id = product_data.get("category_id")
        if category_id is not None and await self.db.get(Category, category_id) is None:
            raise CategoryNotFoundError(f"Category {category_id} not found")

        product = Product(**product_data)
        self.db.add(product)
        await self.db.commit()
        await self.db.refresh(product)
        logger.info(f"Created product {product.id} ('{product.name}')")
        return product

    async def list_categories(self) -> List[Category]:
        result = await self.db.execute(
            select(Category).where(Category.is_active.is_(True)).order_by(Category.sort_order)
        )
        return list(result.scalars().all())
