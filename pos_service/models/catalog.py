"""Product catalogue models stored in each tenant database."""

from sqlalchemy import Boolean, CheckConstraint, Column, ForeignKey, Index, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import relationship

from .base import SerializableMixin, TimestampMixin, UUIDPrimaryKeyMixin
from pos_service.core.database import TenantBase


class Category(TenantBase, UUIDPrimaryKeyMixin, TimestampMixin, SerializableMixin):
    """Product category."""

    __tablename__ = "categories"

    name = Column(String(255), nullable=False)
    name_en = Column(String(255), nullable=True)
    slug = Column(String(100), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    color = Column(String(20), nullable=False, default="#6366F1")
    icon = Column(String(50), nullable=False, default="Package")
    sort_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    products = relationship("Product", back_populates="category")


class Product(TenantBase, UUIDPrimaryKeyMixin, TimestampMixin, SerializableMixin):
    """Sellable product with its current stock level."""

    __tablename__ = "products"

    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(12, 2), nullable=False)
    cost = Column(Numeric(12, 2), nullable=False, default=0)
    stock = Column(Integer, nullable=False, default=0)
    min_stock = Column(Integer, nullable=False, default=0)
    stock_unit = Column(String(20), nullable=False, default="piece")
    total_sold = Column(Integer, nullable=False, default=0)
    category_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("categories.id", ondelete="SET NULL"),
        nullable=True,
    )
    is_active = Column(Boolean, nullable=False, default=True)

    category = relationship("Category", back_populates="products")

    __table_args__ = (
        Index("idx_products_name", "name"),
        Index("idx_products_category_id", "category_id"),
        CheckConstraint("stock >= 0", name="non_negative_stock"),
    )

    def __repr__(self) -> str:
        return f"<Product(id={self.id}, name='{self.name}', stock={self.stock})>"
