"""Sale, bill and stock ledger models stored in each tenant database."""

from sqlalchemy import Column, ForeignKey, Index, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import relationship

from .base import SerializableMixin, TimestampMixin, UUIDPrimaryKeyMixin
from pos_service.core.database import TenantBase


class StockMovement(TenantBase, UUIDPrimaryKeyMixin, TimestampMixin, SerializableMixin):
    """Append-only stock ledger entry."""

    __tablename__ = "stock_movements"

    product_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )
    movement_type = Column(String(20), nullable=False, comment="SALE, RESTOCK, ADJUSTMENT or RETURN")
    quantity_change = Column(Integer, nullable=False)
    previous_quantity = Column(Integer, nullable=False)
    new_quantity = Column(Integer, nullable=False)
    reason = Column(Text, nullable=True)

    __table_args__ = (
        Index("idx_stock_movements_product_id", "product_id"),
    )


class Sale(TenantBase, UUIDPrimaryKeyMixin, TimestampMixin, SerializableMixin):
    """Completed sale with its line items."""

    __tablename__ = "sales"

    sale_number = Column(String(50), nullable=False, unique=True)
    user_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )
    subtotal = Column(Numeric(12, 2), nullable=False)
    discount = Column(Numeric(12, 2), nullable=False, default=0)
    total_amount = Column(Numeric(12, 2), nullable=False)
    payment_method = Column(String(20), nullable=False, default="CASH")

    items = relationship(
        "SaleItem",
        back_populates="sale",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    bill = relationship("Bill", back_populates="sale", uselist=False, lazy="selectin")


class SaleItem(TenantBase, UUIDPrimaryKeyMixin, TimestampMixin, SerializableMixin):
    """Line item of a sale; the product name is frozen at sale time."""

    __tablename__ = "sale_items"

    sale_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("sales.id", ondelete="CASCADE"),
        nullable=False,
    )
    product_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("products.id", ondelete="RESTRICT"),
        nullable=False,
    )
    product_name = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)
    discount = Column(Numeric(12, 2), nullable=False, default=0)
    total = Column(Numeric(12, 2), nullable=False)

    sale = relationship("Sale", back_populates="items")


class Bill(TenantBase, UUIDPrimaryKeyMixin, TimestampMixin, SerializableMixin):
    """Receipt issued for a sale."""

    __tablename__ = "bills"

    bill_number = Column(String(50), nullable=False, unique=True)
    sale_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("sales.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    user_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )
    total_amount = Column(Numeric(12, 2), nullable=False)
    payment_method = Column(String(20), nullable=False, default="CASH")
    status = Column(String(20), nullable=False, default="COMPLETED")

    sale = relationship("Sale", back_populates="bill")
