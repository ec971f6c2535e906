"""Database models for the POS management service."""

from .base import SerializableMixin, TimestampMixin, UUIDPrimaryKeyMixin
from .tenant import Tenant, Domain
from .central_user import CentralUser
from .tenant_user import TenantUser
from .catalog import Category, Product
from .store import PaymentMethod, SystemSetting
from .sale import StockMovement, Sale, SaleItem, Bill

__all__ = [
    "SerializableMixin",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    # Central database
    "Tenant",
    "Domain",
    "CentralUser",
    # Tenant databases
    "TenantUser",
    "Category",
    "Product",
    "PaymentMethod",
    "SystemSetting",
    "StockMovement",
    "Sale",
    "SaleItem",
    "Bill",
]
