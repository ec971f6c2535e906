"""Store configuration models stored in each tenant database."""

from sqlalchemy import JSON, Boolean, Column, String

from .base import SerializableMixin, TimestampMixin, UUIDPrimaryKeyMixin
from pos_service.core.database import TenantBase


class PaymentMethod(TenantBase, UUIDPrimaryKeyMixin, TimestampMixin, SerializableMixin):
    """Accepted payment method (cash, bank transfer, ...)."""

    __tablename__ = "payment_methods"

    name = Column(String(100), nullable=False)
    name_en = Column(String(100), nullable=True)
    type = Column(String(20), nullable=False, comment="CASH, TRANSFER, CARD or OTHER")
    icon = Column(String(50), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    is_default = Column(Boolean, nullable=False, default=False)


class SystemSetting(TenantBase, UUIDPrimaryKeyMixin, TimestampMixin, SerializableMixin):
    """Keyed JSON settings document (store profile, POS options, ...)."""

    __tablename__ = "system_settings"

    key = Column(String(100), nullable=False, unique=True)
    value = Column(JSON, nullable=False, default=dict)
