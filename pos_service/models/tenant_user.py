"""Tenant-local copy of a user identity."""

from sqlalchemy import Boolean, Column, DateTime, String

from .base import SerializableMixin, TimestampMixin, UUIDPrimaryKeyMixin
from pos_service.core.database import TenantBase


class TenantUser(TenantBase, UUIDPrimaryKeyMixin, TimestampMixin, SerializableMixin):
    """
    Per-tenant user profile.

    The id always equals the matching CentralUser id so that tenant-local
    foreign keys (sales, stock movements) resolve without a cross-database
    join. Profile fields live only here.
    """

    __tablename__ = "users"

    username = Column(String(150), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=False)
    employee_code = Column(
        String(50),
        nullable=False,
        unique=True,
        comment="Employee code, unique within the tenant"
    )
    full_name = Column(String(255), nullable=False)
    nickname = Column(String(100), nullable=True)
    phone = Column(String(50), nullable=True)
    avatar_url = Column(String(500), nullable=True)
    role = Column(
        String(20),
        nullable=False,
        comment="Copied from the central record at creation time"
    )
    is_active = Column(Boolean, nullable=False, default=True)
    last_login_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<TenantUser(id={self.id}, employee_code='{self.employee_code}')>"
