"""Central identity model: the login authority for every user in the system."""

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Index, String, Uuid
from sqlalchemy.orm import relationship

from .base import SerializableMixin, TimestampMixin, UUIDPrimaryKeyMixin
from pos_service.core.database import CentralBase


class CentralUser(CentralBase, UUIDPrimaryKeyMixin, TimestampMixin, SerializableMixin):
    """
    Directory identity holding credentials and role.

    Tenant staff carry a tenant_id and are mirrored into that tenant's own
    database under the same id. Super-admins have no tenant. Usernames are
    stored lower-cased so uniqueness holds case-insensitively system-wide.
    """

    __tablename__ = "users"

    username = Column(
        String(150),
        nullable=False,
        unique=True,
        comment="Lower-cased login name, unique across all tenants"
    )
    password_hash = Column(
        String(255),
        nullable=False,
        comment="Bcrypt hashed password"
    )
    role = Column(
        String(20),
        nullable=False,
        comment="SUPER_ADMIN, OWNER, ADMIN, MANAGER, CASHIER or VIEWER"
    )
    tenant_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=True,
        comment="Owning tenant, null for system super-admins"
    )
    is_active = Column(
        Boolean,
        nullable=False,
        default=True,
    )
    last_login_at = Column(
        DateTime(timezone=True),
        nullable=True,
        comment="Timestamp of the last successful login"
    )

    tenant = relationship("Tenant", back_populates="users")

    __table_args__ = (
        Index("idx_users_tenant_id", "tenant_id"),
        CheckConstraint(
            "role IN ('SUPER_ADMIN', 'OWNER', 'ADMIN', 'MANAGER', 'CASHIER', 'VIEWER')",
            name="valid_user_role",
        ),
    )

    def __repr__(self) -> str:
        return f"<CentralUser(id={self.id}, username='{self.username}', role='{self.role}')>"
