"""Tenant directory models stored in the central management database."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import relationship

from .base import SerializableMixin, TimestampMixin, UUIDPrimaryKeyMixin, utcnow
from pos_service.core.database import CentralBase


class Tenant(CentralBase, UUIDPrimaryKeyMixin, TimestampMixin, SerializableMixin):
    """
    Tenant model representing one shop with its own dedicated database.

    The connection string embeds the operator's central credentials and only
    differs from the central URL in its database name.
    """

    __tablename__ = "tenants"

    name = Column(
        String(255),
        nullable=False,
        comment="Shop display name"
    )
    slug = Column(
        String(63),
        nullable=False,
        unique=True,
        comment="Human-readable unique key, source of the database name"
    )
    db_name = Column(
        String(128),
        nullable=False,
        unique=True,
        comment="Tenant database name derived from the slug"
    )
    db_url = Column(
        Text,
        nullable=False,
        comment="Tenant database connection URL (credentials embedded)"
    )
    owner_name = Column(
        String(255),
        nullable=True,
        comment="Name of the shop owner"
    )
    is_active = Column(
        Boolean,
        nullable=False,
        default=True,
        comment="Deactivated tenants can no longer be resolved"
    )

    domains = relationship(
        "Domain",
        back_populates="tenant",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
        order_by="Domain.created_at",
    )
    users = relationship(
        "CentralUser",
        back_populates="tenant",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("idx_tenants_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Tenant(id={self.id}, name='{self.name}', slug='{self.slug}')>"


class Domain(CentralBase, UUIDPrimaryKeyMixin, SerializableMixin):
    """Routable host name or logical key mapped to exactly one tenant."""

    __tablename__ = "domains"

    domain = Column(
        String(255),
        nullable=False,
        unique=True,
        comment="Host name or tenant key sent in the X-Tenant-Domain header"
    )
    tenant_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        comment="Owning tenant"
    )
    is_primary = Column(
        Boolean,
        nullable=False,
        default=False,
    )
    created_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )

    tenant = relationship("Tenant", back_populates="domains")

    __table_args__ = (
        Index("idx_domains_tenant_id", "tenant_id"),
    )

    def __repr__(self) -> str:
        return f"<Domain(domain='{self.domain}', tenant_id={self.tenant_id})>"
