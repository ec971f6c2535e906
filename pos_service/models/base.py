"""Base model mixins shared by central and tenant models."""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict

from sqlalchemy import Column, DateTime, Uuid


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UUIDPrimaryKeyMixin:
    """Mixin for a client-generated UUID primary key."""

    id = Column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        comment="Primary key UUID"
    )


class TimestampMixin:
    """Mixin for adding created_at and updated_at timestamps."""

    # Python-side defaults keep sub-second ordering on every backend
    created_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        comment="Record creation timestamp"
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
        comment="Record last update timestamp"
    )


class SerializableMixin:
    """Column-wise dict conversion used by tests and compensating actions."""

    def to_dict(self) -> Dict[str, Any]:
        """Convert model instance to dictionary of raw column values."""
        return {column.name: getattr(self, column.name) for column in self.__table__.columns}

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(id={self.id})>"
