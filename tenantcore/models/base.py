"""
Shared model building blocks.

TenantMixin is what makes a table a tenant entity: a mandatory
organization_id set once at creation, plus created/updated timestamps.
Nothing outside the Storage facade writes these three columns.
"""
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict
import uuid

from sqlalchemy import Column, String, DateTime, ForeignKey, inspect
from sqlalchemy.orm import declared_attr


def utcnow() -> datetime:
    """Naive UTC timestamp; all DateTime columns store UTC without tzinfo."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return str(uuid.uuid4())


class TenantMixin:
    """Columns every tenant-owned table carries."""

    # Fields callers may never set through create/update
    PROTECTED_FIELDS = frozenset({"id", "organization_id", "created_at", "updated_at"})

    id = Column(String(36), primary_key=True, default=new_id)

    @declared_attr
    def organization_id(cls):
        # CRITICAL: Tenant foreign key for isolation
        return Column(
            String(36),
            ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=False,
            index=True
        )

    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, nullable=False)

    @classmethod
    def column_names(cls) -> frozenset:
        return frozenset(attr.key for attr in inspect(cls).mapper.column_attrs)

    @classmethod
    def writable_fields(cls) -> frozenset:
        return cls.column_names() - cls.PROTECTED_FIELDS

    def to_dict(self) -> Dict[str, Any]:
        """Plain representation, columns in declaration order."""
        data: Dict[str, Any] = {}
        for attr in inspect(type(self)).mapper.column_attrs:
            value = getattr(self, attr.key)
            if isinstance(value, datetime):
                value = value.isoformat()
            elif isinstance(value, Decimal):
                value = str(value)
            data[attr.key] = value
        return data

    def __repr__(self):
        return f"<{type(self).__name__} {self.id} (org={self.organization_id})>"
