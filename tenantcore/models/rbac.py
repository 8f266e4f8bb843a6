"""
RBAC Models

Permission rows mirror the fixed catalog in core/permissions.py and are
global. Roles, and the assignments that hand them to users, always belong
to one organization: organization A can neither see nor assign
organization B's roles.
"""
from sqlalchemy import (
    Column, String, Text, Boolean, DateTime, ForeignKey, Index,
    UniqueConstraint, Enum as SQLEnum,
)
from sqlalchemy.orm import relationship

from tenantcore.core.permissions import FeatureArea, PermissionAction, Permission as CatalogPermission
from tenantcore.database import Base
from tenantcore.models.base import new_id, utcnow


class Permission(Base):
    __tablename__ = "permissions"

    id = Column(String(36), primary_key=True, default=new_id)
    feature_area = Column(SQLEnum(FeatureArea), nullable=False, index=True)
    permission_type = Column(SQLEnum(PermissionAction), nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("feature_area", "permission_type", name="uq_permission_pair"),
    )

    def as_catalog(self) -> CatalogPermission:
        return CatalogPermission(self.feature_area, self.permission_type)

    def __repr__(self):
        return f"<Permission {self.feature_area.value}:{self.permission_type.value}>"


class Role(Base):
    __tablename__ = "roles"

    id = Column(String(36), primary_key=True, default=new_id)
    organization_id = Column(
        String(36),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    # Default roles are seeded per organization and cannot be renamed or deleted
    is_default = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    organization = relationship("Organization", back_populates="roles")
    role_permissions = relationship("RolePermission", back_populates="role", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("organization_id", "name", name="uq_role_org_name"),
    )

    @property
    def permissions(self):
        """Catalog permissions granted by this role, sorted by code."""
        return sorted(
            (role_permission.permission.as_catalog() for role_permission in self.role_permissions),
            key=lambda permission: permission.code
        )

    def __repr__(self):
        return f"<Role {self.name} (org={self.organization_id})>"


class RolePermission(Base):
    __tablename__ = "role_permissions"

    id = Column(String(36), primary_key=True, default=new_id)
    role_id = Column(String(36), ForeignKey("roles.id", ondelete="CASCADE"), nullable=False, index=True)
    permission_id = Column(String(36), ForeignKey("permissions.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    role = relationship("Role", back_populates="role_permissions")
    permission = relationship("Permission")

    __table_args__ = (
        UniqueConstraint("role_id", "permission_id", name="uq_role_permission"),
    )


class UserRoleAssignment(Base):
    """
    Hands a role to a user inside one organization.

    organization_id must equal the role's organization_id; the
    authorization service checks this before inserting.
    Revocation deletes the row.
    """
    __tablename__ = "user_roles"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), nullable=False, index=True)
    role_id = Column(String(36), ForeignKey("roles.id", ondelete="CASCADE"), nullable=False, index=True)
    organization_id = Column(
        String(36),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    assigned_by_id = Column(String(36), nullable=True)
    assigned_at = Column(DateTime, default=utcnow, nullable=False)

    role = relationship("Role")

    __table_args__ = (
        UniqueConstraint("user_id", "role_id", "organization_id", name="uq_user_role"),
        # Hot path: permission evaluation for (user, org)
        Index("idx_user_roles_user_org", "user_id", "organization_id"),
    )

    def __repr__(self):
        return f"<UserRoleAssignment user={self.user_id} role={self.role_id}>"
