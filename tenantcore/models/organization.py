"""
Organization, User and Membership Models

The organization is the isolation boundary: every tenant entity, role and
role assignment belongs to exactly one. Users exist on their own and join
organizations through OrganizationMembership; a user may belong to many.

ARCHITECTURAL DECISION: Shared database, shared schema, organization_id on
every tenant row. The Storage facade adds the organization predicate to
every query it builds.
"""
import enum

from sqlalchemy import Column, String, DateTime, ForeignKey, Index, UniqueConstraint, Enum as SQLEnum
from sqlalchemy.orm import relationship

from tenantcore.database import Base
from tenantcore.models.base import new_id, utcnow


class MemberRole(str, enum.Enum):
    """
    Membership label shown in the UI.

    Informational only: authorization is decided by Role assignments,
    never by this label.
    """
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"
    VIEWER = "viewer"


class Organization(Base):
    __tablename__ = "organizations"

    # UUIDs avoid enumeration attacks across tenants
    id = Column(String(36), primary_key=True, default=new_id)

    name = Column(String(255), nullable=False)
    slug = Column(String(100), unique=True, nullable=False, index=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    memberships = relationship("OrganizationMembership", back_populates="organization", cascade="all, delete-orphan")
    roles = relationship("Role", back_populates="organization", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Organization {self.slug}>"


class User(Base):
    """
    Authenticated identity plus profile fields.

    Rows are keyed by the identity provider's subject id.
    """
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)

    email = Column(String(255), unique=True, nullable=True)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    profile_image_url = Column(String(512), nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<User {self.id}>"


class OrganizationMembership(Base):
    """The tenant-membership edge between a user and an organization."""
    __tablename__ = "organization_members"

    id = Column(String(36), primary_key=True, default=new_id)

    organization_id = Column(
        String(36),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    # Not a foreign key: the identity provider may know a user before
    # we have stored their profile.
    user_id = Column(String(36), nullable=False, index=True)

    member_role = Column(SQLEnum(MemberRole), default=MemberRole.MEMBER, nullable=False)

    created_at = Column(DateTime, default=utcnow, nullable=False)

    organization = relationship("Organization", back_populates="memberships")

    __table_args__ = (
        UniqueConstraint("organization_id", "user_id", name="uq_org_member"),
        # Resolution order for users with several memberships
        Index("idx_org_member_user_created", "user_id", "created_at"),
    )

    def __repr__(self):
        return f"<OrganizationMembership user={self.user_id} org={self.organization_id}>"
