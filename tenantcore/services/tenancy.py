"""
Tenant Context Resolution

Maps an authenticated user id to the organization their request runs in.

- A user with no membership gets a default organization on first sight:
  organization, owner membership, default roles and an Admin assignment
  are created in one transaction.
- A user with memberships gets the oldest one, ordered by
  (created_at, organization_id) so the choice is deterministic.
- A caller may name an organization explicitly; it is honoured only when
  the user is a member, otherwise the answer is OrganizationNotFoundError.

The result travels as an explicit RequestContext value. Nothing here
stores per-request state on the request object or in thread locals.

NOTE: two first requests from the same new user racing each other can
both bootstrap. The unique slug makes one of them fail with StorageError;
a retry resolves to the surviving organization.
"""
from dataclasses import dataclass
from typing import List, Optional
import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from tenantcore.core.exceptions import OrganizationNotFoundError
from tenantcore.core.permissions import ADMIN_ROLE
from tenantcore.models import MemberRole, Organization, OrganizationMembership, User, UserRoleAssignment
from tenantcore.models.base import new_id, utcnow
from tenantcore.services.authorization import create_default_roles
from tenantcore.services.base import SessionService
from tenantcore.utils.logging import get_logger, log_security_event

logger = get_logger(__name__)

DEFAULT_ORGANIZATION_NAME = "My Organization"
# Identity-provider claims copied onto the User row
PROFILE_FIELDS = ("email", "first_name", "last_name", "profile_image_url")


@dataclass(frozen=True)
class RequestContext:
    """Who is asking, and in which organization."""
    user_id: str
    organization_id: str


def default_slug(user_id: str) -> str:
    return f"org-{user_id[:8]}"


class TenantContextResolver(SessionService):

    def _memberships(self, session: Session, user_id: str) -> List[OrganizationMembership]:
        statement = (
            select(OrganizationMembership)
            .where(OrganizationMembership.user_id == user_id)
            .order_by(OrganizationMembership.created_at, OrganizationMembership.organization_id)
        )
        return list(session.execute(statement).scalars().all())

    def resolve(self, user_id: str, requested_organization_id: Optional[str] = None) -> str:
        """Organization id the user's request runs in."""
        if not user_id:
            raise ValueError("user_id is required")

        if requested_organization_id:
            with self.reading("resolve", user_id=user_id) as session:
                member = session.execute(
                    select(OrganizationMembership.organization_id).where(
                        OrganizationMembership.user_id == user_id,
                        OrganizationMembership.organization_id == requested_organization_id,
                    )
                ).first()
            if member is None:
                log_security_event(
                    "organization_access_denied",
                    {"user_id": user_id, "requested_organization_id": requested_organization_id},
                    logger
                )
                raise OrganizationNotFoundError(requested_organization_id)
            return requested_organization_id

        with self.reading("resolve", user_id=user_id) as session:
            memberships = self._memberships(session, user_id)
        if memberships:
            return memberships[0].organization_id

        return self.bootstrap(user_id).id

    def context_for(self, user_id: str, requested_organization_id: Optional[str] = None) -> RequestContext:
        return RequestContext(
            user_id=user_id,
            organization_id=self.resolve(user_id, requested_organization_id),
        )

    def bootstrap(self, user_id: str) -> Organization:
        """Create the user's default organization with them as owner and Admin."""
        with self.writing("bootstrap", user_id=user_id) as session:
            slug = default_slug(user_id)
            taken = session.execute(select(Organization.id).where(Organization.slug == slug)).first()
            if taken is not None:
                slug = f"{slug}-{uuid.uuid4().hex[:6]}"

            now = utcnow()
            organization = Organization(
                id=new_id(),
                name=DEFAULT_ORGANIZATION_NAME,
                slug=slug,
                created_at=now,
                updated_at=now,
            )
            session.add(organization)
            session.add(OrganizationMembership(
                id=new_id(),
                organization_id=organization.id,
                user_id=user_id,
                member_role=MemberRole.OWNER,
                created_at=now,
            ))
            session.flush()

            roles = create_default_roles(session, organization.id)
            session.add(UserRoleAssignment(
                id=new_id(),
                user_id=user_id,
                role_id=roles[ADMIN_ROLE].id,
                organization_id=organization.id,
                assigned_at=now,
            ))

        logger.info(
            f"Bootstrapped organization {organization.slug} for user {user_id}",
            extra={"organization_id": organization.id, "user_id": user_id}
        )
        return organization

    def list_memberships(self, user_id: str) -> List[Organization]:
        """The user's organizations, in resolution order."""
        statement = (
            select(Organization)
            .join(OrganizationMembership, OrganizationMembership.organization_id == Organization.id)
            .where(OrganizationMembership.user_id == user_id)
            .order_by(OrganizationMembership.created_at, OrganizationMembership.organization_id)
        )
        with self.reading("list_memberships", user_id=user_id) as session:
            return list(session.execute(statement).scalars().all())

    def get_organization(self, context: RequestContext) -> Organization:
        with self.reading("get_organization", organization_id=context.organization_id) as session:
            organization = session.get(Organization, context.organization_id)
        if organization is None:
            raise OrganizationNotFoundError(context.organization_id)
        return organization

    def ensure_user(self, user_id: str, **profile) -> User:
        """Insert or update the User row for an authenticated identity."""
        fields = {key: value for key, value in profile.items() if key in PROFILE_FIELDS}

        with self.writing("ensure_user", user_id=user_id) as session:
            user = session.get(User, user_id)
            now = utcnow()
            if user is None:
                user = User(id=user_id, created_at=now, updated_at=now, **fields)
                session.add(user)
            else:
                for key, value in fields.items():
                    if value is not None:
                        setattr(user, key, value)
                user.updated_at = now
        return user
