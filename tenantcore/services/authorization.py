"""
Authorization Service

PermissionEvaluator answers "may this user do this action on this feature
area in this organization?". The answer is the union over every role
assigned to the user in that organization, read fresh from the database
on every call. No assignment, no permission: evaluation fails closed.

RoleService is the role management surface: organization-scoped roles,
their permission sets, and the assignments that hand them to users.
A role from organization A can never be read, changed or assigned
through organization B.
"""
from typing import Dict, Iterable, List, Optional, Union

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from tenantcore.core.exceptions import PermissionDenied, RoleConflictError, RoleNotFoundError
from tenantcore.core.permissions import (
    DEFAULT_ROLE_DESCRIPTIONS,
    DEFAULT_ROLE_PERMISSIONS,
    PERMISSION_CATALOG,
    FeatureArea,
    Permission as CatalogPermission,
    PermissionAction,
    describe,
    normalize_permissions,
    to_permission,
)
from tenantcore.models import Permission, Role, RolePermission, UserRoleAssignment
from tenantcore.models.base import new_id, utcnow
from tenantcore.services.base import SessionService
from tenantcore.utils.logging import get_logger, log_security_event

logger = get_logger(__name__)


# ============================================================================
# SEEDING
# ============================================================================

def seed_permissions(session: Session) -> Dict[CatalogPermission, Permission]:
    """
    Insert any catalog permission missing from the permissions table.

    Idempotent. Returns catalog entry -> row for the whole catalog.
    """
    rows = {row.as_catalog(): row for row in session.execute(select(Permission)).scalars()}

    missing = sorted(PERMISSION_CATALOG - set(rows), key=lambda permission: permission.code)
    for permission in missing:
        row = Permission(
            id=new_id(),
            feature_area=permission.feature_area,
            permission_type=permission.action,
            description=describe(permission),
            created_at=utcnow(),
        )
        session.add(row)
        rows[permission] = row

    if missing:
        session.flush()
        logger.info(f"Seeded {len(missing)} permissions")
    return rows


def _grant(role: Role, permissions: Iterable[CatalogPermission], rows: Dict[CatalogPermission, Permission]) -> None:
    for permission in sorted(permissions, key=lambda p: p.code):
        role.role_permissions.append(RolePermission(id=new_id(), permission=rows[permission]))


def create_default_roles(session: Session, organization_id: str) -> Dict[str, Role]:
    """Create Admin, Manager, Team Member and Client for a new organization."""
    rows = seed_permissions(session)
    roles = {}
    for name, permissions in DEFAULT_ROLE_PERMISSIONS.items():
        role = Role(
            id=new_id(),
            organization_id=organization_id,
            name=name,
            description=DEFAULT_ROLE_DESCRIPTIONS[name],
            is_default=True,
        )
        _grant(role, permissions, rows)
        session.add(role)
        roles[name] = role

    session.flush()
    logger.info(f"Created default roles for organization {organization_id}", extra={"organization_id": organization_id})
    return roles


def _with_permissions(statement):
    return statement.options(selectinload(Role.role_permissions).selectinload(RolePermission.permission))


# ============================================================================
# EVALUATION
# ============================================================================

class PermissionEvaluator(SessionService):

    def _granted(self, user_id: str, organization_id: str):
        """Permission rows reachable from the user's roles in the organization."""
        return (
            select(Permission.feature_area, Permission.permission_type)
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .join(Role, Role.id == RolePermission.role_id)
            .join(UserRoleAssignment, UserRoleAssignment.role_id == Role.id)
            .where(
                UserRoleAssignment.user_id == user_id,
                UserRoleAssignment.organization_id == organization_id,
                # CRITICAL: a role only grants inside its own organization
                Role.organization_id == organization_id,
            )
        )

    def authorize(
        self,
        user_id: str,
        organization_id: str,
        feature_area: Union[FeatureArea, str],
        action: Union[PermissionAction, str],
    ) -> bool:
        """
        Whether any of the user's roles in the organization grants the pair.

        Fails closed (False) for an empty user or organization id. A pair that
        is not in PERMISSION_CATALOG is a caller bug, not a denial: it raises
        UnknownPermissionError instead of returning False.
        """
        permission = to_permission(feature_area, action)
        if not user_id or not organization_id:
            return False

        statement = self._granted(user_id, organization_id).where(
            Permission.feature_area == permission.feature_area,
            Permission.permission_type == permission.action,
        )
        count_statement = select(func.count()).select_from(statement.subquery())

        with self.reading("authorize", organization_id=organization_id, user_id=user_id) as session:
            return session.execute(count_statement).scalar_one() > 0

    def require(
        self,
        user_id: str,
        organization_id: str,
        feature_area: Union[FeatureArea, str],
        action: Union[PermissionAction, str],
    ) -> None:
        """Raise PermissionDenied unless authorize() says yes (UnknownPermissionError for pairs outside the catalog)."""
        if self.authorize(user_id, organization_id, feature_area, action):
            return

        permission = to_permission(feature_area, action)
        log_security_event(
            "permission_denied",
            {
                "user_id": user_id,
                "organization_id": organization_id,
                "permission": permission.code,
            },
            logger
        )
        raise PermissionDenied(permission.feature_area.value, permission.action.value)

    def effective_permissions(self, user_id: str, organization_id: str) -> frozenset:
        if not user_id or not organization_id:
            return frozenset()
        statement = self._granted(user_id, organization_id).distinct()
        with self.reading("effective_permissions", organization_id=organization_id, user_id=user_id) as session:
            return frozenset(
                CatalogPermission(area, action) for area, action in session.execute(statement).all()
            )


# ============================================================================
# ROLE MANAGEMENT
# ============================================================================

class RoleService(SessionService):

    def list_permissions(self) -> List[Permission]:
        with self.writing("list_permissions") as session:
            rows = seed_permissions(session)
        return sorted(rows.values(), key=lambda row: row.as_catalog().code)

    def list_roles(self, organization_id: str) -> List[Role]:
        statement = _with_permissions(
            select(Role).where(Role.organization_id == organization_id).order_by(Role.is_default.desc(), Role.name)
        )
        with self.reading("list_roles", organization_id=organization_id) as session:
            return list(session.execute(statement).scalars().all())

    def _role(self, session: Session, organization_id: str, role_id: str, for_update: bool = False) -> Role:
        statement = _with_permissions(
            select(Role).where(Role.id == role_id, Role.organization_id == organization_id)
        )
        if for_update:
            statement = statement.with_for_update()
        role = session.execute(statement).scalar_one_or_none()
        if role is None:
            raise RoleNotFoundError(role_id)
        return role

    def _ensure_unique_name(self, session: Session, organization_id: str, name: str, exclude_id: Optional[str] = None) -> None:
        statement = select(Role.id).where(Role.organization_id == organization_id, Role.name == name)
        if exclude_id:
            statement = statement.where(Role.id != exclude_id)
        if session.execute(statement).first() is not None:
            raise RoleConflictError(f"A role named '{name}' already exists")

    def get_role(self, organization_id: str, role_id: str) -> Role:
        with self.reading("get_role", organization_id=organization_id) as session:
            return self._role(session, organization_id, role_id)

    def create_role(
        self,
        organization_id: str,
        name: str,
        description: Optional[str] = None,
        permissions: Iterable = (),
    ) -> Role:
        # Validate before opening a transaction
        granted = normalize_permissions(permissions)

        with self.writing("create_role", organization_id=organization_id) as session:
            self._ensure_unique_name(session, organization_id, name)
            rows = seed_permissions(session)

            # Custom roles are never default
            role = Role(
                id=new_id(),
                organization_id=organization_id,
                name=name,
                description=description,
                is_default=False,
            )
            _grant(role, granted, rows)
            session.add(role)

        logger.info(f"Role created: {role.name} ({role.id})", extra={"organization_id": organization_id})
        return role

    def update_role(
        self,
        organization_id: str,
        role_id: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
        permissions: Optional[Iterable] = None,
    ) -> Role:
        """
        Update name/description, and replace the permission set when given.

        Default roles keep their name.
        """
        granted = normalize_permissions(permissions) if permissions is not None else None

        with self.writing("update_role", organization_id=organization_id) as session:
            role = self._role(session, organization_id, role_id, for_update=True)

            if name is not None and name != role.name:
                if role.is_default:
                    raise RoleConflictError("Cannot rename a default role")
                self._ensure_unique_name(session, organization_id, name, exclude_id=role.id)
                role.name = name

            if description is not None:
                role.description = description

            if granted is not None:
                rows = seed_permissions(session)
                current = {rp.permission.as_catalog(): rp for rp in role.role_permissions}
                for permission, role_permission in current.items():
                    if permission not in granted:
                        role.role_permissions.remove(role_permission)
                _grant(role, granted - set(current), rows)

            role.updated_at = utcnow()

        logger.info(f"Role updated: {role.name} ({role.id})", extra={"organization_id": organization_id})
        return role

    def delete_role(self, organization_id: str, role_id: str) -> None:
        with self.writing("delete_role", organization_id=organization_id) as session:
            role = self._role(session, organization_id, role_id, for_update=True)
            if role.is_default:
                raise RoleConflictError("Cannot delete a default role")

            assigned = session.execute(
                select(func.count()).select_from(UserRoleAssignment).where(
                    UserRoleAssignment.role_id == role.id,
                    UserRoleAssignment.organization_id == organization_id,
                )
            ).scalar_one()
            if assigned:
                raise RoleConflictError(f"Cannot delete a role assigned to {assigned} user(s)")

            session.delete(role)

        logger.info(f"Role deleted: {role_id}", extra={"organization_id": organization_id})

    def assign_role(
        self,
        organization_id: str,
        user_id: str,
        role_id: str,
        assigned_by_id: Optional[str] = None,
    ) -> UserRoleAssignment:
        """Assign a role of this organization to a user. Assigning twice is a no-op."""
        with self.writing("assign_role", organization_id=organization_id) as session:
            # CRITICAL: the role must belong to the organization we assign in
            role = self._role(session, organization_id, role_id)

            assignment = session.execute(
                select(UserRoleAssignment).where(
                    UserRoleAssignment.user_id == user_id,
                    UserRoleAssignment.role_id == role.id,
                    UserRoleAssignment.organization_id == organization_id,
                )
            ).scalar_one_or_none()

            if assignment is None:
                assignment = UserRoleAssignment(
                    id=new_id(),
                    user_id=user_id,
                    role_id=role.id,
                    organization_id=organization_id,
                    assigned_by_id=assigned_by_id,
                    assigned_at=utcnow(),
                )
                session.add(assignment)
                logger.info(
                    f"Role {role.name} assigned to user {user_id}",
                    extra={"organization_id": organization_id, "user_id": user_id}
                )
            assignment.role = role

        return assignment

    def revoke_role(self, organization_id: str, user_id: str, role_id: str) -> bool:
        with self.writing("revoke_role", organization_id=organization_id) as session:
            assignment = session.execute(
                select(UserRoleAssignment).where(
                    UserRoleAssignment.user_id == user_id,
                    UserRoleAssignment.role_id == role_id,
                    UserRoleAssignment.organization_id == organization_id,
                )
            ).scalar_one_or_none()
            if assignment is None:
                return False
            session.delete(assignment)

        logger.info(
            f"Role {role_id} revoked from user {user_id}",
            extra={"organization_id": organization_id, "user_id": user_id}
        )
        return True

    def list_user_roles(self, organization_id: str, user_id: str) -> List[Role]:
        statement = _with_permissions(
            select(Role)
            .join(UserRoleAssignment, UserRoleAssignment.role_id == Role.id)
            .where(
                UserRoleAssignment.user_id == user_id,
                UserRoleAssignment.organization_id == organization_id,
                Role.organization_id == organization_id,
            )
            .order_by(Role.name)
        )
        with self.reading("list_user_roles", organization_id=organization_id, user_id=user_id) as session:
            return list(session.execute(statement).scalars().all())
