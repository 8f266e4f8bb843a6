"""
Permission Catalog (RBAC)

Permissions are a fixed catalog of (feature area, action) pairs. Both
halves are enums, so a typo fails at import time instead of silently
creating a grant nobody can reach.

Roles are organization-scoped bundles of catalog entries; a user's
effective permissions in an organization are the union over every role
assigned to them there. Evaluation lives in services/authorization.py.
"""
import enum
from typing import Dict, FrozenSet, Iterable, NamedTuple, Union

from tenantcore.core.exceptions import UnknownPermissionError


class PermissionAction(str, enum.Enum):
    """Closed set of actions a permission can grant."""
    VIEW = "view"
    CREATE = "create"
    EDIT = "edit"
    DELETE = "delete"
    EXPORT = "export"


class FeatureArea(str, enum.Enum):
    """Product areas permissions are granted on."""
    CLIENTS = "clients"
    CONTACTS = "contacts"
    DEALS = "deals"
    PROPOSALS = "proposals"
    CONTRACTS = "contracts"
    ENGAGEMENTS = "engagements"
    PROJECTS = "projects"
    TASKS = "tasks"
    INVOICES = "invoices"
    BILLS = "bills"
    VENDORS = "vendors"
    FILES = "files"
    MESSAGES = "messages"
    THREADS = "threads"
    ORGANIZATIONS = "organizations"
    DASHBOARD = "dashboard"
    SETTINGS = "settings"
    USERS = "users"
    ROLES = "roles"


class Permission(NamedTuple):
    feature_area: FeatureArea
    action: PermissionAction

    @property
    def code(self) -> str:
        return f"{self.feature_area.value}:{self.action.value}"


_ALL_ACTIONS = tuple(PermissionAction)

# Areas that don't support the full action set
_RESTRICTED_ACTIONS: Dict[FeatureArea, tuple] = {
    FeatureArea.DASHBOARD: (PermissionAction.VIEW,),
    FeatureArea.SETTINGS: (PermissionAction.VIEW, PermissionAction.EDIT),
    FeatureArea.USERS: (
        PermissionAction.VIEW, PermissionAction.CREATE,
        PermissionAction.EDIT, PermissionAction.DELETE,
    ),
    FeatureArea.ROLES: (
        PermissionAction.VIEW, PermissionAction.CREATE,
        PermissionAction.EDIT, PermissionAction.DELETE,
    ),
}

PERMISSION_CATALOG: FrozenSet[Permission] = frozenset(
    Permission(area, action)
    for area in FeatureArea
    for action in _RESTRICTED_ACTIONS.get(area, _ALL_ACTIONS)
)

PERMISSION_DESCRIPTIONS: Dict[PermissionAction, str] = {
    PermissionAction.VIEW: "View {area}",
    PermissionAction.CREATE: "Create {area}",
    PermissionAction.EDIT: "Edit {area}",
    PermissionAction.DELETE: "Delete {area}",
    PermissionAction.EXPORT: "Export {area} data",
}


def to_permission(
    feature_area: Union[FeatureArea, str],
    action: Union[PermissionAction, str],
) -> Permission:
    """
    Coerce raw values into a catalog Permission.

    Raises UnknownPermissionError for anything outside the catalog.
    """
    try:
        permission = Permission(FeatureArea(feature_area), PermissionAction(action))
    except ValueError:
        raise UnknownPermissionError(str(feature_area), str(action))
    if permission not in PERMISSION_CATALOG:
        raise UnknownPermissionError(permission.feature_area.value, permission.action.value)
    return permission


def describe(permission: Permission) -> str:
    template = PERMISSION_DESCRIPTIONS[permission.action]
    return template.format(area=permission.feature_area.value)


# ============================================================================
# DEFAULT ROLES
# ============================================================================
# Created for every new organization.
#   Admin:       everything
#   Manager:     everything except user and role management
#   Team Member: view/create/edit on day-to-day areas, no delete or export
#   Client:      view-only on what a client portal shows

ADMIN_ROLE = "Admin"
MANAGER_ROLE = "Manager"
TEAM_MEMBER_ROLE = "Team Member"
CLIENT_ROLE = "Client"

_ADMIN_ONLY_AREAS = {FeatureArea.USERS, FeatureArea.ROLES}
_MANAGEMENT_AREAS = _ADMIN_ONLY_AREAS | {FeatureArea.SETTINGS, FeatureArea.ORGANIZATIONS}


def _select(predicate) -> FrozenSet[Permission]:
    return frozenset(p for p in PERMISSION_CATALOG if predicate(p))


DEFAULT_ROLE_PERMISSIONS: Dict[str, FrozenSet[Permission]] = {
    ADMIN_ROLE: PERMISSION_CATALOG,
    MANAGER_ROLE: _select(lambda p: p.feature_area not in _ADMIN_ONLY_AREAS),
    TEAM_MEMBER_ROLE: _select(
        lambda p: p.feature_area not in _MANAGEMENT_AREAS
        and p.action in (PermissionAction.VIEW, PermissionAction.CREATE, PermissionAction.EDIT)
    ),
    CLIENT_ROLE: _select(
        lambda p: p.feature_area in (FeatureArea.FILES, FeatureArea.INVOICES, FeatureArea.MESSAGES)
        and p.action == PermissionAction.VIEW
    ),
}

DEFAULT_ROLE_DESCRIPTIONS: Dict[str, str] = {
    ADMIN_ROLE: "Full access, including user and role management",
    MANAGER_ROLE: "Full access to business records, no user or role management",
    TEAM_MEMBER_ROLE: "Day-to-day work: view, create and edit records",
    CLIENT_ROLE: "Read-only access to shared files, invoices and messages",
}


def normalize_permissions(pairs: Iterable) -> FrozenSet[Permission]:
    """Accept Permission tuples or (area, action) pairs and validate each."""
    return frozenset(to_permission(area, action) for area, action in pairs)
