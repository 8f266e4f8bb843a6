"""
RBAC Endpoints

Permission catalog, organization roles and user role assignments.

RBAC: guarded by the `roles` feature area
- view:   list permissions, list/get roles, list a user's roles
- create: create role
- edit:   update role, assign/revoke roles
- delete: delete role

All role operations run in the caller's resolved organization; a role id
from another organization is a 404.
"""
from typing import List

from fastapi import APIRouter, Depends, Response, status

from tenantcore.api.deps import get_role_service, require_permission
from tenantcore.core.exceptions import RoleNotFoundError
from tenantcore.core.permissions import FeatureArea, PermissionAction
from tenantcore.schemas.rbac import (
    PermissionResponse,
    RoleAssignmentCreate,
    RoleAssignmentResponse,
    RoleCreate,
    RoleResponse,
    RoleUpdate,
)
from tenantcore.services.authorization import RoleService
from tenantcore.services.tenancy import RequestContext

router = APIRouter(tags=["roles"])

can_view = require_permission(FeatureArea.ROLES, PermissionAction.VIEW)
can_create = require_permission(FeatureArea.ROLES, PermissionAction.CREATE)
can_edit = require_permission(FeatureArea.ROLES, PermissionAction.EDIT)
can_delete = require_permission(FeatureArea.ROLES, PermissionAction.DELETE)


def _pairs(refs):
    return [(ref.feature_area, ref.action) for ref in refs]


@router.get("/permissions", response_model=List[PermissionResponse])
def list_permissions(
    context: RequestContext = Depends(can_view),
    roles: RoleService = Depends(get_role_service)
):
    """The fixed permission catalog (global)."""
    return roles.list_permissions()


@router.get("/roles", response_model=List[RoleResponse])
def list_roles(
    context: RequestContext = Depends(can_view),
    roles: RoleService = Depends(get_role_service)
):
    return [RoleResponse.from_role(role) for role in roles.list_roles(context.organization_id)]


@router.post("/roles", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
def create_role(
    role_data: RoleCreate,
    context: RequestContext = Depends(can_create),
    roles: RoleService = Depends(get_role_service)
):
    """Create a custom role. Custom roles are never default."""
    role = roles.create_role(
        context.organization_id,
        name=role_data.name,
        description=role_data.description,
        permissions=_pairs(role_data.permissions),
    )
    return RoleResponse.from_role(role)


@router.get("/roles/{role_id}", response_model=RoleResponse)
def get_role(
    role_id: str,
    context: RequestContext = Depends(can_view),
    roles: RoleService = Depends(get_role_service)
):
    return RoleResponse.from_role(roles.get_role(context.organization_id, role_id))


@router.put("/roles/{role_id}", response_model=RoleResponse)
def update_role(
    role_id: str,
    role_data: RoleUpdate,
    context: RequestContext = Depends(can_edit),
    roles: RoleService = Depends(get_role_service)
):
    """
    Update a role.

    Default roles cannot be renamed (409). When permissions is given it
    replaces the role's whole permission set.
    """
    role = roles.update_role(
        context.organization_id,
        role_id,
        name=role_data.name,
        description=role_data.description,
        permissions=_pairs(role_data.permissions) if role_data.permissions is not None else None,
    )
    return RoleResponse.from_role(role)


@router.delete("/roles/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_role(
    role_id: str,
    context: RequestContext = Depends(can_delete),
    roles: RoleService = Depends(get_role_service)
):
    """Delete a custom role that nobody holds. Default or assigned roles -> 409."""
    roles.delete_role(context.organization_id, role_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/users/{user_id}/roles", response_model=List[RoleResponse])
def list_user_roles(
    user_id: str,
    context: RequestContext = Depends(can_view),
    roles: RoleService = Depends(get_role_service)
):
    return [RoleResponse.from_role(role) for role in roles.list_user_roles(context.organization_id, user_id)]


@router.post("/users/{user_id}/roles", response_model=RoleAssignmentResponse, status_code=status.HTTP_201_CREATED)
def assign_role(
    user_id: str,
    assignment: RoleAssignmentCreate,
    context: RequestContext = Depends(can_edit),
    roles: RoleService = Depends(get_role_service)
):
    """
    Assign a role to a user in the caller's organization.

    SECURITY: the role must belong to this organization; a foreign role id
    is a 404, never a cross-tenant grant.
    """
    return roles.assign_role(
        context.organization_id,
        user_id,
        assignment.role_id,
        assigned_by_id=context.user_id,
    )


@router.delete("/users/{user_id}/roles/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
def revoke_role(
    user_id: str,
    role_id: str,
    context: RequestContext = Depends(can_edit),
    roles: RoleService = Depends(get_role_service)
):
    if not roles.revoke_role(context.organization_id, user_id, role_id):
        raise RoleNotFoundError(role_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
