"""
Organization Endpoints

Which organization a request runs in, and which ones the user can switch
to with the X-Organization-ID header. Membership is all these need; no
feature permission is checked.
"""
from typing import Any, Dict, List

from fastapi import APIRouter, Depends

from tenantcore.api.deps import (
    get_current_user_id,
    get_evaluator,
    get_request_context,
    get_resolver,
    get_token_claims,
)
from tenantcore.schemas.organization import CurrentOrganizationResponse, OrganizationResponse, UserResponse
from tenantcore.services.authorization import PermissionEvaluator
from tenantcore.services.tenancy import PROFILE_FIELDS, RequestContext, TenantContextResolver

router = APIRouter(prefix="/organizations", tags=["organizations"])


@router.get("/current", response_model=CurrentOrganizationResponse)
def current_organization(
    context: RequestContext = Depends(get_request_context),
    claims: Dict[str, Any] = Depends(get_token_claims),
    resolver: TenantContextResolver = Depends(get_resolver),
    evaluator: PermissionEvaluator = Depends(get_evaluator)
):
    """
    The resolved organization and the caller's effective permissions in it.

    This is the call clients make after sign-in, so it also syncs the
    profile claims of the token onto the User row. First call for a new
    user bootstraps their default organization.
    """
    user = resolver.ensure_user(context.user_id, **{key: claims.get(key) for key in PROFILE_FIELDS})
    organization = resolver.get_organization(context)
    permissions = evaluator.effective_permissions(context.user_id, context.organization_id)
    return CurrentOrganizationResponse(
        organization=OrganizationResponse.model_validate(organization),
        user_id=context.user_id,
        user=UserResponse.model_validate(user),
        permissions=sorted(permission.code for permission in permissions),
    )


@router.get("", response_model=List[OrganizationResponse])
def list_organizations(
    user_id: str = Depends(get_current_user_id),
    resolver: TenantContextResolver = Depends(get_resolver)
):
    """Organizations the user belongs to, oldest membership first."""
    return resolver.list_memberships(user_id)
