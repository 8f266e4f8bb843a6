"""
API Dependencies

Reusable FastAPI dependencies for authentication, tenant context and
authorization. These are used across all API endpoints to ensure
consistent security.

Flow for every authenticated request:
1. Bearer token -> user id (python-jose verifies signature and expiry)
2. user id (+ optional X-Organization-ID header) -> RequestContext
3. Endpoints hand the RequestContext to the gateway / role service,
   which authorize before touching data

The context is returned from the dependency and passed explicitly.
Nothing is stored on request.state.
"""
from typing import Any, Callable, Dict, Optional

from fastapi import Depends, Header
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from tenantcore.core.exceptions import AuthenticationError
from tenantcore.core.permissions import FeatureArea, PermissionAction
from tenantcore.core.security import decode_access_token
from tenantcore.database import get_session_factory
from tenantcore.services.authorization import PermissionEvaluator, RoleService
from tenantcore.services.gateway import DataAccessGateway
from tenantcore.services.storage import Storage
from tenantcore.services.tenancy import RequestContext, TenantContextResolver
import logging

logger = logging.getLogger(__name__)

# auto_error=False so a missing header becomes our 401, not Starlette's 403
security = HTTPBearer(auto_error=False)


def get_db_session_factory() -> Callable[[], Session]:
    """Session factory for the request. Tests override this."""
    return get_session_factory()


def get_storage(session_factory: Callable[[], Session] = Depends(get_db_session_factory)) -> Storage:
    return Storage.from_settings(session_factory)


def get_resolver(session_factory: Callable[[], Session] = Depends(get_db_session_factory)) -> TenantContextResolver:
    return TenantContextResolver(session_factory)


def get_evaluator(session_factory: Callable[[], Session] = Depends(get_db_session_factory)) -> PermissionEvaluator:
    return PermissionEvaluator(session_factory)


def get_role_service(session_factory: Callable[[], Session] = Depends(get_db_session_factory)) -> RoleService:
    return RoleService(session_factory)


def get_gateway(
    storage: Storage = Depends(get_storage),
    resolver: TenantContextResolver = Depends(get_resolver),
    evaluator: PermissionEvaluator = Depends(get_evaluator),
) -> DataAccessGateway:
    return DataAccessGateway(storage, resolver, evaluator)


def get_token_claims(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Dict[str, Any]:
    """Verified payload of the bearer token; it always carries a subject."""
    if credentials is None:
        raise AuthenticationError("Not authenticated")

    claims = decode_access_token(credentials.credentials)
    if not claims or not claims.get("sub"):
        logger.debug("Rejected bearer token: invalid, expired or missing subject")
        raise AuthenticationError("Invalid or expired token")
    return claims


def get_current_user_id(claims: Dict[str, Any] = Depends(get_token_claims)) -> str:
    """
    Authenticated user id from the bearer token.

    SECURITY: The token is the only source of identity. We never accept
    a user id from headers or the body.
    """
    return str(claims["sub"])


def get_request_context(
    user_id: str = Depends(get_current_user_id),
    x_organization_id: Optional[str] = Header(None, alias="X-Organization-ID"),
    resolver: TenantContextResolver = Depends(get_resolver),
) -> RequestContext:
    """
    Resolve the organization this request runs in.

    Without the header the user's first organization is used (bootstrapped
    on first sight). With it, the user must be a member or the request
    fails with 404.
    """
    return resolver.context_for(user_id, x_organization_id or None)


def require_permission(feature_area: FeatureArea, action: PermissionAction):
    """
    Dependency factory guarding an endpoint with one catalog permission.

    Usage: context: RequestContext = Depends(require_permission(FeatureArea.ROLES, PermissionAction.VIEW))
    """
    def dependency(
        context: RequestContext = Depends(get_request_context),
        evaluator: PermissionEvaluator = Depends(get_evaluator),
    ) -> RequestContext:
        evaluator.require(context.user_id, context.organization_id, feature_area, action)
        return context

    return dependency
