"""
Custom Exceptions

Centralized exception definitions for the data-access core.
FastAPI automatically converts these to appropriate HTTP responses, and
non-HTTP callers can still catch them by class.

Kinds:
- NotFound: EntityNotFoundError, OrganizationNotFoundError, RoleNotFoundError
- PermissionDenied
- Conflict: DependencyConflictError, RoleConflictError
- Validation: InvalidQueryError, UnknownPermissionError
- Internal: StorageError
"""
from typing import Dict, Optional

from fastapi import HTTPException, status


class EntityNotFoundError(HTTPException):
    """
    Raised when an entity cannot be found.

    SECURITY: Also raised when the entity exists in another organization.
    The message must never tell the two cases apart.
    """

    def __init__(self, entity_type: str = "", entity_id: str = ""):
        self.entity_type = entity_type
        self.entity_id = entity_id
        label = entity_type or "Entity"
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{label} not found: {entity_id}" if entity_id else f"{label} not found"
        )


class OrganizationNotFoundError(HTTPException):
    """Raised when the requested organization is not one of the user's."""

    def __init__(self, organization_id: str = ""):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Organization not found: {organization_id}" if organization_id else "Organization not found"
        )


class RoleNotFoundError(HTTPException):
    """Raised when a role does not exist in the caller's organization."""

    def __init__(self, role_id: str = ""):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Role not found: {role_id}" if role_id else "Role not found"
        )


class PermissionDenied(HTTPException):
    """Raised when the user's roles do not grant (feature_area, action)."""

    def __init__(self, feature_area: str = "", action: str = ""):
        self.feature_area = feature_area
        self.action = action
        if feature_area and action:
            detail = f"Missing '{action}' permission for '{feature_area}'"
        else:
            detail = "Permission denied"
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class DependencyConflictError(HTTPException):
    """
    Raised when a delete is blocked by dependent records.

    Carries the per-edge counts so the caller can show what to clean up first.
    """

    def __init__(self, entity_type: str, entity_id: str, dependencies: Dict[str, int]):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.dependencies = dict(dependencies)
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "message": f"Cannot delete {entity_type} {entity_id}: dependent records exist",
                "dependencies": self.dependencies,
            }
        )


class RoleConflictError(HTTPException):
    """Raised when a role change would break a default role or live assignment."""

    def __init__(self, detail: str = "Role cannot be changed"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class InvalidQueryError(HTTPException):
    """Raised for unknown entity types or undeclared filter fields."""

    def __init__(self, detail: str = "Invalid query"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class UnknownPermissionError(HTTPException):
    """Raised when a (feature_area, action) pair is not in the catalog."""

    def __init__(self, feature_area: str, action: str):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown permission: {feature_area}:{action}"
        )


class StorageError(HTTPException):
    """
    Raised when the database fails.

    The original error is logged server-side; callers only see a generic message.
    Callers may retry with backoff. The core never retries on its own.
    """

    def __init__(self, operation: str = "", original: Optional[Exception] = None):
        self.operation = operation
        self.original = original
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal storage error"
        )


class AuthenticationError(HTTPException):
    """Raised when the bearer token is missing, invalid or expired."""

    def __init__(self, detail: str = "Could not validate credentials"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )
