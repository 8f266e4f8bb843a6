"""
RBAC Schemas

Request/response models for permissions, roles and role assignments.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from tenantcore.core.permissions import FeatureArea, PermissionAction


class PermissionRef(BaseModel):
    """A (feature area, action) pair from the permission catalog."""
    feature_area: FeatureArea
    action: PermissionAction


class PermissionResponse(BaseModel):
    id: str
    feature_area: FeatureArea
    permission_type: PermissionAction
    description: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class RoleCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    permissions: List[PermissionRef] = Field(default_factory=list)


class RoleUpdate(BaseModel):
    """All fields optional. permissions replaces the whole set when given."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    permissions: Optional[List[PermissionRef]] = None


class RoleResponse(BaseModel):
    id: str
    organization_id: str
    name: str
    description: Optional[str] = None
    is_default: bool
    permissions: List[PermissionRef]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_role(cls, role) -> "RoleResponse":
        return cls(
            id=role.id,
            organization_id=role.organization_id,
            name=role.name,
            description=role.description,
            is_default=role.is_default,
            permissions=[
                PermissionRef(feature_area=p.feature_area, action=p.action) for p in role.permissions
            ],
            created_at=role.created_at,
            updated_at=role.updated_at,
        )


class RoleAssignmentCreate(BaseModel):
    role_id: str = Field(..., min_length=1)


class RoleAssignmentResponse(BaseModel):
    id: str
    user_id: str
    role_id: str
    organization_id: str
    assigned_by_id: Optional[str] = None
    assigned_at: datetime

    model_config = ConfigDict(from_attributes=True)
