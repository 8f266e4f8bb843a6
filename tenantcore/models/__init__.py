"""
Database Models

Every tenant entity carries an immutable organization_id (TenantMixin).
Roles and role assignments are organization-scoped too; permissions and
users are global.
"""
from tenantcore.models.organization import Organization, User, OrganizationMembership, MemberRole
from tenantcore.models.rbac import Permission, Role, RolePermission, UserRoleAssignment
from tenantcore.models.crm import ClientCompany, Contact, Deal
from tenantcore.models.agreements import Proposal, Contract
from tenantcore.models.engagements import Engagement, Project
from tenantcore.models.revenue import Invoice, Vendor, Bill
from tenantcore.models.activity import ActivityEvent, ActivityType

__all__ = [
    "Organization", "User", "OrganizationMembership", "MemberRole",
    "Permission", "Role", "RolePermission", "UserRoleAssignment",
    "ClientCompany", "Contact", "Deal",
    "Proposal", "Contract",
    "Engagement", "Project",
    "Invoice", "Vendor", "Bill",
    "ActivityEvent", "ActivityType",
]
