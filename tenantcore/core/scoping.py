"""
Tenant Scope

The only way the services build statements against tenant tables.
A TenantScope cannot exist without an organization id, and every
statement it hands out already carries `organization_id == scope`, so a
query that forgets the tenant predicate cannot be written through it.
"""
from typing import Any

from sqlalchemy import Select, func, select


class TenantScope:
    """Organization-bound statement builder."""

    __slots__ = ("organization_id",)

    def __init__(self, organization_id: str):
        if not organization_id:
            raise ValueError("TenantScope requires an organization id")
        self.organization_id = str(organization_id)

    def predicate(self, model) -> Any:
        return model.organization_id == self.organization_id

    def select(self, model, *conditions) -> Select:
        return select(model).where(self.predicate(model), *conditions)

    def select_columns(self, model, *columns) -> Select:
        """SELECT of specific columns, already restricted to this organization."""
        return select(*columns).select_from(model).where(self.predicate(model))

    def count(self, model, *conditions) -> Select:
        return select(func.count()).select_from(model).where(self.predicate(model), *conditions)

    def by_id(self, model, entity_id: str) -> Select:
        return self.select(model, model.id == entity_id)

    def __repr__(self):
        return f"<TenantScope {self.organization_id}>"
