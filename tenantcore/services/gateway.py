"""
Data-Access Gateway

The control flow every CRUD entry point goes through:

    resolve tenant context -> authorize (feature area, action) -> Storage

Each method takes a RequestContext and checks the permission that guards
the operation on the entity type's feature area before touching data:

    list, get, check_dependencies, stats  -> view
    create                                -> create
    update                                -> edit
    delete                                -> delete
"""
from typing import Any, Mapping, Optional

from tenantcore.core.permissions import PermissionAction
from tenantcore.core.registry import get_entity_spec
from tenantcore.services.authorization import PermissionEvaluator
from tenantcore.services.dependencies import DependencyReport
from tenantcore.services.query import PagedResult
from tenantcore.services.statistics import StatsReport
from tenantcore.services.storage import Storage
from tenantcore.services.tenancy import RequestContext, TenantContextResolver


class DataAccessGateway:

    def __init__(self, storage: Storage, resolver: TenantContextResolver, evaluator: PermissionEvaluator):
        self.storage = storage
        self.resolver = resolver
        self.evaluator = evaluator

    def context_for(self, user_id: str, requested_organization_id: Optional[str] = None) -> RequestContext:
        return self.resolver.context_for(user_id, requested_organization_id)

    def _require(self, context: RequestContext, entity_type: str, action: PermissionAction) -> None:
        spec = get_entity_spec(entity_type)
        self.evaluator.require(context.user_id, context.organization_id, spec.feature_area, action)

    def list(
        self,
        context: RequestContext,
        entity_type: str,
        filters: Optional[Mapping[str, Any]] = None,
        search: Optional[str] = None,
        page: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> PagedResult:
        self._require(context, entity_type, PermissionAction.VIEW)
        return self.storage.list(context.organization_id, entity_type, filters, search, page, limit)

    def get(self, context: RequestContext, entity_type: str, entity_id: str):
        self._require(context, entity_type, PermissionAction.VIEW)
        return self.storage.get(context.organization_id, entity_type, entity_id)

    def create(self, context: RequestContext, entity_type: str, data: Mapping[str, Any]):
        self._require(context, entity_type, PermissionAction.CREATE)
        return self.storage.create(context.organization_id, entity_type, data, actor_id=context.user_id)

    def update(self, context: RequestContext, entity_type: str, entity_id: str, data: Mapping[str, Any]):
        self._require(context, entity_type, PermissionAction.EDIT)
        return self.storage.update(context.organization_id, entity_type, entity_id, data, actor_id=context.user_id)

    def check_dependencies(self, context: RequestContext, entity_type: str, entity_id: str) -> DependencyReport:
        self._require(context, entity_type, PermissionAction.VIEW)
        return self.storage.check_dependencies(context.organization_id, entity_type, entity_id)

    def delete(self, context: RequestContext, entity_type: str, entity_id: str) -> None:
        self._require(context, entity_type, PermissionAction.DELETE)
        self.storage.delete(context.organization_id, entity_type, entity_id, actor_id=context.user_id)

    def stats(self, context: RequestContext, entity_type: str) -> StatsReport:
        self._require(context, entity_type, PermissionAction.VIEW)
        return self.storage.stats(context.organization_id, entity_type)

    def activity(self, context: RequestContext, entity_type: str, entity_id: Optional[str] = None, limit: Optional[int] = None):
        self._require(context, entity_type, PermissionAction.VIEW)
        return self.storage.activity(context.organization_id, entity_type, entity_id, limit)
