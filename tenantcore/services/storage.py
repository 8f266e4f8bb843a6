"""
Storage Facade

The single chokepoint between callers and tenant data. Every method takes
the organization id explicitly and builds its statements through a
TenantScope, so a row from another organization is indistinguishable from
a row that does not exist (both are EntityNotFoundError).

Write rules:
- organization_id, id, created_at and updated_at are never taken from the
  caller. A supplied organization_id that differs from the scope is logged
  as tampering and overridden, not rejected.
- Columns the model doesn't have are dropped.
- Foreign keys must point at rows of the same organization. A reference
  to another organization's row fails exactly like one to a missing row
  (EntityNotFoundError), so database cascades can never cross tenants.
- Each write and its ActivityEvent commit in one transaction.
- delete re-counts dependents inside its own transaction, with the row
  locked, and refuses with DependencyConflictError when any count is > 0.
  Deletion is physical.
"""
from typing import Any, Callable, Dict, List, Mapping, Optional

from sqlalchemy.orm import Session

from tenantcore.config import get_settings
from tenantcore.core.exceptions import DependencyConflictError, EntityNotFoundError
from tenantcore.core.registry import EntitySpec, get_entity_spec
from tenantcore.core.scoping import TenantScope
from tenantcore.database import get_session_factory
from tenantcore.models import ActivityEvent, ActivityType
from tenantcore.models.base import new_id, utcnow
from tenantcore.services.base import SessionService
from tenantcore.services.dependencies import DependencyReport, DependencyResolver
from tenantcore.services.query import PagedResult, QueryEngine
from tenantcore.services.statistics import StatisticsAggregator, StatsReport
from tenantcore.utils.logging import get_logger, log_security_event

logger = get_logger(__name__)


class Storage(SessionService):

    def __init__(
        self,
        session_factory: Callable[[], Session],
        query_engine: Optional[QueryEngine] = None,
        dependency_resolver: Optional[DependencyResolver] = None,
        statistics: Optional[StatisticsAggregator] = None,
    ):
        super().__init__(session_factory)
        self.query_engine = query_engine or QueryEngine()
        self.dependency_resolver = dependency_resolver or DependencyResolver(session_factory)
        self.statistics = statistics or StatisticsAggregator()

    @classmethod
    def from_settings(cls, session_factory: Optional[Callable[[], Session]] = None) -> "Storage":
        settings = get_settings()
        factory = session_factory or get_session_factory()
        return cls(
            factory,
            query_engine=QueryEngine(settings.DEFAULT_PAGE_SIZE, settings.MAX_PAGE_SIZE),
            dependency_resolver=DependencyResolver(factory, settings.DEPENDENCY_CHECK_WORKERS),
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list(
        self,
        organization_id: str,
        entity_type: str,
        filters: Optional[Mapping[str, Any]] = None,
        search: Optional[str] = None,
        page: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> PagedResult:
        spec = get_entity_spec(entity_type)
        scope = TenantScope(organization_id)
        with self.reading("list", organization_id=scope.organization_id, entity_type=spec.name) as session:
            return self.query_engine.list(session, scope, spec, filters, search, page, limit)

    def get(self, organization_id: str, entity_type: str, entity_id: str):
        spec = get_entity_spec(entity_type)
        scope = TenantScope(organization_id)
        with self.reading("get", organization_id=scope.organization_id, entity_type=spec.name) as session:
            entity = self.query_engine.get(session, scope, spec, entity_id)
        if entity is None:
            raise EntityNotFoundError(spec.label, entity_id)
        return entity

    def check_dependencies(self, organization_id: str, entity_type: str, entity_id: str) -> DependencyReport:
        spec = get_entity_spec(entity_type)
        scope = TenantScope(organization_id)
        with self.reading("check_dependencies", organization_id=scope.organization_id, entity_type=spec.name) as session:
            if self.query_engine.get(session, scope, spec, entity_id) is None:
                raise EntityNotFoundError(spec.label, entity_id)
        return self.dependency_resolver.check(scope, spec, entity_id)

    def stats(self, organization_id: str, entity_type: str) -> StatsReport:
        spec = get_entity_spec(entity_type)
        scope = TenantScope(organization_id)
        with self.reading("stats", organization_id=scope.organization_id, entity_type=spec.name) as session:
            return self.statistics.stats(session, scope, spec)

    def activity(
        self,
        organization_id: str,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[ActivityEvent]:
        """Audit events for the organization, newest first."""
        scope = TenantScope(organization_id)
        conditions = []
        if entity_type is not None:
            conditions.append(ActivityEvent.entity_type == get_entity_spec(entity_type).name)
        if entity_id is not None:
            conditions.append(ActivityEvent.entity_id == entity_id)
        limit = min(max(1, limit or self.query_engine.default_limit), self.query_engine.max_limit)

        statement = (
            scope.select(ActivityEvent, *conditions)
            .order_by(ActivityEvent.created_at.desc(), ActivityEvent.id.desc())
            .limit(limit)
        )
        with self.reading("activity", organization_id=scope.organization_id) as session:
            return list(session.execute(statement).scalars().all())

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(
        self,
        organization_id: str,
        entity_type: str,
        data: Mapping[str, Any],
        actor_id: Optional[str] = None,
    ):
        spec = get_entity_spec(entity_type)
        scope = TenantScope(organization_id)
        values = self._writable_values(scope, spec, data, "create", actor_id)

        for field_name in spec.actor_fields:
            if actor_id and values.get(field_name) is None:
                values[field_name] = actor_id

        with self.writing("create", organization_id=scope.organization_id, entity_type=spec.name) as session:
            self._check_references(session, scope, spec, values)
            now = utcnow()
            entity = spec.model(**values)
            # CRITICAL: organization comes from the scope, never from the payload
            entity.id = new_id()
            entity.organization_id = scope.organization_id
            entity.created_at = now
            entity.updated_at = now
            session.add(entity)

            self._record(
                session, scope, spec, entity.id, ActivityType.CREATED, actor_id,
                metadata={"fields": sorted(values)},
            )

        logger.info(
            f"{spec.label} created: {entity.id}",
            extra={"organization_id": scope.organization_id, "entity_type": spec.name, "entity_id": entity.id}
        )
        return entity

    def update(
        self,
        organization_id: str,
        entity_type: str,
        entity_id: str,
        data: Mapping[str, Any],
        actor_id: Optional[str] = None,
    ):
        spec = get_entity_spec(entity_type)
        scope = TenantScope(organization_id)
        values = self._writable_values(scope, spec, data, "update", actor_id)

        with self.writing("update", organization_id=scope.organization_id, entity_type=spec.name) as session:
            entity = self.query_engine.get(session, scope, spec, entity_id, for_update=True)
            if entity is None:
                raise EntityNotFoundError(spec.label, entity_id)
            self._check_references(session, scope, spec, values)

            changed = []
            for field_name, value in values.items():
                if getattr(entity, field_name) != value:
                    setattr(entity, field_name, value)
                    changed.append(field_name)
            entity.updated_at = utcnow()

            self._record(
                session, scope, spec, entity.id, ActivityType.UPDATED, actor_id,
                metadata={"fields": sorted(changed)},
            )

        logger.info(
            f"{spec.label} updated: {entity_id} ({', '.join(sorted(changed)) or 'no changes'})",
            extra={"organization_id": scope.organization_id, "entity_type": spec.name, "entity_id": entity_id}
        )
        return entity

    def delete(
        self,
        organization_id: str,
        entity_type: str,
        entity_id: str,
        actor_id: Optional[str] = None,
    ) -> None:
        spec = get_entity_spec(entity_type)
        scope = TenantScope(organization_id)

        with self.writing("delete", organization_id=scope.organization_id, entity_type=spec.name) as session:
            entity = self.query_engine.get(session, scope, spec, entity_id, for_update=True)
            if entity is None:
                raise EntityNotFoundError(spec.label, entity_id)

            report = self.dependency_resolver.counts_in_session(session, scope, spec, entity_id)
            if report.has_dependencies:
                logger.info(
                    f"Delete of {spec.name}:{entity_id} blocked by {report.blocking}",
                    extra={"organization_id": scope.organization_id, "entity_type": spec.name, "entity_id": entity_id}
                )
                raise DependencyConflictError(spec.name, entity_id, report.counts)

            session.delete(entity)
            self._record(session, scope, spec, entity_id, ActivityType.DELETED, actor_id)

        logger.info(
            f"{spec.label} deleted: {entity_id}",
            extra={"organization_id": scope.organization_id, "entity_type": spec.name, "entity_id": entity_id}
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _writable_values(
        self,
        scope: TenantScope,
        spec: EntitySpec,
        data: Mapping[str, Any],
        operation: str,
        actor_id: Optional[str],
    ) -> Dict[str, Any]:
        """Drop protected and unknown fields from a write payload."""
        supplied_org = data.get("organization_id")
        if supplied_org is not None and str(supplied_org) != scope.organization_id:
            log_security_event(
                "organization_tampering",
                {
                    "organization_id": scope.organization_id,
                    "supplied_organization_id": str(supplied_org),
                    "user_id": actor_id,
                    "entity_type": spec.name,
                    "operation": operation,
                },
                logger
            )

        writable = spec.model.writable_fields()
        values = {key: value for key, value in data.items() if key in writable}

        ignored = set(data) - set(values)
        if ignored:
            logger.debug(f"Ignored fields on {operation} {spec.name}: {sorted(ignored)}")
        return values

    def _check_references(
        self,
        session: Session,
        scope: TenantScope,
        spec: EntitySpec,
        values: Mapping[str, Any],
    ) -> None:
        """
        Every non-null foreign key in `values` must resolve inside the scope.

        The referenced row is share-locked until commit so a concurrent
        delete of it can't slip between this check and the insert.
        """
        for field_name, target_type in spec.references.items():
            target_id = values.get(field_name)
            if target_id is None:
                continue
            target = get_entity_spec(target_type)
            statement = scope.by_id(target.model, target_id).with_for_update(read=True)
            if session.execute(statement).scalar_one_or_none() is None:
                logger.info(
                    f"Rejected {spec.name}.{field_name}: {target.label} {target_id} not in organization",
                    extra={"organization_id": scope.organization_id, "entity_type": spec.name}
                )
                raise EntityNotFoundError(target.label, str(target_id))

    def _record(
        self,
        session: Session,
        scope: TenantScope,
        spec: EntitySpec,
        entity_id: str,
        event_type: ActivityType,
        actor_id: Optional[str],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        session.add(ActivityEvent(
            id=new_id(),
            organization_id=scope.organization_id,
            entity_type=spec.name,
            entity_id=entity_id,
            actor_id=actor_id,
            type=event_type,
            description=f"{spec.label} {event_type.value}",
            event_metadata=metadata,
            created_at=utcnow(),
        ))
