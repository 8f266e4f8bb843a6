"""
Statistics Aggregator

Organization-scoped dashboard numbers for one entity type:

- total: all rows of the type in the organization
- recently_added: rows created in the last 30 days (wall clock)
- breakdowns: per declared dimension, value -> count; NULL values get no
  bucket but still count toward total
- derived_counts: rows that do / don't have a related row, via EXISTS
  subqueries scoped to the same organization

Every aggregate runs in SQL against the TenantScope, so no number ever
mixes two organizations.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from tenantcore.core.registry import DerivedCount, EntitySpec
from tenantcore.core.scoping import TenantScope
from tenantcore.models.base import utcnow

RECENT_WINDOW = timedelta(days=30)


@dataclass
class StatsReport:
    total: int = 0
    recently_added: int = 0
    breakdowns: Dict[str, Dict[Any, int]] = field(default_factory=dict)
    derived_counts: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "recently_added": self.recently_added,
            "breakdowns": {dim: dict(buckets) for dim, buckets in self.breakdowns.items()},
            "derived_counts": dict(self.derived_counts),
        }


class StatisticsAggregator:

    def stats(
        self,
        session: Session,
        scope: TenantScope,
        spec: EntitySpec,
        now: Optional[datetime] = None,
    ) -> StatsReport:
        model = spec.model
        since = (now or utcnow()) - RECENT_WINDOW

        total = session.execute(scope.count(model)).scalar_one()
        recently_added = session.execute(scope.count(model, model.created_at >= since)).scalar_one()

        breakdowns = {
            dimension: self._breakdown(session, scope, spec, dimension)
            for dimension in spec.breakdowns
        }
        derived_counts = {
            derived.name: self._derived_count(session, scope, spec, derived)
            for derived in spec.derived_counts
        }

        return StatsReport(
            total=total,
            recently_added=recently_added,
            breakdowns=breakdowns,
            derived_counts=derived_counts,
        )

    def _breakdown(self, session: Session, scope: TenantScope, spec: EntitySpec, dimension: str) -> Dict[Any, int]:
        column = spec.column(dimension)
        statement = (
            scope.select_columns(spec.model, column, func.count())
            .where(column.is_not(None))
            .group_by(column)
            .order_by(column)
        )
        return {value: count for value, count in session.execute(statement).all()}

    def _derived_count(self, session: Session, scope: TenantScope, spec: EntitySpec, derived: DerivedCount) -> int:
        related = derived.model
        foreign_key = getattr(related, derived.foreign_key)
        extra = [getattr(related, name) == value for name, value in derived.where.items()]

        has_related = (
            select(related.id)
            .where(foreign_key == spec.model.id, scope.predicate(related), *extra)
            .exists()
        )
        condition = has_related if derived.exists else ~has_related
        return session.execute(scope.count(spec.model, condition)).scalar_one()
