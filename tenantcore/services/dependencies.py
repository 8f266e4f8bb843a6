"""
Dependency Resolver

Before a destructive operation, counts the rows that reference an entity
across the dependency edges declared for its type (core/registry.py).

check() runs one count query per edge concurrently, each on its own
session and pooled connection; the counts are independent and read-only.
counts_in_session() runs the same queries serially inside the caller's
transaction, which is what the delete path uses so the check and the
delete see the same snapshot.

The resolver only reports. Refusing the delete is the Storage facade's job.
"""
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Dict

from sqlalchemy.orm import Session

from tenantcore.core.registry import DependencyEdge, EntitySpec
from tenantcore.core.scoping import TenantScope
from tenantcore.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class DependencyReport:
    counts: Dict[str, int] = field(default_factory=dict)

    @property
    def has_dependencies(self) -> bool:
        return any(count > 0 for count in self.counts.values())

    @property
    def blocking(self) -> Dict[str, int]:
        return {name: count for name, count in self.counts.items() if count > 0}

    def to_dict(self) -> Dict[str, object]:
        return {"has_dependencies": self.has_dependencies, "counts": dict(self.counts)}


def _edge_count(session: Session, scope: TenantScope, edge: DependencyEdge, entity_id: str) -> int:
    foreign_key = getattr(edge.model, edge.foreign_key)
    return session.execute(scope.count(edge.model, foreign_key == entity_id)).scalar_one()


class DependencyResolver:

    def __init__(self, session_factory: Callable[[], Session], max_workers: int = 6):
        self.session_factory = session_factory
        self.max_workers = max(1, max_workers)

    def _count_edge(self, scope: TenantScope, edge: DependencyEdge, entity_id: str) -> int:
        with self.session_factory() as session:
            return _edge_count(session, scope, edge, entity_id)

    def check(self, scope: TenantScope, spec: EntitySpec, entity_id: str) -> DependencyReport:
        """Count dependents on every declared edge, concurrently."""
        edges = spec.dependencies
        if not edges:
            return DependencyReport()

        workers = min(len(edges), self.max_workers)
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="dependency-check") as pool:
            futures = {
                edge.name: pool.submit(self._count_edge, scope, edge, entity_id)
                for edge in edges
            }
            # Preserve declaration order in the report
            counts = {name: future.result() for name, future in futures.items()}

        report = DependencyReport(counts=counts)
        logger.debug(
            f"Dependency check {spec.name}:{entity_id} -> {report.counts}",
            extra={"organization_id": scope.organization_id, "entity_type": spec.name, "entity_id": entity_id}
        )
        return report

    def counts_in_session(
        self,
        session: Session,
        scope: TenantScope,
        spec: EntitySpec,
        entity_id: str,
    ) -> DependencyReport:
        """Same counts, serially, inside an existing transaction."""
        return DependencyReport(counts={
            edge.name: _edge_count(session, scope, edge, entity_id)
            for edge in spec.dependencies
        })
