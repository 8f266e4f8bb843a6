"""
Query / Pagination Engine

Builds organization-scoped, filtered, searched, sorted and paginated reads
over any registered entity type.

Semantics:
- filters are exact matches combined with AND
- search is a case-insensitive substring match OR'd across the type's
  searchable fields, then AND'd with the filters
- order is newest first (created_at DESC), ties broken by id DESC, so
  pages are stable when nothing is written between fetches
- total counts every matching row before pagination

Pagination is read-committed: a row inserted between two page fetches can
shift a page boundary by one item. That is accepted.
"""
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from tenantcore.core.exceptions import InvalidQueryError
from tenantcore.core.registry import EntitySpec
from tenantcore.core.scoping import TenantScope
from tenantcore.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 50
MAX_LIMIT = 100


@dataclass
class PagedResult:
    items: List[Any] = field(default_factory=list)
    total: int = 0
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT
    total_pages: int = 0
    has_next: bool = False
    has_prev: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": [item.to_dict() for item in self.items],
            "total": self.total,
            "page": self.page,
            "limit": self.limit,
            "total_pages": self.total_pages,
            "has_next": self.has_next,
            "has_prev": self.has_prev,
        }


def normalize_pagination(
    page: Optional[int],
    limit: Optional[int],
    default_limit: int = DEFAULT_LIMIT,
    max_limit: int = MAX_LIMIT,
) -> Tuple[int, int]:
    """
    Normalize page/limit instead of rejecting them.

    page defaults to 1 and is at least 1; limit defaults to default_limit
    and is clamped to [1, max_limit].
    """
    page = DEFAULT_PAGE if page is None else max(DEFAULT_PAGE, int(page))
    limit = default_limit if limit is None else min(max(1, int(limit)), max_limit)
    return page, limit


def page_metadata(total: int, page: int, limit: int) -> Dict[str, Any]:
    total_pages = math.ceil(total / limit) if total else 0
    return {
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_prev": page > 1,
    }


class QueryEngine:
    """Read side of the Storage facade. Never writes."""

    def __init__(self, default_limit: int = DEFAULT_LIMIT, max_limit: int = MAX_LIMIT):
        self.default_limit = default_limit
        self.max_limit = max_limit

    def conditions(
        self,
        spec: EntitySpec,
        filters: Optional[Mapping[str, Any]] = None,
        search: Optional[str] = None,
    ) -> list:
        """WHERE clauses for filters + search (the tenant predicate is added by TenantScope)."""
        clauses = []

        for field_name, value in (filters or {}).items():
            if field_name not in spec.filterable_fields:
                raise InvalidQueryError(
                    f"Cannot filter {spec.name} by '{field_name}'. "
                    f"Filterable fields: {', '.join(spec.filterable_fields) or 'none'}"
                )
            column = spec.column(field_name)
            clauses.append(column.is_(None) if value is None else column == value)

        term = (search or "").strip()
        if term and spec.searchable_fields:
            needle = term.lower()
            clauses.append(or_(*[
                # autoescape makes % and _ in the term match literally
                func.lower(spec.column(field_name)).contains(needle, autoescape=True)
                for field_name in spec.searchable_fields
            ]))

        return clauses

    def list(
        self,
        session: Session,
        scope: TenantScope,
        spec: EntitySpec,
        filters: Optional[Mapping[str, Any]] = None,
        search: Optional[str] = None,
        page: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> PagedResult:
        page, limit = normalize_pagination(page, limit, self.default_limit, self.max_limit)
        model = spec.model
        clauses = self.conditions(spec, filters, search)

        total = session.execute(scope.count(model, *clauses)).scalar_one()

        statement = (
            scope.select(model, *clauses)
            .order_by(model.created_at.desc(), model.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        items = list(session.execute(statement).scalars().all())

        logger.debug(
            f"Listed {len(items)}/{total} {spec.name}",
            extra={"organization_id": scope.organization_id, "entity_type": spec.name}
        )

        return PagedResult(items=items, **page_metadata(total, page, limit))

    def get(
        self,
        session: Session,
        scope: TenantScope,
        spec: EntitySpec,
        entity_id: str,
        for_update: bool = False,
    ):
        """Entity by id within the scope, or None (also None when it belongs to another organization)."""
        statement = scope.by_id(spec.model, entity_id)
        if for_update:
            statement = statement.with_for_update()
        return session.execute(statement).scalar_one_or_none()
