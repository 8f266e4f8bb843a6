"""
Record Endpoints

Generic CRUD, dependency check and statistics for every registered
tenant entity type (clients, contacts, deals, proposals, contracts,
engagements, projects, invoices, vendors, bills).

Every handler goes through the DataAccessGateway, which authorizes on the
entity type's feature area before calling the Storage facade. Handlers
only validate payloads and shape responses.

Handlers are plain `def` so FastAPI runs the blocking database work in
its threadpool.
"""
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request, Response, status
from pydantic import BaseModel, ValidationError
from sqlalchemy import Boolean, Integer

from tenantcore.api.deps import get_gateway, get_request_context
from tenantcore.core.exceptions import InvalidQueryError
from tenantcore.core.registry import EntitySpec, get_entity_spec
from tenantcore.schemas.records import (
    ActivityEventResponse,
    DependencyReportResponse,
    RecordListResponse,
    StatsResponse,
    create_schema,
    update_schema,
)
from tenantcore.services.gateway import DataAccessGateway
from tenantcore.services.tenancy import RequestContext

router = APIRouter(prefix="/records", tags=["records"])

# Query parameters that are never filters
RESERVED_PARAMS = {"page", "limit", "search"}


def _coerce_filter(spec: EntitySpec, field_name: str, raw: str) -> Any:
    """Convert a query-string value to the filtered column's type."""
    if field_name not in spec.filterable_fields:
        # Let the query engine reject it with the list of allowed fields
        return raw

    column_type = spec.column(field_name).type
    if isinstance(column_type, Boolean):
        lowered = raw.lower()
        if lowered in ("true", "1", "yes"):
            return True
        if lowered in ("false", "0", "no"):
            return False
        raise InvalidQueryError(f"Invalid boolean for '{field_name}': {raw}")
    if isinstance(column_type, Integer):
        try:
            return int(raw)
        except ValueError:
            raise InvalidQueryError(f"Invalid integer for '{field_name}': {raw}")
    return raw


def _validate(schema: type, payload: Dict[str, Any]) -> Dict[str, Any]:
    try:
        model: BaseModel = schema.model_validate(payload)
    except ValidationError as exc:
        raise HTTPException(
            status_code=422,
            detail=exc.errors(include_url=False, include_context=False, include_input=False)
        )
    return model.model_dump(exclude_unset=True)


@router.get("/{entity_type}", response_model=RecordListResponse)
def list_records(
    entity_type: str,
    request: Request,
    page: int = Query(1),
    limit: Optional[int] = Query(None),
    search: Optional[str] = Query(None),
    context: RequestContext = Depends(get_request_context),
    gateway: DataAccessGateway = Depends(get_gateway)
):
    """
    List records of one type, newest first.

    Any query parameter other than page/limit/search is an exact-match
    filter and must be declared filterable for the type.
    page and limit are normalized (page >= 1, 1 <= limit <= 100), never rejected.
    """
    spec = get_entity_spec(entity_type)
    filters = {
        key: _coerce_filter(spec, key, value)
        for key, value in request.query_params.items()
        if key not in RESERVED_PARAMS
    }

    result = gateway.list(context, spec.name, filters=filters, search=search, page=page, limit=limit)
    return result.to_dict()


@router.get("/{entity_type}/stats", response_model=StatsResponse)
def record_stats(
    entity_type: str,
    context: RequestContext = Depends(get_request_context),
    gateway: DataAccessGateway = Depends(get_gateway)
):
    """Totals, last-30-days count, breakdowns and derived counts for the organization."""
    return gateway.stats(context, entity_type).to_dict()


@router.get("/{entity_type}/{entity_id}")
def get_record(
    entity_type: str,
    entity_id: str,
    context: RequestContext = Depends(get_request_context),
    gateway: DataAccessGateway = Depends(get_gateway)
):
    """
    Get one record.

    TENANT_ISOLATION: A record of another organization is a 404, same as
    a record that doesn't exist.
    """
    return gateway.get(context, entity_type, entity_id).to_dict()


@router.post("/{entity_type}", status_code=status.HTTP_201_CREATED)
def create_record(
    entity_type: str,
    payload: Dict[str, Any] = Body(...),
    context: RequestContext = Depends(get_request_context),
    gateway: DataAccessGateway = Depends(get_gateway)
):
    """
    Create a record in the caller's organization.

    organization_id in the payload is ignored; the record always lands in
    the resolved organization.
    """
    spec = get_entity_spec(entity_type)
    data = _validate(create_schema(spec.name), payload)
    return gateway.create(context, spec.name, data).to_dict()


@router.patch("/{entity_type}/{entity_id}")
def update_record(
    entity_type: str,
    entity_id: str,
    payload: Dict[str, Any] = Body(...),
    context: RequestContext = Depends(get_request_context),
    gateway: DataAccessGateway = Depends(get_gateway)
):
    """Partial update. Only fields present in the payload change."""
    spec = get_entity_spec(entity_type)
    data = _validate(update_schema(spec.name), payload)
    return gateway.update(context, spec.name, entity_id, data).to_dict()


@router.delete("/{entity_type}/{entity_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_record(
    entity_type: str,
    entity_id: str,
    context: RequestContext = Depends(get_request_context),
    gateway: DataAccessGateway = Depends(get_gateway)
):
    """
    Hard delete.

    409 with per-dependency counts when other records still reference
    this one; nothing is removed in that case.
    """
    gateway.delete(context, entity_type, entity_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{entity_type}/{entity_id}/dependencies", response_model=DependencyReportResponse)
def record_dependencies(
    entity_type: str,
    entity_id: str,
    context: RequestContext = Depends(get_request_context),
    gateway: DataAccessGateway = Depends(get_gateway)
):
    """Counts of records referencing this one, per dependency type."""
    return gateway.check_dependencies(context, entity_type, entity_id).to_dict()


@router.get("/{entity_type}/{entity_id}/activity", response_model=list[ActivityEventResponse])
def record_activity(
    entity_type: str,
    entity_id: str,
    limit: Optional[int] = Query(None),
    context: RequestContext = Depends(get_request_context),
    gateway: DataAccessGateway = Depends(get_gateway)
):
    events = gateway.activity(context, entity_type, entity_id, limit=limit)
    return [event.to_dict() for event in events]
