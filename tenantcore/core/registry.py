"""
Entity Registry

Static per-entity-type configuration read by the query engine, the
dependency resolver and the statistics aggregator:

- which model backs the type and which feature area guards it
- searchable text fields (search is OR'd across them)
- filterable fields (exact match, AND'd)
- dependency edges checked before delete
- references: foreign-key columns and the entity type they point at,
  checked against the writer's organization on create and update
- breakdown dimensions and derived counts for stats

Adding a tenant entity type means adding a model and one EntitySpec here.
"""
from dataclasses import dataclass, field
from typing import Dict, Mapping, Tuple, Type

from tenantcore.core.exceptions import InvalidQueryError
from tenantcore.core.permissions import FeatureArea
from tenantcore.models import (
    ClientCompany, Contact, Deal, Proposal, Contract,
    Engagement, Project, Invoice, Vendor, Bill,
)


@dataclass(frozen=True)
class DependencyEdge:
    """Rows of `model` whose `foreign_key` points at the entity being deleted."""
    name: str
    model: Type
    foreign_key: str


@dataclass(frozen=True)
class DerivedCount:
    """
    Number of entities that do (exists=True) or don't (exists=False) have
    a related row matching `where`.
    """
    name: str
    model: Type
    foreign_key: str
    exists: bool = True
    where: Mapping[str, object] = field(default_factory=dict)


@dataclass(frozen=True)
class EntitySpec:
    name: str
    label: str
    model: Type
    feature_area: FeatureArea
    searchable_fields: Tuple[str, ...] = ()
    filterable_fields: Tuple[str, ...] = ()
    dependencies: Tuple[DependencyEdge, ...] = ()
    breakdowns: Tuple[str, ...] = ()
    derived_counts: Tuple[DerivedCount, ...] = ()
    # Columns defaulted to the acting user on create
    actor_fields: Tuple[str, ...] = ()
    # Foreign-key column -> entity type it points at
    references: Mapping[str, str] = field(default_factory=dict)

    def column(self, field_name: str):
        return getattr(self.model, field_name)


ENTITY_SPECS: Dict[str, EntitySpec] = {}


def register(spec: EntitySpec) -> EntitySpec:
    columns = spec.model.column_names()
    declared = (
        set(spec.searchable_fields) | set(spec.filterable_fields) | set(spec.breakdowns)
        | set(spec.actor_fields) | set(spec.references)
    )
    missing = declared - columns
    if missing:
        raise ValueError(f"{spec.name}: unknown columns {sorted(missing)}")
    ENTITY_SPECS[spec.name] = spec
    return spec


def get_entity_spec(entity_type: str) -> EntitySpec:
    spec = ENTITY_SPECS.get(entity_type)
    if spec is None:
        raise InvalidQueryError(f"Unknown entity type: {entity_type}")
    return spec


# ============================================================================
# CRM
# ============================================================================

register(EntitySpec(
    name="clients",
    label="Client",
    model=ClientCompany,
    feature_area=FeatureArea.CLIENTS,
    searchable_fields=("name", "website", "industry", "city", "country"),
    filterable_fields=("industry", "city", "state", "country"),
    dependencies=(
        DependencyEdge("contacts", Contact, "client_company_id"),
        DependencyEdge("deals", Deal, "client_company_id"),
        DependencyEdge("engagements", Engagement, "client_company_id"),
        DependencyEdge("contracts", Contract, "client_company_id"),
        DependencyEdge("proposals", Proposal, "client_company_id"),
        DependencyEdge("invoices", Invoice, "client_company_id"),
    ),
    breakdowns=("industry", "country"),
    derived_counts=(
        DerivedCount("with_active_engagements", Engagement, "client_company_id", where={"status": "active"}),
        DerivedCount("without_contacts", Contact, "client_company_id", exists=False),
    ),
))

register(EntitySpec(
    name="contacts",
    label="Contact",
    model=Contact,
    feature_area=FeatureArea.CONTACTS,
    searchable_fields=("first_name", "last_name", "email", "phone", "title"),
    filterable_fields=("client_company_id", "is_primary", "title"),
    references={"client_company_id": "clients"},
    dependencies=(
        DependencyEdge("deals", Deal, "contact_id"),
        DependencyEdge("proposals", Proposal, "contact_id"),
        DependencyEdge("contracts", Contract, "contact_id"),
        DependencyEdge("engagements", Engagement, "contact_id"),
    ),
    breakdowns=("title",),
))

register(EntitySpec(
    name="deals",
    label="Deal",
    model=Deal,
    feature_area=FeatureArea.DEALS,
    searchable_fields=("name", "description", "notes"),
    filterable_fields=("stage", "client_company_id", "contact_id", "owner_id"),
    references={"client_company_id": "clients", "contact_id": "contacts"},
    dependencies=(
        DependencyEdge("proposals", Proposal, "deal_id"),
        DependencyEdge("contracts", Contract, "deal_id"),
        DependencyEdge("engagements", Engagement, "deal_id"),
    ),
    breakdowns=("stage",),
    actor_fields=("owner_id",),
))

# ============================================================================
# AGREEMENTS
# ============================================================================

register(EntitySpec(
    name="proposals",
    label="Proposal",
    model=Proposal,
    feature_area=FeatureArea.PROPOSALS,
    searchable_fields=("name",),
    filterable_fields=("status", "deal_id", "client_company_id"),
    references={"deal_id": "deals", "client_company_id": "clients", "contact_id": "contacts"},
    dependencies=(
        DependencyEdge("contracts", Contract, "proposal_id"),
    ),
    breakdowns=("status",),
    actor_fields=("created_by_id",),
))

register(EntitySpec(
    name="contracts",
    label="Contract",
    model=Contract,
    feature_area=FeatureArea.CONTRACTS,
    searchable_fields=("name", "signed_by_name"),
    filterable_fields=("status", "proposal_id", "deal_id", "client_company_id"),
    references={
        "proposal_id": "proposals",
        "deal_id": "deals",
        "client_company_id": "clients",
        "contact_id": "contacts",
    },
    dependencies=(
        DependencyEdge("engagements", Engagement, "contract_id"),
    ),
    breakdowns=("status",),
    actor_fields=("created_by_id",),
))

# ============================================================================
# DELIVERY
# ============================================================================

register(EntitySpec(
    name="engagements",
    label="Engagement",
    model=Engagement,
    feature_area=FeatureArea.ENGAGEMENTS,
    searchable_fields=("name", "description"),
    filterable_fields=("status", "client_company_id", "contract_id", "owner_id"),
    references={
        "contract_id": "contracts",
        "deal_id": "deals",
        "client_company_id": "clients",
        "contact_id": "contacts",
    },
    dependencies=(
        DependencyEdge("projects", Project, "engagement_id"),
        DependencyEdge("invoices", Invoice, "engagement_id"),
        DependencyEdge("bills", Bill, "engagement_id"),
    ),
    breakdowns=("status",),
    derived_counts=(
        DerivedCount("with_projects", Project, "engagement_id"),
    ),
    actor_fields=("owner_id",),
))

register(EntitySpec(
    name="projects",
    label="Project",
    model=Project,
    feature_area=FeatureArea.PROJECTS,
    searchable_fields=("name", "description"),
    filterable_fields=("status", "engagement_id"),
    references={"engagement_id": "engagements"},
    breakdowns=("status",),
))

# ============================================================================
# REVENUE
# ============================================================================

register(EntitySpec(
    name="invoices",
    label="Invoice",
    model=Invoice,
    feature_area=FeatureArea.INVOICES,
    searchable_fields=("invoice_number", "notes"),
    filterable_fields=("status", "engagement_id", "client_company_id"),
    references={"engagement_id": "engagements", "client_company_id": "clients"},
    breakdowns=("status",),
))

register(EntitySpec(
    name="vendors",
    label="Vendor",
    model=Vendor,
    feature_area=FeatureArea.VENDORS,
    searchable_fields=("name", "email", "phone"),
    filterable_fields=("name",),
    dependencies=(
        DependencyEdge("bills", Bill, "vendor_id"),
    ),
))

register(EntitySpec(
    name="bills",
    label="Bill",
    model=Bill,
    feature_area=FeatureArea.BILLS,
    searchable_fields=("bill_number", "description", "notes"),
    filterable_fields=("status", "vendor_id", "engagement_id"),
    references={"vendor_id": "vendors", "engagement_id": "engagements"},
    breakdowns=("status",),
    actor_fields=("created_by_id",),
))
