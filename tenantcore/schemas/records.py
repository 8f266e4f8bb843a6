"""
Record Schemas

Request models for tenant entity writes, one create/update pair per
entity type, plus the response envelopes shared by every type.

organization_id, id and timestamps are deliberately absent from every
request model; the Storage facade sets them.
"""
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, EmailStr, Field

DEAL_STAGES = "^(lead|qualified|proposal|negotiation|won|lost)$"
PROPOSAL_STATUSES = "^(draft|sent|viewed|accepted|rejected|expired)$"
CONTRACT_STATUSES = "^(draft|sent|signed|expired|cancelled)$"
ENGAGEMENT_STATUSES = "^(active|on_hold|completed|cancelled)$"
PROJECT_STATUSES = "^(not_started|in_progress|completed|on_hold|cancelled)$"
INVOICE_STATUSES = "^(draft|sent|viewed|paid|overdue|cancelled)$"
BILL_STATUSES = "^(pending|approved|rejected|paid|cancelled)$"


# ============================================================================
# CRM
# ============================================================================

class ClientCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    website: Optional[str] = None
    industry: Optional[str] = Field(None, max_length=100)
    address: Optional[str] = None
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    zip_code: Optional[str] = Field(None, max_length=20)
    country: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None


class ClientUpdate(ClientCreate):
    """All fields optional."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)


class ContactCreate(BaseModel):
    client_company_id: Optional[str] = None
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    title: Optional[str] = Field(None, max_length=100)
    is_primary: bool = False
    notes: Optional[str] = None


class ContactUpdate(ContactCreate):
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    is_primary: Optional[bool] = None


class DealCreate(BaseModel):
    client_company_id: Optional[str] = None
    contact_id: Optional[str] = None
    owner_id: Optional[str] = None
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    value: Optional[Decimal] = None
    stage: str = Field("lead", pattern=DEAL_STAGES)
    probability: Optional[int] = Field(None, ge=0, le=100)
    expected_close_date: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    notes: Optional[str] = None


class DealUpdate(DealCreate):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    stage: Optional[str] = Field(None, pattern=DEAL_STAGES)


# ============================================================================
# AGREEMENTS
# ============================================================================

class ProposalCreate(BaseModel):
    deal_id: Optional[str] = None
    client_company_id: Optional[str] = None
    contact_id: Optional[str] = None
    name: str = Field(..., min_length=1, max_length=255)
    status: str = Field("draft", pattern=PROPOSAL_STATUSES)
    content: Optional[Dict[str, Any]] = None
    total_value: Optional[Decimal] = None
    valid_until: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    responded_at: Optional[datetime] = None


class ProposalUpdate(ProposalCreate):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    status: Optional[str] = Field(None, pattern=PROPOSAL_STATUSES)


class ContractCreate(BaseModel):
    proposal_id: Optional[str] = None
    deal_id: Optional[str] = None
    client_company_id: Optional[str] = None
    contact_id: Optional[str] = None
    name: str = Field(..., min_length=1, max_length=255)
    status: str = Field("draft", pattern=CONTRACT_STATUSES)
    content: Optional[Dict[str, Any]] = None
    total_value: Optional[Decimal] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    signed_at: Optional[datetime] = None
    signed_by_name: Optional[str] = Field(None, max_length=255)


class ContractUpdate(ContractCreate):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    status: Optional[str] = Field(None, pattern=CONTRACT_STATUSES)


# ============================================================================
# DELIVERY
# ============================================================================

class EngagementCreate(BaseModel):
    contract_id: Optional[str] = None
    deal_id: Optional[str] = None
    client_company_id: Optional[str] = None
    contact_id: Optional[str] = None
    owner_id: Optional[str] = None
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    status: str = Field("active", pattern=ENGAGEMENT_STATUSES)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    total_value: Optional[Decimal] = None


class EngagementUpdate(EngagementCreate):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    status: Optional[str] = Field(None, pattern=ENGAGEMENT_STATUSES)


class ProjectCreate(BaseModel):
    engagement_id: str
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    status: str = Field("not_started", pattern=PROJECT_STATUSES)
    start_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    progress: int = Field(0, ge=0, le=100)


class ProjectUpdate(ProjectCreate):
    engagement_id: Optional[str] = None
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    status: Optional[str] = Field(None, pattern=PROJECT_STATUSES)
    progress: Optional[int] = Field(None, ge=0, le=100)


# ============================================================================
# REVENUE
# ============================================================================

class InvoiceCreate(BaseModel):
    engagement_id: Optional[str] = None
    client_company_id: Optional[str] = None
    invoice_number: str = Field(..., min_length=1, max_length=50)
    status: str = Field("draft", pattern=INVOICE_STATUSES)
    amount: Decimal
    tax: Optional[Decimal] = None
    total_amount: Decimal
    line_items: Optional[List[Dict[str, Any]]] = None
    due_date: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    notes: Optional[str] = None


class InvoiceUpdate(InvoiceCreate):
    invoice_number: Optional[str] = Field(None, min_length=1, max_length=50)
    status: Optional[str] = Field(None, pattern=INVOICE_STATUSES)
    amount: Optional[Decimal] = None
    total_amount: Optional[Decimal] = None


class VendorCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = None
    notes: Optional[str] = None


class VendorUpdate(VendorCreate):
    name: Optional[str] = Field(None, min_length=1, max_length=255)


class BillCreate(BaseModel):
    engagement_id: Optional[str] = None
    vendor_id: Optional[str] = None
    bill_number: str = Field(..., min_length=1, max_length=50)
    status: str = Field("pending", pattern=BILL_STATUSES)
    amount: Decimal
    due_date: Optional[datetime] = None
    description: Optional[str] = None
    approved_by_id: Optional[str] = None
    approved_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    notes: Optional[str] = None


class BillUpdate(BillCreate):
    bill_number: Optional[str] = Field(None, min_length=1, max_length=50)
    status: Optional[str] = Field(None, pattern=BILL_STATUSES)
    amount: Optional[Decimal] = None


# entity type -> (create schema, update schema)
RECORD_SCHEMAS: Dict[str, tuple] = {
    "clients": (ClientCreate, ClientUpdate),
    "contacts": (ContactCreate, ContactUpdate),
    "deals": (DealCreate, DealUpdate),
    "proposals": (ProposalCreate, ProposalUpdate),
    "contracts": (ContractCreate, ContractUpdate),
    "engagements": (EngagementCreate, EngagementUpdate),
    "projects": (ProjectCreate, ProjectUpdate),
    "invoices": (InvoiceCreate, InvoiceUpdate),
    "vendors": (VendorCreate, VendorUpdate),
    "bills": (BillCreate, BillUpdate),
}


def create_schema(entity_type: str) -> Type[BaseModel]:
    return RECORD_SCHEMAS[entity_type][0]


def update_schema(entity_type: str) -> Type[BaseModel]:
    return RECORD_SCHEMAS[entity_type][1]


# ============================================================================
# RESPONSES
# ============================================================================

class RecordListResponse(BaseModel):
    """Paginated list of records."""
    items: List[Dict[str, Any]]
    total: int
    page: int
    limit: int
    total_pages: int
    has_next: bool
    has_prev: bool


class DependencyReportResponse(BaseModel):
    has_dependencies: bool
    counts: Dict[str, int]


class StatsResponse(BaseModel):
    total: int
    recently_added: int
    breakdowns: Dict[str, Dict[str, int]]
    derived_counts: Dict[str, int]


class ActivityEventResponse(BaseModel):
    id: str
    entity_type: str
    entity_id: str
    actor_id: Optional[str] = None
    type: str
    description: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    created_at: datetime
