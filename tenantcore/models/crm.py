"""
CRM Models

Client companies, their contacts, and the deal pipeline.
All three are tenant entities (see TenantMixin).
"""
from sqlalchemy import Column, String, Text, Boolean, DateTime, ForeignKey, Index, Integer, Numeric

from tenantcore.database import Base
from tenantcore.models.base import TenantMixin


class ClientCompany(TenantMixin, Base):
    __tablename__ = "client_companies"

    name = Column(String(255), nullable=False)
    website = Column(Text, nullable=True)
    industry = Column(String(100), nullable=True, index=True)
    address = Column(Text, nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(100), nullable=True)
    zip_code = Column(String(20), nullable=True)
    country = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)

    __table_args__ = (
        # Default listing order within a tenant
        Index("idx_clients_org_created", "organization_id", "created_at"),
    )


class Contact(TenantMixin, Base):
    __tablename__ = "contacts"

    client_company_id = Column(
        String(36),
        ForeignKey("client_companies.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    title = Column(String(100), nullable=True)
    is_primary = Column(Boolean, default=False, nullable=False)
    notes = Column(Text, nullable=True)

    __table_args__ = (
        Index("idx_contacts_org_created", "organization_id", "created_at"),
    )


class Deal(TenantMixin, Base):
    __tablename__ = "deals"

    client_company_id = Column(
        String(36),
        ForeignKey("client_companies.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    contact_id = Column(String(36), ForeignKey("contacts.id", ondelete="SET NULL"), nullable=True, index=True)
    owner_id = Column(String(36), nullable=True)

    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    value = Column(Numeric(12, 2), nullable=True)
    stage = Column(String(20), default="lead", nullable=False, index=True)  # lead, qualified, proposal, negotiation, won, lost
    probability = Column(Integer, default=0, nullable=True)
    expected_close_date = Column(DateTime, nullable=True)
    closed_at = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)

    __table_args__ = (
        Index("idx_deals_org_created", "organization_id", "created_at"),
    )
