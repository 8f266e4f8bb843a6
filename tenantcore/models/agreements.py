"""
Agreement Models

Proposals and contracts. A proposal usually grows out of a deal; an
accepted proposal becomes a contract; a signed contract opens an
engagement (models/engagements.py).
"""
from sqlalchemy import Column, String, DateTime, ForeignKey, Index, Numeric, JSON

from tenantcore.database import Base
from tenantcore.models.base import TenantMixin


class Proposal(TenantMixin, Base):
    __tablename__ = "proposals"

    deal_id = Column(String(36), ForeignKey("deals.id", ondelete="SET NULL"), nullable=True, index=True)
    client_company_id = Column(
        String(36),
        ForeignKey("client_companies.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    contact_id = Column(String(36), ForeignKey("contacts.id", ondelete="SET NULL"), nullable=True, index=True)
    created_by_id = Column(String(36), nullable=True)

    name = Column(String(255), nullable=False)
    status = Column(String(20), default="draft", nullable=False, index=True)  # draft, sent, viewed, accepted, rejected, expired
    content = Column(JSON, nullable=True)
    total_value = Column(Numeric(12, 2), nullable=True)
    valid_until = Column(DateTime, nullable=True)
    sent_at = Column(DateTime, nullable=True)
    responded_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("idx_proposals_org_created", "organization_id", "created_at"),
    )


class Contract(TenantMixin, Base):
    __tablename__ = "contracts"

    proposal_id = Column(String(36), ForeignKey("proposals.id", ondelete="SET NULL"), nullable=True, index=True)
    deal_id = Column(String(36), ForeignKey("deals.id", ondelete="SET NULL"), nullable=True, index=True)
    client_company_id = Column(
        String(36),
        ForeignKey("client_companies.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    contact_id = Column(String(36), ForeignKey("contacts.id", ondelete="SET NULL"), nullable=True, index=True)
    created_by_id = Column(String(36), nullable=True)

    name = Column(String(255), nullable=False)
    status = Column(String(20), default="draft", nullable=False, index=True)  # draft, sent, signed, expired, cancelled
    content = Column(JSON, nullable=True)
    total_value = Column(Numeric(12, 2), nullable=True)
    start_date = Column(DateTime, nullable=True)
    end_date = Column(DateTime, nullable=True)
    signed_at = Column(DateTime, nullable=True)
    signed_by_name = Column(String(255), nullable=True)

    __table_args__ = (
        Index("idx_contracts_org_created", "organization_id", "created_at"),
    )
