"""
Revenue Models

Accounts receivable (invoices) and payable (vendors and their bills).
"""
from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Index, Numeric, JSON

from tenantcore.database import Base
from tenantcore.models.base import TenantMixin


class Invoice(TenantMixin, Base):
    __tablename__ = "invoices"

    engagement_id = Column(String(36), ForeignKey("engagements.id", ondelete="SET NULL"), nullable=True, index=True)
    client_company_id = Column(
        String(36),
        ForeignKey("client_companies.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    invoice_number = Column(String(50), nullable=False)
    status = Column(String(20), default="draft", nullable=False, index=True)  # draft, sent, viewed, paid, overdue, cancelled
    amount = Column(Numeric(12, 2), nullable=False)
    tax = Column(Numeric(12, 2), default=0, nullable=True)
    total_amount = Column(Numeric(12, 2), nullable=False)
    line_items = Column(JSON, nullable=True)
    due_date = Column(DateTime, nullable=True)
    sent_at = Column(DateTime, nullable=True)
    paid_at = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)

    __table_args__ = (
        Index("idx_invoices_org_created", "organization_id", "created_at"),
    )


class Vendor(TenantMixin, Base):
    __tablename__ = "vendors"

    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    address = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    __table_args__ = (
        Index("idx_vendors_org_created", "organization_id", "created_at"),
    )


class Bill(TenantMixin, Base):
    __tablename__ = "bills"

    engagement_id = Column(String(36), ForeignKey("engagements.id", ondelete="SET NULL"), nullable=True, index=True)
    vendor_id = Column(String(36), ForeignKey("vendors.id", ondelete="SET NULL"), nullable=True, index=True)
    created_by_id = Column(String(36), nullable=True)

    bill_number = Column(String(50), nullable=False)
    status = Column(String(20), default="pending", nullable=False, index=True)  # pending, approved, rejected, paid, cancelled
    amount = Column(Numeric(12, 2), nullable=False)
    due_date = Column(DateTime, nullable=True)
    description = Column(Text, nullable=True)
    approved_by_id = Column(String(36), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    paid_at = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)

    __table_args__ = (
        Index("idx_bills_org_created", "organization_id", "created_at"),
    )
