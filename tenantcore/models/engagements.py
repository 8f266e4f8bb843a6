"""
Engagement and Project Models

The engagement is the hub of delivery work: projects, invoices and bills
hang off it. Projects cannot exist without an engagement.
"""
from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Index, Integer, Numeric

from tenantcore.database import Base
from tenantcore.models.base import TenantMixin


class Engagement(TenantMixin, Base):
    __tablename__ = "engagements"

    contract_id = Column(String(36), ForeignKey("contracts.id", ondelete="SET NULL"), nullable=True, index=True)
    deal_id = Column(String(36), ForeignKey("deals.id", ondelete="SET NULL"), nullable=True, index=True)
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
    status = Column(String(20), default="active", nullable=False, index=True)  # active, on_hold, completed, cancelled
    start_date = Column(DateTime, nullable=True)
    end_date = Column(DateTime, nullable=True)
    total_value = Column(Numeric(12, 2), nullable=True)

    __table_args__ = (
        Index("idx_engagements_org_created", "organization_id", "created_at"),
        # Stats: clients with an active engagement
        Index("idx_engagements_org_client_status", "organization_id", "client_company_id", "status"),
    )


class Project(TenantMixin, Base):
    __tablename__ = "projects"

    engagement_id = Column(
        String(36),
        ForeignKey("engagements.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(20), default="not_started", nullable=False, index=True)  # not_started, in_progress, completed, on_hold, cancelled
    start_date = Column(DateTime, nullable=True)
    due_date = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    progress = Column(Integer, default=0, nullable=False)

    __table_args__ = (
        Index("idx_projects_org_created", "organization_id", "created_at"),
    )
