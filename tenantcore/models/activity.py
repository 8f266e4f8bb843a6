"""
Activity Event Model

Audit timeline of writes to tenant entities. Each event is inserted in the
same transaction as the write it describes, so a rolled-back write leaves
no event behind.
"""
import enum

from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Index, JSON, Enum as SQLEnum

from tenantcore.database import Base
from tenantcore.models.base import new_id, utcnow


class ActivityType(str, enum.Enum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


class ActivityEvent(Base):
    __tablename__ = "activity_events"

    id = Column(String(36), primary_key=True, default=new_id)
    organization_id = Column(
        String(36),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    entity_type = Column(String(50), nullable=False)
    # No foreign key: the entity may since have been deleted
    entity_id = Column(String(36), nullable=False)
    actor_id = Column(String(36), nullable=True)
    type = Column(SQLEnum(ActivityType), nullable=False)
    description = Column(Text, nullable=True)
    event_metadata = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_activity_entity", "entity_type", "entity_id"),
        Index("idx_activity_org_created", "organization_id", "created_at"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "actor_id": self.actor_id,
            "type": self.type.value,
            "description": self.description,
            "metadata": self.event_metadata,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<ActivityEvent {self.type.value} {self.entity_type}:{self.entity_id}>"
