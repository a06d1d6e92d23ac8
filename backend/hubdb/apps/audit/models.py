from __future__ import annotations

from sqlalchemy import Column, DateTime, ForeignKey, Index, JSON, String, desc

from hubdb.clock import utcnow
from hubdb.database import Base
from hubdb.utils.identifiers import generate_uuid7


class AuditEvent(Base):
    """
    Append-only audit trail for progress, grading, certificate and assignment
    actions, including rejected requests. Rows are never updated.
    """

    __tablename__ = "audit_events"
    __table_args__ = (
        Index("ix_audit_events_org_entity", "organization_id", "entity_type", "entity_id"),
        Index("ix_audit_events_org_action", "organization_id", "action"),
        Index("ix_audit_events_org_time_desc", "organization_id", desc("occurred_at")),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7, index=True)
    organization_id = Column(
        String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    entity_type = Column(String(64), nullable=False, index=True)
    entity_id = Column(String(64), nullable=False, index=True)
    action = Column(String(64), nullable=False, index=True)
    actor_user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    occurred_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    before = Column(JSON, nullable=True)
    after = Column(JSON, nullable=True)
    correlation_id = Column(String(64), nullable=True, index=True)
    metadata_json = Column("metadata", JSON, nullable=True)

    def __repr__(self) -> str:
        return f"<AuditEvent id={self.id} entity={self.entity_type}:{self.entity_id} action={self.action}>"
