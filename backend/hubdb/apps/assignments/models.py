# backend/hubdb/apps/assignments/models.py

from __future__ import annotations

import enum

from sqlalchemy import Column, Date, DateTime, Enum, ForeignKey, Index, String, Text

from hubdb.clock import utcnow
from hubdb.database import Base
from hubdb.utils.identifiers import generate_uuid7


class AssignmentStatus(str, enum.Enum):
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


ACTIVE_ASSIGNMENT_STATUSES = (AssignmentStatus.ASSIGNED, AssignmentStatus.IN_PROGRESS)


class CompletionBasis(str, enum.Enum):
    MATERIALS = "materials"
    QUIZ_PASSED = "quiz_passed"


class TrainingAssignment(Base):
    """
    Admin-issued obligation for one member to finish one workforce group's
    curriculum by `due_date`.

    Status only moves forward (see hubdb.apps.workflow.registry); "overdue"
    and "at risk" are derived from due_date at read time and never stored.
    """

    __tablename__ = "training_assignments"
    __table_args__ = (
        Index("idx_training_assignments_member_status", "assigned_to_user_id", "status"),
        Index("idx_training_assignments_org_due", "organization_id", "due_date"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7)
    organization_id = Column(
        String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    assigned_to_user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    assigned_by_user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    workforce_group = Column(String(32), nullable=False)
    due_date = Column(Date, nullable=False)
    notes = Column(Text, nullable=True)

    status = Column(
        Enum(AssignmentStatus, name="assignment_status_enum", native_enum=False),
        nullable=False,
        default=AssignmentStatus.ASSIGNED,
    )
    completion_basis = Column(
        Enum(CompletionBasis, name="assignment_completion_basis_enum", native_enum=False),
        nullable=True,
    )

    assigned_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<TrainingAssignment {self.id} {self.workforce_group} status={self.status}>"
