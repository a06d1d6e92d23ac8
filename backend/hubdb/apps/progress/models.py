# backend/hubdb/apps/progress/models.py

from __future__ import annotations

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from hubdb.clock import utcnow
from hubdb.database import Base
from hubdb.utils.identifiers import generate_uuid7


class TrainingProgressRecord(Base):
    """
    Proof that a member finished reading one material version.

    Append-only: one row per (member, material), never updated. The version
    read is copied onto the record so later catalog changes do not rewrite
    history.
    """

    __tablename__ = "training_progress_records"
    __table_args__ = (
        UniqueConstraint("user_id", "material_id", name="uq_training_progress_user_material"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7)
    organization_id = Column(
        String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    material_id = Column(
        String(36), ForeignKey("training_materials.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    material_key = Column(String(64), nullable=False)
    version_at_completion = Column(Integer, nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    material = relationship("TrainingMaterial", lazy="joined")
