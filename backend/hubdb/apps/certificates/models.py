# backend/hubdb/apps/certificates/models.py

from __future__ import annotations

from sqlalchemy import Column, DateTime, ForeignKey, Integer, JSON, String
from sqlalchemy.orm import relationship

from hubdb.clock import utcnow
from hubdb.database import Base
from hubdb.utils.identifiers import generate_uuid7

CERTIFICATE_VALIDITY_DAYS = 365


class Certificate(Base):
    """
    Completion certificate for exactly one passing attempt.

    Immutable after issuance: validity is judged by readers against
    `valid_until`, nothing ever revokes or edits the row.
    """

    __tablename__ = "certificates"

    id = Column(String(36), primary_key=True, default=generate_uuid7)
    certificate_number = Column(String(64), nullable=False, unique=True, index=True)
    organization_id = Column(
        String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    quiz_attempt_id = Column(
        String(36),
        ForeignKey("quiz_attempts.id", ondelete="RESTRICT"),
        nullable=False,
        unique=True,
    )
    quiz_id = Column(String(36), ForeignKey("quizzes.id", ondelete="RESTRICT"), nullable=False)
    quiz_title = Column(String(255), nullable=False)
    workforce_group = Column(String(32), nullable=False)
    score = Column(Integer, nullable=False)
    hipaa_citations = Column(JSON, nullable=False, default=list)

    issued_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    valid_until = Column(DateTime(timezone=True), nullable=False)

    attempt = relationship("QuizAttempt", back_populates="certificate")

    def __repr__(self) -> str:
        return f"<Certificate {self.certificate_number}>"
