# backend/hubdb/apps/grading/models.py

from __future__ import annotations

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from hubdb.clock import utcnow
from hubdb.database import Base
from hubdb.utils.identifiers import generate_uuid7


class QuizAttempt(Base):
    """
    One graded submission. Immutable once written.

    `answers` holds the graded answers as a JSON list of
    {question_id, selected_option, correct_answer, is_correct, time_spent,
    hipaa_section}. `passing_score` is the threshold in force when the
    attempt was graded, so later release overrides never re-grade history.
    """

    __tablename__ = "quiz_attempts"
    __table_args__ = (
        UniqueConstraint("user_id", "idempotency_key", name="uq_quiz_attempts_user_idempotency"),
        CheckConstraint("score >= 0 AND score <= 100", name="ck_quiz_attempts_score"),
        Index("idx_quiz_attempts_user_quiz", "user_id", "quiz_id", "completed_at"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7)
    organization_id = Column(
        String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    quiz_id = Column(String(36), ForeignKey("quizzes.id", ondelete="RESTRICT"), nullable=False, index=True)
    quiz_version = Column(Integer, nullable=False, default=1)
    workforce_group_at_time = Column(String(32), nullable=False)

    score = Column(Integer, nullable=False)
    correct_count = Column(Integer, nullable=False)
    total_questions = Column(Integer, nullable=False)
    passing_score = Column(Integer, nullable=False)
    passed = Column(Boolean, nullable=False, default=False, index=True)
    answers = Column(JSON, nullable=False, default=list)

    total_time_spent = Column(Integer, nullable=False, default=0, doc="Seconds, summed from answers")
    flagged_suspicious = Column(Boolean, nullable=False, default=False)
    idempotency_key = Column(String(128), nullable=True)

    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    quiz = relationship("Quiz", lazy="joined")
    certificate = relationship("Certificate", back_populates="attempt", uselist=False, lazy="selectin")

    def __repr__(self) -> str:
        return f"<QuizAttempt {self.id} quiz={self.quiz_id} score={self.score} passed={self.passed}>"
