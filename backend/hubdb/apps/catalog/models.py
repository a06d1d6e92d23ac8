# backend/hubdb/apps/catalog/models.py

from __future__ import annotations

import enum

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from hubdb.clock import utcnow
from hubdb.database import Base
from hubdb.utils.identifiers import generate_short_id, generate_uuid7

DEFAULT_PASSING_SCORE = 80


# ---------------------------------------------------------------------------
# ENUMS
# ---------------------------------------------------------------------------


class ContentType(str, enum.Enum):
    TRAINING_MATERIAL = "training_material"
    QUIZ = "quiz"


def _material_id() -> str:
    return generate_short_id("MAT")


def _quiz_id() -> str:
    return generate_short_id("QZ")


def _question_id() -> str:
    return generate_short_id("QQ")


# ---------------------------------------------------------------------------
# TRAINING MATERIALS
# ---------------------------------------------------------------------------


class TrainingMaterial(Base):
    """
    One version of a reading material.

    - material_key stays stable across versions (e.g. 'privacy-rule-basics')
    - a new version sets superseded_at on the previous one; rows are never deleted
    - progress records keep the version that was read
    """

    __tablename__ = "training_materials"
    __table_args__ = (
        UniqueConstraint("material_key", "version", name="uq_training_materials_key_version"),
        Index("idx_training_materials_current", "superseded_at", "sequence_number"),
    )

    id = Column(String(36), primary_key=True, default=_material_id)
    material_key = Column(String(64), nullable=False, index=True)
    version = Column(Integer, nullable=False, default=1)

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    sequence_number = Column(Integer, nullable=False)
    workforce_groups = Column(JSON, nullable=False, default=list)
    content = Column(JSON, nullable=True, doc="Ordered sections: [{title, content, hipaa_citations}]")
    hipaa_citations = Column(JSON, nullable=False, default=list)
    estimated_minutes = Column(Integer, nullable=False, default=10)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    superseded_at = Column(DateTime(timezone=True), nullable=True, index=True)

    def __repr__(self) -> str:
        return f"<TrainingMaterial {self.material_key} v{self.version}>"


# ---------------------------------------------------------------------------
# QUIZZES
# ---------------------------------------------------------------------------


class Quiz(Base):
    """
    Quiz definition. Once published_at is set the question set is frozen;
    changes require a new quiz version.
    """

    __tablename__ = "quizzes"
    __table_args__ = (
        CheckConstraint("passing_score >= 0 AND passing_score <= 100", name="ck_quizzes_passing_score"),
        Index("idx_quizzes_published_sequence", "published_at", "sequence_number"),
    )

    id = Column(String(36), primary_key=True, default=_quiz_id)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    sequence_number = Column(Integer, nullable=False)
    workforce_groups = Column(JSON, nullable=False, default=list)
    passing_score = Column(Integer, nullable=False, default=DEFAULT_PASSING_SCORE)
    max_attempts = Column(Integer, nullable=True, doc="NULL = unlimited retakes")
    version = Column(Integer, nullable=False, default=1)
    hipaa_citations = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    published_at = Column(DateTime(timezone=True), nullable=True)

    questions = relationship(
        "QuizQuestion",
        back_populates="quiz",
        order_by="QuizQuestion.question_number",
        lazy="selectin",
    )

    @property
    def is_published(self) -> bool:
        return self.published_at is not None

    def __repr__(self) -> str:
        return f"<Quiz {self.id} seq={self.sequence_number} v{self.version}>"


class QuizQuestion(Base):
    """
    A question and its canonical answer key. `correct_answer` is an option
    label and never leaves the server before the attempt is graded.
    """

    __tablename__ = "quiz_questions"
    __table_args__ = (
        UniqueConstraint("quiz_id", "question_number", name="uq_quiz_questions_quiz_number"),
    )

    id = Column(String(36), primary_key=True, default=_question_id)
    quiz_id = Column(String(36), ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False, index=True)
    question_number = Column(Integer, nullable=False)
    question_text = Column(Text, nullable=False)
    scenario = Column(Text, nullable=True)
    options = Column(JSON, nullable=False, default=list, doc="[{label, text}]")
    correct_answer = Column(String(16), nullable=False)
    hipaa_section = Column(String(64), nullable=False)
    rationale = Column(Text, nullable=True)

    quiz = relationship("Quiz", back_populates="questions")

    @property
    def option_labels(self) -> list[str]:
        return [str(opt.get("label")) for opt in (self.options or []) if isinstance(opt, dict)]


# ---------------------------------------------------------------------------
# ORGANIZATION RELEASES
# ---------------------------------------------------------------------------


class ContentRelease(Base):
    """
    Makes catalog content available to one organization's workforce group.

    Quiz releases may override the passing score and cap attempts for that
    organization; the overrides take precedence over the quiz defaults.
    """

    __tablename__ = "content_releases"
    __table_args__ = (
        UniqueConstraint(
            "organization_id",
            "content_type",
            "content_id",
            "workforce_group",
            name="uq_content_releases_org_content_group",
        ),
        CheckConstraint(
            "passing_score_override IS NULL OR (passing_score_override >= 0 AND passing_score_override <= 100)",
            name="ck_content_releases_passing_score",
        ),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7)
    organization_id = Column(
        String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    content_type = Column(Enum(ContentType, name="content_type_enum", native_enum=False), nullable=False)
    content_id = Column(String(36), nullable=False, index=True)
    workforce_group = Column(String(32), nullable=False, index=True)
    passing_score_override = Column(Integer, nullable=True)
    max_attempts = Column(Integer, nullable=True)
    released_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    released_by_user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
