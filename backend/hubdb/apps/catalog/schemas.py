from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from hubdb.apps.accounts.models import WorkforceGroup

from .models import ContentType


class QuizOption(BaseModel):
    label: str
    text: str


class MaterialRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    material_key: str
    version: int
    title: str
    description: Optional[str] = None
    sequence_number: int
    workforce_groups: List[str]
    hipaa_citations: List[str] = Field(default_factory=list)
    estimated_minutes: int
    completed: bool = False


class QuizRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    description: Optional[str] = None
    sequence_number: int
    workforce_groups: List[str]
    passing_score: int
    max_attempts: Optional[int] = None
    version: int
    published_at: Optional[datetime] = None


class QuestionPublic(BaseModel):
    """Question as delivered to members: no answer key, no rationale."""

    id: str
    quiz_id: str
    question_number: int
    scenario: Optional[str] = None
    question_text: str
    options: List[QuizOption]
    hipaa_section: str


class QuizDelivery(BaseModel):
    quiz: QuizRead
    passing_score: int
    max_attempts: Optional[int] = None
    attempts_used: int
    questions: List[QuestionPublic]


class ReleaseCreate(BaseModel):
    content_type: ContentType
    content_id: str
    workforce_group: WorkforceGroup
    passing_score_override: Optional[int] = Field(default=None, ge=0, le=100)
    max_attempts: Optional[int] = Field(default=None, ge=1)


class ReleaseRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    organization_id: str
    content_type: ContentType
    content_id: str
    workforce_group: str
    passing_score_override: Optional[int] = None
    max_attempts: Optional[int] = None
    released_at: datetime
