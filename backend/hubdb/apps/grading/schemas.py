from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from hubdb.apps.accounts.models import WorkforceGroup


class AnswerSubmit(BaseModel):
    question_id: str
    selected_option: str
    time_spent: int = Field(default=0, ge=0, description="Seconds spent on the question")


class AttemptSubmit(BaseModel):
    workforce_group: WorkforceGroup
    answers: List[AnswerSubmit]
    idempotency_key: Optional[str] = Field(default=None, max_length=128)


class GradedAnswerRead(BaseModel):
    question_id: str
    question_number: int
    selected_option: str
    correct_answer: str
    is_correct: bool
    time_spent: int
    hipaa_section: str


class CertificateBrief(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    certificate_number: str
    issued_at: datetime
    valid_until: datetime


class AttemptRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    quiz_id: str
    workforce_group_at_time: str
    score: int
    correct_count: int
    total_questions: int
    passing_score: int
    passed: bool
    total_time_spent: int
    flagged_suspicious: bool
    started_at: Optional[datetime] = None
    completed_at: datetime
    answers: List[GradedAnswerRead] = Field(default_factory=list)


class SubmissionRead(BaseModel):
    attempt: AttemptRead
    score: int
    passed: bool
    passing_score: int
    certificate: Optional[CertificateBrief] = None
    replayed: bool = False


class AttemptSummaryRead(BaseModel):
    quiz_id: str
    state: str
    passing_score: int
    max_attempts: Optional[int] = None
    attempts_used: int
    attempts_remaining: Optional[int] = None
    best_attempt: Optional[AttemptRead] = None
    latest_attempt: Optional[AttemptRead] = None


class SectionWeaknessRead(BaseModel):
    hipaa_section: str
    incorrect: int
    answered: int
    error_rate: float


class WeaknessSummaryRead(BaseModel):
    organization_id: str
    workforce_group: Optional[str] = None
    attempts_analyzed: int
    sections: List[SectionWeaknessRead]
