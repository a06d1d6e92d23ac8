from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class MaterialCompletionRead(BaseModel):
    already_completed: bool
    progress_id: str
    material_id: str
    version_at_completion: int
    completed_at: datetime


class ProgressRecordRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    material_id: str
    material_key: str
    version_at_completion: int
    completed_at: datetime


class QuizStateRead(BaseModel):
    quiz_id: str
    title: str
    sequence_number: int
    state: str


class UnlockStateRead(BaseModel):
    member_id: str
    reason: Optional[str] = None
    materials_completed: int
    materials_total: int
    completed_material_ids: List[str] = Field(default_factory=list)
    quizzes: List[QuizStateRead] = Field(default_factory=list)
    states: Dict[str, str] = Field(default_factory=dict)
