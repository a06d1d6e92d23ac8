from __future__ import annotations

from datetime import datetime
from typing import List

from pydantic import BaseModel, ConfigDict, Field


class CertificateRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    certificate_number: str
    user_id: str
    quiz_attempt_id: str
    quiz_id: str
    quiz_title: str
    workforce_group: str
    score: int
    hipaa_citations: List[str] = Field(default_factory=list)
    issued_at: datetime
    valid_until: datetime
    is_valid: bool = True
