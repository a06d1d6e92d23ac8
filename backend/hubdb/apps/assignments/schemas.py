from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from hubdb.apps.accounts.models import WorkforceGroup

from .models import AssignmentStatus


class AssignmentCreate(BaseModel):
    assigned_to: str
    workforce_group: WorkforceGroup
    due_date: Optional[date] = None
    notes: Optional[str] = None


class AssignmentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    organization_id: str
    assigned_to_user_id: str
    assigned_by_user_id: Optional[str] = None
    workforce_group: str
    due_date: date
    notes: Optional[str] = None
    status: AssignmentStatus
    assigned_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    is_overdue: bool = False
    is_at_risk: bool = False


class ComplianceRead(BaseModel):
    member_id: str
    status: str
    total: int
    completed: int
    overdue: int
    at_risk: int
    assignments: List[AssignmentRead]
