from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from hubdb.apps.accounts import services as account_services
from hubdb.apps.accounts.models import AccountRole, User
from hubdb.clock import Clock, get_clock
from hubdb.database import get_db, get_read_db
from hubdb.security import get_current_active_user, require_roles

from . import models, schemas, services


router = APIRouter(prefix="/assignments", tags=["assignments"])


def _assignment_read(assignment: models.TrainingAssignment, now: datetime) -> schemas.AssignmentRead:
    read = schemas.AssignmentRead.model_validate(assignment)
    read.is_overdue = services.is_overdue(assignment, now)
    read.is_at_risk = services.is_at_risk(assignment, now)
    return read


def _compliance_read(summary: services.ComplianceSummary, now: datetime) -> schemas.ComplianceRead:
    return schemas.ComplianceRead(
        member_id=summary.member_id,
        status=summary.status.value,
        total=summary.total,
        completed=summary.completed,
        overdue=summary.overdue,
        at_risk=summary.at_risk,
        assignments=[_assignment_read(a, now) for a in summary.assignments],
    )


@router.post("", response_model=schemas.AssignmentRead, status_code=status.HTTP_201_CREATED)
def create_assignment(
    payload: schemas.AssignmentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(AccountRole.ORG_ADMIN)),
    clock: Clock = Depends(get_clock),
):
    now = clock()
    assignment = services.create_assignment(
        db,
        organization_id=current_user.organization_id,
        assigned_to=payload.assigned_to,
        workforce_group=payload.workforce_group,
        due_date=payload.due_date,
        notes=payload.notes,
        actor=current_user,
        now=now,
    )
    db.commit()
    return _assignment_read(assignment, now)


@router.get("", response_model=List[schemas.AssignmentRead])
def list_assignments(
    status_filter: Optional[models.AssignmentStatus] = Query(None, alias="status"),
    workforce_group: Optional[str] = None,
    db: Session = Depends(get_read_db),
    current_user: User = Depends(get_current_active_user),
    clock: Clock = Depends(get_clock),
):
    now = clock()
    if current_user.is_org_admin:
        assignments = services.list_assignments_for_organization(
            db,
            current_user.organization_id,
            status=status_filter,
            workforce_group=workforce_group,
        )
    else:
        assignments = services.list_assignments_for_member(db, current_user.id)
    return [_assignment_read(a, now) for a in assignments]


@router.get("/compliance", response_model=schemas.ComplianceRead)
def get_my_compliance(
    db: Session = Depends(get_read_db),
    current_user: User = Depends(get_current_active_user),
    clock: Clock = Depends(get_clock),
):
    now = clock()
    return _compliance_read(services.compliance_summary(db, current_user, now), now)


@router.get("/members/{member_id}/compliance", response_model=schemas.ComplianceRead)
def get_member_compliance(
    member_id: str,
    db: Session = Depends(get_read_db),
    current_user: User = Depends(require_roles(AccountRole.ORG_ADMIN)),
    clock: Clock = Depends(get_clock),
):
    now = clock()
    member = account_services.resolve_member_for_actor(db, actor=current_user, member_id=member_id)
    return _compliance_read(services.compliance_summary(db, member, now), now)
