from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from hubdb.apps.accounts.models import AccountRole, User
from hubdb.clock import Clock, get_clock
from hubdb.database import get_db, get_read_db
from hubdb.security import get_current_active_user, require_roles

from . import schemas, services


router = APIRouter(prefix="/assessments", tags=["assessments"])


@router.post(
    "/quizzes/{quiz_id}/attempts",
    response_model=schemas.SubmissionRead,
    status_code=status.HTTP_201_CREATED,
)
def submit_attempt(
    quiz_id: str,
    payload: schemas.AttemptSubmit,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
    clock: Clock = Depends(get_clock),
):
    result = services.submit_attempt(
        db,
        current_user,
        quiz_id,
        payload.answers,
        payload.workforce_group.value,
        clock(),
        idempotency_key=payload.idempotency_key,
    )
    attempt = result.attempt
    return schemas.SubmissionRead(
        attempt=schemas.AttemptRead.model_validate(attempt),
        score=attempt.score,
        passed=attempt.passed,
        passing_score=attempt.passing_score,
        certificate=(
            schemas.CertificateBrief.model_validate(result.certificate) if result.certificate else None
        ),
        replayed=result.replayed,
    )


@router.get("/quizzes/{quiz_id}/attempts", response_model=List[schemas.AttemptRead])
def list_attempts(
    quiz_id: str,
    db: Session = Depends(get_read_db),
    current_user: User = Depends(get_current_active_user),
):
    return services.list_attempts(db, current_user.id, quiz_id)


@router.get("/quizzes/{quiz_id}/summary", response_model=schemas.AttemptSummaryRead)
def get_attempt_summary(
    quiz_id: str,
    db: Session = Depends(get_read_db),
    current_user: User = Depends(get_current_active_user),
):
    return services.attempt_summary(db, current_user, quiz_id)


@router.get("/weakness-summary", response_model=schemas.WeaknessSummaryRead)
def get_weakness_summary(
    workforce_group: Optional[str] = None,
    db: Session = Depends(get_read_db),
    current_user: User = Depends(require_roles(AccountRole.ORG_ADMIN)),
):
    return services.wrong_answer_summary(db, current_user.organization_id, group=workforce_group)
