from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from hubdb.apps.accounts import services as account_services
from hubdb.apps.accounts.models import AccountRole, User
from hubdb.clock import Clock, get_clock
from hubdb.database import get_db, get_read_db
from hubdb.security import get_current_active_user, require_roles

from . import schemas, services


router = APIRouter(prefix="/progress", tags=["progress"])


def _unlock_state_read(report: services.UnlockReport) -> schemas.UnlockStateRead:
    return schemas.UnlockStateRead(
        member_id=report.member_id,
        reason=report.reason,
        materials_completed=report.materials_completed,
        materials_total=report.materials_total,
        completed_material_ids=report.completed_material_ids,
        quizzes=[
            schemas.QuizStateRead(
                quiz_id=item.quiz_id,
                title=item.title,
                sequence_number=item.sequence_number,
                state=item.state,
            )
            for item in report.quiz_details
        ],
        states=report.quizzes,
    )


@router.post("/materials/{material_id}/complete", response_model=schemas.MaterialCompletionRead)
def complete_material(
    material_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
    clock: Clock = Depends(get_clock),
):
    result = services.complete_material(db, current_user, material_id, clock())
    db.commit()
    record = result.record
    return schemas.MaterialCompletionRead(
        already_completed=result.already_completed,
        progress_id=record.id,
        material_id=record.material_id,
        version_at_completion=record.version_at_completion,
        completed_at=record.completed_at,
    )


@router.get("/unlock-state", response_model=schemas.UnlockStateRead)
def get_my_unlock_state(
    db: Session = Depends(get_read_db),
    current_user: User = Depends(get_current_active_user),
):
    return _unlock_state_read(services.compute_unlock_state(db, current_user))


@router.get("/members/{member_id}/unlock-state", response_model=schemas.UnlockStateRead)
def get_member_unlock_state(
    member_id: str,
    db: Session = Depends(get_read_db),
    current_user: User = Depends(require_roles(AccountRole.ORG_ADMIN)),
):
    member = account_services.resolve_member_for_actor(db, actor=current_user, member_id=member_id)
    return _unlock_state_read(services.compute_unlock_state(db, member))
