from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from hubdb.apps.accounts.models import AccountRole, User
from hubdb.apps.grading import services as grading_services
from hubdb.apps.progress import services as progress_services
from hubdb.clock import Clock, get_clock
from hubdb.database import get_db, get_read_db
from hubdb.errors import Forbidden, QuizLocked
from hubdb.security import get_current_active_user, require_roles

from . import models, schemas, services


router = APIRouter(prefix="/catalog", tags=["catalog"])


@router.get("/materials", response_model=List[schemas.MaterialRead])
def list_my_materials(
    db: Session = Depends(get_read_db),
    current_user: User = Depends(get_current_active_user),
):
    progress = progress_services.material_progress(db, current_user)
    completed = set(progress["completed_material_ids"])
    out = []
    for material in services.get_required_materials(db, current_user.organization_id, current_user.groups):
        read = schemas.MaterialRead.model_validate(material)
        read.completed = material.id in completed
        out.append(read)
    return out


@router.get("/quizzes", response_model=List[schemas.QuizRead])
def list_my_quizzes(
    db: Session = Depends(get_read_db),
    current_user: User = Depends(get_current_active_user),
):
    out = []
    for quiz in services.get_quizzes_for_group(db, current_user.organization_id, current_user.groups):
        read = schemas.QuizRead.model_validate(quiz)
        read.passing_score, read.max_attempts = services.resolve_quiz_policy(
            db, current_user.organization_id, quiz, grading_services.default_group(current_user, quiz)
        )
        out.append(read)
    return out


@router.get("/quizzes/{quiz_id}/questions", response_model=schemas.QuizDelivery)
def get_quiz_questions(
    quiz_id: str,
    db: Session = Depends(get_read_db),
    current_user: User = Depends(get_current_active_user),
):
    quiz = services.get_quiz(db, quiz_id)
    group = grading_services.default_group(current_user, quiz)
    if group is None:
        raise Forbidden("This quiz is not part of your workforce group's curriculum.")
    released_groups = services.curriculum_groups(current_user.groups)
    if not services.is_released(db, current_user.organization_id, models.ContentType.QUIZ, quiz.id, released_groups):
        raise Forbidden("This quiz has not been released to your organization.")
    state = progress_services.compute_unlock_state(db, current_user).state_for(quiz.id)
    if state == progress_services.LOCKED:
        raise QuizLocked("Complete the required training materials and earlier quizzes first.")

    passing_score, max_attempts = services.resolve_quiz_policy(db, current_user.organization_id, quiz, group)
    return schemas.QuizDelivery(
        quiz=schemas.QuizRead.model_validate(quiz),
        passing_score=passing_score,
        max_attempts=max_attempts,
        attempts_used=grading_services.count_attempts(db, current_user.id, quiz.id),
        questions=services.public_questions(services.get_questions_for_quiz(db, quiz.id)),
    )


@router.post("/releases", response_model=schemas.ReleaseRead, status_code=status.HTTP_201_CREATED)
def release_content(
    payload: schemas.ReleaseCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(AccountRole.ORG_ADMIN)),
    clock: Clock = Depends(get_clock),
):
    release = services.release_content(
        db,
        organization_id=current_user.organization_id,
        content_type=payload.content_type,
        content_id=payload.content_id,
        workforce_group=payload.workforce_group,
        actor_user_id=current_user.id,
        passing_score_override=payload.passing_score_override,
        max_attempts=payload.max_attempts,
        now=clock(),
    )
    db.commit()
    return release


@router.get("/releases", response_model=List[schemas.ReleaseRead])
def list_releases(
    db: Session = Depends(get_read_db),
    current_user: User = Depends(require_roles(AccountRole.ORG_ADMIN)),
):
    return services.list_releases(db, current_user.organization_id)
