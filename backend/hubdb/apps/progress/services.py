from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hubdb.apps.accounts import models as account_models
from hubdb.apps.assignments import models as assignment_models
from hubdb.apps.assignments import services as assignment_services
from hubdb.apps.audit import services as audit_services
from hubdb.apps.catalog import models as catalog_models
from hubdb.apps.catalog import services as catalog_services
from hubdb.apps.grading import models as grading_models
from hubdb.errors import Forbidden, NotFound, ValidationFailed

from . import models

logger = logging.getLogger(__name__)

LOCKED = "locked"
UNLOCKED = "unlocked"
FAILED = "failed"
PASSED = "passed"

REASON_NO_GROUP = "no_group_assigned"
REASON_MATERIALS_INCOMPLETE = "materials_incomplete"


@dataclass
class QuizUnlockState:
    quiz_id: str
    title: str
    sequence_number: int
    state: str


@dataclass
class UnlockReport:
    member_id: str
    quizzes: Dict[str, str] = field(default_factory=dict)
    quiz_details: List[QuizUnlockState] = field(default_factory=list)
    materials_completed: int = 0
    materials_total: int = 0
    completed_material_ids: List[str] = field(default_factory=list)
    reason: Optional[str] = None

    @property
    def materials_done(self) -> bool:
        return self.materials_total > 0 and self.materials_completed >= self.materials_total

    def state_for(self, quiz_id: str) -> str:
        return self.quizzes.get(quiz_id, LOCKED)


@dataclass
class CompletionResult:
    already_completed: bool
    record: models.TrainingProgressRecord


def _completed_material_ids(db: Session, member_id: str) -> set[str]:
    rows = (
        db.query(models.TrainingProgressRecord.material_id)
        .filter(models.TrainingProgressRecord.user_id == member_id)
        .all()
    )
    return {row[0] for row in rows}


def material_progress(db: Session, member: account_models.User) -> dict:
    """Completed versus required materials for the member's current groups."""
    required = catalog_services.get_required_material_ids(db, member.organization_id, member.groups)
    completed = _completed_material_ids(db, member.id)
    done = [material_id for material_id in required if material_id in completed]
    return {
        "completed": len(done),
        "total": len(required),
        "completed_material_ids": done,
        "required_material_ids": required,
    }


def _attempt_outcomes(db: Session, member_id: str) -> Dict[str, bool]:
    """quiz_id -> whether any attempt passed, for quizzes the member has attempted."""
    outcomes: Dict[str, bool] = {}
    rows = (
        db.query(grading_models.QuizAttempt.quiz_id, grading_models.QuizAttempt.passed)
        .filter(grading_models.QuizAttempt.user_id == member_id)
        .all()
    )
    for quiz_id, passed in rows:
        outcomes[quiz_id] = outcomes.get(quiz_id, False) or bool(passed)
    return outcomes


def compute_unlock_state(db: Session, member: account_models.User) -> UnlockReport:
    """
    Derive every quiz state for a member from stored facts only.

    Passed is permanent and wins over everything; a quiz with attempts but no
    pass is failed (re-attemptable). Untouched quizzes unlock once every
    required material is read, in sequence: quiz N also needs a pass on quiz
    N-1 when the member's curriculum has one.
    """
    report = UnlockReport(member_id=member.id)
    groups = member.groups
    if not groups:
        for quiz in catalog_services.get_published_quizzes(db, member.organization_id):
            report.quizzes[quiz.id] = LOCKED
            report.quiz_details.append(
                QuizUnlockState(quiz.id, quiz.title, quiz.sequence_number, LOCKED)
            )
        report.reason = REASON_NO_GROUP
        return report

    progress = material_progress(db, member)
    report.materials_completed = progress["completed"]
    report.materials_total = progress["total"]
    report.completed_material_ids = progress["completed_material_ids"]
    if not report.materials_done:
        report.reason = REASON_MATERIALS_INCOMPLETE

    quizzes = catalog_services.get_quizzes_for_group(db, member.organization_id, groups)
    outcomes = _attempt_outcomes(db, member.id)
    passed_sequences = {quiz.sequence_number for quiz in quizzes if outcomes.get(quiz.id)}
    known_sequences = {quiz.sequence_number for quiz in quizzes}

    for quiz in quizzes:
        if outcomes.get(quiz.id):
            state = PASSED
        elif quiz.id in outcomes:
            state = FAILED
        elif not report.materials_done:
            state = LOCKED
        elif quiz.sequence_number <= 1:
            state = UNLOCKED
        else:
            previous = quiz.sequence_number - 1
            if previous not in known_sequences or previous in passed_sequences:
                state = UNLOCKED
            else:
                state = LOCKED
        report.quizzes[quiz.id] = state
        report.quiz_details.append(QuizUnlockState(quiz.id, quiz.title, quiz.sequence_number, state))
    return report


def _active_assignment_groups(db: Session, member_id: str) -> set[str]:
    rows = (
        db.query(assignment_models.TrainingAssignment.workforce_group)
        .filter(
            assignment_models.TrainingAssignment.assigned_to_user_id == member_id,
            assignment_models.TrainingAssignment.status.in_(assignment_models.ACTIVE_ASSIGNMENT_STATUSES),
        )
        .all()
    )
    return {row[0] for row in rows}


def _existing_record(db: Session, member_id: str, material_id: str) -> Optional[models.TrainingProgressRecord]:
    return (
        db.query(models.TrainingProgressRecord)
        .filter(
            models.TrainingProgressRecord.user_id == member_id,
            models.TrainingProgressRecord.material_id == material_id,
        )
        .first()
    )


def complete_material(
    db: Session,
    member: account_models.User,
    material_id: str,
    now: datetime,
) -> CompletionResult:
    """
    Record that `member` finished reading a material.

    Idempotent: a repeat (including a concurrent duplicate caught by the
    unique constraint) returns the existing record with
    already_completed=True. Rejections are audited and re-raised.
    """
    try:
        material = catalog_services.get_material(db, material_id)
        allowed = catalog_services.curriculum_groups(
            [group.value for group in member.groups] + sorted(_active_assignment_groups(db, member.id))
        )
        if not allowed & set(material.workforce_groups or []):
            raise Forbidden("This material is not part of your assigned training.")
        if not catalog_services.is_released(
            db,
            member.organization_id,
            catalog_models.ContentType.TRAINING_MATERIAL,
            material.id,
            allowed,
        ):
            raise Forbidden("This material has not been released to your organization.")
    except (Forbidden, NotFound, ValidationFailed) as exc:
        audit_services.record_rejection(
            db,
            organization_id=member.organization_id,
            actor_user_id=member.id,
            entity_type="progress.training_material",
            entity_id=str(material_id),
            error=exc,
        )
        raise

    existing = _existing_record(db, member.id, material.id)
    if existing is not None:
        return CompletionResult(already_completed=True, record=existing)

    record = models.TrainingProgressRecord(
        organization_id=member.organization_id,
        user_id=member.id,
        material_id=material.id,
        material_key=material.material_key,
        version_at_completion=material.version,
        completed_at=now,
    )
    db.add(record)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        existing = _existing_record(db, member.id, material.id)
        if existing is None:
            raise
        logger.info(
            "Concurrent material completion resolved to existing record",
            extra={"user_id": member.id, "material_id": material.id},
        )
        return CompletionResult(already_completed=True, record=existing)

    audit_services.log_event(
        db,
        organization_id=member.organization_id,
        actor_user_id=member.id,
        entity_type="progress.training_material",
        entity_id=material.id,
        action="training_material_completed",
        after={
            "material_key": material.material_key,
            "version": material.version,
            "progress_id": record.id,
        },
        occurred_at=now,
    )
    assignment_services.on_material_completed(db, member, material, now)
    return CompletionResult(already_completed=False, record=record)
