from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from hubdb.apps.accounts import models as account_models
from hubdb.apps.accounts import services as account_services
from hubdb.apps.audit import services as audit_services
from hubdb.apps.catalog import models as catalog_models
from hubdb.apps.catalog import services as catalog_services
from hubdb.apps.notifications import service as notification_service
from hubdb.apps.progress import models as progress_models
from hubdb.apps.workflow import apply_transition
from hubdb.errors import Forbidden, NotFound, ValidationFailed

from . import models

logger = logging.getLogger(__name__)

AT_RISK_WINDOW_DAYS = 7
ENTITY_TYPE = "training_assignment"


class ComplianceStatus(str, enum.Enum):
    COMPLIANT = "compliant"
    AT_RISK = "at_risk"
    NON_COMPLIANT = "non_compliant"
    NO_DATA = "no_data"


@dataclass
class ComplianceSummary:
    member_id: str
    status: ComplianceStatus
    total: int = 0
    completed: int = 0
    overdue: int = 0
    at_risk: int = 0
    assignments: List[models.TrainingAssignment] = field(default_factory=list)


# ---------------------------------------------------------------------------
# DERIVED STATUS
# ---------------------------------------------------------------------------


def _as_date(value) -> date:
    return value.date() if isinstance(value, datetime) else value


def is_overdue(assignment: models.TrainingAssignment, now: datetime) -> bool:
    if assignment.status == models.AssignmentStatus.COMPLETED:
        return False
    return now.date() > _as_date(assignment.due_date)


def is_at_risk(assignment: models.TrainingAssignment, now: datetime) -> bool:
    if assignment.status == models.AssignmentStatus.COMPLETED or is_overdue(assignment, now):
        return False
    return (_as_date(assignment.due_date) - now.date()).days <= AT_RISK_WINDOW_DAYS


def list_assignments_for_member(db: Session, member_id: str) -> List[models.TrainingAssignment]:
    return (
        db.query(models.TrainingAssignment)
        .filter(models.TrainingAssignment.assigned_to_user_id == member_id)
        .order_by(models.TrainingAssignment.due_date.asc(), models.TrainingAssignment.assigned_at.asc())
        .all()
    )


def list_assignments_for_organization(
    db: Session,
    organization_id: str,
    *,
    status: Optional[models.AssignmentStatus] = None,
    workforce_group: Optional[str] = None,
) -> List[models.TrainingAssignment]:
    query = db.query(models.TrainingAssignment).filter(
        models.TrainingAssignment.organization_id == organization_id
    )
    if status:
        query = query.filter(models.TrainingAssignment.status == status)
    if workforce_group:
        query = query.filter(models.TrainingAssignment.workforce_group == workforce_group)
    return query.order_by(models.TrainingAssignment.due_date.asc()).all()


def compliance_summary(db: Session, member: account_models.User, now: datetime) -> ComplianceSummary:
    assignments = list_assignments_for_member(db, member.id)
    if not member.groups or not assignments:
        return ComplianceSummary(member_id=member.id, status=ComplianceStatus.NO_DATA, assignments=assignments)

    overdue = sum(1 for a in assignments if is_overdue(a, now))
    at_risk = sum(1 for a in assignments if is_at_risk(a, now))
    completed = sum(1 for a in assignments if a.status == models.AssignmentStatus.COMPLETED)
    if overdue:
        status = ComplianceStatus.NON_COMPLIANT
    elif at_risk:
        status = ComplianceStatus.AT_RISK
    else:
        status = ComplianceStatus.COMPLIANT
    return ComplianceSummary(
        member_id=member.id,
        status=status,
        total=len(assignments),
        completed=completed,
        overdue=overdue,
        at_risk=at_risk,
        assignments=assignments,
    )


def get_compliance_status(db: Session, member: account_models.User, now: datetime) -> ComplianceStatus:
    return compliance_summary(db, member, now).status


# ---------------------------------------------------------------------------
# LIFECYCLE
# ---------------------------------------------------------------------------


def _snapshot(assignment: models.TrainingAssignment) -> dict:
    return {
        "organization_id": assignment.organization_id,
        "assigned_to_user_id": assignment.assigned_to_user_id,
        "workforce_group": assignment.workforce_group,
        "started_at": assignment.started_at,
        "completed_at": assignment.completed_at,
    }


def _transition(
    db: Session,
    assignment: models.TrainingAssignment,
    to_status: models.AssignmentStatus,
    *,
    actor_user_id: Optional[str],
    now: datetime,
    completion_basis: Optional[models.CompletionBasis] = None,
) -> None:
    before = _snapshot(assignment)
    after = dict(before)
    if to_status == models.AssignmentStatus.IN_PROGRESS:
        after["started_at"] = assignment.started_at or now
    elif to_status == models.AssignmentStatus.COMPLETED:
        after["started_at"] = assignment.started_at or now
        after["completed_at"] = now
        after["completion_basis"] = completion_basis.value if completion_basis else None

    apply_transition(
        db,
        actor_user_id=actor_user_id,
        entity_type=ENTITY_TYPE,
        entity_id=assignment.id,
        from_state=assignment.status.value,
        to_state=to_status.value,
        before_obj=before,
        after_obj=after,
    )

    assignment.status = to_status
    assignment.started_at = after["started_at"]
    if to_status == models.AssignmentStatus.COMPLETED:
        assignment.completed_at = now
        assignment.completion_basis = completion_basis
    db.add(assignment)
    db.flush()


def _active_assignments(db: Session, member_id: str) -> List[models.TrainingAssignment]:
    return (
        db.query(models.TrainingAssignment)
        .filter(
            models.TrainingAssignment.assigned_to_user_id == member_id,
            models.TrainingAssignment.status.in_(models.ACTIVE_ASSIGNMENT_STATUSES),
        )
        .order_by(models.TrainingAssignment.assigned_at.asc())
        .all()
    )


def create_assignment(
    db: Session,
    *,
    organization_id: str,
    assigned_to: str,
    workforce_group,
    due_date: Optional[date],
    notes: Optional[str] = None,
    actor: Optional[account_models.User] = None,
    now: datetime,
) -> models.TrainingAssignment:
    """
    Assign one workforce group's curriculum to a member of the organization.

    The member is notified afterwards; a failed notification never undoes the
    assignment.
    """
    actor_user_id = actor.id if actor else None
    try:
        if due_date is None:
            raise ValidationFailed("A due date is required.")
        try:
            group = account_models.WorkforceGroup(
                workforce_group.value if isinstance(workforce_group, enum.Enum) else workforce_group
            )
        except ValueError:
            raise ValidationFailed(f"Unknown workforce group '{workforce_group}'.")
        member = account_services.get_member(db, assigned_to)
        if member.organization_id != organization_id:
            raise Forbidden("Member is not in this organization.")
        if not catalog_services.has_released_content(db, organization_id, group):
            raise ValidationFailed("No content has been released for this workforce group.")
    except (Forbidden, NotFound, ValidationFailed) as exc:
        audit_services.record_rejection(
            db,
            organization_id=organization_id,
            actor_user_id=actor_user_id,
            entity_type=ENTITY_TYPE,
            entity_id=str(assigned_to),
            error=exc,
        )
        raise

    assignment = models.TrainingAssignment(
        organization_id=organization_id,
        assigned_to_user_id=member.id,
        assigned_by_user_id=actor_user_id,
        workforce_group=group.value,
        due_date=_as_date(due_date),
        notes=notes,
        status=models.AssignmentStatus.ASSIGNED,
        assigned_at=now,
    )
    db.add(assignment)
    db.flush()

    audit_services.log_event(
        db,
        organization_id=organization_id,
        actor_user_id=actor_user_id,
        entity_type=ENTITY_TYPE,
        entity_id=assignment.id,
        action="assignment_created",
        after={
            "assigned_to_user_id": member.id,
            "workforce_group": group.value,
            "due_date": assignment.due_date.isoformat(),
        },
        occurred_at=now,
    )

    notification_service.notify_members(
        db,
        organization_id=organization_id,
        recipients=[member.email],
        template_key="training_assigned",
        subject="New HIPAA training assigned",
        context={
            "member_name": member.full_name,
            "workforce_group": group.value,
            "workforce_group_label": account_models.workforce_group_label(group),
            "due_date": assignment.due_date.isoformat(),
            "notes": notes,
        },
        correlation_id=assignment.id,
    )
    return assignment


def _required_completion(db: Session, member: account_models.User, group: str) -> tuple[int, int]:
    required = catalog_services.get_required_material_ids(db, member.organization_id, [group])
    if not required:
        return 0, 0
    completed = (
        db.query(progress_models.TrainingProgressRecord)
        .filter(
            progress_models.TrainingProgressRecord.user_id == member.id,
            progress_models.TrainingProgressRecord.material_id.in_(required),
        )
        .count()
    )
    return completed, len(required)


def on_material_completed(
    db: Session,
    member: account_models.User,
    material: catalog_models.TrainingMaterial,
    now: datetime,
) -> List[models.TrainingAssignment]:
    """
    Advance the member's active assignments covering `material`.

    First progress moves an assignment to in_progress; it completes once every
    required material of its group has been read. Returns the assignments
    that changed.
    """
    material_groups = set(material.workforce_groups or [])
    covers_everyone = account_models.WorkforceGroup.ALL_STAFF.value in material_groups
    changed: List[models.TrainingAssignment] = []
    for assignment in _active_assignments(db, member.id):
        if not covers_everyone and assignment.workforce_group not in material_groups:
            continue
        if assignment.status == models.AssignmentStatus.ASSIGNED:
            _transition(
                db,
                assignment,
                models.AssignmentStatus.IN_PROGRESS,
                actor_user_id=member.id,
                now=now,
            )
        completed, total = _required_completion(db, member, assignment.workforce_group)
        if total and completed >= total:
            _transition(
                db,
                assignment,
                models.AssignmentStatus.COMPLETED,
                actor_user_id=member.id,
                now=now,
                completion_basis=models.CompletionBasis.MATERIALS,
            )
        changed.append(assignment)
    return changed


def on_quiz_passed(db: Session, attempt, now: datetime) -> Optional[models.TrainingAssignment]:
    """Complete the member's active assignment for the group the attempt was taken under."""
    assignment = (
        db.query(models.TrainingAssignment)
        .filter(
            models.TrainingAssignment.assigned_to_user_id == attempt.user_id,
            models.TrainingAssignment.workforce_group == attempt.workforce_group_at_time,
            models.TrainingAssignment.status.in_(models.ACTIVE_ASSIGNMENT_STATUSES),
        )
        .order_by(models.TrainingAssignment.assigned_at.asc())
        .first()
    )
    if assignment is None:
        return None
    _transition(
        db,
        assignment,
        models.AssignmentStatus.COMPLETED,
        actor_user_id=attempt.user_id,
        now=now,
        completion_basis=models.CompletionBasis.QUIZ_PASSED,
    )
    logger.info(
        "Assignment completed by passing attempt",
        extra={"assignment_id": assignment.id, "attempt_id": attempt.id},
    )
    return assignment
