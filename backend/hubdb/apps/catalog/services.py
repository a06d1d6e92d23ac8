from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from hubdb.apps.accounts import models as account_models
from hubdb.apps.audit import services as audit_services
from hubdb.apps.notifications import service as notification_service
from hubdb.clock import utcnow
from hubdb.errors import NotFound, ValidationFailed

from . import models

logger = logging.getLogger(__name__)


def _group_values(groups: Optional[Iterable]) -> set[str]:
    out: set[str] = set()
    for group in groups or []:
        out.add(group.value if isinstance(group, account_models.WorkforceGroup) else str(group))
    return out


def _tagged_with_any(item_groups: Optional[Iterable], groups: set[str]) -> bool:
    return bool(_group_values(item_groups) & groups)


# ---------------------------------------------------------------------------
# READS
# ---------------------------------------------------------------------------


def curriculum_groups(groups: Optional[Iterable]) -> set[str]:
    """A member's own groups plus all_staff, which covers everyone who has a group."""
    wanted = _group_values(groups)
    if wanted:
        wanted.add(account_models.WorkforceGroup.ALL_STAFF.value)
    return wanted


def released_content_ids(
    db: Session,
    organization_id: str,
    content_type: models.ContentType,
    groups: Iterable,
) -> set[str]:
    """Ids of content the organization released to any of `groups`."""
    wanted = sorted(_group_values(groups))
    if not wanted:
        return set()
    rows = (
        db.query(models.ContentRelease.content_id)
        .filter(
            models.ContentRelease.organization_id == organization_id,
            models.ContentRelease.content_type == content_type,
            models.ContentRelease.workforce_group.in_(wanted),
        )
        .all()
    )
    return {row[0] for row in rows}


def is_released(
    db: Session,
    organization_id: str,
    content_type: models.ContentType,
    content_id: str,
    groups: Iterable,
) -> bool:
    return content_id in released_content_ids(db, organization_id, content_type, groups)


def get_required_materials(db: Session, organization_id: str, groups: Iterable) -> List[models.TrainingMaterial]:
    """
    Current material versions the organization released to the member's
    curriculum groups, in reading order. all_staff material always counts.
    """
    wanted = curriculum_groups(groups)
    if not wanted:
        return []
    released = released_content_ids(db, organization_id, models.ContentType.TRAINING_MATERIAL, wanted)
    if not released:
        return []
    current = (
        db.query(models.TrainingMaterial)
        .filter(
            models.TrainingMaterial.superseded_at.is_(None),
            models.TrainingMaterial.id.in_(sorted(released)),
        )
        .order_by(models.TrainingMaterial.sequence_number.asc(), models.TrainingMaterial.id.asc())
        .all()
    )
    # Group tags live in a JSON list, so the filter runs in Python to stay dialect neutral.
    return [material for material in current if _tagged_with_any(material.workforce_groups, wanted)]


def get_required_material_ids(db: Session, organization_id: str, groups: Iterable) -> List[str]:
    return [material.id for material in get_required_materials(db, organization_id, groups)]


def get_material(db: Session, material_id: str) -> models.TrainingMaterial:
    material = db.query(models.TrainingMaterial).filter(models.TrainingMaterial.id == material_id).first()
    if material is None:
        raise NotFound("Training material not found.")
    return material


def get_quizzes_for_group(db: Session, organization_id: str, groups: Iterable) -> List[models.Quiz]:
    """Published quizzes released to the organization for the curriculum groups, by sequence number."""
    wanted = curriculum_groups(groups)
    if not wanted:
        return []
    released = released_content_ids(db, organization_id, models.ContentType.QUIZ, wanted)
    if not released:
        return []
    published = (
        db.query(models.Quiz)
        .filter(
            models.Quiz.published_at.is_not(None),
            models.Quiz.id.in_(sorted(released)),
        )
        .order_by(models.Quiz.sequence_number.asc(), models.Quiz.id.asc())
        .all()
    )
    return [quiz for quiz in published if _tagged_with_any(quiz.workforce_groups, wanted)]


def get_published_quizzes(db: Session, organization_id: str) -> List[models.Quiz]:
    """Published quizzes the organization released to any group."""
    released = select(models.ContentRelease.content_id).where(
        models.ContentRelease.organization_id == organization_id,
        models.ContentRelease.content_type == models.ContentType.QUIZ,
    )
    return (
        db.query(models.Quiz)
        .filter(models.Quiz.published_at.is_not(None), models.Quiz.id.in_(released))
        .order_by(models.Quiz.sequence_number.asc(), models.Quiz.id.asc())
        .all()
    )


def get_quiz(db: Session, quiz_id: str, *, published_only: bool = True) -> models.Quiz:
    query = db.query(models.Quiz).filter(models.Quiz.id == quiz_id)
    if published_only:
        query = query.filter(models.Quiz.published_at.is_not(None))
    quiz = query.first()
    if quiz is None:
        raise NotFound("Quiz not found.")
    return quiz


def get_questions_for_quiz(db: Session, quiz_id: str) -> List[models.QuizQuestion]:
    """Full question rows including the answer key. Server side only."""
    return (
        db.query(models.QuizQuestion)
        .filter(models.QuizQuestion.quiz_id == quiz_id)
        .order_by(models.QuizQuestion.question_number.asc())
        .all()
    )


def public_questions(questions: Sequence[models.QuizQuestion]) -> List[dict]:
    return [
        {
            "id": question.id,
            "quiz_id": question.quiz_id,
            "question_number": question.question_number,
            "scenario": question.scenario,
            "question_text": question.question_text,
            "options": [
                {"label": str(opt.get("label")), "text": str(opt.get("text", ""))}
                for opt in (question.options or [])
                if isinstance(opt, dict)
            ],
            "hipaa_section": question.hipaa_section,
        }
        for question in questions
    ]


def get_quiz_release(
    db: Session,
    *,
    organization_id: str,
    quiz_id: str,
    group: str,
) -> Optional[models.ContentRelease]:
    return (
        db.query(models.ContentRelease)
        .filter(
            models.ContentRelease.organization_id == organization_id,
            models.ContentRelease.content_type == models.ContentType.QUIZ,
            models.ContentRelease.content_id == quiz_id,
            models.ContentRelease.workforce_group == group,
        )
        .first()
    )


def resolve_quiz_policy(
    db: Session,
    organization_id: str,
    quiz: models.Quiz,
    group: Optional[str],
) -> Tuple[int, Optional[int]]:
    """
    (passing_score, max_attempts) for a member of `organization_id` taking
    `quiz` under `group`. The organization's release overrides win; the quiz
    defaults fill whatever the release leaves unset.
    """
    passing_score = quiz.passing_score if quiz.passing_score is not None else models.DEFAULT_PASSING_SCORE
    max_attempts = quiz.max_attempts
    if group:
        release = get_quiz_release(
            db,
            organization_id=organization_id,
            quiz_id=quiz.id,
            group=_group_values([group]).pop(),
        )
        if release is not None:
            if release.passing_score_override is not None:
                passing_score = release.passing_score_override
            if release.max_attempts is not None:
                max_attempts = release.max_attempts
    return passing_score, max_attempts


def has_released_content(db: Session, organization_id: str, group) -> bool:
    group_value = _group_values([group]).pop()
    return (
        db.query(models.ContentRelease.id)
        .filter(
            models.ContentRelease.organization_id == organization_id,
            models.ContentRelease.workforce_group == group_value,
        )
        .first()
        is not None
    )


def list_releases(db: Session, organization_id: str) -> List[models.ContentRelease]:
    return (
        db.query(models.ContentRelease)
        .filter(models.ContentRelease.organization_id == organization_id)
        .order_by(models.ContentRelease.released_at.desc())
        .all()
    )


# ---------------------------------------------------------------------------
# AUTHORING
# ---------------------------------------------------------------------------


def create_material(
    db: Session,
    *,
    material_key: str,
    title: str,
    sequence_number: int,
    workforce_groups: Iterable,
    description: Optional[str] = None,
    content: Optional[list] = None,
    hipaa_citations: Optional[list] = None,
    estimated_minutes: int = 10,
    now: Optional[datetime] = None,
) -> models.TrainingMaterial:
    """
    Add a material version. An existing current version for the same key is
    superseded, never edited or deleted, so completed progress keeps pointing
    at the version that was actually read.
    """
    now = now or utcnow()
    groups = sorted(_group_values(workforce_groups))
    if not groups:
        raise ValidationFailed("A training material needs at least one workforce group.")

    current = (
        db.query(models.TrainingMaterial)
        .filter(
            models.TrainingMaterial.material_key == material_key,
            models.TrainingMaterial.superseded_at.is_(None),
        )
        .first()
    )
    version = 1
    if current is not None:
        current.superseded_at = now
        version = (current.version or 0) + 1

    material = models.TrainingMaterial(
        material_key=material_key,
        version=version,
        title=title,
        description=description,
        sequence_number=sequence_number,
        workforce_groups=groups,
        content=content or [],
        hipaa_citations=list(hipaa_citations or []),
        estimated_minutes=estimated_minutes,
        created_at=now,
    )
    db.add(material)
    db.flush()
    return material


def create_quiz(
    db: Session,
    *,
    title: str,
    sequence_number: int,
    workforce_groups: Iterable,
    description: Optional[str] = None,
    passing_score: int = models.DEFAULT_PASSING_SCORE,
    max_attempts: Optional[int] = None,
    version: int = 1,
    hipaa_citations: Optional[list] = None,
    now: Optional[datetime] = None,
) -> models.Quiz:
    groups = sorted(_group_values(workforce_groups))
    if not groups:
        raise ValidationFailed("A quiz needs at least one workforce group.")
    if not 0 <= passing_score <= 100:
        raise ValidationFailed("Passing score must be between 0 and 100.")
    if max_attempts is not None and max_attempts < 1:
        raise ValidationFailed("max_attempts must be at least 1 when set.")

    quiz = models.Quiz(
        title=title,
        description=description,
        sequence_number=sequence_number,
        workforce_groups=groups,
        passing_score=passing_score,
        max_attempts=max_attempts,
        version=version,
        hipaa_citations=list(hipaa_citations or []),
        created_at=now or utcnow(),
    )
    db.add(quiz)
    db.flush()
    return quiz


def add_question(
    db: Session,
    *,
    quiz: models.Quiz,
    question_number: int,
    question_text: str,
    options: list,
    correct_answer: str,
    hipaa_section: str,
    scenario: Optional[str] = None,
    rationale: Optional[str] = None,
) -> models.QuizQuestion:
    if quiz.is_published:
        raise ValidationFailed("Published quizzes are frozen; create a new quiz version instead.")
    labels = [str(opt.get("label")) for opt in options or [] if isinstance(opt, dict)]
    if len(labels) < 2:
        raise ValidationFailed("A question needs at least two options.")
    if correct_answer not in labels:
        raise ValidationFailed("The correct answer must be one of the option labels.")
    if not hipaa_section:
        raise ValidationFailed("Every question must cite a HIPAA section.")

    question = models.QuizQuestion(
        quiz_id=quiz.id,
        question_number=question_number,
        question_text=question_text,
        scenario=scenario,
        options=list(options),
        correct_answer=correct_answer,
        hipaa_section=hipaa_section,
        rationale=rationale,
    )
    db.add(question)
    db.flush()
    return question


def publish_quiz(db: Session, *, quiz: models.Quiz, now: Optional[datetime] = None) -> models.Quiz:
    if quiz.is_published:
        return quiz
    question_count = db.query(models.QuizQuestion).filter(models.QuizQuestion.quiz_id == quiz.id).count()
    if question_count == 0:
        raise ValidationFailed("A quiz needs at least one question before it can be published.")
    quiz.published_at = now or utcnow()
    db.add(quiz)
    db.flush()
    return quiz


def _content_title(db: Session, content_type: models.ContentType, content_id: str) -> str:
    if content_type == models.ContentType.QUIZ:
        quiz = get_quiz(db, content_id)
        return quiz.title
    return get_material(db, content_id).title


def release_content(
    db: Session,
    *,
    organization_id: str,
    content_type: models.ContentType,
    content_id: str,
    workforce_group,
    actor_user_id: Optional[str] = None,
    passing_score_override: Optional[int] = None,
    max_attempts: Optional[int] = None,
    now: Optional[datetime] = None,
) -> models.ContentRelease:
    """
    Release catalog content to one workforce group of an organization and
    notify the members of that group. Releasing the same content twice
    updates the existing release's overrides.
    """
    now = now or utcnow()
    group = _group_values([workforce_group]).pop()
    if content_type != models.ContentType.QUIZ and (
        passing_score_override is not None or max_attempts is not None
    ):
        raise ValidationFailed("Score and attempt overrides only apply to quiz releases.")
    title = _content_title(db, content_type, content_id)

    release = (
        db.query(models.ContentRelease)
        .filter(
            models.ContentRelease.organization_id == organization_id,
            models.ContentRelease.content_type == content_type,
            models.ContentRelease.content_id == content_id,
            models.ContentRelease.workforce_group == group,
        )
        .first()
    )
    created = release is None
    if created:
        release = models.ContentRelease(
            organization_id=organization_id,
            content_type=content_type,
            content_id=content_id,
            workforce_group=group,
            released_at=now,
            released_by_user_id=actor_user_id,
        )
    release.passing_score_override = passing_score_override
    release.max_attempts = max_attempts
    db.add(release)
    db.flush()

    audit_services.log_event(
        db,
        organization_id=organization_id,
        actor_user_id=actor_user_id,
        entity_type="catalog.content_release",
        entity_id=release.id,
        action="content_released" if created else "content_release_updated",
        after={
            "content_type": content_type.value,
            "content_id": content_id,
            "workforce_group": group,
            "passing_score_override": passing_score_override,
            "max_attempts": max_attempts,
        },
        occurred_at=now,
    )

    logger.info(
        "Content release saved",
        extra={"release_id": release.id, "workforce_group": group, "created": created},
    )

    if created:
        recipients = [
            member.email
            for member in db.query(account_models.User)
            .filter(
                account_models.User.organization_id == organization_id,
                account_models.User.is_active.is_(True),
            )
            .all()
            if group in _group_values(member.workforce_groups)
        ]
        notification_service.notify_members(
            db,
            organization_id=organization_id,
            recipients=recipients,
            template_key="content_released",
            subject=f"New training available: {title}",
            context={
                "title": title,
                "content_type": content_type.value,
                "workforce_group": group,
                "workforce_group_label": account_models.workforce_group_label(group),
            },
            correlation_id=release.id,
        )
    return release
