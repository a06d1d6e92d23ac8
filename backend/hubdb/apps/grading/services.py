from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hubdb.apps.accounts import models as account_models
from hubdb.apps.assignments import services as assignment_services
from hubdb.apps.audit import services as audit_services
from hubdb.apps.catalog import models as catalog_models
from hubdb.apps.catalog import services as catalog_services
from hubdb.apps.certificates import models as certificate_models
from hubdb.apps.certificates import services as certificate_services
from hubdb.apps.progress import services as progress_services
from hubdb.errors import (
    AttemptsExhausted,
    Forbidden,
    IntegrityViolation,
    NotFound,
    QuizLocked,
    ValidationFailed,
)

from . import models

logger = logging.getLogger(__name__)

# Less than this many seconds per question in total is implausibly fast.
MIN_SECONDS_PER_QUESTION = 5

ENTITY_TYPE = "grading.quiz_attempt"


@dataclass
class SubmissionResult:
    attempt: models.QuizAttempt
    certificate: Optional[certificate_models.Certificate] = None
    replayed: bool = False


# ---------------------------------------------------------------------------
# PURE GRADING
# ---------------------------------------------------------------------------


def compute_score(correct_count: int, total_questions: int) -> int:
    """Percentage rounded half up, so 2 of 3 is 67 and 5 of 8 is 63."""
    if total_questions <= 0:
        return 0
    return (200 * correct_count + total_questions) // (2 * total_questions)


def _answer_field(answer: Any, name: str) -> Any:
    if isinstance(answer, dict):
        return answer.get(name)
    return getattr(answer, name, None)


def grade_answers(
    questions: Sequence[catalog_models.QuizQuestion],
    answers: Iterable[Any],
) -> List[Dict[str, Any]]:
    """
    Grade submitted answers against the stored answer key.

    Every question must be answered exactly once; anything else is rejected
    before a row is written. Graded answers come back in question order.
    """
    answers = list(answers or [])
    if len(answers) != len(questions):
        raise ValidationFailed(f"Expected {len(questions)} answers, received {len(answers)}.")

    by_id = {question.id: question for question in questions}
    submitted: Dict[str, Dict[str, Any]] = {}
    for answer in answers:
        question_id = str(_answer_field(answer, "question_id") or "")
        if question_id not in by_id:
            raise ValidationFailed(f"Unknown question '{question_id}' for this quiz.")
        if question_id in submitted:
            raise ValidationFailed(f"Question '{question_id}' was answered more than once.")
        time_spent = _answer_field(answer, "time_spent") or 0
        try:
            time_spent = int(time_spent)
        except (TypeError, ValueError):
            raise ValidationFailed("time_spent must be a whole number of seconds.")
        if time_spent < 0:
            raise ValidationFailed("time_spent cannot be negative.")
        submitted[question_id] = {
            "selected_option": str(_answer_field(answer, "selected_option") or ""),
            "time_spent": time_spent,
        }

    graded: List[Dict[str, Any]] = []
    for question in sorted(questions, key=lambda q: q.question_number):
        entry = submitted[question.id]
        graded.append(
            {
                "question_id": question.id,
                "question_number": question.question_number,
                "selected_option": entry["selected_option"],
                "correct_answer": question.correct_answer,
                "is_correct": entry["selected_option"] == question.correct_answer,
                "time_spent": entry["time_spent"],
                "hipaa_section": question.hipaa_section,
            }
        )
    return graded


def is_suspicious_timing(total_time_spent: int, total_questions: int) -> bool:
    return total_time_spent < total_questions * MIN_SECONDS_PER_QUESTION


# ---------------------------------------------------------------------------
# SUBMISSION
# ---------------------------------------------------------------------------


def _lock_member(db: Session, member: account_models.User) -> None:
    # Serialises submissions per member; SQLite ignores FOR UPDATE.
    db.query(account_models.User).filter(account_models.User.id == member.id).with_for_update().first()


def _resolve_group(member: account_models.User, quiz: catalog_models.Quiz, workforce_group: Optional[str]) -> str:
    member_groups = {group.value for group in member.groups}
    quiz_groups = set(quiz.workforce_groups or [])
    if not workforce_group:
        raise Forbidden("A workforce group is required to take this quiz.")
    group = getattr(workforce_group, "value", workforce_group)
    if group not in member_groups:
        raise Forbidden("You are not a member of this workforce group.")
    if group not in quiz_groups and account_models.WorkforceGroup.ALL_STAFF.value not in quiz_groups:
        raise Forbidden("This quiz is not part of your workforce group's curriculum.")
    return group


def default_group(member: account_models.User, quiz: catalog_models.Quiz) -> Optional[str]:
    member_groups = {group.value for group in member.groups}
    quiz_groups = set(quiz.workforce_groups or [])
    if account_models.WorkforceGroup.ALL_STAFF.value in quiz_groups:
        shared = sorted(member_groups)
    else:
        shared = sorted(member_groups & quiz_groups)
    return shared[0] if shared else None


def _attempt_for_key(db: Session, member_id: str, idempotency_key: str) -> Optional[models.QuizAttempt]:
    return (
        db.query(models.QuizAttempt)
        .filter(
            models.QuizAttempt.user_id == member_id,
            models.QuizAttempt.idempotency_key == idempotency_key,
        )
        .first()
    )


def count_attempts(db: Session, member_id: str, quiz_id: str) -> int:
    return (
        db.query(models.QuizAttempt)
        .filter(models.QuizAttempt.user_id == member_id, models.QuizAttempt.quiz_id == quiz_id)
        .count()
    )


def _replay(db: Session, attempt: models.QuizAttempt, quiz_id: str) -> SubmissionResult:
    if attempt.quiz_id != quiz_id:
        raise ValidationFailed("This idempotency key was already used for a different quiz.")
    return SubmissionResult(
        attempt=attempt,
        certificate=certificate_services.get_certificate_for_attempt(db, attempt.id),
        replayed=True,
    )


def submit_attempt(
    db: Session,
    member: account_models.User,
    quiz_id: str,
    answers: Iterable[Any],
    workforce_group: Optional[str],
    now: datetime,
    idempotency_key: Optional[str] = None,
) -> SubmissionResult:
    """
    Grade and persist one quiz submission.

    Rejections (unknown quiz, wrong group, locked quiz, malformed answers,
    exhausted attempts) are audited and persist nothing else. An accepted
    submission writes exactly one attempt and commits it before a passing
    attempt completes its assignment and gets its certificate.
    """
    try:
        _lock_member(db, member)
        quiz = catalog_services.get_quiz(db, quiz_id)
        group = _resolve_group(member, quiz, workforce_group)
        released_groups = catalog_services.curriculum_groups([group])
        if not catalog_services.is_released(
            db, member.organization_id, catalog_models.ContentType.QUIZ, quiz.id, released_groups
        ):
            raise Forbidden("This quiz has not been released to your organization.")

        if idempotency_key:
            existing = _attempt_for_key(db, member.id, idempotency_key)
            if existing is not None:
                return _replay(db, existing, quiz.id)

        state = progress_services.compute_unlock_state(db, member).state_for(quiz.id)
        if state == progress_services.LOCKED:
            raise QuizLocked("Complete the required training materials and earlier quizzes first.")

        questions = catalog_services.get_questions_for_quiz(db, quiz.id)
        graded = grade_answers(questions, answers)

        passing_score, max_attempts = catalog_services.resolve_quiz_policy(
            db, member.organization_id, quiz, group
        )
        used = count_attempts(db, member.id, quiz.id)
        if max_attempts is not None and used >= max_attempts:
            raise AttemptsExhausted(used=used, maximum=max_attempts)
    except (Forbidden, NotFound, ValidationFailed, AttemptsExhausted) as exc:
        audit_services.record_rejection(
            db,
            organization_id=member.organization_id,
            actor_user_id=member.id,
            entity_type=ENTITY_TYPE,
            entity_id=str(quiz_id),
            error=exc,
            metadata={"workforce_group": str(getattr(workforce_group, "value", workforce_group))},
        )
        raise

    total = len(graded)
    correct = sum(1 for entry in graded if entry["is_correct"])
    score = compute_score(correct, total)
    passed = score >= passing_score
    total_time = sum(entry["time_spent"] for entry in graded)
    flagged = is_suspicious_timing(total_time, total)
    if flagged:
        logger.warning(
            "Suspiciously fast quiz submission",
            extra={
                "user_id": member.id,
                "quiz_id": quiz.id,
                "total_time_spent": total_time,
                "total_questions": total,
            },
        )

    attempt = models.QuizAttempt(
        organization_id=member.organization_id,
        user_id=member.id,
        quiz_id=quiz.id,
        quiz_version=quiz.version,
        workforce_group_at_time=group,
        score=score,
        correct_count=correct,
        total_questions=total,
        passing_score=passing_score,
        passed=passed,
        answers=graded,
        total_time_spent=total_time,
        flagged_suspicious=flagged,
        idempotency_key=idempotency_key,
        started_at=now - timedelta(seconds=total_time),
        completed_at=now,
    )
    db.add(attempt)
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        if idempotency_key:
            existing = _attempt_for_key(db, member.id, idempotency_key)
            if existing is not None:
                return _replay(db, existing, quiz.id)
        logger.error(
            "Quiz attempt insert violated a constraint",
            extra={"user_id": member.id, "quiz_id": quiz.id},
        )
        raise IntegrityViolation("Quiz attempt could not be recorded.") from exc

    audit_services.log_event(
        db,
        organization_id=member.organization_id,
        actor_user_id=member.id,
        entity_type=ENTITY_TYPE,
        entity_id=attempt.id,
        action="quiz_submitted",
        after={
            "quiz_id": quiz.id,
            "score": score,
            "passed": passed,
            "passing_score": passing_score,
            "flagged_suspicious": flagged,
        },
        occurred_at=now,
        critical=True,
    )
    db.commit()

    certificate = None
    if passed:
        assignment_services.on_quiz_passed(db, attempt, now)
        db.commit()
        certificate, _ = certificate_services.issue_certificate(db, attempt, now)
        db.commit()
    return SubmissionResult(attempt=attempt, certificate=certificate, replayed=False)


# ---------------------------------------------------------------------------
# VIEWS
# ---------------------------------------------------------------------------


def list_attempts(db: Session, member_id: str, quiz_id: str) -> List[models.QuizAttempt]:
    return (
        db.query(models.QuizAttempt)
        .filter(models.QuizAttempt.user_id == member_id, models.QuizAttempt.quiz_id == quiz_id)
        .order_by(models.QuizAttempt.completed_at.desc())
        .all()
    )


def best_attempt(db: Session, member_id: str, quiz_id: str) -> Optional[models.QuizAttempt]:
    """Passing attempts first, then highest score, then the earliest."""
    attempts = list_attempts(db, member_id, quiz_id)
    if not attempts:
        return None
    return sorted(attempts, key=lambda a: (not a.passed, -a.score, a.completed_at))[0]


def latest_attempt(db: Session, member_id: str, quiz_id: str) -> Optional[models.QuizAttempt]:
    attempts = list_attempts(db, member_id, quiz_id)
    return attempts[0] if attempts else None


def attempt_summary(db: Session, member: account_models.User, quiz_id: str) -> dict:
    quiz = catalog_services.get_quiz(db, quiz_id)
    passing_score, max_attempts = catalog_services.resolve_quiz_policy(
        db, member.organization_id, quiz, default_group(member, quiz)
    )
    used = count_attempts(db, member.id, quiz.id)
    return {
        "quiz_id": quiz.id,
        "state": progress_services.compute_unlock_state(db, member).state_for(quiz.id),
        "passing_score": passing_score,
        "max_attempts": max_attempts,
        "attempts_used": used,
        "attempts_remaining": None if max_attempts is None else max(max_attempts - used, 0),
        "best_attempt": best_attempt(db, member.id, quiz.id),
        "latest_attempt": latest_attempt(db, member.id, quiz.id),
    }


def wrong_answer_summary(db: Session, organization_id: str, group: Optional[str] = None) -> dict:
    """
    Wrong answers per HIPAA section across an organization's attempts.

    Read-only input for the weakness analysis; it never feeds back into
    grading or unlock state.
    """
    query = db.query(models.QuizAttempt).filter(models.QuizAttempt.organization_id == organization_id)
    if group:
        query = query.filter(models.QuizAttempt.workforce_group_at_time == group)
    attempts = query.all()

    answered: Dict[str, int] = defaultdict(int)
    incorrect: Dict[str, int] = defaultdict(int)
    for attempt in attempts:
        for entry in attempt.answers or []:
            section = entry.get("hipaa_section") or "unknown"
            answered[section] += 1
            if not entry.get("is_correct"):
                incorrect[section] += 1

    sections = [
        {
            "hipaa_section": section,
            "incorrect": incorrect[section],
            "answered": answered[section],
            "error_rate": round(incorrect[section] / answered[section], 4) if answered[section] else 0.0,
        }
        for section in answered
        if incorrect[section]
    ]
    sections.sort(key=lambda item: (-item["incorrect"], item["hipaa_section"]))
    return {
        "organization_id": organization_id,
        "workforce_group": group,
        "attempts_analyzed": len(attempts),
        "sections": sections,
    }
