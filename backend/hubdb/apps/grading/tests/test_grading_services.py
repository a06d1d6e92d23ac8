from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from hubdb.apps.accounts import models as account_models
from hubdb.apps.assignments import models as assignment_models
from hubdb.apps.assignments import services as assignment_services
from hubdb.apps.audit import models as audit_models
from hubdb.apps.catalog import models as catalog_models
from hubdb.apps.catalog import services as catalog_services
from hubdb.apps.certificates import models as certificate_models
from hubdb.apps.certificates import services as certificate_services
from hubdb.apps.grading import models as grading_models
from hubdb.apps.grading import router as grading_router
from hubdb.apps.grading import schemas as grading_schemas
from hubdb.apps.grading import services as grading_services
from hubdb.apps.progress import services as progress_services
from hubdb.errors import (
    AttemptsExhausted,
    Forbidden,
    IntegrityViolation,
    NotFound,
    QuizLocked,
    ValidationFailed,
)

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


def _create_org(db_session) -> account_models.Organization:
    org = account_models.Organization(name="Riverside Clinic", slug="riverside")
    db_session.add(org)
    db_session.commit()
    return org


def _create_member(db_session, org_id: str, groups=("clinical",), email="nurse@example.com") -> account_models.User:
    member = account_models.User(
        organization_id=org_id,
        email=email,
        first_name="Nora",
        last_name="Nurse",
        role=account_models.AccountRole.WORKFORCE_USER,
        status=account_models.MemberStatus.ACTIVE,
        workforce_groups=list(groups),
    )
    db_session.add(member)
    db_session.commit()
    return member


def _release(db_session, org_id: str, content_type, content_id: str, group: str = "clinical") -> None:
    catalog_services.release_content(
        db_session,
        organization_id=org_id,
        content_type=content_type,
        content_id=content_id,
        workforce_group=group,
        now=NOW,
    )
    db_session.commit()


def _create_quiz(
    db_session, org_id, *, sequence_number: int = 1, questions: int = 5, group: str = "clinical"
) -> catalog_models.Quiz:
    quiz = catalog_services.create_quiz(
        db_session,
        title=f"Privacy Rule quiz {sequence_number}",
        sequence_number=sequence_number,
        workforce_groups=[group],
    )
    for number in range(1, questions + 1):
        catalog_services.add_question(
            db_session,
            quiz=quiz,
            question_number=number,
            question_text=f"Question {number}",
            options=[{"label": "A", "text": "Right"}, {"label": "B", "text": "Wrong"}],
            correct_answer="A",
            hipaa_section=f"164.50{number}",
        )
    catalog_services.publish_quiz(db_session, quiz=quiz, now=NOW)
    db_session.commit()
    if org_id is not None:
        _release(db_session, org_id, catalog_models.ContentType.QUIZ, quiz.id, group)
    return quiz


def _ready_member(db_session):
    org = _create_org(db_session)
    member = _create_member(db_session, org.id)
    material = catalog_services.create_material(
        db_session,
        material_key="privacy-basics",
        title="Privacy basics",
        sequence_number=1,
        workforce_groups=["clinical"],
    )
    db_session.commit()
    _release(db_session, org.id, catalog_models.ContentType.TRAINING_MATERIAL, material.id)
    quiz = _create_quiz(db_session, org.id)
    progress_services.complete_material(db_session, member, material.id, NOW)
    db_session.commit()
    return org, member, quiz


def _answers(db_session, quiz, *, correct: int, seconds: int = 30):
    questions = catalog_services.get_questions_for_quiz(db_session, quiz.id)
    return [
        {
            "question_id": question.id,
            "selected_option": "A" if index < correct else "B",
            "time_spent": seconds,
        }
        for index, question in enumerate(questions)
    ]


def test_compute_score_rounds_half_up():
    assert grading_services.compute_score(4, 5) == 80
    assert grading_services.compute_score(2, 3) == 67
    assert grading_services.compute_score(1, 8) == 13
    assert grading_services.compute_score(5, 8) == 63
    assert grading_services.compute_score(0, 5) == 0
    assert grading_services.compute_score(5, 5) == 100


def test_four_of_five_passes_and_issues_year_long_certificate(db_session):
    _, member, quiz = _ready_member(db_session)

    result = grading_services.submit_attempt(
        db_session, member, quiz.id, _answers(db_session, quiz, correct=4), "clinical", NOW
    )

    attempt = result.attempt
    assert attempt.score == 80
    assert attempt.passed is True
    assert attempt.passing_score == 80
    assert attempt.started_at == NOW - timedelta(seconds=150)
    assert result.replayed is False
    assert result.certificate is not None
    assert result.certificate.valid_until - result.certificate.issued_at == timedelta(days=365)
    assert result.certificate.certificate_number.startswith("HIPAA-CLI-")
    assert db_session.query(certificate_models.Certificate).count() == 1


def test_three_of_five_fails_without_certificate(db_session):
    _, member, quiz = _ready_member(db_session)

    result = grading_services.submit_attempt(
        db_session, member, quiz.id, _answers(db_session, quiz, correct=3), "clinical", NOW
    )

    assert result.attempt.score == 60
    assert result.attempt.passed is False
    assert result.certificate is None
    assert progress_services.compute_unlock_state(db_session, member).state_for(quiz.id) == "failed"


def test_answer_count_mismatch_persists_nothing_and_audits_rejection(db_session):
    _, member, quiz = _ready_member(db_session)
    answers = _answers(db_session, quiz, correct=4)[:4]

    with pytest.raises(ValidationFailed):
        grading_services.submit_attempt(db_session, member, quiz.id, answers, "clinical", NOW)

    assert db_session.query(grading_models.QuizAttempt).count() == 0
    rejection = (
        db_session.query(audit_models.AuditEvent)
        .filter(audit_models.AuditEvent.action == "rejected_validation_error")
        .one()
    )
    assert rejection.entity_id == quiz.id


def test_duplicate_and_unknown_question_ids_are_rejected(db_session):
    _, member, quiz = _ready_member(db_session)
    answers = _answers(db_session, quiz, correct=5)

    duplicated = answers[:-1] + [dict(answers[0])]
    with pytest.raises(ValidationFailed):
        grading_services.submit_attempt(db_session, member, quiz.id, duplicated, "clinical", NOW)

    unknown = answers[:-1] + [{"question_id": "QQ-NOPE", "selected_option": "A", "time_spent": 30}]
    with pytest.raises(ValidationFailed):
        grading_services.submit_attempt(db_session, member, quiz.id, unknown, "clinical", NOW)

    assert db_session.query(grading_models.QuizAttempt).count() == 0


def test_locked_quiz_is_rejected(db_session):
    _, member, _ = _ready_member(db_session)
    second = _create_quiz(db_session, member.organization_id, sequence_number=2)

    with pytest.raises(QuizLocked):
        grading_services.submit_attempt(
            db_session, member, second.id, _answers(db_session, second, correct=5), "clinical", NOW
        )
    assert db_session.query(grading_models.QuizAttempt).count() == 0


def test_group_outside_member_or_quiz_is_forbidden(db_session):
    _, member, quiz = _ready_member(db_session)

    with pytest.raises(Forbidden):
        grading_services.submit_attempt(
            db_session, member, quiz.id, _answers(db_session, quiz, correct=5), "it", NOW
        )


def test_unknown_quiz_is_not_found(db_session):
    _, member, _ = _ready_member(db_session)

    with pytest.raises(NotFound):
        grading_services.submit_attempt(db_session, member, "QZ-MISSING", [], "clinical", NOW)


def test_release_max_attempts_is_enforced(db_session):
    org, member, quiz = _ready_member(db_session)
    catalog_services.release_content(
        db_session,
        organization_id=org.id,
        content_type=catalog_models.ContentType.QUIZ,
        content_id=quiz.id,
        workforce_group="clinical",
        max_attempts=1,
        now=NOW,
    )
    db_session.commit()

    grading_services.submit_attempt(
        db_session, member, quiz.id, _answers(db_session, quiz, correct=1), "clinical", NOW
    )
    with pytest.raises(AttemptsExhausted) as excinfo:
        grading_services.submit_attempt(
            db_session, member, quiz.id, _answers(db_session, quiz, correct=5), "clinical", NOW
        )

    assert excinfo.value.used == 1
    assert excinfo.value.maximum == 1
    assert excinfo.value.to_dict()["max_attempts"] == 1
    assert db_session.query(grading_models.QuizAttempt).count() == 1


def test_release_passing_score_override_takes_precedence(db_session):
    org, member, quiz = _ready_member(db_session)
    catalog_services.release_content(
        db_session,
        organization_id=org.id,
        content_type=catalog_models.ContentType.QUIZ,
        content_id=quiz.id,
        workforce_group="clinical",
        passing_score_override=60,
        now=NOW,
    )
    db_session.commit()

    result = grading_services.submit_attempt(
        db_session, member, quiz.id, _answers(db_session, quiz, correct=3), "clinical", NOW
    )

    assert result.attempt.passing_score == 60
    assert result.attempt.passed is True


def test_idempotency_key_replays_existing_attempt(db_session):
    _, member, quiz = _ready_member(db_session)
    answers = _answers(db_session, quiz, correct=5)

    first = grading_services.submit_attempt(
        db_session, member, quiz.id, answers, "clinical", NOW, idempotency_key="submit-1"
    )
    second = grading_services.submit_attempt(
        db_session, member, quiz.id, answers, "clinical", NOW, idempotency_key="submit-1"
    )

    assert second.replayed is True
    assert second.attempt.id == first.attempt.id
    assert second.certificate.id == first.certificate.id
    assert db_session.query(grading_models.QuizAttempt).count() == 1


def test_fast_submission_is_flagged_but_graded(db_session):
    _, member, quiz = _ready_member(db_session)

    result = grading_services.submit_attempt(
        db_session, member, quiz.id, _answers(db_session, quiz, correct=5, seconds=1), "clinical", NOW
    )

    assert result.attempt.flagged_suspicious is True
    assert result.attempt.passed is True


def test_passing_attempt_completes_active_assignment(db_session):
    org, member, quiz = _ready_member(db_session)
    assignment = assignment_services.create_assignment(
        db_session,
        organization_id=org.id,
        assigned_to=member.id,
        workforce_group="clinical",
        due_date=(NOW + timedelta(days=30)).date(),
        now=NOW,
    )
    db_session.commit()

    grading_services.submit_attempt(
        db_session, member, quiz.id, _answers(db_session, quiz, correct=5), "clinical", NOW
    )

    db_session.refresh(assignment)
    assert assignment.status == assignment_models.AssignmentStatus.COMPLETED
    assert assignment.completion_basis == assignment_models.CompletionBasis.QUIZ_PASSED


def test_best_and_latest_attempt_views_differ(db_session):
    _, member, quiz = _ready_member(db_session)
    grading_services.submit_attempt(
        db_session, member, quiz.id, _answers(db_session, quiz, correct=5), "clinical", NOW
    )
    grading_services.submit_attempt(
        db_session,
        member,
        quiz.id,
        _answers(db_session, quiz, correct=2),
        "clinical",
        NOW + timedelta(hours=1),
    )

    best = grading_services.best_attempt(db_session, member.id, quiz.id)
    latest = grading_services.latest_attempt(db_session, member.id, quiz.id)
    summary = grading_services.attempt_summary(db_session, member, quiz.id)

    assert best.score == 100
    assert latest.score == 40
    assert summary["state"] == "passed"
    assert summary["attempts_used"] == 2
    assert summary["max_attempts"] is None


def test_wrong_answer_summary_groups_by_hipaa_section(db_session):
    org, member, quiz = _ready_member(db_session)
    grading_services.submit_attempt(
        db_session, member, quiz.id, _answers(db_session, quiz, correct=4), "clinical", NOW
    )

    summary = grading_services.wrong_answer_summary(db_session, org.id)

    assert summary["attempts_analyzed"] == 1
    assert summary["sections"] == [
        {"hipaa_section": "164.505", "incorrect": 1, "answered": 1, "error_rate": 1.0}
    ]
    assert grading_services.wrong_answer_summary(db_session, org.id, group="it")["attempts_analyzed"] == 0


def test_submit_route_returns_score_and_certificate(db_session):
    _, member, quiz = _ready_member(db_session)
    payload = grading_schemas.AttemptSubmit(
        workforce_group=account_models.WorkforceGroup.CLINICAL,
        answers=[grading_schemas.AnswerSubmit(**answer) for answer in _answers(db_session, quiz, correct=5)],
    )

    response = grading_router.submit_attempt(
        quiz.id,
        payload,
        db=db_session,
        current_user=member,
        clock=lambda: NOW,
    )

    assert response.score == 100
    assert response.passed is True
    assert response.certificate is not None
    assert len(response.attempt.answers) == 5


def test_unreleased_quiz_is_forbidden(db_session):
    _, member, _ = _ready_member(db_session)
    unreleased = _create_quiz(db_session, None, sequence_number=1)

    with pytest.raises(Forbidden) as excinfo:
        grading_services.submit_attempt(
            db_session, member, unreleased.id, _answers(db_session, unreleased, correct=5), "clinical", NOW
        )

    assert excinfo.value.code == "forbidden"
    assert db_session.query(grading_models.QuizAttempt).count() == 0


def test_all_staff_quiz_is_taken_under_member_group(db_session):
    org, member, _ = _ready_member(db_session)
    everyone = _create_quiz(db_session, org.id, sequence_number=3, group="all_staff")

    result = grading_services.submit_attempt(
        db_session, member, everyone.id, _answers(db_session, everyone, correct=5), "clinical", NOW
    )

    assert result.attempt.workforce_group_at_time == "clinical"
    assert result.attempt.passed is True


def test_idempotency_key_is_bound_to_one_quiz(db_session):
    org, member, quiz = _ready_member(db_session)
    second = _create_quiz(db_session, org.id, sequence_number=2)

    grading_services.submit_attempt(
        db_session,
        member,
        quiz.id,
        _answers(db_session, quiz, correct=5),
        "clinical",
        NOW,
        idempotency_key="submit-1",
    )
    with pytest.raises(ValidationFailed):
        grading_services.submit_attempt(
            db_session,
            member,
            second.id,
            _answers(db_session, second, correct=5),
            "clinical",
            NOW,
            idempotency_key="submit-1",
        )

    attempts = db_session.query(grading_models.QuizAttempt).all()
    assert [attempt.quiz_id for attempt in attempts] == [quiz.id]


def test_failed_certificate_issuance_still_completes_assignment(db_session, monkeypatch):
    org, member, quiz = _ready_member(db_session)
    assignment = assignment_services.create_assignment(
        db_session,
        organization_id=org.id,
        assigned_to=member.id,
        workforce_group="clinical",
        due_date=(NOW + timedelta(days=30)).date(),
        now=NOW,
    )
    db_session.commit()

    def collide(db, attempt, now):
        raise IntegrityViolation("Certificate could not be recorded.")

    monkeypatch.setattr(certificate_services, "issue_certificate", collide)

    with pytest.raises(IntegrityViolation):
        grading_services.submit_attempt(
            db_session, member, quiz.id, _answers(db_session, quiz, correct=5), "clinical", NOW
        )

    db_session.refresh(assignment)
    assert assignment.status == assignment_models.AssignmentStatus.COMPLETED
    assert db_session.query(grading_models.QuizAttempt).filter_by(passed=True).count() == 1
