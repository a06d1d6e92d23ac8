from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone

import pytest

from hubdb.apps.accounts import models as account_models
from hubdb.apps.audit import models as audit_models
from hubdb.apps.catalog import models as catalog_models
from hubdb.apps.certificates import models as certificate_models
from hubdb.apps.certificates import router as certificate_router
from hubdb.apps.certificates import services as certificate_services
from hubdb.apps.grading import models as grading_models
from hubdb.errors import Forbidden, IntegrityViolation, ValidationFailed

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


def _setup(db_session):
    org = account_models.Organization(name="Summit Dental", slug="summit")
    db_session.add(org)
    db_session.commit()
    member = account_models.User(
        organization_id=org.id,
        email="hygienist@example.com",
        first_name="Hal",
        last_name="Hygienist",
        workforce_groups=["clinical"],
    )
    quiz = catalog_models.Quiz(
        title="Breach Notification",
        sequence_number=1,
        workforce_groups=["clinical"],
        hipaa_citations=["45 CFR §164.404", "45 CFR §164.410"],
        published_at=NOW,
    )
    db_session.add_all([member, quiz])
    db_session.commit()
    return org, member, quiz


def _attempt(db_session, member, quiz, *, passed: bool = True) -> grading_models.QuizAttempt:
    attempt = grading_models.QuizAttempt(
        organization_id=member.organization_id,
        user_id=member.id,
        quiz_id=quiz.id,
        workforce_group_at_time="clinical",
        score=100 if passed else 40,
        correct_count=2 if passed else 1,
        total_questions=2,
        passing_score=80,
        passed=passed,
        answers=[
            {"question_id": "q1", "is_correct": True, "hipaa_section": "164.404"},
            {"question_id": "q2", "is_correct": passed, "hipaa_section": "164.410"},
        ],
        total_time_spent=60,
        completed_at=NOW,
    )
    db_session.add(attempt)
    db_session.commit()
    return attempt


def test_failed_attempt_gets_no_certificate(db_session):
    _, member, quiz = _setup(db_session)
    attempt = _attempt(db_session, member, quiz, passed=False)

    with pytest.raises(ValidationFailed):
        certificate_services.issue_certificate(db_session, attempt, NOW)


def test_certificate_is_issued_once_per_attempt(db_session):
    _, member, quiz = _setup(db_session)
    attempt = _attempt(db_session, member, quiz)

    first, created = certificate_services.issue_certificate(db_session, attempt, NOW)
    db_session.commit()
    again, created_again = certificate_services.issue_certificate(db_session, attempt, NOW + timedelta(hours=1))

    assert created is True
    assert created_again is False
    assert again.id == first.id
    assert re.fullmatch(r"HIPAA-CLI-[0-9A-Z]+-[0-9A-F]{4}", first.certificate_number)
    assert first.hipaa_citations == ["45 CFR §164.404", "45 CFR §164.410"]
    assert first.valid_until == NOW + timedelta(days=365)
    assert db_session.query(certificate_models.Certificate).count() == 1
    assert (
        db_session.query(audit_models.AuditEvent)
        .filter(audit_models.AuditEvent.action == "certificate_issued")
        .count()
        == 1
    )


def test_number_collision_raises_integrity_violation(db_session, monkeypatch):
    _, member, quiz = _setup(db_session)
    first_attempt = _attempt(db_session, member, quiz)
    second_attempt = _attempt(db_session, member, quiz)
    monkeypatch.setattr(
        certificate_services,
        "build_certificate_number",
        lambda group, issued_at: "HIPAA-CLI-FIXED-0000",
    )

    certificate_services.issue_certificate(db_session, first_attempt, NOW)
    db_session.commit()

    with pytest.raises(IntegrityViolation):
        certificate_services.issue_certificate(db_session, second_attempt, NOW)
    assert db_session.query(certificate_models.Certificate).count() == 1


def test_validity_is_judged_against_valid_until(db_session):
    _, member, quiz = _setup(db_session)
    certificate, _ = certificate_services.issue_certificate(db_session, _attempt(db_session, member, quiz), NOW)

    assert certificate_services.is_valid(certificate, NOW + timedelta(days=364)) is True
    assert certificate_services.is_valid(certificate, NOW + timedelta(days=366)) is False


def test_certificate_route_hides_other_members_certificates(db_session):
    org, member, quiz = _setup(db_session)
    certificate, _ = certificate_services.issue_certificate(db_session, _attempt(db_session, member, quiz), NOW)
    db_session.commit()
    colleague = account_models.User(
        organization_id=org.id,
        email="colleague@example.com",
        first_name="Cal",
        last_name="Colleague",
        workforce_groups=["clinical"],
    )
    db_session.add(colleague)
    db_session.commit()

    own = certificate_router.get_certificate(
        certificate.id, db=db_session, current_user=member, clock=lambda: NOW
    )
    assert own.certificate_number == certificate.certificate_number
    assert own.is_valid is True

    with pytest.raises(Forbidden):
        certificate_router.get_certificate(certificate.id, db=db_session, current_user=colleague, clock=lambda: NOW)
