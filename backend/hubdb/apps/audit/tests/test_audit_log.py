from __future__ import annotations

from datetime import datetime, timezone

import pytest
from sqlalchemy.exc import IntegrityError

from hubdb.apps.accounts import models as account_models
from hubdb.apps.audit import models as audit_models
from hubdb.apps.audit import router as audit_router
from hubdb.apps.audit import services as audit_services
from hubdb.errors import AttemptsExhausted

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


def _create_org(db_session, slug: str = "audit-org") -> account_models.Organization:
    org = account_models.Organization(name="Audit Org", slug=slug)
    db_session.add(org)
    db_session.commit()
    return org


def _create_admin(db_session, org_id: str) -> account_models.User:
    admin = account_models.User(
        organization_id=org_id,
        email="privacy.officer@example.com",
        first_name="Pat",
        last_name="Officer",
        role=account_models.AccountRole.ORG_ADMIN,
        workforce_groups=["management"],
    )
    db_session.add(admin)
    db_session.commit()
    return admin


def test_log_event_writes_row(db_session):
    org = _create_org(db_session)

    event = audit_services.log_event(
        db_session,
        organization_id=org.id,
        actor_user_id=None,
        entity_type="progress.training_material",
        entity_id="MAT-1",
        action="training_material_completed",
        after={"version": 1},
        occurred_at=NOW,
    )
    db_session.commit()

    assert event is not None
    stored = db_session.query(audit_models.AuditEvent).one()
    assert stored.after == {"version": 1}


def test_non_critical_failure_is_swallowed_and_critical_raises(db_session):
    kwargs = dict(
        organization_id=None,
        actor_user_id=None,
        entity_type="grading.quiz_attempt",
        entity_id="attempt-1",
        action="quiz_submitted",
    )

    assert audit_services.log_event(db_session, **kwargs) is None
    db_session.rollback()

    with pytest.raises(IntegrityError):
        audit_services.log_event(db_session, critical=True, **kwargs)
    db_session.rollback()


def test_record_rejection_discards_pending_work_and_keeps_audit_row(db_session):
    org = _create_org(db_session)
    db_session.add(account_models.Organization(name="Pending", slug="pending"))

    event = audit_services.record_rejection(
        db_session,
        organization_id=org.id,
        actor_user_id=None,
        entity_type="grading.quiz_attempt",
        entity_id="QZ-1",
        error=AttemptsExhausted(used=3, maximum=3),
    )

    assert event.action == "rejected_attempts_exhausted"
    assert event.after["attempts_used"] == 3
    assert db_session.query(account_models.Organization).count() == 1
    assert db_session.query(audit_models.AuditEvent).count() == 1


def test_audit_route_is_scoped_to_admin_organization(db_session):
    org = _create_org(db_session)
    other = _create_org(db_session, slug="other-org")
    admin = _create_admin(db_session, org.id)
    for organization_id in (org.id, other.id):
        audit_services.log_event(
            db_session,
            organization_id=organization_id,
            actor_user_id=None,
            entity_type="training_assignment",
            entity_id="A-1",
            action="assignment_created",
        )
    db_session.commit()

    events = audit_router.list_audit_events(
        entity_type=None,
        entity_id=None,
        action="assignment_created",
        start=None,
        end=None,
        db=db_session,
        current_user=admin,
    )

    assert [event.organization_id for event in events] == [org.id]
