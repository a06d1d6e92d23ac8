from __future__ import annotations

from datetime import datetime, timezone

import pytest

from hubdb.apps.accounts import models as account_models
from hubdb.apps.audit import models as audit_models
from hubdb.apps.workflow import TransitionError, apply_transition, can_transition

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


def _create_org(db_session) -> account_models.Organization:
    org = account_models.Organization(name="Workflow Org", slug="workflow")
    db_session.add(org)
    db_session.commit()
    return org


def test_assignment_transitions_only_move_forward():
    assert can_transition("training_assignment", "assigned", "in_progress")
    assert can_transition("training_assignment", "assigned", "completed")
    assert can_transition("training_assignment", "in_progress", "completed")
    assert not can_transition("training_assignment", "completed", "in_progress")
    assert not can_transition("training_assignment", "in_progress", "assigned")


def test_completed_assignment_cannot_reopen(db_session):
    org = _create_org(db_session)

    with pytest.raises(TransitionError) as excinfo:
        apply_transition(
            db_session,
            actor_user_id=None,
            entity_type="training_assignment",
            entity_id="A-1",
            from_state="completed",
            to_state="in_progress",
            before_obj={"organization_id": org.id},
            after_obj={"organization_id": org.id, "started_at": NOW},
        )
    assert excinfo.value.code == "invalid_transition"


def test_completion_guard_reports_missing_fields(db_session):
    org = _create_org(db_session)

    with pytest.raises(TransitionError) as excinfo:
        apply_transition(
            db_session,
            actor_user_id=None,
            entity_type="training_assignment",
            entity_id="A-1",
            from_state="in_progress",
            to_state="completed",
            before_obj={"organization_id": org.id},
            after_obj={"organization_id": org.id},
        )
    fields = {item["field"] for item in excinfo.value.detail}
    assert excinfo.value.code == "missing_requirements"
    assert fields == {"completed_at", "completion_basis"}


def test_accepted_transition_is_audited(db_session):
    org = _create_org(db_session)

    apply_transition(
        db_session,
        actor_user_id=None,
        entity_type="training_assignment",
        entity_id="A-1",
        from_state="assigned",
        to_state="in_progress",
        before_obj={"organization_id": org.id, "started_at": None},
        after_obj={"organization_id": org.id, "started_at": NOW},
    )
    db_session.commit()

    event = db_session.query(audit_models.AuditEvent).one()
    assert event.action == "transition"
    assert event.before == {"status": "assigned", "started_at": None}
    assert event.after == {"status": "in_progress", "started_at": NOW.isoformat()}
