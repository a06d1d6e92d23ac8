from __future__ import annotations

from datetime import timedelta

import pytest
from fastapi import HTTPException

from hubdb import security
from hubdb.apps.accounts import models as account_models
from hubdb.apps.accounts import services as account_services
from hubdb.errors import AttemptsExhausted, Forbidden, IntegrityViolation, NotFound, QuizLocked, ValidationFailed


def _create_org(db_session, slug: str) -> account_models.Organization:
    org = account_models.Organization(name=slug.title(), slug=slug)
    db_session.add(org)
    db_session.commit()
    return org


def _create_user(db_session, org_id: str, email: str, role=account_models.AccountRole.WORKFORCE_USER, **extra):
    user = account_models.User(
        organization_id=org_id,
        email=email,
        first_name="Test",
        last_name="User",
        role=role,
        workforce_groups=["administrative"],
        **extra,
    )
    db_session.add(user)
    db_session.commit()
    return user


def test_bearer_token_resolves_member(db_session):
    org = _create_org(db_session, "token-org")
    member = _create_user(db_session, org.id, "member@example.com")
    token = security.create_access_token(data={"sub": member.id, "org": org.id})

    assert security.get_current_user(token=token, db=db_session).id == member.id


def test_missing_or_invalid_token_is_unauthorized(db_session):
    with pytest.raises(HTTPException) as missing:
        security.get_current_user(token=None, db=db_session)
    assert missing.value.status_code == 401

    with pytest.raises(HTTPException) as garbage:
        security.get_current_user(token="not-a-jwt", db=db_session)
    assert garbage.value.status_code == 401

    expired = security.create_access_token(data={"sub": "USR-1"}, expires_delta=timedelta(minutes=-5))
    with pytest.raises(HTTPException) as stale:
        security.get_current_user(token=expired, db=db_session)
    assert stale.value.status_code == 401


def test_suspended_member_is_rejected(db_session):
    org = _create_org(db_session, "suspended-org")
    member = _create_user(
        db_session, org.id, "member@example.com", status=account_models.MemberStatus.SUSPENDED
    )

    with pytest.raises(HTTPException) as excinfo:
        security.get_current_active_user(current_user=member)
    assert excinfo.value.status_code == 403


def test_require_roles_admits_admins_and_platform_owner(db_session):
    org = _create_org(db_session, "roles-org")
    admin = _create_user(db_session, org.id, "admin@example.com", role=account_models.AccountRole.ORG_ADMIN)
    owner = _create_user(db_session, org.id, "owner@example.com", role=account_models.AccountRole.PLATFORM_OWNER)
    member = _create_user(db_session, org.id, "member@example.com")
    dependency = security.require_roles(account_models.AccountRole.ORG_ADMIN)

    assert dependency(current_user=admin) is admin
    assert dependency(current_user=owner) is owner
    with pytest.raises(HTTPException) as excinfo:
        dependency(current_user=member)
    assert excinfo.value.status_code == 403


def test_member_resolution_respects_tenancy(db_session):
    org = _create_org(db_session, "home")
    other = _create_org(db_session, "away")
    admin = _create_user(db_session, org.id, "admin@example.com", role=account_models.AccountRole.ORG_ADMIN)
    member = _create_user(db_session, org.id, "member@example.com")
    outsider = _create_user(db_session, other.id, "outsider@example.com")

    assert account_services.resolve_member_for_actor(db_session, actor=admin, member_id=member.id) is member
    assert account_services.resolve_member_for_actor(db_session, actor=member, member_id=member.id) is member
    with pytest.raises(Forbidden):
        account_services.resolve_member_for_actor(db_session, actor=admin, member_id=outsider.id)
    with pytest.raises(Forbidden):
        account_services.resolve_member_for_actor(db_session, actor=member, member_id=admin.id)
    with pytest.raises(NotFound):
        account_services.resolve_member_for_actor(db_session, actor=admin, member_id="USR-MISSING")


def test_domain_errors_carry_http_status_and_code():
    assert ValidationFailed("Answer count mismatch.").status_code == 422
    assert ValidationFailed("Answer count mismatch.").to_dict() == {
        "code": "validation_error",
        "detail": "Answer count mismatch.",
    }
    assert Forbidden("No.").status_code == 403
    assert QuizLocked("Locked.").status_code == 403
    assert NotFound("Gone.").status_code == 404
    assert AttemptsExhausted(used=3, maximum=3).status_code == 409
    assert IntegrityViolation("Duplicate.").status_code == 500


def test_member_table_matches_migrated_columns():
    assert set(account_models.User.__table__.c.keys()) == {
        "id",
        "organization_id",
        "email",
        "first_name",
        "last_name",
        "role",
        "status",
        "workforce_groups",
        "is_active",
        "created_at",
        "updated_at",
    }
