from __future__ import annotations

from sqlalchemy.orm import Session

from hubdb.errors import Forbidden, NotFound

from . import models


def get_member(db: Session, member_id: str) -> models.User:
    member = db.query(models.User).filter(models.User.id == str(member_id).strip()).first()
    if member is None:
        raise NotFound("Member not found.")
    return member


def resolve_member_for_actor(
    db: Session,
    *,
    actor: models.User,
    member_id: str,
) -> models.User:
    """
    Load a member the actor may look at.

    Members may always read their own data. Admins may read members of their
    own organization; platform owners may read any organization.
    """
    if member_id == actor.id:
        return actor

    member = get_member(db, member_id)
    if actor.role == models.AccountRole.PLATFORM_OWNER:
        return member
    if not actor.is_org_admin:
        raise Forbidden("Only organization admins may view other members.")
    if member.organization_id != actor.organization_id:
        raise Forbidden("Member is not in your organization.")
    return member
