from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy.orm import Session

from hubdb.errors import TrainingError

from . import models, schemas

logger = logging.getLogger(__name__)


def create_audit_event(
    db: Session,
    *,
    organization_id: str,
    data: schemas.AuditEventCreate,
) -> models.AuditEvent:
    event = models.AuditEvent(
        organization_id=organization_id,
        entity_type=data.entity_type,
        entity_id=data.entity_id,
        action=data.action,
        actor_user_id=data.actor_user_id,
        before=data.before,
        after=data.after,
        correlation_id=data.correlation_id,
        metadata_json=data.metadata,
    )
    if data.occurred_at is not None:
        event.occurred_at = data.occurred_at
    db.add(event)
    db.flush()
    return event


def log_event(
    db: Session,
    *,
    organization_id: str,
    actor_user_id: Optional[str],
    entity_type: str,
    entity_id: str,
    action: str,
    before: Optional[dict] = None,
    after: Optional[dict] = None,
    correlation_id: Optional[str] = None,
    metadata: Optional[dict] = None,
    occurred_at: Optional[datetime] = None,
    critical: bool = False,
) -> Optional[models.AuditEvent]:
    """
    Audit event logger used for every state change.
    - For critical actions (grading, certificate issuance), raise on failure.
    - For non-critical actions, log warning and continue.
    """
    try:
        return create_audit_event(
            db,
            organization_id=organization_id,
            data=schemas.AuditEventCreate(
                entity_type=entity_type,
                entity_id=entity_id,
                action=action,
                actor_user_id=actor_user_id,
                before=before,
                after=after,
                correlation_id=correlation_id,
                metadata=metadata,
                occurred_at=occurred_at,
            ),
        )
    except Exception:
        logger.warning(
            "Failed to log audit event",
            extra={
                "organization_id": organization_id,
                "entity_type": entity_type,
                "entity_id": entity_id,
                "action": action,
                "critical": critical,
            },
        )
        if critical:
            raise
        return None


def record_rejection(
    db: Session,
    *,
    organization_id: str,
    actor_user_id: Optional[str],
    entity_type: str,
    entity_id: str,
    error: TrainingError,
    metadata: Optional[dict] = None,
) -> Optional[models.AuditEvent]:
    """
    Persist a rejected request on its own.

    Rejections happen before any domain write, so anything pending in the
    session is rolled back and only the audit row is committed. The caller
    re-raises the error afterwards.
    """
    db.rollback()
    event = log_event(
        db,
        organization_id=organization_id,
        actor_user_id=actor_user_id,
        entity_type=entity_type,
        entity_id=entity_id,
        action=f"rejected_{error.code}",
        after={"detail": error.detail, **error.extra},
        metadata=metadata,
    )
    if event is None:
        db.rollback()
        return None
    try:
        db.commit()
    except Exception:
        logger.warning(
            "Failed to commit rejection audit event",
            extra={"organization_id": organization_id, "action": event.action},
        )
        db.rollback()
        return None
    return event


def list_audit_events(
    db: Session,
    *,
    organization_id: str,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    action: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> Sequence[models.AuditEvent]:
    query = db.query(models.AuditEvent).filter(models.AuditEvent.organization_id == organization_id)
    if entity_type:
        query = query.filter(models.AuditEvent.entity_type == entity_type)
    if entity_id:
        query = query.filter(models.AuditEvent.entity_id == entity_id)
    if action:
        query = query.filter(models.AuditEvent.action == action)
    if start:
        query = query.filter(models.AuditEvent.occurred_at >= start)
    if end:
        query = query.filter(models.AuditEvent.occurred_at <= end)
    return query.order_by(models.AuditEvent.occurred_at.desc()).all()
