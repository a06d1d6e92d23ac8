from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from hubdb.clock import utcnow

from . import models, providers

logger = logging.getLogger(__name__)


def send_email(
    db: Session,
    template_key: str,
    recipient: str,
    subject: str,
    context: dict,
    correlation_id: Optional[str],
    *,
    organization_id: str,
    critical: bool = False,
) -> models.EmailLog:
    if not organization_id:
        raise ValueError("organization_id is required to create an email log entry")
    log = models.EmailLog(
        organization_id=organization_id,
        recipient=recipient,
        subject=subject,
        template_key=template_key,
        status=models.EmailStatus.QUEUED,
        context_json=context or {},
        correlation_id=correlation_id,
    )
    db.add(log)
    db.flush()

    provider, configured = providers.get_email_provider()
    if not configured:
        log.status = models.EmailStatus.SKIPPED_NO_PROVIDER
        log.error = "No provider configured"
        return log

    try:
        provider.send(
            template_key=template_key,
            recipient=recipient,
            subject=subject,
            context=context or {},
            correlation_id=correlation_id,
        )
        log.status = models.EmailStatus.SENT
        log.sent_at = utcnow()
    except Exception as exc:
        log.status = models.EmailStatus.FAILED
        log.error = str(exc)
        if critical:
            raise
    return log


def notify_members(
    db: Session,
    *,
    organization_id: str,
    recipients: Iterable[str],
    template_key: str,
    subject: str,
    context: dict,
    correlation_id: Optional[str] = None,
) -> List[models.EmailLog]:
    """
    Fire-and-forget fan-out used after assignment creation and content release.

    Delivery problems are logged and never propagate: the assignment or
    release that triggered the notification has already been recorded.
    """
    logs: List[models.EmailLog] = []
    for recipient in recipients:
        try:
            logs.append(
                send_email(
                    db,
                    template_key,
                    recipient,
                    subject,
                    context,
                    correlation_id,
                    organization_id=organization_id,
                )
            )
        except Exception:
            logger.warning(
                "Notification dispatch failed",
                extra={
                    "organization_id": organization_id,
                    "template_key": template_key,
                    "recipient": recipient,
                },
            )
    return logs
