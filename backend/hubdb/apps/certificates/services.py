from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hubdb.apps.audit import services as audit_services
from hubdb.clock import ensure_aware
from hubdb.errors import IntegrityViolation, NotFound, ValidationFailed
from hubdb.utils.identifiers import to_base36

from . import models

logger = logging.getLogger(__name__)


def build_certificate_number(workforce_group: str, issued_at: datetime) -> str:
    """HIPAA-<GRP>-<base36 epoch ms>-<random>, e.g. HIPAA-CLI-LXQ2Z9K1-4F7A."""
    group_code = (workforce_group or "GEN")[:3].upper()
    millis = int(ensure_aware(issued_at).timestamp() * 1000)
    return f"HIPAA-{group_code}-{to_base36(millis)}-{secrets.token_hex(2).upper()}"


def get_certificate_for_attempt(db: Session, attempt_id: str) -> Optional[models.Certificate]:
    return db.query(models.Certificate).filter(models.Certificate.quiz_attempt_id == attempt_id).first()


def issue_certificate(db: Session, attempt, now: datetime) -> Tuple[models.Certificate, bool]:
    """
    Issue the certificate for a passing attempt.

    Returns (certificate, created). An attempt that already has a certificate
    gets it back with created=False. A uniqueness violation on insert means
    two issuances raced or a number collided; it is logged and raised.
    """
    if not attempt.passed:
        raise ValidationFailed("Certificates are only issued for passing attempts.")

    existing = get_certificate_for_attempt(db, attempt.id)
    if existing is not None:
        return existing, False

    quiz = attempt.quiz
    certificate = models.Certificate(
        certificate_number=build_certificate_number(attempt.workforce_group_at_time, now),
        organization_id=attempt.organization_id,
        user_id=attempt.user_id,
        quiz_attempt_id=attempt.id,
        quiz_id=attempt.quiz_id,
        quiz_title=quiz.title if quiz is not None else attempt.quiz_id,
        workforce_group=attempt.workforce_group_at_time,
        score=attempt.score,
        hipaa_citations=list(quiz.hipaa_citations or []) if quiz is not None else [],
        issued_at=now,
        valid_until=now + timedelta(days=models.CERTIFICATE_VALIDITY_DAYS),
    )
    db.add(certificate)
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        logger.error(
            "Certificate insert violated a uniqueness constraint",
            extra={
                "attempt_id": attempt.id,
                "user_id": attempt.user_id,
                "certificate_number": certificate.certificate_number,
            },
        )
        raise IntegrityViolation("Certificate could not be recorded.") from exc

    audit_services.log_event(
        db,
        organization_id=attempt.organization_id,
        actor_user_id=attempt.user_id,
        entity_type="certificates.certificate",
        entity_id=certificate.id,
        action="certificate_issued",
        after={
            "certificate_number": certificate.certificate_number,
            "quiz_attempt_id": attempt.id,
            "valid_until": certificate.valid_until.isoformat(),
        },
        occurred_at=now,
        critical=True,
    )
    return certificate, True


def is_valid(certificate: models.Certificate, now: datetime) -> bool:
    return ensure_aware(now) <= ensure_aware(certificate.valid_until)


def list_certificates_for_member(db: Session, member_id: str) -> List[models.Certificate]:
    return (
        db.query(models.Certificate)
        .filter(models.Certificate.user_id == member_id)
        .order_by(models.Certificate.issued_at.desc())
        .all()
    )


def get_certificate(db: Session, certificate_id: str) -> models.Certificate:
    certificate = db.query(models.Certificate).filter(models.Certificate.id == certificate_id).first()
    if certificate is None:
        raise NotFound("Certificate not found.")
    return certificate
