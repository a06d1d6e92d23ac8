from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from hubdb.apps.accounts import services as account_services
from hubdb.apps.accounts.models import User
from hubdb.clock import Clock, get_clock
from hubdb.database import get_read_db
from hubdb.security import get_current_active_user

from . import models, schemas, services


router = APIRouter(prefix="/certificates", tags=["certificates"])


def _certificate_read(certificate: models.Certificate, clock: Clock) -> schemas.CertificateRead:
    read = schemas.CertificateRead.model_validate(certificate)
    read.is_valid = services.is_valid(certificate, clock())
    return read


@router.get("", response_model=List[schemas.CertificateRead])
def list_my_certificates(
    db: Session = Depends(get_read_db),
    current_user: User = Depends(get_current_active_user),
    clock: Clock = Depends(get_clock),
):
    return [_certificate_read(c, clock) for c in services.list_certificates_for_member(db, current_user.id)]


@router.get("/{certificate_id}", response_model=schemas.CertificateRead)
def get_certificate(
    certificate_id: str,
    db: Session = Depends(get_read_db),
    current_user: User = Depends(get_current_active_user),
    clock: Clock = Depends(get_clock),
):
    certificate = services.get_certificate(db, certificate_id)
    if certificate.user_id != current_user.id:
        # Admins may read certificates of their own organization's members.
        account_services.resolve_member_for_actor(db, actor=current_user, member_id=certificate.user_id)
    return _certificate_read(certificate, clock)
