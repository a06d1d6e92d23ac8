from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from fastapi import status
from sqlalchemy.orm import Session

from hubdb.apps.audit import services as audit_services

from .registry import WORKFLOWS


@dataclass
class TransitionError(Exception):
    code: str
    detail: List[Dict[str, str]]
    status_code: int = status.HTTP_409_CONFLICT

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "detail": self.detail}


def _extract_organization_id(before_obj: Any, after_obj: Any) -> Optional[str]:
    for obj in (after_obj, before_obj):
        if isinstance(obj, dict) and obj.get("organization_id"):
            return obj.get("organization_id")
        organization_id = getattr(obj, "organization_id", None)
        if organization_id:
            return organization_id
    return None


def can_transition(entity_type: str, from_state: str, to_state: str) -> bool:
    workflow = WORKFLOWS.get(entity_type) or {}
    return to_state in workflow.get("transitions", {}).get(from_state, {})


def _jsonable(payload: Dict[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key, value in payload.items():
        if key == "organization_id":
            continue
        out[key] = value.isoformat() if hasattr(value, "isoformat") else value
    return out


def apply_transition(
    db: Session,
    *,
    actor_user_id: Optional[str],
    entity_type: str,
    entity_id: str,
    from_state: str,
    to_state: str,
    before_obj: Any,
    after_obj: Any,
    correlation_id: Optional[str] = None,
    critical: bool = True,
) -> None:
    """
    Validate a status change against the registry, run its guards and audit it.

    The caller mutates the entity only after this returns.
    """
    workflow = WORKFLOWS.get(entity_type)
    if not workflow:
        raise TransitionError(
            code="invalid_transition",
            detail=[{"field": "entity_type", "reason": f"No workflow registered for {entity_type}"}],
        )

    transitions = workflow.get("transitions", {})
    allowed = transitions.get(from_state, {})
    guards = allowed.get(to_state)

    if guards is None:
        raise TransitionError(
            code="invalid_transition",
            detail=[{"field": "status", "reason": f"Cannot transition from {from_state} to {to_state}"}],
        )

    failures: List[Dict[str, str]] = []
    for guard in guards:
        failures.extend(
            guard(
                db,
                before_obj=before_obj,
                after_obj=after_obj,
                from_state=from_state,
                to_state=to_state,
            )
        )

    if failures:
        raise TransitionError(code="missing_requirements", detail=failures)

    before_payload: Dict[str, Any] = {"status": from_state}
    after_payload: Dict[str, Any] = {"status": to_state}
    if isinstance(before_obj, dict):
        before_payload.update(_jsonable(before_obj))
    if isinstance(after_obj, dict):
        after_payload.update(_jsonable(after_obj))

    organization_id = _extract_organization_id(before_obj, after_obj)
    if not organization_id:
        raise TransitionError(
            code="invalid_transition",
            detail=[{"field": "organization_id", "reason": "Unable to resolve organization for transition"}],
        )

    audit_services.log_event(
        db,
        organization_id=organization_id,
        actor_user_id=actor_user_id,
        entity_type=entity_type,
        entity_id=entity_id,
        action="transition",
        before=before_payload,
        after=after_payload,
        correlation_id=correlation_id,
        metadata={"workflow": entity_type},
        critical=critical,
    )
