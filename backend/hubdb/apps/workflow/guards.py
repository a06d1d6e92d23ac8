from __future__ import annotations

from typing import Any, Dict, List

from sqlalchemy.orm import Session

GuardResult = List[Dict[str, str]]


def _get_value(obj: Any, key: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(key)
    return getattr(obj, key, None)


def guard_assignment_started(
    db: Session,
    *,
    before_obj: Any,
    after_obj: Any,
    from_state: str,
    to_state: str,
) -> GuardResult:
    if not _get_value(after_obj, "started_at"):
        return [{"field": "started_at", "reason": "start timestamp required"}]
    return []


def guard_assignment_completion(
    db: Session,
    *,
    before_obj: Any,
    after_obj: Any,
    from_state: str,
    to_state: str,
) -> GuardResult:
    missing = []
    if not _get_value(after_obj, "completed_at"):
        missing.append({"field": "completed_at", "reason": "completion timestamp required"})
    if not _get_value(after_obj, "completion_basis"):
        missing.append({"field": "completion_basis", "reason": "materials or passing attempt required"})
    return missing
