from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Optional

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def get_clock() -> Clock:
    """
    FastAPI dependency for the wall clock.

    Overdue and at-risk classification depend on "now"; tests override this
    dependency (or pass `now=` to services) instead of patching datetime.
    """
    return utcnow
