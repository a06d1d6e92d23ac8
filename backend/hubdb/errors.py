"""
Domain errors raised by the training services.

Services raise these instead of HTTPException so they stay usable from
scripts and tests; `hubdb.main` renders them as `{"code", "detail"}` bodies
with the matching status code. Missing or invalid credentials are handled by
`hubdb.security` before any service runs.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import status


class TrainingError(Exception):
    code = "training_error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str, *, extra: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(detail)
        self.detail = detail
        self.extra = extra or {}

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"code": self.code, "detail": self.detail}
        body.update(self.extra)
        return body


class Forbidden(TrainingError):
    code = "forbidden"
    status_code = status.HTTP_403_FORBIDDEN


class QuizLocked(Forbidden):
    code = "quiz_locked"


class NotFound(TrainingError):
    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class ValidationFailed(TrainingError):
    code = "validation_error"
    status_code = 422


class AttemptsExhausted(TrainingError):
    code = "attempts_exhausted"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, *, used: int, maximum: int) -> None:
        super().__init__(
            f"All {maximum} attempts for this quiz have been used.",
            extra={"attempts_used": used, "max_attempts": maximum},
        )
        self.used = used
        self.maximum = maximum


class IntegrityViolation(TrainingError):
    """A storage constraint fired where the services expected none."""

    code = "integrity_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
