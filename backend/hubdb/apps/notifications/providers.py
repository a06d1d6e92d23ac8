from __future__ import annotations

import logging
import os
from typing import Tuple

logger = logging.getLogger(__name__)


class EmailProvider:
    def send(
        self,
        *,
        template_key: str,
        recipient: str,
        subject: str,
        context: dict,
        correlation_id: str | None,
    ) -> None:
        raise NotImplementedError


class NoopProvider(EmailProvider):
    def send(
        self,
        *,
        template_key: str,
        recipient: str,
        subject: str,
        context: dict,
        correlation_id: str | None,
    ) -> None:
        return None


class LogProvider(EmailProvider):
    """Writes notifications to the application log; useful for demos."""

    def send(
        self,
        *,
        template_key: str,
        recipient: str,
        subject: str,
        context: dict,
        correlation_id: str | None,
    ) -> None:
        logger.info(
            "notification %s -> %s: %s",
            template_key,
            recipient,
            subject,
            extra={"template_key": template_key, "correlation_id": correlation_id},
        )


def get_email_provider() -> Tuple[EmailProvider, bool]:
    provider_name = (
        os.getenv("NOTIFICATIONS_EMAIL_PROVIDER")
        or os.getenv("EMAIL_PROVIDER")
        or ""
    ).strip().lower()
    if not provider_name or provider_name in {"none", "noop", "disabled"}:
        return NoopProvider(), False
    if provider_name == "log":
        return LogProvider(), True
    raise ValueError(f"Unsupported email provider: {provider_name}")
