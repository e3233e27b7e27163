"""Delivery of email verification links."""

from __future__ import annotations

import logging
from typing import Protocol
from urllib.parse import urlencode

LOGGER = logging.getLogger(__name__)


class VerificationNotifier(Protocol):
    """Sends verification links to users."""

    def send_verification(self, *, email: str, token: str) -> None:
        """Deliver the verification link for ``token`` to ``email``."""


def redact_email(email: str) -> str:
    """Redact an email address for logging."""
    if "@" not in email:
        return "redacted"
    local, domain = email.split("@", 1)
    return f"{local[:2]}***@{domain}"


class LoggingVerificationNotifier:
    """Development notifier that logs verification links instead of mailing."""

    def __init__(self, base_url: str) -> None:
        self._base_url = base_url.rstrip("/")

    def verification_link(self, token: str) -> str:
        """Return the public verification URL for ``token``."""
        return f"{self._base_url}/api/auth/verify-email?{urlencode({'token': token})}"

    def send_verification(self, *, email: str, token: str) -> None:
        LOGGER.info(
            "verification_email_dev_mode: to=%s link=%s",
            redact_email(email),
            self.verification_link(token),
        )
