"""
mailer.py -- Outbound transactional email via the Plunk HTTP API.

Delivery is best-effort. send() never raises: network errors, non-2xx
responses and bad JSON are logged and reported through DeliveryResult so
callers (the password-reset flow) can carry on regardless.

With no PLUNK_API_KEY configured the message is written to the log instead
of being sent. Local development and tests run this way.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import requests

logger = logging.getLogger("foundex.mailer")

PLUNK_API = "https://api.useplunk.com/v1/send"


@dataclass(frozen=True)
class DeliveryResult:
    success: bool
    mock: bool = False
    error: Optional[str] = None


class Mailer:
    """Thin client for Plunk's /v1/send endpoint.

    Usage:
        mailer = Mailer(api_key=settings.plunk_api_key)
        mailer.send("user@example.com", "Subject", "<b>Body</b>")
    """

    def __init__(self, api_key: str = "", api_url: str = PLUNK_API) -> None:
        self._api_key = api_key
        self._api_url = api_url
        # Shared session for connection pooling across sends.
        self._session = requests.Session()
        self._session.max_redirects = 3

    def send(self, to: str, subject: str, body: str) -> DeliveryResult:
        """Send one message. Returns a DeliveryResult, never raises."""
        if not self._api_key:
            logger.warning("PLUNK_API_KEY not set -- logging email instead of sending")
            logger.info("Email to=%s subject=%r", to, subject)
            return DeliveryResult(success=True, mock=True)

        try:
            resp = self._session.post(
                self._api_url,
                json={"to": to, "subject": subject, "body": body},
                headers={"Authorization": f"Bearer {self._api_key}"},
            )
            resp.raise_for_status()
        except requests.RequestException as e:
            logger.error("Email delivery to %s failed: %s", to, e)
            return DeliveryResult(success=False, error=str(e))

        logger.info("Email delivered to %s (subject=%r)", to, subject)
        return DeliveryResult(success=True)

    def close(self) -> None:
        self._session.close()
