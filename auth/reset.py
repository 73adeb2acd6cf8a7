"""
auth/reset.py -- Password reset with short-lived one-time codes.

Per-user state lives in the reset_code / reset_code_expires pair on the user
record:

  NO_ATTEMPT --start--> CODE_ISSUED --verify (ok, repeatable)--> CODE_ISSUED
  CODE_ISSUED --complete (ok)--> NO_ATTEMPT
  CODE_ISSUED --clock passes expiry--> EXPIRED --start--> CODE_ISSUED

verify() is read-only: the two-step UI checks the code, then asks for the
new password, and complete() checks the same code again. Only complete()
consumes it.

There is no attempt counter and no throttling on verify/complete. A new
start() overwrites any outstanding code, including one already mailed to
the user (last write wins).

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

import hmac
import logging
import secrets
import string
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from auth.models import ResetOutcome, User, normalize_email
from auth.passwords import hash_password

if TYPE_CHECKING:
    from auth.store import UserStore
    from core.mailer import Mailer

logger = logging.getLogger("foundex.reset")

_CODE_ALPHABET = string.ascii_uppercase + string.digits

EMAIL_SUBJECT = "Your Foundex Password Reset Code"

Dispatch = Callable[[str, str, str], object]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_code(length: int = 8) -> str:
    """Return a random uppercase alphanumeric code from the OS CSPRNG."""
    return "".join(secrets.choice(_CODE_ALPHABET) for _ in range(length))


class ResetCodeFlow:
    """start / verify / complete for the forgot-password flow.

    Usage:
        flow = ResetCodeFlow(store, mailer, ttl_seconds=900)
        flow.start("a@x.com")
        flow.verify("a@x.com", code)            # ResetOutcome.ok
        flow.complete("a@x.com", code, "new")   # ResetOutcome.ok, code consumed
    """

    def __init__(
        self,
        store: UserStore,
        mailer: Mailer,
        ttl_seconds: int = 15 * 60,
        code_length: int = 8,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.mailer = mailer
        self.ttl_seconds = ttl_seconds
        self.code_length = code_length
        self._clock = clock

    def start(self, email: str, dispatch: Dispatch | None = None) -> bool:
        """Issue a fresh code for email and send it out-of-band.

        Returns False without sending anything when no user has that email.
        Callers must not reveal the difference to the requester.

        dispatch(to, subject, body) defaults to self.mailer.send. The code is
        persisted before dispatch and is not rolled back if delivery fails.
        """
        email = normalize_email(email)
        code = generate_code(self.code_length)
        expires = self._clock() + timedelta(seconds=self.ttl_seconds)
        user = self.store.set_reset_code(email, code, expires)
        if user is None:
            logger.info("Password reset requested for unknown email")
            return False

        minutes = max(1, self.ttl_seconds // 60)
        body = f"Your password reset code is: <b>{code}</b>. This code will expire in {minutes} minutes."
        send = dispatch or self.mailer.send
        send(user.email, EMAIL_SUBJECT, body)
        logger.info("Password reset code issued for user %s", user.id)
        return True

    def verify(self, email: str, code: str) -> ResetOutcome:
        """Check a code without consuming it."""
        outcome, _user = self._check(email, code)
        return outcome

    def complete(self, email: str, code: str, new_password: str) -> ResetOutcome:
        """Check the code again and, if it holds, set the new password and clear the code."""
        outcome, user = self._check(email, code)
        if outcome is not ResetOutcome.ok:
            return outcome
        user.password_hash = hash_password(new_password)
        user.reset_code = None
        user.reset_code_expires = None
        self.store.save(user)
        logger.info("Password reset completed for user %s", user.id)
        return ResetOutcome.ok

    def _check(self, email: str, code: str) -> tuple[ResetOutcome, User | None]:
        user = self.store.get_by_email(email)
        if user is None or user.reset_code is None or user.reset_code_expires is None:
            return ResetOutcome.invalid_code, None
        # Exact match, compared in constant time.
        if not hmac.compare_digest(user.reset_code.encode("utf-8"), code.encode("utf-8")):
            return ResetOutcome.invalid_code, None
        if self._clock() > user.reset_code_expires:
            return ResetOutcome.expired, None
        return ResetOutcome.ok, user
