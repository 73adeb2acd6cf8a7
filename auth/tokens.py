"""
auth/tokens.py -- Signed session tokens and the session cookie.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       only the subject id and email plus iat/exp. Lifetime is fixed at
       TOKEN_EXPIRE_SECONDS (7 days). verify() returns None on any failure --
       malformed, bad signature, missing claim, expired -- and the route
       layer turns that into a single 401. Callers are never told which
       check failed.

  Expiry is checked here, not by jose. jose allows the token on the exact
       exp second and reads the wall clock itself; we disable its check and
       compare against an injectable clock so that "now >= exp" is always
       rejected and the boundary is testable.

  Stateless: there is no revocation list and no single-use marking. Anyone
       holding SECRET_KEY can mint tokens for any subject; rotating the key
       invalidates every outstanding session at once.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from jose import JWTError, jwt

from auth.models import SessionToken

logger = logging.getLogger("foundex.auth")

_ALGORITHM = "HS256"

COOKIE_NAME = "token"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenService:
    """Issue and verify signed, expiring session tokens.

    Usage:
        tokens = TokenService(settings.secret_key, settings.token_expire_seconds)
        raw = tokens.issue(user.id, user.email)
        claims = tokens.verify(raw)  # SessionToken or None
    """

    def __init__(
        self,
        secret_key: str,
        lifetime_seconds: int = 7 * 24 * 60 * 60,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if not secret_key:
            raise ValueError("TokenService requires a secret key.")
        self._secret_key = secret_key
        self.lifetime_seconds = lifetime_seconds
        self._clock = clock

    def issue(self, subject_id: str, subject_email: str) -> str:
        """Encode a signed JWT for the subject, valid for lifetime_seconds."""
        issued_at = int(self._clock().timestamp())
        payload = {
            "sub": subject_id,
            "email": subject_email,
            "iat": issued_at,
            "exp": issued_at + self.lifetime_seconds,
        }
        return jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM)

    def verify(self, token: str) -> SessionToken | None:
        """Verify signature and expiry. Returns the claims or None on any failure.

        Never raises, whatever the input.
        """
        if not token or not isinstance(token, str):
            return None
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[_ALGORITHM],
                options={"verify_exp": False, "verify_iat": False},
            )
        except JWTError as e:
            logger.debug("Session token rejected: %s", e)
            return None

        try:
            subject_id = str(payload["sub"])
            subject_email = str(payload["email"])
            issued_at = datetime.fromtimestamp(int(payload["iat"]), tz=timezone.utc)
            expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc)
        except (KeyError, TypeError, ValueError, OverflowError, OSError):
            return None

        if self._clock() >= expires_at:
            return None
        return SessionToken(
            subject_id=subject_id,
            subject_email=subject_email,
            issued_at=issued_at,
            expires_at=expires_at,
        )


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_auth_cookie(response, token: str, max_age: int, secure: bool = False) -> None:
    """Write the session token as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": sent on same-site requests and top-level cross-site GET
        navigations, but not on cross-site POST.
    secure: only sent over HTTPS when SECURE_COOKIES=true (set in production).
    max_age: matches the token lifetime so both expire together.
    """
    response.set_cookie(
        COOKIE_NAME,
        value=token,
        httponly=True,
        samesite="lax",
        secure=secure,
        path="/",
        max_age=max_age,
    )


def clear_auth_cookie(response, secure: bool = False) -> None:
    """Expire the session cookie immediately (max-age 0)."""
    response.set_cookie(
        COOKIE_NAME,
        value="",
        httponly=True,
        samesite="lax",
        secure=secure,
        path="/",
        max_age=0,
    )
