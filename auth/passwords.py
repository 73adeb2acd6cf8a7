"""
auth/passwords.py -- Password hashing and credential checks.

Security design decisions:
  bcrypt, used directly (no passlib wrapper). Every hash_password() call
  draws a fresh salt via bcrypt.gensalt(), and the salt travels inside the
  digest, so the same password never hashes to the same string twice. The
  cost factor (BCRYPT_ROUNDS, default 12) keeps one verification in the tens
  of milliseconds.

  verify_password() never raises. A malformed or missing digest is just a
  failed verification.

  authenticate() always runs exactly one bcrypt check, against _DUMMY_HASH
  when the email is unknown, so response time does not reveal whether an
  account exists [C1].

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import bcrypt

from auth.errors import InvalidInput
from core.config import get_settings

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore

_settings = get_settings()

# bcrypt input limit, in UTF-8 bytes. Longer passwords are refused, not truncated.
MAX_PASSWORD_BYTES = 72


def hash_password(plain: str) -> str:
    """Return a salted bcrypt digest of the given plaintext password.

    Raises InvalidInput when the UTF-8 encoding is longer than
    MAX_PASSWORD_BYTES. The API models reject such passwords first; this
    covers the CLI and any other caller.
    """
    encoded = plain.encode("utf-8")
    if len(encoded) > MAX_PASSWORD_BYTES:
        raise InvalidInput(f"Password must be at most {MAX_PASSWORD_BYTES} bytes.")
    salt = bcrypt.gensalt(rounds=_settings.bcrypt_rounds)
    return bcrypt.hashpw(encoded, salt).decode("utf-8")


def verify_password(plain: str, hashed: str | None) -> bool:
    """Return True if the plaintext password matches the bcrypt digest."""
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


# Computed once at module load so the first login attempt is not measurably
# slower than later ones [C1].
_DUMMY_HASH: str = hash_password("foundex_timing_dummy")


def authenticate(store: UserStore, email: str, password: str) -> User | None:
    """Check an email/password pair with timing equalization.

    Returns the User (without its hash) on success, None on any failure.
    Unknown email and wrong password are indistinguishable to the caller.
    """
    user = store.get_by_email(email, with_password=True)
    if user is None or user.password_hash is None:
        # Equalize timing -- do NOT return early before running bcrypt [C1]
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, user.password_hash):
        return None
    user.password_hash = None
    return user
