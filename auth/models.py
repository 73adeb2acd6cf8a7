"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Dataclasses own the
domain shape; stores, services and routes do the work.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

ROLES = ("founder", "investor")


def normalize_email(email: str) -> str:
    """Trim and lowercase an email address. Applied at every write and lookup."""
    return email.strip().lower()


@dataclass
class User:
    """A registered founder or investor.

    role is fixed at registration. "administrator" is never a stored role --
    it is derived per request by auth.policy.AdminPolicy from the live email.

    password_hash is None whenever the record was loaded without it (the
    store projects it out by default). It is never serialized to callers.

    reset_code / reset_code_expires describe the single outstanding password
    reset attempt. They are set and cleared together, never one without the other.
    """

    email: str
    role: str  # "founder" or "investor"
    full_name: str = ""
    id: str | None = None
    linkedin_url: str | None = None
    profile_image_url: str | None = None
    password_hash: str | None = None
    reset_code: str | None = None
    reset_code_expires: datetime | None = None
    created_at: str | None = None


@dataclass(frozen=True)
class SessionToken:
    """Verified contents of a signed session token. Never persisted."""

    subject_id: str
    subject_email: str
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class Session:
    """The answer to "who is calling": the live user plus derived admin flag."""

    user: User
    is_administrator: bool


class ResetOutcome(str, Enum):
    ok = "ok"
    invalid_code = "invalid_code"
    expired = "expired"
