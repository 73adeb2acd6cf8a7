"""
auth/session.py -- Session resolution: token in, live user + admin flag out.

SessionResolver is the single chokepoint for "who is calling". It trusts the
token for exactly one thing, the subject id, and re-reads everything else
from the store:

  - a valid token for a subject that no longer exists is rejected;
  - the admin decision uses the stored email, not the token's email claim,
    so an email change or an allowlist change applies on the next request
    instead of when the token expires.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from auth.models import Session

if TYPE_CHECKING:
    from auth.policy import AdminPolicy
    from auth.store import UserStore
    from auth.tokens import TokenService


class SessionResolver:
    def __init__(self, tokens: TokenService, store: UserStore, policy: AdminPolicy) -> None:
        self.tokens = tokens
        self.store = store
        self.policy = policy

    def resolve(self, token: str | None) -> Session | None:
        """Return the caller's Session, or None if unauthenticated."""
        if not token:
            return None
        claims = self.tokens.verify(token)
        if claims is None:
            return None
        user = self.store.get_by_id(claims.subject_id)
        if user is None:
            return None
        return Session(user=user, is_administrator=self.policy.is_administrator(user.email))
