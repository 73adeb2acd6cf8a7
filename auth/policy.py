"""
auth/policy.py -- Administrator allowlist.

Administrators are not a stored role. They are the users whose live email
appears in ADMIN_EMAILS, read once at startup. Keeping the list out of the
database means no write path in the data layer can grant admin rights.

Membership is exact and case-sensitive. Stored emails are always lowercase
(auth.models.normalize_email), so deployments list admin addresses in
lowercase too.
"""

from __future__ import annotations

from collections.abc import Iterable


class AdminPolicy:
    def __init__(self, emails: Iterable[str] = ()) -> None:
        self._emails: frozenset[str] = frozenset(emails)

    @property
    def emails(self) -> frozenset[str]:
        return self._emails

    def is_administrator(self, email: str | None) -> bool:
        return email is not None and email in self._emails
