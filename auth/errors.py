"""
auth/errors.py -- Error taxonomy for the auth core.

Every failure the core reports to a caller is one of these classes. Each
carries its HTTP status and a stable machine-readable code; the boundary in
api/main.py renders them into the shared error envelope. Nothing here knows
about FastAPI.

  Unauthenticated  401  missing / invalid / expired token (never says which)
  Forbidden        403  authenticated, but not an administrator
  NotFound         404  addressed entity does not exist
  Conflict         409  duplicate unique key (registration email)
  InvalidInput     400  missing or malformed fields, bad reset code
  Transient        500  store or collaborator failure; detail stays server-side
"""

from __future__ import annotations


class AuthError(Exception):
    status_code: int = 500
    code: str = "internal_error"
    message: str = "An unexpected error occurred."

    def __init__(self, message: str | None = None, code: str | None = None) -> None:
        if message is not None:
            self.message = message
        if code is not None:
            self.code = code
        super().__init__(self.message)


class Unauthenticated(AuthError):
    status_code = 401
    code = "unauthorized"
    message = "Authentication required."


class Forbidden(AuthError):
    status_code = 403
    code = "forbidden"
    message = "Administrator access required."


class NotFound(AuthError):
    status_code = 404
    code = "not_found"
    message = "Not found."


class Conflict(AuthError):
    status_code = 409
    code = "conflict"
    message = "A user with that email already exists."


class InvalidInput(AuthError):
    status_code = 400
    code = "invalid_input"
    message = "Request validation failed."


class Transient(AuthError):
    status_code = 500
    code = "internal_error"
    message = "An unexpected error occurred."
