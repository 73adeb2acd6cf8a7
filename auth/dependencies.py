"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Two token sources are tried in order:
  1. "token" cookie -- set by login/registration for browser sessions.
  2. Authorization: Bearer <token> header -- API clients.
The first one that resolves wins. A stale cookie does not mask a valid
Bearer header.

Both carry the same signed token and converge on SessionResolver, which
app.state.resolver holds (wired in the api/main.py lifespan).

try_get_session() is the soft variant (returns None on failure).
get_current_session() wraps it and raises Unauthenticated (401).
require_admin() wraps get_current_session() and raises Forbidden (403)
when the caller is not on the administrator allowlist.

Layer rule: no imports from api/ or web/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Request

from auth.errors import Forbidden, Unauthenticated
from auth.models import Session
from auth.session import SessionResolver
from auth.tokens import COOKIE_NAME


def candidate_tokens(request: Request) -> list[str]:
    """Return the raw tokens carried by the request, cookie first."""
    tokens: list[str] = []
    cookie = request.cookies.get(COOKIE_NAME)
    if cookie:
        tokens.append(cookie)
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        bearer = auth_header[7:].strip()
        if bearer and bearer not in tokens:
            tokens.append(bearer)
    return tokens


def try_get_session(request: Request) -> Session | None:
    """Resolve the caller's session. Never raises for bad tokens."""
    resolver: SessionResolver = request.app.state.resolver
    for token in candidate_tokens(request):
        session = resolver.resolve(token)
        if session is not None:
            return session
    return None


def get_current_session(request: Request) -> Session:
    """Require authentication. Raises Unauthenticated (401) otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(session: Session = Depends(get_current_session)): ...
    """
    session = try_get_session(request)
    if session is None:
        raise Unauthenticated()
    return session


def require_admin(request: Request) -> Session:
    """Require an allowlisted administrator. 401 if unauthenticated, 403 otherwise."""
    session = get_current_session(request)
    if not session.is_administrator:
        raise Forbidden()
    return session
