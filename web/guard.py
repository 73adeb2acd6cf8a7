"""
web/guard.py -- Edge route guard for page routes.

The guard runs before routing and answers one question: does a request for
a protected page carry a token cookie at all? It never verifies the token
and never touches the store. A request with no cookie is redirected to the
entry point with the original path in ?callbackUrl=; a request with any
non-empty cookie, valid or not, goes through, and the handler's
SessionResolver call makes the real decision (401 for garbage).

Prefix matching is segment-aware: "/dashboard" protects "/dashboard" and
"/dashboard/tasks" but not "/dashboards".
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from urllib.parse import quote

from fastapi import Request
from fastapi.responses import RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware

from auth.tokens import COOKIE_NAME

CALLBACK_PARAM = "callbackUrl"


class RouteGuard:
    def __init__(self, prefixes: Iterable[str], entry_point: str = "/") -> None:
        # "/dashboard/" and "/dashboard" are the same prefix.
        self.prefixes = tuple(p.rstrip("/") for p in prefixes if p.rstrip("/"))
        self.entry_point = entry_point

    def is_protected(self, path: str) -> bool:
        return any(path == p or path.startswith(p + "/") for p in self.prefixes)

    def check(self, path: str, cookies: Mapping[str, str]) -> RedirectResponse | None:
        """Return a redirect for a cookie-less request to a protected path, else None."""
        if not self.is_protected(path):
            return None
        if cookies.get(COOKIE_NAME):
            return None
        location = f"{self.entry_point}?{CALLBACK_PARAM}={quote(path, safe='/')}"
        return RedirectResponse(location, status_code=302)


class EdgeGuardMiddleware(BaseHTTPMiddleware):
    """Starlette middleware wrapper around RouteGuard.check()."""

    def __init__(self, app, guard: RouteGuard) -> None:
        super().__init__(app)
        self.guard = guard

    async def dispatch(self, request: Request, call_next):
        redirect = self.guard.check(request.url.path, request.cookies)
        if redirect is not None:
            return redirect
        return await call_next(request)
