"""
web/routes.py -- Jinja2 template routes for the Foundex web pages.

These routes serve server-rendered HTML. They share app.state with the API
routes (same store, same SessionResolver) but return HTML instead of JSON.

Two-tier protection:
  - EdgeGuardMiddleware (web/guard.py) has already redirected requests for
    protected prefixes that arrive with no "token" cookie.
  - Every protected page below still resolves the session itself, so a
    cookie that is present but invalid, expired, or points at a deleted
    user gets a 401 here.

Routes:
  GET /                      -- entry point / sign-in page (?callbackUrl=)
  GET /dashboard             -- founder/investor dashboard (auth required)
  GET /dashboard/{section}   -- nested dashboard sections (auth required)
  GET /profile               -- account profile (auth required)
  GET /startup-profile       -- founder startup profile (auth required)
"""

import logging
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from auth.dependencies import get_current_session, try_get_session
from auth.models import Session

logger = logging.getLogger("foundex.web")

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
router = APIRouter()


def _safe_callback(callback_url: Optional[str]) -> str:
    """Validate a post-login redirect target. Only accept relative paths. [C2]

    Rejects absolute URLs and protocol-relative ("//host") targets so the
    sign-in page cannot be used as an open redirect.
    """
    if callback_url and callback_url.startswith("/") and not callback_url.startswith("//"):
        return callback_url
    return "/dashboard"


@router.get("/", response_class=HTMLResponse)
def entry(request: Request, callbackUrl: Optional[str] = None) -> HTMLResponse:  # noqa: N803
    """Render the sign-in page. Signed-in visitors see a link to continue."""
    return templates.TemplateResponse(
        request,
        "index.html",
        {
            "callback_url": _safe_callback(callbackUrl),
            "session": try_get_session(request),
        },
    )


@router.get("/dashboard", response_class=HTMLResponse)
def dashboard(request: Request, session: Session = Depends(get_current_session)) -> HTMLResponse:
    return templates.TemplateResponse(request, "dashboard.html", {"session": session, "section": None})


@router.get("/dashboard/{section:path}", response_class=HTMLResponse)
def dashboard_section(
    request: Request,
    section: str,
    session: Session = Depends(get_current_session),
) -> HTMLResponse:
    return templates.TemplateResponse(request, "dashboard.html", {"session": session, "section": section})


@router.get("/profile", response_class=HTMLResponse)
def profile(request: Request, session: Session = Depends(get_current_session)) -> HTMLResponse:
    return templates.TemplateResponse(request, "profile.html", {"session": session, "title": "Your profile"})


@router.get("/startup-profile", response_class=HTMLResponse)
def startup_profile(request: Request, session: Session = Depends(get_current_session)) -> HTMLResponse:
    return templates.TemplateResponse(request, "profile.html", {"session": session, "title": "Startup profile"})
