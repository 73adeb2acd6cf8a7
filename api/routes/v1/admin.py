"""
api/routes/v1/admin.py -- Administrator-only endpoints.

Routes:
  GET /api/v1/admin/users        -- list all users
  GET /api/v1/admin/users/{id}   -- one user by id

Every route depends on require_admin: 401 without a valid session, 403 when
the caller's live email is not on ADMIN_EMAILS.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from api.models import UserResponse
from auth.dependencies import require_admin
from auth.errors import NotFound
from auth.models import Session
from auth.store import UserStore

router = APIRouter()


@router.get("/admin/users", response_model=list[UserResponse])
def list_users(request: Request, session: Session = Depends(require_admin)) -> list[UserResponse]:
    """List every founder and investor account. Admin only."""
    user_store: UserStore = request.app.state.user_store
    return [UserResponse.from_user(u) for u in user_store.list_users()]


@router.get("/admin/users/{user_id}", response_model=UserResponse)
def get_user(request: Request, user_id: str, session: Session = Depends(require_admin)) -> UserResponse:
    """Fetch one account by id. Admin only; 404 if the id is unknown."""
    user_store: UserStore = request.app.state.user_store
    user = user_store.get_by_id(user_id)
    if user is None:
        raise NotFound("User not found.")
    return UserResponse.from_user(user)
