"""
api/routes/v1/users.py -- Account registration and user lookup REST endpoints.

Routes:
  POST /api/v1/users            -- register (validate -> hash -> persist); public
  GET  /api/v1/users/me         -- the user behind the Bearer token
  GET  /api/v1/users            -- every other user as (id, name)
  GET  /api/v1/users/{user_id}  -- one user as (id, name)

Registration order matters: all validation messages are collected first, the
bcrypt hash is derived only for input that passed, and the store is called
only with a hashed credential.

Handlers are plain def (not async def): UserStore and bcrypt block, so
FastAPI runs these in its thread pool instead of on the event loop.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request

from api.models import UserCreate, UserResponse, UserSummaryResponse
from auth.dependencies import get_current_user
from auth.errors import DuplicateEmailError, NotFoundError
from auth.models import User
from auth.store import UserStore
from auth.validation import validate_password, validate_user
from core.validator import Validator

# Auth policy:
# - POST /api/v1/users:            public -- this is the sign-up endpoint
# - GET  /api/v1/users/me:         requires auth (get_current_user)
# - GET  /api/v1/users:            requires auth (get_current_user)
# - GET  /api/v1/users/{user_id}:  requires auth (get_current_user)
router = APIRouter()

_DUPLICATE_EMAIL = "a user with this email address already exists"


@router.post("/users", response_model=UserResponse, status_code=201)
def register_user(request: Request, body: UserCreate) -> UserResponse:
    """Create an account. Returns 422 with every field problem at once."""
    user_store: UserStore = request.app.state.user_store

    user = User(name=body.name, email=body.email)
    v = Validator()
    validate_user(v, user)
    validate_password(v, body.password)
    if not v.valid:
        raise _validation_failed(v.errors)

    user.password.set(body.password)
    try:
        user_store.create_user(user)
    except DuplicateEmailError as exc:
        raise _validation_failed({"email": _DUPLICATE_EMAIL}) from exc

    return UserResponse.from_user(user)


@router.get("/users/me", response_model=UserResponse)
def me(current_user: User = Depends(get_current_user)) -> UserResponse:
    """Return the account the Bearer token resolves to."""
    return UserResponse.from_user(current_user)


@router.get("/users", response_model=list[UserSummaryResponse])
def list_users(request: Request, current_user: User = Depends(get_current_user)) -> list[UserSummaryResponse]:
    """List every user except the caller, ordered by id."""
    user_store: UserStore = request.app.state.user_store
    return [UserSummaryResponse.from_summary(s) for s in user_store.list_excluding(current_user.id)]


@router.get("/users/{user_id}", response_model=UserSummaryResponse)
def get_user(
    request: Request,
    user_id: int,
    current_user: User = Depends(get_current_user),
) -> UserSummaryResponse:
    user_store: UserStore = request.app.state.user_store
    try:
        summary = user_store.get_summary_by_id(user_id)
    except NotFoundError as exc:
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "User not found."},
        ) from exc
    return UserSummaryResponse.from_summary(summary)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _validation_failed(fields: dict[str, str]) -> HTTPException:
    return HTTPException(
        status_code=422,
        detail={
            "code": "validation_error",
            "message": "One or more fields are invalid.",
            "fields": dict(fields),
        },
    )
