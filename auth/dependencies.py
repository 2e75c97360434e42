"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Requests authenticate with an opaque bearer token:

    Authorization: Bearer <token>

The token is resolved through UserStore.get_for_token() with the
"authentication" scope, so a password-reset token cannot be replayed as a
session.

try_get_current_user() is the soft variant (returns None on failure).
get_current_user() wraps it and raises HTTP 401 if unauthenticated. Every
failure -- missing header, unknown token, other scope, expired -- produces the
same 401 body.

Layer rule: no imports from api/.
  auth/dependencies.py may import from fastapi (for HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.errors import NotFoundError
from auth.models import User
from auth.store import UserStore

SCOPE_AUTHENTICATION = "authentication"


def try_get_current_user(request: Request) -> User | None:
    """Resolve the Bearer token on the request to a User, or None.

    StorageError is not caught here: a storage outage is a 500, not a 401.
    """
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    token = auth_header[7:].strip()
    if not token:
        return None

    user_store: UserStore = request.app.state.user_store
    try:
        return user_store.get_for_token(token, SCOPE_AUTHENTICATION)
    except NotFoundError:
        return None


def get_current_user(request: Request) -> User:
    """Require authentication. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user: User = Depends(get_current_user)): ...
    """
    user = try_get_current_user(request)
    if user is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "invalid_token", "message": "Invalid or missing authentication token."},
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user
