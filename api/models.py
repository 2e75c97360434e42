"""
API request and response models for userkeep REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Credential material never appears here: UserResponse has no password field,
and from_user() reads only the four public attributes.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import User, UserSummary

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class UserCreate(BaseModel):
    """Request body for POST /api/v1/users.

    Fields are deliberately unconstrained: the domain rules in
    auth/validation.py produce the per-field messages, and they must all be
    reported together rather than stopping at the first pydantic error.
    Whitespace is not stripped: it is significant in a password.
    """

    name: str = ""
    email: str = ""
    password: str = Field(default="", json_schema_extra={"writeOnly": True})


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Outward representation of a user. No credential, timestamp or version."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    email: str
    activated: bool

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        """Build a UserResponse from a domain User (Factory Method)."""
        return cls(id=user.id, name=user.name, email=user.email, activated=user.activated)


class UserSummaryResponse(BaseModel):
    """One row of GET /api/v1/users, or the body of GET /api/v1/users/{id}."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str

    @classmethod
    def from_summary(cls, summary: UserSummary) -> "UserSummaryResponse":
        return cls(id=summary.id, name=summary.name)


class ErrorDetail(BaseModel):
    """Machine-readable error payload.

    fields carries per-field messages for validation failures, keyed by the
    request field name.
    """

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None
    fields: Optional[dict[str, str]] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
