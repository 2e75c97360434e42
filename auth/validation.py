"""
auth/validation.py -- Rules that gate what becomes a persisted user.

Every rule appends to a core.validator.Validator and never raises, so a
caller can report every problem with a submission at once. Run these before
UserStore.create_user() and stop when the validator is not valid.

Password length is counted in UTF-8 bytes because that is the unit of
bcrypt's input limit. Name length is counted in characters.
"""

from __future__ import annotations

from auth.models import User
from auth.tokens import MAX_PASSWORD_BYTES
from core.validator import Validator

IS_BLANK = "is blank"

MAX_NAME_LENGTH = 100
MIN_PASSWORD_BYTES = 8


def validate_user(v: Validator, user: User) -> None:
    """Check name and email, plus the password rules if a plaintext is present.

    A user loaded from storage carries only a hash, so the password rules are
    skipped for it.
    """
    v.check(user.name != "", "name", IS_BLANK)
    v.check(len(user.name) <= MAX_NAME_LENGTH, "name", f"must not exceed {MAX_NAME_LENGTH} chars")
    v.check(user.email != "", "email", IS_BLANK)

    if user.password.plaintext is not None:
        validate_password(v, user.password.plaintext)


def validate_password(v: Validator, password: str) -> None:
    size = len(password.encode("utf-8"))
    v.check(password != "", "password", IS_BLANK)
    v.check(size >= MIN_PASSWORD_BYTES, "password", f"must be at least {MIN_PASSWORD_BYTES} chars long")
    v.check(size <= MAX_PASSWORD_BYTES, "password", f"must not exceed {MAX_PASSWORD_BYTES} chars")
