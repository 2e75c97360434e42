"""
auth/tokens.py -- Password hashing, bearer-token digests, and credential checks.

Security design decisions:
  Passwords: bcrypt, used directly (no passlib wrapper). Bcrypt is the right
       choice for low-entropy secrets because its cost factor makes brute
       force expensive. The cost is fixed per deployment by BCRYPT_ROUNDS.
       bcrypt only reads the first 72 bytes of its input, which is why the
       password rules cap length at 72 bytes.

  Verification: bcrypt.checkpw re-derives the hash and compares in constant
       time. A wrong password is a False return; a corrupt stored hash is a
       MalformedHashError so callers can tell a bad guess from bad data.

  Bearer tokens: issued upstream with high entropy, so a fast deterministic
       SHA-256 digest is enough. The tokens table is keyed on the digest, never
       on the raw token, so a leaked table does not yield usable tokens.

  Timing equalization: authenticate_user() always runs bcrypt, against
       _DUMMY_HASH when the email is unknown, so response time does not reveal
       whether an account exists.

Layer rule: no imports from api/. Import from core/ is allowed -- core/ is
the kernel and has no reverse dependencies.
"""

from __future__ import annotations

import hashlib
import logging
from typing import TYPE_CHECKING

import bcrypt

from auth.errors import HashingError, MalformedHashError, NotFoundError
from core.config import get_settings

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore

logger = logging.getLogger("userkeep.auth")

_settings = get_settings()

# bcrypt ignores (4.x) or rejects (5.x) input past this many bytes.
MAX_PASSWORD_BYTES = 72

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> bytes:
    """Return a salted bcrypt hash of the given plaintext password.

    A fresh salt is drawn on every call, so hashing the same password twice
    yields two different hashes that both verify.

    Input longer than MAX_PASSWORD_BYTES is refused rather than truncated, so
    every hash this returns verifies against the exact plaintext it was built
    from, whichever bcrypt release is installed.
    """
    encoded = plain.encode("utf-8")
    if len(encoded) > MAX_PASSWORD_BYTES:
        raise HashingError(f"password exceeds {MAX_PASSWORD_BYTES} bytes")
    try:
        return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=_settings.bcrypt_rounds))
    except (ValueError, OSError) as exc:
        logger.error("bcrypt failed to derive a password hash: %s", type(exc).__name__)
        raise HashingError("could not derive password hash") from exc


def verify_password(plain: str, hashed: bytes | None) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    Candidates longer than MAX_PASSWORD_BYTES can never match (no stored hash
    was derived from one), but bcrypt still runs on the truncated input so the
    rejection costs the same as any other wrong guess.
    """
    if not hashed:
        raise MalformedHashError("no password hash stored")
    candidate = plain.encode("utf-8")
    too_long = len(candidate) > MAX_PASSWORD_BYTES
    try:
        ok = bcrypt.checkpw(candidate[:MAX_PASSWORD_BYTES], hashed)
    except ValueError as exc:
        raise MalformedHashError("stored password hash is malformed") from exc
    return ok and not too_long


# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: bytes = hash_password("userkeep_timing_dummy")


# ---------------------------------------------------------------------------
# Bearer tokens
# ---------------------------------------------------------------------------


def hash_token(token: str) -> str:
    """Return the hex SHA-256 digest used as the tokens table lookup key."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


# ---------------------------------------------------------------------------
# Credential check (constant-time)
# ---------------------------------------------------------------------------


def authenticate_user(store: UserStore, email: str, password: str) -> User | None:
    """Check an email/password pair with timing equalization.

    Always runs bcrypt whether or not the account exists:
    - Unknown email: bcrypt runs against _DUMMY_HASH (same cost as a real check)
    - Wrong password: bcrypt runs against the real hash

    Returns the User on success, None on any mismatch. StorageError and
    MalformedHashError propagate -- they are failures, not bad credentials.
    """
    try:
        user = store.get_by_email(email)
    except NotFoundError:
        verify_password(password, _DUMMY_HASH)
        return None
    if not user.password.matches(password):
        return None
    return user
