"""
auth/errors.py -- Domain error taxonomy for the auth package.

Stores and credential helpers translate low-level failures (SQLAlchemy
exceptions, bcrypt ValueErrors) into these classes so callers never match on
driver-specific error strings.

  NotFoundError        -- lookup matched nothing. Deliberately carries no cause:
                          wrong token, wrong scope, expired token and unknown
                          email/id are indistinguishable to callers.
  DuplicateEmailError  -- UNIQUE(email) violated on insert.
  StorageError         -- opaque passthrough for every other storage failure.
  StorageTimeout       -- the storage deadline expired (a StorageError).
  HashingError         -- bcrypt could not derive a hash.
  MalformedHashError   -- a stored hash is missing or corrupt, as opposed to
                          a candidate password that simply did not match.

MissingPasswordHash is a programming fault, not a domain error: it subclasses
RuntimeError so no handler for AuthError swallows it.

Layer rule: stdlib only.
"""


class AuthError(Exception):
    """Base class for errors callers of the auth package are expected to handle."""


class NotFoundError(AuthError):
    def __init__(self) -> None:
        super().__init__("record not found")


class DuplicateEmailError(AuthError):
    def __init__(self) -> None:
        super().__init__("duplicate email")


class StorageError(AuthError):
    pass


class StorageTimeout(StorageError):
    pass


class HashingError(AuthError):
    pass


class MalformedHashError(AuthError):
    pass


class MissingPasswordHash(RuntimeError):
    """Raised when a User without a derived password hash reaches persistence."""
