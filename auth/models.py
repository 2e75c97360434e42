"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class. User and UserSummary are pure data containers; stores and
routes do the work. Password is the one exception -- it owns the
plaintext/hash pair so the rule "the plaintext never leaves this object" is
enforced in one place instead of by caller discipline.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field

from auth.tokens import hash_password, verify_password


@dataclass
class Password:
    """A user's credential: plaintext held transiently, bcrypt hash held permanently.

    plaintext is set only by set() and only so validation can report on the
    raw secret before the record is persisted. Both fields are excluded from
    repr() and equality, so logging a User or comparing two Users never
    touches credential material. Nothing serializes this class.

    A freshly loaded User carries only the hash -- the plaintext is never
    read back from storage.
    """

    plaintext: str | None = field(default=None, repr=False, compare=False)
    hash: bytes | None = field(default=None, repr=False, compare=False)

    def set(self, plaintext: str) -> None:
        """Derive and store a new bcrypt hash. Raises HashingError on failure."""
        hashed = hash_password(plaintext)
        self.plaintext = plaintext
        self.hash = hashed

    def matches(self, candidate: str) -> bool:
        """Return True if candidate matches the stored hash.

        A wrong candidate returns False. A missing or corrupt stored hash
        raises MalformedHashError -- that is a data problem, not a bad guess.
        """
        return verify_password(candidate, self.hash)


@dataclass
class User:
    """Represents an account in userkeep.

    id, created_at and version are assigned by the store on insert and never
    change afterwards. version is a UUID4 used for change detection; nothing
    in this package updates a user, so it is only ever read.

    activated is owned by an external activation flow and defaults to False.
    """

    name: str
    email: str
    password: Password = field(default_factory=Password, repr=False)
    activated: bool = False
    id: int | None = None
    created_at: str | None = None
    version: uuid.UUID | None = None


@dataclass(frozen=True)
class UserSummary:
    """The (id, name) projection returned by by-id lookups and listings."""

    id: int
    name: str
