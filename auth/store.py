"""
auth/store.py -- SQLAlchemy Core persistence layer for users and token lookups.

Pattern: Repository + Data Mapper. UserStore is the repository; _row_to_user /
_row_to_summary are the mappers. Route and CLI code never touches SQL
directly, and never sees a SQLAlchemy exception: every failure leaves this
module as one of the auth.errors classes.

Security:
  All queries use bound parameters. No f-strings in SQL carrying user input.

  Bearer tokens are looked up by their SHA-256 digest (auth.tokens.hash_token).
  The tokens table is written by the upstream issuer; this module only reads
  it. expiry is stored as an ISO 8601 UTC string produced by iso_utc(), which
  keeps lexicographic order equal to chronological order.

  Issuer contract: expiry (like created_at) must be written in exactly the
  iso_utc() form, YYYY-MM-DDTHH:MM:SS.ffffff+00:00, always 32 characters.
  get_for_token() compares it as a string, so a row in any other form (a "Z"
  suffix, say) compares wrongly and may resolve after it has expired. Writers in other processes must format with
  iso_utc() or an exact equivalent.

  A token that does not resolve -- unknown digest, other scope, or expired --
  raises the same NotFoundError with nothing logged about which condition
  failed.

Deadlines:
  Every operation runs inside _connect(timeout). The deadline is enforced on
  the connection itself so the statement is cancelled server-side rather than
  abandoned in a background thread:
    SQLite      -- a progress handler interrupts the VM once the deadline passes,
                   and busy_timeout caps time spent waiting on another writer's
                   lock to what is left of the deadline.
    PostgreSQL  -- SET LOCAL statement_timeout for the current transaction.
  The connection is returned to the pool on every exit path, timeout included.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    ForeignKey,
    Integer,
    LargeBinary,
    MetaData,
    String,
    Table,
    UniqueConstraint,
    create_engine,
    select,
    text,
)
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError

from auth.errors import DuplicateEmailError, MissingPasswordHash, NotFoundError, StorageError, StorageTimeout
from auth.models import Password, User, UserSummary
from auth.tokens import hash_token
from core.config import get_settings

logger = logging.getLogger("userkeep.store")

# SQLite progress handler granularity, in VM instructions between deadline checks.
_PROGRESS_STEPS = 1000

# PostgreSQL SQLSTATE for query_canceled (raised by statement_timeout).
_PG_QUERY_CANCELED = "57014"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(100), nullable=False),
    Column("email", String(255), nullable=False),
    Column("password", LargeBinary, nullable=False),  # bcrypt hash
    Column("activated", Boolean, nullable=False, default=False),
    Column("created_at", String(32), nullable=False, default=lambda: iso_utc(datetime.now(timezone.utc))),
    Column("version", String(36), nullable=False, default=lambda: str(uuid.uuid4())),
    UniqueConstraint("email", name="users_email_key"),
)

_tokens = Table(
    "tokens",
    _metadata,
    Column("hash", String(64), primary_key=True),  # SHA-256 hex of the raw token
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("expiry", String(32), nullable=False),  # iso_utc()
    Column("scope", String(50), nullable=False),  # "authentication", "password-reset", ...
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def iso_utc(moment: datetime) -> str:
    """Format an aware datetime the way created_at and tokens.expiry are stored.

    Always YYYY-MM-DDTHH:MM:SS.ffffff+00:00. Fixed microsecond precision and a
    UTC offset keep string comparison in SQL equivalent to time comparison.
    Naive datetimes are taken as local time by astimezone().
    """
    return moment.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _is_duplicate_email(exc: IntegrityError) -> bool:
    # SQLite: "UNIQUE constraint failed: users.email"
    # PostgreSQL: 'duplicate key value violates unique constraint "users_email_key"'
    message = str(exc.orig)
    return "users_email_key" in message or "users.email" in message


def _is_timeout(exc: DBAPIError) -> bool:
    if getattr(exc.orig, "pgcode", None) == _PG_QUERY_CANCELED:
        return True
    # SQLite: "interrupted" from the progress handler, "database is locked"
    # once busy_timeout runs out waiting on another writer.
    message = str(exc.orig)
    return "interrupted" in message or "database is locked" in message


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records and bearer-token resolution.

    Usage:
        store = UserStore()
        user = User(name="Ada", email="ada@example.com")
        user.password.set("longenough1")
        store.create_user(user)
        store.get_for_token(raw_token, "authentication")
        store.close()
    """

    def __init__(
        self,
        db_url: str | None = None,
        query_timeout: float | None = None,
        insert_timeout: float | None = None,
    ) -> None:
        settings = get_settings()
        db_url = db_url or settings.database_url
        self.query_timeout = query_timeout if query_timeout is not None else settings.query_timeout_seconds
        self.insert_timeout = insert_timeout if insert_timeout is not None else settings.insert_timeout_seconds
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Deadlines
    # ------------------------------------------------------------------

    @contextmanager
    def _connect(self, timeout: float) -> Iterator[Connection]:
        """Check out a connection whose statements must finish within timeout seconds.

        Translates every SQLAlchemy error raised inside the block into
        StorageTimeout / StorageError. Domain errors raised by the block
        (NotFoundError, DuplicateEmailError) pass through untouched.
        """
        deadline = time.monotonic() + timeout
        try:
            with self.engine.connect() as conn:
                self._arm_deadline(conn, deadline, timeout)
                try:
                    yield conn
                finally:
                    self._disarm_deadline(conn)
        except DBAPIError as exc:
            if _is_timeout(exc):
                logger.warning("Storage deadline of %.1fs exceeded", timeout)
                raise StorageTimeout(f"storage did not respond within {timeout:g}s") from exc
            logger.error("Storage failure: %s", type(exc.orig).__name__)
            raise StorageError("storage failure") from exc
        except SQLAlchemyError as exc:
            logger.error("Storage failure: %s", type(exc).__name__)
            raise StorageError("storage failure") from exc

    def _arm_deadline(self, conn: Connection, deadline: float, timeout: float) -> None:
        dialect = self.engine.dialect.name
        if dialect == "sqlite":
            dbapi_conn = conn.connection.dbapi_connection
            dbapi_conn.set_progress_handler(
                lambda: 1 if time.monotonic() >= deadline else 0,
                _PROGRESS_STEPS,
            )
            # Lock waits do not run the VM, so the progress handler never sees
            # them. Cap them with what is left of the deadline.
            remaining_ms = max(1, int((deadline - time.monotonic()) * 1000))
            dbapi_conn.execute(f"PRAGMA busy_timeout = {remaining_ms}")  # noqa: S608
        elif dialect == "postgresql":
            # SET does not take bound parameters; the value is an int we computed.
            conn.execute(text(f"SET LOCAL statement_timeout = {int(timeout * 1000)}"))  # noqa: S608

    def _disarm_deadline(self, conn: Connection) -> None:
        # Pooled SQLite connections outlive this call; drop the handler so the
        # next checkout does not inherit an expired deadline.
        if self.engine.dialect.name == "sqlite":
            conn.connection.dbapi_connection.set_progress_handler(None, 0)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> None:
        """Insert user and fill in its storage-assigned id, created_at and version.

        Raises MissingPasswordHash before touching the database if
        Password.set() was never called -- persisting a user without a hash is
        a programming error, not bad input.

        Raises DuplicateEmailError if the email is already taken. The failed
        insert is rolled back, so the existing record is unaffected.
        """
        if not user.password.hash:
            raise MissingPasswordHash("password hash is not set; call Password.set() before create_user()")

        stmt = (
            _users.insert()
            .values(
                name=user.name,
                email=user.email,
                password=user.password.hash,
                activated=user.activated,
            )
            .returning(_users.c.id, _users.c.created_at, _users.c.version)
        )
        with self._connect(self.insert_timeout) as conn:
            try:
                row = conn.execute(stmt).one()
            except IntegrityError as exc:
                if _is_duplicate_email(exc):
                    logger.info("Rejected user insert: email already registered")
                    raise DuplicateEmailError() from exc
                raise
            conn.commit()

        user.id = row.id
        user.created_at = row.created_at
        user.version = uuid.UUID(row.version)
        logger.info("Created user id=%d", user.id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_for_token(self, token: str, scope: str) -> User:
        """Resolve a raw bearer token to its user.

        Matches the token's SHA-256 digest, the scope exactly, and an expiry
        strictly in the future. Raises NotFoundError for any miss -- callers
        must not try to tell the causes apart.
        """
        stmt = (
            select(_users)
            .select_from(_users.join(_tokens, _users.c.id == _tokens.c.user_id))
            .where(
                (_tokens.c.hash == hash_token(token))
                & (_tokens.c.scope == scope)
                & (_tokens.c.expiry > iso_utc(datetime.now(timezone.utc)))
            )
        )
        with self._connect(self.query_timeout) as conn:
            row = conn.execute(stmt).fetchone()
        if row is None:
            raise NotFoundError()
        return _row_to_user(row)

    def get_by_email(self, email: str) -> User:
        """Look up a user by exact email. Raises NotFoundError if absent."""
        with self._connect(self.query_timeout) as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        if row is None:
            raise NotFoundError()
        return _row_to_user(row)

    def get_summary_by_id(self, user_id: int) -> UserSummary:
        """Return (id, name) for a user. Raises NotFoundError if absent."""
        with self._connect(self.query_timeout) as conn:
            row = conn.execute(select(_users.c.id, _users.c.name).where(_users.c.id == user_id)).fetchone()
        if row is None:
            raise NotFoundError()
        return _row_to_summary(row)

    def list_excluding(self, user_id: int) -> list[UserSummary]:
        """Return every other user as (id, name), ordered by id. Empty list if none."""
        with self._connect(self.query_timeout) as conn:
            rows = conn.execute(
                select(_users.c.id, _users.c.name).where(_users.c.id != user_id).order_by(_users.c.id.asc())
            ).fetchall()
        return [_row_to_summary(r) for r in rows]

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    # Only the hash comes back from storage; plaintext stays None.
    return User(
        id=row.id,
        name=row.name,
        email=row.email,
        password=Password(hash=bytes(row.password)),
        activated=bool(row.activated),
        created_at=row.created_at,
        version=uuid.UUID(row.version),
    )


def _row_to_summary(row) -> UserSummary:
    return UserSummary(id=row.id, name=row.name)
