#!/usr/bin/env python3
"""
userkeep -- command-line administration for user accounts.

Usage:
  python main.py create-user --name Ada --email ada@example.com --password longenough1
  python main.py list-users --exclude 1
  python main.py whois --token <raw-token> --scope authentication

Environment variables:
  DATABASE_URL           SQLAlchemy URL of the user database (default: auth/userkeep.db)
  QUERY_TIMEOUT_SECONDS  Deadline for lookups (default: 3)
  BCRYPT_ROUNDS          bcrypt cost factor (default: 12)

The password may be omitted from create-user, in which case it is read from a
prompt without echo so it does not land in shell history.
"""

import argparse
import getpass
import logging
import sys
from typing import Optional

from auth.errors import AuthError, DuplicateEmailError, NotFoundError
from auth.models import User
from auth.store import UserStore
from auth.validation import validate_password, validate_user
from core.config import get_settings
from core.validator import Validator

logger = logging.getLogger("userkeep.cli")


def _print_errors(errors: dict[str, str]) -> None:
    for key, message in errors.items():
        print(f"  [!] {key}: {message}")


def create_user(store: UserStore, name: str, email: str, password: str) -> Optional[User]:
    """Validate, hash and persist a new account. Returns None after printing why it failed."""
    user = User(name=name, email=email)
    v = Validator()
    validate_user(v, user)
    validate_password(v, password)
    if not v.valid:
        _print_errors(v.errors)
        return None

    user.password.set(password)
    try:
        store.create_user(user)
    except DuplicateEmailError:
        _print_errors({"email": "a user with this email address already exists"})
        return None
    return user


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="userkeep",
        description="Manage userkeep accounts and inspect bearer tokens.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py create-user --name Ada --email ada@example.com
  python main.py list-users --exclude 1
  python main.py whois --token 7DQ4... --scope password-reset
  DATABASE_URL=postgresql://user:pw@host/db python main.py list-users
        """,
    )
    parser.add_argument(
        "--db",
        metavar="URL",
        default=None,
        help="SQLAlchemy database URL (overrides DATABASE_URL)",
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    create = sub.add_parser("create-user", help="Create an account")
    create.add_argument("--name", required=True)
    create.add_argument("--email", required=True)
    create.add_argument("--password", default=None, help="Omit to be prompted without echo")

    listing = sub.add_parser("list-users", help="List accounts as id and name")
    listing.add_argument(
        "--exclude",
        type=int,
        default=0,
        metavar="ID",
        help="User id to leave out of the listing (default: none)",
    )

    whois = sub.add_parser("whois", help="Resolve a bearer token to its account")
    whois.add_argument("--token", required=True)
    whois.add_argument("--scope", default="authentication")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    store = UserStore(db_url=args.db)
    try:
        if args.command == "create-user":
            password = args.password if args.password is not None else getpass.getpass("Password: ")
            user = create_user(store, args.name, args.email, password)
            if user is None:
                return 1
            print(f"Created user {user.id} ({user.email}) at {user.created_at}")

        elif args.command == "list-users":
            for summary in store.list_excluding(args.exclude):
                print(f"{summary.id:>6}  {summary.name}")

        elif args.command == "whois":
            try:
                user = store.get_for_token(args.token, args.scope)
            except NotFoundError:
                print("  [!] Invalid or expired token.")
                return 1
            state = "activated" if user.activated else "not activated"
            print(f"{user.id}  {user.name} <{user.email}>  {state}")

    except AuthError as exc:
        logger.error("%s failed: %s", args.command, exc)
        print("  [!] The operation failed. See the log for details.")
        return 2
    finally:
        store.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
