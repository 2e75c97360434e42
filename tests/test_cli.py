"""Tests for main.py -- the account administration CLI.

Each test points the CLI at a fresh SQLite file under tmp_path via --db, so
the store opened by main() and the one used for assertions share data.
"""

from __future__ import annotations

import pytest

from auth.store import UserStore
from main import main


@pytest.fixture
def db_url(tmp_path) -> str:
    return f"sqlite:///{tmp_path / 'cli.db'}"


def test_no_command_prints_help(capsys) -> None:
    assert main([]) == 0
    assert "create-user" in capsys.readouterr().out


def test_create_user(db_url: str, capsys) -> None:
    rc = main(["--db", db_url, "create-user", "--name", "Ada", "--email", "ada@x.com", "--password", "longenough1"])
    assert rc == 0
    assert "Created user 1 (ada@x.com)" in capsys.readouterr().out

    store = UserStore(db_url)
    try:
        assert store.get_by_email("ada@x.com").password.matches("longenough1")
    finally:
        store.close()


def test_create_user_reports_every_field_error(db_url: str, capsys) -> None:
    rc = main(["--db", db_url, "create-user", "--name", "", "--email", "", "--password", "short"])
    assert rc == 1
    out = capsys.readouterr().out
    assert "name: is blank" in out
    assert "email: is blank" in out
    assert "password: must be at least 8 chars long" in out


def test_create_user_duplicate_email(db_url: str, capsys) -> None:
    args = ["--db", db_url, "create-user", "--name", "Ada", "--email", "ada@x.com", "--password", "longenough1"]
    assert main(args) == 0
    assert main(args) == 1
    assert "email: a user with this email address already exists" in capsys.readouterr().out


def test_list_users_excludes_id(db_url: str, capsys) -> None:
    for name in ("a", "b", "c"):
        main(["--db", db_url, "create-user", "--name", name, "--email", f"{name}@x.com", "--password", "longenough1"])
    capsys.readouterr()

    assert main(["--db", db_url, "list-users", "--exclude", "3"]) == 0
    lines = capsys.readouterr().out.splitlines()
    assert [line.split() for line in lines] == [["1", "a"], ["2", "b"]]


def test_whois(db_url: str, issue_token_row, capsys) -> None:
    main(["--db", db_url, "create-user", "--name", "Ada", "--email", "ada@x.com", "--password", "longenough1"])
    store = UserStore(db_url)
    try:
        token = issue_token_row(store, 1, scope="password-reset")
    finally:
        store.close()
    capsys.readouterr()

    assert main(["--db", db_url, "whois", "--token", token, "--scope", "password-reset"]) == 0
    assert "Ada <ada@x.com>  not activated" in capsys.readouterr().out

    assert main(["--db", db_url, "whois", "--token", token]) == 1
    assert "Invalid or expired token." in capsys.readouterr().out
