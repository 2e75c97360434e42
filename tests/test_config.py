"""Unit tests for core/config.py -- Settings validation.

Settings() is constructed directly (not through get_settings()) so each case
sees only the environment it sets up.
"""

from __future__ import annotations

import logging

import pytest

from core.config import Settings


def test_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("BCRYPT_ROUNDS", raising=False)
    settings = Settings(_env_file=None)
    assert settings.bcrypt_rounds == 12
    assert settings.query_timeout_seconds == 3.0
    assert settings.insert_timeout_seconds == 4.0
    assert settings.database_url.startswith("sqlite:///")


def test_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("QUERY_TIMEOUT_SECONDS", "1.5")
    monkeypatch.setenv("DATABASE_URL", "sqlite:///:memory:")
    settings = Settings(_env_file=None)
    assert settings.query_timeout_seconds == 1.5
    assert settings.database_url == "sqlite:///:memory:"


@pytest.mark.parametrize("rounds", [3, 32])
def test_rejects_bcrypt_rounds_out_of_range(monkeypatch: pytest.MonkeyPatch, rounds: int) -> None:
    monkeypatch.setenv("BCRYPT_ROUNDS", str(rounds))
    with pytest.raises(ValueError, match="BCRYPT_ROUNDS"):
        Settings(_env_file=None)


@pytest.mark.parametrize("var", ["QUERY_TIMEOUT_SECONDS", "INSERT_TIMEOUT_SECONDS"])
def test_rejects_non_positive_timeouts(monkeypatch: pytest.MonkeyPatch, var: str) -> None:
    monkeypatch.setenv(var, "0")
    with pytest.raises(ValueError, match="timeouts"):
        Settings(_env_file=None)


def test_reduced_rounds_outside_debug_warns(monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture) -> None:
    monkeypatch.setenv("DEBUG", "false")
    monkeypatch.setenv("BCRYPT_ROUNDS", "4")
    with caplog.at_level(logging.WARNING, logger="userkeep.config"):
        Settings(_env_file=None)
    warnings = [r for r in caplog.records if r.name == "userkeep.config"]
    assert len(warnings) == 1
    assert warnings[0].levelno == logging.WARNING
    assert warnings[0].getMessage().startswith("BCRYPT_ROUNDS=4")


def test_reduced_rounds_in_debug_is_silent(monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture) -> None:
    monkeypatch.setenv("DEBUG", "true")
    monkeypatch.setenv("BCRYPT_ROUNDS", "4")
    with caplog.at_level(logging.WARNING, logger="userkeep.config"):
        Settings(_env_file=None)
    assert not [r for r in caplog.records if r.name == "userkeep.config"]
