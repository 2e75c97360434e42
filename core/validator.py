"""
core/validator.py -- Field error accumulator shared by every validation rule.

Rules call check() for each condition; the first message recorded for a field
wins so callers see one actionable message per field. Nothing here raises --
the caller inspects .valid and decides whether to continue.

Usage:
    v = Validator()
    v.check(name != "", "name", "is blank")
    if not v.valid:
        return v.errors
"""

from __future__ import annotations


class Validator:
    def __init__(self) -> None:
        self.errors: dict[str, str] = {}

    @property
    def valid(self) -> bool:
        return not self.errors

    def add_error(self, key: str, message: str) -> None:
        """Record message for key unless the field already has one."""
        self.errors.setdefault(key, message)

    def check(self, ok: bool, key: str, message: str) -> None:
        if not ok:
            self.add_error(key, message)
