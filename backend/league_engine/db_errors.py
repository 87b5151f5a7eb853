"""Helpers for working with database/SQLAlchemy errors."""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

_UNIQUE_VIOLATION_SQLSTATES = {"23505"}


def is_unique_violation(exc: SQLAlchemyError, constraint_name: str | None = None) -> bool:
    """Return ``True`` if ``exc`` is a unique-constraint violation.

    Parameters
    ----------
    exc:
        The SQLAlchemy exception to inspect.
    constraint_name:
        Optional constraint (or table) name that must be present in the
        original database error message. SQLite reports the violated columns
        rather than the constraint, so the match is attempted against both.
    """

    if not isinstance(exc, IntegrityError):
        return False

    orig = getattr(exc, "orig", None)
    if orig is None:
        return False

    message = str(orig).lower()
    sqlstate = getattr(orig, "sqlstate", None)
    if sqlstate in _UNIQUE_VIOLATION_SQLSTATES:
        return constraint_name is None or constraint_name.lower() in message

    if "unique" not in message:
        return False

    if constraint_name is None:
        return True

    return constraint_name.lower() in message
