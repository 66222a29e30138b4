"""
Error taxonomy shared by repositories, services and admin views.

Repositories raise only these types; driver exceptions are translated by
translate_store_error() at the repository boundary.
"""

import re
from typing import Optional

import psycopg2
from psycopg2 import errors

# SQLSTATE codes
UNIQUE_VIOLATION = '23505'
NOT_NULL_VIOLATION = '23502'
CHECK_VIOLATION = '23514'
INVALID_TEXT_REPRESENTATION = '22P02'

_CONSTRAINT_RE = re.compile(r'unique constraint "([^"]+)"')


class FolioError(Exception):
    """Base class for all errors surfaced to callers."""


class ValidationError(FolioError, ValueError):
    """Caller-supplied data failed a required-field or format check."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class ConflictError(FolioError):
    """A uniqueness constraint (slug, email, key) was violated."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class NotFoundError(FolioError, LookupError):
    """The targeted id/slug does not exist (or is not writable)."""


class StoreError(FolioError):
    """Backing service failure: network, auth, quota."""


class AuthError(FolioError):
    """Credentials rejected or session no longer valid."""


def _constraint_column(table: str, constraint: Optional[str], candidates) -> Optional[str]:
    # Postgres default naming: <table>_<column>_key
    if not constraint:
        return None
    for column in candidates:
        if constraint == f"{table}_{column}_key":
            return column
    prefix = f"{table}_"
    if constraint.startswith(prefix) and constraint.endswith("_key"):
        return constraint[len(prefix):-len("_key")]
    return None


def _diag(exc, name: str) -> Optional[str]:
    diag = getattr(exc, 'diag', None)
    return getattr(diag, name, None) if diag is not None else None


def translate_store_error(exc: psycopg2.Error, table: str, unique_columns=()) -> FolioError:
    """Map a psycopg2 error to the taxonomy above."""
    code = getattr(exc, 'pgcode', None)
    message = _diag(exc, 'message_primary') or str(exc).strip() or type(exc).__name__

    if code == UNIQUE_VIOLATION or isinstance(exc, errors.UniqueViolation):
        constraint = _diag(exc, 'constraint_name')
        if not constraint:
            match = _CONSTRAINT_RE.search(str(exc))
            constraint = match.group(1) if match else None
        column = _constraint_column(table, constraint, unique_columns)
        label = f"{table}.{column}" if column else table
        return ConflictError(f"{label} already exists", field=column)

    if code in (NOT_NULL_VIOLATION, CHECK_VIOLATION) or isinstance(exc, (errors.NotNullViolation, errors.CheckViolation)):
        return ValidationError(message, field=_diag(exc, 'column_name'))

    if code == INVALID_TEXT_REPRESENTATION or isinstance(exc, errors.InvalidTextRepresentation):
        return ValidationError(message)

    return StoreError(message)
