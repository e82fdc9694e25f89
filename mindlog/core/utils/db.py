# mindlog/core/utils/db.py
"""Shared helpers for classifying SQLite storage errors."""

from __future__ import annotations

import sqlite3

from sqlalchemy.exc import DBAPIError

from mindlog.core.errors import ErrorCode, StorageError

_BUSY_MARKERS = ('database is locked', 'database table is locked', 'busy')
_CORRUPTION_MARKERS = (
    'malformed',
    'file is not a database',
    'disk image is malformed',
    'corrupt',
)


def _driver_error(exc: BaseException) -> BaseException:
    if isinstance(exc, DBAPIError) and exc.orig is not None:
        return exc.orig
    return exc


def is_busy_error(exc: BaseException) -> bool:
    """Check whether an exception is transient lock contention worth retrying."""
    orig = _driver_error(exc)
    match orig:
        case sqlite3.OperationalError() if any(m in str(orig).lower() for m in _BUSY_MARKERS):
            return True
        case _:
            return False


def is_corruption_error(exc: BaseException) -> bool:
    """Check whether an exception means the database file cannot be trusted."""
    orig = _driver_error(exc)
    match orig:
        case sqlite3.DatabaseError() if any(
            m in str(orig).lower() for m in _CORRUPTION_MARKERS
        ):
            return True
        case _:
            return False


def classify_storage_error(exc: BaseException, operation: str) -> StorageError:
    """Wrap a driver/SQLAlchemy exception into a StorageError."""
    if isinstance(exc, StorageError):
        return exc

    detail = str(_driver_error(exc))
    if is_busy_error(exc):
        return StorageError(
            message=f'{operation} failed: database is busy',
            code=ErrorCode.STORAGE_BUSY,
            notes=[detail],
            help_text='the operation is safe to retry once the lock is released',
            retryable=True,
        )
    if is_corruption_error(exc):
        return StorageError(
            message=f'{operation} failed: database file is corrupted',
            code=ErrorCode.STORAGE_CORRUPTED,
            notes=[detail],
            help_text='restore the database from a backup and restart the application',
            retryable=False,
        )
    return StorageError(
        message=f'{operation} failed',
        code=ErrorCode.STORAGE_FAILED,
        notes=[detail],
        retryable=False,
    )
