"""Unit tests for mindlog.core.utils.db error classification helpers."""

from __future__ import annotations

import sqlite3

import pytest
from sqlalchemy.exc import DatabaseError as SADatabaseError
from sqlalchemy.exc import IntegrityError as SAIntegrityError
from sqlalchemy.exc import OperationalError as SAOperationalError

from mindlog.core.errors import ErrorCode, StorageError
from mindlog.core.utils.db import (
    classify_storage_error,
    is_busy_error,
    is_corruption_error,
)


def _locked() -> SAOperationalError:
    return SAOperationalError(
        statement='UPDATE assessment_schedules SET last_triggered_at=?',
        params=None,
        orig=sqlite3.OperationalError('database is locked'),
    )


def _malformed() -> SADatabaseError:
    return SADatabaseError(
        statement='SELECT 1',
        params=None,
        orig=sqlite3.DatabaseError('database disk image is malformed'),
    )


@pytest.mark.unit
class TestIsBusyError:
    def test_locked_database(self) -> None:
        assert is_busy_error(_locked()) is True

    def test_bare_driver_error(self) -> None:
        assert is_busy_error(sqlite3.OperationalError('database table is locked')) is True

    def test_other_operational_error(self) -> None:
        exc = SAOperationalError('SELECT 1', None, sqlite3.OperationalError('no such table: x'))
        assert is_busy_error(exc) is False

    def test_non_database_error(self) -> None:
        assert is_busy_error(ValueError('database is locked')) is False


@pytest.mark.unit
class TestIsCorruptionError:
    def test_malformed_image(self) -> None:
        assert is_corruption_error(_malformed()) is True

    def test_not_a_database(self) -> None:
        assert is_corruption_error(sqlite3.DatabaseError('file is not a database')) is True

    def test_locked_is_not_corruption(self) -> None:
        assert is_corruption_error(_locked()) is False


@pytest.mark.unit
class TestClassifyStorageError:
    def test_busy_is_retryable(self) -> None:
        err = classify_storage_error(_locked(), 'mark schedule triggered')

        assert err.code == ErrorCode.STORAGE_BUSY
        assert err.retryable is True
        assert err.fatal is False
        assert err.message.startswith('mark schedule triggered failed')
        assert 'database is locked' in err.notes[0]

    def test_corruption_is_fatal(self) -> None:
        err = classify_storage_error(_malformed(), 'list schedules')

        assert err.code == ErrorCode.STORAGE_CORRUPTED
        assert err.retryable is False
        assert err.fatal is True

    def test_constraint_violation_is_permanent_failure(self) -> None:
        exc = SAIntegrityError(
            'INSERT', None, sqlite3.IntegrityError('CHECK constraint failed: ck_frequency')
        )

        err = classify_storage_error(exc, 'create schedule')

        assert err.code == ErrorCode.STORAGE_FAILED
        assert err.retryable is False

    def test_unknown_exception_is_permanent_failure(self) -> None:
        err = classify_storage_error(RuntimeError('boom'), 'get schedule')

        assert err.code == ErrorCode.STORAGE_FAILED
        assert err.notes == ['boom']

    def test_storage_error_passes_through(self) -> None:
        original = StorageError(message='x', code=ErrorCode.STORAGE_BUSY, retryable=True)

        assert classify_storage_error(original, 'anything') is original
