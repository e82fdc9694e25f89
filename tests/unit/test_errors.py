"""Unit tests for Rust-style error formatting."""

from __future__ import annotations

import os
import sys
from collections.abc import Iterator
from io import StringIO
from unittest import mock

import pytest

from mindlog.core.errors import (
    ConfigurationError,
    ErrorCode,
    MindlogError,
    MultipleValidationErrors,
    ScheduleNotFoundError,
    ScheduleValidationError,
    SchedulingInternalError,
    StorageError,
    ValidationReport,
    _mindlog_excepthook,
    _should_use_colors,
    _should_show_verbose,
    _should_use_plain_errors,
    install_error_handler,
    invalid_time_format,
    raise_collected,
    schedule_not_found,
    uninstall_error_handler,
)

pytestmark = pytest.mark.unit


# =============================================================================
# MindlogError
# =============================================================================


class TestMindlogError:
    """Tests for the MindlogError base class."""

    def test_basic_creation(self) -> None:
        error = MindlogError(message='something broke')

        assert error.message == 'something broke'
        assert error.code is None
        assert error.notes == []
        assert error.help_text is None

    def test_is_exception(self) -> None:
        with pytest.raises(MindlogError):
            raise MindlogError(message='boom')

    def test_exception_args_contains_message(self) -> None:
        error = MindlogError(message='boom')
        assert error.args == ('boom',)

    def test_fluent_api(self) -> None:
        error = MindlogError(message='x').with_note('first').with_note('second').with_help('try this')

        assert error.notes == ['first', 'second']
        assert error.help_text == 'try this'

    def test_format_rust_style_with_code_and_field(self) -> None:
        error = ScheduleValidationError(
            message='invalid day of week: 9',
            code=ErrorCode.INVALID_DAY_OF_WEEK,
            field_name='day_of_week',
        )

        output = error.format_rust_style(use_colors=False)

        assert 'error[E102]: invalid day of week: 9' in output
        assert '--> field `day_of_week`' in output

    def test_format_rust_style_with_notes_and_help(self) -> None:
        error = MindlogError(
            message='bad',
            notes=['line one\nline two'],
            help_text='do this',
        )

        output = error.format_rust_style(use_colors=False)

        assert '= note: line one' in output
        assert '          line two' in output
        assert 'help' in output
        assert 'do this' in output

    def test_format_rust_style_with_colors(self) -> None:
        error = MindlogError(message='bad', code=ErrorCode.STORAGE_FAILED)
        assert '\033[' in error.format_rust_style(use_colors=True)

    def test_format_rust_style_default_colors_auto_detects(self) -> None:
        """use_colors=None delegates to _should_use_colors()."""
        error = MindlogError(message='bad')
        with mock.patch('mindlog.core.errors._should_use_colors', return_value=False):
            assert '\033[' not in error.format_rust_style()

    def test_str_is_plain(self) -> None:
        error = MindlogError(message='bad', code=ErrorCode.STORAGE_FAILED)
        assert str(error) == error.format_rust_style(use_colors=False)
        assert '\033[' not in str(error)

    def test_to_dict(self) -> None:
        error = invalid_time_format('9:00')

        assert error.to_dict() == {
            'kind': 'error',
            'code': 'E100',
            'field': 'time_of_day',
            'message': "invalid time format: '9:00'",
            'notes': error.notes,
        }


class TestSpecificErrors:
    def test_internal_error_is_labelled(self) -> None:
        error = SchedulingInternalError(message='overflow', code=ErrorCode.DATE_PARSE_ERROR)

        assert str(error).lstrip().startswith('internal error[E300]')
        assert error.to_dict()['kind'] == 'internal error'

    def test_validation_error_is_not_labelled_internal(self) -> None:
        assert invalid_time_format('x').to_dict()['kind'] == 'error'

    def test_schedule_not_found(self) -> None:
        error = schedule_not_found(42)

        assert isinstance(error, ScheduleNotFoundError)
        assert error.schedule_id == 42
        assert error.code == ErrorCode.SCHEDULE_NOT_FOUND
        assert '42' in error.message

    @pytest.mark.parametrize(
        'code, fatal',
        [
            (ErrorCode.STORAGE_BUSY, False),
            (ErrorCode.STORAGE_FAILED, False),
            (ErrorCode.STORAGE_CORRUPTED, True),
        ],
    )
    def test_storage_error_fatal_only_when_corrupted(self, code: ErrorCode, fatal: bool) -> None:
        assert StorageError(message='x', code=code).fatal is fatal

    def test_storage_error_defaults_to_not_retryable(self) -> None:
        assert StorageError(message='x').retryable is False


# =============================================================================
# ValidationReport / raise_collected
# =============================================================================


class TestRaiseCollected:
    def test_no_errors_is_noop(self) -> None:
        raise_collected(ValidationReport('schedule'))

    def test_single_error_raised_as_itself(self) -> None:
        report = ValidationReport('schedule')
        report.add(invalid_time_format('x'))

        with pytest.raises(ScheduleValidationError):
            raise_collected(report)

    def test_multiple_errors_wrapped(self) -> None:
        report = ValidationReport('schedule')
        report.add(invalid_time_format('x'))
        report.add(ConfigurationError(message='y', code=ErrorCode.CONFIG_INVALID))

        with pytest.raises(MultipleValidationErrors) as exc_info:
            raise_collected(report)

        exc = exc_info.value
        assert exc.message == 'aborting due to 2 previous errors'
        assert len(exc.to_dict()['errors']) == 2
        assert 'aborting due to 2 previous errors' in str(exc)
        assert 'error[E100]' in str(exc)
        assert 'error[E500]' in str(exc)


# =============================================================================
# Environment switches
# =============================================================================


class TestEnvironmentSwitches:
    def test_should_use_colors_force_enabled(self) -> None:
        with mock.patch.dict(os.environ, {'MINDLOG_FORCE_COLOR': 'yes'}):
            assert _should_use_colors() is True

    def test_should_use_colors_no_color_disables(self) -> None:
        with mock.patch.dict(os.environ, {'NO_COLOR': '1', 'MINDLOG_FORCE_COLOR': ''}):
            assert _should_use_colors() is False

    def test_should_use_colors_force_color_beats_no_color(self) -> None:
        with mock.patch.dict(os.environ, {'MINDLOG_FORCE_COLOR': '1', 'NO_COLOR': '1'}):
            assert _should_use_colors() is True

    def test_should_use_colors_tty_fallback(self) -> None:
        cleaned_env = {
            k: v for k, v in os.environ.items() if k not in ('MINDLOG_FORCE_COLOR', 'NO_COLOR')
        }
        with mock.patch.dict(os.environ, cleaned_env, clear=True):
            with mock.patch.object(sys.stderr, 'isatty', return_value=False):
                assert _should_use_colors() is False

    def test_verbose_and_plain_flags(self) -> None:
        with mock.patch.dict(os.environ, {'MINDLOG_VERBOSE': 'true', 'MINDLOG_PLAIN_ERRORS': '1'}):
            assert _should_show_verbose() is True
            assert _should_use_plain_errors() is True
        with mock.patch.dict(os.environ, {'MINDLOG_VERBOSE': '', 'MINDLOG_PLAIN_ERRORS': '0'}):
            assert _should_show_verbose() is False
            assert _should_use_plain_errors() is False


# =============================================================================
# Exception hook
# =============================================================================


@pytest.fixture
def _restore_excepthook() -> Iterator[None]:
    original = sys.excepthook
    yield
    sys.excepthook = original


class TestExceptHook:
    @pytest.mark.usefixtures('_restore_excepthook')
    def test_install_and_uninstall(self) -> None:
        install_error_handler()
        assert sys.excepthook is _mindlog_excepthook

        uninstall_error_handler()
        assert sys.excepthook is not _mindlog_excepthook

    def test_mindlog_error_is_printed_rust_style(self) -> None:
        error = schedule_not_found(3)
        stderr = StringIO()

        with (
            mock.patch.dict(os.environ, {'MINDLOG_PLAIN_ERRORS': '', 'MINDLOG_VERBOSE': '', 'NO_COLOR': '1', 'MINDLOG_FORCE_COLOR': ''}),
            mock.patch.object(sys, 'stderr', stderr),
        ):
            _mindlog_excepthook(ScheduleNotFoundError, error, None)

        assert 'error[E200]: schedule not found: 3' in stderr.getvalue()

    def test_other_exceptions_use_original_hook(self) -> None:
        with mock.patch('mindlog.core.errors._original_excepthook') as original:
            exc = RuntimeError('plain')
            _mindlog_excepthook(RuntimeError, exc, None)

        original.assert_called_once_with(RuntimeError, exc, None)

    def test_plain_errors_flag_uses_original_hook(self) -> None:
        error = schedule_not_found(3)
        with (
            mock.patch.dict(os.environ, {'MINDLOG_PLAIN_ERRORS': '1'}),
            mock.patch('mindlog.core.errors._original_excepthook') as original,
        ):
            _mindlog_excepthook(ScheduleNotFoundError, error, None)

        original.assert_called_once()
