"""Rust-style error display for mindlog validation, scheduling and storage errors."""

from __future__ import annotations

import os
import sys
import traceback
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar


class ErrorCode(str, Enum):
    """Stable error codes.

    Organized by category:
    - E100-E199: Schedule validation errors (user-facing, field-attributed)
    - E200-E299: Lookup errors
    - E300-E399: Scheduling engine internal errors
    - E400-E499: Storage errors
    - E500-E599: Config/CLI errors
    """

    # Schedule validation (E100-E199)
    INVALID_TIME_FORMAT = 'E100'
    INVALID_FREQUENCY = 'E101'
    INVALID_DAY_OF_WEEK = 'E102'
    INVALID_DAY_OF_MONTH = 'E103'
    INVALID_REQUEST = 'E104'

    # Lookup (E200-E299)
    SCHEDULE_NOT_FOUND = 'E200'

    # Scheduling internals (E300-E399)
    DATE_PARSE_ERROR = 'E300'
    CATCH_UP_LIMIT_EXCEEDED = 'E301'

    # Storage (E400-E499)
    STORAGE_BUSY = 'E400'
    STORAGE_FAILED = 'E401'
    STORAGE_CORRUPTED = 'E402'

    # Config/CLI (E500-E599)
    CONFIG_INVALID = 'E500'
    CLI_INVALID_ARGS = 'E501'


_ANSI = {
    'reset': '\033[0m',
    'bold': '\033[1m',
    'dim': '\033[2m',
    'red': '\033[91m',
    'green': '\033[92m',
    'blue': '\033[94m',
    'cyan': '\033[96m',
}


class _Style:
    """Wraps text in ANSI codes, or leaves it untouched when colors are off."""

    def __init__(self, enabled: bool) -> None:
        self.enabled = enabled

    def __call__(self, text: str, *styles: str) -> str:
        if not self.enabled or not styles:
            return text
        prefix = ''.join(_ANSI[s] for s in styles)
        return f'{prefix}{text}{_ANSI["reset"]}'


def _env_flag(name: str) -> bool:
    return os.environ.get(name, '').lower() in ('1', 'true', 'yes')


def _should_use_colors() -> bool:
    """Colors on stderr: forced, disabled via NO_COLOR, else only on a TTY."""
    if _env_flag('MINDLOG_FORCE_COLOR'):
        return True

    # https://no-color.org/
    if os.environ.get('NO_COLOR') is not None:
        return False

    return hasattr(sys.stderr, 'isatty') and sys.stderr.isatty()


def _should_show_verbose() -> bool:
    """MINDLOG_VERBOSE appends the Python traceback to formatted errors."""
    return _env_flag('MINDLOG_VERBOSE')


def _should_use_plain_errors() -> bool:
    """MINDLOG_PLAIN_ERRORS restores the default Python traceback output."""
    return _env_flag('MINDLOG_PLAIN_ERRORS')


def _style_for(use_colors: bool | None) -> _Style:
    return _Style(_should_use_colors() if use_colors is None else use_colors)


def _indented(first_prefix: str, text: str, rest_indent: str) -> list[str]:
    head, *tail = text.split('\n')
    return [f'{first_prefix}{head}'] + [f'{rest_indent}{line}' for line in tail]


@dataclass
class MindlogError(Exception):
    """Base exception for mindlog errors.

    Rendered rustc-style: a ``label[code]: message`` header, an arrow
    pointing at the offending request field, then notes and help.
    """

    label: ClassVar[str] = 'error'

    message: str
    code: ErrorCode | None = None
    field_name: str | None = None
    notes: list[str] = field(default_factory=lambda: [])
    help_text: str | None = None

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def with_note(self, note: str) -> MindlogError:
        self.notes.append(note)
        return self

    def with_help(self, help_text: str) -> MindlogError:
        self.help_text = help_text
        return self

    def to_dict(self) -> dict[str, Any]:
        """Structured form handed to the UI layer."""
        return {
            'kind': self.label,
            'code': self.code.value if self.code else None,
            'field': self.field_name,
            'message': self.message,
            'notes': list(self.notes),
        }

    def format_rust_style(self, use_colors: bool | None = None) -> str:
        style = _style_for(use_colors)
        header = self.label + (f'[{self.code.value}]' if self.code else '') + ':'
        lines = ['', f'{style(header, "bold", "red")} {self.message}']

        if self.field_name:
            lines.append(f'  {style("-->", "blue")} {style(f"field `{self.field_name}`", "cyan")}')

        note_prefix = f'   {style("=", "blue")} {style("note", "bold", "blue")}: '
        for note in self.notes:
            lines.extend(_indented(note_prefix, note, ' ' * 10))

        if self.help_text:
            lines.append('')
            lines.append(f'   {style("=", "blue")} {style("help", "bold", "green")}:')
            lines.extend(_indented(' ' * 8, self.help_text, ' ' * 8))

        return '\n'.join(lines)

    def __str__(self) -> str:
        """Plain text (no ANSI colors), safe for logs and storage."""
        return self.format_rust_style(use_colors=False)


# =============================================================================
# Specific Error Classes
# =============================================================================


@dataclass
class ScheduleValidationError(MindlogError):
    """Raised when a schedule definition or request field is invalid."""

    pass


@dataclass
class ScheduleNotFoundError(MindlogError):
    """Raised when a schedule id is unknown."""

    schedule_id: int | None = None


@dataclass
class SchedulingInternalError(MindlogError):
    """Raised when recurrence arithmetic fails on validated input.

    Signals a bug or corrupted stored data, never a user mistake.
    """

    label: ClassVar[str] = 'internal error'


@dataclass
class StorageError(MindlogError):
    """Raised when the schedule store fails.

    `retryable` is set for transient lock contention. STORAGE_CORRUPTED
    means the in-process view can no longer be trusted and the process
    has to be restarted.
    """

    retryable: bool = False

    @property
    def fatal(self) -> bool:
        return self.code == ErrorCode.STORAGE_CORRUPTED


@dataclass
class ConfigurationError(MindlogError):
    """Raised when app/storage/CLI configuration is invalid."""

    pass


# =============================================================================
# Collected validation errors
# =============================================================================


class ValidationReport:
    """Accumulates the errors of one validation pass (e.g. one request).

    Validators add every problem they find instead of stopping at the
    first one, so a form can highlight all bad fields at once.
    """

    def __init__(self, phase_name: str) -> None:
        self.phase_name: str = phase_name
        self.errors: list[MindlogError] = []

    def add(self, error: MindlogError) -> None:
        self.errors.append(error)

    def has_errors(self) -> bool:
        return bool(self.errors)

    def format_rust_style(self, use_colors: bool | None = None) -> str:
        style = _style_for(use_colors)
        rendered = [error.format_rust_style(use_colors=style.enabled) for error in self.errors]
        summary = f'{style("error", "bold", "red")}: aborting due to {len(self.errors)} previous errors'
        return '\n'.join(rendered + ['', summary])

    def __str__(self) -> str:
        return self.format_rust_style(use_colors=False)


@dataclass
class MultipleValidationErrors(MindlogError):
    """Two or more validation errors raised together; `report` holds them all."""

    report: ValidationReport = field(default_factory=lambda: ValidationReport(''))

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f'aborting due to {len(self.report.errors)} previous errors'
        super().__post_init__()

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data['errors'] = [error.to_dict() for error in self.report.errors]
        return data

    def format_rust_style(self, use_colors: bool | None = None) -> str:
        return self.report.format_rust_style(use_colors=use_colors)

    def __str__(self) -> str:
        return self.format_rust_style(use_colors=False)


def raise_collected(report: ValidationReport) -> None:
    """Raise whatever the report collected; return normally if it is empty.

    A single error is raised as itself so callers keep catching
    ScheduleValidationError; two or more are wrapped in
    MultipleValidationErrors.
    """
    match report.errors:
        case []:
            return
        case [only]:
            raise only
        case errors:
            raise MultipleValidationErrors(
                message=f'aborting due to {len(errors)} previous errors',
                report=report,
            )


# =============================================================================
# Exception hook
# =============================================================================

_original_excepthook = sys.excepthook


def _mindlog_excepthook(
    exc_type: type[BaseException],
    exc_value: BaseException,
    exc_tb: Any,
) -> None:
    """Print MindlogError rustc-style; everything else goes to the original hook."""
    if _should_use_plain_errors() or not isinstance(exc_value, MindlogError):
        _original_excepthook(exc_type, exc_value, exc_tb)
        return

    print(exc_value.format_rust_style(), file=sys.stderr)

    if _should_show_verbose():
        style = _style_for(None)
        print(file=sys.stderr)
        print(style('Full traceback (MINDLOG_VERBOSE=1):', 'dim'), file=sys.stderr)
        traceback.print_exception(exc_type, exc_value, exc_tb, file=sys.stderr)


def install_error_handler() -> None:
    """Install the custom exception hook for Rust-style error display."""
    sys.excepthook = _mindlog_excepthook


def uninstall_error_handler() -> None:
    """Restore the original exception hook."""
    sys.excepthook = _original_excepthook


# =============================================================================
# Helper Functions for Creating Errors
# =============================================================================


def invalid_time_format(value: object, *, field_name: str = 'time_of_day') -> ScheduleValidationError:
    return ScheduleValidationError(
        message=f'invalid time format: {value!r}',
        code=ErrorCode.INVALID_TIME_FORMAT,
        field_name=field_name,
        notes=['expected two 2-digit groups separated by ":" (hour 00-23, minute 00-59)'],
        help_text="use 24-hour 'HH:MM', e.g. '09:00' or '21:30'",
    )


def schedule_not_found(schedule_id: int) -> ScheduleNotFoundError:
    return ScheduleNotFoundError(
        message=f'schedule not found: {schedule_id}',
        code=ErrorCode.SCHEDULE_NOT_FOUND,
        schedule_id=schedule_id,
    )
