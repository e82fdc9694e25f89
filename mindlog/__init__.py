"""mindlog - recurring assessment reminders for a local mental-health journal"""

# Install Rust-style error handler on import
from .core.errors import install_error_handler as _install_error_handler

_install_error_handler()

from .core.models.app import AppConfig, SubjectLabel
from .core.models.storage import StorageConfig
from .core.models.schedule import (
    Frequency,
    Schedule,
    CreateScheduleRequest,
    UpdateScheduleRequest,
    PollerConfig,
)
from .core.errors import (
    ErrorCode,
    MindlogError,
    ScheduleValidationError,
    ScheduleNotFoundError,
    SchedulingInternalError,
    StorageError,
    ConfigurationError,
    ValidationReport,
    MultipleValidationErrors,
)
from .core.scheduler import (
    SchedulePoller,
    ScheduleRepository,
    PollerState,
    PollReport,
    next_trigger,
    is_due,
    due_at,
    preview_triggers,
)
from .core.storage import ScheduleDatabase, StorageResult
from .core.commands import ScheduleCommands, CommandError, CommandResult
from .core.notifications import Notification, Notifier, LoggingNotifier, build_reminder
from .core.utils.clock import Clock, FixedClock, system_clock
from .core.types.result import Result, Ok, Err, is_ok, is_err

__all__ = [
    # Config
    'AppConfig',
    'SubjectLabel',
    'StorageConfig',
    'PollerConfig',
    # Schedules
    'Frequency',
    'Schedule',
    'CreateScheduleRequest',
    'UpdateScheduleRequest',
    # Errors
    'ErrorCode',
    'MindlogError',
    'ScheduleValidationError',
    'ScheduleNotFoundError',
    'SchedulingInternalError',
    'StorageError',
    'ConfigurationError',
    'ValidationReport',
    'MultipleValidationErrors',
    # Scheduling
    'SchedulePoller',
    'ScheduleRepository',
    'PollerState',
    'PollReport',
    'next_trigger',
    'is_due',
    'due_at',
    'preview_triggers',
    # Storage
    'ScheduleDatabase',
    'StorageResult',
    # Commands
    'ScheduleCommands',
    'CommandError',
    'CommandResult',
    # Notifications
    'Notification',
    'Notifier',
    'LoggingNotifier',
    'build_reminder',
    # Clock
    'Clock',
    'FixedClock',
    'system_clock',
    # Result type
    'Result',
    'Ok',
    'Err',
    'is_ok',
    'is_err',
]
