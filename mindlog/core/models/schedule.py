# mindlog/core/models/schedule.py
from __future__ import annotations
import re
from datetime import datetime, time as datetime_time
from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing_extensions import Self
from mindlog.core.defaults import DEFAULT_CHECK_INTERVAL_SECONDS
from mindlog.core.errors import (
    ErrorCode,
    ScheduleValidationError,
    ValidationReport,
    invalid_time_format,
    raise_collected,
)

# ASCII digits only: str.isdigit() and \d both accept other scripts.
_TIME_OF_DAY_RE = re.compile(r'([0-9]{2}):([0-9]{2})')


class Frequency(str, Enum):
    """Closed set of cadences a schedule can repeat on."""

    DAILY = 'daily'
    WEEKLY = 'weekly'
    BIWEEKLY = 'biweekly'
    MONTHLY = 'monthly'

    @classmethod
    def parse(cls, value: object) -> Frequency:
        """Parse a wire-format frequency string (case-insensitive)."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        raise ScheduleValidationError(
            message=f'invalid frequency: {value!r}',
            code=ErrorCode.INVALID_FREQUENCY,
            field_name='frequency',
            notes=[f'allowed values: {[f.value for f in cls]}'],
        )

    @property
    def uses_day_of_week(self) -> bool:
        return self in (Frequency.WEEKLY, Frequency.BIWEEKLY)

    @property
    def uses_day_of_month(self) -> bool:
        return self is Frequency.MONTHLY


def parse_time_of_day(value: object) -> datetime_time:
    """
    Parse a strict 24-hour "HH:MM" string.

    No leniency: single-digit hours, seconds, whitespace and out-of-range
    values ("24:00", "09:60") are all rejected.

    Raises:
        ScheduleValidationError: INVALID_TIME_FORMAT
    """
    if not isinstance(value, str):
        raise invalid_time_format(value)
    match = _TIME_OF_DAY_RE.fullmatch(value)
    if match is None:
        raise invalid_time_format(value)
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise invalid_time_format(value)
    return datetime_time(hour, minute)


def is_valid_time_format(value: object) -> bool:
    try:
        parse_time_of_day(value)
    except ScheduleValidationError:
        return False
    return True


def check_schedule_definition(
    report: ValidationReport,
    frequency: Frequency,
    time_of_day: str,
    day_of_week: Optional[int],
    day_of_month: Optional[int],
) -> None:
    """Collect every violation of the frequency/anchor-field invariants."""
    if not is_valid_time_format(time_of_day):
        report.add(invalid_time_format(time_of_day))

    if frequency.uses_day_of_week:
        if day_of_week is None:
            report.add(
                ScheduleValidationError(
                    message=f'day_of_week required for {frequency.value} schedules',
                    code=ErrorCode.INVALID_FREQUENCY,
                    field_name='day_of_week',
                    help_text='pass day_of_week 0-6 (Sunday=0 .. Saturday=6)',
                )
            )
        else:
            _check_day_of_week(report, day_of_week)
    elif day_of_week is not None:
        report.add(
            ScheduleValidationError(
                message=f'day_of_week is not allowed for {frequency.value} schedules',
                code=ErrorCode.INVALID_FREQUENCY,
                field_name='day_of_week',
                notes=['day_of_week only applies to weekly and biweekly schedules'],
            )
        )

    if frequency.uses_day_of_month:
        if day_of_month is None:
            report.add(
                ScheduleValidationError(
                    message='day_of_month required for monthly schedules',
                    code=ErrorCode.INVALID_FREQUENCY,
                    field_name='day_of_month',
                    help_text='pass day_of_month 1-31; short months use their last day',
                )
            )
        else:
            _check_day_of_month(report, day_of_month)
    elif day_of_month is not None:
        report.add(
            ScheduleValidationError(
                message=f'day_of_month is not allowed for {frequency.value} schedules',
                code=ErrorCode.INVALID_FREQUENCY,
                field_name='day_of_month',
                notes=['day_of_month only applies to monthly schedules'],
            )
        )


def _check_day_of_week(report: ValidationReport, day: int) -> None:
    if not 0 <= day <= 6:
        report.add(
            ScheduleValidationError(
                message=f'invalid day of week: {day}. Must be 0-6 (Sunday-Saturday)',
                code=ErrorCode.INVALID_DAY_OF_WEEK,
                field_name='day_of_week',
            )
        )


def _check_day_of_month(report: ValidationReport, day: int) -> None:
    if not 1 <= day <= 31:
        report.add(
            ScheduleValidationError(
                message=f'invalid day of month: {day}. Must be 1-31',
                code=ErrorCode.INVALID_DAY_OF_MONTH,
                field_name='day_of_month',
            )
        )


class Schedule(BaseModel):
    """
    A stored recurring reminder.

    This is the read model handed out by the repository. It is
    lenient about time_of_day and the anchor fields so that bad stored data
    surfaces as a calculator error instead of a failed load.

    Fields:
        - id: assigned by the store, immutable
        - subject_id: assessment type the reminder is for (opaque here)
        - frequency: daily | weekly | biweekly | monthly
        - time_of_day: "HH:MM" local wall-clock time
        - day_of_week: 0-6, Sunday=0 (weekly/biweekly only)
        - day_of_month: 1-31, clamped to month length (monthly only)
        - enabled: disabled schedules are never due
        - last_triggered_at: most recent firing, None until the first one
        - created_at / updated_at: audit timestamps set by the store
    """

    model_config = ConfigDict(frozen=True)

    id: int
    subject_id: int
    frequency: Frequency
    time_of_day: str
    day_of_week: Optional[int] = None
    day_of_month: Optional[int] = None
    enabled: bool = True
    last_triggered_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    @field_validator('frequency', mode='before')
    @classmethod
    def parse_frequency(cls, value: Any) -> Frequency:
        return Frequency.parse(value)


class CreateScheduleRequest(BaseModel):
    """Validated input for creating a schedule. All field errors are collected."""

    subject_id: int = Field(ge=1, description='Assessment type id')
    frequency: Frequency
    time_of_day: str = Field(description='HH:MM, 24-hour')
    day_of_week: Optional[int] = Field(
        default=None, description='0-6, Sunday=0; weekly/biweekly only'
    )
    day_of_month: Optional[int] = Field(
        default=None, description='1-31; monthly only'
    )

    @field_validator('frequency', mode='before')
    @classmethod
    def parse_frequency(cls, value: Any) -> Frequency:
        return Frequency.parse(value)

    @model_validator(mode='after')
    def validate_definition(self) -> Self:
        report = ValidationReport('schedule')
        check_schedule_definition(
            report,
            self.frequency,
            self.time_of_day,
            self.day_of_week,
            self.day_of_month,
        )
        raise_collected(report)
        return self


class UpdateScheduleRequest(BaseModel):
    """
    Partial update. None means "leave unchanged".

    Field-level checks run on construction; the invariants that depend on
    the stored schedule run in merged_with().
    """

    frequency: Optional[Frequency] = None
    time_of_day: Optional[str] = None
    day_of_week: Optional[int] = None
    day_of_month: Optional[int] = None
    enabled: Optional[bool] = None

    @field_validator('frequency', mode='before')
    @classmethod
    def parse_frequency(cls, value: Any) -> Optional[Frequency]:
        if value is None:
            return None
        return Frequency.parse(value)

    @model_validator(mode='after')
    def validate_fields(self) -> Self:
        report = ValidationReport('schedule')
        if self.time_of_day is not None and not is_valid_time_format(self.time_of_day):
            report.add(invalid_time_format(self.time_of_day))
        if self.day_of_week is not None:
            _check_day_of_week(report, self.day_of_week)
        if self.day_of_month is not None:
            _check_day_of_month(report, self.day_of_month)
        raise_collected(report)
        return self

    def is_empty(self) -> bool:
        return all(
            value is None
            for value in (
                self.frequency,
                self.time_of_day,
                self.day_of_week,
                self.day_of_month,
                self.enabled,
            )
        )

    def merged_with(self, current: Schedule) -> dict[str, Any]:
        """
        Apply this update on top of a stored schedule and re-validate.

        Anchor fields inherited from the stored row that no longer apply to
        the resulting frequency are cleared; anchor fields passed explicitly
        must match the resulting frequency.

        Returns:
            Column values for the update

        Raises:
            ScheduleValidationError / MultipleValidationErrors
        """
        frequency = self.frequency or current.frequency
        time_of_day = (
            self.time_of_day if self.time_of_day is not None else current.time_of_day
        )

        day_of_week = self.day_of_week
        if day_of_week is None and frequency.uses_day_of_week:
            day_of_week = current.day_of_week

        day_of_month = self.day_of_month
        if day_of_month is None and frequency.uses_day_of_month:
            day_of_month = current.day_of_month

        report = ValidationReport('schedule')
        check_schedule_definition(report, frequency, time_of_day, day_of_week, day_of_month)
        raise_collected(report)

        return {
            'frequency': frequency,
            'time_of_day': time_of_day,
            'day_of_week': day_of_week,
            'day_of_month': day_of_month,
            'enabled': self.enabled if self.enabled is not None else current.enabled,
        }


class PollerConfig(BaseModel):
    """
    Due-schedule poller configuration.

    Fields:
        - enabled: Master switch for the poller (default: True)
        - check_interval_seconds: How often to check for due schedules
    """

    model_config = ConfigDict(frozen=True)

    enabled: bool = Field(default=True, description='Master poller enable switch')
    check_interval_seconds: int = Field(
        default=DEFAULT_CHECK_INTERVAL_SECONDS,
        ge=1,
        le=3600,
        description='Poll interval (1-3600 seconds)',
    )
