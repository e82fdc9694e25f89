# mindlog/core/scheduler/calculator.py
from __future__ import annotations
import calendar
from contextlib import contextmanager
from datetime import date, datetime, time as datetime_time, timedelta
from typing import Iterator, Optional
from mindlog.core.defaults import BIWEEKLY_INTERVAL_DAYS, MAX_BIWEEKLY_CATCH_UP_CYCLES
from mindlog.core.errors import (
    ErrorCode,
    ScheduleValidationError,
    SchedulingInternalError,
)
from mindlog.core.models.schedule import Frequency, Schedule, parse_time_of_day

BIWEEKLY_INTERVAL = timedelta(days=BIWEEKLY_INTERVAL_DAYS)


def next_trigger(schedule: Schedule, now: datetime) -> datetime:
    """
    Calculate the next trigger instant for a schedule.

    Daily, weekly and monthly schedules are anchored to `now` and ignore
    last_triggered_at. Biweekly schedules are anchored to the slot of their
    last trigger (its week, on day_of_week at time_of_day) once they have
    fired, so missed cycles are caught up in whole 14-day steps instead of
    collapsing into a weekly cadence, and late deliveries do not drift.

    Args:
        schedule: Schedule definition and its last_triggered_at state
        now: Reference instant, naive local wall-clock time

    Returns:
        Next trigger instant, naive local wall-clock, strictly after `now`
        (biweekly: also more than 7 days after last_triggered_at)

    Raises:
        ScheduleValidationError: malformed time_of_day or anchor fields
        SchedulingInternalError: calendar arithmetic failed or the biweekly
            catch-up exceeded its cycle cap
        ValueError: if `now` is timezone-aware
    """
    if now.tzinfo is not None:
        raise ValueError('now must be a naive local wall-clock datetime')

    target_time = parse_time_of_day(schedule.time_of_day)

    with _date_arithmetic(schedule):
        match schedule.frequency:
            case Frequency.DAILY:
                return _calculate_daily(target_time, now)
            case Frequency.WEEKLY:
                return _calculate_weekly(_day_of_week(schedule), target_time, now)
            case Frequency.BIWEEKLY:
                day_of_week = _day_of_week(schedule)
                if schedule.last_triggered_at is None:
                    return _calculate_weekly(day_of_week, target_time, now)
                return _calculate_biweekly(
                    schedule, schedule.last_triggered_at, day_of_week, target_time, now
                )
            case Frequency.MONTHLY:
                return _calculate_monthly(_day_of_month(schedule), target_time, now)


def _calculate_daily(target_time: datetime_time, now: datetime) -> datetime:
    """Today at target time, or tomorrow if that has passed."""
    candidate = datetime.combine(now.date(), target_time)
    if candidate <= now:
        candidate += timedelta(days=1)
    return candidate


def _calculate_weekly(
    day_of_week: int, target_time: datetime_time, now: datetime
) -> datetime:
    """Next occurrence of day_of_week (Sunday=0) at target time."""
    current_day = sunday_based_weekday(now.date())
    days_until = (day_of_week - current_day + 7) % 7
    candidate = datetime.combine(now.date() + timedelta(days=days_until), target_time)
    if days_until == 0 and candidate <= now:
        candidate += timedelta(days=7)
    return candidate


def _calculate_biweekly(
    schedule: Schedule,
    last_triggered_at: datetime,
    day_of_week: int,
    target_time: datetime_time,
    now: datetime,
) -> datetime:
    """
    First slot + 14*k days (k >= 1) strictly after now.

    The slot is last_triggered_at moved back to day_of_week at target time
    within the same week, so a late delivery or an edited weekday/time
    never shifts the cadence off the schedule's own slot.
    """
    days_back = (sunday_based_weekday(last_triggered_at.date()) - day_of_week) % 7
    slot = datetime.combine(last_triggered_at.date() - timedelta(days=days_back), target_time)

    candidate = slot + BIWEEKLY_INTERVAL
    cycles = 1
    while candidate <= now:
        if cycles >= MAX_BIWEEKLY_CATCH_UP_CYCLES:
            raise SchedulingInternalError(
                message=f'biweekly catch-up for schedule {schedule.id} did not converge',
                code=ErrorCode.CATCH_UP_LIMIT_EXCEEDED,
                notes=[
                    f'last_triggered_at={last_triggered_at.isoformat()}',
                    f'now={now.isoformat()}',
                    f'gave up after {cycles} cycles of {BIWEEKLY_INTERVAL_DAYS} days',
                ],
                help_text='last_triggered_at is implausibly old; check the stored value',
            )
        candidate += BIWEEKLY_INTERVAL
        cycles += 1
    return candidate


def _calculate_monthly(
    day_of_month: int, target_time: datetime_time, now: datetime
) -> datetime:
    """This month's (clamped) day at target time, or next month's if passed."""
    candidate = _monthly_candidate(now.year, now.month, day_of_month, target_time)
    if candidate <= now:
        year, month = _add_months(now.year, now.month, 1)
        candidate = _monthly_candidate(year, month, day_of_month, target_time)
    return candidate


def _monthly_candidate(
    year: int, month: int, day_of_month: int, target_time: datetime_time
) -> datetime:
    # Day 31 in a 30-day month (or February) means that month's last day
    day = min(day_of_month, days_in_month(year, month))
    return datetime.combine(date(year, month, day), target_time)


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def _add_months(year: int, month: int, month_offset: int) -> tuple[int, int]:
    base = (year * 12) + (month - 1) + month_offset
    return (base // 12, (base % 12) + 1)


def sunday_based_weekday(day: date) -> int:
    """Weekday with Sunday=0 .. Saturday=6."""
    return day.isoweekday() % 7


def _day_of_week(schedule: Schedule) -> int:
    if schedule.day_of_week is None:
        raise ScheduleValidationError(
            message=f'day_of_week missing for {schedule.frequency.value} schedule',
            code=ErrorCode.INVALID_FREQUENCY,
            field_name='day_of_week',
        )
    if not 0 <= schedule.day_of_week <= 6:
        raise ScheduleValidationError(
            message=f'invalid day of week: {schedule.day_of_week}. Must be 0-6 (Sunday-Saturday)',
            code=ErrorCode.INVALID_DAY_OF_WEEK,
            field_name='day_of_week',
        )
    return schedule.day_of_week


def _day_of_month(schedule: Schedule) -> int:
    if schedule.day_of_month is None:
        raise ScheduleValidationError(
            message='day_of_month missing for monthly schedule',
            code=ErrorCode.INVALID_FREQUENCY,
            field_name='day_of_month',
        )
    if not 1 <= schedule.day_of_month <= 31:
        raise ScheduleValidationError(
            message=f'invalid day of month: {schedule.day_of_month}. Must be 1-31',
            code=ErrorCode.INVALID_DAY_OF_MONTH,
            field_name='day_of_month',
        )
    return schedule.day_of_month


@contextmanager
def _date_arithmetic(schedule: Schedule) -> Iterator[None]:
    """Turn calendar arithmetic failures into SchedulingInternalError."""
    try:
        yield
    except (ValueError, OverflowError) as e:
        raise SchedulingInternalError(
            message=f'date arithmetic failed for schedule {schedule.id}',
            code=ErrorCode.DATE_PARSE_ERROR,
            notes=[f'underlying error: {e}'],
        ) from e


def trigger_anchor(schedule: Schedule) -> datetime:
    """Instant the next firing is computed from: last trigger, else creation."""
    if schedule.last_triggered_at is not None:
        return schedule.last_triggered_at
    return schedule.created_at


def due_at(schedule: Schedule) -> datetime:
    """First trigger instant after the schedule's anchor."""
    return next_trigger(schedule, trigger_anchor(schedule))


def is_due(schedule: Schedule, now: datetime) -> bool:
    """
    Determine if a schedule should fire at `now`.

    A schedule is due when it is enabled and the first occurrence after its
    last trigger (or its creation, before the first trigger) is at or
    before `now`.
    """
    if not schedule.enabled:
        return False
    return should_run_now(due_at(schedule), now)


def preview_triggers(schedule: Schedule, now: datetime, count: int) -> list[datetime]:
    """
    The next `count` trigger instants, assuming each one fires on time.

    Args:
        schedule: Schedule definition and state
        now: Reference instant
        count: Number of instants to return

    Returns:
        Strictly increasing list of trigger instants
    """
    triggers: list[datetime] = []
    current = schedule
    cursor = now
    for _ in range(count):
        upcoming = next_trigger(current, cursor)
        triggers.append(upcoming)
        current = current.model_copy(update={'last_triggered_at': upcoming})
        cursor = upcoming
    return triggers


def should_run_now(next_run_at: Optional[datetime], check_time: datetime) -> bool:
    """
    Determine if a trigger instant has been reached.

    Args:
        next_run_at: Scheduled trigger instant
        check_time: Current time to check against

    Returns:
        True if the trigger should fire now
    """
    if next_run_at is None:
        # Never scheduled - fire
        return True

    return next_run_at <= check_time
