# mindlog/core/scheduler/__init__.py
"""
Scheduler module for recurring assessment reminders.

Main components:
- SchedulePoller: Periodic loop that fires due reminders
- ScheduleRepository: Schedule persistence and trigger state
- next_trigger / is_due: Recurrence calculation

Example usage:
    from mindlog.core.scheduler import SchedulePoller

    poller = SchedulePoller(repository, notifier, config.poller)
    await poller.run_forever()
"""

from mindlog.core.scheduler.service import PollerState, PollReport, SchedulePoller
from mindlog.core.scheduler.state import ScheduleRepository
from mindlog.core.scheduler.calculator import (
    due_at,
    is_due,
    next_trigger,
    preview_triggers,
    should_run_now,
)

__all__ = [
    'PollerState',
    'PollReport',
    'SchedulePoller',
    'ScheduleRepository',
    'due_at',
    'is_due',
    'next_trigger',
    'preview_triggers',
    'should_run_now',
]
