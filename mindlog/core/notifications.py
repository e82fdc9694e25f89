# mindlog/core/notifications.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable
from mindlog.core.logging import get_logger
from mindlog.core.models.app import SubjectLabel
from mindlog.core.models.schedule import Schedule

logger = get_logger('notifier')

REMINDER_TITLE = 'Assessment Reminder'


@dataclass(frozen=True)
class Notification:
    """A user-facing reminder handed to the notification sink."""

    title: str
    body: str
    extras: dict[str, str] = field(default_factory=dict)


@runtime_checkable
class Notifier(Protocol):
    """
    Notification sink.

    send() returns False when delivery failed; it may also raise. Either way
    the poller treats the reminder as delivered for scheduling purposes.
    """

    async def send(self, notification: Notification) -> bool: ...


class LoggingNotifier:
    """Default sink: writes reminders to the log."""

    async def send(self, notification: Notification) -> bool:
        logger.info(f'{notification.title}: {notification.body} {notification.extras}')
        return True


def build_reminder(schedule: Schedule, label: SubjectLabel) -> Notification:
    return Notification(
        title=REMINDER_TITLE,
        body=f'Time to complete: {label.name}. Click to open assessment.',
        extras={
            'assessment_type_code': label.code,
            'assessment_name': label.name,
            'schedule_id': str(schedule.id),
        },
    )
