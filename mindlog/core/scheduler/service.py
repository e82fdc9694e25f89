# mindlog/core/scheduler/service.py
from __future__ import annotations
import asyncio
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable
from mindlog.core.errors import ScheduleNotFoundError, StorageError
from mindlog.core.logging import get_logger
from mindlog.core.models.app import AppConfig, SubjectLabel
from mindlog.core.models.schedule import PollerConfig, Schedule
from mindlog.core.notifications import Notifier, build_reminder
from mindlog.core.scheduler.state import ScheduleRepository
from mindlog.core.utils.clock import Clock, system_clock

logger = get_logger('poller')

SubjectResolver = Callable[[int], SubjectLabel]


class PollerState(str, Enum):
    IDLE = 'idle'
    CHECKING = 'checking'
    NOTIFYING = 'notifying'
    MARKING = 'marking'


@dataclass
class PollReport:
    """Outcome counters for one poll cycle."""

    due: int = 0
    notified: int = 0
    notify_failed: int = 0
    marked: int = 0
    mark_failed: int = 0


class SchedulePoller:
    """
    Periodically finds due schedules and delivers their reminders.

    Responsibilities:
    1. Fetch due schedules from the repository
    2. Deliver one reminder per due schedule
    3. Mark each schedule triggered, whether or not delivery succeeded

    Cycles never overlap: the next check starts only after the previous one
    finished and the interval elapsed.
    """

    def __init__(
        self,
        repository: ScheduleRepository,
        notifier: Notifier,
        config: PollerConfig | None = None,
        clock: Clock = system_clock,
        subjects: AppConfig | SubjectResolver | None = None,
    ):
        self.repository = repository
        self.notifier = notifier
        self.config = config or PollerConfig()
        self.clock = clock
        self.state = PollerState.IDLE
        self._stop = asyncio.Event()

        if subjects is None:
            subjects = AppConfig()
        self._resolve_subject: SubjectResolver = (
            subjects.subject_label if isinstance(subjects, AppConfig) else subjects
        )

        logger.info(
            f'Poller initialized, check_interval={self.config.check_interval_seconds}s'
        )

    def request_stop(self) -> None:
        """Request the poller to stop after the current cycle."""
        self._stop.set()

    async def run_forever(self) -> None:
        """
        Main poll loop.

        Transient failures are logged and retried on the next tick. A
        corrupted store ends the loop; the caller is expected to exit.
        """
        if not self.config.enabled:
            logger.warning('Poller disabled by configuration, not starting')
            return

        logger.info('Starting poller loop')
        try:
            while not self._stop.is_set():
                try:
                    await self.check_once()
                except StorageError as e:
                    if e.fatal:
                        logger.critical(f'Schedule store is corrupted, stopping poller: {e.message}')
                        raise
                    logger.error(f'Poll cycle failed, retrying next tick: {e.message}')
                except Exception as e:
                    logger.error(f'Error in poller loop: {e}', exc_info=True)

                # Wait for check interval or stop signal
                try:
                    await asyncio.wait_for(
                        self._stop.wait(),
                        timeout=self.config.check_interval_seconds,
                    )
                    break  # Stop signal received
                except asyncio.TimeoutError:
                    continue
        finally:
            self.state = PollerState.IDLE
            logger.info('Poller stopped')

    async def check_once(self) -> PollReport:
        """
        Run a single poll cycle at the current clock time.

        Per-schedule failures (delivery or marking) are logged and counted;
        only a failure to fetch due schedules propagates.
        """
        report = PollReport()
        now = self.clock()
        self.state = PollerState.CHECKING
        try:
            due = await self.repository.due_schedules(now)
            report.due = len(due)
            if due:
                logger.info(f'{len(due)} schedule(s) due at {now}')

            for schedule in due:
                await self._fire(schedule, report, now)
        finally:
            self.state = PollerState.IDLE

        return report

    async def _fire(self, schedule: Schedule, report: PollReport, now: datetime) -> None:
        self.state = PollerState.NOTIFYING
        if await self._deliver(schedule):
            report.notified += 1
        else:
            report.notify_failed += 1

        # Marked even when delivery failed, otherwise the reminder would
        # repeat every tick.
        self.state = PollerState.MARKING
        try:
            await self.repository.mark_triggered(schedule.id, now)
        except ScheduleNotFoundError:
            report.mark_failed += 1
            logger.warning(f'Schedule {schedule.id} was deleted before it could be marked triggered')
        except StorageError as e:
            if e.fatal:
                raise
            report.mark_failed += 1
            logger.error(
                f'Schedule {schedule.id} fired but could not be marked '
                f'triggered, it may fire again: {e.message}'
            )
        except Exception as e:
            report.mark_failed += 1
            logger.error(
                f'Schedule {schedule.id} fired but could not be marked '
                f'triggered, it may fire again: {e}',
                exc_info=True,
            )
        else:
            report.marked += 1

    async def _deliver(self, schedule: Schedule) -> bool:
        try:
            label = self._resolve_subject(schedule.subject_id)
            notification = build_reminder(schedule, label)
        except Exception as e:
            logger.error(
                f'Notification for schedule {schedule.id} could not be built: {e}',
                exc_info=True,
            )
            return False

        try:
            delivered = await self.notifier.send(notification)
        except Exception as e:
            logger.error(
                f'Notification for schedule {schedule.id} raised: {e}', exc_info=True
            )
            return False

        if not delivered:
            logger.warning(f'Notification for schedule {schedule.id} was not delivered')
            return False

        logger.info(f'Sent reminder for schedule {schedule.id} ({label.code})')
        return True
