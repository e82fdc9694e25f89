# mindlog/core/scheduler/state.py
from __future__ import annotations
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime
from typing import Optional
from sqlalchemy import delete, or_, select, true as sa_true, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from mindlog.core.errors import MindlogError, schedule_not_found
from mindlog.core.logging import get_logger
from mindlog.core.models.schedule import (
    CreateScheduleRequest,
    Schedule,
    UpdateScheduleRequest,
)
from mindlog.core.models.schedule_sql import ScheduleModel
from mindlog.core.scheduler.calculator import is_due
from mindlog.core.utils.clock import Clock, system_clock
from mindlog.core.utils.db import classify_storage_error

logger = get_logger('repository')


def _to_schedule(row: ScheduleModel) -> Schedule:
    return Schedule(
        id=row.id,
        subject_id=row.assessment_type_id,
        frequency=row.frequency,
        time_of_day=row.time_of_day,
        day_of_week=row.day_of_week,
        day_of_month=row.day_of_month,
        enabled=bool(row.enabled),
        last_triggered_at=row.last_triggered_at,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


@contextmanager
def _storage_errors(operation: str) -> Iterator[None]:
    """Re-raise driver/SQLAlchemy failures as classified StorageError."""
    try:
        yield
    except SQLAlchemyError as e:
        raise classify_storage_error(e, operation) from e


class ScheduleRepository:
    """
    Persists schedules and their trigger state in the SQLite store.

    Every operation opens its own session, so concurrent callers (the UI's
    command surface and the poller) interleave at statement granularity and
    SQLite serializes writes to the same row.

    last_triggered_at is written only by mark_triggered() and
    mark_multiple_triggered().
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Clock = system_clock,
    ):
        self.session_factory = session_factory
        self.clock = clock

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    async def create_schedule(self, request: CreateScheduleRequest) -> Schedule:
        """
        Insert a new enabled schedule.

        Args:
            request: Already-validated create request

        Returns:
            The stored Schedule with its assigned id
        """
        now = self.clock()
        with _storage_errors('create schedule'):
            async with self.session_factory() as session:
                row = ScheduleModel(
                    assessment_type_id=request.subject_id,
                    frequency=request.frequency.value,
                    time_of_day=request.time_of_day,
                    day_of_week=request.day_of_week,
                    day_of_month=request.day_of_month,
                    enabled=True,
                    last_triggered_at=None,
                    created_at=now,
                    updated_at=now,
                )
                session.add(row)
                await session.commit()
                schedule = _to_schedule(row)

        logger.info(
            f'Created schedule {schedule.id}: {schedule.frequency.value} at '
            f'{schedule.time_of_day} for subject {schedule.subject_id}'
        )
        return schedule

    async def update_schedule(
        self, schedule_id: int, request: UpdateScheduleRequest
    ) -> Schedule:
        """
        Apply a partial update, re-validating the merged definition.

        Validation runs before anything is written; last_triggered_at is
        never touched here.

        Raises:
            ScheduleNotFoundError: unknown id
            ScheduleValidationError / MultipleValidationErrors: merged
                definition is invalid
        """
        with _storage_errors('update schedule'):
            async with self.session_factory() as session:
                row = await session.get(ScheduleModel, schedule_id)
                if row is None:
                    raise schedule_not_found(schedule_id)

                current = _to_schedule(row)
                if request.is_empty():
                    return current

                values = request.merged_with(current)
                row.frequency = values['frequency'].value
                row.time_of_day = values['time_of_day']
                row.day_of_week = values['day_of_week']
                row.day_of_month = values['day_of_month']
                row.enabled = values['enabled']
                row.updated_at = self.clock()
                await session.commit()
                schedule = _to_schedule(row)

        logger.info(f'Updated schedule {schedule_id}')
        return schedule

    async def delete_schedule(self, schedule_id: int) -> None:
        """Hard-delete a schedule. Raises ScheduleNotFoundError for unknown ids."""
        with _storage_errors('delete schedule'):
            async with self.session_factory() as session:
                result = await session.execute(
                    delete(ScheduleModel).where(ScheduleModel.id == schedule_id)
                )
                await session.commit()

        if getattr(result, 'rowcount', 0) == 0:
            raise schedule_not_found(schedule_id)
        logger.info(f'Deleted schedule {schedule_id}')

    async def get_schedule(self, schedule_id: int) -> Schedule:
        """Raises ScheduleNotFoundError for unknown ids."""
        with _storage_errors('get schedule'):
            async with self.session_factory() as session:
                row = await session.get(ScheduleModel, schedule_id)
                if row is None:
                    raise schedule_not_found(schedule_id)
                return _to_schedule(row)

    async def list_schedules(self, enabled_only: bool = False) -> list[Schedule]:
        """All schedules, newest first."""
        stmt = select(ScheduleModel)
        if enabled_only:
            stmt = stmt.where(ScheduleModel.enabled == sa_true())
        stmt = stmt.order_by(ScheduleModel.created_at.desc(), ScheduleModel.id.desc())

        with _storage_errors('list schedules'):
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                return [_to_schedule(row) for row in result.scalars()]

    # ------------------------------------------------------------------
    # Trigger state
    # ------------------------------------------------------------------

    async def due_schedules(self, now: datetime) -> list[Schedule]:
        """
        Schedules that should fire at `now`.

        The SQL filter only drops rows that cannot be due (disabled, or
        last triggered after `now`); the recurrence calculator makes the
        actual decision. A schedule that fails to evaluate is logged and
        skipped so one bad row cannot block the others.

        Args:
            now: Current local wall-clock time

        Returns:
            Due schedules ordered by time_of_day
        """
        stmt = (
            select(ScheduleModel)
            .where(ScheduleModel.enabled == sa_true())
            .where(
                or_(
                    ScheduleModel.last_triggered_at.is_(None),
                    ScheduleModel.last_triggered_at <= now,
                )
            )
            .order_by(ScheduleModel.time_of_day.asc(), ScheduleModel.id.asc())
        )

        with _storage_errors('fetch due schedules'):
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                rows = list(result.scalars())

        due: list[Schedule] = []
        for row in rows:
            try:
                schedule = _to_schedule(row)
                if is_due(schedule, now):
                    due.append(schedule)
            except MindlogError as e:
                logger.error(f'Skipping schedule {row.id}, cannot evaluate it: {e.message}')

        logger.debug(f'{len(due)}/{len(rows)} candidate schedule(s) due at {now}')
        return due

    async def mark_triggered(
        self, schedule_id: int, triggered_at: Optional[datetime] = None
    ) -> None:
        """
        Record that a schedule fired.

        Single-statement update, so it is atomic with respect to any other
        writer. last_triggered_at never moves backwards: an earlier
        timestamp (clock stepped back) is ignored with a warning.

        Args:
            schedule_id: Schedule identifier
            triggered_at: Firing instant, defaults to the repository clock

        Raises:
            ScheduleNotFoundError: unknown id
        """
        triggered_at = triggered_at or self.clock()

        with _storage_errors('mark schedule triggered'):
            async with self.session_factory() as session:
                result = await session.execute(
                    update(ScheduleModel)
                    .where(ScheduleModel.id == schedule_id)
                    .where(
                        or_(
                            ScheduleModel.last_triggered_at.is_(None),
                            ScheduleModel.last_triggered_at <= triggered_at,
                        )
                    )
                    .values(last_triggered_at=triggered_at)
                    .execution_options(synchronize_session=False)
                )
                await session.commit()

                if getattr(result, 'rowcount', 0) > 0:
                    logger.debug(f'Schedule {schedule_id} marked triggered at {triggered_at}')
                    return

                row = await session.get(ScheduleModel, schedule_id)

        if row is None:
            raise schedule_not_found(schedule_id)
        logger.warning(
            f'Not moving last_triggered_at of schedule {schedule_id} backwards '
            f'({row.last_triggered_at} -> {triggered_at})'
        )

    async def mark_multiple_triggered(
        self, schedule_ids: Sequence[int], triggered_at: Optional[datetime] = None
    ) -> int:
        """
        Mark several schedules triggered in one transaction.

        Unknown ids are ignored.

        Returns:
            Number of rows updated
        """
        if not schedule_ids:
            return 0

        triggered_at = triggered_at or self.clock()

        with _storage_errors('mark schedules triggered'):
            async with self.session_factory() as session:
                result = await session.execute(
                    update(ScheduleModel)
                    .where(ScheduleModel.id.in_(list(schedule_ids)))
                    .where(
                        or_(
                            ScheduleModel.last_triggered_at.is_(None),
                            ScheduleModel.last_triggered_at <= triggered_at,
                        )
                    )
                    .values(last_triggered_at=triggered_at)
                    .execution_options(synchronize_session=False)
                )
                await session.commit()

        updated = getattr(result, 'rowcount', 0)
        if updated != len(schedule_ids):
            logger.warning(
                f'Marked {updated}/{len(schedule_ids)} schedule(s) triggered; '
                f'the rest are unknown or already marked later'
            )
        return updated
