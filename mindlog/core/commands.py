"""Schedule commands exposed to the UI layer.

Follows the same pattern as ``mindlog.core.storage``: every command returns
``CommandResult[T]`` instead of raising, so the UI can branch on
``CommandError.code`` and attribute validation failures to a form field.

* Validation failures carry ``field`` and are never retryable.
* ``STORAGE_BUSY`` is retryable; the UI may resubmit unchanged.
* ``internal`` marks failures that are bugs or corrupted data, shown to the
  user as internal errors rather than as something they typed wrong.

Unexpected exceptions (bugs outside the mindlog error hierarchy) are not
converted and propagate to the caller.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping

from pydantic import ValidationError

from mindlog.core.errors import (
    ErrorCode,
    MindlogError,
    MultipleValidationErrors,
    SchedulingInternalError,
    StorageError,
)
from mindlog.core.logging import get_logger
from mindlog.core.models.schedule import (
    CreateScheduleRequest,
    Schedule,
    UpdateScheduleRequest,
)
from mindlog.core.scheduler.calculator import preview_triggers
from mindlog.core.scheduler.state import ScheduleRepository
from mindlog.core.types.result import Err, Ok, Result
from mindlog.core.utils.clock import Clock, system_clock

logger = get_logger('commands')

MAX_PREVIEW_COUNT = 52


@dataclass(slots=True, frozen=True)
class CommandError:
    """Error payload carried inside ``Err(...)`` for schedule commands.

    Fields:
        code: stable error code
        message: human-readable description
        field: request field the error is attributed to (if any)
        retryable: whether resubmitting unchanged may succeed
        internal: bug or corrupted data, not a user mistake
        exception: the original cause (if any)
        details: structured form of the cause for the UI
    """

    code: ErrorCode
    message: str
    field: str | None = None
    retryable: bool = False
    internal: bool = False
    exception: BaseException | None = None
    details: dict[str, Any] | None = None

    @classmethod
    def from_exception(cls, exc: MindlogError) -> CommandError:
        retryable = isinstance(exc, StorageError) and exc.retryable
        internal = isinstance(exc, SchedulingInternalError) or (
            isinstance(exc, StorageError) and exc.fatal
        )
        code = exc.code
        if code is None and isinstance(exc, MultipleValidationErrors) and exc.report.errors:
            code = exc.report.errors[0].code
        return cls(
            code=code or ErrorCode.INVALID_REQUEST,
            message=exc.message,
            field=exc.field_name,
            retryable=retryable,
            internal=internal,
            exception=exc,
            details=exc.to_dict(),
        )

    @classmethod
    def from_validation_error(cls, exc: ValidationError) -> CommandError:
        errors = exc.errors()
        first = errors[0] if errors else {}
        loc = first.get('loc', ())
        field = str(loc[0]) if loc else None
        return cls(
            code=ErrorCode.INVALID_REQUEST,
            message=first.get('msg', str(exc)),
            field=field,
            exception=exc,
            details={
                'errors': [
                    {
                        'field': '.'.join(str(p) for p in err['loc']),
                        'message': err['msg'],
                    }
                    for err in errors
                ]
            },
        )


type CommandResult[T] = Result[T, CommandError]


class ScheduleCommands:
    """Create/read/update/delete and preview operations over schedules."""

    def __init__(self, repository: ScheduleRepository, clock: Clock = system_clock):
        self.repository = repository
        self.clock = clock

    async def create_schedule(self, payload: Mapping[str, Any]) -> CommandResult[Schedule]:
        try:
            request = CreateScheduleRequest.model_validate(payload)
            return Ok(await self.repository.create_schedule(request))
        except ValidationError as e:
            return Err(CommandError.from_validation_error(e))
        except MindlogError as e:
            return self._fail('create_schedule', e)

    async def update_schedule(
        self, schedule_id: int, payload: Mapping[str, Any]
    ) -> CommandResult[Schedule]:
        try:
            request = UpdateScheduleRequest.model_validate(payload)
            return Ok(await self.repository.update_schedule(schedule_id, request))
        except ValidationError as e:
            return Err(CommandError.from_validation_error(e))
        except MindlogError as e:
            return self._fail('update_schedule', e)

    async def delete_schedule(self, schedule_id: int) -> CommandResult[None]:
        try:
            await self.repository.delete_schedule(schedule_id)
            return Ok(None)
        except MindlogError as e:
            return self._fail('delete_schedule', e)

    async def get_schedule(self, schedule_id: int) -> CommandResult[Schedule]:
        try:
            return Ok(await self.repository.get_schedule(schedule_id))
        except MindlogError as e:
            return self._fail('get_schedule', e)

    async def list_schedules(self, enabled_only: bool = False) -> CommandResult[list[Schedule]]:
        try:
            return Ok(await self.repository.list_schedules(enabled_only=enabled_only))
        except MindlogError as e:
            return self._fail('list_schedules', e)

    async def next_trigger_for(
        self, schedule_id: int, count: int = 1
    ) -> CommandResult[list[datetime]]:
        """
        Preview the upcoming trigger instants of a schedule.

        Args:
            schedule_id: Schedule identifier
            count: How many instants to return (1-52)
        """
        if not 1 <= count <= MAX_PREVIEW_COUNT:
            return Err(
                CommandError(
                    code=ErrorCode.INVALID_REQUEST,
                    message=f'count must be between 1 and {MAX_PREVIEW_COUNT}, got {count}',
                    field='count',
                )
            )
        try:
            schedule = await self.repository.get_schedule(schedule_id)
            return Ok(preview_triggers(schedule, self.clock(), count))
        except MindlogError as e:
            return self._fail('next_trigger_for', e)

    def _fail(self, command: str, exc: MindlogError) -> Err[CommandError]:
        error = CommandError.from_exception(exc)
        if error.internal:
            logger.error(f'{command} failed with an internal error: {exc.message}')
        elif isinstance(exc, StorageError):
            logger.warning(f'{command} failed: {exc.message}')
        else:
            logger.debug(f'{command} rejected: {exc.message}')
        return Err(error)
