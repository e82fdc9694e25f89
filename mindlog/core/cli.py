# mindlog/core/cli.py
"""
CLI for the mindlog reminder poller and schedule management.

Configuration comes from MINDLOG_* environment variables (see
AppConfig.from_env); --database and --interval override them.
"""

import argparse
import asyncio
import signal
import sys
from datetime import datetime
from typing import Any, Optional, Sequence

from pydantic import ValidationError

from mindlog.core.commands import CommandError, ScheduleCommands
from mindlog.core.errors import ConfigurationError, ErrorCode, MindlogError, StorageError
from mindlog.core.logging import get_logger, setup_logging
from mindlog.core.models.app import AppConfig
from mindlog.core.models.schedule import Frequency, PollerConfig, Schedule
from mindlog.core.models.storage import StorageConfig
from mindlog.core.notifications import LoggingNotifier
from mindlog.core.scheduler import SchedulePoller, ScheduleRepository
from mindlog.core.storage import ScheduleDatabase
from mindlog.core.types.result import is_err

_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
_DAY_NAMES = ['Sunday', 'Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday']


def load_config(args: argparse.Namespace) -> AppConfig:
    """Environment configuration with command-line overrides applied."""
    config = AppConfig.from_env()

    storage = config.storage
    database: Optional[str] = getattr(args, 'database', None)
    if database:
        storage = StorageConfig(
            database_url=database,
            busy_timeout_seconds=storage.busy_timeout_seconds,
        )

    poller = config.poller
    interval: Optional[int] = getattr(args, 'interval', None)
    if interval is not None:
        try:
            poller = PollerConfig(enabled=poller.enabled, check_interval_seconds=interval)
        except ValidationError as e:
            raise ConfigurationError(
                message=f'invalid --interval: {interval}',
                code=ErrorCode.CLI_INVALID_ARGS,
                field_name='interval',
                notes=['the check interval must be between 1 and 3600 seconds'],
            ) from e

    return AppConfig(storage=storage, poller=poller, subjects=config.subjects)


def _print_error(error: MindlogError | CommandError) -> None:
    if isinstance(error, CommandError):
        if isinstance(error.exception, MindlogError):
            error = error.exception
        else:
            print(f'error[{error.code.value}]: {error.message}', file=sys.stderr)
            return
    print(error.format_rust_style(), file=sys.stderr)


def describe_schedule(schedule: Schedule, config: AppConfig) -> str:
    """One-line human summary of a schedule."""
    label = config.subject_label(schedule.subject_id)
    match schedule.frequency:
        case Frequency.WEEKLY | Frequency.BIWEEKLY if schedule.day_of_week is not None:
            when = f'{_DAY_NAMES[schedule.day_of_week % 7]} {schedule.time_of_day}'
        case Frequency.MONTHLY:
            when = f'day {schedule.day_of_month} {schedule.time_of_day}'
        case _:
            when = schedule.time_of_day
    last = (
        schedule.last_triggered_at.isoformat(sep=' ')
        if schedule.last_triggered_at
        else 'never'
    )
    state = 'enabled' if schedule.enabled else 'disabled'
    return (
        f'{schedule.id:>4}  {label.code:<8} {schedule.frequency.value:<9} '
        f'{when:<20} {state:<9} last={last}'
    )


def poller_command(args: argparse.Namespace) -> None:
    """Handle poller command."""
    logger = get_logger('cli')

    loglevel: str = args.loglevel
    setup_logging(loglevel)
    logger.info(f'Starting poller with loglevel={loglevel}')

    try:
        config = load_config(args)
    except MindlogError as e:
        _print_error(e)
        sys.exit(1)

    if not config.poller.enabled:
        logger.warning('Poller is disabled in config')
        sys.exit(1)

    async def run_poller() -> None:
        database = ScheduleDatabase(config.storage)
        try:
            init_result = await database.ensure_schema_initialized()
            if is_err(init_result):
                raise init_result.err_value

            poller = SchedulePoller(
                ScheduleRepository(database.session_factory),
                LoggingNotifier(),
                config.poller,
                subjects=config,
            )

            loop = asyncio.get_running_loop()

            def signal_handler() -> None:
                logger.info('Received interrupt signal, stopping poller...')
                poller.request_stop()

            for sig in (signal.SIGTERM, signal.SIGINT):
                try:
                    loop.add_signal_handler(sig, signal_handler)
                except NotImplementedError:
                    pass

            await poller.run_forever()
        finally:
            await database.close_async()

    try:
        asyncio.run(run_poller())
    except KeyboardInterrupt:
        logger.info('Poller interrupted by user')
        return
    except StorageError as e:
        _print_error(e)
        sys.exit(1)
    except Exception as e:
        logger.error(f'Poller failed: {e}', exc_info=True)
        sys.exit(1)


def _schedule_payload(args: argparse.Namespace) -> dict[str, Any]:
    payload: dict[str, Any] = {
        'subject_id': args.subject,
        'frequency': args.frequency,
        'time_of_day': args.time,
    }
    if args.day_of_week is not None:
        payload['day_of_week'] = args.day_of_week
    if args.day_of_month is not None:
        payload['day_of_month'] = args.day_of_month
    return payload


async def run_schedules_action(args: argparse.Namespace, config: AppConfig) -> int:
    """Run one `schedules` subcommand against the store. Returns the exit code."""
    database = ScheduleDatabase(config.storage)
    try:
        init_result = await database.ensure_schema_initialized()
        if is_err(init_result):
            _print_error(init_result.err_value)
            return 1

        commands = ScheduleCommands(ScheduleRepository(database.session_factory))

        match args.action:
            case 'list':
                result = await commands.list_schedules(enabled_only=args.enabled_only)
                if is_err(result):
                    _print_error(result.err_value)
                    return 1
                schedules: list[Schedule] = result.ok_value
                if not schedules:
                    print('No schedules')
                for schedule in schedules:
                    print(describe_schedule(schedule, config))
            case 'add':
                result = await commands.create_schedule(_schedule_payload(args))
                if is_err(result):
                    _print_error(result.err_value)
                    return 1
                print(f'Created {describe_schedule(result.ok_value, config).strip()}')
            case 'enable' | 'disable':
                result = await commands.update_schedule(
                    args.schedule_id, {'enabled': args.action == 'enable'}
                )
                if is_err(result):
                    _print_error(result.err_value)
                    return 1
                print(describe_schedule(result.ok_value, config))
            case 'remove':
                result = await commands.delete_schedule(args.schedule_id)
                if is_err(result):
                    _print_error(result.err_value)
                    return 1
                print(f'Removed schedule {args.schedule_id}')
            case 'next':
                result = await commands.next_trigger_for(args.schedule_id, args.count)
                if is_err(result):
                    _print_error(result.err_value)
                    return 1
                triggers: list[datetime] = result.ok_value
                for trigger in triggers:
                    print(trigger.strftime('%Y-%m-%d %H:%M (%A)'))
            case _:
                print(f'unknown schedules action: {args.action}', file=sys.stderr)
                return 1
        return 0
    finally:
        await database.close_async()


def schedules_command(args: argparse.Namespace) -> None:
    """Handle schedules command."""
    setup_logging(args.loglevel)

    try:
        config = load_config(args)
    except MindlogError as e:
        _print_error(e)
        sys.exit(1)

    exit_code = asyncio.run(run_schedules_action(args, config))
    if exit_code:
        sys.exit(exit_code)


def _add_common_arguments(parser: argparse.ArgumentParser, loglevel: str) -> None:
    parser.add_argument(
        '--database',
        dest='database',
        help='SQLAlchemy URL of the schedule database (default: $MINDLOG_DATABASE_URL)',
    )
    parser.add_argument(
        '--loglevel',
        choices=_LOG_LEVELS,
        default=loglevel,
        type=str.upper,
        help=f'Logging level (default: {loglevel})',
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='mindlog',
        description='mindlog - recurring assessment reminders',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run the reminder poller
  mindlog poller --database sqlite+aiosqlite:///mindlog.db

  # Weekly PHQ-9 reminder on Mondays at 09:00
  mindlog schedules add --subject 1 --frequency weekly --time 09:00 --day-of-week 1

  # Preview the next five reminders of schedule 3
  mindlog schedules next 3 --count 5
""",
    )
    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # Poller command
    poller_parser = subparsers.add_parser(
        'poller',
        help='Run the due-schedule poller until interrupted',
    )
    _add_common_arguments(poller_parser, 'INFO')
    poller_parser.add_argument(
        '--interval',
        type=int,
        default=None,
        help='Seconds between checks (default: $MINDLOG_CHECK_INTERVAL_SECONDS or 60)',
    )

    # Schedules command
    schedules_parser = subparsers.add_parser(
        'schedules',
        help='List, add and remove schedules',
    )
    actions = schedules_parser.add_subparsers(dest='action', help='Schedule actions')

    list_parser = actions.add_parser('list', help='List schedules, newest first')
    _add_common_arguments(list_parser, 'WARNING')
    list_parser.add_argument(
        '--enabled-only',
        action='store_true',
        default=False,
        help='Only show enabled schedules',
    )

    add_parser = actions.add_parser('add', help='Create a schedule')
    _add_common_arguments(add_parser, 'WARNING')
    add_parser.add_argument('--subject', type=int, required=True, help='Assessment type id')
    add_parser.add_argument(
        '--frequency',
        required=True,
        help='daily, weekly, biweekly or monthly',
    )
    add_parser.add_argument('--time', required=True, help='Time of day, HH:MM (24-hour)')
    add_parser.add_argument(
        '--day-of-week',
        type=int,
        default=None,
        help='0-6, Sunday=0 (weekly/biweekly)',
    )
    add_parser.add_argument(
        '--day-of-month',
        type=int,
        default=None,
        help='1-31, short months use their last day (monthly)',
    )

    for action, help_text in (
        ('remove', 'Delete a schedule'),
        ('enable', 'Enable a schedule'),
        ('disable', 'Disable a schedule'),
    ):
        action_parser = actions.add_parser(action, help=help_text)
        _add_common_arguments(action_parser, 'WARNING')
        action_parser.add_argument('schedule_id', type=int, help='Schedule id')

    next_parser = actions.add_parser('next', help='Preview upcoming trigger times')
    _add_common_arguments(next_parser, 'WARNING')
    next_parser.add_argument('schedule_id', type=int, help='Schedule id')
    next_parser.add_argument(
        '--count',
        type=int,
        default=1,
        help='How many trigger times to show (default: 1)',
    )

    return parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Main CLI entry point."""
    try:
        parser = build_parser()
        args = parser.parse_args(argv)

        match args.command:
            case 'poller':
                poller_command(args)
            case 'schedules' if getattr(args, 'action', None):
                schedules_command(args)
            case _:
                parser.print_help()
                sys.exit(1)
    except KeyboardInterrupt:
        print('\nInterrupted by user')
        sys.exit(0)


if __name__ == '__main__':
    main()
