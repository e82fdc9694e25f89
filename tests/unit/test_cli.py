"""Tests for CLI argument parsing, config overrides and the schedules subcommands."""

from __future__ import annotations

import argparse
from datetime import datetime
from pathlib import Path

import pytest

from mindlog.core.cli import build_parser, describe_schedule, load_config, main
from mindlog.core.errors import ConfigurationError, ErrorCode
from mindlog.core.models.app import AppConfig
from mindlog.core.models.schedule import Schedule


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        'MINDLOG_DATABASE_URL',
        'MINDLOG_BUSY_TIMEOUT_SECONDS',
        'MINDLOG_CHECK_INTERVAL_SECONDS',
        'MINDLOG_POLLER_ENABLED',
        'MINDLOG_FORCE_COLOR',
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv('NO_COLOR', '1')


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    return f'sqlite+aiosqlite:///{tmp_path / "cli.db"}'


# =============================================================================
# Parsing
# =============================================================================


@pytest.mark.unit
class TestBuildParser:
    def test_poller_defaults(self) -> None:
        args = build_parser().parse_args(['poller'])

        assert args.command == 'poller'
        assert args.loglevel == 'INFO'
        assert args.interval is None
        assert args.database is None

    def test_poller_options(self) -> None:
        args = build_parser().parse_args(
            ['poller', '--interval', '30', '--loglevel', 'debug', '--database', 'sqlite+aiosqlite://']
        )

        assert args.interval == 30
        assert args.loglevel == 'DEBUG'
        assert args.database == 'sqlite+aiosqlite://'

    def test_schedules_add(self) -> None:
        args = build_parser().parse_args(
            ['schedules', 'add', '--subject', '2', '--frequency', 'monthly', '--time', '20:00', '--day-of-month', '31']
        )

        assert args.action == 'add'
        assert args.subject == 2
        assert args.day_of_month == 31
        assert args.day_of_week is None
        assert args.loglevel == 'WARNING'

    def test_schedules_next_count(self) -> None:
        args = build_parser().parse_args(['schedules', 'next', '4', '--count', '3'])

        assert (args.schedule_id, args.count) == (4, 3)

    def test_add_requires_time(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args(['schedules', 'add', '--subject', '1', '--frequency', 'daily'])


@pytest.mark.unit
class TestLoadConfig:
    @pytest.mark.usefixtures('clean_env')
    def test_overrides_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv('MINDLOG_DATABASE_URL', 'sqlite+aiosqlite:///env.db')
        monkeypatch.setenv('MINDLOG_CHECK_INTERVAL_SECONDS', '120')
        args = argparse.Namespace(database='sqlite+aiosqlite:///cli.db', interval=15)

        config = load_config(args)

        assert config.storage.database_url == 'sqlite+aiosqlite:///cli.db'
        assert config.poller.check_interval_seconds == 15

    @pytest.mark.usefixtures('clean_env')
    def test_environment_used_without_flags(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv('MINDLOG_CHECK_INTERVAL_SECONDS', '120')

        config = load_config(argparse.Namespace(database=None, interval=None))

        assert config.poller.check_interval_seconds == 120

    @pytest.mark.usefixtures('clean_env')
    def test_invalid_interval(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            load_config(argparse.Namespace(database=None, interval=0))

        assert exc_info.value.code == ErrorCode.CLI_INVALID_ARGS
        assert exc_info.value.field_name == 'interval'


@pytest.mark.unit
class TestDescribeSchedule:
    def test_weekly_line(self) -> None:
        created = datetime(2025, 1, 1, 7, 0)
        schedule = Schedule(
            id=3,
            subject_id=1,
            frequency='weekly',
            time_of_day='09:00',
            day_of_week=1,
            created_at=created,
            updated_at=created,
        )

        line = describe_schedule(schedule, AppConfig())

        assert 'PHQ9' in line
        assert 'weekly' in line
        assert 'Monday 09:00' in line
        assert 'last=never' in line


# =============================================================================
# main()
# =============================================================================


@pytest.mark.unit
@pytest.mark.usefixtures('clean_env')
class TestMain:
    def test_no_command_prints_help_and_fails(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main([])

        assert exc_info.value.code == 1

    def test_poller_with_invalid_interval_fails(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(['poller', '--interval', '0'])

        assert exc_info.value.code == 1
        assert 'E501' in capsys.readouterr().err

    def test_schedules_round_trip(self, database_url: str, capsys: pytest.CaptureFixture[str]) -> None:
        main(
            [
                'schedules', 'add', '--database', database_url,
                '--subject', '1', '--frequency', 'Weekly', '--time', '09:00', '--day-of-week', '1',
            ]
        )
        assert 'Created' in capsys.readouterr().out

        main(['schedules', 'list', '--database', database_url])
        listing = capsys.readouterr().out
        assert 'PHQ9' in listing
        assert 'Monday 09:00' in listing

        main(['schedules', 'next', '1', '--count', '2', '--database', database_url])
        preview = capsys.readouterr().out.strip().splitlines()
        assert len(preview) == 2
        assert all('(Monday)' in line for line in preview)

        main(['schedules', 'disable', '1', '--database', database_url])
        assert 'disabled' in capsys.readouterr().out

        main(['schedules', 'list', '--enabled-only', '--database', database_url])
        assert 'No schedules' in capsys.readouterr().out

        main(['schedules', 'remove', '1', '--database', database_url])
        assert 'Removed schedule 1' in capsys.readouterr().out

        with pytest.raises(SystemExit) as exc_info:
            main(['schedules', 'remove', '1', '--database', database_url])
        assert exc_info.value.code == 1
        assert 'error[E200]' in capsys.readouterr().err

    def test_add_with_invalid_time_reports_field(
        self, database_url: str, capsys: pytest.CaptureFixture[str]
    ) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(
                [
                    'schedules', 'add', '--database', database_url,
                    '--subject', '1', '--frequency', 'daily', '--time', '9:00',
                ]
            )

        assert exc_info.value.code == 1
        err = capsys.readouterr().err
        assert 'error[E100]' in err
        assert 'field `time_of_day`' in err
