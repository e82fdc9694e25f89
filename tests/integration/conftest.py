"""Integration test fixtures: a fresh SQLite file per test."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import AsyncGenerator

import pytest
import pytest_asyncio

from mindlog.core.models.storage import StorageConfig
from mindlog.core.scheduler.state import ScheduleRepository
from mindlog.core.storage import ScheduleDatabase
from mindlog.core.types.result import is_ok
from mindlog.core.utils.clock import FixedClock


@pytest.fixture
def storage_config(tmp_path: Path) -> StorageConfig:
    return StorageConfig(database_url=f'sqlite+aiosqlite:///{tmp_path / "mindlog.db"}')


@pytest.fixture
def clock() -> FixedClock:
    """Wednesday 2025-01-01 07:00."""
    return FixedClock(datetime(2025, 1, 1, 7, 0))


@pytest_asyncio.fixture
async def database(storage_config: StorageConfig) -> AsyncGenerator[ScheduleDatabase, None]:
    db = ScheduleDatabase(storage_config)
    assert is_ok(await db.ensure_schema_initialized())
    yield db
    await db.close_async()


@pytest.fixture
def repository(database: ScheduleDatabase, clock: FixedClock) -> ScheduleRepository:
    return ScheduleRepository(database.session_factory, clock=clock)
