# mindlog/core/storage.py
"""Embedded SQLite store for schedules.

Result propagation policy
-------------------------
* Bootstrap and shutdown (``ensure_schema_initialized``, ``close_async``)
  return ``StorageResult`` so the process boundary (CLI) decides whether to
  abort.
* Repository operations raise ``StorageError`` (classified as busy,
  failed or corrupted); the command surface converts those into ``Err``
  values for the UI, and the poller logs and carries on unless the store
  is corrupted.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from mindlog.core.errors import StorageError
from mindlog.core.logging import get_logger
from mindlog.core.models.schedule_sql import Base
from mindlog.core.models.storage import StorageConfig
from mindlog.core.types.result import Err, Ok, Result
from mindlog.core.utils.db import classify_storage_error

logger = get_logger('storage')

type StorageResult[T] = Result[T, StorageError]


class ScheduleDatabase:
    """
    Owns the async engine and session factory for the schedule store.

    SQLite serializes writers itself; each connection waits up to
    ``busy_timeout_seconds`` on a locked database before the driver raises.
    """

    def __init__(self, config: StorageConfig):
        self.config = config
        self.async_engine: AsyncEngine = create_async_engine(
            config.database_url,
            echo=config.echo,
            connect_args={'timeout': config.busy_timeout_seconds},
        )
        busy_timeout_ms = int(config.busy_timeout_seconds * 1000)

        @event.listens_for(self.async_engine.sync_engine, 'connect')
        def _set_sqlite_pragmas(dbapi_connection: Any, _record: Any) -> None:
            cursor = dbapi_connection.cursor()
            cursor.execute('PRAGMA journal_mode=WAL')
            cursor.execute('PRAGMA foreign_keys=ON')
            cursor.execute(f'PRAGMA busy_timeout={busy_timeout_ms}')
            cursor.close()

        self.session_factory = async_sessionmaker(
            self.async_engine, expire_on_commit=False
        )

    async def ensure_schema_initialized(self) -> StorageResult[None]:
        """Create the schedule table and its indexes if they do not exist."""
        try:
            async with self.async_engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except Exception as e:
            err = classify_storage_error(e, 'schema initialization')
            logger.error(f'Schema initialization failed: {err.message}')
            return Err(err)
        logger.info('Schema initialized')
        return Ok(None)

    async def close_async(self) -> StorageResult[None]:
        try:
            await self.async_engine.dispose()
        except Exception as e:
            err = classify_storage_error(e, 'engine dispose')
            logger.error(f'Closing storage failed: {err.message}')
            return Err(err)
        logger.debug('Storage engine disposed')
        return Ok(None)
