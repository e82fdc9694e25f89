from pydantic import BaseModel, ConfigDict, Field, field_validator
from mindlog.core.defaults import DEFAULT_BUSY_TIMEOUT_SECONDS, DEFAULT_DATABASE_URL
from mindlog.core.errors import ConfigurationError, ErrorCode


class StorageConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    database_url: str = Field(
        default=DEFAULT_DATABASE_URL, description='SQLAlchemy URL of the SQLite database'
    )
    busy_timeout_seconds: float = Field(
        default=DEFAULT_BUSY_TIMEOUT_SECONDS,
        gt=0,
        le=60,
        description='How long a statement waits on a locked database',
    )
    echo: bool = Field(default=False, description='Whether to echo the SQL statements')

    @field_validator('database_url')
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        if not v.startswith('sqlite+aiosqlite://'):
            raise ConfigurationError(
                message='invalid database URL scheme',
                code=ErrorCode.CONFIG_INVALID,
                field_name='database_url',
                notes=[
                    f"got: {v.split('://')[0] if '://' in v else v[:20]}://...",
                    'mindlog stores schedules in an embedded SQLite file (aiosqlite driver)',
                ],
                help_text="use 'sqlite+aiosqlite:///path/to/mindlog.db'",
            )
        return v
