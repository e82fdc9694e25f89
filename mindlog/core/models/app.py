# mindlog/core/models/app.py
from __future__ import annotations
import os
from typing import Mapping, Optional
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from mindlog.core.defaults import DEFAULT_SUBJECTS
from mindlog.core.errors import ConfigurationError, ErrorCode
from mindlog.core.models.schedule import PollerConfig
from mindlog.core.models.storage import StorageConfig


class SubjectLabel(BaseModel):
    """Display data for the thing a schedule reminds about (an assessment type)."""

    model_config = ConfigDict(frozen=True)

    code: str
    name: str


def _default_subjects() -> dict[int, SubjectLabel]:
    return {
        subject_id: SubjectLabel(code=code, name=name)
        for subject_id, (code, name) in DEFAULT_SUBJECTS.items()
    }


class AppConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    storage: StorageConfig = Field(default_factory=StorageConfig)
    poller: PollerConfig = Field(default_factory=PollerConfig)
    subjects: dict[int, SubjectLabel] = Field(default_factory=_default_subjects)

    def subject_label(self, subject_id: int) -> SubjectLabel:
        """Label for a subject, falling back to a generic one for unknown ids."""
        label = self.subjects.get(subject_id)
        if label is not None:
            return label
        return SubjectLabel(code=f'ASSESSMENT-{subject_id}', name=f'Assessment #{subject_id}')

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> AppConfig:
        """
        Build a config from MINDLOG_* environment variables.

        Recognised:
            - MINDLOG_DATABASE_URL
            - MINDLOG_BUSY_TIMEOUT_SECONDS
            - MINDLOG_CHECK_INTERVAL_SECONDS
            - MINDLOG_POLLER_ENABLED
        """
        env = os.environ if environ is None else environ

        storage_kwargs: dict[str, object] = {}
        if env.get('MINDLOG_DATABASE_URL'):
            storage_kwargs['database_url'] = env['MINDLOG_DATABASE_URL']
        if env.get('MINDLOG_BUSY_TIMEOUT_SECONDS'):
            storage_kwargs['busy_timeout_seconds'] = env['MINDLOG_BUSY_TIMEOUT_SECONDS']

        poller_kwargs: dict[str, object] = {}
        if env.get('MINDLOG_CHECK_INTERVAL_SECONDS'):
            poller_kwargs['check_interval_seconds'] = env['MINDLOG_CHECK_INTERVAL_SECONDS']
        if env.get('MINDLOG_POLLER_ENABLED'):
            poller_kwargs['enabled'] = env['MINDLOG_POLLER_ENABLED'].lower() in (
                '1',
                'true',
                'yes',
            )

        try:
            return cls(
                storage=StorageConfig(**storage_kwargs),
                poller=PollerConfig(**poller_kwargs),
            )
        except ValidationError as e:
            raise ConfigurationError(
                message='invalid MINDLOG_* environment configuration',
                code=ErrorCode.CONFIG_INVALID,
                notes=[err['msg'] + f" ({'.'.join(str(p) for p in err['loc'])})" for err in e.errors()],
                help_text='check the MINDLOG_* variables in your environment or .env file',
            ) from e
