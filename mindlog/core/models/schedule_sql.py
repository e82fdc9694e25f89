# mindlog/core/models/schedule_sql.py
from __future__ import annotations
from datetime import datetime
from typing import Optional
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    String,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for the embedded SQLite store"""

    pass


class ScheduleModel(Base):
    """Assessment reminder schedule row.

    Column layout matches the desktop app's `assessment_schedules` table so
    an existing database file can be opened as-is.

    Fields:
        - id: autoincrement primary key
        - assessment_type_id: subject the reminder is for
        - frequency: 'daily' | 'weekly' | 'biweekly' | 'monthly'
        - time_of_day: "HH:MM"
        - day_of_week: 0-6 (Sunday=0), weekly/biweekly only
        - day_of_month: 1-31, monthly only
        - enabled: disabled rows are never polled
        - last_triggered_at: most recent firing (local wall-clock), NULL until first
        - created_at / updated_at: local wall-clock audit timestamps
    """

    __tablename__ = 'assessment_schedules'
    __table_args__ = (
        CheckConstraint(
            "frequency IN ('daily', 'weekly', 'biweekly', 'monthly')",
            name='ck_assessment_schedules_frequency',
        ),
        Index('idx_assessment_schedules_enabled', 'enabled'),
        Index('idx_assessment_schedules_next', 'enabled', 'last_triggered_at'),
        Index(
            'idx_schedules_enabled_time',
            'enabled',
            'time_of_day',
            sqlite_where=text('enabled = 1'),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    assessment_type_id: Mapped[int] = mapped_column(Integer, nullable=False)
    frequency: Mapped[str] = mapped_column(String(16), nullable=False)
    time_of_day: Mapped[str] = mapped_column(String(5), nullable=False)
    day_of_week: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    day_of_month: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_triggered_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=False), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
