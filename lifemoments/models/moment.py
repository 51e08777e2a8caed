"""Moment ORM — the single persisted collection, keyed by opaque string id.

Invariants:
    - id is the primary key (36 chars max, UUID4 text in practice)
    - CHECK constraints duplicate the storage schema: title 1-100, description <=200,
      date exactly 10 chars, repeat_frequency one of 5 values, updated_at >= created_at
    - date stored as ISO text so lexical order == chronological order

Design Decisions:
    - Indexes on date, created_at, repeat_frequency and (repeat_frequency, date):
      the filters live queries use
    - repeat_frequency as non-native Enum storing member values: portable CHECK
"""

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Enum, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from lifemoments.core.domain_types import RepeatFrequency
from lifemoments.db.base import Base


class Moment(Base):
    """Persisted moment row."""
    __tablename__ = "moments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(String(200), nullable=True)
    date: Mapped[str] = mapped_column(String(10), nullable=False)
    repeat_frequency: Mapped[RepeatFrequency] = mapped_column(
        Enum(
            RepeatFrequency,
            name="repeat_frequency",
            native_enum=False,
            create_constraint=True,
            validate_strings=True,
            length=10,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=RepeatFrequency.NONE,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )

    __table_args__ = (
        CheckConstraint("length(title) BETWEEN 1 AND 100", name="ck_moments_title_length"),
        CheckConstraint(
            "description IS NULL OR length(description) <= 200",
            name="ck_moments_description_length",
        ),
        CheckConstraint("length(date) = 10", name="ck_moments_date_length"),
        CheckConstraint("updated_at >= created_at", name="ck_moments_timestamps"),
        Index("ix_moments_date", "date"),
        Index("ix_moments_created_at", "created_at"),
        Index("ix_moments_repeat_frequency", "repeat_frequency"),
        Index("ix_moments_repeat_frequency_date", "repeat_frequency", "date"),
    )
