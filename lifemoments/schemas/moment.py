"""Moment Schemas — Pydantic models for the storage boundary and the UI payload.

Invariants:
    - MomentDocument mirrors the persisted shape: id 1-36, title 1-100, description <=200,
      date exactly 10 chars YYYY-MM-DD, repeat_frequency one of 5 values,
      updated_at >= created_at
    - MomentDocument runs on every write, after the service validator (defense in depth)
    - MomentPayload serializes entities with camelCase aliases for the UI layer

Design Decisions:
    - extra="forbid" on MomentDocument: unknown columns never reach SQL
    - strict date check via date.fromisoformat after the regex: rejects 2024-02-30
"""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from lifemoments.core.domain_types import MomentStatus, RepeatFrequency


DATE_PATTERN = r"^[0-9]{4}-[0-9]{2}-[0-9]{2}$"


class MomentDocument(BaseModel):
    """Storage-boundary schema for one persisted moment."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str = Field(min_length=1, max_length=36)
    title: str = Field(min_length=1, max_length=100)
    description: str | None = Field(None, max_length=200)
    date: str = Field(min_length=10, max_length=10, pattern=DATE_PATTERN)
    repeat_frequency: RepeatFrequency = RepeatFrequency.NONE
    created_at: datetime
    updated_at: datetime

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("title cannot be empty or whitespace")
        return v

    @field_validator("date")
    @classmethod
    def date_is_real(cls, v: str) -> str:
        date.fromisoformat(v)
        return v

    @model_validator(mode="after")
    def timestamps_ordered(self) -> "MomentDocument":
        if self.updated_at < self.created_at:
            raise ValueError("updated_at must not precede created_at")
        return self


class MomentPayload(BaseModel):
    """Projected moment as the UI layer consumes it."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    title: str
    description: str | None = None
    date: date
    repeat_frequency: RepeatFrequency
    created_at: datetime
    updated_at: datetime
    days_difference: int
    display_text: str
    status: MomentStatus
    next_occurrence: date | None = None
    is_repeating: bool
