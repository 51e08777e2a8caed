"""Moment Types — draft (user input), record (persisted) and entity (projected).

Invariants:
    - MomentRecord and MomentEntity are frozen: updates produce new instances
    - MomentDraft holds raw, untrimmed, unvalidated input exactly as submitted
    - MomentEntity carries every MomentRecord field plus the computed ones
    - to_payload() is the only place camelCase names appear

Design Decisions:
    - Dataclasses not ORM rows: core never sees SQLAlchemy objects (store maps rows)
    - `import datetime as dt`: the `date` field name would shadow datetime.date
"""

import datetime as dt
from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Mapping

from lifemoments.core.domain_types import MomentId, MomentStatus, RepeatFrequency
from lifemoments.schemas.moment import MomentPayload


@dataclass(frozen=True)
class MomentDraft:
    """Submission payload from the UI layer: {title, description?, date, repeatFrequency}."""
    title: Any = None
    date: Any = None
    description: Any = None
    repeat_frequency: Any = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "MomentDraft":
        """Accept camelCase (UI) or snake_case keys."""
        frequency = payload.get("repeatFrequency", payload.get("repeat_frequency"))
        return cls(
            title=payload.get("title"),
            date=payload.get("date"),
            description=payload.get("description"),
            repeat_frequency=frequency,
        )

    def trimmed(self) -> "MomentDraft":
        """Strip string fields; an empty description becomes None."""
        title = self.title.strip() if isinstance(self.title, str) else self.title
        description = self.description
        if isinstance(description, str):
            description = description.strip() or None
        date = self.date.strip() if isinstance(self.date, str) else self.date
        frequency = self.repeat_frequency
        if frequency is None or frequency == "":
            frequency = RepeatFrequency.NONE
        return MomentDraft(
            title=title, date=date, description=description,
            repeat_frequency=frequency,
        )


@dataclass(frozen=True)
class MomentRecord:
    """Persisted moment."""
    id: MomentId
    title: str
    date: dt.date
    repeat_frequency: RepeatFrequency
    created_at: dt.datetime
    updated_at: dt.datetime
    description: str | None = None

    def merged(self, changes: Mapping[str, Any]) -> "MomentRecord":
        """New record with changes applied.

        id and created_at cannot change; updated_at never moves backwards.
        """
        allowed = {f.name for f in fields(self)} - {"id", "created_at"}
        unknown = set(changes) - allowed
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")
        merged = replace(self, **dict(changes))
        if merged.updated_at < self.updated_at:
            merged = replace(merged, updated_at=self.updated_at)
        return merged


@dataclass(frozen=True)
class MomentEntity:
    """Display-ready moment. Never persisted, recomputed on every read."""
    id: MomentId
    title: str
    date: dt.date
    repeat_frequency: RepeatFrequency
    created_at: dt.datetime
    updated_at: dt.datetime
    description: str | None
    days_difference: int
    display_text: str
    status: MomentStatus
    next_occurrence: dt.date | None
    is_repeating: bool

    @property
    def record(self) -> MomentRecord:
        return MomentRecord(
            id=self.id,
            title=self.title,
            date=self.date,
            repeat_frequency=self.repeat_frequency,
            created_at=self.created_at,
            updated_at=self.updated_at,
            description=self.description,
        )

    def to_payload(self) -> dict:
        """camelCase, JSON-ready dict for the UI layer."""
        return MomentPayload.model_validate(asdict(self)).model_dump(
            mode="json", by_alias=True, exclude_none=True,
        )
