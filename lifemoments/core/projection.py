"""Entity Projector — record + recurrence calculation -> display-ready entity.

Invariants:
    - project_moment is PURE: same (record, today) always yields an equal entity
    - Records are never mutated; the entity is a new frozen object
    - is_repeating == (repeat_frequency != NONE)

Design Decisions:
    - Calculation memoized on (anchor, frequency, today): every live-query emission
      re-projects the whole set, and between day boundaries the inputs repeat
"""

from datetime import date
from functools import lru_cache
from typing import Iterable

from lifemoments.core.domain_types import RepeatFrequency
from lifemoments.core.moment import MomentEntity, MomentRecord
from lifemoments.core.recurrence import DayDifference, calculate_day_difference


@lru_cache(maxsize=4096)
def _calculate(anchor: date, frequency: RepeatFrequency, today: date) -> DayDifference:
    return calculate_day_difference(anchor, frequency, today)


def project_moment(record: MomentRecord, today: date) -> MomentEntity:
    """Attach day difference, display text and status to record."""
    calc = _calculate(record.date, RepeatFrequency(record.repeat_frequency), today)
    return MomentEntity(
        id=record.id,
        title=record.title,
        date=record.date,
        repeat_frequency=record.repeat_frequency,
        created_at=record.created_at,
        updated_at=record.updated_at,
        description=record.description,
        days_difference=calc.days_difference,
        display_text=calc.display_text,
        status=calc.status,
        next_occurrence=calc.next_occurrence,
        is_repeating=calc.is_repeating,
    )


def project_moments(records: Iterable[MomentRecord], today: date) -> list[MomentEntity]:
    return [project_moment(r, today) for r in records]
