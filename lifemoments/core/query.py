"""Query Descriptors — filter and sort for store reads and live queries.

Invariants:
    - Descriptors are immutable values; the store translates them to SQL
    - matches() applies the same filter in memory (used by tests and callers
      holding records already loaded)
    - Default sort is newest created_at first, id as the final tie-breaker

Design Decisions:
    - Closed SortField enum: no arbitrary column names reach the query builder
"""

from dataclasses import dataclass
from datetime import date
from enum import Enum

from lifemoments.core.domain_types import RepeatFrequency
from lifemoments.core.moment import MomentRecord


class SortField(str, Enum):
    CREATED_AT = "created_at"
    UPDATED_AT = "updated_at"
    DATE = "date"
    TITLE = "title"


@dataclass(frozen=True)
class MomentFilter:
    """Conjunction of optional constraints. Empty filter matches everything."""
    repeat_frequencies: frozenset[RepeatFrequency] | None = None
    date_from: date | None = None
    date_to: date | None = None

    @classmethod
    def for_frequency(cls, *frequencies: RepeatFrequency) -> "MomentFilter":
        return cls(repeat_frequencies=frozenset(RepeatFrequency(f) for f in frequencies))

    def matches(self, record: MomentRecord) -> bool:
        if self.repeat_frequencies is not None and record.repeat_frequency not in self.repeat_frequencies:
            return False
        if self.date_from is not None and record.date < self.date_from:
            return False
        if self.date_to is not None and record.date > self.date_to:
            return False
        return True


@dataclass(frozen=True)
class MomentSort:
    field: SortField = SortField.CREATED_AT
    descending: bool = True


DEFAULT_SORT = MomentSort()
