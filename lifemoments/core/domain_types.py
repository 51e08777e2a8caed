"""Domain Types — closed variants and identity types shared across the codebase.

Invariants:
    - RepeatFrequency has exactly 5 members; the recurrence calculator matches on all of them
    - MomentStatus has exactly 3 members: past, today, future
    - MomentId wraps str — ids are opaque text (UUID4 in practice), never parsed

Design Decisions:
    - str Enums: values are the persisted/serialized form, no custom encoders needed
    - NewType over wrapper classes: zero runtime cost, full type-checker support
"""

from enum import Enum
from typing import NewType


# ─── Identity Types ──────────────────────────────────────────────

MomentId = NewType("MomentId", str)


# ─── Enums ───────────────────────────────────────────────────────

class RepeatFrequency(str, Enum):
    """How often a moment recurs. Persisted as the member value."""
    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class MomentStatus(str, Enum):
    """Position of an occurrence relative to today."""
    PAST = "past"
    TODAY = "today"
    FUTURE = "future"


class ChangeKind(str, Enum):
    """What kind of event the live query hub is notified about."""
    INSERT = "insert"
    UPDATE = "update"
    REMOVE = "remove"
    BULK = "bulk"
    REFRESH = "refresh"


REPEAT_FREQUENCY_VALUES: tuple[str, ...] = tuple(f.value for f in RepeatFrequency)
