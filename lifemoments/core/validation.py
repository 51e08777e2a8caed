"""Document Validator — field constraints checked before anything is persisted.

Invariants:
    - PURE and synchronous: no IO, no clock, no mutation of the draft
    - Checks run in a fixed order and stop at the first violation:
      empty_title -> title_too_long -> description_too_long -> missing_date
      -> bad_date_format -> invalid_date -> bad_repeat_frequency
    - The draft is validated as given; trimming is the caller's job (MomentDraft.trimmed)
    - A missing repeat frequency is valid and means NONE

Design Decisions:
    - check_moment returns the error, validate_moment raises it: the service wants a
      value to put in a result, other callers want an exception
    - ASCII-only digit class: str.isdigit/\\d accept non-ASCII digits
"""

import re
from datetime import date

from lifemoments.core.domain_types import RepeatFrequency
from lifemoments.core.errors import MomentValidationError, ValidationErrorKind
from lifemoments.core.moment import MomentDraft


TITLE_MAX_LENGTH: int = 100
DESCRIPTION_MAX_LENGTH: int = 200
DATE_LENGTH: int = 10

_DATE_RE = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")


def parse_strict_date(value: str) -> date | None:
    """Parse YYYY-MM-DD, or None if the string is not exactly a real calendar date."""
    if not _DATE_RE.fullmatch(value):
        return None
    try:
        parsed = date.fromisoformat(value)
    except ValueError:
        return None
    return parsed if parsed.isoformat() == value else None


def is_valid_date_string(value: object) -> bool:
    return isinstance(value, str) and parse_strict_date(value) is not None


def parse_repeat_frequency(value: object) -> RepeatFrequency | None:
    """Member of the closed variant, or None if value is not one."""
    if value is None:
        return RepeatFrequency.NONE
    if isinstance(value, RepeatFrequency):
        return value
    try:
        return RepeatFrequency(value)
    except ValueError:
        return None


def check_moment(draft: MomentDraft) -> MomentValidationError | None:
    """Return the first violation in draft, or None if it is valid."""
    title = draft.title
    if not isinstance(title, str) or not title.strip():
        return MomentValidationError(ValidationErrorKind.EMPTY_TITLE, "title")
    if len(title) > TITLE_MAX_LENGTH:
        return MomentValidationError(ValidationErrorKind.TITLE_TOO_LONG, "title")

    description = draft.description
    if description is not None:
        if not isinstance(description, str) or len(description) > DESCRIPTION_MAX_LENGTH:
            return MomentValidationError(
                ValidationErrorKind.DESCRIPTION_TOO_LONG, "description",
            )

    raw_date = draft.date
    if raw_date is None or raw_date == "":
        return MomentValidationError(ValidationErrorKind.MISSING_DATE, "date")
    if isinstance(raw_date, date):
        raw_date = raw_date.isoformat()
    if not isinstance(raw_date, str) or not _DATE_RE.fullmatch(raw_date):
        return MomentValidationError(ValidationErrorKind.BAD_DATE_FORMAT, "date")
    if parse_strict_date(raw_date) is None:
        return MomentValidationError(ValidationErrorKind.INVALID_DATE, "date")

    if parse_repeat_frequency(draft.repeat_frequency) is None:
        return MomentValidationError(
            ValidationErrorKind.BAD_REPEAT_FREQUENCY, "repeat_frequency",
        )
    return None


def validate_moment(draft: MomentDraft) -> None:
    """Raise MomentValidationError for the first violation in draft."""
    error = check_moment(draft)
    if error is not None:
        raise error
