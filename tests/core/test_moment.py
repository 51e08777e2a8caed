"""Tests for core/moment.py — draft trimming, record merging, entity payloads.

Tests cover:
    - MomentDraft.from_payload accepts camelCase and snake_case
    - trimmed(): whitespace stripped, blank description -> None, missing frequency -> NONE
    - MomentRecord.merged(): immutability of id/created_at, monotonic updated_at
    - MomentEntity.to_payload(): camelCase keys, JSON-ready values, None fields omitted
"""

from datetime import date, timedelta

import pytest

from lifemoments.core.domain_types import RepeatFrequency
from lifemoments.core.moment import MomentDraft
from lifemoments.core.projection import project_moment


# ─── MomentDraft ────────────────────────────────────────────────


def test_from_payload_camel_case():
    draft = MomentDraft.from_payload({
        "title": "Anniversary", "date": "2020-05-01", "repeatFrequency": "yearly",
    })
    assert draft.repeat_frequency == "yearly"
    assert draft.description is None


def test_from_payload_snake_case():
    draft = MomentDraft.from_payload({
        "title": "Gym", "date": "2024-01-01", "repeat_frequency": "weekly",
        "description": "legs",
    })
    assert draft.repeat_frequency == "weekly"
    assert draft.description == "legs"


def test_trimmed_strips_and_normalizes():
    draft = MomentDraft(
        title="  Trip  ", date=" 2024-07-01 ", description="   ", repeat_frequency=None,
    ).trimmed()
    assert draft.title == "Trip"
    assert draft.date == "2024-07-01"
    assert draft.description is None
    assert draft.repeat_frequency is RepeatFrequency.NONE


def test_trimmed_keeps_non_strings():
    draft = MomentDraft(title=None, date=date(2024, 1, 1)).trimmed()
    assert draft.title is None
    assert draft.date == date(2024, 1, 1)


# ─── MomentRecord.merged ────────────────────────────────────────


def test_merged_returns_new_record(record_factory):
    record = record_factory(title="Old")
    merged = record.merged({"title": "New"})
    assert merged.title == "New"
    assert record.title == "Old"
    assert merged.id == record.id


@pytest.mark.parametrize("field", ["id", "created_at", "color"])
def test_merged_rejects_protected_or_unknown_fields(record_factory, field):
    record = record_factory()
    with pytest.raises(ValueError):
        record.merged({field: "x"})


def test_merged_never_moves_updated_at_backwards(record_factory):
    record = record_factory()
    earlier = record.updated_at - timedelta(hours=1)
    assert record.merged({"updated_at": earlier}).updated_at == record.updated_at
    later = record.updated_at + timedelta(hours=1)
    assert record.merged({"updated_at": later}).updated_at == later


# ─── MomentEntity ───────────────────────────────────────────────


def test_entity_record_round_trip(record_factory):
    record = record_factory(description="note")
    entity = project_moment(record, date(2024, 6, 15))
    assert entity.record == record


def test_to_payload_uses_camel_case(record_factory):
    record = record_factory(date=date(2024, 6, 1), repeat_frequency=RepeatFrequency.MONTHLY)
    payload = project_moment(record, date(2024, 6, 15)).to_payload()
    assert payload["repeatFrequency"] == "monthly"
    assert payload["nextOccurrence"] == "2024-07-01"
    assert payload["daysDifference"] == 16
    assert payload["displayText"] == "16 days until"
    assert payload["status"] == "future"
    assert payload["isRepeating"] is True
    assert payload["date"] == "2024-06-01"
    assert "createdAt" in payload and "updatedAt" in payload


def test_to_payload_omits_missing_optionals(record_factory):
    payload = project_moment(record_factory(), date(2024, 6, 15)).to_payload()
    assert "description" not in payload
    assert "nextOccurrence" not in payload
