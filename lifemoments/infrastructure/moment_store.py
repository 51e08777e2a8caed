"""Local Store — persistent keyed moment collection on SQLite (SQLAlchemy async).

Invariants:
    - Every write passes the MomentDocument storage schema before SQL sees it
    - Mutations run under one writer lock: a read-modify-write update and a delete of
      the same id never interleave; whichever runs second re-reads the row and fails
      with MomentNotFoundError if it is gone
    - Change events are queued under the writer lock (queue order == commit order)
      and delivered after it is released, so listeners may await further writes
    - One task drains the queue at a time; a write returns once its event has been
      delivered, except a write issued by a listener, whose event follows the one
      being delivered
    - Returned records always carry UTC-aware timestamps
    - Only LifeMomentsError subclasses escape (DatabaseSessionManager maps the rest)

Design Decisions:
    - Store-wide lock instead of per-id locks: SQLite has a single writer anyway
    - Dates stored as ISO text: range filters are plain string comparisons
    - A listener failure is logged, never turned into a failure of the committed write
"""

import asyncio
import logging
from collections import deque
from datetime import date, datetime, timezone
from typing import Any, Mapping, Sequence

from pydantic import ValidationError
from sqlalchemy import delete, func, select

from lifemoments.core.domain_types import ChangeKind, MomentId, RepeatFrequency
from lifemoments.core.errors import (
    DuplicateMomentError, MomentNotFoundError, SchemaViolationError,
    StorageError, StorageErrorKind,
)
from lifemoments.core.moment import MomentRecord
from lifemoments.core.query import DEFAULT_SORT, MomentFilter, MomentSort
from lifemoments.core.repository_protocols import ChangeEvent, ChangeListener
from lifemoments.infrastructure.database import DatabaseSessionManager
from lifemoments.models.moment import Moment
from lifemoments.schemas.moment import MomentDocument

logger = logging.getLogger(__name__)


class SqlMomentStore:
    """MomentStore implementation backed by DatabaseSessionManager."""

    def __init__(self, db: DatabaseSessionManager):
        self._db = db
        self._write_lock = asyncio.Lock()
        self._listeners: list[ChangeListener] = []
        self._publish_lock = asyncio.Lock()
        self._pending: deque[ChangeEvent] = deque()
        self._delivering: asyncio.Task | None = None

    # ─── Listeners ───────────────────────────────────────────────

    def add_listener(self, listener: ChangeListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: ChangeListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _enqueue(self, event: ChangeEvent) -> None:
        # caller holds the writer lock: queue order == commit order
        self._pending.append(event)

    async def _deliver(self) -> None:
        """Drain queued events to listeners, oldest first.

        A write issued by a listener of the draining task only enqueues; the
        running drain loop delivers its event next.
        """
        if self._delivering is not None and self._delivering is asyncio.current_task():
            return
        async with self._publish_lock:
            self._delivering = asyncio.current_task()
            try:
                while self._pending:
                    event = self._pending.popleft()
                    for listener in list(self._listeners):
                        try:
                            await listener(event)
                        except Exception:
                            logger.exception(
                                "Change listener failed",
                                extra={"change_kind": event.kind.value},
                            )
            finally:
                self._delivering = None

    # ─── Writes ──────────────────────────────────────────────────

    async def insert(self, record: MomentRecord) -> MomentRecord:
        """Persist a new record. Fails with DuplicateMomentError if the id exists."""
        document = _document_for(record)
        async with self._write_lock:
            async with self._db.session("insert") as db:
                if await db.get(Moment, document.id) is not None:
                    raise DuplicateMomentError(document.id)
                db.add(_row_for(document))
                await db.commit()
            logger.debug("Moment inserted", extra={"moment_id": document.id})
            self._enqueue(ChangeEvent(ChangeKind.INSERT, (document.id,)))
        await self._deliver()
        return _record_for(document)

    async def bulk_insert(self, records: Sequence[MomentRecord]) -> list[MomentRecord]:
        """Persist all records in one transaction, or none of them."""
        documents = [_document_for(r) for r in records]
        if not documents:
            return []
        ids = [d.id for d in documents]
        seen: set[str] = set()
        for moment_id in ids:
            if moment_id in seen:
                raise DuplicateMomentError(moment_id)
            seen.add(moment_id)

        async with self._write_lock:
            async with self._db.session("bulk_insert") as db:
                existing = await db.execute(select(Moment.id).where(Moment.id.in_(ids)))
                clash = existing.scalars().first()
                if clash is not None:
                    raise DuplicateMomentError(clash)
                db.add_all([_row_for(d) for d in documents])
                await db.commit()
            logger.info("Moments bulk inserted", extra={"count": len(documents)})
            self._enqueue(ChangeEvent(ChangeKind.BULK, tuple(ids)))
        await self._deliver()
        return [_record_for(d) for d in documents]

    async def update(self, moment_id: MomentId, changes: Mapping[str, Any]) -> MomentRecord:
        """Merge changes into the stored record. Fails with MomentNotFoundError."""
        async with self._write_lock:
            async with self._db.session("update") as db:
                row = await db.get(Moment, moment_id)
                if row is None:
                    raise MomentNotFoundError(moment_id)
                try:
                    merged = _record_from_row(row).merged(changes)
                except (TypeError, ValueError) as e:
                    raise SchemaViolationError(
                        [{"loc": (k,), "msg": str(e)} for k in changes],
                    ) from e
                document = _document_for(merged)
                _apply(row, document)
                await db.commit()
            logger.debug("Moment updated", extra={"moment_id": moment_id})
            self._enqueue(ChangeEvent(ChangeKind.UPDATE, (moment_id,)))
        await self._deliver()
        return _record_for(document)

    async def remove(self, moment_id: MomentId) -> None:
        """Delete one record. Fails with MomentNotFoundError."""
        async with self._write_lock:
            async with self._db.session("remove") as db:
                row = await db.get(Moment, moment_id)
                if row is None:
                    raise MomentNotFoundError(moment_id)
                await db.delete(row)
                await db.commit()
            logger.debug("Moment removed", extra={"moment_id": moment_id})
            self._enqueue(ChangeEvent(ChangeKind.REMOVE, (moment_id,)))
        await self._deliver()

    async def remove_all(self, filter: MomentFilter | None = None) -> int:
        """Delete every matching record; returns how many were removed."""
        async with self._write_lock:
            async with self._db.session("remove_all") as db:
                result = await db.execute(
                    delete(Moment).where(*_conditions(filter)),
                )
                removed = result.rowcount or 0
                await db.commit()
            if removed:
                logger.info("Moments removed", extra={"count": removed})
                self._enqueue(ChangeEvent(ChangeKind.REMOVE))
        await self._deliver()
        return removed

    # ─── Reads ───────────────────────────────────────────────────

    async def find_by_id(self, moment_id: MomentId) -> MomentRecord | None:
        async with self._db.session("find_by_id") as db:
            row = await db.get(Moment, moment_id)
            return _record_from_row(row) if row is not None else None

    async def find_all(
        self, filter: MomentFilter | None = None, sort: MomentSort | None = None,
    ) -> list[MomentRecord]:
        sort = sort or DEFAULT_SORT
        column = getattr(Moment, sort.field.value)
        order = (column.desc(), Moment.id.desc()) if sort.descending else (column.asc(), Moment.id.asc())
        async with self._db.session("find_all") as db:
            result = await db.execute(
                select(Moment).where(*_conditions(filter)).order_by(*order),
            )
            return [_record_from_row(row) for row in result.scalars().all()]

    async def count(self, filter: MomentFilter | None = None) -> int:
        async with self._db.session("count") as db:
            result = await db.execute(
                select(func.count()).select_from(Moment).where(*_conditions(filter)),
            )
            return int(result.scalar_one())


# ─── Mapping helpers ─────────────────────────────────────────────

def _conditions(filter: MomentFilter | None) -> list:
    if filter is None:
        return []
    conditions = []
    if filter.repeat_frequencies is not None:
        conditions.append(Moment.repeat_frequency.in_(
            [RepeatFrequency(f) for f in filter.repeat_frequencies],
        ))
    if filter.date_from is not None:
        conditions.append(Moment.date >= filter.date_from.isoformat())
    if filter.date_to is not None:
        conditions.append(Moment.date <= filter.date_to.isoformat())
    return conditions


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _document_for(record: MomentRecord) -> MomentDocument:
    """Check record against the storage schema."""
    raw_date = record.date.isoformat() if isinstance(record.date, date) else record.date
    try:
        return MomentDocument(
            id=record.id,
            title=record.title,
            description=record.description,
            date=raw_date,
            repeat_frequency=record.repeat_frequency,
            created_at=_utc(record.created_at),
            updated_at=_utc(record.updated_at),
        )
    except ValidationError as e:
        raise SchemaViolationError(e.errors(include_url=False)) from e


def _row_for(document: MomentDocument) -> Moment:
    row = Moment(id=document.id)
    _apply(row, document)
    return row


def _apply(row: Moment, document: MomentDocument) -> None:
    row.title = document.title
    row.description = document.description
    row.date = document.date
    row.repeat_frequency = document.repeat_frequency
    row.created_at = document.created_at
    row.updated_at = document.updated_at


def _record_for(document: MomentDocument) -> MomentRecord:
    return MomentRecord(
        id=MomentId(document.id),
        title=document.title,
        description=document.description,
        date=date.fromisoformat(document.date),
        repeat_frequency=document.repeat_frequency,
        created_at=_utc(document.created_at),
        updated_at=_utc(document.updated_at),
    )


def _record_from_row(row: Moment) -> MomentRecord:
    try:
        return MomentRecord(
            id=MomentId(row.id),
            title=row.title,
            description=row.description,
            date=date.fromisoformat(row.date),
            repeat_frequency=RepeatFrequency(row.repeat_frequency),
            created_at=_utc(row.created_at),
            updated_at=_utc(row.updated_at),
        )
    except (TypeError, ValueError) as e:
        raise StorageError(
            f"unreadable row {row.id!r}", "read",
            kind=StorageErrorKind.CORRUPTION, cause=e,
        ) from e
