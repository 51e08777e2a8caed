"""Moment Service — validation, storage and projection behind one CRUD + subscribe contract.

Invariants:
    - Procedure per write: trim -> validate -> stamp (id/timestamps) -> store -> project
    - A validation failure never reaches the store
    - Expected failures come back as Err results; nothing store-specific leaks:
      anything that is not a LifeMomentsError is wrapped in StorageError(cause=...)
    - State per id: nonexistent --create--> persisted --update--> persisted
      --delete--> removed; update/delete/get on nonexistent or removed -> not found
    - Every read and every live-query emission is projected against today() at that moment
    - The service owns its storage handle: init() opens it, dispose() closes it;
      both are idempotent

Design Decisions:
    - Explicit lifecycle instead of a lazily created global database: tests run
      isolated services side by side
    - Lists ordered by sort_moments_by_date over a newest-first store read, so equal
      day differences show the most recently created moment first
    - One DayBoundaryRefresher per service: repeated init() never adds a second timer
"""

import logging
import uuid
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Iterable, Mapping, Sequence

from lifemoments.config import Settings
from lifemoments.core.domain_types import ChangeKind, MomentId, RepeatFrequency
from lifemoments.core.errors import (
    DuplicateMomentError, LifeMomentsError, MomentNotFoundError, StorageError,
    StorageErrorKind,
)
from lifemoments.core.moment import MomentDraft, MomentEntity, MomentRecord
from lifemoments.core.projection import project_moment, project_moments
from lifemoments.core.query import MomentFilter
from lifemoments.core.recurrence import as_calendar_date, sort_moments_by_date, today_in
from lifemoments.core.repository_protocols import ChangeEvent
from lifemoments.core.results import Err, Ok, Result
from lifemoments.core.validation import check_moment, parse_repeat_frequency
from lifemoments.infrastructure.database import DatabaseSessionManager
from lifemoments.infrastructure.live_query import (
    ErrorCallback, LiveQuery, LiveQueryHub, ResultCallback,
)
from lifemoments.infrastructure.moment_store import SqlMomentStore
from lifemoments.services.day_boundary import DayBoundaryRefresher, zone_clock

logger = logging.getLogger(__name__)

MomentInput = MomentDraft | Mapping[str, Any]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MomentService:
    """CRUD + live subscription over the local moment store."""

    def __init__(
        self,
        database_url: str,
        *,
        echo: bool = False,
        busy_timeout_seconds: float = 15.0,
        reference_timezone: str | None = None,
        refresh_at_midnight: bool = True,
        today: Callable[[], date] | None = None,
        clock: Callable[[], datetime] = _utc_now,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ):
        self._database_url = database_url
        self._echo = echo
        self._busy_timeout_seconds = busy_timeout_seconds
        self._reference_timezone = reference_timezone
        self._today = today or (lambda: today_in(reference_timezone))
        self._clock = clock
        self._id_factory = id_factory
        self._refresh_at_midnight = refresh_at_midnight
        self._db: DatabaseSessionManager | None = None
        self.store: SqlMomentStore | None = None
        self.hub: LiveQueryHub | None = None
        self.refresher: DayBoundaryRefresher | None = None

    @classmethod
    def from_settings(cls, settings: Settings, **overrides: Any) -> "MomentService":
        options: dict[str, Any] = {
            "echo": settings.database_echo,
            "busy_timeout_seconds": settings.sqlite_busy_timeout_seconds,
            "reference_timezone": settings.reference_timezone,
            "refresh_at_midnight": settings.refresh_at_midnight,
        }
        options.update(overrides)
        return cls(settings.database_url, **options)

    # ─── Lifecycle ───────────────────────────────────────────────

    @property
    def initialized(self) -> bool:
        return self.store is not None

    async def init(self) -> None:
        """Open storage, create the schema, start the day-boundary timer."""
        if self.initialized:
            return
        db = DatabaseSessionManager(
            self._database_url,
            echo=self._echo,
            busy_timeout_seconds=self._busy_timeout_seconds,
        )
        try:
            await db.create_schema()
        except StorageError:
            await db.dispose()
            raise
        self._db = db
        self.store = SqlMomentStore(db)
        self.hub = LiveQueryHub(self.store)
        self.hub.attach()
        if self._refresh_at_midnight:
            self.refresher = DayBoundaryRefresher(
                self._on_new_day, self._today,
                now=zone_clock(self._reference_timezone),
            )
            self.refresher.start()
        logger.info("Moment service initialized")

    async def dispose(self) -> None:
        """Stop the timer, end live queries, release storage."""
        if self.refresher is not None:
            await self.refresher.stop()
            self.refresher = None
        if self.hub is not None:
            self.hub.close()
            self.hub = None
        if self._db is not None:
            await self._db.dispose()
            self._db = None
        if self.store is not None:
            self.store = None
            logger.info("Moment service disposed")

    async def __aenter__(self) -> "MomentService":
        await self.init()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.dispose()

    def today(self) -> date:
        return self._today()

    # ─── Writes ──────────────────────────────────────────────────

    async def create(self, data: MomentInput) -> Result[MomentEntity]:
        """Validate and persist a new moment."""
        draft = _as_draft(data).trimmed()
        error = check_moment(draft)
        if error is not None:
            logger.info(f"Create rejected: {error.kind.value}", extra={"error_code": error.code})
            return Err(error)

        now = self._clock()
        record = _record_from_draft(MomentId(self._id_factory()), draft, now, now)
        store = self._require_store()
        try:
            stored = await store.insert(record)
        except Exception as e:
            return Err(self._failure(e, "create", record.id))
        logger.info("Moment created", extra={"moment_id": stored.id})
        return Ok(project_moment(stored, self._today()))

    async def update(self, moment_id: str, data: MomentInput) -> Result[MomentEntity]:
        """Validate and replace the editable fields of an existing moment."""
        draft = _as_draft(data).trimmed()
        error = check_moment(draft)
        if error is not None:
            error.context.moment_id = moment_id
            logger.info(
                f"Update rejected: {error.kind.value}",
                extra={"moment_id": moment_id, "error_code": error.code},
            )
            return Err(error)

        changes = {
            "title": draft.title,
            "description": draft.description,
            "date": as_calendar_date(draft.date),
            "repeat_frequency": parse_repeat_frequency(draft.repeat_frequency),
            "updated_at": self._clock(),
        }
        store = self._require_store()
        try:
            stored = await store.update(MomentId(moment_id), changes)
        except Exception as e:
            return Err(self._failure(e, "update", moment_id))
        logger.info("Moment updated", extra={"moment_id": moment_id})
        return Ok(project_moment(stored, self._today()))

    async def delete(self, moment_id: str) -> Result[None]:
        """Remove a moment. Immediate and irreversible."""
        store = self._require_store()
        try:
            await store.remove(MomentId(moment_id))
        except Exception as e:
            return Err(self._failure(e, "delete", moment_id))
        logger.info("Moment deleted", extra={"moment_id": moment_id})
        return Ok(None)

    async def bulk_create(self, inputs: Iterable[MomentInput]) -> Result[list[MomentEntity]]:
        """Validate every input, then persist all of them atomically."""
        drafts = [_as_draft(d).trimmed() for d in inputs]
        for index, draft in enumerate(drafts):
            error = check_moment(draft)
            if error is not None:
                error.context.debug_info = {"index": index}
                return Err(error)

        now = self._clock()
        # microsecond offsets keep creation order stable for newest-first reads
        records = [
            _record_from_draft(
                MomentId(self._id_factory()), draft,
                now + timedelta(microseconds=i), now + timedelta(microseconds=i),
            )
            for i, draft in enumerate(drafts)
        ]
        store = self._require_store()
        try:
            stored = await store.bulk_insert(records)
        except Exception as e:
            return Err(self._failure(e, "bulk_create"))
        logger.info("Moments bulk created", extra={"count": len(stored)})
        return Ok(self._ordered(stored))

    async def clear_all(self) -> Result[int]:
        """Remove every moment; returns how many were removed."""
        store = self._require_store()
        try:
            removed = await store.remove_all()
        except Exception as e:
            return Err(self._failure(e, "clear_all"))
        logger.info("Moments cleared", extra={"count": removed})
        return Ok(removed)

    # ─── Reads ───────────────────────────────────────────────────

    async def get(self, moment_id: str) -> Result[MomentEntity]:
        store = self._require_store()
        try:
            record = await store.find_by_id(MomentId(moment_id))
        except Exception as e:
            return Err(self._failure(e, "get", moment_id))
        if record is None:
            return Err(MomentNotFoundError(moment_id))
        return Ok(project_moment(record, self._today()))

    async def list_moments(
        self, repeat_frequency: RepeatFrequency | None = None,
    ) -> Result[list[MomentEntity]]:
        """All moments (optionally one frequency), upcoming first."""
        store = self._require_store()
        try:
            records = await store.find_all(_filter_for(repeat_frequency))
        except Exception as e:
            return Err(self._failure(e, "list"))
        return Ok(self._ordered(records))

    async def count(self, repeat_frequency: RepeatFrequency | None = None) -> Result[int]:
        store = self._require_store()
        try:
            total = await store.count(_filter_for(repeat_frequency))
        except Exception as e:
            return Err(self._failure(e, "count"))
        return Ok(total)

    async def subscribe(
        self,
        callback: ResultCallback,
        on_error: ErrorCallback | None = None,
        *,
        repeat_frequency: RepeatFrequency | None = None,
    ) -> LiveQuery:
        """Live list of projected moments, upcoming first.

        callback receives list[MomentEntity] now and after every change; on_error
        receives the StorageError that terminated the subscription.
        """
        if self.hub is None:
            raise RuntimeError("MomentService not initialized")
        return await self.hub.subscribe(
            callback,
            filter=_filter_for(repeat_frequency),
            transform=self._ordered,
            on_error=on_error,
        )

    # ─── Internals ───────────────────────────────────────────────

    def _require_store(self) -> SqlMomentStore:
        if self.store is None:
            raise RuntimeError("MomentService not initialized")
        return self.store

    def _ordered(self, records: Sequence[MomentRecord]) -> list[MomentEntity]:
        return sort_moments_by_date(project_moments(records, self._today()))

    async def _on_new_day(self, day: date) -> None:
        if self.hub is not None:
            await self.hub.on_change(ChangeEvent(ChangeKind.REFRESH))

    def _failure(
        self, exc: Exception, operation: str, moment_id: str | None = None,
    ) -> LifeMomentsError:
        """Turn any store exception into a LifeMomentsError for an Err result."""
        if isinstance(exc, DuplicateMomentError):
            error: LifeMomentsError = StorageError(
                exc.message, operation, kind=StorageErrorKind.CONFLICT, cause=exc,
            )
        elif isinstance(exc, LifeMomentsError):
            error = exc
        else:
            error = StorageError(str(exc) or type(exc).__name__, operation, cause=exc)

        if moment_id is not None and error.context.moment_id is None:
            error.context.moment_id = moment_id
        if isinstance(error, StorageError):
            logger.error(
                f"Moment {operation} failed: {error.message}",
                extra={
                    "moment_id": moment_id,
                    "operation": operation,
                    "error_code": error.code,
                    "storage_kind": error.kind.value,
                },
            )
        else:
            logger.info(
                f"Moment {operation} failed: {error.message}",
                extra={"moment_id": moment_id, "error_code": error.code},
            )
        return error


def _as_draft(data: MomentInput) -> MomentDraft:
    if isinstance(data, MomentDraft):
        return data
    return MomentDraft.from_payload(data)


def _record_from_draft(
    moment_id: MomentId, draft: MomentDraft, created_at: datetime, updated_at: datetime,
) -> MomentRecord:
    return MomentRecord(
        id=moment_id,
        title=draft.title,
        description=draft.description,
        date=as_calendar_date(draft.date),
        repeat_frequency=parse_repeat_frequency(draft.repeat_frequency),
        created_at=created_at,
        updated_at=updated_at,
    )


def _filter_for(repeat_frequency: RepeatFrequency | None) -> MomentFilter | None:
    if repeat_frequency is None:
        return None
    return MomentFilter.for_frequency(repeat_frequency)
