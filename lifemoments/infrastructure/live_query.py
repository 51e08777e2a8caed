"""Reactive Query Layer — live queries re-delivered after every store mutation.

Invariants:
    - subscribe() delivers the current matching set before it returns
      (if that initial delivery raises, nothing stays registered)
    - Every committed mutation triggers a full re-read and re-delivery for every live
      query, in notification order (over-delivery allowed, missed deliveries are not)
    - Deliveries within one query are serialized by its lock and never overlap
    - unsubscribe() is idempotent, stops deliveries at once (even mid-refresh) and
      drops the callback, transform and last result
    - A StorageError during re-read is reported to on_error once, then the query
      terminates itself; it is never resubscribed automatically

Design Decisions:
    - Plain callback registry: subscribe(callback) -> handle.unsubscribe()
    - Callbacks may be sync or async; an async callback is awaited before the next
      delivery starts
    - Callbacks run after the store released its writer lock: they may read and
      may await writes; the resulting change is delivered after the current one
"""

import asyncio
import inspect
import itertools
import logging
from typing import Any, Awaitable, Callable, Sequence

from lifemoments.core.errors import StorageError
from lifemoments.core.moment import MomentRecord
from lifemoments.core.query import MomentFilter, MomentSort
from lifemoments.core.repository_protocols import ChangeEvent, MomentStore

logger = logging.getLogger(__name__)

ResultCallback = Callable[[list[Any]], Awaitable[None] | None]
ErrorCallback = Callable[[StorageError], Awaitable[None] | None]
Transform = Callable[[Sequence[MomentRecord]], list[Any]]


async def _maybe_await(value: Any) -> None:
    if inspect.isawaitable(value):
        await value


class LiveQuery:
    """Handle for one live query. Created by LiveQueryHub.subscribe."""

    def __init__(
        self,
        hub: "LiveQueryHub",
        query_id: int,
        callback: ResultCallback,
        filter: MomentFilter | None,
        sort: MomentSort | None,
        transform: Transform | None,
        on_error: ErrorCallback | None,
    ):
        self.id = query_id
        self._hub = hub
        self._callback = callback
        self._filter = filter
        self._sort = sort
        self._transform = transform
        self._on_error = on_error
        self._lock = asyncio.Lock()
        self._owner: asyncio.Task | None = None
        self._stale = False
        self._closed = False
        self.emissions = 0
        self.latest: list[Any] | None = None
        self.error: StorageError | None = None

    @property
    def closed(self) -> bool:
        return self._closed

    async def refresh(self) -> None:
        """Re-read the matching set and deliver it.

        Called from this query's own callback (a write awaited inside it), the
        request is recorded and served by the running delivery once it returns.
        """
        if self._owner is not None and self._owner is asyncio.current_task():
            self._stale = True
            return
        async with self._lock:
            self._owner = asyncio.current_task()
            self._stale = True
            try:
                while self._stale and not self._closed:
                    self._stale = False
                    try:
                        records = await self._hub.store.find_all(self._filter, self._sort)
                    except StorageError as e:
                        await self._fail(e)
                        return
                    if self._closed:
                        return
                    items = self._transform(records) if self._transform else list(records)
                    self.latest = items
                    self.emissions += 1
                    await _maybe_await(self._callback(items))
            finally:
                self._owner = None

    async def _fail(self, error: StorageError) -> None:
        on_error = self._on_error
        self.error = error
        logger.error(
            f"Live query terminated: {error.message}",
            extra={
                "subscription_id": self.id,
                "error_code": error.code,
                "storage_kind": error.kind.value,
            },
        )
        self.unsubscribe()
        if on_error is not None:
            await _maybe_await(on_error(error))

    def unsubscribe(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._hub._detach(self)
        self._callback = None
        self._on_error = None
        self._transform = None
        self.latest = None


class LiveQueryHub:
    """Registry of live queries over one store. Listens to the store's change events."""

    def __init__(self, store: MomentStore):
        self.store = store
        self._queries: list[LiveQuery] = []
        self._ids = itertools.count(1)
        self._attached = False

    @property
    def active_queries(self) -> int:
        return len(self._queries)

    def attach(self) -> None:
        if not self._attached:
            self.store.add_listener(self.on_change)
            self._attached = True

    def close(self) -> None:
        """Terminate every live query and stop listening to the store."""
        for query in list(self._queries):
            query.unsubscribe()
        if self._attached:
            self.store.remove_listener(self.on_change)
            self._attached = False

    async def subscribe(
        self,
        callback: ResultCallback,
        *,
        filter: MomentFilter | None = None,
        sort: MomentSort | None = None,
        transform: Transform | None = None,
        on_error: ErrorCallback | None = None,
    ) -> LiveQuery:
        """Register a live query and deliver its current result set."""
        self.attach()
        query = LiveQuery(
            self, next(self._ids), callback, filter, sort, transform, on_error,
        )
        self._queries.append(query)
        logger.debug("Live query subscribed", extra={"subscription_id": query.id})
        try:
            await query.refresh()
        except Exception:
            # no handle reaches the caller: drop the registration
            query.unsubscribe()
            raise
        return query

    async def on_change(self, event: ChangeEvent) -> None:
        """Re-deliver every live query, one after another."""
        for query in list(self._queries):
            try:
                await query.refresh()
            except Exception:
                logger.exception(
                    "Live query callback failed",
                    extra={"subscription_id": query.id, "change_kind": event.kind.value},
                )

    def _detach(self, query: LiveQuery) -> None:
        if query in self._queries:
            self._queries.remove(query)
            logger.debug("Live query unsubscribed", extra={"subscription_id": query.id})
