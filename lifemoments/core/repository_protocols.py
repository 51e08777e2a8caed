"""Boundary Protocols — contracts between core/services and the storage shell.

Invariants:
    - Services depend on these Protocols, never on the SQLAlchemy store directly
    - Store mutations publish a ChangeEvent only after the write is committed
    - Store methods raise LifeMomentsError subclasses only

Design Decisions:
    - Protocol over ABC: structural subtyping, an in-memory fake needs no base class
    - Async in Protocol: implementations do IO; core pure functions never await
"""

from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol, Sequence

from lifemoments.core.domain_types import ChangeKind, MomentId
from lifemoments.core.moment import MomentRecord
from lifemoments.core.query import MomentFilter, MomentSort


@dataclass(frozen=True)
class ChangeEvent:
    """One committed mutation (or a forced refresh)."""
    kind: ChangeKind
    moment_ids: tuple[str, ...] = field(default_factory=tuple)


class ChangeListener(Protocol):
    async def __call__(self, event: ChangeEvent) -> None: ...


class MomentStore(Protocol):
    """Contract for moment persistence — implemented by infrastructure.moment_store."""
    async def insert(self, record: MomentRecord) -> MomentRecord: ...
    async def bulk_insert(self, records: Sequence[MomentRecord]) -> list[MomentRecord]: ...
    async def find_by_id(self, moment_id: MomentId) -> MomentRecord | None: ...
    async def find_all(
        self, filter: MomentFilter | None = None, sort: MomentSort | None = None,
    ) -> list[MomentRecord]: ...
    async def count(self, filter: MomentFilter | None = None) -> int: ...
    async def update(
        self, moment_id: MomentId, changes: Mapping[str, Any],
    ) -> MomentRecord: ...
    async def remove(self, moment_id: MomentId) -> None: ...
    async def remove_all(self, filter: MomentFilter | None = None) -> int: ...
    def add_listener(self, listener: ChangeListener) -> None: ...
    def remove_listener(self, listener: ChangeListener) -> None: ...
