"""Root conftest — shared fixtures for store, live query and service tests.

Invariants:
    - Every test gets a fresh SQLite file under tmp_path (never the working directory)
    - "today" is pinned to 2024-06-15 unless a test moves it through `calendar`
    - Services are built with refresh_at_midnight=False unless a test opts in

Design Decisions:
    - File-backed SQLite instead of :memory: — concurrent sessions need separate
      connections to the same database
    - record_factory fixture instead of a helper module: tests/ is not a package
"""

from datetime import date, datetime, timezone
from itertools import count

import pytest

from lifemoments.core.domain_types import MomentId, RepeatFrequency
from lifemoments.core.moment import MomentRecord
from lifemoments.infrastructure.database import DatabaseSessionManager
from lifemoments.infrastructure.live_query import LiveQueryHub
from lifemoments.infrastructure.moment_store import SqlMomentStore
from lifemoments.services.moment_service import MomentService


TODAY = date(2024, 6, 15)
CREATED = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'moments.db'}"


@pytest.fixture
async def db_manager(database_url):
    manager = DatabaseSessionManager(database_url)
    await manager.create_schema()
    yield manager
    await manager.dispose()


@pytest.fixture
async def store(db_manager):
    return SqlMomentStore(db_manager)


@pytest.fixture
async def hub(store):
    live = LiveQueryHub(store)
    live.attach()
    yield live
    live.close()


@pytest.fixture
def record_factory():
    """Build valid MomentRecords with unique ids; override any field."""
    ids = count(1)

    def _make(**overrides) -> MomentRecord:
        n = next(ids)
        fields = {
            "id": MomentId(f"moment-{n}"),
            "title": f"Moment {n}",
            "date": date(2024, 1, 1),
            "repeat_frequency": RepeatFrequency.NONE,
            "created_at": CREATED.replace(minute=n % 60),
            "updated_at": CREATED.replace(minute=n % 60),
            "description": None,
        }
        fields.update(overrides)
        return MomentRecord(**fields)

    return _make


@pytest.fixture
def calendar():
    """Mutable 'today' shared with the service under test."""
    return {"today": TODAY}


@pytest.fixture
async def service(database_url, calendar):
    svc = MomentService(
        database_url,
        today=lambda: calendar["today"],
        refresh_at_midnight=False,
    )
    await svc.init()
    yield svc
    await svc.dispose()
