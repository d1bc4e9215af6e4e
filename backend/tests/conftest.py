# Ensure backend is at sys.path[0] when pytest runs (from repo root or from backend dir)
import asyncio
import sys
from pathlib import Path

_tests_dir = Path(__file__).resolve().parent
_backend = _tests_dir.parent
_str_backend = str(_backend)
if sys.path[0:1] != [_str_backend]:
    sys.path.insert(0, _str_backend)
if str(_tests_dir) not in sys.path:
    sys.path.insert(1, str(_tests_dir))

import pytest

from core.database import dispose_database, get_database_manager, init_database
from seeding import seed_people


@pytest.fixture
def test_db():
    """Use in-memory SQLite for tests (sync fixture runs async setup/teardown)."""
    async def _setup():
        await init_database("sqlite+aiosqlite:///:memory:")
        manager = get_database_manager()
        await manager.create_schema()
        async with manager.session() as session:
            await seed_people(session)

    async def _teardown():
        await dispose_database()

    asyncio.run(_setup())
    yield
    asyncio.run(_teardown())


class RecordingNotifier:
    """Collects dispatched events instead of delivering them."""

    def __init__(self) -> None:
        self.events = []

    async def dispatch(self, events) -> None:
        self.events.extend(events)

    def kinds(self):
        return [(e.kind, e.recipient.user_id) for e in self.events]


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()
