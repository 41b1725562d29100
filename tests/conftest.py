import os
import tempfile
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

_TEST_DIR = tempfile.mkdtemp(prefix="feeddiff-tests-")

# Settings are read on import, configure them before anything loads feeddiff
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_TEST_DIR}/feeddiff.db")
os.environ.setdefault("LOG_DIR", _TEST_DIR)
os.environ["AUTO_CREATE_TABLES"] = "false"
os.environ["ENVIRONMENT"] = "test"

import httpx
import pytest

from feeddiff.api import deps
from feeddiff.core.database import create_engine, create_session_factory, init_db
from feeddiff.services.keylog_store import KeyLogStore

BASE_TIME = datetime(2026, 10, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def base_time() -> datetime:
    return BASE_TIME


@pytest.fixture
def at():
    """Timestamp `minutes` after the base time"""
    def _at(minutes: int) -> datetime:
        return BASE_TIME + timedelta(minutes=minutes)
    return _at


@pytest.fixture
async def engine(tmp_path):
    """Engine on a fresh SQLite database file"""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'keylog.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def store(session_factory) -> KeyLogStore:
    """Store with small limits so chunking and filter checks are easy to reach"""
    return KeyLogStore(
        session_factory,
        insert_chunk_size=3,
        max_query_limit=1000,
        max_key_paths=5,
    )


@pytest.fixture
async def client(store):
    """HTTP client for the app, wired to the test store"""
    from feeddiff.main import app

    app.dependency_overrides[deps.get_keylog_store] = lambda: store
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def vehicle_left() -> Dict[str, Any]:
    """Vehicle position entity as served by the first server"""
    return {
        "id": "veh-17",
        "vehicle": {
            "trip": {"tripId": "T100", "routeId": "42"},
            "position": {"latitude": 52.52, "longitude": 13.405, "bearing": 90},
            "stops": [{"id": "A"}, {"id": "B"}, {"id": "C"}],
            "timestamp": 1760000000,
        },
    }


@pytest.fixture
def vehicle_right() -> Dict[str, Any]:
    """Same entity from the second server: reordered stops, changed bearing, new label"""
    return {
        "id": "veh-17",
        "vehicle": {
            "trip": {"tripId": "T100", "routeId": "42"},
            "position": {"latitude": 52.52, "longitude": 13.405, "bearing": 180},
            "stops": [{"id": "C"}, {"id": "A"}, {"id": "B"}],
            "timestamp": 1760000005,
            "label": "Line 42",
        },
    }
