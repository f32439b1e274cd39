"""
Test fixtures: settings, a fake Supabase client, session manager and a loaded store.
"""

import pytest

from fakes import USER_ID, FakeSupabase, make_session
from studyplanner.config import Settings
from studyplanner.core.storage import MemorySessionStorage
from studyplanner.features.auth.session import SessionManager
from studyplanner.features.study.store import StudyStore


@pytest.fixture
def settings(tmp_path):
    return Settings(
        SUPABASE_URL="https://test.supabase.co",
        SUPABASE_KEY="anon-key",
        SESSION_STORAGE_PATH=str(tmp_path / "session.json"),
        DATA_LOAD_TIMEOUT_SECONDS=1.0,
    )


@pytest.fixture
def db():
    fake = FakeSupabase()
    fake.auth.session = make_session()
    return fake


@pytest.fixture
def durable_storage():
    return MemorySessionStorage()


@pytest.fixture
def scoped_storage():
    return MemorySessionStorage()


@pytest.fixture
def sessions(db, durable_storage, scoped_storage):
    return SessionManager(db, stores=[durable_storage, scoped_storage])


@pytest.fixture
async def store(db, sessions):
    store = StudyStore(db, sessions, load_timeout=1.0)
    await store.set_user(USER_ID)
    db.calls.clear()
    return store
