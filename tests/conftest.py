"""Shared pytest fixtures for avatarlink tests."""

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from avatarlink.cache import ResponseCache
from avatarlink.config import reset_settings
from avatarlink.storage import MemoryStore, SQLiteStore


class FakeClock:
    """Controllable UTC clock for cache expiry tests."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Keep a developer's real config file out of the tests."""
    monkeypatch.setattr("avatarlink.config.CONFIG_FILE_PATH", tmp_path / "no-config.toml")
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def response_cache(memory_store: MemoryStore, clock: FakeClock) -> ResponseCache:
    return ResponseCache(memory_store, clock=clock)


@pytest.fixture
async def sqlite_store(tmp_path: Path):
    """Provide a SQLiteStore that is properly closed after tests."""
    store = SQLiteStore(tmp_path / "store.db")
    yield store
    await store.close()
