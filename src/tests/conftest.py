"""Pytest fixtures for the issue store tests."""

from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import pytest_asyncio

from quickfix.config import Settings
from quickfix.core import IssueStore, SessionContext
from quickfix.models import Issue, Tag
from quickfix.storage import SQLiteAdapter


class FakeClock:
    """Controllable replacement for the store clock."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> datetime:
        self.now += timedelta(**delta)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    """Clock starting at a fixed instant."""
    return FakeClock(datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def database_path(tmp_path: Path) -> Path:
    """Database file inside the test's temporary directory."""
    return tmp_path / "quickfix.db"


@pytest.fixture
def test_settings(database_path: Path) -> Settings:
    """Create test settings pointing at a temporary database."""
    return Settings(
        database_path=str(database_path),
        save_delay_seconds=0.05,
        log_level="DEBUG",
        log_format="console",
        metrics_enabled=False,
    )


@pytest_asyncio.fixture
async def store(clock: FakeClock) -> AsyncGenerator[IssueStore, None]:
    """Initialized in-memory store with a short save delay."""
    store = IssueStore(SQLiteAdapter(), save_delay_seconds=0.05, clock=clock)
    await store.initialize()
    yield store
    await store.close()


@pytest.fixture
def session(store: IssueStore) -> SessionContext:
    """Session bound to the in-memory store."""
    return SessionContext(store=store)


@pytest.fixture
def make_issue(clock: FakeClock):
    """Factory for detached issues with distinct creation dates."""

    def _make(title: str = "Issue", **fields) -> Issue:
        created = clock.advance(seconds=1)
        fields.setdefault("creation_date", created)
        fields.setdefault("modification_date", created)
        return Issue(title=title, **fields)

    return _make


@pytest_asyncio.fixture
async def named_tags(store: IssueStore) -> dict[str, Tag]:
    """Tags Work, Home and Workshop created through the store."""
    tags = {}
    for name in ("Work", "Home", "Workshop"):
        tag = await store.new_tag()
        store.update(tag, name=name)
        tags[name] = tag
    await store.save()
    return tags
