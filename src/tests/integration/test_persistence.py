"""Integration tests for the store against a database file."""

import asyncio
from collections.abc import AsyncGenerator
from pathlib import Path

import aiosqlite
import pytest
import pytest_asyncio

from quickfix.core import IssueStore, StoreChange, StoreEvent
from quickfix.models import Priority
from quickfix.storage import RemoteChangeMonitor, SQLiteAdapter

pytestmark = pytest.mark.integration


@pytest_asyncio.fixture
async def file_store(database_path: Path, clock) -> AsyncGenerator[IssueStore, None]:
    """Store backed by a database file."""
    store = IssueStore(SQLiteAdapter(str(database_path)), save_delay_seconds=0.05, clock=clock)
    await store.initialize()
    yield store
    await store.close()


async def open_store(database_path: Path) -> IssueStore:
    store = IssueStore(SQLiteAdapter(str(database_path)), save_delay_seconds=0.05)
    await store.initialize()
    return store


class TestRoundTrip:
    """Tests for data surviving a restart."""

    @pytest.mark.asyncio
    async def test_entities_survive_reopen(self, file_store: IssueStore, database_path: Path) -> None:
        """Test every field comes back after reopening the database."""
        tag = await file_store.new_tag()
        file_store.update(tag, name="Work")
        issue = await file_store.new_issue(tag=tag)
        file_store.update(
            issue,
            title="Fix login",
            content="Fails with SSO",
            priority=Priority.MEDIUM,
            completed=True,
        )
        await file_store.save()

        reopened = await open_store(database_path)
        try:
            stored = reopened.get_issue(issue.id)
            assert stored is not None
            assert stored.title == "Fix login"
            assert stored.content == "Fails with SSO"
            assert stored.priority == Priority.MEDIUM
            assert stored.completed is True
            assert stored.tag_ids == {tag.id}
            assert stored.creation_date == issue.creation_date
            assert stored.modification_date == issue.modification_date
            assert reopened.get_tag(tag.id).name == "Work"
        finally:
            await reopened.close()

    @pytest.mark.asyncio
    async def test_debounced_save_is_durable(self, file_store: IssueStore, database_path: Path) -> None:
        """Test queued edits reach disk only after the quiet period."""
        issue = await file_store.new_issue()
        file_store.update(issue, title="Eventually saved")

        reader = SQLiteAdapter(str(database_path))
        await reader.initialize()
        try:
            assert (await reader.fetch_issues())[0].title == "New Issue"

            await asyncio.sleep(0.2)

            assert (await reader.fetch_issues())[0].title == "Eventually saved"
        finally:
            await reader.close()

    @pytest.mark.asyncio
    async def test_close_writes_pending_edits(self, database_path: Path) -> None:
        """Test closing the store saves what the timer had not yet written."""
        store = IssueStore(SQLiteAdapter(str(database_path)), save_delay_seconds=60)
        await store.initialize()
        issue = await store.new_issue()
        store.update(issue, title="Saved on close")
        await store.close()

        reopened = await open_store(database_path)
        try:
            assert reopened.get_issue(issue.id).title == "Saved on close"
        finally:
            await reopened.close()

    @pytest.mark.asyncio
    async def test_delete_tag_cascades_links(self, file_store: IssueStore, database_path: Path) -> None:
        """Test link rows go with the tag while issues stay."""
        tag = await file_store.new_tag()
        await file_store.new_issue(tag=tag)
        await file_store.new_issue(tag=tag)

        await file_store.delete(tag)

        async with aiosqlite.connect(database_path) as db:
            cursor = await db.execute("SELECT COUNT(*) FROM issue_tags")
            assert (await cursor.fetchone())[0] == 0
            cursor = await db.execute("SELECT COUNT(*) FROM issues")
            assert (await cursor.fetchone())[0] == 2

    @pytest.mark.asyncio
    async def test_delete_all(self, file_store: IssueStore, database_path: Path) -> None:
        """Test delete_all empties every table."""
        tag = await file_store.new_tag()
        await file_store.new_issue(tag=tag)

        assert await file_store.delete_all() is True

        async with aiosqlite.connect(database_path) as db:
            for table in ("tags", "issues", "issue_tags"):
                cursor = await db.execute(f"SELECT COUNT(*) FROM {table}")
                assert (await cursor.fetchone())[0] == 0


class TestNullColumns:
    """Tests for rows written with missing values."""

    @pytest.mark.asyncio
    async def test_nulls_are_coalesced(self, database_path: Path) -> None:
        """Test NULL columns load as empty strings and sensible dates."""
        adapter = SQLiteAdapter(str(database_path))
        await adapter.initialize()
        await adapter.close()

        async with aiosqlite.connect(database_path) as db:
            await db.execute(
                "INSERT INTO issues (id, title, content, creation_date, modification_date)"
                " VALUES ('6f1c2f9e-2d51-4b7a-9d0e-1a2b3c4d5e6f', NULL, NULL, '2024-01-02T03:04:05+00:00', NULL)"
            )
            await db.execute("INSERT INTO tags (id, name) VALUES ('0b8a1d3c-7e6f-4a5b-8c9d-0e1f2a3b4c5d', NULL)")
            await db.commit()

        store = await open_store(database_path)
        try:
            issue = store.fetch_issues()[0]
            assert issue.title == ""
            assert issue.content == ""
            assert issue.modification_date == issue.creation_date
            assert issue.priority == Priority.LOW
            assert store.fetch_tags()[0].name == ""
            assert store.tag_list_text(issue) == "No tags"
        finally:
            await store.close()


class TestRemoteChanges:
    """Tests for changes made through another connection."""

    @pytest.mark.asyncio
    async def test_other_connection_triggers_reload(self, file_store: IssueStore, database_path: Path) -> None:
        """Test a commit from another store is detected and loaded."""
        changes: list[StoreChange] = []
        file_store.subscribe(changes.append)
        monitor = RemoteChangeMonitor(file_store.adapter, file_store.apply_remote_change)
        assert await monitor.check() is False

        other = await open_store(database_path)
        try:
            tag = await other.new_tag()
            other.update(tag, name="From elsewhere")
            await other.save()
        finally:
            await other.close()

        assert await monitor.check() is True
        assert [t.name for t in file_store.fetch_tags()] == ["From elsewhere"]
        assert changes[-1].event == StoreEvent.REMOTE

    @pytest.mark.asyncio
    async def test_own_commits_are_not_remote(self, file_store: IssueStore) -> None:
        """Test writes through the store's own connection are not reported."""
        monitor = RemoteChangeMonitor(file_store.adapter, file_store.apply_remote_change)
        await monitor.check()

        await file_store.new_issue()

        assert await monitor.check() is False
