"""SQLite persistence for tags and issues."""

import asyncio
import time
from collections import defaultdict
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path
from typing import Any
from uuid import UUID

import aiosqlite

from quickfix.models import Issue, Priority, Tag, utcnow
from quickfix.utils.logging import get_logger
from quickfix.utils.metrics import get_metrics

logger = get_logger(__name__)
metrics = get_metrics()

MEMORY_DATABASE = ":memory:"

TABLES = frozenset({"issues", "tags"})

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS tags (
        id TEXT PRIMARY KEY,
        name TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS issues (
        id TEXT PRIMARY KEY,
        title TEXT,
        content TEXT,
        creation_date TIMESTAMP,
        modification_date TIMESTAMP,
        completed BOOLEAN NOT NULL DEFAULT FALSE,
        priority INTEGER NOT NULL DEFAULT 0
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS issue_tags (
        issue_id TEXT NOT NULL REFERENCES issues(id) ON DELETE CASCADE,
        tag_id TEXT NOT NULL REFERENCES tags(id) ON DELETE CASCADE,
        PRIMARY KEY (issue_id, tag_id)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_issue_tags_tag ON issue_tags(tag_id)",
    "CREATE INDEX IF NOT EXISTS idx_issues_modification_date ON issues(modification_date)",
)


def _parse_timestamp(value: str | None, default: datetime) -> datetime:
    return datetime.fromisoformat(value) if value else default


class SQLiteAdapter:
    """Durable object store for the issue graph.

    Provides the persistence capabilities the issue store relies on:
    - Durable save of changed tags and issues
    - Predicate-based fetch (SQL ``WHERE`` fragments)
    - Batch delete by predicate
    - Count by predicate
    - A data-version probe that reveals commits made by other connections

    Columns are nullable; rows are coalesced into non-optional entity values
    here so nothing above the adapter deals with missing fields.
    """

    def __init__(self, database_path: str = MEMORY_DATABASE) -> None:
        """Initialize SQLite adapter.

        Args:
            database_path: Database file path, or ":memory:" for a private in-memory store
        """
        self.database_path = database_path
        self._db: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()

    @property
    def is_memory(self) -> bool:
        return self.database_path == MEMORY_DATABASE

    async def initialize(self) -> None:
        """Open the connection and create the schema."""
        if not self.is_memory:
            Path(self.database_path).expanduser().parent.mkdir(parents=True, exist_ok=True)

        async with self._lock:
            path = self.database_path if self.is_memory else str(Path(self.database_path).expanduser())
            self._db = await aiosqlite.connect(path)

            await self._db.execute("PRAGMA foreign_keys=ON")
            if not self.is_memory:
                # WAL lets a second process read while this one writes
                await self._db.execute("PRAGMA journal_mode=WAL")
                await self._db.execute("PRAGMA synchronous=NORMAL")

            for statement in SCHEMA:
                await self._db.execute(statement)
            await self._db.commit()

        logger.info("sqlite_store_initialized", path=self.database_path)

    def _connection(self) -> aiosqlite.Connection:
        if self._db is None:
            raise RuntimeError("SQLite adapter used before initialize()")
        return self._db

    @staticmethod
    def _check_table(table: str) -> None:
        if table not in TABLES:
            raise ValueError(f"Unknown table: {table}")

    async def _timed(self, operation: str, work: Any) -> Any:
        """Await ``work`` and record its duration and outcome."""
        start = time.perf_counter()
        try:
            result = await work
        except Exception:
            metrics.record_storage_operation(operation, "error", time.perf_counter() - start)
            raise
        metrics.record_storage_operation(operation, "success", time.perf_counter() - start)
        return result

    async def fetch_tags(self, where: str | None = None, params: Iterable[Any] = ()) -> list[Tag]:
        """Fetch tags matching a SQL predicate.

        Args:
            where: SQL condition over the tags table (all rows if None)
            params: Parameters bound into the condition

        Returns:
            Matching tags, unordered
        """
        return await self._timed("fetch_tags", self._fetch_tags(where, tuple(params)))

    async def _fetch_tags(self, where: str | None, params: tuple[Any, ...]) -> list[Tag]:
        sql = "SELECT id, name FROM tags"
        if where:
            sql += f" WHERE {where}"

        async with self._lock:
            cursor = await self._connection().execute(sql, params)
            rows = await cursor.fetchall()

        return [Tag(id=UUID(row[0]), name=row[1] or "") for row in rows]

    async def fetch_issues(self, where: str | None = None, params: Iterable[Any] = ()) -> list[Issue]:
        """Fetch issues matching a SQL predicate, with their tag links.

        Args:
            where: SQL condition over the issues table (all rows if None)
            params: Parameters bound into the condition

        Returns:
            Matching issues, unordered
        """
        return await self._timed("fetch_issues", self._fetch_issues(where, tuple(params)))

    async def _fetch_issues(self, where: str | None, params: tuple[Any, ...]) -> list[Issue]:
        condition = f" WHERE {where}" if where else ""
        now = utcnow()

        async with self._lock:
            db = self._connection()
            cursor = await db.execute(
                "SELECT id, title, content, creation_date, modification_date, completed, priority"
                f" FROM issues{condition}",
                params,
            )
            rows = await cursor.fetchall()

            cursor = await db.execute(
                f"SELECT issue_id, tag_id FROM issue_tags WHERE issue_id IN (SELECT id FROM issues{condition})",
                params,
            )
            links = await cursor.fetchall()

        tag_ids: dict[str, set[UUID]] = defaultdict(set)
        for issue_id, tag_id in links:
            tag_ids[issue_id].add(UUID(tag_id))

        issues = []
        for row in rows:
            creation_date = _parse_timestamp(row[3], now)
            issues.append(
                Issue(
                    id=UUID(row[0]),
                    title=row[1] or "",
                    content=row[2] or "",
                    creation_date=creation_date,
                    modification_date=_parse_timestamp(row[4], creation_date),
                    completed=bool(row[5]),
                    priority=Priority(row[6] or 0),
                    tag_ids=tag_ids.get(row[0], set()),
                )
            )
        return issues

    async def count(self, table: str, where: str | None = None, params: Iterable[Any] = ()) -> int:
        """Count rows matching a SQL predicate.

        Args:
            table: "issues" or "tags"
            where: SQL condition (all rows if None)
            params: Parameters bound into the condition

        Returns:
            Number of matching rows
        """
        self._check_table(table)
        sql = f"SELECT COUNT(*) FROM {table}"
        if where:
            sql += f" WHERE {where}"

        async def _count() -> int:
            async with self._lock:
                cursor = await self._connection().execute(sql, tuple(params))
                row = await cursor.fetchone()
            return row[0] if row else 0

        return await self._timed("count", _count())

    async def save(self, tags: Iterable[Tag] = (), issues: Iterable[Issue] = ()) -> None:
        """Upsert tags and issues in a single transaction.

        An issue's tag links are replaced by its current ``tag_ids``; links to
        tags that no longer exist are dropped.

        Args:
            tags: Tags to write
            issues: Issues to write
        """
        await self._timed("save", self._save(list(tags), list(issues)))

    async def _save(self, tags: list[Tag], issues: list[Issue]) -> None:
        async with self._lock:
            db = self._connection()
            try:
                await db.executemany(
                    """
                    INSERT INTO tags (id, name) VALUES (?, ?)
                    ON CONFLICT(id) DO UPDATE SET name = excluded.name
                    """,
                    [(str(tag.id), tag.name) for tag in tags],
                )
                await db.executemany(
                    """
                    INSERT INTO issues (id, title, content, creation_date, modification_date, completed, priority)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(id) DO UPDATE SET
                        title = excluded.title,
                        content = excluded.content,
                        modification_date = excluded.modification_date,
                        completed = excluded.completed,
                        priority = excluded.priority
                    """,
                    [
                        (
                            str(issue.id),
                            issue.title,
                            issue.content,
                            issue.creation_date.isoformat(),
                            issue.modification_date.isoformat(),
                            issue.completed,
                            int(issue.priority),
                        )
                        for issue in issues
                    ],
                )
                for issue in issues:
                    await db.execute("DELETE FROM issue_tags WHERE issue_id = ?", (str(issue.id),))
                    await db.executemany(
                        "INSERT INTO issue_tags (issue_id, tag_id) SELECT ?, id FROM tags WHERE id = ?",
                        [(str(issue.id), str(tag_id)) for tag_id in issue.tag_ids],
                    )
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        logger.debug("sqlite_saved", tags=len(tags), issues=len(issues))

    async def batch_delete(self, table: str, where: str | None = None, params: Iterable[Any] = ()) -> list[UUID]:
        """Delete every row matching a SQL predicate.

        Tag links of deleted rows go with them (ON DELETE CASCADE).

        Args:
            table: "issues" or "tags"
            where: SQL condition (all rows if None)
            params: Parameters bound into the condition

        Returns:
            Identifiers of the deleted rows
        """
        self._check_table(table)
        return await self._timed("batch_delete", self._batch_delete(table, where, tuple(params)))

    async def _batch_delete(self, table: str, where: str | None, params: tuple[Any, ...]) -> list[UUID]:
        condition = f" WHERE {where}" if where else ""

        async with self._lock:
            db = self._connection()
            try:
                cursor = await db.execute(f"SELECT id FROM {table}{condition}", params)
                deleted = [UUID(row[0]) for row in await cursor.fetchall()]
                await db.execute(f"DELETE FROM {table}{condition}", params)
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        logger.debug("sqlite_batch_deleted", table=table, count=len(deleted))
        return deleted

    async def data_version(self) -> int:
        """Return SQLite's data version for this connection.

        The value changes whenever another connection commits to the same
        database file; commits made through this connection leave it alone.
        """
        async with self._lock:
            cursor = await self._connection().execute("PRAGMA data_version")
            row = await cursor.fetchone()
        return row[0] if row else 0

    async def close(self) -> None:
        """Close the database connection."""
        if self._db:
            await self._db.close()
            self._db = None
            logger.info("sqlite_store_closed")
