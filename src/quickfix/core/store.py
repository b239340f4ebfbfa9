"""Issue store facade: the single reader and writer of the issue graph."""

import asyncio
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any
from uuid import UUID

from quickfix.core.debounce import DebouncedSave
from quickfix.core.predicates import CompletedIs, NameContains, TaggedWith
from quickfix.core.sorting import SortPolicy, natural_order
from quickfix.models import DEFAULT_ISSUE_TITLE, DEFAULT_TAG_NAME, Filter, Issue, Priority, Tag, utcnow
from quickfix.storage.sqlite_adapter import SQLiteAdapter
from quickfix.utils.logging import get_logger
from quickfix.utils.metrics import get_metrics

logger = get_logger(__name__)
metrics = get_metrics()

# Fields owned by the store; callers may not assign them through update().
PROTECTED_FIELDS = frozenset({"id", "creation_date", "modification_date"})

Matcher = Callable[[Any], bool]


class StoreEvent(str, Enum):
    """Kinds of change announced to observers."""

    INSERTED = "inserted"
    UPDATED = "updated"
    SAVED = "saved"
    DELETED = "deleted"
    RESET = "reset"
    REMOTE = "remote"


@dataclass(frozen=True)
class StoreChange:
    """Notification sent to observers after a mutation."""

    event: StoreEvent
    ids: frozenset[UUID] = field(default_factory=frozenset)


Observer = Callable[[StoreChange], None]


class IssueStore:
    """CRUD facade over tags and issues.

    The store keeps the live entity graph in memory; reads are plain method
    calls over it and include unsaved edits. Writes go through the SQLite
    adapter:
    - new_issue, new_tag, delete and delete_all persist immediately
    - update, add_tag and remove_tag queue a debounced save

    Query and save failures are logged and degrade to an empty, zero or
    False result; they never propagate to the caller.
    """

    def __init__(
        self,
        adapter: SQLiteAdapter,
        save_delay_seconds: float = 3.0,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """Initialize issue store.

        Args:
            adapter: Persistence adapter
            save_delay_seconds: Quiet period before a queued save is written
            clock: Source of timestamps
        """
        self.adapter = adapter
        self.clock = clock

        self._tags: dict[UUID, Tag] = {}
        self._issues: dict[UUID, Issue] = {}
        self._dirty_tags: set[UUID] = set()
        self._dirty_issues: set[UUID] = set()
        self._observers: list[Observer] = []
        self._save_lock = asyncio.Lock()
        self._saver = DebouncedSave(lambda: self.save(trigger="debounced"), delay_seconds=save_delay_seconds)

    async def initialize(self) -> None:
        """Open storage and load the entity graph.

        Raises:
            Exception: If the storage cannot be opened
        """
        await self.adapter.initialize()
        await self.reload()
        logger.info("issue_store_initialized", issues=len(self._issues), tags=len(self._tags))

    async def close(self) -> None:
        """Write pending changes and close storage."""
        self._saver.cancel()
        await self.save(trigger="shutdown")
        await self.adapter.close()

    @property
    def has_changes(self) -> bool:
        return bool(self._dirty_tags or self._dirty_issues)

    @property
    def save_pending(self) -> bool:
        return self._saver.pending

    # =========================================================================
    # Change notification
    # =========================================================================

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register an observer called synchronously after each change.

        Args:
            observer: Callable receiving a StoreChange

        Returns:
            Function that removes the observer
        """
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def _notify(self, event: StoreEvent, ids: Iterable[UUID] = ()) -> None:
        change = StoreChange(event=event, ids=frozenset(ids))
        for observer in list(self._observers):
            try:
                observer(change)
            except Exception as e:
                logger.error("store_observer_failed", store_event=event.value, error=str(e))

    def _publish_counts(self) -> None:
        metrics.set_entity_counts(issues=len(self._issues), tags=len(self._tags))

    # =========================================================================
    # Reads
    # =========================================================================

    def fetch_issues(self, predicate: Matcher | None = None, sort: SortPolicy | None = None) -> list[Issue]:
        """Fetch issues matching a predicate.

        Args:
            predicate: Condition to match (all issues if None)
            sort: Sort policy (natural order if None)

        Returns:
            Ordered matching issues, or an empty list on failure
        """
        start = time.perf_counter()
        try:
            matched = [issue for issue in self._issues.values() if predicate is None or predicate(issue)]
            result = sort.apply(matched) if sort else natural_order(matched)
        except Exception as e:
            logger.error("issue_fetch_failed", predicate=repr(predicate), error=str(e))
            metrics.record_store_operation("fetch", "issue", "error", time.perf_counter() - start)
            return []

        metrics.record_store_operation("fetch", "issue", "success", time.perf_counter() - start)
        return result

    def fetch_tags(self, predicate: Matcher | None = None) -> list[Tag]:
        """Fetch tags matching a predicate, in natural order.

        Args:
            predicate: Condition to match (all tags if None)

        Returns:
            Matching tags, or an empty list on failure
        """
        start = time.perf_counter()
        try:
            result = natural_order(tag for tag in self._tags.values() if predicate is None or predicate(tag))
        except Exception as e:
            logger.error("tag_fetch_failed", predicate=repr(predicate), error=str(e))
            metrics.record_store_operation("fetch", "tag", "error", time.perf_counter() - start)
            return []

        metrics.record_store_operation("fetch", "tag", "success", time.perf_counter() - start)
        return result

    def count_issues(self, predicate: Matcher | None = None) -> int:
        """Count issues matching a predicate; 0 on failure."""
        try:
            return sum(1 for issue in self._issues.values() if predicate is None or predicate(issue))
        except Exception as e:
            logger.error("issue_count_failed", predicate=repr(predicate), error=str(e))
            metrics.store_operations_total.labels(operation="count", entity="issue", status="error").inc()
            return 0

    def count_tags(self, predicate: Matcher | None = None) -> int:
        """Count tags matching a predicate; 0 on failure."""
        try:
            return sum(1 for tag in self._tags.values() if predicate is None or predicate(tag))
        except Exception as e:
            logger.error("tag_count_failed", predicate=repr(predicate), error=str(e))
            metrics.store_operations_total.labels(operation="count", entity="tag", status="error").inc()
            return 0

    def get_issue(self, issue_id: UUID) -> Issue | None:
        return self._issues.get(issue_id)

    def get_tag(self, tag_id: UUID) -> Tag | None:
        return self._tags.get(tag_id)

    def missing_tags(self, issue: Issue) -> list[Tag]:
        """Tags not attached to ``issue``, in natural order."""
        return self.fetch_tags(lambda tag: tag.id not in issue.tag_ids)

    def suggested_tags(self, query: str) -> list[Tag]:
        """Tags to offer as search tokens for ``query``.

        Only text starting with "#" asks for suggestions. The remainder,
        trimmed, is matched case-insensitively against tag names; an empty
        remainder suggests every tag.
        """
        if not query.startswith("#"):
            return []

        search = query[1:].strip()
        if not search:
            return self.fetch_tags()
        return self.fetch_tags(NameContains(search))

    def tags_for(self, issue: Issue) -> list[Tag]:
        """Tags attached to ``issue``, in natural order."""
        return self.fetch_tags(lambda tag: tag.id in issue.tag_ids)

    def tag_list_text(self, issue: Issue) -> str:
        """Comma-separated tag names of ``issue``, or "No tags"."""
        tags = self.tags_for(issue)
        if not tags:
            return "No tags"
        return ", ".join(tag.name for tag in tags)

    def issues_for(self, tag: Tag) -> list[Issue]:
        return self.fetch_issues(TaggedWith(tag.id))

    def active_issues_for(self, tag: Tag) -> list[Issue]:
        """Issues carrying ``tag`` that are not completed."""
        return self.fetch_issues(TaggedWith(tag.id) & CompletedIs(False))

    def active_issue_count(self, filter: Filter) -> int:
        """Badge count for a sidebar filter; 0 for filters without a tag."""
        if filter.tag is None:
            return 0
        return self.count_issues(TaggedWith(filter.tag.id) & CompletedIs(False))

    # =========================================================================
    # Writes
    # =========================================================================

    async def new_tag(self) -> Tag:
        """Create and persist a tag named "New Tag"."""
        tag = Tag(name=DEFAULT_TAG_NAME)
        self._tags[tag.id] = tag
        self._dirty_tags.add(tag.id)

        await self.save(trigger="insert")
        self._publish_counts()
        self._notify(StoreEvent.INSERTED, [tag.id])
        logger.info("tag_created", tag_id=str(tag.id))
        return tag

    async def new_issue(self, tag: Tag | None = None) -> Issue:
        """Create and persist an issue with default values.

        Args:
            tag: Tag to attach to the new issue (optional)

        Returns:
            The new issue
        """
        now = self.clock()
        issue = Issue(
            title=DEFAULT_ISSUE_TITLE,
            creation_date=now,
            modification_date=now,
            priority=Priority.LOW,
            completed=False,
        )
        if tag is not None:
            issue.tag_ids.add(tag.id)

        self._issues[issue.id] = issue
        self._dirty_issues.add(issue.id)

        await self.save(trigger="insert")
        self._publish_counts()
        self._notify(StoreEvent.INSERTED, [issue.id])
        logger.info("issue_created", issue_id=str(issue.id), tag_id=str(tag.id) if tag else None)
        return issue

    def update(self, entity: Issue | Tag, **changes: Any) -> None:
        """Change fields of a live entity and queue a save.

        Args:
            entity: Issue or tag owned by this store
            **changes: Field values to assign

        Raises:
            ValueError: If a change targets an identity or timestamp field,
                or a field the entity does not have
            ValidationError: If a value is invalid for its field; the entity
                is left unchanged
        """
        protected = PROTECTED_FIELDS.intersection(changes)
        if protected:
            raise ValueError(f"Fields managed by the store cannot be updated: {sorted(protected)}")
        unknown = set(changes) - set(type(entity).model_fields)
        if unknown:
            raise ValueError(f"Unknown fields for {type(entity).__name__}: {sorted(unknown)}")

        # Validate the whole change set before touching the live entity
        validated = type(entity).model_validate({**entity.model_dump(), **changes})
        for name in changes:
            setattr(entity, name, getattr(validated, name))

        self._changed(entity)

    def add_tag(self, issue: Issue, tag: Tag) -> None:
        """Attach ``tag`` to ``issue`` and queue a save."""
        issue.tag_ids.add(tag.id)
        self._changed(issue)

    def remove_tag(self, issue: Issue, tag: Tag) -> None:
        """Detach ``tag`` from ``issue`` and queue a save."""
        issue.tag_ids.discard(tag.id)
        self._changed(issue)

    def _changed(self, entity: Issue | Tag) -> None:
        if isinstance(entity, Issue):
            self._dirty_issues.add(entity.id)
        else:
            self._dirty_tags.add(entity.id)
        self.queue_save()
        self._notify(StoreEvent.UPDATED, [entity.id])

    def queue_save(self) -> None:
        """Save after the quiet period, superseding any pending queued save."""
        self._saver.schedule()

    def _touch(self, issue: Issue) -> None:
        """Bump the modification date, keeping it strictly increasing."""
        now = self.clock()
        if now <= issue.modification_date:
            now = issue.modification_date + timedelta(microseconds=1)
        issue.modification_date = now

    async def save(self, trigger: str = "explicit") -> bool:
        """Persist every changed entity now.

        Args:
            trigger: What caused the save (for metrics and logs)

        Returns:
            True if nothing was pending or the write succeeded, False on failure
        """
        async with self._save_lock:
            if not self.has_changes:
                return True

            tag_ids = {tag_id for tag_id in self._dirty_tags if tag_id in self._tags}
            issue_ids = {issue_id for issue_id in self._dirty_issues if issue_id in self._issues}
            self._dirty_tags.clear()
            self._dirty_issues.clear()

            issues = [self._issues[issue_id] for issue_id in issue_ids]
            for issue in issues:
                self._touch(issue)

            start = time.perf_counter()
            try:
                await self.adapter.save(
                    tags=[self._tags[tag_id] for tag_id in tag_ids],
                    issues=issues,
                )
            except Exception as e:
                # Keep the entities dirty so the next save retries them
                self._dirty_tags.update(tag_ids)
                self._dirty_issues.update(issue_ids)
                logger.error("store_save_failed", trigger=trigger, error=str(e))
                metrics.saves_total.labels(trigger=trigger, status="error").inc()
                metrics.record_store_operation("save", "all", "error", time.perf_counter() - start)
                return False

        metrics.saves_total.labels(trigger=trigger, status="success").inc()
        metrics.record_store_operation("save", "all", "success", time.perf_counter() - start)
        logger.debug("store_saved", trigger=trigger, tags=len(tag_ids), issues=len(issue_ids))
        self._notify(StoreEvent.SAVED, tag_ids | issue_ids)
        return True

    async def delete(self, entity: Issue | Tag) -> bool:
        """Delete an issue, or a tag together with its issue links.

        Deleting a tag leaves its issues in place. Persisted immediately.
        Holds the save lock throughout, so a queued save cannot write the
        entity back once the delete has committed.

        Returns:
            True on success, False if the storage rejected the delete
        """
        table = "issues" if isinstance(entity, Issue) else "tags"
        entity_name = "issue" if isinstance(entity, Issue) else "tag"
        start = time.perf_counter()

        async with self._save_lock:
            try:
                await self.adapter.batch_delete(table, "id = ?", (str(entity.id),))
            except Exception as e:
                logger.error("store_delete_failed", entity=entity_name, entity_id=str(entity.id), error=str(e))
                metrics.record_store_operation("delete", entity_name, "error", time.perf_counter() - start)
                return False

            if isinstance(entity, Issue):
                self._issues.pop(entity.id, None)
                self._dirty_issues.discard(entity.id)
            else:
                self._tags.pop(entity.id, None)
                self._dirty_tags.discard(entity.id)
                # Storage already dropped the link rows
                for issue in self._issues.values():
                    issue.tag_ids.discard(entity.id)

        metrics.record_store_operation("delete", entity_name, "success", time.perf_counter() - start)
        self._publish_counts()
        self._notify(StoreEvent.DELETED, [entity.id])
        logger.info("entity_deleted", entity=entity_name, entity_id=entity.id)
        return True

    async def delete_all(self) -> bool:
        """Delete every tag and every issue.

        Returns:
            True on success, False if the storage rejected the delete
        """
        self._saver.cancel()
        start = time.perf_counter()

        async with self._save_lock:
            try:
                await self.adapter.batch_delete("tags")
                await self.adapter.batch_delete("issues")
            except Exception as e:
                logger.error("store_delete_all_failed", error=str(e))
                metrics.record_store_operation("delete_all", "all", "error", time.perf_counter() - start)
                return False

            self._tags.clear()
            self._issues.clear()
            self._dirty_tags.clear()
            self._dirty_issues.clear()

        metrics.record_store_operation("delete_all", "all", "success", time.perf_counter() - start)
        self._publish_counts()
        self._notify(StoreEvent.RESET)
        logger.info("store_reset")
        return True

    # =========================================================================
    # Loading and remote changes
    # =========================================================================

    async def reload(self) -> bool:
        """Replace the entity graph with the stored one.

        Live objects are updated in place so existing references stay valid.
        Entities with unsaved local edits keep their local values.

        Returns:
            True if the graph was reloaded, False on failure
        """
        try:
            stored_tags = await self.adapter.fetch_tags()
            stored_issues = await self.adapter.fetch_issues()
        except Exception as e:
            logger.error("store_reload_failed", error=str(e))
            return False

        self._tags = self._merge(self._tags, stored_tags, self._dirty_tags)
        self._issues = self._merge(self._issues, stored_issues, self._dirty_issues)
        self._publish_counts()
        return True

    @staticmethod
    def _merge(live: dict[UUID, Any], stored: list[Any], dirty: set[UUID]) -> dict[UUID, Any]:
        merged: dict[UUID, Any] = {}
        for entity in stored:
            current = live.get(entity.id)
            if current is None:
                merged[entity.id] = entity
            elif entity.id in dirty:
                merged[entity.id] = current
            else:
                for name in type(entity).model_fields:
                    setattr(current, name, getattr(entity, name))
                merged[entity.id] = current

        # Unsaved local entities survive even if storage does not know them yet
        for entity_id in dirty:
            if entity_id in live and entity_id not in merged:
                merged[entity_id] = live[entity_id]
        return merged

    async def apply_remote_change(self) -> bool:
        """Reload after another connection changed storage and tell observers."""
        if not await self.reload():
            return False
        metrics.remote_changes_total.inc()
        self._notify(StoreEvent.REMOTE)
        logger.info("remote_change_applied", issues=len(self._issues), tags=len(self._tags))
        return True
