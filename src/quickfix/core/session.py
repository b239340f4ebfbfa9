"""Per-session selection and filter state for views bound to the store."""

from dataclasses import dataclass, field

from quickfix.core.predicates import FilterCriteria, build_predicate
from quickfix.core.sorting import SortPolicy, SortType
from quickfix.core.store import IssueStore
from quickfix.models import Filter, Issue, Priority, Status, Tag


@dataclass
class SessionContext:
    """Selection and filter state of one interactive session.

    Passed explicitly to whatever builds the views; the store itself keeps
    no notion of what is selected.
    """

    store: IssueStore
    recent_days: int = 7
    selected_filter: Filter | None = field(default_factory=Filter.all_issues)
    selected_issue: Issue | None = None
    filter_text: str = ""
    filter_tokens: list[Tag] = field(default_factory=list)
    filter_enabled: bool = False
    filter_priority: Priority | None = None
    filter_status: Status = Status.ALL
    sort_type: SortType = SortType.DATE_CREATED
    sort_newest_first: bool = True

    def smart_filters(self) -> list[Filter]:
        return [Filter.all_issues(), Filter.recent_issues(days=self.recent_days)]

    def tag_filters(self) -> list[Filter]:
        """One filter per tag, in natural tag order."""
        return [Filter.for_tag(tag) for tag in self.store.fetch_tags()]

    def criteria(self) -> FilterCriteria:
        return FilterCriteria(
            filter=self.selected_filter,
            text=self.filter_text,
            tokens=list(self.filter_tokens),
            filter_enabled=self.filter_enabled,
            priority=self.filter_priority,
            status=self.filter_status,
        )

    def sort_policy(self) -> SortPolicy:
        return SortPolicy(sort_type=self.sort_type, newest_first=self.sort_newest_first)

    def issues_for_selected_filter(self) -> list[Issue]:
        return self.store.fetch_issues(build_predicate(self.criteria()), self.sort_policy())

    @property
    def suggested_filter_tokens(self) -> list[Tag]:
        return self.store.suggested_tags(self.filter_text)

    async def new_issue(self) -> Issue:
        """Create an issue tagged with the selected tag filter, and select it."""
        tag = self.selected_filter.tag if self.selected_filter else None
        issue = await self.store.new_issue(tag=tag)
        self.selected_issue = issue
        return issue

    async def new_tag(self) -> Tag:
        return await self.store.new_tag()

    def rename_tag(self, tag: Tag, name: str) -> None:
        """Rename a tag, keeping the selected tag filter in step."""
        self.store.update(tag, name=name)
        if self.selected_filter is not None and self.selected_filter.id == tag.id:
            self.selected_filter = Filter.for_tag(tag)

    async def delete(self, entity: Issue | Tag) -> bool:
        """Delete an entity and clear any selection that pointed at it."""
        deleted = await self.store.delete(entity)
        if not deleted:
            return False

        if isinstance(entity, Issue):
            if self.selected_issue is not None and self.selected_issue.id == entity.id:
                self.selected_issue = None
        else:
            self.filter_tokens = [token for token in self.filter_tokens if token.id != entity.id]
            if self.selected_filter is not None and self.selected_filter.id == entity.id:
                self.selected_filter = Filter.all_issues()
        return True
