"""Composable predicates over issues and the filter-criteria builder."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

from quickfix.models import Filter, Issue, Priority, Status, Tag


class Predicate(ABC):
    """Boolean condition over an entity.

    Predicates are callables and combine with ``&`` into an ``AllOf``.
    """

    @abstractmethod
    def matches(self, item: Any) -> bool:
        """Return True if ``item`` satisfies the condition."""

    def __call__(self, item: Any) -> bool:
        return self.matches(item)

    def __and__(self, other: "Predicate") -> "Predicate":
        return AllOf.of(self, other)


@dataclass(frozen=True)
class AllOf(Predicate):
    """Conjunction of predicates. An empty conjunction matches everything."""

    predicates: tuple[Predicate, ...] = ()

    @classmethod
    def of(cls, *predicates: Predicate) -> "AllOf":
        flattened: list[Predicate] = []
        for predicate in predicates:
            if isinstance(predicate, AllOf):
                flattened.extend(predicate.predicates)
            else:
                flattened.append(predicate)
        return cls(tuple(flattened))

    def matches(self, item: Any) -> bool:
        return all(predicate.matches(item) for predicate in self.predicates)


MATCH_ALL = AllOf()


@dataclass(frozen=True)
class ModifiedAfter(Predicate):
    floor: datetime

    def matches(self, item: Issue) -> bool:
        return item.modification_date > self.floor


@dataclass(frozen=True)
class TaggedWith(Predicate):
    tag_id: UUID

    def matches(self, item: Issue) -> bool:
        return self.tag_id in item.tag_ids


@dataclass(frozen=True)
class TextContains(Predicate):
    """Case-insensitive substring match on title or content."""

    text: str

    def matches(self, item: Issue) -> bool:
        needle = self.text.casefold()
        return needle in item.title.casefold() or needle in item.content.casefold()


@dataclass(frozen=True)
class PriorityIs(Predicate):
    priority: Priority

    def matches(self, item: Issue) -> bool:
        return item.priority == self.priority


@dataclass(frozen=True)
class CompletedIs(Predicate):
    completed: bool

    def matches(self, item: Issue) -> bool:
        return item.completed == self.completed


@dataclass(frozen=True)
class NameContains(Predicate):
    """Case-insensitive substring match on a tag name."""

    text: str

    def matches(self, item: Tag) -> bool:
        return self.text.casefold() in item.name.casefold()


@dataclass
class FilterCriteria:
    """Everything the issue list is currently filtered by."""

    filter: Filter | None = None
    text: str = ""
    tokens: list[Tag] = field(default_factory=list)
    filter_enabled: bool = False
    priority: Priority | None = None
    status: Status = Status.ALL


def build_predicate(criteria: FilterCriteria) -> Predicate:
    """Combine the active criteria into one predicate.

    Args:
        criteria: Current filter state

    Returns:
        Conjunction of every clause that applies; clauses that do not
        apply are left out rather than matching nothing
    """
    active_filter = criteria.filter or Filter.all_issues()
    clauses: list[Predicate] = []

    if active_filter.tag is not None:
        clauses.append(TaggedWith(active_filter.tag.id))
    else:
        clauses.append(ModifiedAfter(active_filter.min_modification_date))

    text = criteria.text.strip()
    if text:
        clauses.append(TextContains(text))

    for token in criteria.tokens:
        clauses.append(TaggedWith(token.id))

    if criteria.filter_enabled:
        if criteria.priority is not None:
            clauses.append(PriorityIs(criteria.priority))
        if criteria.status != Status.ALL:
            clauses.append(CompletedIs(criteria.status == Status.CLOSED))

    return AllOf.of(*clauses)
