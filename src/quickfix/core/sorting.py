"""Sort policy for issue lists."""

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import TypeVar

from quickfix.models import Issue, Tag

T = TypeVar("T", Issue, Tag)


class SortType(str, Enum):
    """Timestamp an issue list can be sorted by."""

    DATE_CREATED = "date_created"
    DATE_MODIFIED = "date_modified"


def natural_order(items: Iterable[T]) -> list[T]:
    """Sort issues or tags by their natural order."""
    return sorted(items)


@dataclass(frozen=True)
class SortPolicy:
    """Order by a timestamp in the chosen direction.

    Ties on the timestamp fall back to natural order (ascending) whatever
    the direction, so equal timestamps always list the same way.
    """

    sort_type: SortType = SortType.DATE_CREATED
    newest_first: bool = True

    def apply(self, issues: Iterable[Issue]) -> list[Issue]:
        ordered = natural_order(issues)
        if self.sort_type == SortType.DATE_MODIFIED:
            ordered.sort(key=lambda issue: issue.modification_date, reverse=self.newest_first)
        else:
            ordered.sort(key=lambda issue: issue.creation_date, reverse=self.newest_first)
        return ordered
