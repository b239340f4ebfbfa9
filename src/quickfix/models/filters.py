"""Sidebar filters: the two smart filters plus one per tag."""

from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from quickfix.models.base import DISTANT_PAST, utcnow
from quickfix.models.entities import Tag

ALL_ISSUES_ID = UUID("00000000-0000-4000-8000-000000000001")
RECENT_ISSUES_ID = UUID("00000000-0000-4000-8000-000000000002")


class Filter(BaseModel):
    """Ephemeral selection of issues by tag or by modification window.

    Filters compare and hash by ``id`` only, so a tag filter stays equal to
    itself after the tag is renamed.
    """

    id: UUID
    name: str
    icon: str
    min_modification_date: datetime = Field(default=DISTANT_PAST)
    tag: Tag | None = None

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Filter):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    @classmethod
    def all_issues(cls) -> "Filter":
        return cls(id=ALL_ISSUES_ID, name="All Issues", icon="tray")

    @classmethod
    def recent_issues(cls, days: int = 7, now: datetime | None = None) -> "Filter":
        """Issues modified within the last ``days`` days."""
        floor = (now or utcnow()) - timedelta(days=days)
        return cls(id=RECENT_ISSUES_ID, name="Recent Issues", icon="clock", min_modification_date=floor)

    @classmethod
    def for_tag(cls, tag: Tag) -> "Filter":
        return cls(id=tag.id, name=tag.name, icon="tag", tag=tag)
