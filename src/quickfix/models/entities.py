"""Persisted entities: tags and issues."""

from datetime import datetime
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from quickfix.models.base import Priority, utcnow

DEFAULT_TAG_NAME = "New Tag"
DEFAULT_ISSUE_TITLE = "New Issue"


class Tag(BaseModel):
    """A label that can be attached to any number of issues.

    The tag-issue relationship is stored on the issue side (``Issue.tag_ids``);
    the store answers "which issues carry this tag".
    """

    model_config = ConfigDict(validate_assignment=True)

    id: UUID = Field(default_factory=uuid4, description="Stable identifier, never reused")
    name: str = Field(default=DEFAULT_TAG_NAME, description="Display name")

    def sort_key(self) -> tuple[str, str]:
        """Natural order: lowercase name, then identifier string."""
        return (self.name.lower(), str(self.id))

    def __lt__(self, other: "Tag") -> bool:
        return self.sort_key() < other.sort_key()


class Issue(BaseModel):
    """A tracked issue.

    ``modification_date`` belongs to the store: it is bumped on every
    persisted mutation and must not be assigned by callers.
    """

    model_config = ConfigDict(validate_assignment=True)

    id: UUID = Field(default_factory=uuid4, description="Storage identity")
    title: str = Field(default=DEFAULT_ISSUE_TITLE, description="Issue title (may be empty)")
    content: str = Field(default="", description="Free-text description")
    creation_date: datetime = Field(default_factory=utcnow, description="Set once at creation")
    modification_date: datetime = Field(default_factory=utcnow, description="Last persisted mutation")
    completed: bool = Field(default=False, description="Whether the issue is closed")
    priority: Priority = Field(default=Priority.LOW, description="Low, medium or high")
    tag_ids: set[UUID] = Field(default_factory=set, description="Identifiers of attached tags")

    @property
    def status(self) -> str:
        return "Closed" if self.completed else "Open"

    def sort_key(self) -> tuple[str, datetime]:
        """Natural order: lowercase title, then creation date ascending."""
        return (self.title.lower(), self.creation_date)

    def __lt__(self, other: "Issue") -> bool:
        return self.sort_key() < other.sort_key()
