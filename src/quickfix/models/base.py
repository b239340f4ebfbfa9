"""Common types shared by the entity models."""

from datetime import datetime, timezone
from enum import Enum, IntEnum

# Floor used by filters without a modification window.
DISTANT_PAST = datetime(1, 1, 1, tzinfo=timezone.utc)


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class Priority(IntEnum):
    """Issue priority levels."""

    LOW = 0
    MEDIUM = 1
    HIGH = 2

    @property
    def label(self) -> str:
        return self.name.capitalize()


class Status(str, Enum):
    """Completion status selectable when filtering issues."""

    ALL = "all"
    OPEN = "open"
    CLOSED = "closed"
