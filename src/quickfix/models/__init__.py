"""Data models for the issue store."""

from quickfix.models.awards import Award, AwardCriterion
from quickfix.models.base import DISTANT_PAST, Priority, Status, utcnow
from quickfix.models.entities import DEFAULT_ISSUE_TITLE, DEFAULT_TAG_NAME, Issue, Tag
from quickfix.models.filters import Filter

__all__ = [
    # Base
    "DISTANT_PAST",
    "Priority",
    "Status",
    "utcnow",
    # Entities
    "Issue",
    "Tag",
    "DEFAULT_ISSUE_TITLE",
    "DEFAULT_TAG_NAME",
    # Filters
    "Filter",
    # Awards
    "Award",
    "AwardCriterion",
]
