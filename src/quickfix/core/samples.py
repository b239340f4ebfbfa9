"""Sample data for demos and previews."""

import random

from quickfix.core.store import IssueStore
from quickfix.models import Priority
from quickfix.utils.logging import get_logger

logger = get_logger(__name__)


async def create_sample_data(
    store: IssueStore,
    tag_count: int = 5,
    issues_per_tag: int = 10,
    rng: random.Random | None = None,
) -> bool:
    """Fill the store with tags "Tag 1".."Tag N", each with its own issues.

    Args:
        store: Initialized issue store
        tag_count: Number of tags to create
        issues_per_tag: Number of issues attached to each tag
        rng: Random source for completion and priority (module random if None)

    Returns:
        True if the sample data was saved
    """
    rng = rng or random.Random()

    for i in range(1, tag_count + 1):
        tag = await store.new_tag()
        store.update(tag, name=f"Tag {i}")

        for j in range(1, issues_per_tag + 1):
            issue = await store.new_issue(tag=tag)
            store.update(
                issue,
                title=f"Issue {i}-{j}",
                content="Description goes here",
                completed=rng.random() < 0.5,
                priority=Priority(rng.randint(0, 2)),
            )

    saved = await store.save(trigger="samples")
    logger.info("sample_data_created", tags=tag_count, issues=tag_count * issues_per_tag, saved=saved)
    return saved
