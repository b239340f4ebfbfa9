"""Evaluation of awards against live store counts."""

from quickfix.core.predicates import CompletedIs
from quickfix.core.store import IssueStore
from quickfix.models import Award, AwardCriterion


class AwardEvaluator:
    """Decides which awards are earned. Holds no state between calls."""

    def __init__(self, store: IssueStore) -> None:
        self.store = store

    def has_earned(self, award: Award) -> bool:
        if award.criterion == AwardCriterion.ISSUES:
            return self.store.count_issues() >= award.value
        if award.criterion == AwardCriterion.CLOSED:
            return self.store.count_issues(CompletedIs(True)) >= award.value
        if award.criterion == AwardCriterion.TAGS:
            return self.store.count_tags() >= award.value
        return False

    def earned_awards(self, awards: list[Award] | None = None) -> list[Award]:
        """Earned subset of ``awards`` (the bundled catalog if None)."""
        catalog = awards if awards is not None else Award.all_awards()
        return [award for award in catalog if self.has_earned(award)]

    def award_title(self, award: Award) -> str:
        if self.has_earned(award):
            return f"Unlocked: {award.name}"
        return "Locked"
