"""Issue store facade and the logic around it."""

from quickfix.core.awards import AwardEvaluator
from quickfix.core.debounce import DebouncedSave
from quickfix.core.predicates import FilterCriteria, Predicate, build_predicate
from quickfix.core.samples import create_sample_data
from quickfix.core.session import SessionContext
from quickfix.core.sorting import SortPolicy, SortType, natural_order
from quickfix.core.store import IssueStore, StoreChange, StoreEvent

__all__ = [
    "AwardEvaluator",
    "DebouncedSave",
    "FilterCriteria",
    "Predicate",
    "build_predicate",
    "create_sample_data",
    "SessionContext",
    "SortPolicy",
    "SortType",
    "natural_order",
    "IssueStore",
    "StoreChange",
    "StoreEvent",
]
