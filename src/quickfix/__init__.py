"""QuickFix issue store.

A single-user issue tracker core: tags and issues persisted in SQLite,
predicate-based filtering and sorting, debounced saves, change
notification for bound views, and awards earned from store counts.
"""

__version__ = "0.1.0"
