"""Storage adapter and remote-change stream."""

from quickfix.storage.change_monitor import RemoteChangeMonitor
from quickfix.storage.sqlite_adapter import MEMORY_DATABASE, SQLiteAdapter

__all__ = [
    "MEMORY_DATABASE",
    "SQLiteAdapter",
    "RemoteChangeMonitor",
]
