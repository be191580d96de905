"""Key-value storage module."""
from .base import KeyValueStore, NamespacedStore, StorageEvent
from .memory import MemoryKeyValueStore
from .sql import SQLKeyValueStore

__all__ = [
    "KeyValueStore",
    "MemoryKeyValueStore",
    "NamespacedStore",
    "SQLKeyValueStore",
    "StorageEvent",
]
