"""Storage package for drillcore.

Provides the key-value persistence contract and its implementations.
"""

from .base import InMemoryKeyValueStore, KeyValueStore
from .kv_store import DuckDBKeyValueStore

__all__ = ["KeyValueStore", "InMemoryKeyValueStore", "DuckDBKeyValueStore"]
