"""Sorted key-value storage adapters."""

from .lmdb_store import LmdbStorageAdapter
from .memory import MemoryStorageAdapter

__all__ = ["LmdbStorageAdapter", "MemoryStorageAdapter"]
