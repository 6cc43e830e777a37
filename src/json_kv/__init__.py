"""
JSON KV - JSON documents as sorted flat key-value records.

Imports an arbitrarily large JSON document into a sorted key-value store,
one record per leaf scalar, and rebuilds any subtree on demand from a
prefix scan.
"""

__version__ = "1.0.0"

from .json_store import JSONStore
from .keypath import KeyPathCodec
from .models import FlatRecord, StoreConfig
from .types import ImportResult, QueryResult, QueryKind, ProcessingError, ErrorType

__all__ = [
    "JSONStore",
    "KeyPathCodec",
    "FlatRecord",
    "StoreConfig",
    "ImportResult",
    "QueryResult",
    "QueryKind",
    "ProcessingError",
    "ErrorType",
]
