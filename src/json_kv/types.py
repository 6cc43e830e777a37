"""Core type definitions for the JSON key-value store."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterator, List, Optional, Tuple


class ErrorType(Enum):
    """Enumeration of error types."""
    SYNTAX = "syntax"
    BATCH_OVERFLOW = "batch_overflow"
    STORAGE = "storage"
    PATH = "path"
    CANCELLED = "cancelled"


class WriteStatus(Enum):
    """Outcome of a single write into a batch."""
    OK = "ok"
    TOO_LARGE = "too_large"


class QueryKind(Enum):
    """What a query produced."""
    LEAF = "leaf"
    OBJECT = "object"
    NOT_FOUND = "not_found"
    CANCELLED = "cancelled"


@dataclass
class ImportResult:
    """Result of an import operation."""
    records_written: int
    batches_committed: int
    bytes_written: int
    max_depth: int
    metrics: Optional[Any] = None


@dataclass
class QueryResult:
    """Result of a query operation."""
    kind: QueryKind
    records_scanned: int
    bytes_written: int


@dataclass
class ValidationError:
    """Validation error details."""
    type: ErrorType
    message: str
    location: Optional[str] = None


@dataclass
class ValidationResult:
    """Result of input validation."""
    is_valid: bool
    errors: List[ValidationError]
    warnings: List[str]


@dataclass
class ErrorResponse:
    """Response for error handling."""
    can_recover: bool
    suggested_action: str
    partial_results: Optional[Any] = None


class ProcessingError(Exception):
    """Custom exception for fatal import and query errors."""

    def __init__(self, message: str, error_type: ErrorType, context: Optional[Any] = None):
        super().__init__(message)
        self.error_type = error_type
        self.context = context


# Abstract base classes for interfaces

class CursorInterface(ABC):
    """Ordered cursor over a read snapshot."""

    @abstractmethod
    def seek(self, prefix: bytes) -> bool:
        """Position at the first key >= prefix. Returns False past the end."""
        pass

    @abstractmethod
    def valid_for_prefix(self, prefix: bytes) -> bool:
        """True if the cursor points at a key starting with prefix."""
        pass

    @abstractmethod
    def item(self) -> Tuple[bytes, bytes]:
        """Return the (key, value) under the cursor."""
        pass

    @abstractmethod
    def next(self) -> bool:
        """Advance one key. Returns False past the end."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Release the cursor."""
        pass


class ReadSnapshotInterface(ABC):
    """Consistent read-only view of the store."""

    @abstractmethod
    def get(self, key: bytes) -> Optional[bytes]:
        """Point lookup. None means the key is not stored."""
        pass

    @abstractmethod
    def cursor(self) -> CursorInterface:
        """Open a cursor over this snapshot."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Release the snapshot."""
        pass

    def scan_prefix(self, prefix: bytes) -> Iterator[Tuple[bytes, bytes]]:
        """
        Yield every (key, value) whose key starts with prefix, ascending.

        The cursor is released when the generator is exhausted or closed.
        """
        cursor = self.cursor()
        try:
            cursor.seek(prefix)
            while cursor.valid_for_prefix(prefix):
                yield cursor.item()
                cursor.next()
        finally:
            cursor.close()

    def __enter__(self) -> "ReadSnapshotInterface":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class WriteBatchInterface(ABC):
    """Size-bounded write transaction."""

    @abstractmethod
    def set(self, key: bytes, value: bytes) -> WriteStatus:
        """Stage a record. TOO_LARGE means nothing was staged."""
        pass

    @abstractmethod
    def commit(self) -> None:
        """Make staged records durable. Raises ProcessingError on failure."""
        pass

    @abstractmethod
    def abort(self) -> None:
        """Drop staged records."""
        pass


class StorageAdapterInterface(ABC):
    """Abstract sorted key-value store."""

    # Longest key the store accepts, or None when keys are unbounded.
    max_key_bytes: Optional[int] = None

    @abstractmethod
    def begin_write_batch(self) -> WriteBatchInterface:
        """Open a new write batch."""
        pass

    @abstractmethod
    def read_snapshot(self) -> ReadSnapshotInterface:
        """Open a read snapshot."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Release the underlying store."""
        pass

    def get(self, key: bytes) -> Optional[bytes]:
        """Point lookup against a fresh snapshot."""
        with self.read_snapshot() as snapshot:
            return snapshot.get(key)

    def scan_prefix(self, prefix: bytes) -> List[Tuple[bytes, bytes]]:
        """Materialized prefix scan against a fresh snapshot."""
        with self.read_snapshot() as snapshot:
            return list(snapshot.scan_prefix(prefix))

    def __enter__(self) -> "StorageAdapterInterface":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class QueryOutput(ABC):
    """Destination for query output bytes."""

    @abstractmethod
    def write(self, data: bytes) -> None:
        """Write a chunk of output."""
        pass

    def is_cancelled(self) -> bool:
        """True once the consumer no longer wants output."""
        return False
