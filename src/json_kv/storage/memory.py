"""In-memory sorted storage adapter."""

import bisect
import heapq
import logging
import threading
from typing import Dict, List, Optional, Tuple

from ..models.store_config import DEFAULT_MAX_BATCH_BYTES
from ..types import (
    CursorInterface,
    ErrorType,
    ProcessingError,
    ReadSnapshotInterface,
    StorageAdapterInterface,
    WriteBatchInterface,
    WriteStatus,
)


class _Generation:
    """Immutable committed state: sorted keys plus their values."""

    __slots__ = ("keys", "values")

    def __init__(self, keys: List[bytes], values: Dict[bytes, bytes]):
        self.keys = keys
        self.values = values


class MemoryCursor(CursorInterface):
    def __init__(self, generation: _Generation):
        self._generation = generation
        self._pos = len(generation.keys)

    def seek(self, prefix: bytes) -> bool:
        self._pos = bisect.bisect_left(self._generation.keys, prefix)
        return self._pos < len(self._generation.keys)

    def valid_for_prefix(self, prefix: bytes) -> bool:
        if self._pos >= len(self._generation.keys):
            return False
        return self._generation.keys[self._pos].startswith(prefix)

    def item(self) -> Tuple[bytes, bytes]:
        key = self._generation.keys[self._pos]
        return key, self._generation.values[key]

    def next(self) -> bool:
        self._pos += 1
        return self._pos < len(self._generation.keys)

    def close(self) -> None:
        self._pos = len(self._generation.keys)


class MemorySnapshot(ReadSnapshotInterface):
    """Pins the generation that was current when the snapshot was taken."""

    def __init__(self, generation: _Generation):
        self._generation: Optional[_Generation] = generation

    def _current(self) -> _Generation:
        if self._generation is None:
            raise ProcessingError("Snapshot is closed", ErrorType.STORAGE)
        return self._generation

    def get(self, key: bytes) -> Optional[bytes]:
        return self._current().values.get(key)

    def cursor(self) -> CursorInterface:
        return MemoryCursor(self._current())

    def close(self) -> None:
        self._generation = None


class MemoryWriteBatch(WriteBatchInterface):
    def __init__(self, adapter: "MemoryStorageAdapter", max_batch_bytes: int):
        self._adapter = adapter
        self._max_batch_bytes = max_batch_bytes
        self._pending: Dict[bytes, bytes] = {}
        self._pending_bytes = 0
        self._done = False

    @property
    def pending_bytes(self) -> int:
        return self._pending_bytes

    def set(self, key: bytes, value: bytes) -> WriteStatus:
        if self._done:
            raise ProcessingError("Write batch already finished", ErrorType.STORAGE)

        size = len(key) + len(value)
        previous = self._pending.get(key)
        replaced = len(key) + len(previous) if previous is not None else 0
        if self._pending_bytes - replaced + size > self._max_batch_bytes:
            return WriteStatus.TOO_LARGE

        self._pending[key] = value
        self._pending_bytes += size - replaced
        return WriteStatus.OK

    def commit(self) -> None:
        if self._done:
            raise ProcessingError("Write batch already finished", ErrorType.STORAGE)
        self._done = True
        self._adapter._publish(self._pending)
        self._pending = {}

    def abort(self) -> None:
        self._done = True
        self._pending = {}


class MemoryStorageAdapter(StorageAdapterInterface):
    """
    Sorted in-memory store.

    Every commit publishes a new generation; snapshots keep a reference to
    the generation they started with, so they never see later commits and
    never take a lock while reading.
    """

    def __init__(self, max_batch_bytes: int = DEFAULT_MAX_BATCH_BYTES,
                 logger: Optional[logging.Logger] = None):
        self.max_batch_bytes = max_batch_bytes
        self.logger = logger or logging.getLogger(__name__)
        self._lock = threading.Lock()
        self._generation = _Generation([], {})
        self._closed = False

    def _check_open(self) -> None:
        if self._closed:
            raise ProcessingError("Storage adapter is closed", ErrorType.STORAGE)

    def begin_write_batch(self) -> WriteBatchInterface:
        self._check_open()
        return MemoryWriteBatch(self, self.max_batch_bytes)

    def read_snapshot(self) -> ReadSnapshotInterface:
        self._check_open()
        return MemorySnapshot(self._generation)

    def close(self) -> None:
        self._closed = True

    def __len__(self) -> int:
        return len(self._generation.keys)

    def _publish(self, pending: Dict[bytes, bytes]) -> None:
        self._check_open()
        with self._lock:
            current = self._generation
            new_keys = sorted(k for k in pending if k not in current.values)
            values = dict(current.values)
            values.update(pending)
            keys = list(heapq.merge(current.keys, new_keys))
            self._generation = _Generation(keys, values)

        self.logger.debug(f"Committed {len(pending)} records ({len(keys)} total)")
