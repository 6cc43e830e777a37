"""LMDB-backed storage adapter."""

import logging
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

import lmdb

from ..models.store_config import DEFAULT_MAP_SIZE, DEFAULT_MAX_BATCH_BYTES
from ..types import (
    CursorInterface,
    ErrorType,
    ProcessingError,
    ReadSnapshotInterface,
    StorageAdapterInterface,
    WriteBatchInterface,
    WriteStatus,
)

# LMDB rejects empty keys, and a scalar document lives at the empty root key.
# Every stored key carries this marker; it never leaves the adapter.
ROOT_MARKER = b"/"


def _storage_error(action: str, error: Exception) -> ProcessingError:
    return ProcessingError(
        f"LMDB {action} failed: {error}",
        ErrorType.STORAGE,
        context={"lmdb_error": type(error).__name__},
    )


class LmdbCursor(CursorInterface):
    def __init__(self, cursor: "lmdb.Cursor", max_key_size: int):
        self._cursor = cursor
        self._max_key_size = max_key_size
        self._valid = False

    def seek(self, prefix: bytes) -> bool:
        internal = ROOT_MARKER + prefix
        if len(internal) > self._max_key_size:
            # Nothing that long can be stored.
            self._valid = False
            return False
        try:
            self._valid = self._cursor.set_range(internal)
        except lmdb.Error as e:
            raise _storage_error("seek", e)
        return self._valid

    def valid_for_prefix(self, prefix: bytes) -> bool:
        return self._valid and self._cursor.key().startswith(ROOT_MARKER + prefix)

    def item(self) -> Tuple[bytes, bytes]:
        key, value = self._cursor.item()
        return key[len(ROOT_MARKER):], value

    def next(self) -> bool:
        try:
            self._valid = self._cursor.next()
        except lmdb.Error as e:
            raise _storage_error("cursor advance", e)
        return self._valid

    def close(self) -> None:
        self._valid = False
        self._cursor.close()


class LmdbSnapshot(ReadSnapshotInterface):
    """Read-only LMDB transaction; MVCC keeps it isolated from writers."""

    def __init__(self, txn: "lmdb.Transaction", max_key_size: int):
        self._txn: Optional["lmdb.Transaction"] = txn
        self._max_key_size = max_key_size

    def _current(self) -> "lmdb.Transaction":
        if self._txn is None:
            raise ProcessingError("Snapshot is closed", ErrorType.STORAGE)
        return self._txn

    def get(self, key: bytes) -> Optional[bytes]:
        internal = ROOT_MARKER + key
        if len(internal) > self._max_key_size:
            return None
        try:
            return self._current().get(internal)
        except lmdb.Error as e:
            raise _storage_error("get", e)

    def cursor(self) -> CursorInterface:
        try:
            return LmdbCursor(self._current().cursor(), self._max_key_size)
        except lmdb.Error as e:
            raise _storage_error("cursor open", e)

    def close(self) -> None:
        if self._txn is not None:
            self._txn.abort()
            self._txn = None


class LmdbWriteBatch(WriteBatchInterface):
    def __init__(self, txn: "lmdb.Transaction", max_batch_bytes: int,
                 max_key_bytes: int, logger: logging.Logger):
        self._txn: Optional["lmdb.Transaction"] = txn
        self._max_batch_bytes = max_batch_bytes
        self._max_key_bytes = max_key_bytes
        self._pending_bytes = 0
        # Size of each record written by this batch, keyed by record key.
        self._sizes: Dict[bytes, int] = {}
        self.logger = logger

    @property
    def pending_bytes(self) -> int:
        return self._pending_bytes

    def _current(self) -> "lmdb.Transaction":
        if self._txn is None:
            raise ProcessingError("Write batch already finished", ErrorType.STORAGE)
        return self._txn

    def set(self, key: bytes, value: bytes) -> WriteStatus:
        txn = self._current()
        if len(key) > self._max_key_bytes:
            raise ProcessingError(
                f"Key of {len(key)} bytes exceeds the LMDB key limit of "
                f"{self._max_key_bytes} bytes: {key[:40]!r}...",
                ErrorType.PATH,
                context={"key_bytes": len(key), "max_key_bytes": self._max_key_bytes},
            )

        size = len(key) + len(value)
        replaced = self._sizes.get(key, 0)
        if self._pending_bytes - replaced + size > self._max_batch_bytes:
            return WriteStatus.TOO_LARGE

        try:
            txn.put(ROOT_MARKER + key, value)
        except lmdb.Error as e:
            raise _storage_error("put", e)

        self._pending_bytes += size - replaced
        self._sizes[key] = size
        return WriteStatus.OK

    def commit(self) -> None:
        txn = self._current()
        self._txn = None
        try:
            txn.commit()
        except lmdb.Error as e:
            raise _storage_error("commit", e)
        self.logger.debug(f"Committed {len(self._sizes)} records ({self._pending_bytes} bytes)")

    def abort(self) -> None:
        if self._txn is not None:
            self._txn.abort()
            self._txn = None


class LmdbStorageAdapter(StorageAdapterInterface):
    """
    Sorted key-value store on top of an LMDB environment.

    Keys compare as raw bytes, which is the order the reconstruction scan
    relies on. Read snapshots are plain read transactions and never block
    each other or the writer.
    """

    def __init__(self, path: Union[str, Path],
                 map_size: int = DEFAULT_MAP_SIZE,
                 max_batch_bytes: int = DEFAULT_MAX_BATCH_BYTES,
                 max_readers: int = 126,
                 readonly: bool = False,
                 logger: Optional[logging.Logger] = None):
        self.path = Path(path)
        self.max_batch_bytes = max_batch_bytes
        self.readonly = readonly
        self.logger = logger or logging.getLogger(__name__)

        try:
            self._env: Optional["lmdb.Environment"] = lmdb.open(
                str(self.path),
                map_size=map_size,
                subdir=True,
                max_readers=max_readers,
                readonly=readonly,
                lock=not readonly,
            )
        except lmdb.Error as e:
            raise _storage_error("open", e)

        self._max_key_size = self._env.max_key_size()
        self.max_key_bytes = self._max_key_size - len(ROOT_MARKER)
        self.logger.debug(f"Opened LMDB store at {self.path} (readonly={readonly})")

    def _current(self) -> "lmdb.Environment":
        if self._env is None:
            raise ProcessingError("Storage adapter is closed", ErrorType.STORAGE)
        return self._env

    def begin_write_batch(self) -> WriteBatchInterface:
        if self.readonly:
            raise ProcessingError("Store was opened read-only", ErrorType.STORAGE)
        try:
            txn = self._current().begin(write=True)
        except lmdb.Error as e:
            raise _storage_error("begin write", e)
        return LmdbWriteBatch(txn, self.max_batch_bytes, self.max_key_bytes, self.logger)

    def read_snapshot(self) -> ReadSnapshotInterface:
        try:
            txn = self._current().begin(write=False, buffers=False)
        except lmdb.Error as e:
            raise _storage_error("begin read", e)
        return LmdbSnapshot(txn, self._max_key_size)

    def record_count(self) -> int:
        return self._current().stat()["entries"]

    def close(self) -> None:
        if self._env is not None:
            self._env.close()
            self._env = None
            self.logger.debug(f"Closed LMDB store at {self.path}")
