"""Streaming import of a JSON document into flat leaf records."""

import json
import logging
from decimal import Decimal
from typing import Any, BinaryIO, List, Optional

import ijson

from .keypath import KeyPathCodec, Segment
from .models import FlatRecord
from .profiler import PerformanceProfiler
from .types import (
    ErrorType,
    ImportResult,
    ProcessingError,
    StorageAdapterInterface,
    WriteBatchInterface,
    WriteStatus,
)

_SCALAR_EVENTS = frozenset(["null", "boolean", "integer", "double", "number", "string"])


def encode_scalar(value: Any) -> bytes:
    """
    Canonical JSON bytes for a leaf scalar.

    Non-integer numbers arrive as Decimal and keep their source digits.
    """
    if isinstance(value, Decimal):
        return str(value).encode("ascii")
    return json.dumps(value, ensure_ascii=False).encode("utf-8", "surrogatepass")


class _Frame:
    """An open container: 'map' or 'array' plus the last index used."""

    __slots__ = ("kind", "index")

    def __init__(self, kind: str):
        self.kind = kind
        self.index = -1


class _ImportState:
    __slots__ = ("batch", "records", "batches", "bytes_written", "max_depth")

    def __init__(self, batch: WriteBatchInterface):
        self.batch = batch
        self.records = 0
        self.batches = 0
        self.bytes_written = 0
        self.max_depth = 0


class Flattener:
    """
    Walks a JSON byte stream once and stores one record per leaf scalar.

    The document is never held in memory: tokens come from ijson and the
    position in the tree is kept on an explicit frame stack. Writes go into
    a batch owned by this flattener; when the batch reports TOO_LARGE it is
    committed and the write is retried once in a fresh batch.
    """

    def __init__(self, storage: StorageAdapterInterface,
                 codec: Optional[KeyPathCodec] = None,
                 logger: Optional[logging.Logger] = None,
                 profiler: Optional[PerformanceProfiler] = None):
        """
        Initialize the flattener.

        Args:
            storage: Destination adapter; only this flattener writes to it
            codec: Key-path codec (defaults to "/" with plain indices)
            logger: Optional logger instance
            profiler: Sampled after every batch commit when given
        """
        self.storage = storage
        self.codec = codec or KeyPathCodec()
        self.logger = logger or logging.getLogger(__name__)
        self.profiler = profiler

    def flatten(self, source: BinaryIO) -> ImportResult:
        """
        Import one JSON document from a binary stream.

        Args:
            source: Readable binary file-like object holding UTF-8 JSON

        Returns:
            ImportResult with record and batch counts

        Raises:
            ProcessingError: SYNTAX for malformed input, BATCH_OVERFLOW when a
                record does not fit an empty batch, STORAGE for adapter
                failures. The store is left partially written.
        """
        state = _ImportState(self.storage.begin_write_batch())

        try:
            self._walk(source, state)
            state.batch.commit()
            state.batches += 1
        except (ijson.JSONError, UnicodeDecodeError) as e:
            state.batch.abort()
            self.logger.error(f"Import aborted after {state.records} records: {e}")
            raise ProcessingError(
                f"Malformed JSON input: {e}",
                ErrorType.SYNTAX,
                context={"records_written": state.records},
            ) from e
        except ProcessingError as e:
            state.batch.abort()
            self.logger.error(f"Import aborted after {state.records} records: {e}")
            raise

        self.logger.info(f"Imported {state.records} records in {state.batches} batches "
                         f"({state.bytes_written} bytes, depth {state.max_depth})")

        return ImportResult(
            records_written=state.records,
            batches_committed=state.batches,
            bytes_written=state.bytes_written,
            max_depth=state.max_depth,
        )

    def _walk(self, source: BinaryIO, state: _ImportState) -> None:
        path: List[Segment] = []
        frames: List[_Frame] = []
        warned_separator = False

        for event, value in ijson.basic_parse(source, use_float=False):
            if event == "map_key":
                if not warned_separator and self.codec.contains_separator(value):
                    self.logger.warning(f"Field name {value!r} contains the key separator; "
                                        "its subtree will not reconstruct faithfully")
                    warned_separator = True
                path[-1] = value
                continue

            if event in ("end_map", "end_array"):
                frames.pop()
                path.pop()
                continue

            # Everything else starts a value; inside an array that is the next index.
            if frames and frames[-1].kind == "array":
                frames[-1].index += 1
                path[-1] = frames[-1].index

            if event == "start_map":
                frames.append(_Frame("map"))
                path.append("")
                state.max_depth = max(state.max_depth, len(frames))
            elif event == "start_array":
                frames.append(_Frame("array"))
                path.append(0)
                state.max_depth = max(state.max_depth, len(frames))
            elif event in _SCALAR_EVENTS:
                record = FlatRecord(self.codec.encode(path), encode_scalar(value))
                self._write(state, record)
            else:
                raise ProcessingError(f"Unexpected parser event: {event}", ErrorType.SYNTAX)

    def _write(self, state: _ImportState, record: FlatRecord) -> None:
        status = state.batch.set(record.key, record.value)

        if status is WriteStatus.TOO_LARGE:
            state.batch.commit()
            state.batches += 1
            self.logger.debug(f"Batch {state.batches} committed after {state.records} records")
            if self.profiler:
                self.profiler.sample_performance()

            state.batch = self.storage.begin_write_batch()
            if state.batch.set(record.key, record.value) is WriteStatus.TOO_LARGE:
                raise ProcessingError(
                    f"Record {record.key!r} ({record.size} bytes) does not fit in an empty batch",
                    ErrorType.BATCH_OVERFLOW,
                    context={"key": record.key, "size": record.size},
                )

        state.records += 1
        state.bytes_written += record.size
