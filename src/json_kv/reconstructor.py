"""Streaming reconstruction of JSON subtrees from an ordered key scan."""

import json
import logging
from typing import List, Optional, Sequence

from .keypath import KeyPathCodec, Segment
from .types import QueryKind, QueryOutput, QueryResult, StorageAdapterInterface

NULL_OUTPUT = b"null\n"


def quote_name(name: str) -> bytes:
    """JSON string literal for an object key."""
    return json.dumps(name, ensure_ascii=False).encode("utf-8", "surrogatepass")


def divergence_index(open_path: Sequence[str], container_path: Sequence[str]) -> int:
    """First position where the two paths differ, or the shorter length."""
    limit = min(len(open_path), len(container_path))
    for i in range(limit):
        if open_path[i] != container_path[i]:
            return i
    return limit


class ObjectAssembler:
    """
    Turns leaf records, fed in ascending key order, into nested JSON text.

    Only the currently open container names are kept, so memory grows with
    tree depth and never with the number of records. The assembler returns
    byte chunks and knows nothing about where they are written.
    """

    def __init__(self):
        self.open_path: List[str] = []
        # One flag per level; index 0 is the outermost object.
        self._first_child: List[bool] = [True]

    @property
    def depth(self) -> int:
        return len(self.open_path)

    def begin(self) -> bytes:
        return b"{"

    def add(self, segments: Sequence[str], value: bytes) -> bytes:
        """
        Emit the text for one leaf at the given path relative to the query.

        Args:
            segments: Container names followed by the leaf name
            value: Stored scalar JSON, emitted verbatim
        """
        container_path = segments[:-1]
        leaf_name = segments[-1]
        chunks: List[bytes] = []

        keep = divergence_index(self.open_path, container_path)
        closing = len(self.open_path) - keep
        if closing:
            chunks.append(b"}" * closing)
            del self.open_path[keep:]
            del self._first_child[keep + 1:]

        for name in container_path[keep:]:
            if not self._first_child[-1]:
                chunks.append(b",")
            self._first_child[-1] = False
            chunks.append(quote_name(name))
            chunks.append(b":{")
            self.open_path.append(name)
            self._first_child.append(True)

        if not self._first_child[-1]:
            chunks.append(b",")
        chunks.append(quote_name(leaf_name))
        chunks.append(b":")
        chunks.append(value)
        self._first_child[-1] = False

        return b"".join(chunks)

    def finish(self) -> bytes:
        """Close every open level, then the outermost object."""
        closing = b"}" * len(self.open_path) + b"}\n"
        self.open_path.clear()
        del self._first_child[1:]
        return closing


class Reconstructor:
    """
    Answers a path query with a leaf scalar, a rebuilt object, or null.

    Each query runs inside its own read snapshot. The scan relies on the
    store returning keys in ascending byte order.
    """

    def __init__(self, storage: StorageAdapterInterface,
                 codec: Optional[KeyPathCodec] = None,
                 logger: Optional[logging.Logger] = None):
        self.storage = storage
        self.codec = codec or KeyPathCodec()
        self.logger = logger or logging.getLogger(__name__)

    def query(self, segments: Sequence[Segment], output: QueryOutput) -> QueryResult:
        """
        Write the JSON found at the given path to output.

        Args:
            segments: Path from the document root; empty for the root
            output: Destination; polled for cancellation between records

        Returns:
            QueryResult describing what was written

        Raises:
            ProcessingError: If the storage adapter fails
        """
        key = self.codec.encode(segments)

        with self.storage.read_snapshot() as snapshot:
            value = snapshot.get(key)
            if value is not None:
                data = value + b"\n"
                output.write(data)
                return QueryResult(QueryKind.LEAF, records_scanned=1, bytes_written=len(data))

            prefix = self.codec.child_prefix(segments)
            records = snapshot.scan_prefix(prefix)
            assembler = ObjectAssembler()
            scanned = 0
            written = 0

            try:
                for record_key, record_value in records:
                    if output.is_cancelled():
                        self.logger.debug(f"Query {key!r} cancelled after {scanned} records")
                        return QueryResult(QueryKind.CANCELLED, scanned, written)

                    chunk = self.codec.split_relative(record_key[len(prefix):])
                    data = assembler.add(chunk, record_value)
                    if scanned == 0:
                        data = assembler.begin() + data
                    output.write(data)
                    written += len(data)
                    scanned += 1
            finally:
                records.close()

        if scanned == 0:
            output.write(NULL_OUTPUT)
            return QueryResult(QueryKind.NOT_FOUND, 0, len(NULL_OUTPUT))

        data = assembler.finish()
        output.write(data)
        written += len(data)
        self.logger.debug(f"Query {key!r} rebuilt {scanned} records ({written} bytes)")
        return QueryResult(QueryKind.OBJECT, scanned, written)

    def query_path(self, path: str, output: QueryOutput) -> QueryResult:
        """Query by external "/"-joined path string."""
        return self.query(self.codec.parse_path(path), output)
