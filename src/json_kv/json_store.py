"""Main JSON key-value store implementation."""

import asyncio
import io
import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import BinaryIO, Iterable, List, Optional, Union

from .error_handler import ErrorHandler
from .flattener import Flattener
from .io.progress_reader import ProgressReader
from .io.query_output import BufferOutput
from .keypath import KeyPathCodec
from .models import StoreConfig
from .profiler import PerformanceProfiler
from .reconstructor import Reconstructor
from .storage import LmdbStorageAdapter, MemoryStorageAdapter
from .types import (
    ErrorType,
    ImportResult,
    QueryOutput,
    QueryResult,
    StorageAdapterInterface,
)


class JSONStore:
    """
    Imports a JSON document into a sorted key-value store and serves
    path queries against it.

    Import is a single pass by a single writer and must finish before
    queries start. Queries each take their own read snapshot, so any number
    of them may run at once; the async helpers run them on a thread pool.
    """

    def __init__(self, storage: StorageAdapterInterface,
                 config: Optional[StoreConfig] = None,
                 logger: Optional[logging.Logger] = None):
        """
        Initialize the store.

        Args:
            storage: Sorted key-value adapter holding the flat records
            config: Store configuration (separator, index width, pool size)
            logger: Optional logger instance
        """
        self.storage = storage
        self.config = config or StoreConfig()
        self.logger = logger or logging.getLogger(__name__)

        self.codec = KeyPathCodec(self.config.separator, self.config.index_width)
        self.error_handler = ErrorHandler(self.logger)
        self.profiler = PerformanceProfiler(self.logger)
        self.flattener = Flattener(self.storage, self.codec, self.logger, self.profiler)
        self.reconstructor = Reconstructor(self.storage, self.codec, self.logger)
        self.executor = ThreadPoolExecutor(max_workers=self.config.max_workers,
                                           thread_name_prefix="json-kv-query")

    @classmethod
    def open_lmdb(cls, path: Union[str, Path],
                  config: Optional[StoreConfig] = None,
                  readonly: bool = False,
                  logger: Optional[logging.Logger] = None) -> "JSONStore":
        """Open (or create) an LMDB-backed store at path."""
        config = config or StoreConfig()
        storage = LmdbStorageAdapter(
            path,
            map_size=config.map_size,
            max_batch_bytes=config.max_batch_bytes,
            max_readers=config.max_readers,
            readonly=readonly,
            logger=logger,
        )
        return cls(storage, config, logger)

    @classmethod
    def in_memory(cls, config: Optional[StoreConfig] = None,
                  logger: Optional[logging.Logger] = None) -> "JSONStore":
        """Create a store backed by the in-memory adapter."""
        config = config or StoreConfig()
        return cls(MemoryStorageAdapter(config.max_batch_bytes, logger), config, logger)

    def import_stream(self, source: BinaryIO, total_size: Optional[int] = None) -> ImportResult:
        """
        Import one JSON document from a binary stream.

        Args:
            source: Readable binary stream
            total_size: Stream length in bytes; enables progress logging

        Returns:
            ImportResult with metrics attached

        Raises:
            ProcessingError: On malformed input or storage failure. The store
                is then partially written and should be discarded.
        """
        if total_size:
            source = ProgressReader(source, total_size, self.logger)

        self.logger.info(f"Starting import: batch limit {self.config.max_batch_bytes} bytes, "
                         f"index width {self.config.index_width or 'plain'}")

        with self.profiler.profile_operation("import_json", total_size or 0):
            result = self.flattener.flatten(source)
            result.metrics = self.profiler.stop_profiling(
                records_written=result.records_written,
                batches_committed=result.batches_committed,
            )
        return result

    def import_file(self, path: Union[str, Path]) -> ImportResult:
        """Import the JSON document stored at path."""
        path = Path(path)
        validation = self.error_handler.validate_source(path)
        self.error_handler.raise_for_validation(validation, ErrorType.PATH)

        with open(path, "rb") as f:
            return self.import_stream(f, path.stat().st_size)

    def import_json(self, document: Union[str, bytes]) -> ImportResult:
        """Import a JSON document held in memory."""
        if isinstance(document, str):
            document = document.encode("utf-8")
        return self.import_stream(io.BytesIO(document))

    def query(self, path: str, output: QueryOutput) -> QueryResult:
        """
        Write the JSON at a "/"-joined path to output.

        Raises:
            ProcessingError: PATH for an invalid path, STORAGE on adapter failure
        """
        validation = self.error_handler.validate_query_path(path, self.config.separator)
        self.error_handler.raise_for_validation(validation, ErrorType.PATH)
        return self.reconstructor.query_path(path, output)

    def query_bytes(self, path: str) -> bytes:
        """Run a query into memory and return the output bytes."""
        output = BufferOutput()
        self.query(path, output)
        return output.getvalue()

    async def query_async(self, path: str) -> bytes:
        """Run a query on the thread pool."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.executor, self.query_bytes, path)

    async def query_many(self, paths: Iterable[str]) -> List[bytes]:
        """Run several queries concurrently; results keep the order of paths."""
        return await asyncio.gather(*(self.query_async(p) for p in paths))

    def close(self) -> None:
        self.executor.shutdown(wait=True)
        self.storage.close()

    def __enter__(self) -> "JSONStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
