"""Query output destinations."""

import io
import logging
import threading
from typing import BinaryIO, Optional

from ..types import QueryOutput


class BufferOutput(QueryOutput):
    """Collects query output in memory."""

    def __init__(self):
        self._buffer = io.BytesIO()
        self._cancel_event = threading.Event()

    def write(self, data: bytes) -> None:
        self._buffer.write(data)

    def cancel(self) -> None:
        self._cancel_event.set()

    def is_cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def getvalue(self) -> bytes:
        return self._buffer.getvalue()

    def text(self) -> str:
        return self.getvalue().decode("utf-8")


class StreamOutput(QueryOutput):
    """
    Writes query output to a binary stream such as a socket file.

    A peer that hangs up turns into cancellation: the failed write is
    dropped and the reconstruction loop stops at the next record.
    """

    def __init__(self, stream: BinaryIO,
                 cancel_event: Optional[threading.Event] = None,
                 flush: bool = False,
                 logger: Optional[logging.Logger] = None):
        self.stream = stream
        self.cancel_event = cancel_event or threading.Event()
        self.flush = flush
        self.logger = logger or logging.getLogger(__name__)
        self.bytes_written = 0

    def write(self, data: bytes) -> None:
        if self.cancel_event.is_set():
            return
        try:
            self.stream.write(data)
            if self.flush:
                self.stream.flush()
        except (BrokenPipeError, ConnectionResetError) as e:
            self.logger.debug(f"Output closed by peer: {e}")
            self.cancel_event.set()
            return
        self.bytes_written += len(data)

    def cancel(self) -> None:
        self.cancel_event.set()

    def is_cancelled(self) -> bool:
        return self.cancel_event.is_set()
