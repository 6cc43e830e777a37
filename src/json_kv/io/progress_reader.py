"""Binary reader wrapper that logs import progress."""

import logging
from typing import BinaryIO, Optional


class ProgressReader:
    """
    Wraps a binary stream and logs each new whole percentage consumed.

    Only read() is forwarded, which is all the streaming parser needs.
    """

    def __init__(self, stream: BinaryIO, total_size: int,
                 logger: Optional[logging.Logger] = None):
        self.stream = stream
        self.total_size = total_size
        self.offset = 0
        self.percentage = 0
        self.logger = logger or logging.getLogger(__name__)

    def read(self, size: int = -1) -> bytes:
        data = self.stream.read(size)
        self.offset += len(data)

        if self.total_size > 0:
            percentage = self.offset * 100 // self.total_size
            if percentage != self.percentage:
                self.percentage = percentage
                self.logger.info(f"{percentage}%")

        return data
