"""I/O helpers for the JSON key-value store."""

from .progress_reader import ProgressReader
from .query_output import BufferOutput, StreamOutput

__all__ = ["ProgressReader", "BufferOutput", "StreamOutput"]
