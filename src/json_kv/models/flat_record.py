"""Flat record model."""

from dataclasses import dataclass


@dataclass(frozen=True)
class FlatRecord:
    """
    One stored leaf: the encoded path and the canonical JSON of the scalar.

    A record never holds a container value.
    """

    key: bytes
    value: bytes

    def __post_init__(self):
        """Validate record after initialization."""
        if not isinstance(self.key, bytes):
            raise ValueError("key must be bytes")
        if not self.value:
            raise ValueError("value cannot be empty")

    @property
    def size(self) -> int:
        """Bytes this record contributes to a write batch."""
        return len(self.key) + len(self.value)
