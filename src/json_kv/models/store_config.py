"""Store configuration model with validation."""

from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional

DEFAULT_MAX_BATCH_BYTES = 8 * 1024 * 1024
DEFAULT_MAP_SIZE = 1 << 36
MAX_INDEX_WIDTH = 20


@dataclass
class StoreConfig:
    """
    Settings shared by the import and query phases.

    The same separator and index_width must be used for import and for
    every later query against that store.
    """

    separator: str = "/"
    index_width: int = 0
    max_batch_bytes: int = DEFAULT_MAX_BATCH_BYTES
    map_size: int = DEFAULT_MAP_SIZE
    max_workers: Optional[int] = None
    max_readers: int = 126

    def __post_init__(self):
        """Validate configuration after initialization."""
        self._validate()

    def _validate(self) -> None:
        if len(self.separator) != 1 or not self.separator.isascii():
            raise ValueError("separator must be a single ASCII character")

        if self.separator.isdigit():
            raise ValueError("separator cannot be a digit")

        if not 0 <= self.index_width <= MAX_INDEX_WIDTH:
            raise ValueError(f"index_width must be between 0 and {MAX_INDEX_WIDTH}")

        if self.max_batch_bytes <= 0:
            raise ValueError("max_batch_bytes must be positive")

        if self.map_size <= 0:
            raise ValueError("map_size must be positive")

        if self.max_workers is not None and self.max_workers <= 0:
            raise ValueError("max_workers must be positive")

        if self.max_readers <= 0:
            raise ValueError("max_readers must be positive")

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to a plain dictionary."""
        return asdict(self)
