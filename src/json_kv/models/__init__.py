"""Data models for the JSON key-value store."""

from .flat_record import FlatRecord
from .store_config import StoreConfig

__all__ = ["FlatRecord", "StoreConfig"]
