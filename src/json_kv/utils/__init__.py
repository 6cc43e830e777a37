"""Utility functions for the JSON key-value store."""

from .validation import ValidationUtils

__all__ = ["ValidationUtils"]
