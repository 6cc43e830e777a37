"""Validation utilities for query paths, sources and configuration."""

from pathlib import Path
from typing import Any, Dict, List

from ..models import StoreConfig
from ..types import ErrorType, ValidationError, ValidationResult

# Keys longer than this cannot be stored by the LMDB adapter.
MAX_KEY_BYTES = 510


class ValidationUtils:
    """Utility class for validating inputs at the store's edges."""

    @staticmethod
    def validate_query_path(path: Any, separator: str = "/") -> ValidationResult:
        """
        Validate an external query path string.

        Args:
            path: Path as received from a caller
            separator: Separator the store was built with

        Returns:
            ValidationResult with validation details
        """
        errors: List[ValidationError] = []
        warnings: List[str] = []

        if not isinstance(path, str):
            errors.append(ValidationError(
                type=ErrorType.PATH,
                message=f"Query path must be a string, got {type(path).__name__}",
                location="path"
            ))
            return ValidationResult(is_valid=False, errors=errors, warnings=warnings)

        try:
            encoded = path.encode("utf-8")
        except UnicodeEncodeError as e:
            errors.append(ValidationError(
                type=ErrorType.PATH,
                message=f"Query path is not valid UTF-8 text: {e.reason}",
                location=f"offset {e.start}"
            ))
            return ValidationResult(is_valid=False, errors=errors, warnings=warnings)

        if "\x00" in path:
            errors.append(ValidationError(
                type=ErrorType.PATH,
                message="Query path cannot contain NUL characters",
                location="path"
            ))

        if len(encoded) > MAX_KEY_BYTES:
            warnings.append(f"Query path is {len(encoded)} bytes; keys longer than "
                            f"{MAX_KEY_BYTES} bytes are never stored")

        if separator * 2 in path.strip(separator):
            warnings.append("Query path contains an empty segment")

        return ValidationResult(
            is_valid=len(errors) == 0,
            errors=errors,
            warnings=warnings
        )

    @staticmethod
    def validate_json_source(path: Path) -> ValidationResult:
        """
        Validate that an import source file can be read.

        Args:
            path: Path to the JSON document

        Returns:
            ValidationResult with validation details
        """
        errors: List[ValidationError] = []
        warnings: List[str] = []

        if not path.exists():
            errors.append(ValidationError(
                type=ErrorType.PATH,
                message=f"Input file does not exist: {path}",
                location="input"
            ))
        elif not path.is_file():
            errors.append(ValidationError(
                type=ErrorType.PATH,
                message=f"Input path is not a file: {path}",
                location="input"
            ))
        elif path.stat().st_size == 0:
            errors.append(ValidationError(
                type=ErrorType.SYNTAX,
                message="Input file is empty",
                location="input"
            ))

        return ValidationResult(
            is_valid=len(errors) == 0,
            errors=errors,
            warnings=warnings
        )

    @staticmethod
    def validate_config(values: Dict[str, Any]) -> ValidationResult:
        """
        Validate raw configuration values before building a StoreConfig.

        Args:
            values: Keyword arguments for StoreConfig

        Returns:
            ValidationResult with validation details
        """
        errors: List[ValidationError] = []
        warnings: List[str] = []

        try:
            config = StoreConfig(**values)
        except (TypeError, ValueError) as e:
            errors.append(ValidationError(
                type=ErrorType.PATH,
                message=f"Invalid configuration: {e}",
                location="config"
            ))
            return ValidationResult(is_valid=False, errors=errors, warnings=warnings)

        if config.max_batch_bytes < 1024:
            warnings.append("max_batch_bytes is very small (< 1KB). Import will commit very often.")

        if config.index_width:
            warnings.append("Fixed-width indices are on: all-digit field names in query "
                            "paths are treated as array indices")

        return ValidationResult(
            is_valid=len(errors) == 0,
            errors=errors,
            warnings=warnings
        )
