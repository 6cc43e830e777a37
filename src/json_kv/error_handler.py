"""Error handling implementation for the JSON key-value store."""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

from .types import (
    ErrorResponse,
    ErrorType,
    ProcessingError,
    ValidationError,
    ValidationResult,
)
from .utils.validation import ValidationUtils


class ErrorHandler:
    """
    Validation and error classification for import and query operations.

    Fatal errors travel as ProcessingError; this class turns them into
    ErrorResponses that tell the caller what to do next.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        """
        Initialize the error handler.

        Args:
            logger: Optional logger instance for error reporting
        """
        self.logger = logger or logging.getLogger(__name__)

    def validate_query_path(self, path: Any, separator: str = "/") -> ValidationResult:
        result = ValidationUtils.validate_query_path(path, separator)
        for warning in result.warnings:
            self.logger.debug(f"Query path warning: {warning}")
        return result

    def validate_source(self, path: Path) -> ValidationResult:
        return ValidationUtils.validate_json_source(path)

    def validate_config(self, values: Dict[str, Any]) -> ValidationResult:
        result = ValidationUtils.validate_config(values)
        for warning in result.warnings:
            self.logger.warning(warning)
        return result

    def handle_processing_error(self, error: ProcessingError) -> ErrorResponse:
        """
        Classify a processing error and suggest what the caller should do.

        Args:
            error: ProcessingError to handle

        Returns:
            ErrorResponse with recovery information
        """
        self.logger.error(f"Processing error: {error.error_type.value} - {error}")

        if error.error_type == ErrorType.SYNTAX:
            return self._handle_syntax_error(error)
        elif error.error_type == ErrorType.BATCH_OVERFLOW:
            return self._handle_overflow_error(error)
        elif error.error_type == ErrorType.STORAGE:
            return self._handle_storage_error(error)
        elif error.error_type == ErrorType.PATH:
            return ErrorResponse(
                can_recover=False,
                suggested_action="Fix the query path or configuration and retry. Document "
                               "paths must fit the store's key limit and array indices "
                               "must fit the configured index width.",
                partial_results=self._context_value(error, "key_bytes")
            )
        elif error.error_type == ErrorType.CANCELLED:
            return ErrorResponse(
                can_recover=True,
                suggested_action="The consumer went away; nothing to do.",
                partial_results=None
            )
        else:
            return ErrorResponse(
                can_recover=False,
                suggested_action="Unknown error type. Please check logs and retry.",
                partial_results=None
            )

    def _handle_syntax_error(self, error: ProcessingError) -> ErrorResponse:
        return ErrorResponse(
            can_recover=False,
            suggested_action="Input is not well-formed JSON. Discard the partially "
                           "imported store, fix the input and import again.",
            partial_results=self._context_value(error, "records_written")
        )

    def _handle_overflow_error(self, error: ProcessingError) -> ErrorResponse:
        return ErrorResponse(
            can_recover=False,
            suggested_action="A single record exceeds the batch size limit. Discard the "
                           "store and import again with a larger batch size.",
            partial_results=self._context_value(error, "size")
        )

    def _handle_storage_error(self, error: ProcessingError) -> ErrorResponse:
        return ErrorResponse(
            can_recover=False,
            suggested_action="Storage failure. Check disk space, permissions and the "
                           "store's map size; discard the store if it was being imported.",
            partial_results=self._context_value(error, "lmdb_error")
        )

    @staticmethod
    def _context_value(error: ProcessingError, name: str) -> Optional[Any]:
        if isinstance(error.context, dict):
            return error.context.get(name)
        return None

    def raise_for_validation(self, result: ValidationResult, error_type: ErrorType) -> None:
        """Raise a ProcessingError carrying every validation message."""
        if result.is_valid:
            return
        message = "; ".join(self._describe(e) for e in result.errors)
        raise ProcessingError(message, error_type, context={"errors": result.errors})

    @staticmethod
    def _describe(error: ValidationError) -> str:
        if error.location:
            return f"{error.message} ({error.location})"
        return error.message
