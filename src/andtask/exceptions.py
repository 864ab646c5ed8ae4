"""Custom exceptions for the andtask record store.

Provides a structured exception hierarchy with error codes and
machine-readable error information for callers such as a UI layer.
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """Error codes for machine-readable error identification."""

    # Record errors (1xxx)
    DUPLICATE_KEY = 1002
    CONSTRAINT_VIOLATION = 1003

    # Storage errors (4xxx)
    STORE_UNAVAILABLE = 4001
    STORAGE_WRITE_FAILED = 4002
    INDEX_SYNC_FAILED = 4004

    # Search errors (5xxx)
    SEARCH_FAILED = 5001

    # Validation errors (7xxx)
    VALIDATION_FAILED = 7001


class AndtaskError(Exception):
    """Base exception for all record store errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional context about the error
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a dictionary for serialization."""
        return {
            "error": self.__class__.__name__,
            "code": self.code.value,
            "code_name": self.code.name,
            "message": self.message,
            "details": self.details
        }

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"[{self.code.name}] {self.message} ({detail_str})"
        return f"[{self.code.name}] {self.message}"


class StoreUnavailableError(AndtaskError):
    """Raised when the database file cannot be opened.

    Fatal for the store: every later call would fail the same way.
    """

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if path:
            # Only the file name, never the full path
            details["path_hint"] = path.replace("\\", "/").split("/")[-1]
        if original_error:
            details["original_error"] = str(original_error)[:200]

        super().__init__(message, code=ErrorCode.STORE_UNAVAILABLE, details=details)
        self.path = path
        self.original_error = original_error


class ConstraintViolationError(AndtaskError):
    """Raised when a write breaks a table constraint, e.g. a duplicate todo id."""

    def __init__(
        self,
        message: str,
        table: Optional[str] = None,
        record_id: Optional[Any] = None,
        code: ErrorCode = ErrorCode.CONSTRAINT_VIOLATION,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if table:
            details["table"] = table
        if record_id is not None:
            details["record_id"] = str(record_id)[:100]
        if original_error:
            details["original_error"] = str(original_error)[:200]

        super().__init__(message, code=code, details=details)
        self.table = table
        self.record_id = record_id
        self.original_error = original_error


class IndexSyncError(AndtaskError):
    """Raised when the search-index half of a paired write fails.

    The primary-table write of the same operation is rolled back.
    """

    def __init__(
        self,
        message: str,
        item_type: Optional[str] = None,
        item_id: Optional[Any] = None,
        operation: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if item_type:
            details["item_type"] = item_type
        if item_id is not None:
            details["item_id"] = str(item_id)[:100]
        if operation:
            details["operation"] = operation
        if original_error:
            details["original_error"] = str(original_error)[:200]

        super().__init__(message, code=ErrorCode.INDEX_SYNC_FAILED, details=details)
        self.item_type = item_type
        self.item_id = item_id
        self.operation = operation
        self.original_error = original_error


class StorageError(AndtaskError):
    """Raised for other persistence failures on the primary tables."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        code: ErrorCode = ErrorCode.STORAGE_WRITE_FAILED,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if operation:
            details["operation"] = operation
        if original_error:
            details["original_error"] = str(original_error)[:200]

        super().__init__(message, code=code, details=details)
        self.operation = operation
        self.original_error = original_error


class SearchError(AndtaskError):
    """Raised for search-related errors."""

    def __init__(
        self,
        message: str,
        query: Optional[str] = None,
        code: ErrorCode = ErrorCode.SEARCH_FAILED
    ):
        details = {}
        if query:
            details["query"] = query[:100]  # Truncate for safety

        super().__init__(message, code=code, details=details)
        self.query = query


class ValidationError(AndtaskError):
    """Raised for invalid caller input."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED
    ):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)[:100]

        super().__init__(message, code=code, details=details)
        self.field = field
        self.value = value
