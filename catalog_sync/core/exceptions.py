"""
Custom exception classes for the catalog synchronization engine.

Each type maps to one failure scope: a rejected field, a skipped record, or
a failed provider grouping. Run-level failures are whatever propagates out of
a sync operation.
"""
from typing import Any, Optional


class CatalogSyncError(Exception):
    """
    Base exception class for all synchronization errors

    Attributes:
        message: Error message
        stage: Sync stage where error occurred
        details: Additional error details
        original_exception: Original exception that caused this error
    """

    def __init__(
        self,
        message: str,
        stage: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        original_exception: Optional[Exception] = None,
    ):
        self.message = message
        self.stage = stage
        self.details = details or {}
        self.original_exception = original_exception

        full_message = message
        if stage:
            full_message = f"[{stage.upper()}] {message}"

        super().__init__(full_message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/serialization"""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "stage": self.stage,
            "details": self.details,
            "original_exception": str(self.original_exception)
            if self.original_exception
            else None,
        }


class SpecificationValidationError(CatalogSyncError):
    """
    Raised when a specification value does not satisfy its template type.

    Only the offending field is rejected; the rest of the submission proceeds.
    """

    def __init__(
        self,
        reason: str,
        specification_name: Optional[str] = None,
        value: Optional[str] = None,
    ):
        details = {}
        if specification_name:
            details["specification_name"] = specification_name
        if value is not None:
            details["value"] = value

        self.reason = reason
        super().__init__(message=reason, stage="specification", details=details)


class ReconciliationError(CatalogSyncError):
    """
    Raised when a provider record cannot be attached to a canonical category.

    The record is skipped and counted as an error; it is never defaulted to
    a fallback category.
    """

    def __init__(self, message: str, record_key: Optional[str] = None, labels: Optional[tuple] = None):
        details = {}
        if record_key:
            details["record_key"] = record_key
        if labels:
            details["labels"] = list(labels)

        super().__init__(message=message, stage="reconciliation", details=details)


class InvalidRecordError(CatalogSyncError):
    """Raised when a provider record lacks a required field"""

    def __init__(self, message: str, field: Optional[str] = None, record_key: Optional[str] = None):
        details = {}
        if field:
            details["field"] = field
        if record_key:
            details["record_key"] = record_key

        super().__init__(message=message, stage="mapping", details=details)


class ProviderError(CatalogSyncError):
    """
    Raised when a provider fetch fails.

    Fetch failures are scoped to one grouping (category handle); callers count
    them and continue with the next grouping.
    """

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        handle: Optional[str] = None,
        original_exception: Optional[Exception] = None,
    ):
        details = {}
        if provider:
            details["provider"] = provider
        if handle:
            details["handle"] = handle

        super().__init__(
            message=message,
            stage="provider",
            details=details,
            original_exception=original_exception,
        )


__all__ = [
    "CatalogSyncError",
    "SpecificationValidationError",
    "ReconciliationError",
    "InvalidRecordError",
    "ProviderError",
]
