"""Custom exception hierarchy for the OCR upload client.

Every failure an orchestrator can hit is expressed as a subclass of BaseError,
so the presentation layer always receives one structured error whose str()
is a human-readable message.
"""

from typing import Any, Optional
from enum import Enum


class ErrorCategory(str, Enum):
    """Error categories for classification and logging."""

    VALIDATION = "validation"
    TRANSPORT = "transport"
    BACKEND = "backend"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"


class BaseError(Exception):
    """Base exception for all client errors.

    Attributes:
        message: Human-readable error message
        error_code: Application-specific error code
        category: Error category for classification
        details: Additional context (dict)
        retryable: Whether a user-initiated retry may succeed
    """

    def __init__(
        self,
        message: str,
        error_code: str,
        category: ErrorCategory,
        details: Optional[dict[str, Any]] = None,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.category = category
        self.details = details or {}
        self.retryable = retryable

    def to_dict(self) -> dict[str, Any]:
        """Machine-readable error report (used by the CLI in --json mode)."""
        return {
            "error": self.message,
            "code": self.error_code,
            "category": self.category.value,
            "retryable": self.retryable,
            "details": {k: v for k, v in self.details.items() if v is not None},
        }


class ValidationError(BaseError):
    """Input file rejected before any network call.

    Args:
        message: Validation error description
        field: Name of the input that failed validation
        details: Additional validation context
    """

    def __init__(self, message: str, field: str, **kwargs):
        additional_details = kwargs.pop("details", {})
        additional_details["field"] = field
        super().__init__(
            message=message,
            error_code=kwargs.pop("error_code", "VALIDATION_ERROR"),
            category=ErrorCategory.VALIDATION,
            details=additional_details,
            retryable=False,
        )


class UnsupportedFileTypeError(ValidationError):
    """File extension or MIME type is not one of PDF, JPEG, PNG."""

    def __init__(self, filename: str, content_type: Optional[str], allowed: list[str]):
        super().__init__(
            message=f"Unsupported file type for '{filename}'. Allowed: {', '.join(allowed)}",
            field="file",
            error_code="UNSUPPORTED_FILE_TYPE",
            details={"filename": filename, "content_type": content_type, "allowed_types": allowed},
        )


class EmptyFileError(ValidationError):
    def __init__(self, filename: str):
        super().__init__(
            message=f"File '{filename}' is empty (0 bytes)",
            field="file",
            error_code="EMPTY_FILE",
            details={"filename": filename, "file_size": 0},
        )


class PayloadTooLargeError(ValidationError):
    """Raised when a file exceeds the client-side size ceiling.

    Args:
        max_size_mb: Maximum allowed size in MB
        actual_size_mb: Actual file size in MB
    """

    def __init__(self, max_size_mb: int, actual_size_mb: float):
        super().__init__(
            message=f"File too large: {actual_size_mb:.2f}MB (max: {max_size_mb}MB)",
            field="file",
            error_code="PAYLOAD_TOO_LARGE",
            details={"max_size_mb": max_size_mb, "actual_size_mb": actual_size_mb},
        )


class TransportError(BaseError):
    """Non-2xx response, network failure or timeout on a backend call.

    Args:
        operation: Logical operation name (e.g. "request_upload_target")
        message: Human-readable description
        status_code: HTTP status when the backend answered
        details: Additional error context
    """

    def __init__(
        self,
        operation: str,
        message: str,
        status_code: Optional[int] = None,
        **kwargs,
    ):
        additional_details = kwargs.pop("details", {})
        additional_details.update({"operation": operation, "status_code": status_code})
        super().__init__(
            message=message,
            error_code=kwargs.pop("error_code", "TRANSPORT_ERROR"),
            category=ErrorCategory.TRANSPORT,
            details=additional_details,
            retryable=kwargs.pop("retryable", False),
        )
        self.operation = operation
        self.status_code = status_code


class InvalidResponseError(TransportError):
    """2xx response that is not JSON or lacks a field the client needs."""

    def __init__(self, operation: str, message: str, **kwargs):
        super().__init__(
            operation=operation,
            message=message,
            error_code="INVALID_RESPONSE",
            **kwargs,
        )


class PollingTransientError(TransportError):
    """Status check failed at transport level on the final polling attempt."""

    def __init__(self, cause: TransportError, attempts: int):
        super().__init__(
            operation=cause.operation,
            message=f"{cause.message} (after {attempts} status checks)",
            status_code=cause.status_code,
            error_code="POLLING_TRANSIENT_ERROR",
            retryable=True,
            details={"attempts": attempts},
        )


class BackendReportedError(BaseError):
    """Backend reported the document or batch as failed."""

    def __init__(self, message: str, resource_id: Optional[str] = None):
        super().__init__(
            message=message,
            error_code="BACKEND_REPORTED_ERROR",
            category=ErrorCategory.BACKEND,
            details={"resource_id": resource_id},
        )
        self.resource_id = resource_id


class PollingTimeoutError(BaseError):
    """Polling budget exhausted without a terminal status."""

    def __init__(self, budget_seconds: float, attempts: int):
        super().__init__(
            message=(
                f"Timeout: processing did not finish within "
                f"{budget_seconds:g}s ({attempts} status checks)"
            ),
            error_code="POLLING_TIMEOUT",
            category=ErrorCategory.TIMEOUT,
            details={"budget_seconds": budget_seconds, "attempts": attempts},
            retryable=True,
        )
        self.budget_seconds = budget_seconds
        self.attempts = attempts


class BatchUploadError(BaseError):
    """One file of a batch failed to upload; the whole batch is aborted.

    Args:
        filename: Name of the offending file
        cause: The underlying client error
    """

    def __init__(self, filename: str, cause: BaseError):
        super().__init__(
            message=f"Upload failed for '{filename}': {cause.message}",
            error_code="BATCH_UPLOAD_FAILED",
            category=cause.category,
            details={"filename": filename, "cause": cause.error_code},
            retryable=cause.retryable,
        )
        self.filename = filename
        self.cause = cause


class OperationCancelledError(BaseError):
    """The orchestration run was reset or cancelled by the caller."""

    def __init__(self, message: str = "Operation cancelled"):
        super().__init__(
            message=message,
            error_code="OPERATION_CANCELLED",
            category=ErrorCategory.CANCELLED,
        )
