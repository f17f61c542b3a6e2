"""
Standardized error classification for CRM operations.

Every service raises one of these so callers can tell a missing record or a
permission problem apart from an internal failure and decide whether to retry.
"""

from typing import Optional, Dict, Any


class CRMError(Exception):
    """
    Base exception for all CRM service errors.

    Attributes:
        message: Human-readable error description
        status_code: HTTP status code the error maps to
        details: Extra context for debugging
        retryable: Whether re-invoking the operation may succeed
    """

    status_code: int = 500

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details or {}
        self.retryable = retryable

    def __str__(self) -> str:
        return f"{self.message} (HTTP {self.status_code})"

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "status_code": self.status_code,
            "retryable": self.retryable,
            "details": self.details,
        }


class NotFoundError(CRMError):
    """Referenced deal, account or user does not exist."""

    status_code = 404

    def __init__(
        self,
        message: str = "Resource not found",
        resource_id: Optional[str] = None,
    ):
        if resource_id:
            message = f"{message}: {resource_id}"
        super().__init__(message=message, details={"resource_id": resource_id})
        self.resource_id = resource_id


class ForbiddenError(CRMError):
    """Caller's role lacks permission for the operation."""

    status_code = 403

    def __init__(
        self,
        message: str = "Insufficient permissions",
        role: Optional[str] = None,
    ):
        super().__init__(message=message, details={"role": role})
        self.role = role


class ValidationError(CRMError):
    """
    Malformed or missing required input.

    invalid_params maps each offending field to a short reason.
    """

    status_code = 400

    def __init__(
        self,
        message: str = "Invalid request parameters",
        invalid_params: Optional[Dict[str, str]] = None,
    ):
        super().__init__(message=message, details={"invalid_params": invalid_params or {}})
        self.invalid_params = invalid_params or {}


class InternalError(CRMError):
    """
    Underlying persistence failure or unexpected exception.

    Keeps the original exception so the failure detail reaches the caller.
    """

    status_code = 500

    def __init__(self, message: str = "Internal error", cause: Optional[BaseException] = None):
        detail = f"{message}: {cause}" if cause is not None else message
        super().__init__(
            message=detail,
            details={"cause": type(cause).__name__ if cause is not None else None},
            retryable=True,
        )
        self.cause = cause
