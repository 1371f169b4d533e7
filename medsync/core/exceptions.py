"""Custom application exceptions."""

from typing import Any


class ErrorCode:
    """Error kinds shared by the API and the workers."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"


class AppException(Exception):
    """Base application exception."""

    code: str = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, status_code: int = 500):
        """Initialize exception with message and status code."""
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize the error for API responses and logs."""
        return {"code": self.code, "message": self.message, "status_code": self.status_code}


class ValidationError(AppException):
    """Caller input failed one or more field rules."""

    code = ErrorCode.VALIDATION_ERROR

    def __init__(
        self,
        message: str = "Validation failed",
        details: list[dict[str, str]] | None = None,
    ):
        """Initialize with 400 status code and per-field details."""
        super().__init__(message, status_code=400)
        self.details = details or []

    def to_dict(self) -> dict[str, Any]:
        """Serialize including the failing fields."""
        data = super().to_dict()
        data["details"] = self.details
        return data


class NotFoundError(AppException):
    """Referenced entity not found."""

    code = ErrorCode.NOT_FOUND

    def __init__(self, message: str = "Resource not found"):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404)


class ConflictError(AppException):
    """Uniqueness or state conflict."""

    code = ErrorCode.CONFLICT

    def __init__(self, message: str = "Conflict"):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409)


class InternalError(AppException):
    """Store or transport failure."""

    code = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str = "Internal error"):
        """Initialize with 500 status code."""
        super().__init__(message, status_code=500)


class ExternalServiceError(AppException):
    """A named downstream dependency failed."""

    code = ErrorCode.EXTERNAL_SERVICE_ERROR

    def __init__(self, service: str, message: str):
        """Initialize with 502 status code."""
        self.service = service
        super().__init__(f"{service}: {message}", status_code=502)
