"""Custom exception hierarchy for the file repository service."""

from enum import Enum
from typing import Optional, Dict, Any


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    # Repository errors
    FOLDER_NOT_FOUND = "FOLDER_NOT_FOUND"
    FILE_NOT_FOUND = "FILE_NOT_FOUND"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"

    # Validation errors
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Storage / database errors
    OPERATION_FAILED = "OPERATION_FAILED"
    DATABASE_ERROR = "DATABASE_ERROR"

    # Auth & rate limiting
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    RATE_LIMITED = "RATE_LIMITED"

    # Path collisions
    CONFLICT = "CONFLICT"

    # Generic errors
    INTERNAL_ERROR = "INTERNAL_ERROR"


class RepoException(Exception):
    """
    Base exception for all file repository errors.

    Provides structured error responses with:
    - Human-readable message
    - Machine-readable error code
    - HTTP status code
    - Optional additional details
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize exception.

        Args:
            message: Human-readable error message
            error_code: Machine-readable error code
            status_code: HTTP status code to return
            details: Optional additional context/details
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary for JSON response.

        Returns:
            Dictionary with error, message, and details fields
        """
        return {
            "error": self.error_code.value,
            "message": self.message,
            "details": self.details
        }


class FolderNotFoundError(RepoException):
    """Folder does not exist or is not owned by the caller."""

    def __init__(self, folder_id: int):
        super().__init__(
            f"Folder not found: {folder_id}",
            ErrorCode.FOLDER_NOT_FOUND,
            status_code=404,
            details={"folder_id": folder_id}
        )


class StoredFileNotFoundError(RepoException):
    """File does not exist or is not owned by the caller."""

    def __init__(self, file_id: int):
        super().__init__(
            f"File not found: {file_id}",
            ErrorCode.FILE_NOT_FOUND,
            status_code=404,
            details={"file_id": file_id}
        )


class UserNotFoundError(RepoException):
    """User account not found."""

    def __init__(self, user_id: int):
        super().__init__(
            f"User not found: {user_id}",
            ErrorCode.USER_NOT_FOUND,
            status_code=404,
            details={"user_id": user_id}
        )


class ValidationError(RepoException):
    """Validation failed for user input."""

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(
            message,
            ErrorCode.VALIDATION_ERROR,
            status_code=400,
            details=details
        )


class FileTooLargeError(RepoException):
    """Upload exceeds the configured size limit."""

    def __init__(self, max_bytes: int):
        super().__init__(
            f"File exceeds the maximum upload size of {max_bytes} bytes",
            ErrorCode.FILE_TOO_LARGE,
            status_code=413,
            details={"max_bytes": max_bytes}
        )


class AuthenticationError(RepoException):
    """Request lacks valid authentication credentials."""

    def __init__(self, message: str = "Invalid or missing authentication token"):
        super().__init__(
            message,
            ErrorCode.UNAUTHORIZED,
            status_code=401,
        )


class ForbiddenError(RepoException):
    """Authenticated user lacks permission for the requested action."""

    def __init__(self, message: str = "You do not have permission to perform this action"):
        super().__init__(
            message,
            ErrorCode.FORBIDDEN,
            status_code=403,
        )


class ConflictError(RepoException):
    """Target storage path is already taken."""

    def __init__(self, path: str, message: Optional[str] = None):
        super().__init__(
            message or f"Path already in use: {path}",
            ErrorCode.CONFLICT,
            status_code=409,
            details={"path": path}
        )


class OperationFailedError(RepoException):
    """Underlying storage operation failed.

    The underlying storage error is logged by the service layer and is
    never included in the response.
    """

    def __init__(self, operation: str):
        super().__init__(
            f"Storage operation failed: {operation}",
            ErrorCode.OPERATION_FAILED,
            status_code=500,
            details={"operation": operation}
        )


class DatabaseError(RepoException):
    """Database operation failed."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        details = {}
        if original_error:
            details["original_error"] = str(original_error)

        super().__init__(
            message,
            ErrorCode.DATABASE_ERROR,
            status_code=500,
            details=details
        )
